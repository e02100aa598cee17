"""Shared fakes for the StudySync tests."""

import asyncio
import json
import uuid

import pytest

from studysync.dispatch import Dispatcher
from studysync.persistence import MetadataGateway
from studysync.registry import ParticipantRegistry
from studysync.relay import StageRelay

NAMESPACE = uuid.UUID("6f1c3c52-2f0b-4c1e-9d4e-0a9b8f7e6d5c")


class FakeConnection:
    """Stands in for a participant's WebSocket; records what it was sent."""

    def __init__(self, fail: bool = False):
        self.events = []
        self.fail = fail

    async def send_event(self, event, data):
        if self.fail:
            raise ConnectionError("socket closed")
        self.events.append((event, data))


class RecordingSink:
    """Snapshot sink that keeps every write in memory.

    *delays* are per-write latencies in seconds, consumed in call order.
    """

    def __init__(self, fail: bool = False, delays=()):
        self.writes = []
        self.fail = fail
        self.delays = list(delays)

    async def write(self, participant_id, content):
        if self.delays:
            await asyncio.sleep(self.delays.pop(0))
        if self.fail:
            raise OSError("remote host unreachable")
        self.writes.append((participant_id, json.loads(content)))


class FakeClock:
    """Millisecond clock that advances by one second per reading."""

    def __init__(self, start: int = 1_700_000_000_000):
        self.now = start

    def __call__(self) -> int:
        self.now += 1000
        return self.now


@pytest.fixture
def registry():
    return ParticipantRegistry(NAMESPACE)


@pytest.fixture
def dispatcher():
    return Dispatcher()


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def relay(registry, dispatcher, sink, clock):
    """A StageRelay wired to in-memory fakes."""
    return StageRelay(registry, MetadataGateway(sink, clock=clock), dispatcher, clock=clock)
