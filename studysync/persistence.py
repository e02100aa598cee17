"""Participant metadata snapshots.

A snapshot is the full participant record minus its live connection, plus a
``stop_time`` stamp, written as ``<participant id>.json``. Each write replaces
the previous file for that participant.

Sinks:
- SftpSnapshotSink: remote copy over SSH (paramiko), for the lab file server
- LocalSnapshotSink: plain files, for development or single-host deployments
"""
from __future__ import annotations

import asyncio
import io
import json
import logging
import os
import posixpath
import tempfile
import time
from typing import Callable, Dict, Optional, Protocol

import paramiko

from .config import Settings
from .dispatch import Delivery, DeliveryKind
from .registry import ParticipantRecord

logger = logging.getLogger(__name__)

Clock = Callable[[], int]


def now_ms() -> int:
    return int(time.time() * 1000)


def build_snapshot(record: ParticipantRecord, stop_time: int) -> dict:
    """JSON-ready copy of *record*; the connection handle is left out."""
    return {
        "id": record.id,
        "completed": record.completed,
        "completed_at": record.completed_at.to_json(),
        "stages": {video: stages.to_json() for video, stages in record.stages.items()},
        "stop_time": stop_time,
    }


class SnapshotSink(Protocol):
    async def write(self, participant_id: str, content: bytes) -> None: ...


class LocalSnapshotSink:
    def __init__(self, directory: str):
        self.directory = directory

    def path_for(self, participant_id: str) -> str:
        return os.path.join(self.directory, f"{participant_id}.json")

    def _write(self, participant_id: str, content: bytes) -> None:
        os.makedirs(self.directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.directory, suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(content)
            os.replace(tmp_path, self.path_for(participant_id))
        except BaseException:
            try:
                os.remove(tmp_path)
            except OSError:
                pass
            raise

    async def write(self, participant_id: str, content: bytes) -> None:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._write, participant_id, content)


class SftpSnapshotSink:
    """Copies snapshots to a remote directory over SFTP.

    A fresh SSH session is opened per write; writes are rare (a handful per
    participant) and this keeps no connection state across failures.
    """

    def __init__(
        self,
        host: str,
        username: str,
        password: str,
        remote_dir: str = "",
        port: int = 22,
        timeout: float = 30,
    ):
        self.host = host
        self.username = username
        self.password = password
        self.remote_dir = remote_dir
        self.port = port
        self.timeout = timeout

    def path_for(self, participant_id: str) -> str:
        return posixpath.join(self.remote_dir, f"{participant_id}.json")

    def _write(self, participant_id: str, content: bytes) -> None:
        client = paramiko.SSHClient()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        try:
            client.connect(
                self.host,
                port=self.port,
                username=self.username,
                password=self.password,
                timeout=self.timeout,
                allow_agent=False,
                look_for_keys=False,
            )
            sftp = client.open_sftp()
            try:
                sftp.putfo(io.BytesIO(content), self.path_for(participant_id))
            finally:
                sftp.close()
        finally:
            client.close()

    async def write(self, participant_id: str, content: bytes) -> None:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._write, participant_id, content)


def sink_from_settings(settings: Settings) -> SnapshotSink:
    if settings.save_host:
        logger.info(f"Snapshots go to sftp://{settings.save_host}:{settings.save_port}/{settings.save_path}")
        return SftpSnapshotSink(
            settings.save_host,
            settings.save_user,
            settings.save_pass,
            remote_dir=settings.save_path,
            port=settings.save_port,
        )
    logger.info(f"SAVE_HOST not set - snapshots go to {settings.local_save_dir}")
    return LocalSnapshotSink(settings.local_save_dir)


class MetadataGateway:
    """Best-effort snapshot writer. Failures are logged, never raised.

    Writes for one participant go to the sink one at a time, in the order
    their snapshots were taken, so the file left behind is always the latest.
    """

    def __init__(self, sink: SnapshotSink, clock: Optional[Clock] = None):
        self.sink = sink
        self.clock = clock or now_ms
        self._locks: Dict[str, asyncio.Lock] = {}

    def snapshot(self, record: ParticipantRecord) -> bytes:
        return json.dumps(build_snapshot(record, self.clock())).encode()

    async def save(self, participant_id: str, content: bytes) -> Delivery:
        lock = self._locks.setdefault(participant_id, asyncio.Lock())
        try:
            async with lock:
                await self.sink.write(participant_id, content)
        except Exception as e:
            logger.error(f"[{participant_id[:8]}] Error saving timestamps: {e}")
            return Delivery(DeliveryKind.PERSIST, participant_id, ok=False, error=str(e))
        logger.info(f"[{participant_id[:8]}] Snapshot saved ({len(content)} bytes)")
        return Delivery(DeliveryKind.PERSIST, participant_id, ok=True)
