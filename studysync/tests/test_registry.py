import pytest
from conftest import NAMESPACE, FakeConnection
from studysync.dispatch import DeliveryKind
from studysync.identity import participant_id
from studysync.stages import NotOccurred


class TestRegister:
    def test_register_creates_record(self, registry):
        conn = FakeConnection()
        pid = registry.register("Jane Doe", conn)

        assert pid == participant_id("Jane Doe", NAMESPACE)
        record = registry.lookup(pid)
        assert record.id == pid
        assert record.completed is False
        assert isinstance(record.completed_at, NotOccurred)
        assert record.stages == {}
        assert record.connection is conn

    def test_reregister_keeps_record_and_replaces_connection(self, registry):
        first, second = FakeConnection(), FakeConnection()
        pid = registry.register("Jane Doe", first)
        record = registry.lookup(pid)
        record.video("v1")

        assert registry.register("JANE DOE", second) == pid
        assert registry.lookup(pid) is record
        assert record.connection is second
        assert "v1" in record.stages
        assert len(registry) == 1

    def test_connection_not_in_repr(self, registry):
        pid = registry.register("Jane Doe", FakeConnection())
        assert "FakeConnection" not in repr(registry.lookup(pid))


class TestLookup:
    def test_unknown_id(self, registry):
        assert registry.lookup("nope") is None
        assert registry.exists("nope") is False

    def test_lookup_name_only_for_registered_names(self, registry):
        assert registry.lookup_name("Jane Doe") is None
        pid = registry.register("Jane Doe", FakeConnection())
        assert registry.lookup_name("jane doe") == pid
        assert registry.exists(pid)


class TestRelease:
    def test_release_current_connection(self, registry):
        conn = FakeConnection()
        pid = registry.register("Jane Doe", conn)
        assert registry.release(pid, conn) is True
        assert registry.lookup(pid).connection is None
        assert registry.exists(pid)

    def test_stale_connection_cannot_release_newer_one(self, registry):
        old, new = FakeConnection(), FakeConnection()
        pid = registry.register("Jane Doe", old)
        registry.register("Jane Doe", new)

        assert registry.release(pid, old) is False
        assert registry.lookup(pid).connection is new

    def test_release_unknown_participant(self, registry):
        assert registry.release("nope", FakeConnection()) is False


class TestRelay:
    @pytest.mark.asyncio
    async def test_relay_to_live_connection(self, registry):
        conn = FakeConnection()
        pid = registry.register("Jane Doe", conn)

        delivery = await registry.relay(pid, "start_video", "v1")

        assert delivery.ok
        assert delivery.kind == DeliveryKind.RELAY
        assert conn.events == [("start_video", "v1")]

    @pytest.mark.asyncio
    async def test_relay_without_connection_is_dropped(self, registry):
        conn = FakeConnection()
        pid = registry.register("Jane Doe", conn)
        registry.release(pid, conn)

        delivery = await registry.relay(pid, "start_video", "v1")

        assert delivery.ok is False
        assert delivery.error == "no live connection"
        assert conn.events == []

    @pytest.mark.asyncio
    async def test_relay_unknown_participant(self, registry):
        delivery = await registry.relay("nope", "start_video", "v1")
        assert delivery.ok is False
