import enum
from datetime import datetime, timezone

import pytest
from postgrest.exceptions import APIError

from app.gateway.base import ChangeType, ChannelStatus, GatewayError
from app.gateway.filters import between, eq, in_, involving
from app.gateway.supabase_gateway import SupabaseGateway, _change_event


class Response:
    def __init__(self, data=None, count=None):
        self.data = data
        self.count = count


class FakeQuery:
    """Records every builder call; ``execute`` returns the canned response."""

    def __init__(self, table, response, error=None):
        self.table = table
        self.calls = []
        self.response = response
        self.error = error

    def __getattr__(self, name):
        def record(*args, **kwargs):
            self.calls.append((name, args, kwargs) if kwargs else (name, args))
            return self
        return record

    async def execute(self):
        if self.error is not None:
            raise self.error
        return self.response


class RealtimeState(enum.Enum):
    SUBSCRIBED = "SUBSCRIBED"
    CHANNEL_ERROR = "CHANNEL_ERROR"


class FakeRealtimeChannel:
    def __init__(self, name):
        self.name = name
        self.listeners = []
        self.states = []

    def on_postgres_changes(self, event, callback, table, schema, filter=None):
        self.listeners.append({"event": event, "table": table, "filter": filter, "callback": callback})
        return self

    async def subscribe(self, callback):
        for state in self.states:
            callback(state)
        return self


class FakeClient:
    def __init__(self, response=None, error=None):
        self.response = response or Response(data=[])
        self.error = error
        self.queries = []
        self.channels = []
        self.removed = []

    def table(self, name):
        query = FakeQuery(name, self.response, self.error)
        self.queries.append(query)
        return query

    def rpc(self, name, params):
        query = FakeQuery(name, self.response, self.error)
        query.calls.append(("rpc", (name, params)))
        self.queries.append(query)
        return query

    def channel(self, name):
        channel = FakeRealtimeChannel(name)
        self.channels.append(channel)
        return channel

    async def remove_channel(self, channel):
        self.removed.append(channel.name)


# --------------------------------------------------
# Queries
# --------------------------------------------------
@pytest.mark.asyncio
async def test_select_applies_filters_and_ordering():
    client = FakeClient(Response(data=[{"id": "m1"}]))
    gateway = SupabaseGateway(client)

    rows = await gateway.select(
        "messages",
        columns=["id", "content"],
        where=[between("a", "b", "sender_id", "receiver_id"), in_("id", ["m1", "m2"])],
        order_by="created_at",
        descending=True,
        limit=20,
    )

    assert rows == [{"id": "m1"}]
    assert client.queries[0].calls == [
        ("select", ("id,content",)),
        ("or_", ("and(sender_id.eq.a,receiver_id.eq.b),and(sender_id.eq.b,receiver_id.eq.a)",)),
        ("in_", ("id", ["m1", "m2"])),
        ("order", ("created_at",), {"desc": True}),
        ("limit", (20,)),
    ]


@pytest.mark.asyncio
async def test_count_uses_exact_count():
    client = FakeClient(Response(data=[], count=7))
    gateway = SupabaseGateway(client)

    assert await gateway.count("connections", where=[involving("me")]) == 7
    assert client.queries[0].calls == [
        ("select", ("id",), {"count": "exact"}),
        ("or_", ("user1_id.eq.me,user2_id.eq.me",)),
    ]


@pytest.mark.asyncio
async def test_api_errors_become_gateway_errors():
    error = APIError({"message": "duplicate key value", "code": "23505", "hint": None, "details": None})
    gateway = SupabaseGateway(FakeClient(error=error))

    with pytest.raises(GatewayError) as exc:
        await gateway.insert("connections", {"user1_id": "a", "user2_id": "b"})

    assert exc.value.code == "23505"
    assert exc.value.message == "duplicate key value"


@pytest.mark.asyncio
async def test_update_serialises_datetimes():
    client = FakeClient(Response(data=[{"id": "m1"}]))
    gateway = SupabaseGateway(client)
    stamp = datetime(2024, 5, 1, tzinfo=timezone.utc)

    await gateway.update("messages", {"read_at": stamp}, where=[eq("id", "m1")])

    assert client.queries[0].calls == [
        ("update", ({"read_at": "2024-05-01T00:00:00+00:00"},)),
        ("eq", ("id", "m1")),
    ]


# --------------------------------------------------
# Realtime payloads
# --------------------------------------------------
def test_change_event_from_wrapped_payload():
    event = _change_event("messages", {
        "data": {
            "type": "INSERT",
            "table": "messages",
            "record": {"id": "m1", "sender_id": "bob"},
            "old_record": None,
        },
        "ids": [1],
    })

    assert event.type == ChangeType.INSERT
    assert event.table == "messages"
    assert event.row == {"id": "m1", "sender_id": "bob"}
    assert event.old_record == {}


def test_change_event_from_legacy_payload():
    event = _change_event("messages", {
        "eventType": "DELETE",
        "new": {},
        "old": {"id": "m1"},
    })

    assert event.type == ChangeType.DELETE
    assert event.table == "messages"
    assert event.record == {}
    assert event.row == {"id": "m1"}


@pytest.mark.asyncio
async def test_channel_registers_filters_and_maps_status():
    client = FakeClient()
    gateway = SupabaseGateway(client)
    received, statuses = [], []

    channel = gateway.channel("live:me:1")
    channel.on("*", "messages", received.append, eq("receiver_id", "me"))
    raw = client.channels[0]
    raw.states = [RealtimeState.SUBSCRIBED, RealtimeState.CHANNEL_ERROR]

    await channel.subscribe(lambda status, error: statuses.append(status))

    assert [(l["event"], l["table"], l["filter"]) for l in raw.listeners] == [
        ("*", "messages", "receiver_id=eq.me"),
    ]
    assert statuses == [ChannelStatus.SUBSCRIBED, ChannelStatus.CHANNEL_ERROR]

    raw.listeners[0]["callback"]({
        "data": {"type": "UPDATE", "table": "messages", "record": {"id": "m1"}, "old_record": {"id": "m1"}},
    })
    assert [(e.type, e.row["id"]) for e in received] == [(ChangeType.UPDATE, "m1")]


@pytest.mark.asyncio
async def test_channel_close_removes_once():
    client = FakeClient()
    channel = SupabaseGateway(client).channel("live:me:1")

    await channel.close()
    await channel.close()

    assert client.removed == ["live:me:1"]
