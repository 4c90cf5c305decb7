import pytest

from app.core.realtime_sync import RealtimeSyncController
from app.gateway.base import ChangeEvent, ChangeType, Channel, ChannelStatus
from app.views.connections_view import ConnectionsView
from app.views.messages_view import MessagesView
from tests.helpers import connect, create_user


class RecordingMessages:
    def __init__(self, active_partner_id=None):
        self.active_partner_id = active_partner_id
        self.merged = []
        self.removed = []
        self.read = []
        self.refreshes = 0

    def merge_message(self, row):
        self.merged.append(row["id"])

    def remove_message(self, message_id):
        self.removed.append(message_id)

    async def mark_read(self, ids):
        self.read.extend(ids)

    async def refresh_conversations(self):
        self.refreshes += 1

    def has_conversation(self, partner_id):
        return True


class RecordingConnections:
    def __init__(self):
        self.refreshes = 0

    async def refresh(self):
        self.refreshes += 1


class ManualChannel(Channel):
    """Channel whose status is driven by the test."""

    def __init__(self, name):
        super().__init__(name)
        self.bindings = []
        self.on_status = None
        self.closed = False

    def on(self, event, table, callback, filter=None):
        self.bindings.append((event, table, callback, filter))
        return self

    async def subscribe(self, on_status=None):
        self.on_status = on_status
        return self

    async def close(self):
        self.closed = True

    def emit(self, event):
        for _, table, callback, flt in self.bindings:
            if table == event.table and (flt is None or flt.matches(event.row)):
                callback(event)


class ManualGateway:
    def __init__(self):
        self.channels = []

    def channel(self, name):
        channel = ManualChannel(name)
        self.channels.append(channel)
        return channel


def message_event(id, sender, receiver, type=ChangeType.INSERT, read_at=None):
    row = {"id": id, "sender_id": sender, "receiver_id": receiver, "content": "hi", "read_at": read_at}
    if type == ChangeType.DELETE:
        return ChangeEvent("messages", type, old_record=row)
    return ChangeEvent("messages", type, record=row)


# --------------------------------------------------
# Channel lifecycle
# --------------------------------------------------
@pytest.mark.asyncio
async def test_events_before_subscribed_are_dropped():
    gateway = ManualGateway()
    messages = RecordingMessages(active_partner_id="bob")
    sync = RealtimeSyncController(gateway, messages, RecordingConnections(), subscribe_timeout=0.01)

    await sync.start("me")
    channel = gateway.channels[0]
    assert not sync.subscribed

    channel.emit(message_event("early", "bob", "me"))
    await sync.settle()
    assert messages.merged == []

    channel.on_status(ChannelStatus.SUBSCRIBED)
    channel.emit(message_event("late", "bob", "me"))
    await sync.settle()

    assert sync.subscribed
    assert messages.merged == ["late"]
    await sync.stop()


@pytest.mark.asyncio
async def test_listeners_cover_both_sides_of_both_tables(gateway):
    sync = RealtimeSyncController(gateway, RecordingMessages(), RecordingConnections())
    await sync.start("me")

    (channel,) = gateway.hub.channels
    registered = {(table, flt.column) for _, table, _, flt in channel._bindings}
    assert registered == {
        ("messages", "sender_id"),
        ("messages", "receiver_id"),
        ("connections", "user1_id"),
        ("connections", "user2_id"),
    }
    assert sync.status == ChannelStatus.SUBSCRIBED
    await sync.stop()


@pytest.mark.asyncio
async def test_stop_is_idempotent_and_silences_callbacks(gateway):
    messages = RecordingMessages(active_partner_id="bob")
    sync = RealtimeSyncController(gateway, messages, RecordingConnections())
    await sync.start("me")

    await sync.stop()
    await sync.stop()

    assert not sync.running
    assert gateway.hub.channels == []
    gateway.hub.publish(message_event("after", "bob", "me"))
    await sync.settle()
    assert messages.merged == []


@pytest.mark.asyncio
async def test_switch_user_reopens_for_the_new_user(gateway):
    sync = RealtimeSyncController(gateway, RecordingMessages(), RecordingConnections())
    await sync.start("me")
    await sync.switch_user("other")

    (channel,) = gateway.hub.channels
    assert sync.user_id == "other"
    assert all(flt.value == "other" for _, _, _, flt in channel._bindings)

    await sync.switch_user(None)
    assert sync.user_id is None and not sync.running


@pytest.mark.asyncio
async def test_reconnect_reregisters_and_refetches(gateway):
    messages = RecordingMessages(active_partner_id="bob")
    connections = RecordingConnections()
    sync = RealtimeSyncController(gateway, messages, connections)
    await sync.start("me")
    (first,) = gateway.hub.channels

    gateway.hub.interrupt()
    await sync.settle()
    assert not sync.subscribed
    gateway.hub.publish(message_event("lost", "bob", "me"))

    gateway.hub.resume()
    await sync.settle()

    (second,) = gateway.hub.channels
    assert second is not first
    assert sync.subscribed
    assert messages.refreshes == 1
    assert connections.refreshes == 1
    assert messages.merged == []

    gateway.hub.publish(message_event("fresh", "bob", "me"))
    await sync.settle()
    assert messages.merged == ["fresh"]
    await sync.stop()


# --------------------------------------------------
# Event routing
# --------------------------------------------------
@pytest.mark.asyncio
async def test_routing_by_table_and_thread(gateway):
    messages = RecordingMessages(active_partner_id="bob")
    connections = RecordingConnections()
    sync = RealtimeSyncController(gateway, messages, connections)
    await sync.start("me")

    hub = gateway.hub
    hub.publish(message_event("m1", "bob", "me"))
    hub.publish(message_event("m2", "me", "bob"))
    hub.publish(message_event("m3", "carol", "me"))
    hub.publish(message_event("m1", "bob", "me", type=ChangeType.DELETE))
    hub.publish(ChangeEvent("connections", ChangeType.INSERT, record={
        "id": "c1", "user1_id": "dave", "user2_id": "me", "status": "pending",
    }))
    hub.publish(message_event("x", "carol", "dave"))
    await sync.settle()

    assert messages.merged == ["m1", "m2"]
    assert messages.read == ["m1"]
    assert messages.removed == ["m1"]
    assert messages.refreshes == 1
    assert connections.refreshes == 1
    await sync.stop()


@pytest.mark.asyncio
async def test_handler_failure_does_not_stop_the_consumer(gateway, caplog):
    class Exploding(RecordingMessages):
        def merge_message(self, row):
            if row["id"] == "bad":
                raise RuntimeError("render bug")
            super().merge_message(row)

    messages = Exploding(active_partner_id="bob")
    sync = RealtimeSyncController(gateway, messages, RecordingConnections())
    await sync.start("me")

    gateway.hub.publish(message_event("bad", "bob", "me"))
    gateway.hub.publish(message_event("good", "bob", "me"))
    await sync.settle()

    assert messages.merged == ["good"]
    assert "Realtime handler failed" in caplog.text
    await sync.stop()


# --------------------------------------------------
# Against the real views
# --------------------------------------------------
@pytest.mark.asyncio
async def test_duplicate_insert_delivery_keeps_one_entry(gateway):
    me = await create_user(gateway, "me")
    bob = await create_user(gateway, "bob")
    messages = MessagesView(gateway, me)
    sync = RealtimeSyncController(gateway, messages, ConnectionsView(gateway, me))
    await sync.start(me)
    await messages.open(bob)

    rows = await gateway.insert("messages", {"sender_id": bob, "receiver_id": me, "content": "hey"})
    gateway.hub.publish(ChangeEvent("messages", ChangeType.INSERT, record=rows[0]))
    await sync.settle()

    assert [m.id for m in messages.thread] == [rows[0]["id"]]
    assert messages.thread[0].read_at is not None
    await sync.stop()


@pytest.mark.asyncio
async def test_connection_change_refreshes_connections_view(gateway):
    me = await create_user(gateway, "me")
    bob = await create_user(gateway, "bob")
    connections = ConnectionsView(gateway, me)
    sync = RealtimeSyncController(gateway, MessagesView(gateway, me), connections)
    await sync.start(me)

    await connect(gateway, bob, me)
    await sync.settle()

    assert [e.profile.id for e in connections.incoming] == [bob]
    await sync.stop()


@pytest.mark.asyncio
async def test_first_message_of_new_conversation_adds_summary(gateway):
    me = await create_user(gateway, "me")
    bob = await create_user(gateway, "bob")
    messages = MessagesView(gateway, me)
    sync = RealtimeSyncController(gateway, messages, ConnectionsView(gateway, me))
    await sync.start(me)
    await messages.refresh_conversations()
    await messages.open(bob)
    assert messages.conversations == []

    await gateway.insert("messages", {"sender_id": bob, "receiver_id": me, "content": "hello"})
    await sync.settle()

    assert [c.partner_id for c in messages.conversations] == [bob]
    assert messages.conversations[0].last_message == "hello"
    await sync.stop()
