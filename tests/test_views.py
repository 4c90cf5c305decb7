import asyncio

import pytest

from app.core.connection_status import ConnectionStatus
from app.core.optimistic import Outcome
from app.gateway.filters import eq
from app.services import connection_service
from app.views.community_detail_view import CommunityDetailView
from app.views.connections_view import ConnectionsView
from app.views.discover_view import DiscoverView
from app.views.messages_view import MessagesView
from app.views.profile_view import ProfileView
from tests.helpers import FlakyGateway, connect, create_community, create_user


class SlowInserts(FlakyGateway):
    """Delays message inserts by content so responses come back out of order."""

    def __init__(self, inner, delays):
        super().__init__(inner)
        self.delays = delays

    async def insert(self, table, rows):
        if table == "messages":
            await asyncio.sleep(self.delays.get(rows["content"], 0))
        return await super().insert(table, rows)


class GatedThreads(FlakyGateway):
    """Holds the first message-history read until ``gate`` is set."""

    def __init__(self, inner):
        super().__init__(inner)
        self.gate = asyncio.Event()
        self._held = False

    async def select(self, table, **kwargs):
        if table == "messages" and not self._held:
            self._held = True
            await self.gate.wait()
        return await super().select(table, **kwargs)


class GatedSummaries(FlakyGateway):
    """Holds conversation-summary reads until ``gate`` is set."""

    def __init__(self, inner):
        super().__init__(inner)
        self.gate = asyncio.Event()

    async def rpc(self, name, params):
        if name == "get_user_conversations":
            await self.gate.wait()
        return await super().rpc(name, params)


# --------------------------------------------------
# Connection scenarios
# --------------------------------------------------
@pytest.mark.asyncio
async def test_send_request_from_profile(gateway):
    u = await create_user(gateway, "ursula")
    v = await create_user(gateway, "victor")

    view = ProfileView(gateway, u, v)
    await view.load()
    assert view.status == "none"

    result = await view.connect()

    assert result.ok
    assert view.status == "pending_sent"
    assert view.connection_id is not None
    assert (await connection_service.get_status(gateway, v, u)).status == "pending_received"


@pytest.mark.asyncio
async def test_send_request_failure_reverts_to_none(flaky):
    u = await create_user(flaky.inner, "ursula")
    v = await create_user(flaky.inner, "victor")
    view = ProfileView(flaky, u, v)
    await view.load()

    flaky.fail("insert", "connections")
    result = await view.connect()

    assert result.outcome == Outcome.FAILED
    assert view.status == "none"
    assert view.connection_id is None
    assert view.toasts.last.message == "Could not send the connection request"


@pytest.mark.asyncio
async def test_accept_moves_request_to_accepted(gateway):
    u = await create_user(gateway, "ursula")
    v = await create_user(gateway, "victor")
    row = await connect(gateway, u, v)

    v_view = ConnectionsView(gateway, v)
    await v_view.refresh()
    assert [e.connection.id for e in v_view.incoming] == [row["id"]]

    result = await v_view.accept(row["id"])

    assert result.ok
    assert v_view.incoming == []
    assert [e.profile.id for e in v_view.accepted] == [u]

    u_view = ConnectionsView(gateway, u)
    await u_view.refresh()
    assert [e.profile.id for e in u_view.accepted] == [v]
    assert u_view.outgoing == []
    assert (await connection_service.get_status(gateway, u, v)).status == "accepted"
    assert (await connection_service.get_status(gateway, v, u)).status == "accepted"


@pytest.mark.asyncio
async def test_sender_cannot_accept_own_request(gateway):
    u = await create_user(gateway, "ursula")
    v = await create_user(gateway, "victor")
    row = await connect(gateway, u, v)

    view = ConnectionsView(gateway, u)
    await view.refresh()
    result = await view.accept(row["id"])

    assert result.outcome == Outcome.SKIPPED
    assert view.toasts.last.kind == "error"
    stored = await gateway.select_one("connections", where=[eq("id", row["id"])])
    assert stored["status"] == "pending"


@pytest.mark.asyncio
async def test_failed_reject_restores_incoming(flaky):
    u = await create_user(flaky.inner, "ursula")
    v = await create_user(flaky.inner, "victor")
    row = await connect(flaky.inner, u, v)
    view = ConnectionsView(flaky, v)
    await view.refresh()

    flaky.fail("delete", "connections")
    result = await view.reject(row["id"])

    assert result.outcome == Outcome.FAILED
    assert [e.connection.id for e in view.incoming] == [row["id"]]


@pytest.mark.asyncio
async def test_connections_search_filters_state(gateway):
    me = await create_user(gateway, "me")
    await connect(gateway, me, await create_user(gateway, "alice"), status="accepted")
    await connect(gateway, me, await create_user(gateway, "bob"), status="accepted")

    view = ConnectionsView(gateway, me)
    await view.refresh()
    view.search("ALI")

    assert [e["profile"]["username"] for e in view.state()["accepted"]] == ["alice"]


@pytest.mark.asyncio
async def test_profile_accept_and_disconnect_adjust_count(gateway):
    u = await create_user(gateway, "ursula")
    v = await create_user(gateway, "victor")
    await connect(gateway, u, v)

    view = ProfileView(gateway, v, u)
    await view.load()
    assert view.status == "pending_received"

    await view.accept()
    assert view.status == "accepted"
    assert view.detail.connection_count == 1

    await view.disconnect()
    assert view.status == "none"
    assert view.detail.connection_count == 0
    assert await gateway.count("connections") == 0


@pytest.mark.asyncio
async def test_profile_not_found(gateway):
    me = await create_user(gateway, "me")
    view = ProfileView(gateway, me, "missing")
    await view.load()
    assert view.not_found


@pytest.mark.asyncio
async def test_discover_connect_is_optimistic(gateway):
    me = await create_user(gateway, "me", hobbies=["Hiking", "Film", "Art"])
    other = await create_user(gateway, "other", hobbies=["Hiking", "Film", "Art"])

    view = DiscoverView(gateway, me)
    await view.load()
    assert [c["id"] for c in view.state()["recommended"]] == [other]

    await view.connect(other)

    assert view.state()["recommended"] == []
    assert view.all[0].connection_status == ConnectionStatus.PENDING_SENT.value


# --------------------------------------------------
# Messages
# --------------------------------------------------
@pytest.mark.asyncio
async def test_quick_sends_keep_send_order(gateway):
    me = await create_user(gateway, "me")
    bob = await create_user(gateway, "bob")
    slow = SlowInserts(gateway, {"first": 0.05, "second": 0})

    view = MessagesView(slow, me)
    await view.open(bob)

    first = asyncio.create_task(view.send("first"))
    await asyncio.sleep(0)
    second = asyncio.create_task(view.send("second"))
    await asyncio.sleep(0)

    assert [m.content for m in view.thread] == ["first", "second"]
    assert (await first).ok
    assert (await second).ok
    assert [m.content for m in view.thread] == ["first", "second"]
    assert len({m.id for m in view.thread}) == 2


@pytest.mark.asyncio
async def test_failed_send_removes_the_message(flaky):
    me = await create_user(flaky.inner, "me")
    bob = await create_user(flaky.inner, "bob")
    view = MessagesView(flaky, me)
    await view.open(bob)

    flaky.fail("insert", "messages")
    result = await view.send("hello")

    assert result.outcome == Outcome.FAILED
    assert view.thread == []
    assert view.toasts.last.message == "Message failed to send"


@pytest.mark.asyncio
async def test_open_marks_incoming_messages_read(gateway):
    me = await create_user(gateway, "me")
    bob = await create_user(gateway, "bob")
    await gateway.insert("messages", [
        {"sender_id": bob, "receiver_id": me, "content": "one"},
        {"sender_id": bob, "receiver_id": me, "content": "two"},
    ])

    view = MessagesView(gateway, me)
    await view.refresh_conversations()
    assert view.unread_total == 2

    await view.open(bob)

    assert view.unread_total == 0
    assert all(m.read_at is not None for m in view.thread)
    stored = await gateway.select("messages")
    assert all(row["read_at"] is not None for row in stored)


@pytest.mark.asyncio
async def test_failed_mark_read_restores_unread(flaky):
    me = await create_user(flaky.inner, "me")
    bob = await create_user(flaky.inner, "bob")
    await flaky.inner.insert("messages", {"sender_id": bob, "receiver_id": me, "content": "one"})

    view = MessagesView(flaky, me)
    await view.refresh_conversations()
    flaky.fail("update", "messages")
    await view.open(bob)

    assert view.unread_total == 1
    assert view.thread[0].read_at is None


@pytest.mark.asyncio
async def test_stale_thread_response_is_discarded(gateway):
    me = await create_user(gateway, "me")
    bob = await create_user(gateway, "bob")
    carol = await create_user(gateway, "carol")
    await gateway.insert("messages", {"sender_id": bob, "receiver_id": me, "content": "from bob"})

    slow = GatedThreads(gateway)
    view = MessagesView(slow, me)

    stale = asyncio.create_task(view.open(bob))
    await asyncio.sleep(0)
    await view.open(carol)
    slow.gate.set()
    await stale

    assert view.active_partner_id == carol
    assert view.thread == []


@pytest.mark.asyncio
async def test_summary_refresh_does_not_drop_loading_thread(gateway):
    me = await create_user(gateway, "me")
    bob = await create_user(gateway, "bob")
    await gateway.insert("messages", {"sender_id": bob, "receiver_id": me, "content": "from bob"})

    slow = GatedThreads(gateway)
    view = MessagesView(slow, me)

    opening = asyncio.create_task(view.open(bob))
    await asyncio.sleep(0)
    await view.refresh_conversations()
    slow.gate.set()
    await opening

    assert [m.content for m in view.thread] == ["from bob"]
    assert [c.partner_id for c in view.conversations] == [bob]


@pytest.mark.asyncio
async def test_open_and_close_keep_loading_summaries(gateway):
    me = await create_user(gateway, "me")
    bob = await create_user(gateway, "bob")
    await gateway.insert("messages", {"sender_id": bob, "receiver_id": me, "content": "hi"})

    slow = GatedSummaries(gateway)
    view = MessagesView(slow, me)

    refreshing = asyncio.create_task(view.refresh_conversations())
    await asyncio.sleep(0)
    await view.open(bob)
    view.close()
    slow.gate.set()
    await refreshing

    assert [c.partner_id for c in view.conversations] == [bob]


@pytest.mark.asyncio
async def test_conversation_search(gateway):
    me = await create_user(gateway, "me")
    for name in ("alice", "bob"):
        other = await create_user(gateway, name)
        await gateway.insert("messages", {"sender_id": other, "receiver_id": me, "content": "hi"})

    view = MessagesView(gateway, me)
    await view.refresh_conversations()
    view.search("bo")

    assert [c["partner_username"] for c in view.state()["conversations"]] == ["bob"]


# --------------------------------------------------
# Community detail
# --------------------------------------------------
@pytest.mark.asyncio
async def test_community_detail_posts_likes_and_members(gateway):
    owner = await create_user(gateway, "owner")
    me = await create_user(gateway, "me")
    community = await create_community(gateway, owner)

    view = CommunityDetailView(gateway, me, community["id"])
    await view.load()
    assert [a.id for a in view.detail.admins] == [owner]
    assert view.members is None

    await view.join()
    assert view.detail.is_member
    assert view.detail.community.member_count == 2

    post = await view.create_post("  first light  ")
    assert post.post.content == "first light"
    assert view.posts[0].post.id == post.post.id

    await view.toggle_like(post.post.id)
    assert (view.posts[0].is_liked, view.posts[0].like_count) == (True, 1)
    await view.toggle_like(post.post.id)
    assert (view.posts[0].is_liked, view.posts[0].like_count) == (False, 0)

    await view.select_tab("members")
    by_id = {m.profile.id: m for m in view.members}
    assert list(by_id) == [owner, me]
    assert by_id[me].display_status == "accepted"
    assert by_id[me].connection_status == "none"

    result = await view.connect_member(owner)
    assert result.ok
    assert by_id[owner].connection_status == "pending_sent"


@pytest.mark.asyncio
async def test_member_connect_failure_returns_to_none(flaky):
    owner = await create_user(flaky.inner, "owner")
    me = await create_user(flaky.inner, "me")
    community = await create_community(flaky.inner, owner)

    view = CommunityDetailView(flaky, me, community["id"])
    await view.load()
    await view.select_tab("members")
    seen = []
    member = view.members[0]
    view.add_listener(lambda: seen.append(member.connection_status))

    flaky.fail("insert", "connections")
    await view.connect_member(owner)

    assert seen == ["connecting", "none"]


@pytest.mark.asyncio
async def test_missing_community(gateway):
    me = await create_user(gateway, "me")
    view = CommunityDetailView(gateway, me, "nope")
    await view.load()
    assert view.not_found
