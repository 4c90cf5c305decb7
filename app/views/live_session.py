"""
One WebSocket client's view state.

The session always holds the messages and connections views (kept live by
the realtime sync controller) and opens the discover, communities,
community-detail and profile views on demand. Each inbound frame names an
action; every action runs as its own task so a slow mutation never blocks
the next click. State and toast frames go out through a single writer.
"""
import asyncio
import logging
from typing import Awaitable, Callable

from app.core.realtime_sync import RealtimeSyncController
from app.core.session_cache import session_cache
from app.core.toasts import Toast, ToastSink
from app.errors import ConnectHubError
from app.gateway.base import Gateway
from app.schemas.community_schema import CommunityCreate
from app.views.communities_view import CommunitiesView
from app.views.community_detail_view import CommunityDetailView
from app.views.connections_view import ConnectionsView
from app.views.discover_view import DiscoverView
from app.views.messages_view import MessagesView
from app.views.profile_view import ProfileView

logger = logging.getLogger(__name__)

Send = Callable[[dict], Awaitable[None]]


class LiveSession:
    def __init__(self, gateway: Gateway, user_id: str, send: Send):
        self.gateway = gateway
        self.user_id = user_id
        self._send = send

        self.toasts = ToastSink(self._on_toast)
        self.messages = MessagesView(gateway, user_id, self.toasts)
        self.connections = ConnectionsView(gateway, user_id, self.toasts)
        self.discover: DiscoverView | None = None
        self.communities: CommunitiesView | None = None
        self.community: CommunityDetailView | None = None
        self.profile: ProfileView | None = None
        self.sync = RealtimeSyncController(gateway, self.messages, self.connections)

        for view in (self.messages, self.connections):
            view.add_listener(self._on_change)

        self._outbox: asyncio.Queue = asyncio.Queue()
        self._writer: asyncio.Task | None = None
        self._tasks: set[asyncio.Task] = set()
        self._dirty = False
        self._closed = False

    # --------------------------------------------------
    # Lifecycle
    # --------------------------------------------------
    async def start(self) -> None:
        self._writer = asyncio.create_task(self._write())
        await session_cache.load(self.gateway, self.user_id)
        await asyncio.gather(
            self.messages.refresh_conversations(),
            self.connections.refresh(),
        )
        await self.sync.start(self.user_id)
        self.push_state()

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True

        await self.sync.stop()
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

        if self._writer is not None:
            self._writer.cancel()
            await asyncio.gather(self._writer, return_exceptions=True)
        logger.info("Live session closed for %s", self.user_id)

    async def settle(self) -> None:
        """Wait for in-flight actions, realtime events and queued frames."""
        for _ in range(3):
            if self._tasks:
                await asyncio.gather(*list(self._tasks), return_exceptions=True)
            await self.sync.settle()
            await self._outbox.join()

    # --------------------------------------------------
    # Outbound frames
    # --------------------------------------------------
    def state(self) -> dict:
        frame = {
            "type": "state",
            "messages": self.messages.state(),
            "connections": self.connections.state(),
            "realtime": self.sync.status.value if self.sync.status else None,
        }
        for name in ("discover", "communities", "community", "profile"):
            view = getattr(self, name)
            if view is not None:
                frame[name] = view.state()
        return frame

    def push_state(self) -> None:
        self._dirty = False
        self._outbox.put_nowait(self.state())

    def _on_change(self) -> None:
        # Coalesce bursts of changes into one frame per loop turn
        if self._dirty or self._closed:
            return
        self._dirty = True
        asyncio.get_running_loop().call_soon(self._flush)

    def _flush(self) -> None:
        if self._dirty and not self._closed:
            self.push_state()

    def _on_toast(self, toast: Toast) -> None:
        if not self._closed:
            self._outbox.put_nowait(toast.to_frame())

    async def _write(self) -> None:
        while True:
            frame = await self._outbox.get()
            try:
                await self._send(frame)
            except Exception:
                logger.exception("Could not deliver %s frame to %s", frame.get("type"), self.user_id)
            finally:
                self._outbox.task_done()

    # --------------------------------------------------
    # Inbound actions
    # --------------------------------------------------
    def dispatch(self, frame: dict) -> asyncio.Task | None:
        action = frame.get("action") if isinstance(frame, dict) else None
        handler = getattr(self, f"do_{action}", None) if action else None
        if handler is None:
            self.toasts.error(f"Unknown action: {action}")
            return None

        task = asyncio.create_task(self._run(action, handler, frame))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, action: str, handler, frame: dict) -> None:
        try:
            await handler(frame)
        except ConnectHubError as exc:
            logger.warning("Action %s failed for %s: %s", action, self.user_id, exc.message)
            self.toasts.error(exc.message or "Something went wrong")
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("Bad %s frame from %s: %s", action, self.user_id, exc)
            self.toasts.error(f"Invalid {action} request")
        self.push_state()

    def _open(self, name: str, view):
        previous = getattr(self, name)
        if previous is not None:
            previous.guard.cancel()
        view.add_listener(self._on_change)
        setattr(self, name, view)
        return view

    # messages
    async def do_open_conversation(self, frame):
        await self.messages.open(frame["partner_id"])

    async def do_close_conversation(self, frame):
        self.messages.close()

    async def do_send_message(self, frame):
        await self.messages.send(frame["content"])

    async def do_mark_read(self, frame):
        await self.messages.mark_thread_read()

    async def do_search_conversations(self, frame):
        self.messages.search(frame.get("query"))

    # connections
    async def do_accept_connection(self, frame):
        await self.connections.accept(frame["connection_id"])

    async def do_reject_connection(self, frame):
        await self.connections.reject(frame["connection_id"])

    async def do_cancel_connection(self, frame):
        await self.connections.cancel(frame["connection_id"])

    async def do_remove_connection(self, frame):
        await self.connections.remove(frame["connection_id"])

    async def do_search_connections(self, frame):
        self.connections.search(frame.get("query"))

    async def do_refresh(self, frame):
        await asyncio.gather(
            self.messages.refresh_conversations(),
            self.connections.refresh(),
        )

    # discover
    async def do_open_discover(self, frame):
        view = self._open("discover", DiscoverView(self.gateway, self.user_id, self.toasts))
        await view.load()

    async def do_discover_filter(self, frame):
        if self.discover is not None:
            self.discover.set_filters(
                tab=frame.get("tab"),
                query=frame.get("query"),
                interests=frame.get("interests"),
            )

    async def do_discover_connect(self, frame):
        if self.discover is not None:
            await self.discover.connect(frame["user_id"])

    # communities
    async def do_open_communities(self, frame):
        view = self._open("communities", CommunitiesView(self.gateway, self.user_id, self.toasts))
        await view.load()

    async def do_communities_filter(self, frame):
        if self.communities is not None:
            self.communities.set_filters(
                tab=frame.get("tab"),
                query=frame.get("query"),
                category=frame.get("category"),
            )

    async def do_create_community(self, frame):
        if self.communities is not None:
            await self.communities.create(CommunityCreate(**frame["community"]))

    async def do_join_community(self, frame):
        community_id = frame["community_id"]
        if self.community is not None and self.community.community_id == community_id:
            await self.community.join()
        elif self.communities is not None:
            await self.communities.join(community_id)

    async def do_leave_community(self, frame):
        community_id = frame["community_id"]
        if self.community is not None and self.community.community_id == community_id:
            await self.community.leave()
        elif self.communities is not None:
            await self.communities.leave(community_id)

    # community detail
    async def do_open_community(self, frame):
        view = self._open(
            "community",
            CommunityDetailView(self.gateway, self.user_id, frame["community_id"], self.toasts),
        )
        await view.load()

    async def do_community_tab(self, frame):
        if self.community is not None:
            await self.community.select_tab(frame["tab"])

    async def do_create_post(self, frame):
        if self.community is not None:
            await self.community.create_post(frame["content"])

    async def do_toggle_like(self, frame):
        if self.community is not None:
            await self.community.toggle_like(frame["post_id"])

    async def do_connect_member(self, frame):
        if self.community is not None:
            await self.community.connect_member(frame["user_id"])

    # profile
    async def do_open_profile(self, frame):
        view = self._open(
            "profile",
            ProfileView(self.gateway, self.user_id, frame["profile_id"], self.toasts),
        )
        await view.load()

    async def do_profile_connect(self, frame):
        if self.profile is not None:
            await self.profile.connect()

    async def do_profile_accept(self, frame):
        if self.profile is not None:
            await self.profile.accept()

    async def do_profile_disconnect(self, frame):
        if self.profile is not None:
            await self.profile.disconnect()
