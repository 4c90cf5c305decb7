import asyncio
import logging

from app.core.connection_status import ConnectionStatus
from app.core.optimistic import MutationResult, Outcome
from app.errors import ConnectHubError, NotFoundError
from app.schemas.community_schema import CommunityDetail, MemberView
from app.schemas.post_schema import PostView
from app.services import community_service, connection_service, post_service
from app.views.base import View, dump
from app.views.communities_view import toggle_membership

logger = logging.getLogger(__name__)

CONNECTING = "connecting"


class CommunityDetailView(View):
    """One community: header, posts tab, lazily loaded members tab."""

    name = "community"

    def __init__(self, gateway, user_id, community_id: str, toasts=None):
        super().__init__(gateway, user_id, toasts)
        self.community_id = community_id
        self.detail: CommunityDetail | None = None
        self.posts: list[PostView] = []
        self.members: list[MemberView] | None = None
        self.tab = "posts"
        self.not_found = False

    async def load(self) -> None:
        self.loading = True
        try:
            # Either may finish first; nothing depends on the order
            self.detail, self.posts = await asyncio.gather(
                community_service.get_detail(self.gateway, self.user_id, self.community_id),
                post_service.community_posts(self.gateway, self.user_id, self.community_id),
            )
            self.error = None
        except NotFoundError:
            self.not_found = True
        except ConnectHubError as exc:
            logger.warning("community load failed for %s: %s", self.community_id, exc.message)
            self.error = "Could not load community"
            self.toasts.error(self.error)
        finally:
            self.loading = False
        self.changed()

    async def select_tab(self, tab: str) -> None:
        if tab not in ("posts", "members"):
            return
        self.tab = tab
        self.changed()

        if tab != "members" or self.members is not None:
            return

        ticket = self.guard.issue(tab)
        result = await self.fetch(
            lambda: community_service.list_members(self.gateway, self.user_id, self.community_id),
            "Could not load members",
        )
        if result is None or not ticket.current:
            return
        self.members = result
        self.changed()

    # --------------------------------------------------
    # Membership
    # --------------------------------------------------
    async def join(self) -> MutationResult:
        if self.detail is None:
            return MutationResult(Outcome.SKIPPED)
        return await toggle_membership(self, self.detail, join=True)

    async def leave(self) -> MutationResult:
        if self.detail is None:
            return MutationResult(Outcome.SKIPPED)
        return await toggle_membership(self, self.detail, join=False)

    # --------------------------------------------------
    # Posts
    # --------------------------------------------------
    async def create_post(self, content: str) -> PostView | None:
        text = (content or "").strip()
        if not text:
            self.toasts.error("Post cannot be empty")
            return None

        try:
            view = await post_service.create_post(self.gateway, self.user_id, text, self.community_id)
        except ConnectHubError as exc:
            logger.warning("post create failed in %s: %s", self.community_id, exc.message)
            self.toasts.error("Could not publish your post")
            return None

        self.posts = [view] + self.posts
        self.changed()
        return view

    def _post(self, post_id: str) -> PostView | None:
        return next((p for p in self.posts if p.post.id == post_id), None)

    async def toggle_like(self, post_id: str) -> MutationResult:
        item = self._post(post_id)
        if item is None:
            return MutationResult(Outcome.SKIPPED)

        liking = not item.is_liked

        def apply():
            item.is_liked = liking
            item.like_count = max(0, item.like_count + (1 if liking else -1))
            self.changed()

        def restore(saved):
            item.is_liked, item.like_count = saved
            self.changed()

        async def mutate():
            if liking:
                return await post_service.like(self.gateway, self.user_id, post_id)
            return await post_service.unlike(self.gateway, self.user_id, post_id)

        return await self.optimistic.run(
            ("like", post_id),
            snapshot=lambda: (item.is_liked, item.like_count),
            apply=apply,
            mutate=mutate,
            restore=restore,
            error_message="Could not update like",
        )

    # --------------------------------------------------
    # Members
    # --------------------------------------------------
    async def connect_member(self, member_id: str) -> MutationResult:
        member = next((m for m in self.members or [] if m.profile.id == member_id), None)
        if member is None or member.is_self or member.connection_status != ConnectionStatus.NONE.value:
            return MutationResult(Outcome.SKIPPED)

        def apply():
            member.connection_status = CONNECTING
            self.changed()

        def restore(previous):
            member.connection_status = previous
            self.changed()

        def reconcile(_):
            member.connection_status = ConnectionStatus.PENDING_SENT.value
            self.changed()

        return await self.optimistic.run(
            ("connect", member_id),
            snapshot=lambda: member.connection_status,
            apply=apply,
            mutate=lambda: connection_service.send_request(self.gateway, self.user_id, member_id),
            restore=restore,
            reconcile=reconcile,
            error_message="Could not send the connection request",
        )

    def state(self) -> dict:
        return {
            "community_id": self.community_id,
            "not_found": self.not_found,
            "detail": self.detail.model_dump(mode="json") if self.detail else None,
            "tab": self.tab,
            "posts": dump(self.posts),
            "members": dump(self.members) if self.members is not None else None,
            "loading": self.loading,
            "error": self.error,
        }
