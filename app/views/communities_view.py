from app.core.optimistic import MutationResult, Outcome
from app.errors import ConnectHubError, InvalidInputError
from app.schemas.community_schema import CommunityCard, CommunityCreate
from app.services import community_service
from app.views.base import View, dump


async def toggle_membership(view: View, holder, join: bool) -> MutationResult:
    """
    Join or leave for a CommunityCard or CommunityDetail: flips ``is_member``
    and moves ``member_count`` by exactly one.
    """
    community = holder.community
    if holder.is_member == join:
        return MutationResult(Outcome.SKIPPED)

    community_id = community.id
    delta = 1 if join else -1

    def snapshot():
        return (holder.is_member, community.member_count)

    def apply():
        holder.is_member = join
        community.member_count = max(0, community.member_count + delta)
        view.changed()

    def restore(saved):
        holder.is_member, community.member_count = saved
        view.changed()

    async def mutate():
        if join:
            return await community_service.join(view.gateway, view.user_id, community_id)
        return await community_service.leave(view.gateway, view.user_id, community_id)

    return await view.optimistic.run(
        ("membership", community_id),
        snapshot=snapshot,
        apply=apply,
        mutate=mutate,
        restore=restore,
        error_message="Could not join the community" if join else "Could not leave the community",
    )


class CommunitiesView(View):
    name = "communities"

    def __init__(self, gateway, user_id, toasts=None):
        super().__init__(gateway, user_id, toasts)
        self.cards: list[CommunityCard] = []
        self.tab = "discover"
        self.query = ""
        self.category = "All"
        self.creating = False

    async def load(self) -> None:
        result = await self.fetch(
            lambda: community_service.list_communities(self.gateway, self.user_id),
            "Could not load communities",
        )
        if result is not None:
            self.cards = result
        self.changed()

    def set_filters(self, *, tab=None, query=None, category=None) -> None:
        if tab in ("my", "discover"):
            self.tab = tab
        if query is not None:
            self.query = query
        if category is not None:
            self.category = category
        self.changed()

    @property
    def visible(self) -> list[CommunityCard]:
        return community_service.filter_cards(
            self.cards, tab=self.tab, query=self.query, category=self.category
        )

    def _card(self, community_id: str) -> CommunityCard | None:
        return next((c for c in self.cards if c.community.id == community_id), None)

    async def join(self, community_id: str) -> MutationResult:
        card = self._card(community_id)
        if card is None:
            return MutationResult(Outcome.SKIPPED)
        return await toggle_membership(self, card, join=True)

    async def leave(self, community_id: str) -> MutationResult:
        card = self._card(community_id)
        if card is None:
            return MutationResult(Outcome.SKIPPED)
        return await toggle_membership(self, card, join=False)

    async def create(self, payload: CommunityCreate) -> CommunityCard | None:
        # Not optimistic: the card needs the server-issued id
        if self.creating:
            return None
        self.creating = True
        try:
            community = await community_service.create_community(self.gateway, self.user_id, payload)
        except ConnectHubError as exc:
            if isinstance(exc, InvalidInputError):
                self.toasts.error(exc.message)
            else:
                self.toasts.error("Could not create the community")
            return None
        finally:
            self.creating = False

        card = CommunityCard(community=community, is_member=True)
        self.cards = [card] + self.cards
        self.tab = "my"
        self.toasts.success(f"Created {community.name}")
        self.changed()
        return card

    def state(self) -> dict:
        return {
            "tab": self.tab,
            "query": self.query,
            "category": self.category,
            "categories": ["All"] + community_service.CATEGORIES,
            "communities": dump(self.visible),
            "my_count": sum(1 for c in self.cards if c.is_member),
            "loading": self.loading,
            "error": self.error,
        }
