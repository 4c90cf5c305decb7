from app.core import recommendations
from app.core.connection_status import ConnectionStatus
from app.core.optimistic import MutationResult, Outcome
from app.schemas.recommendation_schema import RecommendationCandidate
from app.services import connection_service
from app.views.base import View, dump


class DiscoverView(View):
    """Home / discover: scored candidates, Recommended and All tabs."""

    name = "discover"

    def __init__(self, gateway, user_id, toasts=None):
        super().__init__(gateway, user_id, toasts)
        self.candidates: list[RecommendationCandidate] = []
        self.tab = "recommended"
        self.query = ""
        self.interests: list[str] = []

    async def load(self) -> None:
        self.loading = True
        try:
            result = await recommendations.build_recommendations(self.gateway, self.user_id)
        finally:
            self.loading = False

        self.candidates = result.all
        self.error = result.error
        if result.error:
            self.toasts.error(result.error)
        self.changed()

    # --------------------------------------------------
    # Filters
    # --------------------------------------------------
    def set_filters(self, *, tab=None, query=None, interests=None) -> None:
        if tab in ("recommended", "all"):
            self.tab = tab
        if query is not None:
            self.query = query
        if interests is not None:
            self.interests = list(interests)
        self.changed()

    def toggle_interest(self, interest: str) -> None:
        if interest in self.interests:
            self.interests = [i for i in self.interests if i != interest]
        else:
            self.interests = self.interests + [interest]
        self.changed()

    @property
    def recommended(self) -> list[RecommendationCandidate]:
        eligible = [c for c in self.candidates if recommendations.is_recommendable(c)]
        return recommendations.filter_candidates(eligible, self.query, self.interests)

    @property
    def all(self) -> list[RecommendationCandidate]:
        return recommendations.filter_candidates(self.candidates, self.query, self.interests)

    def _candidate(self, user_id: str) -> RecommendationCandidate | None:
        return next((c for c in self.candidates if c.id == user_id), None)

    # --------------------------------------------------
    # Actions
    # --------------------------------------------------
    async def connect(self, target_id: str) -> MutationResult:
        candidate = self._candidate(target_id)
        if candidate is None or candidate.connection_status != ConnectionStatus.NONE.value:
            return MutationResult(Outcome.SKIPPED)

        def apply():
            candidate.connection_status = ConnectionStatus.PENDING_SENT.value
            self.changed()

        def restore(previous):
            candidate.connection_status = previous
            self.changed()

        return await self.optimistic.run(
            ("connect", target_id),
            snapshot=lambda: candidate.connection_status,
            apply=apply,
            mutate=lambda: connection_service.send_request(self.gateway, self.user_id, target_id),
            restore=restore,
            error_message="Could not send the connection request",
        )

    def state(self) -> dict:
        return {
            "tab": self.tab,
            "query": self.query,
            "interests": self.interests,
            "recommended": dump(self.recommended),
            "all": dump(self.all),
            "available_interests": recommendations.available_interests(self.candidates),
            "pending": [key[1] for key in self.optimistic.pending],
            "loading": self.loading,
            "error": self.error,
        }
