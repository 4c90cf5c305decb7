from app.core.optimistic import MutationResult, Outcome
from app.schemas.connection_schema import ConnectionEntry
from app.services import connection_service
from app.views.base import View, dump


def _without(entries: list[ConnectionEntry], connection_id: str) -> list[ConnectionEntry]:
    return [e for e in entries if e.connection.id != connection_id]


def _find(entries: list[ConnectionEntry], connection_id: str) -> ConnectionEntry | None:
    return next((e for e in entries if e.connection.id == connection_id), None)


class ConnectionsView(View):
    """Accepted connections plus incoming and outgoing pending requests."""

    name = "connections"

    def __init__(self, gateway, user_id, toasts=None):
        super().__init__(gateway, user_id, toasts)
        self.accepted: list[ConnectionEntry] = []
        self.incoming: list[ConnectionEntry] = []
        self.outgoing: list[ConnectionEntry] = []
        self.query = ""

    @property
    def pending_count(self) -> int:
        return len(self.incoming)

    def search(self, query: str | None) -> None:
        self.query = query or ""
        self.changed()

    def _matches(self, entry: ConnectionEntry) -> bool:
        if not self.query:
            return True
        needle = self.query.lower()
        p = entry.profile
        return needle in (p.display_name or "").lower() or needle in (p.username or "").lower()

    async def refresh(self) -> None:
        ticket = self.guard.issue()
        result = await self.fetch(
            lambda: connection_service.overview(self.gateway, self.user_id),
            "Could not load connections",
        )
        if result is None or not ticket.current:
            return

        self.accepted = result.accepted
        self.incoming = result.incoming
        self.outgoing = result.outgoing
        self.changed()

    # --------------------------------------------------
    # Actions
    # --------------------------------------------------
    def _snapshot(self):
        return (self.accepted, self.incoming, self.outgoing)

    def _restore(self, saved) -> None:
        self.accepted, self.incoming, self.outgoing = saved
        self.changed()

    async def accept(self, connection_id: str) -> MutationResult:
        entry = _find(self.incoming, connection_id)
        if entry is None or entry.connection.user2_id != self.user_id:
            self.toasts.error("Only the recipient can accept this request")
            return MutationResult(Outcome.SKIPPED)

        def apply():
            accepted = entry.model_copy(update={
                "connection": entry.connection.model_copy(update={"status": "accepted"}),
            })
            self.incoming = _without(self.incoming, connection_id)
            self.accepted = [accepted] + self.accepted
            self.changed()

        return await self.optimistic.run(
            ("connection", connection_id),
            snapshot=self._snapshot,
            apply=apply,
            mutate=lambda: connection_service.accept_request(self.gateway, self.user_id, connection_id),
            restore=self._restore,
            error_message="Could not accept the request",
        )

    async def _drop(self, connection_id: str, attr: str, mutate, error_message: str) -> MutationResult:
        if _find(getattr(self, attr), connection_id) is None:
            return MutationResult(Outcome.SKIPPED)

        def apply():
            setattr(self, attr, _without(getattr(self, attr), connection_id))
            self.changed()

        return await self.optimistic.run(
            ("connection", connection_id),
            snapshot=self._snapshot,
            apply=apply,
            mutate=mutate,
            restore=self._restore,
            error_message=error_message,
        )

    async def reject(self, connection_id: str) -> MutationResult:
        return await self._drop(
            connection_id,
            "incoming",
            lambda: connection_service.reject_request(self.gateway, self.user_id, connection_id),
            "Could not decline the request",
        )

    async def cancel(self, connection_id: str) -> MutationResult:
        return await self._drop(
            connection_id,
            "outgoing",
            lambda: connection_service.cancel_request(self.gateway, self.user_id, connection_id),
            "Could not cancel the request",
        )

    async def remove(self, connection_id: str) -> MutationResult:
        return await self._drop(
            connection_id,
            "accepted",
            lambda: connection_service.remove_connection(self.gateway, self.user_id, connection_id),
            "Could not remove the connection",
        )

    def state(self) -> dict:
        return {
            "accepted": dump(e for e in self.accepted if self._matches(e)),
            "incoming": dump(e for e in self.incoming if self._matches(e)),
            "outgoing": dump(e for e in self.outgoing if self._matches(e)),
            "pending_count": self.pending_count,
            "query": self.query,
            "loading": self.loading,
            "error": self.error,
        }
