import asyncio
import logging

from app.core.connection_status import ConnectionStatus
from app.core.optimistic import MutationResult, Outcome
from app.errors import ConnectHubError, NotFoundError
from app.schemas.profile_schema import ProfileDetail
from app.services import connection_service, profile_service
from app.views.base import View

logger = logging.getLogger(__name__)


class ProfileView(View):
    """Another user's profile page (or your own) with the connect button."""

    name = "profile"

    def __init__(self, gateway, user_id, profile_id: str, toasts=None):
        super().__init__(gateway, user_id, toasts)
        self.profile_id = profile_id
        self.detail: ProfileDetail | None = None
        self.connection_id: str | None = None
        self.not_found = False

    @property
    def status(self) -> str:
        return self.detail.connection_status if self.detail else ConnectionStatus.NONE.value

    async def load(self) -> None:
        self.loading = True
        try:
            detail, status = await asyncio.gather(
                profile_service.get_profile_detail(self.gateway, self.user_id, self.profile_id),
                connection_service.get_status(self.gateway, self.user_id, self.profile_id),
            )
        except NotFoundError:
            self.not_found = True
            self.changed()
            return
        except ConnectHubError as exc:
            logger.warning("profile load failed for %s: %s", self.profile_id, exc.message)
            self.error = "Could not load profile"
            self.toasts.error(self.error)
            self.changed()
            return
        finally:
            self.loading = False

        self.detail = detail
        self.connection_id = status.connection_id
        self.changed()

    # --------------------------------------------------
    # Actions
    # --------------------------------------------------
    def _snapshot(self):
        d = self.detail
        return (d.connection_status, d.connection_count, self.connection_id)

    def _restore(self, saved) -> None:
        self.detail.connection_status, self.detail.connection_count, self.connection_id = saved
        self.changed()

    def _set(self, status: ConnectionStatus, count_delta: int = 0) -> None:
        self.detail.connection_status = status.value
        self.detail.connection_count = max(0, self.detail.connection_count + count_delta)
        self.changed()

    async def connect(self) -> MutationResult:
        if self.detail is None or self.detail.is_own_profile or self.status != ConnectionStatus.NONE.value:
            return MutationResult(Outcome.SKIPPED)

        def reconcile(row: dict):
            self.connection_id = row["id"]

        return await self.optimistic.run(
            ("connection", self.profile_id),
            snapshot=self._snapshot,
            apply=lambda: self._set(ConnectionStatus.PENDING_SENT),
            mutate=lambda: connection_service.send_request(self.gateway, self.user_id, self.profile_id),
            restore=self._restore,
            reconcile=reconcile,
            error_message="Could not send the connection request",
        )

    async def accept(self) -> MutationResult:
        if self.detail is None or self.status != ConnectionStatus.PENDING_RECEIVED.value:
            self.toasts.error("Only the recipient can accept this request")
            return MutationResult(Outcome.SKIPPED)

        connection_id = self.connection_id
        return await self.optimistic.run(
            ("connection", self.profile_id),
            snapshot=self._snapshot,
            apply=lambda: self._set(ConnectionStatus.ACCEPTED, +1),
            mutate=lambda: connection_service.accept_request(self.gateway, self.user_id, connection_id),
            restore=self._restore,
            error_message="Could not accept the request",
        )

    async def disconnect(self) -> MutationResult:
        if self.detail is None or self.connection_id is None:
            return MutationResult(Outcome.SKIPPED)

        was_accepted = self.status == ConnectionStatus.ACCEPTED.value
        connection_id = self.connection_id

        def apply():
            self._set(ConnectionStatus.NONE, -1 if was_accepted else 0)
            self.connection_id = None

        return await self.optimistic.run(
            ("connection", self.profile_id),
            snapshot=self._snapshot,
            apply=apply,
            mutate=lambda: connection_service.remove_connection(self.gateway, self.user_id, connection_id),
            restore=self._restore,
            error_message="Could not update the connection",
        )

    def state(self) -> dict:
        return {
            "profile_id": self.profile_id,
            "not_found": self.not_found,
            "detail": self.detail.model_dump(mode="json") if self.detail else None,
            "connection_id": self.connection_id,
            "loading": self.loading,
            "error": self.error,
        }
