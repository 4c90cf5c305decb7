"""
Optimistic mutation controller.

Every user action that changes remote state goes through ``run``:

1. capture a snapshot of the affected local state,
2. apply the new local state synchronously,
3. await the remote mutation,
4. on success, optionally fold server-computed fields back in,
5. on failure, restore the snapshot exactly and raise an error toast.

A key (e.g. ``("join", community_id)``) stays locked while its mutation is
in flight, so a second click on the same control is ignored instead of
applying the delta twice.
"""
import enum
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Hashable

from app.core.toasts import ToastSink
from app.errors import ConnectHubError, OptimisticRollbackError, RemoteError

logger = logging.getLogger(__name__)


class Outcome(str, enum.Enum):
    OK = "ok"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class MutationResult:
    outcome: Outcome
    value: Any = None
    error: OptimisticRollbackError | None = None

    @property
    def ok(self) -> bool:
        return self.outcome == Outcome.OK


class OptimisticController:
    def __init__(self, toasts: ToastSink | None = None):
        self.toasts = toasts or ToastSink()
        self._in_flight: set[Hashable] = set()

    def is_pending(self, key: Hashable) -> bool:
        return key in self._in_flight

    @property
    def pending(self) -> frozenset:
        return frozenset(self._in_flight)

    async def run(
        self,
        key: Hashable,
        *,
        apply: Callable[[], None],
        mutate: Callable[[], Awaitable[Any]],
        restore: Callable[[Any], None],
        snapshot: Callable[[], Any] | None = None,
        reconcile: Callable[[Any], None] | None = None,
        error_message: str = "Something went wrong. Please try again.",
    ) -> MutationResult:
        if key in self._in_flight:
            logger.debug("Ignoring duplicate action %r while in flight", key)
            return MutationResult(Outcome.SKIPPED)

        self._in_flight.add(key)
        try:
            saved = snapshot() if snapshot is not None else None
            apply()

            try:
                value = await mutate()
            except ConnectHubError as exc:
                restore(saved)
                logger.warning("Rolled back %r: %s", key, exc.message)
                self.toasts.error(error_message)
                cause = exc if isinstance(exc, RemoteError) else None
                return MutationResult(
                    Outcome.FAILED,
                    error=OptimisticRollbackError(error_message, cause=cause),
                )

            if reconcile is not None:
                reconcile(value)
            return MutationResult(Outcome.OK, value=value)
        finally:
            self._in_flight.discard(key)
