"""
Per-screen state containers.

A view owns the lists and maps one screen renders, hydrates them from the
gateway, and applies user actions through its ``OptimisticController``.
Remote failures stop here: they are logged and become toasts, never
exceptions for the caller.
"""
import logging
from typing import Awaitable, Callable, TypeVar

from app.core.optimistic import OptimisticController
from app.core.request_guard import LatestRequestGuard
from app.core.toasts import ToastSink
from app.errors import ConnectHubError
from app.gateway.base import Gateway

logger = logging.getLogger(__name__)

T = TypeVar("T")


def dump(items) -> list[dict]:
    return [item.model_dump(mode="json") for item in items]


class View:
    name = "view"

    def __init__(self, gateway: Gateway, user_id: str, toasts: ToastSink | None = None):
        self.gateway = gateway
        self.user_id = user_id
        self.toasts = toasts or ToastSink()
        self.optimistic = OptimisticController(self.toasts)
        self.guard = LatestRequestGuard()
        self.loading = False
        self.error: str | None = None
        self._listeners: list[Callable[[], None]] = []

    def add_listener(self, listener: Callable[[], None]) -> None:
        self._listeners.append(listener)

    def changed(self) -> None:
        for listener in list(self._listeners):
            listener()

    async def fetch(self, load: Callable[[], Awaitable[T]], error_message: str) -> T | None:
        """Run a load, turning failures into ``self.error`` plus a toast."""
        self.loading = True
        try:
            result = await load()
        except ConnectHubError as exc:
            logger.warning("%s load failed for %s: %s", self.name, self.user_id, exc.message)
            self.error = error_message
            self.toasts.error(error_message)
            return None
        finally:
            self.loading = False

        self.error = None
        return result

    def state(self) -> dict:
        raise NotImplementedError
