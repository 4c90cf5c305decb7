"""
Error taxonomy shared by services, views and routers.

Services raise these; views catch them where the remote call is issued and
turn them into toasts; routers let the handlers in ``app.main`` map them to
HTTP status codes.
"""


class ConnectHubError(Exception):
    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class NotFoundError(ConnectHubError):
    status_code = 404


class PermissionDeniedError(ConnectHubError):
    status_code = 403


class InvalidInputError(ConnectHubError):
    """Client-side validation failure. Never reaches the gateway."""

    status_code = 422

    def __init__(self, message: str = "", field: str | None = None):
        super().__init__(message)
        self.field = field


class RemoteError(ConnectHubError):
    """Any query / mutation / RPC / storage / auth rejection."""

    status_code = 502

    def __init__(self, message: str = "", code: str | None = None):
        super().__init__(message)
        self.code = code

    @property
    def is_unique_violation(self) -> bool:
        return self.code == "23505"


class OptimisticRollbackError(RemoteError):
    """A remote failure whose local optimistic change has been reverted."""

    def __init__(self, message: str = "", cause: RemoteError | None = None):
        super().__init__(message, code=cause.code if cause else None)
        self.cause = cause
