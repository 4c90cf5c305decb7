"""
The remote data gateway.

Everything else in the application talks to the backend through this
interface: table queries and mutations, the two remote procedures, the
realtime change feed, object storage and auth. Two implementations exist:
``SupabaseGateway`` for the hosted backend and ``SqlGateway`` for local
development and tests.
"""
import abc
import enum
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional, Sequence

from app.errors import RemoteError


# Gateway-level name for remote failures
GatewayError = RemoteError


class ChangeType(str, enum.Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class ChannelStatus(str, enum.Enum):
    SUBSCRIBED = "SUBSCRIBED"
    TIMED_OUT = "TIMED_OUT"
    CLOSED = "CLOSED"
    CHANNEL_ERROR = "CHANNEL_ERROR"


@dataclass
class ChangeEvent:
    table: str
    type: ChangeType
    record: dict = field(default_factory=dict)
    old_record: dict = field(default_factory=dict)

    @property
    def row(self) -> dict:
        """The row the event is about (old values for deletes)."""
        return self.record or self.old_record


@dataclass
class AuthSession:
    access_token: str
    user_id: str
    email: Optional[str] = None


@dataclass
class AuthUser:
    id: str
    email: Optional[str] = None


ChangeCallback = Callable[[ChangeEvent], None]
StatusCallback = Callable[[ChannelStatus, Optional[Exception]], None]
AuthListener = Callable[[str, Optional[AuthSession]], None]


class Channel(abc.ABC):
    """One realtime channel with any number of postgres-change listeners."""

    def __init__(self, name: str):
        self.name = name

    @abc.abstractmethod
    def on(
        self,
        event: str,
        table: str,
        callback: ChangeCallback,
        filter=None,
    ) -> "Channel":
        """Register interest in ``event`` ("*", INSERT, UPDATE, DELETE) on ``table``."""

    @abc.abstractmethod
    async def subscribe(self, on_status: StatusCallback | None = None) -> "Channel":
        ...

    @abc.abstractmethod
    async def close(self) -> None:
        ...


class Gateway(abc.ABC):
    # -------------------------------------------------------
    # Queries
    # -------------------------------------------------------
    @abc.abstractmethod
    async def select(
        self,
        table: str,
        *,
        columns: Sequence[str] | str = "*",
        where: Iterable = (),
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[dict]:
        ...

    async def select_one(self, table: str, **kwargs) -> dict | None:
        rows = await self.select(table, limit=1, **kwargs)
        return rows[0] if rows else None

    @abc.abstractmethod
    async def count(self, table: str, *, where: Iterable = ()) -> int:
        ...

    # -------------------------------------------------------
    # Mutations
    # -------------------------------------------------------
    @abc.abstractmethod
    async def insert(self, table: str, rows: dict | list[dict]) -> list[dict]:
        ...

    @abc.abstractmethod
    async def update(self, table: str, values: dict, *, where: Iterable) -> list[dict]:
        ...

    @abc.abstractmethod
    async def delete(self, table: str, *, where: Iterable) -> list[dict]:
        ...

    # -------------------------------------------------------
    # Remote procedures
    # -------------------------------------------------------
    @abc.abstractmethod
    async def rpc(self, name: str, params: dict[str, Any]) -> Any:
        ...

    # -------------------------------------------------------
    # Realtime
    # -------------------------------------------------------
    @abc.abstractmethod
    def channel(self, name: str) -> Channel:
        ...

    # -------------------------------------------------------
    # Storage
    # -------------------------------------------------------
    @abc.abstractmethod
    async def upload(
        self,
        bucket: str,
        path: str,
        data: bytes,
        *,
        content_type: str,
        upsert: bool = True,
    ) -> str:
        ...

    @abc.abstractmethod
    async def public_url(self, bucket: str, path: str) -> str:
        ...

    # -------------------------------------------------------
    # Auth
    # -------------------------------------------------------
    @abc.abstractmethod
    async def sign_up(self, email: str, password: str) -> AuthSession | None:
        ...

    @abc.abstractmethod
    async def sign_in(self, email: str, password: str) -> AuthSession:
        ...

    @abc.abstractmethod
    async def sign_out(self) -> None:
        ...

    @abc.abstractmethod
    async def get_user(self, access_token: str) -> AuthUser | None:
        ...

    @abc.abstractmethod
    async def reset_password(self, email: str) -> None:
        ...

    @abc.abstractmethod
    def on_auth_state_change(self, listener: AuthListener) -> Callable[[], None]:
        """Register ``listener``; returns an unsubscribe function."""

    async def aclose(self) -> None:
        return None
