"""
Connection status between the current user and everyone else.

Connection rows are directional in origin (user1 requested, user2 received)
and become mutual once accepted. ``ConnectionIndex`` makes one pass over the
rows a user is party to and answers "what is my status with X?" in O(1).
"""
import enum
import logging
from typing import Iterable

from app.errors import PermissionDeniedError

logger = logging.getLogger(__name__)


class ConnectionStatus(str, enum.Enum):
    NONE = "none"
    PENDING_SENT = "pending_sent"
    PENDING_RECEIVED = "pending_received"
    ACCEPTED = "accepted"


def other_party(row: dict, user_id: str) -> str | None:
    if row.get("user1_id") == user_id:
        return row.get("user2_id")
    if row.get("user2_id") == user_id:
        return row.get("user1_id")
    return None


def status_of(row: dict, user_id: str) -> ConnectionStatus:
    """Status of ``row`` as seen by ``user_id`` (who must be a party to it)."""
    if row.get("status") == "accepted":
        return ConnectionStatus.ACCEPTED
    if row.get("user1_id") == user_id:
        return ConnectionStatus.PENDING_SENT
    return ConnectionStatus.PENDING_RECEIVED


def _recency(row: dict):
    created = row.get("created_at")
    if hasattr(created, "isoformat"):
        created = created.isoformat()
    return (created or "", str(row.get("id") or ""))


class ConnectionIndex:
    def __init__(self, user_id: str, rows: Iterable[dict] = ()):
        self.user_id = user_id
        self._rows: dict[str, dict] = {}

        for row in rows:
            other = other_party(row, user_id)
            # Self-rows and rows between two other users never enter the map
            if other is None or other == user_id:
                continue

            current = self._rows.get(other)
            if current is not None:
                logger.warning(
                    "Data integrity: %s has multiple connection rows with %s (%s, %s)",
                    user_id, other, current.get("id"), row.get("id"),
                )
                if _recency(row) <= _recency(current):
                    continue
            self._rows[other] = row

    def status(self, other_id: str) -> ConnectionStatus:
        row = self._rows.get(other_id)
        if row is None:
            return ConnectionStatus.NONE
        return status_of(row, self.user_id)

    def row(self, other_id: str) -> dict | None:
        return self._rows.get(other_id)

    def ids(self, status: ConnectionStatus) -> list[str]:
        return [other for other in self._rows if self.status(other) == status]

    def as_dict(self) -> dict[str, ConnectionStatus]:
        return {other: self.status(other) for other in self._rows}

    def __contains__(self, other_id: str) -> bool:
        return other_id in self._rows

    def __len__(self) -> int:
        return len(self._rows)


def reconcile(user_id: str, rows: Iterable[dict]) -> dict[str, ConnectionStatus]:
    """Other-party id -> status. Parties missing from the result are ``NONE``."""
    return ConnectionIndex(user_id, rows).as_dict()


# --------------------------------------------------
# Transition guards
# --------------------------------------------------
def ensure_can_accept(row: dict | None, user_id: str) -> None:
    """Only the recipient of a pending request may accept it."""
    if row is None:
        raise PermissionDeniedError("There is no pending request to accept")
    if row.get("status") != "pending":
        raise PermissionDeniedError("This request is no longer pending")
    if row.get("user2_id") != user_id:
        raise PermissionDeniedError("Only the recipient can accept a connection request")


def ensure_can_send(index: ConnectionIndex, other_id: str) -> None:
    if other_id == index.user_id:
        raise PermissionDeniedError("You cannot connect with yourself")
    status = index.status(other_id)
    if status != ConnectionStatus.NONE:
        raise PermissionDeniedError(f"A connection already exists ({status.value})")
