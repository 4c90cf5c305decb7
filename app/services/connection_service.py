import logging

from app.core.connection_status import (
    ConnectionIndex,
    ConnectionStatus,
    ensure_can_accept,
    ensure_can_send,
    other_party,
)
from app.errors import NotFoundError, PermissionDeniedError
from app.gateway.base import Gateway
from app.gateway.filters import eq, involving
from app.schemas.connection_schema import (
    ConnectionEntry,
    ConnectionOut,
    ConnectionsOverview,
    ConnectionStatusOut,
)
from app.schemas.profile_schema import ProfilePreview
from app.services.profile_service import get_previews

logger = logging.getLogger(__name__)


async def connection_rows(gateway: Gateway, user_id: str) -> list[dict]:
    return await gateway.select(
        "connections",
        where=[involving(user_id)],
        order_by="created_at",
        descending=True,
    )


async def get_index(gateway: Gateway, user_id: str) -> ConnectionIndex:
    return ConnectionIndex(user_id, await connection_rows(gateway, user_id))


async def get_connection(gateway: Gateway, connection_id: str) -> dict:
    row = await gateway.select_one("connections", where=[eq("id", connection_id)])
    if row is None:
        raise NotFoundError("Connection not found")
    return row


async def get_status(gateway: Gateway, user_id: str, other_id: str) -> ConnectionStatusOut:
    index = await get_index(gateway, user_id)
    row = index.row(other_id)
    return ConnectionStatusOut(
        user_id=other_id,
        status=index.status(other_id).value,
        connection_id=row["id"] if row else None,
    )


# --------------------------------------------------
# OVERVIEW (connections page)
# --------------------------------------------------
async def overview(gateway: Gateway, user_id: str) -> ConnectionsOverview:
    index = await get_index(gateway, user_id)
    others = list(index.as_dict())
    previews = await get_previews(gateway, others)

    result = ConnectionsOverview()
    buckets = {
        ConnectionStatus.ACCEPTED: result.accepted,
        ConnectionStatus.PENDING_RECEIVED: result.incoming,
        ConnectionStatus.PENDING_SENT: result.outgoing,
    }
    for other_id in others:
        buckets[index.status(other_id)].append(ConnectionEntry(
            connection=ConnectionOut(**index.row(other_id)),
            profile=previews.get(other_id) or ProfilePreview(id=other_id),
        ))
    return result


# --------------------------------------------------
# MUTATIONS
# --------------------------------------------------
async def send_request(gateway: Gateway, user_id: str, target_id: str) -> dict:
    target = await gateway.select_one("profiles", columns="id", where=[eq("id", target_id)])
    if target is None:
        raise NotFoundError("Profile not found")

    ensure_can_send(await get_index(gateway, user_id), target_id)

    rows = await gateway.insert("connections", {
        "user1_id": user_id,
        "user2_id": target_id,
        "status": "pending",
    })
    logger.info("Connection request %s -> %s", user_id, target_id)
    return rows[0]


async def accept_request(gateway: Gateway, user_id: str, connection_id: str) -> dict:
    row = await gateway.select_one("connections", where=[eq("id", connection_id)])
    ensure_can_accept(row, user_id)

    rows = await gateway.update(
        "connections",
        {"status": "accepted"},
        where=[eq("id", connection_id), eq("user2_id", user_id), eq("status", "pending")],
    )
    if not rows:
        raise NotFoundError("Connection request no longer exists")
    logger.info("Connection %s accepted by %s", connection_id, user_id)
    return rows[0]


async def reject_request(gateway: Gateway, user_id: str, connection_id: str) -> None:
    row = await get_connection(gateway, connection_id)
    if row["status"] != "pending" or row["user2_id"] != user_id:
        raise PermissionDeniedError("Only the recipient can decline a request")
    await gateway.delete("connections", where=[eq("id", connection_id)])


async def cancel_request(gateway: Gateway, user_id: str, connection_id: str) -> None:
    row = await get_connection(gateway, connection_id)
    if row["status"] != "pending" or row["user1_id"] != user_id:
        raise PermissionDeniedError("Only the sender can cancel a request")
    await gateway.delete("connections", where=[eq("id", connection_id)])


async def remove_connection(gateway: Gateway, user_id: str, connection_id: str) -> None:
    row = await get_connection(gateway, connection_id)
    if other_party(row, user_id) is None:
        raise PermissionDeniedError("Not your connection")
    await gateway.delete("connections", where=[eq("id", connection_id)])
    logger.info("Connection %s removed by %s", connection_id, user_id)


async def disconnect(gateway: Gateway, user_id: str, other_id: str) -> None:
    """Remove whatever row links the two users (decline, cancel or unfriend)."""
    index = await get_index(gateway, user_id)
    row = index.row(other_id)
    if row is None:
        raise NotFoundError("You are not connected")
    await gateway.delete("connections", where=[eq("id", row["id"])])


async def accepted_ids(gateway: Gateway, user_id: str) -> list[str]:
    index = await get_index(gateway, user_id)
    return index.ids(ConnectionStatus.ACCEPTED)
