import uuid

from app.database import utcnow
from app.gateway.base import Gateway
from app.gateway.filters import between, eq, in_, is_null
from app.schemas.message_schema import ConversationSummary, MessageOut


def new_message_id() -> str:
    # Generated here so the optimistic copy and the realtime echo share an id
    return str(uuid.uuid4())


async def conversations(gateway: Gateway, user_id: str) -> list[ConversationSummary]:
    rows = await gateway.rpc("get_user_conversations", {"user_id": user_id})
    return [ConversationSummary(**row) for row in rows or []]


def filter_conversations(items: list[ConversationSummary], query: str | None) -> list[ConversationSummary]:
    if not query:
        return list(items)
    needle = query.lower()
    return [
        c for c in items
        if needle in (c.partner_display_name or "").lower()
        or needle in (c.partner_username or "").lower()
    ]


async def thread(gateway: Gateway, user_id: str, partner_id: str) -> list[MessageOut]:
    rows = await gateway.select(
        "messages",
        where=[between(user_id, partner_id, "sender_id", "receiver_id")],
        order_by="created_at",
    )
    return [MessageOut(**row) for row in rows]


async def send(
    gateway: Gateway,
    user_id: str,
    receiver_id: str,
    content: str,
    message_id: str | None = None,
) -> MessageOut:
    rows = await gateway.insert("messages", {
        "id": message_id or new_message_id(),
        "sender_id": user_id,
        "receiver_id": receiver_id,
        "content": content,
    })
    return MessageOut(**rows[0])


async def mark_read(gateway: Gateway, user_id: str, message_ids=None, partner_id: str | None = None) -> list[dict]:
    """Stamp read_at on unread messages addressed to ``user_id``."""
    where = [eq("receiver_id", user_id), is_null("read_at")]
    if message_ids is not None:
        ids = list(message_ids)
        if not ids:
            return []
        where.append(in_("id", ids))
    if partner_id is not None:
        where.append(eq("sender_id", partner_id))

    return await gateway.update("messages", {"read_at": utcnow()}, where=where)
