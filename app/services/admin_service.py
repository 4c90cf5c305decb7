import asyncio
from datetime import timedelta

from app.database import utcnow
from app.errors import PermissionDeniedError
from app.gateway.base import Gateway
from app.gateway.filters import eq, gte
from app.schemas.admin_schema import AdminStats, AdminUserRow
from app.schemas.community_schema import CommunityOut


async def ensure_admin(gateway: Gateway, user_id: str) -> None:
    row = await gateway.select_one("profiles", columns="id,is_admin", where=[eq("id", user_id)])
    if not row or not row.get("is_admin"):
        raise PermissionDeniedError("Admin access required")


async def stats(gateway: Gateway) -> AdminStats:
    now = utcnow()
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    week_ago = now - timedelta(days=7)

    users, communities, messages, connections, new_today, new_week = await asyncio.gather(
        gateway.count("profiles"),
        gateway.count("communities"),
        gateway.count("messages"),
        gateway.count("connections", where=[eq("status", "accepted")]),
        gateway.count("profiles", where=[gte("created_at", today)]),
        gateway.count("profiles", where=[gte("created_at", week_ago)]),
    )
    return AdminStats(
        total_users=users,
        total_communities=communities,
        total_messages=messages,
        total_connections=connections,
        new_users_today=new_today,
        new_users_this_week=new_week,
    )


def _matches(query: str | None, *fields) -> bool:
    if not query:
        return True
    needle = query.lower()
    return any(needle in (f or "").lower() for f in fields)


async def users(gateway: Gateway, query: str | None = None) -> list[AdminUserRow]:
    rows = await gateway.select("profiles", order_by="created_at", descending=True)
    return [
        AdminUserRow(**row)
        for row in rows
        if _matches(query, row.get("username"), row.get("display_name"), row.get("email"))
    ]


async def communities(gateway: Gateway, query: str | None = None) -> list[CommunityOut]:
    rows = await gateway.select("communities", order_by="created_at", descending=True)
    return [
        CommunityOut(**row)
        for row in rows
        if _matches(query, row.get("name"), row.get("description"))
    ]
