import asyncio
import logging

from app.core.connection_status import ConnectionIndex
from app.errors import InvalidInputError, NotFoundError
from app.gateway.base import Gateway
from app.gateway.filters import eq, involving
from app.schemas.community_schema import (
    CommunityCard,
    CommunityCreate,
    CommunityDetail,
    CommunityOut,
    MemberView,
)
from app.schemas.profile_schema import ProfilePreview
from app.services.profile_service import get_previews

logger = logging.getLogger(__name__)

CATEGORIES = [
    "Technology",
    "Design",
    "Business",
    "Photography",
    "Lifestyle",
    "Science",
    "Entertainment",
]


async def get_community(gateway: Gateway, community_id: str) -> CommunityOut:
    row = await gateway.select_one("communities", where=[eq("id", community_id)])
    if row is None:
        raise NotFoundError("Community not found")
    return CommunityOut(**row)


async def member_community_ids(gateway: Gateway, user_id: str) -> set[str]:
    rows = await gateway.select(
        "community_members", columns="community_id", where=[eq("user_id", user_id)]
    )
    return {row["community_id"] for row in rows}


async def is_member(gateway: Gateway, user_id: str, community_id: str) -> bool:
    row = await gateway.select_one(
        "community_members",
        columns="id",
        where=[eq("community_id", community_id), eq("user_id", user_id)],
    )
    return row is not None


# --------------------------------------------------
# LIST
# --------------------------------------------------
async def list_communities(gateway: Gateway, user_id: str) -> list[CommunityCard]:
    rows, mine = await asyncio.gather(
        gateway.select("communities", order_by="created_at", descending=True),
        member_community_ids(gateway, user_id),
    )
    return [
        CommunityCard(community=CommunityOut(**row), is_member=row["id"] in mine)
        for row in rows
    ]


def filter_cards(
    cards: list[CommunityCard],
    *,
    tab: str = "discover",
    query: str | None = None,
    category: str | None = None,
) -> list[CommunityCard]:
    needle = (query or "").lower()
    result = []
    for card in cards:
        if (tab == "my") != card.is_member:
            continue
        c = card.community
        if needle and needle not in c.name.lower() and needle not in (c.description or "").lower():
            continue
        if category and category != "All" and c.category != category:
            continue
        result.append(card)
    return result


# --------------------------------------------------
# DETAIL
# --------------------------------------------------
async def get_detail(gateway: Gateway, user_id: str, community_id: str) -> CommunityDetail:
    community, member, admin_rows = await asyncio.gather(
        get_community(gateway, community_id),
        is_member(gateway, user_id, community_id),
        gateway.select(
            "community_members",
            where=[eq("community_id", community_id), eq("role", "admin")],
            order_by="joined_at",
        ),
    )

    admin_ids = [row["user_id"] for row in admin_rows]
    if community.created_by and community.created_by not in admin_ids:
        admin_ids.insert(0, community.created_by)

    previews = await get_previews(gateway, admin_ids)
    admins = [previews.get(i) or ProfilePreview(id=i) for i in admin_ids]

    return CommunityDetail(community=community, is_member=member, admins=admins)


async def list_members(gateway: Gateway, user_id: str, community_id: str) -> list[MemberView]:
    rows, connection_rows = await asyncio.gather(
        gateway.select(
            "community_members",
            where=[eq("community_id", community_id)],
            order_by="joined_at",
        ),
        gateway.select("connections", where=[involving(user_id)]),
    )
    previews = await get_previews(gateway, [row["user_id"] for row in rows])
    index = ConnectionIndex(user_id, connection_rows)

    return [
        MemberView(
            profile=previews.get(row["user_id"]) or ProfilePreview(id=row["user_id"]),
            role=row.get("role") or "member",
            joined_at=row.get("joined_at"),
            connection_status=index.status(row["user_id"]).value,
            is_self=row["user_id"] == user_id,
        )
        for row in rows
    ]


# --------------------------------------------------
# MUTATIONS
# --------------------------------------------------
async def create_community(gateway: Gateway, user_id: str, payload: CommunityCreate) -> CommunityOut:
    name = payload.name.strip()
    if not name:
        raise InvalidInputError("Community name is required", field="name")

    rows = await gateway.insert("communities", {
        "name": name,
        "description": payload.description,
        "category": payload.category or CATEGORIES[0],
        "image_url": payload.image_url,
        "created_by": user_id,
    })
    community = rows[0]

    await gateway.insert("community_members", {
        "community_id": community["id"],
        "user_id": user_id,
        "role": "admin",
    })
    logger.info("Community %s created by %s", community["id"], user_id)
    return await get_community(gateway, community["id"])


async def join(gateway: Gateway, user_id: str, community_id: str) -> dict:
    rows = await gateway.insert("community_members", {
        "community_id": community_id,
        "user_id": user_id,
        "role": "member",
    })
    return rows[0]


async def leave(gateway: Gateway, user_id: str, community_id: str) -> None:
    await gateway.delete(
        "community_members",
        where=[eq("community_id", community_id), eq("user_id", user_id)],
    )
