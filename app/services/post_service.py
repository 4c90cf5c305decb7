import asyncio
from collections import Counter

from app.errors import NotFoundError
from app.gateway.base import Gateway
from app.gateway.filters import eq, in_
from app.schemas.post_schema import (
    CommentOut,
    CommentView,
    PostOut,
    PostView,
)
from app.schemas.profile_schema import ProfilePreview
from app.services.community_service import member_community_ids
from app.services.profile_service import get_previews


async def _counts(gateway: Gateway, table: str, post_ids: list[str]) -> Counter:
    if not post_ids:
        return Counter()
    rows = await gateway.select(table, columns="post_id", where=[in_("post_id", post_ids)])
    return Counter(row["post_id"] for row in rows)


async def compose(gateway: Gateway, user_id: str, rows: list[dict]) -> list[PostView]:
    """Attach author, like/comment counts and is_liked to raw post rows."""
    if not rows:
        return []

    post_ids = [row["id"] for row in rows]
    previews, likes, comments, mine = await asyncio.gather(
        get_previews(gateway, [row["user_id"] for row in rows]),
        _counts(gateway, "likes", post_ids),
        _counts(gateway, "comments", post_ids),
        gateway.select(
            "likes",
            columns="post_id",
            where=[eq("user_id", user_id), in_("post_id", post_ids)],
        ),
    )
    liked = {row["post_id"] for row in mine}

    return [
        PostView(
            post=PostOut(**row),
            author=previews.get(row["user_id"]) or ProfilePreview(id=row["user_id"]),
            like_count=likes[row["id"]],
            comment_count=comments[row["id"]],
            is_liked=row["id"] in liked,
        )
        for row in rows
    ]


async def get_post(gateway: Gateway, post_id: str) -> dict:
    row = await gateway.select_one("posts", where=[eq("id", post_id)])
    if row is None:
        raise NotFoundError("Post not found")
    return row


async def community_posts(gateway: Gateway, user_id: str, community_id: str) -> list[PostView]:
    rows = await gateway.select(
        "posts",
        where=[eq("community_id", community_id)],
        order_by="created_at",
        descending=True,
    )
    return await compose(gateway, user_id, rows)


async def feed(gateway: Gateway, user_id: str, limit: int = 50) -> list[PostView]:
    """Newest posts from the communities the user belongs to, plus their own."""
    communities = await member_community_ids(gateway, user_id)
    rows = await gateway.select(
        "posts",
        where=[in_("community_id", communities)] if communities else [eq("user_id", user_id)],
        order_by="created_at",
        descending=True,
        limit=limit,
    )
    return await compose(gateway, user_id, rows)


async def create_post(
    gateway: Gateway, user_id: str, content: str, community_id: str | None = None
) -> PostView:
    rows = await gateway.insert("posts", {
        "community_id": community_id,
        "user_id": user_id,
        "content": content,
    })
    views = await compose(gateway, user_id, rows)
    return views[0]


async def like(gateway: Gateway, user_id: str, post_id: str) -> dict:
    rows = await gateway.insert("likes", {"post_id": post_id, "user_id": user_id})
    return rows[0]


async def unlike(gateway: Gateway, user_id: str, post_id: str) -> None:
    await gateway.delete("likes", where=[eq("post_id", post_id), eq("user_id", user_id)])


# --------------------------------------------------
# COMMENTS
# --------------------------------------------------
async def list_comments(gateway: Gateway, post_id: str) -> list[CommentView]:
    rows = await gateway.select("comments", where=[eq("post_id", post_id)], order_by="created_at")
    previews = await get_previews(gateway, [row["user_id"] for row in rows])
    return [
        CommentView(comment=CommentOut(**row), author=previews.get(row["user_id"]))
        for row in rows
    ]


async def add_comment(gateway: Gateway, user_id: str, post_id: str, content: str) -> CommentView:
    await get_post(gateway, post_id)
    rows = await gateway.insert("comments", {
        "post_id": post_id,
        "user_id": user_id,
        "content": content,
    })
    previews = await get_previews(gateway, [user_id])
    return CommentView(comment=CommentOut(**rows[0]), author=previews.get(user_id))
