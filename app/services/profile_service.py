import asyncio
import logging
import time

from app.config import settings
from app.core.connection_status import ConnectionIndex
from app.core.validation import (
    validate_avatar,
    validate_bio,
    validate_interests,
    validate_username,
)
from app.errors import InvalidInputError, NotFoundError, RemoteError
from app.gateway.base import Gateway
from app.gateway.filters import eq, in_, involving
from app.schemas.hobby_schema import HobbyOut
from app.schemas.profile_schema import (
    NotificationSettings,
    OnboardingRequest,
    ProfileDetail,
    ProfileOut,
    ProfilePreview,
    ProfileUpdate,
)

logger = logging.getLogger(__name__)

PREVIEW_COLUMNS = "id,username,display_name,profile_picture"


# --------------------------------------------------
# READS
# --------------------------------------------------
async def get_profile(gateway: Gateway, profile_id: str) -> ProfileOut:
    row = await gateway.select_one("profiles", where=[eq("id", profile_id)])
    if row is None:
        raise NotFoundError("Profile not found")
    return ProfileOut(**row)


async def get_previews(gateway: Gateway, profile_ids) -> dict[str, ProfilePreview]:
    ids = list(dict.fromkeys(i for i in profile_ids if i))
    if not ids:
        return {}
    rows = await gateway.select("profiles", columns=PREVIEW_COLUMNS, where=[in_("id", ids)])
    return {row["id"]: ProfilePreview(**row) for row in rows}


async def list_hobbies(gateway: Gateway) -> list[HobbyOut]:
    rows = await gateway.select("hobbies", order_by="name")
    return [HobbyOut(**row) for row in rows]


async def hobby_names(gateway: Gateway, user_id: str) -> list[str]:
    links = await gateway.select("user_hobbies", where=[eq("user_id", user_id)])
    if not links:
        return []
    rows = await gateway.select("hobbies", where=[in_("id", [l["hobby_id"] for l in links])])
    return sorted(row["name"] for row in rows)


async def get_profile_detail(gateway: Gateway, viewer_id: str, profile_id: str) -> ProfileDetail:
    profile, hobbies, connection_count, community_count, rows = await asyncio.gather(
        get_profile(gateway, profile_id),
        hobby_names(gateway, profile_id),
        gateway.count("connections", where=[involving(profile_id), eq("status", "accepted")]),
        gateway.count("community_members", where=[eq("user_id", profile_id)]),
        gateway.select("connections", where=[involving(viewer_id)]),
    )

    is_own = viewer_id == profile_id
    return ProfileDetail(
        profile=profile,
        hobbies=hobbies,
        connection_count=connection_count,
        community_count=community_count,
        connection_status="none" if is_own else ConnectionIndex(viewer_id, rows).status(profile_id).value,
        is_own_profile=is_own,
    )


# --------------------------------------------------
# UPDATES
# --------------------------------------------------
async def update_profile(gateway: Gateway, user_id: str, payload: ProfileUpdate) -> ProfileOut:
    values = payload.model_dump(exclude_unset=True)
    if "username" in values:
        values["username"] = validate_username(values["username"])
    if "bio" in values:
        validate_bio(values["bio"])

    if not values:
        return await get_profile(gateway, user_id)

    try:
        rows = await gateway.update("profiles", values, where=[eq("id", user_id)])
    except RemoteError as exc:
        if exc.is_unique_violation:
            raise InvalidInputError("That username is already taken", field="username")
        raise

    if not rows:
        raise NotFoundError("Profile not found")
    return ProfileOut(**rows[0])


async def update_notifications(
    gateway: Gateway, user_id: str, payload: NotificationSettings
) -> ProfileOut:
    values = payload.model_dump(exclude_none=True)
    if not values:
        return await get_profile(gateway, user_id)

    rows = await gateway.update("profiles", values, where=[eq("id", user_id)])
    if not rows:
        raise NotFoundError("Profile not found")
    return ProfileOut(**rows[0])


async def replace_hobbies(gateway: Gateway, user_id: str, hobby_ids) -> bool:
    """Replace the user's hobby set. Returns True when the set changed."""
    wanted = list(dict.fromkeys(hobby_ids))
    current = {
        row["hobby_id"]
        for row in await gateway.select("user_hobbies", where=[eq("user_id", user_id)])
    }
    if current == set(wanted):
        return False

    await gateway.delete("user_hobbies", where=[eq("user_id", user_id)])
    if wanted:
        await gateway.insert(
            "user_hobbies",
            [{"user_id": user_id, "hobby_id": hobby_id} for hobby_id in wanted],
        )
    logger.info("Hobbies replaced for %s (%d selected)", user_id, len(wanted))
    return True


async def complete_onboarding(
    gateway: Gateway, user_id: str, payload: OnboardingRequest
) -> ProfileOut:
    username = validate_username(payload.username)
    validate_bio(payload.bio)
    hobby_ids = validate_interests(payload.hobby_ids)

    profile = await update_profile(
        gateway,
        user_id,
        ProfileUpdate(username=username, bio=payload.bio, location=payload.location),
    )
    await replace_hobbies(gateway, user_id, hobby_ids)
    return profile


# --------------------------------------------------
# AVATAR
# --------------------------------------------------
def avatar_path(user_id: str, filename: str | None) -> str:
    ext = (filename or "").rsplit(".", 1)[-1].lower() if "." in (filename or "") else "png"
    return f"{user_id}/avatar.{ext}"


async def upload_avatar(
    gateway: Gateway,
    user_id: str,
    filename: str | None,
    content_type: str | None,
    data: bytes,
) -> str:
    validate_avatar(content_type, len(data))

    path = avatar_path(user_id, filename)
    await gateway.upload(
        settings.AVATAR_BUCKET,
        path,
        data,
        content_type=content_type,
        upsert=True,
    )
    public = await gateway.public_url(settings.AVATAR_BUCKET, path)

    # Same object path on every upload; the suffix defeats browser caches
    url = f"{public}?t={int(time.time() * 1000)}"
    await gateway.update("profiles", {"profile_picture": url}, where=[eq("id", user_id)])
    return url
