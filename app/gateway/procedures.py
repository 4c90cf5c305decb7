"""
Local stand-ins for the two database procedures the hosted backend exposes.

They are written against the generic gateway operations so they return the
same row shapes as the SQL functions do. The scoring here is a development
approximation (Jaccard overlap of hobby names plus cosine similarity of the
stored hobby embeddings); the hosted procedure is the source of truth.
"""
import json
import math
from collections import defaultdict

from app.gateway.filters import eq, in_, involving, neq

EXACT_WEIGHT = 0.6
AI_WEIGHT = 0.4


def _vector(raw) -> list[float]:
    if not raw:
        return []
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            return []
    return [float(v) for v in raw]


def _cosine(a: list[float], b: list[float]) -> float:
    if not a or not b or len(a) != len(b):
        return 0.0
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    if norm == 0:
        return 0.0
    return dot / norm


# --------------------------------------------------
# get_weighted_recommendations(query_user_id)
# --------------------------------------------------
async def get_weighted_recommendations(gateway, query_user_id: str) -> list[dict]:
    me = await gateway.select_one("profiles", where=[eq("id", query_user_id)])
    if me is None:
        return []

    profiles = await gateway.select("profiles", where=[neq("id", query_user_id)])
    hobbies = await gateway.select("hobbies")
    user_hobbies = await gateway.select("user_hobbies")
    accepted = await gateway.select("connections", where=[eq("status", "accepted")])

    names = {h["id"]: h["name"] for h in hobbies}
    hobbies_by_user = defaultdict(set)
    for row in user_hobbies:
        if row["hobby_id"] in names:
            hobbies_by_user[row["user_id"]].add(names[row["hobby_id"]])

    friends = defaultdict(set)
    for conn in accepted:
        friends[conn["user1_id"]].add(conn["user2_id"])
        friends[conn["user2_id"]].add(conn["user1_id"])

    mine = hobbies_by_user[query_user_id]
    my_vector = _vector(me.get("hobby_embedding"))

    rows = []
    for profile in profiles:
        if profile.get("profile_visible") is False:
            continue

        theirs = hobbies_by_user[profile["id"]]
        shared = sorted(mine & theirs)
        union = mine | theirs

        exact = len(shared) / len(union) if union else 0.0
        ai = max(0.0, min(1.0, _cosine(my_vector, _vector(profile.get("hobby_embedding")))))

        rows.append({
            "id": profile["id"],
            "username": profile.get("username"),
            "display_name": profile.get("display_name"),
            "profile_picture": profile.get("profile_picture"),
            "bio": profile.get("bio"),
            "location": profile.get("location"),
            "hobbies": sorted(theirs),
            "shared_interests": shared,
            "mutual_count": len(friends[query_user_id] & friends[profile["id"]]),
            "exact_match_score": exact,
            "ai_match_score": ai,
            "total_score": EXACT_WEIGHT * exact + AI_WEIGHT * ai,
        })

    rows.sort(key=lambda r: r["total_score"], reverse=True)
    return rows


# --------------------------------------------------
# get_user_conversations(user_id)
# --------------------------------------------------
async def get_user_conversations(gateway, user_id: str) -> list[dict]:
    messages = await gateway.select(
        "messages",
        where=[involving(user_id, "sender_id", "receiver_id")],
        order_by="created_at",
    )

    threads: dict[str, dict] = {}
    for message in messages:
        partner_id = (
            message["receiver_id"]
            if message["sender_id"] == user_id
            else message["sender_id"]
        )
        entry = threads.setdefault(partner_id, {"partner_id": partner_id, "unread_count": 0})
        entry["last_message_id"] = message["id"]
        entry["last_message"] = message["content"]
        entry["last_message_at"] = message["created_at"]
        entry["last_sender_id"] = message["sender_id"]

        if message["receiver_id"] == user_id and message.get("read_at") is None:
            entry["unread_count"] += 1

    if not threads:
        return []

    partners = await gateway.select("profiles", where=[in_("id", threads.keys())])
    for partner in partners:
        entry = threads[partner["id"]]
        entry["partner_username"] = partner.get("username")
        entry["partner_display_name"] = partner.get("display_name")
        entry["partner_avatar"] = partner.get("profile_picture")

    return sorted(
        threads.values(),
        key=lambda t: t["last_message_at"],
        reverse=True,
    )


PROCEDURES = {
    "get_weighted_recommendations": get_weighted_recommendations,
    "get_user_conversations": get_user_conversations,
}
