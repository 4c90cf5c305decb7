"""
Recommendation list builder.

Scores come pre-computed from the ``get_weighted_recommendations`` procedure;
this module only merges them with the viewer's connection status, applies
the "Recommended" rules and the client-side search / interest filters.
"""
import asyncio
import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Sequence

from app.core.connection_status import ConnectionIndex, ConnectionStatus
from app.errors import RemoteError
from app.gateway.base import Gateway
from app.gateway.filters import involving
from app.schemas.recommendation_schema import (
    MatchBreakdown,
    RecommendationCandidate,
    RecommendationList,
)

logger = logging.getLogger(__name__)

# Display constants. The real weighting lives in the remote procedure.
QUALITY_FLOOR = 15
EXACT_WEIGHT = 0.6
AI_WEIGHT = 0.4
INTEREST_LIMIT = 10

EXCLUDED_FROM_RECOMMENDED = {ConnectionStatus.ACCEPTED, ConnectionStatus.PENDING_SENT}


def to_match_score(total) -> int:
    """Combined 0..1 score as a 0-100 integer, rounded half up."""
    value = Decimal(str(total or 0)) * 100
    score = int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    return max(0, min(100, score))


def match_reason(candidate: RecommendationCandidate) -> str:
    if candidate.exact_match_score > 0.5 and candidate.shared_interests:
        return f"Strong overlap in {' & '.join(candidate.shared_interests[:2])}."
    if candidate.ai_match_score > 0.6 and not candidate.shared_interests:
        return "AI found deep similarities in your hobby profiles despite different keywords."
    return "Matched based on overall social compatibility."


def build_candidate(row: dict, status: ConnectionStatus) -> RecommendationCandidate:
    candidate = RecommendationCandidate(
        id=row["id"],
        username=row.get("username"),
        display_name=row.get("display_name"),
        profile_picture=row.get("profile_picture"),
        bio=row.get("bio"),
        location=row.get("location"),
        hobbies=row.get("hobbies") or [],
        match_score=to_match_score(row.get("total_score")),
        exact_match_score=row.get("exact_match_score") or 0.0,
        ai_match_score=row.get("ai_match_score") or 0.0,
        shared_interests=row.get("shared_interests") or [],
        mutual_connections=max(0, int(row.get("mutual_count") or 0)),
        connection_status=status.value,
    )
    candidate.breakdown = MatchBreakdown(
        exact_weight=EXACT_WEIGHT,
        ai_weight=AI_WEIGHT,
        exact_match_score=candidate.exact_match_score,
        ai_match_score=candidate.ai_match_score,
    )
    candidate.match_reason = match_reason(candidate)
    return candidate


# --------------------------------------------------
# Filters
# --------------------------------------------------
def is_recommendable(candidate: RecommendationCandidate) -> bool:
    if ConnectionStatus(candidate.connection_status) in EXCLUDED_FROM_RECOMMENDED:
        return False
    return candidate.match_score >= QUALITY_FLOOR


def matches_search(candidate: RecommendationCandidate, query: str | None) -> bool:
    if not query:
        return True
    needle = query.lower()
    return (
        needle in (candidate.display_name or "").lower()
        or needle in (candidate.username or "").lower()
    )


def matches_interests(candidate: RecommendationCandidate, interests: Iterable[str]) -> bool:
    wanted = set(interests or ())
    if not wanted:
        return True
    return bool(wanted & set(candidate.hobbies))


def filter_candidates(
    candidates: Sequence[RecommendationCandidate],
    query: str | None = None,
    interests: Iterable[str] = (),
) -> list[RecommendationCandidate]:
    interests = list(interests or ())
    return [
        c for c in candidates
        if matches_search(c, query) and matches_interests(c, interests)
    ]


def available_interests(candidates: Sequence[RecommendationCandidate]) -> list[str]:
    seen: list[str] = []
    for candidate in candidates:
        for hobby in candidate.hobbies:
            if hobby not in seen:
                seen.append(hobby)
    return seen[:INTEREST_LIMIT]


# --------------------------------------------------
# Builder
# --------------------------------------------------
def assemble(
    user_id: str,
    rows: Sequence[dict],
    connection_rows: Sequence[dict],
    query: str | None = None,
    interests: Iterable[str] = (),
) -> RecommendationList:
    index = ConnectionIndex(user_id, connection_rows)
    candidates = [
        build_candidate(row, index.status(row["id"]))
        for row in rows
        if row.get("id") and row["id"] != user_id
    ]

    # Exclusion first, then the viewer's own search / interest filters
    recommended = [c for c in candidates if is_recommendable(c)]

    return RecommendationList(
        recommended=filter_candidates(recommended, query, interests),
        all=filter_candidates(candidates, query, interests),
        available_interests=available_interests(candidates),
    )


async def build_recommendations(
    gateway: Gateway,
    user_id: str | None,
    query: str | None = None,
    interests: Iterable[str] = (),
) -> RecommendationList:
    if not user_id:
        return RecommendationList()

    try:
        rows, connection_rows = await asyncio.gather(
            gateway.rpc("get_weighted_recommendations", {"query_user_id": user_id}),
            gateway.select("connections", where=[involving(user_id)]),
        )
    except RemoteError as exc:
        logger.warning("Recommendations unavailable for %s: %s", user_id, exc.message)
        return RecommendationList(error="Could not load recommendations. Please try again.")

    return assemble(user_id, rows or [], connection_rows, query, interests)
