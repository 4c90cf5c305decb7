from typing import List, Optional

from pydantic import BaseModel


class MatchBreakdown(BaseModel):
    exact_weight: float
    ai_weight: float
    exact_match_score: float
    ai_match_score: float


class RecommendationCandidate(BaseModel):
    id: str
    username: Optional[str] = None
    display_name: Optional[str] = None
    profile_picture: Optional[str] = None
    bio: Optional[str] = None
    location: Optional[str] = None
    hobbies: List[str] = []

    match_score: int = 0
    exact_match_score: float = 0.0
    ai_match_score: float = 0.0
    shared_interests: List[str] = []
    mutual_connections: int = 0

    connection_status: str = "none"
    match_reason: str = ""
    breakdown: Optional[MatchBreakdown] = None


class RecommendationList(BaseModel):
    recommended: List[RecommendationCandidate] = []
    all: List[RecommendationCandidate] = []
    available_interests: List[str] = []
    error: Optional[str] = None
