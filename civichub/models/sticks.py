"""
Gamification models: the per-user sticks record and leaderboard rows.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List


class UserSticksResponse(BaseModel):
    uid: str
    points: int = Field(..., ge=0)
    level: int
    current_streak: int = Field(..., ge=0)
    longest_streak: int = Field(..., ge=0)
    last_stick_date: Optional[str] = Field(None, description="YYYY-MM-DD (UTC) of the latest streak day")
    last_stick_at: Optional[datetime] = None
    streak_days: List[str] = Field(default_factory=list)
    current_post_points: int
    badge: str

    class Config:
        extra = "ignore"


class LevelProgress(BaseModel):
    """Display values derived from points with the canonical leveling formula."""
    level: int
    points_into_level: int
    points_to_next_level: int
    progress: float = Field(..., ge=0.0, le=1.0)


class SticksProfile(BaseModel):
    sticks: UserSticksResponse
    progress: LevelProgress


class LeaderboardEntry(BaseModel):
    rank: int
    uid: str
    display_name: str
    photo_url: Optional[str] = None
    points: int
    level: int
    badge: str
    current_streak: int
