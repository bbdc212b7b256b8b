"""
Gamification endpoints - a user's sticks record and the leaderboard.
"""

from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status

from civichub.core.deps import get_sticks_service
from civichub.core.settings import settings
from civichub.models.sticks import LeaderboardEntry, SticksProfile
from civichub.services.sticks_service import SticksService

router = APIRouter(tags=["Sticks"])


@router.get("/sticks/{uid}", response_model=SticksProfile)
async def get_sticks(uid: str, service: SticksService = Depends(get_sticks_service)):
    """Points, streak, badge and level progress of one user."""
    profile = service.profile(uid)
    if profile is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No sticks yet for user {uid}"
        )
    return profile


@router.get("/leaderboard", response_model=List[LeaderboardEntry])
async def get_leaderboard(
    limit: Optional[int] = Query(None, ge=1, le=100, description="Defaults to LEADERBOARD_SIZE"),
    service: SticksService = Depends(get_sticks_service),
):
    return service.leaderboard(limit or settings.LEADERBOARD_SIZE)
