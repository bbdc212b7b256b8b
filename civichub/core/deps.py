"""
FastAPI dependencies.

Store-bound services are built per request on top of the shared Firestore
client, so each request gets its own user cache. Tests swap these out with
app.dependency_overrides.
"""

from typing import Optional

from fastapi import Depends, Header, HTTPException, status

from civichub.config.firebase import get_db
from civichub.services.issue_ledger import IssueLedger
from civichub.services.post_service import PostService
from civichub.services.sticks_service import SticksService
from civichub.services.user_directory import RequestCache, UserDirectory


def get_firestore():
    return get_db()


def get_issue_ledger(db=Depends(get_firestore)) -> IssueLedger:
    return IssueLedger(db)


def get_sticks_service(db=Depends(get_firestore)) -> SticksService:
    return SticksService(db, users=UserDirectory(db, cache=RequestCache()))


def get_post_service(
    db=Depends(get_firestore),
    ledger: IssueLedger = Depends(get_issue_ledger),
    sticks: SticksService = Depends(get_sticks_service),
) -> PostService:
    return PostService(db, ledger=ledger, sticks=sticks)


def get_author_id(user_id: Optional[str] = Header(None, alias="X-User-ID")) -> str:
    """Caller identity. Authentication is outside this service; the header is trusted."""
    if not user_id or not user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-User-ID header is required"
        )
    return user_id.strip()
