"""
Post endpoints - submission and retrieval of user posts.
"""

from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
import logging

from civichub.core.deps import get_author_id, get_post_service
from civichub.models.post import PostCreate, PostResponse, PostSubmissionResponse
from civichub.services.post_service import PostService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/posts", tags=["Posts"])


@router.post("", status_code=status.HTTP_201_CREATED, response_model=PostSubmissionResponse)
async def submit_post(
    post: PostCreate,
    author_id: str = Depends(get_author_id),
    service: PostService = Depends(get_post_service),
):
    """
    Submit a new post.

    This endpoint:
    1. Classifies the post into a civic department (or rejects it)
    2. Merges it into a matching open issue, or opens a new one
    3. Updates the poster's points and streak

    A rejected post is still stored (outcome "rejected"); that is not an error.
    """
    logger.info(f"📝 POST /posts - author={author_id}")
    return service.submit_post(author_id, post)


@router.get("", response_model=List[PostResponse])
async def list_posts(
    author_id: Optional[str] = Query(None, description="Only this author's posts"),
    limit: int = Query(50, ge=1, le=100),
    service: PostService = Depends(get_post_service),
):
    return service.list_posts(author_id=author_id, limit=limit)


@router.get("/{post_id}", response_model=PostResponse)
async def get_post(post_id: str, service: PostService = Depends(get_post_service)):
    post = service.get_post(post_id)
    if post is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Post {post_id} not found"
        )
    return post
