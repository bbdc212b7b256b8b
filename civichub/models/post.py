"""
Pydantic models for user posts.
These models handle validation for post submission and responses.
"""

from pydantic import BaseModel, Field, field_validator, model_validator
from datetime import datetime
from typing import Optional, List, Dict
from enum import Enum

from civichub.models.sticks import UserSticksResponse


class PostStatus(str, Enum):
    REJECTED = "rejected"   # Not a civic issue, no Issue attached
    WORKING = "working"     # Accepted, always attached to an Issue


class SubmissionOutcome(str, Enum):
    REJECTED = "rejected"
    CREATED_ISSUE = "created_issue"
    MERGED = "merged"


class GeoDataIn(BaseModel):
    """
    Location resolved on the client.
    Fields are loose on purpose: a partial location is accepted and then
    treated as absent by the post service.
    """
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    city: Optional[str] = Field(None, max_length=100)
    region: Optional[str] = Field(None, max_length=100)
    country: Optional[str] = Field(None, max_length=100)
    address: Optional[str] = Field(None, max_length=500)


class PostCreate(BaseModel):
    """Model for creating a new post (incoming POST request)."""
    description: str = Field("", max_length=2000, description="What the user observed")
    image_data: Optional[str] = Field(None, description="Image data URI or storage URL")
    tags: List[str] = Field(default_factory=list, max_length=20)
    geo_data: Optional[GeoDataIn] = None

    @field_validator("tags")
    @classmethod
    def normalize_tags(cls, tags: List[str]) -> List[str]:
        cleaned = []
        for tag in tags:
            tag = tag.strip()
            if tag:
                cleaned.append(tag if tag.startswith("#") else f"#{tag}")
        return cleaned

    @model_validator(mode="after")
    def require_content(self):
        if not self.description.strip() and not self.image_data:
            raise ValueError("Please add a description or image")
        return self

    class Config:
        json_schema_extra = {
            "example": {
                "description": "Water pipe burst near the bus stop, road flooded",
                "tags": ["#water"],
                "geo_data": {
                    "latitude": 18.5074,
                    "longitude": 73.8077,
                    "city": "Pune",
                    "region": "Maharashtra",
                    "country": "India",
                    "address": "Kothrud Bus Stop",
                },
            }
        }


class PostResponse(BaseModel):
    id: str = Field(..., description="Firestore document ID")
    author_id: str
    description: str
    image_ref: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    geo_data: Optional[Dict] = None
    created_at: Optional[datetime] = None
    status: PostStatus
    ai_category: str
    ai_priority: str
    ai_summary: str
    issue_id: Optional[str] = None

    class Config:
        extra = "ignore"


class PostSubmissionResponse(BaseModel):
    """
    Result of one submission.
    sticks is None for rejected posts and when the streak update failed after
    the post was already stored.
    """
    outcome: SubmissionOutcome
    post: PostResponse
    issue_id: Optional[str] = None
    sticks: Optional[UserSticksResponse] = None
