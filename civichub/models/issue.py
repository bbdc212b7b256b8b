"""
Pydantic models for civic issues.
An issue aggregates one or more posts that describe the same real-world problem.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List, Dict
from enum import Enum


class Department(str, Enum):
    """Fixed classification taxonomy for civic issues."""
    PWD = "pwd"
    WATER = "water"
    SWM = "swm"
    TRAFFIC = "traffic"
    HEALTH = "health"
    ENVIRONMENT = "environment"
    ELECTRICITY = "electricity"
    DISASTER = "disaster"


class Priority(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"


# Display name and default priority per department
DEPARTMENTS: Dict[Department, Dict[str, str]] = {
    Department.PWD: {"name": "Public Works Department", "priority": Priority.HIGH.value},
    Department.WATER: {"name": "Water Supply & Sewage", "priority": Priority.HIGH.value},
    Department.SWM: {"name": "Solid Waste Management", "priority": Priority.MEDIUM.value},
    Department.TRAFFIC: {"name": "Traffic Police / Transport", "priority": Priority.HIGH.value},
    Department.HEALTH: {"name": "Health & Sanitation", "priority": Priority.HIGH.value},
    Department.ENVIRONMENT: {"name": "Environment & Parks", "priority": Priority.MEDIUM.value},
    Department.ELECTRICITY: {"name": "Electricity Department", "priority": Priority.HIGH.value},
    Department.DISASTER: {"name": "Disaster Management", "priority": Priority.CRITICAL.value},
}


class AssignedPersonnel(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    department: Optional[str] = Field(None, max_length=100)
    contact: Optional[str] = Field(None, max_length=100)


class UpdateHistoryEntry(BaseModel):
    """One line of an issue's append-only audit log."""
    status: str = Field(..., description="New status, or 'duplicate_report' for merges")
    timestamp: datetime
    updated_by: str
    post_id: Optional[str] = Field(None, description="Merged post (duplicate_report entries only)")


class IssueResponse(BaseModel):
    id: str = Field(..., description="Firestore document ID")
    department: Department
    category: str = Field(..., description="Department display name")
    priority: str
    summary: str
    status: str
    geo_data: Optional[Dict] = None
    post_id: Optional[str] = Field(None, description="Founding post")
    related_posts: List[str] = Field(default_factory=list)
    report_count: int = Field(default=1, ge=1)
    update_history: List[UpdateHistoryEntry] = Field(default_factory=list)
    reported_at: Optional[datetime] = None
    last_reported: Optional[datetime] = None
    last_updated: Optional[datetime] = None
    assigned_personnel: Optional[AssignedPersonnel] = None
    assigned_at: Optional[datetime] = None
    eta: Optional[str] = None

    class Config:
        extra = "ignore"


class StatusUpdateRequest(BaseModel):
    """
    Request to move an issue through its workflow.
    assigned_personnel and eta are only applied on a transition to "assign".
    """
    status: str = Field(..., description="working | assign | at progress | resolved | escalated")
    actor: str = Field(..., min_length=1, max_length=100, description="Who is making the change")
    assigned_personnel: Optional[AssignedPersonnel] = None
    eta: Optional[str] = Field(None, max_length=100, description="Expected resolution time")

    class Config:
        json_schema_extra = {
            "example": {
                "status": "assign",
                "actor": "ward-officer-12",
                "assigned_personnel": {"name": "R. Patil", "department": "Water Supply & Sewage"},
                "eta": "2 days",
            }
        }


class TransitionsResponse(BaseModel):
    issue_id: str
    status: str
    allowed_transitions: List[str]


class DepartmentInfo(BaseModel):
    id: Department
    name: str
    default_priority: str


class DepartmentStats(BaseModel):
    department: Department
    name: str
    total: int = 0
    open: int = 0
    resolved: int = 0
    escalated: int = 0
    score: int = 0
    rank: int = 0
