"""
Issue Status Workflow - strict state machine.

DESIGN PRINCIPLES:
- No skipping states
- No backward transitions
- "resolved" is terminal; a new report in the same place opens a new issue
- "escalated" can be reached from any open state and only leaves to "resolved"
- Invalid transitions rejected programmatically, issue left unchanged
"""

from enum import Enum
from datetime import datetime
from typing import Dict, List, Optional

from civichub.core.exceptions import IllegalStatusTransition


class IssueStatus(str, Enum):
    """
    Issue lifecycle:
    WORKING → ASSIGN → AT_PROGRESS → RESOLVED, with ESCALATED on the side.
    """
    WORKING = "working"            # Initial state, awaiting assignment
    ASSIGN = "assign"              # Personnel assigned
    AT_PROGRESS = "at progress"    # Work started
    RESOLVED = "resolved"          # Terminal
    ESCALATED = "escalated"        # Pending external resolution


# History marker for merged reports. Not a status.
DUPLICATE_REPORT = "duplicate_report"
SYSTEM_ACTOR = "System"


class IssueWorkflowEngine:
    """
    Strict state machine for issue status transitions.
    """

    ALLOWED_TRANSITIONS: Dict[IssueStatus, List[IssueStatus]] = {
        IssueStatus.WORKING: [IssueStatus.ASSIGN, IssueStatus.ESCALATED],
        IssueStatus.ASSIGN: [IssueStatus.AT_PROGRESS, IssueStatus.ESCALATED],
        IssueStatus.AT_PROGRESS: [IssueStatus.RESOLVED, IssueStatus.ESCALATED],
        IssueStatus.ESCALATED: [IssueStatus.RESOLVED],
        IssueStatus.RESOLVED: [],  # Terminal state, no transitions allowed
    }

    @classmethod
    def is_valid_transition(cls, from_status: str, to_status: str) -> bool:
        """
        Check if a status transition is valid.
        Unknown status values and same-status "transitions" are invalid.
        """
        try:
            from_enum = IssueStatus(from_status)
            to_enum = IssueStatus(to_status)
        except ValueError:
            return False

        return to_enum in cls.ALLOWED_TRANSITIONS.get(from_enum, [])

    @classmethod
    def get_allowed_transitions(cls, current_status: str) -> List[str]:
        try:
            current_enum = IssueStatus(current_status)
        except ValueError:
            return []
        return [status.value for status in cls.ALLOWED_TRANSITIONS.get(current_enum, [])]

    @classmethod
    def is_open(cls, status: Optional[str]) -> bool:
        return status != IssueStatus.RESOLVED.value

    @classmethod
    def create_history_entry(
        cls,
        status: str,
        updated_by: str,
        timestamp: datetime,
        post_id: Optional[str] = None
    ) -> Dict:
        """
        Create an update_history entry for the issue audit trail.

        The timestamp is a concrete datetime: Firestore does not allow
        SERVER_TIMESTAMP inside array elements.
        """
        entry = {
            "status": status,
            "timestamp": timestamp,
            "updated_by": updated_by,
        }
        if post_id:
            entry["post_id"] = post_id
        return entry

    @classmethod
    def validate_transition(cls, current_status: str, new_status: str) -> None:
        """
        Raises:
            IllegalStatusTransition: If the workflow does not allow the change
        """
        if not cls.is_valid_transition(current_status, new_status):
            raise IllegalStatusTransition(
                current_status,
                new_status,
                cls.get_allowed_transitions(current_status),
            )
