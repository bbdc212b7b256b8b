"""
Error taxonomy for Civic Hub.

Routes translate these into HTTP status codes; services raise them so the
caller can tell a business outcome (rejection) from a store fault.
"""

from typing import List, Optional


class CivicHubError(Exception):
    """Base class for all service-level errors."""


class ClassificationRejected(CivicHubError):
    """
    The classification oracle declined the post, or its answer could not be
    used (unparseable, unknown department).

    Not a fault: the post is still stored with status "rejected".
    """

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class StoreReadFailure(CivicHubError):
    """Reading from Firestore failed."""


class StoreWriteFailure(CivicHubError):
    """Writing to Firestore failed. Nothing from the attempted batch persisted."""


class IssueNotFound(CivicHubError, LookupError):
    def __init__(self, issue_id: str):
        super().__init__(f"Issue {issue_id} not found")
        self.issue_id = issue_id


class IllegalStatusTransition(CivicHubError, ValueError):
    """An issue status change that the workflow does not allow."""

    def __init__(self, current_status: str, new_status: str, allowed: Optional[List[str]] = None):
        self.current_status = current_status
        self.new_status = new_status
        self.allowed = allowed or []
        super().__init__(
            f"Invalid status transition: {current_status} → {new_status}. "
            f"Allowed transitions from {current_status}: {self.allowed}"
        )


class MalformedGeoData(CivicHubError, ValueError):
    """Partial or non-numeric coordinates."""
