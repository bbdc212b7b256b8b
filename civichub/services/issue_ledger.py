"""
Issue Ledger - owns issue creation, merging and status transitions.

DESIGN NOTES:
- create/merge can be staged into a caller-owned write batch so that the
  post and its issue commit together or not at all
- Merges use Firestore's atomic ArrayUnion / Increment, never a
  read-modify-write of related_posts or report_count
- summary, priority, geo_data and status are never touched by a merge
- The dedup scan reads and the create/merge writes are NOT one transaction:
  two simultaneous first reports for the same spot can each open an issue
- Status transitions are a compare-and-swap on the document's update_time,
  so two concurrent changes are never both validated against the same status
"""

from firebase_admin import firestore
from google.api_core.exceptions import FailedPrecondition
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional
import logging

from civichub.config.firebase import get_db
from civichub.core.exceptions import IssueNotFound, StoreReadFailure, StoreWriteFailure
from civichub.models.issue import DEPARTMENTS, Department
from civichub.services.status_workflow import (
    DUPLICATE_REPORT,
    SYSTEM_ACTOR,
    IssueStatus,
    IssueWorkflowEngine,
)
from civichub.utils.firestore_helpers import parse_timestamp, snapshot_to_dict, where_filter

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class IssueLedger:
    """Firestore-backed issue lifecycle."""

    COLLECTION = "issues"
    MAX_TRANSITION_ATTEMPTS = 3

    def __init__(self, db=None, clock: Callable[[], datetime] = utc_now):
        self.db = db if db is not None else get_db()
        self.clock = clock
        self.workflow = IssueWorkflowEngine()

    def issue_ref(self, issue_id: Optional[str] = None):
        return self.db.collection(self.COLLECTION).document(issue_id)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_issue(self, issue_id: str) -> Optional[Dict]:
        try:
            return snapshot_to_dict(self.issue_ref(issue_id).get())
        except Exception as e:
            logger.error(f"Failed to read issue {issue_id}: {e}", exc_info=True)
            raise StoreReadFailure(f"Failed to read issue {issue_id}") from e

    def list_open_issues(self, department: str) -> List[Dict]:
        """
        All unresolved issues of a department, earliest reported first.
        This is the duplicate-detection scan.
        """
        try:
            query = where_filter(self.db.collection(self.COLLECTION), "department", "==", department)
            issues = [snapshot_to_dict(doc) for doc in query.stream()]
        except Exception as e:
            logger.error(f"Failed to scan open issues for {department}: {e}", exc_info=True)
            raise StoreReadFailure(f"Failed to scan open issues for {department}") from e

        open_issues = [issue for issue in issues if self.workflow.is_open(issue.get("status"))]
        open_issues.sort(key=lambda issue: (
            parse_timestamp(issue.get("reported_at")) or datetime.max.replace(tzinfo=timezone.utc),
            issue["id"],
        ))
        return open_issues

    def list_issues(
        self,
        department: Optional[str] = None,
        status: Optional[str] = None,
        limit: Optional[int] = 50
    ) -> List[Dict]:
        """Issues newest first, optionally filtered by department and status."""
        try:
            query = self.db.collection(self.COLLECTION)
            if department:
                query = where_filter(query, "department", "==", department)
            if status:
                query = where_filter(query, "status", "==", status)
            issues = [snapshot_to_dict(doc) for doc in query.stream()]
        except Exception as e:
            logger.error(f"Failed to list issues: {e}", exc_info=True)
            raise StoreReadFailure("Failed to list issues") from e

        issues.sort(
            key=lambda issue: parse_timestamp(issue.get("reported_at")) or datetime.min.replace(tzinfo=timezone.utc),
            reverse=True,
        )
        return issues[:limit] if limit else issues

    def allowed_transitions(self, issue_id: str) -> List[str]:
        issue = self.get_issue(issue_id)
        if issue is None:
            raise IssueNotFound(issue_id)
        return self.workflow.get_allowed_transitions(issue.get("status", ""))

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def build_issue(self, post: Dict, classification: Dict, now: datetime) -> Dict:
        """
        Issue document for a post that duplicates nothing.

        Args:
            post: Post dict, must carry "id" and "geo_data"
            classification: Accepted classification (department, priority, summary)
            now: Creation moment
        """
        department = Department(classification["department"])
        return {
            "post_id": post["id"],
            "department": department.value,
            "category": classification.get("category") or DEPARTMENTS[department]["name"],
            "priority": classification["priority"],
            "summary": classification["summary"],
            "status": IssueStatus.WORKING.value,
            "geo_data": post.get("geo_data"),
            "reported_at": now,
            "last_reported": now,
            "last_updated": now,
            "assigned_at": None,
            "assigned_personnel": None,
            "eta": None,
            "update_history": [
                self.workflow.create_history_entry(IssueStatus.WORKING.value, SYSTEM_ACTOR, now)
            ],
            "related_posts": [post["id"]],
            "report_count": 1,
        }

    def create_issue(self, post: Dict, classification: Dict, batch=None, now: Optional[datetime] = None) -> Dict:
        """
        Create a new issue for a post.

        With a batch the write is only staged; the caller commits it.

        Returns:
            The issue dict including its generated "id"
        """
        now = now or self.clock()
        ref = self.issue_ref()
        issue = self.build_issue(post, classification, now)

        if batch is not None:
            batch.set(ref, issue)
        else:
            try:
                ref.set(issue)
            except Exception as e:
                logger.error(f"Failed to create issue for post {post['id']}: {e}", exc_info=True)
                raise StoreWriteFailure(f"Failed to create issue for post {post['id']}") from e

        logger.info(f"Issue {ref.id} {'staged' if batch is not None else 'created'} for post {post['id']} ({issue['department']})")
        return {"id": ref.id, **issue}

    def merge_into_issue(self, issue_id: str, post: Dict, batch=None, now: Optional[datetime] = None) -> None:
        """Attach a duplicate post to an existing issue."""
        now = now or self.clock()
        updates = {
            "related_posts": firestore.ArrayUnion([post["id"]]),
            "report_count": firestore.Increment(1),
            "last_reported": now,
            "update_history": firestore.ArrayUnion([
                self.workflow.create_history_entry(DUPLICATE_REPORT, SYSTEM_ACTOR, now, post_id=post["id"])
            ]),
        }
        ref = self.issue_ref(issue_id)

        if batch is not None:
            batch.update(ref, updates)
        else:
            try:
                ref.update(updates)
            except Exception as e:
                logger.error(f"Failed to merge post {post['id']} into issue {issue_id}: {e}", exc_info=True)
                raise StoreWriteFailure(f"Failed to merge post {post['id']} into issue {issue_id}") from e

        logger.info(f"Post {post['id']} {'staged for merge' if batch is not None else 'merged'} into issue {issue_id}")

    def transition_status(
        self,
        issue_id: str,
        new_status: str,
        actor: str,
        extra: Optional[Dict] = None,
        now: Optional[datetime] = None
    ) -> Dict:
        """
        Move an issue to a new status.

        Args:
            issue_id: Issue to change
            new_status: Target status
            actor: Who made the change (recorded in update_history)
            extra: For "assign": {"assigned_personnel": {...}, "eta": "..."}

        Returns:
            The updated issue dict

        Raises:
            IssueNotFound: Unknown issue
            IllegalStatusTransition: Workflow does not allow the change
            StoreWriteFailure: The write failed, or the issue kept changing
                under us for MAX_TRANSITION_ATTEMPTS attempts
        """
        now = now or self.clock()
        updates = self._status_updates(new_status, actor, extra, now)
        ref = self.issue_ref(issue_id)

        for _ in range(self.MAX_TRANSITION_ATTEMPTS):
            try:
                snapshot = ref.get()
            except Exception as e:
                logger.error(f"Failed to read issue {issue_id}: {e}", exc_info=True)
                raise StoreReadFailure(f"Failed to read issue {issue_id}") from e
            if not snapshot.exists:
                raise IssueNotFound(issue_id)

            current_status = (snapshot.to_dict() or {}).get("status", "")
            self.workflow.validate_transition(current_status, new_status)

            # Compare-and-swap on update_time: a concurrent change forces a re-validation
            option = self.db.write_option(last_update_time=snapshot.update_time)
            try:
                ref.update(updates, option=option)
            except FailedPrecondition:
                logger.warning(f"⚠️ Issue {issue_id} changed during {current_status} → {new_status}, re-checking")
                continue
            except Exception as e:
                logger.error(f"Failed to update status of issue {issue_id}: {e}", exc_info=True)
                raise StoreWriteFailure(f"Failed to update status of issue {issue_id}") from e

            logger.info(f"Issue {issue_id}: {current_status} → {new_status} by {actor}")
            return self.get_issue(issue_id)

        raise StoreWriteFailure(f"Issue {issue_id} kept changing, status update to {new_status} not applied")

    def _status_updates(self, new_status: str, actor: str, extra: Optional[Dict], now: datetime) -> Dict:
        updates = {
            "status": new_status,
            "last_updated": now,
            "update_history": firestore.ArrayUnion([
                self.workflow.create_history_entry(new_status, actor, now)
            ]),
        }
        if new_status == IssueStatus.ASSIGN.value:
            extra = extra or {}
            updates["assigned_at"] = now
            updates["assigned_personnel"] = extra.get("assigned_personnel")
            if extra.get("eta"):
                updates["eta"] = extra["eta"]
        return updates
