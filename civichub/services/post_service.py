"""
Post service - one submission from classification to streak update.

Flow:
1. Classify the post (external oracle, advisory: failure means rejection)
2. Rejected → store the post as "rejected", no issue, no streak update
3. Accepted → scan open issues of the department and resolve duplicates
4. Write post + issue create-or-merge + user post_count in ONE batch
5. Update the poster's sticks record

IMPORTANT: Steps 3-4 fail as a whole. A store fault there leaves nothing
behind. Step 5 runs after the post is durable; if it fails the post stands
and the caller gets no sticks in the result.
"""

from firebase_admin import firestore
from datetime import datetime
from typing import Callable, Dict, List, Optional
import logging

from civichub.config.firebase import get_db
from civichub.core.exceptions import StoreReadFailure, StoreWriteFailure
from civichub.models.post import PostCreate, PostStatus, SubmissionOutcome
from civichub.services.classifier import ClassificationResult, ClassifierProvider, get_classifier
from civichub.services.duplicate_resolver import DuplicateCandidate, DuplicateResolver, get_duplicate_resolver
from civichub.services.issue_ledger import IssueLedger, utc_now
from civichub.services.sticks_service import SticksService
from civichub.utils.firestore_helpers import snapshot_to_dict, where_filter
from civichub.utils.geo import normalize_geo

logger = logging.getLogger(__name__)


class PostService:
    COLLECTION = "posts"
    USERS_COLLECTION = "users"

    def __init__(
        self,
        db=None,
        ledger: Optional[IssueLedger] = None,
        resolver: Optional[DuplicateResolver] = None,
        sticks: Optional[SticksService] = None,
        classifier: Optional[ClassifierProvider] = None,
        clock: Callable[[], datetime] = utc_now
    ):
        self.db = db if db is not None else get_db()
        self.clock = clock
        self.ledger = ledger or IssueLedger(self.db, clock=clock)
        self.resolver = resolver or get_duplicate_resolver()
        self.sticks = sticks or SticksService(self.db)
        self.classifier = classifier or get_classifier()

    def submit_post(
        self,
        author_id: str,
        submission: PostCreate,
        classification: Optional[ClassificationResult] = None
    ) -> Dict:
        """
        Store a post and attach it to a new or existing issue.

        Args:
            author_id: Posting user
            submission: Validated post data
            classification: Pre-computed classification; the configured
                classifier is called when omitted

        Returns:
            Dict with outcome, post, issue_id and sticks

        Raises:
            StoreReadFailure: The duplicate scan could not read issues
            StoreWriteFailure: The post batch could not be committed
        """
        now = self.clock()
        if classification is None:
            classification = self.classifier.classify(submission.description, submission.image_data)

        geo_data = normalize_geo(submission.geo_data.model_dump() if submission.geo_data else None)

        post_ref = self.db.collection(self.COLLECTION).document()
        post = {
            "author_id": author_id,
            "description": submission.description,
            "image_ref": submission.image_data,
            "tags": submission.tags,
            "geo_data": geo_data,
            "created_at": firestore.SERVER_TIMESTAMP,
            "status": PostStatus.WORKING.value,
            "ai_category": classification.category,
            "ai_priority": classification.priority,
            "ai_summary": classification.summary,
            "issue_id": None,
        }
        batch = self.db.batch()

        if not classification.accepted:
            post["status"] = PostStatus.REJECTED.value
            batch.set(post_ref, post)
            self._count_post(batch, author_id)
            self._commit(batch, post_ref.id)
            logger.warning(f"⚠️ Post {post_ref.id} stored but not categorized: {classification.summary}")
            return {
                "outcome": SubmissionOutcome.REJECTED.value,
                "post": self.get_post(post_ref.id),
                "issue_id": None,
                "sticks": None,
            }

        duplicate_issue_id = None
        if geo_data is not None:
            open_issues = self.ledger.list_open_issues(classification.department)
            candidate = DuplicateCandidate(
                description=submission.description,
                geo_data=geo_data,
                department=classification.department,
            )
            duplicate_issue_id = self.resolver.find_duplicate(candidate, open_issues)

        staged_post = {"id": post_ref.id, **post}
        if duplicate_issue_id:
            self.ledger.merge_into_issue(duplicate_issue_id, staged_post, batch=batch, now=now)
            issue_id = duplicate_issue_id
            outcome = SubmissionOutcome.MERGED
        else:
            issue = self.ledger.create_issue(staged_post, classification.to_dict(), batch=batch, now=now)
            issue_id = issue["id"]
            outcome = SubmissionOutcome.CREATED_ISSUE

        post["issue_id"] = issue_id
        batch.set(post_ref, post)
        self._count_post(batch, author_id)
        self._commit(batch, post_ref.id)
        logger.info(f"✅ Post {post_ref.id} saved ({outcome.value}, issue {issue_id})")

        sticks = None
        try:
            sticks = self.sticks.record_post(author_id, now)
        except Exception as e:
            logger.error(f"⚠️ Post {post_ref.id} saved but sticks update failed for {author_id}: {e}", exc_info=True)

        return {
            "outcome": outcome.value,
            "post": self.get_post(post_ref.id),
            "issue_id": issue_id,
            "sticks": sticks,
        }

    def _count_post(self, batch, author_id: str) -> None:
        user_ref = self.db.collection(self.USERS_COLLECTION).document(author_id)
        batch.set(user_ref, {"post_count": firestore.Increment(1)}, merge=True)

    def _commit(self, batch, post_id: str) -> None:
        try:
            batch.commit()
        except Exception as e:
            logger.error(f"Failed to save post {post_id}: {e}", exc_info=True)
            raise StoreWriteFailure(f"Failed to save post {post_id}") from e

    def get_post(self, post_id: str) -> Optional[Dict]:
        try:
            return snapshot_to_dict(self.db.collection(self.COLLECTION).document(post_id).get())
        except Exception as e:
            logger.error(f"Failed to read post {post_id}: {e}", exc_info=True)
            raise StoreReadFailure(f"Failed to read post {post_id}") from e

    def list_posts(self, author_id: Optional[str] = None, limit: int = 50) -> List[Dict]:
        """Posts newest first, optionally only one author's."""
        try:
            query = self.db.collection(self.COLLECTION)
            if author_id:
                query = where_filter(query, "author_id", "==", author_id)
            query = query.order_by("created_at", direction=firestore.Query.DESCENDING).limit(limit)
            return [snapshot_to_dict(doc) for doc in query.stream()]
        except Exception as e:
            logger.error(f"Failed to list posts: {e}", exc_info=True)
            raise StoreReadFailure("Failed to list posts") from e
