"""
Duplicate Resolver - decides whether a new post reports an already open issue.

DESIGN PRINCIPLES:
- Pure decision function over an already-fetched list of issues (no I/O)
- No geo, no dedup: a post without usable coordinates always opens a new issue
- Never merges across departments or into resolved issues
- Deterministic scan order: earliest reported issue wins
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Tuple
import logging

from civichub.core.exceptions import MalformedGeoData
from civichub.services.status_workflow import IssueWorkflowEngine
from civichub.utils.firestore_helpers import parse_timestamp
from civichub.utils.geo import coerce_geo, planar_distance_meters

logger = logging.getLogger(__name__)

_LATEST = datetime.max.replace(tzinfo=timezone.utc)


@dataclass
class DuplicateCandidate:
    """The parts of a classified post the resolver looks at."""
    description: str
    geo_data: Optional[Dict]
    department: str


def tokenize(text: Optional[str]) -> List[str]:
    if not isinstance(text, str):
        return []
    return text.lower().split()


def text_similarity(text1: Optional[str], text2: Optional[str]) -> float:
    """
    Word-overlap similarity between 0.0 and 1.0.

    Counts the tokens of text1 that also occur in text2 and divides by the
    longer token list (not the union). Two empty texts score 0.0.
    """
    words1 = tokenize(text1)
    words2 = tokenize(text2)

    longest = max(len(words1), len(words2))
    if longest == 0:
        return 0.0

    vocabulary = set(words2)
    common = [word for word in words1 if word in vocabulary]
    return len(common) / longest


class DuplicateResolver:
    """
    Matches a classified post against open issues.

    A match needs all of:
    1. Same department
    2. Issue not resolved
    3. Within DISTANCE_THRESHOLD_METERS (flat-earth distance)
    4. Text similarity strictly above SIMILARITY_THRESHOLD
    """

    DISTANCE_THRESHOLD_METERS = 5.0
    SIMILARITY_THRESHOLD = 0.3
    # Absorbs float noise from the degree → meter conversion at the boundary
    DISTANCE_TOLERANCE_METERS = 1e-6

    def __init__(
        self,
        distance_threshold_meters: Optional[float] = None,
        similarity_threshold: Optional[float] = None
    ):
        if distance_threshold_meters is not None:
            self.DISTANCE_THRESHOLD_METERS = distance_threshold_meters
        if similarity_threshold is not None:
            self.SIMILARITY_THRESHOLD = similarity_threshold

    @staticmethod
    def scan_order(issues: Iterable[Dict]) -> List[Dict]:
        """Earliest reported_at first, ties by id; undated issues last."""
        def key(issue: Dict) -> Tuple[datetime, str]:
            reported_at = parse_timestamp(issue.get("reported_at")) or _LATEST
            return reported_at, str(issue.get("id", ""))
        return sorted(issues, key=key)

    def find_duplicate(self, candidate: DuplicateCandidate, open_issues: Iterable[Dict]) -> Optional[str]:
        """
        Return the id of the issue this candidate duplicates, or None.

        Args:
            candidate: Description, geo and department of the new post
            open_issues: Issue dicts (with "id"), as fetched from the store

        Returns:
            Issue id of the first matching issue in scan order, or None
        """
        try:
            candidate_geo = coerce_geo(candidate.geo_data)
        except MalformedGeoData as e:
            logger.warning(f"⚠️ Candidate geo is malformed, skipping dedup: {e}")
            return None

        if candidate_geo is None:
            logger.debug("Candidate has no geo data, skipping dedup")
            return None

        eligible = [
            issue for issue in open_issues
            if issue.get("department") == candidate.department
            and IssueWorkflowEngine.is_open(issue.get("status"))
        ]

        for issue in self.scan_order(eligible):
            issue_id = issue.get("id")
            summary = issue.get("summary")
            if not isinstance(summary, str):
                logger.debug(f"Issue {issue_id} has no usable summary, skipping")
                continue

            try:
                issue_geo = coerce_geo(issue.get("geo_data"))
            except MalformedGeoData:
                logger.debug(f"Issue {issue_id} has malformed geo, skipping")
                continue
            if issue_geo is None:
                continue

            distance = planar_distance_meters(
                candidate_geo["latitude"], candidate_geo["longitude"],
                issue_geo["latitude"], issue_geo["longitude"]
            )
            if distance > self.DISTANCE_THRESHOLD_METERS + self.DISTANCE_TOLERANCE_METERS:
                continue

            similarity = text_similarity(candidate.description, summary)
            if similarity > self.SIMILARITY_THRESHOLD:
                logger.info(
                    f"Duplicate issue found: {issue_id} "
                    f"(distance={distance:.2f}m, similarity={similarity:.2f})"
                )
                return issue_id

        return None


# Global resolver instance (stateless)
_resolver: Optional[DuplicateResolver] = None


def get_duplicate_resolver() -> DuplicateResolver:
    global _resolver
    if _resolver is None:
        _resolver = DuplicateResolver()
    return _resolver
