"""
Sticks Service - persistence around the streak engine, plus the leaderboard.

The read-modify-write of a user's record is serialized per uid with an
in-process lock, so two posts by the same user cannot lose an update inside
one server process.
"""

from firebase_admin import firestore
from datetime import datetime, timezone
from typing import Dict, List, Optional
import logging
import threading
import weakref

from civichub.config.firebase import get_db
from civichub.core.exceptions import StoreReadFailure, StoreWriteFailure
from civichub.services.streak_engine import StreakEngine, get_streak_engine, level_for, level_progress
from civichub.services.user_directory import UserDirectory
from civichub.utils.firestore_helpers import snapshot_to_dict

logger = logging.getLogger(__name__)


class UserLockRegistry:
    """
    One lock per uid, created on first use.
    Entries drop out once nothing references the lock any more, so the map stays as
    small as the set of users currently posting.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: "weakref.WeakValueDictionary[str, threading.Lock]" = weakref.WeakValueDictionary()

    def __len__(self) -> int:
        return len(self._locks)

    def lock_for(self, uid: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(uid)
            if lock is None:
                lock = threading.Lock()
                self._locks[uid] = lock
            return lock


_user_locks = UserLockRegistry()


class SticksService:
    COLLECTION = "user_sticks"

    def __init__(
        self,
        db=None,
        engine: Optional[StreakEngine] = None,
        locks: Optional[UserLockRegistry] = None,
        users: Optional[UserDirectory] = None
    ):
        self.db = db if db is not None else get_db()
        self.engine = engine or get_streak_engine()
        self.locks = locks or _user_locks
        self.users = users or UserDirectory(self.db)

    def _ref(self, uid: str):
        return self.db.collection(self.COLLECTION).document(uid)

    def get_sticks(self, uid: str) -> Optional[Dict]:
        try:
            record = snapshot_to_dict(self._ref(uid).get())
        except Exception as e:
            logger.error(f"Failed to read sticks for {uid}: {e}", exc_info=True)
            raise StoreReadFailure(f"Failed to read sticks for {uid}") from e
        if record is not None:
            record.pop("id", None)
        return record

    def record_post(self, uid: str, now: Optional[datetime] = None) -> Dict:
        """
        Apply one accepted post to the user's record and store it.

        Returns:
            The stored record
        """
        now = now or datetime.now(timezone.utc)
        with self.locks.lock_for(uid):
            current = self.get_sticks(uid)
            updated = self.engine.apply_post(uid, now, current)
            try:
                self._ref(uid).set(updated)
            except Exception as e:
                logger.error(f"Failed to write sticks for {uid}: {e}", exc_info=True)
                raise StoreWriteFailure(f"Failed to write sticks for {uid}") from e
        return updated

    def profile(self, uid: str) -> Optional[Dict]:
        """Record plus display progress computed from points, not from the stored level."""
        record = self.get_sticks(uid)
        if record is None:
            return None
        return {"sticks": record, "progress": level_progress(record.get("points", 0))}

    def leaderboard(self, limit: int = 10) -> List[Dict]:
        try:
            query = self.db.collection(self.COLLECTION).order_by(
                "points", direction=firestore.Query.DESCENDING
            ).limit(limit)
            records = [doc.to_dict() for doc in query.stream()]
        except Exception as e:
            logger.error(f"Failed to read leaderboard: {e}", exc_info=True)
            raise StoreReadFailure("Failed to read leaderboard") from e

        entries = []
        for rank, record in enumerate(records, start=1):
            uid = record.get("uid")
            user = self.users.get_user(uid) or {}
            points = record.get("points", 0)
            entries.append({
                "rank": rank,
                "uid": uid,
                "display_name": self.users.display_name(uid),
                "photo_url": user.get("photo_url"),
                "points": points,
                "level": level_for(points),
                "badge": record.get("badge", ""),
                "current_streak": record.get("current_streak", 0),
            })
        return entries
