"""
User Directory - read-only access to user profile documents.

Lookups go through an injected cache object instead of module state. The
default RequestCache never evicts and is meant to live for one request;
routes create a fresh directory per request.
"""

from typing import Dict, Hashable, Optional
import logging

from civichub.config.firebase import get_db
from civichub.core.exceptions import StoreReadFailure
from civichub.utils.firestore_helpers import snapshot_to_dict

logger = logging.getLogger(__name__)

_MISS = object()


class RequestCache:
    """Plain dict cache. No eviction within its lifetime; drop the object to invalidate."""

    def __init__(self):
        self._entries: Dict[Hashable, object] = {}

    def get(self, key: Hashable, default=_MISS):
        return self._entries.get(key, default)

    def set(self, key: Hashable, value) -> None:
        self._entries[key] = value

    def invalidate(self, key: Hashable) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()


class UserDirectory:
    COLLECTION = "users"

    def __init__(self, db=None, cache: Optional[RequestCache] = None):
        self.db = db if db is not None else get_db()
        self.cache = cache if cache is not None else RequestCache()

    def get_user(self, uid: str) -> Optional[Dict]:
        """User profile dict, or None if there is no profile document."""
        cached = self.cache.get(uid)
        if cached is not _MISS:
            return cached

        try:
            user = snapshot_to_dict(self.db.collection(self.COLLECTION).document(uid).get())
        except Exception as e:
            logger.error(f"Failed to read user {uid}: {e}", exc_info=True)
            raise StoreReadFailure(f"Failed to read user {uid}") from e

        self.cache.set(uid, user)
        return user

    def display_name(self, uid: str) -> str:
        user = self.get_user(uid) or {}
        return user.get("username") or user.get("name") or uid
