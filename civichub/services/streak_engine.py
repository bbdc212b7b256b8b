"""
Streak Engine - points, streaks, levels and badges for accepted posts.

RULES:
- First post ever: 3 points, streak 1, bronze-1
- Repeat post on the same (UTC) calendar day: earns today's per-post value
  again, nothing else moves
- First post of a new day: the streak continues when no more than 24 hours
  of wall-clock time passed since the post that last advanced it. This is
  elapsed time, not calendar adjacency.
- Continuing raises the per-post value by 1 (capped at 10); a break resets
  the streak to 1 and the value to 3

Pure functions only. Reading and writing the record is SticksService's job.
"""

from datetime import datetime, timedelta, timezone
from typing import Dict, Optional
import logging

from civichub.utils.firestore_helpers import parse_timestamp

logger = logging.getLogger(__name__)

INITIAL_POST_POINTS = 3
MAX_POST_POINTS = 10
POINTS_PER_LEVEL = 100
STREAK_WINDOW = timedelta(hours=24)


def calendar_date(moment: datetime) -> str:
    """UTC calendar date as YYYY-MM-DD. Naive datetimes are taken as UTC."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).date().isoformat()


def level_for(points: int) -> int:
    """The one points → level mapping, for both the ledger and display."""
    return points // POINTS_PER_LEVEL + 1


def badge_for(level: int) -> str:
    if level >= 13:
        return "diamond"
    if level >= 10:
        return f"platinum-{level - 9}"
    if level >= 7:
        return f"gold-{level - 6}"
    if level >= 4:
        return f"silver-{level - 3}"
    return f"bronze-{level}"


def level_progress(points: int) -> Dict:
    level = level_for(points)
    into_level = points - (level - 1) * POINTS_PER_LEVEL
    return {
        "level": level,
        "points_into_level": into_level,
        "points_to_next_level": POINTS_PER_LEVEL - into_level,
        "progress": into_level / POINTS_PER_LEVEL,
    }


def _streak_anchor(record: Dict) -> Optional[datetime]:
    """
    Moment the streak was last advanced.
    Records written before last_stick_at existed fall back to midnight UTC
    of last_stick_date.
    """
    anchor = parse_timestamp(record.get("last_stick_at"))
    if anchor is not None:
        return anchor
    last_date = record.get("last_stick_date")
    if not last_date:
        return None
    try:
        return datetime.fromisoformat(last_date).replace(tzinfo=timezone.utc)
    except ValueError:
        return None


class StreakEngine:
    """Computes the next sticks record for a user who just made an accepted post."""

    def initial_record(self, uid: str, now: datetime) -> Dict:
        today = calendar_date(now)
        return {
            "uid": uid,
            "points": INITIAL_POST_POINTS,
            "level": 1,
            "current_streak": 1,
            "longest_streak": 1,
            "last_stick_date": today,
            "last_stick_at": now,
            "streak_days": [today],
            "badge": badge_for(1),
            "current_post_points": INITIAL_POST_POINTS,
        }

    def apply_post(self, uid: str, now: datetime, current: Optional[Dict]) -> Dict:
        """
        Args:
            uid: Poster
            now: Moment of the post
            current: Stored record, or None for a first-ever post

        Returns:
            The complete updated record, ready to be written back
        """
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)

        if current is None:
            logger.info(f"First post for user {uid}, creating sticks record")
            return self.initial_record(uid, now)

        today = calendar_date(now)
        record = dict(current)

        if record.get("last_stick_date") == today:
            record["points"] = record.get("points", 0) + record.get("current_post_points", INITIAL_POST_POINTS)
            return record

        anchor = _streak_anchor(record)
        streak_continues = anchor is not None and abs(now - anchor) <= STREAK_WINDOW

        if streak_continues:
            current_streak = record.get("current_streak", 0) + 1
            post_points = min(record.get("current_post_points", INITIAL_POST_POINTS) + 1, MAX_POST_POINTS)
        else:
            current_streak = 1
            post_points = INITIAL_POST_POINTS

        points = record.get("points", 0) + post_points
        level = level_for(points)
        previous_level = record.get("level")

        record.update({
            "points": points,
            "level": level,
            "current_streak": current_streak,
            "longest_streak": max(current_streak, record.get("longest_streak", 0)),
            "last_stick_date": today,
            "last_stick_at": now,
            "streak_days": list(record.get("streak_days", [])) + [today],
            "current_post_points": post_points,
        })
        if level != previous_level:
            record["badge"] = badge_for(level)

        logger.info(
            f"Sticks updated for {uid}: streak={current_streak} "
            f"({'continued' if streak_continues else 'reset'}), points={points}, level={level}"
        )
        return record


# Global engine instance (stateless)
_engine: Optional[StreakEngine] = None


def get_streak_engine() -> StreakEngine:
    global _engine
    if _engine is None:
        _engine = StreakEngine()
    return _engine
