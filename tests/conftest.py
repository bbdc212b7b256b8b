import os
from datetime import datetime, timezone

import pytest


# Settings are read at import time: force the in-memory store and the
# rule-based classifier before anything from civichub is imported.
os.environ["USE_MOCK_DB"] = "true"
os.environ["CLASSIFIER_ENABLED"] = "false"

from civichub.config import firebase  # noqa: E402
from civichub.config.mock_firestore import MockFirestore  # noqa: E402
from civichub.services.classifier import MockClassifier  # noqa: E402
from civichub.services.issue_ledger import IssueLedger  # noqa: E402
from civichub.services.post_service import PostService  # noqa: E402
from civichub.services.sticks_service import SticksService, UserLockRegistry  # noqa: E402


NOW = datetime(2025, 3, 1, 10, 0, tzinfo=timezone.utc)


@pytest.fixture
def db():
    """Fresh in-memory Firestore per test."""
    firebase.reset_db()
    store = MockFirestore()
    yield store
    firebase.reset_db()


@pytest.fixture
def ledger(db):
    return IssueLedger(db, clock=lambda: NOW)


@pytest.fixture
def sticks_service(db):
    return SticksService(db, locks=UserLockRegistry())


@pytest.fixture
def post_service(db, ledger, sticks_service):
    return PostService(
        db,
        ledger=ledger,
        sticks=sticks_service,
        classifier=MockClassifier(),
        clock=lambda: NOW,
    )


def make_issue(
    issue_id,
    summary="Water pipe burst near the bus stop",
    latitude=18.5074,
    longitude=73.8077,
    department="water",
    status="working",
    reported_at=NOW,
):
    """Issue dict as returned by the ledger, for resolver and stats tests."""
    return {
        "id": issue_id,
        "department": department,
        "summary": summary,
        "status": status,
        "geo_data": {"latitude": latitude, "longitude": longitude},
        "reported_at": reported_at,
    }
