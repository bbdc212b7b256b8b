import pytest
from pydantic import ValidationError

from civichub.config.mock_firestore import MockWriteBatch
from civichub.core.exceptions import StoreWriteFailure
from civichub.models.post import PostCreate
from civichub.services.classifier import ClassificationResult, MockClassifier
from civichub.services.post_service import PostService

from conftest import NOW


GEO = {"latitude": 18.5074, "longitude": 73.8077, "city": "Pune"}


def submission(description="Water pipe burst near the bus stop", geo=GEO, **kwargs):
    return PostCreate(description=description, geo_data=geo, **kwargs)


def all_docs(db, collection):
    return [doc.to_dict() for doc in db.collection(collection).stream()]


def test_rejected_post_is_stored_without_issue_or_sticks(db, post_service):
    result = post_service.submit_post("u1", submission("Lovely sunset at the beach today"))

    assert result["outcome"] == "rejected"
    assert result["issue_id"] is None
    assert result["sticks"] is None
    assert result["post"]["status"] == "rejected"
    assert result["post"]["ai_category"] == "rejected"
    assert all_docs(db, "issues") == []
    assert all_docs(db, "user_sticks") == []
    assert db.collection("users").document("u1").get().to_dict() == {"post_count": 1}


def test_accepted_post_creates_issue(db, post_service):
    result = post_service.submit_post("u1", submission())

    assert result["outcome"] == "created_issue"
    post = result["post"]
    assert post["status"] == "working"
    assert post["issue_id"] == result["issue_id"]
    assert post["ai_category"] == "Water Supply & Sewage"
    assert post["created_at"] is not None

    issue = post_service.ledger.get_issue(result["issue_id"])
    assert issue["related_posts"] == [post["id"]]
    assert issue["summary"] == "Water pipe burst near the bus stop"
    assert result["sticks"]["points"] == 3


def test_similar_post_at_same_spot_is_merged(db, post_service):
    first = post_service.submit_post("u1", submission())
    second = post_service.submit_post("u2", submission("Water pipe burst near the bus stop again"))

    assert second["outcome"] == "merged"
    assert second["issue_id"] == first["issue_id"]
    issue = post_service.ledger.get_issue(first["issue_id"])
    assert issue["report_count"] == 2
    assert issue["related_posts"] == [first["post"]["id"], second["post"]["id"]]
    assert len(all_docs(db, "issues")) == 1


def test_post_without_geo_always_opens_new_issue(db, post_service):
    first = post_service.submit_post("u1", submission(geo=None))
    second = post_service.submit_post("u1", submission(geo=None))

    assert first["outcome"] == second["outcome"] == "created_issue"
    assert first["issue_id"] != second["issue_id"]


def test_partial_geo_is_stored_as_absent(db, post_service):
    result = post_service.submit_post("u1", submission(geo={"latitude": 18.5}))
    assert result["post"]["geo_data"] is None


def test_same_day_posts_accumulate_points(post_service):
    post_service.submit_post("u1", submission(geo=None))
    result = post_service.submit_post("u1", submission(geo=None))

    assert result["sticks"]["points"] == 6
    assert result["sticks"]["current_streak"] == 1


def failing_commit(self):
    raise RuntimeError("firestore unavailable")


def test_failed_commit_leaves_nothing_behind(db, post_service, monkeypatch):
    monkeypatch.setattr(MockWriteBatch, "commit", failing_commit)

    with pytest.raises(StoreWriteFailure):
        post_service.submit_post("u1", submission())

    assert all_docs(db, "posts") == []
    assert all_docs(db, "issues") == []
    assert all_docs(db, "users") == []
    assert all_docs(db, "user_sticks") == []


def test_failed_merge_commit_does_not_touch_existing_issue(db, post_service, monkeypatch):
    first = post_service.submit_post("u1", submission())
    before = post_service.ledger.get_issue(first["issue_id"])

    monkeypatch.setattr(MockWriteBatch, "commit", failing_commit)
    with pytest.raises(StoreWriteFailure):
        post_service.submit_post("u2", submission())

    assert post_service.ledger.get_issue(first["issue_id"]) == before
    assert len(all_docs(db, "posts")) == 1


class BrokenSticks:
    def record_post(self, uid, now=None):
        raise StoreWriteFailure(f"Failed to write sticks for {uid}")


def test_sticks_failure_does_not_fail_the_post(db, ledger):
    service = PostService(db, ledger=ledger, sticks=BrokenSticks(), classifier=MockClassifier(), clock=lambda: NOW)
    result = service.submit_post("u1", submission())

    assert result["outcome"] == "created_issue"
    assert result["sticks"] is None
    assert len(all_docs(db, "posts")) == 1


def test_precomputed_classification_skips_classifier(db, post_service):
    classification = ClassificationResult.reject("Not a civic issue")
    result = post_service.submit_post("u1", submission(), classification=classification)

    assert result["outcome"] == "rejected"
    assert result["post"]["ai_summary"] == "Post rejected: Not a civic issue"


def test_list_posts_by_author(post_service):
    post_service.submit_post("u1", submission(geo=None))
    post_service.submit_post("u2", submission(geo=None))

    assert [p["author_id"] for p in post_service.list_posts(author_id="u1")] == ["u1"]
    assert len(post_service.list_posts()) == 2
    assert post_service.get_post("missing") is None


def test_post_needs_description_or_image():
    with pytest.raises(ValidationError):
        PostCreate(description="   ")

    assert PostCreate(image_data="data:image/jpeg;base64,AAAA").description == ""


def test_tags_get_hash_prefix():
    post = PostCreate(description="Pothole", tags=["roads", "#pune", "  "])
    assert post.tags == ["#roads", "#pune"]


def test_corrupt_sticks_record_does_not_fail_the_post(db, post_service):
    db.collection("user_sticks").document("u1").set({
        "uid": "u1",
        "points": "lots",
        "last_stick_date": "2025-03-01",
        "current_post_points": 3,
    })

    result = post_service.submit_post("u1", submission())

    assert result["outcome"] == "created_issue"
    assert result["sticks"] is None
    assert result["post"]["issue_id"] == result["issue_id"]
    assert len(all_docs(db, "posts")) == 1
