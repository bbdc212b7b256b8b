import pytest
from fastapi.testclient import TestClient

from civichub.core.deps import get_firestore, get_issue_ledger
from civichub.main import app
from civichub.services.issue_ledger import IssueLedger


POST_BODY = {
    "description": "Water pipe burst near the bus stop",
    "tags": ["water"],
    "geo_data": {"latitude": 18.5074, "longitude": 73.8077, "city": "Pune"},
}


@pytest.fixture
def client(db):
    app.dependency_overrides[get_firestore] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


def submit(client, uid="u1", body=POST_BODY):
    return client.post("/posts", json=body, headers={"X-User-ID": uid})


def test_root_and_health(client):
    assert client.get("/").json()["status"] == "running"
    assert client.get("/health").json()["status"] == "healthy"

    resp = client.get("/health/db")
    assert resp.status_code == 200
    assert resp.json()["connected"] is True


def test_submit_requires_user_header(client):
    resp = client.post("/posts", json=POST_BODY)
    assert resp.status_code == 400


def test_submit_requires_description_or_image(client):
    resp = submit(client, body={"description": ""})
    assert resp.status_code == 422


def test_submit_and_read_back(client):
    resp = submit(client)
    assert resp.status_code == 201
    data = resp.json()
    assert data["outcome"] == "created_issue"
    assert data["post"]["tags"] == ["#water"]
    assert data["sticks"]["points"] == 3

    post_id = data["post"]["id"]
    assert client.get(f"/posts/{post_id}").json()["issue_id"] == data["issue_id"]
    assert [p["id"] for p in client.get("/posts", params={"author_id": "u1"}).json()] == [post_id]

    issue = client.get(f"/issues/{data['issue_id']}").json()
    assert issue["department"] == "water"
    assert issue["report_count"] == 1


def test_duplicate_submission_is_merged(client):
    first = submit(client, "u1").json()
    second = submit(client, "u2").json()

    assert second["outcome"] == "merged"
    assert second["issue_id"] == first["issue_id"]
    assert client.get(f"/issues/{first['issue_id']}").json()["report_count"] == 2


def test_rejected_submission_is_not_an_error(client):
    resp = submit(client, body={"description": "Happy birthday to my best friend"})
    assert resp.status_code == 201
    assert resp.json()["outcome"] == "rejected"
    assert resp.json()["sticks"] is None


def test_status_workflow_over_http(client):
    issue_id = submit(client).json()["issue_id"]

    resp = client.get(f"/issues/{issue_id}/transitions")
    assert resp.json() == {"issue_id": issue_id, "status": "working", "allowed_transitions": ["assign", "escalated"]}

    resp = client.patch(f"/issues/{issue_id}/status", json={
        "status": "assign",
        "actor": "ward-officer",
        "assigned_personnel": {"name": "R. Patil"},
        "eta": "2 days",
    })
    assert resp.status_code == 200
    assert resp.json()["status"] == "assign"
    assert resp.json()["assigned_personnel"]["name"] == "R. Patil"
    assert resp.json()["eta"] == "2 days"

    resp = client.patch(f"/issues/{issue_id}/status", json={"status": "working", "actor": "ward-officer"})
    assert resp.status_code == 409
    assert resp.json()["allowed_transitions"] == ["at progress", "escalated"]
    assert client.get(f"/issues/{issue_id}").json()["status"] == "assign"


def test_unknown_resources_return_404(client):
    assert client.get("/posts/missing").status_code == 404
    assert client.get("/issues/missing").status_code == 404
    assert client.get("/issues/missing/transitions").status_code == 404
    assert client.patch("/issues/missing/status", json={"status": "assign", "actor": "x"}).status_code == 404
    assert client.get("/sticks/nobody").status_code == 404


def test_list_issues_filters(client):
    submit(client)
    assert len(client.get("/issues", params={"department": "water"}).json()) == 1
    assert client.get("/issues", params={"department": "pwd"}).json() == []
    assert client.get("/issues", params={"status": "resolved"}).json() == []
    assert client.get("/issues", params={"department": "tourism"}).status_code == 422


def test_sticks_and_leaderboard(client, db):
    db.collection("users").document("u1").set({"username": "asha"})
    submit(client, "u1")
    submit(client, "u1", body={"description": "Garbage dump near the school gate"})
    submit(client, "u2", body={"description": "Streetlight not working"})

    profile = client.get("/sticks/u1").json()
    assert profile["sticks"]["points"] == 6
    assert profile["progress"]["points_to_next_level"] == 94

    board = client.get("/leaderboard").json()
    assert [entry["uid"] for entry in board] == ["u1", "u2"]
    assert board[0]["display_name"] == "asha"
    assert len(client.get("/leaderboard", params={"limit": 1}).json()) == 1


def test_departments(client):
    submit(client)
    departments = client.get("/departments").json()
    assert len(departments) == 8
    assert {"id": "disaster", "name": "Disaster Management", "default_priority": "Critical"} in departments

    stats = client.get("/departments/stats").json()
    water = next(row for row in stats if row["department"] == "water")
    assert water["total"] == 1
    assert water["open"] == 1


class BrokenDB:
    def collection(self, name):
        raise RuntimeError("connection reset")


def test_store_failure_returns_503(client):
    app.dependency_overrides[get_issue_ledger] = lambda: IssueLedger(BrokenDB())
    resp = client.get("/issues")
    assert resp.status_code == 503


def test_partial_geo_is_accepted_as_absent(client):
    body = {"description": "Garbage dump near the school gate", "geo_data": {"latitude": 18.5074}}
    resp = submit(client, body=body)

    assert resp.status_code == 201
    assert resp.json()["outcome"] == "created_issue"
    assert resp.json()["post"]["geo_data"] is None
