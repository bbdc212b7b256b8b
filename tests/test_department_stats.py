from civichub.services.department_stats import compute_department_stats

from conftest import make_issue


def test_counts_and_deterministic_ranking():
    issues = [
        make_issue("w1", department="water", status="resolved"),
        make_issue("w2", department="water", status="resolved"),
        make_issue("w3", department="water", status="working"),
        make_issue("p1", department="pwd", status="resolved"),
        make_issue("p2", department="pwd", status="escalated"),
        make_issue("t1", department="traffic", status="escalated"),
        make_issue("x1", department="tourism", status="working"),
    ]

    rows = compute_department_stats(issues)

    assert [row["department"] for row in rows] == [
        "water", "pwd",
        "disaster", "electricity", "environment", "health", "swm",
        "traffic",
    ]
    assert [row["rank"] for row in rows] == list(range(1, 9))

    water = rows[0]
    assert (water["total"], water["open"], water["resolved"], water["escalated"]) == (3, 1, 2, 0)
    assert water["score"] == 200

    pwd = rows[1]
    assert (pwd["total"], pwd["open"], pwd["resolved"], pwd["escalated"]) == (2, 1, 1, 1)
    assert pwd["score"] == 50

    assert rows[-1]["score"] == -50


def test_no_issues_ranks_by_department_key():
    rows = compute_department_stats([])
    assert [row["department"] for row in rows] == sorted(row["department"] for row in rows)
    assert all(row["score"] == 0 for row in rows)
