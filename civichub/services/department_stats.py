"""
Department statistics - issue counts and a deterministic score per department.

score = resolved * 100 - escalated * 50
rank  = position by score (highest first), ties broken by department key
"""

from typing import Dict, Iterable, List
import logging

from civichub.models.issue import DEPARTMENTS, Department
from civichub.services.status_workflow import IssueStatus

logger = logging.getLogger(__name__)

RESOLVED_WEIGHT = 100
ESCALATED_WEIGHT = 50


def compute_department_stats(issues: Iterable[Dict]) -> List[Dict]:
    """
    Args:
        issues: Issue dicts (any department, any status)

    Returns:
        One stats dict per department, ordered by rank
    """
    stats = {
        department: {
            "department": department.value,
            "name": info["name"],
            "total": 0,
            "open": 0,
            "resolved": 0,
            "escalated": 0,
        }
        for department, info in DEPARTMENTS.items()
    }

    for issue in issues:
        try:
            department = Department(issue.get("department"))
        except ValueError:
            logger.debug(f"Issue {issue.get('id')} has unknown department {issue.get('department')!r}")
            continue

        row = stats[department]
        row["total"] += 1
        status = issue.get("status")
        if status == IssueStatus.RESOLVED.value:
            row["resolved"] += 1
        else:
            row["open"] += 1
        if status == IssueStatus.ESCALATED.value:
            row["escalated"] += 1

    rows = list(stats.values())
    for row in rows:
        row["score"] = row["resolved"] * RESOLVED_WEIGHT - row["escalated"] * ESCALATED_WEIGHT

    rows.sort(key=lambda row: (-row["score"], row["department"]))
    for rank, row in enumerate(rows, start=1):
        row["rank"] = rank
    return rows
