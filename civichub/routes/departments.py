"""
Department endpoints - the fixed taxonomy and per-department statistics.
"""

from typing import List
from fastapi import APIRouter, Depends

from civichub.core.deps import get_issue_ledger
from civichub.models.issue import DEPARTMENTS, DepartmentInfo, DepartmentStats
from civichub.services.department_stats import compute_department_stats
from civichub.services.issue_ledger import IssueLedger

router = APIRouter(prefix="/departments", tags=["Departments"])


@router.get("", response_model=List[DepartmentInfo])
async def list_departments():
    return [
        {"id": department, "name": info["name"], "default_priority": info["priority"]}
        for department, info in DEPARTMENTS.items()
    ]


@router.get("/stats", response_model=List[DepartmentStats])
async def department_stats(ledger: IssueLedger = Depends(get_issue_ledger)):
    """Issue counts per department, ranked by resolved*100 - escalated*50."""
    return compute_department_stats(ledger.list_issues(limit=None))
