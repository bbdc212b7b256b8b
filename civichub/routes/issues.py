"""
Issue endpoints - browsing issues and driving their status workflow.

Workflow rules (enforced by the ledger):
- working → assign → at progress → resolved
- escalated reachable from any open state, leaves only to resolved
- resolved is final
"""

from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
import logging

from civichub.core.deps import get_issue_ledger
from civichub.models.issue import Department, IssueResponse, StatusUpdateRequest, TransitionsResponse
from civichub.services.issue_ledger import IssueLedger

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/issues", tags=["Issues"])


@router.get("", response_model=List[IssueResponse])
async def list_issues(
    department: Optional[Department] = Query(None),
    status_filter: Optional[str] = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=200),
    ledger: IssueLedger = Depends(get_issue_ledger),
):
    return ledger.list_issues(
        department=department.value if department else None,
        status=status_filter,
        limit=limit,
    )


@router.get("/{issue_id}", response_model=IssueResponse)
async def get_issue(issue_id: str, ledger: IssueLedger = Depends(get_issue_ledger)):
    issue = ledger.get_issue(issue_id)
    if issue is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Issue {issue_id} not found"
        )
    return issue


@router.get("/{issue_id}/transitions", response_model=TransitionsResponse)
async def get_transitions(issue_id: str, ledger: IssueLedger = Depends(get_issue_ledger)):
    allowed = ledger.allowed_transitions(issue_id)
    issue = ledger.get_issue(issue_id)
    return {"issue_id": issue_id, "status": issue["status"], "allowed_transitions": allowed}


@router.patch("/{issue_id}/status", response_model=IssueResponse)
async def update_status(
    issue_id: str,
    request: StatusUpdateRequest,
    ledger: IssueLedger = Depends(get_issue_ledger),
):
    """
    Move an issue to a new status.

    Returns 409 if the workflow does not allow the change; the issue is left
    untouched in that case.
    """
    extra = None
    if request.assigned_personnel or request.eta:
        extra = {
            "assigned_personnel": request.assigned_personnel.model_dump() if request.assigned_personnel else None,
            "eta": request.eta,
        }
    logger.info(f"PATCH /issues/{issue_id}/status → {request.status} by {request.actor}")
    return ledger.transition_status(issue_id, request.status, request.actor, extra=extra)
