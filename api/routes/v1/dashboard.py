"""
api/routes/v1/dashboard.py -- Aggregated task metrics for the dashboard widgets.

Returns a single payload:
  - Total task count and a per-status breakdown
  - Completed tasks per creation month for the requested year

Counts follow the same visibility rule as GET /tasks: admins see everything,
everyone else sees only tasks they own. Read-only, no mutations here.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from api.limiter import limiter
from api.models import DashboardResponse, MonthCount
from auth.dependencies import get_current_principal
from core.policy import Principal, can_list_tasks
from tasks.store import TaskStore

router = APIRouter()


@router.get("/dashboard", response_model=DashboardResponse)
@limiter.limit("60/minute")
def get_dashboard(
    request: Request,
    year: Optional[int] = Query(default=None, ge=1970, le=9999),
    principal: Principal = Depends(get_current_principal),
) -> DashboardResponse:
    """Return task metrics scoped to what the caller may list.

    Query:
      year -- year for completed_by_month; defaults to the current year
    """
    scope = can_list_tasks(principal)
    owner_id = None if scope.allow_all else principal.id
    year = year or date.today().year
    task_store: TaskStore = request.app.state.task_store

    status_counts = task_store.count_by_status(owner_id=owner_id)
    by_month = task_store.completed_by_month(year, owner_id=owner_id)

    return DashboardResponse(
        scope="all" if scope.allow_all else "own",
        year=year,
        total_tasks=sum(status_counts.values()),
        status_counts=status_counts,
        completed_by_month=[MonthCount(month=m, completed=n) for m, n in sorted(by_month.items())],
    )
