from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from orgscope.db.session import get_db
from orgscope.rbac.checker import PermissionChecker
from orgscope.rbac.hierarchy import OrganizationHierarchy
from orgscope.schemas.analytics import MeasureQueryOut, PracticeMeasureOut
from orgscope.security.dependencies import get_hierarchy, get_permission_checker
from orgscope.services.analytics import AnalyticsService

router = APIRouter(prefix="/analytics", tags=["analytics"])


@router.get("/measures", response_model=MeasureQueryOut)
def list_measures(
    organization_id: str | None = None,
    practice_uid: list[int] | None = Query(default=None),
    measure: str | None = None,
    db: Session = Depends(get_db),
    checker: PermissionChecker = Depends(get_permission_checker),
    hierarchy: OrganizationHierarchy = Depends(get_hierarchy),
) -> MeasureQueryOut:
    result = AnalyticsService(db, checker, hierarchy).query_measures(
        organization_id=organization_id,
        practice_uids=practice_uid,
        measure=measure,
    )
    return MeasureQueryOut(
        practice_filter=result.practice_filter.to_dict(),
        rows=[PracticeMeasureOut.model_validate(row) for row in result.rows],
    )
