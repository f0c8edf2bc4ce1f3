from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from orgscope.db.session import get_db
from orgscope.models.work import WorkItem
from orgscope.rbac.checker import PermissionChecker
from orgscope.schemas.work import WorkItemCreate, WorkItemOut, WorkItemStatus, WorkItemStatusUpdate
from orgscope.security.dependencies import get_permission_checker
from orgscope.services.work_items import WorkItemService

router = APIRouter(prefix="/work-items", tags=["work-items"])


def get_work_item_service(
    db: Session = Depends(get_db),
    checker: PermissionChecker = Depends(get_permission_checker),
) -> WorkItemService:
    return WorkItemService(db, checker)


@router.get("", response_model=list[WorkItemOut])
def list_work_items(
    status_filter: WorkItemStatus | None = Query(default=None, alias="status"),
    service: WorkItemService = Depends(get_work_item_service),
) -> list[WorkItem]:
    # Rows outside the user's scope are filtered in SQL, not here.
    return service.list(status=status_filter)


@router.post("", response_model=WorkItemOut, status_code=status.HTTP_201_CREATED)
def create_work_item(
    body: WorkItemCreate,
    service: WorkItemService = Depends(get_work_item_service),
) -> WorkItem:
    return service.create(body.subject, organization_id=body.organization_id, description=body.description)


@router.get("/{work_item_id}", response_model=WorkItemOut)
def get_work_item(work_item_id: str, service: WorkItemService = Depends(get_work_item_service)) -> WorkItem:
    # Out-of-scope items surface as 404 via the ResourceOutOfScope handler.
    return service.get(work_item_id)


@router.patch("/{work_item_id}", response_model=WorkItemOut)
def update_work_item(
    work_item_id: str,
    body: WorkItemStatusUpdate,
    service: WorkItemService = Depends(get_work_item_service),
) -> WorkItem:
    return service.update_status(work_item_id, body.status)
