from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from orgscope.db.session import get_db
from orgscope.models.security import Organization
from orgscope.rbac.checker import PermissionChecker
from orgscope.rbac.hierarchy import HierarchyCache
from orgscope.schemas.security import OrganizationNodeOut, OrganizationOut, ParentUpdate
from orgscope.security.dependencies import get_hierarchy_cache, get_permission_checker
from orgscope.services.organizations import OrganizationService

router = APIRouter(prefix="/organizations", tags=["organizations"])


def get_organization_service(
    db: Session = Depends(get_db),
    checker: PermissionChecker = Depends(get_permission_checker),
    cache: HierarchyCache = Depends(get_hierarchy_cache),
) -> OrganizationService:
    return OrganizationService(db, checker, cache)


@router.get("/tree", response_model=list[OrganizationNodeOut])
def organization_tree(service: OrganizationService = Depends(get_organization_service)) -> list[dict[str, object]]:
    return [node.to_dict() for node in service.tree()]


@router.put("/{organization_id}/parent", response_model=OrganizationOut)
def set_organization_parent(
    organization_id: str,
    body: ParentUpdate,
    service: OrganizationService = Depends(get_organization_service),
) -> Organization:
    return service.set_parent(organization_id, body.parent_organization_id)
