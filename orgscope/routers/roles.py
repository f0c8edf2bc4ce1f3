from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from orgscope.db.session import get_db
from orgscope.models.security import Role
from orgscope.rbac.checker import PermissionChecker
from orgscope.schemas.security import RoleOut
from orgscope.security.dependencies import get_permission_checker
from orgscope.services.roles import RoleService

router = APIRouter(prefix="/roles", tags=["roles"])


def get_role_service(
    db: Session = Depends(get_db),
    checker: PermissionChecker = Depends(get_permission_checker),
) -> RoleService:
    return RoleService(db, checker)


@router.get("", response_model=list[RoleOut])
def list_roles(service: RoleService = Depends(get_role_service)) -> list[Role]:
    return service.list()


@router.get("/{role_id}", response_model=RoleOut)
def get_role(role_id: str, service: RoleService = Depends(get_role_service)) -> Role:
    return service.get(role_id)
