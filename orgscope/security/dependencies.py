from __future__ import annotations

import logging
import time

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from orgscope.db.session import get_db
from orgscope.models.security import User
from orgscope.rbac.catalog import PermissionCatalog
from orgscope.rbac.checker import PermissionChecker
from orgscope.rbac.context import UserContext
from orgscope.rbac.errors import ContextLoadTimeout
from orgscope.rbac.hierarchy import HierarchyCache, OrganizationHierarchy
from orgscope.security.auth import extract_organization_id, extract_user_id, load_user
from orgscope.security.loader import load_user_context
from orgscope.settings import Settings, get_settings

logger = logging.getLogger(__name__)


def get_catalog(request: Request) -> PermissionCatalog:
    catalog = getattr(request.app.state, "permission_catalog", None)
    if catalog is None:
        raise RuntimeError("Permission catalog not loaded. Did app startup run?")
    return catalog


def get_hierarchy_cache(request: Request) -> HierarchyCache:
    cache = getattr(request.app.state, "hierarchy_cache", None)
    if cache is None:
        raise RuntimeError("Hierarchy cache not initialized. Did app startup run?")
    return cache


def get_hierarchy(cache: HierarchyCache = Depends(get_hierarchy_cache)) -> OrganizationHierarchy:
    """One snapshot per request, so every decision in the request sees the same tree."""
    return cache.get()


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    user_id = extract_user_id(request)
    if user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing user id")

    user = load_user(db, user_id)
    request.state.user = user
    return user


def get_user_context(
    request: Request,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    hierarchy: OrganizationHierarchy = Depends(get_hierarchy),
    catalog: PermissionCatalog = Depends(get_catalog),
    settings: Settings = Depends(get_settings),
) -> UserContext:
    deadline = time.monotonic() + settings.context_load_timeout_seconds
    try:
        context = load_user_context(
            db,
            user.user_id,
            hierarchy,
            catalog,
            current_organization_id=extract_organization_id(request),
            deadline=deadline,
        )
    except ContextLoadTimeout as exc:
        logger.error("Authorization context unavailable user_id=%s error=%s", user.user_id, exc)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Authorization context unavailable",
        ) from exc

    request.state.user_context = context
    return context


def get_permission_checker(context: UserContext = Depends(get_user_context)) -> PermissionChecker:
    return PermissionChecker(context)
