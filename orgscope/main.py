from __future__ import annotations

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from orgscope.db import filters as _filters  # noqa: F401  (register SQLAlchemy filters)
from orgscope.db.init_db import init_db
from orgscope.db.session import SessionLocal
from orgscope.logging_config import configure_app_logging
from orgscope.rbac.audit import log_security_event
from orgscope.rbac.catalog import load_permission_catalog
from orgscope.rbac.errors import AuthorizationError, HierarchyIntegrityError, ResourceOutOfScope
from orgscope.rbac.hierarchy import HierarchyCache
from orgscope.routers import analytics, health, me, organizations, roles, work_items
from orgscope.security.loader import load_organization_records
from orgscope.settings import get_settings

logger = logging.getLogger(__name__)


def _load_organizations_from_db():
    with SessionLocal() as db:
        return load_organization_records(db)


async def _authorization_error_handler(request: Request, exc: AuthorizationError) -> JSONResponse:
    """Generic body for the client; details go to the audit log only."""
    # Out-of-scope resources look exactly like missing ones.
    if isinstance(exc, ResourceOutOfScope):
        status_code = status.HTTP_404_NOT_FOUND
    else:
        status_code = status.HTTP_403_FORBIDDEN

    user_context = getattr(request.state, "user_context", None)
    log_security_event(
        "authorization_failed",
        "medium",
        path=request.url.path,
        method=request.method,
        user_id=getattr(user_context, "user_id", None),
        **{k: v for k, v in exc.audit_fields().items() if v is not None},
    )
    return JSONResponse(status_code=status_code, content={"detail": exc.public_message})


async def _hierarchy_error_handler(request: Request, exc: HierarchyIntegrityError) -> JSONResponse:
    logger.info("Rejected hierarchy edit path=%s error=%s", request.url.path, exc)
    return JSONResponse(status_code=status.HTTP_409_CONFLICT, content={"detail": str(exc)})


def create_app() -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        settings = get_settings()
        configure_app_logging(settings.log_level)
        logger.info("App startup beginning")

        catalog = load_permission_catalog(settings.resolved_catalog_path())
        app.state.permission_catalog = catalog
        logger.info("Loaded permission catalog: %s", settings.resolved_catalog_path())

        init_db(catalog)
        logger.info("Database initialized (tables ensured + catalog synced + seed if needed)")

        app.state.hierarchy_cache = HierarchyCache(
            _load_organizations_from_db,
            ttl_seconds=settings.hierarchy_cache_ttl_seconds,
        )

        yield
        # Shutdown (nothing to clean up)

    app = FastAPI(title="orgscope", lifespan=lifespan)

    app.add_exception_handler(AuthorizationError, _authorization_error_handler)
    app.add_exception_handler(HierarchyIntegrityError, _hierarchy_error_handler)

    app.include_router(health.router)
    app.include_router(me.router)
    app.include_router(work_items.router)
    app.include_router(roles.router)
    app.include_router(organizations.router)
    app.include_router(analytics.router)

    return app


app = create_app()
