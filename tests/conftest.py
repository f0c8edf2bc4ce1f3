"""
Pytest fixtures for the test suite.

Data-layer tests use an in-memory SQLite engine and a session that rolls back
after each test, so tests do not affect each other. Engine tests build contexts
directly from plain records with the factory fixtures below.
"""
from __future__ import annotations

from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from orgscope.rbac.catalog import Permission, load_permission_catalog
from orgscope.rbac.checker import PermissionChecker
from orgscope.rbac.context import UserContext
from orgscope.rbac.hierarchy import OrganizationHierarchy, OrganizationRecord


TEST_DB_URL = "sqlite:///:memory:"
CATALOG_PATH = Path(__file__).resolve().parents[1] / "config" / "rbac_catalog.yaml"


@pytest.fixture
def engine():
    """Create a fresh in-memory SQLite engine for each test."""
    return create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        echo=False,
    )


@pytest.fixture
def tables(engine):
    """Create all ORM tables on the test engine."""
    from orgscope.db.base import Base
    import orgscope.models.analytics  # noqa: F401
    import orgscope.models.security  # noqa: F401
    import orgscope.models.work  # noqa: F401

    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture
def db_session(tables):
    """
    Provide a Session bound to the test DB; roll back after each test.

    The transaction is rolled back so the next test gets a clean state.
    """
    connection = tables.connect()
    transaction = connection.begin()
    TestSession = sessionmaker(
        bind=connection,
        autocommit=False,
        autoflush=False,
        class_=Session,
    )
    session = TestSession()
    yield session
    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture(scope="session")
def catalog():
    """The bundled permission catalog."""
    return load_permission_catalog(CATALOG_PATH)


@pytest.fixture
def sample_hierarchy() -> OrganizationHierarchy:
    """org-1 > org-2 > org-4, plus unrelated org-3 and inactive org-5 under org-1."""
    return OrganizationHierarchy(
        [
            OrganizationRecord("org-1", None, name="North Region"),
            OrganizationRecord("org-2", "org-1", name="North Clinic A"),
            OrganizationRecord("org-4", "org-2", name="Annex"),
            OrganizationRecord("org-3", None, name="South Region"),
            OrganizationRecord("org-5", "org-1", is_active=False, name="Closed"),
        ]
    )


@pytest.fixture
def make_context():
    """Factory: ``make_context("u-1", ["work-items:read:own"], orgs=["org-1"], accessible=...)``."""

    def _make(
        user_id: str = "u-1",
        permissions: list[str] | tuple[str, ...] = (),
        *,
        orgs: list[str] | tuple[str, ...] = (),
        accessible: list[str] | tuple[str, ...] | None = None,
        admin_orgs: list[str] | tuple[str, ...] = (),
        current: str | None = None,
        super_admin: bool = False,
        provider_uid: int | None = None,
    ) -> UserContext:
        org_set = frozenset(orgs)
        return UserContext(
            user_id=user_id,
            is_super_admin=super_admin,
            permissions=frozenset(Permission.parse(p) for p in permissions),
            organization_ids=org_set,
            admin_organization_ids=frozenset(admin_orgs),
            accessible_organization_ids=frozenset(accessible) if accessible is not None else org_set,
            current_organization_id=current if current is not None else (sorted(org_set)[0] if org_set else None),
            provider_uid=provider_uid,
        )

    return _make


@pytest.fixture
def make_checker(make_context):
    def _make(*args, **kwargs) -> PermissionChecker:
        return PermissionChecker(make_context(*args, **kwargs))

    return _make



@pytest.fixture
def seeded_db(db_session, catalog):
    """db_session with the catalog synced and the demo organizations, users and rows seeded."""
    from orgscope.db.init_db import seed_demo_data, sync_catalog

    sync_catalog(db_session, catalog)
    seed_demo_data(db_session)
    db_session.commit()
    return db_session


@pytest.fixture
def db_hierarchy_cache(seeded_db):
    from orgscope.rbac.hierarchy import HierarchyCache
    from orgscope.security.loader import load_organization_records

    return HierarchyCache(lambda: load_organization_records(seeded_db), ttl_seconds=300)


@pytest.fixture
def checker_for(seeded_db, db_hierarchy_cache, catalog):
    """Factory: PermissionChecker for a seeded user, loaded through the real loader."""
    from orgscope.security.loader import load_user_context

    def _make(user_id: str, current_organization_id: str | None = None) -> PermissionChecker:
        context = load_user_context(
            seeded_db,
            user_id,
            db_hierarchy_cache.get(),
            catalog,
            current_organization_id=current_organization_id,
        )
        return PermissionChecker(context)

    return _make
