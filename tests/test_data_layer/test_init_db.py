"""
Tests for table creation, catalog sync and demo seeding.
"""
from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.orm import Session, sessionmaker

from orgscope.db import init_db as init_db_module
from orgscope.models.security import Organization, Permission, Role


def test_init_db_is_idempotent(engine, catalog, monkeypatch):
    monkeypatch.setattr(init_db_module, "engine", engine)
    monkeypatch.setattr(init_db_module, "SessionLocal", sessionmaker(bind=engine, class_=Session))

    init_db_module.init_db(catalog)
    init_db_module.init_db(catalog)

    with Session(engine) as db:
        assert db.scalar(select(func.count()).select_from(Organization)) == 4
        assert db.scalar(select(func.count()).select_from(Permission)) == len(catalog.permissions)


def test_sync_catalog_links_role_permissions(db_session, catalog):
    roles = init_db_module.sync_catalog(db_session, catalog)
    db_session.commit()

    staff = db_session.get(Role, init_db_module.catalog_role_id("staff"))
    assert staff is roles["staff"]
    assert {p.name for p in staff.permissions} == set(catalog.roles["staff"].permissions)
    assert db_session.get(Role, "role-super_admin").is_system_role


def test_sync_catalog_deactivates_removed_permissions(db_session, catalog):
    db_session.add(Permission(name="legacy:read:all", resource="legacy", action="read", scope="all"))
    db_session.flush()

    init_db_module.sync_catalog(db_session, catalog)

    legacy = db_session.scalars(select(Permission).where(Permission.name == "legacy:read:all")).one()
    assert legacy.is_active is False
