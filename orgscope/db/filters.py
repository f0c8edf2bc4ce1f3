"""
Compile scope predicates into SQLAlchemy clauses.

Two ways to apply a predicate:
- explicit: ``apply_scope(select(WorkItem), WorkItem, predicate)``;
- transparent: ``bind_scope(db, WorkItem, predicate)`` (or the ``scope_bound`` block),
  after which every ORM SELECT on that session gets the clause through the
  ``do_orm_execute`` listener below.

Both compile "match nothing" to ``false()`` so a fail-closed predicate can never
become an unfiltered query.
"""

from __future__ import annotations

from contextlib import contextmanager
import logging
from typing import Any, Iterator

from sqlalchemy import Select, event, false, true
from sqlalchemy.orm import Session, with_loader_criteria
from sqlalchemy.sql.elements import ColumnElement

from orgscope.rbac.analytics import PracticeFilter
from orgscope.rbac.filters import MatchNothing, OrganizationSet, OwnerOnly, ScopePredicate, Unrestricted

logger = logging.getLogger(__name__)

SCOPE_INFO_KEY = "scope_predicates"


def scope_clause(model: Any, predicate: ScopePredicate) -> ColumnElement[bool]:
    """
    Build the WHERE clause for ``predicate`` against ``model``.

    The model must have an ``organization_id`` column for organization sets, and
    declares its owner column name in ``__owner_column__`` for owner-only scoping.
    """

    if isinstance(predicate, Unrestricted):
        return true()
    if isinstance(predicate, OrganizationSet):
        if not predicate.ids:
            return false()
        return model.organization_id.in_(sorted(predicate.ids))
    if isinstance(predicate, OwnerOnly):
        owner_column = getattr(model, "__owner_column__", None)
        if owner_column is None:
            logger.warning("Owner-only scope on model without owner column model=%s", model.__name__)
            return false()
        return getattr(model, owner_column) == predicate.user_id
    if isinstance(predicate, MatchNothing):
        return false()
    raise TypeError(f"unsupported scope predicate: {predicate!r}")


def apply_scope(stmt: Select, model: Any, predicate: ScopePredicate) -> Select:
    if isinstance(predicate, Unrestricted):
        return stmt
    return stmt.where(scope_clause(model, predicate))


def bind_scope(session: Session, model: Any, predicate: ScopePredicate) -> None:
    """Register ``predicate`` for ``model`` on this session's transparent filter."""
    bound: dict[Any, ColumnElement[bool]] = session.info.setdefault(SCOPE_INFO_KEY, {})
    bound[model] = scope_clause(model, predicate)
    logger.debug("Scope bound model=%s kind=%s", model.__name__, predicate.kind)


def unbind_scope(session: Session, model: Any) -> None:
    session.info.get(SCOPE_INFO_KEY, {}).pop(model, None)


@contextmanager
def scope_bound(session: Session, model: Any, predicate: ScopePredicate) -> Iterator[Session]:
    """
    Bind ``predicate`` for the duration of the block only:

        with scope_bound(db, WorkItem, predicate):
            rows = db.scalars(select(WorkItem)).all()
    """

    bind_scope(session, model, predicate)
    try:
        yield session
    finally:
        unbind_scope(session, model)


def apply_practice_filter(stmt: Select, model: Any, practice_filter: PracticeFilter) -> Select:
    """Apply an analytics practice filter to a statement over ``model``."""
    if practice_filter.kind == "unrestricted":
        return stmt
    if practice_filter.kind == "practices":
        return stmt.where(model.practice_uid.in_(sorted(practice_filter.practice_uids)))
    if practice_filter.kind == "provider":
        return stmt.where(model.provider_uid == practice_filter.provider_uid)
    return stmt.where(false())


@event.listens_for(Session, "do_orm_execute")
def _apply_scope_predicates(execute_state) -> None:
    """
    Transparent data scoping.

    Existing query code stays unchanged:
        db.scalars(select(WorkItem)).all()
    returns only rows inside the bound scope.
    """

    if not execute_state.is_select:
        return

    bound = execute_state.session.info.get(SCOPE_INFO_KEY)
    if not bound:
        return

    # Pre-built clauses rather than lambdas: lambda criteria cache on closure values.
    execute_state.statement = execute_state.statement.options(
        *(with_loader_criteria(model, clause, include_aliases=True) for model, clause in bound.items())
    )
