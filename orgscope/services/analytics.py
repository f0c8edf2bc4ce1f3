from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from orgscope.db.filters import apply_practice_filter
from orgscope.db.practices import SqlPracticeMapping
from orgscope.models.analytics import PracticeMeasure
from orgscope.rbac.analytics import AnalyticsOrganizationResolver, PracticeFilter
from orgscope.rbac.checker import PermissionChecker
from orgscope.rbac.hierarchy import OrganizationHierarchy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MeasureQueryResult:
    practice_filter: PracticeFilter
    rows: list[PracticeMeasure]


class AnalyticsService:
    def __init__(self, db: Session, checker: PermissionChecker, hierarchy: OrganizationHierarchy) -> None:
        self._db = db
        self._checker = checker
        self._resolver = AnalyticsOrganizationResolver(hierarchy, SqlPracticeMapping(db))

    def query_measures(
        self,
        organization_id: str | None = None,
        practice_uids: Iterable[int] | None = None,
        measure: str | None = None,
    ) -> MeasureQueryResult:
        practice_filter = self._resolver.resolve(self._checker, organization_id, practice_uids)

        stmt = select(PracticeMeasure)
        if measure is not None:
            stmt = stmt.where(PracticeMeasure.measure == measure)
        stmt = apply_practice_filter(stmt, PracticeMeasure, practice_filter)
        rows = list(self._db.scalars(stmt.order_by(PracticeMeasure.period, PracticeMeasure.id)).all())

        logger.debug(
            "Analytics query user_id=%s filter=%s rows=%d",
            self._checker.user_id,
            practice_filter.kind,
            len(rows),
        )
        return MeasureQueryResult(practice_filter=practice_filter, rows=rows)
