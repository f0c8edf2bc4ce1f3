from __future__ import annotations

import logging
from typing import Iterable, Mapping

from sqlalchemy import select
from sqlalchemy.orm import Session

from orgscope.models.security import OrganizationPractice

logger = logging.getLogger(__name__)


class SqlPracticeMapping:
    """Organization -> practice ids, read from ``organization_practices``."""

    def __init__(self, db: Session) -> None:
        self._db = db

    def practices_for(self, organization_ids: Iterable[str]) -> Mapping[str, frozenset[int]]:
        ids = sorted(set(organization_ids))
        if not ids:
            return {}
        rows = self._db.execute(
            select(OrganizationPractice.organization_id, OrganizationPractice.practice_uid).where(
                OrganizationPractice.organization_id.in_(ids)
            )
        ).all()

        found: dict[str, set[int]] = {}
        for organization_id, practice_uid in rows:
            found.setdefault(organization_id, set()).add(practice_uid)
        logger.debug("Practice mapping lookup organizations=%d mapped=%d", len(ids), len(found))
        return {org_id: frozenset(uids) for org_id, uids in found.items()}
