from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict


class PracticeMeasureOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    practice_uid: int
    provider_uid: int | None
    measure: str
    period: str
    value: float


class MeasureQueryOut(BaseModel):
    practice_filter: dict[str, Any]
    rows: list[PracticeMeasureOut]
