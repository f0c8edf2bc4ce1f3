from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

WorkItemStatus = Literal["open", "in_progress", "done", "cancelled"]


class WorkItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    work_item_id: str
    organization_id: str
    created_by: str
    subject: str
    description: str | None
    status: str
    created_at: datetime
    updated_at: datetime


class WorkItemCreate(BaseModel):
    subject: str = Field(min_length=1, max_length=200)
    description: str | None = None
    organization_id: str | None = None


class WorkItemStatusUpdate(BaseModel):
    status: WorkItemStatus
