"""Shared schema pieces — snapshot kinds, pagination, percentage clamping."""

from __future__ import annotations

import math
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Generic, TypeVar

from pydantic import AfterValidator, BaseModel, computed_field

T = TypeVar("T")


class SnapshotKind(str, Enum):
    HOST = "host"
    CLUSTER = "cluster"


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and normalize aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UtcDatetime = Annotated[datetime, AfterValidator(ensure_utc)]


def clamp_percent(value: float) -> float:
    """Clamp a utilization percentage into [0, 100]. NaN becomes 0."""
    if value is None or math.isnan(value):
        return 0.0
    return max(0.0, min(100.0, float(value)))


class Page(BaseModel, Generic[T]):
    """One page of an ordered result set. Pages are 1-based."""

    items: list[T] = []
    page: int
    page_size: int
    total_items: int

    @computed_field
    @property
    def total_pages(self) -> int:
        if self.page_size <= 0:
            return 0
        return (self.total_items + self.page_size - 1) // self.page_size
