"""
Shared helpers for document models.
"""
import math
import uuid
from datetime import datetime, timezone
from typing import Any, Dict

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id(prefix: str, sep: str = "_") -> str:
    """Server-generated opaque identifier, e.g. ``course_3f2a...``."""
    return f"{prefix}{sep}{uuid.uuid4().hex}"


def round_half_up(value: float, digits: int = 0) -> float:
    """Round halves away from zero (Python's round() rounds halves to even)."""
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def percentage(part: float, whole: float) -> int:
    """round(100 * part / whole) clamped to [0, 100]; 0 when whole is 0."""
    if whole <= 0:
        return 0
    return int(min(100, max(0, round_half_up(100 * part / whole))))


class Document(BaseModel):
    """A record stored as one JSON document."""

    id: str
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def touch(self) -> None:
        self.updated_at = utcnow()

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")
