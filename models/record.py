# models/record.py
from __future__ import annotations

from datetime import datetime, timezone
from typing import List

from pydantic import BaseModel, ConfigDict, Field, field_serializer
from pydantic.alias_generators import to_camel


def format_timestamp(value: datetime) -> str:
    """ISO 8601 in UTC with millisecond precision, e.g. ``2024-05-01T12:00:00.123Z``."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


class TableRow(BaseModel):
    """One ranking row. Missing optional cells are empty strings, never absent."""

    job_name: str = ""
    score: str = ""
    count: str = ""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ScrapedRecord(BaseModel):
    """
    Structured output of one extraction pass.

    ``table_rows`` is in document order. ``zone_name`` and ``boss_name`` are
    empty strings when the page has no such element.
    """

    zone_name: str = ""
    boss_name: str = ""
    table_rows: List[TableRow] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @field_serializer("timestamp")
    def _serialize_timestamp(self, value: datetime) -> str:
        return format_timestamp(value)

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True)

    def content_equals(self, other: ScrapedRecord) -> bool:
        """Compare everything except the capture time."""
        return (
            self.zone_name == other.zone_name
            and self.boss_name == other.boss_name
            and self.table_rows == other.table_rows
        )
