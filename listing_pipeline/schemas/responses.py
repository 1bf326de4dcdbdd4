from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class ExtractionResult(BaseModel):
    value: Any
    source: str
    confidence: int


class FieldChange(BaseModel):
    field: str
    old_value: Any = None
    new_value: Any = None
    source: str | None = None
    confidence: int | None = None


class SkipCounts(BaseModel):
    already_populated: int = 0
    no_data: int = 0
    low_confidence: int = 0


class RecordError(BaseModel):
    listing_id: str
    listing: str | None
    error: str


class RecordResult(BaseModel):
    listing_id: str
    listing_name: str | None
    status: str  # "updated" | "unchanged" | "error"
    message: str | None = None
    changes: list[FieldChange] = []
    fields_updated: dict[str, int] = {}
    skipped: SkipCounts = Field(default_factory=SkipCounts)


class RunStats(BaseModel):
    total_processed: int = 0
    total_updated: int = 0
    fields_updated: dict[str, int] = {}
    skipped: SkipCounts = Field(default_factory=SkipCounts)
    errors: list[RecordError] = []

    @property
    def total_field_updates(self) -> int:
        return sum(self.fields_updated.values())

    @property
    def success_rate(self) -> float:
        if not self.total_processed:
            return 0.0
        return self.total_updated / self.total_processed * 100


class RunReport(BaseModel):
    table: str
    dry_run: bool
    full_scan: bool = False
    started_at: datetime
    finished_at: datetime | None = None
    stats: RunStats
    results: list[RecordResult] = []


class BrokenLink(BaseModel):
    url: str
    source: str  # "<listing name> (<field>)"
    field: str
    status: str  # HTTP status code or transport error text


class LinkReport(BaseModel):
    table: str
    started_at: datetime
    finished_at: datetime | None = None
    checked: int = 0
    valid: int = 0
    broken: list[BrokenLink] = []


class JobSubmittedResponse(BaseModel):
    job_id: str
    status: str
    message: str


class JobStatusResponse(BaseModel):
    job_id: str
    status: str
    created_at: datetime
    finished_at: datetime | None = None
    dry_run: bool = False
    result: RunReport | None = None
    error: str | None = None
