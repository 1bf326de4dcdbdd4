from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from typing import Any

from listing_pipeline.mappers.extractors import (
    DEFAULT_CONFIDENCE_THRESHOLD,
    FIELD_RULES,
    FieldRule,
    extract_field,
)
from listing_pipeline.schemas.listing import Listing
from listing_pipeline.schemas.responses import FieldChange, SkipCounts

GENERATED_BY = "listing-pipeline"


def is_empty(value: Any, zero_is_empty: bool = False) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (dict, list)):
        return len(value) == 0
    if zero_is_empty and value == 0:
        return True
    return False


def current_value(listing: Listing, rule: FieldRule) -> Any:
    value = getattr(listing, rule.target_column, None)
    if rule.json_key:
        return value.get(rule.json_key) if isinstance(value, Mapping) else None
    return value


def _stage_json_key(
    updates: dict[str, Any], listing: Listing, rule: FieldRule, value: Any
) -> None:
    column = rule.target_column
    if column not in updates:
        existing = getattr(listing, column, None)
        updates[column] = dict(existing) if isinstance(existing, Mapping) else {}
    updates[column][rule.json_key] = value
    updates[column]["generated_at"] = datetime.now(timezone.utc).isoformat()
    updates[column]["generated_by"] = GENERATED_BY


def reconcile_fields(
    listing: Listing,
    rules: Iterable[FieldRule] = FIELD_RULES,
    threshold: int = DEFAULT_CONFIDENCE_THRESHOLD,
) -> tuple[dict[str, Any], list[FieldChange], SkipCounts]:
    """Fill the listing's empty target fields from its raw blobs.

    Populated fields are never touched. Returns (partial update keyed by
    store column, one change per filled field, skip counters).
    """
    updates: dict[str, Any] = {}
    changes: list[FieldChange] = []
    skipped = SkipCounts()

    for rule in rules:
        old = current_value(listing, rule)
        if not is_empty(old, rule.zero_is_empty):
            skipped.already_populated += 1
            continue

        result, low_confidence = extract_field(rule, listing, threshold)
        skipped.low_confidence += low_confidence

        if result is None:
            skipped.no_data += 1
            continue

        if rule.json_key:
            _stage_json_key(updates, listing, rule, result.value)
        else:
            updates[rule.target_column] = result.value

        changes.append(
            FieldChange(
                field=rule.field,
                old_value=old,
                new_value=result.value,
                source=result.source,
                confidence=result.confidence,
            )
        )

    return updates, changes, skipped
