import logging
from collections.abc import Sequence
from datetime import datetime, timezone

from listing_pipeline.mappers.extractors import (
    DEFAULT_CONFIDENCE_THRESHOLD,
    FIELD_RULES,
    FieldRule,
    rule_columns,
)
from listing_pipeline.mappers.field_reconciler import reconcile_fields
from listing_pipeline.schemas.listing import Listing
from listing_pipeline.schemas.responses import (
    RecordError,
    RecordResult,
    RunReport,
    RunStats,
)
from listing_pipeline.services.supabase import DEFAULT_PAGE_SIZE, SupabaseService

logger = logging.getLogger(__name__)

BASE_COLUMNS = ("id", "name", "area", "description", "apify_output", "firecrawl_output")
PROGRESS_EVERY = 10


def missing_field_filters(rules: Sequence[FieldRule]) -> list[str]:
    """PostgREST OR-conditions matching rows with at least one empty target."""
    filters: list[str] = []
    for rule in rules:
        column = rule.target_column
        if rule.json_key:
            condition = f"{column}->>{rule.json_key}.is.null"
        else:
            condition = f"{column}.is.null"
        if condition not in filters:
            filters.append(condition)
        if rule.zero_is_empty:
            filters.append(f"{column}.eq.0")
    return filters


def _display_value(value: object, limit: int = 60) -> str:
    text = str(value)
    return text if len(text) <= limit else text[:limit] + "..."


class ReconciliationService:
    def __init__(
        self,
        supabase: SupabaseService,
        rules: Sequence[FieldRule] = FIELD_RULES,
        threshold: int = DEFAULT_CONFIDENCE_THRESHOLD,
        page_size: int = DEFAULT_PAGE_SIZE,
    ):
        self._supabase = supabase
        self._rules = tuple(rules)
        self._threshold = threshold
        self._page_size = page_size

    @property
    def columns(self) -> list[str]:
        columns = list(BASE_COLUMNS)
        for column in rule_columns(self._rules):
            if column not in columns:
                columns.append(column)
        return columns

    async def load_listings(self, full_scan: bool = False) -> list[Listing]:
        total = await self._supabase.count_listings()
        logger.info("Total rows in %s: %s", self._supabase.table, total)

        or_filters = None if full_scan else missing_field_filters(self._rules)
        return await self._supabase.fetch_listings(
            self.columns, or_filters=or_filters, page_size=self._page_size
        )

    async def reconcile_listing(self, listing: Listing, dry_run: bool = False) -> RecordResult:
        """Reconcile one listing and commit its staged fields in a single update.

        Never raises for a failed update: the failure is returned as an
        ``error`` result so the caller can move on to the next listing.
        """
        updates, changes, skipped = reconcile_fields(listing, self._rules, self._threshold)
        listing_id = str(listing.id)

        if not updates:
            return RecordResult(
                listing_id=listing_id,
                listing_name=listing.name,
                status="unchanged",
                skipped=skipped,
            )

        logger.info("%s (%s)", listing.name, listing.area or "-")
        for change in changes:
            logger.info(
                "  %s: %s (source: %s, confidence: %s)",
                change.field.upper(),
                _display_value(change.new_value),
                change.source,
                change.confidence,
            )

        if dry_run:
            logger.info("  [dry run] would update %d columns", len(updates))
        else:
            try:
                await self._supabase.update_listing(listing.id, updates)
            except Exception as exc:
                logger.error("Error processing %s: %s", listing.name, exc)
                return RecordResult(
                    listing_id=listing_id,
                    listing_name=listing.name,
                    status="error",
                    message=str(exc),
                    changes=changes,
                    skipped=skipped,
                )

        return RecordResult(
            listing_id=listing_id,
            listing_name=listing.name,
            status="updated",
            changes=changes,
            fields_updated={change.field: 1 for change in changes},
            skipped=skipped,
        )

    async def run(self, dry_run: bool = False, full_scan: bool = False) -> RunReport:
        started_at = datetime.now(timezone.utc)
        listings = await self.load_listings(full_scan=full_scan)

        stats = RunStats(fields_updated={rule.field: 0 for rule in self._rules})
        results: list[RecordResult] = []
        total = len(listings)

        for index, listing in enumerate(listings, start=1):
            result = await self.reconcile_listing(listing, dry_run=dry_run)
            results.append(result)
            _accumulate(stats, result)

            if index % PROGRESS_EVERY == 0:
                logger.info(
                    "Progress: %d/%d (%.1f%%) - %d updated",
                    index, total, index / total * 100, stats.total_updated,
                )

        return RunReport(
            table=self._supabase.table,
            dry_run=dry_run,
            full_scan=full_scan,
            started_at=started_at,
            finished_at=datetime.now(timezone.utc),
            stats=stats,
            results=results,
        )


def _accumulate(stats: RunStats, result: RecordResult) -> None:
    stats.total_processed += 1
    stats.skipped.already_populated += result.skipped.already_populated
    stats.skipped.no_data += result.skipped.no_data
    stats.skipped.low_confidence += result.skipped.low_confidence

    if result.status == "updated":
        stats.total_updated += 1
        for field, count in result.fields_updated.items():
            stats.fields_updated[field] = stats.fields_updated.get(field, 0) + count
    elif result.status == "error":
        stats.errors.append(
            RecordError(
                listing_id=result.listing_id,
                listing=result.listing_name,
                error=result.message or "unknown error",
            )
        )
