"""Command-line entry points.

    populate-fields [--dry-run]   fill empty listing fields from raw scrape data
    check-links                   report unreachable website/logo/social URLs
"""

import asyncio
import logging
import sys

import click
import httpx
from pydantic import ValidationError

from listing_pipeline.config import Settings
from listing_pipeline.exceptions.custom import RateLimitError, SupabaseError
from listing_pipeline.logging_config import configure_logging
from listing_pipeline.mappers.report_builder import (
    RULE,
    build_link_summary,
    build_run_summary,
    write_report,
)
from listing_pipeline.schemas.responses import LinkReport, RunReport
from listing_pipeline.services.link_checker import LINK_FIELDS, LinkCheckerService
from listing_pipeline.services.reconciliation import ReconciliationService
from listing_pipeline.services.supabase import SupabaseService

logger = logging.getLogger(__name__)

POPULATE_REPORT_PREFIX = "field-population"
LINK_REPORT_PREFIX = "link-check"

_FATAL_ERRORS = (SupabaseError, RateLimitError, httpx.HTTPError, ValidationError)


def _load_settings() -> Settings:
    try:
        return Settings()
    except ValidationError as exc:
        missing = ", ".join(str(err["loc"][0]).upper() for err in exc.errors())
        click.echo(f"Fatal error: missing or invalid configuration: {missing}", err=True)
        sys.exit(1)


async def _populate(settings: Settings, dry_run: bool) -> RunReport:
    async with httpx.AsyncClient(timeout=30.0) as client:
        supabase = SupabaseService(
            client,
            settings.supabase_url,
            settings.supabase_service_role_key,
            table=settings.listings_table,
        )
        service = ReconciliationService(
            supabase,
            threshold=settings.confidence_threshold,
            page_size=settings.page_size,
        )
        return await service.run(dry_run=dry_run, full_scan=settings.full_scan)


async def _check_links(settings: Settings) -> LinkReport:
    async with httpx.AsyncClient(timeout=30.0) as client:
        supabase = SupabaseService(
            client,
            settings.supabase_url,
            settings.supabase_service_role_key,
            table=settings.listings_table,
        )
        listings = await supabase.fetch_listings(
            ["id", "name", "slug", *LINK_FIELDS], page_size=settings.page_size
        )
        checker = LinkCheckerService(client, timeout=settings.link_check_timeout)
        return await checker.check_listings(listings, table=settings.listings_table)


@click.command()
@click.option("--dry-run", is_flag=True, help="Compute and log every change without writing.")
def populate_fields(dry_run: bool) -> None:
    """Populate empty listing fields from Apify/Firecrawl output."""
    settings = _load_settings()
    configure_logging(settings.log_level)

    click.echo(RULE)
    click.echo("FIELD POPULATION")
    click.echo(f"Mode: {'DRY RUN (no changes will be made)' if dry_run else 'LIVE RUN'}")
    click.echo(f"Table: {settings.listings_table}")
    click.echo(f"Confidence Threshold: {settings.confidence_threshold}%")
    click.echo(RULE)

    try:
        report = asyncio.run(_populate(settings, dry_run))
    except _FATAL_ERRORS as exc:
        logger.error("Fatal error: %s", exc)
        sys.exit(1)

    click.echo(build_run_summary(report, max_errors=settings.max_reported_errors))
    path = write_report(report, settings.logs_dir, POPULATE_REPORT_PREFIX, report.started_at)
    click.echo(f"Detailed log saved: {path}")


@click.command()
def check_links() -> None:
    """Check that stored website, logo and social URLs still resolve."""
    settings = _load_settings()
    configure_logging(settings.log_level)

    try:
        report = asyncio.run(_check_links(settings))
    except _FATAL_ERRORS as exc:
        logger.error("Fatal error: %s", exc)
        sys.exit(1)

    click.echo(build_link_summary(report))
    path = write_report(report, settings.logs_dir, LINK_REPORT_PREFIX, report.started_at)
    click.echo(f"Detailed log saved: {path}")

    if report.broken:
        sys.exit(1)
