from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel

from listing_pipeline.schemas.responses import LinkReport, RunReport

RULE = "=" * 80
DEFAULT_MAX_ERRORS = 10
MAX_BROKEN_PER_FIELD = 20


def report_path(logs_dir: str | Path, prefix: str, when: datetime | None = None) -> Path:
    stamp = (when or datetime.now(timezone.utc)).strftime("%Y%m%dT%H%M%S%fZ")
    return Path(logs_dir) / f"{prefix}-{stamp}.json"


def write_report(
    report: BaseModel,
    logs_dir: str | Path,
    prefix: str,
    when: datetime | None = None,
) -> Path:
    """Serialize a run report to ``<logs_dir>/<prefix>-<timestamp>.json``."""
    path = report_path(logs_dir, prefix, when)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(report.model_dump_json(indent=2), encoding="utf-8")
    return path


def build_run_summary(report: RunReport, max_errors: int = DEFAULT_MAX_ERRORS) -> str:
    stats = report.stats
    lines = [
        RULE,
        f"SUMMARY ({report.table})",
        RULE,
        f"Total Processed: {stats.total_processed}",
        f"Total Updated: {stats.total_updated}",
        f"Success Rate: {stats.success_rate:.1f}%",
    ]

    touched = {field: count for field, count in stats.fields_updated.items() if count > 0}
    lines.append("")
    lines.append("Fields Updated:")
    if touched:
        lines.extend(f"  {field}: {count}" for field, count in touched.items())
    else:
        lines.append("  (none)")

    lines.append("")
    lines.append("Skipped:")
    lines.append(f"  Already populated: {stats.skipped.already_populated}")
    lines.append(f"  No data available: {stats.skipped.no_data}")
    lines.append(f"  Low confidence: {stats.skipped.low_confidence}")

    if stats.errors:
        lines.append("")
        lines.append(f"Errors ({len(stats.errors)}):")
        for err in stats.errors[:max_errors]:
            lines.append(f"  {err.listing or err.listing_id}: {err.error}")
        if len(stats.errors) > max_errors:
            lines.append(f"  ... and {len(stats.errors) - max_errors} more")

    lines.append("")
    lines.append("Impact:")
    lines.append(f"  Total field updates: {stats.total_field_updates}")
    if stats.total_updated:
        average = stats.total_field_updates / stats.total_updated
        lines.append(f"  Average fields per listing: {average:.1f}")

    lines.append("")
    if report.dry_run:
        lines.append("DRY RUN MODE - no changes were made to the database")
        lines.append("Run without --dry-run to apply changes")
    else:
        lines.append("Changes applied to database")

    return "\n".join(lines)


def build_link_summary(report: LinkReport) -> str:
    lines = [
        RULE,
        f"LINK CHECK SUMMARY ({report.table})",
        RULE,
        f"Total links checked: {report.checked}",
        f"Valid: {report.valid}",
        f"Broken: {len(report.broken)}",
    ]

    by_field: dict[str, list] = {}
    for link in report.broken:
        by_field.setdefault(link.field, []).append(link)

    for field, links in by_field.items():
        lines.append("")
        lines.append(f"{field.upper()} ({len(links)}):")
        for link in links[:MAX_BROKEN_PER_FIELD]:
            lines.append(f"  {link.url}")
            lines.append(f"     Source: {link.source}")
            lines.append(f"     Status: {link.status}")
        if len(links) > MAX_BROKEN_PER_FIELD:
            lines.append(f"     ... and {len(links) - MAX_BROKEN_PER_FIELD} more")

    if not report.broken:
        lines.append("")
        lines.append("All links are valid!")

    return "\n".join(lines)
