"""Canonical per-field priority chains.

Each target field has one ``FieldRule``: an ordered tuple of candidate
sources plus the validator every candidate value must pass. The first
candidate that validates at or above the confidence threshold wins.
"""

import logging
import re
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from functools import lru_cache, partial
from typing import Any

from bs4 import BeautifulSoup

from listing_pipeline.mappers.validators import (
    SOCIAL_PLATFORMS,
    classify_parking_info,
    classify_reservations_policy,
    convert_price_to_level,
    estimate_average_meal_price,
    extract_mall_name,
    generate_og_description,
    normalize_hours,
    validate_email,
    validate_image_url,
    validate_phone,
    validate_social_url,
    validate_text,
    validate_website_url,
)
from listing_pipeline.schemas.listing import Listing
from listing_pipeline.schemas.responses import ExtractionResult

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE_THRESHOLD = 70

_EMAIL_IN_TEXT_RE = re.compile(r"[a-zA-Z0-9._%+\-]+@[a-zA-Z0-9.\-]+\.[a-zA-Z]{2,}")


@dataclass(frozen=True)
class Candidate:
    source: str
    getter: Callable[[Listing], Any]
    # None: read the confidence from the raw mapping itself
    confidence: int | None = 100
    many: bool = False


@dataclass(frozen=True)
class FieldRule:
    field: str
    validator: Callable[[Any], Any]
    candidates: tuple[Candidate, ...]
    column: str | None = None
    json_key: str | None = None
    zero_is_empty: bool = False

    @property
    def target_column(self) -> str:
        return self.column or self.field


def dig(data: Any, *path: str) -> Any:
    for key in path:
        if not isinstance(data, Mapping):
            return None
        data = data.get(key)
    return data


def _first_str(value: Any) -> Any:
    if isinstance(value, list):
        return next((v for v in value if isinstance(v, str)), None)
    return value


def _apify(*path: str) -> Callable[[Listing], Any]:
    return lambda listing: dig(listing.apify_output, *path)


def _firecrawl(*path: str) -> Callable[[Listing], Any]:
    return lambda listing: dig(listing.firecrawl_output, *path)


def _metadata(key: str) -> Callable[[Listing], Any]:
    return lambda listing: _first_str(
        dig(listing.firecrawl_output, "website_scrape", "metadata", key)
    )


def _crawl_results(listing: Listing) -> list[Mapping[str, Any]]:
    results = dig(listing.firecrawl_output, "results")
    if not isinstance(results, list):
        return []
    return [r for r in results if isinstance(r, Mapping)]


def _crawl_result_urls(listing: Listing) -> list[str]:
    return [r["url"] for r in _crawl_results(listing) if isinstance(r.get("url"), str)]


def _crawl_result_emails(listing: Listing) -> list[str]:
    emails: list[str] = []
    for result in _crawl_results(listing):
        content = result.get("content") or result.get("markdown") or ""
        if isinstance(content, str):
            emails.extend(_EMAIL_IN_TEXT_RE.findall(content))
    return emails


@lru_cache(maxsize=64)
def _html_hrefs(html: str) -> tuple[str, ...]:
    soup = BeautifulSoup(html, "html.parser")
    return tuple(a["href"].strip() for a in soup.find_all("a", href=True))


def _website_hrefs(listing: Listing) -> list[str]:
    scrape = dig(listing.firecrawl_output, "website_scrape")
    hrefs: list[str] = []
    html = dig(scrape, "html")
    if isinstance(html, str) and html:
        hrefs.extend(_html_hrefs(html))
    links = dig(scrape, "links")
    if isinstance(links, list):
        hrefs.extend(link for link in links if isinstance(link, str))
    return hrefs


def _website_mailtos(listing: Listing) -> list[str]:
    return [h for h in _website_hrefs(listing) if h.lower().startswith("mailto:")]


def _social_search_hit(platform: str) -> Callable[[Listing], Any]:
    def getter(listing: Listing) -> Any:
        hit = dig(listing.firecrawl_output, "social_media_search", platform)
        if not isinstance(hit, Mapping) or not hit.get("found"):
            return None
        return hit

    return getter


def _social_rule(platform: str) -> FieldRule:
    return FieldRule(
        field=platform,
        validator=partial(validate_social_url, platform),
        candidates=(
            Candidate(
                f"firecrawl.social_media_search.{platform}",
                _social_search_hit(platform),
                confidence=None,
            ),
            Candidate("firecrawl.results.url", _crawl_result_urls, confidence=75, many=True),
            Candidate("firecrawl.website_scrape.links", _website_hrefs, confidence=70, many=True),
        ),
    )


FIELD_RULES: tuple[FieldRule, ...] = (
    FieldRule(
        field="email",
        validator=validate_email,
        candidates=(
            Candidate("firecrawl.extracted_operational.email",
                      _firecrawl("extracted_operational", "email"), confidence=90),
            Candidate("apify.email", _apify("email"), confidence=85),
            Candidate("firecrawl.website_scrape.mailto", _website_mailtos,
                      confidence=80, many=True),
            Candidate("firecrawl.results.content", _crawl_result_emails,
                      confidence=70, many=True),
        ),
    ),
    FieldRule(
        field="phone",
        validator=validate_phone,
        candidates=(
            Candidate("apify.phone", _apify("phone"), confidence=90),
            Candidate("apify.phoneUnformatted", _apify("phoneUnformatted"), confidence=85),
        ),
    ),
    FieldRule(
        field="website",
        validator=validate_website_url,
        candidates=(Candidate("apify.website", _apify("website"), confidence=90),),
    ),
    FieldRule(
        field="address",
        validator=validate_text,
        candidates=(
            Candidate("apify.address", _apify("address"), confidence=90),
            Candidate("apify.fullAddress", _apify("fullAddress"), confidence=85),
        ),
    ),
    FieldRule(
        field="price_level",
        validator=convert_price_to_level,
        zero_is_empty=True,
        candidates=(
            Candidate("apify.price", _apify("price"), confidence=90),
            Candidate("firecrawl.opentable.opentable_price_range",
                      _firecrawl("opentable", "opentable_price_range"), confidence=75),
        ),
    ),
    FieldRule(
        field="average_meal_price",
        validator=estimate_average_meal_price,
        zero_is_empty=True,
        candidates=(
            Candidate("apify.price+priceRange",
                      lambda listing: listing.apify_output, confidence=70),
        ),
    ),
    FieldRule(
        field="hours",
        validator=normalize_hours,
        candidates=(Candidate("apify.openingHours", _apify("openingHours"), confidence=90),),
    ),
    FieldRule(
        field="mall_name",
        validator=extract_mall_name,
        candidates=(
            Candidate("apify.address", _apify("address"), confidence=85),
            Candidate("apify.fullAddress", _apify("fullAddress"), confidence=80),
        ),
    ),
    FieldRule(
        field="reservations_policy",
        validator=classify_reservations_policy,
        candidates=(Candidate("apify.reviews", _apify("reviews"), confidence=70),),
    ),
    FieldRule(
        field="parking_info",
        validator=classify_parking_info,
        candidates=(
            Candidate("apify.reviews+address", lambda listing: listing.apify_output,
                      confidence=70),
        ),
    ),
    FieldRule(
        field="logo_image",
        validator=validate_image_url,
        candidates=(
            Candidate("metadata.msapplication-TileImage",
                      _metadata("msapplication-TileImage"), confidence=85),
            Candidate("metadata.og:image", _metadata("og:image"), confidence=80),
            Candidate("metadata.twitter:image", _metadata("twitter:image"), confidence=75),
        ),
    ),
    *(_social_rule(platform) for platform in SOCIAL_PLATFORMS),
    FieldRule(
        field="og_description",
        validator=generate_og_description,
        column="seo_metadata",
        json_key="og_description",
        candidates=(
            Candidate("description", lambda listing: listing.description, confidence=100),
        ),
    ),
)


def rule_columns(rules: Iterable[FieldRule]) -> list[str]:
    """Distinct store columns touched by ``rules``, in rule order."""
    columns: list[str] = []
    for rule in rules:
        if rule.target_column not in columns:
            columns.append(rule.target_column)
    return columns


def _candidate_confidence(candidate: Candidate, raw: Any) -> int:
    if candidate.confidence is not None:
        return candidate.confidence
    value = raw.get("confidence") if isinstance(raw, Mapping) else None
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def extract_field(
    rule: FieldRule,
    listing: Listing,
    threshold: int = DEFAULT_CONFIDENCE_THRESHOLD,
) -> tuple[ExtractionResult | None, int]:
    """Walk the rule's priority chain.

    Returns (winning result or None, number of low-confidence candidates seen).
    """
    low_confidence = 0

    for candidate in rule.candidates:
        try:
            raw = candidate.getter(listing)
        except Exception:
            logger.exception("Getter %s failed for listing %s", candidate.source, listing.id)
            continue

        if raw is None:
            continue

        values = raw if candidate.many else [raw]
        for value in values:
            if value is None:
                continue
            confidence = _candidate_confidence(candidate, value)
            if confidence < threshold:
                low_confidence += 1
                logger.debug(
                    "%s: %s below threshold (%d < %d)",
                    rule.field, candidate.source, confidence, threshold,
                )
                continue

            normalized = rule.validator(value)
            if normalized is None:
                logger.debug("%s: %s rejected %r", rule.field, candidate.source, value)
                continue

            return (
                ExtractionResult(value=normalized, source=candidate.source, confidence=confidence),
                low_confidence,
            )

    return None, low_confidence
