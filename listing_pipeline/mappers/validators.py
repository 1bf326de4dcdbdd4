"""Pure normalizers for raw upstream values.

Every function here takes an arbitrary raw value and returns either the
normalized value or None. None means "nothing usable from this source",
so callers can move on to the next candidate without try/except.
"""

import logging
import re
from collections.abc import Mapping
from typing import Any
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

# --- Email ---

_EMAIL_RE = re.compile(r"^[a-zA-Z0-9._%+\-]+@[a-zA-Z0-9.\-]+\.[a-zA-Z]{2,}$")

_PLACEHOLDER_EMAIL_DOMAINS = frozenset({
    "example.com", "example.org", "test.com", "domain.com", "email.com",
})

# Addresses that leak into scraped pages from embedded widgets
_ARTIFACT_EMAIL_DOMAINS = frozenset({
    "sentry.io", "wixpress.com", "w3.org", "sentry-next.wixpress.com",
})

_BLOCKED_EMAIL_PREFIXES = ("noreply", "no-reply", "donotreply", "do-not-reply")

# Retina asset names like logo@2x.png look like addresses in page text
_IMAGE_EMAIL_TLDS = frozenset({"png", "jpg", "jpeg", "webp", "svg", "gif"})


def _domain_matches(domain: str, blocked: frozenset[str]) -> bool:
    return any(domain == d or domain.endswith("." + d) for d in blocked)


def validate_email(raw: Any) -> str | None:
    if not isinstance(raw, str):
        return None

    email = raw.strip().lower()
    if email.startswith("mailto:"):
        email = email[7:].split("?")[0].strip()

    if not _EMAIL_RE.match(email):
        return None

    local, _, domain = email.partition("@")
    if domain.rsplit(".", 1)[-1] in _IMAGE_EMAIL_TLDS:
        logger.debug("Rejected image filename as email: %s", email)
        return None
    if _domain_matches(domain, _PLACEHOLDER_EMAIL_DOMAINS):
        logger.debug("Rejected placeholder email: %s", email)
        return None
    if _domain_matches(domain, _ARTIFACT_EMAIL_DOMAINS):
        logger.debug("Rejected artifact email: %s", email)
        return None
    if local.startswith(_BLOCKED_EMAIL_PREFIXES) or "placeholder" in email:
        logger.debug("Rejected no-reply/placeholder email: %s", email)
        return None

    return email


# --- Social media ---

SOCIAL_PLATFORMS = (
    "instagram", "facebook", "twitter", "tiktok", "youtube", "linkedin", "snapchat",
)

SOCIAL_BASE_URLS = {
    "instagram": "https://instagram.com/",
    "facebook": "https://facebook.com/",
    "twitter": "https://twitter.com/",
    "tiktok": "https://tiktok.com/@",
    "youtube": "https://youtube.com/",
    "linkedin": "https://linkedin.com/",
    "snapchat": "https://snapchat.com/",
}

SOCIAL_DOMAINS = {
    "instagram": frozenset({"instagram.com", "www.instagram.com"}),
    "facebook": frozenset({"facebook.com", "www.facebook.com", "m.facebook.com", "fb.com"}),
    "twitter": frozenset({"twitter.com", "www.twitter.com", "x.com", "www.x.com"}),
    "tiktok": frozenset({"tiktok.com", "www.tiktok.com"}),
    "youtube": frozenset({"youtube.com", "www.youtube.com", "m.youtube.com", "youtu.be"}),
    "linkedin": frozenset({"linkedin.com", "www.linkedin.com"}),
    "snapchat": frozenset({"snapchat.com", "www.snapchat.com"}),
}

# Share buttons, not profiles
_NON_PROFILE_SEGMENTS = frozenset({"sharer", "sharer.php", "share", "share.php", "intent"})

_MARKDOWN_ARTIFACTS = ("[", "]", "](")

_HANDLE_RE = re.compile(r"^[A-Za-z0-9._\-]{2,}$")


def _has_markdown(value: str) -> bool:
    return any(token in value for token in _MARKDOWN_ARTIFACTS)


def _social_url_from_handle(platform: str, handle: str) -> str | None:
    clean = handle.strip().lstrip("@")
    if not _HANDLE_RE.match(clean):
        return None
    return SOCIAL_BASE_URLS[platform] + clean


def validate_social_url(platform: str, raw: Any) -> str | None:
    """Normalize a profile URL or handle for one social platform.

    ``raw`` may be a URL, a bare handle, or a search hit mapping with
    ``url``/``handle`` keys. The URL wins when both are present.
    """
    if platform not in SOCIAL_DOMAINS:
        return None

    url: Any = None
    handle: Any = None
    if isinstance(raw, Mapping):
        url, handle = raw.get("url"), raw.get("handle")
    elif isinstance(raw, str):
        if raw.strip().startswith("http"):
            url = raw
        else:
            handle = raw

    final_url: str | None = None
    if isinstance(url, str) and url.strip():
        final_url = url.strip()
    elif isinstance(handle, str) and handle.strip():
        final_url = _social_url_from_handle(platform, handle)

    if not final_url or not final_url.startswith("http"):
        return None
    if _has_markdown(final_url):
        return None

    try:
        parsed = urlparse(final_url)
    except ValueError:
        return None

    host = (parsed.hostname or "").lower()
    if host not in SOCIAL_DOMAINS[platform]:
        return None

    path = parsed.path.lower().strip("/")
    if path in ("", "@"):
        return None
    if path.split("/")[0] in _NON_PROFILE_SEGMENTS:
        return None

    return final_url


# --- Price ---

_DOLLARS_RE = re.compile(r"^\$+$")
_AMOUNT_RE = re.compile(r"(\d+(?:\.\d+)?)")


def _bucket_amount(amount: float) -> int:
    if amount < 3:
        return 1
    if amount < 6:
        return 2
    if amount < 10:
        return 3
    return 4


def convert_price_to_level(raw: Any) -> int | None:
    """'$'..'$$$$' -> 1..4 (capped), or bucket the first amount in the string."""
    if not isinstance(raw, str):
        return None

    value = raw.strip()
    if not value:
        return None

    if _DOLLARS_RE.match(value):
        return min(len(value), 4)

    match = _AMOUNT_RE.search(value)
    if match:
        return _bucket_amount(float(match.group(1)))

    return None


_RANGE_RE = re.compile(r"(\d+)\s*[-–]\s*(\d+)")

_LEVEL_MEAL_ESTIMATES = {1: 5, 2: 15, 3: 25, 4: 40}


def estimate_average_meal_price(raw: Any) -> int | None:
    """Average meal price from an Apify place (``price`` + ``priceRange``).

    A numeric range gives its rounded midpoint; otherwise the price level
    maps to a fixed estimate.
    """
    if not isinstance(raw, Mapping):
        return None

    price_range = raw.get("priceRange")
    if isinstance(price_range, str):
        match = _RANGE_RE.search(price_range)
        if match:
            low, high = int(match.group(1)), int(match.group(2))
            return round((low + high) / 2)

    level = convert_price_to_level(raw.get("price"))
    return _LEVEL_MEAL_ESTIMATES.get(level) if level else None


# --- Images ---

_NON_LOGO_PATTERNS = ("favicon.ico", "apple-touch-icon", "android-chrome", "safari-pinned-tab")

_IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg", ".webp", ".svg", ".gif")

_IMAGE_CDNS = ("cloudinary", "imgix", "cloudfront", "supabase", "storage.googleapis")


def validate_image_url(raw: Any) -> str | None:
    if not isinstance(raw, str):
        return None

    url = raw.strip()
    if not url.startswith("http"):
        return None
    if _has_markdown(url):
        return None

    lower = url.lower()
    if any(p in lower for p in _NON_LOGO_PATTERNS):
        return None

    if not any(ext in lower for ext in _IMAGE_EXTENSIONS):
        if not any(cdn in lower for cdn in _IMAGE_CDNS):
            return None

    return url


# --- Contact basics ---


# Arabic-Indic and Extended Arabic-Indic digits
_ARABIC_DIGITS = str.maketrans("٠١٢٣٤٥٦٧٨٩۰۱۲۳۴۵۶۷۸۹", "01234567890123456789")

_ASCII_DIGITS = frozenset("0123456789")


def validate_phone(raw: Any) -> str | None:
    """Normalize to E.164. Needs an international prefix ('+' or '00')."""
    if not isinstance(raw, str):
        return None

    value = raw.strip().translate(_ARABIC_DIGITS)
    if value.startswith("00"):
        value = "+" + value[2:]
    if not value.startswith("+"):
        return None

    digits = "".join(c for c in value if c in _ASCII_DIGITS)
    if not digits or digits[0] == "0":
        return None
    if len(digits) < 7 or len(digits) > 15:
        logger.debug("Rejected phone outside E.164 range (%d digits): %s", len(digits), raw)
        return None
    return f"+{digits}"


# Maps/search result pages are not the business's own site
_NON_WEBSITE_HOSTS = ("google.com", "goo.gl", "maps.app.goo.gl", "g.page")


def validate_website_url(raw: Any) -> str | None:
    if not isinstance(raw, str):
        return None

    url = raw.strip()
    if not url.startswith(("http://", "https://")):
        return None
    if _has_markdown(url):
        return None

    try:
        host = (urlparse(url).hostname or "").lower()
    except ValueError:
        return None
    if not host or "." not in host:
        return None
    if any(host == h or host.endswith("." + h) for h in _NON_WEBSITE_HOSTS):
        return None
    return url


def validate_text(raw: Any) -> str | None:
    if not isinstance(raw, str):
        return None
    value = raw.strip()
    return value or None


# --- Opening hours ---

_DAY_KEYS = {
    "monday": "mon",
    "tuesday": "tue",
    "wednesday": "wed",
    "thursday": "thu",
    "friday": "fri",
    "saturday": "sat",
    "sunday": "sun",
}

_TIME_RE = re.compile(r"^(\d{1,2})(?::(\d{2}))?\s*([AaPp][Mm])?$")


def convert_to_24_hour(value: str) -> str | None:
    """'8 AM' -> '08:00', '11:30 PM' -> '23:30'."""
    match = _TIME_RE.match(value.replace("\u202f", " ").strip())
    if not match:
        return None

    hours = int(match.group(1))
    minutes = int(match.group(2) or 0)
    period = (match.group(3) or "").upper()

    if period == "PM" and hours != 12:
        hours += 12
    if period == "AM" and hours == 12:
        hours = 0
    if hours > 23 or minutes > 59:
        return None
    return f"{hours:02d}:{minutes:02d}"


def normalize_hours(raw: Any) -> dict[str, dict[str, Any]] | None:
    """Apify ``openingHours`` ([{day, hours}]) -> {mon: {open, close, closed}}."""
    if not isinstance(raw, list):
        return None

    normalized: dict[str, dict[str, Any]] = {}
    for entry in raw:
        if not isinstance(entry, Mapping):
            continue
        day = entry.get("day")
        hours = entry.get("hours")
        if not isinstance(day, str) or not isinstance(hours, str):
            continue

        key = _DAY_KEYS.get(day.strip().lower())
        if not key:
            continue

        if "closed" in hours.lower():
            normalized[key] = {"open": None, "close": None, "closed": True}
            continue

        parts = re.split(r"\s+to\s+|\s*[–\-]\s*", hours.strip(), maxsplit=1)
        if len(parts) != 2:
            continue
        open_at, close_at = convert_to_24_hour(parts[0]), convert_to_24_hour(parts[1])
        if open_at and close_at:
            normalized[key] = {"open": open_at, "close": close_at, "closed": False}

    return normalized or None


# --- Location / amenities ---

_MALL_RE = re.compile(
    r"(Avenues Mall|360 Mall|Marina Mall|Grand Avenue|Souk Sharq|Al Kout Mall|"
    r"The Avenues|Marina Crescent|Morouj Complex|Goa City Mall|Al Hamra Mall|"
    r"The Gate Mall|Al Tijaria Tower|Al Shaheed Park|Salmiya Mall|Hawally Mall|"
    r"Fahaheel Mall|Farwaniya Mall|Jahra Mall|Mubarakiya Souk|Souk Al-Mubarakiya)",
    re.IGNORECASE,
)


def extract_mall_name(raw: Any) -> str | None:
    if not isinstance(raw, str):
        return None
    match = _MALL_RE.search(raw)
    return match.group(1) if match else None


def _review_texts(reviews: Any) -> list[str]:
    if not isinstance(reviews, list):
        return []
    texts: list[str] = []
    for review in reviews:
        if isinstance(review, Mapping):
            text = review.get("text") or review.get("review") or ""
            if isinstance(text, str) and text:
                texts.append(text.lower())
    return texts


def classify_reservations_policy(raw: Any) -> str | None:
    """Reservation hints from review text (list of Apify reviews)."""
    for text in _review_texts(raw):
        if "reservation" in text or "book" in text:
            return "Reservations Recommended"
        if "walk-in" in text or "walk in" in text:
            return "Walk-ins Welcome"
    return None


def classify_parking_info(raw: Any) -> str | None:
    """Parking hints from an Apify place: review text first, then the address."""
    if not isinstance(raw, Mapping):
        return None

    for text in _review_texts(raw.get("reviews")):
        if "valet" in text:
            return "Valet Parking Available"
        if "parking" in text and "free" in text:
            return "Free Parking Available"
        if "parking" in text:
            return "Parking Available"

    address = raw.get("address") or raw.get("fullAddress") or ""
    if isinstance(address, str):
        lower = address.lower()
        if "mall" in lower or "complex" in lower:
            return "Mall Parking Available"
    return None


# --- SEO ---

OG_DESCRIPTION_MAX = 120


def generate_og_description(raw: Any) -> str | None:
    """Truncate a description to 120 chars at a word boundary."""
    if not isinstance(raw, str):
        return None

    description = " ".join(raw.split())
    if not description:
        return None
    if len(description) <= OG_DESCRIPTION_MAX:
        return description

    truncated = description[:OG_DESCRIPTION_MAX]
    last_space = truncated.rfind(" ")
    if last_space > 0:
        return truncated[:last_space] + "..."
    return truncated + "..."
