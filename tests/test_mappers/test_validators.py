import pytest

from listing_pipeline.mappers.validators import (
    classify_parking_info,
    classify_reservations_policy,
    convert_price_to_level,
    convert_to_24_hour,
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

ALL_VALIDATORS = (
    validate_email,
    convert_price_to_level,
    validate_image_url,
    validate_phone,
    validate_website_url,
    validate_text,
    normalize_hours,
    estimate_average_meal_price,
    extract_mall_name,
    classify_reservations_policy,
    classify_parking_info,
    generate_og_description,
    lambda raw: validate_social_url("instagram", raw),
)


@pytest.mark.parametrize("raw", [None, 42, 3.5, [], {}, object(), "", "   ", b"bytes", ["$$"]])
def test_validators_return_none_instead_of_raising(raw):
    for validator in ALL_VALIDATORS:
        assert validator(raw) is None


# --- Email ---


def test_email_trimmed_and_lowercased():
    assert validate_email("  Info@CafeGoa.com ") == "info@cafegoa.com"


def test_email_mailto_prefix_stripped():
    assert validate_email("mailto:hello@cafegoa.com?subject=Hi") == "hello@cafegoa.com"


@pytest.mark.parametrize("raw", [
    "noreply@example.com",
    "info@example.com",
    "noreply@cafegoa.com",
    "no-reply@cafegoa.com",
    "donotreply@cafegoa.com",
    "placeholder@cafegoa.com",
    "owner@test.com",
    "abc123@sentry.io",
    "x@sentry-next.wixpress.com",
])
def test_email_rejects_placeholders(raw):
    assert validate_email(raw) is None


@pytest.mark.parametrize("raw", ["not-an-email", "a@b", "@cafegoa.com", "a b@cafegoa.com"])
def test_email_rejects_bad_shape(raw):
    assert validate_email(raw) is None


def test_email_does_not_reject_similar_domains():
    assert validate_email("hello@contest.com") == "hello@contest.com"


@pytest.mark.parametrize("raw", ["logo@2x.png", "hero@3x.jpg", "banner@2x.webp", "icon@2x.svg"])
def test_email_rejects_retina_image_names(raw):
    assert validate_email(raw) is None


# --- Social ---


def test_social_handle_builds_canonical_url():
    assert validate_social_url("instagram", "@cafegoa") == "https://instagram.com/cafegoa"


def test_social_handle_from_search_hit():
    hit = {"found": True, "handle": "@cafegoa", "confidence": 90}
    assert validate_social_url("instagram", hit) == "https://instagram.com/cafegoa"


def test_social_url_preferred_over_handle():
    hit = {"url": "https://www.instagram.com/cafe.goa", "handle": "other"}
    assert validate_social_url("instagram", hit) == "https://www.instagram.com/cafe.goa"


def test_tiktok_handle_keeps_at_prefix_in_base():
    assert validate_social_url("tiktok", "@cafegoa") == "https://tiktok.com/@cafegoa"


@pytest.mark.parametrize("url", [
    "https://instagram.evil.com/x",
    "https://evilinstagram.com/x",
    "https://instagram.com.evil.com/x",
    "https://facebook.com/cafegoa",
])
def test_social_rejects_foreign_hosts(url):
    assert validate_social_url("instagram", url) is None


@pytest.mark.parametrize("url", [
    "https://facebook.com/sharer/sharer.php?u=x",
    "https://twitter.com/intent/tweet?text=x",
])
def test_social_rejects_share_links(url):
    platform = "facebook" if "facebook" in url else "twitter"
    assert validate_social_url(platform, url) is None


def test_social_rejects_markdown_artifacts():
    assert validate_social_url("instagram", "https://instagram.com/meatmoot.goa)[Instagram](https:") is None


def test_social_rejects_empty_profile():
    assert validate_social_url("instagram", "https://instagram.com/") is None


def test_social_accepts_alternate_domains():
    assert validate_social_url("twitter", "https://x.com/cafegoa") == "https://x.com/cafegoa"


def test_social_rejects_non_http_url_and_bad_handle():
    assert validate_social_url("instagram", "ftp://instagram.com/x") is None
    assert validate_social_url("instagram", "@") is None
    assert validate_social_url("instagram", "two words") is None


def test_social_unknown_platform():
    assert validate_social_url("myspace", "@cafegoa") is None


# --- Price ---


@pytest.mark.parametrize("n", [1, 2, 3, 4])
def test_dollar_strings_map_to_length(n):
    assert convert_price_to_level("$" * n) == n


@pytest.mark.parametrize("n", [5, 6, 10])
def test_dollar_strings_capped_at_four(n):
    assert convert_price_to_level("$" * n) == 4


@pytest.mark.parametrize("raw,level", [
    ("KWD 2", 1),
    ("KWD 3–6", 2),
    ("KWD 5", 2),
    ("KWD 6-10", 3),
    ("KWD 9.5", 3),
    ("KWD 10+", 4),
    ("25 KD", 4),
])
def test_currency_amount_buckets(raw, level):
    assert convert_price_to_level(raw) == level


def test_price_without_amount_rejected():
    assert convert_price_to_level("expensive") is None


def test_average_meal_price_from_range_midpoint():
    assert estimate_average_meal_price({"price": "$$", "priceRange": "10-20"}) == 15


def test_average_meal_price_from_level():
    assert estimate_average_meal_price({"price": "$$$"}) == 25


def test_average_meal_price_without_price():
    assert estimate_average_meal_price({"name": "Cafe"}) is None


# --- Images ---


@pytest.mark.parametrize("url", [
    "https://cdn.example.com/logo.png",
    "https://site.com/images/LOGO.JPG",
    "https://res.cloudinary.com/demo/image/upload/sample",
])
def test_image_accepted(url):
    assert validate_image_url(url) == url


@pytest.mark.parametrize("url", [
    "/logo.png",
    "https://site.com/favicon.ico",
    "https://site.com/apple-touch-icon.png",
    "https://site.com/android-chrome-192x192.png",
    "https://site.com/page",
    "https://site.com/[logo].png",
])
def test_image_rejected(url):
    assert validate_image_url(url) is None


# --- Contact basics ---


def test_phone_normalized_to_e164():
    assert validate_phone("+965 2222 3333") == "+96522223333"


def test_phone_double_zero_prefix():
    assert validate_phone("00965 2222 3333") == "+96522223333"


def test_phone_arabic_indic_digits_mapped_to_ascii():
    assert validate_phone("+٩٦٥ ٢٢٢٢ ٣٣٣٣") == "+96522223333"
    assert validate_phone("٠٠٩٦٥ ۲۲۲۲ ۳۳۳۳") == "+96522223333"


@pytest.mark.parametrize("raw", ["2222 3333", "+12", "+0965 2222 3333"])
def test_phone_rejected(raw):
    assert validate_phone(raw) is None


def test_website_rejects_maps_links():
    assert validate_website_url("https://www.google.com/maps/place/x") is None
    assert validate_website_url("https://cafegoa.com") == "https://cafegoa.com"


def test_text_strips():
    assert validate_text("  Avenues Mall, Phase 2 ") == "Avenues Mall, Phase 2"


# --- Hours ---


@pytest.mark.parametrize("raw,expected", [
    ("8 AM", "08:00"),
    ("11:30 PM", "23:30"),
    ("12 AM", "00:00"),
    ("12 PM", "12:00"),
    ("18:45", "18:45"),
    ("11 AM", "11:00"),
])
def test_convert_to_24_hour(raw, expected):
    assert convert_to_24_hour(raw) == expected


def test_convert_to_24_hour_rejects_garbage():
    assert convert_to_24_hour("noon-ish") is None


def test_normalize_hours():
    raw = [
        {"day": "Monday", "hours": "8 AM to 11 PM"},
        {"day": "Friday", "hours": "Closed"},
        {"day": "Saturday", "hours": "10 AM–2 AM"},
        {"day": "Funday", "hours": "8 AM to 9 PM"},
    ]
    assert normalize_hours(raw) == {
        "mon": {"open": "08:00", "close": "23:00", "closed": False},
        "fri": {"open": None, "close": None, "closed": True},
        "sat": {"open": "10:00", "close": "02:00", "closed": False},
    }


def test_normalize_hours_nothing_usable():
    assert normalize_hours([{"day": "Monday", "hours": "whenever"}]) is None


# --- Location / amenities ---


def test_extract_mall_name():
    assert extract_mall_name("Shop 12, Avenues Mall, Al Rai") == "Avenues Mall"
    assert extract_mall_name("Grand Avenue, The Avenues, Al Rai") == "Grand Avenue"
    assert extract_mall_name("Street 5, Salmiya") is None


def test_reservations_policy():
    assert classify_reservations_policy([{"text": "Make a reservation!"}]) == "Reservations Recommended"
    assert classify_reservations_policy([{"review": "Walk in was easy"}]) == "Walk-ins Welcome"
    assert classify_reservations_policy([{"text": "Great food"}]) is None


def test_parking_info():
    assert classify_parking_info({"reviews": [{"text": "Valet was quick"}]}) == "Valet Parking Available"
    assert classify_parking_info({"reviews": [{"text": "Free parking outside"}]}) == "Free Parking Available"
    assert classify_parking_info({"reviews": [], "address": "360 Mall, Zahra"}) == "Mall Parking Available"
    assert classify_parking_info({"reviews": [{"text": "Tasty"}]}) is None


# --- SEO ---


def test_og_description_short_kept():
    assert generate_og_description("Cozy cafe in Salmiya.") == "Cozy cafe in Salmiya."


def test_og_description_truncated_at_word_boundary():
    text = "word " * 40
    result = generate_og_description(text)
    assert result.endswith("...")
    assert len(result) <= 123
    assert not result[:-3].endswith(" ")
