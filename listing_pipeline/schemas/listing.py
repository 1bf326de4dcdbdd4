from typing import Any

from pydantic import BaseModel


class Listing(BaseModel):
    """One directory row as read from the store.

    Unknown columns are kept so other listing tables (hotels, malls, ...)
    load through the same model.
    """

    model_config = {"extra": "allow"}

    id: str | int
    name: str | None = None
    area: str | None = None
    slug: str | None = None
    description: str | None = None

    # Raw upstream blobs (jsonb, read through dig() so any shape loads)
    apify_output: Any = None
    firecrawl_output: Any = None
    seo_metadata: dict[str, Any] | None = None

    # Contact / basics
    email: str | None = None
    phone: str | None = None
    website: str | None = None
    address: str | None = None

    # Operational. Loose types: a row must load even when a populated value
    # is not what the pipeline itself would write.
    price_level: int | float | None = None
    average_meal_price: int | float | None = None
    hours: Any = None
    mall_name: str | None = None
    reservations_policy: str | None = None
    parking_info: str | None = None
    logo_image: str | None = None

    # Social
    instagram: str | None = None
    facebook: str | None = None
    twitter: str | None = None
    tiktok: str | None = None
    youtube: str | None = None
    linkedin: str | None = None
    snapchat: str | None = None
