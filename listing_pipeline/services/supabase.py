import logging
from typing import Any

import httpx

from listing_pipeline.exceptions.custom import RateLimitError, SupabaseError
from listing_pipeline.schemas.listing import Listing

logger = logging.getLogger(__name__)

REST_PATH = "/rest/v1"
DEFAULT_PAGE_SIZE = 100


class SupabaseService:
    """Thin PostgREST client for one listings table."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        url: str,
        service_role_key: str,
        table: str = "restaurants",
    ):
        self._client = client
        self._table = table
        self._endpoint = f"{url.rstrip('/')}{REST_PATH}/{table}"
        self._headers = {
            "apikey": service_role_key,
            "Authorization": f"Bearer {service_role_key}",
            "Content-Type": "application/json",
        }

    @property
    def table(self) -> str:
        return self._table

    @property
    def endpoint(self) -> str:
        return self._endpoint

    def _raise_for_status(self, resp: httpx.Response) -> None:
        if resp.status_code == 429:
            raise RateLimitError("Supabase")
        if resp.status_code >= 400:
            raise SupabaseError(resp.text, status_code=resp.status_code)

    async def count_listings(self) -> int | None:
        resp = await self._client.head(
            self._endpoint,
            params={"select": "id"},
            headers={**self._headers, "Prefer": "count=exact"},
        )
        self._raise_for_status(resp)

        # Content-Range: "0-99/1234" or "*/1234"
        content_range = resp.headers.get("content-range", "")
        _, _, total = content_range.partition("/")
        return int(total) if total.isdigit() else None

    async def fetch_listings(
        self,
        columns: list[str],
        or_filters: list[str] | None = None,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> list[Listing]:
        """Load every matching row, page by page, ordered by id.

        ``or_filters`` are PostgREST conditions (``email.is.null``) combined
        with OR; None loads the whole table.
        """
        params: dict[str, Any] = {
            "select": ",".join(columns),
            "order": "id.asc",
            "limit": page_size,
        }
        if or_filters:
            params["or"] = f"({','.join(or_filters)})"

        listings: list[Listing] = []
        offset = 0

        while True:
            resp = await self._client.get(
                self._endpoint,
                params={**params, "offset": offset},
                headers=self._headers,
            )
            self._raise_for_status(resp)

            rows = resp.json()
            listings.extend(Listing(**row) for row in rows)
            logger.info("Fetched %d %s...", len(listings), self._table)

            if len(rows) < page_size:
                break
            offset += page_size

        logger.info("Loaded %d rows from %s", len(listings), self._table)
        return listings

    async def update_listing(self, listing_id: str | int, updates: dict[str, Any]) -> None:
        resp = await self._client.patch(
            self._endpoint,
            params={"id": f"eq.{listing_id}"},
            json=updates,
            headers={**self._headers, "Prefer": "return=minimal"},
        )
        self._raise_for_status(resp)

        logger.info("Updated %s %s (%d fields)", self._table, listing_id, len(updates))
