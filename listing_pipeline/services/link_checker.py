import logging
from collections.abc import Sequence
from datetime import datetime, timezone

import httpx

from listing_pipeline.mappers.validators import SOCIAL_PLATFORMS
from listing_pipeline.schemas.listing import Listing
from listing_pipeline.schemas.responses import BrokenLink, LinkReport

logger = logging.getLogger(__name__)

_TIMEOUT = 10.0
_USER_AGENT = "ListingPipeline/1.0 (link-check)"

LINK_FIELDS = ("website", "logo_image", *SOCIAL_PLATFORMS)


class LinkCheckerService:
    def __init__(self, client: httpx.AsyncClient, timeout: float = _TIMEOUT):
        self._client = client
        self._timeout = timeout

    async def _request(self, method: str, url: str) -> httpx.Response:
        return await self._client.request(
            method,
            url,
            follow_redirects=True,
            timeout=self._timeout,
            headers={"User-Agent": _USER_AGENT},
        )

    async def check(self, url: str) -> tuple[bool, str]:
        """Return (ok, status). HEAD first; GET when HEAD fails to connect."""
        try:
            resp = await self._request("HEAD", url)
        except httpx.HTTPError as exc:
            logger.debug("HEAD failed for %s (%s), retrying with GET", url, exc)
            try:
                resp = await self._request("GET", url)
            except httpx.HTTPError as get_exc:
                return False, str(get_exc) or get_exc.__class__.__name__

        return resp.is_success, str(resp.status_code)

    async def check_listings(
        self,
        listings: Sequence[Listing],
        table: str,
        fields: Sequence[str] = LINK_FIELDS,
    ) -> LinkReport:
        report = LinkReport(table=table, started_at=datetime.now(timezone.utc))

        for listing in listings:
            for field in fields:
                url = getattr(listing, field, None)
                if not isinstance(url, str) or not url.startswith("http"):
                    continue

                report.checked += 1
                ok, status = await self.check(url)
                if ok:
                    report.valid += 1
                    continue

                logger.warning("Broken %s link for %s: %s (%s)", field, listing.name, url, status)
                report.broken.append(
                    BrokenLink(
                        url=url,
                        source=f"{listing.name or listing.id} ({field})",
                        field=field,
                        status=status,
                    )
                )

        report.finished_at = datetime.now(timezone.utc)
        return report
