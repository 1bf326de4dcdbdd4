import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from .custom import RateLimitError, SupabaseError

logger = logging.getLogger(__name__)


async def supabase_error_handler(_request: Request, exc: SupabaseError) -> JSONResponse:
    logger.error("Supabase error: %s (status=%s)", exc.message, exc.status_code)
    return JSONResponse(
        status_code=502,
        content={"detail": f"Supabase error: {exc.message}"},
    )


async def rate_limit_error_handler(_request: Request, exc: RateLimitError) -> JSONResponse:
    logger.warning("Rate limit hit for %s", exc.service)
    return JSONResponse(
        status_code=429,
        content={"detail": f"Rate limit exceeded for {exc.service}"},
    )
