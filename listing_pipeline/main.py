from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI

from listing_pipeline.config import Settings
from listing_pipeline.exceptions.custom import RateLimitError, SupabaseError
from listing_pipeline.exceptions.handlers import (
    rate_limit_error_handler,
    supabase_error_handler,
)
from listing_pipeline.jobs import JobStore
from listing_pipeline.logging_config import configure_logging
from listing_pipeline.routers.reconcile import router as reconcile_router
from listing_pipeline.services.reconciliation import ReconciliationService
from listing_pipeline.services.supabase import SupabaseService


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = Settings()
    configure_logging(settings.log_level)

    async with httpx.AsyncClient(timeout=30.0) as client:
        supabase = SupabaseService(
            client,
            settings.supabase_url,
            settings.supabase_service_role_key,
            table=settings.listings_table,
        )
        app.state.settings = settings
        app.state.reconciliation_service = ReconciliationService(
            supabase,
            threshold=settings.confidence_threshold,
            page_size=settings.page_size,
        )
        app.state.job_store = JobStore()

        yield


app = FastAPI(title="Listing Pipeline", lifespan=lifespan)

app.add_exception_handler(SupabaseError, supabase_error_handler)
app.add_exception_handler(RateLimitError, rate_limit_error_handler)

app.include_router(reconcile_router)
