from typing import Annotated

from fastapi import Depends, Request

from listing_pipeline.config import Settings
from listing_pipeline.jobs import JobStore
from listing_pipeline.services.reconciliation import ReconciliationService


def get_reconciliation_service(request: Request) -> ReconciliationService:
    return request.app.state.reconciliation_service


def get_job_store(request: Request) -> JobStore:
    return request.app.state.job_store


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


ReconciliationDep = Annotated[ReconciliationService, Depends(get_reconciliation_service)]
JobStoreDep = Annotated[JobStore, Depends(get_job_store)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
