import asyncio
import logging

from fastapi import APIRouter, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from listing_pipeline.config import Settings
from listing_pipeline.dependencies import JobStoreDep, ReconciliationDep, SettingsDep
from listing_pipeline.jobs import JobStore
from listing_pipeline.mappers.report_builder import write_report
from listing_pipeline.schemas.responses import (
    JobStatusResponse,
    JobSubmittedResponse,
    RunReport,
)
from listing_pipeline.services.reconciliation import ReconciliationService

logger = logging.getLogger(__name__)

router = APIRouter()

REPORT_PREFIX = "field-population"


class ReconcileRequest(BaseModel):
    dry_run: bool = False
    full_scan: bool | None = None


def _save_report(report: RunReport, settings: Settings) -> None:
    path = write_report(report, settings.logs_dir, REPORT_PREFIX, report.started_at)
    logger.info("Run report saved: %s", path)


async def _run_reconciliation(
    job_id: str,
    service: ReconciliationService,
    store: JobStore,
    settings: Settings,
    dry_run: bool,
    full_scan: bool,
) -> None:
    store.mark_running(job_id)
    try:
        result = await service.run(dry_run=dry_run, full_scan=full_scan)
        _save_report(result, settings)
        store.mark_completed(job_id, result)
    except Exception as exc:
        logger.exception("Reconciliation job %s failed", job_id)
        store.mark_failed(job_id, str(exc))


@router.post("/reconcile", response_model=JobSubmittedResponse, status_code=202)
async def submit_reconciliation(
    service: ReconciliationDep,
    store: JobStoreDep,
    settings: SettingsDep,
    request: ReconcileRequest | None = None,
) -> JobSubmittedResponse:
    request = request or ReconcileRequest()
    full_scan = settings.full_scan if request.full_scan is None else request.full_scan

    existing = store.active_job()
    if existing:
        return JSONResponse(content={
            "job_id": existing.job_id,
            "status": "already_running",
            "message": "A reconciliation run is already in progress",
        })

    job = store.create_job(dry_run=request.dry_run)
    task = asyncio.create_task(
        _run_reconciliation(job.job_id, service, store, settings, request.dry_run, full_scan)
    )
    store.track_task(task)
    return JobSubmittedResponse(
        job_id=job.job_id,
        status=job.status,
        message="Reconciliation job submitted",
    )


@router.get("/jobs/{job_id}", response_model=JobStatusResponse)
async def get_job_status(job_id: str, store: JobStoreDep) -> JobStatusResponse:
    job = store.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return JobStatusResponse(**job.model_dump())


@router.post("/reconcile/sync", response_model=RunReport)
async def reconcile_sync(
    service: ReconciliationDep,
    settings: SettingsDep,
    request: ReconcileRequest | None = None,
) -> RunReport:
    request = request or ReconcileRequest()
    full_scan = settings.full_scan if request.full_scan is None else request.full_scan
    report = await service.run(dry_run=request.dry_run, full_scan=full_scan)
    _save_report(report, settings)
    return report
