"""
Job API endpoints.

Provides REST endpoints for submitting and managing jobs, and the
completion webhook the provider calls.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from api.middleware.auth import get_current_user
from api.dependencies import get_job_orchestrator, get_webhook_ingress
from shared.models import AuthenticatedUser

from .exceptions import (
    JobAccessDeniedError,
    JobNotFoundError,
    WebhookSignatureError,
)
from .models import (
    JobListResponse,
    JobResponse,
    JobState,
    SubmitJobRequest,
    WebhookResponse,
)
from .orchestrator import JobOrchestrator
from .webhooks import WebhookIngress

router = APIRouter()
webhook_router = APIRouter()


@router.post("", response_model=JobResponse, status_code=201)
async def submit_job(
    request: SubmitJobRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    orchestrator: JobOrchestrator = Depends(get_job_orchestrator),
) -> JobResponse:
    """
    Submit a job.

    Credits are debited before the job is handed to the provider. If the
    provider rejects it, the job comes back FAILED and already refunded.
    Returns 402 when the balance is too low.
    """
    job = await orchestrator.submit_job(user.id, request)
    return JobResponse.from_job(job)


@router.get("", response_model=JobListResponse)
async def list_jobs(
    page: int = Query(default=1, ge=1, description="Page number (1-indexed)"),
    page_size: int = Query(default=20, ge=1, le=100, description="Items per page"),
    state: Optional[JobState] = Query(default=None, description="Filter by state"),
    user: AuthenticatedUser = Depends(get_current_user),
    orchestrator: JobOrchestrator = Depends(get_job_orchestrator),
) -> JobListResponse:
    """
    List the current user's jobs, most recent first.
    """
    jobs, total = await orchestrator.list_jobs(user.id, page, page_size, state)
    return JobListResponse(
        jobs=[JobResponse.from_job(job) for job in jobs],
        total=total,
        page=page,
        page_size=page_size,
        has_more=page * page_size < total,
    )


@router.get("/{job_id}", response_model=JobResponse)
async def get_job(
    job_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    orchestrator: JobOrchestrator = Depends(get_job_orchestrator),
) -> JobResponse:
    """
    Get a specific job.
    """
    try:
        return JobResponse.from_job(await orchestrator.get_job(job_id, user.id))
    except (JobNotFoundError, JobAccessDeniedError):
        raise HTTPException(status_code=404, detail="Job not found")


@router.post("/{job_id}/cancel", response_model=JobResponse)
async def cancel_job(
    job_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    orchestrator: JobOrchestrator = Depends(get_job_orchestrator),
) -> JobResponse:
    """
    Cancel a running job. The job's credits are refunded.
    """
    try:
        return JobResponse.from_job(await orchestrator.cancel_job(job_id, user.id))
    except (JobNotFoundError, JobAccessDeniedError):
        raise HTTPException(status_code=404, detail="Job not found")


@router.post("/{job_id}/retry", response_model=JobResponse, status_code=201)
async def retry_job(
    job_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    orchestrator: JobOrchestrator = Depends(get_job_orchestrator),
) -> JobResponse:
    """
    Retry a failed job as a new job, charged at the current price.
    """
    try:
        return JobResponse.from_job(await orchestrator.retry_job(job_id, user.id))
    except (JobNotFoundError, JobAccessDeniedError):
        raise HTTPException(status_code=404, detail="Job not found")


@webhook_router.post("/provider", response_model=WebhookResponse)
async def provider_webhook(
    request: Request,
    ingress: WebhookIngress = Depends(get_webhook_ingress),
) -> WebhookResponse:
    """
    Receive a job completion notification from the provider.

    Always acknowledged with 200 unless the signature is invalid, so the
    provider stops redelivering events we have already handled or chose
    to drop.
    """
    body = await request.body()
    try:
        return await ingress.handle(body, request.headers)
    except WebhookSignatureError:
        raise HTTPException(status_code=401, detail="Invalid webhook signature")
