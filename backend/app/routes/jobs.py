"""Job posting routes.

Creation, reads, updates, deletes and status changes of job postings, plus
the per-job invitation and application listings.
"""

from fastapi import APIRouter, Query, Request, status

from ..auth import ClinicStaff, CurrentUser
from ..database import MarketplaceDep
from ..logging_config import get_logger, log_job_event
from ..models import (
    ApplicationListResponse,
    InvitationBatchResponse,
    InvitationCreate,
    InvitationListResponse,
    JobCreate,
    JobDeleteResponse,
    JobListResponse,
    JobResponse,
    JobStatusUpdate,
    JobUpdate,
    StatusHistoryResponse,
)
from ..rate_limit import limiter

logger = get_logger("dentipal.api.jobs")
router = APIRouter(prefix="/jobs", tags=["jobs"])


# =============================================================================
# Listings (declared before /{job_id} so the literal paths win)
# =============================================================================


@router.get("", response_model=JobListResponse)
@limiter.limit("60/minute")
def list_my_jobs(
    request: Request,
    user: CurrentUser,
    marketplace: MarketplaceDep,
    status_filter: str | None = Query(None, alias="status"),
):
    """List job postings created by the caller, newest first."""
    logger.info(f"GET /jobs | user={user.subject_id} | status={status_filter}")
    jobs = marketplace.postings.list_for_owner(user.subject_id, status_filter)
    return JobListResponse(jobs=[j.to_dict() for j in jobs], total=len(jobs))


@router.get("/matching", response_model=JobListResponse)
@limiter.limit("60/minute")
def list_matching_jobs(
    request: Request,
    user: CurrentUser,
    marketplace: MarketplaceDep,
    limit: int | None = Query(None),
):
    """Open jobs the caller's professional role can fill."""
    logger.info(f"GET /jobs/matching | user={user.subject_id} | limit={limit}")
    jobs = marketplace.matching.matching_jobs(user.subject_id, limit)
    return JobListResponse(jobs=[j.to_dict() for j in jobs], total=len(jobs))


# =============================================================================
# Postings
# =============================================================================


@router.post("/{job_type}", response_model=JobResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("20/minute")
def create_job_posting(
    request: Request,
    job_type: str,
    body: JobCreate,
    user: ClinicStaff,
    marketplace: MarketplaceDep,
):
    """
    Create a job posting of the given type.

    job_type is one of temporary, multi_day_consulting or permanent. The
    clinic's address and practice profile are copied onto the posting.
    """
    fields = body.model_dump(exclude_none=True)
    clinic_id = fields.pop("clinicId")
    logger.info(f"POST /jobs/{job_type} | clinic={clinic_id} | user={user.subject_id}")
    job = marketplace.postings.create(user.subject_id, job_type, clinic_id, fields)
    log_job_event("job_created", job.job_id, user.subject_id, type=job.job_type, role=job.professional_role)
    return JobResponse(message="Job posting created successfully", job=job.to_dict())


@router.get("/{job_id}", response_model=JobResponse)
@limiter.limit("60/minute")
def get_job_posting(request: Request, job_id: str, user: CurrentUser, marketplace: MarketplaceDep):
    """Get details of a specific job posting."""
    job = marketplace.postings.get(job_id)
    return JobResponse(message="Job posting retrieved successfully", job=job.to_dict())


@router.put("/{job_id}", response_model=JobResponse)
@limiter.limit("30/minute")
def update_job_posting(
    request: Request,
    job_id: str,
    body: JobUpdate,
    user: CurrentUser,
    marketplace: MarketplaceDep,
):
    """Update fields of a job posting the caller owns. Completed jobs are frozen."""
    changes = body.model_dump(exclude_unset=True)
    logger.info(f"PUT /jobs/{job_id} | user={user.subject_id} | fields={sorted(changes)}")
    job = marketplace.postings.update(job_id, user.subject_id, changes)
    log_job_event("job_updated", job_id, user.subject_id, fields=",".join(sorted(changes)))
    return JobResponse(message="Job posting updated successfully", job=job.to_dict())


@router.delete("/{job_id}", response_model=JobDeleteResponse)
@limiter.limit("20/minute")
def delete_job_posting(
    request: Request,
    job_id: str,
    user: CurrentUser,
    marketplace: MarketplaceDep,
    force: bool = Query(False, description="Required to delete a completed job"),
):
    """
    Delete a job posting and clean up its applications, invitations and negotiations.

    Refused while the job is scheduled or needs action, while any
    application or invitation is still active, and for completed jobs
    unless force=true.
    """
    logger.info(f"DELETE /jobs/{job_id} | user={user.subject_id} | force={force}")
    result = marketplace.deletion.delete(job_id, user.subject_id, force=force)
    log_job_event(
        "job_deleted",
        job_id,
        user.subject_id,
        related=result.related_items_deleted,
        failures=result.cleanup_failures,
    )
    return JobDeleteResponse(message="Job posting deleted successfully", **result.to_dict())


# =============================================================================
# Status
# =============================================================================


@router.put("/{job_id}/status", response_model=JobResponse)
@limiter.limit("30/minute")
def update_job_status(
    request: Request,
    job_id: str,
    body: JobStatusUpdate,
    user: CurrentUser,
    marketplace: MarketplaceDep,
):
    """Move a job to a new status; scheduled needs the accepted professional and a date."""
    logger.info(f"PUT /jobs/{job_id}/status | user={user.subject_id} | to={body.status}")
    job = marketplace.transitions.transition(
        job_id,
        user.subject_id,
        body.status,
        notes=body.notes,
        accepted_professional_user_sub=body.acceptedProfessionalUserSub,
        scheduled_date=body.scheduledDate,
        completion_notes=body.completionNotes,
    )
    previous = job.status_history[-1].from_status
    log_job_event("job_status_changed", job_id, user.subject_id, previous=previous, status=job.status)
    return JobResponse(message="Job status updated successfully", job=job.to_dict())


@router.get("/{job_id}/status-history", response_model=StatusHistoryResponse)
@limiter.limit("60/minute")
def get_job_status_history(request: Request, job_id: str, user: CurrentUser, marketplace: MarketplaceDep):
    """Status changes of a job the caller owns, oldest first."""
    history = marketplace.transitions.history(job_id, user.subject_id)
    current = history[-1].to_status if history else marketplace.postings.get(job_id).status
    return StatusHistoryResponse(jobId=job_id, status=current, statusHistory=[h.to_dict() for h in history])


# =============================================================================
# Per-job invitations and applications
# =============================================================================


@router.post(
    "/{job_id}/invitations",
    response_model=InvitationBatchResponse,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit("10/minute")
def send_job_invitations(
    request: Request,
    job_id: str,
    body: InvitationCreate,
    user: CurrentUser,
    marketplace: MarketplaceDep,
):
    """
    Invite professionals to an open job.

    Every candidate must exist and hold a compatible role or nothing is
    sent. After that each invitation is written independently and failures
    are reported per professional.
    """
    logger.info(
        f"POST /jobs/{job_id}/invitations | user={user.subject_id} | count={len(body.professionalUserSubs)}"
    )
    result = marketplace.matching.invite(
        job_id,
        user.subject_id,
        body.professionalUserSubs,
        message=body.invitationMessage,
        urgency=body.urgency,
        custom_notes=body.customNotes,
    )
    log_job_event("invitations_sent", job_id, user.subject_id, sent=len(result.successful), failed=len(result.errors))
    return InvitationBatchResponse(
        message=f"Sent {len(result.successful)} invitation(s)",
        jobId=job_id,
        totalRequested=result.total_requested,
        successful=[i.to_dict() for i in result.successful],
        errors=result.errors,
    )


@router.get("/{job_id}/invitations", response_model=InvitationListResponse)
@limiter.limit("60/minute")
def list_job_invitations(request: Request, job_id: str, user: CurrentUser, marketplace: MarketplaceDep):
    invitations = marketplace.matching.list_for_job(job_id, user.subject_id)
    return InvitationListResponse(invitations=[i.to_dict() for i in invitations], total=len(invitations))


@router.get("/{job_id}/applications", response_model=ApplicationListResponse)
@limiter.limit("60/minute")
def list_job_applications(request: Request, job_id: str, user: CurrentUser, marketplace: MarketplaceDep):
    applications = marketplace.applications.list_for_job(job_id, user.subject_id)
    return ApplicationListResponse(applications=[a.to_dict() for a in applications], total=len(applications))
