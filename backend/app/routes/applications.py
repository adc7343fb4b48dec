"""Application and negotiation routes."""

from fastapi import APIRouter, Query, Request, status

from ..auth import CurrentUser
from ..database import MarketplaceDep
from ..logging_config import get_logger, log_job_event
from ..models import (
    ApplicationCreate,
    ApplicationListResponse,
    ApplicationResponse,
    NegotiationListResponse,
    NegotiationRespond,
    NegotiationResponse,
)
from ..rate_limit import limiter

logger = get_logger("dentipal.api.applications")
router = APIRouter(prefix="/applications", tags=["applications"])


# =============================================================================
# Applications
# =============================================================================


@router.get("", response_model=ApplicationListResponse)
@limiter.limit("60/minute")
def list_my_applications(
    request: Request,
    user: CurrentUser,
    marketplace: MarketplaceDep,
    status_filter: str | None = Query(None, alias="status"),
):
    """Applications the caller has submitted, newest first."""
    applications = marketplace.applications.list_for_professional(user.subject_id, status_filter)
    return ApplicationListResponse(applications=[a.to_dict() for a in applications], total=len(applications))


@router.post("/{job_id}", response_model=ApplicationResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("20/minute")
def apply_to_job(
    request: Request,
    job_id: str,
    body: ApplicationCreate,
    user: CurrentUser,
    marketplace: MarketplaceDep,
):
    """
    Apply to an open job.

    A proposedRate other than what the job offers opens a negotiation and
    the application starts in negotiating status.
    """
    logger.info(f"POST /applications/{job_id} | user={user.subject_id} | proposedRate={body.proposedRate}")
    application = marketplace.applications.apply(
        job_id,
        user.subject_id,
        message=body.message,
        proposed_rate=body.proposedRate,
        availability=body.availability,
        start_date=body.startDate,
        notes=body.notes,
    )
    log_job_event("application_submitted", job_id, user.subject_id, status=application.status)
    return ApplicationResponse(message="Job application submitted successfully", application=application.to_dict())


@router.post("/{application_id}/withdraw", response_model=ApplicationResponse)
@limiter.limit("20/minute")
def withdraw_application(request: Request, application_id: str, user: CurrentUser, marketplace: MarketplaceDep):
    application = marketplace.applications.withdraw(application_id, user.subject_id)
    log_job_event("application_withdrawn", application.job_id, user.subject_id, application=application_id)
    return ApplicationResponse(message="Application withdrawn successfully", application=application.to_dict())


@router.post("/{application_id}/accept", response_model=ApplicationResponse)
@limiter.limit("20/minute")
def accept_application(request: Request, application_id: str, user: CurrentUser, marketplace: MarketplaceDep):
    """Accept an application to a job the caller owns (the job's status is unchanged)."""
    application = marketplace.applications.accept(application_id, user.subject_id)
    log_job_event("application_accepted", application.job_id, user.subject_id, application=application_id)
    return ApplicationResponse(message="Application accepted successfully", application=application.to_dict())


@router.post("/{application_id}/reject", response_model=ApplicationResponse)
@limiter.limit("20/minute")
def reject_application(request: Request, application_id: str, user: CurrentUser, marketplace: MarketplaceDep):
    application = marketplace.applications.reject(application_id, user.subject_id)
    log_job_event("application_rejected", application.job_id, user.subject_id, application=application_id)
    return ApplicationResponse(message="Application rejected successfully", application=application.to_dict())


# =============================================================================
# Negotiations
# =============================================================================


@router.get("/{application_id}/negotiations", response_model=NegotiationListResponse)
@limiter.limit("60/minute")
def list_application_negotiations(
    request: Request, application_id: str, user: CurrentUser, marketplace: MarketplaceDep
):
    negotiations = marketplace.negotiations.list_for_application(application_id, user.subject_id)
    return NegotiationListResponse(negotiations=[n.to_dict() for n in negotiations], total=len(negotiations))


@router.put(
    "/{application_id}/negotiations/{negotiation_id}/response",
    response_model=NegotiationResponse,
)
@limiter.limit("30/minute")
def respond_to_negotiation(
    request: Request,
    application_id: str,
    negotiation_id: str,
    body: NegotiationRespond,
    user: CurrentUser,
    marketplace: MarketplaceDep,
):
    """
    Respond to the other party's last offer.

    action is accept, counter (with amount) or reject. Accepting settles
    the application and schedules the job.
    """
    logger.info(
        f"PUT /applications/{application_id}/negotiations/{negotiation_id}/response "
        f"| user={user.subject_id} | action={body.action}"
    )
    outcome = marketplace.negotiations.respond(
        application_id,
        negotiation_id,
        user.subject_id,
        body.action,
        amount=body.amount,
        message=body.message,
    )
    log_job_event(
        "negotiation_" + body.action,
        outcome.negotiation.job_id,
        user.subject_id,
        status=outcome.negotiation.status,
        offer=outcome.negotiation.last_offer_pay,
    )
    return NegotiationResponse(
        message="Negotiation response recorded",
        negotiation=outcome.negotiation.to_dict(),
        application=outcome.application.to_dict(),
        job=outcome.job.to_dict() if outcome.job else None,
    )
