"""Invitation routes for professionals (responding) and clinics (withdrawing)."""

from fastapi import APIRouter, Query, Request

from ..auth import CurrentUser
from ..database import MarketplaceDep
from ..logging_config import get_logger, log_job_event
from ..models import InvitationListResponse, InvitationRespond, InvitationResponse
from ..rate_limit import limiter

logger = get_logger("dentipal.api.invitations")
router = APIRouter(prefix="/invitations", tags=["invitations"])


@router.get("", response_model=InvitationListResponse)
@limiter.limit("60/minute")
def list_my_invitations(
    request: Request,
    user: CurrentUser,
    marketplace: MarketplaceDep,
    status_filter: str | None = Query(None, alias="status"),
):
    """Invitations addressed to the caller, newest first."""
    invitations = marketplace.matching.list_for_professional(user.subject_id, status_filter)
    return InvitationListResponse(invitations=[i.to_dict() for i in invitations], total=len(invitations))


@router.post("/{invitation_id}/response", response_model=InvitationResponse)
@limiter.limit("20/minute")
def respond_to_invitation(
    request: Request,
    invitation_id: str,
    body: InvitationRespond,
    user: CurrentUser,
    marketplace: MarketplaceDep,
):
    """
    Accept, decline or negotiate an invitation.

    Accepting creates an accepted application and schedules the job if it
    is still open. Negotiating requires proposedRate and opens a negotiation.
    """
    logger.info(f"POST /invitations/{invitation_id}/response | user={user.subject_id} | response={body.response}")
    outcome = marketplace.matching.respond(
        invitation_id,
        user.subject_id,
        body.response,
        message=body.message,
        proposed_rate=body.proposedRate,
        availability_notes=body.availabilityNotes,
    )
    log_job_event(
        "invitation_" + body.response,
        outcome.invitation.job_id,
        user.subject_id,
        scheduled=outcome.job_scheduled,
    )
    return InvitationResponse(
        message=f"Invitation {body.response} successfully",
        invitation=outcome.invitation.to_dict(),
        application=outcome.application.to_dict() if outcome.application else None,
        jobScheduled=outcome.job_scheduled,
    )


@router.post("/{invitation_id}/withdraw", response_model=InvitationResponse)
@limiter.limit("20/minute")
def withdraw_invitation(request: Request, invitation_id: str, user: CurrentUser, marketplace: MarketplaceDep):
    """Withdraw an invitation the caller sent that has not been answered."""
    invitation = marketplace.matching.withdraw(invitation_id, user.subject_id)
    log_job_event("invitation_withdrawn", invitation.job_id, user.subject_id, invitation=invitation_id)
    return InvitationResponse(message="Invitation withdrawn successfully", invitation=invitation.to_dict())
