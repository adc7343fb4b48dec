"""
Matching & Invitation Engine.

Clinics invite role-compatible professionals to open jobs; professionals
answer invitations and browse the open jobs their role can fill.

Invitation batches are all-or-nothing at the validation gate (every
candidate must exist and be role-compatible) but each write afterwards is
independent, so one failed write never aborts the others.
"""

import logging
import uuid
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, List, Optional

from dentipal.config import DEFAULT_MARKETPLACE_CONFIG, MarketplaceConfig
from dentipal.jobs.applications import ApplicationEngine, check_rate
from dentipal.jobs.errors import (
    ConflictError,
    ForbiddenError,
    InvitationRejectedError,
    MarketplaceError,
    NotFoundError,
    ValidationError,
)
from dentipal.jobs.models import (
    INVITATION_URGENCIES,
    ApplicationStatus,
    InvitationStatus,
    JobApplication,
    JobInvitation,
    JobPosting,
    JobStatus,
    ProfessionalProfile,
    utc_now,
)
from dentipal.jobs.postings import Clock, load_job, require_owner, sort_newest_first
from dentipal.jobs.roles import is_role_compatible
from dentipal.jobs.storage import (
    JOB_INVITATIONS,
    JOB_POSTINGS,
    PROFESSIONAL_PROFILES,
    ConditionalCheckFailedError,
    PersistenceGateway,
    StorageError,
)
from dentipal.jobs.transitions import StatusTransitionEngine
from dentipal.notifications import (
    INVITATION_RESPONSE,
    JOB_INVITATION,
    JOB_SCHEDULED,
    LoggingNotifier,
    Notifier,
    send_quietly,
)

logger = logging.getLogger(__name__)

INVITATION_RESPONSES = (
    InvitationStatus.ACCEPTED.value,
    InvitationStatus.DECLINED.value,
    InvitationStatus.NEGOTIATING.value,
)


@dataclass
class InvitationBatchResult:
    """Per-candidate outcome of one invitation request."""

    job_id: str
    successful: List[JobInvitation] = field(default_factory=list)
    errors: List[Dict[str, str]] = field(default_factory=list)

    @property
    def total_requested(self) -> int:
        return len(self.successful) + len(self.errors)


@dataclass
class InvitationResponseOutcome:
    """Records written when a professional answers an invitation."""

    invitation: JobInvitation
    application: Optional[JobApplication] = None
    job: Optional[JobPosting] = None
    job_scheduled: bool = False


def load_invitation(gateway: PersistenceGateway, invitation_id: str) -> JobInvitation:
    items = gateway.query(JOB_INVITATIONS, {"invitationId": invitation_id})
    if not items:
        raise NotFoundError("Invitation not found", details={"invitationId": invitation_id})
    return JobInvitation.from_dict(items[0])


class MatchingEngine:
    """Role matching, invitations and the professional job feed."""

    def __init__(
        self,
        gateway: PersistenceGateway,
        applications: ApplicationEngine,
        transitions: StatusTransitionEngine,
        config: MarketplaceConfig = DEFAULT_MARKETPLACE_CONFIG,
        notifier: Optional[Notifier] = None,
        clock: Clock = utc_now,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ):
        self.gateway = gateway
        self.applications = applications
        self.transitions = transitions
        self.config = config
        self.notifier = notifier or LoggingNotifier()
        self.clock = clock
        self.id_factory = id_factory

    # === Invitations ===

    def invite(
        self,
        job_id: str,
        issuer_sub: str,
        professional_subs: List[str],
        message: Optional[str] = None,
        urgency: Optional[str] = None,
        custom_notes: Optional[str] = None,
    ) -> InvitationBatchResult:
        """Invite professionals to an open job the issuer owns.

        Raises:
            ValidationError: Empty or oversized candidate list, bad urgency
            NotFoundError: Job does not exist
            ForbiddenError: Issuer does not own the job
            ConflictError: Job is not open
            InvitationRejectedError: Any candidate is unknown or role-incompatible
        """
        limit = self.config.max_invitations_per_request
        if not isinstance(professional_subs, list) or not professional_subs:
            raise ValidationError("professionalUserSubs must be a non-empty array")
        if len(professional_subs) > limit:
            raise ValidationError(
                f"Maximum {limit} invitations per request",
                details={"limit": limit, "requested": len(professional_subs)},
            )
        if not all(isinstance(s, str) and s.strip() for s in professional_subs):
            raise ValidationError("professionalUserSubs must contain non-empty strings")
        urgency = urgency or self.config.default_invitation_urgency
        if urgency not in INVITATION_URGENCIES:
            raise ValidationError(f"Invalid urgency. Valid options: {', '.join(INVITATION_URGENCIES)}")

        # Collapse duplicates, keep request order
        candidates = list(dict.fromkeys(s.strip() for s in professional_subs))

        job = load_job(self.gateway, job_id)
        require_owner(job, issuer_sub, "send invitations for")
        if not job.is_open:
            raise ConflictError(f"Cannot send invitations for {job.status} job posting")

        profiles = self._load_profiles(candidates)
        missing = [s for s in candidates if s not in profiles]
        incompatible = [
            {"userSub": s, "role": profiles[s].role}
            for s in candidates
            if s in profiles and not is_role_compatible(job.professional_role, profiles[s].role)
        ]
        if missing or incompatible:
            raise InvitationRejectedError(job.professional_role, missing, incompatible)

        result = InvitationBatchResult(job_id=job_id)
        for sub in candidates:
            invitation = self._send_one(job, sub, message, urgency, custom_notes)
            if isinstance(invitation, JobInvitation):
                result.successful.append(invitation)
            else:
                result.errors.append({"professionalUserSub": sub, "error": invitation})

        logger.info(
            f"Invitations for job {job_id}: {len(result.successful)} sent, "
            f"{len(result.errors)} failed (issuer {issuer_sub})"
        )
        return result

    def _load_profiles(self, subs: List[str]) -> Dict[str, ProfessionalProfile]:
        items = self.gateway.batch_get(PROFESSIONAL_PROFILES, [{"userSub": s} for s in subs])
        profiles = [ProfessionalProfile.from_dict(i) for i in items]
        return {p.user_sub: p for p in profiles}

    def _send_one(self, job: JobPosting, sub: str, message, urgency, custom_notes):
        """Write one invitation. Returns it, or the error message on failure."""
        now = self.clock()
        invitation = JobInvitation(
            invitation_id=self.id_factory(),
            job_id=job.job_id,
            professional_user_sub=sub,
            clinic_user_sub=job.clinic_user_sub,
            clinic_id=job.clinic_id,
            message=message or self.config.default_invitation_message,
            urgency=urgency,
            custom_notes=custom_notes or "",
            sent_at=now,
            updated_at=now,
        )
        try:
            self.gateway.put(JOB_INVITATIONS, invitation.to_dict(), if_absent=True)
        except ConditionalCheckFailedError:
            return "Already invited to this job"
        except StorageError as e:
            logger.error(f"Failed to write invitation for {sub} on job {job.job_id}: {e}")
            return "Failed to create invitation"

        send_quietly(
            self.notifier,
            sub,
            JOB_INVITATION,
            {
                "invitationId": invitation.invitation_id,
                "jobId": job.job_id,
                "jobType": job.job_type,
                "professionalRole": job.professional_role,
                "urgency": urgency,
                "message": invitation.message,
            },
        )
        return invitation

    def respond(
        self,
        invitation_id: str,
        responder_sub: str,
        response: str,
        message: Optional[str] = None,
        proposed_rate: Optional[float] = None,
        availability_notes: Optional[str] = None,
    ) -> InvitationResponseOutcome:
        """Answer an invitation as the invited professional.

        ``accepted`` creates an accepted application and schedules the job
        if it is still open (best effort). ``negotiating`` creates a
        negotiating application with a negotiation at ``proposed_rate``.
        """
        if response not in INVITATION_RESPONSES:
            raise ValidationError(
                f"Invalid or missing 'response' field. Valid options: {', '.join(INVITATION_RESPONSES)}"
            )
        invitation = load_invitation(self.gateway, invitation_id)
        if invitation.professional_user_sub != responder_sub:
            raise ForbiddenError("You can only respond to your own invitations")
        if invitation.status != InvitationStatus.SENT.value:
            raise ConflictError(f"Invitation has already been {invitation.status}")
        if response == InvitationStatus.NEGOTIATING.value:
            if proposed_rate is None:
                raise ValidationError("proposedRate is required to negotiate")
            check_rate(proposed_rate, "proposedRate")

        job = load_job(self.gateway, invitation.job_id)
        outcome = InvitationResponseOutcome(invitation=invitation, job=job)

        if response == InvitationStatus.ACCEPTED.value:
            outcome.application = self.applications.submit(
                job,
                responder_sub,
                status=ApplicationStatus.ACCEPTED,
                message=message or "Application submitted via invitation",
                availability=availability_notes,
                accepted_rate=job.details.offered_pay,
                from_invitation=True,
            )
            if job.is_open:
                outcome.job, outcome.job_scheduled = self._schedule(job, responder_sub)
        elif response == InvitationStatus.NEGOTIATING.value:
            outcome.application = self.applications.submit(
                job,
                responder_sub,
                status=ApplicationStatus.NEGOTIATING,
                message=message or "Application submitted with counter-proposal",
                proposed_rate=proposed_rate,
                availability=availability_notes,
                from_invitation=True,
            )

        now = self.clock()
        outcome.invitation = replace(
            invitation,
            status=response,
            responded_at=now,
            response_message=message,
            updated_at=now,
        )
        self.gateway.put(JOB_INVITATIONS, outcome.invitation.to_dict())
        logger.info(f"Invitation {invitation_id} {response} by {responder_sub}")
        send_quietly(
            self.notifier,
            invitation.clinic_user_sub,
            INVITATION_RESPONSE,
            {"invitationId": invitation_id, "jobId": invitation.job_id, "response": response},
        )
        return outcome

    def _schedule(self, job: JobPosting, professional_sub: str):
        """Move an open job to scheduled for ``professional_sub``; failures are logged, not raised."""
        try:
            scheduled = self.transitions.apply_transition(
                job,
                professional_sub,
                JobStatus.SCHEDULED,
                notes="Invitation accepted",
                accepted_professional_user_sub=professional_sub,
                scheduled_date=job.details.first_work_date or self.clock().date(),
            )
            send_quietly(
                self.notifier,
                job.clinic_user_sub,
                JOB_SCHEDULED,
                {
                    "jobId": job.job_id,
                    "professionalUserSub": professional_sub,
                    "scheduledDate": scheduled.scheduled_date.isoformat(),
                },
            )
            return scheduled, True
        except (MarketplaceError, StorageError) as e:
            logger.error(f"Failed to schedule job {job.job_id} after invitation acceptance: {e}")
            return job, False

    def withdraw(self, invitation_id: str, clinic_sub: str) -> JobInvitation:
        """Withdraw a still-pending invitation the caller sent."""
        invitation = load_invitation(self.gateway, invitation_id)
        if invitation.clinic_user_sub != clinic_sub:
            raise ForbiddenError("You can only withdraw invitations you sent")
        if invitation.status != InvitationStatus.SENT.value:
            raise ConflictError(f"Cannot withdraw an invitation that has been {invitation.status}")
        now = self.clock()
        updated = replace(invitation, status=InvitationStatus.WITHDRAWN.value, updated_at=now)
        self.gateway.put(JOB_INVITATIONS, updated.to_dict())
        logger.info(f"Invitation {invitation_id} withdrawn by {clinic_sub}")
        return updated

    def list_for_job(self, job_id: str, owner_sub: str) -> List[JobInvitation]:
        job = load_job(self.gateway, job_id)
        require_owner(job, owner_sub, "view invitations for")
        return self._sorted(self.gateway.query(JOB_INVITATIONS, {"jobId": job_id}))

    def list_for_professional(self, professional_sub: str, status: Optional[str] = None) -> List[JobInvitation]:
        invitations = self._sorted(self.gateway.query(JOB_INVITATIONS, {"professionalUserSub": professional_sub}))
        if status is not None:
            invitations = [i for i in invitations if i.status == status]
        return invitations

    @staticmethod
    def _sorted(items: List[Dict[str, Any]]) -> List[JobInvitation]:
        invitations = [JobInvitation.from_dict(i) for i in items]
        return sorted(invitations, key=lambda i: i.sent_at.isoformat() if i.sent_at else "", reverse=True)

    # === Professional job feed ===

    def matching_jobs(self, professional_sub: str, limit: Optional[int] = None) -> List[JobPosting]:
        """Open jobs the professional's role can fill, newest first."""
        if limit is None:
            limit = self.config.matching_jobs_default_limit
        if limit < 1 or limit > self.config.matching_jobs_max_limit:
            raise ValidationError(f"limit must be between 1 and {self.config.matching_jobs_max_limit}")

        item = self.gateway.get(PROFESSIONAL_PROFILES, {"userSub": professional_sub})
        if item is None:
            raise NotFoundError("Professional profile not found")
        role = ProfessionalProfile.from_dict(item).role

        # Legacy postings still stored as "active" count as open
        items = self.gateway.query(JOB_POSTINGS, {"status": JobStatus.OPEN.value})
        items += self.gateway.query(JOB_POSTINGS, {"status": "active"})
        jobs = [JobPosting.from_dict(i) for i in items]
        jobs = [
            j
            for j in jobs
            if j.clinic_user_sub != professional_sub and is_role_compatible(j.professional_role, role)
        ]
        return sort_newest_first(jobs)[:limit]
