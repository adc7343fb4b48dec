"""
Application Engine.

A professional applies to an open job; at most one application exists per
(job, professional), enforced by a conditional put. Proposing a rate other
than what the posting offers opens a negotiation. Application status
changes here never touch the job's own status.
"""

import logging
import uuid
from dataclasses import replace
from typing import TYPE_CHECKING, Callable, List, Optional

from dentipal.jobs.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from dentipal.jobs.models import (
    INACTIVE_APPLICATION_STATUSES,
    ApplicationStatus,
    JobApplication,
    JobPosting,
    OfferParty,
    utc_now,
)
from dentipal.jobs.postings import Clock, load_job, require_owner
from dentipal.jobs.storage import JOB_APPLICATIONS, ConditionalCheckFailedError, PersistenceGateway
from dentipal.notifications import (
    APPLICATION_STATUS,
    APPLICATION_SUBMITTED,
    LoggingNotifier,
    Notifier,
    send_quietly,
)

if TYPE_CHECKING:
    from dentipal.jobs.negotiations import NegotiationEngine

logger = logging.getLogger(__name__)

DUPLICATE_APPLICATION_MESSAGE = "You have already applied to this job"


def load_application(gateway: PersistenceGateway, application_id: str) -> JobApplication:
    """Find an application by its own id or raise ``NotFoundError``."""
    items = gateway.query(JOB_APPLICATIONS, {"applicationId": application_id})
    if not items:
        raise NotFoundError("Application not found", details={"applicationId": application_id})
    return JobApplication.from_dict(items[0])


def check_rate(value, field_name: str) -> float:
    """Raise ``ValidationError`` unless ``value`` is a positive number."""
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ValidationError(f"{field_name} must be a positive number")
    return value


def save_application(gateway: PersistenceGateway, application: JobApplication) -> None:
    gateway.put(JOB_APPLICATIONS, application.to_dict())


def sort_by_applied(applications: List[JobApplication]) -> List[JobApplication]:
    """Newest first."""
    return sorted(
        applications,
        key=lambda a: a.applied_at.isoformat() if a.applied_at else "",
        reverse=True,
    )


class ApplicationEngine:
    """Submit and manage job applications."""

    def __init__(
        self,
        gateway: PersistenceGateway,
        negotiations: "NegotiationEngine",
        notifier: Optional[Notifier] = None,
        clock: Clock = utc_now,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ):
        self.gateway = gateway
        self.negotiations = negotiations
        self.notifier = notifier or LoggingNotifier()
        self.clock = clock
        self.id_factory = id_factory

    def apply(
        self,
        job_id: str,
        professional_sub: str,
        message: Optional[str] = None,
        proposed_rate: Optional[float] = None,
        availability: Optional[str] = None,
        start_date: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> JobApplication:
        """Apply to an open job.

        Raises:
            NotFoundError: Job does not exist
            ConflictError: Job is not open, or the professional already applied
            ValidationError: Applicant owns the job, or the proposed rate is invalid
        """
        job = load_job(self.gateway, job_id)
        if not job.is_open:
            raise ConflictError(f"Cannot apply to {job.status} job posting")
        if job.clinic_user_sub == professional_sub:
            raise ValidationError("You cannot apply to your own job posting")
        if self.gateway.get(
            JOB_APPLICATIONS, {"jobId": job_id, "professionalUserSub": professional_sub}
        ):
            raise ConflictError(DUPLICATE_APPLICATION_MESSAGE)

        if proposed_rate is not None:
            check_rate(proposed_rate, "proposedRate")
        negotiate = proposed_rate is not None and not job.details.pay_matches(proposed_rate)
        application = self.submit(
            job,
            professional_sub,
            status=ApplicationStatus.NEGOTIATING if negotiate else ApplicationStatus.PENDING,
            message=message,
            proposed_rate=proposed_rate,
            availability=availability,
            start_date=start_date,
            notes=notes,
        )
        send_quietly(
            self.notifier,
            job.clinic_user_sub,
            APPLICATION_SUBMITTED,
            {
                "jobId": job_id,
                "applicationId": application.application_id,
                "professionalUserSub": professional_sub,
                "applicationStatus": application.status,
            },
        )
        return application

    def submit(
        self,
        job: JobPosting,
        professional_sub: str,
        status: ApplicationStatus = ApplicationStatus.PENDING,
        message: Optional[str] = None,
        proposed_rate: Optional[float] = None,
        availability: Optional[str] = None,
        start_date: Optional[str] = None,
        notes: Optional[str] = None,
        accepted_rate: Optional[float] = None,
        from_invitation: bool = False,
    ) -> JobApplication:
        """Insert a new application (and its negotiation, if ``status`` is negotiating).

        The insert is conditional; losing a race to another insert for the
        same (job, professional) raises ``ConflictError``.
        """
        now = self.clock()
        try:
            application = JobApplication(
                application_id=self.id_factory(),
                job_id=job.job_id,
                professional_user_sub=professional_sub,
                clinic_id=job.clinic_id,
                clinic_user_sub=job.clinic_user_sub,
                status=status.value,
                message=message,
                proposed_rate=proposed_rate,
                availability=availability,
                start_date=start_date,
                notes=notes,
                accepted_rate=accepted_rate,
                from_invitation=from_invitation,
                applied_at=now,
                updated_at=now,
            )
        except ValueError as e:
            raise ValidationError(str(e)) from None

        try:
            self.gateway.put(JOB_APPLICATIONS, application.to_dict(), if_absent=True)
        except ConditionalCheckFailedError:
            raise ConflictError(DUPLICATE_APPLICATION_MESSAGE) from None

        if status == ApplicationStatus.NEGOTIATING:
            negotiation = self.negotiations.start(
                application, job, proposed_rate, OfferParty.PROFESSIONAL, message=message
            )
            application = replace(application, negotiation_id=negotiation.negotiation_id)
            save_application(self.gateway, application)

        logger.info(
            f"Application {application.application_id} ({application.status}) "
            f"for job {job.job_id} by {professional_sub}"
        )
        return application

    # === Status changes ===

    def withdraw(self, application_id: str, professional_sub: str) -> JobApplication:
        application = load_application(self.gateway, application_id)
        if application.professional_user_sub != professional_sub:
            raise ForbiddenError("You can only withdraw your own applications")
        if application.status in INACTIVE_APPLICATION_STATUSES:
            raise ConflictError(f"Cannot withdraw a {application.status} application")
        self.negotiations.decline_open(application)
        return self._set_status(application, ApplicationStatus.WITHDRAWN, application.clinic_user_sub)

    def accept(self, application_id: str, clinic_sub: str) -> JobApplication:
        """Accept an undecided application.

        A negotiating application is settled through its thread: the clinic
        accepts the professional's last offer and the job is scheduled in the
        same call.

        Raises:
            ConflictError: Application already decided, or the clinic made the
                last offer and must wait for the professional
        """
        application, _job = self._owned(application_id, clinic_sub)
        self._require_undecided(application, "accept")
        negotiation = self.negotiations.open_thread(application)
        if negotiation is not None:
            if negotiation.last_offer_from == OfferParty.CLINIC.value:
                raise ConflictError(
                    "Cannot accept while your own offer is pending; settle the negotiation first"
                )
            outcome = self.negotiations.respond(
                application.application_id, negotiation.negotiation_id, clinic_sub, "accept"
            )
            return outcome.application
        return self._set_status(
            application,
            ApplicationStatus.ACCEPTED,
            application.professional_user_sub,
            accepted_rate=application.proposed_rate,
        )

    def reject(self, application_id: str, clinic_sub: str) -> JobApplication:
        application, _job = self._owned(application_id, clinic_sub)
        self._require_undecided(application, "reject")
        self.negotiations.decline_open(application)
        return self._set_status(application, ApplicationStatus.REJECTED, application.professional_user_sub)

    def _owned(self, application_id: str, clinic_sub: str):
        application = load_application(self.gateway, application_id)
        job = load_job(self.gateway, application.job_id)
        require_owner(job, clinic_sub, "manage applications for")
        return application, job

    @staticmethod
    def _require_undecided(application: JobApplication, action: str) -> None:
        if application.status not in (ApplicationStatus.PENDING.value, ApplicationStatus.NEGOTIATING.value):
            raise ConflictError(f"Cannot {action} a {application.status} application")

    def _set_status(
        self,
        application: JobApplication,
        status: ApplicationStatus,
        notify_sub: str,
        accepted_rate: Optional[float] = None,
    ) -> JobApplication:
        changes = {"status": status.value, "updated_at": self.clock()}
        if accepted_rate is not None:
            changes["accepted_rate"] = accepted_rate
        updated = replace(application, **changes)
        save_application(self.gateway, updated)
        logger.info(f"Application {application.application_id} {application.status} -> {status.value}")
        send_quietly(
            self.notifier,
            notify_sub,
            APPLICATION_STATUS,
            {"applicationId": application.application_id, "jobId": application.job_id, "applicationStatus": status.value},
        )
        return updated

    # === Reads ===

    def get(self, application_id: str, requester_sub: str) -> JobApplication:
        application = load_application(self.gateway, application_id)
        if requester_sub not in (application.professional_user_sub, application.clinic_user_sub):
            raise ForbiddenError("You do not have access to this application")
        return application

    def list_for_job(self, job_id: str, owner_sub: str) -> List[JobApplication]:
        job = load_job(self.gateway, job_id)
        require_owner(job, owner_sub, "view applications for")
        items = self.gateway.query(JOB_APPLICATIONS, {"jobId": job_id})
        return sort_by_applied([JobApplication.from_dict(i) for i in items])

    def list_for_professional(self, professional_sub: str, status: Optional[str] = None) -> List[JobApplication]:
        items = self.gateway.query(JOB_APPLICATIONS, {"professionalUserSub": professional_sub})
        applications = [JobApplication.from_dict(i) for i in items]
        if status is not None:
            applications = [a for a in applications if a.status == status]
        return sort_by_applied(applications)
