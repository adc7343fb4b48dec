"""
Negotiation Engine.

A negotiation is a counter-offer thread between the clinic that owns a job
and one applicant. Each side can accept or counter the other side's last
offer, or reject the thread. Accepting settles the application and
schedules the job in the same call.
"""

import logging
import uuid
from dataclasses import dataclass, replace
from typing import Callable, List, Optional

from dentipal.jobs.applications import check_rate, load_application, save_application
from dentipal.jobs.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from dentipal.jobs.models import (
    ApplicationStatus,
    JobApplication,
    JobNegotiation,
    JobPosting,
    JobStatus,
    NegotiationStatus,
    Offer,
    OfferParty,
    utc_now,
)
from dentipal.jobs.postings import Clock, load_job
from dentipal.jobs.storage import JOB_NEGOTIATIONS, PersistenceGateway
from dentipal.jobs.transitions import StatusTransitionEngine
from dentipal.notifications import (
    NEGOTIATION_UPDATE,
    LoggingNotifier,
    Notifier,
    send_quietly,
)

logger = logging.getLogger(__name__)

NEGOTIATION_ACTIONS = ("accept", "counter", "reject")


@dataclass
class NegotiationOutcome:
    """Records written by one negotiation response."""

    negotiation: JobNegotiation
    application: JobApplication
    job: Optional[JobPosting] = None


def load_negotiation(gateway: PersistenceGateway, application_id: str, negotiation_id: str) -> JobNegotiation:
    item = gateway.get(JOB_NEGOTIATIONS, {"applicationId": application_id, "negotiationId": negotiation_id})
    if item is None:
        raise NotFoundError(
            "Negotiation not found",
            details={"applicationId": application_id, "negotiationId": negotiation_id},
        )
    return JobNegotiation.from_dict(item)


def save_negotiation(gateway: PersistenceGateway, negotiation: JobNegotiation) -> None:
    gateway.put(JOB_NEGOTIATIONS, negotiation.to_dict())


class NegotiationEngine:
    """Run counter-offer threads attached to applications."""

    def __init__(
        self,
        gateway: PersistenceGateway,
        transitions: StatusTransitionEngine,
        notifier: Optional[Notifier] = None,
        clock: Clock = utc_now,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ):
        self.gateway = gateway
        self.transitions = transitions
        self.notifier = notifier or LoggingNotifier()
        self.clock = clock
        self.id_factory = id_factory

    def start(
        self,
        application: JobApplication,
        job: JobPosting,
        amount: float,
        from_party: OfferParty,
        message: Optional[str] = None,
    ) -> JobNegotiation:
        """Open a thread whose first offer is ``amount`` from ``from_party``."""
        now = self.clock()
        party = OfferParty(from_party).value
        try:
            negotiation = JobNegotiation(
                negotiation_id=self.id_factory(),
                application_id=application.application_id,
                job_id=job.job_id,
                clinic_id=job.clinic_id,
                clinic_user_sub=job.clinic_user_sub,
                professional_user_sub=application.professional_user_sub,
                last_offer_pay=amount,
                last_offer_from=party,
                offers=[Offer(amount=amount, from_party=party, made_at=now, message=message or "")],
                created_at=now,
                updated_at=now,
            )
        except ValueError as e:
            raise ValidationError(str(e)) from None

        self.gateway.put(JOB_NEGOTIATIONS, negotiation.to_dict(), if_absent=True)
        logger.info(
            f"Negotiation {negotiation.negotiation_id} started on application "
            f"{application.application_id} at {amount} by {party}"
        )
        recipient = job.clinic_user_sub if party == OfferParty.PROFESSIONAL.value else application.professional_user_sub
        self._notify(recipient, negotiation, "started")
        return negotiation

    def respond(
        self,
        application_id: str,
        negotiation_id: str,
        responder_sub: str,
        action: str,
        amount: Optional[float] = None,
        message: Optional[str] = None,
    ) -> NegotiationOutcome:
        """Accept, counter or reject the other party's last offer.

        Raises:
            ValidationError: Unknown action, or a counter without a positive amount
            NotFoundError: Application, negotiation or job does not exist
            ForbiddenError: Caller is neither the job owner nor the applicant
            ConflictError: Thread already settled, acting on your own last offer,
                or (accept) the job cannot be scheduled
        """
        if action not in NEGOTIATION_ACTIONS:
            raise ValidationError(f"Invalid action: {action}. Must be one of: {', '.join(NEGOTIATION_ACTIONS)}")
        if action == "counter":
            if amount is None:
                raise ValidationError("amount is required for a counter offer")
            check_rate(amount, "amount")

        application = load_application(self.gateway, application_id)
        negotiation = load_negotiation(self.gateway, application_id, negotiation_id)
        job = load_job(self.gateway, application.job_id)

        if responder_sub == job.clinic_user_sub:
            party = OfferParty.CLINIC
        elif responder_sub == application.professional_user_sub:
            party = OfferParty.PROFESSIONAL
        else:
            raise ForbiddenError("Not authorized for this negotiation")

        if negotiation.is_terminal:
            raise ConflictError(f"Negotiation is already {negotiation.status}")
        if application.status != ApplicationStatus.NEGOTIATING.value:
            raise ConflictError(f"Application is {application.status}, not negotiating")
        if action != "reject" and negotiation.last_offer_from == party.value:
            raise ConflictError(f"Cannot {action} your own offer; waiting on the other party")

        if action == "counter":
            outcome = self._counter(negotiation, application, party, amount, message)
        elif action == "reject":
            outcome = self._reject(negotiation, application, party, message)
        else:
            outcome = self._accept(negotiation, application, job, party, responder_sub, message)

        counterpart = application.professional_user_sub if party == OfferParty.CLINIC else job.clinic_user_sub
        self._notify(counterpart, outcome.negotiation, action)
        return outcome

    def _counter(self, negotiation, application, party, amount, message) -> NegotiationOutcome:
        now = self.clock()
        updated = replace(
            negotiation,
            status=NegotiationStatus.COUNTER_OFFER.value,
            last_offer_pay=amount,
            last_offer_from=party.value,
            offers=negotiation.offers + [Offer(amount=amount, from_party=party.value, made_at=now, message=message or "")],
            updated_at=now,
        )
        save_negotiation(self.gateway, updated)
        application = replace(application, updated_at=now)
        save_application(self.gateway, application)
        logger.info(f"Negotiation {negotiation.negotiation_id} countered at {amount} by {party.value}")
        return NegotiationOutcome(updated, application)

    def _reject(self, negotiation, application, party, message) -> NegotiationOutcome:
        now = self.clock()
        updated = replace(negotiation, status=NegotiationStatus.DECLINED.value, updated_at=now)
        save_negotiation(self.gateway, updated)
        # The clinic declining ends the application; the professional declining withdraws it
        app_status = ApplicationStatus.REJECTED if party == OfferParty.CLINIC else ApplicationStatus.WITHDRAWN
        application = replace(application, status=app_status.value, updated_at=now)
        save_application(self.gateway, application)
        logger.info(f"Negotiation {negotiation.negotiation_id} declined by {party.value}")
        return NegotiationOutcome(updated, application)

    def _accept(self, negotiation, application, job, party, responder_sub, message) -> NegotiationOutcome:
        work_date = job.details.first_work_date or self.clock().date()
        schedule = {
            "notes": message or "Negotiation accepted",
            "accepted_professional_user_sub": application.professional_user_sub,
            "scheduled_date": work_date,
        }
        # Guard before any write so an unschedulable job leaves the thread untouched
        self.transitions.check(job, JobStatus.SCHEDULED, **schedule)

        now = self.clock()
        agreed = negotiation.last_offer_pay
        updated = replace(negotiation, status=NegotiationStatus.ACCEPTED.value, agreed_pay=agreed, updated_at=now)
        save_negotiation(self.gateway, updated)
        application = replace(
            application, status=ApplicationStatus.ACCEPTED.value, accepted_rate=agreed, updated_at=now
        )
        save_application(self.gateway, application)
        scheduled = self.transitions.apply_transition(job, responder_sub, JobStatus.SCHEDULED, **schedule)
        logger.info(
            f"Negotiation {negotiation.negotiation_id} accepted at {agreed} by {party.value}; "
            f"job {job.job_id} scheduled"
        )
        return NegotiationOutcome(updated, application, scheduled)

    def open_thread(self, application: JobApplication) -> Optional[JobNegotiation]:
        """The application's unsettled negotiation, or None."""
        if not application.negotiation_id:
            return None
        try:
            negotiation = load_negotiation(self.gateway, application.application_id, application.negotiation_id)
        except NotFoundError:
            logger.warning(
                f"Application {application.application_id} references missing negotiation "
                f"{application.negotiation_id}"
            )
            return None
        return None if negotiation.is_terminal else negotiation

    def decline_open(self, application: JobApplication) -> Optional[JobNegotiation]:
        """Decline the open thread when the application ends outside it."""
        negotiation = self.open_thread(application)
        if negotiation is None:
            return None
        updated = replace(negotiation, status=NegotiationStatus.DECLINED.value, updated_at=self.clock())
        save_negotiation(self.gateway, updated)
        return updated

    def list_for_application(self, application_id: str, requester_sub: str) -> List[JobNegotiation]:
        application = load_application(self.gateway, application_id)
        if requester_sub not in (application.professional_user_sub, application.clinic_user_sub):
            raise ForbiddenError("You do not have access to this application")
        items = self.gateway.query(JOB_NEGOTIATIONS, {"applicationId": application_id})
        negotiations = [JobNegotiation.from_dict(i) for i in items]
        return sorted(negotiations, key=lambda n: n.created_at.isoformat() if n.created_at else "")

    def _notify(self, recipient_sub: str, negotiation: JobNegotiation, action: str) -> None:
        send_quietly(
            self.notifier,
            recipient_sub,
            NEGOTIATION_UPDATE,
            {
                "negotiationId": negotiation.negotiation_id,
                "applicationId": negotiation.application_id,
                "jobId": negotiation.job_id,
                "action": action,
                "negotiationStatus": negotiation.status,
                "lastOfferPay": negotiation.last_offer_pay,
                "lastOfferFrom": negotiation.last_offer_from,
            },
        )
