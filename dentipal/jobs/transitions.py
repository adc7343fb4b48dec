"""
Status Transition Engine.

Moves a job posting through its lifecycle using the adjacency table in
``VALID_JOB_TRANSITIONS`` and appends one ``StatusHistoryEntry`` per
successful change. Self-transitions are not in the table and are rejected.
"""

import logging
from dataclasses import dataclass, replace
from datetime import date
from typing import List, Optional

from dentipal.jobs.errors import InvalidTransitionError, ValidationError
from dentipal.jobs.models import (
    JobPosting,
    JobStatus,
    StatusHistoryEntry,
    parse_date,
    utc_now,
)
from dentipal.jobs.postings import Clock, load_job, require_owner, save_job
from dentipal.jobs.storage import PersistenceGateway

logger = logging.getLogger(__name__)


@dataclass
class TransitionRequest:
    """A validated status change, ready to apply to a posting."""

    to_status: JobStatus
    notes: Optional[str] = None
    accepted_professional_user_sub: Optional[str] = None
    scheduled_date: Optional[date] = None
    completion_notes: Optional[str] = None


def parse_status(value: str) -> JobStatus:
    try:
        return JobStatus.parse(value)
    except ValueError:
        valid = ", ".join(s.value for s in JobStatus)
        raise ValidationError(
            f"Invalid status: {value}. Valid options: {valid}",
            details={"providedStatus": value, "validStatuses": [s.value for s in JobStatus]},
        ) from None


class StatusTransitionEngine:
    """Apply job status changes."""

    def __init__(self, gateway: PersistenceGateway, clock: Clock = utc_now):
        self.gateway = gateway
        self.clock = clock

    def transition(
        self,
        job_id: str,
        actor_sub: str,
        to_status: str,
        notes: Optional[str] = None,
        accepted_professional_user_sub: Optional[str] = None,
        scheduled_date: Optional[str] = None,
        completion_notes: Optional[str] = None,
    ) -> JobPosting:
        """Change the status of a posting owned by ``actor_sub``.

        Raises:
            ValidationError: Unknown status, or a field the target status needs is missing
            NotFoundError: Job does not exist
            ForbiddenError: Caller does not own the job
            InvalidTransitionError: Pair not in the adjacency table
        """
        target = parse_status(to_status)
        job = load_job(self.gateway, job_id)
        require_owner(job, actor_sub, "update the status of")
        return self.apply_transition(
            job,
            actor_sub,
            target,
            notes=notes,
            accepted_professional_user_sub=accepted_professional_user_sub,
            scheduled_date=scheduled_date,
            completion_notes=completion_notes,
        )

    def check(
        self,
        job: JobPosting,
        to_status,
        notes: Optional[str] = None,
        accepted_professional_user_sub: Optional[str] = None,
        scheduled_date=None,
        completion_notes: Optional[str] = None,
    ) -> TransitionRequest:
        """Validate a change against ``job`` without writing anything."""
        target = parse_status(to_status) if not isinstance(to_status, JobStatus) else to_status
        if not job.can_transition_to(target):
            raise InvalidTransitionError(job.status, target.value, job.valid_next_statuses())

        parsed_date = None
        if target == JobStatus.SCHEDULED:
            if not accepted_professional_user_sub:
                raise ValidationError(
                    "Missing required field for scheduled status: acceptedProfessionalUserSub",
                    details={"requiredField": "acceptedProfessionalUserSub"},
                )
            if not scheduled_date:
                raise ValidationError(
                    "Missing required field for scheduled status: scheduledDate",
                    details={"requiredField": "scheduledDate"},
                )
        if scheduled_date:
            try:
                parsed_date = parse_date(scheduled_date, "scheduledDate")
            except ValueError as e:
                raise ValidationError(str(e)) from None

        return TransitionRequest(
            to_status=target,
            notes=notes,
            accepted_professional_user_sub=accepted_professional_user_sub,
            scheduled_date=parsed_date,
            completion_notes=completion_notes,
        )

    def apply_transition(self, job: JobPosting, actor_sub: str, to_status, **fields) -> JobPosting:
        """Validate and persist a change. No ownership check; callers that act
        on a user's behalf must check it themselves."""
        request = self.check(job, to_status, **fields)
        now = self.clock()

        entry = StatusHistoryEntry(
            from_status=job.status,
            to_status=request.to_status.value,
            changed_at=now,
            changed_by=actor_sub,
            notes=request.notes or "",
        )
        changes = {
            "status": request.to_status.value,
            "status_history": job.status_history + [entry],
            "updated_at": now,
        }
        if request.notes:
            changes["status_notes"] = request.notes
        if request.accepted_professional_user_sub:
            changes["accepted_professional_user_sub"] = request.accepted_professional_user_sub
        if request.scheduled_date:
            changes["scheduled_date"] = request.scheduled_date
        if request.to_status == JobStatus.COMPLETED:
            changes["completed_at"] = now
            if request.completion_notes:
                changes["completion_notes"] = request.completion_notes
        elif request.to_status == JobStatus.OPEN:
            # Reopened postings are back on the market
            changes["accepted_professional_user_sub"] = None
            changes["scheduled_date"] = None

        updated = replace(job, **changes)
        save_job(self.gateway, updated)
        logger.info(f"Job {job.job_id} status {entry.from_status} -> {entry.to_status} by {actor_sub}")
        return updated

    def history(self, job_id: str, actor_sub: str) -> List[StatusHistoryEntry]:
        """Status history of a posting, oldest first."""
        job = load_job(self.gateway, job_id)
        require_owner(job, actor_sub, "view the history of")
        return list(job.status_history)
