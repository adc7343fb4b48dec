"""
Job Posting Manager.

Creates, updates and reads job postings. Type-specific fields are validated
by the detail variant (shape) and by ``check_limits`` against the
marketplace config (ranges). Status changes go through
``dentipal.jobs.transitions`` and never through ``update``.
"""

import logging
import uuid
from dataclasses import replace
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from dentipal.config import DEFAULT_MARKETPLACE_CONFIG, MarketplaceConfig
from dentipal.jobs.errors import (
    ConflictError,
    ForbiddenError,
    InternalError,
    NotFoundError,
    ValidationError,
)
from dentipal.jobs.models import (
    DETAILS_BY_TYPE,
    ClinicSnapshot,
    JobPosting,
    JobStatus,
    details_from_fields,
    utc_now,
)
from dentipal.jobs.storage import CLINIC_PROFILES, CLINICS, JOB_POSTINGS, PersistenceGateway

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

# Fields that only other operations may change
_IMMUTABLE_FIELDS = {
    "jobType": "jobType cannot be changed after creation",
    "status": "Use the status endpoint to change job status",
    "statusHistory": "statusHistory cannot be edited",
    "clinicUserSub": "clinicUserSub cannot be changed",
    "clinicId": "clinicId cannot be changed",
}

# camelCase request fields that move a posting's work dates
_DATE_FIELDS = ("date", "dates", "startDate")

# Every type-specific field across all job types
_VARIANT_FIELDS = frozenset(name for variant in DETAILS_BY_TYPE.values() for name in variant.FIELDS)


# =============================================================================
# Shared helpers (used by every engine that touches a posting)
# =============================================================================


def load_job(gateway: PersistenceGateway, job_id: str) -> JobPosting:
    """Load a posting or raise ``NotFoundError``."""
    item = gateway.get(JOB_POSTINGS, {"jobId": job_id})
    if item is None:
        raise NotFoundError("Job not found", details={"jobId": job_id})
    try:
        return JobPosting.from_dict(item)
    except (KeyError, ValueError) as e:
        logger.error(f"Stored job {job_id} is malformed: {e}")
        raise InternalError("Stored job posting is malformed", details={"jobId": job_id}) from e


def require_owner(job: JobPosting, actor_sub: str, action: str = "modify") -> None:
    """Raise ``ForbiddenError`` unless ``actor_sub`` owns the posting."""
    if job.clinic_user_sub != actor_sub:
        raise ForbiddenError(f"You can only {action} your own job postings")


def save_job(gateway: PersistenceGateway, job: JobPosting) -> None:
    gateway.put(JOB_POSTINGS, job.to_dict())


def check_not_in_past(details, today) -> None:
    past = [d for d in details.upcoming_dates() if d < today]
    if past:
        if len(details.upcoming_dates()) == 1:
            raise ValidationError("Date cannot be in the past")
        raise ValidationError(
            "All dates must be today or in the future",
            details={"pastDates": [d.isoformat() for d in past]},
        )


# =============================================================================
# Manager
# =============================================================================


class JobPostingManager:
    """Create, update and read job postings."""

    def __init__(
        self,
        gateway: PersistenceGateway,
        config: MarketplaceConfig = DEFAULT_MARKETPLACE_CONFIG,
        clock: Clock = utc_now,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ):
        self.gateway = gateway
        self.config = config
        self.clock = clock
        self.id_factory = id_factory

    def create(
        self,
        owner_sub: str,
        job_type: str,
        clinic_id: str,
        fields: Dict[str, Any],
    ) -> JobPosting:
        """Create a new posting in ``open`` status.

        Args:
            owner_sub: Subject of the clinic user publishing the job
            job_type: temporary, multi_day_consulting or permanent
            clinic_id: Clinic the job is for (must exist)
            fields: camelCase request fields

        Raises:
            ValidationError: Missing or out-of-range fields
            NotFoundError: Clinic does not exist
        """
        if not clinic_id:
            raise ValidationError("clinicId is required")
        missing = [n for n in ("professionalRole", "shiftSpeciality") if not fields.get(n)]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

        try:
            details = details_from_fields(job_type, fields)
            details.check_limits(self.config)
        except ValueError as e:
            raise ValidationError(str(e)) from None

        now = self.clock()
        check_not_in_past(details, now.date())

        clinic = self.gateway.get(CLINICS, {"clinicId": clinic_id})
        if clinic is None:
            raise NotFoundError("Clinic not found", details={"clinicId": clinic_id})
        profile = self._clinic_profile(clinic, owner_sub)

        try:
            job = JobPosting(
                job_id=self.id_factory(),
                clinic_id=clinic_id,
                clinic_user_sub=owner_sub,
                professional_role=fields["professionalRole"],
                shift_speciality=fields["shiftSpeciality"],
                details=details,
                job_title=fields.get("jobTitle"),
                job_description=fields.get("jobDescription"),
                requirements=list(fields.get("requirements") or []),
                clinic=ClinicSnapshot.from_records(clinic, profile),
                created_at=now,
                updated_at=now,
            )
        except ValueError as e:
            raise ValidationError(str(e)) from None

        self.gateway.put(JOB_POSTINGS, job.to_dict(), if_absent=True)
        logger.info(f"Created {job.job_type} job {job.job_id} for clinic {clinic_id} by {owner_sub}")
        return job

    def _clinic_profile(self, clinic: Dict[str, Any], owner_sub: str) -> Optional[Dict[str, Any]]:
        """Profile of the caller for this clinic, else of the clinic's creator."""
        clinic_id = clinic["clinicId"]
        profile = self.gateway.get(CLINIC_PROFILES, {"clinicId": clinic_id, "userSub": owner_sub})
        if profile is None and clinic.get("createdBy"):
            profile = self.gateway.get(
                CLINIC_PROFILES, {"clinicId": clinic_id, "userSub": clinic["createdBy"]}
            )
        return profile

    def update(self, job_id: str, owner_sub: str, changes: Dict[str, Any]) -> JobPosting:
        """Apply a partial update to a posting the caller owns.

        Completed postings are frozen. Status and job type cannot change
        here, and status history is never touched.
        """
        job = load_job(self.gateway, job_id)
        require_owner(job, owner_sub, "update")
        if job.is_completed:
            raise ConflictError("Cannot update completed job postings")

        for name, message in _IMMUTABLE_FIELDS.items():
            if name in changes:
                raise ValidationError(message)

        foreign = sorted(name for name in changes if name in _VARIANT_FIELDS and name not in job.details.FIELDS)
        if foreign:
            raise ValidationError(
                f"Fields not valid for a {job.job_type} job: {', '.join(foreign)}",
                details={"jobType": job.job_type, "invalidFields": foreign},
            )

        try:
            details = job.details.merged(changes)
            details.check_limits(self.config)
        except ValueError as e:
            raise ValidationError(str(e)) from None

        if any(name in changes for name in _DATE_FIELDS):
            check_not_in_past(details, self.clock().date())

        common = {
            attr: changes[name]
            for name, attr in JobPosting.COMMON_FIELDS.items()
            if changes.get(name) is not None
        }
        try:
            updated = replace(job, details=details, updated_at=self.clock(), **common)
        except ValueError as e:
            raise ValidationError(str(e)) from None

        save_job(self.gateway, updated)
        logger.info(f"Updated job {job_id} fields {sorted(changes)} by {owner_sub}")
        return updated

    def get(self, job_id: str) -> JobPosting:
        return load_job(self.gateway, job_id)

    def list_for_owner(self, owner_sub: str, status: Optional[str] = None) -> List[JobPosting]:
        """Postings created by ``owner_sub``, newest first."""
        wanted = None
        if status is not None:
            try:
                wanted = JobStatus.parse(status).value
            except ValueError:
                raise ValidationError(f"Invalid status filter: {status}") from None

        jobs = [JobPosting.from_dict(i) for i in self.gateway.query(JOB_POSTINGS, {"clinicUserSub": owner_sub})]
        if wanted is not None:
            jobs = [j for j in jobs if j.status == wanted]
        return sort_newest_first(jobs)


def sort_newest_first(jobs: List[JobPosting]) -> List[JobPosting]:
    return sorted(jobs, key=lambda j: j.created_at.isoformat() if j.created_at else "", reverse=True)
