"""
Job marketplace data models.

Records are dataclasses validated in ``__post_init__`` (raising
``ValueError``) and persisted through ``to_dict()`` / ``from_dict()`` using
the camelCase attribute names of the backing store.

A posting's type-specific fields are a tagged union: exactly one of
``TemporaryDetails``, ``MultiDayDetails`` or ``PermanentDetails``, each
carrying only the fields legal for its job type. When persisted the details
are flattened into the posting item and picked back apart by ``jobType``.
"""

import math
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Set, Union

from dateutil.parser import isoparse

from dentipal.config import MarketplaceConfig
from dentipal.jobs.roles import is_valid_role

# =============================================================================
# Helpers
# =============================================================================


def utc_now() -> datetime:
    """Get current timestamp in UTC."""
    return datetime.now(timezone.utc)


def parse_date(value: Any, field_name: str = "date") -> date:
    """Coerce an ISO 8601 string (or date/datetime) to a ``date``."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return isoparse(value.strip()).date()
        except (ValueError, OverflowError) as exc:
            raise ValueError(
                f"Invalid date format for {field_name}: {value!r}. Use an ISO 8601 date string."
            ) from exc
    raise ValueError(f"{field_name} must be an ISO 8601 date string")


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Coerce an ISO 8601 string to an aware ``datetime``; None passes through."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        parsed = isoparse(value)
    else:
        raise ValueError(f"Invalid timestamp: {value!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _iso(value: Optional[Union[date, datetime]]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _number(value: Any, field_name: str) -> float:
    """Validate a numeric field, rejecting bools, NaN and Infinity."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{field_name} must be a number")
    if math.isnan(value) or math.isinf(value):
        raise ValueError(f"{field_name} must be a finite number")
    return value


def _text(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{field_name} is required")
    return value.strip()


def _in_range(value: float, bounds, message: str) -> None:
    low, high = bounds
    if value < low or value > high:
        raise ValueError(message)


# =============================================================================
# Enums
# =============================================================================


class JobType(str, Enum):
    """Kinds of staffing need a clinic can post."""

    TEMPORARY = "temporary"
    MULTI_DAY_CONSULTING = "multi_day_consulting"
    PERMANENT = "permanent"


class JobStatus(str, Enum):
    """Job posting lifecycle status."""

    OPEN = "open"
    SCHEDULED = "scheduled"
    ACTION_NEEDED = "action_needed"
    COMPLETED = "completed"

    @classmethod
    def parse(cls, value: Union[str, "JobStatus"]) -> "JobStatus":
        """Parse a stored status; legacy ``active`` postings are ``open``."""
        if isinstance(value, JobStatus):
            return value
        if value == "active":
            return cls.OPEN
        return cls(value)


# Valid state transitions (adjacency table)
VALID_JOB_TRANSITIONS: Dict[JobStatus, Set[JobStatus]] = {
    JobStatus.OPEN: {JobStatus.SCHEDULED, JobStatus.ACTION_NEEDED, JobStatus.COMPLETED},
    JobStatus.SCHEDULED: {JobStatus.ACTION_NEEDED, JobStatus.COMPLETED, JobStatus.OPEN},
    JobStatus.ACTION_NEEDED: {JobStatus.SCHEDULED, JobStatus.COMPLETED, JobStatus.OPEN},
    JobStatus.COMPLETED: {JobStatus.OPEN},
}


def can_transition(from_status: Union[str, JobStatus], to_status: Union[str, JobStatus]) -> bool:
    """Check if a job status transition is in the adjacency table."""
    return JobStatus.parse(to_status) in VALID_JOB_TRANSITIONS[JobStatus.parse(from_status)]


class ApplicationStatus(str, Enum):
    """Job application lifecycle status."""

    PENDING = "pending"
    NEGOTIATING = "negotiating"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"


INACTIVE_APPLICATION_STATUSES = {ApplicationStatus.WITHDRAWN.value, ApplicationStatus.REJECTED.value}


class InvitationStatus(str, Enum):
    """Job invitation lifecycle status."""

    SENT = "sent"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    NEGOTIATING = "negotiating"
    WITHDRAWN = "withdrawn"


INACTIVE_INVITATION_STATUSES = {InvitationStatus.DECLINED.value, InvitationStatus.WITHDRAWN.value}

INVITATION_URGENCIES = ("low", "medium", "high")


class NegotiationStatus(str, Enum):
    """Negotiation thread status."""

    PENDING = "pending"
    COUNTER_OFFER = "counter_offer"
    ACCEPTED = "accepted"
    DECLINED = "declined"


TERMINAL_NEGOTIATION_STATUSES = {NegotiationStatus.ACCEPTED.value, NegotiationStatus.DECLINED.value}


class OfferParty(str, Enum):
    """Who made an offer in a negotiation."""

    CLINIC = "clinic"
    PROFESSIONAL = "professional"


class EmploymentType(str, Enum):
    FULL_TIME = "full_time"
    PART_TIME = "part_time"


# =============================================================================
# Job type details (tagged union)
# =============================================================================


class _Details:
    """Shared plumbing for the job type detail variants.

    Subclasses declare ``FIELDS``, a camelCase -> attribute map of the
    fields they own, and ``REQUIRED``, the camelCase names a new posting
    must supply.
    """

    job_type: ClassVar[JobType]
    FIELDS: ClassVar[Dict[str, str]]
    REQUIRED: ClassVar[List[str]]

    @classmethod
    def from_fields(cls, data: Dict[str, Any]):
        """Build from request/storage fields, ignoring unrelated keys."""
        missing = [name for name in cls.REQUIRED if data.get(name) is None]
        if missing:
            raise ValueError(f"Missing required fields: {', '.join(missing)}")
        kwargs = {attr: data[name] for name, attr in cls.FIELDS.items() if data.get(name) is not None}
        return cls(**kwargs)

    def merged(self, changes: Dict[str, Any]):
        """Return a copy with camelCase ``changes`` applied and re-validated."""
        kwargs = {
            attr: changes[name]
            for name, attr in self.FIELDS.items()
            if name in changes and changes[name] is not None
        }
        return replace(self, **kwargs)

    def to_dict(self) -> Dict[str, Any]:
        result = {}
        for name, attr in self.FIELDS.items():
            value = getattr(self, attr)
            if isinstance(value, (date, datetime)):
                value = value.isoformat()
            elif isinstance(value, list):
                value = [v.isoformat() if isinstance(v, date) else v for v in value]
            result[name] = value
        return result

    def upcoming_dates(self) -> List[date]:
        """Calendar dates this posting asks a professional to work."""
        return []

    @property
    def offered_pay(self) -> Optional[float]:
        raise NotImplementedError

    def pay_matches(self, amount: float) -> bool:
        """True if ``amount`` is what the posting already offers."""
        return amount == self.offered_pay

    @property
    def first_work_date(self) -> Optional[date]:
        dates = self.upcoming_dates()
        return min(dates) if dates else None


@dataclass
class TemporaryDetails(_Details):
    """A single shift on one date."""

    date: date
    hours: float
    hourly_rate: float
    start_time: str
    end_time: str
    meal_break: str = ""

    job_type: ClassVar[JobType] = JobType.TEMPORARY
    FIELDS: ClassVar[Dict[str, str]] = {
        "date": "date",
        "hours": "hours",
        "hourlyRate": "hourly_rate",
        "startTime": "start_time",
        "endTime": "end_time",
        "mealBreak": "meal_break",
    }
    REQUIRED: ClassVar[List[str]] = ["date", "hours", "hourlyRate", "startTime", "endTime"]

    def __post_init__(self):
        self.date = parse_date(self.date, "date")
        self.hours = _number(self.hours, "hours")
        self.hourly_rate = _number(self.hourly_rate, "hourlyRate")
        self.start_time = _text(self.start_time, "startTime")
        self.end_time = _text(self.end_time, "endTime")
        if self.hours <= 0:
            raise ValueError("Hours must be positive")
        if self.hourly_rate <= 0:
            raise ValueError("Hourly rate must be positive")
        if len(self.meal_break or "") > 100:
            raise ValueError("mealBreak must be 100 characters or fewer")

    def check_limits(self, config: MarketplaceConfig) -> None:
        low, high = config.temporary_hours
        _in_range(self.hours, config.temporary_hours, f"Hours must be between {low:g} and {high:g}")
        low, high = config.temporary_hourly_rate
        _in_range(
            self.hourly_rate,
            config.temporary_hourly_rate,
            f"Hourly rate must be between ${low:g} and ${high:g}",
        )

    def upcoming_dates(self) -> List[date]:
        return [self.date]

    @property
    def offered_pay(self) -> float:
        return self.hourly_rate


@dataclass
class MultiDayDetails(_Details):
    """A consulting engagement over several (not necessarily consecutive) days."""

    dates: List[date]
    hours_per_day: float
    hourly_rate: float
    start_time: str
    end_time: str
    total_days: Optional[int] = None
    meal_break: str = ""

    job_type: ClassVar[JobType] = JobType.MULTI_DAY_CONSULTING
    FIELDS: ClassVar[Dict[str, str]] = {
        "dates": "dates",
        "hoursPerDay": "hours_per_day",
        "hourlyRate": "hourly_rate",
        "totalDays": "total_days",
        "startTime": "start_time",
        "endTime": "end_time",
        "mealBreak": "meal_break",
    }
    REQUIRED: ClassVar[List[str]] = ["dates", "hoursPerDay", "hourlyRate", "startTime", "endTime"]

    def __post_init__(self):
        if not isinstance(self.dates, (list, tuple)) or not self.dates:
            raise ValueError("Dates must be a non-empty array")
        self.dates = sorted(parse_date(d, "dates") for d in self.dates)
        if len(set(self.dates)) != len(self.dates):
            raise ValueError("Duplicate dates are not allowed")
        if self.total_days is None:
            self.total_days = len(self.dates)
        if self.total_days != len(self.dates):
            raise ValueError(
                f"Number of dates ({len(self.dates)}) must match totalDays ({self.total_days})"
            )
        self.hours_per_day = _number(self.hours_per_day, "hoursPerDay")
        self.hourly_rate = _number(self.hourly_rate, "hourlyRate")
        self.start_time = _text(self.start_time, "startTime")
        self.end_time = _text(self.end_time, "endTime")
        if self.hours_per_day <= 0:
            raise ValueError("Hours per day must be positive")
        if self.hourly_rate <= 0:
            raise ValueError("Hourly rate must be positive")
        if len(self.meal_break or "") > 100:
            raise ValueError("mealBreak must be 100 characters or fewer")

    def merged(self, changes: Dict[str, Any]):
        # A new date list always recomputes totalDays unless the caller sent one to check against.
        if "dates" in changes and "totalDays" not in changes:
            dates = changes["dates"]
            changes = {**changes, "totalDays": len(dates) if isinstance(dates, (list, tuple)) else None}
        return super().merged(changes)

    def check_limits(self, config: MarketplaceConfig) -> None:
        if len(self.dates) > config.consulting_max_days:
            raise ValueError(
                f"Maximum {config.consulting_max_days} days allowed for consulting projects"
            )
        low, high = config.consulting_hours_per_day
        _in_range(
            self.hours_per_day,
            config.consulting_hours_per_day,
            f"Hours per day must be between {low:g} and {high:g}",
        )
        low, high = config.consulting_hourly_rate
        _in_range(
            self.hourly_rate,
            config.consulting_hourly_rate,
            f"Hourly rate must be between ${low:g} and ${high:g} for consulting",
        )

    def upcoming_dates(self) -> List[date]:
        return list(self.dates)

    @property
    def offered_pay(self) -> float:
        return self.hourly_rate


@dataclass
class PermanentDetails(_Details):
    """A salaried position."""

    employment_type: str
    salary_min: float
    salary_max: float
    benefits: List[str]
    start_date: Optional[date] = None

    job_type: ClassVar[JobType] = JobType.PERMANENT
    FIELDS: ClassVar[Dict[str, str]] = {
        "employmentType": "employment_type",
        "salaryMin": "salary_min",
        "salaryMax": "salary_max",
        "benefits": "benefits",
        "startDate": "start_date",
    }
    REQUIRED: ClassVar[List[str]] = ["employmentType", "salaryMin", "salaryMax", "benefits"]

    def __post_init__(self):
        valid_types = [e.value for e in EmploymentType]
        if self.employment_type not in valid_types:
            raise ValueError(f"Invalid employmentType. Valid options: {', '.join(valid_types)}")
        self.salary_min = _number(self.salary_min, "salaryMin")
        self.salary_max = _number(self.salary_max, "salaryMax")
        if self.salary_max < self.salary_min:
            raise ValueError("Maximum salary must be greater than minimum salary")
        if not isinstance(self.benefits, (list, tuple)):
            raise ValueError("Benefits must be an array")
        self.benefits = [b.strip() for b in self.benefits if isinstance(b, str) and b.strip()]
        if not self.benefits:
            raise ValueError("Benefits must include at least one entry")
        if self.start_date is not None:
            self.start_date = parse_date(self.start_date, "startDate")

    def check_limits(self, config: MarketplaceConfig) -> None:
        low, high = config.permanent_salary_min
        _in_range(
            self.salary_min,
            config.permanent_salary_min,
            f"Minimum salary must be between ${low:,.0f} and ${high:,.0f}",
        )
        if self.salary_max <= self.salary_min:
            raise ValueError("Maximum salary must be greater than minimum salary")

    def upcoming_dates(self) -> List[date]:
        return [self.start_date] if self.start_date else []

    @property
    def offered_pay(self) -> float:
        return self.salary_min

    def pay_matches(self, amount: float) -> bool:
        return self.salary_min <= amount <= self.salary_max


JobDetails = Union[TemporaryDetails, MultiDayDetails, PermanentDetails]

DETAILS_BY_TYPE: Dict[JobType, type] = {
    JobType.TEMPORARY: TemporaryDetails,
    JobType.MULTI_DAY_CONSULTING: MultiDayDetails,
    JobType.PERMANENT: PermanentDetails,
}


def details_from_fields(job_type: Union[str, JobType], data: Dict[str, Any]) -> JobDetails:
    """Build the detail variant for ``job_type`` from camelCase fields."""
    try:
        kind = JobType(job_type)
    except ValueError:
        valid = ", ".join(t.value for t in JobType)
        raise ValueError(f"Invalid job type: {job_type}. Valid options: {valid}") from None
    return DETAILS_BY_TYPE[kind].from_fields(data)


# =============================================================================
# Supporting records
# =============================================================================


@dataclass
class StatusHistoryEntry:
    """One recorded job status change."""

    from_status: str
    to_status: str
    changed_at: datetime
    changed_by: str
    notes: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fromStatus": self.from_status,
            "toStatus": self.to_status,
            "changedAt": _iso(self.changed_at),
            "changedBy": self.changed_by,
            "notes": self.notes,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StatusHistoryEntry":
        return cls(
            from_status=data["fromStatus"],
            to_status=data["toStatus"],
            changed_at=parse_timestamp(data["changedAt"]),
            changed_by=data["changedBy"],
            notes=data.get("notes") or "",
        )


@dataclass
class ClinicSnapshot:
    """Clinic address and practice profile copied onto a posting at creation."""

    address_line1: str = ""
    address_line2: str = ""
    address_line3: str = ""
    city: str = ""
    state: str = ""
    pincode: str = ""
    practice_type: str = "General"
    primary_practice_area: str = "General Dentistry"
    clinic_software: str = "Unknown"
    free_parking_available: bool = False
    parking_type: str = "N/A"
    booking_out_period: str = "immediate"

    KEYS: ClassVar[Dict[str, str]] = {
        "addressLine1": "address_line1",
        "addressLine2": "address_line2",
        "addressLine3": "address_line3",
        "city": "city",
        "state": "state",
        "pincode": "pincode",
        "practiceType": "practice_type",
        "primaryPracticeArea": "primary_practice_area",
        "clinicSoftware": "clinic_software",
        "freeParkingAvailable": "free_parking_available",
        "parkingType": "parking_type",
        "bookingOutPeriod": "booking_out_period",
    }

    @property
    def full_address(self) -> str:
        street = " ".join(p for p in (self.address_line1, self.address_line2, self.address_line3) if p)
        region = " ".join(p for p in (self.state, self.pincode) if p)
        return ", ".join(p for p in (street, self.city, region) if p)

    @classmethod
    def from_records(
        cls, clinic: Dict[str, Any], profile: Optional[Dict[str, Any]] = None
    ) -> "ClinicSnapshot":
        """Snapshot a clinic record and (optional) clinic profile record."""
        p = profile or {}
        return cls(
            address_line1=clinic.get("addressLine1") or "",
            address_line2=clinic.get("addressLine2") or "",
            address_line3=clinic.get("addressLine3") or "",
            city=clinic.get("city") or "",
            state=clinic.get("state") or "",
            pincode=clinic.get("pincode") or "",
            practice_type=p.get("practiceType") or "General",
            primary_practice_area=p.get("primaryPracticeArea") or "General Dentistry",
            clinic_software=p.get("clinicSoftware") or "Unknown",
            free_parking_available=bool(p.get("freeParkingAvailable", False)),
            parking_type=p.get("parkingType") or "N/A",
            booking_out_period=p.get("bookingOutPeriod") or "immediate",
        )

    def to_dict(self) -> Dict[str, Any]:
        result = {name: getattr(self, attr) for name, attr in self.KEYS.items()}
        result["fullAddress"] = self.full_address
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ClinicSnapshot":
        return cls(**{attr: data[name] for name, attr in cls.KEYS.items() if name in data})


@dataclass
class ProfessionalProfile:
    """The slice of a professional profile the marketplace reads."""

    user_sub: str
    role: str
    full_name: str = "Unknown"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProfessionalProfile":
        return cls(
            user_sub=data["userSub"],
            role=data.get("role") or "",
            full_name=data.get("fullName") or data.get("full_name") or "Unknown",
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"userSub": self.user_sub, "role": self.role, "fullName": self.full_name}


# =============================================================================
# Job posting
# =============================================================================


@dataclass
class JobPosting:
    """A staffing need published by a clinic."""

    job_id: str
    clinic_id: str
    clinic_user_sub: str
    professional_role: str
    shift_speciality: str
    details: JobDetails
    status: str = JobStatus.OPEN.value
    status_history: List[StatusHistoryEntry] = field(default_factory=list)
    job_title: Optional[str] = None
    job_description: Optional[str] = None
    requirements: List[str] = field(default_factory=list)
    clinic: Optional[ClinicSnapshot] = None
    accepted_professional_user_sub: Optional[str] = None
    scheduled_date: Optional[date] = None
    status_notes: Optional[str] = None
    completed_at: Optional[datetime] = None
    completion_notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    # Top-level attributes that are not part of the type-specific details
    COMMON_FIELDS: ClassVar[Dict[str, str]] = {
        "professionalRole": "professional_role",
        "shiftSpeciality": "shift_speciality",
        "jobTitle": "job_title",
        "jobDescription": "job_description",
        "requirements": "requirements",
    }

    def __post_init__(self):
        if not isinstance(self.details, (TemporaryDetails, MultiDayDetails, PermanentDetails)):
            raise ValueError("details must be a job type detail variant")
        try:
            self.status = JobStatus.parse(self.status).value
        except ValueError:
            raise ValueError(f"Invalid status: {self.status}") from None
        if not is_valid_role(self.professional_role):
            raise ValueError(f"Invalid professional role: {self.professional_role}")
        self.shift_speciality = _text(self.shift_speciality, "shiftSpeciality")
        if self.job_title is not None and len(self.job_title) > 200:
            raise ValueError("Title too long (max 200 characters)")
        if not isinstance(self.requirements, list):
            raise ValueError("requirements must be an array")
        if self.scheduled_date is not None:
            self.scheduled_date = parse_date(self.scheduled_date, "scheduledDate")

    @property
    def job_type(self) -> str:
        return self.details.job_type.value

    @property
    def status_enum(self) -> JobStatus:
        return JobStatus(self.status)

    def can_transition_to(self, new_status: Union[str, JobStatus]) -> bool:
        return can_transition(self.status, new_status)

    def valid_next_statuses(self) -> List[str]:
        return sorted(s.value for s in VALID_JOB_TRANSITIONS[self.status_enum])

    @property
    def is_open(self) -> bool:
        return self.status == JobStatus.OPEN.value

    @property
    def is_completed(self) -> bool:
        return self.status == JobStatus.COMPLETED.value

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "jobId": self.job_id,
            "clinicId": self.clinic_id,
            "clinicUserSub": self.clinic_user_sub,
            "jobType": self.job_type,
            "professionalRole": self.professional_role,
            "shiftSpeciality": self.shift_speciality,
            "status": self.status,
            "statusHistory": [h.to_dict() for h in self.status_history],
            "jobTitle": self.job_title,
            "jobDescription": self.job_description,
            "requirements": list(self.requirements),
            "acceptedProfessionalUserSub": self.accepted_professional_user_sub,
            "scheduledDate": _iso(self.scheduled_date),
            "statusNotes": self.status_notes,
            "completedAt": _iso(self.completed_at),
            "completionNotes": self.completion_notes,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }
        data.update(self.details.to_dict())
        if self.clinic is not None:
            data.update(self.clinic.to_dict())
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "JobPosting":
        job_type = data.get("jobType") or data.get("job_type")
        has_clinic = any(name in data for name in ClinicSnapshot.KEYS)
        return cls(
            job_id=data["jobId"],
            clinic_id=data["clinicId"],
            clinic_user_sub=data["clinicUserSub"],
            professional_role=data["professionalRole"],
            shift_speciality=data["shiftSpeciality"],
            details=details_from_fields(job_type, data),
            status=data.get("status") or JobStatus.OPEN.value,
            status_history=[StatusHistoryEntry.from_dict(h) for h in data.get("statusHistory") or []],
            job_title=data.get("jobTitle"),
            job_description=data.get("jobDescription"),
            requirements=list(data.get("requirements") or []),
            clinic=ClinicSnapshot.from_dict(data) if has_clinic else None,
            accepted_professional_user_sub=data.get("acceptedProfessionalUserSub"),
            scheduled_date=data.get("scheduledDate"),
            status_notes=data.get("statusNotes"),
            completed_at=parse_timestamp(data.get("completedAt")),
            completion_notes=data.get("completionNotes"),
            created_at=parse_timestamp(data.get("createdAt")),
            updated_at=parse_timestamp(data.get("updatedAt")),
        )


# =============================================================================
# Dependent records
# =============================================================================


@dataclass
class JobApplication:
    """A professional's bid on a job posting."""

    application_id: str
    job_id: str
    professional_user_sub: str
    clinic_id: str
    clinic_user_sub: str
    status: str = ApplicationStatus.PENDING.value
    message: Optional[str] = None
    proposed_rate: Optional[float] = None
    availability: Optional[str] = None
    start_date: Optional[str] = None
    notes: Optional[str] = None
    accepted_rate: Optional[float] = None
    negotiation_id: Optional[str] = None
    from_invitation: bool = False
    applied_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        valid = [s.value for s in ApplicationStatus]
        if self.status not in valid:
            raise ValueError(f"Invalid status: {self.status}. Must be one of {valid}")
        if self.proposed_rate is not None:
            self.proposed_rate = _number(self.proposed_rate, "proposedRate")
            if self.proposed_rate <= 0:
                raise ValueError("proposedRate must be positive")

    @property
    def is_active(self) -> bool:
        return self.status not in INACTIVE_APPLICATION_STATUSES

    def to_dict(self) -> Dict[str, Any]:
        return {
            "applicationId": self.application_id,
            "jobId": self.job_id,
            "professionalUserSub": self.professional_user_sub,
            "clinicId": self.clinic_id,
            "clinicUserSub": self.clinic_user_sub,
            "applicationStatus": self.status,
            "applicationMessage": self.message,
            "proposedRate": self.proposed_rate,
            "availability": self.availability,
            "startDate": self.start_date,
            "notes": self.notes,
            "acceptedRate": self.accepted_rate,
            "negotiationId": self.negotiation_id,
            "fromInvitation": self.from_invitation,
            "appliedAt": _iso(self.applied_at),
            "updatedAt": _iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "JobApplication":
        return cls(
            application_id=data["applicationId"],
            job_id=data["jobId"],
            professional_user_sub=data["professionalUserSub"],
            clinic_id=data.get("clinicId") or "",
            clinic_user_sub=data.get("clinicUserSub") or "",
            status=data.get("applicationStatus") or ApplicationStatus.PENDING.value,
            message=data.get("applicationMessage"),
            proposed_rate=data.get("proposedRate"),
            availability=data.get("availability"),
            start_date=data.get("startDate"),
            notes=data.get("notes"),
            accepted_rate=data.get("acceptedRate"),
            negotiation_id=data.get("negotiationId"),
            from_invitation=bool(data.get("fromInvitation", False)),
            applied_at=parse_timestamp(data.get("appliedAt")),
            updated_at=parse_timestamp(data.get("updatedAt")),
        )


@dataclass
class JobInvitation:
    """Clinic-initiated outreach to one professional for one job."""

    invitation_id: str
    job_id: str
    professional_user_sub: str
    clinic_user_sub: str
    clinic_id: str
    status: str = InvitationStatus.SENT.value
    message: str = ""
    urgency: str = "medium"
    custom_notes: str = ""
    sent_at: Optional[datetime] = None
    responded_at: Optional[datetime] = None
    response_message: Optional[str] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        valid = [s.value for s in InvitationStatus]
        if self.status not in valid:
            raise ValueError(f"Invalid status: {self.status}. Must be one of {valid}")
        if self.urgency not in INVITATION_URGENCIES:
            raise ValueError(f"Invalid urgency: {self.urgency}. Must be one of {list(INVITATION_URGENCIES)}")

    @property
    def is_active(self) -> bool:
        return self.status not in INACTIVE_INVITATION_STATUSES

    def to_dict(self) -> Dict[str, Any]:
        return {
            "invitationId": self.invitation_id,
            "jobId": self.job_id,
            "professionalUserSub": self.professional_user_sub,
            "clinicUserSub": self.clinic_user_sub,
            "clinicId": self.clinic_id,
            "invitationStatus": self.status,
            "invitationMessage": self.message,
            "urgency": self.urgency,
            "customNotes": self.custom_notes,
            "sentAt": _iso(self.sent_at),
            "respondedAt": _iso(self.responded_at),
            "responseMessage": self.response_message,
            "updatedAt": _iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "JobInvitation":
        return cls(
            invitation_id=data["invitationId"],
            job_id=data["jobId"],
            professional_user_sub=data["professionalUserSub"],
            clinic_user_sub=data.get("clinicUserSub") or "",
            clinic_id=data.get("clinicId") or "",
            status=data.get("invitationStatus") or InvitationStatus.SENT.value,
            message=data.get("invitationMessage") or "",
            urgency=data.get("urgency") or "medium",
            custom_notes=data.get("customNotes") or "",
            sent_at=parse_timestamp(data.get("sentAt")),
            responded_at=parse_timestamp(data.get("respondedAt")),
            response_message=data.get("responseMessage"),
            updated_at=parse_timestamp(data.get("updatedAt")),
        )


@dataclass
class Offer:
    """One offer in a negotiation thread."""

    amount: float
    from_party: str
    made_at: datetime
    message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "amount": self.amount,
            "fromParty": self.from_party,
            "madeAt": _iso(self.made_at),
            "message": self.message,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Offer":
        return cls(
            amount=data["amount"],
            from_party=data["fromParty"],
            made_at=parse_timestamp(data["madeAt"]),
            message=data.get("message") or "",
        )


@dataclass
class JobNegotiation:
    """Counter-offer thread attached to one application."""

    negotiation_id: str
    application_id: str
    job_id: str
    clinic_id: str
    clinic_user_sub: str
    professional_user_sub: str
    last_offer_pay: float
    last_offer_from: str
    status: str = NegotiationStatus.PENDING.value
    offers: List[Offer] = field(default_factory=list)
    agreed_pay: Optional[float] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        valid = [s.value for s in NegotiationStatus]
        if self.status not in valid:
            raise ValueError(f"Invalid status: {self.status}. Must be one of {valid}")
        parties = [p.value for p in OfferParty]
        if self.last_offer_from not in parties:
            raise ValueError(f"Invalid offer party: {self.last_offer_from}")
        self.last_offer_pay = _number(self.last_offer_pay, "lastOfferPay")
        if self.last_offer_pay <= 0:
            raise ValueError("Offer amount must be positive")

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_NEGOTIATION_STATUSES

    def to_dict(self) -> Dict[str, Any]:
        return {
            "negotiationId": self.negotiation_id,
            "applicationId": self.application_id,
            "jobId": self.job_id,
            "clinicId": self.clinic_id,
            "clinicUserSub": self.clinic_user_sub,
            "professionalUserSub": self.professional_user_sub,
            "negotiationStatus": self.status,
            "lastOfferPay": self.last_offer_pay,
            "lastOfferFrom": self.last_offer_from,
            "offers": [o.to_dict() for o in self.offers],
            "agreedPay": self.agreed_pay,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "JobNegotiation":
        return cls(
            negotiation_id=data["negotiationId"],
            application_id=data["applicationId"],
            job_id=data["jobId"],
            clinic_id=data.get("clinicId") or "",
            clinic_user_sub=data.get("clinicUserSub") or "",
            professional_user_sub=data["professionalUserSub"],
            last_offer_pay=data["lastOfferPay"],
            last_offer_from=data["lastOfferFrom"],
            status=data.get("negotiationStatus") or NegotiationStatus.PENDING.value,
            offers=[Offer.from_dict(o) for o in data.get("offers") or []],
            agreed_pay=data.get("agreedPay"),
            created_at=parse_timestamp(data.get("createdAt")),
            updated_at=parse_timestamp(data.get("updatedAt")),
        )

