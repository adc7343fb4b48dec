"""Pydantic models for API requests and responses.

Request bodies use the same camelCase names as the stored records. Range
checks live in the engines so the API and library report identical
messages; these models only check shape.
"""

from typing import Any

from pydantic import BaseModel, Field

# =============================================================================
# Job Models
# =============================================================================


class JobFields(BaseModel):
    """Fields shared by create and update; the job type decides which apply."""

    professionalRole: str | None = None
    shiftSpeciality: str | None = None
    jobTitle: str | None = None
    jobDescription: str | None = None
    requirements: list[str] | None = None
    # temporary
    date: str | None = None
    hours: float | None = None
    # temporary + multi_day_consulting
    hourlyRate: float | None = None
    startTime: str | None = None
    endTime: str | None = None
    mealBreak: str | None = None
    # multi_day_consulting
    dates: list[str] | None = None
    hoursPerDay: float | None = None
    totalDays: int | None = None
    # permanent
    employmentType: str | None = None
    salaryMin: float | None = None
    salaryMax: float | None = None
    benefits: list[str] | None = None
    startDate: str | None = None


class JobCreate(JobFields):
    """Request to create a job posting."""

    clinicId: str = Field(..., min_length=1)
    professionalRole: str = Field(..., min_length=1)
    shiftSpeciality: str = Field(..., min_length=1)


class JobUpdate(JobFields):
    """Partial update; only sent fields are applied."""

    # Accepted so the engine can refuse them with a clear message
    jobType: str | None = None
    status: str | None = None


class JobStatusUpdate(BaseModel):
    """Request to change a job's status."""

    status: str = Field(..., min_length=1)
    notes: str | None = None
    acceptedProfessionalUserSub: str | None = None
    scheduledDate: str | None = None
    completionNotes: str | None = None


class JobResponse(BaseModel):
    message: str
    job: dict[str, Any]


class JobListResponse(BaseModel):
    jobs: list[dict[str, Any]]
    total: int


class StatusHistoryResponse(BaseModel):
    jobId: str
    status: str
    statusHistory: list[dict[str, Any]]


class JobDeleteResponse(BaseModel):
    message: str
    jobId: str
    deleted: bool
    relatedItemsDeleted: int
    cleanupFailures: int
    force: bool
    deletedAt: str


# =============================================================================
# Invitation Models
# =============================================================================


class InvitationCreate(BaseModel):
    """Request to invite professionals to a job."""

    professionalUserSubs: list[str]
    invitationMessage: str | None = None
    urgency: str | None = None
    customNotes: str | None = None


class InvitationRespond(BaseModel):
    """A professional's answer to an invitation."""

    response: str = Field(..., min_length=1)
    message: str | None = None
    proposedRate: float | None = None
    availabilityNotes: str | None = None


class InvitationBatchResponse(BaseModel):
    message: str
    jobId: str
    totalRequested: int
    successful: list[dict[str, Any]]
    errors: list[dict[str, str]]


class InvitationResponse(BaseModel):
    message: str
    invitation: dict[str, Any]
    application: dict[str, Any] | None = None
    jobScheduled: bool = False


class InvitationListResponse(BaseModel):
    invitations: list[dict[str, Any]]
    total: int


# =============================================================================
# Application / Negotiation Models
# =============================================================================


class ApplicationCreate(BaseModel):
    """Request to apply to a job."""

    message: str | None = None
    proposedRate: float | None = None
    availability: str | None = None
    startDate: str | None = None
    notes: str | None = None


class ApplicationResponse(BaseModel):
    message: str
    application: dict[str, Any]


class ApplicationListResponse(BaseModel):
    applications: list[dict[str, Any]]
    total: int


class NegotiationRespond(BaseModel):
    """Accept, counter or reject the other party's last offer."""

    action: str = Field(..., min_length=1)
    amount: float | None = None
    message: str | None = None


class NegotiationResponse(BaseModel):
    message: str
    negotiation: dict[str, Any]
    application: dict[str, Any]
    job: dict[str, Any] | None = None


class NegotiationListResponse(BaseModel):
    negotiations: list[dict[str, Any]]
    total: int
