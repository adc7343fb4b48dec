"""Job lifecycle and marketplace workflow.

Models:
- JobPosting: A staffing need published by a clinic, with a tagged union
  of type-specific details (TemporaryDetails, MultiDayDetails, PermanentDetails)
- JobApplication, JobInvitation, JobNegotiation: Records dependent on a posting
- JobStatus: Posting lifecycle status, transitions in VALID_JOB_TRANSITIONS

Engines:
- JobPostingManager: Create, update and read postings
- StatusTransitionEngine: Status changes with history
- MatchingEngine: Role matching, invitations, professional job feed
- ApplicationEngine: Applications to open jobs
- NegotiationEngine: Counter-offer threads
- DeletionCoordinator: Guarded deletes with dependent cleanup
- Marketplace: All engines over one gateway
"""

from dentipal.jobs.applications import ApplicationEngine
from dentipal.jobs.deletion import DeletionCoordinator, DeletionResult
from dentipal.jobs.errors import (
    ConflictError,
    ForbiddenError,
    InternalError,
    InvalidTransitionError,
    InvitationRejectedError,
    MarketplaceError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from dentipal.jobs.marketplace import Marketplace
from dentipal.jobs.matching import InvitationBatchResult, InvitationResponseOutcome, MatchingEngine
from dentipal.jobs.models import (
    VALID_JOB_TRANSITIONS,
    ApplicationStatus,
    InvitationStatus,
    JobApplication,
    JobInvitation,
    JobNegotiation,
    JobPosting,
    JobStatus,
    JobType,
    MultiDayDetails,
    NegotiationStatus,
    PermanentDetails,
    StatusHistoryEntry,
    TemporaryDetails,
)
from dentipal.jobs.negotiations import NegotiationEngine, NegotiationOutcome
from dentipal.jobs.postings import JobPostingManager
from dentipal.jobs.roles import PROFESSIONAL_ROLES, is_role_compatible
from dentipal.jobs.storage import InMemoryGateway, PersistenceGateway
from dentipal.jobs.transitions import StatusTransitionEngine

__all__ = [
    # Models
    "JobPosting",
    "JobType",
    "JobStatus",
    "TemporaryDetails",
    "MultiDayDetails",
    "PermanentDetails",
    "StatusHistoryEntry",
    "JobApplication",
    "ApplicationStatus",
    "JobInvitation",
    "InvitationStatus",
    "JobNegotiation",
    "NegotiationStatus",
    "VALID_JOB_TRANSITIONS",
    "PROFESSIONAL_ROLES",
    "is_role_compatible",
    # Storage
    "PersistenceGateway",
    "InMemoryGateway",
    # Engines
    "Marketplace",
    "JobPostingManager",
    "StatusTransitionEngine",
    "MatchingEngine",
    "InvitationBatchResult",
    "InvitationResponseOutcome",
    "ApplicationEngine",
    "NegotiationEngine",
    "NegotiationOutcome",
    "DeletionCoordinator",
    "DeletionResult",
    # Errors
    "MarketplaceError",
    "UnauthorizedError",
    "ForbiddenError",
    "NotFoundError",
    "ValidationError",
    "ConflictError",
    "InternalError",
    "InvalidTransitionError",
    "InvitationRejectedError",
]
