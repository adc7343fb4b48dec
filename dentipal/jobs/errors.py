"""Error taxonomy for the job marketplace engines.

Every engine failure is a ``MarketplaceError`` subclass carrying the HTTP
status it maps to, so the API layer can render it without a lookup table.
"""

from typing import Any, Dict, List, Optional


class MarketplaceError(Exception):
    """Base exception for marketplace operations."""

    error = "InternalError"
    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.error, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class UnauthorizedError(MarketplaceError):
    """Missing, invalid or expired credential."""

    error = "Unauthorized"
    status_code = 401


class ForbiddenError(MarketplaceError):
    """Authenticated, but not allowed to act on the resource."""

    error = "Forbidden"
    status_code = 403


class NotFoundError(MarketplaceError):
    """Job, application, invitation or negotiation does not exist."""

    error = "NotFound"
    status_code = 404


class ValidationError(MarketplaceError):
    """Malformed or out-of-range input."""

    error = "ValidationError"
    status_code = 400


class ConflictError(MarketplaceError):
    """Request conflicts with the current state of a record."""

    error = "Conflict"
    status_code = 409


class InternalError(MarketplaceError):
    """Unexpected persistence failure."""


class InvalidTransitionError(ConflictError):
    """Job status change not allowed by the state machine."""

    error = "InvalidTransition"

    def __init__(self, from_status: str, to_status: str, valid_next: List[str]):
        super().__init__(
            f"Cannot transition job from '{from_status}' to '{to_status}'",
            details={
                "currentStatus": from_status,
                "requestedStatus": to_status,
                "validNextStates": valid_next,
            },
        )
        self.from_status = from_status
        self.to_status = to_status
        self.valid_next = valid_next


class InvitationRejectedError(ValidationError):
    """One or more invitation candidates failed the existence/role gate."""

    def __init__(self, job_role: str, missing: List[str], incompatible: List[Dict[str, str]]):
        parts = []
        if missing:
            parts.append(f"Invalid professional IDs: {', '.join(missing)}")
        if incompatible:
            names = ", ".join(f"{p['userSub']} ({p['role']})" for p in incompatible)
            parts.append(f"Role mismatch for professionals: {names}. Job requires: {job_role}")
        super().__init__(
            ". ".join(parts),
            details={
                "jobRole": job_role,
                "missing": missing,
                "incompatible": incompatible,
            },
        )
        self.missing = missing
        self.incompatible = incompatible
