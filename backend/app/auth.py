"""Authentication for the DentiPal backend.

Bearer tokens are issued by the identity provider. The backend only
verifies them and reads ``sub`` and the group claim.
"""

from datetime import datetime, timedelta, timezone
from typing import Annotated

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import jwt

from dentipal.identity import GROUPS_CLAIM, USER_TYPE_CLAIM, Identity, JwtIdentityResolver
from dentipal.jobs.errors import ForbiddenError, UnauthorizedError

from .config import Settings, get_settings

# Bearer token scheme; missing credentials are reported by us, not FastAPI
security = HTTPBearer(auto_error=False)


def get_identity_resolver(settings: Annotated[Settings, Depends(get_settings)]) -> JwtIdentityResolver:
    return JwtIdentityResolver(
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
        audience=settings.jwt_audience,
        issuer=settings.jwt_issuer,
    )


def create_access_token(
    subject: str,
    settings: Settings,
    groups: list[str] | None = None,
    user_type: str | None = None,
    expires_delta: timedelta | None = None,
) -> str:
    """Sign a token in the identity provider's claim layout (local runs and tests)."""
    now = datetime.now(timezone.utc)
    to_encode = {
        "sub": subject,
        "iat": now,
        "exp": now + (expires_delta or timedelta(hours=1)),
        GROUPS_CLAIM: groups or [],
    }
    if user_type:
        to_encode[USER_TYPE_CLAIM] = user_type
    if settings.jwt_audience:
        to_encode["aud"] = settings.jwt_audience
    if settings.jwt_issuer:
        to_encode["iss"] = settings.jwt_issuer
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    resolver: Annotated[JwtIdentityResolver, Depends(get_identity_resolver)],
) -> Identity:
    """Resolve the caller from the Authorization header."""
    if credentials is None:
        raise UnauthorizedError("Not authenticated - provide an Authorization header")
    return resolver.resolve_token(credentials.credentials)


async def require_clinic_staff(user: Annotated[Identity, Depends(get_current_user)]) -> Identity:
    """Only clinic staff groups may publish jobs."""
    if not user.is_clinic_staff:
        raise ForbiddenError(
            "Access denied: only Root, ClinicAdmin or ClinicManager can create job postings"
        )
    return user


# Type aliases for dependency injection
CurrentUser = Annotated[Identity, Depends(get_current_user)]
ClinicStaff = Annotated[Identity, Depends(require_clinic_staff)]
