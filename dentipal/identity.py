"""Bearer credential -> caller identity.

Tokens are JWTs carrying ``sub`` and the identity provider's group list in
``cognito:groups`` (either a list or a comma-separated string).
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional, Tuple

from jose import JWTError, jwt

from dentipal.jobs.errors import UnauthorizedError

GROUPS_CLAIM = "cognito:groups"
USER_TYPE_CLAIM = "custom:user_type"

# Groups allowed to publish and manage job postings
CLINIC_STAFF_GROUPS = ("Root", "ClinicAdmin", "ClinicManager")


def normalize_group(name: str) -> str:
    """Lowercase and strip everything but letters and digits."""
    return re.sub(r"[^a-z0-9]", "", name.lower())


def parse_groups(raw: Any) -> Tuple[str, ...]:
    if raw is None:
        return ()
    if isinstance(raw, str):
        return tuple(g.strip() for g in raw.split(",") if g.strip())
    if isinstance(raw, (list, tuple)):
        return tuple(str(g).strip() for g in raw if str(g).strip())
    return ()


@dataclass(frozen=True)
class Identity:
    """An authenticated caller."""

    subject_id: str
    roles: Tuple[str, ...] = field(default_factory=tuple)
    user_type: Optional[str] = None
    email: Optional[str] = None

    def has_any_role(self, names: Iterable[str]) -> bool:
        wanted = {normalize_group(n) for n in names}
        return any(normalize_group(r) in wanted for r in self.roles)

    @property
    def is_clinic_staff(self) -> bool:
        return self.has_any_role(CLINIC_STAFF_GROUPS)


class JwtIdentityResolver:
    """Resolve bearer tokens signed with a shared secret."""

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        audience: Optional[str] = None,
        issuer: Optional[str] = None,
    ):
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.audience = audience
        self.issuer = issuer

    def resolve_token(self, token: str) -> Identity:
        claims = self.decode(token)
        subject = claims.get("sub")
        if not subject:
            raise UnauthorizedError("Invalid token payload")
        return Identity(
            subject_id=subject,
            roles=parse_groups(claims.get(GROUPS_CLAIM)),
            user_type=claims.get(USER_TYPE_CLAIM),
            email=claims.get("email"),
        )

    def decode(self, token: str) -> Dict[str, Any]:
        options = {"verify_aud": self.audience is not None}
        try:
            return jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                audience=self.audience,
                issuer=self.issuer,
                options=options,
            )
        except JWTError:
            raise UnauthorizedError("Invalid or expired token") from None
