"""Marketplace configuration.

Limits and value ranges shared by the job engines. The backend builds one
of these from its environment settings; tests construct it directly.
"""

from dataclasses import dataclass
from typing import Tuple

# Range is (min, max), both inclusive.
Range = Tuple[float, float]


@dataclass
class MarketplaceConfig:
    """Tunable limits for the job lifecycle engines."""

    # Deletion cleanup
    batch_write_limit: int = 25  # Max keys per batch-delete call

    # Invitations
    max_invitations_per_request: int = 50
    default_invitation_urgency: str = "medium"
    default_invitation_message: str = "You have been invited to apply for this position."

    # Professional job feed
    matching_jobs_default_limit: int = 50
    matching_jobs_max_limit: int = 100

    # Temporary shifts
    temporary_hours: Range = (1, 12)
    temporary_hourly_rate: Range = (10, 200)

    # Multi-day consulting
    consulting_max_days: int = 30
    consulting_hours_per_day: Range = (1, 12)
    consulting_hourly_rate: Range = (10, 300)

    # Permanent positions
    permanent_salary_min: Range = (20000, 500000)

    def __post_init__(self):
        if self.batch_write_limit < 1:
            raise ValueError("batch_write_limit must be at least 1")
        if self.max_invitations_per_request < 1:
            raise ValueError("max_invitations_per_request must be at least 1")
        if self.matching_jobs_default_limit > self.matching_jobs_max_limit:
            raise ValueError("matching_jobs_default_limit cannot exceed matching_jobs_max_limit")
        if self.consulting_max_days < 1:
            raise ValueError("consulting_max_days must be at least 1")
        for name in (
            "temporary_hours",
            "temporary_hourly_rate",
            "consulting_hours_per_day",
            "consulting_hourly_rate",
            "permanent_salary_min",
        ):
            low, high = getattr(self, name)
            if low > high:
                raise ValueError(f"{name} lower bound {low} exceeds upper bound {high}")


# Singleton default config
DEFAULT_MARKETPLACE_CONFIG = MarketplaceConfig()
