"""API routes."""

from .applications import router as applications_router
from .invitations import router as invitations_router
from .jobs import router as jobs_router

# Route table: every router the app serves, registered once at startup
ROUTERS = (jobs_router, invitations_router, applications_router)

__all__ = [
    "ROUTERS",
    "jobs_router",
    "invitations_router",
    "applications_router",
]
