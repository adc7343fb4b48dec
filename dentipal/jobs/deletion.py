"""
Deletion Consistency Coordinator.

Deleting a job is a two-phase saga. The guard phase only reads and refuses
the delete while anything still depends on the job. The cleanup phase
deletes the job and then removes its applications, invitations and
negotiations in bounded batches; cleanup failures are logged and counted
but never undo or fail the delete.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List

from dentipal.config import DEFAULT_MARKETPLACE_CONFIG, MarketplaceConfig
from dentipal.jobs.errors import ConflictError
from dentipal.jobs.models import (
    INACTIVE_APPLICATION_STATUSES,
    INACTIVE_INVITATION_STATUSES,
    JobApplication,
    JobInvitation,
    JobStatus,
    utc_now,
)
from dentipal.jobs.postings import Clock, load_job, require_owner
from dentipal.jobs.storage import (
    JOB_APPLICATIONS,
    JOB_INVITATIONS,
    JOB_NEGOTIATIONS,
    JOB_POSTINGS,
    Key,
    PersistenceGateway,
    StorageError,
    key_schema,
)

logger = logging.getLogger(__name__)

# Statuses where a professional is committed to the job
_COMMITTED_STATUSES = {JobStatus.SCHEDULED.value, JobStatus.ACTION_NEEDED.value}


@dataclass
class DeletionResult:
    """What a completed delete removed."""

    job_id: str
    deleted: bool
    related_items_deleted: int
    cleanup_failures: int
    force: bool
    deleted_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "jobId": self.job_id,
            "deleted": self.deleted,
            "relatedItemsDeleted": self.related_items_deleted,
            "cleanupFailures": self.cleanup_failures,
            "force": self.force,
            "deletedAt": self.deleted_at.isoformat(),
        }


def chunked(keys: List[Key], size: int) -> List[List[Key]]:
    return [keys[i : i + size] for i in range(0, len(keys), size)]


class DeletionCoordinator:
    """Delete job postings without leaving inconsistent dependents behind."""

    def __init__(
        self,
        gateway: PersistenceGateway,
        config: MarketplaceConfig = DEFAULT_MARKETPLACE_CONFIG,
        clock: Clock = utc_now,
    ):
        self.gateway = gateway
        self.config = config
        self.clock = clock

    def delete(self, job_id: str, requester_sub: str, force: bool = False) -> DeletionResult:
        """Delete a job the requester owns.

        Args:
            job_id: Job to delete
            requester_sub: Must own the job
            force: Required to delete a completed job

        Raises:
            NotFoundError: Job does not exist
            ForbiddenError: Requester does not own the job
            ConflictError: Job is committed, has active applications or
                invitations, or is completed without ``force``
        """
        job = load_job(self.gateway, job_id)
        require_owner(job, requester_sub, "delete")

        if job.status in _COMMITTED_STATUSES:
            raise ConflictError(
                f"Cannot delete a {job.status} job. Reopen or complete it first.",
                details={"status": job.status},
            )

        applications = [JobApplication.from_dict(i) for i in self.gateway.query(JOB_APPLICATIONS, {"jobId": job_id})]
        active_apps = [a for a in applications if a.status not in INACTIVE_APPLICATION_STATUSES]
        if active_apps:
            raise ConflictError(
                f"Cannot delete job with {len(active_apps)} active application(s). "
                "Reject or wait for them to be withdrawn first.",
                details={"activeApplications": len(active_apps)},
            )

        invitations = [JobInvitation.from_dict(i) for i in self.gateway.query(JOB_INVITATIONS, {"jobId": job_id})]
        active_invites = [i for i in invitations if i.status not in INACTIVE_INVITATION_STATUSES]
        if active_invites:
            raise ConflictError(
                f"Cannot delete job with {len(active_invites)} pending invitation(s). Withdraw them first.",
                details={"activeInvitations": len(active_invites)},
            )

        if job.is_completed and not force:
            raise ConflictError(
                "Deleting a completed job permanently removes its history and records. "
                "Retry with force=true to confirm.",
                details={"status": job.status, "requiresForce": True},
            )

        negotiation_keys: List[Key] = []
        schema = key_schema(JOB_NEGOTIATIONS)
        for application in applications:
            for item in self.gateway.query(JOB_NEGOTIATIONS, {"applicationId": application.application_id}):
                negotiation_keys.append(schema.key_dict(item))

        # Point of no return
        self.gateway.delete(JOB_POSTINGS, {"jobId": job_id})
        deleted_at = self.clock()

        related = 0
        failures = 0
        cleanup = (
            (JOB_NEGOTIATIONS, negotiation_keys),
            (JOB_APPLICATIONS, [{"jobId": job_id, "professionalUserSub": a.professional_user_sub} for a in applications]),
            (JOB_INVITATIONS, [{"jobId": job_id, "professionalUserSub": i.professional_user_sub} for i in invitations]),
        )
        for collection, keys in cleanup:
            done, failed = self._delete_batches(job_id, collection, keys)
            related += done
            failures += failed

        logger.info(
            f"Deleted job {job_id} by {requester_sub} (force={force}): "
            f"{related} related items removed, {failures} cleanup failures"
        )
        return DeletionResult(
            job_id=job_id,
            deleted=True,
            related_items_deleted=related,
            cleanup_failures=failures,
            force=force,
            deleted_at=deleted_at,
        )

    def _delete_batches(self, job_id: str, collection: str, keys: List[Key]):
        deleted = 0
        failed = 0
        for batch in chunked(keys, self.config.batch_write_limit):
            try:
                result = self.gateway.batch_delete(collection, batch)
            except StorageError as e:
                logger.error(f"Cleanup of {len(batch)} {collection} items for deleted job {job_id} failed: {e}")
                failed += len(batch)
                continue
            deleted += result.deleted
            if result.failed_keys:
                logger.error(
                    f"Cleanup left {len(result.failed_keys)} {collection} items for deleted job {job_id}"
                )
                failed += len(result.failed_keys)
        return deleted, failed
