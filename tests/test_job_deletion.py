"""Tests for the deletion consistency coordinator."""

import pytest
from job_factories import CLINIC_OWNER, DUAL_ROLE, FIXED_NOW, HYGIENIST, OTHER_CLINIC_USER

from dentipal.config import MarketplaceConfig
from dentipal.jobs.deletion import DeletionCoordinator, chunked
from dentipal.jobs.errors import ConflictError, ForbiddenError, NotFoundError
from dentipal.jobs.storage import (
    JOB_APPLICATIONS,
    JOB_INVITATIONS,
    JOB_NEGOTIATIONS,
    JOB_POSTINGS,
    BatchDeleteResult,
    InMemoryGateway,
    StorageError,
)


class FlakyGateway(InMemoryGateway):
    """Gateway whose batch deletes fail for selected collections."""

    def __init__(self, inner: InMemoryGateway, failing=(), partial=()):
        super().__init__()
        self._data = inner._data
        self.failing = set(failing)
        self.partial = set(partial)
        self.batch_sizes = []

    def batch_delete(self, collection, keys):
        self.batch_sizes.append(len(keys))
        if collection in self.failing:
            raise StorageError("throttled")
        if collection in self.partial:
            result = super().batch_delete(collection, keys[1:])
            return BatchDeleteResult(deleted=result.deleted, failed_keys=keys[:1])
        return super().batch_delete(collection, keys)


def settle(marketplace, job):
    """Give the job one rejected negotiated application and one declined invitation."""
    application = marketplace.applications.apply(job.job_id, HYGIENIST, proposed_rate=65)
    marketplace.applications.reject(application.application_id, CLINIC_OWNER)
    invitation = marketplace.matching.invite(job.job_id, CLINIC_OWNER, [DUAL_ROLE]).successful[0]
    marketplace.matching.respond(invitation.invitation_id, DUAL_ROLE, "declined")


class TestGuards:
    def test_delete_clean_job(self, marketplace, temp_job, gateway):
        result = marketplace.deletion.delete(temp_job.job_id, CLINIC_OWNER)

        assert result.deleted
        assert result.related_items_deleted == 0
        assert result.deleted_at == FIXED_NOW
        assert gateway.get(JOB_POSTINGS, {"jobId": temp_job.job_id}) is None

    def test_owner_only(self, marketplace, temp_job):
        with pytest.raises(ForbiddenError, match="only delete your own"):
            marketplace.deletion.delete(temp_job.job_id, OTHER_CLINIC_USER)

    def test_missing_job(self, marketplace):
        with pytest.raises(NotFoundError):
            marketplace.deletion.delete("missing", CLINIC_OWNER)

    @pytest.mark.parametrize("status", ["scheduled", "action_needed"])
    def test_committed_job_refused(self, marketplace, temp_job, gateway, status):
        marketplace.transitions.transition(
            temp_job.job_id,
            CLINIC_OWNER,
            status,
            accepted_professional_user_sub=HYGIENIST,
            scheduled_date="2030-02-01",
        )

        with pytest.raises(ConflictError, match=f"Cannot delete a {status} job"):
            marketplace.deletion.delete(temp_job.job_id, CLINIC_OWNER)
        assert gateway.get(JOB_POSTINGS, {"jobId": temp_job.job_id}) is not None

    def test_active_application_refused(self, marketplace, temp_job):
        marketplace.applications.apply(temp_job.job_id, HYGIENIST)

        with pytest.raises(ConflictError, match="1 active application") as exc:
            marketplace.deletion.delete(temp_job.job_id, CLINIC_OWNER)
        assert exc.value.details["activeApplications"] == 1

    def test_force_does_not_override_pending_application(self, marketplace, temp_job, gateway):
        marketplace.applications.apply(temp_job.job_id, HYGIENIST)

        with pytest.raises(ConflictError, match="1 active application"):
            marketplace.deletion.delete(temp_job.job_id, CLINIC_OWNER, force=True)
        assert gateway.get(JOB_POSTINGS, {"jobId": temp_job.job_id}) is not None

    def test_delete_after_withdrawal(self, marketplace, temp_job, gateway):
        application = marketplace.applications.apply(temp_job.job_id, HYGIENIST)
        with pytest.raises(ConflictError):
            marketplace.deletion.delete(temp_job.job_id, CLINIC_OWNER)

        marketplace.applications.withdraw(application.application_id, HYGIENIST)
        result = marketplace.deletion.delete(temp_job.job_id, CLINIC_OWNER)

        assert result.deleted
        assert result.related_items_deleted >= 1
        assert gateway.count(JOB_APPLICATIONS) == 0

    def test_pending_invitation_refused(self, marketplace, temp_job):
        marketplace.matching.invite(temp_job.job_id, CLINIC_OWNER, [HYGIENIST])

        with pytest.raises(ConflictError, match="pending invitation"):
            marketplace.deletion.delete(temp_job.job_id, CLINIC_OWNER)

    def test_completed_requires_force(self, marketplace, temp_job, gateway):
        marketplace.transitions.transition(temp_job.job_id, CLINIC_OWNER, "completed")

        with pytest.raises(ConflictError, match="force=true") as exc:
            marketplace.deletion.delete(temp_job.job_id, CLINIC_OWNER)
        assert exc.value.details["requiresForce"] is True

        result = marketplace.deletion.delete(temp_job.job_id, CLINIC_OWNER, force=True)
        assert result.force
        assert gateway.get(JOB_POSTINGS, {"jobId": temp_job.job_id}) is None


class TestCleanup:
    def test_dependents_removed(self, marketplace, temp_job, gateway):
        settle(marketplace, temp_job)

        result = marketplace.deletion.delete(temp_job.job_id, CLINIC_OWNER)

        assert result.related_items_deleted == 3
        assert result.cleanup_failures == 0
        for collection in (JOB_APPLICATIONS, JOB_INVITATIONS, JOB_NEGOTIATIONS):
            assert gateway.count(collection) == 0

    def test_cleanup_failure_does_not_fail_delete(self, marketplace, temp_job, gateway, clock):
        settle(marketplace, temp_job)
        flaky = FlakyGateway(gateway, failing={JOB_INVITATIONS}, partial={JOB_APPLICATIONS})

        result = DeletionCoordinator(flaky, clock=clock).delete(temp_job.job_id, CLINIC_OWNER)

        assert result.deleted
        assert result.cleanup_failures == 2
        assert result.related_items_deleted == 1
        assert gateway.get(JOB_POSTINGS, {"jobId": temp_job.job_id}) is None

    def test_batches_bounded(self, marketplace, temp_job, gateway, clock):
        for n in range(5):
            gateway.put(
                JOB_INVITATIONS,
                {
                    "jobId": temp_job.job_id,
                    "professionalUserSub": f"pro-{n}",
                    "invitationId": f"inv-{n}",
                    "invitationStatus": "declined",
                },
            )
        flaky = FlakyGateway(gateway)

        result = DeletionCoordinator(flaky, MarketplaceConfig(batch_write_limit=2), clock).delete(
            temp_job.job_id, CLINIC_OWNER
        )

        assert flaky.batch_sizes == [2, 2, 1]
        assert result.related_items_deleted == 5

    def test_result_serialisation(self, marketplace, temp_job):
        body = marketplace.deletion.delete(temp_job.job_id, CLINIC_OWNER).to_dict()

        assert body == {
            "jobId": temp_job.job_id,
            "deleted": True,
            "relatedItemsDeleted": 0,
            "cleanupFailures": 0,
            "force": False,
            "deletedAt": FIXED_NOW.isoformat(),
        }


def test_chunked():
    keys = [{"k": n} for n in range(5)]

    assert [len(c) for c in chunked(keys, 2)] == [2, 2, 1]
    assert chunked([], 25) == []
