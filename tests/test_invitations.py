"""Tests for invitations, invitation responses and the professional job feed."""

from datetime import timedelta

import pytest
from job_factories import (
    ASSISTANT,
    CLINIC_ID,
    CLINIC_OWNER,
    DUAL_ROLE,
    FIXED_NOW,
    HYGIENIST,
    OTHER_CLINIC_USER,
    BrokenNotifier,
    temporary_fields,
)

from dentipal.config import MarketplaceConfig
from dentipal.jobs.errors import (
    ConflictError,
    ForbiddenError,
    InvitationRejectedError,
    NotFoundError,
    ValidationError,
)
from dentipal.jobs.marketplace import Marketplace
from dentipal.jobs.storage import JOB_APPLICATIONS, JOB_INVITATIONS, JOB_POSTINGS, StorageError
from dentipal.notifications import INVITATION_RESPONSE, JOB_INVITATION, JOB_SCHEDULED


def invite_one(marketplace, job, sub=HYGIENIST):
    result = marketplace.matching.invite(job.job_id, CLINIC_OWNER, [sub])
    return result.successful[0]


class TestInvite:
    """Tests for MatchingEngine.invite."""

    def test_invite_compatible_professionals(self, marketplace, temp_job, notifier):
        result = marketplace.matching.invite(
            temp_job.job_id, CLINIC_OWNER, [HYGIENIST, DUAL_ROLE], message="Can you help?", urgency="high"
        )

        assert result.total_requested == 2
        assert result.errors == []
        assert {i.professional_user_sub for i in result.successful} == {HYGIENIST, DUAL_ROLE}
        assert all(i.status == "sent" and i.urgency == "high" for i in result.successful)
        assert [sub for sub, _ in notifier.of(JOB_INVITATION)] == [HYGIENIST, DUAL_ROLE]

    def test_defaults(self, marketplace, temp_job):
        invitation = invite_one(marketplace, temp_job)

        assert invitation.urgency == "medium"
        assert invitation.message == MarketplaceConfig().default_invitation_message
        assert invitation.sent_at == FIXED_NOW

    def test_incompatible_role_rejects_whole_batch(self, marketplace, temp_job, gateway):
        with pytest.raises(InvitationRejectedError) as exc:
            marketplace.matching.invite(temp_job.job_id, CLINIC_OWNER, [HYGIENIST, ASSISTANT])

        assert exc.value.missing == []
        assert [p["userSub"] for p in exc.value.incompatible] == [ASSISTANT]
        assert "Role mismatch" in exc.value.message
        assert gateway.count(JOB_INVITATIONS) == 0

    def test_unknown_professional(self, marketplace, temp_job):
        with pytest.raises(InvitationRejectedError, match="Invalid professional IDs: ghost"):
            marketplace.matching.invite(temp_job.job_id, CLINIC_OWNER, [HYGIENIST, "ghost"])

    def test_duplicates_collapsed(self, marketplace, temp_job):
        result = marketplace.matching.invite(temp_job.job_id, CLINIC_OWNER, [HYGIENIST, HYGIENIST])

        assert len(result.successful) == 1

    def test_reinvite_reported_per_candidate(self, marketplace, temp_job):
        invite_one(marketplace, temp_job)
        result = marketplace.matching.invite(temp_job.job_id, CLINIC_OWNER, [HYGIENIST, DUAL_ROLE])

        assert [i.professional_user_sub for i in result.successful] == [DUAL_ROLE]
        assert result.errors == [{"professionalUserSub": HYGIENIST, "error": "Already invited to this job"}]

    def test_write_failure_does_not_abort_batch(self, gateway, clock, id_factory, temp_job):
        class FlakyGateway:
            def __init__(self, inner):
                self.inner = inner

            def __getattr__(self, name):
                return getattr(self.inner, name)

            def put(self, collection, item, if_absent=False):
                if collection == JOB_INVITATIONS and item["professionalUserSub"] == HYGIENIST:
                    raise StorageError("throttled")
                return self.inner.put(collection, item, if_absent)

        market = Marketplace(FlakyGateway(gateway), clock=clock, id_factory=id_factory)
        result = market.matching.invite(temp_job.job_id, CLINIC_OWNER, [HYGIENIST, DUAL_ROLE])

        assert [i.professional_user_sub for i in result.successful] == [DUAL_ROLE]
        assert result.errors[0]["error"] == "Failed to create invitation"

    def test_limit_checked_before_dedupe(self, marketplace, temp_job):
        with pytest.raises(ValidationError, match="Maximum 50 invitations per request"):
            marketplace.matching.invite(temp_job.job_id, CLINIC_OWNER, [HYGIENIST] * 51)

    def test_empty_list(self, marketplace, temp_job):
        with pytest.raises(ValidationError, match="non-empty array"):
            marketplace.matching.invite(temp_job.job_id, CLINIC_OWNER, [])

    def test_bad_urgency(self, marketplace, temp_job):
        with pytest.raises(ValidationError, match="Invalid urgency"):
            marketplace.matching.invite(temp_job.job_id, CLINIC_OWNER, [HYGIENIST], urgency="asap")

    def test_not_owner(self, marketplace, temp_job):
        with pytest.raises(ForbiddenError):
            marketplace.matching.invite(temp_job.job_id, OTHER_CLINIC_USER, [HYGIENIST])

    def test_job_must_be_open(self, marketplace, temp_job):
        marketplace.transitions.transition(temp_job.job_id, CLINIC_OWNER, "completed")

        with pytest.raises(ConflictError, match="Cannot send invitations for completed"):
            marketplace.matching.invite(temp_job.job_id, CLINIC_OWNER, [HYGIENIST])

    def test_notification_failure_ignored(self, gateway, clock, id_factory, temp_job):
        market = Marketplace(gateway, notifier=BrokenNotifier(), clock=clock, id_factory=id_factory)

        result = market.matching.invite(temp_job.job_id, CLINIC_OWNER, [HYGIENIST])
        assert len(result.successful) == 1


class TestRespond:
    """Tests for MatchingEngine.respond."""

    def test_accept_schedules_open_job(self, marketplace, temp_job, notifier):
        invitation = invite_one(marketplace, temp_job)
        outcome = marketplace.matching.respond(invitation.invitation_id, HYGIENIST, "accepted")

        assert outcome.invitation.status == "accepted"
        assert outcome.invitation.responded_at == FIXED_NOW
        assert outcome.application.status == "accepted"
        assert outcome.application.from_invitation
        assert outcome.application.accepted_rate == 55
        assert outcome.job_scheduled
        job = marketplace.postings.get(temp_job.job_id)
        assert job.status == "scheduled"
        assert job.accepted_professional_user_sub == HYGIENIST
        assert job.scheduled_date == temp_job.details.date
        assert [sub for sub, _ in notifier.of(INVITATION_RESPONSE)] == [CLINIC_OWNER]
        assert [sub for sub, _ in notifier.of(JOB_SCHEDULED)] == [CLINIC_OWNER]

    def test_accept_on_scheduled_job_keeps_job(self, marketplace, temp_job):
        first = invite_one(marketplace, temp_job, HYGIENIST)
        second = invite_one(marketplace, temp_job, DUAL_ROLE)
        marketplace.matching.respond(first.invitation_id, HYGIENIST, "accepted")

        outcome = marketplace.matching.respond(second.invitation_id, DUAL_ROLE, "accepted")
        assert not outcome.job_scheduled
        assert marketplace.postings.get(temp_job.job_id).accepted_professional_user_sub == HYGIENIST

    def test_decline(self, marketplace, temp_job, gateway):
        invitation = invite_one(marketplace, temp_job)
        outcome = marketplace.matching.respond(invitation.invitation_id, HYGIENIST, "declined", message="Away")

        assert outcome.invitation.status == "declined"
        assert outcome.invitation.response_message == "Away"
        assert outcome.application is None
        assert gateway.count(JOB_APPLICATIONS) == 0

    def test_negotiate_opens_thread(self, marketplace, temp_job):
        invitation = invite_one(marketplace, temp_job)
        outcome = marketplace.matching.respond(invitation.invitation_id, HYGIENIST, "negotiating", proposed_rate=70)

        assert outcome.application.status == "negotiating"
        assert outcome.application.negotiation_id
        negotiations = marketplace.negotiations.list_for_application(outcome.application.application_id, HYGIENIST)
        assert negotiations[0].last_offer_pay == 70
        assert negotiations[0].last_offer_from == "professional"
        assert marketplace.postings.get(temp_job.job_id).status == "open"

    def test_negotiate_requires_rate(self, marketplace, temp_job):
        invitation = invite_one(marketplace, temp_job)

        with pytest.raises(ValidationError, match="proposedRate is required"):
            marketplace.matching.respond(invitation.invitation_id, HYGIENIST, "negotiating")

    def test_only_invitee_responds(self, marketplace, temp_job):
        invitation = invite_one(marketplace, temp_job)

        with pytest.raises(ForbiddenError):
            marketplace.matching.respond(invitation.invitation_id, DUAL_ROLE, "accepted")

    def test_single_response(self, marketplace, temp_job):
        invitation = invite_one(marketplace, temp_job)
        marketplace.matching.respond(invitation.invitation_id, HYGIENIST, "declined")

        with pytest.raises(ConflictError, match="already been declined"):
            marketplace.matching.respond(invitation.invitation_id, HYGIENIST, "accepted")

    def test_invalid_response(self, marketplace, temp_job):
        invitation = invite_one(marketplace, temp_job)

        with pytest.raises(ValidationError, match="Valid options"):
            marketplace.matching.respond(invitation.invitation_id, HYGIENIST, "maybe")

    def test_unknown_invitation(self, marketplace):
        with pytest.raises(NotFoundError):
            marketplace.matching.respond("missing", HYGIENIST, "accepted")

    def test_accept_after_applying_conflicts(self, marketplace, temp_job):
        invitation = invite_one(marketplace, temp_job)
        marketplace.applications.apply(temp_job.job_id, HYGIENIST)

        with pytest.raises(ConflictError):
            marketplace.matching.respond(invitation.invitation_id, HYGIENIST, "accepted")
        assert marketplace.matching.list_for_professional(HYGIENIST)[0].status == "sent"


class TestWithdrawAndList:
    def test_withdraw(self, marketplace, temp_job):
        invitation = invite_one(marketplace, temp_job)
        withdrawn = marketplace.matching.withdraw(invitation.invitation_id, CLINIC_OWNER)

        assert withdrawn.status == "withdrawn"
        with pytest.raises(ConflictError):
            marketplace.matching.respond(invitation.invitation_id, HYGIENIST, "accepted")

    def test_withdraw_requires_sender(self, marketplace, temp_job):
        invitation = invite_one(marketplace, temp_job)

        with pytest.raises(ForbiddenError):
            marketplace.matching.withdraw(invitation.invitation_id, OTHER_CLINIC_USER)

    def test_lists(self, marketplace, temp_job):
        invite_one(marketplace, temp_job, HYGIENIST)
        invite_one(marketplace, temp_job, DUAL_ROLE)

        assert len(marketplace.matching.list_for_job(temp_job.job_id, CLINIC_OWNER)) == 2
        assert len(marketplace.matching.list_for_professional(HYGIENIST)) == 1
        assert marketplace.matching.list_for_professional(HYGIENIST, "declined") == []
        with pytest.raises(ForbiddenError):
            marketplace.matching.list_for_job(temp_job.job_id, HYGIENIST)


class TestMatchingJobs:
    """Tests for the professional job feed."""

    def test_role_filter(self, marketplace, temp_job):
        marketplace.postings.create(
            CLINIC_OWNER, "temporary", CLINIC_ID, temporary_fields(professionalRole="dental_assistant")
        )

        assert [j.job_id for j in marketplace.matching.matching_jobs(HYGIENIST)] == [temp_job.job_id]
        assert len(marketplace.matching.matching_jobs(DUAL_ROLE)) == 2

    def test_only_open_jobs(self, marketplace, temp_job):
        marketplace.transitions.transition(temp_job.job_id, CLINIC_OWNER, "completed")

        assert marketplace.matching.matching_jobs(HYGIENIST) == []

    def test_legacy_active_status_included(self, marketplace, gateway, temp_job):
        item = temp_job.to_dict()
        item.update(jobId="legacy", status="active", createdAt=(FIXED_NOW - timedelta(days=1)).isoformat())
        gateway.put(JOB_POSTINGS, item)

        jobs = marketplace.matching.matching_jobs(HYGIENIST)
        assert [j.job_id for j in jobs] == [temp_job.job_id, "legacy"]
        assert jobs[1].status == "open"

    def test_limit(self, marketplace, temp_job):
        marketplace.postings.create(CLINIC_OWNER, "temporary", CLINIC_ID, temporary_fields())

        assert len(marketplace.matching.matching_jobs(HYGIENIST, limit=1)) == 1
        with pytest.raises(ValidationError, match="between 1 and 100"):
            marketplace.matching.matching_jobs(HYGIENIST, limit=0)

    def test_profile_required(self, marketplace):
        with pytest.raises(NotFoundError, match="Professional profile not found"):
            marketplace.matching.matching_jobs("nobody")
