"""Tests for the Supabase persistence gateway against a mocked client."""

from unittest.mock import MagicMock

import pytest
from app.database import SupabaseGateway
from postgrest.exceptions import APIError

from dentipal.jobs.storage import (
    JOB_APPLICATIONS,
    JOB_POSTINGS,
    ConditionalCheckFailedError,
    StorageError,
)


@pytest.fixture
def supabase():
    """Mock client whose query builders chain back to themselves."""
    client = MagicMock()
    table = client.table.return_value
    for name in ("select", "insert", "upsert", "delete", "eq", "in_", "or_", "limit"):
        getattr(table, name).return_value = table
    table.execute.return_value = MagicMock(data=[])
    return client


def test_table_prefix(supabase):
    SupabaseGateway(supabase, table_prefix="staging_").query(JOB_POSTINGS, {"status": "open"})

    supabase.table.assert_called_with("staging_job_postings")
    supabase.table.return_value.eq.assert_called_with("status", "open")


def test_get_returns_first_row(supabase):
    supabase.table.return_value.execute.return_value = MagicMock(data=[{"jobId": "a"}])

    assert SupabaseGateway(supabase).get(JOB_POSTINGS, {"jobId": "a"}) == {"jobId": "a"}


def test_conditional_put_maps_unique_violation(supabase):
    supabase.table.return_value.execute.side_effect = APIError(
        {"message": "duplicate key", "code": "23505", "hint": None, "details": None}
    )

    with pytest.raises(ConditionalCheckFailedError):
        SupabaseGateway(supabase).put(JOB_POSTINGS, {"jobId": "a"}, if_absent=True)


def test_other_api_errors_are_storage_errors(supabase):
    supabase.table.return_value.execute.side_effect = APIError(
        {"message": "boom", "code": "XX000", "hint": None, "details": None}
    )

    with pytest.raises(StorageError) as exc:
        SupabaseGateway(supabase).put(JOB_POSTINGS, {"jobId": "a"}, if_absent=True)
    assert not isinstance(exc.value, ConditionalCheckFailedError)


def test_unconditional_put_upserts_on_key(supabase):
    item = {"jobId": "j", "professionalUserSub": "p"}
    SupabaseGateway(supabase).put(JOB_APPLICATIONS, item)

    supabase.table.return_value.upsert.assert_called_with(item, on_conflict="jobId,professionalUserSub")


def test_put_requires_key(supabase):
    with pytest.raises(StorageError):
        SupabaseGateway(supabase).put(JOB_APPLICATIONS, {"jobId": "j"})


def test_batch_delete_composite_keys(supabase):
    supabase.table.return_value.execute.return_value = MagicMock(data=[{}, {}])

    result = SupabaseGateway(supabase).batch_delete(
        JOB_APPLICATIONS,
        [{"jobId": "j", "professionalUserSub": "p1"}, {"jobId": "j", "professionalUserSub": "p2"}],
    )

    assert result.deleted == 2
    supabase.table.return_value.or_.assert_called_with(
        'and(jobId.eq."j",professionalUserSub.eq."p1"),and(jobId.eq."j",professionalUserSub.eq."p2")'
    )


def test_batch_get_single_key_uses_in(supabase):
    SupabaseGateway(supabase).batch_get(JOB_POSTINGS, [{"jobId": "a"}, {"jobId": "b"}])

    supabase.table.return_value.in_.assert_called_with("jobId", ["a", "b"])
