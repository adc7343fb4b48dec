"""Tests for the in-memory persistence gateway and key schemas."""

import threading

import pytest

from dentipal.jobs.storage import (
    JOB_APPLICATIONS,
    JOB_POSTINGS,
    ConditionalCheckFailedError,
    InMemoryGateway,
    StorageError,
    key_schema,
)


@pytest.fixture
def store():
    return InMemoryGateway()


class TestKeySchema:
    def test_composite_key(self):
        schema = key_schema(JOB_APPLICATIONS)

        assert schema.attributes == ("jobId", "professionalUserSub")
        assert schema.key_dict({"jobId": "j", "professionalUserSub": "p", "x": 1}) == {
            "jobId": "j",
            "professionalUserSub": "p",
        }

    def test_missing_key_attribute(self):
        with pytest.raises(StorageError, match="professionalUserSub"):
            key_schema(JOB_APPLICATIONS).key_of({"jobId": "j"})

    def test_unknown_collection(self, store):
        with pytest.raises(StorageError, match="Unknown collection"):
            store.get("jobs", {"jobId": "x"})


class TestInMemoryGateway:
    def test_put_get_overwrites(self, store):
        store.put(JOB_POSTINGS, {"jobId": "a", "v": 1})
        store.put(JOB_POSTINGS, {"jobId": "a", "v": 2})

        assert store.get(JOB_POSTINGS, {"jobId": "a"})["v"] == 2
        assert store.count(JOB_POSTINGS) == 1

    def test_conditional_put(self, store):
        store.put(JOB_POSTINGS, {"jobId": "a"}, if_absent=True)

        with pytest.raises(ConditionalCheckFailedError):
            store.put(JOB_POSTINGS, {"jobId": "a"}, if_absent=True)

    def test_returns_copies(self, store):
        item = {"jobId": "a", "tags": ["x"]}
        store.put(JOB_POSTINGS, item)
        item["tags"].append("y")
        fetched = store.get(JOB_POSTINGS, {"jobId": "a"})
        fetched["tags"].append("z")

        assert store.get(JOB_POSTINGS, {"jobId": "a"})["tags"] == ["x"]

    def test_query_equality(self, store):
        store.put(JOB_POSTINGS, {"jobId": "a", "status": "open", "clinicUserSub": "c1"})
        store.put(JOB_POSTINGS, {"jobId": "b", "status": "open", "clinicUserSub": "c2"})
        store.put(JOB_POSTINGS, {"jobId": "c", "status": "completed", "clinicUserSub": "c1"})

        assert {i["jobId"] for i in store.query(JOB_POSTINGS, {"status": "open"})} == {"a", "b"}
        assert [i["jobId"] for i in store.query(JOB_POSTINGS, {"status": "open", "clinicUserSub": "c1"})] == ["a"]
        assert len(store.query(JOB_POSTINGS)) == 3

    def test_batch_get_skips_missing(self, store):
        store.put(JOB_POSTINGS, {"jobId": "a"})

        assert store.batch_get(JOB_POSTINGS, [{"jobId": "a"}, {"jobId": "b"}]) == [{"jobId": "a"}]

    def test_delete(self, store):
        store.put(JOB_POSTINGS, {"jobId": "a"})

        assert store.delete(JOB_POSTINGS, {"jobId": "a"})
        assert not store.delete(JOB_POSTINGS, {"jobId": "a"})

    def test_batch_delete(self, store):
        for n in range(3):
            store.put(JOB_APPLICATIONS, {"jobId": "j", "professionalUserSub": f"p{n}"})

        result = store.batch_delete(
            JOB_APPLICATIONS, [{"jobId": "j", "professionalUserSub": f"p{n}"} for n in range(3)]
        )
        assert result.deleted == 3
        assert result.failed_keys == []
        assert store.count(JOB_APPLICATIONS) == 0

    def test_batch_delete_counts_only_removed_items(self, store):
        store.put(JOB_APPLICATIONS, {"jobId": "j", "professionalUserSub": "p0"})

        result = store.batch_delete(
            JOB_APPLICATIONS,
            [{"jobId": "j", "professionalUserSub": "p0"}, {"jobId": "j", "professionalUserSub": "gone"}],
        )
        assert result.deleted == 1
        assert result.failed_keys == []

    def test_concurrent_conditional_puts_admit_one(self, store):
        wins = []
        barrier = threading.Barrier(8)

        def attempt(n):
            barrier.wait()
            try:
                store.put(JOB_APPLICATIONS, {"jobId": "j", "professionalUserSub": "p", "n": n}, if_absent=True)
                wins.append(n)
            except ConditionalCheckFailedError:
                pass

        threads = [threading.Thread(target=attempt, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(wins) == 1
