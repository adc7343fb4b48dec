"""
Pytest fixtures for the DentiPal job lifecycle tests.
"""

import itertools

import pytest
from job_factories import CLINIC_ID, CLINIC_OWNER, FIXED_NOW, RecordingNotifier, seed, temporary_fields

from dentipal.config import MarketplaceConfig
from dentipal.jobs.marketplace import Marketplace
from dentipal.jobs.storage import InMemoryGateway


@pytest.fixture
def gateway():
    """Seeded in-memory gateway."""
    gw = InMemoryGateway()
    seed(gw)
    return gw


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def config():
    return MarketplaceConfig()


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def id_factory():
    counter = itertools.count(1)
    return lambda: f"id-{next(counter)}"


@pytest.fixture
def marketplace(gateway, config, notifier, clock, id_factory):
    """All engines over the seeded gateway with a fixed clock."""
    return Marketplace(gateway, config, notifier=notifier, clock=clock, id_factory=id_factory)


@pytest.fixture
def temp_job(marketplace):
    """An open temporary hygienist shift owned by CLINIC_OWNER."""
    return marketplace.postings.create(CLINIC_OWNER, "temporary", CLINIC_ID, temporary_fields())
