"""Wire every job engine to one gateway, config, clock and notifier."""

import uuid
from typing import Callable, Optional

from dentipal.config import DEFAULT_MARKETPLACE_CONFIG, MarketplaceConfig
from dentipal.jobs.applications import ApplicationEngine
from dentipal.jobs.deletion import DeletionCoordinator
from dentipal.jobs.matching import MatchingEngine
from dentipal.jobs.models import utc_now
from dentipal.jobs.negotiations import NegotiationEngine
from dentipal.jobs.postings import Clock, JobPostingManager
from dentipal.jobs.storage import PersistenceGateway
from dentipal.jobs.transitions import StatusTransitionEngine
from dentipal.notifications import LoggingNotifier, Notifier


class Marketplace:
    """The job lifecycle engines sharing one set of collaborators."""

    def __init__(
        self,
        gateway: PersistenceGateway,
        config: MarketplaceConfig = DEFAULT_MARKETPLACE_CONFIG,
        notifier: Optional[Notifier] = None,
        clock: Clock = utc_now,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ):
        self.gateway = gateway
        self.config = config
        self.notifier = notifier or LoggingNotifier()

        self.postings = JobPostingManager(gateway, config, clock, id_factory)
        self.transitions = StatusTransitionEngine(gateway, clock)
        self.negotiations = NegotiationEngine(gateway, self.transitions, self.notifier, clock, id_factory)
        self.applications = ApplicationEngine(gateway, self.negotiations, self.notifier, clock, id_factory)
        self.matching = MatchingEngine(
            gateway, self.applications, self.transitions, config, self.notifier, clock, id_factory
        )
        self.deletion = DeletionCoordinator(gateway, config, clock)
