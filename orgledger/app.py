"""
Wiring: adapter -> repositories -> services -> authenticator.
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from orgledger.auth.authenticator import Authenticator
from orgledger.config import AppConfig
from orgledger.data import DbAdapter, MemoryAdapter, MongoDBAdapter
from orgledger.repositories import MemberRepository, NodeRepository, PaymentRepository
from orgledger.services import (
    CollectionReporter, HierarchyService, MemberService, NodeService, PaymentService
)

logger = logging.getLogger(__name__)


class Application:
    """Holds one adapter and every repository and service built on it."""

    def __init__(
        self,
        adapter: DbAdapter,
        token_secret: str,
        token_expiration: int,
        report_timezone: str = 'UTC',
        strict_access: bool = False,
        password_rounds: int = 12,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.adapter = adapter
        self.nodes = NodeRepository(adapter, password_rounds=password_rounds)
        self.members = MemberRepository(adapter)
        self.payments = PaymentRepository(adapter)

        self.hierarchy = HierarchyService(self.nodes, strict_access=strict_access)
        self.node_service = NodeService(self.nodes, self.members, self.hierarchy)
        self.member_service = MemberService(self.nodes, self.members, self.payments, self.hierarchy)
        self.payment_service = PaymentService(
            self.members, self.payments, self.hierarchy, tz_name=report_timezone)
        self.reporter = CollectionReporter(
            self.hierarchy, self.nodes, self.members, self.payments,
            tz_name=report_timezone, clock=clock)
        self.authenticator = Authenticator(self.nodes, token_secret, token_expiration)

    def ensure_indexes(self):
        """Create every collection's indexes, including the unique ones."""
        created = []
        for repository in (self.nodes, self.members, self.payments):
            created.extend(repository.ensure_indexes())
        logger.info("Ensured indexes: %s", ", ".join(created))
        return created

    @classmethod
    def from_config(cls, config: AppConfig) -> 'Application':
        config.validate_env_vars()
        adapter = MongoDBAdapter(config.mongo_uri, config.mongo_database)
        return cls(
            adapter,
            token_secret=config.token_secret,
            token_expiration=config.token_expiration,
            report_timezone=config.report_timezone,
            strict_access=config.strict_access_check,
        )

    @classmethod
    def in_memory(cls, token_secret: str = 'local-secret', token_expiration: int = 3600, **kwargs) -> 'Application':
        app = cls(MemoryAdapter(), token_secret=token_secret, token_expiration=token_expiration, **kwargs)
        app.ensure_indexes()
        return app
