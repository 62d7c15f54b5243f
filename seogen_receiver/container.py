"""
SEOgen Receiver - Collaborator Wiring

Builds the stores and services once per process and exposes them to
routers through FastAPI dependencies.

    DATABASE_URL set    → Postgres content, lock and option stores
    DATABASE_URL empty  → in-memory stores (development / tests)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from fastapi import Request
from psycopg_pool import ConnectionPool

from .config import Settings
from .core.locks import ImportLockManager, InMemoryLockStore, LockStore
from .core.options import InMemoryOptionStore, OptionStore, ReceiverConfig
from .core.signature import SignatureVerifier
from .services.duplicate_reconciler import DuplicateReconciler
from .services.import_coordinator import ImportCoordinator
from .stores.base import ContentStore
from .stores.memory import InMemoryContentStore

logger = logging.getLogger(__name__)


@dataclass
class ReceiverContainer:
    """All collaborators of one receiver process."""

    settings: Settings
    content_store: ContentStore
    lock_store: LockStore
    option_store: OptionStore
    pool: Optional[ConnectionPool] = None
    config: ReceiverConfig = field(init=False)
    lock_manager: ImportLockManager = field(init=False)
    verifier: SignatureVerifier = field(init=False)
    coordinator: ImportCoordinator = field(init=False)
    reconciler: DuplicateReconciler = field(init=False)

    def __post_init__(self) -> None:
        self.config = ReceiverConfig(self.settings, self.option_store)
        self.lock_manager = ImportLockManager(
            self.lock_store, default_ttl=self.settings.IMPORT_LOCK_TTL_SECONDS
        )
        self.verifier = SignatureVerifier(
            self.config.get_callback_secret,
            max_age_seconds=self.settings.SIGNATURE_MAX_AGE_SECONDS,
        )
        self.coordinator = ImportCoordinator(
            self.content_store,
            self.lock_manager,
            self.config,
            lock_ttl=self.settings.IMPORT_LOCK_TTL_SECONDS,
        )
        self.reconciler = DuplicateReconciler(self.content_store)


def build_memory_container(settings: Settings) -> ReceiverContainer:
    return ReceiverContainer(
        settings=settings,
        content_store=InMemoryContentStore(),
        lock_store=InMemoryLockStore(),
        option_store=InMemoryOptionStore(),
    )


def build_postgres_container(settings: Settings, pool: ConnectionPool) -> ReceiverContainer:
    from .stores.postgres import PostgresContentStore, PostgresLockStore, PostgresOptionStore

    return ReceiverContainer(
        settings=settings,
        content_store=PostgresContentStore(pool),
        lock_store=PostgresLockStore(pool),
        option_store=PostgresOptionStore(pool),
        pool=pool,
    )


def build_container(settings: Settings) -> ReceiverContainer:
    """Open the database (when configured) and wire every collaborator."""
    if not settings.uses_database:
        logger.warning("DATABASE_URL not set - using in-memory stores (not shared across processes)")
        return build_memory_container(settings)

    from .db import ensure_schema, open_pool

    pool = open_pool(settings.DATABASE_URL)
    ensure_schema(pool)
    return build_postgres_container(settings, pool)


# =============================================================================
# FastAPI dependencies
# =============================================================================


def get_container(request: Request) -> ReceiverContainer:
    return request.app.state.container
