"""
Wiring of the store, remote client, job tracker and orchestrators.

Both the HTTP API and the CLI build one ``Services`` from an ``AppConfig``;
tests construct it directly with fakes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .client import RemoteStorageClient
from .config import AppConfig, CloneConfig
from .events import WILDCARD, EventPublisher, log_event
from .jobs import JobTracker
from .mover import CloneOrchestrator, MigrationOrchestrator
from .store import MetadataStore

__all__ = ["Services", "build_services"]

logger = logging.getLogger(__name__)


@dataclass
class Services:
    store: MetadataStore
    client: RemoteStorageClient
    publisher: EventPublisher
    jobs: JobTracker
    migrations: MigrationOrchestrator
    clones: CloneOrchestrator

    @classmethod
    def create(
        cls,
        store: MetadataStore,
        client: RemoteStorageClient,
        publisher: EventPublisher | None = None,
        concurrency: int | None = None,
    ) -> "Services":
        publisher = publisher or EventPublisher()
        jobs = JobTracker(store, publisher)
        clone_config = CloneConfig(concurrency=concurrency) if concurrency else None
        return cls(
            store=store,
            client=client,
            publisher=publisher,
            jobs=jobs,
            migrations=MigrationOrchestrator(store, client, jobs, publisher),
            clones=CloneOrchestrator(store, client, jobs, publisher, clone_config),
        )

    def close(self) -> None:
        self.publisher.close()
        self.client.session.close()
        self.store.engine.dispose()


def build_services(config: AppConfig) -> Services:
    """Open the metadata store and build every component from *config*."""
    logger.debug("Opening metadata store %s", config.database.url)
    store = MetadataStore.from_url(config.database.url, echo=config.database.echo)
    client = RemoteStorageClient.from_config(config.remote)
    publisher = EventPublisher()
    publisher.subscribe(WILDCARD, log_event)
    return Services.create(store, client, publisher, concurrency=config.clone.concurrency)
