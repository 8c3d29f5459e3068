"""
Namespace and instance cloning.

A deep namespace clone runs in two phases so that metadata only ever
describes storage that was actually copied:

  Phase 1 (storage)   export + import every source instance through a
                      bounded worker pool; failures become warnings.
  Phase 2 (metadata)  insert rows for the successful instances in one
                      transaction.

Metadata writes register compensating deletes; any failure after the new
namespace row exists rolls them back newest-first.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor

import requests

from ..client import RemoteStorageClient
from ..config import CloneConfig
from ..events import CLONE_COMPLETE, EventPublisher
from ..exceptions import NotFoundError, UnconfiguredError
from ..jobs import JobTracker
from ..models import (
    CloneOutcome,
    Instance,
    InstanceCloneResult,
    JobType,
    Namespace,
    NamespaceCloneResult,
    generate_id,
    now_iso,
)
from ..store import MetadataStore
from ..validation import sanitize_name
from .conflict import ensure_instance_name_free, ensure_namespace_name_free
from .rollback import CompensationStack
from .storage import export_storage, import_storage, require_endpoint

__all__ = ["CloneOrchestrator"]

logger = logging.getLogger(__name__)


class CloneOrchestrator:
    """Clones namespaces (shallow or deep) and single instances."""

    def __init__(
        self,
        store: MetadataStore,
        client: RemoteStorageClient,
        jobs: JobTracker,
        publisher: EventPublisher | None = None,
        config: CloneConfig | None = None,
    ):
        self.store = store
        self.client = client
        self.jobs = jobs
        self.publisher = publisher
        self.concurrency = (config or CloneConfig()).concurrency

    # ------------------------------------------------------------------
    # Namespace clone
    # ------------------------------------------------------------------

    def clone_namespace(
        self,
        source_namespace_id: str,
        name: str,
        deep_clone: bool = False,
        actor: str | None = None,
    ) -> NamespaceCloneResult:
        """Create a namespace configured like *source_namespace_id*.

        With *deep_clone* every instance's storage is copied as well and the
        instances are registered under the new namespace.
        """
        new_name = sanitize_name(name, "name")
        job_id = self.jobs.create(
            JobType.CLONE_NAMESPACE, actor, namespace_id=source_namespace_id
        )
        saga = CompensationStack()
        try:
            result = self._clone_namespace(job_id, source_namespace_id, new_name, deep_clone, saga)
        except Exception as exc:
            saga.rollback()
            self.jobs.fail(job_id, getattr(exc, "message", None) or f"Clone failed: {exc}")
            raise

        if self.publisher is not None:
            self.publisher.publish(CLONE_COMPLETE, {
                "job_id": job_id,
                "source_namespace": source_namespace_id,
                "new_namespace": result.namespace.id,
                "deep_clone": deep_clone,
                "instances_cloned": result.outcome.instances_cloned,
                "user_email": actor,
            })
        return result

    def _clone_namespace(
        self,
        job_id: str,
        source_namespace_id: str,
        new_name: str,
        deep_clone: bool,
        saga: CompensationStack,
    ) -> NamespaceCloneResult:
        source = self.store.get_namespace(source_namespace_id)
        if source is None:
            raise NotFoundError("Source namespace not found")
        ensure_namespace_name_free(self.store, new_name)
        if deep_clone and (not source.base_url or not source.admin_hook_enabled):
            raise UnconfiguredError(
                "Deep clone requires admin hooks to be enabled on the source namespace"
            )

        now = now_iso()
        namespace = Namespace(
            id=generate_id(),
            name=new_name,
            class_name=source.class_name,
            script_name=source.script_name,
            storage_backend=source.storage_backend,
            endpoint_url=source.endpoint_url,
            admin_hook_enabled=source.admin_hook_enabled,
            color=source.color,
            created_at=now,
            updated_at=now,
        )
        self.store.insert_namespace(namespace)
        saga.push(
            f"delete namespace '{namespace.name}'",
            lambda: self.store.delete_namespace(namespace.id),
        )
        self.jobs.advance(job_id, 10)
        logger.info(
            "Cloning namespace '%s' -> '%s' (deep=%s)", source.name, namespace.name, deep_clone
        )

        outcome = CloneOutcome()
        total = 0
        if deep_clone:
            instances = self.store.list_instances(source.id)
            total = len(instances)
            outcome = self._clone_instances(job_id, source, namespace, instances, saga)

        self.jobs.complete(job_id, {
            "source_namespace": source.id,
            "new_namespace": namespace.id,
            "deep_clone": deep_clone,
            "instances_total": total,
            "instances_cloned": outcome.instances_cloned,
            "instances_failed": total - outcome.instances_cloned,
            "warnings": list(outcome.warnings),
        })
        return NamespaceCloneResult(
            namespace=namespace,
            cloned_from=source.name,
            deep_clone=deep_clone,
            outcome=outcome,
            job_id=job_id,
        )

    def _clone_instances(
        self,
        job_id: str,
        source: Namespace,
        target: Namespace,
        instances: list[Instance],
        saga: CompensationStack,
    ) -> CloneOutcome:
        if not instances:
            return CloneOutcome()

        # Phase 1: storage only
        source_base = source.base_url
        target_base = target.base_url
        workers = max(1, min(self.concurrency, len(instances)))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="clone") as pool:
            futures = [
                pool.submit(self._copy_instance, source_base, target_base, instance)
                for instance in instances
            ]
            warnings: list[str] = []
            copied: list[Instance] = []
            for done, (instance, future) in enumerate(zip(instances, futures), start=1):
                warning = future.result()
                if warning is None:
                    copied.append(instance)
                else:
                    warnings.append(warning)
                self.jobs.advance(job_id, 10 + (70 * done) // len(instances))

        if warnings:
            logger.warning(
                "%d of %d instances had issues during cloning", len(warnings), len(instances)
            )

        # Phase 2: metadata, all or nothing
        now = now_iso()
        rows = [
            Instance(
                id=generate_id(),
                namespace_id=target.id,
                object_id=instance.display_name,
                name=instance.name,
                last_accessed=now,
                color=instance.color,
                created_at=now,
                updated_at=now,
            )
            for instance in copied
        ]
        self.store.insert_instances(rows)
        row_ids = [row.id for row in rows]
        if row_ids:
            saga.push(
                f"delete {len(row_ids)} cloned instance row(s)",
                lambda: [self.store.delete_instance(row_id) for row_id in row_ids],
            )
        self.jobs.advance(job_id, 90)
        return CloneOutcome(instances_cloned=len(rows), warnings=warnings)

    def _copy_instance(self, source_base: str, target_base: str, instance: Instance) -> str | None:
        """Copy one instance's storage.  Returns a warning, or None on success."""
        try:
            return self._copy_storage(source_base, target_base, instance)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Clone: unexpected error copying '%s'", instance.display_name)
            return f'Error cloning instance "{instance.display_name}": {str(exc)[:50]}'

    def _copy_storage(self, source_base: str, target_base: str, instance: Instance) -> str | None:
        name = instance.display_name
        try:
            payload = self.client.export_instance(source_base, instance.object_id)
        except requests.RequestException as exc:
            logger.warning("Clone: export of '%s' failed: %s", name, exc)
            return f'Failed to export instance "{name}": {str(exc)[:50]}'
        try:
            self.client.import_instance(target_base, name, payload["data"])
        except requests.RequestException as exc:
            logger.warning("Clone: import of '%s' failed: %s", name, exc)
            return f'Failed to import to instance "{name}": {str(exc)[:50]}'
        logger.debug("Clone: copied '%s'", name)
        return None

    # ------------------------------------------------------------------
    # Instance clone
    # ------------------------------------------------------------------

    def clone_instance(
        self,
        source_instance_id: str,
        name: str,
        actor: str | None = None,
    ) -> InstanceCloneResult:
        """Copy an instance's storage under a new name in the same namespace."""
        new_name = sanitize_name(name, "name")
        job_id = self.jobs.create(
            JobType.CLONE_INSTANCE, actor, instance_id=source_instance_id
        )
        try:
            result = self._clone_instance(job_id, source_instance_id, new_name)
        except Exception as exc:
            self.jobs.fail(job_id, getattr(exc, "message", None) or f"Clone failed: {exc}")
            raise
        return result

    def _clone_instance(self, job_id: str, source_instance_id: str, new_name: str) -> InstanceCloneResult:
        source = self.store.get_instance(source_instance_id)
        if source is None:
            raise NotFoundError("Source instance not found")
        self.jobs.attach(job_id, namespace_id=source.namespace_id)
        namespace = self.store.get_namespace(source.namespace_id)
        if namespace is None:
            raise NotFoundError("Namespace not found")
        base_url = require_endpoint(
            namespace, "Namespace endpoint not configured. Set up admin hook first."
        )
        ensure_instance_name_free(self.store, namespace.id, new_name)

        payload = export_storage(self.client, base_url, source.object_id)
        self.jobs.advance(job_id, 40)
        import_storage(self.client, base_url, new_name, payload["data"])
        self.jobs.advance(job_id, 80)

        now = now_iso()
        instance = Instance(
            id=generate_id(),
            namespace_id=namespace.id,
            object_id=new_name,
            name=new_name,
            last_accessed=now,
            storage_size_bytes=source.storage_size_bytes,
            color=source.color,
            created_at=now,
            updated_at=now,
        )
        self.store.insert_instance(instance)
        self.jobs.complete(job_id, {
            "source_instance": source.id,
            "new_instance": instance.id,
            "namespace": namespace.id,
        })
        logger.info("Cloned instance '%s' -> '%s'", source.display_name, new_name)
        return InstanceCloneResult(
            instance=instance, cloned_from=source.display_name, job_id=job_id
        )
