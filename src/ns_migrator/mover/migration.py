"""
Migration of one instance's storage from its namespace into another.

Phases, each reported as job progress:
  1. resolve   (10)  - load source instance, both namespaces, endpoints
  2. name            - pick the target name, reject a taken one
  3. export    (30)  - read the source storage
  4. import    (60)  - write it to the target endpoint
  5. alarm     (70)  - copy the scheduled alarm (optional, non-fatal)
  6. verify    (80)  - compare key counts (optional, non-fatal)
  7. cutover   (90)  - freeze or delete the source per the cutover mode
  8. commit   (100)  - record the target instance row, complete the job

Nothing in the metadata store changes before phase 8, so a failure in any
earlier phase leaves the store as it was.  A failure after phase 4 can
leave a copy on the target endpoint that no row points at; that is logged
and written into the job error.
"""

from __future__ import annotations

import logging

import requests

from ..client import RemoteStorageClient, key_count
from ..events import MIGRATION_COMPLETE, EventPublisher
from ..exceptions import MoverError, NotFoundError, SameNamespaceError
from ..jobs import JobTracker
from ..models import (
    CutoverMode,
    Instance,
    JobType,
    MigrationRequest,
    MigrationResult,
    VerificationResult,
    generate_id,
    now_iso,
)
from ..store import MetadataStore
from .conflict import ensure_instance_name_free, resolve_target_name
from .storage import export_storage, import_storage, require_endpoint, upstream_error, verify_copy

__all__ = ["MigrationOrchestrator"]

logger = logging.getLogger(__name__)

SAME_NAMESPACE_MESSAGE = "Cannot migrate to the same namespace. Use clone instead."


class MigrationOrchestrator:
    """Runs migrations and source unfreezes as tracked jobs."""

    def __init__(
        self,
        store: MetadataStore,
        client: RemoteStorageClient,
        jobs: JobTracker,
        publisher: EventPublisher | None = None,
    ):
        self.store = store
        self.client = client
        self.jobs = jobs
        self.publisher = publisher

    # ------------------------------------------------------------------
    # Migrate
    # ------------------------------------------------------------------

    def migrate(
        self,
        source_instance_id: str,
        request: MigrationRequest,
        actor: str | None = None,
    ) -> MigrationResult:
        """Copy an instance into ``request.target_namespace_id``.

        Raises:
            SameNamespaceError: Source and target namespace are the same
                (checked before a job is created).
            NotFoundError, UnconfiguredError, ConflictError, UpstreamError,
            PersistenceError: The job is marked failed first.
        """
        source = self.store.get_instance(source_instance_id)
        if source is not None and source.namespace_id == request.target_namespace_id:
            raise SameNamespaceError(SAME_NAMESPACE_MESSAGE)

        job_id = self.jobs.create(
            JobType.MIGRATE_INSTANCE,
            actor,
            namespace_id=source.namespace_id if source else None,
            instance_id=source_instance_id,
        )
        state = _MigrationState()
        try:
            result = self._run(job_id, source_instance_id, request, state)
        except MoverError as exc:
            self.jobs.fail(job_id, self._job_error(exc.message, state))
            raise
        except Exception as exc:
            self.jobs.fail(job_id, self._job_error(f"Migration failed: {exc}", state))
            raise

        if self.publisher is not None:
            self.publisher.publish(MIGRATION_COMPLETE, {
                "job_id": job_id,
                "source_instance": source_instance_id,
                "target_namespace": request.target_namespace_id,
                "target_instance": result.new_instance.id,
                "cutover_mode": request.cutover_mode.value,
                "user_email": actor,
            })
        return result

    def _run(
        self,
        job_id: str,
        source_instance_id: str,
        request: MigrationRequest,
        state: "_MigrationState",
    ) -> MigrationResult:
        warnings: list[str] = []

        # 1. Resolve
        source = self.store.get_instance(source_instance_id)
        if source is None:
            raise NotFoundError("Source instance not found")
        self.jobs.attach(job_id, namespace_id=source.namespace_id)
        if source.namespace_id == request.target_namespace_id:
            raise SameNamespaceError(SAME_NAMESPACE_MESSAGE)

        source_ns = self.store.get_namespace(source.namespace_id)
        if source_ns is None:
            raise NotFoundError("Source namespace not found")
        source_base = require_endpoint(
            source_ns, "Source namespace endpoint not configured. Set up admin hook first."
        )
        target_ns = self.store.get_namespace(request.target_namespace_id)
        if target_ns is None:
            raise NotFoundError("Target namespace not found")
        target_base = require_endpoint(
            target_ns, "Target namespace endpoint not configured. Set up admin hook first."
        )
        self.jobs.advance(job_id, 10)

        # 2. Name
        target_name = resolve_target_name(request, source)
        ensure_instance_name_free(
            self.store, target_ns.id, target_name,
            f"Instance '{target_name}' already exists in target namespace",
        )
        logger.info(
            "Migrating '%s' from '%s' to '%s' as '%s' (%s)",
            source.display_name, source_ns.name, target_ns.name, target_name,
            request.cutover_mode.value,
        )

        # 3. Export
        payload = export_storage(self.client, source_base, source.object_id)
        source_key_count = key_count(payload)
        self.jobs.advance(job_id, 30)

        # 4. Import
        import_storage(self.client, target_base, target_name, payload["data"])
        state.orphan = f"'{target_name}' at {target_base}"
        self.jobs.advance(job_id, 60)

        # 5. Alarm
        alarm_migrated = False
        if request.migrate_alarms and source.has_alarm:
            try:
                alarm = self.client.get_alarm(source_base, source.object_id)
                if alarm is not None:
                    self.client.set_alarm(target_base, target_name, alarm)
                    alarm_migrated = True
            except requests.RequestException as exc:
                logger.warning("Failed to migrate alarm of '%s': %s", source.display_name, exc)
                warnings.append("Failed to migrate alarm")
        self.jobs.advance(job_id, 70)

        # 6. Verify
        verification: VerificationResult | None = None
        if request.run_verification:
            try:
                verification = verify_copy(self.client, target_base, target_name, source_key_count)
                if not verification.passed:
                    warnings.append(
                        f"Key count mismatch: source={verification.source_key_count}, "
                        f"target={verification.target_key_count}"
                    )
            except requests.RequestException as exc:
                logger.warning("Verification of '%s' could not run: %s", target_name, exc)
                warnings.append("Verification failed")
        self.jobs.advance(job_id, 80)

        # 7. Cutover (remote side)
        source_frozen = False
        delete_source = False
        if request.cutover_mode is CutoverMode.COPY_FREEZE:
            try:
                self.client.freeze(source_base, source.object_id)
                source_frozen = True
            except requests.RequestException as exc:
                logger.warning("Failed to freeze source '%s': %s", source.display_name, exc)
                warnings.append("Failed to freeze source instance")
        elif request.cutover_mode is CutoverMode.COPY_DELETE:
            if not request.run_verification or (verification is not None and verification.passed):
                delete_source = True
            else:
                warnings.append("Source instance not deleted because verification did not pass")
        self.jobs.advance(job_id, 90)

        # 8. Commit
        now = now_iso()
        new_instance = Instance(
            id=generate_id(),
            namespace_id=target_ns.id,
            object_id=target_name,
            name=target_name,
            last_accessed=now,
            storage_size_bytes=source.storage_size_bytes,
            has_alarm=alarm_migrated,
            color=source.color,
            created_at=now,
            updated_at=now,
        )
        self.store.insert_instance(new_instance)
        state.orphan = None

        source_deleted = False
        if delete_source:
            source_deleted = self.store.delete_instance(source.id)
            if not source_deleted:
                warnings.append("Source instance row was already gone")

        result = MigrationResult(
            new_instance=new_instance,
            source_frozen=source_frozen,
            source_deleted=source_deleted,
            verification=verification,
            warnings=warnings,
            job_id=job_id,
        )
        self.jobs.complete(job_id, {
            "source_instance": source.id,
            "source_namespace": source_ns.id,
            "target_namespace": target_ns.id,
            "target_instance": new_instance.id,
            "cutover_mode": request.cutover_mode.value,
            "source_frozen": source_frozen,
            "source_deleted": source_deleted,
            "key_count": source_key_count,
            "verification": verification.to_dict() if verification else None,
            "warnings": list(warnings),
        })
        logger.info(
            "Migrated '%s' -> '%s' (%d key(s), frozen=%s, deleted=%s)",
            source.display_name, target_name, source_key_count, source_frozen, source_deleted,
        )
        return result

    @staticmethod
    def _job_error(message: str, state: "_MigrationState") -> str:
        if state.orphan is None:
            return message
        logger.warning(
            "Target storage %s was written but is not recorded in metadata; "
            "reconcile it manually", state.orphan,
        )
        return f"{message} (target storage {state.orphan} was written and is untracked)"

    # ------------------------------------------------------------------
    # Unfreeze
    # ------------------------------------------------------------------

    def unfreeze(self, instance_id: str, actor: str | None = None) -> dict:
        """Lift the read-only flag set by a ``copy_freeze`` cutover."""
        instance = self.store.get_instance(instance_id)
        if instance is None:
            raise NotFoundError("Instance not found")

        job_id = self.jobs.create(
            JobType.UNFREEZE_INSTANCE, actor,
            namespace_id=instance.namespace_id, instance_id=instance.id,
        )
        try:
            namespace = self.store.get_namespace(instance.namespace_id)
            if namespace is None:
                raise NotFoundError("Namespace not found")
            base_url = require_endpoint(
                namespace, "Namespace endpoint not configured. Set up admin hook first."
            )
            try:
                self.client.unfreeze(base_url, instance.object_id)
            except requests.RequestException as exc:
                raise upstream_error("Unfreeze", exc) from exc
            self.jobs.complete(job_id, {"instance_id": instance.id, "frozen": False})
        except MoverError as exc:
            self.jobs.fail(job_id, exc.message)
            raise
        except Exception as exc:
            self.jobs.fail(job_id, f"Unfreeze failed: {exc}")
            raise
        logger.info("Unfroze instance '%s'", instance.display_name)
        return {"success": True, "frozen": False}


class _MigrationState:
    """Mutable bookkeeping shared between ``migrate`` and its phases."""

    def __init__(self) -> None:
        self.orphan: str | None = None
