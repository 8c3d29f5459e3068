"""
Relational metadata store for namespaces, instances and jobs.

Built on SQLAlchemy Core.  Every public method runs in its own
transaction; ``insert_instances`` is the one multi-row write and is atomic.
Driver errors are re-raised as ``PersistenceError``.
"""

from __future__ import annotations

import contextlib
import logging
import os
from collections.abc import Iterator, Sequence
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    create_engine,
    delete,
    insert,
    or_,
    select,
    update,
)
from sqlalchemy.engine import Connection, Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from .exceptions import PersistenceError
from .models import Instance, Job, JobStatus, Namespace

__all__ = [
    "metadata",
    "namespaces_table",
    "instances_table",
    "jobs_table",
    "create_store_engine",
    "MetadataStore",
]

logger = logging.getLogger(__name__)

metadata = MetaData()

namespaces_table = Table(
    "namespaces",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("name", String(128), nullable=False, index=True),
    Column("script_name", String(255)),
    Column("class_name", String(255), nullable=False),
    Column("storage_backend", String(16), nullable=False, default="sqlite"),
    Column("endpoint_url", Text),
    Column("admin_hook_enabled", Boolean, nullable=False, default=False),
    Column("color", String(16)),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

instances_table = Table(
    "instances",
    metadata,
    Column("id", String(36), primary_key=True),
    Column(
        "namespace_id",
        String(36),
        ForeignKey("namespaces.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("name", String(128)),
    Column("object_id", String(255), nullable=False),
    Column("last_accessed", String(32)),
    Column("storage_size_bytes", Integer),
    Column("has_alarm", Boolean, nullable=False, default=False),
    Column("tags", JSON, nullable=False, default=list),
    Column("color", String(16)),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    UniqueConstraint("namespace_id", "object_id", name="uq_instances_namespace_object"),
    Index("idx_instances_namespace", "namespace_id"),
)

jobs_table = Table(
    "jobs",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("type", String(64), nullable=False),
    Column("status", String(16), nullable=False, default=JobStatus.PENDING.value),
    Column("namespace_id", String(36)),
    Column("instance_id", String(36)),
    Column("user_email", String(255)),
    Column("progress", Integer, nullable=False, default=0),
    Column("result", JSON),
    Column("error", Text),
    Column("created_at", String(32), nullable=False),
    Column("started_at", String(32)),
    Column("completed_at", String(32)),
    Index("idx_jobs_status", "status"),
    Index("idx_jobs_namespace", "namespace_id"),
)


def create_store_engine(url: str, echo: bool = False) -> Engine:
    """Create an engine suitable for use from several worker threads.

    SQLite connections are opened with ``check_same_thread=False``; an
    in-memory SQLite database is pinned to a single shared connection so
    every thread sees the same data.
    """
    kwargs: dict[str, Any] = {"echo": echo}
    parsed = make_url(url)
    if parsed.get_backend_name() == "sqlite":
        kwargs["connect_args"] = {"check_same_thread": False}
        if parsed.database in (None, "", ":memory:"):
            kwargs["poolclass"] = StaticPool
        else:
            os.makedirs(os.path.dirname(os.path.abspath(parsed.database)), exist_ok=True)
    return create_engine(url, **kwargs)


# ------------------------------------------------------------------
# Row conversion
# ------------------------------------------------------------------

def _namespace_from_row(row) -> Namespace:
    m = row._mapping
    return Namespace(
        id=m["id"],
        name=m["name"],
        class_name=m["class_name"],
        script_name=m["script_name"],
        storage_backend=m["storage_backend"],
        endpoint_url=m["endpoint_url"],
        admin_hook_enabled=bool(m["admin_hook_enabled"]),
        color=m["color"],
        created_at=m["created_at"],
        updated_at=m["updated_at"],
    )


def _instance_from_row(row) -> Instance:
    m = row._mapping
    return Instance(
        id=m["id"],
        namespace_id=m["namespace_id"],
        object_id=m["object_id"],
        name=m["name"],
        last_accessed=m["last_accessed"],
        storage_size_bytes=m["storage_size_bytes"],
        has_alarm=bool(m["has_alarm"]),
        tags=list(m["tags"] or []),
        color=m["color"],
        created_at=m["created_at"],
        updated_at=m["updated_at"],
    )


def _job_from_row(row) -> Job:
    m = row._mapping
    return Job(
        id=m["id"],
        type=m["type"],
        status=JobStatus(m["status"]),
        namespace_id=m["namespace_id"],
        instance_id=m["instance_id"],
        user_email=m["user_email"],
        progress=m["progress"],
        result=m["result"],
        error=m["error"],
        created_at=m["created_at"],
        started_at=m["started_at"],
        completed_at=m["completed_at"],
    )


def _instance_values(instance: Instance) -> dict[str, Any]:
    return {
        "id": instance.id,
        "namespace_id": instance.namespace_id,
        "name": instance.name,
        "object_id": instance.object_id,
        "last_accessed": instance.last_accessed,
        "storage_size_bytes": instance.storage_size_bytes,
        "has_alarm": instance.has_alarm,
        "tags": list(instance.tags),
        "color": instance.color,
        "created_at": instance.created_at,
        "updated_at": instance.updated_at,
    }


class MetadataStore:
    """Reads and writes the namespace / instance / job tables."""

    def __init__(self, engine: Engine):
        self.engine = engine

    @classmethod
    def from_url(cls, url: str, echo: bool = False) -> "MetadataStore":
        store = cls(create_store_engine(url, echo=echo))
        store.create_schema()
        return store

    def create_schema(self) -> None:
        try:
            metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to create metadata schema: {exc}") from exc

    @contextlib.contextmanager
    def _begin(self) -> Iterator[Connection]:
        try:
            with self.engine.begin() as conn:
                yield conn
        except SQLAlchemyError as exc:
            logger.error("Metadata store error: %s", exc)
            raise PersistenceError(f"Metadata store error: {exc}") from exc

    # ------------------------------------------------------------------
    # Namespaces
    # ------------------------------------------------------------------

    def get_namespace(self, namespace_id: str) -> Namespace | None:
        with self._begin() as conn:
            row = conn.execute(
                select(namespaces_table).where(namespaces_table.c.id == namespace_id)
            ).first()
        return _namespace_from_row(row) if row else None

    def find_namespace_by_name(self, name: str) -> Namespace | None:
        with self._begin() as conn:
            row = conn.execute(
                select(namespaces_table).where(namespaces_table.c.name == name)
            ).first()
        return _namespace_from_row(row) if row else None

    def insert_namespace(self, namespace: Namespace) -> None:
        with self._begin() as conn:
            conn.execute(insert(namespaces_table).values(
                id=namespace.id,
                name=namespace.name,
                script_name=namespace.script_name,
                class_name=namespace.class_name,
                storage_backend=namespace.storage_backend,
                endpoint_url=namespace.endpoint_url,
                admin_hook_enabled=namespace.admin_hook_enabled,
                color=namespace.color,
                created_at=namespace.created_at,
                updated_at=namespace.updated_at,
            ))

    def delete_namespace(self, namespace_id: str) -> bool:
        """Delete a namespace row.  Returns False if it was already gone."""
        with self._begin() as conn:
            result = conn.execute(
                delete(namespaces_table).where(namespaces_table.c.id == namespace_id)
            )
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Instances
    # ------------------------------------------------------------------

    def get_instance(self, instance_id: str) -> Instance | None:
        with self._begin() as conn:
            row = conn.execute(
                select(instances_table).where(instances_table.c.id == instance_id)
            ).first()
        return _instance_from_row(row) if row else None

    def list_instances(self, namespace_id: str) -> list[Instance]:
        with self._begin() as conn:
            rows = conn.execute(
                select(instances_table)
                .where(instances_table.c.namespace_id == namespace_id)
                .order_by(instances_table.c.created_at, instances_table.c.id)
            ).all()
        return [_instance_from_row(r) for r in rows]

    def find_instance(self, namespace_id: str, name: str) -> Instance | None:
        """Find an instance in *namespace_id* whose name or object id is *name*."""
        with self._begin() as conn:
            row = conn.execute(
                select(instances_table).where(
                    instances_table.c.namespace_id == namespace_id,
                    or_(instances_table.c.name == name, instances_table.c.object_id == name),
                )
            ).first()
        return _instance_from_row(row) if row else None

    def insert_instance(self, instance: Instance) -> None:
        with self._begin() as conn:
            conn.execute(insert(instances_table).values(**_instance_values(instance)))

    def insert_instances(self, instances: Sequence[Instance]) -> None:
        """Insert all *instances* in a single transaction (all or nothing)."""
        if not instances:
            return
        with self._begin() as conn:
            for instance in instances:
                conn.execute(insert(instances_table).values(**_instance_values(instance)))
        logger.debug("Batch-inserted %d instance row(s)", len(instances))

    def delete_instance(self, instance_id: str) -> bool:
        """Delete an instance row.  Returns False if it was already gone."""
        with self._begin() as conn:
            result = conn.execute(
                delete(instances_table).where(instances_table.c.id == instance_id)
            )
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Jobs
    # ------------------------------------------------------------------

    def insert_job(self, job: Job) -> None:
        with self._begin() as conn:
            conn.execute(insert(jobs_table).values(
                id=job.id,
                type=job.type,
                status=job.status.value,
                namespace_id=job.namespace_id,
                instance_id=job.instance_id,
                user_email=job.user_email,
                progress=job.progress,
                result=job.result,
                error=job.error,
                created_at=job.created_at,
                started_at=job.started_at,
                completed_at=job.completed_at,
            ))

    def get_job(self, job_id: str) -> Job | None:
        with self._begin() as conn:
            row = conn.execute(select(jobs_table).where(jobs_table.c.id == job_id)).first()
        return _job_from_row(row) if row else None

    def update_job(self, job_id: str, *, only_if_status: str | None = None, **values) -> bool:
        """Update columns of a job row.

        With *only_if_status* the update is applied only while the row still
        has that status, which keeps terminal jobs immutable even when two
        writers race.  Returns whether a row was changed.
        """
        stmt = update(jobs_table).where(jobs_table.c.id == job_id)
        if only_if_status is not None:
            stmt = stmt.where(jobs_table.c.status == only_if_status)
        with self._begin() as conn:
            result = conn.execute(stmt.values(**values))
        return result.rowcount > 0

    def list_jobs(
        self,
        status: str | None = None,
        namespace_id: str | None = None,
        limit: int = 50,
    ) -> list[Job]:
        stmt = select(jobs_table)
        if status:
            stmt = stmt.where(jobs_table.c.status == status)
        if namespace_id:
            stmt = stmt.where(jobs_table.c.namespace_id == namespace_id)
        stmt = stmt.order_by(jobs_table.c.created_at.desc()).limit(limit)
        with self._begin() as conn:
            rows = conn.execute(stmt).all()
        return [_job_from_row(r) for r in rows]
