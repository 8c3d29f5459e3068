"""
Job lifecycle tracking for orchestrated operations.

A job is created ``running`` and ends ``completed`` or ``failed``.
Terminal states are absorbing: once a job has completed, failed or been
cancelled, later writes are logged and ignored.
"""

from __future__ import annotations

import logging
from typing import Any

from .events import JOB_FAILED, EventPublisher
from .exceptions import NotFoundError, PersistenceError
from .models import Job, JobStatus, JobType, generate_id, now_iso
from .store import MetadataStore

__all__ = ["JobTracker", "MAX_LIST_LIMIT"]

logger = logging.getLogger(__name__)

MAX_LIST_LIMIT = 100


class JobTracker:
    """Writes job rows through the metadata store."""

    def __init__(self, store: MetadataStore, publisher: EventPublisher | None = None):
        self.store = store
        self.publisher = publisher

    def create(
        self,
        job_type: JobType | str,
        actor: str | None = None,
        namespace_id: str | None = None,
        instance_id: str | None = None,
    ) -> str:
        """Create a running job at 0% and return its id."""
        now = now_iso()
        job = Job(
            id=generate_id(),
            type=JobType(job_type).value,
            status=JobStatus.RUNNING,
            namespace_id=namespace_id,
            instance_id=instance_id,
            user_email=actor,
            progress=0,
            created_at=now,
            started_at=now,
        )
        self.store.insert_job(job)
        logger.debug("Job %s (%s) started", job.id, job.type)
        return job.id

    def attach(
        self,
        job_id: str,
        namespace_id: str | None = None,
        instance_id: str | None = None,
    ) -> None:
        """Associate a running job with a namespace and/or instance (best-effort)."""
        values = {}
        if namespace_id is not None:
            values["namespace_id"] = namespace_id
        if instance_id is not None:
            values["instance_id"] = instance_id
        if not values:
            return
        try:
            self.store.update_job(job_id, only_if_status=JobStatus.RUNNING.value, **values)
        except PersistenceError as exc:
            logger.warning("Could not attach entities to job %s: %s", job_id, exc)

    def advance(self, job_id: str, percent: int) -> None:
        """Raise progress of a running job.  Never lowers it, never raises."""
        percent = max(0, min(int(percent), 99))
        try:
            job = self.store.get_job(job_id)
            if job is None or job.status.is_terminal or percent <= job.progress:
                return
            self.store.update_job(
                job_id, only_if_status=JobStatus.RUNNING.value, progress=percent
            )
        except PersistenceError as exc:
            logger.warning("Could not update progress of job %s: %s", job_id, exc)

    def complete(self, job_id: str, result: dict[str, Any] | None = None) -> bool:
        """Mark a running job completed at 100%.

        Returns False (and leaves the row alone) if the job is already terminal.
        """
        changed = self.store.update_job(
            job_id,
            only_if_status=JobStatus.RUNNING.value,
            status=JobStatus.COMPLETED.value,
            progress=100,
            result=result,
            completed_at=now_iso(),
        )
        if not changed:
            logger.warning("Job %s is not running — completion ignored", job_id)
        return changed

    def fail(self, job_id: str, error: str) -> bool:
        """Mark a running job failed.  Best-effort: store errors are logged.

        Publishes a ``job_failed`` event when the transition happened.
        """
        try:
            changed = self.store.update_job(
                job_id,
                only_if_status=JobStatus.RUNNING.value,
                status=JobStatus.FAILED.value,
                progress=0,
                error=error,
                completed_at=now_iso(),
            )
        except PersistenceError as exc:
            logger.error("Could not mark job %s failed (%s): %s", job_id, error, exc)
            return False
        if not changed:
            logger.warning("Job %s is not running — failure ignored: %s", job_id, error)
            return False

        logger.info("Job %s failed: %s", job_id, error)
        if self.publisher is not None:
            try:
                job = self.store.get_job(job_id)
            except PersistenceError:
                job = None
            self.publisher.publish(JOB_FAILED, {
                "job_id": job_id,
                "job_type": job.type if job else None,
                "error": error,
                "namespace_id": job.namespace_id if job else None,
                "instance_id": job.instance_id if job else None,
                "user_email": job.user_email if job else None,
            })
        return True

    def get(self, job_id: str) -> Job:
        job = self.store.get_job(job_id)
        if job is None:
            raise NotFoundError("Job not found")
        return job

    def list(
        self,
        status: str | None = None,
        namespace_id: str | None = None,
        limit: int = 50,
    ) -> list[Job]:
        limit = max(1, min(int(limit), MAX_LIST_LIMIT))
        return self.store.list_jobs(status=status, namespace_id=namespace_id, limit=limit)
