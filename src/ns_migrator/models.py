"""
Shared data models and constants used across the ns-migrator project.
"""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


def generate_id() -> str:
    return str(uuid.uuid4())


def now_iso() -> str:
    """Current UTC time as an ISO-8601 string with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


# ------------------------------------------------------------------
# Enumerations
# ------------------------------------------------------------------

class CutoverMode(str, Enum):
    """What happens to the source instance after a successful copy."""
    COPY = "copy"
    COPY_FREEZE = "copy_freeze"
    COPY_DELETE = "copy_delete"


class JobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATUSES


_TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED})


class JobType(str, Enum):
    MIGRATE_INSTANCE = "migrate_instance"
    CLONE_NAMESPACE = "clone_namespace"
    CLONE_INSTANCE = "clone_instance"
    UNFREEZE_INSTANCE = "unfreeze_instance"


# ------------------------------------------------------------------
# Metadata records
# ------------------------------------------------------------------

@dataclass
class Namespace:
    id: str
    name: str
    class_name: str
    script_name: str | None = None
    storage_backend: str = "sqlite"  # "sqlite" or "kv"
    endpoint_url: str | None = None
    admin_hook_enabled: bool = False
    color: str | None = None
    created_at: str = ""
    updated_at: str = ""

    @property
    def base_url(self) -> str | None:
        """Admin endpoint URL without trailing slashes (None when unset)."""
        if not self.endpoint_url:
            return None
        return self.endpoint_url.rstrip("/")

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class Instance:
    id: str
    namespace_id: str
    object_id: str
    name: str | None = None
    last_accessed: str | None = None
    storage_size_bytes: int | None = None
    has_alarm: bool = False
    tags: list[str] = field(default_factory=list)
    color: str | None = None
    created_at: str = ""
    updated_at: str = ""

    @property
    def display_name(self) -> str:
        return self.name or self.object_id

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class Job:
    id: str
    type: str
    status: JobStatus
    namespace_id: str | None = None
    instance_id: str | None = None
    user_email: str | None = None
    progress: int = 0
    result: dict[str, Any] | None = None
    error: str | None = None
    created_at: str = ""
    started_at: str | None = None
    completed_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return data


# ------------------------------------------------------------------
# Migration
# ------------------------------------------------------------------

@dataclass(frozen=True)
class MigrationRequest:
    target_namespace_id: str
    cutover_mode: CutoverMode = CutoverMode.COPY
    target_instance_name: str | None = None
    migrate_alarms: bool = False
    run_verification: bool = True


@dataclass(frozen=True)
class VerificationResult:
    passed: bool
    source_key_count: int
    target_key_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "passed": self.passed,
            "sourceKeyCount": self.source_key_count,
            "targetKeyCount": self.target_key_count,
        }


@dataclass
class MigrationResult:
    new_instance: Instance
    source_frozen: bool = False
    source_deleted: bool = False
    verification: VerificationResult | None = None
    warnings: list[str] = field(default_factory=list)
    job_id: str = ""

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "success": True,
            "newInstance": self.new_instance.to_dict(),
            "sourceFrozen": self.source_frozen,
            "sourceDeleted": self.source_deleted,
        }
        if self.verification is not None:
            data["verification"] = self.verification.to_dict()
        if self.warnings:
            data["warnings"] = list(self.warnings)
        return data


# ------------------------------------------------------------------
# Clone
# ------------------------------------------------------------------

@dataclass
class CloneOutcome:
    """Result of the storage + metadata phases of a deep clone."""
    instances_cloned: int = 0
    warnings: list[str] = field(default_factory=list)


@dataclass
class NamespaceCloneResult:
    namespace: Namespace
    cloned_from: str
    deep_clone: bool = False
    outcome: CloneOutcome = field(default_factory=CloneOutcome)
    job_id: str = ""

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "namespace": self.namespace.to_dict(),
            "clonedFrom": self.cloned_from,
        }
        if self.deep_clone:
            data["instancesCloned"] = self.outcome.instances_cloned
        if self.outcome.warnings:
            data["warnings"] = list(self.outcome.warnings)
        return data


@dataclass
class InstanceCloneResult:
    instance: Instance
    cloned_from: str
    job_id: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"instance": self.instance.to_dict(), "clonedFrom": self.cloned_from}
