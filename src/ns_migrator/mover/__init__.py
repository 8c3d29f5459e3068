"""Orchestration of migrations and clones between namespaces."""

from .clone import CloneOrchestrator
from .migration import MigrationOrchestrator
from .rollback import CompensationStack

__all__ = ["CloneOrchestrator", "MigrationOrchestrator", "CompensationStack"]
