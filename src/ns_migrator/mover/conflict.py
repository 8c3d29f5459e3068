"""
Name resolution and conflict checks for migrations and clones.

A target name is taken when any instance in the target namespace already
uses it as its display name or as its object id.
"""

from __future__ import annotations

from ..exceptions import ConflictError
from ..models import Instance, MigrationRequest
from ..store import MetadataStore

__all__ = [
    "resolve_target_name",
    "ensure_instance_name_free",
    "ensure_namespace_name_free",
]


def resolve_target_name(request: MigrationRequest, source: Instance) -> str:
    """Explicit target name, else the source display name, else its object id."""
    return request.target_instance_name or source.display_name


def ensure_instance_name_free(
    store: MetadataStore,
    namespace_id: str,
    name: str,
    message: str = "Instance with this name already exists",
) -> None:
    """Raise ``ConflictError`` if *name* is taken in *namespace_id*."""
    existing = store.find_instance(namespace_id, name)
    if existing is not None:
        raise ConflictError(message)


def ensure_namespace_name_free(store: MetadataStore, name: str) -> None:
    if store.find_namespace_by_name(name) is not None:
        raise ConflictError("Namespace with this name already exists")
