"""
Input validation for user-supplied names and request bodies.

Instance names end up percent-encoded in admin endpoint paths and namespace
names end up in the metadata store, so both are checked before any I/O.
"""

from __future__ import annotations

import logging
import re

from .exceptions import ValidationError
from .models import CutoverMode, MigrationRequest

__all__ = [
    "MAX_NAME_LENGTH",
    "sanitize_name",
    "parse_cutover_mode",
    "build_migration_request",
]

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 128

# Control characters and path separators are never legal in a name.
_UNSAFE_NAME = re.compile(r"[\x00-\x1f\x7f/\\]")


def sanitize_name(value, label: str = "name") -> str:
    """Trim and validate an instance or namespace name.

    Raises:
        ValidationError: If the name is empty, too long, or contains
            control characters or slashes.
    """
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{label} is required")
    value = value.strip()
    if len(value) > MAX_NAME_LENGTH:
        raise ValidationError(
            f"Invalid {label}: must be at most {MAX_NAME_LENGTH} characters"
        )
    if _UNSAFE_NAME.search(value):
        raise ValidationError(
            f"Invalid {label}: {value!r} — control characters and slashes are not allowed"
        )
    return value


def parse_cutover_mode(value) -> CutoverMode:
    if value is None:
        return CutoverMode.COPY
    try:
        return CutoverMode(value)
    except ValueError:
        raise ValidationError(
            "Invalid cutoverMode. Must be: copy, copy_freeze, or copy_delete"
        ) from None


def build_migration_request(
    target_namespace_id,
    cutover_mode=None,
    target_instance_name=None,
    migrate_alarms: bool | None = None,
    run_verification: bool | None = None,
) -> MigrationRequest:
    """Validate raw migration parameters and build a ``MigrationRequest``.

    Defaults follow the API: cutover ``copy``, no alarm migration,
    verification on.
    """
    if not isinstance(target_namespace_id, str) or not target_namespace_id.strip():
        raise ValidationError("targetNamespaceId is required")

    name = None
    if target_instance_name is not None and str(target_instance_name).strip():
        name = sanitize_name(target_instance_name, "targetInstanceName")

    return MigrationRequest(
        target_namespace_id=target_namespace_id.strip(),
        cutover_mode=parse_cutover_mode(cutover_mode),
        target_instance_name=name,
        migrate_alarms=bool(migrate_alarms) if migrate_alarms is not None else False,
        run_verification=bool(run_verification) if run_verification is not None else True,
    )
