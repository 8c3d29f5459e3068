"""
Storage copy steps shared by the migration and clone orchestrators.

Remote failures surface from the client as ``requests`` exceptions; the
helpers here turn them into ``UpstreamError`` carrying the remote status.
"""

from __future__ import annotations

import logging
from typing import Any

import requests

from ..client import RemoteStorageClient, key_count
from ..exceptions import UnconfiguredError, UpstreamError
from ..models import Namespace, VerificationResult

__all__ = [
    "require_endpoint",
    "upstream_error",
    "export_storage",
    "import_storage",
    "verify_copy",
]

logger = logging.getLogger(__name__)


def require_endpoint(namespace: Namespace, message: str) -> str:
    """Return the namespace's admin base URL or raise ``UnconfiguredError``."""
    base_url = namespace.base_url
    if not base_url:
        raise UnconfiguredError(message)
    return base_url


def upstream_error(action: str, exc: requests.RequestException) -> UpstreamError:
    """Build an ``UpstreamError`` for a failed remote call.

    A non-success response keeps its status code; transport errors and
    malformed bodies map to 502.
    """
    response = getattr(exc, "response", None)
    if response is not None and response.status_code >= 400:
        detail = (response.text or "").strip()[:100] or response.reason or "no body"
        return UpstreamError(
            f"{action} failed: HTTP {response.status_code}: {detail}",
            status_code=response.status_code,
        )
    return UpstreamError(f"{action} failed: {exc}")


def export_storage(
    client: RemoteStorageClient, base_url: str, name: str, action: str = "Export",
) -> dict[str, Any]:
    try:
        return client.export_instance(base_url, name)
    except requests.RequestException as exc:
        raise upstream_error(action, exc) from exc


def import_storage(
    client: RemoteStorageClient, base_url: str, name: str, data: dict[str, Any],
) -> None:
    try:
        client.import_instance(base_url, name, data)
    except requests.RequestException as exc:
        raise upstream_error("Import", exc) from exc


def verify_copy(
    client: RemoteStorageClient, base_url: str, name: str, source_key_count: int,
) -> VerificationResult:
    """Re-export the target and compare key counts with the source export.

    Raises ``requests.RequestException`` when the target cannot be read;
    callers record that as a warning.
    """
    payload = client.export_instance(base_url, name)
    target_key_count = key_count(payload)
    result = VerificationResult(
        passed=source_key_count == target_key_count,
        source_key_count=source_key_count,
        target_key_count=target_key_count,
    )
    if not result.passed:
        logger.warning(
            "Verification of '%s' failed: source has %d key(s), target has %d",
            name, source_key_count, target_key_count,
        )
    return result
