"""
HTTP client for the admin API exposed by a namespace's remote instances.

Features:
  - One session shared across namespaces; the base URL is passed per call
  - Instance names percent-encoded into the path
  - Bounded (connect, read) timeout on every request
  - Optional retry with backoff on 502/503/504 (off by default)
  - Token redaction in __repr__
  - Dependency injection for session (testability)
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .config import RemoteConfig

__all__ = ["RemoteStorageClient", "admin_url", "key_count"]

logger = logging.getLogger(__name__)


def admin_url(base_url: str, name: str, resource: str) -> str:
    """Build ``{base}/admin/{name}/{resource}`` with *name* percent-encoded."""
    return f"{base_url.rstrip('/')}/admin/{quote(name, safe='')}/{resource}"


def key_count(payload: dict) -> int:
    """Key count of an export payload: ``keyCount`` if present, else ``len(data)``."""
    count = payload.get("keyCount")
    if isinstance(count, int) and not isinstance(count, bool):
        return count
    return len(payload.get("data") or {})


def _build_session(api_token: str = "", retries: int = 0) -> requests.Session:
    """Create a requests.Session with JSON headers and a retry adapter."""
    session = requests.Session()
    session.headers.update({
        "Content-Type": "application/json",
        "Accept": "application/json",
        "User-Agent": "ns-migrator/1.0",
    })
    if api_token:
        session.headers["Authorization"] = f"Bearer {api_token}"
    retry = Retry(
        total=retries,
        backoff_factor=0.5,
        status_forcelist=[502, 503, 504],
        allowed_methods=["GET", "PUT", "DELETE"],
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retry)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    return session


class RemoteStorageClient:
    """Client for the per-namespace admin API (export, import, alarm, freeze).

    Every method raises ``requests.HTTPError`` on a non-2xx response and
    other ``requests.RequestException`` subclasses on transport failures;
    callers decide which of those are fatal.
    """

    # Default timeout for all HTTP requests: (connect, read) in seconds.
    DEFAULT_TIMEOUT = (10, 60)

    def __init__(
        self,
        api_token: str = "",
        timeout: tuple[float, float] | None = None,
        retries: int = 0,
        session: requests.Session | None = None,
    ):
        self._token_hint = api_token[:4] + "***" if len(api_token) > 4 else "***"
        self.timeout = timeout or self.DEFAULT_TIMEOUT
        self.session = session or _build_session(api_token, retries)

    @classmethod
    def from_config(cls, cfg: RemoteConfig) -> "RemoteStorageClient":
        return cls(api_token=cfg.api_token, timeout=cfg.timeout, retries=cfg.retries)

    def __repr__(self) -> str:
        return f"RemoteStorageClient(timeout={self.timeout!r}, token={self._token_hint!r})"

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _request(self, method: str, url: str, body: dict | None = None) -> requests.Response:
        logger.debug("%s %s", method, url)
        resp = self.session.request(method, url, json=body, timeout=self.timeout)
        if not resp.ok:
            logger.debug("%s %s -> HTTP %s: %s", method, url, resp.status_code, resp.text[:200])
        resp.raise_for_status()
        return resp

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    def export_instance(self, base_url: str, name: str) -> dict[str, Any]:
        """GET {base}/admin/{name}/export -> ``{"data": {...}, "keyCount": n}``.

        ``data`` is always present in the returned dict (empty when the
        remote omitted it).  A body that is not an object, or whose ``data``
        is not an object, raises ``InvalidJSONError``.
        """
        resp = self._request("GET", admin_url(base_url, name, "export"))
        payload = resp.json() or {}
        if not isinstance(payload, dict):
            raise requests.exceptions.InvalidJSONError(
                f"Export of '{name}' returned {type(payload).__name__}, expected an object",
                response=resp,
            )
        payload.setdefault("data", {})
        if payload["data"] is None:
            payload["data"] = {}
        if not isinstance(payload["data"], dict):
            raise requests.exceptions.InvalidJSONError(
                f"Export of '{name}' has data of type {type(payload['data']).__name__}, "
                "expected an object",
                response=resp,
            )
        return payload

    def import_instance(self, base_url: str, name: str, data: dict[str, Any]) -> None:
        """POST {base}/admin/{name}/import: provisions the instance if absent."""
        self._request("POST", admin_url(base_url, name, "import"), {"data": data})

    # ------------------------------------------------------------------
    # Alarms
    # ------------------------------------------------------------------

    def get_alarm(self, base_url: str, name: str) -> int | None:
        """GET {base}/admin/{name}/alarm -> scheduled alarm in epoch millis, or None.

        Raises ``InvalidJSONError`` when the body is not ``{"alarm": <number|null>}``.
        """
        resp = self._request("GET", admin_url(base_url, name, "alarm"))
        body = resp.json() or {}
        alarm = body.get("alarm") if isinstance(body, dict) else body
        if alarm is None and isinstance(body, dict):
            return None
        if isinstance(alarm, bool) or not isinstance(alarm, (int, float)):
            raise requests.exceptions.InvalidJSONError(
                f"Alarm of '{name}' is {alarm!r}, expected epoch milliseconds",
                response=resp,
            )
        return int(alarm)

    def set_alarm(self, base_url: str, name: str, timestamp: int) -> None:
        """PUT {base}/admin/{name}/alarm"""
        self._request("PUT", admin_url(base_url, name, "alarm"), {"timestamp": timestamp})

    # ------------------------------------------------------------------
    # Freeze
    # ------------------------------------------------------------------

    def freeze(self, base_url: str, name: str) -> None:
        """PUT {base}/admin/{name}/freeze: make the instance read-only."""
        self._request("PUT", admin_url(base_url, name, "freeze"))

    def unfreeze(self, base_url: str, name: str) -> None:
        """DELETE {base}/admin/{name}/freeze"""
        self._request("DELETE", admin_url(base_url, name, "freeze"))
