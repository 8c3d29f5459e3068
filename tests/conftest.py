"""
Shared fixtures: an in-memory metadata store and an in-memory remote.

``FakeRemote`` stands in for ``RemoteStorageClient``: storage lives in a
dict keyed by ``(base_url, name)`` and failures are injected per
``(operation, name)``.
"""

from unittest.mock import Mock

import pytest
import requests

from ns_migrator.config import CloneConfig
from ns_migrator.events import EventPublisher
from ns_migrator.jobs import JobTracker
from ns_migrator.models import Instance, Namespace, generate_id, now_iso
from ns_migrator.mover import CloneOrchestrator, MigrationOrchestrator
from ns_migrator.services import Services
from ns_migrator.store import MetadataStore

SOURCE_URL = "https://source.example.com"
TARGET_URL = "https://target.example.com"


def http_error(status: int, body: str = "") -> requests.HTTPError:
    response = requests.Response()
    response.status_code = status
    response._content = body.encode("utf-8")
    response.encoding = "utf-8"
    response.reason = "Error"
    return requests.HTTPError(f"{status} Error", response=response)


class FakeRemote:
    def __init__(self):
        self.storage: dict[tuple[str, str], dict] = {}
        self.alarms: dict[tuple[str, str], int] = {}
        self.frozen: set[tuple[str, str]] = set()
        self.failures: dict[tuple[str, str], Exception] = {}
        self.reported_counts: dict[tuple[str, str], int] = {}
        self.calls: list[tuple[str, str, str]] = []
        self.session = Mock()

    def _call(self, op, base_url, name):
        self.calls.append((op, base_url, name))
        exc = self.failures.get((op, name))
        if exc is not None:
            raise exc

    def ops(self, op):
        return [call for call in self.calls if call[0] == op]

    def export_instance(self, base_url, name):
        self._call("export", base_url, name)
        data = dict(self.storage.get((base_url, name), {}))
        count = self.reported_counts.get((base_url, name), len(data))
        return {"data": data, "keyCount": count}

    def import_instance(self, base_url, name, data):
        self._call("import", base_url, name)
        self.storage[(base_url, name)] = dict(data)

    def get_alarm(self, base_url, name):
        self._call("get_alarm", base_url, name)
        return self.alarms.get((base_url, name))

    def set_alarm(self, base_url, name, timestamp):
        self._call("set_alarm", base_url, name)
        self.alarms[(base_url, name)] = timestamp

    def freeze(self, base_url, name):
        self._call("freeze", base_url, name)
        self.frozen.add((base_url, name))

    def unfreeze(self, base_url, name):
        self._call("unfreeze", base_url, name)
        self.frozen.discard((base_url, name))


@pytest.fixture
def store():
    store = MetadataStore.from_url("sqlite://")
    yield store
    store.engine.dispose()


@pytest.fixture
def remote():
    return FakeRemote()


@pytest.fixture
def publisher():
    publisher = EventPublisher()
    yield publisher
    publisher.close()


@pytest.fixture
def jobs(store, publisher):
    return JobTracker(store, publisher)


@pytest.fixture
def migrations(store, remote, jobs, publisher):
    return MigrationOrchestrator(store, remote, jobs, publisher)


@pytest.fixture
def clones(store, remote, jobs, publisher):
    return CloneOrchestrator(store, remote, jobs, publisher, CloneConfig(concurrency=2))


@pytest.fixture
def services(store, remote, publisher):
    return Services.create(store, remote, publisher, concurrency=2)


@pytest.fixture
def make_namespace(store):
    def _make(name, endpoint_url=SOURCE_URL, admin_hook_enabled=True, **kwargs):
        now = now_iso()
        namespace = Namespace(
            id=generate_id(),
            name=name,
            class_name=kwargs.pop("class_name", "Counter"),
            endpoint_url=endpoint_url,
            admin_hook_enabled=admin_hook_enabled,
            created_at=now,
            updated_at=now,
            **kwargs,
        )
        store.insert_namespace(namespace)
        return namespace
    return _make


@pytest.fixture
def make_instance(store, remote):
    def _make(namespace, name, data=None, object_id=None, **kwargs):
        now = now_iso()
        instance = Instance(
            id=generate_id(),
            namespace_id=namespace.id,
            object_id=object_id or name,
            name=name,
            created_at=now,
            updated_at=now,
            **kwargs,
        )
        store.insert_instance(instance)
        if data is not None:
            remote.storage[(namespace.base_url, instance.object_id)] = dict(data)
        return instance
    return _make
