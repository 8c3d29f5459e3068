import json

import pytest

from ns_migrator import cli
from ns_migrator.__main__ import main
from ns_migrator.config import ENV_DATABASE_URL
from ns_migrator.models import Namespace, generate_id, now_iso
from ns_migrator.store import MetadataStore


@pytest.fixture
def db_url(tmp_path, monkeypatch):
    url = f"sqlite:///{tmp_path / 'meta.db'}"
    monkeypatch.setenv(ENV_DATABASE_URL, url)
    monkeypatch.setattr(cli, "setup_logging", lambda verbose=False, log_prefix="": "test.log")
    return url


@pytest.fixture
def seeded(db_url):
    store = MetadataStore.from_url(db_url)
    now = now_iso()
    namespace = Namespace(
        id=generate_id(), name="prod", class_name="Counter", created_at=now, updated_at=now,
    )
    store.insert_namespace(namespace)
    store.engine.dispose()
    return namespace


def test_usage(capsys):
    with pytest.raises(SystemExit) as excinfo:
        main([])
    assert excinfo.value.code == 0
    assert "commands:" in capsys.readouterr().out


def test_unknown_command(capsys):
    with pytest.raises(SystemExit) as excinfo:
        main(["teleport"])
    assert excinfo.value.code == 1
    assert "Unknown command: teleport" in capsys.readouterr().out


def test_shallow_clone_then_list_jobs(seeded, capsys):
    main(["clone", "namespace", seeded.id, "--name", "staging", "--json"])
    result = json.loads(capsys.readouterr().out)
    assert result["namespace"]["name"] == "staging"
    assert result["clonedFrom"] == "prod"

    main(["jobs", "--json"])
    jobs = json.loads(capsys.readouterr().out)["jobs"]
    assert [(j["type"], j["status"]) for j in jobs] == [("clone_namespace", "completed")]


def test_failure_exits_nonzero(db_url, capsys):
    with pytest.raises(SystemExit) as excinfo:
        main(["migrate", "missing-instance", "--to", "some-namespace"])
    assert excinfo.value.code == 1
    assert "Source instance not found" in capsys.readouterr().err


def test_deep_flag_only_for_namespaces(db_url):
    with pytest.raises(SystemExit) as excinfo:
        main(["clone", "instance", "i-1", "--name", "x", "--deep"])
    assert excinfo.value.code == 2
