import pytest

from ns_migrator.exceptions import PersistenceError
from ns_migrator.models import Instance, Job, JobStatus, generate_id, now_iso
from ns_migrator.store import MetadataStore


def _instance(namespace_id, name, **kwargs):
    now = now_iso()
    return Instance(
        id=generate_id(), namespace_id=namespace_id, object_id=name, name=name,
        created_at=now, updated_at=now, **kwargs,
    )


def test_namespace_round_trip(store, make_namespace):
    ns = make_namespace("prod", "https://x.example.com/", color="blue")

    loaded = store.get_namespace(ns.id)
    assert loaded == ns
    assert loaded.base_url == "https://x.example.com"
    assert store.find_namespace_by_name("prod").id == ns.id
    assert store.find_namespace_by_name("other") is None


def test_instance_tags_and_flags(store, make_namespace):
    ns = make_namespace("prod")
    inst = _instance(ns.id, "a", tags=["blue", "edge"], has_alarm=True, storage_size_bytes=10)
    store.insert_instance(inst)

    loaded = store.get_instance(inst.id)
    assert loaded.tags == ["blue", "edge"]
    assert loaded.has_alarm is True
    assert loaded.storage_size_bytes == 10


def test_find_instance_by_name_or_object_id(store, make_namespace):
    ns = make_namespace("prod")
    inst = _instance(ns.id, "display")
    inst.object_id = "obj-1"
    store.insert_instance(inst)

    assert store.find_instance(ns.id, "display").id == inst.id
    assert store.find_instance(ns.id, "obj-1").id == inst.id
    assert store.find_instance(ns.id, "nothing") is None
    assert store.find_instance("other-ns", "display") is None


def test_batch_insert_is_atomic(store, make_namespace):
    ns = make_namespace("prod")
    first = _instance(ns.id, "a")
    duplicate = _instance(ns.id, "a")

    with pytest.raises(PersistenceError):
        store.insert_instances([first, _instance(ns.id, "b"), duplicate])

    assert store.list_instances(ns.id) == []


def test_delete_is_idempotent(store, make_namespace):
    ns = make_namespace("prod")
    inst = _instance(ns.id, "a")
    store.insert_instance(inst)

    assert store.delete_instance(inst.id) is True
    assert store.delete_instance(inst.id) is False
    assert store.delete_namespace(ns.id) is True
    assert store.delete_namespace(ns.id) is False


def test_conditional_job_update(store):
    job = Job(id=generate_id(), type="migrate_instance", status=JobStatus.RUNNING, created_at=now_iso())
    store.insert_job(job)

    assert store.update_job(job.id, only_if_status="running", status="completed") is True
    assert store.update_job(job.id, only_if_status="running", status="failed") is False
    assert store.get_job(job.id).status is JobStatus.COMPLETED


def test_file_database_creates_directory(tmp_path):
    db_path = tmp_path / "nested" / "meta.db"
    store = MetadataStore.from_url(f"sqlite:///{db_path}")
    try:
        assert db_path.parent.is_dir()
        assert store.list_jobs() == []
    finally:
        store.engine.dispose()
