import threading

from ns_migrator.events import (
    CLONE_COMPLETE,
    JOB_FAILED,
    MIGRATION_COMPLETE,
    WILDCARD,
    EventPublisher,
)


def test_subscribers_receive_matching_events(publisher):
    failed, everything = [], []
    publisher.subscribe(JOB_FAILED, failed.append)
    publisher.subscribe(WILDCARD, everything.append)

    publisher.publish(MIGRATION_COMPLETE, {"job_id": "1"})
    publisher.publish(JOB_FAILED, {"job_id": "2"})
    publisher.flush()

    assert [e.data["job_id"] for e in failed] == ["2"]
    assert [e.event for e in everything] == [MIGRATION_COMPLETE, JOB_FAILED]
    assert everything[0].to_dict()["timestamp"].endswith("Z")


def test_handler_errors_are_isolated(publisher):
    received = []

    def broken(event):
        raise ValueError("subscriber bug")

    publisher.subscribe(CLONE_COMPLETE, broken)
    publisher.subscribe(CLONE_COMPLETE, received.append)

    publisher.publish(CLONE_COMPLETE, {"n": 1})
    publisher.flush()

    assert len(received) == 1


def test_publish_does_not_wait_for_handlers():
    publisher = EventPublisher()
    release = threading.Event()
    delivered = threading.Event()

    def slow(event):
        release.wait(5)
        delivered.set()

    publisher.subscribe(JOB_FAILED, slow)
    publisher.publish(JOB_FAILED, {})
    assert not delivered.is_set()

    release.set()
    publisher.close()
    assert delivered.is_set()


def test_unsubscribe_and_publish_after_close():
    publisher = EventPublisher()
    received = []
    publisher.subscribe(JOB_FAILED, received.append)
    publisher.unsubscribe(JOB_FAILED, received.append)
    publisher.publish(JOB_FAILED, {})
    publisher.close()
    publisher.publish(JOB_FAILED, {})

    assert received == []
