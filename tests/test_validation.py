import pytest

from ns_migrator.exceptions import ValidationError
from ns_migrator.models import CutoverMode
from ns_migrator.validation import build_migration_request, parse_cutover_mode, sanitize_name


def test_sanitize_trims():
    assert sanitize_name("  room-1 ") == "room-1"


@pytest.mark.parametrize("value", ["", "  ", None, 42, "a/b", "a\\b", "tab\there", "x" * 129])
def test_sanitize_rejects(value):
    with pytest.raises(ValidationError):
        sanitize_name(value)


def test_cutover_mode_default_and_invalid():
    assert parse_cutover_mode(None) is CutoverMode.COPY
    assert parse_cutover_mode("copy_delete") is CutoverMode.COPY_DELETE
    with pytest.raises(ValidationError, match="Invalid cutoverMode"):
        parse_cutover_mode("move")


def test_migration_request_defaults():
    request = build_migration_request("ns-b")

    assert request.target_namespace_id == "ns-b"
    assert request.cutover_mode is CutoverMode.COPY
    assert request.target_instance_name is None
    assert request.migrate_alarms is False
    assert request.run_verification is True


def test_migration_request_requires_target():
    with pytest.raises(ValidationError, match="targetNamespaceId is required"):
        build_migration_request(None)


def test_blank_target_name_means_default():
    assert build_migration_request("ns-b", target_instance_name="  ").target_instance_name is None
