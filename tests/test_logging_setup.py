import logging

import pytest

from ns_migrator.logging_setup import setup_logging


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


def test_log_file_named_after_command(tmp_path):
    log_path = setup_logging(log_prefix="migrate", log_dir=str(tmp_path / "logs"))

    logging.getLogger("ns_migrator.test").debug("copied 3 keys")
    for handler in logging.getLogger().handlers:
        handler.flush()

    assert log_path.startswith(str(tmp_path / "logs" / "migrate_"))
    with open(log_path, encoding="utf-8") as fh:
        assert "copied 3 keys" in fh.read()


def test_console_level_follows_verbose(tmp_path):
    setup_logging(verbose=False, log_dir=str(tmp_path))
    levels = {type(h).__name__: h.level for h in logging.getLogger().handlers}
    assert levels == {"FileHandler": logging.DEBUG, "StreamHandler": logging.WARNING}

    setup_logging(verbose=True, log_dir=str(tmp_path))
    levels = {type(h).__name__: h.level for h in logging.getLogger().handlers}
    assert levels["StreamHandler"] == logging.DEBUG


def test_uvicorn_routed_through_root(tmp_path):
    logging.getLogger("uvicorn.access").addHandler(logging.NullHandler())

    setup_logging(log_dir=str(tmp_path))

    access = logging.getLogger("uvicorn.access")
    assert access.handlers == []
    assert access.propagate is True
    assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
