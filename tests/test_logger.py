import logging

import pytest

from showshelf.utils import logger as logger_module
from showshelf.utils.logger import LineRotatingFileHandler, change_log_level_runtime, setup_logging


def test_rotates_after_max_lines(tmp_path):
    log_file = tmp_path / "test.log"
    handler = LineRotatingFileHandler(log_file, maxLines=3, backupCount=2, encoding="utf-8")
    handler.setFormatter(logging.Formatter("%(message)s"))
    try:
        for i in range(7):
            handler.emit(logging.makeLogRecord({"msg": f"line {i}"}))
    finally:
        handler.close()

    assert log_file.read_text(encoding="utf-8").splitlines() == ["line 6"]
    assert (tmp_path / "test.log.1").read_text(encoding="utf-8").splitlines() == ["line 3", "line 4", "line 5"]
    assert (tmp_path / "test.log.2").read_text(encoding="utf-8").splitlines() == ["line 0", "line 1", "line 2"]
    assert not (tmp_path / "test.log.3").exists()


def test_file_is_opened_lazily(tmp_path):
    log_file = tmp_path / "test.log"
    handler = LineRotatingFileHandler(log_file, maxLines=3)
    try:
        assert not log_file.exists()
        handler.emit(logging.makeLogRecord({"msg": "first"}))
        assert log_file.exists()
    finally:
        handler.close()


def test_without_backups_the_file_starts_over(tmp_path):
    log_file = tmp_path / "test.log"
    handler = LineRotatingFileHandler(log_file, maxLines=2, backupCount=0)
    handler.setFormatter(logging.Formatter("%(message)s"))
    try:
        for i in range(3):
            handler.emit(logging.makeLogRecord({"msg": f"line {i}"}))
    finally:
        handler.close()

    assert log_file.read_text(encoding="utf-8").splitlines() == ["line 2"]
    assert not (tmp_path / "test.log.1").exists()


def test_counts_existing_lines(tmp_path):
    log_file = tmp_path / "test.log"
    log_file.write_text("a\nb\n", encoding="utf-8")
    handler = LineRotatingFileHandler(log_file, maxLines=10, encoding="utf-8")
    try:
        assert handler.lineCount == 2
    finally:
        handler.close()


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    level = root.level
    yield
    for handler in list(logger_module._handlers):
        root.removeHandler(handler)
        handler.close()
    logger_module._handlers = []
    root.setLevel(level)


def test_setup_logging_writes_file_and_changes_level(tmp_path, restore_root_logger):
    log_file = setup_logging("INFO", log_dir=tmp_path)
    logging.getLogger("showshelf.test").info("✓ hello")

    assert log_file == tmp_path / "showshelf.log"
    assert "✓ hello" in log_file.read_text(encoding="utf-8")

    assert change_log_level_runtime("debug") is True
    assert logging.getLogger().level == logging.DEBUG
    assert change_log_level_runtime("LOUD") is False


def test_setup_logging_twice_does_not_duplicate_handlers(tmp_path, restore_root_logger):
    setup_logging("INFO", log_dir=tmp_path)
    count = len(logging.getLogger().handlers)
    setup_logging("INFO", log_dir=tmp_path)
    assert len(logging.getLogger().handlers) == count
