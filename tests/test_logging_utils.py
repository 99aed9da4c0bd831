"""Tests for vaultbridge.core.logging_utils module.

Version: 0.1.0
"""

import logging

import pytest

from vaultbridge.core.logging_utils import (
    configure_logging,
    level_number,
    normalize_log_level,
    prepare_log_file,
)


@pytest.fixture
def restore_root():
    """Undo changes configure_logging makes to the root and client loggers."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    handler_levels = [h.level for h in handlers]
    level = root.level
    client_levels = {name: logging.getLogger(name).level for name in ("hvac", "urllib3")}
    yield root
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler, handler_level in zip(handlers, handler_levels):
        handler.setLevel(handler_level)
    root.setLevel(level)
    for name, client_level in client_levels.items():
        logging.getLogger(name).setLevel(client_level)


class TestLevels:
    @pytest.mark.parametrize("name, expected", [
        ("debug", "DEBUG"),
        (" Warn ", "WARNING"),
        ("warning", "WARNING"),
        ("CRITICAL", "CRITICAL"),
        ("verbose", "INFO"),
        ("", "INFO"),
        (None, "INFO"),
    ])
    def test_normalize(self, name, expected):
        assert normalize_log_level(name) == expected

    def test_level_number(self):
        assert level_number("warn") == logging.WARNING
        assert level_number(None) == logging.INFO


class TestPrepareLogFile:
    def test_reset_deletes_file(self, tmp_path):
        log_path = tmp_path / "plugin.log"
        log_path.write_text("old run\n", encoding="utf-8")
        prepare_log_file(log_path, reset_on_start=True)
        assert not log_path.exists()

    def test_keep_appends_banner(self, tmp_path):
        log_path = tmp_path / "plugin.log"
        log_path.write_text("old run\n", encoding="utf-8")
        prepare_log_file(log_path, reset_on_start=False)
        content = log_path.read_text(encoding="utf-8")
        assert content.startswith("old run\n")
        assert "vaultbridge started" in content

    def test_creates_parent_directory(self, tmp_path):
        log_path = tmp_path / "logs" / "plugin.log"
        prepare_log_file(log_path, reset_on_start=True)
        assert log_path.parent.is_dir()
        assert not log_path.exists()


class TestConfigureLogging:
    def test_sets_root_level(self, restore_root):
        assert configure_logging("debug") == "DEBUG"
        assert restore_root.level == logging.DEBUG

    def test_client_loggers_stay_quiet(self, restore_root):
        configure_logging("DEBUG")
        assert logging.getLogger("hvac").level == logging.WARNING
        assert logging.getLogger("urllib3").level == logging.WARNING

    def test_file_handler_attached_once(self, restore_root, tmp_path):
        log_path = tmp_path / "plugin.log"
        configure_logging("INFO", log_file=log_path)
        configure_logging("ERROR", log_file=log_path)

        file_handlers = [
            h for h in restore_root.handlers
            if isinstance(h, logging.FileHandler) and h.baseFilename == str(log_path.resolve())
        ]
        assert len(file_handlers) == 1
        assert file_handlers[0].level == logging.ERROR

        logging.getLogger("vaultbridge.test").error("written to file")
        file_handlers[0].flush()
        assert "written to file" in log_path.read_text(encoding="utf-8")
