"""
Tests for the logging configuration.
"""

import json
import logging
import os
import sys

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from inivault.logging_config import (
    VERBOSE,
    FeatureArea,
    VaultFormatter,
    configure_from_environment,
    detect_feature,
    get_logger,
    get_logging_state,
    is_verbose,
    set_verbose,
    setup_logging,
)


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        if handler not in handlers:
            handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


def _record(name, msg, level=logging.INFO, **extra):
    record = logging.LogRecord(name, level, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestFeatureDetection:
    """Tests for detect_feature()."""

    @pytest.mark.unit
    @pytest.mark.parametrize("name,feature", [
        ("inivault.codec.text_codec", FeatureArea.CODEC),
        ("inivault.crypto.encryption", FeatureArea.CRYPTO),
        ("inivault.storage.persistence", FeatureArea.PERSISTENCE),
        ("inivault.concurrency.rwlock", FeatureArea.CONCURRENCY),
        ("inivault.config.options", FeatureArea.CONFIG),
        ("inivault.cli.inivaultctl", FeatureArea.CLI),
        ("inivault.vault", FeatureArea.CORE),
    ])
    def test_detect(self, name, feature):
        assert detect_feature(name) is feature


class TestFormatter:
    """Tests for VaultFormatter."""

    @pytest.mark.unit
    def test_text_format(self):
        """Text lines carry level, feature tag and extra data."""
        formatter = VaultFormatter(use_colors=False)
        line = formatter.format(_record(
            "inivault.storage.persistence", "saved", extra_data={"bytes": 42}
        ))
        assert "INFO" in line
        assert "[persistence]" in line
        assert line.endswith("saved | bytes=42")

    @pytest.mark.unit
    def test_json_format(self):
        """JSON lines are parseable and tagged."""
        formatter = VaultFormatter(json_format=True)
        data = json.loads(formatter.format(_record("inivault.crypto.encryption", "derived")))
        assert data["message"] == "derived"
        assert data["feature"] == "crypto"
        assert data["level"] == "INFO"


class TestSetup:
    """Tests for setup_logging() and friends."""

    @pytest.mark.unit
    def test_setup_with_file(self, temp_dir):
        """A log file receives records."""
        log_file = temp_dir / "logs" / "vault.log"
        setup_logging(log_file=str(log_file), console=False)
        get_logger("vault").info("hello file")
        for handler in logging.getLogger().handlers:
            handler.flush()
        assert "hello file" in log_file.read_text()
        assert get_logging_state()["log_file"] == str(log_file)

    @pytest.mark.unit
    def test_verbose_toggle(self):
        """set_verbose() switches the root level."""
        setup_logging(verbose=False, console=False)
        assert not is_verbose()
        set_verbose(True)
        assert is_verbose()
        assert logging.getLogger().level == VERBOSE
        set_verbose(False)
        assert logging.getLogger().level == logging.INFO

    @pytest.mark.unit
    def test_get_logger_namespace(self):
        """get_logger() places loggers under inivault."""
        assert get_logger("tools").name == "inivault.tools"
        assert get_logger("inivault.vault").name == "inivault.vault"

    @pytest.mark.unit
    def test_configure_from_environment(self, monkeypatch):
        """INIVAULT_VERBOSE and INIVAULT_LOG_JSON are honoured."""
        monkeypatch.setenv("INIVAULT_VERBOSE", "1")
        monkeypatch.setenv("INIVAULT_LOG_JSON", "yes")
        monkeypatch.setenv("INIVAULT_LOG_NO_CONSOLE", "true")
        configure_from_environment()
        state = get_logging_state()
        assert state["verbose"] is True
        assert state["json_format"] is True
        assert state["console_enabled"] is False
        set_verbose(False)
