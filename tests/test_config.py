"""Tests for configuration loading and logging set-up."""

import logging
from collections.abc import Iterator
from pathlib import Path

import pytest

from templatecheck import CheckerConfig, configure_logging, load_config
from templatecheck.config import logging_config


@pytest.fixture
def restore_logger() -> Iterator[logging.Logger]:
    """Undo configure_logging so later tests see a propagating logger."""
    logger = logging.getLogger("templatecheck")
    handlers = list(logger.handlers)
    level = logger.level
    propagate = logger.propagate
    yield logger
    logger.handlers = handlers
    logger.setLevel(level)
    logger.propagate = propagate


class TestCheckerConfig:
    """Tests for CheckerConfig construction."""

    def test_defaults(self) -> None:
        config = CheckerConfig()
        assert not config.strict_consistency
        assert not config.stop_on_first_error
        assert config.check_bounds
        assert config.log_level == "WARNING"

    def test_unknown_log_level(self) -> None:
        with pytest.raises(ValueError, match="Unknown log level"):
            CheckerConfig(log_level="LOUD")

    def test_from_mapping(self) -> None:
        config = CheckerConfig.from_mapping(
            {"strict_consistency": True, "log_level": "debug"},
        )
        assert config.strict_consistency
        assert config.log_level == "debug"

    def test_unknown_key(self) -> None:
        with pytest.raises(ValueError, match="Unknown configuration key"):
            CheckerConfig.from_mapping({"strict": True})

    def test_wrong_value_type(self) -> None:
        with pytest.raises(ValueError, match="check_bounds must be bool"):
            CheckerConfig.from_mapping({"check_bounds": "yes"})


class TestLoadConfig:
    """Tests for load_config."""

    def test_load(self, tmp_path: Path) -> None:
        path = tmp_path / "templatecheck.yaml"
        path.write_text(
            "strict_consistency: true\nstop_on_first_error: true\nlog_level: INFO\n",
            encoding="utf-8",
        )
        config = load_config(path)
        assert config == CheckerConfig(
            strict_consistency=True,
            stop_on_first_error=True,
            log_level="INFO",
        )

    def test_empty_file_gives_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        assert load_config(path) == CheckerConfig()

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError, match="not found"):
            load_config(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "broken.yaml"
        path.write_text("check_bounds: [true\n", encoding="utf-8")
        with pytest.raises(ValueError, match="failed to parse"):
            load_config(path)

    def test_root_must_be_mapping(self, tmp_path: Path) -> None:
        path = tmp_path / "list.yaml"
        path.write_text("- strict_consistency\n", encoding="utf-8")
        with pytest.raises(ValueError, match="root must be a mapping"):
            load_config(str(path))


class TestLogging:
    """Tests for the dictConfig logging set-up."""

    def test_schema(self) -> None:
        schema = logging_config(CheckerConfig(log_level="debug"))
        assert schema["loggers"]["templatecheck"]["level"] == "DEBUG"
        assert schema["loggers"]["templatecheck"]["handlers"] == ["console"]

    def test_configure_logging(self, restore_logger: logging.Logger) -> None:
        configure_logging(CheckerConfig(log_level="ERROR"))
        assert restore_logger.level == logging.ERROR
        assert not restore_logger.propagate
        assert any(isinstance(h, logging.StreamHandler) for h in restore_logger.handlers)
