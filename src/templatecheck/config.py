"""Checker configuration and logging set-up.

Configuration lives in a small YAML document:

    strict_consistency: false
    stop_on_first_error: false
    check_bounds: true
    log_level: INFO
"""

from __future__ import annotations

import dataclasses
import logging
import logging.config
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class CheckerConfig:
    """Options shared by the inference engine and the site checker.

    Attributes:
        strict_consistency: Require two bindings of one template to be
            structurally equal instead of narrowing to the more specific.
        stop_on_first_error: Skip the remaining sites of a batch once a
            site fails.
        check_bounds: Validate inferred types against template bounds.
        log_level: Level of the templatecheck logger.

    """

    strict_consistency: bool = False
    stop_on_first_error: bool = False
    check_bounds: bool = True
    log_level: str = "WARNING"

    def __post_init__(self) -> None:
        if self.log_level.upper() not in _LOG_LEVELS:
            msg = f"Unknown log level: {self.log_level!r}"
            raise ValueError(msg)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> CheckerConfig:
        """Build a config from a mapping, rejecting unknown keys.

        Raises:
            ValueError: On an unknown key or a value of the wrong type.

        """
        fields = {f.name: f for f in dataclasses.fields(cls)}
        unknown = sorted(set(data) - set(fields))
        if unknown:
            msg = f"Unknown configuration key(s): {', '.join(unknown)}"
            raise ValueError(msg)

        for name, value in data.items():
            expected = str if name == "log_level" else bool
            if not isinstance(value, expected):
                msg = (
                    f"Configuration key {name} must be {expected.__name__}, "
                    f"got {type(value).__name__}"
                )
                raise ValueError(msg)

        return cls(**data)


def load_config(path: str | Path) -> CheckerConfig:
    """Load a CheckerConfig from the YAML document at path.

    An empty document yields the defaults.

    Raises:
        FileNotFoundError: If path does not exist.
        ValueError: If the document is not a mapping or has invalid keys.

    """
    config_path = Path(path)
    if not config_path.exists():
        msg = f"configuration file not found: {config_path}"
        raise FileNotFoundError(msg)
    try:
        data = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        msg = f"failed to parse configuration: {exc}"
        raise ValueError(msg) from exc
    if data is None:
        return CheckerConfig()
    if not isinstance(data, dict):
        msg = "configuration root must be a mapping"
        raise ValueError(msg)
    return CheckerConfig.from_mapping(data)


def logging_config(config: CheckerConfig) -> dict[str, Any]:
    """dictConfig schema for the templatecheck logger."""
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stderr",
                "formatter": "standard",
            },
        },
        "loggers": {
            "templatecheck": {
                "level": config.log_level.upper(),
                "handlers": ["console"],
                "propagate": False,
            },
        },
    }


def configure_logging(config: CheckerConfig) -> None:
    """Send templatecheck log records to stderr at the configured level."""
    logging.config.dictConfig(logging_config(config))
