# config.py
# SPDX-License-Identifier: MIT
"""Configuration for license detection.

A :class:`DetectorConfig` is built once at start-up (directly, or from a JSON
or TOML file) and handed to :func:`licensegate.core.classify.new_classifier`.
It is immutable; tests build their own instance rather than patching module
state.
"""
from __future__ import annotations

import json
try:  # pragma: no cover - optional dependency
    import tomllib  # Python 3.11+
except ModuleNotFoundError:  # pragma: no cover
    try:
        import tomli as tomllib  # type: ignore[no-redef]
    except Exception:  # pragma: no cover
        tomllib = None  # type: ignore[assignment]
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Mapping, Optional

from .log import PACKAGE_LOGGER_NAME, configure_logging

__all__ = [
    "DEFAULT_COVERAGE_THRESHOLD",
    "DEFAULT_MATCH_THRESHOLD",
    "DEFAULT_MAX_LICENSE_SIZE",
    "LoggingConfig",
    "DetectorConfig",
    "load_config_from_path",
]

# Minimum percentage of a license file that must be recognized license text.
DEFAULT_COVERAGE_THRESHOLD = 75.0
# Minimum percentage of a catalog text a match must contain.
DEFAULT_MATCH_THRESHOLD = 80.0
# Some legitimate license files exceed a million bytes; anything above this is refused.
DEFAULT_MAX_LICENSE_SIZE = 16 << 20


@dataclass(frozen=True, slots=True)
class LoggingConfig:
    """Controls the package logger; set propagate/logger_name to integrate with host apps."""

    level: int | str = "INFO"
    propagate: bool = False
    fmt: Optional[str] = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    logger_name: str = PACKAGE_LOGGER_NAME

    def apply(self) -> None:
        """Apply this logging configuration to the package logger."""
        configure_logging(
            level=self.level,
            propagate=self.propagate,
            fmt=self.fmt,
            logger_name=self.logger_name or PACKAGE_LOGGER_NAME,
        )


@dataclass(frozen=True, slots=True)
class DetectorConfig:
    """
    Settings shared by every detector in a process.

    Attributes:
        coverage_threshold (float): Files whose recognized share is below
            this percentage are classified ``UNKNOWN``.
        match_threshold (float): Minimum share of a catalog text that a
            match must contain to be reported by the scanner.
        max_license_size (int): Files larger than this many bytes are not
            read and are classified ``UNKNOWN``.
        omit_exceptions (bool): Skip the exception table entirely. Meant for
            tests that do not exercise exceptions.
        exceptions_path (str | None): Alternative exception table JSON file;
            the packaged asset is used when None.
        logging (LoggingConfig | None): Package logger settings, applied by
            :func:`licensegate.core.classify.new_classifier`. None leaves the
            host application's logging untouched.
    """

    coverage_threshold: float = DEFAULT_COVERAGE_THRESHOLD
    match_threshold: float = DEFAULT_MATCH_THRESHOLD
    max_license_size: int = DEFAULT_MAX_LICENSE_SIZE
    omit_exceptions: bool = False
    exceptions_path: Optional[str] = None
    logging: Optional[LoggingConfig] = None

    def __post_init__(self) -> None:
        for name in ("coverage_threshold", "match_threshold"):
            value = getattr(self, name)
            if not 0 <= value <= 100:
                raise ValueError(f"{name} must be within 0..100; got {value!r}")
        if self.max_license_size <= 0:
            raise ValueError(f"max_license_size must be positive; got {self.max_license_size!r}")
        if isinstance(self.exceptions_path, Path):
            object.__setattr__(self, "exceptions_path", str(self.exceptions_path))

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "DetectorConfig":
        """
        Build a config from a mapping, rejecting unknown keys.

        Raises:
            ValueError: On unknown keys or invalid values.
        """
        if not data:
            return cls()
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown DetectorConfig keys: {sorted(unknown)}")
        kwargs = dict(data)
        log_data = kwargs.pop("logging", None)
        if log_data is not None:
            if not isinstance(log_data, Mapping):
                raise ValueError("'logging' must be a table/object")
            log_known = {f.name for f in fields(LoggingConfig)}
            log_unknown = set(log_data) - log_known
            if log_unknown:
                raise ValueError(f"Unknown LoggingConfig keys: {sorted(log_unknown)}")
            kwargs["logging"] = LoggingConfig(**log_data)
        return cls(**kwargs)

    @classmethod
    def from_json(cls, path: Path | str) -> "DetectorConfig":
        payload = json.loads(Path(path).read_text(encoding="utf-8"))
        return cls.from_dict(payload)

    @classmethod
    def from_toml(cls, path: Path | str) -> "DetectorConfig":
        """Load a config from TOML; the layout mirrors the dataclass with a [logging] table."""
        if tomllib is None:
            raise RuntimeError(
                "TOML support requires Python 3.11+ (tomllib) or installing the 'tomli' package."
            )
        data = tomllib.loads(Path(path).read_bytes().decode("utf-8"))
        if not isinstance(data, Mapping):
            raise TypeError(f"Top-level TOML document must be a mapping; got {type(data).__name__}.")
        return cls.from_dict(data)


def load_config_from_path(path: str | Path) -> DetectorConfig:
    """Load a DetectorConfig from a ``.toml`` or ``.json`` file.

    Raises:
        ValueError: If the file extension is not ``.toml`` or ``.json``.
    """
    p = Path(path)
    suffix = p.suffix.lower()
    if suffix == ".toml":
        return DetectorConfig.from_toml(p)
    if suffix == ".json":
        return DetectorConfig.from_json(p)
    raise ValueError(f"Unsupported config extension {p.suffix!r}; expected .toml or .json.")
