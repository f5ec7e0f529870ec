# classify.py
# SPDX-License-Identifier: MIT
"""Turn license file contents into a set of license types."""

from __future__ import annotations

from collections.abc import Iterable
from functools import lru_cache

from .catalog import LicenseTemplate, load_builtin_templates
from .config import DetectorConfig
from .exceptions import ExceptionTable, ExceptionTableError, load_exception_table
from .log import get_logger
from .policy import LicensePolicy, default_policy
from .records import UNKNOWN_LICENSE_TYPE, Coverage, LicenseTypes
from .scanner import Scanner

log = get_logger(__name__)

__all__ = [
    "Classifier",
    "new_classifier",
    "default_classifier",
    "detect_file",
]


class Classifier:
    """
    Classifies license text and carries everything a detector needs.

    Build instances with :func:`new_classifier`; an instance is immutable
    and safe to share between detectors.
    """

    def __init__(
        self,
        scanner: Scanner,
        exceptions: ExceptionTable,
        policy: LicensePolicy,
        config: DetectorConfig,
    ) -> None:
        self.scanner = scanner
        self.exceptions = exceptions
        self.policy = policy
        self.config = config

    @property
    def max_license_size(self) -> int:
        return self.config.max_license_size

    def classify(self, data: bytes, path: str = "") -> tuple[LicenseTypes, Coverage]:
        """
        Return the license types expressed by ``data`` and its coverage.

        Text that is mostly unrecognized, or recognized without any usable
        match, yields ``{UNKNOWN}``. ``path`` is only used for logging.
        """
        cov = self.scanner.scan(data)
        if cov.percent < self.config.coverage_threshold:
            log.debug("%s license coverage too low (%.1f%%), skipping", path, cov.percent)
            return frozenset({UNKNOWN_LICENSE_TYPE}), cov
        types: set[str] = set()
        for match in cov.matches:
            types.update(self.exceptions.types_for(match.id))
        if not types:
            log.debug("%s failed to classify license (%.1f%% coverage), skipping", path, cov.percent)
            return frozenset({UNKNOWN_LICENSE_TYPE}), cov
        return frozenset(types), cov

    def is_redistributable(self, types: Iterable[str]) -> bool:
        return self.policy.is_redistributable(types)


def new_classifier(
    config: DetectorConfig | None = None,
    *,
    templates: Iterable[LicenseTemplate] | None = None,
    exceptions: ExceptionTable | None = None,
    policy: LicensePolicy | None = None,
) -> Classifier:
    """
    Construct a classifier.

    Args:
        config (DetectorConfig | None): Thresholds, size limit and exception
            settings. Defaults to ``DetectorConfig()``. Its ``logging``
            table, when present, is applied to the package logger.
        templates (Iterable[LicenseTemplate] | None): Catalog to scan with.
            Defaults to the packaged catalog.
        exceptions (ExceptionTable | None): Exception table. Defaults to the
            table named by the config (or the packaged one); ignored when
            ``config.omit_exceptions`` is set.
        policy (LicensePolicy | None): Redistributability policy. Defaults to
            :func:`licensegate.core.policy.default_policy`.

    Raises:
        ExceptionTableError: If the exception table declares a type that is
            not redistributable or reuses a catalog identifier.
    """
    config = config or DetectorConfig()
    if config.logging is not None:
        config.logging.apply()
    policy = policy or default_policy()
    if config.omit_exceptions:
        exceptions = ExceptionTable.empty()
    elif exceptions is None:
        exceptions = load_exception_table(config.exceptions_path)
    exceptions.validate(policy.redistributable)

    catalog = list(load_builtin_templates() if templates is None else templates)
    catalog_ids = {t.id for t in catalog}
    for addition in exceptions.corpus:
        if addition.id in catalog_ids:
            raise ExceptionTableError(f"corpus entry {addition.id!r} shadows a catalog text")
    catalog.extend(exceptions.templates())

    scanner = Scanner(catalog, match_threshold=config.match_threshold)
    return Classifier(scanner, exceptions, policy, config)


@lru_cache(maxsize=1)
def default_classifier() -> Classifier:
    """Return the process-wide classifier built from the default configuration."""
    return new_classifier()


def detect_file(data: bytes, path: str = "", classifier: Classifier | None = None) -> tuple[LicenseTypes, Coverage]:
    """Classify one file's contents with ``classifier`` (default: :func:`default_classifier`)."""
    return (classifier or default_classifier()).classify(data, path)
