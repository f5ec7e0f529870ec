# __init__.py
# SPDX-License-Identifier: MIT
"""
Top-level package exports for :mod:`licensegate`.

licensegate decides which licenses govern a module version and whether its
contents may be redistributed (shown, indexed, served) by an aggregator.

Public surface
--------------
Most callers need only:

- A :class:`FileTree` for the module content (:class:`DirectoryTree`,
  :class:`ZipTree` or :class:`MemoryTree`), or :meth:`Detector.from_zip`.
- A :class:`Detector`, which answers :meth:`Detector.module_is_redistributable`,
  :meth:`Detector.all_licenses` and :meth:`Detector.package_info`.
- Optionally a :class:`DetectorConfig` passed to :func:`new_classifier` to
  change thresholds, size limits or the exception table.

Classifiers are expensive to build and immutable; build one per process and
share it between detectors (the default is cached by :func:`default_classifier`).

Examples:
    Local checkout::

        >>> from licensegate import Detector, DirectoryTree
        >>> d = Detector("github.com/owner/repo", "v1.0.0", DirectoryTree("path/to/repo"))
        >>> d.module_is_redistributable()
        True

    Module zip::

        >>> import zipfile
        >>> from licensegate import Detector
        >>> with zipfile.ZipFile("repo.zip") as zf:
        ...     d = Detector.from_zip("github.com/owner/repo", "v1.0.0", zf)
        ...     redist, lics = d.package_info("internal/foo")
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Package version
# ---------------------------------------------------------------------------
try:
    from importlib.metadata import version as _pkg_version

    __version__ = _pkg_version("licensegate")
except Exception:  # PackageNotFoundError when running from a source checkout
    __version__ = "0.0.0+unknown"


# ---------------------------------------------------------------------------
# Primary public API (stable; exported via __all__)
# ---------------------------------------------------------------------------
from .core.classify import Classifier, default_classifier, detect_file, new_classifier
from .core.config import DetectorConfig, LoggingConfig, load_config_from_path
from .core.detector import Detector, LicenseReadError
from .core.exceptions import ExceptionTable, ExceptionTableError, load_exception_table
from .core.interfaces import FileTree, TreeEntry
from .core.log import configure_logging, get_logger
from .core.paths import LICENSE_FILE_NAMES, InvalidPathError, WhichFiles
from .core.policy import AcceptedLicenseInfo, LicensePolicy, accepted_licenses, is_redistributable
from .core.records import UNKNOWN_LICENSE_TYPE, Coverage, License, LicenseMetadata, Match
from .sources.trees import DirectoryTree, MemoryTree, ZipTree

# ---------------------------------------------------------------------------
# Stable export list
# ---------------------------------------------------------------------------
PRIMARY_API = [
    "__version__",
    "Detector",
    "DetectorConfig",
    "new_classifier",
    "DirectoryTree",
    "ZipTree",
    "MemoryTree",
    "License",
    "LicenseMetadata",
    "is_redistributable",
    "accepted_licenses",
]

__all__ = [
    *PRIMARY_API,
    "Classifier",
    "default_classifier",
    "detect_file",
    "LoggingConfig",
    "load_config_from_path",
    "LicenseReadError",
    "ExceptionTable",
    "ExceptionTableError",
    "load_exception_table",
    "FileTree",
    "TreeEntry",
    "configure_logging",
    "get_logger",
    "LICENSE_FILE_NAMES",
    "InvalidPathError",
    "WhichFiles",
    "AcceptedLicenseInfo",
    "LicensePolicy",
    "UNKNOWN_LICENSE_TYPE",
    "Coverage",
    "Match",
]
