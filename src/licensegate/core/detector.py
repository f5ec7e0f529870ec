# detector.py
# SPDX-License-Identifier: MIT
"""License detection and redistributability for a module and its packages.

Nothing here raises to signal "not redistributable". Problems reading or
examining files are logged and fail closed: the file is recorded as
``UNKNOWN``, which the policy never accepts.

Example::

    d = Detector("example.com/mod", "v1.2.3", DirectoryTree(content_dir))
    if d.module_is_redistributable():
        lics = d.all_licenses()
        pkg_redist, pkg_lics = d.package_info("internal/foo")
"""

from __future__ import annotations

import posixpath
import threading
import zipfile
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Union

from ..sources.trees import ZipTree
from .classify import Classifier, default_classifier
from .exceptions import ExceptionFile
from .interfaces import FileTree
from .log import module_logger
from .paths import InvalidPathError, WhichFiles, check_file_path, collect_license_paths
from .records import UNKNOWN_LICENSE_TYPE, License, LicenseMetadata, license_types


__all__ = [
    "LicenseReadError",
    "Unindexed",
    "Indexed",
    "Detector",
    "read_license_file",
]


class LicenseReadError(OSError):
    """A candidate license file that is refused without being read."""


def read_license_file(tree: FileTree, path: str, max_size: int) -> bytes:
    """
    Read a license file, refusing anything larger than ``max_size`` bytes.

    Raises:
        LicenseReadError: If the file is too large.
        OSError: If the tree cannot stat or read the file.
    """
    size = tree.stat_size(path)
    if size > max_size:
        raise LicenseReadError(f"file size {size} exceeds max license size {max_size}")
    return tree.read_bytes(path, max_size)


@dataclass(frozen=True, slots=True)
class Unindexed:
    """Only the module-level licenses are known."""


@dataclass(frozen=True, slots=True)
class Indexed:
    """
    Every license in the module has been classified.

    Attributes:
        all_licenses (tuple[License, ...]): Module licenses followed by
            every other license found in the tree.
        licenses_by_directory (Mapping[str, tuple[License, ...]]): Non-root
            licenses keyed by the directory that directly contains them.
    """

    all_licenses: tuple[License, ...]
    licenses_by_directory: Mapping[str, tuple[License, ...]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "licenses_by_directory", MappingProxyType(dict(self.licenses_by_directory)))


IndexState = Union[Unindexed, Indexed]


def _in_testdata(path: str) -> bool:
    return "testdata" in path.split("/")[:-1]


class Detector:
    """
    Detects the licenses of one module version.

    Root-level licenses are classified when the detector is built; the rest
    of the tree is classified on the first call that needs it and the result
    is kept for the detector's lifetime.

    Args:
        module_path (str): Module path, e.g. ``github.com/owner/repo``.
        version (str): Module version.
        tree (FileTree | None): The module's content directory. None behaves
            like an empty tree.
        classifier (Classifier | None): Shared classifier; defaults to
            :func:`licensegate.core.classify.default_classifier`.
    """

    def __init__(
        self,
        module_path: str,
        version: str,
        tree: FileTree | None,
        *,
        classifier: Classifier | None = None,
    ) -> None:
        self.module_path = module_path
        self.version = version
        self.tree = tree
        self._classifier = classifier or default_classifier()
        self._log = module_logger(__name__, module_path, version)
        self._lock = threading.Lock()
        self._state: IndexState = Unindexed()
        self._override_applied = False
        self._module_licenses, self._module_redist = self._compute_module_info()

    @classmethod
    def from_zip(
        cls,
        module_path: str,
        version: str,
        zip_file: zipfile.ZipFile,
        *,
        classifier: Classifier | None = None,
    ) -> "Detector":
        """Build a detector over a module zip whose content directory is ``module@version``."""
        try:
            tree: FileTree | None = ZipTree(zip_file, prefix=f"{module_path}@{version}")
        except ValueError as exc:
            module_logger(__name__, module_path, version).warning("invalid content directory: %s", exc)
            tree = None
        return cls(module_path, version, tree, classifier=classifier)

    @property
    def classifier(self) -> Classifier:
        return self._classifier

    @property
    def state(self) -> IndexState:
        return self._state

    @property
    def exception_applied(self) -> bool:
        """True when the module was accepted through a whole-module exception."""
        return self._override_applied

    def module_is_redistributable(self) -> bool:
        return self._module_redist

    def module_licenses(self) -> list[License]:
        """Licenses at the module root, or the declared files of an applied exception."""
        return list(self._module_licenses)

    def all_licenses(self) -> list[License]:
        """Every license detected in the module, including package licenses."""
        return list(self._ensure_indexed().all_licenses)

    def package_info(self, directory: str) -> tuple[bool, list[License]]:
        """
        Report whether the package at ``directory`` is redistributable.

        A package is redistributable when its module is and every license
        found in ``directory`` or an ancestor below the root is too. This is
        not the same as judging module and package licenses together: the
        module's own decision (which may come from an exception) is taken as
        given.

        Returns:
            tuple[bool, list[License]]: The decision, and the licenses on the
            path from ``directory`` up to (excluding) the root followed by the
            module licenses.
        """
        clean = posixpath.normpath(directory)
        if clean.startswith("/") or clean == ".." or clean.startswith("../"):
            self._log.warning("package_info: rejecting directory %r", directory)
            return False, []
        index = self._ensure_indexed()
        lics: list[License] = []
        for prefix in sorted(index.licenses_by_directory):
            # Trailing slashes keep a/b from matching a/bc.
            if (clean + "/").startswith(prefix + "/"):
                lics.extend(index.licenses_by_directory[prefix])
        redist = self._module_redist and (
            self._override_applied
            or not lics
            or self._classifier.is_redistributable(license_types(lics))
        )
        return redist, lics + list(self._module_licenses)

    def paths(self, which: WhichFiles) -> list[str]:
        """Return candidate license paths in the tree for ``which``."""
        return collect_license_paths(
            self.tree,
            self.module_path,
            which,
            self._classifier.exceptions.ignore_files,
        )

    def detect_files(self, pathnames: list[str]) -> list[License]:
        """Classify each file; unreadable files are recorded as ``UNKNOWN`` without contents."""
        licenses = []
        for pathname in pathnames:
            try:
                data = read_license_file(self.tree, pathname, self._classifier.max_license_size)
            except OSError as exc:
                self._log.warning("reading file %s: %s", pathname, exc)
                licenses.append(License(LicenseMetadata(frozenset({UNKNOWN_LICENSE_TYPE}), pathname)))
                continue
            types, cov = self._classifier.classify(data, pathname)
            licenses.append(License(LicenseMetadata(types, pathname, cov), data))
        return licenses

    def _compute_module_info(self) -> tuple[tuple[License, ...], bool]:
        override = self._classifier.exceptions.override_for(self.module_path)
        if override is not None:
            lics = self._match_override(override)
            if lics is not None:
                self._override_applied = True
                self._log.info("module accepted by exception (%d declared files)", len(lics))
                return tuple(lics), True
        lics = self.detect_files(self.paths(WhichFiles.ROOT))
        return tuple(lics), self._classifier.is_redistributable(license_types(lics))

    def _match_override(self, files: tuple[ExceptionFile, ...]) -> list[License] | None:
        """Return the declared licenses when the tree satisfies the exception, else None."""
        if self.tree is None:
            return None
        matched = []
        for ef in files:
            try:
                check_file_path(ef.path)
                data = read_license_file(self.tree, ef.path, self._classifier.max_license_size)
            except (InvalidPathError, OSError) as exc:
                self._log.info("exception not applied: %s: %s", ef.path, exc)
                return None
            if not ef.matches(data):
                self._log.info("exception not applied: %s contents differ", ef.path)
                return None
            _, cov = self._classifier.classify(data, ef.path)
            matched.append(License(LicenseMetadata(frozenset(ef.types), ef.path, cov), data))

        declared = {ef.path for ef in files}
        extras = [p for p in self.paths(WhichFiles.ALL) if p not in declared and not _in_testdata(p)]
        if extras:
            self._log.info("exception not applied: other license files %s", extras)
            return None
        return matched

    def _ensure_indexed(self) -> Indexed:
        state = self._state
        if isinstance(state, Indexed):
            return state
        with self._lock:
            if isinstance(self._state, Unindexed):
                self._state = self._build_index()
            return self._state

    def _build_index(self) -> Indexed:
        declared = {lic.file_path for lic in self._module_licenses} if self._override_applied else set()
        non_root = [
            lic
            for lic in self.detect_files(self.paths(WhichFiles.NON_ROOT))
            if lic.file_path not in declared
        ]
        by_dir: dict[str, list[License]] = {}
        for lic in non_root:
            by_dir.setdefault(posixpath.dirname(lic.file_path), []).append(lic)
        return Indexed(
            all_licenses=self._module_licenses + tuple(non_root),
            licenses_by_directory={d: tuple(lics) for d, lics in by_dir.items()},
        )
