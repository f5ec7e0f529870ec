# test_detector.py
# SPDX-License-Identifier: MIT
import io
import threading
import zipfile

import pytest

from license_texts import BSD0_LICENSE, LOREM, MIT_LICENSE, UNKNOWN_LICENSE, apache_sans_appendix, packaged_text
from licensegate.core.classify import new_classifier
from licensegate.core.config import DetectorConfig
from licensegate.core.detector import Detector, Indexed, LicenseReadError, Unindexed, read_license_file
from licensegate.core.exceptions import parse_exception_table
from licensegate.core.paths import WhichFiles
from licensegate.sources.trees import MemoryTree


@pytest.fixture(scope="module")
def classifier():
    return new_classifier(DetectorConfig(omit_exceptions=True))


def _metas(licenses):
    return [(lic.file_path, lic.metadata.sorted_types) for lic in licenses]


def _detector(files, classifier, module="example.com/mod", version="v1.0.0"):
    return Detector(module, version, MemoryTree(files), classifier=classifier)


class CountingTree(MemoryTree):
    def __init__(self, files):
        super().__init__(files)
        self.listings = 0

    def list_dir(self, path):
        self.listings += 1
        return super().list_dir(path)


def _zip(files):
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        for name, data in files.items():
            zf.writestr(name, data)
    buf.seek(0)
    return zipfile.ZipFile(buf)


# ---------------------------------------------------------------------------
# Module level
# ---------------------------------------------------------------------------

def test_module_with_mit_license(classifier):
    d = _detector({"LICENSE": MIT_LICENSE, "main.go": "package main"}, classifier)

    assert d.module_is_redistributable()
    assert _metas(d.module_licenses()) == [("LICENSE", ["MIT"])]
    assert d.module_licenses()[0].contents == MIT_LICENSE.encode()


def test_module_without_licenses(classifier):
    d = _detector({"main.go": "package main"}, classifier)

    assert not d.module_is_redistributable()
    assert d.module_licenses() == []
    assert d.all_licenses() == []


@pytest.mark.parametrize(
    "name",
    ["GPL-2.0", "GPL-3.0", "LGPL-2.1", "LGPL-3.0", "AGPL-3.0", "MPL-2.0", "EPL-2.0", "Artistic-2.0", "CC-BY-4.0", "Python-2.0"],
)
def test_module_with_long_license_text(classifier, name):
    d = _detector({"LICENSE": packaged_text(name)}, classifier)

    assert d.module_is_redistributable()
    assert _metas(d.module_licenses()) == [("LICENSE", [name])]


def test_module_with_unknown_license(classifier):
    d = _detector({"LICENSE": UNKNOWN_LICENSE}, classifier)

    assert not d.module_is_redistributable()
    assert _metas(d.module_licenses()) == [("LICENSE", ["UNKNOWN"])]


def test_module_decision_ignores_nested_licenses(classifier):
    d = _detector({"LICENSE": MIT_LICENSE, "sub/LICENSE": UNKNOWN_LICENSE}, classifier)

    assert d.module_is_redistributable()
    assert _metas(d.module_licenses()) == [("LICENSE", ["MIT"])]


def test_module_with_mit_and_unlisted_type(classifier):
    d = _detector({"LICENSE": MIT_LICENSE, "COPYING": UNKNOWN_LICENSE}, classifier)
    assert not d.module_is_redistributable()


def test_module_with_several_root_licenses(classifier):
    d = _detector({"LICENSE-MIT": MIT_LICENSE, "LICENSE": BSD0_LICENSE}, classifier)

    assert d.module_is_redistributable()
    assert _metas(d.module_licenses()) == [("LICENSE", ["0BSD"]), ("LICENSE-MIT", ["MIT"])]


def test_all_licenses_includes_testdata_and_excludes_vendor(classifier):
    d = _detector(
        {
            "LICENSE": apache_sans_appendix(),
            "graph/formats/testdata/LICENSE": MIT_LICENSE,
            "graph/formats/sigmajs/testdata/LICENSE.txt": MIT_LICENSE,
            "vendor/dep/LICENSE": BSD0_LICENSE,
        },
        classifier,
    )

    assert d.module_is_redistributable()
    assert sorted(_metas(d.all_licenses())) == [
        ("LICENSE", ["Apache-2.0"]),
        ("graph/formats/sigmajs/testdata/LICENSE.txt", ["MIT"]),
        ("graph/formats/testdata/LICENSE", ["MIT"]),
    ]
    assert d.all_licenses()[0].file_path == "LICENSE"


# ---------------------------------------------------------------------------
# File detection
# ---------------------------------------------------------------------------

def test_detect_files(classifier):
    d = _detector(
        {
            "LICENSE": MIT_LICENSE + "\n" + BSD0_LICENSE,
            "foo/LICENSE": MIT_LICENSE + LOREM,
            "blah.go": "package foo\n\nconst Foo = 42",
        },
        classifier,
    )

    lics = d.detect_files(d.paths(WhichFiles.ALL))

    assert _metas(lics) == [("LICENSE", ["0BSD", "MIT"]), ("foo/LICENSE", ["UNKNOWN"])]
    low = lics[1]
    assert low.coverage.percent < 75
    assert [m.id for m in low.coverage.matches] == ["MIT"]


def test_oversize_license_is_unknown(classifier, caplog):
    cfg = DetectorConfig(omit_exceptions=True, max_license_size=len(MIT_LICENSE) * 10)
    small = new_classifier(cfg)
    d = _detector({"LICENSE": MIT_LICENSE, "COPYING": MIT_LICENSE * 11}, small)

    with caplog.at_level("WARNING", logger="licensegate.core.detector"):
        lics = d.detect_files(d.paths(WhichFiles.ALL))

    assert _metas(lics) == [("COPYING", ["UNKNOWN"]), ("LICENSE", ["MIT"])]
    assert lics[0].contents is None
    assert "exceeds max license size" in caplog.text
    assert not d.module_is_redistributable()


def test_read_license_file_limit():
    tree = MemoryTree({"LICENSE": "x" * 10})
    assert read_license_file(tree, "LICENSE", 10) == b"x" * 10
    with pytest.raises(LicenseReadError):
        read_license_file(tree, "LICENSE", 9)


def test_read_failure_is_unknown(classifier, caplog):
    class FlakyTree(MemoryTree):
        def read_bytes(self, path, limit):
            if path == "COPYING":
                raise OSError("disk on fire")
            return super().read_bytes(path, limit)

    with caplog.at_level("WARNING", logger="licensegate.core.detector"):
        d = Detector("m", "v1", FlakyTree({"LICENSE": MIT_LICENSE, "COPYING": MIT_LICENSE}), classifier=classifier)

    assert _metas(d.module_licenses()) == [("COPYING", ["UNKNOWN"]), ("LICENSE", ["MIT"])]
    assert not d.module_is_redistributable()
    assert "m@v1: reading file COPYING: disk on fire" in caplog.messages


def test_without_nonredistributable_data(classifier):
    d = _detector({"LICENSE": MIT_LICENSE, "COPYING": UNKNOWN_LICENSE}, classifier)
    by_path = {lic.file_path: lic for lic in d.module_licenses()}

    assert by_path["LICENSE"].without_nonredistributable_data().contents == MIT_LICENSE.encode()
    stripped = by_path["COPYING"].without_nonredistributable_data()
    assert stripped.contents is None
    assert stripped.metadata == by_path["COPYING"].metadata


# ---------------------------------------------------------------------------
# Package level
# ---------------------------------------------------------------------------

@pytest.mark.parametrize(
    "name, files, want_redist, want_metas",
    [
        (
            "no package license",
            {"LICENSE": MIT_LICENSE},
            True,
            [("LICENSE", ["MIT"])],
        ),
        (
            "package license not redistributable",
            {"LICENSE": MIT_LICENSE, "dir/pkg/License.md": UNKNOWN_LICENSE},
            False,
            [("dir/pkg/License.md", ["UNKNOWN"]), ("LICENSE", ["MIT"])],
        ),
        (
            "package redistributable, module not",
            {"LICENSE": UNKNOWN_LICENSE, "dir/pkg/License.md": MIT_LICENSE},
            False,
            [("dir/pkg/License.md", ["MIT"]), ("LICENSE", ["UNKNOWN"])],
        ),
        (
            "both redistributable",
            {"LICENSE": MIT_LICENSE, "dir/pkg/License.md": BSD0_LICENSE},
            True,
            [("dir/pkg/License.md", ["0BSD"]), ("LICENSE", ["MIT"])],
        ),
        (
            "unknown license in intermediate directory",
            {"LICENSE": MIT_LICENSE, "dir/LICENSE.txt": UNKNOWN_LICENSE, "dir/pkg/LICENSE": MIT_LICENSE},
            False,
            [("dir/LICENSE.txt", ["UNKNOWN"]), ("dir/pkg/LICENSE", ["MIT"]), ("LICENSE", ["MIT"])],
        ),
        (
            "sibling directories are ignored",
            {
                "LICENSE": MIT_LICENSE,
                "dir/pkg/LICENSE": MIT_LICENSE,
                "dir/pkg2/LICENSE": UNKNOWN_LICENSE,
                "dir/pk/LICENSE": UNKNOWN_LICENSE,
            },
            True,
            [("dir/pkg/LICENSE", ["MIT"]), ("LICENSE", ["MIT"])],
        ),
    ],
)
def test_package_info(classifier, name, files, want_redist, want_metas):
    d = _detector(files, classifier)

    redist, lics = d.package_info("dir/pkg")

    assert redist is want_redist, name
    assert _metas(lics) == want_metas


@pytest.mark.parametrize("directory", ["dir/pkg/", "./dir/pkg", "dir/x/../pkg"])
def test_package_info_cleans_directory(classifier, directory):
    d = _detector({"LICENSE": MIT_LICENSE, "dir/pkg/LICENSE": UNKNOWN_LICENSE}, classifier)

    redist, lics = d.package_info(directory)

    assert not redist
    assert _metas(lics) == [("dir/pkg/LICENSE", ["UNKNOWN"]), ("LICENSE", ["MIT"])]


@pytest.mark.parametrize("directory", ["", "."])
def test_package_info_for_module_root(classifier, directory):
    d = _detector({"LICENSE": MIT_LICENSE, "sub/LICENSE": UNKNOWN_LICENSE}, classifier)

    assert d.package_info(directory) == (True, d.module_licenses())


@pytest.mark.parametrize("directory", ["/dir/pkg", "..", "../dir", "dir/../../x"])
def test_package_info_rejects_escaping_directories(classifier, directory):
    d = _detector({"LICENSE": MIT_LICENSE}, classifier)
    assert d.package_info(directory) == (False, [])


# ---------------------------------------------------------------------------
# Lazy indexing
# ---------------------------------------------------------------------------

def test_index_is_built_once(classifier):
    tree = CountingTree({"LICENSE": MIT_LICENSE, "a/LICENSE": MIT_LICENSE, "a/b/COPYING": BSD0_LICENSE})
    d = Detector("m", "v1", tree, classifier=classifier)

    assert isinstance(d.state, Unindexed)
    after_init = tree.listings

    first = d.all_licenses()
    assert isinstance(d.state, Indexed)
    after_index = tree.listings
    assert after_index > after_init

    d.package_info("a/b")
    second = d.all_licenses()
    assert tree.listings == after_index
    assert first == second
    assert set(d.state.licenses_by_directory) == {"a", "a/b"}
    with pytest.raises(TypeError):
        d.state.licenses_by_directory["c"] = ()  # type: ignore[index]


def test_concurrent_first_use_builds_one_index(classifier):
    tree = CountingTree({"LICENSE": MIT_LICENSE, "a/LICENSE": MIT_LICENSE})
    d = Detector("m", "v1", tree, classifier=classifier)
    after_init = tree.listings
    barrier = threading.Barrier(8)
    results = []

    def worker():
        barrier.wait()
        results.append(d.package_info("a"))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(results) == 8
    assert all(r == results[0] for r in results)
    # One walk of the tree: the root and "a".
    assert tree.listings - after_init == 2


# ---------------------------------------------------------------------------
# Zip archives
# ---------------------------------------------------------------------------

def test_from_zip(classifier):
    zf = _zip(
        {
            "example.com/mod@v1.0.0/LICENSE": MIT_LICENSE,
            "example.com/mod@v1.0.0/pkg/LICENSE": BSD0_LICENSE,
            "example.com/mod@v1.0.0/main.go": "package main",
        }
    )

    d = Detector.from_zip("example.com/mod", "v1.0.0", zf, classifier=classifier)

    assert d.module_is_redistributable()
    assert _metas(d.all_licenses()) == [("LICENSE", ["MIT"]), ("pkg/LICENSE", ["0BSD"])]
    assert d.package_info("pkg") == (True, d.all_licenses()[1:] + d.module_licenses())


def test_from_zip_with_invalid_content_directory(classifier, caplog):
    zf = _zip({"a//b@v1/LICENSE": MIT_LICENSE})

    with caplog.at_level("WARNING", logger="licensegate.core.detector"):
        d = Detector.from_zip("a//b", "v1", zf, classifier=classifier)

    assert not d.module_is_redistributable()
    assert d.module_licenses() == []
    assert d.all_licenses() == []
    assert "invalid content directory" in caplog.text


def test_from_zip_with_missing_content_directory(classifier):
    zf = _zip({"other@v1/LICENSE": MIT_LICENSE})
    d = Detector.from_zip("m", "v1", zf, classifier=classifier)

    assert not d.module_is_redistributable()
    assert d.all_licenses() == []


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

CUSTOM_LICENSE = "This code may be used by anyone, for anything.\nNo warranty is given."


@pytest.fixture(scope="module")
def exception_classifier():
    table = parse_exception_table(
        {
            "modules": {
                "example.com/special": [
                    {"path": "LICENSE", "contents": CUSTOM_LICENSE, "types": ["BSD-3-Clause"]},
                ]
            },
            "ignore_files": [["example.com/ignored", "LICENSE"]],
        }
    )
    return new_classifier(DetectorConfig(), exceptions=table)


def test_module_exception_applies(exception_classifier, caplog):
    files = {
        "LICENSE": "  THIS code may be used by anyone,   for anything.\r\n\r\nNo warranty is given.\n",
        "internal/testdata/LICENSE": UNKNOWN_LICENSE,
    }
    with caplog.at_level("INFO", logger="licensegate.core.detector"):
        d = Detector("example.com/special", "v1.0.0", MemoryTree(files), classifier=exception_classifier)

    assert d.exception_applied
    assert d.module_is_redistributable()
    assert _metas(d.module_licenses()) == [("LICENSE", ["BSD-3-Clause"])]
    assert sorted(_metas(d.all_licenses())) == [
        ("LICENSE", ["BSD-3-Clause"]),
        ("internal/testdata/LICENSE", ["UNKNOWN"]),
    ]
    assert d.package_info("internal/testdata")[0] is True
    assert "accepted by exception" in caplog.text


@pytest.mark.parametrize(
    "files",
    [
        {"LICENSE": CUSTOM_LICENSE.replace("anything.", "anything!")},
        {"LICENSE": "This code may be used by anyone, for anything, forever."},
        {"COPYING": CUSTOM_LICENSE},
        {"LICENSE": CUSTOM_LICENSE, "pkg/LICENSE": MIT_LICENSE},
        {"LICENSE": CUSTOM_LICENSE, "COPYING": MIT_LICENSE},
    ],
)
def test_module_exception_fails_closed(exception_classifier, files):
    d = Detector("example.com/special", "v1.0.0", MemoryTree(files), classifier=exception_classifier)

    assert not d.exception_applied
    assert not d.module_is_redistributable()


def test_module_exception_only_for_listed_module(exception_classifier):
    d = Detector("example.com/other", "v1.0.0", MemoryTree({"LICENSE": CUSTOM_LICENSE}), classifier=exception_classifier)

    assert not d.exception_applied
    assert _metas(d.module_licenses()) == [("LICENSE", ["UNKNOWN"])]


def test_ignored_files_are_not_collected(exception_classifier):
    files = {"LICENSE": UNKNOWN_LICENSE, "COPYING": MIT_LICENSE}

    ignored = Detector("example.com/ignored", "v1", MemoryTree(files), classifier=exception_classifier)
    other = Detector("example.com/plain", "v1", MemoryTree(files), classifier=exception_classifier)

    assert ignored.module_is_redistributable()
    assert _metas(ignored.module_licenses()) == [("COPYING", ["MIT"])]
    assert not other.module_is_redistributable()
