# test_exceptions.py
# SPDX-License-Identifier: MIT
import json

import pytest

from licensegate.core.classify import new_classifier
from licensegate.core.config import DetectorConfig
from licensegate.core.exceptions import (
    ExceptionTable,
    ExceptionTableError,
    load_exception_table,
    normalize_contents,
    parse_exception_table,
)
from licensegate.core.policy import default_policy


def test_normalize_contents():
    assert normalize_contents(b"  Hello\r\n\tWORLD  \n") == "hello world"
    assert normalize_contents("a  b\n\nc") == "a b c"


def test_packaged_table_loads_and_validates():
    table = load_exception_table()
    assert [c.id for c in table.corpus] == ["Freetype"]
    assert table.types_for("Apache-2.0-Header") == ("Apache-2.0",)
    assert table.types_for("Freetype") == ("Freetype",)
    assert table.types_for("MIT") == ("MIT",)
    table.validate(default_policy().redistributable)


def test_empty_table():
    table = ExceptionTable.empty()
    assert table.corpus == ()
    assert table.override_for("example.com/mod") is None
    assert table.types_for("X") == ("X",)


def test_parse_module_overrides_normalizes_contents():
    table = parse_exception_table(
        {
            "modules": {
                "example.com/mod": [
                    {"path": "LICENSE", "contents": "Some   Custom\nLicense", "types": ["MIT"]},
                ]
            },
            "ignore_files": [["example.com/mod", "docs/LICENSE"]],
        }
    )
    (ef,) = table.override_for("example.com/mod")
    assert ef.path == "LICENSE"
    assert ef.contents == "some custom license"
    assert ef.matches(b"SOME CUSTOM   LICENSE\n")
    assert not ef.matches(b"some other license")
    assert ("example.com/mod", "docs/LICENSE") in table.ignore_files


def test_load_from_path_resolves_file_references(tmp_path):
    (tmp_path / "custom.txt").write_text("custom license words for testing only", encoding="utf-8")
    path = tmp_path / "exceptions.json"
    path.write_text(
        json.dumps({"corpus": [{"id": "Custom-1", "file": "custom.txt", "types": ["MIT"]}]}),
        encoding="utf-8",
    )

    table = load_exception_table(path)

    assert table.corpus[0].text == "custom license words for testing only"
    assert table.types_for("Custom-1") == ("MIT",)


@pytest.mark.parametrize(
    "data, match",
    [
        ({"extra": {}}, "unknown exception table keys"),
        ({"corpus": [{"id": "X", "types": ["MIT"]}]}, "needs 'file' or 'contents'"),
        ({"corpus": [{"id": "X", "file": "x.txt", "types": ["MIT"]}]}, "base directory"),
        ({"canonical_types": {"X": []}}, "non-empty list"),
        ({"ignore_files": [["only-one"]]}, "module_path, file_path"),
        ({"modules": {"m": []}}, "non-empty list"),
        ({"modules": {"m": [{"contents": "x", "types": ["MIT"]}]}}, "'path'"),
    ],
)
def test_parse_rejects_malformed_tables(data, match):
    with pytest.raises(ExceptionTableError, match=match):
        parse_exception_table(data)


def test_invalid_json_is_reported(tmp_path):
    path = tmp_path / "exceptions.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ExceptionTableError, match="invalid JSON"):
        load_exception_table(path)


def test_validate_rejects_non_redistributable_types():
    table = parse_exception_table({"canonical_types": {"Foo-Header": ["CommonsClause"]}})
    with pytest.raises(ExceptionTableError, match="CommonsClause is an exception type that is not redistributable"):
        table.validate(default_policy().redistributable)


def test_new_classifier_fails_on_bad_table():
    table = parse_exception_table(
        {"modules": {"m": [{"path": "LICENSE", "contents": "x", "types": ["Proprietary"]}]}}
    )
    with pytest.raises(ExceptionTableError):
        new_classifier(DetectorConfig(), exceptions=table)


def test_new_classifier_rejects_corpus_shadowing_catalog():
    table = parse_exception_table({"corpus": [{"id": "MIT", "contents": "some words here", "types": ["MIT"]}]})
    with pytest.raises(ExceptionTableError, match="shadows"):
        new_classifier(DetectorConfig(), exceptions=table)


def test_exceptions_path_from_config(tmp_path):
    path = tmp_path / "exceptions.json"
    path.write_text(json.dumps({"canonical_types": {"MIT-0": ["MIT"]}}), encoding="utf-8")

    clf = new_classifier(DetectorConfig(exceptions_path=str(path)))

    assert clf.exceptions.types_for("MIT-0") == ("MIT",)


def test_table_mappings_are_read_only():
    canonical = {"MIT-0": ("MIT",)}
    table = ExceptionTable(canonical_types=canonical)
    canonical["Other"] = ("MIT",)

    assert table.types_for("Other") == ("Other",)
    with pytest.raises(TypeError):
        table.canonical_types["X"] = ("MIT",)  # type: ignore[index]
    with pytest.raises(TypeError):
        load_exception_table().module_overrides["example.com/mod"] = ()  # type: ignore[index]
