import os
import stat

import pytest

from webtestlauncher.metadata import Metadata
from webtestlauncher.web_test_files import (
    WebTestFiles,
    merge_named_files,
    merge_web_test_files,
    normalize_web_test_files,
)


@pytest.mark.parametrize(
    "first, second, expected",
    [
        ({}, {}, {}),
        ({"a": "b"}, {"a": "b"}, {"a": "b"}),
        (
            {"a": "A", "b": "B", "c": "C"},
            {"a": "A", "d": "D", "e": "E"},
            {"a": "A", "b": "B", "c": "C", "d": "D", "e": "E"},
        ),
    ],
)
def test_merge_named_files(first, second, expected):
    assert merge_named_files(first, second) == expected


@pytest.mark.parametrize(
    "first, second",
    [
        ({"a": "b"}, {"a": "c"}),
        ({"a": "A", "b": "B", "c": "C"}, {"a": "A", "d": "D", "e": "E", "c": "X"}),
    ],
)
def test_merge_named_files_conflict(first, second):
    with pytest.raises(ValueError):
        merge_named_files(first, second)


@pytest.mark.parametrize(
    "first, second, expected",
    [
        (WebTestFiles(), WebTestFiles(), WebTestFiles()),
        (
            WebTestFiles(archive_file="a", named_files={"a": "A"}),
            WebTestFiles(archive_file="a", named_files={"a": "A"}),
            WebTestFiles(archive_file="a", named_files={"a": "A"}),
        ),
        (
            WebTestFiles(archive_file="a", named_files={"a": "A", "b": "B", "c": "C"}),
            WebTestFiles(archive_file="a", named_files={"a": "A", "d": "D", "e": "E"}),
            WebTestFiles(
                archive_file="a",
                named_files={"a": "A", "b": "B", "c": "C", "d": "D", "e": "E"},
            ),
        ),
    ],
)
def test_merge_web_test_files(first, second, expected):
    assert merge_web_test_files(first, second) == expected


@pytest.mark.parametrize(
    "first, second",
    [
        (WebTestFiles(archive_file="a"), WebTestFiles(archive_file="b")),
        (
            WebTestFiles(archive_file="a", named_files={"a": "A"}),
            WebTestFiles(archive_file="a", named_files={"a": "X"}),
        ),
        (
            WebTestFiles(archive_file="a", named_files={"a": "A", "b": "B", "c": "C"}),
            WebTestFiles(archive_file="a", named_files={"a": "A", "d": "D", "e": "E", "c": "X"}),
        ),
    ],
)
def test_merge_web_test_files_conflict(first, second):
    with pytest.raises(ValueError):
        merge_web_test_files(first, second)


def test_normalize_empty():
    assert normalize_web_test_files(None) == []


def test_normalize_merges_same_archive():
    result = normalize_web_test_files(
        [
            WebTestFiles(archive_file="a", named_files={"a": "A"}),
            WebTestFiles(archive_file="a", named_files={"a": "A"}),
        ]
    )
    assert result == [WebTestFiles(archive_file="a", named_files={"a": "A"})]


def test_normalize_multiple_success():
    result = normalize_web_test_files(
        [
            WebTestFiles(archive_file="a", named_files={"a": "A"}),
            WebTestFiles(archive_file="b", named_files={"b": "B"}),
            WebTestFiles(archive_file="a", named_files={"a": "A", "d": "D"}),
            WebTestFiles(archive_file="c", named_files={"c": "C"}),
        ]
    )
    assert result == [
        WebTestFiles(archive_file="a", named_files={"a": "A", "d": "D"}),
        WebTestFiles(archive_file="b", named_files={"b": "B"}),
        WebTestFiles(archive_file="c", named_files={"c": "C"}),
    ]


@pytest.mark.parametrize(
    "files",
    [
        [
            WebTestFiles(archive_file="a", named_files={"a": "A"}),
            WebTestFiles(archive_file="a", named_files={"a": "X"}),
        ],
        [
            WebTestFiles(archive_file="a", named_files={"a": "A"}),
            WebTestFiles(archive_file="b", named_files={"b": "B"}),
            WebTestFiles(archive_file="a", named_files={"d": "D"}),
            WebTestFiles(archive_file="c", named_files={"a": "A", "c": "C"}),
        ],
    ],
)
def test_normalize_failure(files):
    with pytest.raises(ValueError):
        normalize_web_test_files(files)


def test_normalize_drops_entries_without_names():
    result = normalize_web_test_files(
        [WebTestFiles(archive_file="a"), WebTestFiles(archive_file="b", named_files={"b": "B"})]
    )
    assert [entry.archive_file for entry in result] == ["b"]


def test_str_format():
    files = WebTestFiles(archive_file="a", named_files={"b": "B"})
    assert str(files) == (
        'WebTestFiles{\n\tArchiveFile: "a",\n\tStripPrefix: "",\n\tNamedFiles: map[b:B],\n}\n'
    )


def test_file_path_unknown_name_is_none():
    files = WebTestFiles(named_files={"a": "A"})
    assert files.file_path("b", Metadata()) is None


def test_file_path_in_runfiles(tmp_path):
    target = tmp_path / "driver"
    target.write_text("x")
    files = WebTestFiles(named_files={"DRIVER": str(target)})
    assert files.file_path("DRIVER", Metadata()) == str(target)


def test_file_path_missing_raises(monkeypatch):
    monkeypatch.delenv("TEST_SRCDIR", raising=False)
    monkeypatch.delenv("RUNFILES_MANIFEST_ONLY", raising=False)
    files = WebTestFiles(named_files={"X": "does/not/exist"})
    with pytest.raises(FileNotFoundError):
        files.file_path("X", Metadata())


def _extractor(tmp_path):
    counter = tmp_path / "runs"
    script = tmp_path / "extract.sh"
    script.write_text(
        "#!/bin/sh\n"
        'printf \'%s\' "$3" > "$2/inner.txt"\n'
        f'printf x >> "{counter}"\n'
    )
    script.chmod(script.stat().st_mode | stat.S_IXUSR)
    return script, counter


def test_file_path_extracts_archive_once(tmp_path, monkeypatch):
    tmpdir = tmp_path / "tmp"
    tmpdir.mkdir()
    monkeypatch.setenv("TEST_TMPDIR", str(tmpdir))
    script, counter = _extractor(tmp_path)
    archive = tmp_path / "bundle.zip"
    archive.write_bytes(b"")
    archived = WebTestFiles(
        archive_file=str(archive), strip_prefix="pfx", named_files={"INNER": "inner.txt"}
    )
    metadata = Metadata(
        web_test_files=[WebTestFiles(named_files={"EXTRACT_EXE": str(script)}), archived]
    )

    first = archived.file_path("INNER", metadata)
    second = archived.file_path("INNER", metadata)

    assert first == second
    assert os.path.dirname(first).startswith(str(tmpdir))
    with open(first) as handle:
        assert handle.read() == "pfx"
    assert counter.read_text() == "x"


def test_file_path_missing_in_archive(tmp_path, monkeypatch):
    monkeypatch.setenv("TEST_TMPDIR", str(tmp_path))
    script, _ = _extractor(tmp_path)
    archive = tmp_path / "bundle.zip"
    archive.write_bytes(b"")
    archived = WebTestFiles(archive_file=str(archive), named_files={"OTHER": "other.txt"})
    metadata = Metadata(
        web_test_files=[WebTestFiles(named_files={"EXTRACT_EXE": str(script)}), archived]
    )
    with pytest.raises(FileNotFoundError):
        archived.file_path("OTHER", metadata)