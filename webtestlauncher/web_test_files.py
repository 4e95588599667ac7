"""Named files found among the runfiles or inside an archive among them."""

from __future__ import annotations

import json
import os
import subprocess
import threading
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from webtestlauncher import bazel

if TYPE_CHECKING:
    from webtestlauncher.metadata import Metadata


@dataclass
class WebTestFiles:
    """A set of named files, relative to the runfiles root or inside an archive.

    If ``archive_file`` is set, the paths in ``named_files`` are paths inside
    that archive, which is extracted into the test temporary directory the
    first time one of its files is asked for.
    """

    archive_file: str = ""
    strip_prefix: str = ""
    named_files: dict[str, str] = field(default_factory=dict)
    _lock: threading.Lock = field(
        default_factory=threading.Lock, init=False, repr=False, compare=False
    )
    _extracted_path: str = field(default="", init=False, repr=False, compare=False)

    def file_path(self, name: str, metadata: Metadata) -> str | None:
        """Return the path of the file called ``name``, or None if not named here.

        Extracts the archive (using the EXTRACT_EXE named file of ``metadata``)
        if needed. Raises if the file cannot be found.
        """
        filename = self.named_files.get(name)
        if filename is None:
            return None

        if not self.archive_file:
            return bazel.runfile(filename)

        path = os.path.join(self._extract(metadata), filename)
        if not os.path.exists(path):
            raise FileNotFoundError(
                f"{path!r} not found in extracted archive {self.archive_file!r}"
            )
        return path

    def _extract(self, metadata: Metadata) -> str:
        with self._lock:
            if not self._extracted_path:
                extractor = metadata.get_file_path("EXTRACT_EXE")
                archive = bazel.runfile(self.archive_file)
                target = bazel.new_tmp_dir(os.path.basename(archive))
                subprocess.run([extractor, archive, target, self.strip_prefix], check=True)
                self._extracted_path = target
            return self._extracted_path

    def __str__(self) -> str:
        named = " ".join(f"{key}:{value}" for key, value in sorted(self.named_files.items()))
        return (
            "WebTestFiles{\n"
            f"\tArchiveFile: {json.dumps(self.archive_file)},\n"
            f"\tStripPrefix: {json.dumps(self.strip_prefix)},\n"
            f"\tNamedFiles: map[{named}],\n"
            "}\n"
        )


def normalize_web_test_files(files: Iterable[WebTestFiles] | None) -> list[WebTestFiles]:
    """Merge entries that share an archive and drop entries with no named files.

    Raises ValueError if entries conflict or a name appears in more than one
    resulting entry.
    """
    merged: dict[str, WebTestFiles] = {}
    for entry in files or ():
        if not entry.named_files:
            continue
        existing = merged.get(entry.archive_file)
        merged[entry.archive_file] = (
            entry if existing is None else merge_web_test_files(entry, existing)
        )

    seen: set[str] = set()
    for entry in merged.values():
        for name in entry.named_files:
            if name in seen:
                raise ValueError(f"name {name!r} exists in multiple WebTestFiles")
            seen.add(name)
    return list(merged.values())


def merge_web_test_files(first: WebTestFiles, second: WebTestFiles) -> WebTestFiles:
    """Merge two entries for the same archive; raises ValueError on conflict."""
    if first.archive_file != second.archive_file:
        raise ValueError(
            f"expected paths ({first.archive_file!r}, {second.archive_file!r}) to be equal"
        )
    return WebTestFiles(
        archive_file=first.archive_file,
        named_files=merge_named_files(first.named_files, second.named_files),
    )


def merge_named_files(first: Mapping[str, str], second: Mapping[str, str]) -> dict[str, str]:
    """Return the union of two name maps; raises ValueError if a name differs."""
    result = dict(first)
    for key, value in second.items():
        if key in result and result[key] != value:
            raise ValueError(f"key {key!r} exists in both NamedFiles with different values")
        result[key] = value
    return result