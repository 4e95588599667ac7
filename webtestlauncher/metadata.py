"""Browser metadata: capabilities, labels and named files used to launch a browser."""

from __future__ import annotations

import dataclasses
import json
import os
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from webtestlauncher import httphelper, merging
from webtestlauncher.web_test_files import WebTestFiles, normalize_web_test_files

RECORD_NEVER = "never"
RECORD_FAILED = "failed"
RECORD_ALWAYS = "always"

_STRING_FIELDS = (
    ("environment", "environment"),
    ("label", "label"),
    ("browser_label", "browserLabel"),
    ("test_label", "testLabel"),
    ("config_label", "configLabel"),
)


class Extension(ABC):
    """Extra metadata fields, read from the "extension" JSON object."""

    @abstractmethod
    def merge(self, other: Extension | None) -> Extension:
        """Return this merged with ``other``; values in ``other`` take precedence.

        Neither object may be changed, though either may be returned.
        """

    @abstractmethod
    def normalize(self) -> None:
        """Normalize and validate the extension data."""

    def _load(self, data: Any) -> None:
        if not isinstance(data, dict):
            raise ValueError(f"extension must be a JSON object, found {data!r}")
        if dataclasses.is_dataclass(self):
            names = {f.name for f in dataclasses.fields(self)}
        else:
            names = set(vars(self))
        for key, value in data.items():
            if key in names:
                setattr(self, key, value)

    def _dump(self) -> Any:
        if dataclasses.is_dataclass(self):
            return dataclasses.asdict(self)
        return dict(vars(self))


class MapExtension(dict, Extension):
    """An extension that keeps whatever fields it was given as a plain mapping."""

    def merge(self, other: Extension | None) -> Extension:
        if other is None:
            return self
        if not self:
            return other
        if not isinstance(other, MapExtension) or not other:
            return self
        return MapExtension({**self, **other})

    def normalize(self) -> None:
        return None

    def _load(self, data: Any) -> None:
        if not isinstance(data, dict):
            raise ValueError(f"extension must be a JSON object, found {data!r}")
        self.clear()
        self.update(data)

    def _dump(self) -> Any:
        return dict(self)


@dataclass
class Metadata:
    """The metadata needed to launch a browser."""

    capabilities: dict[str, Any] | None = None
    environment: str = ""
    label: str = ""
    browser_label: str = ""
    test_label: str = ""
    config_label: str = ""
    debugger_port: int = 0
    web_test_files: list[WebTestFiles] = field(default_factory=list)
    extension: Extension | None = None

    def to_file(self, filename: str | os.PathLike[str]) -> None:
        """Write this metadata to ``filename`` as JSON."""
        with open(filename, "wb") as out:
            out.write(self.to_bytes())

    def to_bytes(self) -> bytes:
        """Serialize this metadata as indented JSON."""
        doc: dict[str, Any] = {}
        if self.capabilities:
            doc["capabilities"] = self.capabilities
        for attr, key in _STRING_FIELDS:
            value = getattr(self, attr)
            if value:
                doc[key] = value
        if self.debugger_port:
            doc["debuggerPort"] = self.debugger_port
        if self.web_test_files:
            doc["webTestFiles"] = [_dump_web_test_files(f) for f in self.web_test_files]
        if self.extension is not None:
            doc["extension"] = self.extension._dump()
        return json.dumps(doc, indent=2, ensure_ascii=False).encode("utf-8")

    def get_file_path(self, name: str) -> str:
        """Return the path of the named file, extracting an archive if needed.

        Raises LookupError if no entry names ``name``.
        """
        for files in self.web_test_files:
            path = files.file_path(name, self)
            if path is not None:
                return path
        raise LookupError(f"no named file {name!r}")

    def resolver(self) -> Callable[[str, str], str]:
        """Return a resolver for ENV, FILE, WTL and METADATA capability variables."""
        metadata_resolver = merging.map_resolver(
            "METADATA",
            {
                "LABEL": self.label,
                "TEST_LABEL": self.test_label,
                "BROWSER_LABEL": self.browser_label,
                "CONFIG_LABEL": self.config_label,
                "ENVIRONMENT": self.environment,
            },
        )

        def resolve(prefix: str, name: str) -> str:
            if prefix == "ENV":
                try:
                    return os.environ[name]
                except KeyError:
                    raise LookupError(f"environment variable {name!r} is not defined") from None
            if prefix == "FILE":
                return self.get_file_path(name)
            if prefix == "WTL":
                if name == "FQDN":
                    return httphelper.fqdn()
                raise LookupError(f"WTL:{name!r} is not defined")
            return metadata_resolver(prefix, name)

        return resolve

    def extension_map(self) -> dict[str, Any] | None:
        """Return the extension as a dict if it is a MapExtension, else None."""
        if isinstance(self.extension, MapExtension):
            return dict(self.extension)
        return None


def merge(m1: Metadata, m2: Metadata) -> Metadata:
    """Return a new Metadata with ``m2`` merged over ``m1``."""
    extension = m1.extension
    if extension is None:
        extension = m2.extension
    elif m2.extension is not None:
        extension = extension.merge(m2.extension)

    return Metadata(
        capabilities=merging.merge(m1.capabilities, m2.capabilities),
        environment=m2.environment or m1.environment,
        label=m2.label or m1.label,
        browser_label=m2.browser_label or m1.browser_label,
        test_label=m2.test_label or m1.test_label,
        config_label=m2.config_label or m1.config_label,
        debugger_port=m2.debugger_port or m1.debugger_port,
        web_test_files=normalize_web_test_files([*m1.web_test_files, *m2.web_test_files]),
        extension=extension,
    )


def from_file(filename: str | os.PathLike[str], ext: Extension | None = None) -> Metadata:
    """Read Metadata from a JSON file, loading its extension into ``ext``."""
    with open(filename, "rb") as source:
        return from_bytes(source.read(), ext)


def from_bytes(data: bytes | str, ext: Extension | None = None) -> Metadata:
    """Read Metadata from JSON, loading its extension into ``ext``.

    Without ``ext`` the extension is kept as a MapExtension. Raises
    ValueError on malformed input or conflicting named files.
    """
    doc = json.loads(data)
    if not isinstance(doc, dict):
        raise ValueError("metadata must be a JSON object")

    extension: Extension | None = ext if ext is not None else MapExtension()
    if "extension" in doc:
        raw = doc["extension"]
        if raw is None:
            extension = None
        else:
            extension._load(raw)

    capabilities = _typed(doc, "capabilities", dict, None)
    metadata = Metadata(
        capabilities=capabilities,
        debugger_port=_typed(doc, "debuggerPort", int, 0),
        web_test_files=normalize_web_test_files(
            _load_web_test_files(entry) for entry in _typed(doc, "webTestFiles", list, [])
        ),
        extension=extension,
    )
    for attr, key in _STRING_FIELDS:
        setattr(metadata, attr, _typed(doc, key, str, ""))

    if metadata.extension is not None:
        metadata.extension.normalize()
    return metadata


def _typed(doc: dict[str, Any], key: str, kind: type, default: Any) -> Any:
    value = doc.get(key)
    if value is None:
        return default
    if not isinstance(value, kind) or (kind is int and isinstance(value, bool)):
        raise ValueError(f"{key} must be of type {kind.__name__}, found {value!r}")
    return value


def _load_web_test_files(entry: Any) -> WebTestFiles:
    if not isinstance(entry, dict):
        raise ValueError(f"webTestFiles entries must be JSON objects, found {entry!r}")
    named = _typed(entry, "namedFiles", dict, {})
    if not all(isinstance(v, str) for v in named.values()):
        raise ValueError(f"namedFiles values must be strings, found {named!r}")
    return WebTestFiles(
        archive_file=_typed(entry, "archiveFile", str, ""),
        strip_prefix=_typed(entry, "stripPrefix", str, ""),
        named_files=dict(named),
    )


def _dump_web_test_files(files: WebTestFiles) -> dict[str, Any]:
    doc: dict[str, Any] = {}
    if files.archive_file:
        doc["archiveFile"] = files.archive_file
    if files.strip_prefix:
        doc["stripPrefix"] = files.strip_prefix
    doc["namedFiles"] = files.named_files
    return doc