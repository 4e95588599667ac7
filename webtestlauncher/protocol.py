"""Wire-level pieces of the WebDriver protocol: requests, responses and shapes."""

from __future__ import annotations

import json
import math
import posixpath
from dataclasses import dataclass, fields
from typing import Any
from urllib.parse import urljoin, urlsplit, urlunsplit

import requests

from webtestlauncher.capabilities import Capabilities
from webtestlauncher.errors import new, new_permanent
from webtestlauncher.webdriver_errors import COMP_NAME, error_from_response


def _lookup(mapping: dict[str, Any], key: str) -> tuple[bool, Any]:
    if key in mapping:
        return True, mapping[key]
    lowered = key.lower()
    for name, value in mapping.items():
        if isinstance(name, str) and name.lower() == lowered:
            return True, value
    return False, None


def _number(name: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{name} must be a number, found {value!r}")
    return float(value)


@dataclass
class Rectangle:
    """A rectangle with floating point position and size."""

    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0

    @classmethod
    def from_mapping(cls, mapping: dict[str, Any], base: Rectangle | None = None) -> Rectangle:
        """Build a rectangle from a JSON object, keys matched without regard to case.

        Fields missing from ``mapping`` are taken from ``base``.
        """
        if not isinstance(mapping, dict):
            raise ValueError(f"rectangle must be a JSON object, found {mapping!r}")
        start = base if base is not None else cls()
        values = {}
        for f in fields(cls):
            found, value = _lookup(mapping, f.name)
            values[f.name] = _number(f.name, value) if found else getattr(start, f.name)
        return cls(**values)

    def to_mapping(self) -> dict[str, float]:
        """Return the JSON object form of this rectangle."""
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}

    def to_image_rectangle(self) -> tuple[int, int, int, int]:
        """Return the smallest integer (left, top, right, bottom) box covering this one."""
        x0, y0 = math.trunc(self.x), math.trunc(self.y)
        x1, y1 = math.ceil(self.x + self.width), math.ceil(self.y + self.height)
        return (min(x0, x1), min(y0, y1), max(x0, x1), max(y0, y1))


@dataclass
class LogEntry:
    """One entry from a remote end's logs."""

    timestamp: float = 0.0
    level: str = ""
    message: str = ""

    @classmethod
    def from_mapping(cls, mapping: dict[str, Any]) -> LogEntry:
        """Build a log entry from a JSON object."""
        if not isinstance(mapping, dict):
            raise ValueError(f"log entry must be a JSON object, found {mapping!r}")
        entry = cls()
        found, value = _lookup(mapping, "timestamp")
        if found and value is not None:
            entry.timestamp = _number("timestamp", value)
        for name in ("level", "message"):
            found, value = _lookup(mapping, name)
            if found and value is not None:
                if not isinstance(value, str):
                    raise ValueError(f"{name} must be a string, found {value!r}")
                setattr(entry, name, value)
        return entry


@dataclass
class WireResponse:
    """The body of a WebDriver response."""

    status: int | None = None
    session_id: str = ""
    value: Any = None
    error: str = ""
    message: str = ""
    stack_trace: Any = None

    def is_error(self) -> bool:
        """Return True if this response reports an error in either protocol."""
        if self.status:
            return True
        if self.error:
            return True
        if isinstance(self.value, dict):
            err = self.value.get("error")
            return isinstance(err, str) and err != ""
        return False


def command_url(address: str, *endpoints: str) -> str:
    """Resolve the joined ``endpoints`` against ``address``, without a trailing slash."""
    parts = [part for part in endpoints if part]
    relative = posixpath.normpath("/".join(parts)) if parts else ""
    if relative == ".":
        relative = ""
    resolved = urlsplit(urljoin(address, relative))
    return urlunsplit(resolved._replace(path=resolved.path.rstrip("/")))


def _text(body: bytes | str) -> str:
    return body.decode("utf-8", "replace") if isinstance(body, bytes) else body


def _string_field(doc: dict[str, Any], key: str, text: str) -> str:
    value = doc.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise new(COMP_NAME, ValueError(f"{key} must be a string unmarshaling {text}"))
    return value


def process_response(body: bytes | str) -> WireResponse:
    """Parse a response body, raising the error it reports if it reports one."""
    text = _text(body)
    try:
        doc = json.loads(body)
    except ValueError as err:
        raise new(COMP_NAME, ValueError(f"{err} unmarshaling {text}")) from err
    if not isinstance(doc, dict):
        raise new(COMP_NAME, ValueError(f"response is not a JSON object unmarshaling {text}"))

    status = doc.get("status")
    if status is not None and (isinstance(status, bool) or not isinstance(status, int)):
        raise new(COMP_NAME, ValueError(f"status must be an integer unmarshaling {text}"))

    resp = WireResponse(
        status=status,
        session_id=_string_field(doc, "sessionId", text),
        value=doc.get("value"),
        error=_string_field(doc, "error", text),
        message=_string_field(doc, "message", text),
        stack_trace=doc.get("stacktrace"),
    )
    if resp.is_error():
        raise error_from_response(resp)
    return resp


def _encode(obj: Any) -> Any:
    if isinstance(obj, Rectangle):
        return obj.to_mapping()
    raise TypeError(f"{type(obj).__name__} is not JSON serializable")


def _do_request(
    session: requests.Session,
    method: str,
    url: str,
    timeout: float | None,
    data: bytes | None = None,
    headers: dict[str, str] | None = None,
) -> WireResponse:
    sent = {
        "Cache-Control": "no-cache",
        "Accept": "application/json",
        "Accept-Encoding": "identity",
        **(headers or {}),
    }
    try:
        resp = session.request(method, url, data=data, headers=sent, timeout=timeout)
    except requests.RequestException as err:
        raise new(COMP_NAME, err) from err
    with resp:
        return process_response(resp.content)


def post(
    session: requests.Session, url: str, body: Any, timeout: float | None = None
) -> WireResponse:
    """POST ``body`` as JSON to ``url`` and return the parsed response."""
    try:
        data = json.dumps(body, default=_encode).encode("utf-8")
    except (TypeError, ValueError) as err:
        raise new_permanent(COMP_NAME, err) from err
    return _do_request(
        session,
        "POST",
        url,
        timeout,
        data=data,
        headers={"Content-Type": "application/json; charset=utf-8"},
    )


def get(session: requests.Session, url: str, timeout: float | None = None) -> WireResponse:
    """GET ``url`` and return the parsed response."""
    return _do_request(session, "GET", url, timeout)


def delete(session: requests.Session, url: str, timeout: float | None = None) -> WireResponse:
    """DELETE ``url`` and return the parsed response."""
    return _do_request(session, "DELETE", url, timeout)


def script_timeout(caps: Capabilities | None) -> float:
    """Return the script timeout in seconds requested in ``caps``, or 0."""
    if caps is None:
        return 0.0
    timeouts = caps.always_match.get("timeouts")
    if not isinstance(timeouts, dict):
        return 0.0
    script = timeouts.get("script")
    if isinstance(script, bool) or not isinstance(script, (int, float)):
        return 0.0
    return script / 1000