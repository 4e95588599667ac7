"""Errors reported by a WebDriver remote end, in both W3C and JWP form."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Protocol

COMP_NAME = "WebDriver Client"

_UNKNOWN_STATUS = 13
_UNKNOWN_ERROR = "unknown error"


@dataclass(frozen=True)
class ErrorDatum:
    """How one kind of error is named and numbered by the two protocols."""

    status: int
    error: str
    http_status: int
    w3c: bool


ERROR_DATA: tuple[ErrorDatum, ...] = (
    ErrorDatum(0, "Success", 200, False),
    ErrorDatum(6, "invalid session id", 404, True),
    ErrorDatum(7, "no such element", 404, True),
    ErrorDatum(8, "no such frame", 404, True),
    ErrorDatum(9, "unknown command", 404, True),
    ErrorDatum(10, "stale element reference", 400, True),
    ErrorDatum(11, "ElementNotVisible", 400, False),
    ErrorDatum(12, "invalid element state", 400, True),
    ErrorDatum(13, "unknown error", 500, True),
    ErrorDatum(15, "element not selectable", 400, True),
    ErrorDatum(17, "javascript error", 500, True),
    ErrorDatum(19, "XPathLookupError", 400, False),
    ErrorDatum(21, "timeout", 408, True),
    ErrorDatum(23, "no such window", 400, True),
    ErrorDatum(24, "invalid cookie domain", 400, True),
    ErrorDatum(25, "unable to set cookie", 500, True),
    ErrorDatum(26, "unexpected alert open", 500, True),
    ErrorDatum(27, "no such alert", 400, True),
    ErrorDatum(28, "script timeout", 408, True),
    ErrorDatum(29, "invalid element coordinates", 400, True),
    ErrorDatum(30, "IMENotAvailable", 500, False),
    ErrorDatum(31, "IMEEngineActivationFailed", 500, False),
    ErrorDatum(32, "invalid selector", 400, True),
    ErrorDatum(33, "session not created", 500, True),
    ErrorDatum(34, "move target out of bounds", 400, True),
    ErrorDatum(-1, "element not interactable", 400, True),
    ErrorDatum(-1, "invalid argument", 400, True),
    ErrorDatum(-1, "no such cookie", 404, True),
    ErrorDatum(-1, "unable to capture screen", 500, True),
    ErrorDatum(-1, "unknown method", 405, True),
    ErrorDatum(-1, "unsupported operation", 500, True),
)


class _ResponseLike(Protocol):
    status: int | None
    value: Any
    error: str
    message: str
    stack_trace: Any


class WebDriverError(Exception):
    """An error returned by a WebDriver remote end."""

    component = COMP_NAME

    def __init__(
        self,
        datum: ErrorDatum,
        value: Any = None,
        message: str = "",
        stack_trace: Any = None,
    ) -> None:
        super().__init__(message)
        self.datum = datum
        self.value = value
        self.message = message
        self.stack_trace = stack_trace

    def __str__(self) -> str:
        shown = self.value
        if isinstance(shown, dict) and "message" in shown:
            shown = shown["message"]
        if self.datum.w3c:
            return f"[{self.component}] ({self.datum.error}) {shown}"
        return f"[{self.component}] ({self.datum.status}) {shown}"


def _by_error(name: str) -> ErrorDatum | None:
    return next((d for d in ERROR_DATA if d.error == name), None)


def _by_status(status: int) -> ErrorDatum | None:
    return next((d for d in ERROR_DATA if d.status == status), None)


def _datum_for(resp: _ResponseLike) -> ErrorDatum:
    if resp.error:
        found = _by_error(resp.error)
        if found is not None:
            return found
    if isinstance(resp.value, dict):
        name = resp.value.get("error")
        if isinstance(name, str) and name:
            found = _by_error(name)
            if found is not None:
                return found
    if resp.status:
        found = _by_status(resp.status)
        if found is not None:
            return found
    status = resp.status if resp.status is not None else -1
    return ErrorDatum(status, resp.error, 500, False)


def _message_for(resp: _ResponseLike) -> str:
    if resp.message:
        return resp.message
    if isinstance(resp.value, dict):
        message = resp.value.get("message")
        if isinstance(message, str):
            return message
    return ""


def _stack_trace_for(resp: _ResponseLike) -> Any:
    if resp.stack_trace is not None:
        return resp.stack_trace
    if isinstance(resp.value, dict):
        return resp.value.get("stacktrace")
    return None


def _value_for(resp: _ResponseLike) -> Any:
    if resp.value is not None:
        return resp.value
    value: dict[str, Any] = {}
    if resp.message:
        value["message"] = resp.message
    if resp.stack_trace is not None:
        value["stacktrace"] = resp.stack_trace
    return value


def error_from_response(resp: _ResponseLike) -> WebDriverError:
    """Build the error described by a parsed error response."""
    return WebDriverError(
        _datum_for(resp),
        value=_value_for(resp),
        message=_message_for(resp),
        stack_trace=_stack_trace_for(resp),
    )


def is_webdriver_error(err: BaseException) -> bool:
    """Return True if ``err`` came from a WebDriver remote end."""
    return isinstance(err, WebDriverError)


def error_status(err: BaseException) -> int:
    """Return the JWP status code for ``err`` (13, unknown error, if none)."""
    if not isinstance(err, WebDriverError) or err.datum.status <= 0:
        return _UNKNOWN_STATUS
    return err.datum.status


def error_value(err: BaseException) -> Any:
    """Return the WebDriver value for ``err``."""
    if not isinstance(err, WebDriverError):
        return {"message": str(err)}
    return err.value


def error_stack_trace(err: BaseException) -> Any:
    """Return the remote stack trace of ``err``, or None."""
    if not isinstance(err, WebDriverError):
        return None
    return err.stack_trace


def error_message(err: BaseException) -> str:
    """Return the message of ``err``."""
    if not isinstance(err, WebDriverError):
        return str(err)
    return err.message


def error_error(err: BaseException) -> str:
    """Return the W3C error name for ``err`` ("unknown error" if none)."""
    if not isinstance(err, WebDriverError):
        return _UNKNOWN_ERROR
    if not err.datum.w3c or not err.datum.error:
        return _UNKNOWN_ERROR
    return err.datum.error


def error_http_status(err: BaseException) -> int:
    """Return the HTTP status code associated with ``err``."""
    if not isinstance(err, WebDriverError):
        return 500
    return err.datum.http_status


def marshal_error(err: BaseException) -> bytes:
    """Return the JSON response body that reports ``err``."""
    body: dict[str, Any] = {
        "status": error_status(err),
        "value": error_value(err),
        "error": error_error(err),
        "message": error_message(err),
    }
    stack_trace = error_stack_trace(err)
    if stack_trace is not None:
        body["stacktrace"] = stack_trace
    return json.dumps(body, sort_keys=True, separators=(",", ":")).encode("utf-8")


def _message_value(message: str) -> Any:
    return {"message": message} if message else None


def error_from_status(status: int, message: str) -> WebDriverError:
    """Build an error from a JWP status code and message."""
    datum = _by_status(status) or ErrorDatum(status, "", 500, False)
    return WebDriverError(datum, value=_message_value(message), message=message)


def error_from_error(error: str, message: str) -> WebDriverError:
    """Build an error from a W3C error name and message."""
    datum = _by_error(error) or ErrorDatum(_UNKNOWN_STATUS, error, 500, False)
    return WebDriverError(datum, value=_message_value(message), message=message)