"""A small WebDriver client for driving one browser session."""

from __future__ import annotations

import base64
import io
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any
from urllib.parse import urljoin

import requests
from PIL import Image

from webtestlauncher import protocol
from webtestlauncher.capabilities import Capabilities, to_mixed_mode
from webtestlauncher.errors import is_permanent, new
from webtestlauncher.healthreporter import HealthReporter
from webtestlauncher.protocol import LogEntry, Rectangle
from webtestlauncher.webdriver_errors import COMP_NAME

log = logging.getLogger(__name__)

SELENIUM_ELEMENT_KEY = "ELEMENT"
W3C_ELEMENT_KEY = "element-6066-11e4-a52e-4f735466cecf"

_BOUNDS_SCRIPT = """
var element = arguments[0];
var rect = element.getBoundingClientRect();
var top = rect.top; var left = rect.left;
element = window.frameElement;
var currentWindow = window.parent;
while (element != null) {
  var currentRect = element.getBoundingClientRect();
  top += currentRect.top;
  left += currentRect.left;
  element = currentWindow.frameElement;
  currentWindow = currentWindow.parent;
}
return {"X": left, "Y": top, "Width": rect.width, "Height": rect.height};
"""

_SCROLL_SCRIPT = "return arguments[0].scrollIntoView(true);"


def _expect(value: Any, kind: type | tuple[type, ...], what: str) -> Any:
    if not isinstance(value, kind):
        raise new(COMP_NAME, ValueError(f"expected {what}, found {value!r}"))
    return value


def _decode_png(encoded: str) -> Image.Image:
    data = base64.b64decode(encoded, validate=True)
    image = Image.open(io.BytesIO(data), formats=["PNG"])
    image.load()
    return image


class WebDriver(HealthReporter):
    """A running WebDriver session."""

    def __init__(
        self,
        address: str,
        session_id: str,
        capabilities: dict[str, Any],
        session: requests.Session,
        script_timeout: float = 0.0,
        w3c: bool = True,
    ) -> None:
        self.address = address
        self.session_id = session_id
        self.capabilities = capabilities
        self.script_timeout = script_timeout
        self.w3c = w3c
        self._session = session

    def name(self) -> str:
        return COMP_NAME

    def healthy(self) -> None:
        """Raise if the browser cannot run a trivial script."""
        self.execute_script("return navigator.userAgent")

    def command_url(self, *endpoints: str) -> str:
        """Return the fully resolved URL of an endpoint of this session."""
        return protocol.command_url(self.address, *endpoints)

    def _post(self, suffix: str, body: Any) -> Any:
        return protocol.post(self._session, self.command_url(suffix), body).value

    def _get(self, suffix: str) -> Any:
        return protocol.get(self._session, self.command_url(suffix)).value

    def _delete(self, suffix: str) -> Any:
        return protocol.delete(self._session, self.command_url(suffix)).value

    def execute_script(self, script: str, args: Sequence[Any] | None = None) -> Any:
        """Run ``script`` in the browser and return its result."""
        command = "execute/sync" if self.w3c else "execute"
        return self._post(command, {"script": script, "args": list(args or [])})

    def execute_script_async(self, script: str, args: Sequence[Any] | None = None) -> Any:
        """Run ``script`` asynchronously and return the value passed to its callback."""
        command = "execute/async" if self.w3c else "execute_async"
        return self._post(command, {"script": script, "args": list(args or [])})

    def execute_script_async_with_timeout(
        self, timeout: float, script: str, args: Sequence[Any] | None = None
    ) -> Any:
        """Run ``script`` asynchronously with a script timeout of ``timeout`` seconds.

        The session's script timeout is restored afterwards if one was set.
        """
        try:
            self._set_script_timeout(timeout)
        except Exception:  # noqa: BLE001 - best effort, as the call may still succeed
            log.warning("error setting script timeout to %ss", timeout)
        try:
            return self.execute_script_async(script, args)
        finally:
            if self.script_timeout != 0:
                try:
                    self._set_script_timeout(self.script_timeout)
                except Exception:  # noqa: BLE001
                    log.warning("error restoring script timeout to %ss", self.script_timeout)

    def quit(self) -> None:
        """Close the session."""
        self._delete("")

    def set_script_timeout(self, timeout: float) -> None:
        """Set how many seconds an async script may take to call back."""
        self.script_timeout = timeout
        self._set_script_timeout(timeout)

    def _set_script_timeout(self, timeout: float) -> None:
        millis = int(timeout * 1000)
        if self.w3c:
            self._post("timeouts", {"script": millis})
        else:
            self._post("timeouts", {"type": "script", "ms": millis})

    def logs(self, log_type: str) -> list[LogEntry]:
        """Return the remote end's logs of ``log_type``."""
        value = self._post("log", {"type": log_type})
        if value is None:
            return []
        entries = _expect(value, list, "a list of log entries")
        try:
            return [LogEntry.from_mapping(entry) for entry in entries]
        except ValueError as err:
            raise new(COMP_NAME, err) from err

    def current_url(self) -> str:
        """Return the URL the current window is showing."""
        return _expect(self._get("url"), str, "a URL string")

    def page_source(self) -> str:
        """Return the source of the active document."""
        return _expect(self._get("source"), str, "a page source string")

    def navigate_to(self, url: str) -> None:
        """Load ``url`` in the current window."""
        self._post("url", {"url": str(url)})

    def screenshot(self) -> Image.Image:
        """Return a screenshot of the current window."""
        return _decode_png(_expect(self._get("screenshot"), str, "base64 PNG data"))

    def element_screenshot(self, element: WebElement) -> Image.Image:
        """Return a screenshot of the visible part of ``element``."""
        value = self._get(f"element/{element.element_id}/screenshot")
        return _decode_png(_expect(value, str, "base64 PNG data"))

    def element_get_text(self, element: WebElement) -> str:
        """Return the text of ``element``."""
        return _expect(self._get(f"element/{element.element_id}/text"), str, "element text")

    def element_send_keys(self, element: WebElement, keys: str) -> None:
        """Type ``keys`` into ``element``."""
        self._post(f"element/{element.element_id}/value", {"text": keys})

    def window_handles(self) -> list[str]:
        """Return the handles of all open windows."""
        command = "window/handles" if self.w3c else "window_handles"
        value = self._get(command)
        if value is None:
            return []
        handles = _expect(value, list, "a list of window handles")
        for handle in handles:
            _expect(handle, str, "a window handle string")
        return list(handles)

    def current_window_handle(self) -> str:
        """Return the handle of the active window."""
        command = "window" if self.w3c else "window_handle"
        return _expect(self._get(command), str, "a window handle string")

    def switch_to_frame(self, frame: int | None) -> None:
        """Switch to the top frame (None) or to the frame with index ``frame``."""
        if frame is not None and (isinstance(frame, bool) or not isinstance(frame, int)):
            raise TypeError(f"invalid type {type(frame).__name__}")
        self._post("frame", {"id": frame})

    def switch_to_parent_frame(self) -> None:
        """Switch to the parent of the current browsing context."""
        self._post("frame/parent", {})

    def switch_to_window(self, handle: str) -> None:
        """Switch to the window with ``handle``."""
        key = "handle" if self.w3c else "name"
        self._post("window", {key: handle})

    def element_from_id(self, element_id: str) -> WebElement:
        """Return an element of this session with ``element_id``."""
        return WebElement(self, element_id)

    def element_from_map(self, mapping: Mapping[str, Any]) -> WebElement:
        """Return the element a JSON object refers to.

        Raises if ``mapping`` does not look like an element reference.
        """
        key = W3C_ELEMENT_KEY if W3C_ELEMENT_KEY in mapping else SELENIUM_ELEMENT_KEY
        element_id = mapping.get(key)
        if not isinstance(element_id, str):
            raise new(
                self.name(),
                ValueError(f"map {dict(mapping)!r} does not appear to represent a WebElement"),
            )
        return self.element_from_id(element_id)

    def _rect(self, value: Any, base: Rectangle | None = None) -> Rectangle:
        try:
            return Rectangle.from_mapping(value, base)
        except ValueError as err:
            raise new(COMP_NAME, err) from err

    def get_window_rect(self) -> Rectangle:
        """Return the current window's position and size."""
        if self.w3c:
            return self._rect(self._get("window/rect"))
        size = self._rect(self._get("window/current/size"))
        return self._rect(self._get("window/current/position"), size)

    def set_window_rect(self, rect: Rectangle) -> None:
        """Move and resize the current window."""
        if self.w3c:
            self._post("window/rect", rect)
            return
        self.set_window_size(rect.width, rect.height)
        self.set_window_position(rect.x, rect.y)

    def set_window_size(self, width: float, height: float) -> None:
        """Resize the current window."""
        command = "window/rect" if self.w3c else "window/current/size"
        self._post(command, {"width": float(width), "height": float(height)})

    def set_window_position(self, x: float, y: float) -> None:
        """Move the current window."""
        command = "window/rect" if self.w3c else "window/current/position"
        self._post(command, {"x": float(x), "y": float(y)})

    def execute_cdp_command(self, cmd: str, params: Mapping[str, Any] | None) -> Any:
        """Send a Chrome DevTools Protocol command and return its result."""
        return self._post(
            "goog/cdp/execute",
            {"cmd": cmd, "params": dict(params) if params is not None else None},
        )


@dataclass
class WebElement:
    """A DOM element in a WebDriver session."""

    driver: WebDriver
    element_id: str

    def to_map(self) -> dict[str, str]:
        """Return the JSON form used to pass this element to other commands."""
        return {SELENIUM_ELEMENT_KEY: self.element_id, W3C_ELEMENT_KEY: self.element_id}

    def scroll_into_view(self) -> None:
        """Scroll this element to the top of the viewport."""
        self.driver.execute_script(_SCROLL_SCRIPT, [self.to_map()])

    def bounds(self) -> Rectangle:
        """Return this element's bounds within the viewport, without scrolling."""
        try:
            value = self.driver.execute_script(_BOUNDS_SCRIPT, [self.to_map()])
            return self.driver._rect(value)
        except Exception as err:
            log.warning("Err: %s", err)
            raise


def _open_session(
    session: requests.Session,
    full_url: str,
    body: dict[str, Any],
    requested_caps: Capabilities | None,
) -> WebDriver:
    resp = protocol.post(session, protocol.command_url(full_url), body)

    value = resp.value
    if not isinstance(value, dict):
        raise new(COMP_NAME, ValueError(f"value field must be an object in {resp!r}"))

    session_id = resp.session_id
    if session_id:
        caps = value
    else:
        session_id = value.get("sessionId")
        if not isinstance(session_id, str) or not session_id:
            raise new(COMP_NAME, ValueError(f"no session id specified in {resp!r}"))
        caps = value.get("capabilities")
        if not isinstance(caps, dict):
            raise new(COMP_NAME, ValueError(f"no capabilities in value of {resp!r}"))

    driver = WebDriver(
        address=urljoin(full_url, session_id + "/"),
        session_id=session_id,
        capabilities=caps,
        session=session,
        script_timeout=protocol.script_timeout(requested_caps),
        w3c=resp.status is None,
    )

    try:
        driver.healthy()
    except Exception:
        try:
            driver.quit()
        except Exception as quit_err:  # noqa: BLE001
            log.warning("error quitting WebDriver session: %s", quit_err)
        raise
    return driver


def create_session(
    addr: str, attempts: int, requested_caps: Capabilities | None = None
) -> WebDriver:
    """Open a session on the WebDriver server at ``addr`` and check it works.

    Tries up to ``attempts`` times, stopping early on a permanent error.
    """
    body = to_mixed_mode(requested_caps)
    full_url = urljoin(addr, "session/")
    session = requests.Session()

    for remaining in range(attempts, 0, -1):
        try:
            return _open_session(session, full_url, body, requested_caps)
        except Exception as err:
            if is_permanent(err) or remaining <= 1:
                raise

    raise new(COMP_NAME, ValueError(f"attempts {attempts} <= 0"))