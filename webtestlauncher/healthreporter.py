"""Polling until a component reports itself healthy."""

from __future__ import annotations

import logging
import threading
import time
from abc import ABC, abstractmethod

from webtestlauncher.errors import DEFAULT_COMP, component, is_permanent, new

log = logging.getLogger(__name__)

_POLL_MIN = 0.05
_POLL_MAX = 1.0
_POLL_DEFAULT = _POLL_MIN
_POLL_COUNT = 20

DEADLINE_EXCEEDED = "context deadline exceeded"
CANCELED = "context canceled"


class HealthReporter(ABC):
    """Something with a name that can check whether it is healthy."""

    @abstractmethod
    def name(self) -> str:
        """Return the name used in errors."""

    @abstractmethod
    def healthy(self) -> None:
        """Return if healthy; raise an exception describing the problem if not."""


def _done_reason(deadline: float | None, cancel: threading.Event | None) -> str | None:
    if cancel is not None and cancel.is_set():
        return CANCELED
    if deadline is not None and time.monotonic() >= deadline:
        return DEADLINE_EXCEEDED
    return None


def wait_for_healthy(
    reporter: HealthReporter,
    timeout: float | None = None,
    cancel: threading.Event | None = None,
) -> None:
    """Poll ``reporter`` until healthy, the timeout passes or ``cancel`` is set.

    Raises the reporter's error at once if it is permanent, otherwise a
    component error naming why the wait ended.
    """
    if timeout is not None:
        deadline: float | None = time.monotonic() + timeout
        poll = min(max(timeout / _POLL_COUNT, _POLL_MIN), _POLL_MAX)
    else:
        deadline = None
        poll = _POLL_DEFAULT
        log.warning(
            "%s WaitForHealthy being called without deadline; will potentially wait forever.",
            reporter.name(),
        )

    waiter = cancel if cancel is not None else threading.Event()

    while True:
        try:
            reporter.healthy()
            return
        except Exception as err:  # noqa: BLE001 - any failure means unhealthy
            failure = err

        if is_permanent(failure):
            raise failure

        comp = component(failure)
        if comp == DEFAULT_COMP:
            comp = reporter.name()

        reason = _done_reason(deadline, cancel)
        if reason is None:
            delay = poll
            if deadline is not None:
                delay = min(poll, max(deadline - time.monotonic(), 0.0))
            waiter.wait(delay)
            reason = _done_reason(deadline, cancel)

        if reason is not None:
            raise new(comp, Exception(f"{reason} waiting for healthy: {failure}")) from failure