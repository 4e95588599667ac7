"""Errors that carry the name of the component that raised them."""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any

DEFAULT_COMP = "web test launcher"


class ComponentError(Exception):
    """An error tagged with a component name and a permanence flag."""

    def __init__(self, error: BaseException, component: str, permanent: bool = False) -> None:
        super().__init__(error)
        self.error = error
        self.component = component
        self.permanent = permanent

    def __str__(self) -> str:
        marker = " (permanent)" if self.permanent else ""
        return f"[{self.component}{marker}]: {self.error}"


class MultiError(Exception):
    """Several errors reported together."""

    def __init__(self, errors: list[BaseException]) -> None:
        super().__init__(*errors)
        self.errors = list(errors)

    def __iter__(self) -> Iterator[BaseException]:
        return iter(self.errors)

    def __len__(self) -> int:
        return len(self.errors)

    @property
    def component(self) -> str:
        for err in self.errors:
            name = component(err)
            if name != DEFAULT_COMP:
                return name
        return DEFAULT_COMP

    @property
    def permanent(self) -> bool:
        return any(is_permanent(err) for err in self.errors)

    def __str__(self) -> str:
        if not self.errors:
            return ""
        return "errors:" + "".join(f"\n\t{err}" for err in self.errors)


def component(err: BaseException) -> str:
    """Return the component of ``err``, or DEFAULT_COMP if it names none."""
    name = getattr(err, "component", None)
    return name if isinstance(name, str) else DEFAULT_COMP


def is_permanent(err: BaseException) -> bool:
    """Return True if ``err`` marks itself as permanent (not worth retrying)."""
    return getattr(err, "permanent", False) is True


def join_errs(*errors: BaseException | None) -> BaseException | None:
    """Join errors into one, skipping None and flattening MultiErrors."""
    joined: list[BaseException] = []
    for err in errors:
        if err is None:
            continue
        if isinstance(err, MultiError):
            joined.extend(err.errors)
        else:
            joined.append(err)
    if not joined:
        return None
    if len(joined) == 1:
        return joined[0]
    return MultiError(joined)


def new(component_name: str, err: Any) -> BaseException:
    """Return a non-permanent error for ``err`` in ``component_name``.

    A component already carried by ``err`` wins over ``component_name``.
    """
    return _create_err(component_name, err, False)


def new_permanent(component_name: str, err: Any) -> BaseException:
    """Return a permanent error for ``err`` in ``component_name``."""
    return _create_err(component_name, err, True)


def _as_error(err: Any) -> BaseException:
    if isinstance(err, BaseException):
        return err
    if isinstance(err, str):
        return Exception(err)
    return Exception(str(err))


def _create_err(component_name: str, err: Any, permanent: bool) -> BaseException:
    error = _as_error(err)
    existing = component(error)
    was_permanent = is_permanent(error)

    if existing != DEFAULT_COMP:
        component_name = existing
    if not component_name:
        component_name = DEFAULT_COMP

    if was_permanent == permanent and existing == component_name:
        return error

    if isinstance(error, ComponentError):
        return _create_err(component_name, error.error, permanent)

    return ComponentError(error, component_name, permanent)