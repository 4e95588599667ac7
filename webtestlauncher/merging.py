"""Deep merging of JSON-like capability maps and %PREFIX:NAME% resolution."""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from typing import Any

Resolver = Callable[[str, str], str]

_LEGACY_KEYS = {
    "chromeOptions": "goog:chromeOptions",
    "loggingPrefs": "goog:loggingPrefs",
}

_VAR_PATTERN = re.compile(r"%(\w+):(\w+)%", re.ASCII)


def merge(m1: dict[str, Any] | None, m2: dict[str, Any] | None) -> dict[str, Any] | None:
    """Merge two JSON objects, with values from ``m2`` taking precedence.

    For keys present in both: objects are merged recursively, lists are
    concatenated ("args" lists get option-aware merging), and otherwise
    the value from ``m2`` wins. Legacy keys chromeOptions and loggingPrefs
    are renamed to their goog: forms.
    """
    if m1 is None:
        return m2
    if m2 is None:
        return m1
    merged: dict[str, Any] = {}
    for key, value in m1.items():
        merged[_LEGACY_KEYS.get(key, key)] = value
    for key, value in m2.items():
        key = _LEGACY_KEYS.get(key, key)
        merged[key] = _merge_values(merged.get(key), value, key)
    return merged


def _merge_values(first: Any, second: Any, name: str) -> Any:
    if isinstance(first, dict) and isinstance(second, dict):
        return merge(first, second)
    if isinstance(first, list) and isinstance(second, list):
        if name == "args":
            return _merge_args(first, second)
        return [*first, *second]
    return second


def _option_name(arg: str) -> str:
    return arg.split("=", 1)[0]


def _merge_args(first: list[Any], second: list[Any]) -> list[Any]:
    """Merge command-line argument lists.

    Options (starting with "-") in ``second`` replace same-named options in
    ``first``; "REMOVE:--name" in ``second`` drops "--name" from ``first``.
    """
    overridden: set[str] = set()
    kept_second: list[Any] = []
    for arg in second:
        if isinstance(arg, str):
            if arg.startswith("REMOVE:--"):
                overridden.add(arg[len("REMOVE:"):])
                continue
            if arg.startswith("-"):
                overridden.add(_option_name(arg))
        kept_second.append(arg)

    kept_first = [
        arg
        for arg in first
        if not (isinstance(arg, str) and arg.startswith("-") and _option_name(arg) in overridden)
    ]
    return kept_first + kept_second


def no_op_resolver(prefix: str, name: str) -> str:
    """Resolve to the unchanged ``%prefix:name%`` text."""
    return f"%{prefix}:{name}%"


def map_resolver(prefix: str, names: Mapping[str, str]) -> Resolver:
    """Return a resolver that looks up ``prefix`` names in ``names``.

    Other prefixes are left unchanged; an unknown name raises LookupError.
    """

    def resolver(p: str, n: str) -> str:
        if p == prefix:
            try:
                return names[n]
            except KeyError:
                raise LookupError(f"unable to resolve {p}:{n}") from None
        return no_op_resolver(p, n)

    return resolver


def resolve_value(value: Any, resolver: Resolver) -> Any:
    """Return a copy of ``value`` with every string resolved by ``resolver``."""
    if isinstance(value, str):
        return resolve_string(value, resolver)
    if isinstance(value, list):
        return [resolve_value(item, resolver) for item in value]
    if isinstance(value, dict):
        return {key: resolve_value(item, resolver) for key, item in value.items()}
    return value


def resolve_string(text: str, resolver: Resolver) -> str:
    """Replace every ``%PREFIX:NAME%`` in ``text`` with ``resolver(PREFIX, NAME)``."""
    parts: list[str] = []
    previous = 0
    for match in _VAR_PATTERN.finditer(text):
        parts.append(text[previous:match.start()])
        previous = match.end()
        parts.append(resolver(match.group(1), match.group(2)))
    parts.append(text[previous:])
    return "".join(parts)