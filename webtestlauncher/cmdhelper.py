"""Helpers for building environments for child processes."""

from __future__ import annotations

import os
from collections.abc import Iterable, Mapping


def update_env(env: Iterable[str], name: str, value: str) -> list[str]:
    """Return ``env`` with every definition of ``name`` replaced by ``name=value``.

    Entries are ``NAME=VALUE`` strings, as used for a child process
    environment. The new definition is appended at the end.
    """
    prefix = name + "="
    updated = [entry for entry in env if not entry.startswith(prefix)]
    updated.append(prefix + value)
    return updated


def bulk_update_env(env: Iterable[str], update: Mapping[str, str]) -> list[str]:
    """Return ``env`` with each name in ``update`` set to its value."""
    result = list(env)
    for name, value in update.items():
        result = update_env(result, name, value)
    return result


def is_truthy_env(name: str) -> bool:
    """Return True if ``name`` is set to something other than "", "0" or "false"."""
    value = os.environ.get(name, "")
    return value not in ("", "0") and value.lower() != "false"