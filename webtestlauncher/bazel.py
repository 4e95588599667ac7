"""Locating files and directories in the surrounding test environment."""

from __future__ import annotations

import os
import tempfile

from webtestlauncher.cmdhelper import is_truthy_env

DEFAULT_WORKSPACE = "io_bazel_rules_webtesting"


def runfile(path: str) -> str:
    """Return a path to ``path`` among the runfiles of the running target.

    Looks in the current directory, the runfiles root, the runfiles root's
    workspace subdirectory and finally the runfiles manifest.
    """
    if os.path.exists(path):
        return path

    if is_truthy_env("RUNFILES_MANIFEST_ONLY"):
        try:
            return _runfile_in_manifest(path)
        except (OSError, LookupError) as err:
            raise FileNotFoundError(
                f"RUNFILES_MANIFEST_ONLY is set but unable to locate {path!r} "
                f"in RUNFILES_MANIFEST_FILE: {err}"
            ) from err

    try:
        runfiles = runfiles_path()
    except LookupError as err:
        raise FileNotFoundError(
            f"Unable to locate TEST_SRCDIR while looking for {path!r}: {err}"
        ) from err

    for candidate in (
        os.path.join(runfiles, path),
        os.path.join(runfiles, test_workspace(), path),
    ):
        if os.path.exists(candidate):
            return candidate

    try:
        return _runfile_in_manifest(path)
    except (OSError, LookupError) as err:
        raise FileNotFoundError(
            f"Unable to locate {path!r} in TEST_SRCDIR or RUNFILES_MANIFEST_FILE"
        ) from err


def runfiles_path() -> str:
    """Return the runfiles tree root from TEST_SRCDIR."""
    try:
        return os.environ["TEST_SRCDIR"]
    except KeyError:
        raise LookupError(
            "environment variable 'TEST_SRCDIR' is not defined, are you running with bazel test"
        ) from None


def new_tmp_dir(prefix: str) -> str:
    """Create and return a new temporary directory inside test_tmp_dir()."""
    return tempfile.mkdtemp(prefix=prefix, dir=test_tmp_dir())


def test_tmp_dir() -> str:
    """Return TEST_TMPDIR, or the system temporary directory if unset."""
    return os.environ.get("TEST_TMPDIR", tempfile.gettempdir())


def test_workspace() -> str:
    """Return TEST_WORKSPACE, or DEFAULT_WORKSPACE if unset."""
    return os.environ.get("TEST_WORKSPACE", DEFAULT_WORKSPACE)


def runfiles_manifest() -> str:
    """Return the path of the runfiles manifest, which must exist."""
    manifest = os.environ.get("RUNFILES_MANIFEST_FILE")
    if manifest is None:
        raise LookupError(
            "environment variable RUNFILES_MANIFEST_FILE is not defined, "
            "are you running with bazel test"
        )
    if not os.path.exists(manifest):
        raise FileNotFoundError(f"runfiles manifest {manifest!r} does not exist")
    return manifest


def _runfile_in_manifest(path: str) -> str:
    manifest = runfiles_manifest()
    with open(manifest, encoding="utf-8") as lines:
        for line in lines:
            tokens = line.rstrip("\r\n").split(" ", 1)
            if len(tokens) != 2:
                continue
            key, target = tokens

            if key == path:
                if os.path.exists(target):
                    return target
                continue

            if path.startswith(key):
                try:
                    rel = os.path.relpath(path, key)
                except ValueError:
                    continue
                candidate = os.path.join(target, rel)
                if os.path.exists(candidate):
                    return candidate

    raise FileNotFoundError(f"cannot find runfile {path!r} in manifest {manifest!r}")