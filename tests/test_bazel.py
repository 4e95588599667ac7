import os

import pytest

from webtestlauncher.bazel import (
    DEFAULT_WORKSPACE,
    new_tmp_dir,
    runfile,
    runfiles_manifest,
    runfiles_path,
    test_tmp_dir,
    test_workspace,
)

ENV_NAMES = [
    "TEST_SRCDIR",
    "TEST_WORKSPACE",
    "TEST_TMPDIR",
    "RUNFILES_MANIFEST_FILE",
    "RUNFILES_MANIFEST_ONLY",
]


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    for name in ENV_NAMES:
        monkeypatch.delenv(name, raising=False)
    workdir = tmp_path / "cwd"
    workdir.mkdir()
    monkeypatch.chdir(workdir)
    return monkeypatch


def make_file(path, text="data"):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)
    return path


def test_runfile_existing_path_returned_unchanged(clean_env, tmp_path):
    target = make_file(tmp_path / "here.txt")
    assert runfile(str(target)) == str(target)


def test_runfile_in_srcdir(clean_env, tmp_path):
    srcdir = tmp_path / "runfiles"
    make_file(srcdir / "pkg" / "file.txt")
    clean_env.setenv("TEST_SRCDIR", str(srcdir))
    assert runfile("pkg/file.txt") == os.path.join(str(srcdir), "pkg/file.txt")


def test_runfile_in_workspace(clean_env, tmp_path):
    srcdir = tmp_path / "runfiles"
    make_file(srcdir / "my_ws" / "pkg" / "file.txt")
    clean_env.setenv("TEST_SRCDIR", str(srcdir))
    clean_env.setenv("TEST_WORKSPACE", "my_ws")
    assert runfile("pkg/file.txt") == os.path.join(str(srcdir), "my_ws", "pkg/file.txt")


def test_runfile_in_default_workspace(clean_env, tmp_path):
    srcdir = tmp_path / "runfiles"
    make_file(srcdir / DEFAULT_WORKSPACE / "a.txt")
    clean_env.setenv("TEST_SRCDIR", str(srcdir))
    assert runfile("a.txt") == os.path.join(str(srcdir), DEFAULT_WORKSPACE, "a.txt")


def test_runfile_without_srcdir_raises(clean_env):
    with pytest.raises(FileNotFoundError):
        runfile("missing/file.txt")


def test_runfile_falls_back_to_manifest(clean_env, tmp_path):
    srcdir = tmp_path / "runfiles"
    srcdir.mkdir()
    real = make_file(tmp_path / "real" / "thing.bin")
    manifest = make_file(tmp_path / "MANIFEST", f"ws/thing.bin {real}\n")
    clean_env.setenv("TEST_SRCDIR", str(srcdir))
    clean_env.setenv("RUNFILES_MANIFEST_FILE", str(manifest))
    assert runfile("ws/thing.bin") == str(real)


def test_runfile_manifest_only_prefix_match(clean_env, tmp_path):
    real_dir = tmp_path / "real_dir"
    make_file(real_dir / "inner.txt")
    manifest = make_file(tmp_path / "MANIFEST", f"bad-line\nws/dir {real_dir}\n")
    clean_env.setenv("RUNFILES_MANIFEST_ONLY", "1")
    clean_env.setenv("RUNFILES_MANIFEST_FILE", str(manifest))
    assert runfile("ws/dir/inner.txt") == os.path.join(str(real_dir), "inner.txt")


def test_runfile_manifest_skips_missing_targets(clean_env, tmp_path):
    real = make_file(tmp_path / "present.txt")
    missing = tmp_path / "absent.txt"
    manifest = make_file(tmp_path / "MANIFEST", f"ws/x {missing}\nws/x {real}\n")
    clean_env.setenv("RUNFILES_MANIFEST_ONLY", "true")
    clean_env.setenv("RUNFILES_MANIFEST_FILE", str(manifest))
    assert runfile("ws/x") == str(real)


def test_runfile_manifest_only_not_found(clean_env, tmp_path):
    manifest = make_file(tmp_path / "MANIFEST", "other/path /nowhere\n")
    clean_env.setenv("RUNFILES_MANIFEST_ONLY", "1")
    clean_env.setenv("RUNFILES_MANIFEST_FILE", str(manifest))
    with pytest.raises(FileNotFoundError) as info:
        runfile("ws/x")
    assert "RUNFILES_MANIFEST_ONLY" in str(info.value)


def test_runfiles_path(clean_env, tmp_path):
    clean_env.setenv("TEST_SRCDIR", str(tmp_path))
    assert runfiles_path() == str(tmp_path)


def test_runfiles_path_missing(clean_env):
    with pytest.raises(LookupError):
        runfiles_path()


def test_runfiles_manifest_missing_env(clean_env):
    with pytest.raises(LookupError):
        runfiles_manifest()


def test_runfiles_manifest_missing_file(clean_env, tmp_path):
    clean_env.setenv("RUNFILES_MANIFEST_FILE", str(tmp_path / "nope"))
    with pytest.raises(FileNotFoundError):
        runfiles_manifest()


def test_runfiles_manifest_present(clean_env, tmp_path):
    manifest = make_file(tmp_path / "MANIFEST", "")
    clean_env.setenv("RUNFILES_MANIFEST_FILE", str(manifest))
    assert runfiles_manifest() == str(manifest)


def test_test_workspace(clean_env):
    assert test_workspace() == DEFAULT_WORKSPACE
    clean_env.setenv("TEST_WORKSPACE", "other_ws")
    assert test_workspace() == "other_ws"


def test_test_tmp_dir_from_env(clean_env, tmp_path):
    clean_env.setenv("TEST_TMPDIR", str(tmp_path))
    assert test_tmp_dir() == str(tmp_path)


def test_new_tmp_dir_created_inside_test_tmp_dir(clean_env, tmp_path):
    clean_env.setenv("TEST_TMPDIR", str(tmp_path))
    created = new_tmp_dir("archive.zip")
    assert os.path.isdir(created)
    assert os.path.dirname(created) == str(tmp_path)
    assert os.path.basename(created).startswith("archive.zip")
    assert new_tmp_dir("archive.zip") != created