import pytest

from webtestlauncher.cmdhelper import bulk_update_env, is_truthy_env, update_env


def test_update_env_appends_new_variable():
    env = ["HOME=/home/someone", "PATH=/bin"]
    assert update_env(env, "DISPLAY", ":1") == ["HOME=/home/someone", "PATH=/bin", "DISPLAY=:1"]


def test_update_env_replaces_existing_definitions():
    env = ["A=1", "B=2", "A=3"]
    assert update_env(env, "A", "9") == ["B=2", "A=9"]


def test_update_env_does_not_match_longer_names():
    env = ["AB=1", "A=2"]
    assert update_env(env, "A", "3") == ["AB=1", "A=3"]


def test_update_env_leaves_input_untouched():
    env = ["A=1", "B=2"]
    update_env(env, "A", "5")
    assert env == ["A=1", "B=2"]


def test_bulk_update_env_sets_every_name():
    env = ["A=1", "B=2", "C=3"]
    result = bulk_update_env(env, {"A": "x", "D": "y"})
    assert sorted(result) == sorted(["B=2", "C=3", "A=x", "D=y"])
    assert len(result) == 4


def test_bulk_update_env_with_empty_update_copies():
    env = ["A=1"]
    result = bulk_update_env(env, {})
    assert result == env
    assert result is not env


@pytest.mark.parametrize(
    "value, expected",
    [
        ("", False),
        ("0", False),
        ("false", False),
        ("FALSE", False),
        ("False", False),
        ("1", True),
        ("true", True),
        ("yes", True),
    ],
)
def test_is_truthy_env(monkeypatch, value, expected):
    monkeypatch.setenv("WTL_TRUTHY_CHECK", value)
    assert is_truthy_env("WTL_TRUTHY_CHECK") is expected


def test_is_truthy_env_unset(monkeypatch):
    monkeypatch.delenv("WTL_TRUTHY_CHECK", raising=False)
    assert is_truthy_env("WTL_TRUTHY_CHECK") is False