import json
from datetime import datetime, timezone

import pytest

from vaultops.core.config import (
    CommandTemplates,
    ConfigError,
    Settings,
    load_saved_containers,
    load_settings,
    save_containers,
    save_settings,
)
from vaultops.core.entities import NamedEntity, RunMode


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path):
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    for name in ("VAULTOPS_CONFIG", "VAULTOPS_EXECUTABLE", "VAULTOPS_TIMEOUT"):
        monkeypatch.delenv(name, raising=False)


def test_defaults_without_any_config():
    settings = load_settings()

    assert settings == Settings()
    assert settings.commands.container_lists == ("list-sf", "lsf")


def test_config_file_values(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps(
            {
                "executable": "/usr/local/bin/keeper",
                "timeout": 60,
                "owner": "a@b.io",
                "mode": "groups",
                "recursive": False,
                "groups": [{"name": "Sales", "uid": "T1"}],
                "commands": {"container_lists": "shared-folders"},
            }
        ),
        encoding="utf-8",
    )

    settings = load_settings(path)

    assert settings.executable == "/usr/local/bin/keeper"
    assert settings.timeout == 60.0
    assert settings.mode is RunMode.GROUPS
    assert settings.recursive is False
    assert settings.groups == (NamedEntity(name="Sales", uid="T1"),)
    assert settings.commands.container_lists == ("shared-folders",)
    assert settings.commands.detail == CommandTemplates().detail


def test_environment_overrides_config(tmp_path, monkeypatch):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"executable": "keeper", "timeout": 60}), encoding="utf-8")
    monkeypatch.setenv("VAULTOPS_CONFIG", str(path))
    monkeypatch.setenv("VAULTOPS_EXECUTABLE", "/opt/keeper")
    monkeypatch.setenv("VAULTOPS_TIMEOUT", "not-a-number")

    settings = load_settings()

    assert settings.executable == "/opt/keeper"
    assert settings.timeout == 60.0


def test_default_path_is_used_when_present(tmp_path):
    path = tmp_path / "xdg" / "vaultops" / "config.json"
    path.parent.mkdir(parents=True)
    path.write_text(json.dumps({"owner": "a@b.io"}), encoding="utf-8")

    assert load_settings().owner == "a@b.io"


@pytest.mark.parametrize(
    "document",
    [
        [],
        {"mode": "everything"},
        {"timeout": "soon"},
        {"groups": [{"name": "No uid"}]},
        {"commands": {"delete_all": "rm"}},
    ],
)
def test_invalid_config_is_rejected(tmp_path, document):
    path = tmp_path / "config.json"
    path.write_text(json.dumps(document), encoding="utf-8")

    with pytest.raises(ConfigError):
        load_settings(path)


def test_missing_explicit_config_is_rejected(tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        load_settings(tmp_path / "absent.json")


def test_saved_settings_load_back(tmp_path):
    path = tmp_path / "out" / "config.json"
    settings = Settings(
        owner="a@b.io",
        mode=RunMode.CONTAINERS,
        containers=(NamedEntity(name="Finance", uid="SF1"),),
        commands=CommandTemplates(detail="get --verbose {uid}"),
    )

    save_settings(settings, path)
    loaded = load_settings(path)

    assert loaded.owner == "a@b.io"
    assert loaded.mode is RunMode.CONTAINERS
    assert loaded.containers == settings.containers
    assert loaded.commands.detail == "get --verbose {uid}"
    assert "group_lists" not in json.loads(path.read_text(encoding="utf-8"))["commands"]


def test_saved_container_list_keeps_capture_time(tmp_path):
    path = tmp_path / "targets.json"
    stamp = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

    save_containers(
        path,
        [NamedEntity(name="Finance", uid="SF1")],
        groups=[NamedEntity(name="Sales", uid="T1")],
        captured_at=stamp,
    )
    saved = load_saved_containers(path)

    assert saved.captured_at == stamp
    assert saved.containers == (NamedEntity(name="Finance", uid="SF1"),)
    assert saved.groups == (NamedEntity(name="Sales", uid="T1"),)


def test_bare_container_list_has_unknown_capture_time(tmp_path):
    path = tmp_path / "targets.json"
    path.write_text(json.dumps([{"uid": "SF1"}]), encoding="utf-8")

    saved = load_saved_containers(path)

    assert saved.captured_at is None
    assert saved.containers == (NamedEntity(name="SF1", uid="SF1"),)


def test_naive_capture_time_is_read_as_utc(tmp_path):
    path = tmp_path / "targets.json"
    path.write_text(
        json.dumps({"captured_at": "2026-03-01T12:00:00", "containers": []}), encoding="utf-8"
    )

    assert load_saved_containers(path).captured_at.tzinfo is timezone.utc


def test_negative_timeout_is_rejected(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"timeout": -5}), encoding="utf-8")

    with pytest.raises(ConfigError, match="negative"):
        load_settings(path)


def test_zero_timeout_disables_the_limit(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"timeout": 0}), encoding="utf-8")

    assert load_settings(path).timeout == 0.0
