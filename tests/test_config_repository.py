from __future__ import annotations

import json
import stat
from pathlib import Path

import pytest

from chanlogger.config.model import BotConfig
from chanlogger.config.repository import ConfigRepository
from chanlogger.errors import ConfigError

BASE = {"network": "example", "host": "irc.example.net", "nick": "logbot"}


def write(path: Path, data: dict) -> None:
    path.write_text(json.dumps(data), encoding="utf-8")


def test_load_validates_and_canonicalizes(tmp_path: Path):
    cfg = tmp_path / "net.json"
    write(cfg, {**BASE, "channels": {"#Chan": {"password": "k"}, "other": {}}})
    config = ConfigRepository(cfg).load()
    assert set(config.channels) == {"#chan", "#other"}
    assert config.channel("#CHAN").password == "k"


@pytest.mark.parametrize("content", ["{broken", "[]", json.dumps({"network": "x"})])
def test_load_invalid_raises_config_error(tmp_path: Path, content: str):
    cfg = tmp_path / "net.json"
    cfg.write_text(content, encoding="utf-8")
    with pytest.raises(ConfigError):
        ConfigRepository(cfg).load()


def test_load_missing_file(tmp_path: Path):
    with pytest.raises(ConfigError):
        ConfigRepository(tmp_path / "absent.json").load()


def test_repository_rejects_bad_path_type():
    with pytest.raises(TypeError):
        ConfigRepository(123)  # type: ignore[arg-type]


def test_repository_skip_checksum(tmp_path: Path):
    cfg = tmp_path / "net.json"
    write(cfg, BASE)
    repo = ConfigRepository(cfg)
    config = repo.load()
    assert repo.save(config) is False

    changed = config.model_copy(update={"quit_message": "bye"})
    assert repo.save(changed) is True
    mtime_first = cfg.stat().st_mtime
    assert repo.save(changed) is False
    assert cfg.stat().st_mtime == mtime_first


def test_save_is_private_and_round_trips_unknown_keys(tmp_path: Path):
    cfg = tmp_path / "net.json"
    write(cfg, {**BASE, "operator_note": "keep me", "channels": {"#a": {"custom": 1}}})
    repo = ConfigRepository(cfg)
    config = repo.load()
    repo.save(config.model_copy(update={"quit_message": "bye"}))
    data = json.loads(cfg.read_text(encoding="utf-8"))
    assert data["operator_note"] == "keep me"
    assert data["channels"]["#a"]["custom"] == 1
    assert stat.S_IMODE(cfg.stat().st_mode) == 0o600


def test_repository_backup_rotation(tmp_path: Path):
    cfg = tmp_path / "net.json"
    write(cfg, BASE)
    repo = ConfigRepository(cfg)
    config = repo.load()
    for i in range(5):
        repo.save(config.model_copy(update={"quit_message": f"bye {i}"}))
    backups = sorted(tmp_path.glob("net.json.bak.*"))
    assert len(backups) <= 3, f"Expected at most 3 backups, found {len(backups)}"
    data = json.loads(cfg.read_text(encoding="utf-8"))
    assert data["quit_message"] == "bye 4"
    assert not (tmp_path / "net.json.lock").exists()


def test_reload_returns_current_when_unchanged(tmp_path: Path):
    cfg = tmp_path / "net.json"
    write(cfg, BASE)
    repo = ConfigRepository(cfg)
    config = repo.load()
    assert repo.reload(config) is config


def test_reload_picks_up_changes(tmp_path: Path):
    cfg = tmp_path / "net.json"
    write(cfg, BASE)
    repo = ConfigRepository(cfg)
    config = repo.load()
    write(cfg, {**BASE, "channels": ["#new", "#another"]})
    fresh = repo.reload(config)
    assert fresh is not config
    assert fresh.wanted_channels() == ["#another", "#new"]


def test_reload_keeps_current_on_broken_file(tmp_path: Path):
    cfg = tmp_path / "net.json"
    write(cfg, BASE)
    repo = ConfigRepository(cfg)
    config = repo.load()
    cfg.write_text("{ this is not json at all", encoding="utf-8")
    assert repo.reload(config) is config
    cfg.unlink()
    assert repo.reload(config) is config


def test_save_creates_missing_directory(tmp_path: Path):
    cfg = tmp_path / "nested" / "net.json"
    repo = ConfigRepository(cfg)
    assert repo.save(BotConfig(**BASE)) is True
    assert json.loads(cfg.read_text(encoding="utf-8"))["nick"] == "logbot"
