from __future__ import annotations

import pytest
from pydantic import ValidationError

from chanlogger.config.model import BotConfig, ChannelConfig

BASE = {"network": "example", "host": "irc.example.net", "nick": "logbot"}


def test_defaults():
    config = BotConfig(**BASE)
    assert config.port == 6667
    assert config.ident_name == "logbot"
    assert config.ping_timeout_attempts == 3
    assert config.channels == {}
    assert config.blocked == []


def test_channel_list_is_accepted():
    config = BotConfig(**BASE, channels=["#A", "b"])
    assert set(config.channels) == {"#a", "#b"}


def test_first_spelling_wins_on_collision():
    config = BotConfig(**BASE, channels={"#Dup": {"password": "first"}, "#dup": {"password": "second"}})
    assert config.channels["#dup"].password == "first"


def test_blank_channel_names_are_dropped():
    config = BotConfig(**BASE, channels={"#": {}, "  ": {}, "#ok": {}})
    assert list(config.channels) == ["#ok"]


def test_blocked_entries_trimmed():
    config = BotConfig(**BASE, blocked=["  *!*@bad ", "", 5, "#Chan"])
    assert config.blocked == ["*!*@bad", "#Chan"]


def test_wanted_channels_skip_disabled_and_archived():
    config = BotConfig(
        **BASE,
        channels={"#b": {}, "#a": {}, "#off": {"disabled": True}, "#gone": {"archived": True}},
    )
    assert config.wanted_channels() == ["#a", "#b"]


@pytest.mark.parametrize(
    "override",
    [{"port": 0}, {"nick": ""}, {"ping_interval": 0}, {"channels": "nope"}, {"blocked": "x"}],
)
def test_invalid_values_rejected(override):
    with pytest.raises(ValidationError):
        BotConfig(**{**BASE, **override})


def test_to_dict_omits_unset_optionals():
    data = BotConfig(**BASE, channels=["#a"]).to_dict()
    assert "server_password" not in data
    assert data["channels"]["#a"] == {"disabled": False, "archived": False, "no_logs": False}


def test_channel_config_wanted():
    assert ChannelConfig().wanted
    assert not ChannelConfig(disabled=True).wanted
    assert not ChannelConfig(archived=True).wanted
