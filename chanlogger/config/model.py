from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..irc.parser import canonical_channel


class ErrorAnnotation(BaseModel):
    """Last join/send failure the server reported for a channel."""

    timestamp: float
    code: str
    message: str = ""


class KickAnnotation(BaseModel):
    timestamp: float
    by: str
    reason: str


class InviteAnnotation(BaseModel):
    timestamp: float
    by: str


class ChannelConfig(BaseModel):
    """Per-channel settings and the facts the bot learned about the channel.

    Attributes:
        disabled: Set after a kick; the reconciler stops rejoining.
        archived: Set after a ban; the reconciler stops rejoining.
        no_logs: Stay in the channel but publish nothing.
        password: Channel key, learned from a MODE reply or set by hand.
        error: Last join failure reported by the server.
        kick: Last kick of the bot.
        invite: Last accepted invite.
    """

    model_config = ConfigDict(extra="allow")

    disabled: bool = False
    archived: bool = False
    no_logs: bool = False
    password: str | None = None
    error: ErrorAnnotation | None = None
    kick: KickAnnotation | None = None
    invite: InviteAnnotation | None = None

    @property
    def wanted(self) -> bool:
        return not (self.disabled or self.archived)


class BotConfig(BaseModel):
    """Represents the whole configuration file for one network connection."""

    model_config = ConfigDict(extra="allow")

    network: str = Field(min_length=1)
    host: str = Field(min_length=1)
    port: int = Field(default=6667, gt=0, lt=65536)
    tls_verify: bool = True
    nick: str = Field(min_length=1, max_length=30)
    ident: str | None = None
    realname: str = "IRC channel logger"
    server_password: str | None = None
    nickserv_password: str | None = None
    quit_message: str = "Shutting down"

    log_url: str | None = None
    help_response: str | None = None
    blocked: list[str] = Field(default_factory=list)

    initial_ping_delay: int = Field(default=30, ge=0)
    ping_interval: int = Field(default=90, gt=0)
    ping_timeout: int = Field(default=30, gt=0)
    ping_timeout_attempts: int = Field(default=3, gt=0)
    topic_reload_interval: int = Field(default=3600, gt=0)
    channel_reload_interval: int = Field(default=300, gt=0)
    invite_cooldown: int = Field(default=3600, ge=0)
    max_reconnect_interval: int = Field(default=300, gt=0)

    cache_file: str | None = None
    liveness_file: str | None = None
    pid_file: str | None = None
    log_file: str | None = None
    log_max_bytes: int | None = None
    log_backup_count: int | None = None

    queue_url: str | None = None
    queue_spool: str | None = None

    channels: dict[str, ChannelConfig] = Field(default_factory=dict)

    @field_validator("channels", mode="before")
    @classmethod
    def canonicalize_channels(cls, v: Any) -> dict[str, Any]:
        """Key channels by canonical name; the first spelling wins on collision."""
        if v is None:
            return {}
        if isinstance(v, list):
            v = {name: {} for name in v}
        if not isinstance(v, Mapping):
            raise ValueError("channels must be a mapping of name -> settings")
        result: dict[str, Any] = {}
        for name, settings in v.items():
            if not isinstance(name, str) or not name.strip("# "):
                continue
            key = canonical_channel(name)
            if key not in result:
                result[key] = settings if settings is not None else {}
        return result

    @field_validator("blocked", mode="before")
    @classmethod
    def clean_blocked(cls, v: Any) -> list[str]:
        if v is None:
            return []
        if not isinstance(v, list):
            raise ValueError("blocked must be a list")
        return [entry.strip() for entry in v if isinstance(entry, str) and entry.strip()]

    @property
    def ident_name(self) -> str:
        return self.ident or self.nick

    def channel(self, name: str) -> ChannelConfig | None:
        return self.channels.get(canonical_channel(name))

    def wanted_channels(self) -> list[str]:
        return sorted(name for name, ch in self.channels.items() if ch.wanted)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> BotConfig:
        return cls.model_validate(dict(data))

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)
