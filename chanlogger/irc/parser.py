"""IRC message parsing utilities."""

from __future__ import annotations

from dataclasses import dataclass, field

# Membership prefixes a server may put in front of a nick (NAMES) or a channel (WHOIS)
MEMBERSHIP_PREFIXES = "~&@%+"
# Owner / admin / op. Half-op (%) and voice (+) are not privileged.
PRIVILEGED_PREFIXES = "~&@"


@dataclass
class IRCMessage:
    raw: str
    prefix: str | None
    command: str | None
    params: list[str] = field(default_factory=list)

    @property
    def nick(self) -> str:
        """Nick part of the source (``nick!user@host``), or the whole source."""
        return nick_from_source(self.prefix or "")

    @property
    def trailing(self) -> str:
        return self.params[-1] if self.params else ""

    def param(self, index: int, default: str = "") -> str:
        try:
            return self.params[index]
        except IndexError:
            return default


def parse_irc_message(raw_line: str) -> IRCMessage:
    prefix: str | None = None
    command: str | None = None
    trailing: str | None = None

    original = raw_line

    if raw_line.startswith(":"):
        # Malformed lines may omit space after prefix; guard split
        remainder = raw_line[1:]
        if " " in remainder:
            prefix, raw_line = remainder.split(" ", 1)
        else:  # malformed; treat whole remainder as prefix and leave rest empty
            prefix = remainder
            raw_line = ""

    if " :" in raw_line:
        raw_line, trailing = raw_line.split(" :", 1)
    elif raw_line.startswith(":"):
        raw_line, trailing = "", raw_line[1:]

    parts = raw_line.split()
    params: list[str] = []
    if parts:
        command = parts[0].upper()
        params = parts[1:]
    if trailing is not None:
        params.append(trailing)

    return IRCMessage(raw=original, prefix=prefix, command=command, params=params)


def nick_from_source(source: str) -> str:
    return source.split("!", 1)[0]


def canonical_channel(name: str) -> str:
    """Lower-case the name and ensure exactly one leading ``#``."""
    return "#" + name.strip().lower().lstrip("#")


def is_channel(target: str) -> bool:
    return target.startswith("#")


def strip_membership_prefix(token: str) -> tuple[str, str]:
    """Split ``@+nick`` (or ``@#chan``) into (``"@+"``, ``"nick"``)."""
    index = 0
    while index < len(token) and token[index] in MEMBERSHIP_PREFIXES:
        index += 1
    return token[:index], token[index:]


def privileged_nicks(names: str) -> list[str]:
    """Return nicks from a NAMES reply holding owner/admin/op status, in order."""
    result: list[str] = []
    for token in names.split():
        sigils, nick = strip_membership_prefix(token)
        if nick and any(s in PRIVILEGED_PREFIXES for s in sigils):
            result.append(nick)
    return result


def ctcp_action(text: str) -> str | None:
    """Return the body of a ``\\x01ACTION ...\\x01`` message, else None."""
    if not text.startswith("\x01ACTION"):
        return None
    body = text[len("\x01ACTION"):]
    if body.endswith("\x01"):
        body = body[:-1]
    return body[1:] if body.startswith(" ") else body
