from __future__ import annotations

import json
import logging

import pytest

from chanlogger.bot import core
from chanlogger.bot.core import mask_secrets
from chanlogger.errors import LoginError


async def test_run_sends_quit_and_closes_everything(make_bot, attach, queue):
    bot = make_bot(quit_message="Bye for now")
    transport = attach(bot)
    bot.signals.request("quit")
    await bot.run()
    assert transport.sent == ["QUIT :Bye for now"]
    assert transport.closed
    assert bot.session.transport is None
    assert queue.closed


async def test_run_propagates_login_error_after_shutdown(make_bot, fake_transport, queue):
    bot = make_bot()

    async def factory(endpoint, *, verify=True):
        return fake_transport([":irc.example.net 433 * logbot :Nickname is already in use"])

    bot.transport_factory = factory
    with pytest.raises(LoginError):
        await bot.run()
    assert queue.closed


async def test_step_dispatches_read_line(make_bot, attach):
    bot = make_bot()
    transport = attach(bot, "PING :token")
    assert await bot.step() is True
    assert transport.sent == ["PONG :token"]
    assert bot.session.lines_received == 1


async def test_step_drops_connection_on_eof(make_bot, attach):
    bot = make_bot()
    transport = attach(bot)
    transport.disconnect_when_empty = True
    assert await bot.step() is True
    assert transport.closed
    assert not bot.session.connected


async def test_step_stops_once_quit_requested(make_bot, attach):
    bot = make_bot()
    attach(bot)
    bot.signals.request("quit")
    assert await bot.step() is False
    # quit stays raised across drains
    assert await bot.step() is False


async def test_send_without_transport_is_skipped(make_bot):
    bot = make_bot()
    await bot.send("PRIVMSG #chan :hello")
    assert bot.session.transport is None


async def test_failed_write_drops_connection(make_bot, attach, fake_transport):
    bot = make_bot()

    class BrokenTransport(fake_transport):
        async def write_line(self, line: str) -> None:
            raise BrokenPipeError("gone")

    transport = BrokenTransport()
    attach(bot)
    bot.session.transport = transport
    await bot.send("PING irc.example.net")
    assert transport.closed
    assert bot.session.transport is None


@pytest.mark.parametrize(
    ("line", "expected"),
    [
        ("PASS hunter2", "PASS ********"),
        ("PRIVMSG NickServ :IDENTIFY hunter2", "PRIVMSG NickServ :IDENTIFY ********"),
        ("PRIVMSG #chan :PASS it on", "PRIVMSG #chan :PASS it on"),
    ],
)
def test_mask_secrets(line, expected):
    assert mask_secrets(line) == expected


async def test_update_channel_persists_change(make_bot, stored_config):
    bot = make_bot(channels=["#chan"])
    assert await bot.update_channel("#Chan", password="k") is True
    assert stored_config(bot)["channels"]["#chan"]["password"] == "k"
    assert bot.config.channel("#chan").password == "k"


async def test_update_channel_skips_unchanged_and_unknown(make_bot, stored_config):
    bot = make_bot(channels={"#chan": {"password": "k"}})
    before = stored_config(bot)
    assert await bot.update_channel("#chan", password="k") is False
    assert await bot.update_channel("#ghost", disabled=True) is False
    assert stored_config(bot) == before


async def test_update_channel_creates_when_asked(make_bot, stored_config):
    bot = make_bot()
    assert await bot.update_channel("#new", create=True) is True
    assert stored_config(bot)["channels"]["#new"]["disabled"] is False


async def test_update_channel_sees_external_edits(make_bot, stored_config):
    bot = make_bot(channels=["#chan"])
    path = bot.repository.path
    data = json.loads(open(path, encoding="utf-8").read())
    data["channels"]["#manual"] = {"no_logs": True}
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=4)
    await bot.update_channel("#chan", password="k")
    saved = stored_config(bot)["channels"]
    assert saved["#manual"]["no_logs"] is True
    assert saved["#chan"]["password"] == "k"


async def test_update_channel_write_failure_is_logged(make_bot, caplog):
    bot = make_bot(channels=["#chan"])

    def broken_save(config):
        raise OSError("read-only filesystem")

    bot.repository.save = broken_save
    caplog.set_level(logging.ERROR)
    assert await bot.update_channel("#chan", password="k") is False
    assert "Could not persist channel update" in caplog.text
    assert bot.config.channel("#chan").password is None


async def test_reload_signal_starts_reconciliation(make_bot, attach, clock):
    bot = make_bot(channels=["#chan"])
    transport = attach(bot)
    bot.signals.request("reload")
    assert await bot.step() is True
    assert transport.sent == ["WHOIS logbot"]
    assert bot.membership.in_progress
    assert not bot.signals.requested("reload")


async def test_reload_signal_while_disconnected_only_reloads(make_bot, write_config, fake_transport):
    bot = make_bot()
    write_config(channels=["#late", "#later"])
    bot.signals.request("reload")
    bot.signals.request("quit")
    assert await bot.step() is False
    assert bot.config.wanted_channels() == ["#late", "#later"]


async def test_debug_dump_signal_logs_snapshot(make_bot, attach, caplog):
    bot = make_bot()
    attach(bot)
    caplog.set_level(logging.WARNING)
    bot.signals.request("debug_dump")
    await bot.step()
    assert "Debug dump" in caplog.text


async def test_rotate_logs_signal(make_bot, attach, monkeypatch):
    bot = make_bot()
    attach(bot)
    calls = []
    monkeypatch.setattr(core, "rotate_logs", lambda: calls.append(True) or True)
    bot.signals.request("rotate_logs")
    await bot.step()
    assert calls == [True]


async def test_shutdown_survives_queue_close_failure(make_bot, caplog):
    bot = make_bot()

    async def broken_close():
        raise RuntimeError("already closed")

    bot.job_queue.close = broken_close
    caplog.set_level(logging.ERROR)
    await bot.shutdown()
    assert "Job queue close failed" in caplog.text
