from __future__ import annotations

import pytest


@pytest.fixture
def ready_bot(make_bot, attach, clock):
    def _make(**overrides):
        bot = make_bot(**overrides)
        transport = attach(bot)
        bot.timers.reset(clock.now)
        # reconciliation is not under test here
        bot.session.timers.next_channel_reload = None
        return bot, transport

    return _make


async def test_reset_schedules_first_ping_and_reconciliation(make_bot, clock):
    bot = make_bot(initial_ping_delay=15, topic_reload_interval=600)
    bot.timers.reset(clock.now)
    timers = bot.session.timers
    assert timers.next_ping == clock.now + 15
    assert timers.pong_timeout is None
    assert timers.next_topic_reload == clock.now + 600
    assert timers.next_channel_reload == clock.now


async def test_ping_sent_when_due(ready_bot, clock):
    bot, transport = ready_bot(initial_ping_delay=10, ping_timeout=5)
    clock.advance(9)
    await bot.timers.tick(clock.now)
    assert transport.sent == []

    clock.advance(1)
    await bot.timers.tick(clock.now)
    assert transport.sent == ["PING irc.example.net"]
    assert bot.session.timers.next_ping is None
    assert bot.session.timers.pong_timeout == clock.now + 5


async def test_missed_pongs_drop_connection_at_threshold(ready_bot, clock):
    bot, transport = ready_bot(initial_ping_delay=0, ping_timeout=5, ping_timeout_attempts=2)
    await bot.timers.tick(clock.now)  # PING
    clock.advance(5)
    await bot.timers.tick(clock.now)  # timeout 1, ping re-armed for the next tick
    assert bot.session.ping_timeouts == 1
    assert bot.session.timers.next_ping == clock.now
    assert bot.session.connected

    await bot.timers.tick(clock.now)  # PING again
    assert transport.sent == ["PING irc.example.net", "PING irc.example.net"]
    clock.advance(5)
    await bot.timers.tick(clock.now)  # timeout 2
    assert not bot.session.connected
    assert transport.closed
    assert bot.session.ping_timeouts == 0


@pytest.mark.parametrize("missed", [1, 2])
async def test_pong_resets_counter_and_schedules_next_ping(ready_bot, clock, missed):
    bot, _ = ready_bot(initial_ping_delay=0, ping_timeout=5, ping_timeout_attempts=5, ping_interval=90)
    for _ in range(missed):
        await bot.timers.tick(clock.now)
        clock.advance(5)
        await bot.timers.tick(clock.now)
    assert bot.session.ping_timeouts == missed

    bot.timers.on_pong(clock.now)
    assert bot.session.ping_timeouts == 0
    assert bot.session.timers.pong_timeout is None
    assert bot.session.timers.next_ping == clock.now + 90


async def test_pong_touches_liveness_file(ready_bot, clock, tmp_path):
    liveness = tmp_path / "alive"
    bot, _ = ready_bot(liveness_file=str(liveness))
    bot.timers.on_pong(clock.now)
    assert liveness.exists()


async def test_topic_reload_spaces_requests(ready_bot, clock):
    bot, transport = ready_bot(topic_reload_interval=100, initial_ping_delay=10_000)
    bot.session.joined_channels.update({"#b", "#a", "#c"})
    clock.advance(100)
    await bot.timers.tick(clock.now)
    assert transport.sent == ["TOPIC #a"]
    assert bot.session.timers.next_topic_reload == clock.now + 100

    clock.advance(0.5)
    await bot.timers.tick(clock.now)
    assert transport.sent == ["TOPIC #a"]

    clock.advance(0.5)
    await bot.timers.tick(clock.now)
    clock.advance(1)
    await bot.timers.tick(clock.now)
    assert transport.sent == ["TOPIC #a", "TOPIC #b", "TOPIC #c"]


async def test_topic_reload_without_channels_only_reschedules(ready_bot, clock):
    bot, transport = ready_bot(topic_reload_interval=100, initial_ping_delay=10_000)
    clock.advance(100)
    await bot.timers.tick(clock.now)
    assert transport.sent == []
    assert bot.session.timers.next_topic_reload == clock.now + 100


async def test_channel_reload_starts_reconciliation(ready_bot, clock):
    bot, transport = ready_bot(initial_ping_delay=10_000)
    bot.session.timers.next_channel_reload = clock.now
    await bot.timers.tick(clock.now)
    assert transport.sent == ["WHOIS logbot"]
    assert bot.session.reconciliation == set()
    assert bot.session.timers.next_channel_reload is None
