"""Tests for the scheduler loop and logging setup."""

import asyncio
import io
import json
import logging
import os
import signal
import sys
import threading
from datetime import timedelta

import pytest

from conftest import FakeResponse, FakeSession
from zaros_checkin import checkin_daemon
from zaros_checkin.checkin_daemon import (
    CheckinDaemon,
    IsoTimestampFormatter,
    LOG_FORMAT,
    configure_logging,
)
from zaros_checkin.claim_state import ClaimRecord, ClaimStateStore
from zaros_checkin.eligibility import compute_eligibility
from zaros_checkin.orchestrator import ClaimAttemptResult, ClaimOrchestrator
from zaros_checkin.zaros_client import ZarosClient


class BlockingOrchestrator:
    """Claimable unless told otherwise; each attempt blocks until released."""

    def __init__(self, store, clock):
        self.store = store
        self.clock = clock
        self.release = threading.Event()
        self.attempts = 0
        self.reconciles = 0
        self.fail = False
        self.claimable = True

    def eligibility(self, now=None):
        now = now or self.clock()
        if self.claimable:
            return compute_eligibility(None, now)
        return compute_eligibility(ClaimRecord.starting_at(now), now)

    def attempt_claim(self):
        self.attempts += 1
        self.release.wait(timeout=5)
        if self.fail:
            raise RuntimeError("worker blew up")
        return ClaimAttemptResult(False, "nothing")

    def reconcile(self):
        self.reconciles += 1
        return False


@pytest.fixture
def root_logging():
    """Put the root logger back the way pytest configured it."""
    root = logging.getLogger()
    saved_handlers = list(root.handlers)
    saved_level = root.level
    yield root
    for handler in list(root.handlers):
        if handler not in saved_handlers:
            handler.close()
    root.handlers[:] = saved_handlers
    root.setLevel(saved_level)


def make_daemon(config, orchestrator, clock, **kwargs):
    return CheckinDaemon(
        config,
        orchestrator,
        clock=clock,
        clear_screen=False,
        stream=io.StringIO(),
        **kwargs,
    )


def test_overlapping_ticks_start_one_claim(config, clock):
    orch = BlockingOrchestrator(ClaimStateStore(config.state_file), clock)
    daemon = make_daemon(config, orch, clock)

    async def scenario():
        first = daemon.tick()
        second = daemon.tick()
        await asyncio.sleep(0.05)
        third = daemon.tick()
        assert first is not None
        assert second is None and third is None
        assert daemon.claim_in_progress is True

        orch.release.set()
        await first
        assert daemon.claim_in_progress is False

        fourth = daemon.tick()
        assert fourth is not None
        await fourth

    asyncio.run(scenario())
    assert orch.attempts == 2


def test_failed_attempt_clears_in_progress_flag(config, clock):
    orch = BlockingOrchestrator(ClaimStateStore(config.state_file), clock)
    orch.fail = True
    orch.release.set()
    daemon = make_daemon(config, orch, clock)

    async def scenario():
        task = daemon.tick()
        result = await task
        assert result is None
        assert daemon.claim_in_progress is False

    asyncio.run(scenario())


def test_server_check_skipped_while_claiming(config, clock):
    orch = BlockingOrchestrator(ClaimStateStore(config.state_file), clock)
    daemon = make_daemon(config, orch, clock)

    async def scenario():
        task = daemon.tick()
        assert await daemon.check_server() is False
        assert orch.reconciles == 0
        orch.release.set()
        await task
        await daemon.check_server()
        assert orch.reconciles == 1

    asyncio.run(scenario())


def test_tick_renders_status(config, clock):
    orch = BlockingOrchestrator(ClaimStateStore(config.state_file), clock)
    orch.release.set()
    daemon = make_daemon(config, orch, clock)

    async def scenario():
        await daemon.tick()

    asyncio.run(scenario())
    out = daemon.stream.getvalue()
    assert "YOU CAN CLAIM NOW!" in out
    assert "0x1234...5678" in out


def _routes(claimed):
    return {
        ("GET", "/analytics"): FakeResponse(200, {"access": True}),
        ("GET", "/festival/daily"): FakeResponse(200, {"claimed": claimed}),
        ("POST", "/festival/daily/claim"): FakeResponse(200, {"ok": True}),
        ("GET", "/festival/cards"): FakeResponse(200, [{"id": 1, "name": "Ace"}]),
        ("GET", "/festival/tickets"): FakeResponse(200, {"tickets": []}),
    }


def _real_daemon(config, clock, claimed, **kwargs):
    session = FakeSession(_routes(claimed))
    client = ZarosClient.from_config(config, session=session)
    store = ClaimStateStore(config.state_file)
    orch = ClaimOrchestrator(config, client, store, clock=clock)
    return make_daemon(config, orch, clock, **kwargs), store, session


def test_fresh_start_seeds_and_claims(config, clock, now):
    daemon, store, session = _real_daemon(config, clock, claimed=False, once=True)
    assert not store.exists()

    asyncio.run(daemon.run())

    record = store.load()
    assert record.last_claim_time == now
    assert session.paths("POST") == ["/festival/daily/claim"]
    assert daemon.claim_in_progress is False


def test_once_does_nothing_during_cooldown(config, clock, now):
    daemon, store, session = _real_daemon(config, clock, claimed=False, once=True)
    existing = store.save(now - timedelta(hours=3))

    asyncio.run(daemon.run())

    assert store.load() == existing
    assert session.calls == []


def test_reconciliation_resyncs_drifted_state(config, clock, now):
    daemon, store, _ = _real_daemon(config, clock, claimed=True)
    store.save(now - timedelta(hours=25))

    assert asyncio.run(daemon.check_server()) is True
    assert store.load().last_claim_time == now


def test_run_loop_stops_cleanly(config, clock, now):
    config.countdown_interval_s = 0.01
    daemon, store, _ = _real_daemon(config, clock, claimed=False)
    store.save(now - timedelta(hours=1))

    async def scenario():
        runner = asyncio.create_task(daemon.run())
        await asyncio.sleep(0.1)
        daemon.stop()
        await asyncio.wait_for(runner, timeout=2)

    asyncio.run(scenario())
    assert daemon.running is False
    assert "NEXT CLAIM AVAILABLE IN" in daemon.stream.getvalue()


def test_log_line_format():
    formatter = IsoTimestampFormatter(LOG_FORMAT)
    record = logging.LogRecord("zaros-checkin", logging.INFO, __file__, 1, "hello", None, None)
    record.created = 1740816000.5

    assert formatter.format(record) == "[2025-03-01T08:00:00.500Z] hello"


def test_configure_logging_appends_to_file(tmp_path, root_logging):
    log_file = tmp_path / "checkin-log.txt"
    configure_logging(str(log_file))
    logging.getLogger("zaros-checkin.test").info("first")
    logging.getLogger("zaros-checkin.test").info("second")
    for handler in logging.getLogger().handlers:
        handler.flush()
    lines = log_file.read_text(encoding="utf-8").splitlines()

    assert lines[0].startswith("[") and lines[0].endswith("] first")
    assert lines[1].endswith("] second")


def test_main_exits_on_config_errors(tmp_path, monkeypatch, root_logging):
    config_file = tmp_path / "config.json"
    config_file.write_text('{"baseUrl": "https://api.example.test"}', encoding="utf-8")
    for name in (
        "ZAROS_SESSION_TOKEN",
        "ZAROS_WALLET_ADDRESS",
        "ZAROS_ACCOUNT_ID",
        "ZAROS_BASE_URL",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)

    code = checkin_daemon.main(
        ["--config", str(config_file), "--log-file", str(tmp_path / "log.txt")]
    )

    assert code == 1


def test_main_rejects_broken_config_file(tmp_path):
    config_file = tmp_path / "config.json"
    config_file.write_text("{oops", encoding="utf-8")

    assert checkin_daemon.main(["--config", str(config_file)]) == 1


def test_startup_checks_server_immediately(config, clock):
    orch = BlockingOrchestrator(ClaimStateStore(config.state_file), clock)
    orch.claimable = False
    daemon = make_daemon(config, orch, clock)

    async def scenario():
        runner = asyncio.create_task(daemon.run())
        await asyncio.sleep(0.05)
        assert orch.reconciles == 1
        assert orch.attempts == 0
        daemon.stop()
        await asyncio.wait_for(runner, timeout=2)

    asyncio.run(scenario())
    assert orch.reconciles == 1


@pytest.mark.skipif(sys.platform == "win32", reason="needs loop signal handlers")
def test_sigint_stops_run_and_cancels_timers(config, clock, caplog):
    caplog.set_level(logging.INFO)
    config.countdown_interval_s = 0.01
    orch = BlockingOrchestrator(ClaimStateStore(config.state_file), clock)
    orch.claimable = False
    daemon = make_daemon(config, orch, clock)

    async def scenario():
        runner = asyncio.create_task(daemon.run())
        await asyncio.sleep(0.05)
        os.kill(os.getpid(), signal.SIGINT)
        await asyncio.wait_for(runner, timeout=2)

    asyncio.run(scenario())

    assert daemon.running is False
    assert len(daemon._timers) == 2
    assert all(timer.done() for timer in daemon._timers)
    assert "Script terminated by user" in caplog.text


def test_main_keyboard_interrupt_exits_zero(tmp_path, monkeypatch, root_logging):
    log_file = tmp_path / "log.txt"
    config_file = tmp_path / "config.json"
    config_file.write_text(
        json.dumps(
            {
                "baseUrl": "https://api.example.test",
                "sessionToken": "token-123",
                "walletAddress": "0x1234567890abcdef1234567890abcdef12345678",
                "accountId": "42",
                "lastClaimFile": str(tmp_path / "last-claim.json"),
            }
        ),
        encoding="utf-8",
    )
    for name in (
        "ZAROS_SESSION_TOKEN",
        "ZAROS_WALLET_ADDRESS",
        "ZAROS_ACCOUNT_ID",
        "ZAROS_BASE_URL",
        "ZAROS_STATE_FILE",
        "ZAROS_LOG_FILE",
        "ZAROS_COUNTDOWN_INTERVAL_S",
        "ZAROS_CHECK_SERVER_INTERVAL_MIN",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)

    def interrupted_run(coro):
        coro.close()
        raise KeyboardInterrupt

    monkeypatch.setattr(checkin_daemon.asyncio, "run", interrupted_run)

    code = checkin_daemon.main(
        ["--config", str(config_file), "--log-file", str(log_file), "--no-clear"]
    )

    for handler in logging.getLogger().handlers:
        handler.flush()
    assert code == 0
    assert "Script terminated by user" in log_file.read_text(encoding="utf-8")
