#!/usr/bin/env python3
"""
Zaros Check-in Daemon - keeps claiming the Zaros festival daily reward.

Two timers share one event loop:
- countdown (default every 10s): redraw the status view and start a claim
  attempt as soon as the local cooldown has elapsed
- server check (default every 60 min): resync the local cooldown when Zaros
  reports the reward as already claimed

At most one claim attempt is in flight at any time.

Recommended invocation:
- python -m zaros_checkin.checkin_daemon
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from datetime import datetime, timezone
from typing import Awaitable, Callable, List, Optional, TextIO

from zaros_checkin.claim_state import ClaimStateStore, to_iso_z
from zaros_checkin.config import CheckinConfig, ConfigError, load_config
from zaros_checkin.display import show_status
from zaros_checkin.orchestrator import (
    ClaimAttemptResult,
    ClaimOrchestrator,
    utc_now,
)
from zaros_checkin.zaros_client import ZarosClient


logger = logging.getLogger("zaros-checkin")

LOG_FORMAT = "[%(asctime)s] %(message)s"


class IsoTimestampFormatter(logging.Formatter):
    """`[2025-03-01T08:00:00.123Z] message` lines."""

    def formatTime(self, record, datefmt=None):
        return to_iso_z(datetime.fromtimestamp(record.created, timezone.utc))


def configure_logging(log_file: str, level: int = logging.INFO) -> None:
    """Append every log line to `log_file` and mirror it on stdout."""
    formatter = IsoTimestampFormatter(LOG_FORMAT)
    handlers: List[logging.Handler] = [
        logging.FileHandler(log_file, encoding="utf-8"),
        logging.StreamHandler(sys.stdout),
    ]
    for handler in handlers:
        handler.setFormatter(formatter)
    logging.basicConfig(level=level, handlers=handlers, force=True)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def _prefer_utf8_console() -> None:
    # The status view uses emoji; Windows consoles may default to cp1252.
    for stream in (sys.stdout, sys.stderr):
        if hasattr(stream, "reconfigure"):
            try:
                stream.reconfigure(encoding="utf-8", errors="replace")
            except (OSError, ValueError):
                logger.debug("Could not switch %s to UTF-8", stream)


class CheckinDaemon:
    """Scheduler driving the claim orchestrator."""

    def __init__(
        self,
        config: CheckinConfig,
        orchestrator: ClaimOrchestrator,
        *,
        clock: Callable[[], datetime] = utc_now,
        once: bool = False,
        clear_screen: bool = True,
        stream: Optional[TextIO] = None,
    ):
        self.config = config
        self.orchestrator = orchestrator
        self.clock = clock
        self.once = once
        self.clear_screen = clear_screen
        self.stream = stream

        self.running = False
        self.claim_in_progress = False
        self._claim_task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._timers: List[asyncio.Task] = []

    def tick(self) -> Optional[asyncio.Task]:
        """One countdown step. Returns the claim task when one was started.

        Must be called from inside the running event loop.
        """
        now = self.clock()
        snapshot = self.orchestrator.eligibility(now)
        show_status(
            snapshot,
            self.config,
            now,
            clear=self.clear_screen,
            stream=self.stream,
        )

        if not snapshot.can_claim or self.claim_in_progress:
            return None

        # Set before the task is scheduled so a tick that runs before the
        # task starts still sees the claim as in flight.
        self.claim_in_progress = True
        self._claim_task = asyncio.create_task(self._run_claim())
        return self._claim_task

    async def _run_claim(self) -> Optional[ClaimAttemptResult]:
        try:
            result = await asyncio.to_thread(self.orchestrator.attempt_claim)
        except Exception as e:
            logger.error("Error during claim attempt: %s", e)
            return None
        finally:
            self.claim_in_progress = False

        if result.success:
            logger.info("Claim successful, countdown reset")
        else:
            logger.info("No claim performed or claim failed")
        return result

    async def check_server(self) -> bool:
        """Periodic reconciliation; skipped while a claim is in flight."""
        if self.claim_in_progress:
            logger.info("Claim in progress, skipping server check")
            return False
        try:
            return await asyncio.to_thread(self.orchestrator.reconcile)
        except Exception as e:
            logger.error("Error during server check: %s", e)
            return False

    async def _countdown(self) -> None:
        self.tick()

    async def _every(
        self, interval_s: float, step: Callable[[], Awaitable[object]]
    ) -> None:
        while self.running:
            try:
                await step()
            except Exception as e:
                logger.error("Timer step failed: %s", e)
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=interval_s)
            except asyncio.TimeoutError:
                continue

    def _install_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> List[int]:
        installed = []
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.stop)
            except (NotImplementedError, RuntimeError, ValueError):
                # Windows: Ctrl+C surfaces as KeyboardInterrupt in main().
                continue
            installed.append(sig)
        return installed

    async def run(self) -> None:
        logger.info("Starting Zaros continuous check-in process...")
        logger.info("Press Ctrl+C to stop the script")

        self.running = True
        self._stop_event = asyncio.Event()
        self.orchestrator.store.seed(self.clock())

        if self.once:
            task = self.tick()
            if task is not None:
                await task
            else:
                logger.info("Reward not claimable yet; --once set, exiting")
            self.running = False
            return

        loop = asyncio.get_running_loop()
        installed = self._install_signal_handlers(loop)
        self._timers = [
            asyncio.create_task(
                self._every(self.config.countdown_interval_s, self._countdown)
            ),
            asyncio.create_task(
                self._every(
                    self.config.check_server_interval_min * 60,
                    self.check_server,
                )
            ),
        ]
        try:
            await self._stop_event.wait()
        finally:
            self.running = False
            for timer in self._timers:
                timer.cancel()
            await asyncio.gather(*self._timers, return_exceptions=True)
            for sig in installed:
                loop.remove_signal_handler(sig)

        logger.info("Script terminated by user")

    def stop(self) -> None:
        """Stop both timers; safe to call from a signal handler."""
        self.running = False
        if self._stop_event is not None:
            self._stop_event.set()


def _parse_args(argv: Optional[List[str]]) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Zaros daily check-in daemon")
    p.add_argument(
        "--config",
        default=None,
        help="Path to config.json (default: env ZAROS_CONFIG_FILE or ./config.json)",
    )
    p.add_argument(
        "--once",
        action="store_true",
        help="Evaluate eligibility once, claim if possible, then exit",
    )
    p.add_argument(
        "--state-file",
        default=None,
        help="Path to the claim time JSON file (default: last-claim.json)",
    )
    p.add_argument(
        "--log-file",
        default=None,
        help="Path to the append-only log file (default: checkin-log.txt)",
    )
    p.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Seconds between countdown refreshes (default: 10)",
    )
    p.add_argument(
        "--check-interval-min",
        type=float,
        default=None,
        help="Minutes between server reconciliation checks (default: 60)",
    )
    p.add_argument(
        "--no-clear",
        action="store_true",
        help="Do not clear the terminal before redrawing the status view",
    )
    return p.parse_args(argv)


def build_daemon(config: CheckinConfig, **kwargs) -> CheckinDaemon:
    client = ZarosClient.from_config(config)
    store = ClaimStateStore(config.state_file)
    orchestrator = ClaimOrchestrator(config, client, store)
    return CheckinDaemon(config, orchestrator, **kwargs)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the daemon."""
    args = _parse_args(argv)
    _prefer_utf8_console()

    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    if args.state_file:
        config.state_file = args.state_file
    if args.log_file:
        config.log_file = args.log_file
    if args.interval is not None:
        config.countdown_interval_s = args.interval
    if args.check_interval_min is not None:
        config.check_server_interval_min = args.check_interval_min

    configure_logging(config.log_file)

    errors = config.validate()
    if errors:
        for err in errors:
            logger.error("Config error: %s", err)
        return 1

    daemon = build_daemon(
        config, once=args.once, clear_screen=not args.no_clear
    )
    try:
        asyncio.run(daemon.run())
    except KeyboardInterrupt:
        logger.info("Script terminated by user")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
