#!/usr/bin/env python3
"""Zaros status report.

Read-only companion to the daemon, handy for checking a token or the local
cooldown without starting the loop:
- local claim record and eligibility
- server daily info (claimed today?)
- card collection size and latest card
- festival ticket summaries (big/small)

It never claims and never writes the claim record.

Env vars / config: same as the daemon (see zaros_checkin.config).
"""

from __future__ import annotations

import argparse
import sys
from typing import Any, List, Optional

from zaros_checkin.claim_state import ClaimStateStore
from zaros_checkin.config import ConfigError, load_config
from zaros_checkin.eligibility import compute_eligibility
from zaros_checkin.orchestrator import utc_now
from zaros_checkin.zaros_client import ZarosClient


def _parse_args(argv: Optional[List[str]]) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Print Zaros check-in status")
    p.add_argument(
        "--config",
        default=None,
        help="Path to config.json (default: env ZAROS_CONFIG_FILE or ./config.json)",
    )
    p.add_argument(
        "--skip-tickets",
        action="store_true",
        help="Do not fetch festival ticket summaries",
    )
    return p.parse_args(argv)


def _summarize(payload: Any) -> str:
    if payload is None:
        return "unavailable"
    if isinstance(payload, list):
        return f"{len(payload)} item(s)"
    if isinstance(payload, dict):
        for key in ("tickets", "data", "items"):
            items = payload.get(key)
            if isinstance(items, list):
                return f"{len(items)} item(s)"
        return ", ".join(f"{k}={v}" for k, v in list(payload.items())[:5])
    return str(payload)


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)

    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2

    errors = config.validate()
    if errors:
        for err in errors:
            print(f"ERROR: {err}", file=sys.stderr)
        return 2

    store = ClaimStateStore(config.state_file)
    snapshot = compute_eligibility(store.load(), utc_now())
    print(f"Account ID: {config.account_id}")
    print(f"Wallet: {config.masked_wallet}")
    if snapshot.can_claim:
        print("Local cooldown: claimable now")
    else:
        print(f"Local cooldown: {snapshot.time_left} left")

    client = ZarosClient.from_config(config)

    daily = client.fetch_daily_info(config.account_id)
    if daily is None:
        print("WARN: failed to fetch daily info", file=sys.stderr)
    else:
        print(f"Claimed today (server): {daily.claimed}")

    cards = client.fetch_user_cards(config.account_id)
    if cards is None:
        print("WARN: failed to fetch user cards", file=sys.stderr)
    else:
        print(f"Cards: {len(cards)}")
        if cards and isinstance(cards[-1], dict):
            latest = cards[-1]
            print(
                f"Latest card: {latest.get('name') or 'Unknown'} "
                f"(Card ID: {latest.get('id') or 'Unknown'})"
            )

    if not args.skip_tickets:
        print(f"Big tickets: {_summarize(client.fetch_festival_tickets(big=True))}")
        print(
            f"Small tickets: {_summarize(client.fetch_festival_tickets(big=False))}"
        )

    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
