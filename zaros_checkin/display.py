#!/usr/bin/env python3
"""Console status view redrawn on every countdown tick."""

from __future__ import annotations

import sys
from datetime import datetime
from typing import List, Optional, TextIO

from zaros_checkin.config import CheckinConfig
from zaros_checkin.eligibility import EligibilitySnapshot


SEPARATOR = "=" * 50
CLEAR_SCREEN = "\033[2J\033[H"


def _local(dt: datetime) -> str:
    return dt.astimezone().strftime("%Y-%m-%d %H:%M:%S")


def render_status(
    snapshot: EligibilitySnapshot,
    config: CheckinConfig,
    now: datetime,
) -> str:
    lines: List[str] = [
        SEPARATOR,
        f"ZAROS DAILY CHECK-IN STATUS ({_local(now)})",
        SEPARATOR,
    ]

    if snapshot.can_claim:
        lines.append("✅ YOU CAN CLAIM NOW!")
        lines.append("🔄 Attempting to claim...")
    else:
        next_claim = (
            _local(snapshot.next_claim_time)
            if snapshot.next_claim_time is not None
            else "Now"
        )
        lines.append(f"⏳ NEXT CLAIM AVAILABLE IN: {snapshot.time_left}")
        lines.append(f"📆 NEXT CLAIM DATE: {next_claim}")

    lines.extend(
        [
            SEPARATOR,
            f"Account ID: {config.account_id}",
            f"Wallet: {config.masked_wallet}",
            SEPARATOR,
            "Press Ctrl+C to stop the script",
        ]
    )
    return "\n".join(lines)


def show_status(
    snapshot: EligibilitySnapshot,
    config: CheckinConfig,
    now: datetime,
    *,
    clear: bool = True,
    stream: Optional[TextIO] = None,
) -> None:
    out = stream or sys.stdout
    if clear:
        out.write(CLEAR_SCREEN)
    out.write(render_status(snapshot, config, now) + "\n")
    out.flush()


__all__ = ["render_status", "show_status"]
