#!/usr/bin/env python3
"""Claim eligibility derived from the persisted record and a clock reading."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from zaros_checkin.claim_state import ClaimRecord


MS_PER_HOUR = 60 * 60 * 1000
MS_PER_MINUTE = 60 * 1000
MS_PER_SECOND = 1000


@dataclass(frozen=True)
class EligibilitySnapshot:
    can_claim: bool
    millis_remaining: int
    next_claim_time: Optional[datetime]
    time_left: str


def format_time_left(millis: int) -> str:
    """Format a duration as `Xh Ym Zs`.

    Hours are not folded into days: a remaining time of more than 24h (clock
    skew, hand-edited state file) shows as e.g. `25h 1m 1s`.
    """
    millis = max(0, int(millis))
    hours = millis // MS_PER_HOUR
    minutes = (millis % MS_PER_HOUR) // MS_PER_MINUTE
    seconds = (millis % MS_PER_MINUTE) // MS_PER_SECOND
    return f"{hours}h {minutes}m {seconds}s"


def compute_eligibility(
    record: Optional[ClaimRecord], now: datetime
) -> EligibilitySnapshot:
    if record is None:
        return EligibilitySnapshot(
            can_claim=True,
            millis_remaining=0,
            next_claim_time=None,
            time_left=format_time_left(0),
        )

    delta = record.next_claim_time - now
    # Integer math on timedelta parts keeps this exact (no float rounding).
    delta_ms = (
        delta.days * 86_400_000
        + delta.seconds * 1000
        + delta.microseconds // 1000
    )
    millis_remaining = max(0, delta_ms)
    return EligibilitySnapshot(
        can_claim=millis_remaining <= 0,
        millis_remaining=millis_remaining,
        next_claim_time=record.next_claim_time,
        time_left=format_time_left(millis_remaining),
    )


__all__ = ["EligibilitySnapshot", "compute_eligibility", "format_time_left"]
