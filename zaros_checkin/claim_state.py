#!/usr/bin/env python3
"""Durable record of the last/next daily claim time.

The record is a tiny JSON document read and written as a whole:

    {"lastClaimTime": "2025-03-01T08:00:00.000Z",
     "nextClaimTime": "2025-03-02T08:00:00.000Z"}

Reads never raise: a missing or broken file means "no record", which the
eligibility calculator treats as claimable now.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Union


logger = logging.getLogger("zaros-checkin.state")

CLAIM_COOLDOWN = timedelta(hours=24)


def to_iso_z(value: datetime) -> str:
    """Render an aware datetime as ISO-8601 UTC with millis and a `Z`."""
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def parse_iso(value: Any) -> Optional[datetime]:
    if not value or not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith("Z") or text.endswith("z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class ClaimRecord:
    last_claim_time: datetime
    next_claim_time: datetime

    @classmethod
    def starting_at(cls, last_claim_time: datetime) -> "ClaimRecord":
        return cls(
            last_claim_time=last_claim_time,
            next_claim_time=last_claim_time + CLAIM_COOLDOWN,
        )

    def to_dict(self) -> Dict[str, str]:
        return {
            "lastClaimTime": to_iso_z(self.last_claim_time),
            "nextClaimTime": to_iso_z(self.next_claim_time),
        }

    @classmethod
    def from_dict(cls, data: Any) -> Optional["ClaimRecord"]:
        if not isinstance(data, dict):
            return None
        next_claim = parse_iso(data.get("nextClaimTime"))
        if next_claim is None:
            return None
        last_claim = parse_iso(data.get("lastClaimTime"))
        if last_claim is None:
            last_claim = next_claim - CLAIM_COOLDOWN
        return cls(last_claim_time=last_claim, next_claim_time=next_claim)


class ClaimStateStore:
    """JSON file holding the single current ClaimRecord (no history)."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> Optional[ClaimRecord]:
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(
                "Error reading claim time data from %s: %s", self.path, e
            )
            return None

        record = ClaimRecord.from_dict(data)
        if record is None:
            logger.warning(
                "Ignoring malformed claim time data in %s", self.path
            )
        return record

    def save(self, last_claim_time: datetime) -> ClaimRecord:
        """Persist a new record; write failures are logged, not raised."""
        record = ClaimRecord.starting_at(last_claim_time)
        payload = json.dumps(record.to_dict(), indent=2)

        tmp_name = None
        try:
            if self.path.parent and not self.path.parent.exists():
                self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.",
                suffix=".tmp",
                dir=str(self.path.parent),
            )
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
            os.replace(tmp_name, self.path)
            tmp_name = None
            logger.info(
                "Saved claim time data. Next claim available at: %s",
                record.to_dict()["nextClaimTime"],
            )
        except OSError as e:
            logger.error("Error saving claim time data to %s: %s", self.path, e)
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    pass
        return record

    def seed(self, now: datetime) -> ClaimRecord:
        """Make sure a record exists; a fresh one is claimable immediately."""
        record = self.load()
        if record is not None:
            return record
        logger.info("No claim record found, seeding one that is claimable now")
        return self.save(now - CLAIM_COOLDOWN)


__all__ = [
    "CLAIM_COOLDOWN",
    "ClaimRecord",
    "ClaimStateStore",
    "parse_iso",
    "to_iso_z",
]
