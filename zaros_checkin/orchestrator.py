#!/usr/bin/env python3
"""Decide whether to claim, claim, and keep local state in line with Zaros.

The server is always the source of truth. Local state is only rewritten
after a claim the server accepted or acknowledged (already claimed today, or
"wait 24h").
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from zaros_checkin.claim_state import ClaimStateStore
from zaros_checkin.config import CheckinConfig
from zaros_checkin.eligibility import EligibilitySnapshot, compute_eligibility
from zaros_checkin.zaros_client import ClaimOutcome, ZarosClient


logger = logging.getLogger("zaros-checkin.orchestrator")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ClaimAttemptResult:
    success: bool
    message: str
    needs_countdown_reset: bool = False


class ClaimOrchestrator:
    """One claim attempt / one reconciliation at a time, driven by the daemon."""

    def __init__(
        self,
        config: CheckinConfig,
        client: ZarosClient,
        store: ClaimStateStore,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.config = config
        self.client = client
        self.store = store
        self.clock = clock

    def eligibility(self, now: Optional[datetime] = None) -> EligibilitySnapshot:
        return compute_eligibility(self.store.load(), now or self.clock())

    def attempt_claim(self) -> ClaimAttemptResult:
        """Run the full check-in flow once.

        Never raises; every failure ends up as an unsuccessful result.
        """
        if not self.config.has_session_token:
            logger.error("No session token configured; cannot claim")
            return ClaimAttemptResult(False, "No session token configured")

        try:
            return self._attempt_claim()
        except Exception as e:
            logger.error("Error during check-in process: %s", e)
            return ClaimAttemptResult(False, f"Error: {e}")

    def _attempt_claim(self) -> ClaimAttemptResult:
        account_id = self.config.account_id
        result = ClaimAttemptResult(False, "No daily info available")

        self.client.check_analytics_access(
            self.config.wallet_address, account_id
        )

        daily_info = self.client.fetch_daily_info(account_id)
        if daily_info is not None:
            logger.info(
                "Daily info from server - Claimed status: %s",
                daily_info.claimed,
            )
            if daily_info.claimed:
                logger.info("Server indicates daily reward already claimed today")
                self.store.save(self.clock())
                result = ClaimAttemptResult(False, "Already claimed today")
            else:
                submitted = self.client.submit_claim(account_id)
                outcome = submitted.outcome

                if outcome is ClaimOutcome.ACCEPTED:
                    self.store.save(self.clock())
                    logger.info("Successfully claimed daily reward!")
                    self._log_latest_card(account_id)
                    return ClaimAttemptResult(True, "Reward claimed successfully")

                if outcome is ClaimOutcome.MUST_WAIT:
                    logger.info(
                        "Server indicates we need to wait 24 hours for the "
                        "next claim"
                    )
                    self.store.save(self.clock())
                    return ClaimAttemptResult(
                        False,
                        "Need to wait 24 hours",
                        needs_countdown_reset=True,
                    )

                if outcome is ClaimOutcome.REJECTED:
                    result = ClaimAttemptResult(
                        False, "Daily reward already claimed or other error"
                    )
                else:
                    logger.error(
                        "Error checking claim status: %s", submitted.message
                    )
                    result = ClaimAttemptResult(
                        False, f"Error: {submitted.message}"
                    )
                logger.info("Claim attempt result: %s", result.message)

        self.client.fetch_festival_tickets(big=True)
        self.client.fetch_festival_tickets(big=False)
        return result

    def _log_latest_card(self, account_id: str) -> None:
        cards = self.client.fetch_user_cards(account_id)
        if cards is None:
            return
        logger.info("Total cards count: %s", len(cards))
        if not cards:
            return
        latest = cards[-1] if isinstance(cards[-1], dict) else {}
        logger.info(
            "Latest card claimed: %s (Card ID: %s)",
            latest.get("name") or "Unknown",
            latest.get("id") or "Unknown",
        )

    def reconcile(self) -> bool:
        """Resync the local cooldown when Zaros says today is already claimed.

        Returns True when a fresh record was written.
        """
        logger.info("Performing periodic server check...")
        daily_info = self.client.fetch_daily_info(self.config.account_id)
        if daily_info is None:
            return False

        logger.info("Server check - Claimed status: %s", daily_info.claimed)
        now = self.clock()
        if daily_info.claimed and self.eligibility(now).can_claim:
            logger.info("Syncing countdown with server state...")
            self.store.save(now)
            return True
        return False


__all__ = ["ClaimAttemptResult", "ClaimOrchestrator", "utc_now"]
