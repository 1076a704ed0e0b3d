#!/usr/bin/env python3
"""Zaros festival API client.

This module only contains Zaros API communication logic so it can be reused
by the daemon and the standalone status report.

Important:
- Every request carries the browser header set the testnet app sends. The
  API fingerprints clients and is known to reject bare requests.
- Read helpers never raise: any failure is logged and returned as None.
- The "wait 24h" rejection is only recognizable by the text of the 400
  response body. `classify_claim_rejection` is the one place that knows it.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import requests

from zaros_checkin.config import DEFAULT_MUST_WAIT_MARKER


logger = logging.getLogger("zaros-checkin.client")


BROWSER_HEADERS: Dict[str, str] = {
    "accept": "application/json, text/plain, */*",
    "accept-encoding": "gzip, deflate, br, zstd",
    "accept-language": "en-US,en;q=0.6",
    "origin": "https://testnet.app.zaros.fi",
    "referer": "https://testnet.app.zaros.fi/",
    "sec-ch-ua": '"Not(A:Brand";v="99", "Brave";v="133", "Chromium";v="133"',
    "sec-ch-ua-mobile": "?0",
    "sec-ch-ua-platform": '"Windows"',
    "sec-fetch-dest": "empty",
    "sec-fetch-mode": "cors",
    "sec-fetch-site": "same-site",
    "sec-gpc": "1",
    "user-agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/133.0.0.0 Safari/537.36"
    ),
}


class ClaimOutcome(enum.Enum):
    ACCEPTED = "accepted"
    MUST_WAIT = "must_wait"
    REJECTED = "rejected"
    TRANSPORT_ERROR = "transport_error"


@dataclass(frozen=True)
class ClaimSubmitOutcome:
    outcome: ClaimOutcome
    message: str = ""
    status_code: Optional[int] = None
    body: Any = None


@dataclass(frozen=True)
class DailyInfo:
    """Server view of today's claim; `raw` keeps the full payload."""

    claimed: bool
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Any) -> Optional["DailyInfo"]:
        if not isinstance(payload, dict):
            return None
        return cls(claimed=bool(payload.get("claimed")), raw=payload)


class ApiError(RuntimeError):
    """Non-2xx response from the Zaros API."""

    def __init__(self, message: str, status_code: int, body: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


def _body_text(body: Any) -> str:
    if body is None:
        return ""
    if isinstance(body, str):
        return body
    if isinstance(body, dict):
        for key in ("message", "error", "detail"):
            value = body.get(key)
            if isinstance(value, str):
                return value
            if isinstance(value, list):
                return " ".join(str(v) for v in value)
    return str(body)


def classify_claim_rejection(
    status_code: Optional[int],
    body: Any,
    must_wait_marker: str = DEFAULT_MUST_WAIT_MARKER,
) -> ClaimOutcome:
    """Map a failed claim response onto a ClaimOutcome.

    400 + marker text -> MUST_WAIT; any other 4xx -> REJECTED (usually
    "already claimed"); everything else is a transport-level failure.
    """
    if status_code is None:
        return ClaimOutcome.TRANSPORT_ERROR
    if status_code == 400 and must_wait_marker and (
        must_wait_marker in _body_text(body)
    ):
        return ClaimOutcome.MUST_WAIT
    if 400 <= status_code < 500:
        return ClaimOutcome.REJECTED
    return ClaimOutcome.TRANSPORT_ERROR


class ZarosClient:
    """Client for the Zaros festival endpoints of one trading account."""

    def __init__(
        self,
        base_url: str,
        session_token: Optional[str] = None,
        *,
        timeout_s: float = 30.0,
        must_wait_marker: str = DEFAULT_MUST_WAIT_MARKER,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = (base_url or "").rstrip("/")
        self.session_token = session_token
        self.timeout_s = timeout_s
        self.must_wait_marker = must_wait_marker

        self.session = session or requests.Session()
        self.session.headers.update(BROWSER_HEADERS)
        if session_token:
            self.session.headers.update(
                {"Authorization": f"Bearer {session_token}"}
            )

    @classmethod
    def from_config(cls, config, session=None) -> "ZarosClient":
        return cls(
            config.base_url,
            config.session_token,
            timeout_s=config.timeout_s,
            must_wait_marker=config.must_wait_marker,
            session=session,
        )

    def _request(self, method: str, path: str, **kwargs) -> Any:
        """Send one request and return the decoded body.

        Redirects are refused so the bearer token is never replayed to
        another host. Raises `requests.RequestException` on network errors
        and `ApiError` on any non-2xx response, redirects included.
        """
        method_u = method.upper()
        url = f"{self.base_url}/{path.lstrip('/')}"
        kwargs.setdefault("timeout", self.timeout_s)
        kwargs.setdefault("allow_redirects", False)

        response = self.session.request(method_u, url, **kwargs)

        data: Any
        try:
            data = response.json()
        except ValueError:
            data = response.text

        if 300 <= response.status_code < 400:
            location = response.headers.get("Location")
            raise ApiError(
                f"Zaros API request was redirected; refusing to follow. "
                f"URL={url} Location={location}",
                status_code=response.status_code,
                body=data,
            )

        if not 200 <= response.status_code < 300:
            raise ApiError(
                f"Zaros API error {response.status_code} for "
                f"{method_u} {url}: {_body_text(data) or response.reason}",
                status_code=response.status_code,
                body=data,
            )
        return data

    def _get_or_none(self, label: str, path: str, **kwargs) -> Any:
        try:
            data = self._request("GET", path, **kwargs)
        except (requests.RequestException, ApiError) as e:
            logger.warning("Error getting %s: %s", label, e)
            return None
        logger.info("Retrieved %s successfully", label)
        return data

    def check_analytics_access(
        self, wallet: str, account_id: str
    ) -> Optional[Any]:
        """Best-effort telemetry ping the web app makes before claiming."""
        try:
            data = self._request(
                "GET",
                "/analytics",
                params={
                    "type": "access",
                    "wallet": wallet,
                    "accountId": account_id,
                },
            )
        except (requests.RequestException, ApiError) as e:
            logger.warning("Error checking analytics access: %s", e)
            return None
        logger.info("Analytics access checked successfully")
        return data

    def fetch_festival_tickets(self, big: bool) -> Optional[Any]:
        label = "big festival tickets" if big else "small festival tickets"
        return self._get_or_none(
            label,
            "/festival/tickets",
            params={"big": "true" if big else "false"},
        )

    def fetch_daily_info(self, account_id: str) -> Optional[DailyInfo]:
        payload = self._get_or_none(
            "daily info",
            "/festival/daily",
            params={"tradingAccountId": account_id},
        )
        if payload is None:
            return None
        info = DailyInfo.from_payload(payload)
        if info is None:
            logger.warning("Unexpected daily info payload: %r", payload)
        return info

    def fetch_user_cards(self, account_id: str) -> Optional[List[Any]]:
        payload = self._get_or_none(
            "user cards",
            "/festival/cards",
            params={"tradingAccountId": account_id},
        )
        if payload is None:
            return None
        if isinstance(payload, dict):
            key = next((k for k in ("cards", "data") if k in payload), None)
            payload = payload.get(key) if key else None
        if not isinstance(payload, list):
            logger.warning("Unexpected user cards payload: %r", payload)
            return None
        return payload

    def submit_claim(self, account_id: str) -> ClaimSubmitOutcome:
        try:
            data = self._request(
                "POST",
                "/festival/daily/claim",
                params={"tradingAccountId": account_id},
            )
        except ApiError as e:
            outcome = classify_claim_rejection(
                e.status_code, e.body, self.must_wait_marker
            )
            logger.info("Server returned an error: %s", _body_text(e.body))
            return ClaimSubmitOutcome(
                outcome=outcome,
                message=str(e),
                status_code=e.status_code,
                body=e.body,
            )
        except requests.RequestException as e:
            logger.error("Error submitting claim: %s", e)
            return ClaimSubmitOutcome(
                outcome=ClaimOutcome.TRANSPORT_ERROR, message=str(e)
            )

        logger.info("Daily reward claimed successfully!")
        return ClaimSubmitOutcome(
            outcome=ClaimOutcome.ACCEPTED,
            message="Reward claimed successfully",
            body=data,
        )


__all__ = [
    "ApiError",
    "BROWSER_HEADERS",
    "ClaimOutcome",
    "ClaimSubmitOutcome",
    "DailyInfo",
    "ZarosClient",
    "classify_claim_rejection",
]
