#!/usr/bin/env python3
"""Configuration for the Zaros check-in daemon.

Values come from three layers, later layers winning:
- `config.json` (keys: baseUrl, sessionToken, walletAddress, accountId)
- environment variables (loaded from `.env` if present)
- CLI flags (applied by the entry points)

The resulting `CheckinConfig` is built once at startup and handed to every
component explicitly.

Env vars:
- ZAROS_BASE_URL, ZAROS_SESSION_TOKEN, ZAROS_WALLET_ADDRESS, ZAROS_ACCOUNT_ID
- ZAROS_STATE_FILE (optional, default: last-claim.json)
- ZAROS_LOG_FILE (optional, default: checkin-log.txt)
- ZAROS_TIMEOUT_S (optional, default: 30)
- ZAROS_COUNTDOWN_INTERVAL_S (optional, default: 10)
- ZAROS_CHECK_SERVER_INTERVAL_MIN (optional, default: 60)
- ZAROS_MUST_WAIT_MARKER (optional)
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from dotenv import load_dotenv


DEFAULT_CONFIG_FILE = "config.json"
DEFAULT_STATE_FILE = "last-claim.json"
DEFAULT_LOG_FILE = "checkin-log.txt"

# Undocumented server text returned with HTTP 400 while the 24h cooldown is
# still running.
DEFAULT_MUST_WAIT_MARKER = (
    "You can only claim the next reward after 1 day has passed"
)


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be read or parsed."""


@dataclass
class CheckinConfig:
    """Everything the daemon needs to talk to Zaros for one account."""

    base_url: str = ""
    session_token: str = ""
    wallet_address: str = ""
    account_id: str = ""

    state_file: str = DEFAULT_STATE_FILE
    log_file: str = DEFAULT_LOG_FILE

    timeout_s: float = 30.0
    countdown_interval_s: float = 10.0
    check_server_interval_min: float = 60.0

    must_wait_marker: str = DEFAULT_MUST_WAIT_MARKER

    @property
    def has_session_token(self) -> bool:
        return bool(self.session_token and self.session_token.strip())

    @property
    def masked_wallet(self) -> str:
        wallet = self.wallet_address or ""
        if len(wallet) <= 10:
            return wallet
        return f"{wallet[:6]}...{wallet[-4:]}"

    def validate(self) -> List[str]:
        errors = []
        if not self.base_url:
            errors.append("baseUrl not set (config.json or ZAROS_BASE_URL)")
        if not self.has_session_token:
            errors.append(
                "sessionToken not set (config.json or ZAROS_SESSION_TOKEN)"
            )
        if not self.wallet_address:
            errors.append(
                "walletAddress not set (config.json or ZAROS_WALLET_ADDRESS)"
            )
        if not self.account_id:
            errors.append("accountId not set (config.json or ZAROS_ACCOUNT_ID)")
        if self.countdown_interval_s <= 0:
            errors.append("countdown interval must be positive")
        if self.check_server_interval_min <= 0:
            errors.append("server check interval must be positive")
        return errors


def _read_config_file(path: Path) -> Dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Error loading config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a JSON object")
    return data


def _number(
    env_name: str, data: Dict[str, Any], key: str, default: float
) -> float:
    raw = os.getenv(env_name)
    source = env_name
    if raw is None or not raw.strip():
        raw = data.get(key, default)
        source = key
    try:
        return float(raw)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{source} must be a number, got {raw!r}") from e


def load_config(
    path: Optional[Union[str, Path]] = None,
    *,
    use_dotenv: bool = True,
) -> CheckinConfig:
    """Build the config from `config.json` plus environment overrides.

    A missing config file is fine as long as the environment fills the gaps
    (`validate()` reports what is still missing). A file that exists but is
    unreadable raises `ConfigError`.
    """
    if use_dotenv:
        load_dotenv()

    config_path = Path(
        path or os.getenv("ZAROS_CONFIG_FILE") or DEFAULT_CONFIG_FILE
    )
    data: Dict[str, Any] = {}
    if config_path.exists():
        data = _read_config_file(config_path)
    elif path is not None:
        raise ConfigError(f"Config file not found: {config_path}")

    def pick(env_name: str, key: str) -> str:
        value = os.getenv(env_name) or data.get(key) or ""
        return str(value).strip()

    return CheckinConfig(
        base_url=pick("ZAROS_BASE_URL", "baseUrl").rstrip("/"),
        session_token=pick("ZAROS_SESSION_TOKEN", "sessionToken"),
        wallet_address=pick("ZAROS_WALLET_ADDRESS", "walletAddress"),
        account_id=pick("ZAROS_ACCOUNT_ID", "accountId"),
        state_file=pick("ZAROS_STATE_FILE", "lastClaimFile")
        or DEFAULT_STATE_FILE,
        log_file=pick("ZAROS_LOG_FILE", "logFile") or DEFAULT_LOG_FILE,
        timeout_s=_number("ZAROS_TIMEOUT_S", data, "timeoutSeconds", 30),
        countdown_interval_s=_number(
            "ZAROS_COUNTDOWN_INTERVAL_S", data, "countdownIntervalSeconds", 10
        ),
        check_server_interval_min=_number(
            "ZAROS_CHECK_SERVER_INTERVAL_MIN",
            data,
            "checkServerIntervalMinutes",
            60,
        ),
        must_wait_marker=pick("ZAROS_MUST_WAIT_MARKER", "mustWaitMarker")
        or DEFAULT_MUST_WAIT_MARKER,
    )


__all__ = [
    "CheckinConfig",
    "ConfigError",
    "DEFAULT_MUST_WAIT_MARKER",
    "load_config",
]
