from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from settings import get_settings

DEFAULT_BASE_URL = "http://localhost:8000"
DEFAULT_POLL_INTERVAL = 0.5
DEFAULT_POLL_TIMEOUT = 60.0

_BASE_URL_ENV = "API_BASE_URL"
_POLL_INTERVAL_ENV = "CLI_POLL_INTERVAL"
_POLL_TIMEOUT_ENV = "CLI_POLL_TIMEOUT"


@dataclass(frozen=True)
class CLIConfig:
    """Options shared by the local and remote commands."""

    base_url: str = DEFAULT_BASE_URL
    poll_interval: float = DEFAULT_POLL_INTERVAL
    poll_timeout: float = DEFAULT_POLL_TIMEOUT
    cancel_grace: float = 0.15


def _positive_or(explicit: Optional[float], env_name: str, default: float) -> float:
    if explicit is not None and explicit > 0:
        return explicit
    raw = (os.getenv(env_name) or "").strip()
    try:
        parsed = float(raw)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def load_config(
    base_url: Optional[str] = None,
    poll_interval: Optional[float] = None,
    poll_timeout: Optional[float] = None,
) -> CLIConfig:
    """Resolve options: explicit flags, then environment, then defaults."""
    url = base_url or os.getenv(_BASE_URL_ENV) or DEFAULT_BASE_URL
    return CLIConfig(
        base_url=url.rstrip("/"),
        poll_interval=_positive_or(poll_interval, _POLL_INTERVAL_ENV, DEFAULT_POLL_INTERVAL),
        poll_timeout=_positive_or(poll_timeout, _POLL_TIMEOUT_ENV, DEFAULT_POLL_TIMEOUT),
        cancel_grace=get_settings().cancel_grace_seconds,
    )
