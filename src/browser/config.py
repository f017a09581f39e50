"""
Bridge configuration, read from the environment.

    CDP_URL              DevTools HTTP endpoint (default http://127.0.0.1:18800)
    BRIDGE_TIMEOUT       seconds to wait for a single CDP reply
    BRIDGE_LOAD_TIMEOUT  seconds to wait for Page.loadEventFired after `open`
    BRIDGE_LOG_LEVEL     log level for the CLI (default WARNING)
    BRIDGE_LOG_FILE      optional log file, in addition to stderr
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

DEFAULT_CDP_URL = "http://127.0.0.1:18800"
DEFAULT_TIMEOUT = 15.0
DEFAULT_LOAD_TIMEOUT = 10.0


def _float_env(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Ignoring invalid {name}={raw!r}, using {default}")
        return default


@dataclass
class BridgeConfig:
    """Settings shared by every command invocation."""
    cdp_url: str = DEFAULT_CDP_URL
    timeout: float = DEFAULT_TIMEOUT
    load_timeout: float = DEFAULT_LOAD_TIMEOUT
    log_level: str = "WARNING"
    log_file: Optional[str] = None

    @classmethod
    def from_env(cls) -> "BridgeConfig":
        return cls(
            cdp_url=os.environ.get("CDP_URL", DEFAULT_CDP_URL).rstrip("/"),
            timeout=_float_env("BRIDGE_TIMEOUT", DEFAULT_TIMEOUT),
            load_timeout=_float_env("BRIDGE_LOAD_TIMEOUT", DEFAULT_LOAD_TIMEOUT),
            log_level=os.environ.get("BRIDGE_LOG_LEVEL", "WARNING").upper(),
            log_file=os.environ.get("BRIDGE_LOG_FILE") or None,
        )

    @property
    def host(self) -> str:
        return urlparse(self.cdp_url).hostname or "127.0.0.1"

    @property
    def port(self) -> int:
        return urlparse(self.cdp_url).port or 80

    def page_ws_url(self, target_id: str) -> str:
        """WebSocket URL for a page target, always via loopback."""
        return f"ws://127.0.0.1:{self.port}/devtools/page/{target_id}"
