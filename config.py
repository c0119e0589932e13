"""Runtime configuration for the stock monitor.

Values come from environment variables. A ``.env`` file next to this module
(or at ENV_FILE) is loaded first and overrides anything inherited from the
parent process, so the file is the single source of truth when present.

Environment variables:
- TCIN, QTY, POLL_MS
- REFIRE_COOLDOWN_MS, SUCCESS_COOLDOWN_MS
- DISCORD_WEBHOOK (optional; empty disables webhook alerts)
- TELEGRAM_BOT_TOKEN, TELEGRAM_CHAT_ID (optional second transport)
- STORE_ID, ZIP, STATE, LATITUDE, LONGITUDE
- LOG_DIR (relative paths resolve against this directory)
- FETCH_TIMEOUT (seconds), REDSKY_KEY, LOG_LEVEL
"""
from __future__ import annotations

import logging
import math
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).resolve().parent
DEFAULT_REDSKY_KEY = "9f36aeafbe60771e321a7cc95a78140772ab3e96"


def env_num(key: str, default: float) -> float:
    """Numeric env var; anything that is not a finite number yields ``default``."""
    raw = os.getenv(key)
    if raw is None or not raw.strip():
        return default
    try:
        n = float(raw)
    except ValueError:
        logger.warning("Ignoring non-numeric %s=%r; using %s", key, raw, default)
        return default
    return n if math.isfinite(n) else default


@dataclass(frozen=True)
class MonitorConfig:
    tcin: str = "94336414"
    qty: int = 1
    poll_ms: int = 1000
    refire_cooldown_ms: int = 30000
    success_cooldown_ms: int = 300000
    discord_webhook: str = ""
    telegram_token: str = ""
    telegram_chat_id: str = ""
    store_id: str = "2342"
    zip: str = "78717"
    state: str = "TX"
    latitude: str = "30.491921540848487"
    longitude: str = "-97.77130849066667"
    log_dir: Path = BASE_DIR / "logs"
    fetch_timeout: float = 12.0
    redsky_key: str = DEFAULT_REDSKY_KEY

    @property
    def product_url(self) -> str:
        return f"https://www.target.com/p/-/A-{self.tcin}"

    @property
    def event_log_path(self) -> Path:
        return self.log_dir / f"events_{self.tcin}.csv"

    @property
    def window_log_path(self) -> Path:
        return self.log_dir / f"windows_{self.tcin}.csv"


def load_env_file(path: Path | None = None) -> bool:
    env_path = path or Path(os.getenv("ENV_FILE", BASE_DIR / ".env"))
    if not env_path.is_file():
        logger.warning("No .env file found at %s; using defaults.", env_path)
        return False
    load_dotenv(env_path, override=True)
    return True


def load_config() -> MonitorConfig:
    """Resolve the environment into a MonitorConfig (call load_env_file first)."""
    defaults = MonitorConfig()
    log_dir = Path(os.getenv("LOG_DIR", "./logs"))
    if not log_dir.is_absolute():
        log_dir = (BASE_DIR / log_dir).resolve()

    return MonitorConfig(
        tcin=os.getenv("TCIN") or defaults.tcin,
        qty=int(env_num("QTY", defaults.qty)),
        poll_ms=int(env_num("POLL_MS", defaults.poll_ms)),
        refire_cooldown_ms=int(env_num("REFIRE_COOLDOWN_MS", defaults.refire_cooldown_ms)),
        success_cooldown_ms=int(env_num("SUCCESS_COOLDOWN_MS", defaults.success_cooldown_ms)),
        discord_webhook=(os.getenv("DISCORD_WEBHOOK") or "").strip(),
        telegram_token=(os.getenv("TELEGRAM_BOT_TOKEN") or "").strip(),
        telegram_chat_id=(os.getenv("TELEGRAM_CHAT_ID") or "").strip(),
        store_id=str(os.getenv("STORE_ID") or defaults.store_id),
        zip=os.getenv("ZIP") or defaults.zip,
        state=os.getenv("STATE") or defaults.state,
        latitude=str(os.getenv("LATITUDE") or defaults.latitude),
        longitude=str(os.getenv("LONGITUDE") or defaults.longitude),
        log_dir=log_dir,
        fetch_timeout=env_num("FETCH_TIMEOUT", defaults.fetch_timeout),
        redsky_key=os.getenv("REDSKY_KEY") or defaults.redsky_key,
    )


__all__ = ["MonitorConfig", "env_num", "load_env_file", "load_config"]
