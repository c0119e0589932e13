"""RedSky fulfillment fetching utilities.

One GET per tick against the product_fulfillment_v1 aggregation. Failures
(network error, timeout, non-2xx, body that is not a JSON object) are logged
and reported as ``None`` so the caller can skip the tick. There is no retry;
the next tick is the retry.
"""
from __future__ import annotations

import logging
import secrets
from typing import Any, Dict

import requests

from config import MonitorConfig
from stock_checker import Snapshot, parse_snapshot

logger = logging.getLogger(__name__)

REDSKY_URL = "https://redsky.target.com/redsky_aggregations/v1/web/product_fulfillment_v1"

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/140.0.0.0 Safari/537.36"
)

# one visitor id per process, like a browser session
VISITOR_ID = secrets.token_hex(16).upper()


def build_params(config: MonitorConfig, visitor_id: str = VISITOR_ID) -> Dict[str, str]:
    return {
        "key": config.redsky_key,
        "is_bot": "false",
        "tcin": config.tcin,
        "store_id": config.store_id,
        "zip": config.zip,
        "state": config.state,
        "latitude": config.latitude,
        "longitude": config.longitude,
        "scheduled_delivery_store_id": config.store_id,
        "paid_membership": "true",
        "base_membership": "true",
        "card_membership": "false",
        "required_store_id": config.store_id,
        "pricing_store_id": config.store_id,
        "visitor_id": visitor_id,
        "channel": "WEB",
        "page": f"/p/A-{config.tcin}",
    }


def build_headers(config: MonitorConfig) -> Dict[str, str]:
    return {
        "User-Agent": USER_AGENT,
        "Accept": "application/json",
        "Origin": "https://www.target.com",
        "Referer": config.product_url,
    }


def fetch_payload(config: MonitorConfig, session: Any = None) -> Dict[str, Any]:
    """Fetch the raw fulfillment JSON. Raises on any failure."""
    http = session or requests
    resp = http.get(
        REDSKY_URL,
        params=build_params(config),
        headers=build_headers(config),
        timeout=config.fetch_timeout,
    )
    resp.raise_for_status()
    payload = resp.json()
    if not isinstance(payload, dict):
        raise ValueError(f"expected a JSON object, got {type(payload).__name__}")
    return payload


def fetch_snapshot(config: MonitorConfig, session: Any = None) -> Snapshot | None:
    """Fetch and normalize one snapshot; ``None`` means the tick should be skipped."""
    try:
        payload = fetch_payload(config, session)
    except (requests.RequestException, ValueError) as e:
        logger.error("RedSky error: %s", e)
        return None
    return parse_snapshot(payload)


__all__ = ["REDSKY_URL", "build_params", "build_headers", "fetch_payload", "fetch_snapshot"]
