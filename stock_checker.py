"""Stock checking logic.

This module normalizes the RedSky fulfillment JSON response for a single
product into a ``Snapshot`` and runs the transition engine that decides, tick
by tick, when an in-stock window opens and closes and when an alert may fire.

The JSON structure (simplified) expected:
{
    "data": {
        "product": {
            "fulfillment": {
                "shipping_options": {
                    "availability_status": "IN_STOCK",
                    "available_to_promise_quantity": 12.0,
                    ... other fields ...
                }
            }
        }
    }
}

Availability:
- Any present shipping status is in stock except OUT_OF_STOCK,
  PRE_ORDER_UNSELLABLE and DISCONTINUED.

The engine itself performs no I/O. ``process_snapshot`` mutates the
``EngineState`` it is handed and returns the records to log plus the alert /
open-link intents; the caller executes them.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union
import logging
import math

logger = logging.getLogger(__name__)

IN_STOCK = "IN_STOCK"
OUT_OF_STOCK = "OUT_OF_STOCK"

UNAVAILABLE_STATUSES = frozenset({"OUT_OF_STOCK", "PRE_ORDER_UNSELLABLE", "DISCONTINUED"})
# "undefined" is what the old monitor stringified a missing status to; keep passing it through.
RAW_QUANTITY_STATUSES = UNAVAILABLE_STATUSES | {"undefined"}


@dataclass
class Snapshot:
    shipping_status: Optional[str]
    quantity_raw: Any
    quantity_label: Any
    is_available: bool


def compute_availability(shipping_status: Optional[str]) -> bool:
    return bool(shipping_status) and shipping_status not in UNAVAILABLE_STATUSES


def _as_number(value: Any) -> float | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return float(value)
    try:
        text = value.strip() if isinstance(value, str) else value
        if text == "":
            return 0.0
        if isinstance(text, str) and "_" in text:
            return None
        n = float(text)
    except (TypeError, ValueError, OverflowError):
        return None
    # NaN, inf and "infinity" are not quantities
    return n if math.isfinite(n) else None


def format_quantity(shipping_status: Optional[str], quantity_raw: Any) -> Any:
    """Coarsen the reported quantity to "0" / "1+".

    Unavailable statuses and values that are not numeric are passed through
    untouched so malformed responses stay visible in the logs.
    """
    n = _as_number(quantity_raw)
    if shipping_status in RAW_QUANTITY_STATUSES or n is None:
        return quantity_raw
    return "0" if n == 0 else "1+"


def parse_snapshot(payload: Dict[str, Any]) -> Snapshot:
    """Normalize a RedSky payload into a Snapshot.

    Safely handles missing keys: a payload without fulfillment data produces
    a snapshot with no shipping status, which counts as unavailable.
    """
    options: Any = payload
    for key in ("data", "product", "fulfillment", "shipping_options"):
        options = options.get(key) if isinstance(options, dict) else None
    if not isinstance(options, dict):
        logger.debug("Payload has no shipping_options block")
        options = {}

    shipping = options.get("availability_status")
    if shipping is not None and not isinstance(shipping, str):
        shipping = str(shipping)
    qty_raw = options.get("available_to_promise_quantity")

    return Snapshot(
        shipping_status=shipping,
        quantity_raw=qty_raw,
        quantity_label=format_quantity(shipping, qty_raw),
        is_available=compute_availability(shipping),
    )


# ---------- log records ----------
@dataclass
class EventRecord:
    timestamp_ms: int
    event: str
    shipping_status: Optional[str]
    quantity_label: Any


@dataclass
class WindowRecord:
    start_ms: int
    end_ms: int
    shipping_last: Optional[str]
    quantity_last: Any

    @property
    def duration_ms(self) -> int:
        return max(0, self.end_ms - self.start_ms)


LogRecord = Union[EventRecord, WindowRecord]


@dataclass
class AlertIntent:
    shipping_status: Optional[str]
    quantity_label: Any


@dataclass
class TickDecision:
    records: List[LogRecord] = field(default_factory=list)
    alert: AlertIntent | None = None
    should_open_link: bool = False


# ---------- engine ----------
@dataclass
class EngineState:
    """Everything the engine remembers between ticks.

    ``current_window_start`` is set iff the last processed snapshot was
    available and that window has not been closed yet.
    """

    last_is_available: bool | None = None
    current_window_start: int | None = None
    last_shipping_status: Optional[str] = None
    last_quantity_label: Any = None
    has_fired_this_wave: bool = False
    last_success_ts: int = 0
    next_arm_after_ts: int = 0

    @property
    def window_open(self) -> bool:
        return self.current_window_start is not None


def _close_window(state: EngineState, now: int) -> WindowRecord | None:
    if not state.window_open:
        return None
    record = WindowRecord(
        start_ms=state.current_window_start,
        end_ms=now,
        shipping_last=state.last_shipping_status,
        quantity_last=state.last_quantity_label,
    )
    state.current_window_start = None
    return record


def process_snapshot(
    state: EngineState,
    snapshot: Snapshot,
    now: int,
    refire_cooldown_ms: int,
    success_cooldown_ms: int,
) -> TickDecision:
    """Feed one snapshot (taken at ``now`` ms) through the state machine.

    Must be called once per tick, in chronological order.
    """
    decision = TickDecision()
    is_avail = snapshot.is_available

    if state.last_is_available is None:
        decision.records.append(
            EventRecord(now, IN_STOCK if is_avail else OUT_OF_STOCK, snapshot.shipping_status, snapshot.quantity_label)
        )
        if is_avail:
            state.current_window_start = now
    elif is_avail != state.last_is_available:
        if is_avail:
            decision.records.append(EventRecord(now, IN_STOCK, snapshot.shipping_status, snapshot.quantity_label))
            state.current_window_start = now
        else:
            decision.records.append(EventRecord(now, OUT_OF_STOCK, snapshot.shipping_status, snapshot.quantity_label))
            # closes with the previous tick's trailing values, not this tick's
            window = _close_window(state, now)
            if window is not None:
                decision.records.append(window)

    state.last_is_available = is_avail
    state.last_shipping_status = snapshot.shipping_status
    state.last_quantity_label = snapshot.quantity_label

    if (
        is_avail
        and not state.has_fired_this_wave
        and now >= state.next_arm_after_ts
        and now - state.last_success_ts >= success_cooldown_ms
    ):
        state.has_fired_this_wave = True
        state.last_success_ts = now
        state.next_arm_after_ts = now + refire_cooldown_ms
        decision.alert = AlertIntent(snapshot.shipping_status, snapshot.quantity_label)
        decision.should_open_link = True

    # re-arm; next_arm_after_ts is left alone on purpose
    if not is_avail:
        state.has_fired_this_wave = False

    return decision


def close_window_if_open(state: EngineState, now: int) -> WindowRecord | None:
    """Force-close an open window using the last known trailing values.

    Idempotent: returns None when no window is open.
    """
    return _close_window(state, now)


__all__ = [
    "IN_STOCK",
    "OUT_OF_STOCK",
    "UNAVAILABLE_STATUSES",
    "Snapshot",
    "EventRecord",
    "WindowRecord",
    "LogRecord",
    "AlertIntent",
    "TickDecision",
    "EngineState",
    "compute_availability",
    "format_quantity",
    "parse_snapshot",
    "process_snapshot",
    "close_window_if_open",
]
