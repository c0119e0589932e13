"""Append-only CSV logs for availability transitions and in-stock windows.

Files (under LOG_DIR, one pair per product):
- events_<tcin>.csv  : one row per availability transition
- windows_<tcin>.csv : one row per closed in-stock window

Headers are written once when a file is created. Writes after startup are
best-effort: a failed append is logged and the monitor keeps going.
"""
from __future__ import annotations

import csv
import io
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, List

from stock_checker import EventRecord, LogRecord, WindowRecord

logger = logging.getLogger(__name__)

EVENT_HEADER = ["iso_ts", "local_ts", "event", "shipping", "qty", "tcin", "store_id", "zip", "state"]
WINDOW_HEADER = [
    "start_iso",
    "start_local",
    "end_iso",
    "end_local",
    "duration_ms",
    "duration_sec",
    "shipping_last",
    "qty_last",
    "tcin",
    "store_id",
    "zip",
    "state",
]


def ts_iso(ms: int) -> str:
    dt = datetime.fromtimestamp(ms / 1000, tz=timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def ts_local(ms: int) -> str:
    dt = datetime.fromtimestamp(ms / 1000).astimezone()
    return f"{dt.month}/{dt.day}/{dt.year}, {dt.hour % 12 or 12}:{dt:%M:%S} {dt:%p}"


def ms_to_sec(ms: int) -> int:
    # half-up, not banker's rounding
    return int(ms / 1000 + 0.5)


def clean_qty(qty: Any) -> str:
    return "" if qty is None else str(qty).replace(",", "")


def _to_line(row: List[Any]) -> str:
    buf = io.StringIO()
    csv.writer(buf, lineterminator="\n").writerow(row)
    return buf.getvalue()


class TransitionLog:
    def __init__(self, event_path: Path, window_path: Path, tcin: str, store_id: str, zip_code: str, state: str) -> None:
        self.event_path = event_path
        self.window_path = window_path
        self._ids = [tcin, store_id, zip_code, state]

    def ensure_files(self) -> None:
        """Create the log directory and header rows. Errors propagate: the monitor can't run without logs."""
        for path, header in ((self.event_path, EVENT_HEADER), (self.window_path, WINDOW_HEADER)):
            path.parent.mkdir(parents=True, exist_ok=True)
            if not path.exists():
                path.write_text(_to_line(header), encoding="utf-8")

    def _append(self, path: Path, row: List[Any]) -> bool:
        try:
            with path.open("a", encoding="utf-8", newline="") as fh:
                fh.write(_to_line(row))
            return True
        except (OSError, ValueError) as e:  # ValueError: unencodable text, e.g. lone surrogates
            logger.error("Log write error (%s): %s", path.name, e)
            return False

    def event_row(self, record: EventRecord) -> List[Any]:
        return [
            ts_iso(record.timestamp_ms),
            ts_local(record.timestamp_ms),
            record.event,
            record.shipping_status or "",
            clean_qty(record.quantity_label),
            *self._ids,
        ]

    def window_row(self, record: WindowRecord) -> List[Any]:
        dur = record.duration_ms
        return [
            ts_iso(record.start_ms),
            ts_local(record.start_ms),
            ts_iso(record.end_ms),
            ts_local(record.end_ms),
            dur,
            ms_to_sec(dur),
            record.shipping_last or "",
            clean_qty(record.quantity_last),
            *self._ids,
        ]

    def append_event(self, record: EventRecord) -> bool:
        return self._append(self.event_path, self.event_row(record))

    def append_window(self, record: WindowRecord) -> bool:
        return self._append(self.window_path, self.window_row(record))

    def append(self, record: LogRecord) -> bool:
        if isinstance(record, WindowRecord):
            return self.append_window(record)
        return self.append_event(record)


__all__ = ["EVENT_HEADER", "WINDOW_HEADER", "TransitionLog", "ts_iso", "ts_local", "ms_to_sec", "clean_qty"]
