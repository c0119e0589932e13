"""Entrypoint for the single-product stock monitor.

Features:
- Polls the RedSky fulfillment endpoint every POLL_MS milliseconds
- Logs availability transitions and in-stock windows to CSV (see transition_log)
- On a new in-stock wave: sends one alert and opens the product page,
  throttled by REFIRE_COOLDOWN_MS / SUCCESS_COOLDOWN_MS
- SIGINT / SIGTERM / normal exit close any open window before the process ends

Configuration via environment variables or a .env file, see config.py.

Run:
  python main.py
"""
from __future__ import annotations

import atexit
import logging
import os
import signal
import sys
import threading
import time
from typing import Callable, Optional

from config import MonitorConfig, load_config, load_env_file
from fetcher import fetch_snapshot
from notifier import NotificationDispatcher, build_notifiers, format_alert_message, open_product_page
from stock_checker import EngineState, LogRecord, Snapshot, TickDecision, close_window_if_open, process_snapshot
from transition_log import TransitionLog

logger = logging.getLogger("main")


def now_ms() -> int:
    return int(time.time() * 1000)


class StockMonitor:
    """Owns the engine state and runs fetch -> engine -> side effects, one tick at a time."""

    def __init__(
        self,
        config: MonitorConfig,
        transition_log: TransitionLog,
        dispatcher: NotificationDispatcher,
        fetch: Optional[Callable[[], Optional[Snapshot]]] = None,
        open_link: Callable[[str], object] = open_product_page,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.config = config
        self.log = transition_log
        self.dispatcher = dispatcher
        self._fetch = fetch or (lambda: fetch_snapshot(config))
        self._open_link = open_link
        self._clock = clock
        self.state = EngineState()
        self._tick_lock = threading.Lock()
        self._closed = False

    def tick(self) -> TickDecision | None:
        snapshot = self._fetch()
        if snapshot is None:
            return None

        with self._tick_lock:
            if self._closed:
                return None
            now = self._clock()
            logger.info("Shipping: %s | Qty: %s", snapshot.shipping_status, snapshot.quantity_label)
            decision = process_snapshot(
                self.state,
                snapshot,
                now,
                self.config.refire_cooldown_ms,
                self.config.success_cooldown_ms,
            )
            for record in decision.records:
                self._write(record)

        if decision.alert is not None:
            self.dispatcher.submit(format_alert_message(decision.alert, self.config.tcin, self.config.product_url))
        if decision.should_open_link:
            logger.info("Opening product page for manual checkout")
            try:
                self._open_link(self.config.product_url)
            except Exception:
                logger.exception("Opening product page failed")
        return decision

    def _write(self, record: LogRecord) -> None:
        # a broken log write must not cost the tick its alert
        try:
            self.log.append(record)
        except Exception:
            logger.exception("Unexpected error writing %s", type(record).__name__)

    def run_forever(self, stop: threading.Event) -> None:
        period = self.config.poll_ms / 1000
        next_at = time.monotonic()
        while not stop.is_set():
            try:
                self.tick()
            except Exception:
                logger.exception("Unexpected error during tick")
            next_at += period
            now = time.monotonic()
            if next_at < now:
                # overran; drop the missed ticks instead of bursting
                next_at = now
            stop.wait(next_at - now)

    def close(self) -> None:
        """Close any open window and flush pending alerts. Runs once; later calls are no-ops."""
        with self._tick_lock:
            if self._closed:
                return
            self._closed = True
            record = close_window_if_open(self.state, self._clock())
            if record is not None:
                logger.info("Closing open in-stock window (%d ms)", record.duration_ms)
                self._write(record)
        self.dispatcher.shutdown(wait=True)


def print_banner(config: MonitorConfig, dispatcher: NotificationDispatcher) -> None:
    logger.info("====================================")
    logger.info("   Target Stock Monitor")
    logger.info("====================================")
    logger.info("TCIN: %s | QTY: %s", config.tcin, config.qty)
    logger.info("Store: %s | ZIP: %s | State: %s", config.store_id, config.zip, config.state)
    logger.info("Polling: every %s ms", config.poll_ms)
    if dispatcher.enabled:
        logger.info("Notifications: %s", ", ".join(type(n).__name__ for n in dispatcher.notifiers))
    else:
        logger.info("Notifications: none configured (product page popup only)")
    logger.info("Logs: %s", config.log_dir)
    logger.info("====================================")


def main() -> None:
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO"),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    load_env_file()
    # .env may carry its own LOG_LEVEL
    logging.getLogger().setLevel(os.getenv("LOG_LEVEL", "INFO"))
    config = load_config()

    transition_log = TransitionLog(
        config.event_log_path, config.window_log_path, config.tcin, config.store_id, config.zip, config.state
    )
    transition_log.ensure_files()
    dispatcher = NotificationDispatcher(build_notifiers(config))
    monitor = StockMonitor(config, transition_log, dispatcher)

    stop = threading.Event()

    def handle_signal(signum, frame):
        logger.info("Received %s; shutting down", signal.Signals(signum).name)
        stop.set()

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)
    atexit.register(monitor.close)

    print_banner(config, dispatcher)
    try:
        monitor.run_forever(stop)
    finally:
        monitor.close()
    sys.exit(0)


if __name__ == "__main__":  # pragma: no cover
    main()
