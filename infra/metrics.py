"""Prometheus-backed metrics hooks for the cycle engine."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from prometheus_client import REGISTRY, Counter, Gauge, Summary, start_http_server

logger = logging.getLogger(__name__)

METRIC_PREFIX = "polyedge_"


@dataclass
class CycleStats:
    status: str               # "ok", "idle", "market_error"
    markets: int
    predictions: int
    orders: int
    resolved: int
    duration_seconds: float


class MetricsRecorder:
    """
    Expose cycle and portfolio stats via Prometheus.

    Singleton pattern to prevent duplicate metric registration errors.
    """
    _instance: Optional['MetricsRecorder'] = None
    _initialized: bool = False

    def __new__(cls, enabled: bool = True, port: int = 9100):
        """Ensure only one MetricsRecorder instance exists."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self, enabled: bool = True, port: int = 9100) -> None:
        # Skip re-initialization if already initialized
        if self.__class__._initialized:
            return

        self._enabled = bool(enabled)
        self._port = port
        self._started = False
        self.__class__._initialized = True

        self._last_cycle_stats: Optional[CycleStats] = None

        if not self._enabled:
            self._cycle_summary = None
            self._cycle_counter = None
            self._balance_gauge = None
            self._win_rate_gauge = None
            self._open_orders_gauge = None
            self._orders_counter = None
            self._markets_counter = None
            return

        self._cycle_summary = Summary(
            "polyedge_cycle_duration_seconds",
            "Duration of a full scan/predict/resolve cycle",
        )
        self._cycle_counter = Counter(
            "polyedge_cycle_total",
            "Total cycles by outcome",
            labelnames=("status",),
        )
        self._balance_gauge = Gauge(
            "polyedge_balance_usd",
            "Current simulated balance",
        )
        self._win_rate_gauge = Gauge(
            "polyedge_win_rate_pct",
            "Lifetime win rate (0-100)",
        )
        self._open_orders_gauge = Gauge(
            "polyedge_open_orders",
            "Orders filled and awaiting resolution",
        )
        self._orders_counter = Counter(
            "polyedge_orders_total",
            "Simulated orders opened",
        )
        self._markets_counter = Counter(
            "polyedge_markets_scanned_total",
            "Markets returned by the provider",
        )

    @classmethod
    def _reset_for_testing(cls) -> None:
        """
        Reset singleton state for testing.
        WARNING: Only call from test fixtures/teardown.
        """
        if cls._instance is not None and cls._instance._enabled:
            collectors_to_remove = []
            for collector in list(REGISTRY._collector_to_names):
                names = REGISTRY._collector_to_names.get(collector, set())
                if any(name.startswith(METRIC_PREFIX) for name in names):
                    collectors_to_remove.append(collector)
            for collector in collectors_to_remove:
                try:
                    REGISTRY.unregister(collector)
                except KeyError:
                    pass  # Already unregistered

        cls._instance = None
        cls._initialized = False

    def start(self) -> None:
        if not self._enabled or self._started:
            return
        try:
            start_http_server(self._port)
        except OSError as exc:
            self._enabled = False
            logger.error("Failed to start metrics exporter on port %s: %s", self._port, exc)
            return
        self._started = True
        logger.info("Prometheus metrics exporter listening on 0.0.0.0:%s", self._port)

    def is_enabled(self) -> bool:
        return self._enabled

    def observe_cycle(self, stats: CycleStats) -> None:
        if self._enabled:
            assert self._cycle_summary and self._cycle_counter and self._markets_counter
            self._cycle_summary.observe(stats.duration_seconds)
            self._cycle_counter.labels(status=stats.status).inc()
            if stats.markets > 0:
                self._markets_counter.inc(stats.markets)

        self._last_cycle_stats = stats

    def record_portfolio(self, balance: float, win_rate: float, open_orders: int) -> None:
        if self._enabled:
            assert self._balance_gauge and self._win_rate_gauge and self._open_orders_gauge
            self._balance_gauge.set(balance)
            self._win_rate_gauge.set(max(win_rate, 0.0))
            self._open_orders_gauge.set(max(open_orders, 0))

    def record_order(self) -> None:
        if self._enabled and self._orders_counter:
            self._orders_counter.inc()

    def last_cycle(self) -> Optional[CycleStats]:
        return self._last_cycle_stats


__all__ = ["MetricsRecorder", "CycleStats"]
