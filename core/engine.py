"""
polyedge Core: Trading Engine

Owns the whole mutable engine state behind one lock and drives the cycle
pipeline:

1. Bump cycle counter, refresh uptime
2. Fetch active markets (abort the cycle on provider failure)
3. Ask the AI predictor about the first few markets
4. Surface edges, open simulated orders when auto trading is on
5. Settle filled orders, truncate the ledger
6. Sample balance, recompute derived stats

Every public method holds the lock for its full duration, including the
network calls of a cycle. Readers therefore see either the pre-cycle or the
post-cycle state, never a mix, at the price of blocking behind a running
cycle. `stop()` only prevents future cycles; it does not interrupt one in
flight.
"""

import dataclasses
import logging
import os
import time
from threading import Lock
from typing import Callable, List, Optional

from ai.predictor import Predictor, create_predictor
from ai.schemas import AIPrediction
from core.bounded_log import BoundedLog
from core.demo import DEMO_API_COST_PER_CYCLE, demo_tick
from core.exceptions import CollaboratorError
from core.market_data import PolymarketClient, create_market_client
from core.models import (
    ActivityEntry,
    ActivityType,
    BalancePoint,
    BotConfig,
    BotStats,
    Market,
    Order,
    utc_now,
)
from core.order_ledger import DEFAULT_LEDGER_CAPACITY, OrderLedger
from core.settlement import OutcomeSource, RandomOutcomeSource, SimulationParams, settle_filled_orders
from core.stats import format_signed_money, record_trade, refresh_derived_stats
from infra.metrics import CycleStats, MetricsRecorder

logger = logging.getLogger(__name__)

MARKET_PAGE_SIZE = 100
MAX_ANALYZED_PER_CYCLE = 10
ACTIVITY_LOG_CAPACITY = 500
BALANCE_HISTORY_CAPACITY = 1000
MIN_ORDER_SIZE = 1.0
QUESTION_DISPLAY_CHARS = 40

_LOG_LEVELS = {
    ActivityType.ERROR: logging.ERROR,
    ActivityType.WARNING: logging.WARNING,
    ActivityType.INFERENCE: logging.WARNING,
}


def truncate_question(text: str, max_len: int = QUESTION_DISPLAY_CHARS) -> str:
    if len(text) <= max_len:
        return text
    return f"{text[:max_len]}..."


class TradingEngine:
    """
    Cycle engine aggregate.

    Constructed once at process start and handed to every caller (runner,
    operator server). Collaborators are built from the configuration through
    injectable factories so tests can substitute fakes.
    """

    def __init__(
        self,
        config: Optional[BotConfig] = None,
        simulation: Optional[SimulationParams] = None,
        market_client_factory: Callable[[BotConfig], PolymarketClient] = create_market_client,
        predictor_factory: Callable[[BotConfig], Predictor] = create_predictor,
        outcome_source: Optional[OutcomeSource] = None,
        metrics: Optional[MetricsRecorder] = None,
        clock: Callable = utc_now,
        ledger_capacity: int = DEFAULT_LEDGER_CAPACITY,
    ):
        """
        Args:
            config: Operator configuration (defaults to BotConfig())
            simulation: Settlement tunables
            market_client_factory: Builds the market data provider from a config
            predictor_factory: Builds the AI predictor from a config
            outcome_source: Random source for settlement (seeded from simulation.seed by default)
            metrics: Optional Prometheus recorder
            clock: Returns the current aware datetime
            ledger_capacity: Orders retained after each cycle
        """
        self._lock = Lock()
        self._clock = clock
        self._market_client_factory = market_client_factory
        self._predictor_factory = predictor_factory

        self.config = config or BotConfig()
        self.simulation = simulation or SimulationParams()
        self.outcome_source = outcome_source or RandomOutcomeSource(self.simulation.seed)
        self.metrics = metrics

        self.market_client = market_client_factory(self.config)
        self.predictor = predictor_factory(self.config)

        initial = self.config.initial_balance
        self.stats = BotStats(initial_balance=initial, current_balance=initial, pid=os.getpid())
        self.ledger = OrderLedger(capacity=ledger_capacity)
        self.activity_log: BoundedLog[ActivityEntry] = BoundedLog(ACTIVITY_LOG_CAPACITY)
        self.balance_history: BoundedLog[BalancePoint] = BoundedLog(
            BALANCE_HISTORY_CAPACITY,
            initial=[BalancePoint(balance=initial, label="0h", timestamp=self._clock())],
        )

        self._running = False
        self._start_time = None
        self._edge_sum = 0.0
        self._edge_count = 0

        logger.info(f"Initialized TradingEngine (balance=${initial:.2f}, auto_trading={self.config.auto_trading})")

    # ─── Lifecycle ────────────────────────────────────────────────────

    def start(self) -> None:
        with self._lock:
            if self._running:
                return
            self._running = True
            self._start_time = self._clock()
            message = "🟢 Bot started - Survival Mode active" if self.config.survival_mode else "🟢 Bot started"
            self._log(message, ActivityType.INFO)

    def stop(self) -> None:
        with self._lock:
            self._running = False
            self._log("🔴 Bot stopped", ActivityType.WARNING)

    def configure(self, config: BotConfig) -> None:
        """Swap configuration and rebuild both collaborators; effective from the next cycle."""
        with self._lock:
            self.market_client = self._market_client_factory(config)
            self.predictor = self._predictor_factory(config)
            self.config = config
            self._log("Configuration updated successfully", ActivityType.INFO)

    def is_running(self) -> bool:
        with self._lock:
            return self._running

    def uptime_seconds(self) -> float:
        with self._lock:
            return self._uptime_locked()

    def _uptime_locked(self) -> float:
        if not self._running or self._start_time is None:
            return 0.0
        return max(0.0, (self._clock() - self._start_time).total_seconds())

    # ─── Reads ────────────────────────────────────────────────────────

    def get_stats(self) -> BotStats:
        """Copy of the stats record with uptime computed now."""
        with self._lock:
            return dataclasses.replace(self.stats, uptime_seconds=self._uptime_locked())

    def get_activity_log(self) -> List[ActivityEntry]:
        with self._lock:
            return self.activity_log.snapshot()

    def get_balance_history(self) -> List[BalancePoint]:
        with self._lock:
            return self.balance_history.snapshot()

    def get_orders(self) -> List[Order]:
        with self._lock:
            return [dataclasses.replace(o) for o in self.ledger]

    def get_config(self) -> BotConfig:
        with self._lock:
            return dataclasses.replace(self.config)

    # ─── Cycle ────────────────────────────────────────────────────────

    def run_cycle(self) -> List[ActivityEntry]:
        """
        Execute one scan → predict → order → resolve → aggregate iteration.

        Returns:
            Activity entries appended by this call, in emission order. Empty
            (and nothing mutated) when the engine is idle.
        """
        with self._lock:
            if not self._running:
                self._observe_cycle("idle", 0, 0, 0, 0, 0.0)
                return []

            started = time.perf_counter()
            delta: List[ActivityEntry] = []

            self.stats.cycle += 1
            self.stats.uptime_seconds = self._uptime_locked()

            self._log(f"Scanning markets... Cycle #{self.stats.cycle}", ActivityType.INFO, delta)
            try:
                markets = self.market_client.fetch_markets(limit=MARKET_PAGE_SIZE, offset=0)
            except CollaboratorError as e:
                self._log(f"Error fetching markets: {e}", ActivityType.ERROR, delta)
                self._observe_cycle("market_error", 0, 0, 0, 0, time.perf_counter() - started)
                return delta

            self.stats.markets_scanned += len(markets)
            self._log(f"Processing {len(markets)} markets...", ActivityType.INFO, delta)

            predictions, orders = self._analyze_markets(markets[:MAX_ANALYZED_PER_CYCLE], delta)
            resolved = self._settle(delta)
            self._sample_balance()
            self._refresh_stats()

            self._observe_cycle("ok", len(markets), predictions, orders, resolved, time.perf_counter() - started)
            return delta

    def _analyze_markets(self, markets: List[Market], delta: List[ActivityEntry]) -> tuple:
        """Steps 4-5. Returns (successful predictions, orders opened)."""
        if not self.predictor.is_configured():
            self._log("AI predictor not configured - skipping analysis", ActivityType.WARNING, delta)
            return 0, 0

        predictions = 0
        orders = 0
        for market in markets:
            try:
                prediction = self.predictor.predict(market)
            except CollaboratorError as e:
                self._log(
                    f'Inference failed for "{truncate_question(market.question)}": {e}',
                    ActivityType.INFERENCE,
                    delta,
                )
                continue

            predictions += 1
            self.stats.api_costs = self.predictor.estimate_cost()

            if prediction.edge >= self.config.min_edge_threshold:
                if self._surface_edge(market, prediction, delta):
                    orders += 1
        return predictions, orders

    def _surface_edge(self, market: Market, prediction: AIPrediction, delta: List[ActivityEntry]) -> bool:
        """Log the edge and open a simulated order if sizing and gates allow."""
        question = truncate_question(market.question)
        candidate_size = prediction.recommended_size * self.stats.current_balance
        self._edge_sum += prediction.edge
        self._edge_count += 1
        self._log(
            f'Edge: "{question}" > ${candidate_size:.0f} @ {prediction.edge:.2f} (fair {prediction.fair_price:.2f})',
            ActivityType.EDGE,
            delta,
        )

        order_size = min(candidate_size, self.config.max_bet_size)
        if order_size <= MIN_ORDER_SIZE or not self.config.auto_trading:
            return False

        open_orders = self.ledger.open_count()
        if open_orders >= self.config.max_concurrent_orders:
            self._log(
                f'Order cap reached ({open_orders}/{self.config.max_concurrent_orders}) - skipping "{question}"',
                ActivityType.WARNING,
                delta,
            )
            return False

        self.ledger.open_simulated_order(
            market,
            outcome=prediction.predicted_outcome,
            price=prediction.fair_price,
            size=order_size,
            now=self._clock(),
        )
        self._log(f'ORDER ${order_size:.2f} → "{question}"', ActivityType.ORDER, delta)
        if self.metrics:
            self.metrics.record_order()
        return True

    def _settle(self, delta: List[ActivityEntry]) -> int:
        """Step 6: resolve filled orders, fold pnl into stats, cap the ledger."""
        resolved = settle_filled_orders(self.ledger, self.simulation, self.outcome_source, now=self._clock())
        for order in resolved:
            record_trade(self.stats, order.pnl)
            entry_type = ActivityType.RESOLVED if order.pnl >= 0 else ActivityType.WARNING
            self._log(f"RESOLVED {format_signed_money(order.pnl)}", entry_type, delta)
        self.ledger.truncate()
        return len(resolved)

    # ─── Demo ─────────────────────────────────────────────────────────

    def run_demo_cycle(self) -> BotStats:
        """
        Synthetic cycle with the same observable shape as run_cycle, no networking.

        Starts the engine if idle. Never touches the order ledger.
        """
        with self._lock:
            if not self._running:
                self._running = True
                self._start_time = self._clock()

            self.stats.cycle += 1
            self.stats.uptime_seconds = self._uptime_locked()
            tick = demo_tick(self.stats.cycle)

            self.stats.markets_scanned += tick.scan_count
            self._log(f"Scanning {tick.scan_count} feeds...", ActivityType.INFO)

            if tick.has_trade:
                self._edge_sum += tick.edge
                self._edge_count += 1
                self._log(
                    f'Edge: "{tick.market_name}" @ {tick.edge:.2f} (fair {tick.fair_value:.2f})',
                    ActivityType.EDGE,
                )
                self._log(f'ORDER ${tick.order_size:.2f} → "{tick.market_name}"', ActivityType.ORDER)
                pnl = tick.pnl
                record_trade(self.stats, pnl)
                self._log(
                    f"RESOLVED {format_signed_money(pnl)}",
                    ActivityType.RESOLVED if pnl >= 0 else ActivityType.WARNING,
                )
            else:
                self._log(f"{tick.scan_count} markets scanned, no edge", ActivityType.INFO)

            self._log(f"Evaluating {tick.evaluate_count} markets...", ActivityType.INFO)
            self._log(f"Monitoring {tick.orderbook_count} orderbooks...", ActivityType.INFO)

            self.stats.api_costs += DEMO_API_COST_PER_CYCLE
            if tick.inference_cost is not None:
                self._log(f"Inference: -${tick.inference_cost:.3f}", ActivityType.INFERENCE)

            self._sample_balance()
            self._refresh_stats()
            return dataclasses.replace(self.stats)

    # ─── Internals (lock held) ────────────────────────────────────────

    def _log(self, message: str, entry_type: ActivityType,
             delta: Optional[List[ActivityEntry]] = None) -> ActivityEntry:
        entry = self.activity_log.append(
            ActivityEntry(message=message, entry_type=entry_type, timestamp=self._clock())
        )
        if delta is not None:
            delta.append(entry)
        logger.log(_LOG_LEVELS.get(entry_type, logging.INFO), f"[{entry_type.value}] {message}")
        return entry

    def _sample_balance(self) -> None:
        label = f"{self.balance_history.total_appended}h"
        self.balance_history.append(
            BalancePoint(balance=self.stats.current_balance, label=label, timestamp=self._clock())
        )

    def _refresh_stats(self) -> None:
        avg_edge = self._edge_sum / self._edge_count if self._edge_count else 0.0
        refresh_derived_stats(self.stats, self.ledger.snapshot(), avg_edge)
        if self.metrics:
            self.metrics.record_portfolio(self.stats.current_balance, self.stats.win_rate, self.ledger.open_count())

    def _observe_cycle(self, status: str, markets: int, predictions: int, orders: int,
                       resolved: int, duration: float) -> None:
        if self.metrics:
            self.metrics.observe_cycle(CycleStats(
                status=status,
                markets=markets,
                predictions=predictions,
                orders=orders,
                resolved=resolved,
                duration_seconds=duration,
            ))
