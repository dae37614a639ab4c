"""
polyedge Runner: Main Loop

Process entry point around the trading engine.

Flow:
1. Load and validate config/app.yaml
2. Configure logging (file + stream)
3. Build the engine, metrics exporter and operator server
4. start() the engine, then run_cycle() every scan interval
5. On SIGINT/SIGTERM: stop() the engine and shut the servers down
"""

import logging
import signal
import threading
import time
from pathlib import Path
from typing import Optional

from core.engine import TradingEngine
from infra.metrics import MetricsRecorder
from infra.operator_server import OperatorServer
from tools.config_validator import AppConfig, load_app_config

logger = logging.getLogger(__name__)

MIN_INTERVAL_SECONDS = 1.0


def configure_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    handlers = [logging.StreamHandler()]
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.insert(0, logging.FileHandler(log_path))

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        handlers=handlers,
    )


class TradingLoop:
    """
    Main loop orchestrator.

    Responsibilities:
    - Own the engine and the process-level servers
    - Run periodic cycles at the configured interval
    - Shut down cleanly on signal
    """

    def __init__(self, app_config: AppConfig, engine: Optional[TradingEngine] = None):
        self.app_config = app_config
        monitoring = app_config.monitoring

        self.metrics = MetricsRecorder(enabled=monitoring.metrics_enabled, port=monitoring.metrics_port)
        self.engine = engine or TradingEngine(
            config=app_config.bot,
            simulation=app_config.simulation,
            metrics=self.metrics,
        )
        self.operator_server: Optional[OperatorServer] = None
        if monitoring.operator_enabled:
            self.operator_server = OperatorServer(
                self.engine,
                host=monitoring.operator_host,
                port=monitoring.operator_port,
            )

        self._stop_event = threading.Event()
        logger.info(
            f"Initialized TradingLoop (auto_trading={app_config.bot.auto_trading}, "
            f"interval={app_config.bot.scan_interval_secs}s)"
        )

    def install_signal_handlers(self) -> None:
        signal.signal(signal.SIGINT, self._handle_stop)
        signal.signal(signal.SIGTERM, self._handle_stop)

    def _handle_stop(self, *_):
        logger.warning("=" * 60)
        logger.warning("SHUTDOWN SIGNAL RECEIVED - stopping after current cycle")
        logger.warning("=" * 60)
        self._stop_event.set()

    def request_stop(self) -> None:
        self._stop_event.set()

    def start_services(self) -> None:
        self.metrics.start()
        if self.operator_server:
            self.operator_server.start()

    def shutdown(self) -> None:
        self.engine.stop()
        if self.operator_server:
            self.operator_server.stop()
        logger.info("Trading loop stopped cleanly.")

    def run_once(self) -> None:
        """Run one cycle. An engine stopped by the operator stays idle."""
        delta = self.engine.run_cycle()
        stats = self.engine.get_stats()
        logger.info(
            f"Cycle #{stats.cycle}: {len(delta)} activity entries, "
            f"balance ${stats.current_balance:.2f}, win rate {stats.win_rate:.1f}%"
        )

    def run_forever(self, interval_seconds: Optional[float] = None) -> None:
        """
        Run cycles until a stop is requested.

        Args:
            interval_seconds: Seconds between cycle starts (default: scan_interval_secs)
        """
        configured = float(interval_seconds) if interval_seconds else float(self.engine.get_config().scan_interval_secs)
        configured = max(configured, MIN_INTERVAL_SECONDS)
        logger.info(f"Starting continuous loop (interval={configured}s)")

        self.engine.start()
        while not self._stop_event.is_set():
            start = time.monotonic()
            self.run_once()
            elapsed = time.monotonic() - start

            sleep_for = max(0.0, configured - elapsed)
            if elapsed > configured:
                logger.warning(f"Cycle took {elapsed:.2f}s, longer than the {configured:.0f}s interval")
            else:
                logger.debug(f"Cycle took {elapsed:.2f}s, sleeping {sleep_for:.2f}s")
            self._stop_event.wait(sleep_for)


def main():
    """Entry point"""
    import argparse

    parser = argparse.ArgumentParser(description="polyedge prediction-market bot (simulated)")
    parser.add_argument("--once", action="store_true", help="Run one cycle and exit")
    parser.add_argument("--interval", type=float, default=None,
                        help="Seconds between cycles (default: bot.scan_interval_secs)")
    parser.add_argument("--config", default="config/app.yaml", help="Path to app.yaml")

    args = parser.parse_args()

    app_config = load_app_config(args.config)
    configure_logging(app_config.logging.level, app_config.logging.file)

    loop = TradingLoop(app_config)
    loop.install_signal_handlers()
    loop.start_services()
    try:
        if args.once:
            loop.engine.start()
            loop.run_once()
        else:
            loop.run_forever(interval_seconds=args.interval)
    finally:
        loop.shutdown()


if __name__ == "__main__":
    main()
