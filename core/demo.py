"""
polyedge Core: Demo Ticks

Synthetic, non-networked cycle inputs so the operator surface can be
exercised without live credentials. Every number is a deterministic
function of the cycle counter.
"""

from dataclasses import dataclass
from typing import Optional

DEMO_MARKETS = [
    "BTC > $102K Feb 12",
    "NVDA > $800 Feb 14",
    "UFC 312 decision",
    "Seoul PM2.5 > 100",
    "Man City vs Wolves ML",
    "Trump approval > 45%",
    "ETH > $3500 Feb 15",
    "SpaceX launch success",
    "Fed rate hold March",
    "Tesla Q1 deliveries > 500K",
]

DEMO_API_COST_PER_CYCLE = 0.003


@dataclass(frozen=True)
class DemoTick:
    """Inputs for one demo cycle."""
    cycle: int
    scan_count: int
    market_name: str
    has_trade: bool
    edge: float
    fair_value: float
    order_size: float
    won: bool
    evaluate_count: int
    orderbook_count: int
    inference_cost: Optional[float]

    @property
    def pnl(self) -> float:
        if self.won:
            return self.order_size * self.edge * 0.8
        return -self.order_size * (1.0 - self.edge) * 0.6


def demo_tick(cycle: int) -> DemoTick:
    """Synthetic inputs for demo cycle number `cycle` (1-based)."""
    seed = float(cycle)
    return DemoTick(
        cycle=cycle,
        scan_count=200 + (cycle * 7) % 900,
        market_name=DEMO_MARKETS[cycle % len(DEMO_MARKETS)],
        has_trade=cycle % 3 != 0,
        edge=0.25 + (seed * 0.17) % 0.4,
        fair_value=0.45 + (seed * 0.13) % 0.3,
        order_size=20.0 + (seed * 23.0) % 180.0,
        won=(seed * 7.3) % 10.0 > 3.5,
        evaluate_count=400 + cycle % 600,
        orderbook_count=200 + cycle % 700,
        inference_cost=(0.002 + (seed * 0.001) % 0.005) if cycle % 5 == 0 else None,
    )
