"""
polyedge Core: Simulated Settlement

Stand-in for real market settlement. Every FILLED order resolves exactly once
with an outcome drawn from an injectable random source, biased toward a
target win rate.

The win bias and payout multipliers are simulation tunables, not market
facts.
"""

import logging
import random
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from core.models import Order, OrderStatus, utc_now
from core.order_ledger import OrderLedger

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SimulationParams:
    """Resolution tunables."""
    win_probability: float = 0.65
    win_payout_factor: float = 0.3    # Fraction of the full binary payout realized on a win
    loss_factor: float = 0.7          # Fraction of the stake lost on a loss
    seed: Optional[int] = None

    def __post_init__(self):
        for name in ("win_probability", "win_payout_factor", "loss_factor"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be within [0, 1], got {value}")


class OutcomeSource(ABC):
    """Source of uniform draws in [0, 1) used to decide wins."""

    @abstractmethod
    def draw(self) -> float:
        pass


class RandomOutcomeSource(OutcomeSource):
    """Seedable pseudo-random draws."""

    def __init__(self, seed: Optional[int] = None):
        self._rng = random.Random(seed)

    def draw(self) -> float:
        return self._rng.random()


def compute_pnl(order: Order, won: bool, params: SimulationParams) -> float:
    """
    Realized pnl of a binary position.

    A win pays `size * (1/price - 1)` scaled by the payout factor; a loss
    forfeits `loss_factor` of the stake.
    """
    if won:
        return order.size * (1.0 / order.price - 1.0) * params.win_payout_factor
    return -order.size * params.loss_factor


def settle_filled_orders(
    ledger: OrderLedger,
    params: SimulationParams,
    source: OutcomeSource,
    now: Optional[datetime] = None,
) -> List[Order]:
    """
    Resolve every FILLED order in ledger order.

    Returns:
        The orders resolved by this call, each with pnl and resolved_at set
    """
    resolved: List[Order] = []
    stamp = now or utc_now()
    for order in ledger.get_orders_by_status(OrderStatus.FILLED):
        won = source.draw() < params.win_probability
        pnl = compute_pnl(order, won, params)
        ledger.resolve(order.id, pnl, now=stamp)
        resolved.append(order)

    if resolved:
        logger.info(f"Settled {len(resolved)} order(s), net pnl {sum(o.pnl for o in resolved):+.2f}")
    return resolved
