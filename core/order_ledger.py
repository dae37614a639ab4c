"""
polyedge Core: Order Ledger

Capped, ordered collection of simulated positions with explicit lifecycle
transitions.

States: PENDING → FILLED → RESOLVED, with CANCELLED | FAILED as alternate
terminal states.

Provides:
- Transition validation (impossible transitions raise)
- Resolution stamping (pnl + resolved_at set together)
- Oldest-first truncation to the retained window
"""

import logging
import uuid
from datetime import datetime
from typing import Optional, List

from core.exceptions import InvalidTransition
from core.models import Market, Order, OrderSide, OrderStatus, utc_now

logger = logging.getLogger(__name__)

DEFAULT_LEDGER_CAPACITY = 50

# Entry prices are kept away from 0 and 1 so the win payout stays finite.
MIN_ENTRY_PRICE = 0.01
MAX_ENTRY_PRICE = 0.99


def clamp_entry_price(price: float) -> float:
    return max(MIN_ENTRY_PRICE, min(MAX_ENTRY_PRICE, float(price)))


class OrderLedger:
    """
    Order ledger with transition validation.

    Orders are kept in creation order. `truncate()` drops the oldest entries
    beyond `capacity`; the engine calls it only after resolution, so every
    filled order resolves before it can be evicted.
    """

    VALID_TRANSITIONS = {
        OrderStatus.PENDING: {OrderStatus.FILLED, OrderStatus.CANCELLED, OrderStatus.FAILED},
        OrderStatus.FILLED: {OrderStatus.RESOLVED, OrderStatus.CANCELLED},
        # Terminal states have no outbound transitions
        OrderStatus.RESOLVED: set(),
        OrderStatus.CANCELLED: set(),
        OrderStatus.FAILED: set(),
    }

    def __init__(self, capacity: int = DEFAULT_LEDGER_CAPACITY):
        if capacity <= 0:
            raise ValueError(f"Ledger capacity must be positive, got {capacity}")
        self.capacity = capacity
        self._orders: List[Order] = []

    def open_simulated_order(
        self,
        market: Market,
        outcome: str,
        price: float,
        size: float,
        now: Optional[datetime] = None,
    ) -> Order:
        """
        Create a simulated buy and walk it PENDING → FILLED.

        Args:
            market: Market the position is taken in
            outcome: Outcome label bought
            price: Entry price (clamped into [0.01, 0.99])
            size: Position size in currency units

        Returns:
            The filled Order, appended to the ledger
        """
        order = Order(
            id=str(uuid.uuid4()),
            market_id=market.id,
            market_name=market.question,
            side=OrderSide.BUY,
            outcome=outcome,
            price=clamp_entry_price(price),
            size=size,
            status=OrderStatus.PENDING,
            created_at=now or utc_now(),
        )
        self.add(order)
        self.transition(order.id, OrderStatus.FILLED)
        logger.info(f"Simulated order {order.id}: {outcome} ${size:.2f} @ {order.price:.2f} ({market.id})")
        return order

    def add(self, order: Order) -> Order:
        if self.get_order(order.id) is not None:
            raise ValueError(f"Order {order.id} already in ledger")
        self._orders.append(order)
        return order

    def transition(self, order_id: str, new_status: OrderStatus) -> Order:
        """
        Move an order to `new_status`.

        Raises:
            KeyError: unknown order id
            InvalidTransition: the lifecycle does not allow the move
        """
        order = self.get_order(order_id)
        if order is None:
            raise KeyError(f"Order {order_id} not found")

        if new_status not in self.VALID_TRANSITIONS[order.status]:
            raise InvalidTransition(order_id, order.status.value, new_status.value)

        old_status = order.status
        order.status = new_status
        logger.debug(f"Order {order_id} transitioned: {old_status.value} → {new_status.value}")
        return order

    def resolve(self, order_id: str, pnl: float, now: Optional[datetime] = None) -> Order:
        """FILLED → RESOLVED, stamping realized pnl and resolution time together."""
        order = self.transition(order_id, OrderStatus.RESOLVED)
        order.pnl = pnl
        order.resolved_at = now or utc_now()
        return order

    def truncate(self) -> int:
        """Drop the oldest orders beyond capacity. Returns how many were dropped."""
        excess = len(self._orders) - self.capacity
        if excess <= 0:
            return 0
        del self._orders[:excess]
        logger.debug(f"Ledger truncated: dropped {excess} oldest orders")
        return excess

    def get_order(self, order_id: str) -> Optional[Order]:
        for order in self._orders:
            if order.id == order_id:
                return order
        return None

    def get_orders_by_status(self, status: OrderStatus) -> List[Order]:
        return [order for order in self._orders if order.status == status]

    def open_count(self) -> int:
        return sum(1 for order in self._orders if order.is_open())

    def snapshot(self) -> List[Order]:
        return list(self._orders)

    def __len__(self) -> int:
        return len(self._orders)

    def __iter__(self):
        return iter(list(self._orders))
