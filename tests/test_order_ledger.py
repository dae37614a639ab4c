"""
Tests for the order ledger.

Ensures lifecycle transitions are enforced, resolution stamps pnl and time
together, and truncation keeps the newest orders.
"""

import uuid

import pytest

from core.exceptions import InvalidTransition
from core.models import Order, OrderSide, OrderStatus
from core.order_ledger import OrderLedger, clamp_entry_price
from tests.helpers import FakeClock, make_market


def _order(index: int, size: float = 10.0, status: OrderStatus = OrderStatus.PENDING) -> Order:
    return Order(
        id=f"order-{index}",
        market_id=f"m{index}",
        market_name=f"Market {index}",
        side=OrderSide.BUY,
        outcome="Yes",
        price=0.5,
        size=size,
        status=status,
    )


class TestOrderValidation:
    """Test Order dataclass invariants"""

    def test_order_requires_market_id(self):
        with pytest.raises(ValueError, match="market_id is required"):
            Order(id="x", market_id="", market_name="", side=OrderSide.BUY,
                  outcome="Yes", price=0.5, size=10.0)

    @pytest.mark.parametrize("size", [0.0, -5.0])
    def test_order_requires_positive_size(self, size):
        with pytest.raises(ValueError, match="size must be positive"):
            _order(1, size=size)

    def test_is_open(self):
        order = _order(1)
        assert order.is_open() is True
        order.status = OrderStatus.FILLED
        assert order.is_open() is True
        order.status = OrderStatus.RESOLVED
        assert order.is_open() is False


class TestOpenSimulatedOrder:
    """Test simulated order creation"""

    def test_creates_filled_buy(self):
        ledger = OrderLedger()
        market = make_market(7)

        order = ledger.open_simulated_order(market, outcome="No", price=0.35, size=25.0)

        assert order.status == OrderStatus.FILLED
        assert order.side == OrderSide.BUY
        assert order.market_id == market.id
        assert order.market_name == market.question
        assert order.outcome == "No"
        assert order.price == pytest.approx(0.35)
        assert order.pnl is None
        assert order.resolved_at is None
        uuid.UUID(order.id)  # valid uuid
        assert len(ledger) == 1

    def test_uses_supplied_timestamp(self):
        clock = FakeClock()
        order = OrderLedger().open_simulated_order(make_market(), "Yes", 0.5, 10.0, now=clock())
        assert order.created_at == clock.now

    @pytest.mark.parametrize("price,expected", [(0.0, 0.01), (1.0, 0.99), (0.42, 0.42), (-3.0, 0.01)])
    def test_entry_price_clamped(self, price, expected):
        assert clamp_entry_price(price) == pytest.approx(expected)
        order = OrderLedger().open_simulated_order(make_market(), "Yes", price, 10.0)
        assert order.price == pytest.approx(expected)

    def test_ids_are_unique(self):
        ledger = OrderLedger()
        ids = {ledger.open_simulated_order(make_market(i), "Yes", 0.5, 10.0).id for i in range(20)}
        assert len(ids) == 20


class TestTransitions:
    """Test lifecycle enforcement"""

    def test_valid_path_to_resolved(self):
        ledger = OrderLedger()
        ledger.add(_order(1))
        ledger.transition("order-1", OrderStatus.FILLED)
        clock = FakeClock()

        order = ledger.resolve("order-1", pnl=3.5, now=clock())

        assert order.status == OrderStatus.RESOLVED
        assert order.pnl == pytest.approx(3.5)
        assert order.resolved_at == clock.now

    def test_resolving_pending_order_is_rejected(self):
        ledger = OrderLedger()
        ledger.add(_order(1))

        with pytest.raises(InvalidTransition):
            ledger.resolve("order-1", pnl=1.0)
        assert ledger.get_order("order-1").pnl is None

    @pytest.mark.parametrize("terminal", [OrderStatus.RESOLVED, OrderStatus.CANCELLED, OrderStatus.FAILED])
    def test_terminal_states_have_no_exit(self, terminal):
        ledger = OrderLedger()
        ledger.add(_order(1, status=terminal))

        for target in OrderStatus:
            with pytest.raises(InvalidTransition):
                ledger.transition("order-1", target)

    def test_resolved_order_cannot_resolve_again(self):
        ledger = OrderLedger()
        order = ledger.open_simulated_order(make_market(), "Yes", 0.5, 10.0)
        ledger.resolve(order.id, pnl=2.0)

        with pytest.raises(InvalidTransition):
            ledger.resolve(order.id, pnl=5.0)
        assert order.pnl == pytest.approx(2.0)

    def test_unknown_order(self):
        with pytest.raises(KeyError):
            OrderLedger().transition("missing", OrderStatus.FILLED)

    def test_duplicate_id_rejected(self):
        ledger = OrderLedger()
        ledger.add(_order(1))
        with pytest.raises(ValueError, match="already in ledger"):
            ledger.add(_order(1))


class TestTruncation:
    """Test retained window"""

    def test_sixty_orders_keep_newest_fifty(self):
        """Orders 1..10 are dropped, 11..60 remain in creation order"""
        ledger = OrderLedger(capacity=50)
        for i in range(1, 61):
            ledger.add(_order(i))

        dropped = ledger.truncate()

        assert dropped == 10
        assert len(ledger) == 50
        assert [o.market_id for o in ledger] == [f"m{i}" for i in range(11, 61)]

    def test_truncate_below_capacity_is_noop(self):
        ledger = OrderLedger(capacity=5)
        ledger.add(_order(1))
        assert ledger.truncate() == 0
        assert len(ledger) == 1

    def test_invalid_capacity(self):
        with pytest.raises(ValueError):
            OrderLedger(capacity=0)


class TestQueries:
    """Test read helpers"""

    def test_open_count_and_status_filter(self):
        ledger = OrderLedger()
        ledger.add(_order(1))
        ledger.add(_order(2, status=OrderStatus.FILLED))
        ledger.add(_order(3, status=OrderStatus.RESOLVED))

        assert ledger.open_count() == 2
        assert len(ledger) == 3
        assert [o.status for o in ledger.get_orders_by_status(OrderStatus.RESOLVED)] == [OrderStatus.RESOLVED]
