"""
Tests for the statistics aggregator and presentation formatters.
"""

import math

import pytest

from core.models import BotStats, Order, OrderSide, OrderStatus
from core.stats import (
    RUNWAY_UNBOUNDED,
    average_bet,
    format_pnl_thousands,
    format_signed_money,
    format_uptime,
    record_trade,
    refresh_derived_stats,
    runway_days,
    sharpe_ratio,
    win_rate,
)


def _resolved(size: float, pnl: float) -> Order:
    return Order(id=f"o{size}{pnl}", market_id="m", market_name="M", side=OrderSide.BUY,
                 outcome="Yes", price=0.5, size=size, status=OrderStatus.RESOLVED, pnl=pnl)


class TestPureHelpers:
    """Test derived metric helpers"""

    def test_win_rate_without_trades(self):
        assert win_rate(0, 0) == 0.0

    def test_win_rate(self):
        assert win_rate(3, 4) == pytest.approx(75.0)

    def test_sharpe_empty_and_flat(self):
        assert sharpe_ratio([]) == 0.0
        assert sharpe_ratio([2.0, 2.0, 2.0]) == 0.0

    def test_sharpe_known_value(self):
        # mean 2, population std 1
        assert sharpe_ratio([1.0, 3.0]) == pytest.approx(2.0 * math.sqrt(252))

    def test_runway_without_spend_is_unbounded(self):
        assert runway_days(60.0, 0.0) == RUNWAY_UNBOUNDED == 9999

    def test_runway_floors(self):
        assert runway_days(60.0, 0.7) == 85

    def test_average_bet_counts_resolved_only(self):
        orders = [_resolved(10.0, 1.0), _resolved(30.0, -2.0)]
        orders.append(Order(id="open", market_id="m", market_name="M", side=OrderSide.BUY,
                            outcome="Yes", price=0.5, size=100.0, status=OrderStatus.FILLED))
        assert average_bet(orders, total_trades=2) == pytest.approx(20.0)
        assert average_bet(orders, total_trades=0) == 0.0


class TestRecordTrade:
    """Test counter folding"""

    def test_win_and_loss(self):
        stats = BotStats(initial_balance=50.0, current_balance=50.0)
        record_trade(stats, 10.0)
        record_trade(stats, -4.0)

        assert stats.current_balance == pytest.approx(56.0)
        assert stats.wins == 1
        assert stats.losses == 1
        assert stats.total_trades == 2
        assert stats.best_trade == pytest.approx(10.0)
        assert stats.worst_trade == pytest.approx(-4.0)

    def test_zero_pnl_counts_as_loss(self):
        stats = BotStats(initial_balance=50.0, current_balance=50.0)
        record_trade(stats, 0.0)
        assert stats.losses == 1
        assert stats.wins == 0
        assert stats.wins + stats.losses == stats.total_trades

    def test_extrema_only_move_outward(self):
        stats = BotStats(initial_balance=50.0, current_balance=50.0)
        for pnl in (5.0, 2.0, -1.0, -0.5):
            record_trade(stats, pnl)
        assert stats.best_trade == pytest.approx(5.0)
        assert stats.worst_trade == pytest.approx(-1.0)


class TestRefreshDerivedStats:
    """Test end-of-cycle recomputation"""

    def test_balance_and_pnl(self):
        """Initial 50 plus one +10 resolution gives 60 and +20%"""
        stats = BotStats(initial_balance=50.0, current_balance=50.0)
        record_trade(stats, 10.0)
        refresh_derived_stats(stats, [_resolved(20.0, 10.0)], avg_edge=0.4)

        assert stats.current_balance == pytest.approx(60.0)
        assert stats.total_pnl == pytest.approx(10.0)
        assert stats.pnl_pct == pytest.approx(20.0)
        assert stats.win_rate == pytest.approx(100.0)
        assert stats.avg_bet == pytest.approx(20.0)
        assert stats.avg_edge == pytest.approx(0.4)
        assert stats.runway_days == RUNWAY_UNBOUNDED

    def test_runway_uses_current_api_cost(self):
        stats = BotStats(initial_balance=50.0, current_balance=50.0, api_costs=0.5)
        refresh_derived_stats(stats, [], avg_edge=0.0)

        assert stats.daily_api_cost == pytest.approx(0.5)
        assert stats.runway_days == 100


class TestFormatters:
    """Test presentation strings"""

    @pytest.mark.parametrize("seconds,expected", [
        (0, "00:00:00"),
        (3661, "01:01:01"),
        (-5, "00:00:00"),
        (360000, "100:00:00"),
    ])
    def test_format_uptime(self, seconds, expected):
        assert format_uptime(seconds) == expected

    def test_format_pnl_thousands(self):
        assert format_pnl_thousands(1234.0) == "+$1.2k"
        assert format_pnl_thousands(0.0) == "+$0.0k"
        assert format_pnl_thousands(-300.0) == "$-0.3k"

    def test_format_signed_money(self):
        assert format_signed_money(1.234) == "+$1.23"
        assert format_signed_money(-0.7) == "$-0.70"

    def test_stats_to_dict_includes_formatted_fields(self):
        stats = BotStats(initial_balance=50.0, current_balance=50.0, uptime_seconds=75)
        data = stats.to_dict()
        assert data["uptime"] == "00:01:15"
        assert data["total_pnl_pct"] == "+$0.0k"
        assert data["initial_balance"] == 50.0
