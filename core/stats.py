"""
polyedge Core: Statistics Aggregator

Derived metrics recomputed from the order ledger and engine counters at the
end of every cycle, plus the formatters used at the presentation boundary.

The Sharpe figure is an operator-feedback approximation: per-trade pnl
(not returns), population variance, annualized with sqrt(252). It is not a
rigorous risk metric.
"""

import math
from typing import Iterable, List, Sequence

from core.models import BotStats, Order, OrderStatus

TRADING_DAYS_PER_YEAR = 252
RUNWAY_UNBOUNDED = 9999


def win_rate(wins: int, total_trades: int) -> float:
    """Percentage of winning trades (0 when there are none)."""
    if total_trades <= 0:
        return 0.0
    return wins / total_trades * 100.0


def average_bet(orders: Iterable[Order], total_trades: int) -> float:
    """Resolved stake retained in the ledger divided by the lifetime trade count."""
    if total_trades <= 0:
        return 0.0
    total_bet = sum(o.size for o in orders if o.status == OrderStatus.RESOLVED)
    return total_bet / total_trades


def sharpe_ratio(pnls: Sequence[float]) -> float:
    """mean / population std-dev of pnl, scaled by sqrt(252); 0 when undefined."""
    if not pnls:
        return 0.0
    mean = sum(pnls) / len(pnls)
    variance = sum((p - mean) ** 2 for p in pnls) / len(pnls)
    std_dev = math.sqrt(variance)
    if std_dev <= 0:
        return 0.0
    return mean / std_dev * math.sqrt(TRADING_DAYS_PER_YEAR)


def runway_days(balance: float, daily_api_cost: float) -> int:
    """Whole days of API spend the balance covers; RUNWAY_UNBOUNDED without spend."""
    if daily_api_cost <= 0:
        return RUNWAY_UNBOUNDED
    return max(0, int(math.floor(balance / daily_api_cost)))


def record_trade(stats: BotStats, pnl: float) -> None:
    """Fold one realized pnl into balance, counters and extrema."""
    stats.current_balance += pnl
    stats.total_trades += 1
    if pnl > 0:
        stats.wins += 1
        stats.best_trade = max(stats.best_trade, pnl)
    else:
        stats.losses += 1
        stats.worst_trade = min(stats.worst_trade, pnl)


def refresh_derived_stats(stats: BotStats, orders: List[Order], avg_edge: float) -> BotStats:
    """
    Recompute every non-counter field of `stats` in place.

    Args:
        stats: Stats record holding the accumulated counters
        orders: Current ledger contents
        avg_edge: Mean edge of surfaced opportunities so far

    Returns:
        The same stats record
    """
    stats.total_pnl = stats.current_balance - stats.initial_balance
    stats.pnl_pct = (stats.total_pnl / stats.initial_balance * 100.0) if stats.initial_balance > 0 else 0.0
    stats.win_rate = win_rate(stats.wins, stats.total_trades)
    stats.avg_bet = average_bet(orders, stats.total_trades)
    stats.sharpe_ratio = sharpe_ratio([o.pnl for o in orders if o.pnl is not None])
    stats.avg_edge = avg_edge
    # Simplified: cumulative spend stands in for the daily figure
    stats.daily_api_cost = stats.api_costs
    stats.runway_days = runway_days(stats.current_balance, stats.daily_api_cost)
    return stats


def format_pnl_thousands(total_pnl: float) -> str:
    """`+$1.2k` / `$-0.3k` style label used by the operator dashboard."""
    sign = "+" if total_pnl >= 0 else ""
    return f"{sign}${total_pnl / 1000.0:.1f}k"


def format_uptime(seconds: float) -> str:
    """HH:MM:SS, hours unbounded, negative clamped to zero."""
    total = max(0, int(seconds))
    hours, rem = divmod(total, 3600)
    minutes, secs = divmod(rem, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def format_signed_money(amount: float) -> str:
    """`+$1.23` for gains, `$-0.70` for losses."""
    return f"{'+' if amount >= 0 else ''}${amount:.2f}"
