"""
polyedge Core: Data Model

Records shared by the cycle engine, its collaborators and the operator surface.

Market and AIPrediction are transient (one cycle). Order lives in the capped
ledger. BotStats is a projection recomputed at the end of every cycle.
ActivityEntry and BalancePoint live in bounded logs.
"""

from enum import Enum
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Optional, Dict, Any, List

# Prefix of credential values rendered for display
SECRET_MASK_PREFIX = "***"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class OrderSide(Enum):
    """Order side"""
    BUY = "buy"
    SELL = "sell"


class OrderStatus(Enum):
    """Order lifecycle states"""
    PENDING = "pending"        # Created, not yet matched
    FILLED = "filled"          # Position open, awaiting resolution
    RESOLVED = "resolved"      # Settled, pnl realized
    CANCELLED = "cancelled"    # Withdrawn before fill
    FAILED = "failed"          # Could not be placed


class ActivityType(Enum):
    """Activity log line categories"""
    INFO = "info"
    EDGE = "edge"
    ORDER = "order"
    RESOLVED = "resolved"
    WARNING = "warning"
    ERROR = "error"
    INFERENCE = "inference"


@dataclass
class Market:
    """Snapshot of one tradeable question, fetched fresh every cycle."""
    id: str
    question: str
    slug: str = ""
    outcomes: List[str] = field(default_factory=lambda: ["Yes", "No"])
    outcome_prices: List[float] = field(default_factory=lambda: [0.5, 0.5])
    volume: float = 0.0
    liquidity: float = 0.0
    end_date: Optional[str] = None
    active: bool = True


@dataclass
class Order:
    """
    Speculative position.

    Pending → Filled → Resolved, with Cancelled/Failed as alternate terminal
    states. `pnl` and `resolved_at` are set together, only on Resolved.
    """
    id: str
    market_id: str
    market_name: str
    side: OrderSide
    outcome: str
    price: float
    size: float
    status: OrderStatus = OrderStatus.PENDING
    created_at: datetime = field(default_factory=utc_now)
    resolved_at: Optional[datetime] = None
    pnl: Optional[float] = None

    def __post_init__(self):
        if not self.market_id:
            raise ValueError("Order market_id is required")
        if self.size <= 0:
            raise ValueError("Order size must be positive")

    def is_open(self) -> bool:
        return self.status in (OrderStatus.PENDING, OrderStatus.FILLED)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "market_id": self.market_id,
            "market_name": self.market_name,
            "side": self.side.value,
            "outcome": self.outcome,
            "price": self.price,
            "size": self.size,
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
            "resolved_at": self.resolved_at.isoformat() if self.resolved_at else None,
            "pnl": self.pnl,
        }


@dataclass
class ActivityEntry:
    """Timestamped, typed line of the operator-facing activity log."""
    message: str
    entry_type: ActivityType
    timestamp: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.strftime("[%H:%M:%S]"),
            "message": self.message,
            "entry_type": self.entry_type.value,
        }


@dataclass
class BalancePoint:
    """Balance sample with a display label."""
    balance: float
    label: str
    timestamp: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.strftime("%H:%M:%S"),
            "balance": self.balance,
            "label": self.label,
        }


@dataclass
class BotConfig:
    """Operator-supplied parameters. Replaced wholesale, never mutated mid-cycle."""
    # Credentials
    polymarket_api_key: str = ""
    polymarket_secret: str = ""
    polymarket_passphrase: str = ""
    claude_api_key: str = ""
    claude_model: str = "claude-sonnet-4-20250514"

    # Trading
    initial_balance: float = 50.0
    max_bet_size: float = 200.0
    min_edge_threshold: float = 0.30
    max_concurrent_orders: int = 5
    scan_interval_secs: int = 60
    auto_trading: bool = False        # Gate on simulated order placement
    survival_mode: bool = True        # Advisory only

    SECRET_FIELDS = ("polymarket_api_key", "polymarket_secret", "polymarket_passphrase", "claude_api_key")

    def to_dict(self, mask_secrets: bool = False) -> Dict[str, Any]:
        data = asdict(self)
        if mask_secrets:
            for name in self.SECRET_FIELDS:
                if data.get(name):
                    data[name] = SECRET_MASK_PREFIX + data[name][-4:]
        return data


@dataclass
class BotStats:
    """
    Derived-metrics record.

    Counters (wins, losses, total_trades, markets_scanned, cycle, best/worst
    trade) accumulate; everything else is recomputed from the ledger at the
    end of each cycle. Formatted fields are produced at the presentation
    boundary by `to_dict`.
    """
    initial_balance: float
    current_balance: float
    total_pnl: float = 0.0
    pnl_pct: float = 0.0
    api_costs: float = 0.0
    win_rate: float = 0.0
    wins: int = 0
    losses: int = 0
    total_trades: int = 0
    markets_scanned: int = 0
    avg_bet: float = 0.0
    best_trade: float = 0.0
    worst_trade: float = 0.0
    sharpe_ratio: float = 0.0
    avg_edge: float = 0.0
    daily_api_cost: float = 0.0
    runway_days: int = 0
    uptime_seconds: float = 0.0
    cycle: int = 0
    pid: int = 0

    def to_dict(self) -> Dict[str, Any]:
        # Local import: stats depends on models
        from core.stats import format_pnl_thousands, format_uptime

        data = asdict(self)
        data["total_pnl_pct"] = format_pnl_thousands(self.total_pnl)
        data["uptime"] = format_uptime(self.uptime_seconds)
        return data
