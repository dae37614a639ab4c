"""
polyedge Core: Market Data Provider (Polymarket)

Public Gamma API listing plus CLOB order-book reads.

Parsing is best-effort per record: numeric fields may arrive as strings,
list fields as JSON-encoded strings, and a malformed record is skipped or
defaulted without failing the batch. Only transport failures raise
(MarketDataUnavailable).
"""

import json
import logging
from typing import Any, Dict, List, Optional

import requests
from requests import exceptions as requests_exceptions

from core.exceptions import MarketDataUnavailable
from core.models import BotConfig, Market

logger = logging.getLogger(__name__)

GAMMA_BASE = "https://gamma-api.polymarket.com"
CLOB_BASE = "https://clob.polymarket.com"

DEFAULT_OUTCOMES = ["Yes", "No"]
DEFAULT_PRICES = [0.5, 0.5]


def _to_float(value: Any, default: float = 0.0) -> float:
    try:
        if value is None or value == "" or isinstance(value, bool):
            return default
        return float(value)
    except (TypeError, ValueError):
        return default


def _decode_list(value: Any) -> Optional[list]:
    """Accept a JSON array or a JSON-encoded string holding one."""
    if isinstance(value, list):
        return value
    if isinstance(value, str):
        try:
            decoded = json.loads(value)
        except json.JSONDecodeError:
            return None
        if isinstance(decoded, list):
            return decoded
    return None


def parse_outcomes(value: Any) -> List[str]:
    items = _decode_list(value)
    if not items:
        return list(DEFAULT_OUTCOMES)
    return [str(x) for x in items]


def parse_outcome_prices(value: Any) -> List[float]:
    items = _decode_list(value)
    if not items:
        return list(DEFAULT_PRICES)
    prices = [_to_float(item, default=-1.0) for item in items]
    # One bad entry would shift every later price off its outcome
    if not all(0.0 <= price <= 1.0 for price in prices):
        return list(DEFAULT_PRICES)
    return prices


def _to_bool(value: Any, default: bool = True) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        text = value.strip().lower()
        if text in ("true", "1", "yes"):
            return True
        if text in ("false", "0", "no"):
            return False
        return default
    if isinstance(value, (int, float)):
        return bool(value)
    return default


def parse_market(record: Any) -> Optional[Market]:
    """Normalize one Gamma market record; None when it has no question or id."""
    if not isinstance(record, dict):
        return None
    question = record.get("question")
    if not isinstance(question, str) or not question.strip():
        return None
    market_id = record.get("condition_id") or record.get("conditionId") or record.get("id")
    if market_id is None or market_id == "":
        return None

    end_date = record.get("endDate")
    outcomes = parse_outcomes(record.get("outcomes"))
    prices = parse_outcome_prices(record.get("outcomePrices"))
    if len(prices) != len(outcomes):
        prices = list(DEFAULT_PRICES)
    return Market(
        id=str(market_id),
        question=question.strip(),
        slug=str(record.get("slug") or ""),
        outcomes=outcomes,
        outcome_prices=prices,
        volume=_to_float(record.get("volume")),
        liquidity=_to_float(record.get("liquidity")),
        end_date=end_date if isinstance(end_date, str) else None,
        active=_to_bool(record.get("active"), default=True),
    )


class PolymarketClient:
    """
    Polymarket read-only connector.

    Supports:
    - Active market listing (Gamma)
    - Single market lookup (Gamma)
    - Order-book snapshot (CLOB)
    """

    def __init__(
        self,
        api_key: str = "",
        secret: str = "",
        passphrase: str = "",
        timeout: float = 30.0,
        gamma_base: str = GAMMA_BASE,
        clob_base: str = CLOB_BASE,
    ):
        self.api_key = api_key
        self.secret = secret
        self.passphrase = passphrase
        self.timeout = timeout
        self.gamma_base = gamma_base.rstrip("/")
        self.clob_base = clob_base.rstrip("/")
        self.session = requests.Session()

    def is_configured(self) -> bool:
        return bool(self.api_key) and bool(self.secret)

    def _get_json(self, url: str, params: Optional[Dict[str, Any]] = None,
                  headers: Optional[Dict[str, str]] = None) -> Any:
        try:
            r = self.session.get(url, params=params, headers=headers, timeout=self.timeout)
            r.raise_for_status()
            return r.json()
        except requests_exceptions.RequestException as e:
            logger.warning(f"Polymarket request failed ({url}): {e}")
            raise MarketDataUnavailable("polymarket", e) from e
        except ValueError as e:
            logger.warning(f"Polymarket returned non-JSON body ({url}): {e}")
            raise MarketDataUnavailable("polymarket", e) from e

    def fetch_markets(self, limit: int = 100, offset: int = 0) -> List[Market]:
        """
        List active, open markets.

        Args:
            limit: Page size
            offset: Page offset

        Returns:
            Parsed markets; malformed records are skipped

        Raises:
            MarketDataUnavailable: On network, HTTP status or body decoding failure
        """
        payload = self._get_json(
            f"{self.gamma_base}/markets",
            params={"limit": limit, "offset": offset, "active": "true", "closed": "false"},
        )
        if not isinstance(payload, list):
            logger.warning(f"Unexpected markets payload type: {type(payload).__name__}")
            return []

        markets = []
        skipped = 0
        for record in payload:
            market = parse_market(record)
            if market is None:
                skipped += 1
                continue
            markets.append(market)

        if skipped:
            logger.debug(f"Skipped {skipped} malformed market record(s)")
        return markets

    def get_market(self, condition_id: str) -> Optional[Market]:
        """Single market by id; None when the venue does not return it."""
        try:
            r = self.session.get(f"{self.gamma_base}/markets/{condition_id}", timeout=self.timeout)
        except requests_exceptions.RequestException as e:
            raise MarketDataUnavailable("polymarket", e) from e
        if not r.ok:
            return None
        try:
            record = r.json()
        except ValueError as e:
            raise MarketDataUnavailable("polymarket", e) from e
        if isinstance(record, dict):
            record.setdefault("id", condition_id)
            record.setdefault("question", "Unknown")
        return parse_market(record)

    def get_orderbook(self, token_id: str) -> Dict[str, Any]:
        """Raw CLOB order book for an outcome token."""
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else None
        payload = self._get_json(f"{self.clob_base}/book", params={"token_id": token_id}, headers=headers)
        return payload if isinstance(payload, dict) else {}


def create_market_client(config: BotConfig) -> PolymarketClient:
    """Build the market data client for a configuration."""
    return PolymarketClient(
        api_key=config.polymarket_api_key,
        secret=config.polymarket_secret,
        passphrase=config.polymarket_passphrase,
    )
