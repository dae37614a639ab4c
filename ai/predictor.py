"""
AI predictor clients (Anthropic Claude, mock).

Handles prompt construction, API calls, token accounting and lenient
parsing of the free-form model answer.

Only transport failures raise (PredictionUnavailable). A malformed answer
resolves to the neutral prediction.
"""

import json
import logging
import math
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import anthropic

from ai.schemas import AIPrediction, NEUTRAL_CONFIDENCE, NEUTRAL_FAIR_PRICE, NEUTRAL_OUTCOME, neutral_prediction
from core.exceptions import PredictionUnavailable
from core.models import BotConfig, Market

log = logging.getLogger(__name__)

# Claude Sonnet pricing, USD per million tokens
INPUT_COST_PER_MTOK = 3.0
OUTPUT_COST_PER_MTOK = 15.0

SYSTEM_PROMPT = """You are an expert prediction market analyst and quantitative trader.
Your task is to analyze prediction markets and determine:
1. The TRUE probability of each outcome based on available information
2. Whether there is an EDGE (difference between fair price and market price)
3. Your confidence level in the prediction
4. Recommended position size based on Kelly Criterion

Respond in strict JSON format:
{
    "predicted_outcome": "Yes" or "No",
    "fair_price": 0.XX,
    "confidence": 0.XX,
    "edge": 0.XX,
    "reasoning": "Brief explanation",
    "recommended_size_pct": 0.XX
}

Only recommend trades where edge > 0.05 (5%). Be conservative with sizing.
Consider base rates, current events, and market efficiency."""


def _as_float(value: Any, default: float) -> float:
    if isinstance(value, bool) or value is None:
        return default
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value)
        except ValueError:
            return default
    else:
        return default
    # json.loads accepts NaN and Infinity, which would defeat the clamping
    return number if math.isfinite(number) else default


def _extract_json_object(text: str) -> Optional[Dict[str, Any]]:
    """Decode the span from the first '{' to the last '}', if it is a JSON object."""
    start = text.find("{")
    end = text.rfind("}")
    candidate = text[start:end + 1] if start != -1 and end > start else text
    try:
        data = json.loads(candidate)
    except (json.JSONDecodeError, TypeError):
        return None
    return data if isinstance(data, dict) else None


def parse_prediction(text: str, market: Market) -> AIPrediction:
    """
    Parse a model answer into an AIPrediction.

    Missing or mistyped fields take neutral defaults; an answer with no
    decodable JSON object yields the neutral prediction.
    """
    data = _extract_json_object(text or "")
    if data is None:
        log.warning(f"Unparseable AI response for {market.id}; using neutral prediction")
        return neutral_prediction(market)

    outcome = data.get("predicted_outcome")
    reasoning = data.get("reasoning")
    size = data.get("recommended_size_pct", data.get("recommended_size"))

    return AIPrediction(
        market_id=market.id,
        market_name=market.question,
        predicted_outcome=outcome if isinstance(outcome, str) and outcome else NEUTRAL_OUTCOME,
        confidence=_as_float(data.get("confidence"), NEUTRAL_CONFIDENCE),
        edge=_as_float(data.get("edge"), 0.0),
        reasoning=reasoning if isinstance(reasoning, str) else "No reasoning provided",
        recommended_size=_as_float(size, 0.0),
        fair_price=_as_float(data.get("fair_price"), NEUTRAL_FAIR_PRICE),
    )


def format_market(market: Market) -> str:
    """Render the market as the user turn of the prompt."""
    prices = ", ".join(f"{p:.3f}" for p in market.outcome_prices)
    return (
        "Analyze this prediction market and provide your assessment:\n\n"
        f"Market: {market.question}\n"
        f"Outcomes: {', '.join(market.outcomes)}\n"
        f"Current Prices: {prices}\n"
        f"Volume: ${market.volume:.0f}\n"
        f"Liquidity: ${market.liquidity:.0f}\n"
        f"End Date: {market.end_date or 'Not set'}"
    )


class Predictor(ABC):
    """Abstract base class for AI predictors."""

    @abstractmethod
    def predict(self, market: Market) -> AIPrediction:
        """
        Assess one market.

        Raises:
            PredictionUnavailable: On transport/API failure
        """
        pass

    @abstractmethod
    def estimate_cost(self) -> float:
        """Cumulative API spend in USD."""
        pass

    def is_configured(self) -> bool:
        return True


class ClaudePredictor(Predictor):
    """Anthropic Claude predictor."""

    def __init__(
        self,
        api_key: str,
        model: str = "claude-sonnet-4-20250514",
        timeout_s: float = 60.0,
        max_tokens: int = 1024,
    ):
        """
        Args:
            api_key: Anthropic API key (empty disables the predictor)
            model: Model name
            timeout_s: HTTP timeout per call
            max_tokens: Completion budget per call
        """
        self.api_key = api_key
        self.model = model
        self.timeout_s = timeout_s
        self.max_tokens = max_tokens
        self.total_input_tokens = 0
        self.total_output_tokens = 0
        self.client = anthropic.Anthropic(api_key=api_key, timeout=timeout_s) if api_key else None

    def is_configured(self) -> bool:
        return bool(self.api_key)

    def predict(self, market: Market) -> AIPrediction:
        if self.client is None:
            raise PredictionUnavailable("claude", RuntimeError("API key not configured"))

        start = time.perf_counter()
        try:
            response = self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                system=SYSTEM_PROMPT,
                messages=[{"role": "user", "content": format_market(market)}],
            )
        except anthropic.APIError as e:
            elapsed = time.perf_counter() - start
            log.error(f"Claude call failed after {elapsed*1000:.1f}ms: {e}")
            raise PredictionUnavailable("claude", e) from e

        elapsed = time.perf_counter() - start
        log.info(f"Claude call for {market.id} completed in {elapsed*1000:.1f}ms")

        usage = getattr(response, "usage", None)
        if usage is not None:
            self.total_input_tokens += int(getattr(usage, "input_tokens", 0) or 0)
            self.total_output_tokens += int(getattr(usage, "output_tokens", 0) or 0)

        text = ""
        for block in getattr(response, "content", None) or []:
            block_text = getattr(block, "text", None)
            if block_text:
                text = block_text
                break

        return parse_prediction(text, market)

    def estimate_cost(self) -> float:
        input_cost = self.total_input_tokens / 1_000_000 * INPUT_COST_PER_MTOK
        output_cost = self.total_output_tokens / 1_000_000 * OUTPUT_COST_PER_MTOK
        return input_cost + output_cost


def create_predictor(config: BotConfig) -> Predictor:
    """Build the predictor for a configuration."""
    return ClaudePredictor(api_key=config.claude_api_key, model=config.claude_model)
