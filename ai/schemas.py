"""
AI predictor schemas and data structures.

Defines the contract between the cycle engine and the AI predictor. Model
output is treated as an untrusted signal: values are clamped, and anything
unparseable resolves to the neutral prediction.
"""

from dataclasses import dataclass

from core.models import Market

# Neutral verdict used when the model answer cannot be parsed
NEUTRAL_OUTCOME = "Yes"
NEUTRAL_CONFIDENCE = 0.3
NEUTRAL_FAIR_PRICE = 0.5
NEUTRAL_REASONING = "Failed to parse AI response"


@dataclass
class AIPrediction:
    """Per-market verdict, used only within the cycle that produced it."""
    market_id: str
    market_name: str
    predicted_outcome: str
    confidence: float         # 0–1
    edge: float               # fair price minus market price, signed
    reasoning: str
    recommended_size: float   # fraction of current balance, 0–1
    fair_price: float         # 0–1

    def __post_init__(self):
        """Clamp values to sane ranges."""
        self.confidence = max(0.0, min(1.0, self.confidence))
        self.fair_price = max(0.0, min(1.0, self.fair_price))
        self.recommended_size = max(0.0, min(1.0, self.recommended_size))
        self.edge = max(-1.0, min(1.0, self.edge))
        self.reasoning = self.reasoning[:500]


def neutral_prediction(market: Market, reasoning: str = NEUTRAL_REASONING) -> AIPrediction:
    """No-edge verdict for malformed or missing model output."""
    return AIPrediction(
        market_id=market.id,
        market_name=market.question,
        predicted_outcome=NEUTRAL_OUTCOME,
        confidence=NEUTRAL_CONFIDENCE,
        edge=0.0,
        reasoning=reasoning,
        recommended_size=0.0,
        fair_price=NEUTRAL_FAIR_PRICE,
    )
