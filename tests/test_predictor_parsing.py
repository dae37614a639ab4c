"""
Tests for the AI predictor.

Covers lenient parsing of model answers, prompt rendering, cost
accounting and transport failure handling.
"""

from types import SimpleNamespace
from unittest.mock import Mock

import anthropic
import httpx
import pytest

from ai.predictor import (
    ClaudePredictor,
    create_predictor,
    format_market,
    parse_prediction,
)
from ai.schemas import NEUTRAL_CONFIDENCE, NEUTRAL_FAIR_PRICE, NEUTRAL_OUTCOME
from core.exceptions import PredictionUnavailable
from core.models import BotConfig
from tests.helpers import make_market


def _response(text: str, input_tokens: int = 0, output_tokens: int = 0):
    return SimpleNamespace(
        content=[SimpleNamespace(type="text", text=text)],
        usage=SimpleNamespace(input_tokens=input_tokens, output_tokens=output_tokens),
    )


class TestParsePrediction:
    """Test model answer parsing"""

    def test_no_json_yields_neutral(self):
        market = make_market()
        prediction = parse_prediction("no json here", market)

        assert prediction.market_id == market.id
        assert prediction.market_name == market.question
        assert prediction.predicted_outcome == NEUTRAL_OUTCOME
        assert prediction.confidence == pytest.approx(NEUTRAL_CONFIDENCE)
        assert prediction.fair_price == pytest.approx(NEUTRAL_FAIR_PRICE)
        assert prediction.edge == 0.0
        assert prediction.recommended_size == 0.0

    def test_json_embedded_in_prose(self):
        text = (
            "Here is my assessment:\n"
            '{"predicted_outcome": "No", "fair_price": 0.72, "confidence": 0.8, '
            '"edge": 0.12, "reasoning": "Base rates", "recommended_size_pct": 0.05}\n'
            "Good luck!"
        )
        prediction = parse_prediction(text, make_market())

        assert prediction.predicted_outcome == "No"
        assert prediction.fair_price == pytest.approx(0.72)
        assert prediction.confidence == pytest.approx(0.8)
        assert prediction.edge == pytest.approx(0.12)
        assert prediction.reasoning == "Base rates"
        assert prediction.recommended_size == pytest.approx(0.05)

    def test_recommended_size_alias(self):
        prediction = parse_prediction('{"edge": 0.3, "recommended_size": 0.1}', make_market())
        assert prediction.recommended_size == pytest.approx(0.1)

    def test_missing_fields_take_defaults(self):
        prediction = parse_prediction('{"edge": 0.35}', make_market())

        assert prediction.edge == pytest.approx(0.35)
        assert prediction.predicted_outcome == NEUTRAL_OUTCOME
        assert prediction.confidence == pytest.approx(NEUTRAL_CONFIDENCE)
        assert prediction.fair_price == pytest.approx(NEUTRAL_FAIR_PRICE)
        assert prediction.reasoning == "No reasoning provided"

    def test_numeric_strings_accepted(self):
        prediction = parse_prediction('{"edge": "0.4", "confidence": "bad"}', make_market())
        assert prediction.edge == pytest.approx(0.4)
        assert prediction.confidence == pytest.approx(NEUTRAL_CONFIDENCE)

    def test_out_of_range_values_clamped(self):
        text = '{"confidence": 1.5, "edge": -3, "fair_price": 2, "recommended_size_pct": 7}'
        prediction = parse_prediction(text, make_market())

        assert prediction.confidence == 1.0
        assert prediction.edge == -1.0
        assert prediction.fair_price == 1.0
        assert prediction.recommended_size == 1.0

    def test_long_reasoning_truncated(self):
        text = '{"reasoning": "%s"}' % ("x" * 900)
        assert len(parse_prediction(text, make_market()).reasoning) == 500

    def test_json_array_is_not_a_prediction(self):
        assert parse_prediction("[1, 2, 3]", make_market()).edge == 0.0

    def test_non_finite_numbers_take_defaults(self):
        """NaN and Infinity must not survive clamping as maximal values"""
        text = ('{"edge": NaN, "recommended_size_pct": Infinity, '
                '"fair_price": NaN, "confidence": -Infinity}')
        prediction = parse_prediction(text, make_market())

        assert prediction.edge == 0.0
        assert prediction.recommended_size == 0.0
        assert prediction.fair_price == pytest.approx(NEUTRAL_FAIR_PRICE)
        assert prediction.confidence == pytest.approx(NEUTRAL_CONFIDENCE)

    def test_non_finite_numeric_strings_take_defaults(self):
        prediction = parse_prediction('{"edge": "nan", "recommended_size_pct": "inf"}', make_market())
        assert prediction.edge == 0.0
        assert prediction.recommended_size == 0.0


class TestFormatMarket:
    """Test prompt rendering"""

    def test_includes_market_fields(self):
        market = make_market(question="Will BTC close above $100K?", end_date=None)
        text = format_market(market)

        assert "Market: Will BTC close above $100K?" in text
        assert "Outcomes: Yes, No" in text
        assert "Current Prices: 0.400, 0.600" in text
        assert "Volume: $10000" in text
        assert "Liquidity: $2500" in text
        assert "End Date: Not set" in text


class TestClaudePredictor:
    """Test Anthropic client wrapper"""

    def test_without_key_is_not_configured(self):
        predictor = ClaudePredictor(api_key="")

        assert predictor.is_configured() is False
        with pytest.raises(PredictionUnavailable):
            predictor.predict(make_market())

    def test_successful_call_tracks_cost(self):
        predictor = ClaudePredictor(api_key="sk-test", model="claude-test")
        predictor.client = Mock()
        predictor.client.messages.create.return_value = _response(
            '{"edge": 0.4, "fair_price": 0.6}', input_tokens=1000, output_tokens=200
        )

        prediction = predictor.predict(make_market())

        assert prediction.edge == pytest.approx(0.4)
        assert (predictor.total_input_tokens, predictor.total_output_tokens) == (1000, 200)
        # 1000 * $3/M + 200 * $15/M
        assert predictor.estimate_cost() == pytest.approx(0.006)

        kwargs = predictor.client.messages.create.call_args.kwargs
        assert kwargs["model"] == "claude-test"
        assert kwargs["max_tokens"] == 1024
        assert kwargs["messages"][0]["role"] == "user"

    def test_unparseable_answer_is_neutral_not_error(self):
        predictor = ClaudePredictor(api_key="sk-test")
        predictor.client = Mock()
        predictor.client.messages.create.return_value = _response("I cannot help with that")

        assert predictor.predict(make_market()).edge == 0.0

    def test_api_error_raises_prediction_unavailable(self):
        predictor = ClaudePredictor(api_key="sk-test")
        predictor.client = Mock()
        request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        predictor.client.messages.create.side_effect = anthropic.APIConnectionError(request=request)

        with pytest.raises(PredictionUnavailable) as exc_info:
            predictor.predict(make_market())
        assert exc_info.value.source == "claude"
        assert predictor.estimate_cost() == 0.0

    def test_factory_uses_config(self):
        predictor = create_predictor(BotConfig(claude_api_key="", claude_model="claude-x"))
        assert isinstance(predictor, ClaudePredictor)
        assert predictor.model == "claude-x"
        assert predictor.is_configured() is False
