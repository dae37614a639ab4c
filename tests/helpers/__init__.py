"""Test helpers for polyedge test suite"""

from tests.helpers.engine_stubs import (
    FakeClock,
    FakeMarketClient,
    ScriptedOutcomeSource,
    StubPredictor,
    make_engine,
    make_market,
    make_markets,
    make_prediction,
)

__all__ = [
    "FakeClock",
    "FakeMarketClient",
    "ScriptedOutcomeSource",
    "StubPredictor",
    "make_engine",
    "make_market",
    "make_markets",
    "make_prediction",
]
