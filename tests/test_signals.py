"""
Tests for directional signal extraction.

Tests cover:
- Parsing of direction words and signed numbers
- Stance precedence across trend/prediction/sentiment/consensus
- Kind-specific fallbacks (flow, microstructure, onchain)
- Per-horizon signals
"""

import pytest

from domain import Direction, Horizon, SourceKind, extract_horizon_signals, extract_stance
from domain.signals import book_imbalance, order_book, parse_direction

from tests.conftest import make_source


class TestParseDirection:
    @pytest.mark.parametrize("value,expected", [
        ("UP", Direction.BULLISH),
        ("bullish", Direction.BULLISH),
        ("Strong Buy", Direction.BULLISH),
        ("DOWN", Direction.BEARISH),
        ("sell", Direction.BEARISH),
        ("SIDEWAYS", Direction.NEUTRAL),
        ("hold", Direction.NEUTRAL),
        (0.5, Direction.BULLISH),
        (-0.3, Direction.BEARISH),
        (0.05, Direction.NEUTRAL),
    ])
    def test_recognised(self, value, expected):
        assert parse_direction(value) == expected

    @pytest.mark.parametrize("value", [None, "maybe", True, {"direction": "UP"}])
    def test_unrecognised(self, value):
        assert parse_direction(value) is None


class TestExtractStance:
    """Tests for the coarse stance of one payload."""

    def test_trend(self):
        assert extract_stance({"trend": {"direction": "DOWN"}}, SourceKind.TECHNICAL) == Direction.BEARISH

    def test_prediction_then_top_level_direction(self):
        assert extract_stance({"prediction": {"direction": "UP"}}, SourceKind.ML) == Direction.BULLISH
        assert extract_stance({"direction": "bearish"}, SourceKind.SYNTHESIS) == Direction.BEARISH

    def test_sentiment_score(self):
        payload = {"sentiment": {"score": -0.4}}
        assert extract_stance(payload, SourceKind.SENTIMENT) == Direction.BEARISH

    def test_consensus_ratio(self):
        assert extract_stance({"consensus": {"bullish": 7, "bearish": 3}}, SourceKind.FUNDAMENTAL) == Direction.BULLISH
        assert extract_stance({"consensus": {"bullish": 3, "bearish": 7}}, SourceKind.FUNDAMENTAL) == Direction.BEARISH
        assert extract_stance({"consensus": {"bullish": 5, "bearish": 5}}, SourceKind.FUNDAMENTAL) == Direction.NEUTRAL

    def test_explicit_neutral_wins(self):
        """A recognised neutral trend is not overridden by later fields."""
        payload = {"trend": {"direction": "SIDEWAYS"}, "sentiment": {"overall": "bullish"}}
        assert extract_stance(payload, SourceKind.TECHNICAL) == Direction.NEUTRAL

    def test_custom_precedence(self):
        payload = {"trend": {"direction": "SIDEWAYS"}, "sentiment": {"overall": "bullish"}}
        stance = extract_stance(payload, SourceKind.TECHNICAL, precedence=("sentiment", "trend"))
        assert stance == Direction.BULLISH

    def test_unrecognised_value_falls_through(self):
        payload = {"trend": {"direction": "wobbly"}, "sentiment": {"overall": "bearish"}}
        assert extract_stance(payload, SourceKind.TECHNICAL) == Direction.BEARISH

    def test_silent_payload_is_neutral(self):
        assert extract_stance({"indicators": {"rsi": 50}}, SourceKind.TECHNICAL) == Direction.NEUTRAL

    def test_unknown_kind_is_neutral(self):
        assert extract_stance({"trend": {"direction": "UP"}}, SourceKind.UNKNOWN) == Direction.NEUTRAL

    def test_flow_fallback(self):
        payload = {"institutional_flows": {"etf_flows": {"net_flow": -1200000}}}
        assert extract_stance(payload, SourceKind.FLOW) == Direction.BEARISH

    def test_flow_put_call_fallback(self):
        payload = {"institutional_flows": {"options_flow": {"put_call_ratio": 1.6}}}
        assert extract_stance(payload, SourceKind.FLOW) == Direction.BEARISH

    def test_onchain_whale_outflow(self):
        payload = {"whale_activity": {"exchange_flows": {"net_flow": -500}}}
        assert extract_stance(payload, SourceKind.ONCHAIN) == Direction.BULLISH

    def test_microstructure_imbalance(self):
        payload = {"order_book": {"bid_depth": 300, "ask_depth": 100}}
        assert extract_stance(payload, SourceKind.MICROSTRUCTURE) == Direction.BULLISH


class TestOrderBook:
    def test_nested_book(self):
        payload = {"order_book": {"order_book": {"mid_price": 100.0}}}
        assert order_book(payload) == {"mid_price": 100.0}

    def test_imbalance_from_levels(self):
        payload = {
            "order_book": {
                "bid_depth": [{"size": 2}, {"size": 2}],
                "ask_depth": [{"size": 1}, {"size": 1}],
            }
        }
        assert book_imbalance(payload) == pytest.approx(1 / 3)

    def test_empty_book(self):
        assert book_imbalance({"order_book": {"bid_depth": 0, "ask_depth": 0}}) is None
        assert book_imbalance({}) is None


class TestHorizonSignals:
    """Tests for extract_horizon_signals()."""

    def test_coarse_stance_fills_every_horizon(self):
        source = make_source("t1", SourceKind.TECHNICAL, payload={"trend": {"direction": "UP"}})
        signals = extract_horizon_signals(source)

        assert set(signals) == set(Horizon)
        assert all(s.direction == Direction.BULLISH for s in signals.values())
        assert all(s.confidence is None for s in signals.values())

    def test_ml_terms(self):
        payload = {
            "predictive_signals": {
                "short_term": {"direction": "UP", "confidence": 70},
                "medium_term": {"direction": "SIDEWAYS", "confidence": 55},
                "long_term": {"direction": "DOWN", "confidence": 40},
            }
        }
        source = make_source("ml-1", SourceKind.ML, payload=payload)
        signals = extract_horizon_signals(source)

        assert signals[Horizon.ONE_DAY].direction == Direction.BULLISH
        assert signals[Horizon.ONE_DAY].confidence == 70
        assert signals[Horizon.ONE_WEEK].direction == Direction.NEUTRAL
        assert signals[Horizon.ONE_MONTH].direction == Direction.BEARISH

    def test_explicit_horizons_win(self):
        payload = {
            "trend": {"direction": "UP"},
            "horizons": {"1month": {"direction": "DOWN", "confidence": 60}},
        }
        source = make_source("t1", SourceKind.TECHNICAL, payload=payload)
        signals = extract_horizon_signals(source)

        assert signals[Horizon.ONE_DAY].direction == Direction.BULLISH
        assert signals[Horizon.ONE_MONTH].direction == Direction.BEARISH
        assert signals[Horizon.ONE_MONTH].confidence == 60

    def test_analyst_rating_sets_month(self):
        payload = {"sentiment": {"overall": "neutral", "analyst_rating": "buy"}}
        source = make_source("s1", SourceKind.SENTIMENT, payload=payload)
        signals = extract_horizon_signals(source)

        assert signals[Horizon.ONE_DAY].direction == Direction.NEUTRAL
        assert signals[Horizon.ONE_MONTH].direction == Direction.BULLISH

    def test_unknown_kind_neutral_everywhere(self):
        source = make_source("x1", SourceKind.UNKNOWN, payload={"trend": {"direction": "UP"}})
        signals = extract_horizon_signals(source)
        assert all(s.direction == Direction.NEUTRAL for s in signals.values())
