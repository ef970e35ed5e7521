"""
Tests for strategy profiles, confidence decay and relevance.
"""

from datetime import timedelta

import pytest
from pydantic import ValidationError

from domain import (
    STRATEGY_PROFILES,
    SourceKind,
    StrategyType,
    apply_strategy,
    assess_relevance,
    confidence_decay,
    get_strategy_profile,
)
from domain.strategy import AgentWeights, ValidityStatus, validity_status

from tests.conftest import NOW, make_source


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def day():
    return get_strategy_profile(StrategyType.DAY)


@pytest.fixture
def swing():
    return get_strategy_profile("swing")


@pytest.fixture
def longterm():
    return get_strategy_profile("longterm")


class TestProfiles:
    def test_three_profiles(self):
        assert set(STRATEGY_PROFILES) == {StrategyType.DAY, StrategyType.SWING, StrategyType.LONGTERM}

    def test_weights_sum_to_100(self):
        for profile in STRATEGY_PROFILES.values():
            w = profile.agent_weights
            assert w.technical + w.fundamental + w.news_sentiment + w.market_structure == 100

    def test_day_profile(self, day):
        assert day.agent_weights.technical == 40
        assert day.cache_timeout == timedelta(seconds=30)
        assert day.decay_rate == 25
        assert day.is_short_horizon

    def test_longterm_is_not_short(self, longterm):
        assert not longterm.is_short_horizon
        assert longterm.agent_weights.fundamental == 50

    def test_unknown_strategy(self):
        with pytest.raises(ValueError, match="Unknown strategy"):
            get_strategy_profile("scalping")

    def test_weights_validated(self):
        with pytest.raises(ValidationError):
            AgentWeights(technical=50, fundamental=50, news_sentiment=50, market_structure=0)


class TestConfidenceDecay:
    """0.9 ** (days * rate / 100), floored at 0.10."""

    def test_two_days_of_day_trading(self):
        assert confidence_decay(2, 25) == pytest.approx(0.9 ** 0.5)
        assert 0.94 < confidence_decay(2, 25) < 0.96

    def test_fresh_analysis(self):
        assert confidence_decay(0, 25) == 1.0

    def test_future_timestamp_does_not_boost(self):
        assert confidence_decay(-3, 25) == 1.0

    def test_floor(self):
        assert confidence_decay(10_000, 25) == pytest.approx(0.10)

    def test_slower_for_longterm(self):
        assert confidence_decay(10, 5) > confidence_decay(10, 25)


class TestValidityStatus:
    def test_windows(self, day):
        assert validity_status(timedelta(hours=1), day) == ValidityStatus.OPTIMAL
        assert validity_status(timedelta(hours=6), day) == ValidityStatus.ACCEPTABLE
        assert validity_status(timedelta(hours=12), day) == ValidityStatus.AGING
        assert validity_status(timedelta(days=2), day) == ValidityStatus.STALE


class TestRelevance:
    """Tests for assess_relevance()."""

    def test_category_weight(self, day):
        source = make_source("t1", SourceKind.TECHNICAL)
        assert assess_relevance(source, day) == 40

    def test_market_structure_kinds(self, day):
        for kind in (SourceKind.FLOW, SourceKind.MICROSTRUCTURE, SourceKind.ONCHAIN):
            assert assess_relevance(make_source("x", kind), day) == 30

    def test_catalysts_boost_short_horizons(self, day):
        source = make_source("t1", SourceKind.TECHNICAL, payload={"catalysts": ["earnings"]})
        assert assess_relevance(source, day) == pytest.approx(48)

    def test_valuation_boosts_longterm(self, longterm):
        source = make_source("f1", SourceKind.FUNDAMENTAL, payload={"valuation": {"pe": 14}})
        assert assess_relevance(source, longterm) == pytest.approx(60)

    def test_catalysts_ignored_for_longterm(self, longterm):
        source = make_source("t1", SourceKind.TECHNICAL, payload={"catalysts": ["earnings"]})
        assert assess_relevance(source, longterm) == 20

    def test_reported_relevance_wins(self, day):
        source = make_source("t1", SourceKind.TECHNICAL, payload={"strategy_relevance": 77})
        assert assess_relevance(source, day) == 77

    def test_reported_relevance_clamped(self, day):
        source = make_source("t1", SourceKind.TECHNICAL, payload={"strategy_relevance": 150})
        assert assess_relevance(source, day) == 100

    def test_synthesis_and_unknown(self, swing):
        assert assess_relevance(make_source("s", SourceKind.SYNTHESIS), swing) == 50
        assert assess_relevance(make_source("u", SourceKind.UNKNOWN), swing) == 10


class TestApplyStrategy:
    """Tests for apply_strategy()."""

    def test_decays_confidence(self, day):
        source = make_source("t1", SourceKind.TECHNICAL, confidence=80, age=timedelta(days=2))
        [adapted] = apply_strategy([source], day, NOW)

        # 80 * 0.9 ** 0.5 = 75.9
        assert adapted.adjusted_confidence == 76
        assert adapted.relevance == 40
        assert any("decayed" in note for note in adapted.notes)

    def test_stale_note(self, day):
        source = make_source("t1", SourceKind.TECHNICAL, confidence=80, age=timedelta(days=2))
        [adapted] = apply_strategy([source], day, NOW)
        assert any("stale" in note for note in adapted.notes)

    def test_inputs_untouched(self, swing):
        source = make_source("t1", SourceKind.TECHNICAL, confidence=80, age=timedelta(days=2))
        apply_strategy([source], swing, NOW)

        assert source.adjusted_confidence == 80
        assert source.relevance is None
        assert source.notes == []

    def test_fresh_source_keeps_confidence(self, swing):
        source = make_source("t1", SourceKind.TECHNICAL, confidence=80, age=timedelta(seconds=30))
        [adapted] = apply_strategy([source], swing, NOW)

        assert adapted.adjusted_confidence == 80
        assert adapted.notes == []
