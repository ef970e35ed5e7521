"""
Tests for quality scoring and confidence adjustment.

Tests cover:
- Quality weights and overall quality derivation
- Sub-scores taken from validation checks
- Confidence penalties and caps
- The adjusted-confidence invariants on AdjustedSource
"""

from datetime import timedelta

import pytest
from pydantic import ValidationError

from domain import (
    AdjustedSource,
    ConfidencePenalties,
    QUALITY_WEIGHTS,
    QualityProfile,
    ValidationCheck,
    adjust_confidence,
    assess_source,
    score_quality,
)
from domain.models import compute_overall_quality

from tests.conftest import NOW, make_output, make_quality, make_source


def _failed_critical():
    return ValidationCheck(name="data_completeness", passed=False, score=0, critical=True)


class TestQualityWeights:
    def test_weights_sum_to_one(self):
        assert QUALITY_WEIGHTS.validate()

    def test_overall_of_uniform_scores(self):
        assert make_quality(73).overall_quality == 73

    def test_overall_is_always_recomputed(self):
        profile = QualityProfile(
            data_freshness=100,
            source_reliability=100,
            cross_verification=100,
            anomaly_score=100,
            completeness=100,
            consistency=100,
            overall_quality=5,
        )
        assert profile.overall_quality == 100

    def test_weighted_mean(self):
        scores = {
            "source_reliability": 100,
            "data_freshness": 50,
            "cross_verification": 50,
            "anomaly_score": 100,
            "completeness": 100,
            "consistency": 100,
        }
        # 25 + 10 + 7.5 + 15 + 15 + 10
        assert compute_overall_quality(scores) == 83

    def test_missing_sub_scores_count_as_zero(self):
        assert compute_overall_quality({"source_reliability": 100}) == 25


class TestScoreQuality:
    """Tests for score_quality()."""

    def test_sub_scores_from_checks(self):
        output = make_output(provenance=["yahoo.com", "tradingview.com"])
        checks = [
            ValidationCheck(name="data_freshness", passed=True, score=80),
            ValidationCheck(name="source_reliability", passed=True, score=100),
            ValidationCheck(name="anomaly_detection", passed=True, score=100),
            ValidationCheck(name="data_completeness", passed=True, score=100, critical=True),
            ValidationCheck(name="data_consistency", passed=True, score=100),
        ]
        profile = score_quality(checks, output)

        assert profile.data_freshness == 80
        assert profile.cross_verification == 75
        assert profile.overall_quality == 92
        assert profile.warnings == []

    def test_single_source_cross_verification(self):
        output = make_output(provenance=["yahoo.com", "yahoo.com"])
        profile = score_quality([], output)
        assert profile.cross_verification == 50

    def test_missing_checks_score_zero(self):
        profile = score_quality([], make_output())

        assert profile.data_freshness == 0
        assert profile.completeness == 0
        assert profile.overall_quality == 8

    def test_warnings_below_thresholds(self):
        output = make_output()
        checks = [
            ValidationCheck(name="data_freshness", passed=False, score=40),
            ValidationCheck(name="source_reliability", passed=True, score=100),
            ValidationCheck(name="anomaly_detection", passed=True, score=100),
            ValidationCheck(name="data_completeness", passed=False, score=50, critical=True),
            ValidationCheck(name="data_consistency", passed=True, score=100),
        ]
        warnings = score_quality(checks, output).warnings

        assert "Data may be outdated" in warnings
        assert "Some required data fields are missing" in warnings
        assert "Statistical anomalies detected" not in warnings


class TestAdjustConfidence:
    """Tests for adjust_confidence()."""

    def test_capped_by_quality(self):
        assert adjust_confidence(90, make_quality(85), []) == 85

    def test_unchanged_when_clean(self):
        assert adjust_confidence(75, make_quality(92), []) == 75

    def test_low_quality_penalty(self):
        assert adjust_confidence(50, make_quality(65), []) == 40

    def test_penalties_compound(self):
        # 80 * 0.8 * 0.5
        assert adjust_confidence(80, make_quality(60), [_failed_critical()]) == 32

    def test_critical_failure_alone(self):
        assert adjust_confidence(100, make_quality(90), [_failed_critical()]) == 50

    def test_non_critical_failure_ignored(self):
        check = ValidationCheck(name="data_freshness", passed=False, score=0)
        assert adjust_confidence(80, make_quality(90), [check]) == 80

    def test_custom_penalties(self):
        penalties = ConfidencePenalties(low_quality_threshold=50)
        assert adjust_confidence(80, make_quality(60), [], penalties) == 60

    def test_zero_stays_zero(self):
        assert adjust_confidence(0, make_quality(100), [_failed_critical()]) == 0


class TestAssessSource:
    """End-to-end assessment of one output."""

    def test_clean_output(self, technical_payload):
        output = make_output(
            confidence=75,
            payload=technical_payload,
            provenance=["tradingview.com", "yahoo.com"],
        )
        source = assess_source(output, NOW)

        assert source.quality.overall_quality == 92
        assert source.adjusted_confidence == 75
        assert source.validation_score == 100
        assert source.validation_passed

    def test_unsupported_high_confidence(self, technical_payload):
        output = make_output(
            confidence=85,
            payload=technical_payload,
            provenance=[],
            age=timedelta(seconds=51),
        )
        source = assess_source(output, NOW)

        assert source.quality.overall_quality == 64
        assert source.adjusted_confidence == 34
        assert source.validation_score == 67
        assert not source.validation_passed
        assert [c.name for c in source.critical_failures] == ["confidence_integrity"]

    def test_adjusted_never_exceeds_inputs(self, technical_payload):
        for confidence in (0, 30, 60, 90, 100):
            output = make_output(confidence=confidence, payload=technical_payload)
            source = assess_source(output, NOW)
            assert source.adjusted_confidence <= confidence
            assert source.adjusted_confidence <= source.quality.overall_quality


class TestAdjustedSource:
    """Model-level invariants."""

    def test_rejects_confidence_above_quality(self):
        with pytest.raises(ValidationError):
            AdjustedSource(
                output=make_output(confidence=90),
                quality=make_quality(60),
                validation_score=100,
                adjusted_confidence=80,
            )

    def test_rejects_confidence_above_original(self):
        with pytest.raises(ValidationError):
            AdjustedSource(
                output=make_output(confidence=50),
                quality=make_quality(90),
                validation_score=100,
                adjusted_confidence=60,
            )

    def test_properties(self):
        source = make_source("s1", confidence=80, quality=85)

        assert source.source_id == "s1"
        assert source.original_confidence == 80
        assert source.signal_strength == 83
        assert not source.excluded

    def test_zero_confidence_is_excluded(self):
        assert make_source("s1", confidence=0).excluded
