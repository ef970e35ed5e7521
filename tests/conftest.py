"""Shared fixtures and builders for the synthesis tests."""

from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from domain import (
    AdjustedSource,
    QualityProfile,
    SourceKind,
    SourceOutput,
    ValidationCheck,
)


NOW = datetime(2025, 3, 14, 15, 0, tzinfo=timezone.utc)


def make_output(
    source_id: str = "technical-1",
    kind: SourceKind | str = SourceKind.TECHNICAL,
    confidence: int = 75,
    payload: dict[str, Any] | None = None,
    provenance: list[str] | None = None,
    subject: str = "BTC",
    age: timedelta = timedelta(minutes=1),
    now: datetime = NOW,
) -> SourceOutput:
    """Build a SourceOutput produced `age` before `now`."""
    return SourceOutput(
        source_id=source_id,
        kind=kind,
        subject=subject,
        timestamp=now - age,
        payload=payload if payload is not None else {},
        confidence=confidence,
        provenance=provenance if provenance is not None else ["yahoo.com"],
    )


def make_quality(score: int) -> QualityProfile:
    """Quality profile whose six sub-scores (and so overall) all equal score."""
    return QualityProfile(
        data_freshness=score,
        source_reliability=score,
        cross_verification=score,
        anomaly_score=score,
        completeness=score,
        consistency=score,
    )


def make_source(
    source_id: str,
    kind: SourceKind = SourceKind.TECHNICAL,
    confidence: int = 80,
    quality: int = 85,
    payload: dict[str, Any] | None = None,
    validation: int = 100,
    provenance: list[str] | None = None,
    subject: str = "BTC",
    original: int | None = None,
    age: timedelta = timedelta(minutes=1),
    checks: list[ValidationCheck] | None = None,
) -> AdjustedSource:
    """
    Build an already-assessed source directly.

    Bypasses the validation engine so tests control confidence, quality
    and validation score exactly.
    """
    output = make_output(
        source_id=source_id,
        kind=kind,
        confidence=original if original is not None else confidence,
        payload=payload,
        provenance=provenance,
        subject=subject,
        age=age,
    )
    return AdjustedSource(
        output=output,
        checks=checks or [],
        quality=make_quality(quality),
        validation_score=validation,
        adjusted_confidence=confidence,
    )


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def now():
    """Fixed reference time."""
    return NOW


@pytest.fixture
def technical_payload():
    """Well-formed technical payload with a reference price."""
    return {
        "indicators": {"rsi": 58, "macd": 0.4},
        "trend": {"direction": "UP", "strength": 60},
        "price": {"price": 50000.0},
    }


@pytest.fixture
def bullish_panel():
    """Four agreeing bullish sources and one weak bearish macro source."""
    return [
        make_source(
            "technical-1", SourceKind.TECHNICAL,
            payload={"trend": {"direction": "UP"}, "price": {"price": 50000.0}},
            provenance=["tradingview.com", "yahoo.com"],
        ),
        make_source(
            "sentiment-1", SourceKind.SENTIMENT,
            payload={"sentiment": {"overall": "bullish"}},
            provenance=["reuters.com"],
        ),
        make_source(
            "ml-1", SourceKind.ML,
            payload={"prediction": {"direction": "UP"}},
            provenance=["yahoo.com"],
        ),
        make_source(
            "fundamental-1", SourceKind.FUNDAMENTAL,
            payload={"consensus": {"bullish": 8, "bearish": 2}},
            provenance=["sec.gov"],
        ),
        make_source(
            "macro-1", SourceKind.MACRO,
            confidence=40, quality=50,
            payload={"sentiment": {"overall": "bearish"}},
            provenance=["imf.org"],
        ),
    ]
