"""Quality/reliability scoring from validation checks."""

from .models import QUALITY_WEIGHTS, QualityProfile, SourceOutput, ValidationCheck
from .validation import (
    ANOMALY_DETECTION,
    DATA_COMPLETENESS,
    DATA_CONSISTENCY,
    DATA_FRESHNESS,
    SOURCE_RELIABILITY,
)

CROSS_VERIFIED_SCORE = 75
SINGLE_SOURCE_SCORE = 50

# (sub-score, threshold, warning)
WARNING_THRESHOLDS: tuple[tuple[str, int, str], ...] = (
    ("data_freshness", 50, "Data may be outdated"),
    ("source_reliability", 60, "Some data sources may be unreliable"),
    ("anomaly_score", 70, "Statistical anomalies detected"),
    ("completeness", 90, "Some required data fields are missing"),
    ("consistency", 70, "Internal inconsistencies detected"),
)


def _check_score(checks: list[ValidationCheck], name: str) -> int:
    for check in checks:
        if check.name == name:
            return check.score
    return 0


def score_quality(checks: list[ValidationCheck], output: SourceOutput) -> QualityProfile:
    """
    Build a QualityProfile for one source.

    Sub-scores come from the matching checks (a missing check scores 0);
    cross verification depends only on the number of distinct provenance
    entries. Warnings are advisory.
    """
    scores = {
        "data_freshness": _check_score(checks, DATA_FRESHNESS),
        "source_reliability": _check_score(checks, SOURCE_RELIABILITY),
        "cross_verification": (
            CROSS_VERIFIED_SCORE if len(output.distinct_provenance) > 1 else SINGLE_SOURCE_SCORE
        ),
        "anomaly_score": _check_score(checks, ANOMALY_DETECTION),
        "completeness": _check_score(checks, DATA_COMPLETENESS),
        "consistency": _check_score(checks, DATA_CONSISTENCY),
    }

    warnings = [msg for field, threshold, msg in WARNING_THRESHOLDS if scores[field] < threshold]

    return QualityProfile(**scores, warnings=warnings)


__all__ = ["QUALITY_WEIGHTS", "WARNING_THRESHOLDS", "score_quality"]
