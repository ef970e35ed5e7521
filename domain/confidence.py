"""
Confidence adjustment.

The adjusted confidence is the only confidence used downstream. It can
never exceed the source's overall quality or its original confidence.
"""

from dataclasses import dataclass
from datetime import datetime

from .models import AdjustedSource, QualityProfile, SourceOutput, ValidationCheck
from .primitives import clamp, round_half_up
from .quality import score_quality
from .validation import validate, validation_score


@dataclass(frozen=True)
class ConfidencePenalties:
    """Multipliers applied to self-reported confidence."""
    low_quality_threshold: int = 70
    low_quality_factor: float = 0.8
    critical_failure_factor: float = 0.5


DEFAULT_PENALTIES = ConfidencePenalties()


def adjust_confidence(
    original: int,
    quality: QualityProfile,
    checks: list[ValidationCheck],
    penalties: ConfidencePenalties = DEFAULT_PENALTIES,
) -> int:
    """
    Revise confidence downward for low quality or critical failures.

    Penalties compound multiplicatively, then the result is capped by
    overall quality and clamped to [0, 100].
    """
    adjusted = float(original)

    if quality.overall_quality < penalties.low_quality_threshold:
        adjusted *= penalties.low_quality_factor

    if any(c.critical and not c.passed for c in checks):
        adjusted *= penalties.critical_failure_factor

    adjusted = min(adjusted, quality.overall_quality)
    return round_half_up(clamp(adjusted))


def assess_source(
    output: SourceOutput,
    now: datetime,
    penalties: ConfidencePenalties = DEFAULT_PENALTIES,
) -> AdjustedSource:
    """Validate, score and adjust one source output."""
    checks = validate(output, now)
    quality = score_quality(checks, output)
    adjusted = adjust_confidence(output.confidence, quality, checks, penalties)

    return AdjustedSource(
        output=output,
        checks=checks,
        quality=quality,
        validation_score=validation_score(checks),
        adjusted_confidence=adjusted,
    )
