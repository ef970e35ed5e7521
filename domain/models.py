"""
Domain models - pure data structures with validation.

These are immutable data carriers with no business logic beyond their
own invariants. All models are JSON-serializable and self-validating.
"""

from datetime import datetime
from typing import Any, NamedTuple

from pydantic import BaseModel, Field, field_validator, model_validator

from .enums import (
    ConflictType,
    Direction,
    Horizon,
    HorizonDirection,
    Severity,
    SourceKind,
)
from .primitives import ensure_utc, round_half_up


# ============================================================================
# Quality weights
# ============================================================================

class QualityWeights(NamedTuple):
    """Weights of each sub-score in overall quality."""
    source_reliability: float
    data_freshness: float
    cross_verification: float
    anomaly_score: float
    completeness: float
    consistency: float

    def validate(self) -> bool:
        """Check weights sum to ~1.0."""
        return abs(sum(self) - 1.0) < 0.01


QUALITY_WEIGHTS = QualityWeights(
    source_reliability=0.25,
    data_freshness=0.20,
    cross_verification=0.15,
    anomaly_score=0.15,
    completeness=0.15,
    consistency=0.10,
)


def compute_overall_quality(scores: dict[str, Any]) -> int:
    """Weighted mean of the six quality sub-scores (missing = 0)."""
    total = sum(
        float(scores.get(name) or 0) * weight
        for name, weight in QUALITY_WEIGHTS._asdict().items()
    )
    return round_half_up(total)


# ============================================================================
# Source input
# ============================================================================

class SourceOutput(BaseModel):
    """
    One analysis source's report for one subject at one point in time.

    The payload is opaque; only a few well-known sub-fields are read
    generically (trend, prediction, sentiment, consensus, prices).
    """
    model_config = {"frozen": True, "extra": "forbid"}

    source_id: str = Field(min_length=1, max_length=100, description="Producing source, unique per run")
    kind: SourceKind = Field(default=SourceKind.UNKNOWN, description="Source type")
    subject: str = Field(min_length=1, max_length=50, description="Entity analyzed (e.g. a symbol)")
    timestamp: datetime = Field(description="When the source produced the report")
    payload: dict[str, Any] = Field(default_factory=dict)
    confidence: int = Field(ge=0, le=100, description="Self-reported confidence")
    provenance: list[str] = Field(default_factory=list, description="Cited data sources")

    @field_validator("kind", mode="before")
    @classmethod
    def _degrade_unknown_kind(cls, v: Any) -> SourceKind:
        """Unrecognised source kinds degrade to UNKNOWN."""
        if isinstance(v, SourceKind):
            return v
        try:
            return SourceKind(str(v).strip().lower())
        except ValueError:
            return SourceKind.UNKNOWN

    @field_validator("subject")
    @classmethod
    def _normalize_subject(cls, v: str) -> str:
        v = v.strip().upper()
        if not v:
            raise ValueError("subject cannot be empty")
        return v

    @field_validator("timestamp")
    @classmethod
    def _to_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @field_validator("provenance")
    @classmethod
    def _clean_provenance(cls, v: list[str]) -> list[str]:
        return [p.strip() for p in v if p and p.strip()]

    @property
    def distinct_provenance(self) -> list[str]:
        """Provenance entries with duplicates removed, order preserved."""
        return list(dict.fromkeys(self.provenance))


# ============================================================================
# Validation and quality
# ============================================================================

class ValidationCheck(BaseModel):
    """Result of one validation rule applied to one source output."""
    model_config = {"frozen": True, "extra": "forbid"}

    name: str
    passed: bool
    score: int = Field(ge=0, le=100)
    details: str = ""
    critical: bool = False


class QualityProfile(BaseModel):
    """
    Derived per-source quality metrics, each 0-100.

    overall_quality is always recomputed from the six sub-scores.
    """
    model_config = {"frozen": True, "extra": "forbid"}

    data_freshness: int = Field(ge=0, le=100)
    source_reliability: int = Field(ge=0, le=100)
    cross_verification: int = Field(ge=0, le=100)
    anomaly_score: int = Field(ge=0, le=100)
    completeness: int = Field(ge=0, le=100)
    consistency: int = Field(ge=0, le=100)
    overall_quality: int = Field(default=0, ge=0, le=100)
    warnings: list[str] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _derive_overall(cls, data: Any) -> Any:
        if isinstance(data, dict):
            data = dict(data)
            data["overall_quality"] = compute_overall_quality(data)
        return data


class AdjustedSource(BaseModel):
    """
    A source output with its checks, quality and adjusted confidence.

    This is the unit the conflict detector and synthesizer consume.
    """
    model_config = {"frozen": True, "extra": "forbid"}

    output: SourceOutput
    checks: list[ValidationCheck] = Field(default_factory=list)
    quality: QualityProfile
    validation_score: int = Field(ge=0, le=100)
    adjusted_confidence: int = Field(ge=0, le=100)
    relevance: float | None = Field(default=None, ge=0, le=100, description="Strategy relevance")
    notes: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _confidence_bounded(self) -> "AdjustedSource":
        if self.adjusted_confidence > self.quality.overall_quality:
            raise ValueError(
                f"adjusted_confidence {self.adjusted_confidence} exceeds "
                f"overall_quality {self.quality.overall_quality}"
            )
        if self.adjusted_confidence > self.output.confidence:
            raise ValueError(
                f"adjusted_confidence {self.adjusted_confidence} exceeds "
                f"original confidence {self.output.confidence}"
            )
        return self

    @property
    def source_id(self) -> str:
        return self.output.source_id

    @property
    def kind(self) -> SourceKind:
        return self.output.kind

    @property
    def original_confidence(self) -> int:
        return self.output.confidence

    @property
    def critical_failures(self) -> list[ValidationCheck]:
        return [c for c in self.checks if c.critical and not c.passed]

    @property
    def validation_passed(self) -> bool:
        """All critical checks passed."""
        return not self.critical_failures

    @property
    def excluded(self) -> bool:
        """Zero-confidence sources never take part in synthesis."""
        return self.adjusted_confidence == 0

    @property
    def signal_strength(self) -> int:
        """Mean of adjusted confidence and overall quality."""
        return round_half_up((self.adjusted_confidence + self.quality.overall_quality) / 2)


# ============================================================================
# Conflicts
# ============================================================================

class ConflictRecord(BaseModel):
    """A detected disagreement between sources."""
    model_config = {"frozen": True, "extra": "forbid"}

    type: ConflictType
    involved_sources: list[str] = Field(default_factory=list)
    description: str
    severity: Severity
    impact: float = Field(ge=0.0, le=1.0)


class ConsensusMetrics(BaseModel):
    """Aggregate agreement across the valid sources."""
    model_config = {"frozen": True, "extra": "forbid"}

    insufficient_data: bool = False
    valid_sources: int = 0
    bullish_count: int = 0
    bearish_count: int = 0
    neutral_count: int = 0
    conflict_score: float = 0.0
    consensus_strength: float = 1.0
    stances: dict[str, Direction] = Field(default_factory=dict)


class ConflictReport(BaseModel):
    """Conflicts and consensus for one run."""
    model_config = {"frozen": True, "extra": "forbid"}

    conflicts: list[ConflictRecord] = Field(default_factory=list)
    consensus: ConsensusMetrics = Field(default_factory=ConsensusMetrics)

    def by_type(self, conflict_type: ConflictType) -> list[ConflictRecord]:
        return [c for c in self.conflicts if c.type == conflict_type]


# ============================================================================
# Synthesis
# ============================================================================

class HorizonSignal(BaseModel):
    """A source's stance for one horizon."""
    model_config = {"frozen": True, "extra": "forbid"}

    direction: Direction = Direction.NEUTRAL
    confidence: int | None = Field(default=None, ge=0, le=100)


class SynthesisResult(BaseModel):
    """Output of the dynamic weight synthesizer."""
    model_config = {"frozen": True, "extra": "forbid"}

    direction: HorizonDirection
    confidence: int = Field(ge=0, le=100)
    score: float = Field(description="Signed overall vote, -1 to 1")
    horizon_directions: dict[Horizon, HorizonDirection]
    horizon_scores: dict[Horizon, float]
    horizon_confidences: dict[Horizon, int]
    weights: dict[str, float] = Field(description="Normalized weights, sum to 100")
    authoritative_source: str | None = None
    contributing: list[str] = Field(default_factory=list)
    excluded: list[str] = Field(default_factory=list)

