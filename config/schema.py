"""
Configuration schema with validation.

All configuration is validated at load time using Pydantic. Each section
builds the frozen rule table the domain functions take.
"""

from datetime import timedelta
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from domain import Horizon, RiskLevel, Severity, SourceKind
from domain.confidence import ConfidencePenalties
from domain.conflicts import ConflictRules
from domain.decision import DecisionRules
from domain.signals import STANCE_EXTRACTORS
from domain.synthesis import SynthesisRules


class ConfidenceConfig(BaseModel):
    """Confidence penalty multipliers."""

    low_quality_threshold: int = Field(default=70, ge=0, le=100)
    low_quality_factor: float = Field(default=0.8, gt=0.0, le=1.0)
    critical_failure_factor: float = Field(default=0.5, gt=0.0, le=1.0)

    def to_penalties(self) -> ConfidencePenalties:
        return ConfidencePenalties(
            low_quality_threshold=self.low_quality_threshold,
            low_quality_factor=self.low_quality_factor,
            critical_failure_factor=self.critical_failure_factor,
        )


class SeverityWeightsConfig(BaseModel):
    """Conflict score weight per severity."""

    low: float = Field(default=0.3, ge=0.0, le=1.0)
    medium: float = Field(default=0.6, ge=0.0, le=1.0)
    high: float = Field(default=1.0, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def ordered(self) -> "SeverityWeightsConfig":
        if not (self.low <= self.medium <= self.high):
            raise ValueError("Severity weights must be ordered low <= medium <= high")
        return self


class ConflictsConfig(BaseModel):
    """Conflict detection thresholds."""

    outlier_sigma: float = Field(default=2.0, gt=0.0, le=10.0)
    outlier_min_others: int = Field(default=3, ge=1, le=20)
    sigma_floor: float = Field(default=5.0, ge=0.0, le=50.0)
    outlier_impact: float = Field(default=0.1, ge=0.0, le=1.0)
    pair_impact: float = Field(default=0.2, ge=0.0, le=1.0)
    severity_weights: SeverityWeightsConfig = Field(default_factory=SeverityWeightsConfig)
    opposing_pairs: list[tuple[SourceKind, SourceKind]] = Field(default_factory=lambda: [
        (SourceKind.FLOW, SourceKind.TECHNICAL),
        (SourceKind.MICROSTRUCTURE, SourceKind.TECHNICAL),
    ])


class SignalsConfig(BaseModel):
    """Directional stance extraction."""

    stance_precedence: list[str] = Field(
        default_factory=lambda: ["trend", "prediction", "sentiment", "consensus"],
        description="Order in which payload fields are read for a stance",
    )

    @field_validator("stance_precedence")
    @classmethod
    def known_extractors(cls, v: list[str]) -> list[str]:
        names = [name.strip().lower() for name in v if name.strip()]
        unknown = [name for name in names if name not in STANCE_EXTRACTORS]
        if unknown:
            valid = ", ".join(STANCE_EXTRACTORS)
            raise ValueError(f"Unknown stance fields: {', '.join(unknown)}. Valid: {valid}")
        if not names:
            raise ValueError("stance_precedence cannot be empty")
        return names


class BaseWeightsConfig(BaseModel):
    """Static per-kind base weights for synthesis."""

    technical: float = Field(default=0.20, ge=0.0, le=1.0)
    fundamental: float = Field(default=0.15, ge=0.0, le=1.0)
    sentiment: float = Field(default=0.15, ge=0.0, le=1.0)
    macro: float = Field(default=0.10, ge=0.0, le=1.0)
    flow: float = Field(default=0.10, ge=0.0, le=1.0)
    onchain: float = Field(default=0.10, ge=0.0, le=1.0)
    microstructure: float = Field(default=0.05, ge=0.0, le=1.0)
    ml: float = Field(default=0.10, ge=0.0, le=1.0)
    synthesis: float = Field(default=0.05, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def weights_sum_to_one(self) -> "BaseWeightsConfig":
        total = sum(self.model_dump().values())
        if abs(total - 1.0) > 0.01:
            raise ValueError(f"Base weights must sum to 1.0, got {total:.2f}")
        return self

    def as_dict(self) -> dict[SourceKind, float]:
        return {SourceKind(name): weight for name, weight in self.model_dump().items()}


class HorizonWeightsConfig(BaseModel):
    """Weights of each horizon in the overall direction."""

    one_day: float = Field(default=0.40, ge=0.0, le=1.0)
    one_week: float = Field(default=0.35, ge=0.0, le=1.0)
    one_month: float = Field(default=0.25, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def weights_sum_to_one(self) -> "HorizonWeightsConfig":
        total = self.one_day + self.one_week + self.one_month
        if abs(total - 1.0) > 0.01:
            raise ValueError(f"Horizon weights must sum to 1.0, got {total:.2f}")
        return self

    def as_dict(self) -> dict[Horizon, float]:
        return {
            Horizon.ONE_DAY: self.one_day,
            Horizon.ONE_WEEK: self.one_week,
            Horizon.ONE_MONTH: self.one_month,
        }


class SynthesisConfig(BaseModel):
    """Evidence thresholds and weighting for synthesis."""

    min_qualifying_sources: int = Field(default=3, ge=1, le=20)
    quality_threshold: int = Field(default=70, ge=0, le=100)
    direction_threshold: float = Field(default=0.1, ge=0.0, le=1.0)
    authoritative_min_confidence: int = Field(default=60, ge=0, le=100)
    authoritative_min_quality: int = Field(default=70, ge=0, le=100)
    unknown_base_weight: float = Field(default=0.02, ge=0.0, le=1.0)
    base_weights: BaseWeightsConfig = Field(default_factory=BaseWeightsConfig)
    horizon_weights: HorizonWeightsConfig = Field(default_factory=HorizonWeightsConfig)


class LevelPercentConfig(BaseModel):
    """A percentage offset per risk level (fractions, 0.02 = 2%)."""

    low: float = Field(gt=0.0, le=0.5)
    medium: float = Field(gt=0.0, le=0.5)
    high: float = Field(gt=0.0, le=0.5)

    def as_dict(self) -> dict[RiskLevel, float]:
        return {RiskLevel.LOW: self.low, RiskLevel.MEDIUM: self.medium, RiskLevel.HIGH: self.high}


class DecisionConfig(BaseModel):
    """Risk management thresholds."""

    tradeable_threshold: int = Field(default=70, ge=0, le=100)
    medium_risk_threshold: float = Field(default=60, ge=0, le=100)
    low_risk_threshold: float = Field(default=80, ge=0, le=100)
    stop_pct: LevelPercentConfig = Field(
        default_factory=lambda: LevelPercentConfig(low=0.02, medium=0.03, high=0.05)
    )
    target_pct: LevelPercentConfig = Field(
        default_factory=lambda: LevelPercentConfig(low=0.04, medium=0.06, high=0.10)
    )
    neutral_offset_pct: float = Field(default=0.01, gt=0.0, le=0.1)

    @model_validator(mode="after")
    def low_gt_medium(self) -> "DecisionConfig":
        if self.low_risk_threshold <= self.medium_risk_threshold:
            raise ValueError("low_risk_threshold must be greater than medium_risk_threshold")
        return self


class PipelineConfig(BaseModel):
    """Pipeline execution configuration."""

    source_timeout_seconds: float = Field(default=30.0, gt=0.0, le=600.0)
    default_strategy: Literal["day", "swing", "longterm"] | None = None


class CacheConfig(BaseModel):
    """Source output cache used by collaborators."""

    enabled: bool = True
    backend: Literal["memory", "sqlite"] = "memory"
    path: Path | None = None
    default_ttl_seconds: int = Field(default=120, ge=1, le=86400)

    @property
    def default_ttl(self) -> timedelta:
        return timedelta(seconds=self.default_ttl_seconds)


class SynthConfig(BaseModel):
    """
    Root configuration model.

    All settings are validated on load.
    """

    confidence: ConfidenceConfig = Field(default_factory=ConfidenceConfig)
    signals: SignalsConfig = Field(default_factory=SignalsConfig)
    conflicts: ConflictsConfig = Field(default_factory=ConflictsConfig)
    synthesis: SynthesisConfig = Field(default_factory=SynthesisConfig)
    decision: DecisionConfig = Field(default_factory=DecisionConfig)
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)

    def to_confidence_penalties(self) -> ConfidencePenalties:
        return self.confidence.to_penalties()

    def to_conflict_rules(self) -> ConflictRules:
        c = self.conflicts
        return ConflictRules(
            outlier_sigma=c.outlier_sigma,
            outlier_min_others=c.outlier_min_others,
            sigma_floor=c.sigma_floor,
            outlier_impact=c.outlier_impact,
            pair_impact=c.pair_impact,
            opposing_pairs=tuple(tuple(pair) for pair in c.opposing_pairs),
            severity_weights={
                Severity.HIGH: c.severity_weights.high,
                Severity.MEDIUM: c.severity_weights.medium,
                Severity.LOW: c.severity_weights.low,
            },
            stance_precedence=tuple(self.signals.stance_precedence),
        )

    def to_synthesis_rules(self) -> SynthesisRules:
        s = self.synthesis
        return SynthesisRules(
            min_qualifying_sources=s.min_qualifying_sources,
            quality_threshold=s.quality_threshold,
            direction_threshold=s.direction_threshold,
            authoritative_min_confidence=s.authoritative_min_confidence,
            authoritative_min_quality=s.authoritative_min_quality,
            base_weights=s.base_weights.as_dict(),
            unknown_base_weight=s.unknown_base_weight,
            horizon_weights=s.horizon_weights.as_dict(),
            stance_precedence=tuple(self.signals.stance_precedence),
        )

    def to_decision_rules(self) -> DecisionRules:
        d = self.decision
        return DecisionRules(
            tradeable_threshold=d.tradeable_threshold,
            low_risk_threshold=d.low_risk_threshold,
            medium_risk_threshold=d.medium_risk_threshold,
            stop_pct=d.stop_pct.as_dict(),
            target_pct=d.target_pct.as_dict(),
            neutral_offset_pct=d.neutral_offset_pct,
        )
