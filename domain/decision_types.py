"""
Decision output types.

SynthesizedDecision is the sole externally visible artifact of a run.
Serializing and deserializing it yields an equal object.
"""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from .enums import ConflictType, Direction, Horizon, HorizonDirection, RiskLevel
from .models import ConflictRecord
from .primitives import ensure_utc
from .strategy import StrategyType


class QualitySummary(BaseModel):
    """Mean quality sub-scores over the active sources."""
    model_config = {"frozen": True, "extra": "forbid"}

    average_quality: float = Field(ge=0, le=100)
    average_freshness: float = Field(ge=0, le=100)
    average_reliability: float = Field(ge=0, le=100)
    average_cross_verification: float = Field(ge=0, le=100)
    average_anomaly: float = Field(ge=0, le=100)
    average_completeness: float = Field(ge=0, le=100)
    average_consistency: float = Field(ge=0, le=100)
    warnings: list[str] = Field(default_factory=list)


class ValidationSummary(BaseModel):
    """Check totals over every assessed source."""
    model_config = {"frozen": True, "extra": "forbid"}

    sources_validated: int = 0
    sources_passed: int = 0
    total_checks: int = 0
    passed_checks: int = 0
    failed_checks: int = 0
    critical_failures: int = 0
    pass_rate: float = Field(default=0.0, ge=0, le=100)


class ReliabilitySummary(BaseModel):
    """Health of each source and overall signal strength."""
    model_config = {"frozen": True, "extra": "forbid"}

    source_health: dict[str, str] = Field(default_factory=dict)
    healthy_sources: int = 0
    degraded_sources: int = 0
    excluded_sources: int = 0
    average_signal_strength: float = Field(default=0.0, ge=0, le=100)


class ConflictSummary(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    total: int = 0
    by_type: dict[ConflictType, int] = Field(default_factory=dict)
    conflict_score: float = 0.0
    consensus_strength: float = 1.0
    insufficient_data: bool = False
    records: list[ConflictRecord] = Field(default_factory=list)


class DataSourceContribution(BaseModel):
    """A cited data source and its share of the vote."""
    model_config = {"frozen": True, "extra": "forbid"}

    name: str
    contribution: float = Field(ge=0, le=100)
    cited_by: list[str] = Field(default_factory=list)


class ExcludedSource(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    source_id: str
    reason: str


class TransparencyReport(BaseModel):
    """Why the decision looks the way it does."""
    model_config = {"frozen": True, "extra": "forbid"}

    data_sources: list[DataSourceContribution] = Field(default_factory=list)
    source_weights: dict[str, float] = Field(default_factory=dict)
    authoritative_source: str | None = None
    excluded: list[ExcludedSource] = Field(default_factory=list)
    reasoning: list[str] = Field(default_factory=list)
    degradations: list[str] = Field(default_factory=list)


class DecisionMetadata(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    quality: QualitySummary
    validation: ValidationSummary
    reliability: ReliabilitySummary
    conflicts: ConflictSummary
    transparency: TransparencyReport
    vote_direction: HorizonDirection = Field(description="Direction before the risk override")
    vote_score: float = 0.0
    horizon_scores: dict[Horizon, float] = Field(default_factory=dict)
    override_applied: bool = False


class SynthesizedDecision(BaseModel):
    """
    Final risk-bounded decision for one subject.

    Stop and target for a NEUTRAL decision are 1% markers, not levels
    to trade.
    """
    model_config = {"frozen": True, "extra": "forbid"}

    subject: str
    generated_at: datetime
    direction: Direction
    horizon_directions: dict[Horizon, HorizonDirection]
    confidence: int = Field(ge=0, le=100)
    entry_price: float = Field(gt=0)
    stop_loss: float = Field(gt=0)
    take_profit: float = Field(gt=0)
    expiration_time: datetime
    risk_level: RiskLevel
    risk_reward_ratio: float = Field(ge=0)
    tradeable: bool
    strategy: StrategyType | None = None
    metadata: DecisionMetadata

    @field_validator("generated_at", "expiration_time")
    @classmethod
    def _to_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @property
    def is_actionable(self) -> bool:
        return self.tradeable and self.direction != Direction.NEUTRAL
