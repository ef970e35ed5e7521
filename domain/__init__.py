from .enums import (
    SourceKind,
    Direction,
    HorizonDirection,
    Horizon,
    RiskLevel,
    Severity,
    ConflictType,
)
from .errors import (
    ErrorCode,
    SynthesisError,
    InsufficientEvidenceError,
    MissingMarketDataError,
    ValidationRuleError,
)
from .models import (
    SourceOutput,
    ValidationCheck,
    QualityProfile,
    QualityWeights,
    QUALITY_WEIGHTS,
    AdjustedSource,
    ConflictRecord,
    ConsensusMetrics,
    ConflictReport,
    HorizonSignal,
    SynthesisResult,
)
from .decision_types import (
    SynthesizedDecision,
    DecisionMetadata,
    QualitySummary,
    ValidationSummary,
    ReliabilitySummary,
    ConflictSummary,
    TransparencyReport,
    DataSourceContribution,
    ExcludedSource,
)
from .validation import KindRules, KIND_RULES, rules_for, validate, validation_score
from .quality import score_quality
from .confidence import ConfidencePenalties, adjust_confidence, assess_source
from .signals import DEFAULT_STANCE_PRECEDENCE, extract_stance, extract_horizon_signals
from .conflicts import ConflictRules, detect_conflicts
from .synthesis import BASE_WEIGHTS, HORIZON_WEIGHTS, SynthesisRules, synthesize
from .strategy import (
    StrategyType,
    StrategyProfile,
    STRATEGY_PROFILES,
    get_strategy_profile,
    confidence_decay,
    assess_relevance,
    apply_strategy,
)
from .decision import DecisionRules, generate_decision

__all__ = [
    # Enums
    "SourceKind",
    "Direction",
    "HorizonDirection",
    "Horizon",
    "RiskLevel",
    "Severity",
    "ConflictType",
    # Errors
    "ErrorCode",
    "SynthesisError",
    "InsufficientEvidenceError",
    "MissingMarketDataError",
    "ValidationRuleError",
    # Models
    "SourceOutput",
    "ValidationCheck",
    "QualityProfile",
    "QualityWeights",
    "QUALITY_WEIGHTS",
    "AdjustedSource",
    "ConflictRecord",
    "ConsensusMetrics",
    "ConflictReport",
    "HorizonSignal",
    "SynthesisResult",
    # Decision
    "SynthesizedDecision",
    "DecisionMetadata",
    "QualitySummary",
    "ValidationSummary",
    "ReliabilitySummary",
    "ConflictSummary",
    "TransparencyReport",
    "DataSourceContribution",
    "ExcludedSource",
    # Validation / quality / confidence
    "KindRules",
    "KIND_RULES",
    "rules_for",
    "validate",
    "validation_score",
    "score_quality",
    "ConfidencePenalties",
    "adjust_confidence",
    "assess_source",
    # Signals / conflicts / synthesis
    "DEFAULT_STANCE_PRECEDENCE",
    "extract_stance",
    "extract_horizon_signals",
    "ConflictRules",
    "detect_conflicts",
    "BASE_WEIGHTS",
    "HORIZON_WEIGHTS",
    "SynthesisRules",
    "synthesize",
    # Strategy
    "StrategyType",
    "StrategyProfile",
    "STRATEGY_PROFILES",
    "get_strategy_profile",
    "confidence_decay",
    "assess_relevance",
    "apply_strategy",
    # Decision generation
    "DecisionRules",
    "generate_decision",
]
