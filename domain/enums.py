from enum import Enum


class SourceKind(str, Enum):
    """Type of analysis source that produced a report."""
    TECHNICAL = "technical"
    FUNDAMENTAL = "fundamental"
    SENTIMENT = "sentiment"
    MACRO = "macro"
    FLOW = "flow"
    ONCHAIN = "onchain"
    MICROSTRUCTURE = "microstructure"
    ML = "ml"
    SYNTHESIS = "synthesis"  # authoritative synthesis source
    UNKNOWN = "unknown"


class Direction(str, Enum):
    """Coarse directional stance of a source or a decision."""
    BULLISH = "BULLISH"
    BEARISH = "BEARISH"
    NEUTRAL = "NEUTRAL"


class HorizonDirection(str, Enum):
    """Direction estimated for a single horizon."""
    UP = "UP"
    DOWN = "DOWN"
    SIDEWAYS = "SIDEWAYS"


class Horizon(str, Enum):
    """Forward-looking window a direction is estimated for."""
    ONE_DAY = "1day"
    ONE_WEEK = "1week"
    ONE_MONTH = "1month"


class RiskLevel(str, Enum):
    """Risk tier of a decision."""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class Severity(str, Enum):
    """Conflict severity."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ConflictType(str, Enum):
    """Kind of cross-source disagreement."""
    DIRECTIONAL = "directional_conflict"
    CONFIDENCE_OUTLIER = "confidence_outlier"
    FLOW_TECHNICAL = "flow_technical_conflict"
