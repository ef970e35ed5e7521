"""
Strategy profiles and relevance re-weighting.

A strategy is a named time-horizon bundle: agent-type weights, cache and
validity windows, and a daily decay rate that ages out confidence since
the analysis was produced.
"""

import logging
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, model_validator

from .enums import SourceKind
from .models import AdjustedSource
from .primitives import clamp, ensure_utc, round_half_up

logger = logging.getLogger(__name__)


class StrategyType(str, Enum):
    """Trading time horizon."""
    DAY = "day"
    SWING = "swing"
    LONGTERM = "longterm"


class AgentCategory(str, Enum):
    """Coarse agent grouping the strategy weights are expressed in."""
    TECHNICAL = "technical"
    FUNDAMENTAL = "fundamental"
    NEWS_SENTIMENT = "news_sentiment"
    MARKET_STRUCTURE = "market_structure"


class ValidityStatus(str, Enum):
    OPTIMAL = "optimal"
    ACCEPTABLE = "acceptable"
    AGING = "aging"
    STALE = "stale"


# ============================================================================
# Profile models
# ============================================================================

class AgentWeights(BaseModel):
    """Agent priorities, must sum to 100."""
    model_config = {"frozen": True, "extra": "forbid"}

    technical: float = Field(ge=0, le=100)
    fundamental: float = Field(ge=0, le=100)
    news_sentiment: float = Field(ge=0, le=100)
    market_structure: float = Field(ge=0, le=100)

    @model_validator(mode="after")
    def _sums_to_100(self) -> "AgentWeights":
        total = self.technical + self.fundamental + self.news_sentiment + self.market_structure
        if abs(total - 100) > 0.01:
            raise ValueError(f"Agent weights must sum to 100, got {total}")
        return self

    def for_category(self, category: AgentCategory) -> float:
        return getattr(self, category.value)


class ValidityPeriod(BaseModel):
    """How long a signal stays useful under a strategy."""
    model_config = {"frozen": True, "extra": "forbid"}

    optimal: str
    acceptable: str
    stale: str
    optimal_within: timedelta
    acceptable_within: timedelta
    stale_after: timedelta
    decay_rate: float = Field(ge=0, le=100, description="Confidence loss % per day")

    @model_validator(mode="after")
    def _ordered(self) -> "ValidityPeriod":
        if not (self.optimal_within <= self.acceptable_within <= self.stale_after):
            raise ValueError("Validity windows must be ordered optimal <= acceptable <= stale")
        return self


class StrategyProfile(BaseModel):
    """A named time-horizon configuration bundle."""
    model_config = {"frozen": True, "extra": "forbid"}

    type: StrategyType
    name: str
    description: str
    time_horizon: str
    cache_timeout: timedelta
    agent_weights: AgentWeights
    validity: ValidityPeriod
    focus_indicators: list[str] = Field(default_factory=list)
    news_timeframe: str = ""
    risk_tolerance: str = "medium"

    @property
    def decay_rate(self) -> float:
        return self.validity.decay_rate

    @property
    def is_short_horizon(self) -> bool:
        return self.type in (StrategyType.DAY, StrategyType.SWING)


STRATEGY_PROFILES: dict[StrategyType, StrategyProfile] = {
    StrategyType.DAY: StrategyProfile(
        type=StrategyType.DAY,
        name="Day Trading",
        description="Intraday opportunities with quick entries and exits",
        time_horizon="Hours to 1 day",
        cache_timeout=timedelta(seconds=30),
        agent_weights=AgentWeights(technical=40, market_structure=30, news_sentiment=20, fundamental=10),
        validity=ValidityPeriod(
            optimal="Next 2-4 hours",
            acceptable="Same trading day",
            stale="After market close",
            optimal_within=timedelta(hours=4),
            acceptable_within=timedelta(hours=8),
            stale_after=timedelta(days=1),
            decay_rate=25,
        ),
        focus_indicators=["RSI_15min", "VWAP", "Volume", "Support_Resistance"],
        news_timeframe="2 hours",
        risk_tolerance="high",
    ),
    StrategyType.SWING: StrategyProfile(
        type=StrategyType.SWING,
        name="Swing Trading",
        description="Multi-day positions capturing intermediate moves",
        time_horizon="2-10 days",
        cache_timeout=timedelta(seconds=120),
        agent_weights=AgentWeights(technical=25, fundamental=25, news_sentiment=25, market_structure=25),
        validity=ValidityPeriod(
            optimal="Next 1-3 days",
            acceptable="Up to 7 days",
            stale="After 10 days",
            optimal_within=timedelta(days=3),
            acceptable_within=timedelta(days=7),
            stale_after=timedelta(days=10),
            decay_rate=15,
        ),
        focus_indicators=["RSI_Daily", "MACD", "Bollinger_Bands", "SMA_20_50"],
        news_timeframe="3 days",
        risk_tolerance="medium",
    ),
    StrategyType.LONGTERM: StrategyProfile(
        type=StrategyType.LONGTERM,
        name="Long Term",
        description="Position trading based on fundamental value",
        time_horizon="2 weeks to 6 months",
        cache_timeout=timedelta(seconds=600),
        agent_weights=AgentWeights(fundamental=50, news_sentiment=20, technical=20, market_structure=10),
        validity=ValidityPeriod(
            optimal="Next 2-4 weeks",
            acceptable="Up to 3 months",
            stale="After 6 months",
            optimal_within=timedelta(weeks=4),
            acceptable_within=timedelta(days=90),
            stale_after=timedelta(days=180),
            decay_rate=5,
        ),
        focus_indicators=["SMA_200", "Weekly_MACD", "Monthly_Trends", "Value_Metrics"],
        news_timeframe="2 weeks",
        risk_tolerance="low",
    ),
}


def get_strategy_profile(strategy: StrategyType | str) -> StrategyProfile:
    """Look up a profile by type or name ("day", "swing", "longterm")."""
    try:
        return STRATEGY_PROFILES[StrategyType(strategy)]
    except ValueError:
        valid = ", ".join(t.value for t in StrategyType)
        raise ValueError(f"Unknown strategy '{strategy}'. Valid: {valid}") from None


# ============================================================================
# Decay and validity
# ============================================================================

DECAY_BASE = 0.9
DECAY_FLOOR = 0.10


def confidence_decay(days_elapsed: float, decay_rate: float) -> float:
    """
    Confidence multiplier after days_elapsed at decay_rate %/day.

    0.9 ** (days * rate / 100), never below 0.10.
    """
    days = max(0.0, days_elapsed)
    return max(DECAY_FLOOR, DECAY_BASE ** (days * decay_rate / 100))


def analysis_age(source: AdjustedSource, now: datetime) -> timedelta:
    return max(timedelta(0), ensure_utc(now) - source.output.timestamp)


def validity_status(age: timedelta, profile: StrategyProfile) -> ValidityStatus:
    validity = profile.validity
    if age <= validity.optimal_within:
        return ValidityStatus.OPTIMAL
    if age <= validity.acceptable_within:
        return ValidityStatus.ACCEPTABLE
    if age < validity.stale_after:
        return ValidityStatus.AGING
    return ValidityStatus.STALE


# ============================================================================
# Relevance
# ============================================================================

KIND_CATEGORIES: dict[SourceKind, AgentCategory] = {
    SourceKind.TECHNICAL: AgentCategory.TECHNICAL,
    SourceKind.ML: AgentCategory.TECHNICAL,
    SourceKind.FUNDAMENTAL: AgentCategory.FUNDAMENTAL,
    SourceKind.MACRO: AgentCategory.FUNDAMENTAL,
    SourceKind.SENTIMENT: AgentCategory.NEWS_SENTIMENT,
    SourceKind.FLOW: AgentCategory.MARKET_STRUCTURE,
    SourceKind.MICROSTRUCTURE: AgentCategory.MARKET_STRUCTURE,
    SourceKind.ONCHAIN: AgentCategory.MARKET_STRUCTURE,
}

SYNTHESIS_RELEVANCE = 50.0
UNKNOWN_RELEVANCE = 10.0
FINDINGS_BOOST = 1.2


def _has_items(value: Any) -> bool:
    if isinstance(value, (list, tuple, dict, str)):
        return len(value) > 0
    return value is not None


def has_near_term_catalysts(payload: dict) -> bool:
    reasoning = payload.get("reasoning")
    return _has_items(payload.get("catalysts")) or (
        isinstance(reasoning, dict) and _has_items(reasoning.get("catalysts"))
    )


def has_valuation_signals(payload: dict) -> bool:
    return _has_items(payload.get("valuation"))


def assess_relevance(source: AdjustedSource, profile: StrategyProfile) -> float:
    """
    Relevance (0-100) of one source under a strategy.

    A source's own strategy_relevance wins. Otherwise the profile weight
    of its agent category, boosted when its findings fit the horizon.
    """
    payload = source.output.payload
    reported = payload.get("strategy_relevance")
    if isinstance(reported, (int, float)) and not isinstance(reported, bool):
        return clamp(float(reported))

    if source.kind == SourceKind.UNKNOWN:
        return UNKNOWN_RELEVANCE
    if source.kind == SourceKind.SYNTHESIS:
        return SYNTHESIS_RELEVANCE

    relevance = profile.agent_weights.for_category(KIND_CATEGORIES[source.kind])

    if profile.is_short_horizon and has_near_term_catalysts(payload):
        relevance *= FINDINGS_BOOST
    elif not profile.is_short_horizon and has_valuation_signals(payload):
        relevance *= FINDINGS_BOOST

    return clamp(relevance)


def apply_strategy(
    sources: list[AdjustedSource],
    profile: StrategyProfile,
    now: datetime,
) -> list[AdjustedSource]:
    """
    Decay each source's confidence by analysis age and attach relevance.

    Returns new AdjustedSource objects; the inputs are untouched.
    """
    adapted = []
    for source in sources:
        age = analysis_age(source, now)
        factor = confidence_decay(age.total_seconds() / 86400, profile.decay_rate)
        decayed = round_half_up(source.adjusted_confidence * factor)
        relevance = assess_relevance(source, profile)
        status = validity_status(age, profile)

        notes = list(source.notes)
        if decayed != source.adjusted_confidence:
            notes.append(
                f"{profile.name}: confidence decayed x{factor:.3f} "
                f"({source.adjusted_confidence} -> {decayed})"
            )
        if status == ValidityStatus.STALE:
            notes.append(f"{profile.name}: analysis is stale ({profile.validity.stale.lower()})")

        adapted.append(source.model_copy(update={
            "adjusted_confidence": decayed,
            "relevance": round(relevance, 4),
            "notes": notes,
        }))

    logger.debug(f"Applied {profile.type.value} strategy to {len(adapted)} sources")
    return adapted
