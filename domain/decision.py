"""
Decision generation.

Turns a synthesis result into entry/stop/target levels, an expiration,
a risk tier and a tradeable gate. A decision is never produced without
a real reference price from an active source.
"""

import logging
import statistics
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable

from .decision_types import (
    ConflictSummary,
    DataSourceContribution,
    DecisionMetadata,
    ExcludedSource,
    QualitySummary,
    ReliabilitySummary,
    SynthesizedDecision,
    TransparencyReport,
    ValidationSummary,
)
from .enums import (
    ConflictType,
    Direction,
    Horizon,
    HorizonDirection,
    RiskLevel,
    SourceKind,
)
from .errors import MissingMarketDataError
from .models import AdjustedSource, ConflictReport, SynthesisResult
from .primitives import ensure_utc, is_positive_number, round_significant
from .signals import order_book
from .strategy import StrategyType
from .validation import get_path

logger = logging.getLogger(__name__)


# ============================================================================
# Rules
# ============================================================================

@dataclass(frozen=True)
class DecisionRules:
    """Risk management thresholds."""

    # Below this confidence the direction is forced to NEUTRAL
    tradeable_threshold: int = 70

    low_risk_threshold: float = 80
    medium_risk_threshold: float = 60

    stop_pct: dict[RiskLevel, float] = field(default_factory=lambda: {
        RiskLevel.LOW: 0.02,
        RiskLevel.MEDIUM: 0.03,
        RiskLevel.HIGH: 0.05,
    })
    target_pct: dict[RiskLevel, float] = field(default_factory=lambda: {
        RiskLevel.LOW: 0.04,
        RiskLevel.MEDIUM: 0.06,
        RiskLevel.HIGH: 0.10,
    })
    neutral_offset_pct: float = 0.01

    base_expiry: timedelta = timedelta(hours=24)
    week_expiry: timedelta = timedelta(hours=168)
    month_expiry: timedelta = timedelta(hours=720)

    price_priority: tuple[SourceKind, ...] = (
        SourceKind.MICROSTRUCTURE,
        SourceKind.TECHNICAL,
        SourceKind.FLOW,
        SourceKind.ONCHAIN,
    )

    price_significant_digits: int = 6


DEFAULT_DECISION_RULES = DecisionRules()


# ============================================================================
# Entry price
# ============================================================================

def _microstructure_price(payload: dict) -> Any:
    book = order_book(payload)
    return book.get("mid_price") if book else None


def _technical_price(payload: dict) -> Any:
    price = payload.get("price")
    if isinstance(price, dict):
        return price.get("price")
    return price


def _flow_price(payload: dict) -> Any:
    return get_path(payload, "market_data", "current_price")


def _onchain_price(payload: dict) -> Any:
    price = get_path(payload, "network_metrics", "current_price")
    if price is None:
        price = payload.get("current_price")
    return price


PRICE_EXTRACTORS: dict[SourceKind, Callable[[dict], Any]] = {
    SourceKind.MICROSTRUCTURE: _microstructure_price,
    SourceKind.TECHNICAL: _technical_price,
    SourceKind.FLOW: _flow_price,
    SourceKind.ONCHAIN: _onchain_price,
}


def find_entry_price(
    sources: list[AdjustedSource],
    rules: DecisionRules = DEFAULT_DECISION_RULES,
    subject: str | None = None,
) -> tuple[float, str]:
    """
    First usable reference price in priority order.

    Returns:
        (price, source_id)

    Raises:
        MissingMarketDataError: No active source has a finite positive price
    """
    active = [s for s in sources if s.adjusted_confidence > 0]
    checked = []
    for kind in rules.price_priority:
        extractor = PRICE_EXTRACTORS[kind]
        for source in active:
            if source.kind != kind:
                continue
            checked.append(source.source_id)
            price = extractor(source.output.payload)
            if is_positive_number(price):
                return float(price), source.source_id

    if subject is None and sources:
        subject = sources[0].output.subject
    raise MissingMarketDataError(subject, checked=checked)


# ============================================================================
# Risk
# ============================================================================

def classify_risk(score: float, rules: DecisionRules = DEFAULT_DECISION_RULES) -> RiskLevel:
    if score >= rules.low_risk_threshold:
        return RiskLevel.LOW
    if score >= rules.medium_risk_threshold:
        return RiskLevel.MEDIUM
    return RiskLevel.HIGH


def risk_score(
    synthesis: SynthesisResult,
    active: list[AdjustedSource],
) -> float:
    """
    Mean of quality, confidence and validation score.

    Taken from the authoritative source when there is one, otherwise from
    the aggregate of the active sources.
    """
    authoritative = next(
        (s for s in active if s.source_id == synthesis.authoritative_source), None
    )
    if authoritative is not None:
        parts = (
            authoritative.quality.overall_quality,
            authoritative.adjusted_confidence,
            authoritative.validation_score,
        )
    else:
        parts = (
            statistics.fmean(s.quality.overall_quality for s in active),
            synthesis.confidence,
            statistics.fmean(s.validation_score for s in active),
        )
    return sum(parts) / 3


def price_levels(
    entry: float,
    direction: Direction,
    risk_level: RiskLevel,
    rules: DecisionRules = DEFAULT_DECISION_RULES,
) -> tuple[float, float, float]:
    """
    Stop loss, take profit and reward/risk ratio for a direction.

    NEUTRAL gets symmetric marker levels.
    """
    if direction == Direction.NEUTRAL:
        offset = rules.neutral_offset_pct
        stop = entry * (1 - offset)
        target = entry * (1 + offset)
    else:
        stop_pct = rules.stop_pct[risk_level]
        target_pct = rules.target_pct[risk_level]
        if direction == Direction.BULLISH:
            stop = entry * (1 - stop_pct)
            target = entry * (1 + target_pct)
        else:
            stop = entry * (1 + stop_pct)
            target = entry * (1 - target_pct)

    risk = abs(entry - stop)
    reward = abs(target - entry)
    ratio = reward / risk if risk > 0 else 0.0
    return (
        round_significant(stop, rules.price_significant_digits),
        round_significant(target, rules.price_significant_digits),
        round(ratio, 2),
    )


def expiration_for(
    horizon_directions: dict[Horizon, HorizonDirection],
    now: datetime,
    rules: DecisionRules = DEFAULT_DECISION_RULES,
) -> datetime:
    expiry = rules.base_expiry
    if horizon_directions.get(Horizon.ONE_WEEK, HorizonDirection.SIDEWAYS) != HorizonDirection.SIDEWAYS:
        expiry = rules.week_expiry
    if horizon_directions.get(Horizon.ONE_MONTH, HorizonDirection.SIDEWAYS) != HorizonDirection.SIDEWAYS:
        expiry = rules.month_expiry
    return ensure_utc(now) + expiry


_TO_DIRECTION = {
    HorizonDirection.UP: Direction.BULLISH,
    HorizonDirection.DOWN: Direction.BEARISH,
    HorizonDirection.SIDEWAYS: Direction.NEUTRAL,
}


# ============================================================================
# Metadata
# ============================================================================

def _mean(values: list[float]) -> float:
    return round(statistics.fmean(values), 2) if values else 0.0


def summarize_quality(active: list[AdjustedSource]) -> QualitySummary:
    warnings = []
    for s in active:
        warnings.extend(f"{s.source_id}: {w}" for w in s.quality.warnings)
    return QualitySummary(
        average_quality=_mean([s.quality.overall_quality for s in active]),
        average_freshness=_mean([s.quality.data_freshness for s in active]),
        average_reliability=_mean([s.quality.source_reliability for s in active]),
        average_cross_verification=_mean([s.quality.cross_verification for s in active]),
        average_anomaly=_mean([s.quality.anomaly_score for s in active]),
        average_completeness=_mean([s.quality.completeness for s in active]),
        average_consistency=_mean([s.quality.consistency for s in active]),
        warnings=warnings,
    )


def summarize_validation(sources: list[AdjustedSource]) -> ValidationSummary:
    checks = [c for s in sources for c in s.checks]
    passed = sum(1 for c in checks if c.passed)
    return ValidationSummary(
        sources_validated=len(sources),
        sources_passed=sum(1 for s in sources if s.validation_passed),
        total_checks=len(checks),
        passed_checks=passed,
        failed_checks=len(checks) - passed,
        critical_failures=sum(len(s.critical_failures) for s in sources),
        pass_rate=round(passed / len(checks) * 100, 2) if checks else 0.0,
    )


def _health(source: AdjustedSource) -> str:
    if source.excluded:
        return "excluded"
    if not source.validation_passed or source.quality.overall_quality < 70:
        return "degraded"
    return "healthy"


def summarize_reliability(
    sources: list[AdjustedSource],
    failed_sources: dict[str, str],
) -> ReliabilitySummary:
    health = {s.source_id: _health(s) for s in sources}
    health.update({sid: "failed" for sid in failed_sources})
    active = [s for s in sources if not s.excluded]
    return ReliabilitySummary(
        source_health=health,
        healthy_sources=sum(1 for h in health.values() if h == "healthy"),
        degraded_sources=sum(1 for h in health.values() if h == "degraded"),
        excluded_sources=sum(1 for h in health.values() if h in ("excluded", "failed")),
        average_signal_strength=_mean([s.signal_strength for s in active]),
    )


def summarize_conflicts(report: ConflictReport) -> ConflictSummary:
    by_type: dict[ConflictType, int] = {}
    for record in report.conflicts:
        by_type[record.type] = by_type.get(record.type, 0) + 1
    return ConflictSummary(
        total=len(report.conflicts),
        by_type=by_type,
        conflict_score=report.consensus.conflict_score,
        consensus_strength=report.consensus.consensus_strength,
        insufficient_data=report.consensus.insufficient_data,
        records=list(report.conflicts),
    )


def rank_data_sources(
    active: list[AdjustedSource],
    weights: dict[str, float],
) -> list[DataSourceContribution]:
    """
    Spread each source's weight evenly over its cited data sources.

    Returned highest contribution first, ties by name.
    """
    totals: dict[str, float] = {}
    cited_by: dict[str, list[str]] = {}
    for s in active:
        names = s.output.distinct_provenance
        if not names:
            continue
        share = weights.get(s.source_id, 0.0) / len(names)
        for name in names:
            totals[name] = totals.get(name, 0.0) + share
            cited_by.setdefault(name, []).append(s.source_id)

    ranked = sorted(totals.items(), key=lambda item: (-item[1], item[0]))
    return [
        DataSourceContribution(
            name=name,
            contribution=round(min(100.0, total), 4),
            cited_by=cited_by[name],
        )
        for name, total in ranked
    ]


def _exclusion_reason(source: AdjustedSource) -> str:
    failures = [c.name for c in source.critical_failures]
    if failures:
        return f"Adjusted confidence 0 after critical failures: {', '.join(failures)}"
    return "Adjusted confidence 0"


# ============================================================================
# Generator
# ============================================================================

def generate_decision(
    synthesis: SynthesisResult,
    sources: list[AdjustedSource],
    conflicts: ConflictReport,
    now: datetime,
    subject: str | None = None,
    strategy: StrategyType | None = None,
    failed_sources: dict[str, str] | None = None,
    degradations: list[str] | None = None,
    rules: DecisionRules = DEFAULT_DECISION_RULES,
) -> SynthesizedDecision:
    """
    Build the final decision.

    Args:
        synthesis: Synthesized direction and confidence
        sources: Every assessed source, excluded ones included
        conflicts: Conflict report for the same sources
        now: Reference time for generated_at and expiration
        subject: Subject (defaults to the sources' subject)
        strategy: Strategy in force, if any
        failed_sources: Sources that never produced output, with reasons
        degradations: Pipeline warnings to surface in transparency
        rules: Risk management thresholds

    Returns:
        SynthesizedDecision

    Raises:
        MissingMarketDataError: No usable reference price
    """
    failed_sources = failed_sources or {}
    now = ensure_utc(now)
    active = [s for s in sources if s.source_id in synthesis.contributing]
    if subject is None:
        subject = active[0].output.subject if active else (sources[0].output.subject if sources else "")

    entry, price_source = find_entry_price(active, rules, subject)

    vote_direction = _TO_DIRECTION[synthesis.direction]
    override = synthesis.confidence < rules.tradeable_threshold and vote_direction != Direction.NEUTRAL
    direction = Direction.NEUTRAL if synthesis.confidence < rules.tradeable_threshold else vote_direction

    score = risk_score(synthesis, active)
    risk_level = classify_risk(score, rules)
    stop_loss, take_profit, rr_ratio = price_levels(entry, direction, risk_level, rules)
    tradeable = synthesis.confidence >= rules.tradeable_threshold and direction != Direction.NEUTRAL

    reasoning = [
        f"Weighted vote {synthesis.direction.value} (score {synthesis.score:+.3f}) "
        f"from {len(active)} active source(s)",
    ]
    if synthesis.authoritative_source:
        reasoning.append(
            f"Authoritative source {synthesis.authoritative_source} supplied "
            f"confidence {synthesis.confidence}"
        )
    else:
        reasoning.append(f"Confidence {synthesis.confidence} is the weight-normalized mean")
    if override:
        reasoning.append(
            f"Confidence {synthesis.confidence} below {rules.tradeable_threshold}: "
            f"{vote_direction.value} vote overridden to NEUTRAL"
        )
    reasoning.append(f"Risk {risk_level.value} from quality/confidence/validation mean {score:.1f}")
    reasoning.append(f"Entry price {entry} from {price_source}")
    if conflicts.conflicts:
        reasoning.append(
            f"{len(conflicts.conflicts)} conflict(s), consensus strength "
            f"{conflicts.consensus.consensus_strength:.2f}"
        )
    for s in active:
        reasoning.extend(f"{s.source_id}: {note}" for note in s.notes)

    excluded = [
        ExcludedSource(source_id=s.source_id, reason=_exclusion_reason(s))
        for s in sources if s.excluded
    ]
    excluded.extend(
        ExcludedSource(source_id=sid, reason=reason)
        for sid, reason in failed_sources.items()
    )

    metadata = DecisionMetadata(
        quality=summarize_quality(active),
        validation=summarize_validation(sources),
        reliability=summarize_reliability(sources, failed_sources),
        conflicts=summarize_conflicts(conflicts),
        transparency=TransparencyReport(
            data_sources=rank_data_sources(active, synthesis.weights),
            source_weights=dict(synthesis.weights),
            authoritative_source=synthesis.authoritative_source,
            excluded=excluded,
            reasoning=reasoning,
            degradations=list(degradations or []),
        ),
        vote_direction=synthesis.direction,
        vote_score=synthesis.score,
        horizon_scores=dict(synthesis.horizon_scores),
        override_applied=override,
    )

    decision = SynthesizedDecision(
        subject=subject,
        generated_at=now,
        direction=direction,
        horizon_directions=dict(synthesis.horizon_directions),
        confidence=synthesis.confidence,
        entry_price=entry,
        stop_loss=stop_loss,
        take_profit=take_profit,
        expiration_time=expiration_for(synthesis.horizon_directions, now, rules),
        risk_level=risk_level,
        risk_reward_ratio=rr_ratio,
        tradeable=tradeable,
        strategy=strategy,
        metadata=metadata,
    )

    logger.info(
        f"{subject}: {direction.value} @ {decision.entry_price} "
        f"(confidence {decision.confidence}, risk {risk_level.value}, tradeable={tradeable})",
        extra={"subject": subject, "direction": direction.value},
    )
    return decision


__all__ = [
    "DEFAULT_DECISION_RULES",
    "DecisionRules",
    "classify_risk",
    "expiration_for",
    "find_entry_price",
    "generate_decision",
    "price_levels",
    "rank_data_sources",
    "risk_score",
]
