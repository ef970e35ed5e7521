"""
Dynamic weight synthesis.

Combines adjusted confidence, quality, validation score and optional
strategy relevance into per-source weights, then votes per horizon and
across horizons. Refuses to produce a result on thin evidence.
"""

from dataclasses import dataclass, field

from .enums import Direction, Horizon, HorizonDirection, SourceKind
from .errors import InsufficientEvidenceError
from .models import AdjustedSource, HorizonSignal, SynthesisResult
from .primitives import round_half_up
from .signals import DEFAULT_STANCE_PRECEDENCE, extract_horizon_signals

# Sums to 1.0 over the known kinds
BASE_WEIGHTS: dict[SourceKind, float] = {
    SourceKind.TECHNICAL: 0.20,
    SourceKind.FUNDAMENTAL: 0.15,
    SourceKind.SENTIMENT: 0.15,
    SourceKind.MACRO: 0.10,
    SourceKind.FLOW: 0.10,
    SourceKind.ONCHAIN: 0.10,
    SourceKind.MICROSTRUCTURE: 0.05,
    SourceKind.ML: 0.10,
    SourceKind.SYNTHESIS: 0.05,
}

UNKNOWN_BASE_WEIGHT = 0.02

# Nearest horizon weighted highest
HORIZON_WEIGHTS: dict[Horizon, float] = {
    Horizon.ONE_DAY: 0.40,
    Horizon.ONE_WEEK: 0.35,
    Horizon.ONE_MONTH: 0.25,
}

_STANCE_VALUE = {
    Direction.BULLISH: 1,
    Direction.BEARISH: -1,
    Direction.NEUTRAL: 0,
}

_HORIZON_VALUE = {
    HorizonDirection.UP: 1,
    HorizonDirection.DOWN: -1,
    HorizonDirection.SIDEWAYS: 0,
}


@dataclass(frozen=True)
class SynthesisRules:
    """Evidence thresholds and weighting floors for synthesis."""
    min_qualifying_sources: int = 3
    quality_threshold: int = 70

    direction_threshold: float = 0.1

    # Authoritative fast path (strict inequalities)
    authoritative_kind: SourceKind = SourceKind.SYNTHESIS
    authoritative_min_confidence: int = 60
    authoritative_min_quality: int = 70

    confidence_floor: float = 0.1
    quality_floor: float = 0.5
    validation_floor: float = 0.5

    base_weights: dict[SourceKind, float] = field(default_factory=lambda: dict(BASE_WEIGHTS))
    unknown_base_weight: float = UNKNOWN_BASE_WEIGHT
    horizon_weights: dict[Horizon, float] = field(default_factory=lambda: dict(HORIZON_WEIGHTS))

    stance_precedence: tuple[str, ...] = DEFAULT_STANCE_PRECEDENCE

    def base_weight(self, kind: SourceKind) -> float:
        return self.base_weights.get(kind, self.unknown_base_weight)


DEFAULT_SYNTHESIS_RULES = SynthesisRules()


def classify(score: float, threshold: float = 0.1) -> HorizonDirection:
    """UP above +threshold, DOWN below -threshold, else SIDEWAYS."""
    if score > threshold:
        return HorizonDirection.UP
    if score < -threshold:
        return HorizonDirection.DOWN
    return HorizonDirection.SIDEWAYS


def source_weight(
    source: AdjustedSource,
    rules: SynthesisRules = DEFAULT_SYNTHESIS_RULES,
    relevance: float | None = None,
) -> float:
    """
    Raw (unnormalized) weight of one source.

    base(kind) x max(0.1, conf) x max(0.5, quality) x max(0.5, validation),
    times relevance/100 when a strategy is in force.
    """
    weight = (
        rules.base_weight(source.kind)
        * max(rules.confidence_floor, source.adjusted_confidence / 100)
        * max(rules.quality_floor, source.quality.overall_quality / 100)
        * max(rules.validation_floor, source.validation_score / 100)
    )
    if relevance is not None:
        weight *= relevance / 100
    return weight


def find_authoritative(
    sources: list[AdjustedSource],
    rules: SynthesisRules = DEFAULT_SYNTHESIS_RULES,
) -> AdjustedSource | None:
    """Strongest synthesis-kind source clearing the fast-path bar."""
    candidates = [
        s for s in sources
        if s.kind == rules.authoritative_kind
        and s.adjusted_confidence > rules.authoritative_min_confidence
        and s.quality.overall_quality > rules.authoritative_min_quality
    ]
    if not candidates:
        return None
    return sorted(candidates, key=lambda s: (-s.adjusted_confidence, s.source_id))[0]


def _signal_confidence(signal: HorizonSignal, source: AdjustedSource) -> int:
    if signal.confidence is None:
        return source.adjusted_confidence
    return min(signal.confidence, source.adjusted_confidence)


def synthesize(
    sources: list[AdjustedSource],
    horizon_signals: dict[str, dict[Horizon, HorizonSignal]] | None = None,
    relevance: dict[str, float] | None = None,
    subject: str | None = None,
    rules: SynthesisRules = DEFAULT_SYNTHESIS_RULES,
) -> SynthesisResult:
    """
    Combine assessed sources into one direction and confidence.

    Args:
        sources: Assessed sources (excluded ones are dropped here)
        horizon_signals: Per-source horizon stances; derived from the
            payloads when omitted
        relevance: Strategy relevance per source id (0-100). Falls back
            to each source's own relevance field.
        subject: Restrict to this subject; no sources for it is fatal
        rules: Weighting and evidence thresholds

    Returns:
        SynthesisResult

    Raises:
        InsufficientEvidenceError: No sources for the subject, or fewer
            than min_qualifying_sources active sources at or above the
            quality threshold
    """
    if subject is not None:
        subject = subject.strip().upper()
        sources = [s for s in sources if s.output.subject == subject]
        if not sources:
            raise InsufficientEvidenceError.no_sources(subject)

    active = [s for s in sources if s.adjusted_confidence > 0]
    excluded = [s.source_id for s in sources if s.adjusted_confidence == 0]

    qualifying = [s for s in active if s.quality.overall_quality >= rules.quality_threshold]
    if len(qualifying) < rules.min_qualifying_sources:
        raise InsufficientEvidenceError(
            subject=subject,
            qualifying=len(qualifying),
            required=rules.min_qualifying_sources,
        ).with_context(active=len(active), excluded=excluded)

    relevance = relevance or {}
    raw = {
        s.source_id: source_weight(s, rules, relevance.get(s.source_id, s.relevance))
        for s in active
    }
    total = sum(raw.values())
    if total <= 0:
        raise InsufficientEvidenceError(
            subject=subject,
            qualifying=0,
            required=rules.min_qualifying_sources,
            reason="Every active source has zero weight under the selected strategy",
        )
    weights = {sid: w / total * 100 for sid, w in raw.items()}

    authoritative = find_authoritative(active, rules)
    if authoritative is not None:
        confidence = authoritative.adjusted_confidence
    else:
        confidence = round_half_up(
            sum(weights[s.source_id] * s.adjusted_confidence for s in active) / 100
        )

    signals = dict(horizon_signals or {})
    for s in active:
        if s.source_id not in signals:
            signals[s.source_id] = extract_horizon_signals(s, rules.stance_precedence)

    horizon_scores: dict[Horizon, float] = {}
    horizon_confidences: dict[Horizon, int] = {}
    horizon_directions: dict[Horizon, HorizonDirection] = {}
    for horizon in Horizon:
        vote = 0.0
        conf_sum = 0.0
        for s in active:
            signal = signals[s.source_id].get(horizon, HorizonSignal())
            conf = _signal_confidence(signal, s)
            vote += _STANCE_VALUE[signal.direction] * weights[s.source_id] * conf / 100
            conf_sum += weights[s.source_id] * conf
        score = vote / 100
        horizon_scores[horizon] = round(score, 6)
        horizon_confidences[horizon] = round_half_up(conf_sum / 100)
        horizon_directions[horizon] = classify(score, rules.direction_threshold)

    hw_total = sum(rules.horizon_weights.values())
    overall = sum(
        _HORIZON_VALUE[horizon_directions[h]] * w * horizon_confidences[h] / 100
        for h, w in rules.horizon_weights.items()
    ) / hw_total

    return SynthesisResult(
        direction=classify(overall, rules.direction_threshold),
        confidence=confidence,
        score=round(overall, 6),
        horizon_directions=horizon_directions,
        horizon_scores=horizon_scores,
        horizon_confidences=horizon_confidences,
        weights={sid: round(w, 6) for sid, w in weights.items()},
        authoritative_source=authoritative.source_id if authoritative else None,
        contributing=[s.source_id for s in active],
        excluded=excluded,
    )
