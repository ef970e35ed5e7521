"""
Directional signal extraction from heterogeneous payloads.

Each source kind shapes its payload differently. A small set of generic
fields (trend, prediction, sentiment, consensus) is read through one
precedence list; kind-specific fields act as fallbacks. Payloads that
say nothing recognisable are neutral.
"""

from typing import Any, Callable

from .enums import Direction, Horizon, SourceKind
from .models import AdjustedSource, HorizonSignal
from .validation import get_path

# ============================================================================
# Value parsing
# ============================================================================

_BULLISH_WORDS = {"UP", "BULLISH", "BUY", "STRONG_BUY", "POSITIVE", "LONG", "BUYING"}
_BEARISH_WORDS = {"DOWN", "BEARISH", "SELL", "STRONG_SELL", "NEGATIVE", "SHORT", "SELLING"}
_NEUTRAL_WORDS = {"SIDEWAYS", "NEUTRAL", "HOLD", "FLAT", "MIXED"}

NUMERIC_DEADBAND = 0.1


def _number(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def parse_direction(value: Any) -> Direction | None:
    """
    Map a direction-like value to a stance.

    Words like UP/bullish/buy and signed numbers (deadband 0.1) are
    understood. Returns None for anything unrecognised.
    """
    if isinstance(value, str):
        word = value.strip().upper().replace(" ", "_")
        if word in _BULLISH_WORDS:
            return Direction.BULLISH
        if word in _BEARISH_WORDS:
            return Direction.BEARISH
        if word in _NEUTRAL_WORDS:
            return Direction.NEUTRAL
        return None

    number = _number(value)
    if number is None:
        return None
    return sign_to_direction(number, NUMERIC_DEADBAND)


def sign_to_direction(value: float, deadband: float = 0.0) -> Direction:
    if value > deadband:
        return Direction.BULLISH
    if value < -deadband:
        return Direction.BEARISH
    return Direction.NEUTRAL


# ============================================================================
# Generic extractors
# ============================================================================

def _from_trend(payload: dict) -> Direction | None:
    trend = payload.get("trend")
    if isinstance(trend, dict):
        return parse_direction(trend.get("direction"))
    return parse_direction(trend)


def _from_prediction(payload: dict) -> Direction | None:
    prediction = payload.get("prediction")
    if isinstance(prediction, dict):
        found = parse_direction(prediction.get("direction"))
        if found is not None:
            return found
    elif prediction is not None:
        found = parse_direction(prediction)
        if found is not None:
            return found
    return parse_direction(payload.get("direction"))


def _from_sentiment(payload: dict) -> Direction | None:
    sentiment = payload.get("sentiment")
    if not isinstance(sentiment, dict):
        return parse_direction(sentiment)

    for key in ("overall", "score", "news_sentiment"):
        found = parse_direction(sentiment.get(key))
        if found is not None:
            return found
    return None


def _from_consensus(payload: dict) -> Direction | None:
    consensus = payload.get("consensus")
    if not isinstance(consensus, dict):
        return None

    bullish = _number(consensus.get("bullish")) or 0.0
    bearish = _number(consensus.get("bearish")) or 0.0
    if bullish + bearish <= 0:
        return None

    ratio = bullish / (bullish + bearish)
    if ratio > 0.6:
        return Direction.BULLISH
    if ratio < 0.4:
        return Direction.BEARISH
    return Direction.NEUTRAL


StanceExtractor = Callable[[dict], Direction | None]

STANCE_EXTRACTORS: dict[str, StanceExtractor] = {
    "trend": _from_trend,
    "prediction": _from_prediction,
    "sentiment": _from_sentiment,
    "consensus": _from_consensus,
}

DEFAULT_STANCE_PRECEDENCE: tuple[str, ...] = ("trend", "prediction", "sentiment", "consensus")


# ============================================================================
# Kind-specific fallbacks
# ============================================================================

def _flow_section(payload: dict) -> dict:
    section = payload.get("institutional_flows")
    return section if isinstance(section, dict) else payload


def order_book(payload: dict) -> dict | None:
    """Order book dict, unwrapping one level of nesting if present."""
    book = payload.get("order_book")
    if not isinstance(book, dict):
        return None
    inner = book.get("order_book")
    return inner if isinstance(inner, dict) else book


def _depth_size(levels: Any) -> float | None:
    if isinstance(levels, list):
        total = 0.0
        for level in levels:
            size = _number(level.get("size")) if isinstance(level, dict) else _number(level)
            total += size or 0.0
        return total
    return _number(levels)


def book_imbalance(payload: dict) -> float | None:
    """(bid - ask) / (bid + ask) over the order book depth."""
    book = order_book(payload)
    if book is None:
        return None
    bid = _depth_size(book.get("bid_depth"))
    ask = _depth_size(book.get("ask_depth"))
    if bid is None or ask is None or bid + ask <= 0:
        return None
    return (bid - ask) / (bid + ask)


def _flow_day(payload: dict) -> Direction | None:
    flows = _flow_section(payload)
    net_flow = _number(get_path(flows, "etf_flows", "net_flow"))
    if net_flow is not None:
        return sign_to_direction(net_flow)
    price_change = _number(get_path(flows, "volume_analysis", "price_change"))
    if price_change is not None:
        return sign_to_direction(price_change)
    return None


def _flow_week(payload: dict) -> Direction | None:
    flows = _flow_section(payload)
    activity = flows.get("institutional_activity")
    if isinstance(activity, str):
        return parse_direction(activity) or Direction.NEUTRAL
    ratio = _number(get_path(flows, "options_flow", "put_call_ratio"))
    if ratio is not None:
        # put/call above 1 is defensive positioning
        return sign_to_direction(1.0 - ratio)
    return None


def _microstructure_day(payload: dict) -> Direction | None:
    imbalance = book_imbalance(payload)
    if imbalance is None:
        return None
    return sign_to_direction(imbalance, NUMERIC_DEADBAND)


def _onchain_day(payload: dict) -> Direction | None:
    change = _number(get_path(payload, "network_metrics", "price_change_24h"))
    if change is not None:
        return sign_to_direction(change)
    # coins moving onto exchanges are sell pressure
    net_flow = _number(get_path(payload, "whale_activity", "exchange_flows", "net_flow"))
    if net_flow is not None:
        return sign_to_direction(-net_flow)
    return None


KIND_FALLBACKS: dict[SourceKind, tuple[StanceExtractor, ...]] = {
    SourceKind.FLOW: (_flow_day, _flow_week),
    SourceKind.MICROSTRUCTURE: (_microstructure_day,),
    SourceKind.ONCHAIN: (_onchain_day,),
}


def extract_stance(
    payload: dict,
    kind: SourceKind,
    precedence: tuple[str, ...] = DEFAULT_STANCE_PRECEDENCE,
) -> Direction:
    """
    Coarse stance of one payload.

    The first extractor in precedence order that recognises a value
    wins, an explicit neutral included. Unknown kinds and silent
    payloads are neutral.
    """
    if kind == SourceKind.UNKNOWN:
        return Direction.NEUTRAL

    for name in precedence:
        extractor = STANCE_EXTRACTORS.get(name)
        if extractor is None:
            continue
        found = extractor(payload)
        if found is not None:
            return found

    for extractor in KIND_FALLBACKS.get(kind, ()):
        found = extractor(payload)
        if found is not None:
            return found

    return Direction.NEUTRAL


# ============================================================================
# Horizon signals
# ============================================================================

_ML_TERMS = {
    Horizon.ONE_DAY: "short_term",
    Horizon.ONE_WEEK: "medium_term",
    Horizon.ONE_MONTH: "long_term",
}


def _explicit_horizons(payload: dict) -> dict[Horizon, HorizonSignal]:
    horizons = payload.get("horizons")
    if not isinstance(horizons, dict):
        return {}

    found: dict[Horizon, HorizonSignal] = {}
    for horizon in Horizon:
        entry = horizons.get(horizon.value)
        if isinstance(entry, dict):
            direction = parse_direction(entry.get("direction"))
            confidence = _number(entry.get("confidence"))
        else:
            direction, confidence = parse_direction(entry), None
        if direction is not None:
            found[horizon] = HorizonSignal(
                direction=direction,
                confidence=int(max(0, min(100, confidence))) if confidence is not None else None,
            )
    return found


def _kind_horizons(payload: dict, kind: SourceKind) -> dict[Horizon, HorizonSignal]:
    found: dict[Horizon, HorizonSignal] = {}

    if kind == SourceKind.ML:
        for horizon, term in _ML_TERMS.items():
            signal = get_path(payload, "predictive_signals", term)
            if not isinstance(signal, dict):
                continue
            direction = parse_direction(signal.get("direction"))
            if direction is None:
                continue
            confidence = _number(signal.get("confidence"))
            found[horizon] = HorizonSignal(
                direction=direction,
                confidence=int(max(0, min(100, confidence))) if confidence is not None else None,
            )

    elif kind == SourceKind.FLOW:
        day, week = _flow_day(payload), _flow_week(payload)
        if day is not None:
            found[Horizon.ONE_DAY] = HorizonSignal(direction=day)
        if week is not None:
            found[Horizon.ONE_WEEK] = HorizonSignal(direction=week)

    elif kind == SourceKind.MICROSTRUCTURE:
        day = _microstructure_day(payload)
        if day is not None:
            found[Horizon.ONE_DAY] = HorizonSignal(direction=day)

    elif kind == SourceKind.ONCHAIN:
        day = _onchain_day(payload)
        if day is not None:
            found[Horizon.ONE_DAY] = HorizonSignal(direction=day)

    elif kind == SourceKind.SENTIMENT:
        rating = parse_direction(get_path(payload, "sentiment", "analyst_rating"))
        if rating is not None:
            found[Horizon.ONE_MONTH] = HorizonSignal(direction=rating)

    return found


def extract_horizon_signals(
    source: AdjustedSource,
    precedence: tuple[str, ...] = DEFAULT_STANCE_PRECEDENCE,
) -> dict[Horizon, HorizonSignal]:
    """
    Per-horizon stance for one source.

    An explicit `horizons` block wins, then kind-specific fields, then
    the coarse stance for every horizon left uncovered.
    """
    payload = source.output.payload
    if source.kind == SourceKind.UNKNOWN:
        return {h: HorizonSignal() for h in Horizon}

    stance = extract_stance(payload, source.kind, precedence)
    signals = {h: HorizonSignal(direction=stance) for h in Horizon}
    signals.update(_kind_horizons(payload, source.kind))
    signals.update(_explicit_horizons(payload))
    return signals
