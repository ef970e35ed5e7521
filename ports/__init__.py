from .sources import (
    SignalSource,
    SourceCache,
    SourceError,
    SourceTimeoutError,
    SourceUnavailableError,
    MalformedSourceError,
)

__all__ = [
    "SignalSource",
    "SourceCache",
    "SourceError",
    "SourceTimeoutError",
    "SourceUnavailableError",
    "MalformedSourceError",
]
