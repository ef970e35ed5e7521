from .pipeline import (
    SourceStatus,
    SourceResult,
    PipelineStatus,
    PipelineResult,
    SynthesisPipeline,
    decide,
    synthesize_batch,
)

__all__ = [
    "SourceStatus",
    "SourceResult",
    "PipelineStatus",
    "PipelineResult",
    "SynthesisPipeline",
    "decide",
    "synthesize_batch",
]
