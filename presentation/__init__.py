from .json_api import (
    DecisionResponse,
    ErrorResponse,
    ErrorDetail,
    PipelineStatusResponse,
    SourceStatusResponse,
    to_api_response,
    error_response,
    to_json,
    from_json,
    dumps,
)

__all__ = [
    "DecisionResponse",
    "ErrorResponse",
    "ErrorDetail",
    "PipelineStatusResponse",
    "SourceStatusResponse",
    "to_api_response",
    "error_response",
    "to_json",
    "from_json",
    "dumps",
]
