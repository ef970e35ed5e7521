"""
Tests for JSON API responses.
"""

import json

import pytest

from config import SynthConfig
from domain import InsufficientEvidenceError, MissingMarketDataError
from orchestration import synthesize_batch
from presentation import (
    DecisionResponse,
    ErrorResponse,
    dumps,
    error_response,
    from_json,
    to_api_response,
    to_json,
)

from tests.conftest import NOW
from tests.test_pipeline import fundamental_record, sentiment_record, technical_record


@pytest.fixture
def result():
    records = [technical_record(), sentiment_record(), fundamental_record()]
    return synthesize_batch(records, now=NOW, config=SynthConfig())


class TestDecisionJson:
    def test_roundtrip_dict(self, result):
        data = to_json(result.decision)

        assert data["subject"] == "BTC"
        assert data["direction"] == "BULLISH"
        assert from_json(data) == result.decision

    def test_roundtrip_text(self, result):
        text = json.dumps(to_json(result.decision))
        assert from_json(text) == result.decision


class TestApiResponse:
    def test_decision_response(self, result):
        response = to_api_response(result)

        assert isinstance(response, DecisionResponse)
        assert response.status == "ok"
        assert response.pipeline.subject == "BTC"
        assert response.pipeline.healthy
        assert {s.source_id for s in response.pipeline.sources} == {
            "technical-1", "sentiment-1", "fundamental-1",
        }
        assert all(s.status == "ok" for s in response.pipeline.sources)

    def test_malformed_record_reported(self):
        records = [technical_record(), sentiment_record(), fundamental_record(), {"source_id": "ml-1"}]
        response = to_api_response(synthesize_batch(records, now=NOW, config=SynthConfig()))

        [malformed] = [s for s in response.pipeline.sources if s.source_id == "ml-1"]
        assert malformed.status == "malformed"
        assert malformed.error_code == "E103"

    def test_dumps(self, result):
        data = json.loads(dumps(to_api_response(result)))

        assert data["status"] == "ok"
        assert data["decision"]["entry_price"] == 50000.0


class TestErrorResponse:
    def test_insufficient_evidence(self):
        response = error_response(InsufficientEvidenceError("BTC", qualifying=1, required=3))

        assert isinstance(response, ErrorResponse)
        assert response.status == "error"
        assert response.error.error == "InsufficientEvidenceError"
        assert response.error.code == "E301"
        assert response.error.subject == "BTC"
        assert response.error.fatal
        assert response.error.context == {"qualifying": 1, "required": 3}

    def test_missing_market_data(self):
        response = error_response(MissingMarketDataError("BTC", checked=["technical-1"]))

        assert response.error.code == "E401"
        assert response.error.fatal

    def test_unexpected_exception(self):
        response = error_response(RuntimeError("boom"))

        assert response.error.error == "RuntimeError"
        assert response.error.code == "E901"
        assert response.error.message == "boom"
        assert response.error.fatal

    def test_serializable(self):
        data = json.loads(dumps(error_response(InsufficientEvidenceError("BTC", 0, 3))))
        assert data["error"]["code"] == "E301"
