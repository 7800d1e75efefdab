"""
Tests for the hosted model service client.
"""

import pytest
import requests

from cydex.errors import ModelServiceError
from cydex.logger import get_logger
from cydex.model_client import HostedModelClient
from cydex.retry import CircuitBreaker, CircuitOpenError

from conftest import FakeResponse


class FakePostHttp:
    def __init__(self, response):
        self.response = response
        self.requests = []

    def post(self, url, json=None, headers=None, timeout=None):
        self.requests.append({"url": url, "json": json, "headers": headers})
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


def make_client(response, api_key=None, breaker=None) -> HostedModelClient:
    return HostedModelClient(
        base_url="http://models.local:11434/",
        embed_model="nomic-embed-text",
        generate_model="llama3.1:8b",
        api_key=api_key,
        http=FakePostHttp(response),
        breaker=breaker,
    )


class TestEmbed:
    def test_returns_vector(self):
        client = make_client(FakeResponse(200, '{"embedding": [0.1, 0.2, 3]}'))

        assert client.embed("CISA Region 3") == [0.1, 0.2, 3.0]
        sent = client.http.requests[0]
        assert sent["url"] == "http://models.local:11434/api/embeddings"
        assert sent["json"] == {"model": "nomic-embed-text", "prompt": "CISA Region 3"}
        assert get_logger().get_metrics()["model_calls"] == 1

    def test_missing_embedding(self):
        with pytest.raises(ModelServiceError):
            make_client(FakeResponse(200, '{"other": 1}')).embed("x")

    def test_api_key_header(self):
        client = make_client(FakeResponse(200, '{"embedding": [1]}'), api_key="secret")
        client.embed("x")
        assert client.http.requests[0]["headers"]["Authorization"] == "Bearer secret"


class TestGenerate:
    def test_returns_text(self):
        client = make_client(FakeResponse(200, '{"response": "[]"}'))

        assert client.generate("Extract offices") == "[]"
        payload = client.http.requests[0]["json"]
        assert payload["model"] == "llama3.1:8b"
        assert payload["stream"] is False

    def test_http_error(self):
        with pytest.raises(ModelServiceError) as exc_info:
            make_client(FakeResponse(503, "busy")).generate("x")
        assert "503" in str(exc_info.value)

    def test_invalid_json(self):
        with pytest.raises(ModelServiceError):
            make_client(FakeResponse(200, "not json")).generate("x")

    def test_timeout(self):
        with pytest.raises(ModelServiceError):
            make_client(requests.exceptions.Timeout()).generate("x")


class TestCircuitBreaking:
    def test_open_circuit_fails_fast(self):
        breaker = CircuitBreaker(failure_threshold=2, recovery_timeout=60, expected_exception=ModelServiceError)
        client = make_client(requests.exceptions.ConnectionError("refused"), breaker=breaker)

        for _ in range(2):
            with pytest.raises(ModelServiceError):
                client.generate("x")

        with pytest.raises(CircuitOpenError):
            client.generate("x")
        assert len(client.http.requests) == 2
