from typing import List, Optional

import requests

from .errors import ModelServiceError
from .logger import get_logger, StructuredLogger
from .retry import CircuitBreaker

EMBEDDINGS_PATH = "/api/embeddings"
GENERATE_PATH = "/api/generate"
DEFAULT_MAX_TOKENS = 2048


class HostedModelClient:
    """
    Client for a hosted inference service exposing embedding and text
    generation endpoints (Ollama-compatible JSON API).

    Transport errors and malformed responses raise ModelServiceError.
    Calls pass through a circuit breaker; once open, calls fail fast
    with CircuitOpenError until the recovery timeout elapses.
    """

    def __init__(
        self,
        base_url: str,
        embed_model: str,
        generate_model: str,
        api_key: Optional[str] = None,
        timeout: float = 30.0,
        http: Optional[requests.Session] = None,
        breaker: Optional[CircuitBreaker] = None,
        logger: Optional[StructuredLogger] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.embed_model = embed_model
        self.generate_model = generate_model
        self.api_key = api_key
        self.timeout = timeout
        self.http = http or requests.Session()
        self.breaker = breaker or CircuitBreaker(
            failure_threshold=3, recovery_timeout=60, expected_exception=ModelServiceError
        )
        self.logger = logger or get_logger()

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _post(self, path: str, payload: dict) -> dict:
        self.logger.record_model_call()
        url = f"{self.base_url}{path}"
        try:
            resp = self.http.post(url, json=payload, headers=self._headers(), timeout=self.timeout)
            resp.raise_for_status()
            return resp.json()
        except requests.exceptions.Timeout:
            raise ModelServiceError(f"Model service timed out after {self.timeout}s: {path}")
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else "HTTPError"
            raise ModelServiceError(f"Model service request failed ({status}): {path}")
        except requests.exceptions.RequestException as e:
            raise ModelServiceError(f"Model service request error: {e}")
        except ValueError as e:
            raise ModelServiceError(f"Model service returned invalid JSON: {e}")

    def embed(self, text: str) -> List[float]:
        """Return the embedding vector for text."""
        def _call():
            data = self._post(EMBEDDINGS_PATH, {"model": self.embed_model, "prompt": text})
            vector = data.get("embedding") if isinstance(data, dict) else None
            if not isinstance(vector, list) or not vector:
                raise ModelServiceError("No embedding returned from model service")
            return [float(v) for v in vector]

        return self.breaker.call(_call)

    def generate(self, prompt: str, max_tokens: int = DEFAULT_MAX_TOKENS) -> str:
        """Return the generated completion text for prompt."""
        def _call():
            data = self._post(GENERATE_PATH, {
                "model": self.generate_model,
                "prompt": prompt,
                "stream": False,
                "options": {"num_predict": max_tokens},
            })
            text = data.get("response") if isinstance(data, dict) else None
            if not isinstance(text, str):
                raise ModelServiceError("No completion text returned from model service")
            return text

        return self.breaker.call(_call)
