"""
Pytest configuration and shared fixtures.
"""

import json

import pytest
import requests
from typing import Any, Dict, List, Optional

from cydex.database import Source, init_database, get_session
from cydex.logger import get_logger, reset_logger
from storage.repositories.sources import SourceRepository

EMBED_DIM = 16


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start: int = 1_700_000_000_000):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class FakeResponse:
    def __init__(
        self,
        status_code: int = 200,
        text: str = "",
        headers: Optional[Dict[str, str]] = None,
        content: Optional[bytes] = None,
    ):
        self.status_code = status_code
        self.text = text
        self.content = content if content is not None else text.encode("utf-8")
        self.headers = headers or {"content-type": "text/html; charset=utf-8"}

    def json(self):
        return json.loads(self.text)

    def raise_for_status(self):
        if not 200 <= self.status_code < 300:
            raise requests.exceptions.HTTPError(f"HTTP {self.status_code}", response=self)


class FakeHttp:
    """Stands in for requests.Session; routes by exact URL."""

    def __init__(self, routes: Optional[Dict[str, Any]] = None):
        self.routes = dict(routes or {})
        self.calls: List[str] = []
        self.headers_seen: List[Dict[str, str]] = []

    def get(self, url, headers=None, timeout=None):
        self.calls.append(url)
        self.headers_seen.append(headers or {})
        route = self.routes.get(url)
        if route is None:
            return FakeResponse(404, "not found")
        if isinstance(route, Exception):
            raise route
        if isinstance(route, list):
            item = route.pop(0) if len(route) > 1 else route[0]
            if isinstance(item, Exception):
                raise item
            return item
        return route


class FakeModelClient:
    """
    Embeds each distinct text as its own unit vector, so different texts
    score 0.0 and identical texts score 1.0. Specific vectors can be pinned.
    """

    def __init__(self, reply: str = "[]", dim: int = EMBED_DIM):
        self.reply = reply
        self.dim = dim
        self.pinned: Dict[str, List[float]] = {}
        self.slots: Dict[str, int] = {}
        self.embed_error: Optional[Exception] = None
        self.generate_error: Optional[Exception] = None
        self.prompts: List[str] = []
        self.embedded: List[str] = []

    def embed(self, text: str) -> List[float]:
        self.embedded.append(text)
        if self.embed_error:
            raise self.embed_error
        if text in self.pinned:
            return list(self.pinned[text])
        slot = self.slots.setdefault(text, len(self.slots) % self.dim)
        vector = [0.0] * self.dim
        vector[slot] = 1.0
        return vector

    def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.generate_error:
            raise self.generate_error
        return self.reply


class StubIndex:
    """Vector index returning canned matches."""

    def __init__(self, matches=None, error: Optional[Exception] = None):
        self.matches = matches or []
        self.error = error
        self.queries = []

    def query(self, vector, top_k=10, return_values=False, return_metadata=False):
        self.queries.append({"top_k": top_k, "return_values": return_values, "return_metadata": return_metadata})
        if self.error:
            raise self.error
        return [dict(m) for m in self.matches]


@pytest.fixture(autouse=True)
def quiet_logger(tmp_path):
    """Route the global logger to a temp directory without console output."""
    reset_logger()
    logger = get_logger(log_dir=tmp_path / "logs", enable_console=False)
    yield logger
    reset_logger()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_model() -> FakeModelClient:
    return FakeModelClient()


@pytest.fixture
def db_path(tmp_path):
    path = tmp_path / "cydex.db"
    init_database(path)
    return path


@pytest.fixture
def db_session(db_path):
    session = get_session(db_path)
    yield session
    session.close()


@pytest.fixture
def source_data() -> Dict[str, Any]:
    return {
        "id": "cisa-regions",
        "agency": "CISA",
        "url": "https://www.cisa.gov/about/regions",
        "parse_type": "html",
        "territory": "national",
        "rate_limit_rps": 1,
        "enabled": True,
    }


@pytest.fixture
def stored_source(db_session, source_data) -> Source:
    repo = SourceRepository(db_session)
    repo.upsert(source_data)
    return repo.get(source_data["id"])


@pytest.fixture
def offices_html() -> str:
    """Regional office listing with three offices."""
    return """
    <html>
    <head><title>CISA Regions</title></head>
    <body>
      <div class="office">
        <h3>Region 1 Office</h3>
        <p>10 Causeway Street</p>
        <p>(617) 555-0101</p>
      </div>
      <div class="office">
        <h3>Region 3 Office</h3>
        <p>123 Main Street</p>
        <p>(215) 555-0103</p>
      </div>
      <div class="office">
        <h3>Region 9 Office</h3>
        <p>90 Seventh Street</p>
        <p>(415) 555-0109</p>
      </div>
    </body>
    </html>
    """


@pytest.fixture
def three_offices_reply() -> str:
    """Model reply with a JSON array wrapped in prose."""
    return """Here are the offices I found:
    [
      {"office_name": "CISA Region 1", "role_type": "regional", "address": "10 Causeway Street",
       "city": "Boston", "state": "MA", "phone": "(617) 555-0101", "functions": ["assessments"]},
      {"office_name": "CISA Region 3", "role_type": "regional", "address": "123 Main Street",
       "city": "Philadelphia", "state": "PA", "phone": "(215) 555-0103"},
      {"office_name": "CISA Region 9", "role_type": "regional", "address": "90 Seventh Street",
       "city": "San Francisco", "state": "CA"}
    ]
    Let me know if you need anything else."""
