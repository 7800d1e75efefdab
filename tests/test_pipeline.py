"""
Tests for scrape orchestration end to end with fake network collaborators.
"""

import math
from datetime import timedelta

import pytest

from cydex.clock import utcnow
from cydex.database import Entity
from cydex.errors import FetchError, SourceNotFoundError
from cydex.extractors.model import ModelExtractor
from cydex.extractors.pattern import PatternExtractor
from cydex.fetcher import ContentFetcher
from cydex.logger import get_logger
from cydex.orchestrator import ScrapeOrchestrator, min_fetch_interval
from cydex.rate_limit import RateLimiter
from pipelines.entity_resolution.embedding import Embedder
from pipelines.entity_resolution.indexing import IndexWriter
from pipelines.entity_resolution.resolver import SimilarityResolver
from pipelines.merging.merge_resolver import MergeResolver
from storage.cache import MemoryCache
from storage.repositories.changes import ChangeRepository
from storage.repositories.entities import EntityRepository
from storage.repositories.sources import SourceRepository
from storage.vector_index import InMemoryVectorIndex

from conftest import EMBED_DIM, FakeHttp, FakeModelClient, FakeResponse

PAGE_URL = "https://www.cisa.gov/about/regions"
FBI_URL = "https://www.fbi.gov/contact-us/field-offices"


class FailingResolver:
    """Delegates to a real resolver but raises for one office."""

    def __init__(self, inner, office_name):
        self.inner = inner
        self.office_name = office_name

    def resolve(self, entity, threshold=None):
        if entity.office_name == self.office_name:
            raise RuntimeError("resolver exploded")
        return self.inner.resolve(entity, threshold)


class Pipeline:
    """Orchestrator wired to in-memory collaborators."""

    def __init__(self, session, http, client, clock, source_delay=0.0):
        self.client = client
        self.clock = clock
        self.index = InMemoryVectorIndex()
        self.embedder = Embedder(client, dimension=EMBED_DIM)
        self.sleeps = []
        self.resolver = SimilarityResolver(self.embedder, self.index)
        fetcher = ContentFetcher(
            rate_limiter=RateLimiter(MemoryCache(), clock=clock),
            http=http,
            max_retries=0,
            sleep=lambda s: None,
        )
        self.orchestrator = ScrapeOrchestrator(
            session=session,
            fetcher=fetcher,
            model_extractor=ModelExtractor(client),
            pattern_extractor=PatternExtractor(),
            resolver=self.resolver,
            merger=MergeResolver(EntityRepository(session), ChangeRepository(session)),
            index_writer=IndexWriter(self.index, self.embedder),
            source_delay=source_delay,
            sleep=self.sleeps.append,
        )


@pytest.fixture
def page_http(offices_html):
    return FakeHttp({PAGE_URL: FakeResponse(200, offices_html)})


@pytest.fixture
def pipeline(db_session, stored_source, page_http, three_offices_reply, fake_clock):
    return Pipeline(db_session, page_http, FakeModelClient(reply=three_offices_reply), fake_clock)


def age_last_fetch(session, source_id, minutes=5):
    repo = SourceRepository(session)
    source = repo.get(source_id)
    source.last_fetch = utcnow() - timedelta(minutes=minutes)
    session.commit()


def index_values(index, entity_id):
    for match in index.query([0.0] * EMBED_DIM, top_k=len(index), return_values=True):
        if match["id"] == entity_id:
            return match["values"]
    return None


class TestMinFetchInterval:
    def test_one_rps_is_one_minute(self):
        assert min_fetch_interval(1) == timedelta(minutes=1)

    def test_two_rps_is_thirty_seconds(self):
        assert min_fetch_interval(2) == timedelta(seconds=30)


class TestScrapeSource:
    """Test a single source cycle."""

    def test_first_scrape_creates_entities(self, pipeline, db_session):
        result = pipeline.orchestrator.scrape_source("cisa-regions")

        assert result["source_id"] == "cisa-regions"
        assert result["entities_extracted"] == 3
        assert result["entities_created"] == 3
        assert result["entities_updated"] == 0
        assert result["entities_skipped"] == 0
        assert result["entities_failed"] == 0
        assert result["confidence"] == 0.8
        assert result["method"] == "model"
        assert "timestamp" in result

        entities = EntityRepository(db_session)
        assert [e.id for e in entities.list_all()] == [
            "cisa-cisa-region-1", "cisa-cisa-region-3", "cisa-cisa-region-9"
        ]
        stored = entities.get("cisa-cisa-region-1")
        assert stored.role_type == "regional"
        assert stored.priority == 1
        assert stored.source_url == PAGE_URL
        assert len(pipeline.index) == 3
        assert "cisa-cisa-region-9" in pipeline.index

        changes = ChangeRepository(db_session).for_entity("cisa-cisa-region-3")
        assert [c.change_type for c in changes] == ["scraped"]

        source = SourceRepository(db_session).get("cisa-regions")
        assert source.last_status == 200
        assert source.last_hash is not None
        assert source.last_fetch is not None

        assert get_logger().get_metrics()["entities"]["created"] == 3

    def test_immediate_rerun_is_rate_limited(self, pipeline):
        pipeline.orchestrator.scrape_source("cisa-regions")

        result = pipeline.orchestrator.scrape_source("cisa-regions")

        assert result["skipped"] is True
        assert result["reason"] == "Rate limited"
        assert result["next_allowed"]

    def test_forced_rerun_skips_known_entities(self, pipeline, db_session):
        pipeline.orchestrator.scrape_source("cisa-regions")
        pipeline.clock.advance(1000)

        result = pipeline.orchestrator.scrape_source("cisa-regions", force=True)

        assert result["entities_extracted"] == 3
        assert result["entities_skipped"] == 3
        assert result["entities_created"] == 0
        assert EntityRepository(db_session).count() == 3

    def test_unchanged_content_short_circuits(self, pipeline, db_session):
        pipeline.orchestrator.scrape_source("cisa-regions")
        prompts_after_first = len(pipeline.client.prompts)
        age_last_fetch(db_session, "cisa-regions")
        pipeline.clock.advance(1000)

        result = pipeline.orchestrator.scrape_source("cisa-regions")

        assert result["unchanged"] is True
        assert result["entities_extracted"] == 0
        assert len(pipeline.client.prompts) == prompts_after_first
        source = SourceRepository(db_session).get("cisa-regions")
        assert source.last_fetch > utcnow() - timedelta(minutes=1)

    def test_merge_fills_gap_and_reindexes(self, db_session, stored_source, page_http, fake_clock):
        reply = ('[{"office_name": "CISA Region 3", "address": "123 Main Street", "city": "Philadelphia",'
                 ' "state": "PA", "phone": "(215) 555-0103"}]')
        client = FakeModelClient(reply=reply)
        client.pinned["CISA Region 3 CISA 123 Main Street Philadelphia PA"] = [1.0] + [0.0] * (EMBED_DIM - 1)
        pipe = Pipeline(db_session, page_http, client, fake_clock)

        EntityRepository(db_session).upsert(Entity(
            id="cisa-region-3", agency="CISA", office_name="Region 3", role_type="regional",
            city="Pittsburgh", sectors=[], functions=[], priority=1,
        ))
        pipe.index.upsert([{
            "id": "cisa-region-3",
            "values": [0.9, math.sqrt(1 - 0.81)] + [0.0] * (EMBED_DIM - 2),
            "metadata": {"agency": "CISA", "office_name": "Region 3", "city": "Pittsburgh"},
        }])

        result = pipe.orchestrator.scrape_source("cisa-regions")

        assert result["entities_updated"] == 1
        assert result["entities_created"] == 0
        merged = EntityRepository(db_session).get("cisa-region-3")
        assert merged.phone == "(215) 555-0103"
        assert merged.city == "Pittsburgh"
        assert [c.change_type for c in ChangeRepository(db_session).for_entity("cisa-region-3")] == ["merged"]
        refreshed = pipe.index.query([0.0] * EMBED_DIM, top_k=5, return_metadata=True)
        assert refreshed[0]["metadata"]["phone"] == "(215) 555-0103"

    def test_known_id_without_embedding_is_merged(self, pipeline, db_session):
        pipeline.orchestrator.scrape_source("cisa-regions")
        before = index_values(pipeline.index, "cisa-cisa-region-3")
        pipeline.client.embed_error = RuntimeError("embedding service down")
        pipeline.client.reply = '[{"office_name": "CISA Region 3", "email": "region3@cisa.dhs.gov"}]'
        pipeline.clock.advance(1000)

        result = pipeline.orchestrator.scrape_source("cisa-regions", force=True)

        assert result["entities_created"] == 0
        assert result["entities_updated"] == 1
        stored = EntityRepository(db_session).get("cisa-cisa-region-3")
        assert stored.phone == "(215) 555-0103"
        assert stored.address == "123 Main Street"
        assert stored.city == "Philadelphia"
        assert stored.email == "region3@cisa.dhs.gov"
        changes = ChangeRepository(db_session).for_entity("cisa-cisa-region-3")
        assert [c.change_type for c in changes] == ["scraped", "merged"]
        assert EntityRepository(db_session).count() == 3
        assert index_values(pipeline.index, "cisa-cisa-region-3") == before
        assert any(before)

    def test_later_entity_sees_earlier_create(self, db_session, stored_source, page_http, fake_clock):
        office = ('{"office_name": "CISA Region 3", "address": "123 Main Street",'
                  ' "city": "Philadelphia", "state": "PA"}')
        pipe = Pipeline(db_session, page_http, FakeModelClient(reply=f"[{office}, {office}]"), fake_clock)

        result = pipe.orchestrator.scrape_source("cisa-regions")

        assert result["entities_extracted"] == 2
        assert result["entities_created"] == 1
        assert result["entities_skipped"] == 1
        assert EntityRepository(db_session).count() == 1
        assert len(pipe.index) == 1

    def test_entity_failure_does_not_stop_batch(self, pipeline, db_session):
        pipeline.orchestrator.resolver = FailingResolver(pipeline.resolver, "CISA Region 3")

        result = pipeline.orchestrator.scrape_source("cisa-regions")

        assert result["entities_created"] == 2
        assert result["entities_failed"] == 1
        assert result["errors"] == [{"entity_id": "cisa-cisa-region-3", "error": "resolver exploded"}]
        assert EntityRepository(db_session).get("cisa-cisa-region-3") is None
        assert SourceRepository(db_session).get("cisa-regions").last_status == 200

    def test_selector_source_uses_pattern_extraction(self, db_session, source_data, page_http, fake_clock):
        SourceRepository(db_session).upsert({**source_data, "selector": ".office"})
        pipe = Pipeline(db_session, page_http, FakeModelClient(), fake_clock)

        result = pipe.orchestrator.scrape_source("cisa-regions")

        assert result["method"] == "pattern"
        assert result["confidence"] == 0.6
        assert result["entities_created"] == 3
        assert pipe.client.prompts == []
        assert EntityRepository(db_session).get("cisa-region-1-office").phone == "(617) 555-0101"

    def test_empty_extraction_reports_errors(self, db_session, stored_source, page_http, fake_clock):
        pipe = Pipeline(db_session, page_http, FakeModelClient(reply="nothing useful"), fake_clock)

        result = pipe.orchestrator.scrape_source("cisa-regions")

        assert result["entities_extracted"] == 0
        assert result["confidence"] == 0.1
        assert result["extraction_errors"]

    def test_unknown_source(self, pipeline):
        with pytest.raises(SourceNotFoundError):
            pipeline.orchestrator.scrape_source("nope")

    def test_disabled_source(self, pipeline, db_session, source_data):
        SourceRepository(db_session).upsert({**source_data, "enabled": False})

        with pytest.raises(SourceNotFoundError):
            pipeline.orchestrator.scrape_source("cisa-regions")

    def test_fetch_failure_raises(self, db_session, stored_source, fake_clock):
        http = FakeHttp({PAGE_URL: FakeResponse(500, "error")})
        pipe = Pipeline(db_session, http, FakeModelClient(), fake_clock)

        with pytest.raises(FetchError):
            pipe.orchestrator.scrape_source("cisa-regions")


class TestScrapeAllSources:
    """Test the sequential batch run."""

    def test_failures_recorded_and_batch_continues(
        self, db_session, source_data, offices_html, three_offices_reply, fake_clock
    ):
        repo = SourceRepository(db_session)
        repo.upsert(source_data)
        repo.upsert({**source_data, "id": "fbi-field", "agency": "FBI", "url": FBI_URL})
        repo.upsert({**source_data, "id": "usss-offices", "enabled": False})
        http = FakeHttp({PAGE_URL: FakeResponse(200, offices_html), FBI_URL: FakeResponse(404, "gone")})
        pipe = Pipeline(db_session, http, FakeModelClient(reply=three_offices_reply), fake_clock, source_delay=2.0)

        results = pipe.orchestrator.scrape_all_sources()

        assert [r["source_id"] for r in results] == ["cisa-regions", "fbi-field"]
        assert results[0]["entities_created"] == 3
        assert "error" in results[1]
        assert "timestamp" in results[1]
        assert pipe.sleeps == [2.0]

    def test_no_delay_when_zero(self, db_session, stored_source, page_http, fake_clock):
        pipe = Pipeline(db_session, page_http, FakeModelClient(), fake_clock, source_delay=0)

        pipe.orchestrator.scrape_all_sources()

        assert pipe.sleeps == []
