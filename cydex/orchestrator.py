"""
Scrape orchestration.

One source cycle runs fetch -> extract -> resolve each entity -> persist,
merge or skip -> index update -> source bookkeeping. Entities of a source
are processed strictly in extraction order so every resolution sees the
index entries created before it in the same batch.
"""

import time
from datetime import timedelta
from typing import Any, Callable, Dict, List, Optional

from .clock import utcnow
from .errors import FetchError, SourceNotFoundError
from .logger import get_logger, StructuredLogger
from .models import PartialEntity
from .schema import finalize_entity, normalize_parse_type

from storage.repositories.changes import ChangeRepository
from storage.repositories.entities import EntityRepository
from storage.repositories.sources import SourceRepository

MS_PER_MINUTE = 60_000


def min_fetch_interval(rate_limit_rps: float) -> timedelta:
    """Source-level throttle: one fetch per (1 / rps) minutes."""
    return timedelta(milliseconds=(1 / rate_limit_rps) * MS_PER_MINUTE)


class ScrapeOrchestrator:
    def __init__(
        self,
        session,
        fetcher,
        model_extractor,
        pattern_extractor,
        resolver,
        merger,
        index_writer,
        source_delay: float = 2.0,
        sleep: Callable[[float], None] = time.sleep,
        now: Callable = utcnow,
        logger: Optional[StructuredLogger] = None,
    ):
        self.session = session
        self.sources = SourceRepository(session)
        self.entities = EntityRepository(session)
        self.changes = ChangeRepository(session)
        self.fetcher = fetcher
        self.model_extractor = model_extractor
        self.pattern_extractor = pattern_extractor
        self.resolver = resolver
        self.merger = merger
        self.index_writer = index_writer
        self.source_delay = source_delay
        self.sleep = sleep
        self.now = now
        self.logger = logger or get_logger()

    def choose_extractor(self, source):
        """Pattern extraction for structured-text sources with a selector hint, else the model."""
        if normalize_parse_type(source.parse_type) == "html" and source.selector:
            return self.pattern_extractor
        return self.model_extractor

    def scrape_source(self, source_id: str, force: bool = False) -> Dict[str, Any]:
        """
        Run one scrape cycle for a source.

        Returns:
            Result summary, or a {"skipped": True, ...} record when the
            source was fetched too recently.

        Raises:
            SourceNotFoundError: Unknown or disabled source
            FetchError: The fetcher produced no content
        """
        source = self.sources.get_enabled(source_id)
        if source is None:
            raise SourceNotFoundError(f"Source {source_id} not found or disabled")

        now = self.now()
        if not force and source.last_fetch is not None:
            next_allowed = source.last_fetch + min_fetch_interval(source.rate_limit_rps)
            if now < next_allowed:
                self.logger.info("Source fetched recently, skipping", source_id=source_id)
                return {
                    "source_id": source_id,
                    "skipped": True,
                    "reason": "Rate limited",
                    "next_allowed": next_allowed.isoformat(),
                }

        scraped = self.fetcher.fetch(source)
        if scraped is None:
            raise FetchError(f"Failed to fetch content for source {source_id}")

        if not force and source.last_hash == scraped.hash:
            self.sources.record_fetch(source_id, scraped.status_code, scraped.hash, scraped.timestamp)
            self.logger.info("Content unchanged since last fetch", source_id=source_id, hash=scraped.hash)
            return self._summary(source_id, extracted=0, confidence=None, method=None, unchanged=True)

        extraction = self.choose_extractor(source).extract(scraped.content, source)
        counts = {"created": 0, "merged": 0, "skipped": 0, "failed": 0}
        errors: List[Dict[str, str]] = []

        for partial in extraction.entities:
            try:
                outcome = self._process_entity(partial)
            except Exception as e:
                self.session.rollback()
                outcome = "failed"
                errors.append({"entity_id": partial.id, "error": str(e)})
                self.logger.error("Failed to process entity", entity_id=partial.id, error=str(e))
            counts[outcome] += 1
            self.logger.record_entity_outcome(outcome)

        # Bookkeeping reflects the attempt regardless of per-entity outcomes
        self.sources.record_fetch(source_id, scraped.status_code, scraped.hash, scraped.timestamp)

        result = self._summary(
            source_id,
            extracted=len(extraction.entities),
            confidence=extraction.confidence,
            method=extraction.method,
            counts=counts,
        )
        if errors:
            result["errors"] = errors
        if extraction.errors:
            result["extraction_errors"] = list(extraction.errors)

        self.logger.info("Source scrape complete", **{k: v for k, v in result.items() if k != "errors"})
        return result

    def _process_entity(self, partial: PartialEntity) -> str:
        decision = self.resolver.resolve(partial)

        if decision.action == "skip":
            return "skipped"

        if decision.action == "merge":
            return self._merge_into(partial, decision.matched_id)

        # Ids are deterministic, so a stored id is a re-observation of that office
        if self.entities.get(partial.id) is not None:
            return self._merge_into(partial, partial.id)

        entity = finalize_entity(partial)
        stored = self.entities.upsert(entity)
        self.changes.append(stored.id, "scraped", source_url=stored.source_url)
        self.index_writer.add(stored, vector=decision.embedding)
        return "created"

    def _merge_into(self, partial: PartialEntity, entity_id: str) -> str:
        adopted = self.merger.merge(partial, entity_id)
        if adopted:
            merged = self.entities.get(entity_id)
            if merged is not None:
                self.index_writer.refresh(merged)
        return "merged"

    def _summary(
        self,
        source_id: str,
        extracted: int,
        confidence: Optional[float],
        method: Optional[str],
        counts: Optional[Dict[str, int]] = None,
        unchanged: bool = False,
    ) -> Dict[str, Any]:
        counts = counts or {}
        result = {
            "source_id": source_id,
            "entities_extracted": extracted,
            "entities_created": counts.get("created", 0),
            "entities_updated": counts.get("merged", 0),
            "entities_skipped": counts.get("skipped", 0),
            "entities_failed": counts.get("failed", 0),
            "confidence": confidence,
            "method": method,
            "timestamp": self.now().isoformat(),
        }
        if unchanged:
            result["unchanged"] = True
        return result

    def scrape_all_sources(self) -> List[Dict[str, Any]]:
        """
        Scrape every enabled source sequentially with a pause between
        sources. A failing source is recorded in the results and the batch
        continues.
        """
        source_ids = [s.id for s in self.sources.list_enabled()]
        results = []

        for position, source_id in enumerate(source_ids):
            if position > 0 and self.source_delay > 0:
                self.sleep(self.source_delay)
            try:
                results.append(self.scrape_source(source_id))
            except Exception as e:
                self.session.rollback()
                self.logger.error("Source scrape failed", source_id=source_id, error=str(e))
                results.append({
                    "source_id": source_id,
                    "error": str(e),
                    "timestamp": self.now().isoformat(),
                })

        return results
