import argparse
import json
from dataclasses import asdict
from pathlib import Path
from typing import Optional

from . import __version__
from .config import Settings, load_settings
from .database import Source, init_database, get_session
from .errors import FetchError, SourceNotFoundError
from .extractors.model import ModelExtractor
from .extractors.pattern import PatternExtractor
from .fetcher import ContentFetcher
from .logger import get_logger
from .model_client import HostedModelClient
from .orchestrator import ScrapeOrchestrator
from .rate_limit import RateLimiter
from .schema import validate_source
from .status import collect_status

from pipelines.backfill.full_rebuild import rebuild_index
from pipelines.entity_resolution.embedding import Embedder
from pipelines.entity_resolution.indexing import IndexWriter
from pipelines.entity_resolution.resolver import SimilarityResolver
from pipelines.merging.merge_resolver import MergeResolver
from storage.blobs import LocalBlobStore
from storage.cache import MemoryCache
from storage.repositories.changes import ChangeRepository
from storage.repositories.entities import EntityRepository
from storage.repositories.sources import SourceRepository
from storage.vector_index import InMemoryVectorIndex


def build_model_client(settings: Settings) -> HostedModelClient:
    return HostedModelClient(
        base_url=settings.model_url,
        embed_model=settings.embed_model,
        generate_model=settings.generate_model,
        api_key=settings.model_api_key,
        timeout=settings.model_timeout,
    )


def build_orchestrator(settings: Settings, session) -> ScrapeOrchestrator:
    """Wire the pipeline components from settings."""
    logger = get_logger()
    model_client = build_model_client(settings)
    vector_index = InMemoryVectorIndex(settings.index_path)
    embedder = Embedder(model_client, dimension=settings.embed_dim)

    fetcher = ContentFetcher(
        rate_limiter=RateLimiter(MemoryCache()),
        blob_store=LocalBlobStore(settings.blob_dir),
        user_agent=settings.user_agent,
        timeout=settings.fetch_timeout,
        max_retries=settings.fetch_retries,
    )
    return ScrapeOrchestrator(
        session=session,
        fetcher=fetcher,
        model_extractor=ModelExtractor(model_client),
        pattern_extractor=PatternExtractor(),
        resolver=SimilarityResolver(embedder, vector_index),
        merger=MergeResolver(EntityRepository(session), ChangeRepository(session)),
        index_writer=IndexWriter(vector_index, embedder),
        source_delay=settings.source_delay,
        logger=logger,
    )


def _open_session(settings: Settings):
    init_database(settings.db_path)
    return get_session(settings.db_path)


def _print_json(data) -> None:
    print(json.dumps(data, indent=2, default=str))


def cmd_init_db(args: argparse.Namespace, settings: Settings) -> None:
    init_database(settings.db_path)
    print(f"Database ready: {settings.db_path}")


def cmd_seed_sources(args: argparse.Namespace, settings: Settings) -> None:
    input_path = Path(args.input)
    if not input_path.exists():
        raise SystemExit(f"Input file not found: {input_path}")
    with input_path.open("r", encoding="utf-8") as f:
        sources = json.load(f)
    if not isinstance(sources, list):
        raise SystemExit("Sources file must contain a JSON array of source objects")

    session = _open_session(settings)
    repo = SourceRepository(session)
    new = updated = invalid = 0
    try:
        for data in sources:
            errors = validate_source(data) if isinstance(data, dict) else ["not an object"]
            if errors:
                print(f"[invalid] {data.get('id') if isinstance(data, dict) else data} - {errors}")
                invalid += 1
                continue
            if args.dry_run:
                print(f"[dry-run] {data['id']}")
                continue
            status = repo.upsert(data)
            if status == "new":
                new += 1
            else:
                updated += 1
            print(f"[{status}] {data['id']}")
    finally:
        session.close()
    print(f"Done. new={new} updated={updated} invalid={invalid}")


def cmd_scrape(args: argparse.Namespace, settings: Settings) -> None:
    session = _open_session(settings)
    try:
        result = build_orchestrator(settings, session).scrape_source(args.source, force=args.force)
    except (SourceNotFoundError, FetchError) as e:
        raise SystemExit(str(e))
    finally:
        session.close()
    _print_json(result)


def cmd_scrape_all(args: argparse.Namespace, settings: Settings) -> None:
    session = _open_session(settings)
    try:
        results = build_orchestrator(settings, session).scrape_all_sources()
    finally:
        session.close()
    _print_json({"message": "Bulk scraping completed", "results": results})
    get_logger().log_metrics_summary()


def cmd_extract(args: argparse.Namespace, settings: Settings) -> None:
    input_path = Path(args.input)
    if not input_path.exists():
        raise SystemExit(f"Input file not found: {input_path}")
    content = input_path.read_text(encoding="utf-8")

    source = Source(
        id="test",
        agency=args.agency,
        url=args.url,
        parse_type=args.parse_type,
        selector=args.selector,
        territory="national",
        rate_limit_rps=1.0,
        enabled=True,
    )
    if args.method == "pattern":
        extractor = PatternExtractor()
    else:
        extractor = ModelExtractor(build_model_client(settings))
    result = extractor.extract(content, source)
    _print_json({"extraction": asdict(result)})


def cmd_status(args: argparse.Namespace, settings: Settings) -> None:
    session = _open_session(settings)
    try:
        _print_json(collect_status(session))
    finally:
        session.close()


def cmd_rebuild_index(args: argparse.Namespace, settings: Settings) -> None:
    session = _open_session(settings)
    try:
        embedder = Embedder(build_model_client(settings), dimension=settings.embed_dim)
        summary = rebuild_index(
            EntityRepository(session), InMemoryVectorIndex(settings.index_path), embedder
        )
    finally:
        session.close()
    print(f"Done. total={summary['total']} indexed={summary['indexed']} failed={summary['failed']}")


def main(argv: Optional[list] = None):
    settings = load_settings()
    get_logger(level=settings.log_level, log_dir=settings.log_dir)

    parser = argparse.ArgumentParser(prog="cydex", description="CyDex field office scraper")
    parser.add_argument("--version", action="store_true", help="Show version")

    subparsers = parser.add_subparsers(dest="command")
    ini = subparsers.add_parser("init-db", help="Create database tables")
    ini.set_defaults(func=cmd_init_db)

    seed = subparsers.add_parser("seed-sources", help="Load source configurations from a JSON file")
    seed.add_argument("--input", required=True, help="Path to JSON array of sources")
    seed.add_argument("--dry-run", action="store_true", help="Validate only, do not write")
    seed.set_defaults(func=cmd_seed_sources)

    scr = subparsers.add_parser("scrape", help="Scrape one source and resolve its entities")
    scr.add_argument("--source", required=True, help="Source id")
    scr.add_argument("--force", action="store_true", help="Ignore the per-source fetch interval and content hash")
    scr.set_defaults(func=cmd_scrape)

    sca = subparsers.add_parser("scrape-all", help="Scrape all enabled sources sequentially")
    sca.set_defaults(func=cmd_scrape_all)

    ext = subparsers.add_parser("extract", help="Run extraction on a local file without persisting")
    ext.add_argument("--input", required=True, help="Path to page content")
    ext.add_argument("--agency", default="TEST", help="Agency code (default: TEST)")
    ext.add_argument("--url", default="https://example.com/test", help="Source URL to stamp on entities")
    ext.add_argument("--method", choices=["model", "pattern"], default="model", help="Extraction strategy")
    ext.add_argument("--parse-type", default="html", help="Content parse type (default: html)")
    ext.add_argument("--selector", help="Selector or pattern hint (required for pattern method)")
    ext.set_defaults(func=cmd_extract)

    sts = subparsers.add_parser("status", help="Show source and entity status")
    sts.set_defaults(func=cmd_status)

    rbi = subparsers.add_parser("rebuild-index", help="Re-embed all stored entities into the vector index")
    rbi.set_defaults(func=cmd_rebuild_index)

    args = parser.parse_args(argv)

    if args.version:
        print(__version__)
        return

    if hasattr(args, "func"):
        args.func(args, settings)
        return

    parser.print_help()


if __name__ == "__main__":
    main()
