"""
Politeness-aware content fetching.

A fetch is admitted by the per-domain rate limiter, checked against the
site's robots.txt, retried on transient failures, hashed for change
detection and archived to blob storage.
"""

import hashlib
import time
from typing import Callable, Optional
from urllib.parse import urlparse

import requests

from .clock import utcnow
from .config import DEFAULT_USER_AGENT
from .logger import get_logger, StructuredLogger
from .models import ScrapedContent
from .normalize import domain_of
from .retry import (
    exponential_backoff,
    RetryError,
    TransientHTTPError,
    should_retry_http_status,
)

ACCEPT_HEADER = "text/html,application/json,application/pdf,*/*"

CONTENT_TYPE_EXTENSIONS = (
    ("html", "html"),
    ("json", "json"),
    ("pdf", "pdf"),
    ("csv", "csv"),
    ("xml", "xml"),
)


def robots_disallows_all(robots_text: str) -> bool:
    """
    True if the wildcard user-agent group blocks the whole site
    (`Disallow: /`) and grants no `Allow:` path back.
    """
    disallow_all = False
    has_allow = False
    group_agents = []
    in_rules = False

    for raw_line in robots_text.splitlines():
        line = raw_line.split("#", 1)[0].strip()
        if not line or ":" not in line:
            continue
        field, value = line.split(":", 1)
        field = field.strip().lower()
        value = value.strip()

        if field == "user-agent":
            if in_rules:
                group_agents = []
                in_rules = False
            group_agents.append(value)
            continue

        in_rules = True
        if "*" not in group_agents:
            continue
        if field == "disallow" and value == "/":
            disallow_all = True
        elif field == "allow" and value:
            has_allow = True

    return disallow_all and not has_allow


def archive_key(source_id: str, content_hash: str, content_type: str, fetched_at) -> str:
    ext = "txt"
    lowered = content_type.lower()
    for marker, candidate in CONTENT_TYPE_EXTENSIONS:
        if marker in lowered:
            ext = candidate
            break
    return f"raw/{source_id}/{fetched_at.strftime('%Y-%m-%d')}/{content_hash}.{ext}"


class ContentFetcher:
    def __init__(
        self,
        rate_limiter,
        blob_store=None,
        http: Optional[requests.Session] = None,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: float = 10.0,
        max_retries: int = 2,
        retry_delay: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
        logger: Optional[StructuredLogger] = None,
    ):
        self.rate_limiter = rate_limiter
        self.blob_store = blob_store
        self.http = http or requests.Session()
        self.user_agent = user_agent
        self.timeout = timeout
        self.logger = logger or get_logger()
        self._get = exponential_backoff(
            max_retries=max_retries,
            base_delay=retry_delay,
            exceptions=(
                requests.exceptions.Timeout,
                requests.exceptions.ConnectionError,
                TransientHTTPError,
            ),
            on_retry=self._on_retry,
            sleep=sleep,
        )(self._get_once)

    def _on_retry(self, attempt: int, error: Exception, delay: float):
        self.logger.warning("Retrying fetch", attempt=attempt, error=str(error), delay=delay)

    def _headers(self) -> dict:
        return {
            "User-Agent": self.user_agent,
            "Accept": ACCEPT_HEADER,
            "Accept-Language": "en-US,en;q=0.9",
        }

    def _get_once(self, url: str):
        resp = self.http.get(url, headers=self._headers(), timeout=self.timeout)
        if should_retry_http_status(resp.status_code):
            raise TransientHTTPError(resp.status_code, url)
        return resp

    def robots_allowed(self, url: str) -> bool:
        """Best-effort robots.txt check. Any failure to read it counts as allowed."""
        parsed = urlparse(url)
        robots_url = f"{parsed.scheme or 'https'}://{parsed.netloc}/robots.txt"
        try:
            resp = self.http.get(robots_url, headers=self._headers(), timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            self.logger.debug("robots.txt unavailable, proceeding", url=robots_url, error=str(e))
            return True
        if not 200 <= resp.status_code < 300:
            return True
        return not robots_disallows_all(resp.text or "")

    def fetch(self, source) -> Optional[ScrapedContent]:
        """
        Fetch a source URL.

        Returns:
            ScrapedContent, or None when the fetch was not admitted or failed.
            None means "nothing this cycle", never a batch-level error.
        """
        domain = domain_of(source.url)
        try:
            if not self.rate_limiter.admit(domain, source.rate_limit_rps):
                self.logger.info("Rate limited, skipping fetch", domain=domain, source_id=source.id)
                return None

            if not self.robots_allowed(source.url):
                self.logger.info("robots.txt disallows scraping", domain=domain, source_id=source.id)
                return None

            self.logger.record_fetch_attempt(domain)
            try:
                resp = self._get(source.url)
            except RetryError as e:
                cause = e.__cause__
                error_type = type(cause).__name__ if cause is not None else "RetryError"
                if isinstance(cause, TransientHTTPError):
                    error_type = f"HTTPError_{cause.status_code}"
                self.logger.record_fetch_failure(domain, error_type)
                self.logger.error("Fetch failed after retries", url=source.url, error=str(e))
                return None

            if not 200 <= resp.status_code < 300:
                self.logger.record_fetch_failure(domain, f"HTTPError_{resp.status_code}")
                self.logger.error("Fetch returned non-2xx status", url=source.url, status=resp.status_code)
                return None

            content = resp.text
            raw = resp.content
            content_type = resp.headers.get("content-type") or "text/html"
            scraped = ScrapedContent(
                source_id=source.id,
                url=source.url,
                content=content,
                content_type=content_type,
                status_code=resp.status_code,
                hash=hashlib.sha256(raw).hexdigest(),
                timestamp=utcnow(),
                raw=raw,
            )
            self.logger.record_fetch_success(domain)
            self.archive(scraped)
            return scraped
        except requests.exceptions.RequestException as e:
            self.logger.record_fetch_failure(domain, type(e).__name__)
            self.logger.error("Fetch request error", url=source.url, error=str(e))
            return None
        except Exception as e:
            self.logger.record_fetch_failure(domain, type(e).__name__)
            self.logger.error("Unexpected fetch failure", url=source.url, error=str(e))
            return None

    def archive(self, scraped: ScrapedContent) -> Optional[str]:
        """Store raw content in blob storage. Failures are logged, not raised."""
        if self.blob_store is None:
            return None
        key = archive_key(scraped.source_id, scraped.hash, scraped.content_type, scraped.timestamp)
        try:
            self.blob_store.put(
                key,
                scraped.raw,
                content_type=scraped.content_type,
                metadata={
                    "source_id": scraped.source_id,
                    "url": scraped.url,
                    "timestamp": scraped.timestamp.isoformat(),
                    "status_code": str(scraped.status_code),
                },
            )
        except Exception as e:
            self.logger.error("Failed to archive raw content", key=key, error=str(e))
            return None
        return key
