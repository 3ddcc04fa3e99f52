from __future__ import annotations

import logging
import time
from typing import Callable, Optional

import httpx

from ..errors import DeadlineExceeded, RetryExhausted
from ..schemas import ContactFields
from .cascade import CascadeOutcome
from .escalation import detect_challenge
from .extractors import extract_page_sources, merge_sources
from .fetchers.playwright import BrowserFetcher
from .fetchers.static import FetchResult, StaticFetcher
from .retry import Deadline, retry_with_fallback
from .vendor import find_vendor_payload, map_vendor_payload

logger = logging.getLogger(__name__)


class PageScraper:
    """Direct-fetch-first scraper for the single URL encoded in a QR payload.

    Order: direct fetch with vendor JSON short-circuit, challenge-page
    short-circuit, then headless rendering with bounded retry. Every
    failure degrades to a record holding only ``website``.
    """

    def __init__(
        self,
        *,
        static_fetcher: Optional[StaticFetcher] = None,
        browser_fetcher: Optional[BrowserFetcher] = None,
        vendor_marker: str = "__savedQrCodeParams",
        attempts: int = 3,
        backoff_s: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.static_fetcher = static_fetcher
        self.browser_fetcher = browser_fetcher
        self.vendor_marker = vendor_marker
        self.attempts = max(1, int(attempts))
        self.backoff_s = backoff_s
        self._sleep = sleep

    @staticmethod
    def _website_only(url: str, method: str) -> CascadeOutcome:
        return CascadeOutcome(method=method, fields=ContactFields(website=url))

    def _direct_fetch(self, url: str, deadline: Deadline) -> Optional[FetchResult]:
        if self.static_fetcher is None:
            return None
        try:
            return self.static_fetcher.fetch(url, timeout_s=deadline.timeout(self.static_fetcher.timeout_s))
        except DeadlineExceeded:
            raise
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning("direct fetch failed for %s: %s", url, e)
            return None
        except Exception as e:
            logger.warning("direct fetch failed for %s: %s: %s", url, type(e).__name__, e)
            return None

    def _render(self, url: str, deadline: Deadline) -> ContactFields:
        nav_s = self.browser_fetcher.navigation_timeout_ms / 1000.0
        page = self.browser_fetcher.render(url, timeout_ms=int(deadline.timeout(nav_s) * 1000))
        sources = extract_page_sources(
            page.html,
            visible_text=page.text,
            vendor_marker=self.vendor_marker,
            vendor_global=page.vendor_json,
            page_url=url,
        )
        return merge_sources(sources)

    def scrape(self, url: str, deadline: Optional[Deadline] = None) -> CascadeOutcome:
        deadline = deadline or Deadline(None)

        try:
            fetched = self._direct_fetch(url, deadline)
        except DeadlineExceeded:
            return self._website_only(url, "website_only")

        if fetched is not None:
            if fetched.blocked_by_robots:
                logger.info("robots.txt disallows %s", url)
                return self._website_only(url, "robots_disallowed")
            vendor = find_vendor_payload(fetched.html, self.vendor_marker)
            if vendor:
                fields = map_vendor_payload(vendor, url)
                fields.website = fields.website or url
                return CascadeOutcome(method="vendor_json", fields=fields)
            decision = detect_challenge(fetched)
            if decision.challenged:
                logger.info("challenge page at %s (%s); skipping browser", url, "; ".join(decision.reasons))
                return self._website_only(url, "challenge_page")

        if self.browser_fetcher is None:
            return self._website_only(url, "website_only")

        try:
            fields = retry_with_fallback(
                [("browser", lambda: self._render(url, deadline))],
                attempts=self.attempts,
                backoff_s=self.backoff_s,
                deadline=deadline,
                sleep=self._sleep,
            )
        except RetryExhausted as e:
            logger.warning("browser scraping gave up on %s: %s", url, e)
            return self._website_only(url, "website_only")
        except DeadlineExceeded:
            logger.warning("browser scraping abandoned for %s: deadline exceeded", url)
            return self._website_only(url, "website_only")

        fields.website = fields.website or url
        return CascadeOutcome(method="browser", fields=fields)
