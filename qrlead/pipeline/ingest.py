from __future__ import annotations

import logging
import time
from typing import Callable, Dict, Optional

from ..config import Settings
from ..errors import InputError, ParseError
from ..ops_logger import OpsLogger
from ..schemas import ContactFields, ExtractionResult, PayloadKind
from .ai import AITextStrategy, TextAnalyzer
from .cascade import CascadeOutcome, run_cascade
from .classifier import classify
from .fetchers.playwright import BrowserFetcher
from .fetchers.static import StaticFetcher
from .heuristics import HeuristicTextStrategy, extract_unique_code
from .links import parse_mailto, parse_tel
from .retry import Deadline
from .scoring import normalize, rate, score
from .scraper import PageScraper
from .vcard import parse_vcard

logger = logging.getLogger(__name__)


class QRIngestPipeline:
    """Main ingestion pipeline: classify the payload, then run its branch.

    - Entry codes, links and vCards are parsed locally
    - Plain text runs the AI -> heuristics cascade
    - URLs run the page scraper (direct fetch first, browser last)
    Only empty input and malformed vCards produce ``success=False``.
    """

    def __init__(
        self,
        *,
        settings: Optional[Settings] = None,
        analyzer: Optional[TextAnalyzer] = None,
        scraper: Optional[PageScraper] = None,
        ops_logger: Optional[OpsLogger] = None,
        deadline_s: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.settings = settings or Settings()
        self.deadline_s = deadline_s if deadline_s is not None else self.settings.deadline_s
        self._owned_static: Optional[StaticFetcher] = None
        self.analyzer = analyzer if analyzer is not None else TextAnalyzer.from_settings(self.settings.ai)
        if scraper is None:
            if self.settings.fetch.enabled:
                self._owned_static = StaticFetcher.from_settings(self.settings.fetch)
            scraper = PageScraper(
                static_fetcher=self._owned_static,
                browser_fetcher=BrowserFetcher.from_settings(self.settings.browser, self.settings.vendor_marker),
                vendor_marker=self.settings.vendor_marker,
                attempts=self.settings.browser.attempts,
                backoff_s=self.settings.browser.backoff_s,
                sleep=sleep,
            )
        self.scraper = scraper
        self.text_strategies = [AITextStrategy(self.analyzer), HeuristicTextStrategy()]
        self.ops_logger = ops_logger if ops_logger is not None else OpsLogger.from_env()

    def close(self) -> None:
        if self._owned_static is not None:
            self._owned_static.close()
            self._owned_static = None
        for provider in self.analyzer.providers:
            close = getattr(provider, "close", None)
            if close is not None:
                close()

    def __enter__(self) -> "QRIngestPipeline":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _plaintext(self, text: str, deadline: Deadline) -> CascadeOutcome:
        outcome = run_cascade(self.text_strategies, text, deadline)
        # The entry code always comes from the raw text, whichever strategy won
        outcome.fields.unique_code = outcome.fields.unique_code or extract_unique_code(text)
        return outcome

    def _run_branch(self, kind: PayloadKind, text: str, deadline: Deadline) -> CascadeOutcome:
        if kind == PayloadKind.MAILTO:
            return CascadeOutcome("mailto", parse_mailto(text))
        if kind == PayloadKind.TEL:
            return CascadeOutcome("tel", parse_tel(text))
        if kind == PayloadKind.VCARD:
            return CascadeOutcome("vcard", parse_vcard(text))
        if kind == PayloadKind.URL:
            return self.scraper.scrape(text, deadline)
        return self._plaintext(text, deadline)

    def _build(self, kind: PayloadKind, raw: str, outcome: CascadeOutcome) -> ExtractionResult:
        record, code = normalize(outcome.fields)
        return ExtractionResult(
            success=True,
            kind=kind,
            raw_data=raw,
            record=record,
            entry_code=code,
            confidence=score(outcome.fields, kind),
            rating=rate(outcome.fields),
            method=outcome.method,
        )

    def _process(self, raw_text: str, text: str, kind: PayloadKind, durations: Dict[str, float]) -> ExtractionResult:
        if not text:
            raise InputError("empty input")

        logger.debug("classified payload as %s", kind.value)
        if kind == PayloadKind.ENTRY_CODE:
            record, _ = normalize(ContactFields())
            return ExtractionResult(
                success=True,
                kind=kind,
                raw_data=raw_text,
                record=record,
                entry_code=text,
                confidence=1.0,
                rating=1,
                method="entry_code",
            )

        deadline = Deadline(self.deadline_s)
        t0 = time.monotonic()
        try:
            outcome = self._run_branch(kind, text, deadline)
        except ParseError as e:
            return ExtractionResult(success=False, kind=kind, raw_data=raw_text, error=str(e))
        finally:
            durations[kind.value] = time.monotonic() - t0
        return self._build(kind, raw_text, outcome)

    def extract(self, raw_text: str) -> ExtractionResult:
        """Turn one decoded QR payload into an ``ExtractionResult``. Never raises."""
        durations: Dict[str, float] = {}
        t0 = time.monotonic()
        text = (raw_text or "").strip()
        kind = classify(text) if text else PayloadKind.PLAINTEXT
        try:
            result = self._process(raw_text, text, kind, durations)
        except InputError as e:
            result = ExtractionResult(success=False, kind=kind, raw_data=raw_text or "", error=str(e))
        except Exception as e:
            logger.exception("unexpected error while extracting %s payload", kind.value)
            result = ExtractionResult(
                success=False,
                kind=kind,
                raw_data=raw_text or "",
                error=f"{type(e).__name__}: {e}",
            )
        durations["total"] = time.monotonic() - t0
        if self.ops_logger is not None:
            self.ops_logger.emit_result(result, durations)
        return result
