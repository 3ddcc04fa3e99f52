from __future__ import annotations

from unittest.mock import Mock

import httpx

from qrlead.config import Settings
from qrlead.pipeline.ai import TextAnalyzer
from qrlead.pipeline.fetchers.playwright import RenderedPage
from qrlead.pipeline.fetchers.static import FetchResult, StaticFetcher
from qrlead.pipeline.ingest import QRIngestPipeline
from qrlead.pipeline.retry import Deadline
from qrlead.pipeline.scraper import PageScraper
from qrlead.schemas import PayloadKind

URL = "https://qr.example/p/abc"

VENDOR_HTML = '<script>var __savedQrCodeParams = {"website": "https://sol.es", "content": [{"component": "profile", "name": "Maria Lopez", "company": "Sol Energy"}]};</script>'
CHALLENGE_HTML = "<html><title>Just a moment...</title><body>Enable JavaScript and cookies to continue</body></html>"
SPA_SHELL = '<html><body><div id="root"></div><script src="/app.js"></script></body></html>'
RENDERED_CARD = '<html><body><h2 class="name">Tom Baker</h2><a href="mailto:tom@orbit.io">Mail</a></body></html>'


def _fetch(html, status=200, headers=None, blocked=False):
    return FetchResult(
        url=URL,
        status_code=status,
        mime="text/html",
        content_length=len(html or ""),
        html=html,
        headers=headers or {},
        blocked_by_robots=blocked,
    )


def _static(result=None, error=None):
    fetcher = Mock()
    fetcher.timeout_s = 15.0
    if error is not None:
        fetcher.fetch.side_effect = error
    else:
        fetcher.fetch.return_value = result
    return fetcher


def _browser(*outcomes):
    browser = Mock()
    browser.navigation_timeout_ms = 30000
    browser.render.side_effect = list(outcomes)
    return browser


def _page(html=RENDERED_CARD, text="", vendor_json=None):
    return RenderedPage(url=URL, status_code=200, html=html, text=text, title="Card", vendor_json=vendor_json)


def test_vendor_json_on_direct_fetch_skips_browser():
    browser = _browser(_page())
    scraper = PageScraper(static_fetcher=_static(_fetch(VENDOR_HTML)), browser_fetcher=browser)
    out = scraper.scrape(URL)
    assert out.method == "vendor_json"
    assert out.fields.first_name == "Maria"
    assert out.fields.website == "https://sol.es"
    browser.render.assert_not_called()


def test_challenge_page_returns_website_only():
    browser = _browser(_page())
    scraper = PageScraper(static_fetcher=_static(_fetch(CHALLENGE_HTML, status=403)), browser_fetcher=browser)
    out = scraper.scrape(URL)
    assert out.method == "challenge_page"
    assert out.fields.website == URL
    assert out.fields.filled_count() == 1
    browser.render.assert_not_called()


def test_robots_blocked_returns_website_only():
    scraper = PageScraper(static_fetcher=_static(_fetch(None, status=0, blocked=True)), browser_fetcher=_browser(_page()))
    out = scraper.scrape(URL)
    assert out.method == "robots_disallowed"
    assert out.fields.filled_count() == 1


def test_no_browser_configured_returns_website_only():
    scraper = PageScraper(static_fetcher=_static(_fetch(SPA_SHELL)), browser_fetcher=None)
    out = scraper.scrape(URL)
    assert out.method == "website_only"
    assert out.fields.website == URL
    assert out.fields.filled_count() == 1


def test_browser_extracts_when_direct_fetch_has_no_payload():
    browser = _browser(_page())
    scraper = PageScraper(static_fetcher=_static(_fetch(SPA_SHELL)), browser_fetcher=browser)
    out = scraper.scrape(URL)
    assert out.method == "browser"
    assert out.fields.first_name == "Tom"
    assert out.fields.email == "tom@orbit.io"
    assert out.fields.website == URL


def test_direct_fetch_error_still_tries_browser():
    browser = _browser(_page())
    static = _static(error=httpx.ConnectTimeout("timed out"))
    out = PageScraper(static_fetcher=static, browser_fetcher=browser).scrape(URL)
    assert out.method == "browser"


def test_browser_retries_with_backoff():
    sleeps = []
    browser = _browser(RuntimeError("net::ERR_TIMED_OUT"), RuntimeError("net::ERR_TIMED_OUT"), _page())
    scraper = PageScraper(browser_fetcher=browser, attempts=3, backoff_s=1.0, sleep=sleeps.append)
    out = scraper.scrape(URL)
    assert out.method == "browser"
    assert browser.render.call_count == 3
    assert sleeps == [1.0, 2.0]


def test_browser_exhaustion_returns_website_only():
    sleeps = []
    browser = _browser(*[RuntimeError("crash")] * 3)
    scraper = PageScraper(browser_fetcher=browser, attempts=3, backoff_s=1.0, sleep=sleeps.append)
    out = scraper.scrape(URL)
    assert out.method == "website_only"
    assert out.fields.website == URL
    assert out.fields.filled_count() == 1
    assert browser.render.call_count == 3


def test_expired_deadline_returns_website_only():
    browser = _browser(_page())
    static = _static(_fetch(SPA_SHELL))
    out = PageScraper(static_fetcher=static, browser_fetcher=browser).scrape(URL, Deadline(0))
    assert out.method == "website_only"
    static.fetch.assert_not_called()
    browser.render.assert_not_called()


def test_render_timeout_is_clamped_to_deadline():
    browser = _browser(_page())
    PageScraper(browser_fetcher=browser).scrape(URL, Deadline(10))
    timeout_ms = browser.render.call_args.kwargs["timeout_ms"]
    assert 0 < timeout_ms <= 10000


def test_url_rejected_by_http_client_degrades_to_website_only():
    requests = []
    client = httpx.Client(transport=httpx.MockTransport(lambda r: requests.append(r) or httpx.Response(200, text="<html></html>")))
    payload = "https://acme.com/card\nJohn Doe\njohn@acme.com"
    scraper = PageScraper(static_fetcher=StaticFetcher(client=client), browser_fetcher=None)
    out = scraper.scrape(payload)
    assert out.method == "website_only"
    assert out.fields.website == payload
    assert requests == []


def test_unexpected_direct_fetch_error_still_tries_browser():
    browser = _browser(_page())
    out = PageScraper(static_fetcher=_static(error=ValueError("bad header")), browser_fetcher=browser).scrape(URL)
    assert out.method == "browser"


def test_newline_url_payload_is_a_successful_url_result():
    client = httpx.Client(transport=httpx.MockTransport(lambda r: httpx.Response(200, text="<html></html>")))
    scraper = PageScraper(static_fetcher=StaticFetcher(client=client), browser_fetcher=None)
    settings = Settings()
    settings.fetch.enabled = False
    with QRIngestPipeline(settings=settings, analyzer=TextAnalyzer([]), scraper=scraper, ops_logger=Mock()) as p:
        result = p.extract("https://acme.com/card\nJohn Doe\njohn@acme.com")
    assert result.success is True
    assert result.kind == PayloadKind.URL
    assert result.method == "website_only"


def test_robots_check_runs_within_the_deadline():
    static = _static(_fetch(None, status=0, blocked=True))
    out = PageScraper(static_fetcher=static).scrape(URL, Deadline(2))
    assert out.method == "robots_disallowed"
    assert 0 < static.fetch.call_args.kwargs["timeout_s"] <= 2
