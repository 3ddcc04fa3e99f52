from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Literal, Optional

from playwright.sync_api import Browser, Playwright, sync_playwright

from ...config import BROWSER_UA, VENDOR_MARKER, BrowserSettings


# Reads a page global such as window.__savedQrCodeParams set by client-side scripts
READ_GLOBAL_JS = """(name) => {
  try {
    const v = window[name];
    if (v === undefined || v === null) return null;
    return typeof v === 'string' ? v : JSON.stringify(v);
  } catch (e) { return null; }
}"""

VISIBLE_TEXT_JS = """() => {
  const selectors = ['.vcard', '.business-card', '.card', '.profile', '.container', '.main', 'body'];
  for (const sel of selectors) {
    const el = document.querySelector(sel);
    if (el && el.innerText && el.innerText.trim().length > 0) return el.innerText;
  }
  return document.body ? document.body.innerText : '';
}"""

LAUNCH_ARGS = [
    '--disable-dev-shm-usage',     # Prevent /dev/shm issues in containers
    '--disable-gpu',
    '--disable-extensions',
    '--disable-plugins',
    '--no-first-run',
    '--disable-default-apps',
]


class BrowserError(Exception):
    pass


@dataclass(frozen=True)
class RenderedPage:
    url: str
    status_code: int
    html: str
    text: str
    title: str | None = None
    vendor_json: str | None = None


class BrowserFetcher:
    """Headless Chromium renderer for client-side QR landing pages.

    Every ``render`` call launches (or connects to) its own browser and
    closes it on every exit path; nothing is pooled between calls.
    Navigation or evaluation errors propagate so the caller can retry.
    """

    def __init__(
        self,
        *,
        mode: Literal["local", "remote"] = "local",
        ws_endpoint: Optional[str] = None,
        navigation_timeout_ms: int = 30000,
        settle_ms: int = 3000,
        user_agent: str = BROWSER_UA,
        vendor_marker: str = VENDOR_MARKER,
    ) -> None:
        if mode == "remote" and not ws_endpoint:
            raise ValueError("remote browser mode requires ws_endpoint")
        self.mode = mode
        self.ws_endpoint = ws_endpoint
        self.navigation_timeout_ms = navigation_timeout_ms
        self.settle_ms = settle_ms
        self.user_agent = user_agent
        self.vendor_marker = vendor_marker

    @classmethod
    def from_settings(cls, settings: BrowserSettings, vendor_marker: str = VENDOR_MARKER) -> Optional["BrowserFetcher"]:
        if not settings.configured:
            return None
        return cls(
            mode="remote" if settings.mode == "remote" else "local",
            ws_endpoint=settings.ws_endpoint,
            navigation_timeout_ms=settings.navigation_timeout_ms,
            settle_ms=settings.settle_ms,
            user_agent=settings.user_agent,
            vendor_marker=vendor_marker,
        )

    @contextmanager
    def _open_browser(self, p: Playwright, timeout_ms: int) -> Iterator[Browser]:
        if self.mode == "remote":
            browser = p.chromium.connect_over_cdp(self.ws_endpoint, timeout=timeout_ms)
        else:
            browser = p.chromium.launch(headless=True, args=LAUNCH_ARGS, timeout=timeout_ms)
        try:
            yield browser
        finally:
            browser.close()

    def render(self, url: str, timeout_ms: Optional[int] = None) -> RenderedPage:
        """Navigate, wait for network idle plus the settle delay, then snapshot the page."""
        nav_timeout = int(timeout_ms if timeout_ms is not None else self.navigation_timeout_ms)
        with sync_playwright() as p:
            with self._open_browser(p, nav_timeout) as browser:
                context = browser.new_context(user_agent=self.user_agent, locale="en-US")
                page = context.new_page()
                response = page.goto(url, wait_until="networkidle", timeout=nav_timeout)
                if response is None:
                    raise BrowserError(f"no response received for {url}")
                # Client-rendered cards keep painting after network idle
                page.wait_for_timeout(self.settle_ms)
                return RenderedPage(
                    url=page.url,
                    status_code=response.status,
                    html=page.content(),
                    text=page.evaluate(VISIBLE_TEXT_JS) or "",
                    title=page.title(),
                    vendor_json=page.evaluate(READ_GLOBAL_JS, self.vendor_marker),
                )
