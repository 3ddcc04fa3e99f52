from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
from urllib import robotparser
from urllib.parse import urlparse

import httpx

from ...config import BROWSER_UA, FetchSettings


@dataclass(frozen=True)
class FetchResult:
    url: str
    status_code: int
    mime: str | None
    content_length: int
    html: str | None
    headers: dict[str, str]
    blocked_by_robots: bool = False


class StaticFetcher:
    """Direct HTML fetch of the QR landing page (no JavaScript).

    - Uses httpx with a desktop browser User-Agent and Accept-Language to
      avoid the cheapest bot filters
    - Optional robots.txt enforcement via urllib.robotparser
    - Network errors propagate; the scraper decides how to recover
    """

    def __init__(
        self,
        *,
        timeout_s: float = 15.0,
        user_agent: str = BROWSER_UA,
        accept_language: str = "en-US,en;q=0.9",
        respect_robots: bool = False,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.timeout_s = timeout_s
        self.user_agent = user_agent
        self.respect_robots = respect_robots
        self.headers = {
            "User-Agent": user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": accept_language,
        }
        self._client = client or httpx.Client(timeout=self.timeout_s, headers=self.headers, follow_redirects=True)

    @classmethod
    def from_settings(cls, settings: FetchSettings, *, client: Optional[httpx.Client] = None) -> "StaticFetcher":
        return cls(
            timeout_s=settings.timeout_s,
            user_agent=settings.user_agent,
            accept_language=settings.accept_language,
            respect_robots=settings.respect_robots,
            client=client,
        )

    def close(self) -> None:
        self._client.close()

    def _robots_allows(self, url: str, timeout_s: float) -> bool:
        if not self.respect_robots:
            return True
        parsed = urlparse(url)
        robots_url = f"{parsed.scheme}://{parsed.netloc}/robots.txt"
        try:
            resp = self._client.get(robots_url, headers=self.headers, timeout=timeout_s)
        except (httpx.HTTPError, httpx.InvalidURL):
            # Unreachable robots.txt means no restrictions
            return True
        if resp.status_code >= 400:
            return True
        rp = robotparser.RobotFileParser()
        rp.parse(resp.text.splitlines())
        return rp.can_fetch(self.user_agent, url) and rp.can_fetch("*", url)

    def fetch(self, url: str, timeout_s: float | None = None) -> FetchResult:
        timeout = self.timeout_s if timeout_s is None else timeout_s
        if not self._robots_allows(url, timeout):
            return FetchResult(
                url=url,
                status_code=0,
                mime=None,
                content_length=0,
                html=None,
                headers={},
                blocked_by_robots=True,
            )
        resp = self._client.get(url, headers=self.headers, timeout=timeout, follow_redirects=True)
        mime = resp.headers.get("Content-Type")
        mime_main = mime.split(";")[0].strip().lower() if mime else None
        html_text = resp.text if mime_main in ("text/html", "application/xhtml+xml") else None
        return FetchResult(
            url=str(resp.request.url),
            status_code=resp.status_code,
            mime=mime_main,
            content_length=len(resp.content or b""),
            html=html_text,
            headers={k.lower(): v for k, v in resp.headers.items()},
        )
