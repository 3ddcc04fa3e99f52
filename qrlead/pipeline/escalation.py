from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List

from .fetchers.static import FetchResult


CHALLENGE_MARKERS = [
    r"Just a moment\s*\.\.\.",
    r"Enable JavaScript and cookies to continue",
    r"__cf_chl_",  # Cloudflare challenge scripts
    r"cf-browser-verification",
    r"Attention Required!\s*\|\s*Cloudflare",
    r"Checking (?:if the site connection is secure|your browser before accessing)",
    r"_Incapsula_Resource",
    r"captcha-delivery\.com",  # DataDome
]

CHALLENGE_STATUSES = {403, 429, 503}
CHALLENGE_SERVERS = ("cloudflare", "ddos-guard", "akamaighost")


@dataclass(frozen=True)
class ChallengeDecision:
    challenged: bool
    reasons: List[str]


def detect_anti_bot(html: str | None) -> bool:
    if not html:
        return False
    for pat in CHALLENGE_MARKERS:
        if re.search(pat, html, flags=re.IGNORECASE):
            return True
    return False


def detect_challenge(fetch: FetchResult) -> ChallengeDecision:
    """Decide whether the direct fetch landed on a bot-challenge interstitial.

    A challenged page is not worth a headless retry: the browser would hit
    the same wall and repeated attempts risk a ban.
    """
    reasons: List[str] = []
    if detect_anti_bot(fetch.html):
        reasons.append("anti-bot markers detected")
    server = fetch.headers.get("server", "").lower()
    if fetch.status_code in CHALLENGE_STATUSES and any(s in server for s in CHALLENGE_SERVERS):
        reasons.append(f"status {fetch.status_code} from {server}")
    if fetch.headers.get("cf-mitigated", "").lower() == "challenge":
        reasons.append("cf-mitigated: challenge")
    return ChallengeDecision(challenged=bool(reasons), reasons=reasons)
