from __future__ import annotations

from qrlead.pipeline.escalation import detect_anti_bot, detect_challenge
from qrlead.pipeline.fetchers.static import FetchResult


def _fr(**kw):
    defaults = dict(url="https://qr.example/p/abc", status_code=200, mime="text/html", content_length=8000, html="<html><body>Hello</body></html>", headers={})
    defaults.update(kw)
    return FetchResult(**defaults)


def test_plain_page_is_not_challenged():
    dec = detect_challenge(_fr())
    assert dec.challenged is False
    assert dec.reasons == []


def test_detect_anti_bot():
    html = "<title>Just a moment...</title><div>Enable JavaScript and cookies to continue</div>"
    assert detect_anti_bot(html) is True
    assert detect_anti_bot("<html>Welcome</html>") is False
    assert detect_anti_bot(None) is False
    dec = detect_challenge(_fr(html=html, status_code=403))
    assert dec.challenged is True
    assert any("anti-bot" in r for r in dec.reasons)


def test_challenge_status_from_protection_server():
    dec = detect_challenge(_fr(status_code=503, html="<html></html>", headers={"server": "cloudflare"}))
    assert dec.challenged is True
    assert any("503" in r for r in dec.reasons)


def test_error_status_from_origin_is_not_a_challenge():
    dec = detect_challenge(_fr(status_code=503, html="<html>maintenance</html>", headers={"server": "nginx"}))
    assert dec.challenged is False


def test_cf_mitigated_header():
    dec = detect_challenge(_fr(html=None, headers={"cf-mitigated": "challenge"}))
    assert dec.challenged is True
