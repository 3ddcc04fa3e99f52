import pytest
from unittest.mock import patch, MagicMock

from qrlead.config import BrowserSettings
from qrlead.pipeline.fetchers.playwright import BrowserError, BrowserFetcher, READ_GLOBAL_JS, VISIBLE_TEXT_JS


def _wire(mock_sync_playwright, *, response_status=200, goto_side_effect=None, remote=False):
    mock_page = MagicMock()
    if goto_side_effect is not None:
        mock_page.goto.side_effect = goto_side_effect
    elif response_status is None:
        mock_page.goto.return_value = None
    else:
        mock_response = MagicMock()
        mock_response.status = response_status
        mock_page.goto.return_value = mock_response
    mock_page.url = "https://qr.example/p/abc"
    mock_page.content.return_value = "<html><body>Jane Doe</body></html>"
    mock_page.title.return_value = "Jane Doe"

    def _evaluate(script, *args):
        if script == VISIBLE_TEXT_JS:
            return "Jane Doe\njane@acme.com"
        if script == READ_GLOBAL_JS:
            return '{"name": "Jane Doe"}'
        return None

    mock_page.evaluate.side_effect = _evaluate

    mock_context = MagicMock()
    mock_context.new_page.return_value = mock_page
    mock_browser = MagicMock()
    mock_browser.new_context.return_value = mock_context

    mock_playwright = MagicMock()
    if remote:
        mock_playwright.chromium.connect_over_cdp.return_value = mock_browser
    else:
        mock_playwright.chromium.launch.return_value = mock_browser
    mock_sync_playwright.return_value.__enter__.return_value = mock_playwright
    return mock_playwright, mock_browser, mock_page


@patch('qrlead.pipeline.fetchers.playwright.sync_playwright')
def test_render_success(mock_sync_playwright):
    _, mock_browser, mock_page = _wire(mock_sync_playwright)

    fetcher = BrowserFetcher(settle_ms=3000)
    page = fetcher.render("https://qr.example/p/abc")

    assert page.status_code == 200
    assert page.html == "<html><body>Jane Doe</body></html>"
    assert page.text == "Jane Doe\njane@acme.com"
    assert page.title == "Jane Doe"
    assert page.vendor_json == '{"name": "Jane Doe"}'
    mock_page.goto.assert_called_once_with("https://qr.example/p/abc", wait_until="networkidle", timeout=30000)
    mock_page.wait_for_timeout.assert_called_once_with(3000)
    mock_browser.close.assert_called_once()


@patch('qrlead.pipeline.fetchers.playwright.sync_playwright')
def test_render_no_response_raises_and_closes(mock_sync_playwright):
    _, mock_browser, _ = _wire(mock_sync_playwright, response_status=None)

    with pytest.raises(BrowserError):
        BrowserFetcher().render("https://qr.example/p/abc")
    mock_browser.close.assert_called_once()


@patch('qrlead.pipeline.fetchers.playwright.sync_playwright')
def test_navigation_error_propagates_and_closes(mock_sync_playwright):
    _, mock_browser, _ = _wire(mock_sync_playwright, goto_side_effect=RuntimeError("Timeout 30000ms exceeded"))

    with pytest.raises(RuntimeError):
        BrowserFetcher().render("https://qr.example/p/abc", timeout_ms=5000)
    mock_browser.close.assert_called_once()


@patch('qrlead.pipeline.fetchers.playwright.sync_playwright')
def test_remote_mode_connects_over_cdp(mock_sync_playwright):
    mock_playwright, mock_browser, _ = _wire(mock_sync_playwright, remote=True)

    fetcher = BrowserFetcher(mode="remote", ws_endpoint="ws://render:3000")
    fetcher.render("https://qr.example/p/abc")

    mock_playwright.chromium.connect_over_cdp.assert_called_once_with("ws://render:3000", timeout=30000)
    mock_playwright.chromium.launch.assert_not_called()
    mock_browser.close.assert_called_once()


def test_remote_mode_requires_endpoint():
    with pytest.raises(ValueError):
        BrowserFetcher(mode="remote")


def test_from_settings_respects_mode():
    assert BrowserFetcher.from_settings(BrowserSettings()) is None
    assert BrowserFetcher.from_settings(BrowserSettings(mode="remote")) is None
    fetcher = BrowserFetcher.from_settings(BrowserSettings(mode="local", settle_ms=500))
    assert fetcher is not None
    assert fetcher.mode == "local"
    assert fetcher.settle_ms == 500
