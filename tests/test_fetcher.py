import errno
from dataclasses import replace
from unittest.mock import MagicMock, patch

import pytest
import requests
from metacrawler.core import crawl
from metacrawler.fetcher import (
    FetchClientError,
    FetchHTTPError,
    FetchNotFound,
    FetchTimeout,
    RobotsCache,
    RobotsDisallowed,
    _error_code,
    _sync_fetch,
    fetch_page,
    make_fetcher,
)
from metacrawler.models import CrawlConfig, ErrorEntry


def mock_response(status=200, content_type="text/html; charset=utf-8", text="<html></html>", location=None, body=None):
    response = MagicMock()
    response.status_code = status
    response.headers = {"content-type": content_type}
    if location:
        response.headers["location"] = location
    response.is_redirect = location is not None
    raw = body if body is not None else text.encode("utf-8")
    response.content = raw
    response.iter_content.side_effect = lambda chunk_size=1: iter([raw])
    # requests.get(...) is used as a context manager
    response.__enter__.return_value = response
    response.__exit__.return_value = False
    return response


def robots_response(status=200, text=""):
    response = MagicMock()
    response.status_code = status
    response.content = text.encode("utf-8")
    return response


def test_html_response_body_returned():
    with patch("metacrawler.fetcher.requests.get", return_value=mock_response(text="<title>x</title>")) as get:
        result = _sync_fetch("https://example.com/", "TestAgent/1.0", 5)

    assert result.status_code == 200
    assert result.body == "<title>x</title>"
    assert result.content_type == "text/html; charset=utf-8"
    kwargs = get.call_args.kwargs
    assert kwargs["headers"]["User-Agent"] == "TestAgent/1.0"
    assert kwargs["timeout"] == 5
    assert kwargs["allow_redirects"] is False


def test_non_html_body_not_downloaded():
    response = mock_response(content_type="application/pdf")
    with patch("metacrawler.fetcher.requests.get", return_value=response):
        result = _sync_fetch("https://example.com/file", "ua", 5)

    assert result.body == ""
    assert result.content_type == "application/pdf"
    response.iter_content.assert_not_called()


def test_redirect_location_exposed():
    with patch("metacrawler.fetcher.requests.get", return_value=mock_response(status=301, location="/new")):
        result = _sync_fetch("https://example.com/old", "ua", 5)

    assert result.status_code == 301
    assert result.location == "/new"
    assert result.body == ""


def test_404_raises_not_found():
    with patch("metacrawler.fetcher.requests.get", return_value=mock_response(status=404)):
        with pytest.raises(FetchNotFound) as exc_info:
            _sync_fetch("https://example.com/gone", "ua", 5)

    assert exc_info.value.to_entry() == ErrorEntry(url="https://example.com/gone", code="404", status=404)


@pytest.mark.parametrize("status", [400, 403, 500, 503])
def test_error_status_raises_http_error(status):
    with patch("metacrawler.fetcher.requests.get", return_value=mock_response(status=status)):
        with pytest.raises(FetchHTTPError) as exc_info:
            _sync_fetch("https://example.com/", "ua", 5)

    assert exc_info.value.to_entry() == ErrorEntry(url="https://example.com/", code="fetcherror", status=status)


def test_timeout_maps_to_fetch_timeout():
    with patch("metacrawler.fetcher.requests.get", side_effect=requests.ReadTimeout("read timed out")):
        with pytest.raises(FetchTimeout) as exc_info:
            _sync_fetch("https://example.com/", "ua", 5)

    assert exc_info.value.to_entry() == ErrorEntry(url="https://example.com/", code="timeout")


def test_connection_refused_carries_errno_name():
    refused = ConnectionRefusedError(errno.ECONNREFUSED, "Connection refused")
    with patch("metacrawler.fetcher.requests.get", side_effect=requests.ConnectionError(refused)):
        with pytest.raises(FetchClientError) as exc_info:
            _sync_fetch("https://example.com/", "ua", 5)

    assert exc_info.value.to_entry() == ErrorEntry(url="https://example.com/", code="client:ECONNREFUSED")


def test_error_code_found_through_cause_chain():
    try:
        try:
            raise OSError(errno.ECONNRESET, "reset")
        except OSError as inner:
            raise requests.ConnectionError("wrapped") from inner
    except requests.ConnectionError as exc:
        assert _error_code(exc) == "ECONNRESET"


def test_error_code_unknown_without_errno():
    assert _error_code(requests.TooManyRedirects("loop")) == "unknown"


def test_body_without_charset_header_uses_meta_charset():
    html = '<html><head><meta charset="utf-8"><title>日本語のタイトル</title></head></html>'
    response = mock_response(content_type="text/html", body=html.encode("utf-8"))
    with patch("metacrawler.fetcher.requests.get", return_value=response):
        result = _sync_fetch("https://example.com/", "ua", 5)

    assert "<title>日本語のタイトル</title>" in result.body


def test_charset_header_wins():
    response = mock_response(content_type="text/html; charset=ISO-8859-1", body=b"<title>caf\xe9</title>")
    with patch("metacrawler.fetcher.requests.get", return_value=response):
        result = _sync_fetch("https://example.com/", "ua", 5)

    assert result.body == "<title>café</title>"


def test_body_read_stops_at_byte_ceiling():
    served = []

    def chunks(chunk_size=1):
        for _ in range(5):
            served.append(chunk_size)
            yield b"a" * 8

    response = mock_response()
    response.iter_content.side_effect = chunks
    with patch("metacrawler.fetcher.MAX_CONTENT_BYTES", 10), \
         patch("metacrawler.fetcher.requests.get", return_value=response):
        result = _sync_fetch("https://example.com/", "ua", 5)

    assert result.body == "a" * 10
    assert len(served) == 2


# --- robots.txt ---

def test_robots_requested_with_crawl_user_agent_and_timeout():
    robots = RobotsCache("Bot/2.0", 3.5)
    with patch("metacrawler.fetcher.requests.get", return_value=robots_response(404)) as get:
        assert robots.allowed("https://example.com:8443/admin") is True

    get.assert_called_once_with(
        "https://example.com:8443/robots.txt", headers={"User-Agent": "Bot/2.0"}, timeout=3.5,
    )


def test_robots_rules_consulted():
    rules = "User-agent: *\nDisallow: /admin\n"
    robots = RobotsCache("Bot/1.0", 5)
    with patch("metacrawler.fetcher.requests.get", return_value=robots_response(200, rules)):
        assert robots.allowed("https://example.com/admin/users") is False
        assert robots.allowed("https://example.com/blog") is True


def test_robots_rules_for_named_agent():
    rules = "User-agent: Bot\nDisallow: /\n\nUser-agent: *\nAllow: /\n"
    with patch("metacrawler.fetcher.requests.get", return_value=robots_response(200, rules)):
        assert RobotsCache("Bot/1.0", 5).allowed("https://example.com/") is False
        assert RobotsCache("Other/1.0", 5).allowed("https://example.com/") is True


@pytest.mark.parametrize("status", [401, 403, 404, 410])
def test_robots_client_error_means_no_rules(status):
    with patch("metacrawler.fetcher.requests.get", return_value=robots_response(status)):
        assert RobotsCache("Bot/1.0", 5).allowed("https://example.com/page") is True


def test_robots_forbidden_is_logged(caplog):
    with patch("metacrawler.fetcher.requests.get", return_value=robots_response(403)):
        RobotsCache("Bot/1.0", 5).allowed("https://example.com/page")
    assert "answered 403 to Bot/1.0" in caplog.text


@pytest.mark.parametrize("outcome", [
    requests.ConnectTimeout("slow"),
    requests.ConnectionError("refused"),
    robots_response(503),
])
def test_robots_unreachable_means_allowed(outcome):
    kwargs = {"side_effect": outcome} if isinstance(outcome, Exception) else {"return_value": outcome}
    with patch("metacrawler.fetcher.requests.get", **kwargs):
        assert RobotsCache("Bot/1.0", 5).allowed("https://example.com/anything") is True


def test_robots_fetched_once_per_origin():
    rules = "User-agent: *\nDisallow: /private\n"
    robots = RobotsCache("Bot/1.0", 5)
    with patch("metacrawler.fetcher.requests.get", return_value=robots_response(200, rules)) as get:
        for path in ("/", "/a", "/private/b", "/c"):
            robots.allowed(f"https://example.com{path}")
        robots.allowed("https://example.com:8080/")

    assert [c.args[0] for c in get.call_args_list] == [
        "https://example.com/robots.txt",
        "https://example.com:8080/robots.txt",
    ]


@pytest.mark.asyncio
async def test_fetch_page_blocked_by_robots():
    robots = MagicMock()
    robots.allowed.return_value = False
    with patch("metacrawler.fetcher._sync_fetch") as sync_fetch:
        with pytest.raises(RobotsDisallowed):
            await fetch_page("https://example.com/private", robots=robots)

    robots.allowed.assert_called_once_with("https://example.com/private")
    sync_fetch.assert_not_called()


@pytest.mark.asyncio
async def test_fetch_page_skips_robots_when_disabled():
    with patch("metacrawler.fetcher.RobotsCache") as cache, \
         patch("metacrawler.fetcher.requests.get", return_value=mock_response()):
        result = await fetch_page("https://example.com/", respect_robots=False)

    cache.assert_not_called()
    assert result.status_code == 200


def test_make_fetcher_binds_config():
    cfg = CrawlConfig(
        start_url="https://example.com/", domain="example.com",
        timeout_ms=1500, user_agent="Bot/2.0", respect_robots=True,
    )
    fetcher = make_fetcher(cfg)
    keywords = dict(fetcher.keywords)
    robots = keywords.pop("robots")
    assert keywords == {"user_agent": "Bot/2.0", "timeout": 1.5, "respect_robots": True}
    assert isinstance(robots, RobotsCache)
    assert (robots.user_agent, robots.timeout) == ("Bot/2.0", 1.5)


def test_each_fetcher_gets_its_own_robots_cache():
    cfg = CrawlConfig(start_url="https://example.com/", domain="example.com")
    assert make_fetcher(cfg).keywords["robots"] is not make_fetcher(cfg).keywords["robots"]
    assert make_fetcher(replace(cfg, respect_robots=False)).keywords["robots"] is None


@pytest.mark.asyncio
async def test_crawl_not_emptied_by_robots_rule_for_other_agents():
    def serve(url, headers=None, **kwargs):
        if url.endswith("/robots.txt"):
            # blocks generic library clients, not the crawler's own agent
            blocked = headers["User-Agent"].startswith("Python-urllib")
            return robots_response(403 if blocked else 404)
        return mock_response(text="<html><head><title>Home</title></head></html>")

    cfg = CrawlConfig(start_url="https://example.com/", domain="example.com", interval_ms=0, timeout_ms=2000)
    with patch("metacrawler.fetcher.requests.get", side_effect=serve) as get:
        collector = await crawl(cfg)

    assert collector.counts() == {"results": 1, "skipped": 0, "errors": 0}
    assert collector.results[0].title == "Home"
    assert all(c.kwargs["headers"]["User-Agent"] == cfg.user_agent for c in get.call_args_list)
