import pytest
import requests

import stockdata.quotes as quotes
from stockdata.quotes import QuoteClient, TokenBucket


pytestmark = pytest.mark.alpaca_optional


def _make_response(status_code, payload=None, json_error=None):
    class DummyResponse:
        def __init__(self):
            self.status_code = status_code

        def json(self):
            if json_error is not None:
                raise json_error
            return payload

        def raise_for_status(self):
            if 400 <= self.status_code < 600:
                raise requests.HTTPError(f"status={self.status_code}")

    return DummyResponse()


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def get(self, url, params=None, timeout=None):
        self.calls.append((url, params, timeout))
        if self.error is not None:
            raise self.error
        if callable(self.response):
            return self.response(url)
        return self.response


@pytest.fixture(autouse=True)
def _no_env_key(monkeypatch):
    monkeypatch.delenv("FINANCIAL_MODELING_PREP_API_KEY", raising=False)
    monkeypatch.delenv("FMP_API_KEY", raising=False)


def test_missing_api_key_returns_none_without_request():
    session = FakeSession(_make_response(200, [{"price": 1}]))

    assert QuoteClient(session=session).fetch_quote("AAPL") is None
    assert session.calls == []


def test_missing_symbol_returns_none():
    session = FakeSession(_make_response(200, [{"price": 1}]))

    assert QuoteClient("key", session=session).fetch_quote("") is None
    assert QuoteClient("key", session=session).fetch_quote(None) is None
    assert session.calls == []


def test_non_string_symbol_is_coerced():
    session = FakeSession(_make_response(200, [{"price": 4.2}]))

    assert QuoteClient("key", session=session).fetch_quote(123) == {"price": 4.2}
    assert session.calls[0][0].endswith("/quote/123")


def test_successful_quote_returns_first_element(monkeypatch):
    monkeypatch.setenv("FINANCIAL_MODELING_PREP_API_KEY", "env-key")
    session = FakeSession(_make_response(200, [{"price": 101.5}, {"price": 1}]))

    quote = QuoteClient(session=session).fetch_quote("aapl")

    assert quote == {"price": 101.5}
    url, params, timeout = session.calls[0]
    assert url == "https://financialmodelingprep.com/api/v3/quote/AAPL"
    assert params == {"apikey": "env-key"}
    assert timeout == 10.0


@pytest.mark.parametrize(
    "response",
    [
        _make_response(500, {"error": "boom"}),
        _make_response(200, []),
        _make_response(200, None),
        _make_response(200, {"price": 1}),
        _make_response(200, json_error=ValueError("not json")),
    ],
    ids=["http-500", "empty-list", "empty-body", "not-a-list", "bad-json"],
)
def test_failed_lookups_return_none(response):
    assert QuoteClient("key", session=FakeSession(response)).fetch_quote("AAPL") is None


def test_transport_error_returns_none():
    session = FakeSession(error=requests.ConnectionError("unreachable"))

    assert QuoteClient("key", session=session).fetch_quote("AAPL") is None


def test_fetch_quotes_skips_symbols_without_quotes():
    def respond(url):
        if url.endswith("/MSFT"):
            return _make_response(200, [])
        return _make_response(200, [{"symbol": url.rsplit("/", 1)[-1], "price": 10.0}])

    client = QuoteClient("key", session=FakeSession(respond))

    result = client.fetch_quotes(["aapl", "MSFT", "tsla", "AAPL"], max_workers=2)

    assert result == {
        "AAPL": {"symbol": "AAPL", "price": 10.0},
        "TSLA": {"symbol": "TSLA", "price": 10.0},
    }


def test_module_level_fetch_quote_uses_shared_client(monkeypatch):
    monkeypatch.setattr(quotes, "_default_client", QuoteClient("key", session=FakeSession(_make_response(200, [{"price": 5}]))))

    assert quotes.fetch_quote("SPY") == {"price": 5}


def test_token_bucket_waits_when_full():
    now = [0.0]
    sleeps = []

    def fake_sleep(seconds):
        sleeps.append(seconds)
        now[0] += 30

    bucket = TokenBucket(2, clock=lambda: now[0], sleep=fake_sleep)
    bucket.acquire()
    bucket.acquire()
    bucket.acquire()

    assert sleeps
    assert now[0] >= 60
