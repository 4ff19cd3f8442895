#Description: SSI adapter against a mocked transport: token caching, quote parsing, error mapping.
import json
import math
from datetime import date, datetime, timedelta

import httpx
import pytest

from adapters.ssi_market import SSIMarketAdapter, TokenCache, format_ssi_date
from utils.errors import UpstreamAuthError, UpstreamDataError

AUTH_URL = "https://ssi.test/api/v2/Market/AccessToken"
PRICE_URL = "https://ssi.test/api/v2/Market/DailyStockPrice"
DAY = date(2026, 10, 19)


class FakeSSI:
    def __init__(self, rows=None, auth_body=None, price_body=None, price_status=200):
        self.rows = rows if rows is not None else [{"MatchPrice": "39600", "PerPriceChange": "1.28"}]
        self.auth_body = auth_body or {"status": 200, "data": {"accessToken": "tok-1", "expiresIn": 28800}}
        self.price_body = price_body
        self.price_status = price_status
        self.auth_calls = 0
        self.price_requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("AccessToken"):
            self.auth_calls += 1
            return httpx.Response(200, json=self.auth_body)
        self.price_requests.append(request)
        body = self.price_body if self.price_body is not None else {"data": self.rows}
        return httpx.Response(self.price_status, content=json.dumps(body))


class Clock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


def _adapter(fake, clock=None):
    client = httpx.Client(transport=httpx.MockTransport(fake))
    return SSIMarketAdapter(client=client, token_cache=TokenCache(timedelta(minutes=5)),
                            consumer_id="id", consumer_secret="secret",
                            auth_url=AUTH_URL, price_url=PRICE_URL,
                            clock=clock or Clock(datetime(2026, 10, 19, 3, 0)))


def test_token_is_cached_until_safety_margin():
    fake = FakeSSI()
    clock = Clock(datetime(2026, 10, 19, 3, 0))
    feed = _adapter(fake, clock)
    assert feed.get_token() == "tok-1"
    clock.now += timedelta(minutes=54)
    assert feed.get_token() == "tok-1"
    assert fake.auth_calls == 1
    # fixed 3600s validity minus the 5 minute margin
    clock.now += timedelta(minutes=2)
    feed.get_token()
    assert fake.auth_calls == 2


def test_rejected_credentials_raise_auth_error():
    fake = FakeSSI(auth_body={"status": 401, "message": "Invalid consumer"})
    with pytest.raises(UpstreamAuthError):
        _adapter(fake).get_token()


def test_unreachable_provider_raises_auth_error():
    def boom(request):
        raise httpx.ConnectError("down", request=request)
    feed = SSIMarketAdapter(client=httpx.Client(transport=httpx.MockTransport(boom)),
                            token_cache=TokenCache(), auth_url=AUTH_URL, price_url=PRICE_URL)
    with pytest.raises(UpstreamAuthError):
        feed.get_token()


def test_fetch_quote_parses_first_row():
    fake = FakeSSI()
    quote = _adapter(fake).fetch_quote("FPT", DAY)
    assert quote.symbol == "FPT"
    assert quote.price == 39600.0
    assert quote.change_percent == 1.28
    assert quote.trading_date == DAY

    req = fake.price_requests[0]
    assert req.headers["Authorization"] == "Bearer tok-1"
    assert req.url.params["FromDate"] == "19/10/2026"
    assert req.url.params["ToDate"] == "19/10/2026"
    assert req.url.params["Symbol"] == "FPT"
    assert req.url.params["PageSize"] == "10"


def test_close_price_fallback_and_garbage_price():
    assert _adapter(FakeSSI(rows=[{"ClosePrice": 25000}])).fetch_quote("HPG", DAY).price == 25000.0
    quote = _adapter(FakeSSI(rows=[{"MatchPrice": "n/a"}])).fetch_quote("HPG", DAY)
    assert math.isnan(quote.price)
    assert quote.change_percent is None


def test_zero_match_price_falls_back_to_close_price():
    assert _adapter(FakeSSI(rows=[{"MatchPrice": 0, "ClosePrice": 25000}])).fetch_quote("HPG", DAY).price == 25000.0
    assert _adapter(FakeSSI(rows=[{"MatchPrice": "0", "ClosingPrice": "24900"}])).fetch_quote("HPG", DAY).price == 24900.0
    quote = _adapter(FakeSSI(rows=[{"MatchPrice": 0, "PerPriceChange": 0}])).fetch_quote("HPG", DAY)
    assert quote.price == 0.0
    assert quote.change_percent == 0.0


def test_empty_rows_mean_no_quote():
    assert _adapter(FakeSSI(rows=[])).fetch_quote("FPT", DAY) is None


def test_malformed_payloads_raise_data_error():
    with pytest.raises(UpstreamDataError):
        _adapter(FakeSSI(price_body={"message": "oops"})).fetch_quote("FPT", DAY)
    with pytest.raises(UpstreamDataError):
        _adapter(FakeSSI(rows=[{"Volume": 10}])).fetch_quote("FPT", DAY)
    with pytest.raises(UpstreamDataError):
        _adapter(FakeSSI(price_status=500, price_body={"data": []})).fetch_quote("FPT", DAY)


def test_probe_requests_a_single_row():
    fake = FakeSSI()
    feed = _adapter(fake)
    assert feed.probe_has_data("FPT", DAY) is True
    assert fake.price_requests[-1].url.params["PageSize"] == "1"
    assert _adapter(FakeSSI(rows=[])).probe_has_data("FPT", DAY) is False


def test_format_ssi_date():
    assert format_ssi_date(date(2026, 1, 5)) == "05/01/2026"
