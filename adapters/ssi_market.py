#Description: SSI FastConnect price feed adapter: bearer-token auth with a cached token, per-symbol daily quotes.

import math
from datetime import date, datetime, timedelta
from threading import Lock
from typing import Callable, Optional

import httpx

from models.schemas import AccessToken, Quote
from utils.config import settings
from utils.errors import UpstreamAuthError, UpstreamDataError
from utils.logging import logger
from utils.timeutils import utcnow

PRICE_KEYS = ("MatchPrice", "ClosePrice", "ClosingPrice")
CHANGE_KEYS = ("PerPriceChange", "ChangePercent")


def format_ssi_date(day: date) -> str:
    return day.strftime("%d/%m/%Y")


def _first_present(row: dict, keys, skip_zero: bool = False) -> object:
    for k in keys:
        value = row.get(k)
        if value in (None, ""):
            continue
        # a zero MatchPrice means no match yet in the session
        if skip_zero and _to_float(value) == 0:
            continue
        return value
    return None


def _to_float(raw) -> float:
    try:
        return float(raw)
    except (TypeError, ValueError):
        return float("nan")


class TokenCache:
    """Single-owner holder for the feed's access token. Last writer wins."""

    def __init__(self, safety_margin: timedelta | None = None):
        self.safety_margin = safety_margin or timedelta(seconds=settings.TOKEN_SAFETY_MARGIN_SECONDS)
        self._token: Optional[AccessToken] = None

    def get(self, now: datetime) -> Optional[str]:
        tok = self._token
        if tok and now < tok.expires_at - self.safety_margin:
            return tok.token
        return None

    def store(self, token: str, now: datetime, ttl: timedelta) -> AccessToken:
        self._token = AccessToken(token=token, expires_at=now + ttl)
        return self._token

    def clear(self):
        self._token = None


class SSIMarketAdapter:
    _instance = None
    _lock = Lock()

    def __init__(self, client: httpx.Client | None = None, token_cache: TokenCache | None = None,
                 consumer_id: str | None = None, consumer_secret: str | None = None,
                 auth_url: str | None = None, price_url: str | None = None,
                 clock: Callable[[], datetime] = utcnow):
        self.client = client or httpx.Client(timeout=settings.HTTP_TIMEOUT_SECONDS)
        self.token_cache = token_cache or TokenCache()
        self.consumer_id = consumer_id or settings.SSI_CONSUMER_ID
        self.consumer_secret = consumer_secret or settings.SSI_CONSUMER_SECRET
        self.auth_url = auth_url or settings.SSI_AUTH_URL
        self.price_url = price_url or settings.SSI_PRICE_URL
        self.token_ttl = timedelta(seconds=settings.SSI_TOKEN_TTL_SECONDS)
        self.clock = clock

    @classmethod
    def instance(cls):
        with cls._lock:
            if cls._instance is None:
                cls._instance = SSIMarketAdapter()
        return cls._instance

    def get_token(self) -> str:
        now = self.clock()
        cached = self.token_cache.get(now)
        if cached:
            return cached

        try:
            r = self.client.post(self.auth_url, json={
                "consumerID": self.consumer_id,
                "consumerSecret": self.consumer_secret,
            })
            r.raise_for_status()
            body = r.json()
        except (httpx.HTTPError, ValueError) as e:
            raise UpstreamAuthError(f"SSI auth request failed: {e}") from e

        data = body.get("data") if isinstance(body, dict) else None
        token = data.get("accessToken") if isinstance(data, dict) else None
        if str(body.get("status") if isinstance(body, dict) else "") != "200" or not token:
            raise UpstreamAuthError(f"SSI rejected credentials: {body!r:.200}")

        # Provider expiresIn is not trusted; keep a fixed conservative window
        self.token_cache.store(token, now, self.token_ttl)
        logger.info("SSI access token refreshed")
        return token

    def _get_rows(self, symbol: str, day: date, page_size: int) -> list:
        token = self.get_token()
        day_str = format_ssi_date(day)
        params = {
            "Symbol": symbol,
            "FromDate": day_str,
            "ToDate": day_str,
            "PageIndex": 1,
            "PageSize": page_size,
        }
        try:
            r = self.client.get(self.price_url, params=params, headers={"Authorization": f"Bearer {token}"})
            r.raise_for_status()
            body = r.json()
        except (httpx.HTTPError, ValueError) as e:
            raise UpstreamDataError(f"{symbol}: price request failed: {e}") from e

        if not isinstance(body, dict) or "data" not in body:
            raise UpstreamDataError(f"{symbol}: unexpected payload {body!r:.200}")
        rows = body["data"] or []
        if not isinstance(rows, list):
            raise UpstreamDataError(f"{symbol}: 'data' is not a list")
        return rows

    def fetch_quote(self, symbol: str, day: date) -> Optional[Quote]:
        rows = self._get_rows(symbol, day, page_size=10)
        if not rows:
            logger.debug(f"[{symbol}] no rows for {format_ssi_date(day)}")
            return None

        latest = rows[0]
        if not isinstance(latest, dict):
            raise UpstreamDataError(f"{symbol}: malformed row {latest!r:.200}")
        raw_price = _first_present(latest, PRICE_KEYS, skip_zero=True)
        if raw_price is None:
            raw_price = _first_present(latest, PRICE_KEYS)
        if raw_price is None:
            raise UpstreamDataError(f"{symbol}: no price field, keys={', '.join(latest.keys())}")

        change = _to_float(_first_present(latest, CHANGE_KEYS))
        return Quote(
            symbol=symbol,
            price=_to_float(raw_price),
            change_percent=change if math.isfinite(change) else None,
            trading_date=day,
        )

    def probe_has_data(self, symbol: str, day: date) -> bool:
        return len(self._get_rows(symbol, day, page_size=1)) > 0
