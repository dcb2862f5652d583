"""
Prediction-market data fetchers.

Polymarket (gamma / CLOB / data APIs) and Kalshi (trade API v2) each have a
fetcher returning the same MarketPayload; MarketRouter picks one from the
market URL.
"""

import json
import time
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Protocol
from urllib.parse import urlsplit

import requests
from requests.exceptions import RequestException

from forecaster.config import Settings
from forecaster.errors import ProviderError
from forecaster.logging import logger
from forecaster.schemas.market import (
    MarketFacts,
    MarketPayload,
    OutcomeQuote,
    PriceHistory,
    PricePoint,
    TradePrint,
)


# History bucket size in minutes per interval label
INTERVAL_FIDELITY = {
    "1h": 60,
    "4h": 240,
    "1d": 1440,
}

# Kalshi candlesticks only come in 1m / 60m / 1440m periods
KALSHI_PERIODS = {
    "1h": 60,
    "4h": 60,
    "1d": 1440,
}

KALSHI_LOOKBACK_DAYS = {
    "1h": 7,
    "4h": 30,
    "1d": 365,
}

PLATFORM_HOSTS = {
    "polymarket": "polymarket.com",
    "kalshi": "kalshi.com",
}

# Malformed or unexpectedly shaped responses surface as one of these
PAYLOAD_ERRORS = (RequestException, ValueError, KeyError, TypeError, AttributeError, IndexError)


class MarketDataFetcher(Protocol):
    def fetch(
        self,
        url: str,
        history_interval: str = "1d",
        with_books: bool = True,
        with_trades: bool = False,
    ) -> MarketPayload: ...


# -----------------------------
# Utilities
# -----------------------------

def _split(url: str):
    try:
        return urlsplit(url.strip())
    except ValueError as e:
        raise ValueError(f"Invalid market URL: {url}") from e


def detect_platform(url: str) -> str:
    """'polymarket' or 'kalshi' from the URL host."""
    host = (_split(url).hostname or "").lower()
    for platform, domain in PLATFORM_HOSTS.items():
        if host == domain or host.endswith("." + domain):
            return platform
    raise ValueError(
        f"Unsupported market platform: {host or url}. Only Polymarket and Kalshi URLs are supported."
    )


def parse_market_slug(url: str) -> str:
    """Market slug from a polymarket.com URL (``/event/<slug>[/<market>]``)."""
    if detect_platform(url) != "polymarket":
        raise ValueError(f"Not a Polymarket URL: {url}")

    segments = [s for s in _split(url).path.split("/") if s]
    if len(segments) >= 2 and segments[0] in ("event", "market"):
        return segments[-1]
    raise ValueError(f"No market slug in URL: {url}")


def parse_kalshi_ticker(url: str) -> Dict[str, str]:
    """
    Series and market/event ticker from a kalshi.com URL.

    ``/markets/{series}/{category}/{ticker}`` and ``/markets/{ticker}`` are
    both accepted; tickers are upper-cased.
    """
    if detect_platform(url) != "kalshi":
        raise ValueError(f"Not a Kalshi URL: {url}")

    segments = [s for s in _split(url).path.split("/") if s]
    if len(segments) < 2 or segments[0] != "markets":
        raise ValueError(f"No market ticker in URL: {url}")

    ticker = segments[-1].upper()
    series = segments[1].upper() if len(segments) >= 3 else ticker.split("-")[0]
    return {"series": series, "ticker": ticker}


def _json_list(value: Any) -> List[Any]:
    """Gamma encodes some list fields as JSON strings."""
    if isinstance(value, list):
        return value
    if isinstance(value, str) and value:
        try:
            parsed = json.loads(value)
        except ValueError:
            return []
        return parsed if isinstance(parsed, list) else []
    return []


def _float(value: Any) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _cents(value: Any) -> Optional[float]:
    v = _float(value)
    return v / 100 if v is not None else None


def _mid(bid: Optional[float], ask: Optional[float], last: Optional[float]) -> Optional[float]:
    if bid is not None and ask is not None:
        return (bid + ask) / 2
    return last


def _epoch(value: Any) -> Optional[int]:
    if isinstance(value, (int, float)):
        return int(value)
    if not isinstance(value, str) or not value:
        return None
    try:
        return int(datetime.fromisoformat(value.replace("Z", "+00:00")).timestamp())
    except ValueError:
        return None


def _get_json(url: str, params: Dict[str, Any], timeout: float) -> Any:
    response = requests.get(url, params=params, timeout=timeout)
    response.raise_for_status()
    return response.json()


# -----------------------------
# Polymarket
# -----------------------------

class PolymarketFetcher:

    def __init__(
        self,
        gamma_url: str,
        clob_url: str,
        data_api_url: str,
        timeout: float = 15.0,
    ):
        self.gamma_url = gamma_url.rstrip("/")
        self.clob_url = clob_url.rstrip("/")
        self.data_api_url = data_api_url.rstrip("/")
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "PolymarketFetcher":
        return cls(
            settings.market_api_url,
            settings.market_clob_url,
            settings.market_data_api_url,
            settings.market_timeout_seconds,
        )

    def _get(self, url: str, params: Dict[str, Any]) -> Any:
        return _get_json(url, params, self.timeout)

    def _find_market(self, slug: str) -> Dict[str, Any]:
        markets = self._get(f"{self.gamma_url}/markets", {"slug": slug})
        if isinstance(markets, list) and markets:
            return markets[0]

        events = self._get(f"{self.gamma_url}/events", {"slug": slug})
        if isinstance(events, list) and events:
            event_markets = events[0].get("markets") or []
            if event_markets:
                # Highest-volume market of the event
                return max(event_markets, key=lambda m: _float(m.get("volume")) or 0.0)

        raise ProviderError(f"market not found: {slug}")

    def _book_top(self, token_id: str) -> Dict[str, Optional[float]]:
        book = self._get(f"{self.clob_url}/book", {"token_id": token_id})
        bids = sorted(book.get("bids") or [], key=lambda o: _float(o.get("price")) or 0.0, reverse=True)
        asks = sorted(book.get("asks") or [], key=lambda o: _float(o.get("price")) or 1.0)
        top_bid = bids[0] if bids else {}
        top_ask = asks[0] if asks else {}
        return {
            "bid": _float(top_bid.get("price")),
            "ask": _float(top_ask.get("price")),
            "top_bid_size": _float(top_bid.get("size")),
            "top_ask_size": _float(top_ask.get("size")),
        }

    def _history(self, token_id: str, interval: str) -> PriceHistory:
        payload = self._get(
            f"{self.clob_url}/prices-history",
            {
                "market": token_id,
                "interval": "max",
                "fidelity": INTERVAL_FIDELITY.get(interval, 1440),
            },
        )
        points = [
            PricePoint(t=int(p["t"]), p=float(p["p"]))
            for p in payload.get("history") or []
            if "t" in p and "p" in p
        ]
        return PriceHistory(token_id=token_id, points=points)

    def _trades(self, condition_id: str) -> List[TradePrint]:
        rows = self._get(f"{self.data_api_url}/trades", {"market": condition_id, "limit": 50})
        return [
            TradePrint(
                price=float(r["price"]),
                size=float(r.get("size") or 0.0),
                side=r.get("side"),
                timestamp=r.get("timestamp"),
            )
            for r in rows or []
            if r.get("price") is not None
        ]

    def fetch(
        self,
        url: str,
        history_interval: str = "1d",
        with_books: bool = True,
        with_trades: bool = False,
    ) -> MarketPayload:
        try:
            slug = parse_market_slug(url)
        except ValueError as e:
            raise ProviderError(str(e)) from e

        logger.info(
            "MARKET_FETCH_START",
            extra={"platform": "polymarket", "slug": slug, "interval": history_interval, "with_books": with_books},
        )

        try:
            market = self._find_market(slug)

            outcomes = [str(o) for o in _json_list(market.get("outcomes"))]
            prices = [_float(p) for p in _json_list(market.get("outcomePrices"))]
            token_ids = [str(t) for t in _json_list(market.get("clobTokenIds"))]
            token_map = dict(zip(outcomes, token_ids))

            quotes = []
            for i, outcome in enumerate(outcomes):
                token_id = token_ids[i] if i < len(token_ids) else None
                last = prices[i] if i < len(prices) else None
                top = (
                    self._book_top(token_id)
                    if with_books and token_id
                    else {"bid": None, "ask": None, "top_bid_size": None, "top_ask_size": None}
                )
                quotes.append(
                    OutcomeQuote(
                        token_id=token_id,
                        outcome=outcome,
                        mid=_mid(top["bid"], top["ask"], last),
                        **top,
                    )
                )

            history = [self._history(t, history_interval) for t in token_ids]
            trades = (
                self._trades(market["conditionId"])
                if with_trades and market.get("conditionId")
                else []
            )

            facts = MarketFacts(
                question=market.get("question") or slug,
                volume=_float(market.get("volumeNum", market.get("volume"))),
                liquidity=_float(market.get("liquidityNum", market.get("liquidity"))),
                close_time=market.get("endDate"),
                resolution_source=market.get("resolutionSource") or None,
                token_map=token_map,
            )
        except PAYLOAD_ERRORS as e:
            logger.error("MARKET_FETCH_FAILED", extra={"platform": "polymarket", "slug": slug, "error": str(e)})
            raise ProviderError(f"market data fetch failed for {slug}: {e}") from e

        payload = MarketPayload(
            platform="polymarket",
            market_facts=facts,
            market_state_now=quotes,
            history=history,
            recent_trades=trades,
        )

        logger.info(
            "MARKET_FETCH_END",
            extra={"platform": "polymarket", "slug": slug, "outcomes": len(quotes), "mid": payload.current_mid()},
        )
        return payload


# -----------------------------
# Kalshi
# -----------------------------

class KalshiFetcher:
    """
    Kalshi public market data. Prices arrive in cents and are converted to
    probabilities; every market is a binary Yes/No pair.
    """

    def __init__(
        self,
        api_url: str,
        timeout: float = 15.0,
        clock: Callable[[], float] = time.time,
    ):
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.clock = clock

    @classmethod
    def from_settings(cls, settings: Settings) -> "KalshiFetcher":
        return cls(settings.kalshi_api_url, settings.market_timeout_seconds)

    def _get(self, url: str, params: Dict[str, Any]) -> Any:
        return _get_json(url, params, self.timeout)

    def _find_market(self, ticker: str) -> Dict[str, Any]:
        # Event URLs list several markets; pick the most traded one
        listing = self._get(f"{self.api_url}/markets", {"event_ticker": ticker})
        markets = listing.get("markets") or []
        if markets:
            return max(markets, key=lambda m: _float(m.get("volume")) or 0.0)

        single = self._get(f"{self.api_url}/markets/{ticker}", {})
        market = single.get("market")
        if not market:
            raise ProviderError(f"market not found: {ticker}")
        return market

    def _quotes(self, market: Dict[str, Any], with_books: bool) -> List[OutcomeQuote]:
        ticker = market["ticker"]
        yes = {"bid": _cents(market.get("yes_bid")), "ask": _cents(market.get("yes_ask")),
               "top_bid_size": None, "top_ask_size": None}
        no = {"bid": _cents(market.get("no_bid")), "ask": _cents(market.get("no_ask")),
              "top_bid_size": None, "top_ask_size": None}

        if with_books:
            book = self._get(f"{self.api_url}/markets/{ticker}/orderbook", {}).get("orderbook") or {}
            # Both sides are bid ladders; a NO bid at p is a YES ask at 1 - p
            yes_levels = book.get("yes") or []
            no_levels = book.get("no") or []
            if yes_levels:
                price, size = max(yes_levels, key=lambda level: level[0])
                yes.update(bid=price / 100, top_bid_size=float(size))
                no.update(ask=1 - price / 100, top_ask_size=float(size))
            if no_levels:
                price, size = max(no_levels, key=lambda level: level[0])
                no.update(bid=price / 100, top_bid_size=float(size))
                yes.update(ask=1 - price / 100, top_ask_size=float(size))

        last = _cents(market.get("last_price"))
        return [
            OutcomeQuote(token_id=f"{ticker}:yes", outcome="Yes", mid=_mid(yes["bid"], yes["ask"], last), **yes),
            OutcomeQuote(
                token_id=f"{ticker}:no",
                outcome="No",
                mid=_mid(no["bid"], no["ask"], 1 - last if last is not None else None),
                **no,
            ),
        ]

    def _history(self, series: str, ticker: str, interval: str) -> PriceHistory:
        end = int(self.clock())
        start = end - KALSHI_LOOKBACK_DAYS.get(interval, 365) * 86400
        payload = self._get(
            f"{self.api_url}/series/{series}/markets/{ticker}/candlesticks",
            {"start_ts": start, "end_ts": end, "period_interval": KALSHI_PERIODS.get(interval, 1440)},
        )
        points = []
        for candle in payload.get("candlesticks") or []:
            close = (candle.get("price") or {}).get("close")
            if close is None:
                close = (candle.get("yes_bid") or {}).get("close")
            if close is None or "end_period_ts" not in candle:
                continue
            points.append(PricePoint(t=int(candle["end_period_ts"]), p=float(close) / 100))
        return PriceHistory(token_id=f"{ticker}:yes", points=points)

    def _trades(self, ticker: str) -> List[TradePrint]:
        rows = self._get(f"{self.api_url}/markets/trades", {"ticker": ticker, "limit": 50}).get("trades") or []
        return [
            TradePrint(
                price=float(r["yes_price"]) / 100,
                size=float(r.get("count") or 0.0),
                side=r.get("taker_side"),
                timestamp=_epoch(r.get("created_time")),
            )
            for r in rows
            if r.get("yes_price") is not None
        ]

    def fetch(
        self,
        url: str,
        history_interval: str = "1d",
        with_books: bool = True,
        with_trades: bool = False,
    ) -> MarketPayload:
        try:
            parsed = parse_kalshi_ticker(url)
        except ValueError as e:
            raise ProviderError(str(e)) from e
        ticker = parsed["ticker"]

        logger.info(
            "MARKET_FETCH_START",
            extra={"platform": "kalshi", "slug": ticker, "interval": history_interval, "with_books": with_books},
        )

        try:
            market = self._find_market(ticker)
            market_ticker = market["ticker"]
            quotes = self._quotes(market, with_books)
            history = [self._history(parsed["series"], market_ticker, history_interval)]
            trades = self._trades(market_ticker) if with_trades else []

            title = market.get("title") or market_ticker
            subtitle = market.get("yes_sub_title")
            facts = MarketFacts(
                question=f"{title} ({subtitle})" if subtitle and subtitle not in title else title,
                volume=_float(market.get("volume")),
                liquidity=_cents(market.get("liquidity")),
                close_time=market.get("close_time"),
                resolution_source=market.get("rules_primary") or None,
                token_map={"Yes": f"{market_ticker}:yes", "No": f"{market_ticker}:no"},
            )
        except PAYLOAD_ERRORS as e:
            logger.error("MARKET_FETCH_FAILED", extra={"platform": "kalshi", "slug": ticker, "error": str(e)})
            raise ProviderError(f"market data fetch failed for {ticker}: {e}") from e

        payload = MarketPayload(
            platform="kalshi",
            market_facts=facts,
            market_state_now=quotes,
            history=history,
            recent_trades=trades,
        )

        logger.info(
            "MARKET_FETCH_END",
            extra={"platform": "kalshi", "slug": market_ticker, "outcomes": len(quotes), "mid": payload.current_mid()},
        )
        return payload


# -----------------------------
# Dispatch
# -----------------------------

class MarketRouter:
    """Detects the platform from the URL and delegates to its fetcher."""

    def __init__(self, fetchers: Dict[str, MarketDataFetcher]):
        self.fetchers = fetchers

    @classmethod
    def from_settings(cls, settings: Settings) -> "MarketRouter":
        return cls({
            "polymarket": PolymarketFetcher.from_settings(settings),
            "kalshi": KalshiFetcher.from_settings(settings),
        })

    def fetch(
        self,
        url: str,
        history_interval: str = "1d",
        with_books: bool = True,
        with_trades: bool = False,
    ) -> MarketPayload:
        try:
            platform = detect_platform(url)
        except ValueError as e:
            raise ProviderError(str(e)) from e

        fetcher = self.fetchers.get(platform)
        if fetcher is None:
            raise ProviderError(f"no market fetcher configured for {platform}")
        return fetcher.fetch(url, history_interval, with_books, with_trades)
