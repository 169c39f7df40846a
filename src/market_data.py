"""CoinMarketCap client returning narrow CoinQuote records."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx

from config import MarketDataConfig, config
from errors import ProviderError
from http_provider import AsyncHTTPProvider
from models import CoinQuote


def quote_from_coin(coin: Dict[str, Any]) -> CoinQuote:
    usd = (coin.get("quote") or {}).get("USD") or {}
    return CoinQuote(
        symbol=coin.get("symbol", ""),
        name=coin.get("name", ""),
        price=float(usd.get("price") or 0.0),
        volume_24h=float(usd.get("volume_24h") or 0.0),
        percent_change_1h=float(usd.get("percent_change_1h") or 0.0),
        percent_change_24h=float(usd.get("percent_change_24h") or 0.0),
        percent_change_7d=float(usd.get("percent_change_7d") or 0.0),
        market_cap=float(usd.get("market_cap") or 0.0),
        rank=coin.get("cmc_rank"),
    )


class MarketDataClient(AsyncHTTPProvider):
    name = "coinmarketcap"

    def __init__(self, settings: Optional[MarketDataConfig] = None, http: Optional[httpx.AsyncClient] = None) -> None:
        self.settings = settings or config.market_data
        super().__init__(http=http, timeout=self.settings.timeout)

    async def _get(self, endpoint: str, params: Dict[str, Any]) -> Any:
        if not self.settings.api_key:
            raise ProviderError(self.name, "COINMARKETCAP_APIKEY is not configured")
        response = await self._send(
            "GET",
            f"{self.settings.base_url}{endpoint}",
            headers={"X-CMC_PRO_API_KEY": self.settings.api_key, "Accept": "application/json"},
            params=params,
        )
        self._raise_for_status(response)
        body = self._json(response) or {}
        return body.get("data")

    async def get_quotes(self, symbols: str) -> List[CoinQuote]:
        """Latest USD quotes for comma-separated symbols, e.g. ``"BTC,ETH"``."""
        data = await self._get(
            "/cryptocurrency/quotes/latest", {"symbol": symbols.upper().replace(" ", ""), "convert": "USD"}
        )
        quotes: List[CoinQuote] = []
        for coin in (data or {}).values():
            # v1 returns one object per symbol; some plans return a list.
            if isinstance(coin, list):
                quotes.extend(quote_from_coin(item) for item in coin[:1])
            else:
                quotes.append(quote_from_coin(coin))
        return quotes

    async def get_top_coins(self, limit: int = 10) -> List[CoinQuote]:
        data = await self._get("/cryptocurrency/listings/latest", {"limit": limit, "convert": "USD"})
        return [quote_from_coin(coin) for coin in data or []]
