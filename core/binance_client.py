"""
Binance USD-M futures REST client.
Supplies symbols, candle closes, open interest and last price to the monitors.
"""
import asyncio
import logging
import time
from typing import Any, List, Optional, Tuple

import aiohttp

logger = logging.getLogger(__name__)


class ExchangeDataError(Exception):
    """Transient failure fetching or parsing exchange data."""


class BinanceFuturesClient:
    """
    Thin async wrapper over the public Binance futures endpoints.

    Every failure (network, HTTP status, malformed payload) is raised as
    ExchangeDataError so callers can skip the symbol for the current tick.
    """

    def __init__(self, rest_url: str = "https://fapi.binance.com", timeout: int = 10):
        """Initialize the client."""
        self.rest_url = rest_url.rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session: Optional[aiohttp.ClientSession] = None

    async def _ensure_session(self):
        """Ensure aiohttp session exists."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)

    async def close(self):
        """Close the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()

    async def _get(self, path: str, params: Optional[dict] = None) -> Any:
        await self._ensure_session()
        url = f"{self.rest_url}{path}"
        try:
            async with self._session.get(url, params=params) as response:
                if response.status != 200:
                    body = await response.text()
                    raise ExchangeDataError(f"GET {path} failed: HTTP {response.status} {body[:200]}")
                return await response.json()
        except aiohttp.ClientError as e:
            raise ExchangeDataError(f"GET {path} failed: {e}") from e
        except asyncio.TimeoutError as e:
            raise ExchangeDataError(f"GET {path} timed out") from e
        except ValueError as e:
            # 200 with a body that is not JSON
            raise ExchangeDataError(f"GET {path} returned invalid JSON: {e}") from e

    async def list_tradable_symbols(self) -> List[str]:
        """USDT-margined perpetual contracts currently trading."""
        data = await self._get("/fapi/v1/exchangeInfo")
        if not isinstance(data, dict) or not isinstance(data.get("symbols", []), list):
            raise ExchangeDataError("Unexpected exchangeInfo payload")

        symbols = []
        for s in data.get("symbols", []):
            if not isinstance(s, dict) or "symbol" not in s:
                continue
            if (s.get("contractType") == "PERPETUAL" and
                    s.get("quoteAsset") == "USDT" and
                    s.get("status") == "TRADING"):
                symbols.append(s["symbol"])
        return symbols

    async def get_two_candle_closes(self, symbol: str, time_frame: str) -> Tuple[float, float]:
        """
        Close prices of the two latest candles for a timeframe.

        Returns:
            Tuple of (previous_close, current_close)
        """
        klines = await self._get(
            "/fapi/v1/klines",
            params={"symbol": symbol, "interval": time_frame, "limit": 2}
        )
        if not isinstance(klines, list) or len(klines) < 2:
            raise ExchangeDataError(f"Not enough klines received for {symbol} {time_frame}")

        try:
            # Kline row: [open_time, open, high, low, close, ...]
            prev_close = float(klines[0][4])
            curr_close = float(klines[1][4])
        except (IndexError, TypeError, ValueError) as e:
            raise ExchangeDataError(f"Failed to parse klines for {symbol}: {e}") from e

        return prev_close, curr_close

    async def get_open_interest(self, symbol: str) -> float:
        """Current open interest for a symbol (in contracts)."""
        start = time.monotonic()
        data = await self._get("/fapi/v1/openInterest", params={"symbol": symbol})
        logger.debug(f"get_open_interest for {symbol} took {time.monotonic() - start:.3f}s")
        try:
            return float(data["openInterest"])
        except (KeyError, TypeError, ValueError) as e:
            raise ExchangeDataError(f"Failed to parse open interest for {symbol}: {e}") from e

    async def get_current_price(self, symbol: str) -> float:
        """Latest traded price for a symbol."""
        data = await self._get("/fapi/v1/ticker/price", params={"symbol": symbol})
        try:
            return float(data["price"])
        except (KeyError, TypeError, ValueError) as e:
            raise ExchangeDataError(f"Failed to parse price for {symbol}: {e}") from e
