"""Data models for CoinGecko market data."""

from dataclasses import dataclass
from datetime import datetime, timezone


@dataclass
class MarketQuote:
    """A point-in-time quote for one coin from /coins/markets."""

    id: str
    symbol: str
    name: str
    current_price: float | None
    price_change_24h: float | None
    price_change_percentage_24h: float | None
    market_cap: float | None
    total_volume: float | None
    high_24h: float | None
    low_24h: float | None
    ath: float | None
    ath_date: str | None
    atl: float | None
    atl_date: str | None
    circulating_supply: float | None
    max_supply: float | None
    image: str | None

    @classmethod
    def from_api(cls, data: dict) -> "MarketQuote":
        return cls(
            id=data.get("id", ""),
            symbol=data.get("symbol", ""),
            name=data.get("name", ""),
            current_price=data.get("current_price"),
            price_change_24h=data.get("price_change_24h"),
            price_change_percentage_24h=data.get("price_change_percentage_24h"),
            market_cap=data.get("market_cap"),
            total_volume=data.get("total_volume"),
            high_24h=data.get("high_24h"),
            low_24h=data.get("low_24h"),
            ath=data.get("ath"),
            ath_date=data.get("ath_date"),
            atl=data.get("atl"),
            atl_date=data.get("atl_date"),
            circulating_supply=data.get("circulating_supply"),
            max_supply=data.get("max_supply"),
            image=data.get("image"),
        )


@dataclass
class OhlcCandle:
    """Single OHLC data point. CoinGecko's OHLC endpoint carries no volume."""

    timestamp: int  # Unix milliseconds (start of period)
    open: float
    high: float
    low: float
    close: float

    @classmethod
    def from_api(cls, row: list) -> "OhlcCandle":
        timestamp, open_, high, low, close = row[:5]
        return cls(
            timestamp=int(timestamp),
            open=float(open_),
            high=float(high),
            low=float(low),
            close=float(close),
        )

    @property
    def time(self) -> datetime:
        return datetime.fromtimestamp(self.timestamp / 1000, tz=timezone.utc)
