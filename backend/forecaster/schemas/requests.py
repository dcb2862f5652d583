from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class ForecastRequest(BaseModel):
    """Body of POST /forecast."""
    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "market_url": "https://polymarket.com/event/fed-decision-in-december",
                    "drivers": None,
                    "history_interval": None,
                },
                {
                    "market_url": "https://kalshi.com/markets/kxfed/fed-decision/KXFED-25DEC",
                    "with_trades": True,
                },
            ]
        }
    )

    market_url: str = Field(..., min_length=1, description="Polymarket or Kalshi market URL")
    drivers: Optional[List[str]] = Field(None, description="Forecast drivers; generated when omitted")
    history_interval: Optional[Literal["1h", "4h", "1d"]] = None
    with_books: bool = True
    with_trades: bool = False
    search_api_key: Optional[str] = Field(None, description="Overrides the configured search key")
