"""
Redis-backed forecast store.

Cards are written once per run as versioned records and read back through
``migrate_record`` so legacy rows come out in the current shape.
"""

import json
from typing import Optional

import redis

from forecaster.config import Settings, get_settings
from forecaster.logging import logger
from forecaster.schemas.evidence import ForecastCard
from forecaster.schemas.records import ForecastRecord, migrate_record


REDIS_KEY_PREFIX = "forecaster:forecast:"


class ForecastStore:

    def __init__(self, client: "redis.Redis", ttl_seconds: int):
        self._client = client
        self._ttl = ttl_seconds

    @classmethod
    def from_settings(cls, settings: Settings) -> "ForecastStore":
        return cls(
            redis.from_url(settings.redis_url, decode_responses=True),
            settings.forecast_ttl_seconds,
        )

    def _key(self, forecast_id: str) -> str:
        return f"{REDIS_KEY_PREFIX}{forecast_id}"

    def ping(self) -> bool:
        return bool(self._client.ping())

    def save(
        self,
        forecast_id: str,
        card: ForecastCard,
        market_url: Optional[str] = None,
    ) -> bool:
        """Write a card once. Returns False if the id is already taken."""
        record = ForecastRecord(
            forecast_id=forecast_id,
            market_url=market_url,
            card=card,
        )
        created = self._client.set(
            self._key(forecast_id),
            record.model_dump_json(),
            ex=self._ttl,
            nx=True,
        )
        logger.info(
            "FORECAST_SAVED",
            extra={"forecast_id": forecast_id, "inserted": bool(created)},
        )
        return bool(created)

    def get(self, forecast_id: str) -> Optional[ForecastRecord]:
        data = self._client.get(self._key(forecast_id))
        if data is None:
            logger.debug("FORECAST_NOT_FOUND", extra={"forecast_id": forecast_id})
            return None
        raw = json.loads(data)
        raw.setdefault("forecast_id", forecast_id)
        return migrate_record(raw)


_forecast_store: Optional[ForecastStore] = None


def get_forecast_store() -> ForecastStore:
    """Get or create the ForecastStore singleton."""
    global _forecast_store
    if _forecast_store is None:
        _forecast_store = ForecastStore.from_settings(get_settings())
    return _forecast_store
