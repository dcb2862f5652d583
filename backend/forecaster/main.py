"""
Forecaster FastAPI Application
"""

import asyncio
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.responses import StreamingResponse
from redis.exceptions import RedisError

from forecaster.config import get_settings
from forecaster.logging import configure_logging, logger
from forecaster.schemas.events import ProgressEvent
from forecaster.schemas.requests import ForecastRequest
from forecaster.services.progress import QueueSink
from forecaster.services.store import get_forecast_store
from forecaster.tasks import build_pipeline_deps, run_forecast


configure_logging()


# --- Lifespan ---
@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("FORECASTER_STARTUP")
    try:
        get_forecast_store().ping()
        logger.info("REDIS_CONNECTED")
    except RedisError as e:
        logger.error("REDIS_UNAVAILABLE", extra={"error": str(e)})
    yield
    logger.info("FORECASTER_SHUTDOWN")


app = FastAPI(
    title="Forecaster API",
    description="Evidence-weighted probabilistic forecasts for prediction markets",
    version="1.0.0",
    lifespan=lifespan,
)


# --- Endpoints ---

@app.get("/health")
async def health():
    return {"status": "healthy", "service": "forecaster"}


@app.post("/forecast")
async def forecast(request: ForecastRequest):
    """Run a forecast and stream progress as Server-Sent Events."""
    run_id = str(uuid.uuid4())
    queue: "asyncio.Queue[ProgressEvent]" = asyncio.Queue()

    try:
        deps = build_pipeline_deps(
            get_settings(),
            sink=QueueSink(queue),
            search_api_key=request.search_api_key,
            session_id=run_id,
        )
    except Exception as e:
        logger.exception("FORECAST_SETUP_FAILED")
        raise HTTPException(status_code=500, detail=str(e))

    task = asyncio.create_task(
        run_forecast(request, deps, store=get_forecast_store(), run_id=run_id)
    )

    async def event_stream():
        try:
            while True:
                event = await queue.get()
                yield event.to_sse()
                if event.is_terminal:
                    break
        finally:
            if not task.done():
                task.cancel()

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@app.get("/forecast/{forecast_id}")
async def get_forecast(forecast_id: str):
    """Stored forecast card, normalized to the current record shape."""
    try:
        record = get_forecast_store().get(forecast_id)
    except (RedisError, ValueError) as e:
        logger.error("FORECAST_READ_FAILED", extra={"forecast_id": forecast_id, "error": str(e)})
        raise HTTPException(status_code=500, detail=str(e))

    if record is None:
        raise HTTPException(status_code=404, detail="Forecast not found or expired")
    return record.model_dump()
