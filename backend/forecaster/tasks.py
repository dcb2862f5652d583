"""
Task runners for the forecaster service.
"""

import asyncio
import traceback
import uuid
from typing import Optional

from redis.exceptions import RedisError

from forecaster.agents.deps import PipelineDeps
from forecaster.agents.orchestrator_graph import build_forecast_graph
from forecaster.agents.state import ForecastState
from forecaster.config import Settings
from forecaster.errors import PipelineFatal
from forecaster.llm.client import build_language_model
from forecaster.logging import logger
from forecaster.schemas.evidence import ForecastCard
from forecaster.schemas.events import ProgressEvent
from forecaster.schemas.requests import ForecastRequest
from forecaster.services.market import MarketRouter
from forecaster.services.progress import BestEffortSink, ProgressSink
from forecaster.services.search import SearchContext, ValyuSearchProvider
from forecaster.services.store import ForecastStore


def build_pipeline_deps(
    settings: Settings,
    sink: Optional[ProgressSink] = None,
    search_api_key: Optional[str] = None,
    session_id: Optional[str] = None,
) -> PipelineDeps:
    """Production collaborators for one run."""
    return PipelineDeps(
        settings=settings,
        llm=build_language_model(settings),
        search=ValyuSearchProvider.from_settings(settings),
        market=MarketRouter.from_settings(settings),
        sink=BestEffortSink(sink),
        search_context=SearchContext(
            api_key=search_api_key or settings.search_api_key,
            session_id=session_id,
            max_results=settings.search_max_results,
        ),
    )


def _error_event(run_id: str, message: str, **details) -> ProgressEvent:
    return ProgressEvent(
        type="error",
        error=message,
        message=message,
        details=details or None,
        session_id=run_id,
    )


async def run_forecast(
    request: ForecastRequest,
    deps: PipelineDeps,
    store: Optional[ForecastStore] = None,
    run_id: Optional[str] = None,
) -> Optional[ForecastCard]:
    """
    Run one forecast end to end.

    Emits ``connected`` first and exactly one ``complete`` or ``error``
    last. Returns the card, or None when the run failed.
    """
    run_id = run_id or str(uuid.uuid4())
    sink = deps.sink

    sink.emit(ProgressEvent(type="connected", message="Forecast started", session_id=run_id))
    logger.info("FORECAST_START", extra={"run_id": run_id, "market_url": request.market_url})

    initial_state = ForecastState(
        run_id=run_id,
        market_url=request.market_url,
        requested_interval=request.history_interval,
        requested_drivers=request.drivers or [],
        with_books=request.with_books,
        with_trades=request.with_trades,
    )
    graph = build_forecast_graph(deps)
    timeout = deps.settings.pipeline_timeout_seconds

    try:
        # LangGraph returns a dict, NOT a Pydantic model
        final_state = await asyncio.wait_for(graph.ainvoke(initial_state), timeout=timeout)
    except asyncio.TimeoutError:
        logger.error("FORECAST_TIMEOUT", extra={"run_id": run_id, "timeout": timeout})
        sink.emit(_error_event(run_id, f"Forecast timed out after {timeout:.0f}s", stage="timeout"))
        return None
    except PipelineFatal as e:
        logger.exception("FORECAST_FATAL", extra={"run_id": run_id, "stage": e.stage})
        sink.emit(_error_event(run_id, e.message, stage=e.stage, traceback=traceback.format_exc()))
        return None
    except Exception as e:
        logger.exception("FORECAST_FAILED", extra={"run_id": run_id})
        sink.emit(_error_event(run_id, f"Forecast failed: {e}", traceback=traceback.format_exc()))
        return None

    card = final_state.get("card")
    if card is None:
        logger.error("FORECAST_NO_CARD", extra={"run_id": run_id})
        sink.emit(_error_event(run_id, "Forecast produced no result"))
        return None
    card = ForecastCard.model_validate(card)

    if store is not None:
        try:
            store.save(run_id, card, market_url=request.market_url)
        except RedisError as e:
            logger.error("FORECAST_SAVE_FAILED", extra={"run_id": run_id, "error": str(e)})

    logger.info(
        "FORECAST_COMPLETE",
        extra={"run_id": run_id, "p_neutral": round(card.p_neutral, 4), "p_aware": card.p_aware},
    )
    sink.emit(
        ProgressEvent(
            type="complete",
            message="Forecast complete",
            forecast=card,
            session_id=run_id,
        )
    )
    return card
