"""
FastAPI application for the PropEdge Analyzer
Player-prop and game-line evaluation, batch analysis and calibration logging
"""

from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional
import logging

from fastapi import Depends, FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from propedge import __version__
from propedge.config import EngineConfig
from propedge.game_engine import GameLinesEngine
from propedge.props_engine import PlayerPropsEngine
from propedge.schemas import AnalyticsEvent, BatchRequest, GameRequest, HealthResponse, PropRequest
from propedge.services.batch import BatchOrchestrator
from propedge.services.calibration_log import CalibrationLog
from propedge.services.name_matching import build_matcher
from propedge.services.sports_data import build_provider

# Logging setup
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@dataclass
class Engines:
    """Process-wide engine bundle; holds only read-only configuration."""

    config: EngineConfig
    props: PlayerPropsEngine
    games: GameLinesEngine
    batch: BatchOrchestrator
    calibration: CalibrationLog


_engines: Optional[Engines] = None

settings = EngineConfig.from_env()


def build_engines(config: Optional[EngineConfig] = None) -> Engines:
    config = config or EngineConfig.from_env()
    provider = build_provider(
        config.sportsdata_api_key,
        rate_limit_sec=config.sportsdata_rate_limit_sec,
        log_requests=config.log_sportsdata,
    )
    matcher = build_matcher(config.name_matcher, config.fuzzy_threshold)
    props = PlayerPropsEngine(provider, config, matcher)
    games = GameLinesEngine(provider, config, matcher)
    return Engines(
        config=config,
        props=props,
        games=games,
        batch=BatchOrchestrator(props, games, config.batch_concurrency),
        calibration=CalibrationLog(config.calibration_log_path),
    )


def get_engines() -> Engines:
    """Return the process-wide engine bundle, building it on first use."""
    global _engines
    if _engines is None:
        _engines = build_engines(settings)
    return _engines


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    engines = get_engines()
    logger.info(
        "Starting PropEdge Analyzer v%s (provider=%s, smart_overlays=%s, calibration=%.3f)",
        __version__,
        engines.props.provider.provider_name,
        engines.config.smart_overlays,
        engines.config.calibration_factor,
    )
    yield
    logger.info("Shutting down PropEdge Analyzer")


app = FastAPI(
    title="PropEdge Analyzer",
    description="Player-prop and game-line probability fusion engine",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_credentials="*" not in settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# PUBLIC ENDPOINTS
# ============================================================================

@app.get("/")
async def root():
    """Service banner"""
    return {
        "app": "PropEdge Analyzer",
        "version": __version__,
        "status": "operational",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@app.get("/health", response_model=HealthResponse)
async def health_check(engines: Engines = Depends(get_engines)):
    """Health check endpoint"""
    provider = engines.props.provider.provider_name
    return HealthResponse(
        status="healthy" if provider != "fallback" else "degraded",
        data_provider=provider,
        smart_overlays=engines.config.smart_overlays,
        calibration_factor=engines.config.calibration_factor,
    )


# ============================================================================
# ANALYSIS
# ============================================================================

@app.post("/api/analyze-prop")
async def analyze_prop(body: PropRequest, engines: Engines = Depends(get_engines)):
    """Evaluate one player prop."""
    return await engines.props.evaluate_prop(body.model_dump(exclude_none=True))


@app.post("/api/analyze-game")
async def analyze_game(body: GameRequest, engines: Engines = Depends(get_engines)):
    """Evaluate one moneyline, spread or total."""
    return await engines.games.evaluate_game(body.model_dump(exclude_none=True))


@app.post("/api/analyze-batch")
async def analyze_batch(body: BatchRequest, engines: Engines = Depends(get_engines)):
    """Evaluate many props and game lines concurrently."""
    return await engines.batch.run(body.props, body.games)


@app.post("/api/analytics", status_code=204)
def analytics(body: AnalyticsEvent, engines: Engines = Depends(get_engines)):
    """Record a client calibration event (file append runs in the threadpool)."""
    engines.calibration.record(body.model_dump(exclude_none=True))
    return Response(status_code=204)


# ============================================================================
# ERROR HANDLERS
# ============================================================================

@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Catch-all exception handler"""
    logger.error("Unhandled exception: %s", exc, exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"}
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
