# Plant Diagnosis Engine v1.0
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from plantdoc import __version__
from plantdoc.config import CACHE_CLEANUP_INTERVAL, RUN_BACKGROUND_TASKS
from plantdoc.dependencies import build_engine
from plantdoc.routers import diagnosis, health
from plantdoc.utils.rate_limiter import limiter

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


# ============================================================================#
# Lifespan Events
# ============================================================================#

@asynccontextmanager
async def lifespan(app_instance: FastAPI):
    # Startup
    engine = await build_engine()
    app_instance.state.engine = engine

    logger.info("=" * 60)
    logger.info("Starting Plant Diagnosis Engine")
    logger.info(f"AI gateway: {'✓' if engine.orchestrator.gateway.is_available() else '✗'} "
                f"({engine.orchestrator.gateway.get_provider_name()})")
    logger.info(f"Supabase: {'✓' if engine.supabase_client else '✗'}")
    logger.info(f"Redis: {'✓' if engine.redis_client else '✗'}")
    logger.info(f"Symptoms loaded: {len(engine.context.symptoms)}")
    logger.info("=" * 60)

    # Background sweep only when explicitly enabled (not on serverless)
    if RUN_BACKGROUND_TASKS:
        engine.lifecycle.start_background_sweep(CACHE_CLEANUP_INTERVAL)
    else:
        logger.info("RUN_BACKGROUND_TASKS not set - skipping background cache cleanup")

    yield

    # Shutdown
    logger.info("Shutting down gracefully...")
    await engine.lifecycle.stop_background_sweep()


app = FastAPI(
    title="Plant Diagnosis Engine",
    description="Tiered plant disease diagnosis: knowledge base, cache, AI vision",
    version=__version__,
    lifespan=lifespan
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.include_router(health.router)
app.include_router(diagnosis.router)


if __name__ == "__main__":
    uvicorn.run("plantdoc.main:app", host="0.0.0.0", port=8000)
