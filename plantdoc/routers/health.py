import logging

from fastapi import APIRouter, Depends, HTTPException

from plantdoc import __version__
from plantdoc.dependencies import Engine, get_engine
from plantdoc.exceptions import PersistenceFailure
from plantdoc.services.redis_cache import get_redis_stats

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/")
async def root():
    return {
        "status": "online",
        "service": "Plant Diagnosis Engine",
        "version": __version__,
        "features": [
            "Knowledge Base symptom matching",
            "Semantic diagnosis cache",
            "AI vision fallback",
        ]
    }


@router.get("/health")
async def health_check(engine: Engine = Depends(get_engine)):
    return {
        "status": "healthy",
        "version": __version__,
        "services": {
            "ai": engine.orchestrator.gateway.is_available(),
            "supabase": bool(engine.supabase_client),
            "redis": get_redis_stats(engine.redis_client)["status"],
        },
        "symptoms_loaded": len(engine.context.symptoms),
    }


@router.get("/cache/stats")
async def cache_stats_endpoint(engine: Engine = Depends(get_engine)):
    try:
        return await engine.lifecycle.get_stats()
    except PersistenceFailure as e:
        raise HTTPException(status_code=503, detail=str(e))


@router.post("/cache/cleanup")
async def cache_cleanup_endpoint(engine: Engine = Depends(get_engine)):
    try:
        removed = await engine.lifecycle.cleanup_expired()
    except PersistenceFailure as e:
        raise HTTPException(status_code=503, detail=str(e))
    return {"removed": removed}
