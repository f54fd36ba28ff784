import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from plantdoc.config import DIAGNOSIS_RATE_LIMIT
from plantdoc.dependencies import Engine, get_engine
from plantdoc.exceptions import PersistenceFailure
from plantdoc.models import DiagnosisRequest, DiagnosisResult
from plantdoc.utils.rate_limiter import limiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/diagnosis", tags=["diagnosis"])


@router.post("", response_model=DiagnosisResult)
@limiter.limit(DIAGNOSIS_RATE_LIMIT)
async def diagnose(request: Request, body: DiagnosisRequest, engine: Engine = Depends(get_engine)):
    try:
        return await engine.orchestrator.diagnose(
            description=body.description,
            image_base64=body.image_base64,
            plant_type_hint=body.plant_type,
            image_url=body.image_url,
            language=body.language,
            skip_cache=body.skip_cache,
        )
    except PersistenceFailure as e:
        logger.error(f"Diagnosis storage error: {e}", exc_info=True)
        raise HTTPException(status_code=503, detail="Diagnosis storage unavailable")


@router.get("/status")
async def diagnosis_status(engine: Engine = Depends(get_engine)):
    return await engine.orchestrator.status()
