import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import HTTPException, Request
from supabase import Client, create_client

from plantdoc import config
from plantdoc.services.diagnosis.cache_lifecycle import CacheLifecycleManager
from plantdoc.services.diagnosis.orchestrator import DiagnosisOrchestrator
from plantdoc.services.diagnosis.symptom_extractor import ReferenceContext
from plantdoc.services.knowledge_seed import DISEASES, PLANT_TYPES, SYMPTOMS
from plantdoc.services.redis_cache import create_redis_client
from plantdoc.services.stores.memory import InMemoryDiagnosisCacheStore, build_memory_knowledge_stores
from plantdoc.services.stores.supabase_store import (
    SupabaseDiagnosisCacheStore,
    build_supabase_knowledge_stores,
)
from plantdoc.services.vision_gateway import (
    AIVisionGateway,
    GeminiVisionGateway,
    OpenAICompatibleVisionGateway,
)

logger = logging.getLogger(__name__)


@dataclass
class Engine:
    """Everything a request needs, built once at startup"""
    context: ReferenceContext
    lifecycle: CacheLifecycleManager
    orchestrator: DiagnosisOrchestrator
    supabase_client: Optional[Client] = None
    redis_client: Optional[object] = None


def create_supabase_client() -> Optional[Client]:
    if not (config.SUPABASE_URL and config.SUPABASE_KEY):
        logger.warning("⚠️ Supabase not configured - using in-memory stores")
        return None
    try:
        client = create_client(config.SUPABASE_URL, config.SUPABASE_KEY)
        logger.info("Supabase initialized successfully")
        return client
    except Exception as e:
        logger.error(f"Failed to initialize Supabase: {e}")
        return None


def create_vision_gateway(provider: Optional[str] = None) -> AIVisionGateway:
    provider = (provider or config.AI_PROVIDER).lower()
    common = dict(
        timeout=config.AI_TIMEOUT_SECONDS,
        connect_timeout=config.AI_CONNECT_TIMEOUT,
        max_tokens=config.AI_MAX_TOKENS,
        temperature=config.AI_TEMPERATURE,
    )
    if provider == "gemini":
        return GeminiVisionGateway(
            api_key=config.GEMINI_API_KEY,
            model=config.GEMINI_MODEL,
            base_url=config.GEMINI_BASE_URL,
            **common,
        )
    if provider == "groq":
        return OpenAICompatibleVisionGateway(
            provider_name="Groq",
            api_key=config.GROQ_API_KEY,
            model=config.GROQ_MODEL,
            base_url=config.GROQ_BASE_URL,
            **common,
        )
    if provider != "openrouter":
        logger.warning(f"Unknown AI_PROVIDER '{provider}' - falling back to OpenRouter")
    return OpenAICompatibleVisionGateway(
        provider_name="OpenRouter",
        api_key=config.OPENROUTER_API_KEY,
        model=config.OPENROUTER_MODEL,
        base_url=config.OPENROUTER_BASE_URL,
        extra_headers={"X-Title": "Plant Diagnosis"},
        **common,
    )


async def build_engine() -> Engine:
    supabase_client = create_supabase_client()
    if supabase_client:
        stores = build_supabase_knowledge_stores(supabase_client)
        cache_store = SupabaseDiagnosisCacheStore(supabase_client)
    else:
        stores = build_memory_knowledge_stores(PLANT_TYPES, SYMPTOMS, DISEASES)
        cache_store = InMemoryDiagnosisCacheStore()

    context = ReferenceContext(stores)
    await context.reload()

    redis_client = create_redis_client(config.REDIS_URL)
    lifecycle = CacheLifecycleManager(
        cache_store,
        ttl_days=config.CACHE_TTL_DAYS,
        redis_client=redis_client,
        lock_ttl=config.CACHE_SWEEP_LOCK_TTL,
    )
    orchestrator = DiagnosisOrchestrator(
        context,
        cache_store,
        create_vision_gateway(),
        lifecycle=lifecycle,
        config=config.DIAGNOSIS_CONFIG,
    )
    return Engine(
        context=context,
        lifecycle=lifecycle,
        orchestrator=orchestrator,
        supabase_client=supabase_client,
        redis_client=redis_client,
    )


def get_engine(request: Request) -> Engine:
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        raise HTTPException(status_code=503, detail="Diagnosis engine not ready")
    return engine
