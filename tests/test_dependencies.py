"""
Tests for engine wiring: seed knowledge base, provider selection, build_engine
"""
import asyncio
import os
import sys

import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from plantdoc import config, dependencies
from plantdoc.models import DiagnosisSource
from plantdoc.services.knowledge_seed import DISEASES, PLANT_TYPES, SYMPTOMS
from plantdoc.services.stores.memory import InMemoryDiagnosisCacheStore
from plantdoc.services.vision_gateway import GeminiVisionGateway, OpenAICompatibleVisionGateway


# =============================================================================
# Seed data
# =============================================================================
class TestKnowledgeSeed:

    def test_disease_links_reference_known_rows(self):
        symptom_ids = {s.id for s in SYMPTOMS}
        plant_ids = {p.id for p in PLANT_TYPES}
        for disease in DISEASES:
            assert disease.symptoms, disease.id
            assert set(disease.symptom_ids) <= symptom_ids, disease.id
            assert disease.plant_type_id is None or disease.plant_type_id in plant_ids
            assert disease.total_weight > 0

    def test_ids_unique(self):
        for rows in (PLANT_TYPES, SYMPTOMS, DISEASES):
            ids = [r.id for r in rows]
            assert len(ids) == len(set(ids))


# =============================================================================
# Provider selection
# =============================================================================
class TestCreateVisionGateway:

    @pytest.mark.parametrize("provider,cls,name", [
        ("gemini", GeminiVisionGateway, "Gemini"),
        ("groq", OpenAICompatibleVisionGateway, "Groq"),
        ("openrouter", OpenAICompatibleVisionGateway, "OpenRouter"),
        ("something-else", OpenAICompatibleVisionGateway, "OpenRouter"),
    ])
    def test_provider(self, monkeypatch, provider, cls, name):
        for key in ("GEMINI_API_KEY", "GROQ_API_KEY", "OPENROUTER_API_KEY"):
            monkeypatch.setattr(config, key, None)

        gateway = dependencies.create_vision_gateway(provider)

        assert isinstance(gateway, cls)
        assert gateway.get_provider_name() == name
        assert gateway.is_available() is False


# =============================================================================
# build_engine without external services
# =============================================================================
class TestBuildEngine:

    def test_memory_engine_answers_from_seed(self, monkeypatch):
        monkeypatch.setattr(config, "SUPABASE_URL", None)
        monkeypatch.setattr(config, "SUPABASE_KEY", None)
        monkeypatch.setattr(config, "REDIS_URL", None)
        monkeypatch.setattr(config, "OPENROUTER_API_KEY", None)
        monkeypatch.setattr(config, "AI_PROVIDER", "openrouter")

        async def scenario():
            engine = await dependencies.build_engine()
            result = await engine.orchestrator.diagnose("White powder, curled leaves")
            return engine, result

        engine, result = asyncio.run(scenario())

        assert engine.supabase_client is None
        assert engine.redis_client is None
        assert isinstance(engine.orchestrator.cache_store, InMemoryDiagnosisCacheStore)
        assert len(engine.context.symptoms) == len(SYMPTOMS)
        assert result.source == DiagnosisSource.KB
        assert result.disease_name == "Bệnh phấn trắng"
        print(f"  PASS: seed KB answered '{result.disease_name}'")
