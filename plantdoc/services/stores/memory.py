"""
In-memory stores.

Used when Supabase is not configured and by the test-suite.
Reference data is replaced wholesale; cache mutations go through an asyncio.Lock.
"""
import asyncio
import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from plantdoc.services.diagnosis import (
    DiagnosisCacheEntry,
    Disease,
    PlantType,
    SymptomEntry,
)
from plantdoc.services.stores import (
    DiagnosisCacheStore,
    DiseaseStore,
    KnowledgeStores,
    PlantTypeStore,
    SymptomDictionaryStore,
)
from plantdoc.utils.text_processing import fuzzy_name_match, normalize_description

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InMemorySymptomDictionaryStore(SymptomDictionaryStore):

    def __init__(self, symptoms: Iterable[SymptomEntry] = ()):
        self._symptoms = tuple(symptoms)

    async def get_all_symptoms(self) -> List[SymptomEntry]:
        return list(self._symptoms)


class InMemoryPlantTypeStore(PlantTypeStore):

    def __init__(self, plant_types: Iterable[PlantType] = ()):
        self._plant_types = tuple(plant_types)

    async def get_all_active(self) -> List[PlantType]:
        return [p for p in self._plant_types if p.is_active]

    async def get_by_id(self, plant_type_id: str) -> Optional[PlantType]:
        for plant in self._plant_types:
            if plant.id == plant_type_id:
                return plant
        return None

    async def find_by_name(self, name: str) -> Optional[PlantType]:
        key = normalize_description(name)
        if not key:
            return None
        active = await self.get_all_active()
        for plant in active:
            if normalize_description(plant.name) == key:
                return plant
        for plant in active:
            if fuzzy_name_match(plant.name, name) or fuzzy_name_match(plant.scientific_name, name):
                return plant
        return None


class InMemoryDiseaseStore(DiseaseStore):

    def __init__(self, diseases: Iterable[Disease] = (), plant_types: Optional[PlantTypeStore] = None):
        self._diseases = tuple(diseases)
        self._plant_types = plant_types or InMemoryPlantTypeStore()

    async def get_all_with_symptoms(self) -> List[Disease]:
        return [d for d in self._diseases if d.is_active]

    async def get_by_id_with_details(self, disease_id: str) -> Optional[Disease]:
        for disease in self._diseases:
            if disease.id == disease_id:
                return disease
        return None

    async def get_by_plant_type_id(self, plant_type_id: str) -> List[Disease]:
        return [d for d in self._diseases if d.is_active and d.plant_type_id == plant_type_id]

    async def get_by_plant_type_name(self, name: str) -> List[Disease]:
        plant = await self._plant_types.find_by_name(name)
        if not plant:
            return []
        return await self.get_by_plant_type_id(plant.id)

    async def find_by_name(self, name: str) -> Optional[Disease]:
        key = normalize_description(name)
        if not key:
            return None
        active = await self.get_all_with_symptoms()
        for disease in active:
            if key in (normalize_description(disease.name), normalize_description(disease.english_name)):
                return disease
        for disease in active:
            if fuzzy_name_match(disease.name, name) or fuzzy_name_match(disease.english_name, name):
                return disease
        return None


def build_memory_knowledge_stores(
    plant_types: Iterable[PlantType] = (),
    symptoms: Iterable[SymptomEntry] = (),
    diseases: Iterable[Disease] = (),
) -> KnowledgeStores:
    plant_types, symptoms, diseases = list(plant_types), list(symptoms), list(diseases)
    plant_store = InMemoryPlantTypeStore(plant_types)
    logger.info(
        f"In-memory knowledge base: {len(plant_types)} plant types, "
        f"{len(symptoms)} symptoms, {len(diseases)} diseases"
    )
    return KnowledgeStores(
        symptoms=InMemorySymptomDictionaryStore(symptoms),
        plant_types=plant_store,
        diseases=InMemoryDiseaseStore(diseases, plant_store),
    )


class InMemoryDiagnosisCacheStore(DiagnosisCacheStore):
    """Diagnosis cache rows keyed by id"""

    def __init__(self):
        self._entries: Dict[str, DiagnosisCacheEntry] = {}
        self._lock = asyncio.Lock()

    async def create(self, entry: DiagnosisCacheEntry) -> DiagnosisCacheEntry:
        async with self._lock:
            self._entries[entry.id] = entry
        logger.info(f"✓ Cache entry created: {entry.id} ({entry.disease_name})")
        return entry

    async def get(self, cache_id: str) -> Optional[DiagnosisCacheEntry]:
        return self._entries.get(cache_id)

    async def update(self, entry: DiagnosisCacheEntry) -> Optional[DiagnosisCacheEntry]:
        async with self._lock:
            if entry.id not in self._entries:
                return None
            self._entries[entry.id] = entry
        return entry

    async def delete(self, cache_id: str) -> bool:
        async with self._lock:
            return self._entries.pop(cache_id, None) is not None

    async def increment_hit_count(self, cache_id: str) -> bool:
        async with self._lock:
            entry = self._entries.get(cache_id)
            if entry is None:
                return False
            self._entries[cache_id] = replace(entry, hit_count=entry.hit_count + 1)
        return True

    async def get_active_entries(self, now: Optional[datetime] = None) -> List[DiagnosisCacheEntry]:
        now = now or _utcnow()
        active = [e for e in self._entries.values() if e.expires_at > now]
        return sorted(active, key=lambda e: e.hit_count, reverse=True)

    async def cleanup_expired(self, now: Optional[datetime] = None) -> int:
        now = now or _utcnow()
        async with self._lock:
            expired = [cache_id for cache_id, e in self._entries.items() if e.expires_at <= now]
            for cache_id in expired:
                del self._entries[cache_id]
        return len(expired)

    def __len__(self):
        return len(self._entries)
