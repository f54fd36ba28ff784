"""
Supabase-backed stores.

Tables (see migrations/001_diagnosis_tables.sql):
    plant_types, symptom_dictionary, diseases, disease_symptoms, diagnosis_cache
RPC:
    increment_diagnosis_cache_hit(p_id) - atomic hit_count + 1, returns new count or NULL
    match_diagnosis_cache(p_query, p_threshold, p_limit) - active rows with pg_trgm similarity >= threshold

The supabase client is synchronous; every query runs in a worker thread so the
event loop is never blocked.
"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from plantdoc.exceptions import PersistenceFailure
from plantdoc.services.diagnosis import (
    DiagnosisCacheEntry,
    Disease,
    DiseaseSymptom,
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

DISEASE_SELECT = "*, disease_symptoms(symptom_id, weight, is_primary, affected_part)"

PAGE_SIZE = 1000


def _parse_ts(value) -> datetime:
    if isinstance(value, datetime):
        return value
    parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class _SupabaseTable:
    """Shared query runner"""

    def __init__(self, client):
        self.client = client

    async def _execute(self, operation: str, build: Callable[[], Any]):
        try:
            return await asyncio.to_thread(lambda: build().execute())
        except Exception as e:
            logger.error(f"Supabase {operation} error: {e}")
            raise PersistenceFailure(operation, e) from e


# ============================================================================
# Reference data
# ============================================================================

def _row_to_symptom(row: Dict) -> SymptomEntry:
    return SymptomEntry(
        id=str(row["id"]),
        name=row["name"],
        category=row.get("category") or "general",
        weight=float(row.get("weight") or 1.0),
        synonyms=tuple(row.get("synonyms") or ()),
    )


def _row_to_plant_type(row: Dict) -> PlantType:
    return PlantType(
        id=str(row["id"]),
        name=row["name"],
        scientific_name=row.get("scientific_name"),
        family=row.get("family"),
        is_active=row.get("is_active", True),
    )


def _row_to_disease(row: Dict) -> Disease:
    symptoms = [
        DiseaseSymptom(
            symptom_id=str(link["symptom_id"]),
            weight=float(link.get("weight") or 1.0),
            is_primary=bool(link.get("is_primary")),
            affected_part=link.get("affected_part") or "general",
        )
        for link in row.get("disease_symptoms") or []
    ]
    return Disease(
        id=str(row["id"]),
        name=row["disease_name"],
        plant_type_id=str(row["plant_type_id"]) if row.get("plant_type_id") else None,
        is_active=row.get("is_active", True),
        symptoms=symptoms,
        english_name=row.get("english_name"),
        description=row.get("description"),
        severity=row.get("severity") or "Medium",
        causes=row.get("causes") or [],
        immediate_actions=row.get("immediate_actions") or [],
        long_term_care=row.get("long_term_care") or [],
        prevention_tips=row.get("prevention_tips") or [],
        watering_advice=row.get("watering_advice"),
        lighting_advice=row.get("lighting_advice"),
        fertilizing_advice=row.get("fertilizing_advice"),
        product_keywords=row.get("product_keywords") or [],
        notes=row.get("notes"),
    )


class SupabaseSymptomDictionaryStore(_SupabaseTable, SymptomDictionaryStore):

    async def get_all_symptoms(self) -> List[SymptomEntry]:
        result = await self._execute(
            "symptom_dictionary.select",
            lambda: self.client.table('symptom_dictionary').select('*'),
        )
        return [_row_to_symptom(row) for row in result.data or []]

    async def get_by_category(self, category: str) -> List[SymptomEntry]:
        result = await self._execute(
            "symptom_dictionary.select",
            lambda: self.client.table('symptom_dictionary').select('*').eq('category', category),
        )
        return [_row_to_symptom(row) for row in result.data or []]


class SupabasePlantTypeStore(_SupabaseTable, PlantTypeStore):

    async def get_all_active(self) -> List[PlantType]:
        result = await self._execute(
            "plant_types.select",
            lambda: self.client.table('plant_types').select('*').eq('is_active', True),
        )
        return [_row_to_plant_type(row) for row in result.data or []]

    async def get_by_id(self, plant_type_id: str) -> Optional[PlantType]:
        result = await self._execute(
            "plant_types.select",
            lambda: self.client.table('plant_types').select('*').eq('id', plant_type_id).limit(1),
        )
        return _row_to_plant_type(result.data[0]) if result.data else None

    async def find_by_name(self, name: str) -> Optional[PlantType]:
        if not normalize_description(name):
            return None

        result = await self._execute(
            "plant_types.select",
            lambda: self.client.table('plant_types')
                .select('*')
                .eq('is_active', True)
                .ilike('name', name.strip())
                .limit(1),
        )
        if result.data:
            return _row_to_plant_type(result.data[0])

        # Diacritic-insensitive containment in application code
        for plant in await self.get_all_active():
            if fuzzy_name_match(plant.name, name) or fuzzy_name_match(plant.scientific_name, name):
                return plant
        return None


class SupabaseDiseaseStore(_SupabaseTable, DiseaseStore):

    def __init__(self, client, plant_types: PlantTypeStore):
        super().__init__(client)
        self.plant_types = plant_types

    async def get_all_with_symptoms(self) -> List[Disease]:
        result = await self._execute(
            "diseases.select",
            lambda: self.client.table('diseases').select(DISEASE_SELECT).eq('is_active', True),
        )
        return [_row_to_disease(row) for row in result.data or []]

    async def get_by_id_with_details(self, disease_id: str) -> Optional[Disease]:
        result = await self._execute(
            "diseases.select",
            lambda: self.client.table('diseases').select(DISEASE_SELECT).eq('id', disease_id).limit(1),
        )
        return _row_to_disease(result.data[0]) if result.data else None

    async def get_by_plant_type_id(self, plant_type_id: str) -> List[Disease]:
        result = await self._execute(
            "diseases.select",
            lambda: self.client.table('diseases')
                .select(DISEASE_SELECT)
                .eq('is_active', True)
                .eq('plant_type_id', plant_type_id),
        )
        return [_row_to_disease(row) for row in result.data or []]

    async def get_by_plant_type_name(self, name: str) -> List[Disease]:
        plant = await self.plant_types.find_by_name(name)
        if not plant:
            return []
        return await self.get_by_plant_type_id(plant.id)

    async def find_by_name(self, name: str) -> Optional[Disease]:
        if not normalize_description(name):
            return None
        for disease in await self.get_all_with_symptoms():
            if fuzzy_name_match(disease.name, name) or fuzzy_name_match(disease.english_name, name):
                return disease
        return None


def build_supabase_knowledge_stores(client) -> KnowledgeStores:
    plant_types = SupabasePlantTypeStore(client)
    return KnowledgeStores(
        symptoms=SupabaseSymptomDictionaryStore(client),
        plant_types=plant_types,
        diseases=SupabaseDiseaseStore(client, plant_types),
    )


# ============================================================================
# Diagnosis cache
# ============================================================================

def _row_to_cache_entry(row: Dict) -> DiagnosisCacheEntry:
    return DiagnosisCacheEntry(
        id=str(row["id"]),
        normalized_description=row.get("normalized_description") or "",
        symptom_ids=[str(s) for s in row.get("symptom_ids") or []],
        disease_name=row.get("disease_name"),
        ai_response=row.get("ai_response") or "",
        created_at=_parse_ts(row["created_at"]),
        expires_at=_parse_ts(row["expires_at"]),
        plant_type=row.get("plant_type"),
        hit_count=int(row.get("hit_count") or 0),
    )


def _cache_entry_to_row(entry: DiagnosisCacheEntry) -> Dict:
    return {
        "id": entry.id,
        "plant_type": entry.plant_type,
        "normalized_description": entry.normalized_description,
        "symptom_ids": list(entry.symptom_ids),
        "disease_name": entry.disease_name,
        "ai_response": entry.ai_response,
        "hit_count": entry.hit_count,
        "created_at": entry.created_at.isoformat(),
        "expires_at": entry.expires_at.isoformat(),
    }


class SupabaseDiagnosisCacheStore(_SupabaseTable, DiagnosisCacheStore):

    TABLE = 'diagnosis_cache'

    async def create(self, entry: DiagnosisCacheEntry) -> DiagnosisCacheEntry:
        row = _cache_entry_to_row(entry)
        await self._execute(
            "diagnosis_cache.insert",
            lambda: self.client.table(self.TABLE).insert(row),
        )
        logger.info(f"✓ Cache entry created: {entry.id} ({entry.disease_name})")
        return entry

    async def get(self, cache_id: str) -> Optional[DiagnosisCacheEntry]:
        result = await self._execute(
            "diagnosis_cache.select",
            lambda: self.client.table(self.TABLE).select('*').eq('id', cache_id).limit(1),
        )
        return _row_to_cache_entry(result.data[0]) if result.data else None

    async def update(self, entry: DiagnosisCacheEntry) -> Optional[DiagnosisCacheEntry]:
        row = _cache_entry_to_row(entry)
        row.pop("id")
        result = await self._execute(
            "diagnosis_cache.update",
            lambda: self.client.table(self.TABLE).update(row).eq('id', entry.id),
        )
        return _row_to_cache_entry(result.data[0]) if result.data else None

    async def delete(self, cache_id: str) -> bool:
        result = await self._execute(
            "diagnosis_cache.delete",
            lambda: self.client.table(self.TABLE).delete().eq('id', cache_id),
        )
        return bool(result.data)

    async def increment_hit_count(self, cache_id: str) -> bool:
        result = await self._execute(
            "increment_diagnosis_cache_hit",
            lambda: self.client.rpc('increment_diagnosis_cache_hit', {'p_id': cache_id}),
        )
        return result.data is not None

    async def get_active_entries(self, now: Optional[datetime] = None) -> List[DiagnosisCacheEntry]:
        # PostgREST caps each response (1000 rows by default), so page with range()
        now_iso = (now or datetime.now(timezone.utc)).isoformat()
        entries = []
        start = 0
        while True:
            end = start + PAGE_SIZE - 1
            result = await self._execute(
                "diagnosis_cache.select",
                lambda: self.client.table(self.TABLE)
                    .select('*')
                    .gt('expires_at', now_iso)
                    .order('hit_count', desc=True)
                    .order('id')
                    .range(start, end),
            )
            rows = result.data or []
            entries.extend(_row_to_cache_entry(row) for row in rows)
            if len(rows) < PAGE_SIZE:
                return entries
            start += PAGE_SIZE

    async def find_similar_entries(
        self,
        normalized_description: str,
        trigram_threshold: float = 0.3,
        limit: int = 200,
    ) -> List[DiagnosisCacheEntry]:
        """Active entries pre-filtered in Postgres by pg_trgm similarity"""
        result = await self._execute(
            "match_diagnosis_cache",
            lambda: self.client.rpc('match_diagnosis_cache', {
                'p_query': normalized_description,
                'p_threshold': trigram_threshold,
                'p_limit': limit,
            }),
        )
        return [_row_to_cache_entry(row) for row in result.data or []]

    async def cleanup_expired(self, now: Optional[datetime] = None) -> int:
        now_iso = (now or datetime.now(timezone.utc)).isoformat()
        result = await self._execute(
            "diagnosis_cache.delete",
            lambda: self.client.table(self.TABLE).delete().lte('expires_at', now_iso),
        )
        return len(result.data or [])
