"""
Store interfaces used by the diagnosis engine.

Implementations:
- memory: build_memory_knowledge_stores() / InMemoryDiagnosisCacheStore
- supabase_store: build_supabase_knowledge_stores() / SupabaseDiagnosisCacheStore
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional

from plantdoc.services.diagnosis import (
    DiagnosisCacheCandidate,
    DiagnosisCacheEntry,
    Disease,
    DiseaseWithMatchInfo,
    PlantType,
    SymptomEntry,
)


class SymptomDictionaryStore(ABC):

    @abstractmethod
    async def get_all_symptoms(self) -> List[SymptomEntry]:
        ...

    async def get_by_category(self, category: str) -> List[SymptomEntry]:
        symptoms = await self.get_all_symptoms()
        return [s for s in symptoms if s.category == category]


class PlantTypeStore(ABC):

    @abstractmethod
    async def get_all_active(self) -> List[PlantType]:
        ...

    @abstractmethod
    async def get_by_id(self, plant_type_id: str) -> Optional[PlantType]:
        ...

    @abstractmethod
    async def find_by_name(self, name: str) -> Optional[PlantType]:
        """Fuzzy lookup: exact normalized match first, then containment"""
        ...


class DiseaseStore(ABC):

    @abstractmethod
    async def get_all_with_symptoms(self) -> List[Disease]:
        """Active diseases with their symptom associations"""
        ...

    @abstractmethod
    async def get_by_id_with_details(self, disease_id: str) -> Optional[Disease]:
        ...

    @abstractmethod
    async def get_by_plant_type_id(self, plant_type_id: str) -> List[Disease]:
        ...

    @abstractmethod
    async def get_by_plant_type_name(self, name: str) -> List[Disease]:
        ...

    @abstractmethod
    async def find_by_name(self, name: str) -> Optional[Disease]:
        ...

    async def find_by_symptom_ids(self, symptom_ids: Iterable[str]) -> List[DiseaseWithMatchInfo]:
        """Diseases sharing at least one symptom, projected with match info"""
        wanted = set(symptom_ids)
        if not wanted:
            return []
        diseases = await self.get_all_with_symptoms()
        matches = []
        for disease in diseases:
            info = DiseaseWithMatchInfo.project(disease, wanted)
            if info.matched_symptoms:
                matches.append(info)
        return matches


@dataclass
class KnowledgeStores:
    """The three reference-data stores, passed around together"""
    symptoms: SymptomDictionaryStore
    plant_types: PlantTypeStore
    diseases: DiseaseStore


class DiagnosisCacheStore(ABC):

    @abstractmethod
    async def create(self, entry: DiagnosisCacheEntry) -> DiagnosisCacheEntry:
        ...

    @abstractmethod
    async def get(self, cache_id: str) -> Optional[DiagnosisCacheEntry]:
        ...

    @abstractmethod
    async def update(self, entry: DiagnosisCacheEntry) -> Optional[DiagnosisCacheEntry]:
        ...

    @abstractmethod
    async def delete(self, cache_id: str) -> bool:
        ...

    @abstractmethod
    async def increment_hit_count(self, cache_id: str) -> bool:
        """Atomic +1; False when the entry no longer exists"""
        ...

    @abstractmethod
    async def get_active_entries(self, now: Optional[datetime] = None) -> List[DiagnosisCacheEntry]:
        """Entries with expires_at > now, most hit first"""
        ...

    @abstractmethod
    async def cleanup_expired(self, now: Optional[datetime] = None) -> int:
        """Delete entries with expires_at <= now, return how many"""
        ...

    async def find_similar_entries(
        self,
        normalized_description: str,
        trigram_threshold: float = 0.3,
        limit: int = 200,
    ) -> List[DiagnosisCacheEntry]:
        """
        Candidate pool for CacheMatcher. Backends with a text index override
        this to pre-filter; the default returns every active entry.
        """
        return await self.get_active_entries()

    async def search_candidates(
        self,
        normalized_description: str,
        symptom_ids: Iterable[str],
        plant_type: Optional[str] = None,
        trigram_threshold: float = 0.3,
        limit: int = 20,
    ) -> List[DiagnosisCacheCandidate]:
        from plantdoc.services.diagnosis.cache_matcher import CacheMatcher

        matcher = CacheMatcher(self)
        return await matcher.search_candidates(
            normalized_description,
            symptom_ids,
            plant_type_hint=plant_type,
            trigram_threshold=trigram_threshold,
            limit=limit,
        )
