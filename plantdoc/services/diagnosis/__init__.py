"""
Tiered diagnosis engine

Resolution order:
1. KnowledgeBaseMatcher - weighted symptom overlap against curated diseases
2. CacheMatcher - text similarity + symptom overlap against prior AI answers
3. AIVisionGateway - external vision/text model, result written back to cache

Reference data (plant types, symptom dictionary, diseases) is read-only.
Cache entries are owned by CacheLifecycleManager.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple


@dataclass(frozen=True)
class PlantType:
    id: str
    name: str
    scientific_name: Optional[str] = None
    family: Optional[str] = None
    is_active: bool = True


@dataclass(frozen=True)
class SymptomEntry:
    """One SymptomDictionary term"""
    id: str
    name: str
    category: str
    weight: float = 1.0
    synonyms: Tuple[str, ...] = ()

    def terms(self) -> Tuple[str, ...]:
        return (self.name,) + tuple(self.synonyms)


@dataclass(frozen=True)
class DiseaseSymptom:
    symptom_id: str
    weight: float = 1.0
    is_primary: bool = False
    affected_part: str = "general"  # leaf, stem, root, fruit, flower, general


@dataclass
class Disease:
    id: str
    name: str
    plant_type_id: Optional[str] = None
    is_active: bool = True
    symptoms: List[DiseaseSymptom] = field(default_factory=list)
    english_name: Optional[str] = None
    description: Optional[str] = None
    severity: str = "Medium"
    causes: List[str] = field(default_factory=list)
    immediate_actions: List[str] = field(default_factory=list)
    long_term_care: List[str] = field(default_factory=list)
    prevention_tips: List[str] = field(default_factory=list)
    watering_advice: Optional[str] = None
    lighting_advice: Optional[str] = None
    fertilizing_advice: Optional[str] = None
    product_keywords: List[str] = field(default_factory=list)
    notes: Optional[str] = None

    @property
    def total_weight(self) -> float:
        return sum(s.weight for s in self.symptoms)

    @property
    def symptom_ids(self) -> List[str]:
        return [s.symptom_id for s in self.symptoms]


@dataclass
class DiseaseWithMatchInfo:
    """Disease projected against one query's symptom set"""
    disease: Disease
    matched_symptoms: List[str]
    total_symptom_count: int
    total_weight: float
    matched_weight: float

    @classmethod
    def project(cls, disease: Disease, symptom_ids) -> "DiseaseWithMatchInfo":
        wanted = set(symptom_ids)
        matched = [s for s in disease.symptoms if s.symptom_id in wanted]
        return cls(
            disease=disease,
            matched_symptoms=[s.symptom_id for s in matched],
            total_symptom_count=len(disease.symptoms),
            total_weight=disease.total_weight,
            matched_weight=sum(s.weight for s in matched),
        )

    @property
    def matched_symptom_count(self) -> int:
        return len(self.matched_symptoms)

    @property
    def score(self) -> float:
        if self.total_weight <= 0:
            return 0.0
        return max(0.0, min(1.0, self.matched_weight / self.total_weight))


@dataclass
class DiagnosisCacheEntry:
    id: str
    normalized_description: str
    symptom_ids: List[str]
    disease_name: Optional[str]
    ai_response: str  # raw AI content, replayed verbatim
    created_at: datetime
    expires_at: datetime
    plant_type: Optional[str] = None
    hit_count: int = 0


@dataclass
class DiagnosisCacheCandidate:
    """Cache entry scored against one query"""
    entry: DiagnosisCacheEntry
    trigram_score: float
    matched_symptoms: List[str]
    final_score: float

    @property
    def matched_symptom_count(self) -> int:
        return len(self.matched_symptoms)
