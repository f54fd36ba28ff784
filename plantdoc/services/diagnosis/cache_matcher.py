"""
Cache candidate scoring.

FinalScore = text_weight * similarity + symptom_weight * overlap
    overlap = MatchedSymptomCount / max(1, |query symptoms|)
    defaults: text_weight = 0.6, symptom_weight = 0.4

Example: similarity 0.45 with no shared symptoms -> 0.6 * 0.45 = 0.27
"""
import logging
from abc import ABC, abstractmethod
from typing import Iterable, List, Optional

from plantdoc.services.diagnosis import DiagnosisCacheCandidate, DiagnosisCacheEntry
from plantdoc.utils.text_processing import fuzzy_name_match, trigram_jaccard

logger = logging.getLogger(__name__)

DEFAULT_TEXT_WEIGHT = 0.6
DEFAULT_SYMPTOM_WEIGHT = 0.4

# Rows fetched from the store before final scoring
CANDIDATE_POOL_SIZE = 200


class SimilarityStrategy(ABC):
    """similarity(a, b) -> [0, 1]"""

    @abstractmethod
    def similarity(self, a: str, b: str) -> float:
        ...

    def __call__(self, a: str, b: str) -> float:
        return self.similarity(a, b)


class TrigramSimilarity(SimilarityStrategy):
    """Jaccard over padded character 3-grams"""

    def similarity(self, a: str, b: str) -> float:
        return trigram_jaccard(a, b)


def combine_scores(
    text_score: float,
    matched_count: int,
    query_symptom_count: int,
    text_weight: float = DEFAULT_TEXT_WEIGHT,
    symptom_weight: float = DEFAULT_SYMPTOM_WEIGHT,
) -> float:
    overlap = matched_count / max(1, query_symptom_count)
    return text_weight * text_score + symptom_weight * overlap


class CacheMatcher:

    def __init__(
        self,
        store,
        similarity: Optional[SimilarityStrategy] = None,
        text_weight: float = DEFAULT_TEXT_WEIGHT,
        symptom_weight: float = DEFAULT_SYMPTOM_WEIGHT,
    ):
        if text_weight < 0 or symptom_weight < 0:
            raise ValueError("score weights must be non-negative")
        if abs(text_weight + symptom_weight - 1.0) > 1e-9:
            raise ValueError("score weights must sum to 1")
        self.store = store
        self.similarity = similarity or TrigramSimilarity()
        self.text_weight = text_weight
        self.symptom_weight = symptom_weight

    def score_entry(
        self,
        entry: DiagnosisCacheEntry,
        normalized_description: str,
        symptom_ids: set,
    ) -> DiagnosisCacheCandidate:
        text_score = self.similarity(normalized_description, entry.normalized_description)
        matched = sorted(symptom_ids.intersection(entry.symptom_ids))
        final = combine_scores(
            text_score,
            len(matched),
            len(symptom_ids),
            self.text_weight,
            self.symptom_weight,
        )
        return DiagnosisCacheCandidate(
            entry=entry,
            trigram_score=text_score,
            matched_symptoms=matched,
            final_score=final,
        )

    async def search_candidates(
        self,
        normalized_description: str,
        symptom_ids: Iterable[str],
        plant_type_hint: Optional[str] = None,
        trigram_threshold: float = 0.3,
        limit: int = 20,
    ) -> List[DiagnosisCacheCandidate]:
        if not normalized_description or limit <= 0:
            return []

        wanted = set(symptom_ids)
        entries = await self.store.find_similar_entries(
            normalized_description,
            trigram_threshold=trigram_threshold,
            limit=max(limit, CANDIDATE_POOL_SIZE),
        )

        candidates = []
        for entry in entries:
            if plant_type_hint and entry.plant_type and not fuzzy_name_match(entry.plant_type, plant_type_hint):
                continue
            candidate = self.score_entry(entry, normalized_description, wanted)
            if candidate.trigram_score < trigram_threshold:
                continue
            candidates.append(candidate)

        candidates.sort(
            key=lambda c: (c.final_score, c.entry.hit_count, c.entry.created_at),
            reverse=True,
        )
        logger.debug(f"Cache candidates: {len(candidates)} of {len(entries)} active entries")
        return candidates[:limit]

    async def best_match(
        self,
        normalized_description: str,
        symptom_ids: Iterable[str],
        plant_type_hint: Optional[str] = None,
        trigram_threshold: float = 0.3,
        limit: int = 20,
        threshold: float = 0.6,
    ) -> Optional[DiagnosisCacheCandidate]:
        candidates = await self.search_candidates(
            normalized_description,
            symptom_ids,
            plant_type_hint=plant_type_hint,
            trigram_threshold=trigram_threshold,
            limit=limit,
        )
        if not candidates:
            return None
        top = candidates[0]
        if top.final_score < threshold:
            logger.info(f"Cache best score {top.final_score:.2f} below threshold {threshold}")
            return None
        logger.info(
            f"✓ Cache match: {top.entry.disease_name} final={top.final_score:.2f} "
            f"(text={top.trigram_score:.2f}, symptoms={top.matched_symptom_count})"
        )
        return top
