import logging
from typing import Iterable, List, Optional

from plantdoc.services.diagnosis import Disease, DiseaseWithMatchInfo, PlantType
from plantdoc.services.stores import KnowledgeStores

logger = logging.getLogger(__name__)


def rank_key(info: DiseaseWithMatchInfo):
    """Score desc, matched count desc, name asc"""
    return (-info.score, -info.matched_symptom_count, info.disease.name)


class KnowledgeBaseMatcher:
    """
    Weighted symptom overlap against curated diseases.

    Score = MatchedWeight / TotalWeight, so a disease whose every known
    symptom is present scores 1.0. Diseases without symptoms never match.
    """

    def __init__(self, stores: KnowledgeStores):
        self.stores = stores

    async def resolve_plant_type(self, plant_type_hint: Optional[str]) -> Optional[PlantType]:
        if not plant_type_hint or not plant_type_hint.strip():
            return None
        plant = await self.stores.plant_types.get_by_id(plant_type_hint.strip())
        if plant:
            return plant
        plant = await self.stores.plant_types.find_by_name(plant_type_hint)
        if not plant:
            logger.info(f"Plant type hint '{plant_type_hint}' not recognized - matching all diseases")
        return plant

    async def match(
        self,
        symptom_ids: Iterable[str],
        plant_type_hint: Optional[str] = None,
    ) -> List[DiseaseWithMatchInfo]:
        wanted = set(symptom_ids)
        if not wanted:
            return []

        candidates = await self.stores.diseases.find_by_symptom_ids(wanted)

        plant = await self.resolve_plant_type(plant_type_hint)
        if plant:
            candidates = [c for c in candidates if _belongs_to(c.disease, plant)]

        ranked = sorted(
            (c for c in candidates if c.total_weight > 0 and c.matched_symptoms),
            key=rank_key,
        )

        if ranked:
            top = ranked[0]
            logger.info(
                f"KB top match: {top.disease.name} score={top.score:.2f} "
                f"({top.matched_symptom_count}/{top.total_symptom_count} symptoms)"
            )
        return ranked

    async def best_match(
        self,
        symptom_ids: Iterable[str],
        plant_type_hint: Optional[str] = None,
        threshold: float = 0.6,
    ) -> Optional[DiseaseWithMatchInfo]:
        """Top match if it clears the acceptance threshold"""
        ranked = await self.match(symptom_ids, plant_type_hint)
        if not ranked:
            return None
        top = ranked[0]
        if top.score < threshold:
            logger.info(f"KB best score {top.score:.2f} below threshold {threshold}")
            return None
        return top


def _belongs_to(disease: Disease, plant: PlantType) -> bool:
    # Diseases without an owning plant type apply to every plant
    return disease.plant_type_id is None or disease.plant_type_id == plant.id
