import json
import logging
from typing import Iterable, Optional

from pydantic import ValidationError

from plantdoc.models import DiagnosisPayload, DiseaseInfo, PlantInfo, TreatmentInfo
from plantdoc.services.diagnosis import Disease, PlantType
from plantdoc.utils.text_processing import clean_json_response

logger = logging.getLogger(__name__)

UNKNOWN_PLANT = "Khong xac dinh"


def parse_diagnosis(content: Optional[str]) -> Optional[DiagnosisPayload]:
    """Parse the model's JSON answer; None when it is not usable"""
    if not content or not content.strip():
        return None

    json_str = clean_json_response(content)
    try:
        data = json.loads(json_str)
    except json.JSONDecodeError as e:
        logger.warning(f"Failed to parse JSON from AI response: {e}")
        return None

    if not isinstance(data, dict):
        logger.warning(f"AI response is not a JSON object: {type(data).__name__}")
        return None

    try:
        payload = DiagnosisPayload.model_validate(data)
    except ValidationError as e:
        logger.warning(f"AI response failed validation: {e}")
        return None

    if payload.plant_info is not None and not payload.plant_info.common_name:
        payload.plant_info.common_name = UNKNOWN_PLANT
    return payload


def disease_name_of(payload: Optional[DiagnosisPayload]) -> Optional[str]:
    if payload and payload.disease_info:
        return payload.disease_info.disease_name
    return None


def build_kb_payload(
    disease: Disease,
    plant_type: Optional[PlantType] = None,
    matched_symptom_names: Iterable[str] = (),
    score: Optional[float] = None,
) -> DiagnosisPayload:
    """Render a knowledge-base disease record the same way as an AI answer"""
    plant_info = None
    if plant_type:
        plant_info = PlantInfo(
            common_name=plant_type.name,
            scientific_name=plant_type.scientific_name,
            family=plant_type.family,
        )

    return DiagnosisPayload(
        plant_info=plant_info,
        disease_info=DiseaseInfo(
            is_healthy=False,
            disease_name=disease.name,
            severity=disease.severity,
            symptoms=list(matched_symptom_names),
            causes=list(disease.causes),
            notes=disease.notes or disease.description,
        ),
        treatment=TreatmentInfo(
            immediate_actions=list(disease.immediate_actions),
            long_term_care=list(disease.long_term_care),
            prevention_tips=list(disease.prevention_tips),
            watering_advice=disease.watering_advice,
            lighting_advice=disease.lighting_advice,
            fertilizing_advice=disease.fertilizing_advice,
        ),
        confidence_score=round(score * 100) if score is not None else None,
        product_keywords=list(disease.product_keywords),
    )
