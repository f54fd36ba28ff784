from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, Field, computed_field, field_validator


class DiagnosisSource(str, Enum):
    """Which tier answered"""
    KB = "KB"
    CACHE = "Cache"
    AI = "AI"


class DiagnosisStatus(str, Enum):
    RESOLVED = "RESOLVED"
    FAILED = "FAILED"


class DiagnosisState(str, Enum):
    """Orchestrator states, in the order they are visited"""
    INIT = "INIT"
    TRY_KB = "TRY_KB"
    TRY_CACHE = "TRY_CACHE"
    TRY_AI = "TRY_AI"
    RESOLVED = "RESOLVED"
    FAILED = "FAILED"


ERROR_SOURCE_AI = "AI"
ERROR_SOURCE_APP = "App"


# ============================================================================#
# AI gateway result
# ============================================================================#

class AIDebugInfo(BaseModel):
    provider: Optional[str] = None
    http_status_code: Optional[int] = None
    error_code: Optional[int] = None
    error_message: Optional[str] = None
    raw_response_excerpt: Optional[str] = None
    model: Optional[str] = None
    has_image: bool = False
    error_source: Optional[str] = None  # "AI" | "App"


class AIAnalysisResult(BaseModel):
    success: bool = False
    content: Optional[str] = None
    debug_info: AIDebugInfo = Field(default_factory=AIDebugInfo)


# ============================================================================#
# Diagnosis payload (what the AI returns, what KB hits are rendered as)
# ============================================================================#

def _alias(camel: str, snake: str):
    return Field(default=None, validation_alias=AliasChoices(camel, snake))


class _ListDefaults(BaseModel):
    @field_validator("*", mode="before")
    @classmethod
    def _none_to_empty_list(cls, value, info):
        field = cls.model_fields.get(info.field_name)
        if value is None and field is not None and field.default_factory is list:
            return []
        return value


class PlantInfo(BaseModel):
    common_name: Optional[str] = _alias("commonName", "common_name")
    scientific_name: Optional[str] = _alias("scientificName", "scientific_name")
    family: Optional[str] = None
    description: Optional[str] = None


class DiseaseInfo(_ListDefaults):
    is_healthy: bool = Field(default=False, validation_alias=AliasChoices("isHealthy", "is_healthy"))
    disease_name: Optional[str] = _alias("diseaseName", "disease_name")
    severity: Optional[str] = "None"
    symptoms: List[str] = Field(default_factory=list)
    causes: List[str] = Field(default_factory=list)
    notes: Optional[str] = None


class TreatmentInfo(_ListDefaults):
    immediate_actions: List[str] = Field(
        default_factory=list, validation_alias=AliasChoices("immediateActions", "immediate_actions"))
    long_term_care: List[str] = Field(
        default_factory=list, validation_alias=AliasChoices("longTermCare", "long_term_care"))
    prevention_tips: List[str] = Field(
        default_factory=list, validation_alias=AliasChoices("preventionTips", "prevention_tips"))
    watering_advice: Optional[str] = _alias("wateringAdvice", "watering_advice")
    lighting_advice: Optional[str] = _alias("lightingAdvice", "lighting_advice")
    fertilizing_advice: Optional[str] = _alias("fertilizingAdvice", "fertilizing_advice")


class DiagnosisPayload(_ListDefaults):
    plant_info: Optional[PlantInfo] = _alias("plantInfo", "plant_info")
    disease_info: Optional[DiseaseInfo] = _alias("diseaseInfo", "disease_info")
    treatment: Optional[TreatmentInfo] = None
    confidence_score: Optional[float] = _alias("confidenceScore", "confidence_score")
    product_keywords: List[str] = Field(
        default_factory=list, validation_alias=AliasChoices("productKeywords", "product_keywords"))


# ============================================================================#
# Engine result / HTTP models
# ============================================================================#

class DiagnosisResult(BaseModel):
    status: DiagnosisStatus
    source: Optional[DiagnosisSource] = None
    disease_name: Optional[str] = None
    score: Optional[float] = None
    cache_id: Optional[str] = None
    matched_symptoms: List[str] = Field(default_factory=list)
    diagnosis: Optional[DiagnosisPayload] = None
    error_message: Optional[str] = None
    debug_info: Optional[AIDebugInfo] = None
    states: List[DiagnosisState] = Field(default_factory=list)
    diagnosed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @computed_field
    @property
    def is_successful(self) -> bool:
        return self.status == DiagnosisStatus.RESOLVED


class DiagnosisRequest(BaseModel):
    description: Optional[str] = None
    image_base64: Optional[str] = None
    image_url: Optional[str] = None
    plant_type: Optional[str] = None
    language: str = "vi"
    skip_cache: bool = False
