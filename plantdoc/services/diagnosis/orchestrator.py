"""
DiagnosisOrchestrator - tier selection

    INIT -> TRY_KB -> TRY_CACHE -> TRY_AI -> RESOLVED(KB | Cache | AI) / FAILED

KB and cache tiers only run for text-only requests (an image carries evidence
the text tiers cannot see). Every terminal result carries its provenance and
the list of visited states.

Concurrent identical text-only misses share one AI call (single-flight keyed by
normalized description, plant hint and language) unless ai_single_flight is off.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Optional, Tuple

from plantdoc.config import DIAGNOSIS_CONFIG
from plantdoc.exceptions import AIGatewayCallFailed, AIGatewayUnavailable
from plantdoc.models import (
    ERROR_SOURCE_APP,
    AIDebugInfo,
    DiagnosisResult,
    DiagnosisSource,
    DiagnosisState,
    DiagnosisStatus,
)
from plantdoc.services.diagnosis import DiagnosisCacheCandidate, DiseaseWithMatchInfo
from plantdoc.services.diagnosis.cache_lifecycle import CacheLifecycleManager
from plantdoc.services.diagnosis.cache_matcher import CacheMatcher, SimilarityStrategy
from plantdoc.services.diagnosis.knowledge_matcher import KnowledgeBaseMatcher
from plantdoc.services.diagnosis.response_parser import (
    build_kb_payload,
    disease_name_of,
    parse_diagnosis,
)
from plantdoc.services.diagnosis.symptom_extractor import ReferenceContext, SymptomExtractor
from plantdoc.services.vision_gateway import NOT_AVAILABLE_MESSAGE, AIVisionGateway
from plantdoc.utils.text_processing import normalize_description, truncate_excerpt

logger = logging.getLogger(__name__)

MISSING_INPUT_MESSAGE = "description or image required"
TIMEOUT_MESSAGE = "AI call timed out"
PARSE_FAILED_MESSAGE = "Failed to parse AI JSON response"


@dataclass
class _Flight:
    task: asyncio.Task
    waiters: int = 0


class DiagnosisOrchestrator:

    def __init__(
        self,
        context: ReferenceContext,
        cache_store,
        gateway: AIVisionGateway,
        lifecycle: Optional[CacheLifecycleManager] = None,
        similarity: Optional[SimilarityStrategy] = None,
        config: Optional[Dict] = None,
    ):
        self.config = {**DIAGNOSIS_CONFIG, **(config or {})}
        self.context = context
        self.cache_store = cache_store
        self.gateway = gateway
        self.lifecycle = lifecycle or CacheLifecycleManager(
            cache_store, ttl_days=self.config["cache_ttl_days"]
        )
        self.extractor = SymptomExtractor(context, self.config.get("symptom_fuzzy_threshold", 0.0))
        self.kb_matcher = KnowledgeBaseMatcher(context.stores)
        self.cache_matcher = CacheMatcher(
            cache_store,
            similarity=similarity,
            text_weight=self.config["cache_text_weight"],
            symptom_weight=self.config["cache_symptom_weight"],
        )
        self._in_flight: Dict[Tuple, _Flight] = {}

    # ==================================================================
    # Entry point
    # ==================================================================
    async def diagnose(
        self,
        description: Optional[str] = None,
        image_base64: Optional[str] = None,
        plant_type_hint: Optional[str] = None,
        image_url: Optional[str] = None,
        language: Optional[str] = None,
        skip_cache: bool = False,
    ) -> DiagnosisResult:
        language = language or self.config["default_language"]
        states = [DiagnosisState.INIT]

        has_image = bool(image_base64) or bool(image_url)
        has_description = bool(description and description.strip())
        if not has_image and not has_description:
            debug = AIDebugInfo(error_source=ERROR_SOURCE_APP, error_message=MISSING_INPUT_MESSAGE)
            return self._failed(states, MISSING_INPUT_MESSAGE, debug)

        normalized = normalize_description(description)
        symptom_ids = self.extractor.extract(normalized)
        if has_description and not symptom_ids:
            logger.info("No dictionary symptoms in description - continuing with text only")

        text_only = has_description and not has_image
        if text_only and not skip_cache:
            states.append(DiagnosisState.TRY_KB)
            kb_hit = await self.kb_matcher.best_match(
                symptom_ids,
                plant_type_hint,
                threshold=self.config["kb_accept_threshold"],
            )
            if kb_hit:
                return await self._resolved_from_kb(states, kb_hit, plant_type_hint)

            states.append(DiagnosisState.TRY_CACHE)
            cache_hit = await self.cache_matcher.best_match(
                normalized,
                symptom_ids,
                plant_type_hint=plant_type_hint,
                trigram_threshold=self.config["cache_trigram_threshold"],
                limit=self.config["cache_candidate_limit"],
                threshold=self.config["cache_accept_threshold"],
            )
            if cache_hit:
                result = await self._resolved_from_cache(states, cache_hit)
                if result:
                    return result

        states.append(DiagnosisState.TRY_AI)

        async def call():
            return await self._call_ai(
                description=description,
                normalized=normalized,
                symptom_ids=symptom_ids,
                image_base64=image_base64,
                image_url=image_url,
                plant_type_hint=plant_type_hint,
                language=language,
                write_back=text_only,
            )

        try:
            if text_only and self.config["ai_single_flight"]:
                key = (normalized, normalize_description(plant_type_hint), language)
                result = await self._single_flight(key, call)
            else:
                result = await call()
        except (AIGatewayUnavailable, AIGatewayCallFailed) as e:
            return self._failed(states, e.message, e.debug_info)

        states.append(DiagnosisState.RESOLVED)
        return result.model_copy(update={"states": states})

    # ==================================================================
    # Tiers
    # ==================================================================
    async def _resolved_from_kb(
        self,
        states: List[DiagnosisState],
        hit: DiseaseWithMatchInfo,
        plant_type_hint: Optional[str],
    ) -> DiagnosisResult:
        disease = hit.disease
        plant = None
        if disease.plant_type_id:
            plant = await self.context.stores.plant_types.get_by_id(disease.plant_type_id)
        elif plant_type_hint:
            plant = await self.kb_matcher.resolve_plant_type(plant_type_hint)

        by_id = self.context.symptoms.by_id
        names = [by_id[s].name if s in by_id else s for s in hit.matched_symptoms]

        logger.info(f"✓ Knowledge Base hit: {disease.name} (score={hit.score:.2f})")
        states.append(DiagnosisState.RESOLVED)
        return DiagnosisResult(
            status=DiagnosisStatus.RESOLVED,
            source=DiagnosisSource.KB,
            disease_name=disease.name,
            score=hit.score,
            matched_symptoms=list(hit.matched_symptoms),
            diagnosis=build_kb_payload(disease, plant, names, hit.score),
            debug_info=AIDebugInfo(model="knowledge-base", has_image=False),
            states=states,
        )

    async def _resolved_from_cache(
        self,
        states: List[DiagnosisState],
        hit: DiagnosisCacheCandidate,
    ) -> Optional[DiagnosisResult]:
        """None when the stored answer no longer parses (treated as a miss)"""
        entry = hit.entry
        payload = parse_diagnosis(entry.ai_response)
        if payload is None:
            logger.warning(f"Cache entry {entry.id} has an unreadable AI response - treating as miss")
            return None

        await self.lifecycle.increment_hit_count(entry.id)

        logger.info(f"✓ Cache hit: {entry.disease_name} (score={hit.final_score:.2f}, id={entry.id})")
        states.append(DiagnosisState.RESOLVED)
        return DiagnosisResult(
            status=DiagnosisStatus.RESOLVED,
            source=DiagnosisSource.CACHE,
            disease_name=entry.disease_name,
            score=hit.final_score,
            cache_id=entry.id,
            matched_symptoms=list(hit.matched_symptoms),
            diagnosis=payload,
            debug_info=AIDebugInfo(model="cache", has_image=False),
            states=states,
        )

    async def _call_ai(
        self,
        description: Optional[str],
        normalized: str,
        symptom_ids: FrozenSet[str],
        image_base64: Optional[str],
        image_url: Optional[str],
        plant_type_hint: Optional[str],
        language: str,
        write_back: bool,
    ) -> DiagnosisResult:
        has_image = bool(image_base64) or bool(image_url)
        provider = self.gateway.get_provider_name()
        model = self.gateway.get_model_name()

        if not self.gateway.is_available():
            logger.warning(f"AI gateway {provider} not available")
            raise AIGatewayUnavailable(
                NOT_AVAILABLE_MESSAGE,
                AIDebugInfo(
                    provider=provider,
                    model=model,
                    has_image=has_image,
                    error_source=ERROR_SOURCE_APP,
                    error_message=NOT_AVAILABLE_MESSAGE,
                ),
            )

        timeout = self.config["ai_timeout_seconds"]
        try:
            ai_result = await asyncio.wait_for(
                self.gateway.analyze_image(
                    image_base64=image_base64,
                    image_url=image_url,
                    user_description=description,
                    language=language,
                ),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            logger.error(f"{provider} call timeout after {timeout} seconds")
            raise AIGatewayCallFailed(
                TIMEOUT_MESSAGE,
                AIDebugInfo(
                    provider=provider,
                    model=model,
                    has_image=has_image,
                    error_source=ERROR_SOURCE_APP,
                    error_message=TIMEOUT_MESSAGE,
                ),
            )
        except Exception as e:
            logger.error(f"{provider} call error: {e}", exc_info=True)
            message = f"Exception: {e}"
            raise AIGatewayCallFailed(
                message,
                AIDebugInfo(
                    provider=provider,
                    model=model,
                    has_image=has_image,
                    error_source=ERROR_SOURCE_APP,
                    error_message=message,
                ),
            ) from e

        if not ai_result.success or not ai_result.content:
            debug = ai_result.debug_info
            message = debug.error_message or "AI diagnosis failed"
            logger.error(f"AI diagnosis failed ({debug.error_source}): {message}")
            raise AIGatewayCallFailed(message, debug)

        payload = parse_diagnosis(ai_result.content)
        if payload is None:
            raise AIGatewayCallFailed(
                PARSE_FAILED_MESSAGE,
                AIDebugInfo(
                    provider=provider,
                    model=model,
                    has_image=has_image,
                    http_status_code=ai_result.debug_info.http_status_code,
                    raw_response_excerpt=truncate_excerpt(ai_result.content),
                    error_source=ERROR_SOURCE_APP,
                    error_message=PARSE_FAILED_MESSAGE,
                ),
            )

        disease_name = disease_name_of(payload)
        cache_id = None
        if write_back and payload.disease_info is not None:
            entry = await self.lifecycle.save_entry(
                normalized_description=normalized,
                symptom_ids=symptom_ids,
                disease_name=disease_name,
                ai_response=ai_result.content,
                plant_type=plant_type_hint,
            )
            cache_id = entry.id

        logger.info(f"✓ AI diagnosis via {provider}/{model}: {disease_name}")
        confidence = payload.confidence_score
        return DiagnosisResult(
            status=DiagnosisStatus.RESOLVED,
            source=DiagnosisSource.AI,
            disease_name=disease_name,
            score=confidence / 100 if confidence is not None else None,
            cache_id=cache_id,
            matched_symptoms=sorted(symptom_ids),
            diagnosis=payload,
            debug_info=AIDebugInfo(
                provider=provider,
                model=model,
                has_image=has_image,
                http_status_code=ai_result.debug_info.http_status_code,
            ),
        )

    # ==================================================================
    # Helpers
    # ==================================================================
    async def _single_flight(self, key: Tuple, call) -> DiagnosisResult:
        flight = self._in_flight.get(key)
        if flight is None:
            flight = _Flight(task=asyncio.ensure_future(call()))
            self._in_flight[key] = flight
            flight.task.add_done_callback(lambda _task: self._forget_flight(key, flight))
        else:
            logger.info(f"Joining in-flight AI call for '{key[0][:50]}'")

        flight.waiters += 1
        try:
            return await asyncio.shield(flight.task)
        except asyncio.CancelledError:
            # Last waiter gone: stop the AI call
            if flight.waiters == 1 and not flight.task.done():
                flight.task.cancel()
            raise
        finally:
            flight.waiters -= 1

    def _forget_flight(self, key: Tuple, flight: _Flight):
        if self._in_flight.get(key) is flight:
            del self._in_flight[key]

    @staticmethod
    def _failed(
        states: List[DiagnosisState],
        message: str,
        debug_info: Optional[AIDebugInfo],
    ) -> DiagnosisResult:
        states.append(DiagnosisState.FAILED)
        return DiagnosisResult(
            status=DiagnosisStatus.FAILED,
            error_message=message,
            debug_info=debug_info,
            states=states,
        )

    async def status(self) -> Dict:
        return {
            "available": self.gateway.is_available(),
            "provider": self.gateway.get_provider_name(),
            "model": self.gateway.get_model_name(),
            "symptoms_loaded": len(self.context.symptoms),
            "in_flight_ai_calls": len(self._in_flight),
        }
