"""
AI vision gateways.

Every gateway returns an AIAnalysisResult and never raises for provider
problems; failures are described in debug_info with error_source:
    "AI"  - the provider answered with an error (HTTP 4xx/5xx, quota, bad model)
    "App" - we could not call it or could not read the answer
"""
import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

import httpx
import openai
from openai import AsyncOpenAI

from plantdoc.models import (
    ERROR_SOURCE_AI,
    ERROR_SOURCE_APP,
    AIAnalysisResult,
    AIDebugInfo,
)
from plantdoc.utils.text_processing import truncate_excerpt

logger = logging.getLogger(__name__)

NOT_AVAILABLE_MESSAGE = "Service not available. API key not configured or service disabled."


# ============================================================================
# Prompt
# ============================================================================

RESPONSE_FORMAT = """{
  "plantInfo": {
    "commonName": "Ten thong thuong cua cay",
    "scientificName": "Ten khoa hoc (neu biet)",
    "family": "Ho cay (neu biet)",
    "description": "Mo ta ngan ve cay"
  },
  "diseaseInfo": {
    "isHealthy": true hoac false,
    "diseaseName": "Ten benh hoac 'Khoe manh' neu cay khoe",
    "severity": "None/Low/Medium/High/Critical",
    "symptoms": ["Trieu chung 1", "Trieu chung 2"],
    "causes": ["Nguyen nhan 1", "Nguyen nhan 2"],
    "notes": "Ghi chu them hoac thong tin can bo sung"
  },
  "treatment": {
    "immediateActions": ["Hanh dong can lam ngay 1"],
    "longTermCare": ["Cham soc dai han 1"],
    "preventionTips": ["Cach phong ngua 1"],
    "wateringAdvice": "Huong dan tuoi nuoc cu the",
    "lightingAdvice": "Huong dan anh sang cu the",
    "fertilizingAdvice": "Huong dan bon phan cu the"
  },
  "confidenceScore": 85,
  "productKeywords": ["phan bon", "thuoc tru sau"]
}"""


def build_diagnosis_prompt(user_description: Optional[str], language: str, has_image: bool) -> str:
    language_instruction = "Tra loi bang tieng Viet." if language == "vi" else "Respond in English."

    if has_image and user_description:
        analysis = (
            "Hay phan tich hinh anh cay nay KET HOP voi mo ta cua nguoi dung de chan doan chinh xac hon.\n\n"
            f"Mo ta cua nguoi dung: {user_description}"
        )
    elif has_image:
        analysis = "Hay phan tich hinh anh cay nay de chan doan tinh trang suc khoe va benh (neu co)"
    else:
        analysis = (
            "KHONG CO HINH ANH. Hay chan doan tinh trang cay CHI DUA TREN mo ta cua nguoi dung.\n\n"
            f"Mo ta cua nguoi dung: {user_description}\n\n"
            "Neu thong tin chua du, hay dua ra chan doan so bo va ghi chu nhung thong tin can bo sung"
        )

    return f"""Ban la chuyen gia chan doan benh cay trong voi nhieu nam kinh nghiem.

{analysis}

Tra loi theo format JSON chinh xac nhu sau:

{RESPONSE_FORMAT}

{language_instruction}

LUU Y QUAN TRONG:
- CHI TRA LOI JSON, KHONG CO TEXT KHAC
- confidenceScore tu 0-100 (neu chi co mo ta khong co hinh thi giam do chinh xac)"""


def split_data_url(image_base64: str):
    """'data:image/png;base64,xxx' -> ('image/png', 'xxx')"""
    mime_type = "image/jpeg"
    data = image_base64
    if "," in image_base64:
        header, data = image_base64.split(",", 1)
        for candidate in ("image/png", "image/webp", "image/jpeg"):
            if candidate in header:
                mime_type = candidate
                break
    return mime_type, data


# ============================================================================
# Gateway interface
# ============================================================================

class AIVisionGateway(ABC):

    @abstractmethod
    def is_available(self) -> bool:
        ...

    @abstractmethod
    def get_model_name(self) -> str:
        ...

    @abstractmethod
    def get_provider_name(self) -> str:
        ...

    @abstractmethod
    async def analyze_image(
        self,
        image_base64: Optional[str] = None,
        image_url: Optional[str] = None,
        user_description: Optional[str] = None,
        language: str = "vi",
    ) -> AIAnalysisResult:
        ...

    def _new_result(self, image_base64: Optional[str], image_url: Optional[str]) -> AIAnalysisResult:
        return AIAnalysisResult(
            debug_info=AIDebugInfo(
                provider=self.get_provider_name(),
                model=self.get_model_name(),
                has_image=bool(image_base64) or bool(image_url),
            )
        )

    def _unavailable(self, result: AIAnalysisResult) -> AIAnalysisResult:
        logger.warning(f"{self.get_provider_name()} service is not available. Check API key configuration.")
        result.debug_info.error_source = ERROR_SOURCE_APP
        result.debug_info.error_message = NOT_AVAILABLE_MESSAGE
        return result


def build_http_client(timeout: float, connect_timeout: float, transport=None) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=httpx.Timeout(
            connect=connect_timeout,
            read=timeout,
            write=timeout,
            pool=timeout
        ),
        transport=transport,
    )


# ============================================================================
# OpenAI-compatible chat completions (OpenRouter, Groq)
# ============================================================================

class OpenAICompatibleVisionGateway(AIVisionGateway):

    def __init__(
        self,
        provider_name: str,
        api_key: Optional[str],
        model: str,
        base_url: str,
        timeout: float = 60,
        connect_timeout: float = 15,
        max_tokens: int = 4096,
        temperature: float = 0.4,
        extra_headers: Optional[Dict[str, str]] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.provider_name = provider_name
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.extra_headers = extra_headers or {}
        self.client = client
        if self.client is None and api_key:
            self.client = AsyncOpenAI(
                base_url=base_url,
                api_key=api_key,
                http_client=build_http_client(timeout, connect_timeout),
            )
            logger.info(f"{provider_name} ({model}) initialized with {timeout}s timeout")

    def is_available(self) -> bool:
        return self.client is not None and bool(self.model)

    def get_model_name(self) -> str:
        return self.model

    def get_provider_name(self) -> str:
        return self.provider_name

    def _build_messages(self, prompt: str, image_base64: Optional[str], image_url: Optional[str]) -> List[Dict]:
        content = [{"type": "text", "text": prompt}]
        if image_base64:
            url = image_base64 if image_base64.startswith("data:") else f"data:image/jpeg;base64,{image_base64}"
            content.append({"type": "image_url", "image_url": {"url": url}})
        elif image_url:
            content.append({"type": "image_url", "image_url": {"url": image_url}})
        return [{"role": "user", "content": content}]

    async def analyze_image(
        self,
        image_base64: Optional[str] = None,
        image_url: Optional[str] = None,
        user_description: Optional[str] = None,
        language: str = "vi",
    ) -> AIAnalysisResult:
        result = self._new_result(image_base64, image_url)
        if not self.is_available():
            return self._unavailable(result)

        debug = result.debug_info
        prompt = build_diagnosis_prompt(user_description, language, debug.has_image)
        logger.info(f"Calling {self.provider_name}. HasImage: {debug.has_image}, Model: {self.model}")

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=self._build_messages(prompt, image_base64, image_url),
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                extra_headers=self.extra_headers or None,
            )
        except openai.APIStatusError as e:
            logger.error(f"{self.provider_name} API error: {e.status_code} - {e.message}")
            debug.error_source = ERROR_SOURCE_AI
            debug.http_status_code = e.status_code
            debug.error_code = e.status_code
            debug.error_message = e.message
            debug.raw_response_excerpt = truncate_excerpt(e.response.text if e.response is not None else None)
            if e.status_code == 429:
                logger.warning(f"{self.provider_name} quota exceeded. Please wait or check billing.")
            return result
        except (openai.APIConnectionError, httpx.TimeoutException, httpx.ConnectError) as e:
            logger.error(f"{self.provider_name} connection error: {e}")
            debug.error_source = ERROR_SOURCE_APP
            debug.error_message = f"Connection error: {e}"
            return result
        except openai.APIError as e:
            # Provider answered but the answer is unusable (e.g. schema validation)
            logger.error(f"{self.provider_name} API error: {e}")
            debug.error_source = ERROR_SOURCE_AI
            debug.error_message = e.message
            return result

        debug.http_status_code = 200
        raw_text = response.choices[0].message.content if response.choices else None
        debug.raw_response_excerpt = truncate_excerpt(raw_text)

        if not raw_text:
            debug.error_source = ERROR_SOURCE_APP
            debug.error_message = f"Empty response from {self.provider_name}"
            return result

        logger.info(f"{self.provider_name} response received. Length: {len(raw_text)}")
        result.success = True
        result.content = raw_text
        return result


# ============================================================================
# Gemini generateContent (REST)
# ============================================================================

class GeminiVisionGateway(AIVisionGateway):

    def __init__(
        self,
        api_key: Optional[str],
        model: str,
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        timeout: float = 60,
        connect_timeout: float = 15,
        max_tokens: int = 4096,
        temperature: float = 0.4,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.http_client = http_client
        if self.http_client is None and api_key:
            self.http_client = build_http_client(timeout, connect_timeout)
            logger.info(f"Gemini ({model}) initialized with {timeout}s timeout")

    def is_available(self) -> bool:
        return bool(self.api_key) and bool(self.model) and self.http_client is not None

    def get_model_name(self) -> str:
        return self.model

    def get_provider_name(self) -> str:
        return "Gemini"

    def _build_body(self, prompt: str, image_base64: Optional[str], image_url: Optional[str]) -> Dict:
        parts = [{"text": prompt}]
        if image_base64:
            mime_type, data = split_data_url(image_base64)
            parts.append({"inline_data": {"mime_type": mime_type, "data": data}})
        elif image_url:
            parts.append({"file_data": {"mime_type": "image/jpeg", "file_uri": image_url}})

        generation_config = {
            "temperature": self.temperature,
            "maxOutputTokens": self.max_tokens,
        }
        if not (image_base64 or image_url):
            generation_config["responseMimeType"] = "application/json"

        return {"contents": [{"parts": parts}], "generationConfig": generation_config}

    async def analyze_image(
        self,
        image_base64: Optional[str] = None,
        image_url: Optional[str] = None,
        user_description: Optional[str] = None,
        language: str = "vi",
    ) -> AIAnalysisResult:
        result = self._new_result(image_base64, image_url)
        if not self.is_available():
            return self._unavailable(result)

        debug = result.debug_info
        prompt = build_diagnosis_prompt(user_description, language, debug.has_image)
        url = f"{self.base_url}/models/{self.model}:generateContent"
        logger.info(f"Calling Gemini API. HasImage: {debug.has_image}, Model: {self.model}")

        try:
            response = await self.http_client.post(
                url,
                params={"key": self.api_key},
                json=self._build_body(prompt, image_base64, image_url),
            )
        except httpx.HTTPError as e:
            logger.error(f"Gemini connection error: {e}")
            debug.error_source = ERROR_SOURCE_APP
            debug.error_message = f"Connection error: {e}"
            return result

        debug.http_status_code = response.status_code
        debug.raw_response_excerpt = truncate_excerpt(response.text)

        if response.is_error:
            logger.error(f"Gemini API error: {response.status_code} - {response.text[:200]}")
            debug.error_source = ERROR_SOURCE_AI
            error = _json_or_empty(response).get("error") or {}
            debug.error_message = error.get("message") or "Unknown error"
            debug.error_code = error.get("code") if isinstance(error.get("code"), int) else None
            if debug.error_code == 429:
                logger.warning("Gemini API quota exceeded. Please wait or check billing.")
            elif debug.error_code == 404:
                logger.error("Gemini model not found. Please check GEMINI_MODEL setting")
            return result

        text = _extract_gemini_text(_json_or_empty(response))
        if text is None:
            debug.error_source = ERROR_SOURCE_APP
            debug.error_message = "Failed to extract text from Gemini response"
            return result

        result.success = True
        result.content = text
        return result


def _json_or_empty(response: httpx.Response) -> Dict:
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


def _extract_gemini_text(data: Dict) -> Optional[str]:
    candidates = data.get("candidates") or []
    if not candidates:
        return None
    parts = (candidates[0].get("content") or {}).get("parts") or []
    texts = [p["text"] for p in parts if isinstance(p, dict) and p.get("text")]
    return "".join(texts) if texts else None
