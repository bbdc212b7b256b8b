"""
Gemini Classifier - real LLM classification over the Gemini REST API.

Requires GEMINI_API_KEY. Any transport or parsing failure yields a rejected
result; posts are never lost because the oracle misbehaved.
"""

from civichub.core.exceptions import ClassificationRejected
from civichub.core.settings import settings
from civichub.services.classifier.base import (
    ClassificationResult,
    ClassifierProvider,
    parse_classification_text,
)
from typing import Dict, Optional, Tuple
import logging
import requests

logger = logging.getLogger(__name__)


PROMPT_TEMPLATE = """You are a strict civic issue classifier. Analyze this post: "{description}"

CRITICAL RULES:
1. ONLY accept issues that EXACTLY match these 8 department categories
2. If the issue does NOT fit ANY department category, respond: "REJECT"
3. If it's irrelevant (social media/personal/ads/entertainment), respond: "REJECT"

ACCEPTED DEPARTMENTS (STRICT MATCHING ONLY):
- pwd: Roads, potholes, construction, buildings, infrastructure repairs
- water: Water leaks, pipe bursts, sewage blockage, drainage problems
- swm: Garbage collection, waste disposal, street cleaning, dustbin issues
- traffic: Traffic signals, parking violations, vehicle issues, road safety
- health: Public health threats, disease outbreaks, hospital issues, sanitation
- environment: Parks maintenance, tree cutting, pollution, garden issues
- electricity: Power outages, street lights, electrical cables, transformer issues
- disaster: Fire, flood, accidents, emergency situations

RESPONSE FORMAT (strict JSON only):
{{
  "department": "pwd | water | swm | traffic | health | environment | electricity | disaster",
  "priority": "High | Medium | Low | Critical",
  "summary": "short description"
}}

If the issue doesn't fit, just respond: "REJECT\""""


def split_data_uri(image_data: Optional[str]) -> Optional[Tuple[str, str]]:
    """'data:image/jpeg;base64,AAAA' → ('image/jpeg', 'AAAA'); anything else → None."""
    if not image_data or not image_data.startswith("data:") or "," not in image_data:
        return None
    header, payload = image_data.split(",", 1)
    if ";base64" not in header:
        return None
    mime_type = header[len("data:"):].split(";", 1)[0] or "image/jpeg"
    return mime_type, payload


class GeminiClassifier(ClassifierProvider):
    """
    Google Gemini classifier.
    """

    MODEL_VERSION = "v1beta"
    API_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None, timeout: Optional[float] = None):
        self.api_key = api_key if api_key is not None else settings.GEMINI_API_KEY
        self.model = model or settings.GEMINI_MODEL
        self.timeout = timeout or settings.AI_TIMEOUT_SECONDS
        self.enabled = bool(self.api_key and self.api_key.strip())

        if self.enabled:
            logger.info(f"✅ Gemini classifier initialized: {self.model}")
        else:
            logger.info("⚠️ Gemini classifier disabled: No API key configured")

    def is_enabled(self) -> bool:
        return self.enabled

    def get_model_info(self) -> Dict[str, str]:
        return {"name": self.model, "version": self.MODEL_VERSION}

    def classify(self, description: str, image_data: Optional[str] = None) -> ClassificationResult:
        if not self.enabled:
            return ClassificationResult.reject("AI processing error", model_name=self.model)

        try:
            text = self._call_gemini_api(self._build_payload(description, image_data))
            return parse_classification_text(text, description=description, model_name=self.model)
        except ClassificationRejected as e:
            logger.info(f"❌ Gemini rejected the post: {e.reason}")
            return ClassificationResult.reject(e.reason, model_name=self.model)
        except Exception as e:
            logger.warning(f"⚠️ Gemini API call failed: {str(e)}")
            return ClassificationResult.reject("AI processing error", model_name=self.model)

    def _build_payload(self, description: str, image_data: Optional[str]) -> Dict:
        parts = [{"text": PROMPT_TEMPLATE.format(description=description)}]
        inline = split_data_uri(image_data)
        if inline:
            mime_type, payload = inline
            parts.append({"inline_data": {"mime_type": mime_type, "data": payload}})
        return {"contents": [{"parts": parts}]}

    def _call_gemini_api(self, payload: Dict) -> str:
        response = requests.post(
            self.API_URL.format(model=self.model),
            params={"key": self.api_key},
            json=payload,
            timeout=self.timeout,
        )
        if response.status_code != 200:
            raise Exception(f"Gemini API returned status {response.status_code}: {response.text[:200]}")

        data = response.json()
        candidates = data.get("candidates") or []
        if not candidates:
            return ""
        parts = (candidates[0].get("content") or {}).get("parts") or []
        return (parts[0].get("text") or "").strip() if parts else ""
