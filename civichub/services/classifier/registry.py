"""
Classifier Registry.

Selects the classification provider based on configuration:
- CLASSIFIER_ENABLED=false → rule-based provider
- GEMINI_API_KEY set → Gemini
- otherwise → rule-based provider

There is no fallback from Gemini to the rules on error: an oracle failure is
a rejection, not a second opinion.
"""

from civichub.core.settings import settings
from civichub.services.classifier.base import ClassifierProvider
from civichub.services.classifier.gemini_provider import GeminiClassifier
from civichub.services.classifier.mock_provider import MockClassifier
from typing import Optional
import logging

logger = logging.getLogger(__name__)


def build_classifier() -> ClassifierProvider:
    if not settings.CLASSIFIER_ENABLED:
        logger.info("⚠️ Classification disabled (CLASSIFIER_ENABLED=false), using rule-based provider")
        return MockClassifier()

    gemini = GeminiClassifier()
    if gemini.is_enabled():
        return gemini

    logger.info("Using rule-based classifier (no GEMINI_API_KEY)")
    return MockClassifier()


_classifier: Optional[ClassifierProvider] = None


def get_classifier() -> ClassifierProvider:
    global _classifier
    if _classifier is None:
        _classifier = build_classifier()
    return _classifier
