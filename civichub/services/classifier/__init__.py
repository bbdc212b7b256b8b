"""
Classification oracle clients.

Turns a post into {department, priority, summary} or a rejection.
"""

from civichub.services.classifier.base import ClassificationResult, ClassifierProvider, parse_classification_text
from civichub.services.classifier.gemini_provider import GeminiClassifier
from civichub.services.classifier.mock_provider import MockClassifier
from civichub.services.classifier.registry import get_classifier

__all__ = [
    "ClassificationResult",
    "ClassifierProvider",
    "GeminiClassifier",
    "MockClassifier",
    "get_classifier",
    "parse_classification_text",
]
