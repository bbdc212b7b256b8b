"""
Rule-based Classifier - fallback provider when no LLM is configured.

Keyword matching over the post text. Deterministic, instant, never fails.
A post that matches no department keyword is rejected, mirroring the strict
LLM prompt.
"""

from civichub.models.issue import DEPARTMENTS, Department, Priority
from civichub.services.classifier.base import ClassificationResult, ClassifierProvider
from typing import Dict, List, Optional, Tuple
import logging

logger = logging.getLogger(__name__)


# Checked in order; disaster first so "fire near the transformer" is not electricity
KEYWORDS: List[Tuple[Department, List[str]]] = [
    (Department.DISASTER, ["fire", "flood", "accident", "collapse", "emergency", "earthquake"]),
    (Department.WATER, ["water", "leak", "leakage", "pipe", "sewage", "drainage", "drain", "tap"]),
    (Department.SWM, ["garbage", "waste", "trash", "dustbin", "litter", "dump"]),
    (Department.TRAFFIC, ["traffic", "signal", "parking", "jam", "congestion", "vehicle"]),
    (Department.ELECTRICITY, ["electricity", "power", "outage", "streetlight", "transformer", "cable", "wire"]),
    (Department.HEALTH, ["health", "hospital", "mosquito", "disease", "clinic", "sanitation"]),
    (Department.ENVIRONMENT, ["tree", "park", "garden", "pollution", "smoke", "noise"]),
    (Department.PWD, ["pothole", "road", "construction", "building", "bridge", "footpath", "crack"]),
]

URGENT_WORDS = {"urgent", "dangerous", "severe", "serious", "blocking", "major"}


def _words(text: str) -> List[str]:
    return [w.strip(".,!?;:\"'()").lower() for w in text.split()]


class MockClassifier(ClassifierProvider):
    """
    Rule-based classifier used when:
    - Classification is disabled in config
    - No GEMINI_API_KEY is available
    """

    MODEL_NAME = "rules-v1"
    MODEL_VERSION = "1.0.0"

    def is_enabled(self) -> bool:
        return True

    def get_model_info(self) -> Dict[str, str]:
        return {"name": self.MODEL_NAME, "version": self.MODEL_VERSION}

    def classify(self, description: str, image_data: Optional[str] = None) -> ClassificationResult:
        words = set(_words(description or ""))

        department = next(
            (dept for dept, keywords in KEYWORDS if words.intersection(keywords)),
            None
        )
        if department is None:
            return ClassificationResult.reject("Not a civic issue", model_name=self.MODEL_NAME)

        priority = DEPARTMENTS[department]["priority"]
        if words.intersection(URGENT_WORDS) and priority != Priority.CRITICAL.value:
            priority = Priority.CRITICAL.value if department == Department.DISASTER else Priority.HIGH.value

        summary = description.split(".")[0].strip()
        if len(summary) > 100:
            summary = summary[:97] + "..."

        return ClassificationResult.accept(department, priority, summary, model_name=self.MODEL_NAME)
