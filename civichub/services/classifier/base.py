"""
Classifier Base Interface.

Defines the contract for classification providers and the shared parsing of
the oracle's text answer. Providers never raise: a failure of any kind is a
rejected result.
"""

from abc import ABC, abstractmethod
from typing import Dict, Optional
import json
import logging

from civichub.core.exceptions import ClassificationRejected
from civichub.models.issue import DEPARTMENTS, Department, Priority

logger = logging.getLogger(__name__)

REJECTED_CATEGORY = "rejected"
SUMMARY_FALLBACK_LENGTH = 100


class ClassificationResult:
    """
    Standardized classification outcome.

    Accepted results carry department, category, priority and summary.
    Rejected results carry the reason in summary and priority "Low".
    """

    def __init__(
        self,
        accepted: bool,
        department: Optional[str],
        category: str,
        priority: str,
        summary: str,
        model_name: str = "unknown"
    ):
        self.accepted = accepted
        self.department = department
        self.category = category
        self.priority = priority
        self.summary = summary
        self.model_name = model_name

    @classmethod
    def accept(cls, department: Department, priority: str, summary: str, model_name: str = "unknown") -> "ClassificationResult":
        return cls(
            accepted=True,
            department=department.value,
            category=DEPARTMENTS[department]["name"],
            priority=priority,
            summary=summary,
            model_name=model_name,
        )

    @classmethod
    def reject(cls, reason: str, model_name: str = "unknown") -> "ClassificationResult":
        return cls(
            accepted=False,
            department=None,
            category=REJECTED_CATEGORY,
            priority=Priority.LOW.value,
            summary=f"Post rejected: {reason}",
            model_name=model_name,
        )

    def to_dict(self) -> Dict:
        return {
            "accepted": self.accepted,
            "department": self.department,
            "category": self.category,
            "priority": self.priority,
            "summary": self.summary,
            "model_name": self.model_name,
        }

    def __repr__(self) -> str:
        return f"ClassificationResult({self.to_dict()!r})"


def _strip_code_fence(text: str) -> str:
    if text.startswith("```json") and text.endswith("```"):
        return text[7:-3].strip()
    if text.startswith("```") and text.endswith("```"):
        return text[3:-3].strip()
    return text


def parse_classification_text(text: str, description: str = "", model_name: str = "unknown") -> ClassificationResult:
    """
    Turn the oracle's answer into an accepted result.

    Expected answer: "REJECT", or JSON (optionally in a ``` fence) with
    department, priority and summary.

    Raises:
        ClassificationRejected: REJECT answer, invalid JSON, or a department
            outside the fixed taxonomy
    """
    text = (text or "").strip()
    if not text or text.upper().startswith("REJECT"):
        raise ClassificationRejected("Not a civic issue")

    try:
        parsed = json.loads(_strip_code_fence(text))
    except json.JSONDecodeError:
        logger.warning(f"⚠️ Classifier returned invalid JSON: {text[:200]}")
        raise ClassificationRejected("Invalid AI response")

    if not isinstance(parsed, dict):
        raise ClassificationRejected("Invalid AI response")

    try:
        department = Department(str(parsed.get("department") or "").strip().lower())
    except ValueError:
        raise ClassificationRejected("Does not match any civic department category")

    priority = parsed.get("priority")
    summary = parsed.get("summary")
    if any(value is not None and not isinstance(value, str) for value in (priority, summary)):
        raise ClassificationRejected("Invalid AI response")

    if priority not in {p.value for p in Priority}:
        priority = DEPARTMENTS[department]["priority"]

    summary = summary or description[:SUMMARY_FALLBACK_LENGTH]
    return ClassificationResult.accept(department, priority, summary, model_name=model_name)


class ClassifierProvider(ABC):
    """
    Abstract base class for classification providers.
    """

    @abstractmethod
    def is_enabled(self) -> bool:
        pass

    @abstractmethod
    def get_model_info(self) -> Dict[str, str]:
        """Dict with 'name' and 'version' keys."""
        pass

    @abstractmethod
    def classify(self, description: str, image_data: Optional[str] = None) -> ClassificationResult:
        """
        Classify a post into a civic department.

        This method MUST:
        - Return a ClassificationResult even on failure (rejected)
        - Never raise exceptions
        - Respect its timeout
        """
        pass
