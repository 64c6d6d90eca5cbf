"""Per-field confidence scoring.

A field's confidence is the mean OCR confidence of the words that make up
its value. Status bands and the review flag use independent thresholds.
"""

from dataclasses import dataclass
from enum import StrEnum

from billscan.ocr.tesseract_engine import OCRResult
from billscan.utils.config import ConfidenceConfig
from billscan.utils.logger import get_logger

from .rule_extractor import FIELD_NAMES, BillFields

logger = get_logger(__name__)


class ConfidenceStatus(StrEnum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class FieldConfidence:
    """Reliability of one extracted field value."""

    confidence: float
    value: str
    needs_review: bool
    status: ConfidenceStatus

    @classmethod
    def from_score(
        cls, value: str, confidence: float, config: ConfidenceConfig | None = None
    ) -> "FieldConfidence":
        """Clamp a raw score into [0, 1] and derive status and review flag."""
        config = config or ConfidenceConfig()
        confidence = min(1.0, max(0.0, float(confidence)))
        if confidence >= config.high_threshold:
            status = ConfidenceStatus.HIGH
        elif confidence >= config.medium_threshold:
            status = ConfidenceStatus.MEDIUM
        else:
            status = ConfidenceStatus.LOW
        return cls(
            confidence=confidence,
            value=value,
            needs_review=confidence < config.review_threshold,
            status=status,
        )

    def to_dict(self) -> dict:
        return {
            "confidence": self.confidence,
            "value": self.value,
            "needs_review": self.needs_review,
            "status": str(self.status),
        }


def score_value(value: str, ocr_result: OCRResult, fallback: float = 0.5) -> float:
    """Score one field value against the words of an OCR pass.

    Words count when either text contains the other, ignoring case. With no
    matching word the pass confidence is used, then ``fallback``.
    """
    if not value:
        return 0.0

    needle = value.lower()
    matched = [
        w.confidence
        for w in ocr_result.words
        if w.text.strip()
        and (w.text.lower() in needle or needle in w.text.lower())
    ]
    if matched:
        return sum(matched) / len(matched) / 100.0
    if ocr_result.confidence:
        return ocr_result.confidence / 100.0
    return fallback


def estimate_confidences(
    fields: BillFields,
    ocr_result: OCRResult,
    config: ConfidenceConfig | None = None,
) -> dict[str, FieldConfidence]:
    """Estimate the confidence of every bill field from one OCR pass.

    Args:
        fields: Fields extracted from ``ocr_result.text``.
        ocr_result: The OCR pass the fields came from.
        config: Thresholds and fallback score.

    Returns:
        Mapping of field name to its confidence entry.
    """
    config = config or ConfidenceConfig()
    confidences = {
        name: FieldConfidence.from_score(
            fields.get(name),
            score_value(fields.get(name), ocr_result, config.fallback_confidence),
            config,
        )
        for name in FIELD_NAMES
    }
    logger.debug(
        "Field confidences: %s",
        ", ".join(f"{n}={c.confidence:.2f}" for n, c in confidences.items()),
    )
    return confidences


def overall_confidence(confidences: dict[str, FieldConfidence]) -> float:
    """Mean confidence over the bill fields, 0 when none are present."""
    if not confidences:
        return 0.0
    return sum(c.confidence for c in confidences.values()) / len(confidences)
