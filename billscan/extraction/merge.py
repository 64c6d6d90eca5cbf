"""Majority-vote merging of several OCR passes over the same bill."""

from collections.abc import Sequence
from dataclasses import dataclass, field

from billscan.ocr.tesseract_engine import OCRResult
from billscan.utils.config import ConfidenceConfig
from billscan.utils.logger import get_logger

from .confidence import FieldConfidence, overall_confidence
from .rule_extractor import FIELD_NAMES, BillFields, FieldExtractor

logger = get_logger(__name__)


@dataclass
class MergeResult:
    """Consensus fields with agreement-based confidences."""

    fields: BillFields
    field_confidences: dict[str, FieldConfidence]
    overall_confidence: float
    pass_count: int
    pass_fields: list[BillFields] = field(default_factory=list)


def vote(values: Sequence[str]) -> tuple[str, float]:
    """Pick the most frequent non-empty value.

    Ties go to the value seen first. The score is the share of non-empty
    values that agree with the winner, or 0 when every value is empty.
    """
    counts: dict[str, int] = {}
    for value in values:
        if value:
            counts[value] = counts.get(value, 0) + 1

    if not counts:
        return "", 0.0

    winner = ""
    best = 0
    for value, count in counts.items():
        if count > best:
            winner, best = value, count
    return winner, best / sum(counts.values())


def merge_fields(
    pass_fields: Sequence[BillFields],
    config: ConfidenceConfig | None = None,
) -> MergeResult:
    """Merge already extracted fields from passes given in pass order."""
    merged: dict[str, str] = {}
    confidences: dict[str, FieldConfidence] = {}

    for name in FIELD_NAMES:
        value, agreement = vote([fields.get(name) for fields in pass_fields])
        merged[name] = value
        confidences[name] = FieldConfidence.from_score(value, agreement, config)

    overall = overall_confidence(confidences)
    logger.info(
        "Merged %d passes: %d fields filled, overall confidence %.2f",
        len(pass_fields),
        sum(1 for v in merged.values() if v),
        overall,
    )
    return MergeResult(
        fields=BillFields(**merged),
        field_confidences=confidences,
        overall_confidence=overall,
        pass_count=len(pass_fields),
        pass_fields=list(pass_fields),
    )


def merge_passes(
    results: Sequence[OCRResult],
    extractor: FieldExtractor | None = None,
    config: ConfidenceConfig | None = None,
) -> MergeResult:
    """Extract fields from each completed OCR pass and merge them by vote.

    Args:
        results: OCR results of completed passes, in pass order.
        extractor: Field extractor applied to each pass's text.
        config: Thresholds for status bands and review flags.

    Returns:
        Consensus fields, per-field agreement confidences and their mean.
    """
    extractor = extractor or FieldExtractor()
    return merge_fields([extractor.extract(r.text) for r in results], config)
