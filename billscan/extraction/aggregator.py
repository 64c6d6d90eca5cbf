"""Scan-scoped collection of field confidences.

The aggregator is owned by whoever starts a scan and is passed explicitly
through the scan, so concurrent scans never share one.
"""

from dataclasses import dataclass, field

from billscan.utils.config import ConfidenceConfig

from .confidence import ConfidenceStatus, FieldConfidence


@dataclass
class ConfidenceSummary:
    average: float
    low_confidence_fields: list[str] = field(default_factory=list)
    needs_review: list[str] = field(default_factory=list)
    total_fields: int = 0


class ConfidenceAggregator:
    """Latest confidence per field for a single scan."""

    def __init__(self, config: ConfidenceConfig | None = None) -> None:
        self.config = config or ConfidenceConfig()
        self._entries: dict[str, FieldConfidence] = {}

    def reset(self) -> None:
        self._entries.clear()

    def record(self, field_name: str, confidence: float, value: str) -> FieldConfidence:
        """Store or overwrite the confidence of one field."""
        entry = FieldConfidence.from_score(value, confidence, self.config)
        self._entries[field_name] = entry
        return entry

    def record_all(self, confidences: dict[str, FieldConfidence]) -> None:
        for name, entry in confidences.items():
            self.record(name, entry.confidence, entry.value)

    @property
    def entries(self) -> dict[str, FieldConfidence]:
        return dict(self._entries)

    def summary(self) -> ConfidenceSummary:
        entries = self._entries
        average = (
            sum(e.confidence for e in entries.values()) / len(entries) if entries else 0.0
        )
        return ConfidenceSummary(
            average=average,
            low_confidence_fields=[
                name for name, e in entries.items() if e.status == ConfidenceStatus.LOW
            ],
            needs_review=[name for name, e in entries.items() if e.needs_review],
            total_fields=len(entries),
        )
