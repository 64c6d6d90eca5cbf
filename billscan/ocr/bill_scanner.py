"""Scan orchestration for photographed bills.

Decodes the photo, runs the advisory quality gate, performs one (quick) or
several (full) sequential OCR passes, extracts fields and scores them. A
full scan merges its passes by majority vote.
"""

import threading
from collections.abc import Callable
from dataclasses import asdict, dataclass, field
from enum import StrEnum
from pathlib import Path

import numpy as np

from billscan.errors import EngineError, InputError, ScanCancelled, ScanInProgressError
from billscan.extraction.aggregator import ConfidenceAggregator, ConfidenceSummary
from billscan.extraction.confidence import (
    FieldConfidence,
    estimate_confidences,
    overall_confidence,
)
from billscan.extraction.merge import merge_passes
from billscan.extraction.rule_extractor import BillFields, FieldExtractor
from billscan.extraction.template_matcher import AUTO_TEMPLATE, TemplateRegistry
from billscan.preprocessing.pipeline import PreprocessingPipeline
from billscan.quality.analyzer import QualityReport, analyze_quality
from billscan.quality.pixels import PixelBuffer, decode_image
from billscan.utils.config import AppConfig
from billscan.utils.logger import get_logger

from .tesseract_engine import OCREngine, OCRResult, TesseractEngine

logger = get_logger(__name__)

EngineFactory = Callable[[], OCREngine]


class ScanMode(StrEnum):
    QUICK = "quick"
    FULL = "full"


@dataclass
class ScanResult:
    """Outcome of one scan as handed back to the caller."""

    fields: BillFields
    field_confidences: dict[str, FieldConfidence]
    overall_confidence: float
    cancelled: bool = False
    mode: ScanMode = ScanMode.QUICK
    pass_count: int = 0
    quality: QualityReport | None = None
    summary: ConfidenceSummary | None = None
    template: str | None = None
    raw_texts: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "fields": self.fields.to_dict(),
            "field_confidences": {
                name: fc.to_dict() for name, fc in self.field_confidences.items()
            },
            "overall_confidence": self.overall_confidence,
            "cancelled": self.cancelled,
            "mode": str(self.mode),
            "pass_count": self.pass_count,
            "quality": self.quality.to_dict() if self.quality else None,
            "summary": asdict(self.summary) if self.summary is not None else None,
            "template": self.template,
        }


class BillScanner:
    """Runs quick and multi-pass scans, one at a time.

    Args:
        config: Application configuration.
        engine_factory: Creates a fresh OCR engine for each pass. Defaults
            to a Tesseract engine built from ``config.ocr``.
        extractor: Field extractor. Defaults to one built from the
            configured template, or the built-in rules.
    """

    def __init__(
        self,
        config: AppConfig | None = None,
        engine_factory: EngineFactory | None = None,
        extractor: FieldExtractor | None = None,
    ) -> None:
        self.config = config or AppConfig()
        self.engine_factory = engine_factory or (lambda: TesseractEngine(self.config.ocr))
        self.templates: TemplateRegistry | None = None
        self.template_name: str | None = None
        self._auto_template = False
        self.extractor = extractor or self._build_extractor()
        self.preprocessing = PreprocessingPipeline(
            self.config.preprocessing, vary=self.config.scan.vary_preprocessing
        )
        self._cancel_event = threading.Event()
        self._scan_lock = threading.Lock()
        # Held whenever scan start, scan end or cancel() touches the cancel event.
        self._state_lock = threading.Lock()

    def _build_extractor(self) -> FieldExtractor:
        name = self.config.extraction.template
        if not name:
            return FieldExtractor(self.config.extraction)

        self.templates = TemplateRegistry(Path(self.config.extraction.templates_path))
        if name == AUTO_TEMPLATE:
            self._auto_template = True
            logger.info("Extraction template will be matched per bill")
            return FieldExtractor(self.config.extraction)

        template = self.templates.get_template(name)
        self.template_name = template.name
        logger.info("Using extraction template '%s'", template.name)
        return template.create_extractor(self.config.extraction)

    def _select_extractor(self, text: str) -> tuple[FieldExtractor, str | None]:
        """Pick the extractor for a bill, matching a template on its text in auto mode."""
        if not self._auto_template or self.templates is None:
            return self.extractor, self.template_name

        match = self.templates.match_template(
            text, self.config.extraction.template_min_confidence
        )
        if match is None:
            logger.info("No template matched; using built-in rules")
            return self.extractor, None
        return match.template.create_extractor(self.config.extraction), match.template.name

    @property
    def scanning(self) -> bool:
        return self._scan_lock.locked()

    def analyze_quality(self, image: PixelBuffer | bytes) -> QualityReport:
        """Check whether a photo is likely to OCR well."""
        buffer = image if isinstance(image, PixelBuffer) else decode_image(image)
        return analyze_quality(buffer, self.config.quality)

    def cancel(self) -> None:
        """Ask the running scan to stop at its next checkpoint."""
        with self._state_lock:
            if not self.scanning:
                logger.debug("Cancel requested with no scan running")
                return
            logger.info("Scan cancellation requested")
            self._cancel_event.set()

    def scan(
        self,
        image_bytes: bytes,
        mode: ScanMode | str = ScanMode.QUICK,
        pass_count: int | None = None,
        aggregator: ConfidenceAggregator | None = None,
    ) -> ScanResult:
        """Scan a bill photo into structured fields.

        Args:
            image_bytes: Encoded image (PNG, JPEG, TIFF).
            mode: ``quick`` for a single pass, ``full`` for a merged
                multi-pass scan.
            pass_count: Number of passes for a full scan. Defaults to
                ``scan.default_pass_count``.
            aggregator: Confidence aggregator owned by the caller; it is
                reset before the first pass.

        Returns:
            Fields, confidences and overall confidence, or an empty
            result flagged ``cancelled`` if the scan was cancelled.

        Raises:
            InputError: For an unknown mode, a bad pass count or an
                undecodable image.
            EngineError: If the OCR engine fails during any pass.
            ScanInProgressError: If this scanner is already scanning.
        """
        try:
            mode = ScanMode(mode)
        except ValueError as exc:
            raise InputError(f"Unknown scan mode: {mode}") from exc

        if mode == ScanMode.QUICK:
            passes = 1
        elif pass_count is None:
            passes = self.config.scan.default_pass_count
        else:
            passes = pass_count
        if passes < 1:
            raise InputError(f"Pass count must be at least 1, got {passes}")

        with self._state_lock:
            if not self._scan_lock.acquire(blocking=False):
                raise ScanInProgressError("A scan is already in progress")
            self._cancel_event.clear()

        try:
            if aggregator is None:
                aggregator = ConfidenceAggregator(self.config.confidence)
            aggregator.reset()

            buffer = decode_image(image_bytes)
            quality = analyze_quality(buffer, self.config.quality)

            try:
                results = self._run_passes(buffer.as_array().copy(), passes)
            except ScanCancelled:
                aggregator.reset()
                logger.info("Scan cancelled; completed passes discarded")
                return ScanResult(
                    fields=BillFields(),
                    field_confidences={},
                    overall_confidence=0.0,
                    cancelled=True,
                    mode=mode,
                    quality=quality,
                    summary=aggregator.summary(),
                )
            except EngineError as exc:
                logger.error("OCR engine failed, aborting scan: %s", exc)
                raise

            return self._build_result(results, mode, quality, aggregator)
        finally:
            with self._state_lock:
                self._cancel_event.clear()
                self._scan_lock.release()

    def _checkpoint(self) -> None:
        if self._cancel_event.is_set():
            raise ScanCancelled("Scan cancelled")

    def _run_passes(self, image: np.ndarray, passes: int) -> list[OCRResult]:
        """Run OCR passes sequentially, each on its own engine instance."""
        results: list[OCRResult] = []
        for index in range(passes):
            self._checkpoint()
            prepared = self.preprocessing.process(image, index)
            with self.engine_factory() as engine:
                result = engine.recognize(prepared, self._cancel_event)
            self._checkpoint()
            logger.info(
                "Pass %d/%d complete (confidence %.1f)",
                index + 1,
                passes,
                result.confidence,
            )
            results.append(result)
        return results

    def _build_result(
        self,
        results: list[OCRResult],
        mode: ScanMode,
        quality: QualityReport,
        aggregator: ConfidenceAggregator,
    ) -> ScanResult:
        extractor, template = self._select_extractor(results[0].text)
        if mode == ScanMode.QUICK:
            fields = extractor.extract(results[0].text)
            confidences = estimate_confidences(fields, results[0], self.config.confidence)
            overall = overall_confidence(confidences)
        else:
            merged = merge_passes(results, extractor, self.config.confidence)
            fields = merged.fields
            confidences = merged.field_confidences
            overall = merged.overall_confidence

        aggregator.record_all(confidences)
        summary = aggregator.summary()
        if summary.needs_review:
            logger.info("Fields needing review: %s", ", ".join(summary.needs_review))

        return ScanResult(
            fields=fields,
            field_confidences=confidences,
            overall_confidence=overall,
            mode=mode,
            pass_count=len(results),
            quality=quality,
            summary=summary,
            template=template,
            raw_texts=[r.text for r in results],
        )
