"""OCR engine adapter built on Tesseract.

Engines are single-use resources: each OCR pass acquires one with a ``with``
block so it is closed whether the pass completes, fails or is cancelled.
"""

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

import numpy as np
import pytesseract
from PIL import Image

from billscan.errors import EngineError, ScanCancelled
from billscan.utils.config import OCRConfig
from billscan.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class OCRWord:
    """A recognized word and its engine confidence (0-100)."""

    text: str
    confidence: float


@dataclass
class OCRResult:
    """Full text of one OCR pass with overall and per-word confidences (0-100)."""

    text: str
    confidence: float = 0.0
    words: list[OCRWord] = field(default_factory=list)


class OCREngine(ABC):
    """Interface for OCR engines used by the scanner."""

    def __init__(self) -> None:
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @abstractmethod
    def recognize(
        self, image: np.ndarray, cancel_event: threading.Event | None = None
    ) -> OCRResult:
        """Recognize the text in an image.

        Implementations should raise ``ScanCancelled`` when ``cancel_event``
        is set at one of their checkpoints.
        """
        raise NotImplementedError

    def close(self) -> None:
        self._closed = True

    def __enter__(self) -> "OCREngine":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def _checkpoint(cancel_event: threading.Event | None) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise ScanCancelled("OCR pass cancelled")


class TesseractEngine(OCREngine):
    """Tesseract OCR restricted to the characters that occur on bills.

    Args:
        config: OCR configuration (language, page segmentation mode,
            character whitelist, optional timeout).
    """

    def __init__(self, config: OCRConfig | None = None) -> None:
        super().__init__()
        self.config = config or OCRConfig()
        if self.config.tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = self.config.tesseract_cmd

    def build_config(self) -> str:
        """Build the Tesseract command-line options for this engine."""
        options = f"--oem {self.config.oem} --psm {self.config.psm}"
        if self.config.char_whitelist:
            options += f' -c tessedit_char_whitelist="{self.config.char_whitelist}"'
        return options + " -c preserve_interword_spaces=1"

    def recognize(
        self, image: np.ndarray, cancel_event: threading.Event | None = None
    ) -> OCRResult:
        """Run Tesseract on an image.

        Args:
            image: Grayscale or RGB(A) image as a numpy array.
            cancel_event: Checked before each Tesseract invocation.

        Returns:
            Recognized text with overall and per-word confidences.

        Raises:
            EngineError: If Tesseract is missing, times out or fails, or
                if the engine was already closed.
            ScanCancelled: If cancellation was requested.
        """
        if self.closed:
            raise EngineError("OCR engine used after close")

        pil_image = Image.fromarray(image)
        options = self.build_config()
        kwargs = {"lang": self.config.default_lang, "config": options}
        if self.config.timeout:
            kwargs["timeout"] = self.config.timeout

        try:
            _checkpoint(cancel_event)
            text = pytesseract.image_to_string(pil_image, **kwargs)
            _checkpoint(cancel_event)
            data = pytesseract.image_to_data(
                pil_image, output_type=pytesseract.Output.DICT, **kwargs
            )
        except ScanCancelled:
            raise
        except pytesseract.TesseractNotFoundError as exc:
            raise EngineError("Tesseract executable not found") from exc
        except (pytesseract.TesseractError, RuntimeError) as exc:
            raise EngineError(f"Tesseract failed: {exc}") from exc

        words: list[OCRWord] = []
        for raw_text, raw_conf in zip(data["text"], data["conf"]):
            word_text = str(raw_text).strip()
            conf = float(raw_conf)
            if conf >= 0 and word_text:
                words.append(OCRWord(text=word_text, confidence=conf))

        confidence = (
            sum(w.confidence for w in words) / len(words) if words else 0.0
        )
        logger.info(
            "OCR recognized %d words with average confidence %.1f",
            len(words),
            confidence,
        )
        return OCRResult(text=text, confidence=confidence, words=words)

    def close(self) -> None:
        if not self.closed:
            logger.debug("Releasing Tesseract engine")
        super().close()
