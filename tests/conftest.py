"""Shared test fixtures for the bill scanner test suite."""

import io
import threading
from collections.abc import Callable
from pathlib import Path

import numpy as np
import pytest
from PIL import Image

from billscan.errors import ScanCancelled
from billscan.ocr.tesseract_engine import OCREngine, OCRResult, OCRWord

SAMPLE_BILL_TEXT = (
    "NEW GOO NITS\n"
    "TAX INVOICE\n"
    "Invoice No: NGN-2024-118\n"
    "Date: 25/12/2024\n"
    "Bill To: Sri Lakshmi Textiles\n"
    "GSTIN: 33ABCDE1234F1Z5\n"
    "Sub Total: 10,000.00\n"
    "GST: 500.00\n"
    "Grand Total: 10,500.00\n"
)


class FakeEngine(OCREngine):
    """OCR engine returning a scripted result."""

    def __init__(
        self,
        result: OCRResult,
        on_recognize: Callable[["FakeEngine", threading.Event | None], None] | None = None,
    ) -> None:
        super().__init__()
        self.result = result
        self.on_recognize = on_recognize
        self.images: list[np.ndarray] = []

    def recognize(
        self, image: np.ndarray, cancel_event: threading.Event | None = None
    ) -> OCRResult:
        self.images.append(image)
        if self.on_recognize is not None:
            self.on_recognize(self, cancel_event)
        return self.result


class FakeEngineFactory:
    """Hands out one ``FakeEngine`` per pass, cycling through scripted texts."""

    def __init__(
        self,
        texts: list[str],
        confidence: float = 90.0,
        words: list[OCRWord] | None = None,
        on_recognize: Callable[[FakeEngine, threading.Event | None], None] | None = None,
    ) -> None:
        self.results = [
            OCRResult(text=t, confidence=confidence, words=list(words or [])) for t in texts
        ]
        self.on_recognize = on_recognize
        self.engines: list[FakeEngine] = []

    def __call__(self) -> FakeEngine:
        result = self.results[len(self.engines) % len(self.results)]
        engine = FakeEngine(result, self.on_recognize)
        self.engines.append(engine)
        return engine


def raise_if_cancelled(engine: FakeEngine, cancel_event: threading.Event | None) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise ScanCancelled("engine stopped early")


def encode_png(image: np.ndarray) -> bytes:
    buffer = io.BytesIO()
    Image.fromarray(image).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def fake_engines() -> type[FakeEngineFactory]:
    """Return the fake engine factory class for building scripted scanners."""
    return FakeEngineFactory


@pytest.fixture
def stop_on_cancel() -> Callable[[FakeEngine, threading.Event | None], None]:
    """Hook making a fake engine honour cancellation like Tesseract does."""
    return raise_if_cancelled


@pytest.fixture
def png_encoder() -> Callable[[np.ndarray], bytes]:
    return encode_png


@pytest.fixture
def sample_bill_text() -> str:
    return SAMPLE_BILL_TEXT


@pytest.fixture
def sharp_rgba() -> np.ndarray:
    """A4-proportioned high-frequency black/white image that passes every check."""
    rng = np.random.default_rng(7)
    gray = (rng.integers(0, 2, size=(1800, 1300)) * 255).astype(np.uint8)
    alpha = np.full_like(gray, 255)
    return np.stack([gray, gray, gray, alpha], axis=-1)


@pytest.fixture
def png_bytes() -> bytes:
    """A small RGB photo-like image encoded as PNG."""
    rng = np.random.default_rng(3)
    image = rng.integers(0, 256, size=(120, 90, 3), dtype=np.uint8)
    return encode_png(image)


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def config_dir(project_root: Path) -> Path:
    """Return the configs directory path."""
    return project_root / "configs"
