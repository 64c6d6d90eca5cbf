"""Pre-OCR image quality analysis.

Scores a decoded bill photo on resolution, sharpness, brightness, contrast
and estimated text size. The verdict is advisory: callers decide whether a
"poor" image should block the scan.
"""

from dataclasses import asdict, dataclass, field

import numpy as np

from billscan.utils.config import QualityConfig
from billscan.utils.logger import get_logger

from .pixels import PixelBuffer

logger = get_logger(__name__)

GOOD = "good"
POOR = "poor"


@dataclass(frozen=True)
class ResolutionCheck:
    width: int
    height: int
    adequate: bool
    recommended: bool


@dataclass(frozen=True)
class BlurCheck:
    variance: float
    is_blurry: bool
    adequate: bool


@dataclass(frozen=True)
class BrightnessCheck:
    average: float
    adequate: bool
    issue: str | None


@dataclass(frozen=True)
class ContrastCheck:
    value: float
    adequate: bool


@dataclass(frozen=True)
class TextSizeCheck:
    estimated_dpi: float
    adequate: bool


@dataclass(frozen=True)
class QualityReport:
    """Outcome of every quality check plus the overall verdict."""

    resolution: ResolutionCheck
    blur: BlurCheck
    brightness: BrightnessCheck
    contrast: ContrastCheck
    text_size: TextSizeCheck
    overall: str
    issues: list[str] = field(default_factory=list)

    @property
    def good(self) -> bool:
        return self.overall == GOOD

    def to_dict(self) -> dict:
        return asdict(self)


def _grayscale(pixels: np.ndarray) -> np.ndarray:
    """Average the RGB channels of an RGBA array, ignoring alpha."""
    return pixels[..., :3].astype(np.float64).mean(axis=2)


def check_resolution(width: int, height: int, config: QualityConfig) -> ResolutionCheck:
    area = width * height
    return ResolutionCheck(
        width=width,
        height=height,
        adequate=area >= config.min_width * config.min_height,
        recommended=area >= config.recommended_width * config.recommended_height,
    )


def check_blur(gray: np.ndarray, config: QualityConfig) -> BlurCheck:
    """Estimate sharpness from the variance of a sparse Laplacian.

    Each sampled pixel is compared with its right and lower neighbours,
    so the last row and column are never sampled.
    """
    stride = config.blur_sample_stride
    height, width = gray.shape
    ys = np.arange(0, height - 1, stride)
    xs = np.arange(0, width - 1, stride)

    if ys.size == 0 or xs.size == 0:
        variance = 0.0
    else:
        center = gray[np.ix_(ys, xs)]
        right = gray[np.ix_(ys, xs + 1)]
        below = gray[np.ix_(ys + 1, xs)]
        laplacian = np.abs(2 * center - right - below)
        variance = float(np.mean((laplacian - laplacian.mean()) ** 2))

    is_blurry = variance < config.blur_threshold
    return BlurCheck(variance=variance, is_blurry=is_blurry, adequate=not is_blurry)


def check_brightness(samples: np.ndarray, config: QualityConfig) -> BrightnessCheck:
    average = float(samples.mean())
    issue = None
    if average < config.brightness_min:
        issue = "too dark"
    elif average > config.brightness_max:
        issue = "too bright"
    return BrightnessCheck(average=average, adequate=issue is None, issue=issue)


def check_contrast(samples: np.ndarray, config: QualityConfig) -> ContrastCheck:
    value = float(samples.max() - samples.min())
    return ContrastCheck(value=value, adequate=value >= config.contrast_min)


def check_text_size(width: int, height: int, config: QualityConfig) -> TextSizeCheck:
    """Estimate scan DPI assuming the photo frames a whole A4 page."""
    dpi = min(width / config.page_width_in, height / config.page_height_in)
    return TextSizeCheck(
        estimated_dpi=dpi,
        adequate=dpi >= config.min_dpi and width >= config.min_text_width,
    )


def analyze_quality(
    buffer: PixelBuffer, config: QualityConfig | None = None
) -> QualityReport:
    """Run every quality check on a decoded image.

    Args:
        buffer: Non-empty RGBA pixel buffer.
        config: Thresholds; defaults are used when omitted.

    Returns:
        Quality report with issues listed in check order.
    """
    config = config or QualityConfig()
    gray = _grayscale(buffer.as_array())
    tone_samples = gray.reshape(-1)[:: config.tone_sample_stride]

    resolution = check_resolution(buffer.width, buffer.height, config)
    blur = check_blur(gray, config)
    brightness = check_brightness(tone_samples, config)
    contrast = check_contrast(tone_samples, config)
    text_size = check_text_size(buffer.width, buffer.height, config)

    issues: list[str] = []
    if not resolution.adequate:
        issues.append(
            f"Low resolution ({buffer.width}x{buffer.height}); "
            f"at least {config.min_width}x{config.min_height} required"
        )
    if blur.is_blurry:
        issues.append(f"Image is blurry (sharpness {blur.variance:.1f})")
    if not brightness.adequate:
        issues.append(f"Image is {brightness.issue}")
    if not contrast.adequate:
        issues.append(f"Low contrast ({contrast.value:.0f})")
    if not text_size.adequate:
        issues.append(
            f"Text may be too small (estimated {text_size.estimated_dpi:.0f} DPI)"
        )

    overall = POOR if issues else GOOD
    if issues:
        logger.warning("Image quality is poor: %s", "; ".join(issues))
    else:
        logger.info("Image quality is good")

    return QualityReport(
        resolution=resolution,
        blur=blur,
        brightness=brightness,
        contrast=contrast,
        text_size=text_size,
        overall=overall,
        issues=issues,
    )
