"""Per-pass image preprocessing variants.

Repeating OCR on an identical image mostly repeats the same mistakes, so
each pass of a multi-pass scan can see a differently enhanced version of
the bill: plain grayscale, CLAHE contrast enhancement, and a denoised
adaptive binarization.
"""

import cv2
import numpy as np

from billscan.utils.config import PreprocessingConfig
from billscan.utils.logger import get_logger

logger = get_logger(__name__)

VARIANTS = ("grayscale", "contrast", "binarized")


def to_gray(image: np.ndarray) -> np.ndarray:
    """Convert an RGB or RGBA array to single-channel grayscale."""
    if image.ndim == 2:
        return image
    if image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_RGBA2GRAY)
    return cv2.cvtColor(image, cv2.COLOR_RGB2GRAY)


def enhance_contrast(gray: np.ndarray, clip_limit: float, tile_size: int) -> np.ndarray:
    """Apply CLAHE to lift faint print on unevenly lit photos."""
    clahe = cv2.createCLAHE(clipLimit=clip_limit, tileGridSize=(tile_size, tile_size))
    return clahe.apply(gray)


def denoise_and_binarize(
    gray: np.ndarray,
    d: int,
    sigma: int,
    block_size: int,
    c: int,
) -> np.ndarray:
    """Smooth sensor noise with a bilateral filter, then threshold locally."""
    smoothed = cv2.bilateralFilter(gray, d, sigma, sigma)
    return cv2.adaptiveThreshold(
        smoothed,
        255,
        cv2.ADAPTIVE_THRESH_GAUSSIAN_C,
        cv2.THRESH_BINARY,
        block_size,
        c,
    )


class PreprocessingPipeline:
    """Chooses the image each OCR pass is run on.

    Args:
        config: Parameters for the enhancement steps.
        vary: When ``False`` every pass gets the plain grayscale image.
    """

    def __init__(self, config: PreprocessingConfig | None = None, vary: bool = True) -> None:
        self.config = config or PreprocessingConfig()
        self.vary = vary

    def variant_for_pass(self, pass_index: int) -> str:
        if not self.vary:
            return VARIANTS[0]
        return VARIANTS[pass_index % len(VARIANTS)]

    def process(self, image: np.ndarray, pass_index: int = 0) -> np.ndarray:
        """Produce the image for a zero-based pass index.

        Args:
            image: RGB or RGBA image as a numpy array.
            pass_index: Zero-based index of the OCR pass.

        Returns:
            Single-channel uint8 image.
        """
        variant = self.variant_for_pass(pass_index)
        gray = to_gray(np.ascontiguousarray(image))

        if variant == "contrast":
            result = enhance_contrast(
                gray, self.config.clahe_clip_limit, self.config.clahe_tile_size
            )
        elif variant == "binarized":
            result = denoise_and_binarize(
                gray,
                self.config.bilateral_d,
                self.config.bilateral_sigma,
                self.config.adaptive_block_size,
                self.config.adaptive_c,
            )
        else:
            result = gray

        logger.debug("Pass %d uses the %s variant", pass_index + 1, variant)
        return result
