"""Configuration management for the bill scanning pipeline.

Every threshold used by quality gating, confidence scoring and multi-pass
scanning lives here so it can be tuned from YAML without code changes.
"""

import logging
from pathlib import Path

import yaml
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

# Alphanumerics plus the separators that appear in bill numbers, dates and amounts.
DEFAULT_CHAR_WHITELIST = (
    "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789/:.- "
)


class QualityConfig(BaseModel):
    """Thresholds for the pre-OCR image quality gate."""

    min_width: int = 500
    min_height: int = 500
    recommended_width: int = 1000
    recommended_height: int = 1000
    blur_sample_stride: int = 2
    blur_threshold: float = 100.0
    tone_sample_stride: int = 4
    brightness_min: float = 50.0
    brightness_max: float = 200.0
    contrast_min: float = 50.0
    page_width_in: float = 8.27
    page_height_in: float = 11.69
    min_dpi: float = 150.0
    min_text_width: int = 1000


class OCRConfig(BaseModel):
    """Configuration for the Tesseract OCR engine."""

    tesseract_cmd: str | None = None
    default_lang: str = "eng"
    psm: int = 3
    oem: int = 1
    char_whitelist: str = DEFAULT_CHAR_WHITELIST
    timeout: int = 0


class PreprocessingConfig(BaseModel):
    """Parameters for the per-pass image variants."""

    clahe_clip_limit: float = 2.0
    clahe_tile_size: int = 8
    adaptive_block_size: int = 11
    adaptive_c: int = 2
    bilateral_d: int = 9
    bilateral_sigma: int = 75


class ExtractionConfig(BaseModel):
    """Configuration for rule-based field extraction."""

    customer_max_length: int = 100
    templates_path: str = "configs/templates.yaml"
    # Template name, "auto" to match on identifiers, or None for built-in rules.
    template: str | None = None
    template_min_confidence: float = Field(default=0.5, ge=0.0, le=1.0)


class ConfidenceConfig(BaseModel):
    """Review threshold and status bands for field confidences."""

    review_threshold: float = 0.7
    high_threshold: float = 0.8
    medium_threshold: float = 0.6
    fallback_confidence: float = 0.5


class ScanConfig(BaseModel):
    """Configuration for quick and multi-pass scans."""

    default_pass_count: int = Field(default=3, ge=1)
    vary_preprocessing: bool = True


class ServerConfig(BaseModel):
    """Bind address for the HTTP API."""

    host: str = "0.0.0.0"
    port: int = 8000


class AppConfig(BaseModel):
    """Top-level application configuration."""

    quality: QualityConfig = Field(default_factory=QualityConfig)
    ocr: OCRConfig = Field(default_factory=OCRConfig)
    preprocessing: PreprocessingConfig = Field(default_factory=PreprocessingConfig)
    extraction: ExtractionConfig = Field(default_factory=ExtractionConfig)
    confidence: ConfidenceConfig = Field(default_factory=ConfidenceConfig)
    scan: ScanConfig = Field(default_factory=ScanConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    log_level: str = "INFO"


def load_config(path: Path | None = None) -> AppConfig:
    """Load configuration from a YAML file.

    Args:
        path: Path to the YAML configuration file.
            Defaults to configs/config.yaml.

    Returns:
        Validated application configuration, or defaults when the
        file does not exist.
    """
    if path is None:
        path = Path("configs/config.yaml")

    if not path.exists():
        logger.info("No config file at %s, using defaults", path)
        return AppConfig()

    logger.info("Loading configuration from %s", path)
    with open(path) as f:
        raw = yaml.safe_load(f) or {}
    return AppConfig(**raw)
