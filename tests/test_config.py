"""Tests for configuration loading and validation."""

from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from billscan.utils.config import (
    DEFAULT_CHAR_WHITELIST,
    AppConfig,
    ConfidenceConfig,
    ExtractionConfig,
    OCRConfig,
    QualityConfig,
    ScanConfig,
    load_config,
)


class TestQualityConfig:
    """Tests for QualityConfig defaults."""

    def test_defaults(self) -> None:
        cfg = QualityConfig()
        assert (cfg.min_width, cfg.min_height) == (500, 500)
        assert cfg.blur_threshold == 100.0
        assert (cfg.brightness_min, cfg.brightness_max) == (50.0, 200.0)
        assert cfg.contrast_min == 50.0
        assert cfg.min_dpi == 150.0


class TestOCRConfig:
    """Tests for OCRConfig defaults and overrides."""

    def test_defaults(self) -> None:
        cfg = OCRConfig()
        assert cfg.default_lang == "eng"
        assert cfg.psm == 3
        assert cfg.oem == 1
        assert cfg.tesseract_cmd is None
        assert cfg.char_whitelist == DEFAULT_CHAR_WHITELIST

    def test_whitelist_characters(self) -> None:
        for ch in "Az09/:.- ":
            assert ch in DEFAULT_CHAR_WHITELIST
        assert "," not in DEFAULT_CHAR_WHITELIST

    def test_custom_lang(self) -> None:
        cfg = OCRConfig(default_lang="eng+tam", psm=6)
        assert cfg.default_lang == "eng+tam"
        assert cfg.psm == 6


class TestScanAndConfidenceConfig:
    """Tests for scan and confidence thresholds."""

    def test_scan_defaults(self) -> None:
        cfg = ScanConfig()
        assert cfg.default_pass_count == 3
        assert cfg.vary_preprocessing is True

    def test_pass_count_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            ScanConfig(default_pass_count=0)

    def test_confidence_defaults(self) -> None:
        cfg = ConfidenceConfig()
        assert cfg.review_threshold == 0.7
        assert cfg.high_threshold == 0.8
        assert cfg.medium_threshold == 0.6
        assert cfg.fallback_confidence == 0.5

    def test_extraction_defaults(self) -> None:
        cfg = ExtractionConfig()
        assert cfg.customer_max_length == 100
        assert cfg.template is None
        assert cfg.template_min_confidence == 0.5


class TestAppConfig:
    """Tests for the top-level AppConfig."""

    def test_defaults(self) -> None:
        cfg = AppConfig()
        assert isinstance(cfg.quality, QualityConfig)
        assert isinstance(cfg.scan, ScanConfig)
        assert cfg.server.port == 8000
        assert cfg.log_level == "INFO"

    def test_nested_override(self) -> None:
        cfg = AppConfig(scan=ScanConfig(default_pass_count=5), log_level="DEBUG")
        assert cfg.scan.default_pass_count == 5
        assert cfg.log_level == "DEBUG"


class TestLoadConfig:
    """Tests for the load_config function."""

    def test_load_project_config(self, config_dir: Path) -> None:
        cfg = load_config(config_dir / "config.yaml")
        assert isinstance(cfg, AppConfig)
        assert cfg.ocr.default_lang == "eng"
        assert cfg.scan.default_pass_count == 3
        assert cfg.extraction.templates_path == "configs/templates.yaml"

    def test_load_missing_file_returns_defaults(self) -> None:
        cfg = load_config(Path("/nonexistent/path/config.yaml"))
        assert cfg == AppConfig()

    def test_load_custom_yaml(self, tmp_path: Path) -> None:
        config_data = {
            "quality": {"blur_threshold": 60},
            "ocr": {"default_lang": "eng+tam", "psm": 6},
            "scan": {"default_pass_count": 5, "vary_preprocessing": False},
            "log_level": "DEBUG",
        }
        config_file = tmp_path / "config.yaml"
        with open(config_file, "w") as f:
            yaml.dump(config_data, f)

        cfg = load_config(config_file)
        assert cfg.quality.blur_threshold == 60
        assert cfg.ocr.default_lang == "eng+tam"
        assert cfg.scan.default_pass_count == 5
        assert cfg.scan.vary_preprocessing is False
        assert cfg.log_level == "DEBUG"

    def test_load_empty_yaml(self, tmp_path: Path) -> None:
        config_file = tmp_path / "empty.yaml"
        config_file.write_text("")
        assert isinstance(load_config(config_file), AppConfig)

    def test_invalid_value_rejected(self, tmp_path: Path) -> None:
        config_file = tmp_path / "bad.yaml"
        config_file.write_text("scan:\n  default_pass_count: 0\n")
        with pytest.raises(ValidationError):
            load_config(config_file)
