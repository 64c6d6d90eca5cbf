"""Company-specific extraction templates.

Bill layouts differ between textile suppliers. A template names the label
each field hangs off, written as ``LABEL:<label>`` (the value right after the
label) or ``AFTER:<label>`` (the rest of the line after the label, up to the
next field label). Template rules run before the built-in cascades. With the
template name ``auto`` the scanner picks a template per bill by matching the
templates' identifiers against the OCR text.
"""

import re
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from billscan.utils.config import ExtractionConfig
from billscan.utils.logger import get_logger

from .rule_extractor import FIELD_NAMES, FieldExtractor, Rule, after_rule, label_rule

logger = get_logger(__name__)

DEFAULT_TEMPLATE = "default"
# Template name that selects a template per bill from its identifiers.
AUTO_TEMPLATE = "auto"

_DEFAULT_RULES = {
    "customer": "AFTER:Bill To",
    "total": "LABEL:Grand Total",
    "gst": "LABEL:GST",
    "bill_no": "LABEL:Invoice No",
    "date": "LABEL:Date",
}


def compile_rule(field_name: str, spec: str) -> Rule:
    """Turn a ``KIND:label`` rule string into a rule function.

    Raises:
        ValueError: If the kind is unknown or the field is not a bill field.
    """
    if field_name not in FIELD_NAMES:
        raise ValueError(f"Unknown field: {field_name}")
    kind, sep, label = spec.partition(":")
    if not sep or not label.strip():
        raise ValueError(f"Malformed rule for {field_name}: {spec!r}")
    kind = kind.strip().upper()
    if kind == "LABEL":
        return label_rule(field_name, label.strip())
    if kind == "AFTER":
        return after_rule(label.strip())
    raise ValueError(f"Unknown rule kind {kind!r} for {field_name}")


@dataclass
class ExtractionTemplate:
    """Label rules for one supplier's bill layout."""

    name: str
    company: str
    rules: dict[str, str] = field(default_factory=dict)
    identifiers: list[str] = field(default_factory=list)

    def compiled_rules(self) -> dict[str, list[Rule]]:
        return {
            name: [compile_rule(name, spec)]
            for name, spec in self.rules.items()
            if spec
        }

    def create_extractor(self, config: ExtractionConfig | None = None) -> FieldExtractor:
        return FieldExtractor(config, extra_rules=self.compiled_rules())


@dataclass
class TemplateMatch:
    """A template chosen for a text along with its identifier score."""

    template: ExtractionTemplate
    confidence: float


class TemplateRegistry:
    """Extraction templates loaded from YAML, with a built-in default.

    Args:
        templates_path: YAML file mapping template names to ``company``,
            ``identifiers`` and ``rules`` entries.
    """

    def __init__(self, templates_path: Path = Path("configs/templates.yaml")) -> None:
        self.templates: dict[str, ExtractionTemplate] = {
            DEFAULT_TEMPLATE: ExtractionTemplate(
                name=DEFAULT_TEMPLATE,
                company="Default Template",
                rules=dict(_DEFAULT_RULES),
            )
        }
        for name, raw in self._load_templates(templates_path).items():
            self.set_template(name, raw or {})

    def _load_templates(self, path: Path) -> dict:
        if path.exists():
            with open(path) as f:
                return yaml.safe_load(f) or {}
        logger.debug("No templates file at %s, using the default template", path)
        return {}

    def get_template(self, name: str | None = DEFAULT_TEMPLATE) -> ExtractionTemplate:
        """Return the named template, or the default when it is unknown."""
        return self.templates.get(name or DEFAULT_TEMPLATE, self.templates[DEFAULT_TEMPLATE])

    def set_template(self, name: str, overrides: dict) -> ExtractionTemplate:
        """Add or replace a template, inheriting unset rules from the default.

        Rules are compiled eagerly so a malformed entry fails here rather
        than in the middle of a scan.
        """
        base = self.templates[DEFAULT_TEMPLATE]
        rules = dict(base.rules)
        rules.update(overrides.get("rules", {}) or {})
        template = ExtractionTemplate(
            name=name,
            company=overrides.get("company", name),
            rules=rules,
            identifiers=list(overrides.get("identifiers", []) or []),
        )
        template.compiled_rules()
        self.templates[name] = template
        logger.debug("Registered template %s (%s)", name, template.company)
        return template

    def match_template(self, text: str, min_confidence: float = 0.5) -> TemplateMatch | None:
        """Find the template whose identifiers best match the text.

        Args:
            text: OCR text of the bill.
            min_confidence: Minimum fraction of identifiers that must match.

        Returns:
            Best match, or ``None`` when no template clears the threshold.
        """
        best: TemplateMatch | None = None
        for template in self.templates.values():
            if not template.identifiers:
                continue
            hits = sum(
                1 for ident in template.identifiers if re.search(re.escape(ident), text, re.IGNORECASE)
            )
            score = hits / len(template.identifiers)
            if score >= min_confidence and (best is None or score > best.confidence):
                best = TemplateMatch(template=template, confidence=score)

        if best:
            logger.info(
                "Matched template '%s' (confidence=%.2f)", best.template.name, best.confidence
            )
        return best
