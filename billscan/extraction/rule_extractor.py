"""Rule-based field extraction for textile invoices.

Each field has an ordered cascade of pure ``text -> value`` rules. The first
rule that yields a non-empty value wins and later rules are skipped; a field
no rule can fill stays an empty string. Misses never raise, since noisy OCR
text is the normal case.
"""

import re
from collections.abc import Callable, Mapping, Sequence
from dataclasses import asdict, dataclass

from billscan.utils.config import ExtractionConfig
from billscan.utils.logger import get_logger

logger = get_logger(__name__)

FIELD_NAMES = ("bill_no", "date", "customer", "gst", "total")

Rule = Callable[[str], str | None]


@dataclass
class BillFields:
    """Structured fields of one bill; unmatched fields are empty strings."""

    bill_no: str = ""
    date: str = ""
    customer: str = ""
    gst: str = ""
    total: str = ""

    def get(self, name: str) -> str:
        return getattr(self, name)

    def to_dict(self) -> dict[str, str]:
        return asdict(self)

    @property
    def filled(self) -> list[str]:
        return [name for name in FIELD_NAMES if self.get(name)]


# Building blocks shared by the built-in cascades and template rules.
_GAP = r"[^\d\n]{0,12}?"
_AMOUNT = r"(\d[\d,]*(?:\.\d+)?)(?!\w)"
_TOKEN = r"([A-Z0-9\-]*\d[A-Z0-9\-]*)"
_DATE_TOKEN = r"(\d{1,4}[/\-]\d{1,2}[/\-]\d{1,4})"
_NEXT_LABEL = r"(?=\s*\b(?:gst|date|invoice|total)\b|\n|$)"

_BARE_DATE = re.compile(
    r"(?<![\d/\-])"
    r"(\d{4}[/\-]\d{1,2}[/\-]\d{1,2}|\d{1,2}[/\-]\d{1,2}[/\-](?:\d{4}|\d{2}))"
    r"(?![\d/\-])"
)
_NUMERIC_TOKEN = re.compile(
    r"(?<![\w.,/\-])(?:(?:₹|\$|rs\.?|inr)\s*)?(\d[\d,]*(?:\.\d+)?)(?!\w|[/\-]\w)",
    re.IGNORECASE,
)


def normalize_date(raw: str) -> str:
    """Normalize a three-part date to ``YYYY-MM-DD``.

    A four-digit first part is read as year-month-day, anything else as
    day-month-year with two-digit years placed in the 2000s. Values that do
    not split into three numeric parts are returned unchanged.
    """
    parts = re.split(r"[/\-]", raw.strip())
    if len(parts) != 3 or not all(p.isdigit() for p in parts):
        return raw

    if len(parts[0]) == 4:
        year, month, day = parts
    else:
        day, month, year = parts
        if len(year) == 2:
            year = "20" + year
    return f"{year}-{month.zfill(2)}-{day.zfill(2)}"


def clean_amount(raw: str) -> str:
    """Drop thousands separators, keeping the decimal point."""
    return raw.replace(",", "").strip()


def regex_rule(
    pattern: str,
    clean: Callable[[str], str] | None = None,
    flags: int = re.IGNORECASE,
) -> Rule:
    """Build a rule returning the cleaned first capture group of ``pattern``."""
    compiled = re.compile(pattern, flags)

    def rule(text: str) -> str | None:
        match = compiled.search(text)
        if not match:
            return None
        value = match.group(1).strip()
        if clean is not None:
            value = clean(value)
        return value or None

    rule.__name__ = f"regex_rule({pattern!r})"
    return rule


def largest_number(text: str) -> str | None:
    """Return the numerically largest amount-like token in the text.

    The grand total is assumed to be the biggest figure on a bill. Date
    shaped tokens are masked first so a year never wins.
    """
    masked = _BARE_DATE.sub(" ", text)
    best_value: float | None = None
    best_token: str | None = None

    for match in _NUMERIC_TOKEN.finditer(masked):
        token = clean_amount(match.group(1)).rstrip(",")
        try:
            value = float(token)
        except ValueError:
            continue
        if best_value is None or value > best_value:
            best_value = value
            best_token = token

    return best_token


def _label_pattern(label: str) -> str:
    words = [re.escape(w) for w in label.split()]
    return r"\b" + r"\s*".join(words) + r"\b"


def label_rule(field_name: str, label: str) -> Rule:
    """Build a rule capturing the value that follows ``label``.

    The captured shape depends on the field: amounts for GST and total,
    a date token for dates, an alphanumeric token for bill numbers and the
    rest of the line for customers.
    """
    anchor = _label_pattern(label)
    if field_name in ("gst", "total"):
        return regex_rule(anchor + _GAP + _AMOUNT, clean_amount)
    if field_name == "date":
        return regex_rule(anchor + r"\s*[:\-]?\s*" + _DATE_TOKEN, normalize_date)
    if field_name == "bill_no":
        return regex_rule(anchor + r"\s*[:#.\-]?\s*" + _TOKEN)
    if field_name == "customer":
        return regex_rule(anchor + r"\s*[:\-]?\s*([^\n]*?)" + _NEXT_LABEL)
    raise ValueError(f"Unknown field: {field_name}")


def after_rule(label: str) -> Rule:
    """Build a rule returning the text after ``label`` up to the next label.

    The value may start on the following line; it ends at the line break or
    at an inline GST, date, invoice or total label.
    """
    return regex_rule(_label_pattern(label) + r"\s*[:\-]?\s*([^\n]+?)" + _NEXT_LABEL)


_BILL_NO_RULES: tuple[Rule, ...] = (
    regex_rule(
        r"\b(?:invoice|bill|inv)\b\.?\s*(?:no\b\.?|number\b|num\b\.?|#)?\s*[:#.\-]?\s*"
        + _TOKEN
    ),
    regex_rule(r"\bno\b\.?\s*[:#]\s*([A-Z0-9][A-Z0-9\-]*)"),
)

_DATE_RULES: tuple[Rule, ...] = (
    regex_rule(r"\bdated?\b\s*[:\-]?\s*" + _DATE_TOKEN, normalize_date),
    regex_rule(_BARE_DATE.pattern, normalize_date, flags=0),
)

_CUSTOMER_PATTERNS = (
    r"\bbill(?:ed)?\s*to\b",
    r"\bcustomer(?:\s*name)?\b",
    r"\bto\b",
)

_GST_RULES: tuple[Rule, ...] = (
    regex_rule(
        r"\bgst\b(?:\s*(?:amount|amt)\b)?(?:\s*@?\s*\d+(?:\.\d+)?\s*%)?" + _GAP + _AMOUNT,
        clean_amount,
    ),
)

_TOTAL_RULES: tuple[Rule, ...] = (
    regex_rule(r"\b(?:grand|net)\s*total\b" + _GAP + _AMOUNT, clean_amount),
    regex_rule(
        r"\b(?:total\s*amount|amount\s*(?:due|payable)|total\s*due)\b" + _GAP + _AMOUNT,
        clean_amount,
    ),
    regex_rule(r"\btotal\b" + _GAP + _AMOUNT, clean_amount),
    largest_number,
)


class FieldExtractor:
    """Extracts bill fields from OCR text with ordered rule cascades.

    Args:
        config: Extraction configuration (customer length limit).
        extra_rules: Rules per field evaluated before the built-in ones,
            typically compiled from a company template.
    """

    def __init__(
        self,
        config: ExtractionConfig | None = None,
        extra_rules: Mapping[str, Sequence[Rule]] | None = None,
    ) -> None:
        self.config = config or ExtractionConfig()
        customer_rules = tuple(
            regex_rule(p + r"\s*[:\-]?\s*([^\n]*?)" + _NEXT_LABEL)
            for p in _CUSTOMER_PATTERNS
        )
        builtin: dict[str, tuple[Rule, ...]] = {
            "bill_no": _BILL_NO_RULES,
            "date": _DATE_RULES,
            "customer": customer_rules,
            "gst": _GST_RULES,
            "total": _TOTAL_RULES,
        }
        extra_rules = extra_rules or {}
        self.rules: dict[str, tuple[Rule, ...]] = {
            name: tuple(extra_rules.get(name, ())) + builtin[name]
            for name in FIELD_NAMES
        }

    def extract_field(self, field_name: str, text: str) -> str:
        """Run one field's cascade, returning ``""`` when every rule misses."""
        for rule in self.rules[field_name]:
            value = rule(text)
            if value:
                value = self._finalize(field_name, value)
            if value:
                logger.debug("%s matched by %s", field_name, rule.__name__)
                return value
        return ""

    def extract(self, text: str) -> BillFields:
        """Extract all five bill fields from OCR text.

        Args:
            text: Full OCR text of one pass.

        Returns:
            Extracted fields; unmatched fields are empty strings.
        """
        fields = BillFields(**{name: self.extract_field(name, text) for name in FIELD_NAMES})
        logger.info(
            "Rule extraction filled %d of %d fields",
            len(fields.filled),
            len(FIELD_NAMES),
        )
        return fields

    def _finalize(self, field_name: str, value: str) -> str:
        if field_name == "customer":
            value = value.strip(" ,;:-")[: self.config.customer_max_length].strip()
        elif field_name == "date":
            value = normalize_date(value)
        return value
