"""
Error Classifier: assigns learner errors to a fixed four-way taxonomy.

Each signal votes for a category with a fixed weight:

    keyword hit in the message     x3 per distinct keyword
    declared field type            2
    validation rule kind           2
    value shape                    1
    field name tokens              1

The category with the highest aggregate wins. Ties, and descriptions that
produce no signal at all, resolve to FORMAT.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

import pydantic
from loguru import logger

from vstation.core.errors import ValidationError
from vstation.core.models import ErrorCategory, ErrorClassification, ErrorDescription

KEYWORD_WEIGHT = 3.0
FIELD_TYPE_WEIGHT = 2.0
RULE_WEIGHT = 2.0
VALUE_SHAPE_WEIGHT = 1.0
FIELD_NAME_WEIGHT = 1.0

TIE_BREAK_CATEGORY = ErrorCategory.FORMAT

# =============================================================================
# Signal Tables
# =============================================================================

CATEGORY_KEYWORDS: dict[ErrorCategory, list[str]] = {
    ErrorCategory.CONCEPT: [
        "concept", "definition", "standard", "classification", "classify",
        "category", "principle", "criteria", "criterion", "characteristic",
        "misidentified", "misunderstand", "wrong type", "not applicable",
        "概念", "定义", "标准", "分类", "原理", "判定依据", "危险特性",
    ],
    ErrorCategory.CALCULATION: [
        "calculation", "calculate", "computed", "compute", "formula",
        "arithmetic", "deviation", "exceeds", "out of range", "conversion",
        "convert", "rounding", "decimal", "precision", "concentration",
        "dilution", "average", "sum", "unit",
        "计算", "公式", "数值", "单位", "换算", "偏差", "浓度", "超出范围",
    ],
    ErrorCategory.PROCESS: [
        "step", "order", "sequence", "procedure", "skipped", "skip",
        "before", "after", "stage", "workflow", "protocol", "prerequisite",
        "not yet", "out of order", "preservation", "calibration",
        "步骤", "顺序", "流程", "操作", "程序", "遗漏", "未完成",
    ],
    ErrorCategory.FORMAT: [
        "format", "required", "empty", "blank", "invalid", "pattern",
        "malformed", "length", "too long", "too short", "character",
        "date", "missing field", "illegal",
        "格式", "必填", "为空", "不能为空", "长度", "日期", "非法",
    ],
}

FIELD_TYPE_CATEGORY: dict[str, ErrorCategory] = {
    "number": ErrorCategory.CALCULATION,
    "numeric": ErrorCategory.CALCULATION,
    "integer": ErrorCategory.CALCULATION,
    "decimal": ErrorCategory.CALCULATION,
    "float": ErrorCategory.CALCULATION,
    "formula": ErrorCategory.CALCULATION,
    "calculation": ErrorCategory.CALCULATION,
    "select": ErrorCategory.CONCEPT,
    "radio": ErrorCategory.CONCEPT,
    "checkbox": ErrorCategory.CONCEPT,
    "classification": ErrorCategory.CONCEPT,
    "standard": ErrorCategory.CONCEPT,
    "sequence": ErrorCategory.PROCESS,
    "ordering": ErrorCategory.PROCESS,
    "checklist": ErrorCategory.PROCESS,
    "step": ErrorCategory.PROCESS,
    "text": ErrorCategory.FORMAT,
    "textarea": ErrorCategory.FORMAT,
    "date": ErrorCategory.FORMAT,
    "datetime": ErrorCategory.FORMAT,
    "time": ErrorCategory.FORMAT,
    "email": ErrorCategory.FORMAT,
    "phone": ErrorCategory.FORMAT,
}

RULE_CATEGORY: dict[str, ErrorCategory] = {
    "required": ErrorCategory.FORMAT,
    "pattern": ErrorCategory.FORMAT,
    "regex": ErrorCategory.FORMAT,
    "length": ErrorCategory.FORMAT,
    "minlength": ErrorCategory.FORMAT,
    "maxlength": ErrorCategory.FORMAT,
    "date": ErrorCategory.FORMAT,
    "email": ErrorCategory.FORMAT,
    "range": ErrorCategory.CALCULATION,
    "min": ErrorCategory.CALCULATION,
    "max": ErrorCategory.CALCULATION,
    "precision": ErrorCategory.CALCULATION,
    "tolerance": ErrorCategory.CALCULATION,
    "formula": ErrorCategory.CALCULATION,
    "unit": ErrorCategory.CALCULATION,
    "order": ErrorCategory.PROCESS,
    "sequence": ErrorCategory.PROCESS,
    "dependency": ErrorCategory.PROCESS,
    "prerequisite": ErrorCategory.PROCESS,
    "stage": ErrorCategory.PROCESS,
    "enum": ErrorCategory.CONCEPT,
    "options": ErrorCategory.CONCEPT,
    "standard": ErrorCategory.CONCEPT,
    "classification": ErrorCategory.CONCEPT,
    "reference": ErrorCategory.CONCEPT,
}

FIELD_NAME_TOKENS: dict[ErrorCategory, set[str]] = {
    ErrorCategory.CALCULATION: {
        "concentration", "result", "value", "amount", "total", "mass",
        "volume", "ph", "rate", "ratio", "flow", "dilution", "average", "mean",
    },
    ErrorCategory.CONCEPT: {
        "type", "category", "classification", "standard", "basis",
        "characteristic", "characteristics", "hazard", "judgment", "level",
    },
    ErrorCategory.PROCESS: {
        "step", "order", "sequence", "stage", "procedure", "method",
        "plan", "preservation", "container",
    },
    ErrorCategory.FORMAT: {
        "date", "time", "name", "id", "code", "email", "phone",
        "remark", "signature", "address", "operator",
    },
}

_NUMBER_RE = re.compile(r"^\s*[-+]?\d+(?:\.\d+)?(?:[eE][-+]?\d+)?\s*$")
_NUMBER_WITH_UNIT_RE = re.compile(
    r"^\s*[-+]?\d+(?:\.\d+)?\s*(?:%|mg/l|mg/kg|g/l|ug/l|μg/l|ml|l|kg|g|mg|m3/h|m³/h|m/s|°c|℃|ppm|ppb)\s*$",
    re.IGNORECASE,
)
_STANDARD_CODE_RE = re.compile(r"\b(?:GB|HJ|GB/T|HJ/T)\s*\d+(?:\.\d+)?", re.IGNORECASE)
_TOKEN_SPLIT_RE = re.compile(r"[^a-z0-9]+")
_CAMEL_RE = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def _keyword_pattern(keyword: str) -> re.Pattern[str]:
    if keyword.isascii():
        return re.compile(r"\b" + re.escape(keyword) + r"\b", re.IGNORECASE)
    return re.compile(re.escape(keyword))


_KEYWORD_PATTERNS: dict[ErrorCategory, list[tuple[str, re.Pattern[str]]]] = {
    category: [(kw, _keyword_pattern(kw)) for kw in keywords]
    for category, keywords in CATEGORY_KEYWORDS.items()
}


def _field_tokens(name: str) -> set[str]:
    spaced = _CAMEL_RE.sub("_", name)
    return {token for token in _TOKEN_SPLIT_RE.split(spaced.lower()) if token}


def _value_shape(value: Any) -> ErrorCategory | None:
    """Guess a category from what the learner typed."""
    if value is None:
        return ErrorCategory.FORMAT
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return ErrorCategory.CALCULATION
    if isinstance(value, str):
        if not value.strip():
            return ErrorCategory.FORMAT
        if _STANDARD_CODE_RE.search(value):
            return ErrorCategory.CONCEPT
        if _NUMBER_RE.match(value) or _NUMBER_WITH_UNIT_RE.match(value):
            return ErrorCategory.CALCULATION
    if isinstance(value, (list, tuple)) and not value:
        return ErrorCategory.FORMAT
    return None


# =============================================================================
# Classifier
# =============================================================================


class ErrorClassifier:
    """
    Weighted-vote classifier over error descriptions.

    Usage:
        classifier = ErrorClassifier()
        result = classifier.classify({"message": "pH value out of range", "field_type": "number"})
        result.category  # ErrorCategory.CALCULATION
    """

    def __init__(
        self,
        keywords: Mapping[ErrorCategory, list[str]] | None = None,
        field_types: Mapping[str, ErrorCategory] | None = None,
        rules: Mapping[str, ErrorCategory] | None = None,
    ):
        if keywords is None:
            self._keyword_patterns = _KEYWORD_PATTERNS
        else:
            self._keyword_patterns = {
                category: [(kw, _keyword_pattern(kw)) for kw in kws] for category, kws in keywords.items()
            }
        self.field_types = dict(FIELD_TYPE_CATEGORY if field_types is None else field_types)
        self.rules = dict(RULE_CATEGORY if rules is None else rules)

    @staticmethod
    def _parse(description: ErrorDescription | Mapping[str, Any]) -> ErrorDescription:
        if isinstance(description, ErrorDescription):
            return description
        try:
            return ErrorDescription.model_validate(description)
        except pydantic.ValidationError as exc:
            raise ValidationError.from_pydantic(exc, "Invalid error description") from exc

    def score(self, description: ErrorDescription) -> tuple[dict[ErrorCategory, float], list[str]]:
        """Aggregate signal weights per category; returns (scores, signal labels)."""
        scores = {category: 0.0 for category in ErrorCategory}
        signals: list[str] = []

        message = description.message or ""
        if message:
            for category, patterns in self._keyword_patterns.items():
                for keyword, pattern in patterns:
                    if pattern.search(message):
                        scores[category] += KEYWORD_WEIGHT
                        signals.append(f"keyword:{category.value}:{keyword}")

        if description.field_type:
            category = self.field_types.get(description.field_type.strip().lower())
            if category is not None:
                scores[category] += FIELD_TYPE_WEIGHT
                signals.append(f"field_type:{category.value}:{description.field_type}")

        if description.validation_rule:
            category = self.rules.get(description.validation_rule.strip().lower())
            if category is not None:
                scores[category] += RULE_WEIGHT
                signals.append(f"rule:{category.value}:{description.validation_rule}")

        # Value shape only counts when the description carries a value slot
        if "value" in description.model_fields_set:
            category = _value_shape(description.value)
            if category is not None:
                scores[category] += VALUE_SHAPE_WEIGHT
                signals.append(f"value:{category.value}")

        if description.field:
            tokens = _field_tokens(description.field)
            for category, vocabulary in FIELD_NAME_TOKENS.items():
                if tokens & vocabulary:
                    scores[category] += FIELD_NAME_WEIGHT
                    signals.append(f"field:{category.value}:{description.field}")

        return scores, signals

    def classify(self, description: ErrorDescription | Mapping[str, Any]) -> ErrorClassification:
        parsed = self._parse(description)
        scores, signals = self.score(parsed)

        best = max(scores.values())
        leaders = [category for category, value in scores.items() if value == best]
        if best <= 0 or len(leaders) > 1:
            category = TIE_BREAK_CATEGORY
        else:
            category = leaders[0]

        logger.debug(
            "Classified error as {} (scores={}, signals={})",
            category.value,
            {c.value: s for c, s in scores.items()},
            len(signals),
        )
        return ErrorClassification(description=parsed, category=category, scores=scores, signals=signals)

    def categorize(self, description: ErrorDescription | Mapping[str, Any]) -> ErrorCategory:
        """Shorthand returning only the winning category."""
        return self.classify(description).category


_default_classifier: ErrorClassifier | None = None


def classify_error(description: ErrorDescription | Mapping[str, Any]) -> ErrorCategory:
    """Classify with a shared default classifier."""
    global _default_classifier
    if _default_classifier is None:
        _default_classifier = ErrorClassifier()
    return _default_classifier.categorize(description)
