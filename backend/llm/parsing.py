"""
Three-stage parsing of text-generation output.

strict    -> the raw text is valid JSON of the expected shape
recovered -> valid JSON found after cleanup (code fences, chatter, trailing commas)
fallback  -> no usable JSON; the caller substitutes a deterministic value

Degraded results are logged and emitted as ParseDegradeWarning so the loss in
answer quality stays observable.
"""
import json
import logging
import warnings
from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Optional

from utils.cleaning import ResponseCleaner
from utils.errors import ParseDegradeWarning

logger = logging.getLogger(__name__)


class ParseKind(str, Enum):
    STRICT = "strict"
    RECOVERED = "recovered"
    FALLBACK = "fallback"


@dataclass
class ParseResult:
    kind: ParseKind
    value: Any
    raw: str = ""

    @property
    def degraded(self) -> bool:
        return self.kind != ParseKind.STRICT


def _loads(text: str) -> Optional[Any]:
    try:
        return json.loads(text)
    except (TypeError, ValueError):
        return None


def _loads_lenient(text: str) -> Optional[Any]:
    value = _loads(text)
    if value is None and text:
        value = _loads(ResponseCleaner.fix_trailing_commas(text))
    return value


def report_degraded(result: ParseResult, context: str) -> None:
    """Log and warn about a non-strict parse."""
    if not result.degraded:
        return
    message = f"{context}: model output parsed via {result.kind.value} path"
    logger.warning(f"{message}; raw={result.raw[:200]!r}")
    warnings.warn(message, ParseDegradeWarning, stacklevel=2)


def parse_json_object(text: str) -> ParseResult:
    """
    Parse a JSON object. Returns a FALLBACK result with value None when no
    object can be found; the caller decides what to substitute.
    """
    value = _loads(text)
    if isinstance(value, dict):
        return ParseResult(ParseKind.STRICT, value, text)

    cleaned = ResponseCleaner.strip_code_fences(text)
    candidates = [cleaned, ResponseCleaner.extract_balanced(cleaned, "{")]
    for candidate in candidates:
        if not candidate:
            continue
        value = _loads_lenient(candidate)
        if isinstance(value, dict):
            return ParseResult(ParseKind.RECOVERED, value, text)

    return ParseResult(ParseKind.FALLBACK, None, text)


def parse_question_list(text: str, limit: int, min_length: int) -> ParseResult:
    """
    Parse a list of question strings, truncated to limit.

    Fallback splits the raw text into lines, strips bullets and numbering
    and drops lines shorter than min_length.
    """
    def _clean(items: List[Any]) -> List[str]:
        questions = []
        for item in items:
            if isinstance(item, dict):
                item = item.get("question") or item.get("text") or ""
            item = str(item).strip()
            if item:
                questions.append(item)
        return questions[:limit]

    value = _loads(text)
    if isinstance(value, list):
        return ParseResult(ParseKind.STRICT, _clean(value), text)

    cleaned = ResponseCleaner.strip_code_fences(text)
    for candidate in (cleaned, ResponseCleaner.extract_balanced(cleaned, "[")):
        if not candidate:
            continue
        value = _loads_lenient(candidate)
        if isinstance(value, list):
            return ParseResult(ParseKind.RECOVERED, _clean(value), text)

    lines = [ResponseCleaner.strip_list_marker(line) for line in cleaned.split("\n")]
    # Lines ending in ":" are headers such as "Here are your questions:"
    questions = [
        line for line in lines
        if len(line) >= min_length and not line.endswith(":")
    ]
    return ParseResult(ParseKind.FALLBACK, questions[:limit], text)


def parse_scoring(text: str) -> Optional[dict]:
    """
    Parse batch scoring output. There is no heuristic fallback: None means
    the output is unusable.
    """
    value = _loads(text)
    if isinstance(value, dict):
        return value

    cleaned = ResponseCleaner.clean_scoring_text(text)
    for candidate in (cleaned, ResponseCleaner.extract_balanced(cleaned, "{")):
        if not candidate:
            continue
        value = _loads_lenient(candidate)
        if isinstance(value, dict):
            return value

    logger.error(f"Scoring output unparseable: {text[:300]!r}")
    return None
