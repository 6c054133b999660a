"""Tolerant JSON extraction from LLM output.

Two independent stages:

* strip_code_fences() removes a markdown fence around the payload;
* sanitize_json() repairs string literals containing raw control characters
  or invalid escapes.

decode_llm_json() combines them: strict decode of the first object, then one
retry on the sanitized text.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from pydantic import BaseModel, ValidationError, field_validator

from devlica.core.text import truncate
from devlica.synthesis.persona import SynthesisResult

logger = logging.getLogger(__name__)

RAW_EXCERPT_BYTES = 500

_VALID_ESCAPES = set('"\\/bfnrt')
_HEX_DIGITS = set("0123456789abcdefABCDEF")
_NAMED_CONTROLS = {"\n": "\\n", "\r": "\\r", "\t": "\\t"}


class LLMResponseParseError(ValueError):
    """LLM output could not be turned into the expected JSON structure."""

    def __init__(self, message: str, raw: str) -> None:
        self.excerpt = truncate(raw, RAW_EXCERPT_BYTES)
        super().__init__(f"{message}\nraw response (first {RAW_EXCERPT_BYTES} bytes): {self.excerpt}")


class ComparisonResult(BaseModel):
    """Grader verdict for one (original, generated) review pair."""

    model_config = {"frozen": True, "extra": "ignore"}

    score: float
    feedback: str = ""

    @field_validator("feedback", mode="before")
    @classmethod
    def _null_feedback(cls, value: Any) -> Any:
        return "" if value is None else value


def _is_unicode_escape(digits: str) -> bool:
    return len(digits) == 4 and all(c in _HEX_DIGITS for c in digits)


def strip_code_fences(text: str) -> str:
    """Return the contents of the first ``` fence unless text already starts with "{".

    A response that starts with "{" may legitimately contain ``` inside a
    string value (suggestion blocks), so it is left alone.
    """
    text = text.strip()
    if text.startswith("{") or "```" not in text:
        return text
    text = text.split("```", 1)[1]
    if text.startswith("json"):
        text = text[4:]
    end = text.rfind("```")
    if end >= 0:
        text = text[:end]
    return text.strip()


def sanitize_json(text: str) -> str:
    """Escape raw control characters and fix invalid escapes inside strings.

    Characters outside string literals are copied unchanged.
    """
    out: list[str] = []
    in_string = False
    i = 0
    while i < len(text):
        ch = text[i]
        if not in_string:
            if ch == '"':
                in_string = True
            out.append(ch)
            i += 1
            continue

        if ch == "\\":
            nxt = text[i + 1] if i + 1 < len(text) else ""
            if nxt and nxt in _VALID_ESCAPES:
                out.append(ch + nxt)
                i += 2
            elif nxt == "u" and _is_unicode_escape(text[i + 2 : i + 6]):
                out.append(text[i : i + 6])
                i += 6
            else:
                out.append("\\\\")
                i += 1
            continue
        if ch == '"':
            in_string = False
            out.append(ch)
        elif ch in _NAMED_CONTROLS:
            out.append(_NAMED_CONTROLS[ch])
        elif ord(ch) < 0x20:
            out.append(f"\\u{ord(ch):04x}")
        else:
            out.append(ch)
        i += 1
    return "".join(out)


def _decode_first_object(text: str) -> dict[str, Any]:
    start = text.find("{")
    if start < 0:
        raise json.JSONDecodeError("no JSON object found", text, 0)
    obj, _ = json.JSONDecoder().raw_decode(text, start)
    if not isinstance(obj, dict):
        raise json.JSONDecodeError("top-level JSON value is not an object", text, start)
    return obj


def decode_llm_json(raw: str) -> dict[str, Any]:
    """Decode the first JSON object in an LLM response.

    Trailing commentary after the object is ignored. Raises
    LLMResponseParseError when neither the text nor its sanitized form decodes.
    """
    text = strip_code_fences(raw)
    try:
        return _decode_first_object(text)
    except json.JSONDecodeError as first_error:
        logger.debug("strict JSON decode failed (%s), retrying sanitized", first_error)
        try:
            return _decode_first_object(sanitize_json(text))
        except json.JSONDecodeError:
            raise LLMResponseParseError(f"invalid JSON from LLM: {first_error}", raw) from first_error


def parse_comparison_result(raw: str) -> ComparisonResult:
    """Grader output -> score clamped to [0, 100] plus feedback."""
    data = decode_llm_json(raw)
    try:
        result = ComparisonResult.model_validate(data)
    except ValidationError as e:
        raise LLMResponseParseError(f"unexpected grader output: {e}", raw) from e
    score = min(max(result.score, 0.0), 100.0)
    if score != result.score:
        return result.model_copy(update={"score": score})
    return result


def parse_synthesis(raw: str) -> SynthesisResult:
    """Synthesis or refinement output -> SynthesisResult."""
    data = decode_llm_json(raw)
    try:
        return SynthesisResult.model_validate(data)
    except ValidationError as e:
        raise LLMResponseParseError(f"unexpected synthesis output: {e}", raw) from e
