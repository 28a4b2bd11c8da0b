"""
Parse-with-fallback adapter for text returned by the generation API.

The upstream response is untrusted text. parse_json_object() never raises:
it returns Parsed(value) when the text holds a JSON object, and
Fallback(default, raw_text, error) otherwise.
"""
import json
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

# ```json ... ``` fences some models wrap around JSON-mode output
_FENCE = re.compile(r"^\s*```(?:json)?\s*(.*?)\s*```\s*$", re.DOTALL | re.IGNORECASE)


@dataclass(frozen=True)
class Parsed:
    value: Dict[str, Any]


@dataclass(frozen=True)
class Fallback:
    default: Dict[str, Any]
    raw_text: Optional[str]
    error: str


ParseResult = Union[Parsed, Fallback]


def parse_json_object(raw_text: Optional[str], default: Dict[str, Any]) -> ParseResult:
    if raw_text is None or not str(raw_text).strip():
        return Fallback(default=default, raw_text=raw_text, error="Empty response from generation service")

    text = str(raw_text).strip()
    fenced = _FENCE.match(text)
    if fenced:
        text = fenced.group(1)

    try:
        value = json.loads(text)
    except (json.JSONDecodeError, TypeError, ValueError) as e:
        return Fallback(default=default, raw_text=raw_text, error=f"Unparsable generation response: {e}")

    if not isinstance(value, dict):
        return Fallback(
            default=default,
            raw_text=raw_text,
            error=f"Generation response is a JSON {type(value).__name__}, expected an object",
        )
    return Parsed(value=value)
