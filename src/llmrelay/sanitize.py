"""Best-effort cleanup of free-form model output.

The repair set is deliberately small:

1. A stray quote and whitespace before a key, ``" "key"``, collapsed
   to ``"key"``.
2. ``""key""`` collapsed to ``"key"`` (a doubled-quote artifact some
   local models emit around object keys).
3. Trailing commas before ``}`` or ``]`` removed.

Anything these repairs cannot fix surfaces as :class:`InvalidJSON`.
"""

import json
import re
from typing import Any

from llmrelay.errors import InvalidJSON, NoJSONFound

THINKING_TAGS = ("think", "thinking", "thought", "reasoning")

_THINKING_RE = re.compile(
    r"<(" + "|".join(THINKING_TAGS) + r")>.*?</\1>",
    re.IGNORECASE | re.DOTALL,
)
_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)\s*```", re.DOTALL)
_STRAY_KEY_QUOTE_RE = re.compile(r'"\s+"(\w+)"')
_DOUBLED_KEY_QUOTES_RE = re.compile(r'""([^"\n]+)""(\s*:)')
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")

JSON_PROMPT_MARKERS = ("Respond ONLY with JSON", "Return a JSON")

SNIPPET_LENGTH = 80
ERROR_SNIPPET_LENGTH = 200


def clean(text: str) -> str:
    """Strip reasoning blocks and markdown fences from model output."""
    cleaned = text.strip()
    cleaned = _THINKING_RE.sub("", cleaned)
    match = _FENCE_RE.search(cleaned)
    if match:
        cleaned = match.group(1)
    else:
        cleaned = cleaned.replace("```", "")
    return cleaned.strip()


def expects_json(prompt: str) -> bool:
    return any(marker in prompt for marker in JSON_PROMPT_MARKERS)


def repair(candidate: str) -> str:
    candidate = _STRAY_KEY_QUOTE_RE.sub(r'"\1"', candidate)
    candidate = _DOUBLED_KEY_QUOTES_RE.sub(r'"\1"\2', candidate)
    return _TRAILING_COMMA_RE.sub(r"\1", candidate)


def _locate(text: str, opener: str, closer: str) -> tuple[str, Any]:
    cleaned = clean(text)
    start = cleaned.find(opener)
    end = cleaned.rfind(closer)
    kind = "object" if opener == "{" else "array"
    if start == -1 or end == -1 or end < start:
        raise NoJSONFound(
            f'No JSON {kind} found in LLM response: "{text[:SNIPPET_LENGTH]}..."',
            snippet=text[:SNIPPET_LENGTH],
        )
    candidate = repair(cleaned[start:end + 1])
    try:
        return candidate, json.loads(candidate)
    except json.JSONDecodeError as e:
        raise InvalidJSON(
            f"Invalid JSON {kind} in LLM response: {e}",
            snippet=candidate[:ERROR_SNIPPET_LENGTH],
        ) from e


def repair_json_text(text: str, opener: str = "{", closer: str = "}") -> str:
    """Return the repaired JSON slice of *text*, validated by parsing."""
    candidate, _ = _locate(text, opener, closer)
    return candidate


def extract_json(text: str) -> Any:
    """Parse the outermost JSON object out of *text*.

    Raises:
        NoJSONFound: No ``{ ... }`` span exists.
        InvalidJSON: The span does not parse after repair.
    """
    _, value = _locate(text, "{", "}")
    return value


def extract_json_array(text: str) -> list:
    _, value = _locate(text, "[", "]")
    return value
