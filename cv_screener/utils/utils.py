import json
import re
from typing import Any, Dict

from cv_screener.utils.exceptions import ParseError

_FENCE_OPEN = re.compile(r"```json")
_FENCE = re.compile(r"```")


def strip_code_fences(s: str) -> str:
    # every fence goes, balanced or not
    return _FENCE.sub("", _FENCE_OPEN.sub("", s))


def sanitize_completion(s: str) -> str:
    """Recover the JSON object from a free-text completion.

    Best effort only: strips Markdown fences, then keeps the text between the
    first "{" and the last "}". Braces inside strings or trailing prose are not
    treated specially. Returns the fence-stripped text when no such span exists.
    """
    s = strip_code_fences(s)
    start = s.find("{")
    end = s.rfind("}")
    if start >= 0 and end >= 0 and start < end:
        return s[start:end + 1]
    return s


def parse_completion(s: str) -> Dict[str, Any]:
    cleaned = sanitize_completion(s or "")
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise ParseError(f"Model response is not valid JSON: {e}", excerpt=cleaned, cause=e) from e
    if not isinstance(data, dict):
        raise ParseError(f"Model response is a JSON {type(data).__name__}, expected an object", excerpt=cleaned)
    return data
