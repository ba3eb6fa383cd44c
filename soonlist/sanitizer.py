"""Recovery of JSON payloads from non-conforming model output.

Models asked for JSON sometimes wrap it in markdown fences or surround it
with prose. ``extract_json_from_text`` pulls out a single top-level JSON
object or array so the caller can parse and validate it again.
"""

import re
from typing import Optional

SANITIZED_WARNING = "sanitized-json-fallback"

# A single fenced block spanning the whole (trimmed) text.
_ANCHORED_FENCE_RE = re.compile(r"^```[\w-]*[ \t]*\r?\n?(.*?)\s*```$", re.S | re.I)

# A fenced block anywhere in the text.
_EMBEDDED_FENCE_RE = re.compile(r"```[\w-]*[ \t]*\r?\n(.*?)```", re.S | re.I)

_OPENERS = "{["
_CLOSERS = "}]"


def _scan_balanced(text: str) -> Optional[str]:
    """Return the balanced top-level structure starting at the first ``{`` or ``[``.

    Brackets inside string literals are ignored; backslash escapes inside
    strings are honored.
    """
    start = -1
    for i, ch in enumerate(text):
        if ch in _OPENERS:
            start = i
            break
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"':
            in_string = True
        elif ch in _OPENERS:
            depth += 1
        elif ch in _CLOSERS:
            depth -= 1
            if depth == 0:
                return text[start:i + 1]

    return None


def extract_json_from_text(text: Optional[str]) -> Optional[str]:
    """Extract the first top-level JSON object or array from ``text``.

    Tries, in order: a fence pair wrapping the whole text, a fenced block
    anywhere in the text, then a bracket scan of the whole text.

    Args:
        text: Raw model response that failed strict JSON parsing

    Returns:
        The JSON substring, or None if no balanced structure was found
    """
    if not text:
        return None

    trimmed = text.strip()
    if not trimmed:
        return None

    candidates = []
    anchored = _ANCHORED_FENCE_RE.match(trimmed)
    if anchored:
        candidates.append(anchored.group(1))
    candidates.extend(m.group(1) for m in _EMBEDDED_FENCE_RE.finditer(trimmed))

    for candidate in candidates:
        candidate = candidate.strip()
        if candidate and candidate[0] in _OPENERS:
            found = _scan_balanced(candidate)
            if found is not None:
                return found

    return _scan_balanced(trimmed)
