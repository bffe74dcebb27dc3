"""Best-effort repair of almost-JSON text returned by the inference service.

Each rule is a plain ``str -> str`` function so it can be tested on its
own. String literals are tracked while scanning, so quotes, commas and
bare words inside values are left alone.
"""
from __future__ import annotations

import json
import re
from typing import Any, Callable, Iterator, List, Optional, Sequence, Tuple

RepairRule = Callable[[str], str]

_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_SMART_QUOTES = {
    "“": '"', "”": '"', "„": '"', "«": '"', "»": '"',
    "‘": "'", "’": "'", "‚": "'",
}

_FENCED_JSON_RE = re.compile(r"```(?:json)?\s*(.*?)\s*```", re.DOTALL | re.IGNORECASE)


def _segments(text: str) -> Iterator[Tuple[bool, str]]:
    """Split ``text`` into ``(is_string, chunk)`` pieces.

    Both double- and single-quoted literals count as strings.
    """

    buf: List[str] = []
    quote: Optional[str] = None
    i = 0
    while i < len(text):
        ch = text[i]
        if quote is None:
            if ch in ('"', "'"):
                if buf:
                    yield False, "".join(buf)
                    buf = []
                quote = ch
            buf.append(ch)
        else:
            buf.append(ch)
            if ch == "\\" and i + 1 < len(text):
                buf.append(text[i + 1])
                i += 1
            elif ch == quote:
                yield True, "".join(buf)
                buf = []
                quote = None
        i += 1
    if buf:
        yield quote is not None, "".join(buf)


def strip_control_characters(text: str) -> str:
    return _CONTROL_CHARS_RE.sub("", text)


def normalize_quotes(text: str) -> str:
    """Turn typographic quotes into ASCII and single-quoted strings into JSON strings."""

    for smart, plain in _SMART_QUOTES.items():
        text = text.replace(smart, plain)

    out: List[str] = []
    for is_string, chunk in _segments(text):
        if is_string and chunk.startswith("'"):
            body = chunk[1:-1] if chunk.endswith("'") and len(chunk) > 1 else chunk[1:]
            body = body.replace("\\'", "'").replace('"', '\\"')
            out.append(f'"{body}"')
        else:
            out.append(chunk)
    return "".join(out)


def quote_bare_keys(text: str) -> str:
    """Wrap unquoted object keys (``{name: 1}``) in double quotes."""

    out: List[str] = []
    for is_string, chunk in _segments(text):
        if is_string:
            out.append(chunk)
            continue
        out.append(re.sub(r"([{,]\s*)([A-Za-z_$][A-Za-z0-9_$]*)(\s*:)", r'\1"\2"\3', chunk))
    return "".join(out)


def replace_undefined(text: str) -> str:
    out: List[str] = []
    for is_string, chunk in _segments(text):
        if is_string:
            out.append(chunk)
        else:
            out.append(re.sub(r"\b(undefined|NaN)\b", "null", chunk))
    return "".join(out)


def strip_trailing_commas(text: str) -> str:
    out: List[str] = []
    for is_string, chunk in _segments(text):
        if is_string:
            out.append(chunk)
        else:
            out.append(re.sub(r",(\s*[\]}])", r"\1", chunk))
    # truncated output can end on a dangling comma
    return re.sub(r",\s*$", "", "".join(out))


def balance_brackets(text: str) -> str:
    """Close any ``{``/``[`` left open at the end of a truncated response."""

    stack: List[str] = []
    closing = {"{": "}", "[": "]"}
    for is_string, chunk in _segments(text):
        if is_string:
            continue
        for ch in chunk:
            if ch in closing:
                stack.append(closing[ch])
            elif ch in ("}", "]") and stack and stack[-1] == ch:
                stack.pop()
    return text + "".join(reversed(stack))


REPAIR_RULES: Sequence[RepairRule] = (
    strip_control_characters,
    normalize_quotes,
    quote_bare_keys,
    replace_undefined,
    strip_trailing_commas,
    balance_brackets,
)


def repair_json(text: str, rules: Sequence[RepairRule] = REPAIR_RULES) -> str:
    for rule in rules:
        text = rule(text)
    return text


def extract_json_block(text: str) -> Optional[str]:
    """Pull the JSON payload out of a model response.

    A fenced ```json block wins; otherwise the span from the first ``{``
    to the last ``}`` (or to the end, for truncated output).
    """

    match = _FENCED_JSON_RE.search(text)
    if match:
        return match.group(1).strip()
    start = text.find("{")
    if start == -1:
        return None
    end = text.rfind("}")
    return text[start:end + 1] if end > start else text[start:]


def loads_lenient(text: str) -> Any:
    """``json.loads`` with one repair pass; raises ``ValueError`` if both fail."""

    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass
    repaired = repair_json(text)
    try:
        return json.loads(repaired)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Unrepairable JSON: {exc}") from exc
