from __future__ import annotations

import logging
import re
from typing import List, Optional

from claimaudit.errors import SanitizationFailure

logger = logging.getLogger(__name__)

_LEADING_FENCE = re.compile(r"^```[\w.+-]*[ \t]*\n?")
_TRAILING_FENCE = re.compile(r"\n?```\s*$")


def _strip_code_fences(text: str) -> str:
    text = _LEADING_FENCE.sub("", text, count=1)
    text = _TRAILING_FENCE.sub("", text, count=1)
    return text.strip()


def _slice_object(text: str, tag: Optional[str], raw_length: int) -> str:
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end == -1 or end < start:
        raise SanitizationFailure(
            "No JSON object boundaries found in response", tag=tag, raw_length=raw_length
        )
    return text[start:end + 1]


def _next_significant(text: str, index: int) -> int:
    while index < len(text) and text[index].isspace():
        index += 1
    return index


def _drop_trailing_commas(out: List[str]) -> int:
    removed = 0
    index = len(out) - 1
    while index >= 0 and (out[index].isspace() or out[index] == ","):
        if out[index] == ",":
            del out[index]
            removed += 1
        index -= 1
    return removed


def _repair_separators(text: str) -> str:
    out: List[str] = []
    stack: List[str] = []
    in_string = False
    escaped = False
    inserted = 0
    removed = 0

    for index, char in enumerate(text):
        if in_string:
            out.append(char)
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
            out.append(char)
            continue

        if char in "{[":
            stack.append(char)
            out.append(char)
            continue

        if char in "}]":
            if stack:
                stack.pop()
            removed += _drop_trailing_commas(out)
            out.append(char)
            if char == "}" and stack and stack[-1] == "[":
                follow = _next_significant(text, index + 1)
                if follow < len(text) and text[follow] == "{":
                    out.append(",")
                    inserted += 1
            continue

        out.append(char)

    if inserted or removed:
        logger.debug(
            "sanitizer repairs: inserted %d separator(s), removed %d trailing separator(s)",
            inserted,
            removed,
        )
    return "".join(out)


def sanitize(raw_text: Optional[str], tag: Optional[str] = None) -> str:
    raw_length = len(raw_text or "")
    text = (raw_text or "").strip()
    text = _strip_code_fences(text)
    text = _slice_object(text, tag, raw_length)
    return _repair_separators(text)
