from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol, Sequence


@dataclass
class DocumentPart:
    label: str
    data: bytes
    mime_type: str


@dataclass
class LLMResponse:
    raw_text: str
    finish_reason: Optional[str] = None


class LLMAdapter(Protocol):
    def complete(self, system_prompt: str, parts: Sequence[DocumentPart]) -> LLMResponse:
        raise NotImplementedError
