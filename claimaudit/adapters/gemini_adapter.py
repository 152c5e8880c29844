from __future__ import annotations

import os
import random
import time
from typing import List, Optional, Sequence

from google import genai
from google.genai import types

from claimaudit.errors import EmptyUpstreamResponse

from .llm_base import DocumentPart, LLMAdapter, LLMResponse

_BLOCK_NONE_CATEGORIES = (
    types.HarmCategory.HARM_CATEGORY_HATE_SPEECH,
    types.HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT,
    types.HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT,
    types.HarmCategory.HARM_CATEGORY_HARASSMENT,
)


class GeminiAdapter(LLMAdapter):
    def __init__(self, tag: Optional[str] = None, instruction: str = "") -> None:
        api_key = os.getenv("GEMINI_API_KEY")
        if not api_key:
            raise RuntimeError("GEMINI_API_KEY is not set.")

        self.client = genai.Client(api_key=api_key)
        self.tag = tag
        self.instruction = instruction

        primary = os.getenv("GEMINI_MODEL", "gemini-3-pro-preview")
        self.model_candidates: List[str] = [primary]
        for fallback in ("gemini-2.5-pro", "gemini-flash-latest"):
            if fallback not in self.model_candidates:
                self.model_candidates.append(fallback)

        self.max_attempts = int(os.getenv("GEMINI_MAX_ATTEMPTS", "5"))
        self.base_delay = float(os.getenv("GEMINI_BASE_DELAY_SECONDS", "1.0"))
        self.temperature = float(os.getenv("CLAIMAUDIT_TEMPERATURE", "0.1"))
        self.max_output_tokens = int(os.getenv("CLAIMAUDIT_MAX_OUTPUT_TOKENS", "65536"))

    def _is_transient(self, err: Exception) -> bool:
        msg = str(err).lower()
        return any(s in msg for s in ["503", "500", "unavailable", "429", "too many", "timeout", "temporarily"])

    def _config(self, system_prompt: str) -> types.GenerateContentConfig:
        return types.GenerateContentConfig(
            system_instruction=system_prompt,
            response_mime_type="application/json",
            temperature=self.temperature,
            max_output_tokens=self.max_output_tokens,
            safety_settings=[
                types.SafetySetting(category=category, threshold=types.HarmBlockThreshold.BLOCK_NONE)
                for category in _BLOCK_NONE_CATEGORIES
            ],
        )

    def _contents(self, parts: Sequence[DocumentPart]) -> List:
        contents: List = []
        for part in parts:
            contents.append(part.label)
            contents.append(types.Part.from_bytes(data=part.data, mime_type=part.mime_type))
        if self.instruction:
            contents.append(self.instruction)
        return contents

    def complete(self, system_prompt: str, parts: Sequence[DocumentPart]) -> LLMResponse:
        last_err: Exception | None = None
        config = self._config(system_prompt)
        contents = self._contents(parts)

        for model in self.model_candidates:
            for attempt in range(1, self.max_attempts + 1):
                try:
                    print(f"[gemini] model={model} attempt={attempt}/{self.max_attempts}")
                    response = self.client.models.generate_content(
                        model=model,
                        contents=contents,
                        config=config,
                    )
                except Exception as e:
                    last_err = e
                    if not self._is_transient(e):
                        break

                    delay = self.base_delay * (2 ** (attempt - 1)) + random.random() * 0.5
                    print(f"[gemini] transient error: {e} -> sleeping {delay:.2f}s")
                    time.sleep(delay)
                    continue

                finish_reason = _finish_reason(response)
                text = getattr(response, "text", None)
                if not text:
                    raise EmptyUpstreamResponse(
                        tag=self.tag, detail=f"model={model} finish_reason={finish_reason or 'unknown'}"
                    )
                print(f"[gemini] model={model} finish_reason={finish_reason} chars={len(text)}")
                return LLMResponse(raw_text=text, finish_reason=finish_reason)

            print(f"[gemini] switching model after failures: {model}")

        raise RuntimeError(
            "Gemini generate_content failed for all candidate models. "
            f"Last error: {last_err}"
        ) from last_err


def _finish_reason(response) -> Optional[str]:
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return None
    reason = getattr(candidates[0], "finish_reason", None)
    if reason is None:
        return None
    return getattr(reason, "name", str(reason))
