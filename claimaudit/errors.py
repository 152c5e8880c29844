from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


class ComparisonError(Exception):
    """Terminal failure for one comparison request.

    Carries the variant tag and raw-text length so the caller can decide
    whether re-running the upstream generation call is worthwhile.
    """

    def __init__(self, message: str, tag: Optional[str] = None, raw_length: int = 0) -> None:
        self.message = message
        self.tag = tag
        self.raw_length = raw_length
        super().__init__(self._format())

    def _format(self) -> str:
        context = [f"raw_length={self.raw_length}"]
        if self.tag:
            context.insert(0, f"tag={self.tag}")
        return f"{self.message} ({', '.join(context)})"


class EmptyUpstreamResponse(ComparisonError):
    def __init__(self, tag: Optional[str] = None, detail: str = "") -> None:
        message = "Upstream generator returned an empty response"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message, tag=tag, raw_length=0)


class SanitizationFailure(ComparisonError):
    pass


class ValidationFailure(ComparisonError):
    def __init__(
        self,
        field_path: str,
        reason: str,
        tag: Optional[str] = None,
        raw_length: int = 0,
    ) -> None:
        self.field_path = field_path
        self.reason = reason
        super().__init__(f"Invalid field '{field_path}': {reason}", tag=tag, raw_length=raw_length)


@dataclass(frozen=True)
class ReconciliationNote:
    field_path: str
    reported: Optional[object]
    recomputed: Optional[object]
    message: str


@dataclass(frozen=True)
class LayoutOverflow:
    page_number: int
    block_kind: str
    height: float
    available: float
