from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_timestamp(now: Optional[datetime] = None) -> str:
    return (now or utc_now()).strftime("%Y%m%d-%H%M%S")


def run_id(slug: str, now: Optional[datetime] = None) -> str:
    return f"{utc_timestamp(now)}-{slug}"
