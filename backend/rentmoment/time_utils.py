# Overview: UTC clock and ISO-8601 helpers; every stored timestamp is naive UTC.

from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def start_of_today() -> datetime:
    """Midnight UTC. Rental and need dates are compared against this, so today is allowed."""
    return datetime.combine(utcnow().date(), time.min)


def _as_naive_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Accepts what browsers send for rental dates:

        "2026-10-20"                -> 2026-10-20 00:00 UTC
        "2026-10-20T09:30"          -> taken as UTC
        "2026-10-20T09:30:00.000Z"  -> converted to naive UTC
        "2026-10-20T11:30+02:00"    -> converted to naive UTC

    Blank input returns None; anything else raises ValueError.
    """
    text = (value or "").strip()
    if not text:
        return None

    if len(text) == 10:
        return datetime.combine(date.fromisoformat(text), time.min)

    if text[-1] in "zZ":
        text = f"{text[:-1]}+00:00"
    return _as_naive_utc(datetime.fromisoformat(text))


def to_utc_z(moment: Optional[datetime]) -> Optional[str]:
    """Second-precision ISO-8601 with a trailing Z; naive values are already UTC."""
    if moment is None:
        return None
    return _as_naive_utc(moment).replace(microsecond=0).isoformat() + "Z"
