"""Helpers for checking create/update payloads before they reach the store."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Mapping, Sequence

from .errors import ValidationError


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def clean(
    payload: Mapping[str, Any],
    *,
    allowed: Iterable[str],
    required: Iterable[str] = (),
) -> Dict[str, Any]:
    data = dict(payload)
    unknown = sorted(set(data) - set(allowed))
    if unknown:
        raise ValidationError(f"unknown fields: {', '.join(unknown)}")
    missing = [name for name in required if _blank(data.get(name))]
    if missing:
        raise ValidationError(f"missing required fields: {', '.join(missing)}")
    return data


def required_text(name: str, value: Any) -> str:
    if _blank(value):
        raise ValidationError(f"{name} must not be empty")
    return str(value).strip()


def choice(name: str, value: Any, options: Sequence[str]) -> str:
    if value not in options:
        raise ValidationError(f"{name} must be one of {', '.join(options)}")
    return value


def timestamp(name: str, value: Any) -> datetime:
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value)
        except ValueError:
            raise ValidationError(f"{name} is not an ISO-8601 timestamp") from None
    if not isinstance(value, datetime):
        raise ValidationError(f"{name} must be a timestamp")
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def positive_int(name: str, value: Any) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be an integer") from None
    if number <= 0:
        raise ValidationError(f"{name} must be positive")
    return number


def optional_text(value: Any) -> Any:
    if isinstance(value, str):
        value = value.strip()
    return value or None

