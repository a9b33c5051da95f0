from __future__ import annotations

import re
from datetime import datetime
from typing import Any, Iterable

from rentmoment.time_utils import parse_iso_datetime


EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

# Upper bounds keep every stored value and computed total inside a 64-bit INTEGER
MAX_DB_ID = 2**63 - 1
MAX_QUANTITY = 1000
MAX_PRICE_CENTS = 100_000_000
MAX_RENTAL_DAYS = 365
MAX_SORT_ORDER = 1_000_000

_MISSING = object()


class ValidationError(ValueError):
    """400-level input problem. Carries every field violation found, not just the first."""

    def __init__(self, message: str = "Validation errors", errors: list[dict] | None = None):
        super().__init__(message)
        self.message = message
        self.errors = errors or []


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate category name)."""


def coerce_int(value: Any) -> int:
    """
    Strict integer coercion: rejects bools, floats and scientific notation.
    Raises ValueError with a field-agnostic message.
    """
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValueError("must be an integer")
        if "e" in stripped.lower():
            raise ValueError("must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise ValueError("must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValueError("must be an integer")
    if isinstance(value, float):
        raise ValueError("must be an integer, not a decimal")
    raise ValueError("must be an integer")


def coerce_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in {"true", "false"}:
        return value.strip().lower() == "true"
    raise ValueError("must be a boolean")


class PayloadValidator:
    """
    Validates + normalizes one JSON object, collecting every violation.

    Each check reads a key from the payload, records a {field, message} pair
    on failure, and stores the normalized value in `cleaned` on success.
    Nested objects and lists share the parent's error list so a single
    ValidationError reports the whole request.

    partial=False: create semantics (required fields enforced)
    partial=True: patch semantics (only provided keys are validated)
    """

    def __init__(
        self,
        payload: Any,
        *,
        partial: bool = False,
        prefix: str = "",
        errors: list[dict] | None = None,
    ):
        self.partial = partial
        self.prefix = prefix
        self.errors = errors if errors is not None else []
        self.cleaned: dict = {}
        if payload is None:
            payload = {}
        if not isinstance(payload, dict):
            self.error("", "must be a JSON object")
            payload = {}
        self.payload = payload

    # ------------------------------------------------------------------
    # plumbing
    # ------------------------------------------------------------------

    def field_name(self, key: str) -> str:
        if not key:
            return self.prefix.rstrip(".") or "body"
        return f"{self.prefix}{key}"

    def error(self, key: str, message: str) -> None:
        self.errors.append({"field": self.field_name(key), "message": message})

    def _take(self, key: str, required: bool, message: str | None):
        if key not in self.payload:
            if required and not self.partial:
                self.error(key, message or f"{key} is required")
            return _MISSING
        value = self.payload[key]
        if value is None:
            if required:
                self.error(key, message or f"{key} cannot be empty")
                return _MISSING
            self.cleaned[key] = None
            return _MISSING
        return value

    def provided(self, key: str) -> bool:
        return key in self.payload

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def raise_if_invalid(self, message: str = "Validation errors") -> None:
        if self.errors:
            raise ValidationError(message, list(self.errors))

    def result(self) -> dict:
        self.raise_if_invalid()
        return self.cleaned

    # ------------------------------------------------------------------
    # scalar checks
    # ------------------------------------------------------------------

    def string(
        self,
        key: str,
        *,
        required: bool = False,
        min_length: int | None = None,
        max_length: int | None = None,
        message: str | None = None,
    ) -> str | None:
        value = self._take(key, required, message)
        if value is _MISSING:
            return None
        if not isinstance(value, (str, int, float)) or isinstance(value, bool):
            self.error(key, message or f"{key} must be a string")
            return None
        text = str(value).strip()
        if required and text == "":
            self.error(key, message or f"{key} cannot be blank")
            return None
        if min_length is not None and len(text) < min_length:
            self.error(key, message or f"{key} must be at least {min_length} characters")
            return None
        if max_length is not None and len(text) > max_length:
            self.error(key, message or f"{key} exceeds max length {max_length}")
            return None
        self.cleaned[key] = text
        return text

    def integer(
        self,
        key: str,
        *,
        required: bool = False,
        min_value: int | None = None,
        max_value: int | None = None,
        message: str | None = None,
    ) -> int | None:
        value = self._take(key, required, message)
        if value is _MISSING:
            return None
        try:
            number = coerce_int(value)
        except ValueError as e:
            self.error(key, message or f"{key} {e}")
            return None
        if min_value is not None and number < min_value:
            self.error(key, message or f"{key} must be >= {min_value}")
            return None
        if max_value is not None and number > max_value:
            self.error(key, message or f"{key} must be <= {max_value}")
            return None
        self.cleaned[key] = number
        return number

    def boolean(self, key: str, *, required: bool = False, message: str | None = None) -> bool | None:
        value = self._take(key, required, message)
        if value is _MISSING:
            return None
        try:
            flag = coerce_bool(value)
        except ValueError as e:
            self.error(key, message or f"{key} {e}")
            return None
        self.cleaned[key] = flag
        return flag

    def choice(
        self,
        key: str,
        choices: Iterable[str],
        *,
        required: bool = False,
        message: str | None = None,
    ) -> str | None:
        value = self._take(key, required, message)
        if value is _MISSING:
            return None
        allowed = tuple(choices)
        if value not in allowed:
            self.error(key, message or f"{key} must be one of: {', '.join(allowed)}")
            return None
        self.cleaned[key] = value
        return value

    def email(self, key: str, *, required: bool = False, message: str | None = None) -> str | None:
        value = self._take(key, required, message)
        if value is _MISSING:
            return None
        if not isinstance(value, str) or not EMAIL_RE.match(value.strip()):
            self.error(key, message or "Please provide a valid email")
            return None
        normalized = value.strip().lower()
        self.cleaned[key] = normalized
        return normalized

    def iso_datetime(self, key: str, *, required: bool = False, message: str | None = None) -> datetime | None:
        value = self._take(key, required, message)
        if value is _MISSING:
            return None
        if not isinstance(value, str):
            self.error(key, message or f"{key} must be an ISO-8601 datetime")
            return None
        try:
            dt = parse_iso_datetime(value)
        except ValueError:
            dt = None
        if dt is None:
            self.error(key, message or f"{key} must be an ISO-8601 datetime")
            return None
        self.cleaned[key] = dt
        return dt

    # ------------------------------------------------------------------
    # collections
    # ------------------------------------------------------------------

    def string_list(
        self,
        key: str,
        *,
        required: bool = False,
        min_items: int = 0,
        message: str | None = None,
    ) -> list[str] | None:
        value = self._take(key, required, message)
        if value is _MISSING:
            return None
        if not isinstance(value, list) or len(value) < min_items:
            self.error(key, message or f"{key} must be a list with at least {min_items} item(s)")
            return None
        items = []
        for index, item in enumerate(value):
            if not isinstance(item, str) or not item.strip():
                self.error(f"{key}[{index}]", f"{key} entries must be non-empty strings")
                continue
            items.append(item.strip())
        self.cleaned[key] = items
        return items

    def string_map(self, key: str, *, message: str | None = None) -> dict[str, str] | None:
        value = self._take(key, False, message)
        if value is _MISSING:
            return None
        if not isinstance(value, dict):
            self.error(key, message or f"{key} must be an object")
            return None
        mapping = {}
        for k, v in value.items():
            if not isinstance(v, (str, int, float)) or isinstance(v, bool):
                self.error(f"{key}.{k}", f"{key} values must be strings")
                continue
            mapping[str(k)] = str(v).strip()
        self.cleaned[key] = mapping
        return mapping

    def raw_list(
        self,
        key: str,
        *,
        required: bool = False,
        min_items: int = 0,
        message: str | None = None,
    ) -> list | None:
        """Return the list under `key` for per-element validation by the caller."""
        value = self._take(key, required, message)
        if value is _MISSING:
            return None
        if not isinstance(value, list) or len(value) < min_items:
            self.error(key, message or f"{key} must be a list with at least {min_items} item(s)")
            return None
        return value

    def nested(self, key: str, payload: Any = _MISSING, *, partial: bool | None = None) -> "PayloadValidator":
        """Child validator whose violations are reported as `key.field`."""
        if payload is _MISSING:
            payload = self.payload.get(key)
        return PayloadValidator(
            payload,
            partial=self.partial if partial is None else partial,
            prefix=f"{self.prefix}{key}.",
            errors=self.errors,
        )
