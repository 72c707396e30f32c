"""Shared backend validation for order step submissions.

The frontend submits each step as a dictionary. Step nodes use these helpers
to check that fields are present and well-formed and to normalize them.

On validation failure, raise `FormValidationError` so the API can return HTTP 422
with structured `field_errors`.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional


@dataclass
class FormValidationError(Exception):
    """Exception raised for form validation failures.

    Attributes:
        field_errors: mapping of field name -> human-readable error message.
        message: optional top-level message.
    """

    field_errors: Dict[str, str] = field(default_factory=dict)
    message: str = "Validation failed"

    def __str__(self) -> str:
        return self.message


def _as_str(v: Any) -> str:
    return "" if v is None else str(v)


def _strip(v: Any) -> str:
    return _as_str(v).strip()


def add_error(errors: Dict[str, str], field: str, message: str) -> None:
    if field not in errors:
        errors[field] = message


def require_str(payload: Mapping, field: str, errors: Dict[str, str], *, label: Optional[str] = None) -> str:
    value = _strip(payload.get(field))
    if not value:
        add_error(errors, field, f"{label or field} is required")
    return value


def validate_length_range(
    payload: Mapping,
    field: str,
    errors: Dict[str, str],
    *,
    min_len: int = 0,
    max_len: int = 255,
    required: bool = True,
    label: Optional[str] = None,
) -> str:
    value = _strip(payload.get(field))
    if not value:
        if required:
            add_error(errors, field, f"{label or field} is required")
        return value
    if not (min_len <= len(value) <= max_len):
        add_error(errors, field, f"{label or field} must be {min_len}-{max_len} characters")
    return value


def require_bool(payload: Mapping, field: str, errors: Dict[str, str], *, label: Optional[str] = None) -> bool:
    if field not in payload:
        add_error(errors, field, f"{label or field} is required")
        return False
    v = payload.get(field)
    if isinstance(v, bool):
        return v
    s = _strip(v).lower()
    if s in ("true", "1", "yes", "y", "on"):
        return True
    if s in ("false", "0", "no", "n", "off"):
        return False
    add_error(errors, field, f"{label or field} must be true/false")
    return False


def parse_int(
    payload: Mapping,
    field: str,
    errors: Dict[str, str],
    *,
    min_value: Optional[int] = None,
    max_value: Optional[int] = None,
    required: bool = False,
    label: Optional[str] = None,
) -> int:
    name = label or field
    raw = payload.get(field)
    if raw is None or _strip(raw) == "":
        if required:
            add_error(errors, field, f"{name} is required")
        return 0
    if isinstance(raw, bool):
        add_error(errors, field, f"{name} must be a whole number")
        return 0
    try:
        val = int(str(raw).strip())
    except ValueError:
        add_error(errors, field, f"{name} must be a whole number")
        return 0
    if min_value is not None and val < min_value:
        add_error(errors, field, f"{name} must be at least {min_value}")
    if max_value is not None and val > max_value:
        add_error(errors, field, f"{name} must be at most {max_value}")
    return val


_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def validate_email(value: Any, errors: Dict[str, str], field: str = "email", *, required: bool = True) -> str:
    value = _strip(value)
    if not value:
        if required:
            add_error(errors, field, "Email is required")
        return value
    if not _EMAIL_RE.match(value):
        add_error(errors, field, "Email is not valid")
    return value.lower()


def normalize_phone(value: Any) -> str:
    """Strip separators and a leading '+', returning digits only when possible.

    Accepts:
    - +44 20 7946 0958
    - 020-7946-0958
    - (555) 010 9999
    """
    s = _strip(value)
    if not s:
        return ""
    s = re.sub(r"[\s\-\(\)\.]", "", s)
    if s.startswith("+"):
        s = s[1:]
    return s


def validate_phone(value: Any, errors: Dict[str, str], field: str = "phone_number") -> str:
    raw = _strip(value)
    if not raw:
        add_error(errors, field, "Phone number is required")
        return raw
    norm = normalize_phone(raw)
    if not norm.isdigit():
        add_error(errors, field, "Phone number must contain digits only")
        return raw
    if not (7 <= len(norm) <= 15):
        add_error(errors, field, "Phone number format is not valid")
    return norm


def validate_in(value: Any, allowed: Iterable[str], errors: Dict[str, str], field: str, *, required: bool = True) -> str:
    raw = _strip(value).lower()
    if not raw:
        if required:
            add_error(errors, field, f"{field} is required")
        return raw
    if raw not in set(allowed):
        add_error(errors, field, f"{field} has an invalid value")
    return raw


_POSTAL_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9 \-]{1,9}$")


def validate_postal_code(value: Any, errors: Dict[str, str], field: str = "postal_code") -> str:
    raw = _strip(value)
    if not raw:
        add_error(errors, field, "Postal code is required")
        return raw
    if not _POSTAL_RE.match(raw):
        add_error(errors, field, "Postal code format is not valid")
    return raw.upper()


def raise_if_errors(errors: Dict[str, str], message: str = "Please correct the highlighted fields") -> None:
    if errors:
        raise FormValidationError(field_errors=errors, message=message)
