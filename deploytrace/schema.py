from typing import Any, Dict, List

from .errors import ValidationError


def _is_non_empty_str(v: Any) -> bool:
    return isinstance(v, str) and v.strip() != ""


def validate_identifiers(required: Dict[str, Any], optional: Dict[str, Any] = None) -> List[str]:
    """
    Returns a list of validation error messages. Empty list means valid.

    Required identifiers must be non-empty strings; optional ones, when
    provided, must at least be strings.
    """
    errors: List[str] = []

    for name, value in required.items():
        if value is None:
            errors.append(f"Missing required identifier: {name}")
        elif not _is_non_empty_str(value):
            errors.append(f"Identifier '{name}' must be a non-empty string")

    for name, value in (optional or {}).items():
        if value is not None and not isinstance(value, str):
            errors.append(f"Identifier '{name}' must be a string if provided")

    return errors


def require_identifiers(required: Dict[str, Any], optional: Dict[str, Any] = None) -> None:
    """Raise ValidationError if validate_identifiers reports any problem."""
    errors = validate_identifiers(required, optional)
    if errors:
        raise ValidationError(errors)
