"""
Protocol message validators.

This module checks decoded messages against their schemas before the sync
service acts on them.
"""

import logging
from typing import Any, List, Mapping

from .schemas import MESSAGE_SCHEMAS

logger = logging.getLogger(__name__)


class ValidationResult:
    """Result of validation with detailed error information."""

    def __init__(self, valid: bool, errors: List[str] = None):
        self.valid = valid
        self.errors = errors or []

    def __bool__(self):
        return self.valid

    def __str__(self):
        if self.valid:
            return "Validation passed"
        return f"Validation failed: {'; '.join(self.errors)}"


def validate_payload(msg_type: str, payload: Mapping[str, Any]) -> ValidationResult:
    """
    Validate a message payload against its schema.

    Args:
        msg_type: Message type (e.g., "file:update")
        payload: Payload fields to validate

    Returns:
        ValidationResult; types without a schema pass

    Example:
        >>> result = validate_payload("file:update", {"code": "asyncapi: 2.0.0"})
        >>> if not result.valid:
        ...     logger.error(result.errors)
    """
    schema = MESSAGE_SCHEMAS.get(msg_type)

    if schema is None:
        logger.debug(f"No schema defined for message type: {msg_type}")
        return ValidationResult(valid=True)

    errors = []

    missing = [key for key in schema.required if key not in payload]
    if missing:
        errors.append(f"Missing required fields: {', '.join(missing)}")

    for key, value in payload.items():
        expected_type = schema.types.get(key)
        if expected_type and not isinstance(value, expected_type):
            errors.append(
                f"Field '{key}' has type {type(value).__name__}, "
                f"expected {expected_type.__name__}"
            )

    all_known = set(schema.required) | set(schema.optional)
    unknown = [key for key in payload.keys() if key not in all_known]
    if unknown:
        logger.warning(f"Unknown fields for {msg_type}: {', '.join(unknown)}")

    return ValidationResult(valid=len(errors) == 0, errors=errors)
