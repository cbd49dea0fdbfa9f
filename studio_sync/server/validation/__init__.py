"""
Validation package for inbound protocol messages.

This package provides schema definitions and validators to ensure
messages from the Studio UI conform to the live-sync protocol.
"""

from .validators import (
    ValidationResult,
    validate_payload,
)
from .schemas import MESSAGE_SCHEMAS, MessageSchema

__all__ = [
    "ValidationResult",
    "validate_payload",
    "MESSAGE_SCHEMAS",
    "MessageSchema",
]
