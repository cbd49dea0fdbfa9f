"""
Schema definitions for protocol message validation.

This module defines the expected payload fields and types for each
inbound message type of the live-sync channel.
"""

from dataclasses import dataclass
from typing import Dict, List

from ..constants import ProtocolTypes


@dataclass
class MessageSchema:
    """
    Schema definition for a message type.

    Attributes:
        required: List of required payload field names
        optional: List of optional payload field names
        types: Dict mapping field names to expected types
    """
    required: List[str]
    optional: List[str] = None
    types: Dict[str, type] = None

    def __post_init__(self):
        if self.optional is None:
            self.optional = []
        if self.types is None:
            self.types = {}


FILE_UPDATE_SCHEMA = MessageSchema(
    required=["code"],
    types={"code": str}
)


MESSAGE_SCHEMAS: Dict[str, MessageSchema] = {
    ProtocolTypes.FILE_UPDATE: FILE_UPDATE_SCHEMA,
}
