"""Protocol messages exchanged with the Studio UI and their JSON codec."""

import json
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Union

from ..errors import ProtocolError
from ..server.constants import ProtocolTypes


@dataclass(frozen=True)
class ProtocolMessage:
    """
    One message on the live-sync channel.

    The wire form is a flat JSON object: the `type` tag next to the payload
    fields, e.g. {"type": "file:changed", "code": "..."}.
    """
    type: str
    payload: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        # Freeze the payload so a queued message cannot change under us
        object.__setattr__(self, "payload", MappingProxyType(dict(self.payload)))

    def get(self, key: str, default: Any = None) -> Any:
        return self.payload.get(key, default)

    def to_dict(self) -> Dict[str, Any]:
        data = {"type": self.type}
        data.update(self.payload)
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


def create_message(msg_type: str, **payload: Any) -> ProtocolMessage:
    """
    Create a protocol message with a type and payload fields.

    Args:
        msg_type: Message type (file:loaded, file:changed, ...)
        **payload: Payload fields

    Returns:
        ProtocolMessage
    """
    return ProtocolMessage(type=msg_type, payload=payload)


def create_loaded_message(code: str) -> ProtocolMessage:
    """Current content, sent when a client connects."""
    return create_message(ProtocolTypes.FILE_LOADED, code=code)


def create_changed_message(code: str) -> ProtocolMessage:
    """New content after the watched file was added or modified."""
    return create_message(ProtocolTypes.FILE_CHANGED, code=code)


def create_deleted_message(file_path: str) -> ProtocolMessage:
    """Notice that the watched file was removed."""
    return create_message(ProtocolTypes.FILE_DELETED, filePath=file_path)


def create_update_message(code: str) -> ProtocolMessage:
    """Client edit to persist; built by clients and tests."""
    return create_message(ProtocolTypes.FILE_UPDATE, code=code)


def decode_message(raw: Union[str, bytes]) -> ProtocolMessage:
    """
    Parse a text frame into a ProtocolMessage.

    Args:
        raw: Frame received from a client

    Returns:
        The decoded message

    Raises:
        ProtocolError: If the frame is not JSON or not a typed object
    """
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ProtocolError(f"Frame is not valid UTF-8: {e}", repr(raw)) from e

    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise ProtocolError(f"Invalid JSON: {e}", raw) from e

    if not isinstance(data, dict):
        raise ProtocolError(f"Expected a JSON object, got {type(data).__name__}", raw)

    msg_type = data.pop("type", None)
    if not isinstance(msg_type, str):
        raise ProtocolError("Missing or non-string 'type'", raw)

    return ProtocolMessage(type=msg_type, payload=data)
