"""Payload serialization using msgspec JSON encoding."""

from typing import Any, Protocol

import msgspec

from indexvault.exceptions import SerializationError


class PayloadSerializer(Protocol):
    """Protocol for turning cluster responses into packet payload text."""

    def encode(self, data: Any) -> str:
        """Serialize a Python object to payload text.

        Raises:
            SerializationError: If serialization fails
        """
        ...

    def decode(self, payload: str | bytes) -> Any:
        """Deserialize payload text back to a Python object.

        Raises:
            SerializationError: If deserialization fails
        """
        ...


class MsgspecJsonSerializer:
    """JSON payload serializer using the msgspec library."""

    def encode(self, data: Any) -> str:
        """Serialize Python object to JSON text.

        Args:
            data: Settings, mapping, alias or document body

        Returns:
            UTF-8 JSON text

        Raises:
            SerializationError: If serialization fails
        """
        try:
            return msgspec.json.encode(data).decode("utf-8")
        except Exception as e:
            raise SerializationError(f"Failed to serialize payload: {e}") from e

    def decode(self, payload: str | bytes) -> Any:
        """Deserialize JSON text to Python object.

        Args:
            payload: JSON text or bytes

        Returns:
            Decoded Python object

        Raises:
            SerializationError: If the payload is not valid JSON
        """
        try:
            return msgspec.json.decode(payload)
        except msgspec.DecodeError as e:
            raise SerializationError(f"Failed to deserialize payload: {e}") from e
