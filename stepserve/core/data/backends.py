#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
JSON serialization backend for wire payloads.

Author: stepserve contributors
"""

import dataclasses
import json
from typing import Any, Mapping, Protocol, Union, runtime_checkable

from ..utils.exceptions import SerializationError


@runtime_checkable
class SerializationBackend(Protocol):
    """Protocol defining the interface for wire codecs"""

    def serialize(self, obj: Any) -> bytes:
        """Serialize an object to bytes"""
        ...

    def deserialize(self, data: Union[bytes, str]) -> Any:
        """Deserialize bytes back to an object"""
        ...


class JSONBackend:
    """
    Compact JSON codec for request and response bodies.

    Output uses ``(",", ":")`` separators and preserves key insertion order, so
    the same object always encodes to the same bytes. Content hashes rely on
    that.
    """

    def __init__(self, ensure_ascii: bool = False):
        self.ensure_ascii = ensure_ascii

    def _encode_recursive(self, obj: Any) -> Any:
        """
        Recursively convert containers and dataclasses into JSON-native values.
        """
        if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
            return self._encode_recursive(dataclasses.asdict(obj))
        if isinstance(obj, Mapping):
            return {str(k): self._encode_recursive(v) for k, v in obj.items()}
        if isinstance(obj, (list, tuple)):
            return [self._encode_recursive(item) for item in obj]
        if isinstance(obj, (set, frozenset)):
            return [self._encode_recursive(item) for item in sorted(obj, key=repr)]
        if isinstance(obj, bytes):
            return obj.decode("utf-8", errors="replace")
        return obj

    def _custom_encoder(self, obj: Any) -> Any:
        to_dict = getattr(obj, "to_dict", None)
        if callable(to_dict):
            return self._encode_recursive(to_dict())
        raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")

    def encode(self, obj: Any) -> str:
        """Serialize object to compact JSON text"""
        try:
            return json.dumps(
                self._encode_recursive(obj),
                ensure_ascii=self.ensure_ascii,
                separators=(",", ":"),
                allow_nan=False,
                default=self._custom_encoder,
            )
        except (TypeError, ValueError) as e:
            raise SerializationError(
                operation="serialize",
                message=f"JSON serialization failed: {e}",
                data_type=type(obj).__name__,
                cause=e,
            ) from e

    def serialize(self, obj: Any) -> bytes:
        """Serialize object to UTF-8 encoded compact JSON"""
        return self.encode(obj).encode("utf-8")

    def deserialize(self, data: Union[bytes, str]) -> Any:
        """Deserialize JSON bytes or text"""
        if data is None or len(data) == 0:
            raise SerializationError(
                operation="deserialize",
                message="JSON deserialization failed: empty payload",
            )
        try:
            text = data.decode("utf-8") if isinstance(data, (bytes, bytearray)) else data
            return json.loads(text)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise SerializationError(
                operation="deserialize",
                message=f"JSON deserialization failed: {e}",
                cause=e,
            ) from e


default_backend = JSONBackend()
