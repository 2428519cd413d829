#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Wire codecs and error envelopes.

Author: stepserve contributors
"""

from .backends import JSONBackend, SerializationBackend, default_backend
from .errors import (
    OutgoingOpError,
    RemoteError,
    SerializedError,
    deserialize_error,
    is_serialized_error,
    serialize_error,
)

__all__ = [
    "JSONBackend",
    "SerializationBackend",
    "default_backend",
    "OutgoingOpError",
    "RemoteError",
    "SerializedError",
    "deserialize_error",
    "is_serialized_error",
    "serialize_error",
]
