#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Portable error envelopes.

Exceptions do not survive a JSON hop on their own, so failures crossing the
wire are converted into plain dicts tagged with a marker key. The marker is
what distinguishes a serialized error from ordinary data, and it makes
``serialize_error`` idempotent.

Author: stepserve contributors
"""

import json
from typing import Any, Dict, Mapping, Optional, Set

from ..utils.exceptions import ExceptionFormatter, StepServeError

SERIALIZED_KEY = "__serialized"
SERIALIZED_VALUE = True
UNKNOWN_ERROR_MESSAGE = "Unknown error; could not reserialize"
NON_ERROR_NAME = "NonError"

_RESERVED_KEYS = frozenset({SERIALIZED_KEY, "name", "message", "stack", "cause"})

SerializedError = Dict[str, Any]


class RemoteError(StepServeError):
    """
    An error rebuilt from a serialized envelope.

    ``name`` is the original error's type name, not this class's. ``stack``
    is the original traceback text, or None when it could not be recovered.
    """

    default_error_code = "REMOTE_ERROR"

    def __init__(
        self,
        name: str,
        message: str,
        stack: Optional[str] = None,
        properties: Optional[Mapping[str, Any]] = None,
    ) -> None:
        super().__init__(message=message)
        self.name = name
        self.stack = stack
        self.properties: Dict[str, Any] = dict(properties or {})

    def __repr__(self) -> str:
        return "RemoteError(name={0!r}, message={1!r})".format(self.name, self.message)


class OutgoingOpError(StepServeError):
    """
    Raised by an execution engine when an outgoing operation holds an error.

    The wrapped ``op`` is still sent back as a normal pending-operation body
    so the orchestrator can apply its own retry or failure policy.
    """

    default_error_code = "OUTGOING_OP_ERROR"

    def __init__(self, op: Mapping[str, Any]) -> None:
        super().__init__(message="OutgoingOpError")
        self.op: Dict[str, Any] = dict(op)


def is_serialized_error(value: Any) -> bool:
    """
    Check whether ``value`` is an envelope produced by ``serialize_error``.
    """
    try:
        return isinstance(value, Mapping) and value.get(SERIALIZED_KEY) is SERIALIZED_VALUE
    except Exception:
        return False


def _to_jsonable(value: Any) -> Any:
    try:
        json.dumps(value)
        return value
    except (TypeError, ValueError):
        return repr(value)


def _own_properties(exc: BaseException) -> Dict[str, Any]:
    if isinstance(exc, RemoteError):
        source: Mapping[str, Any] = exc.properties
    else:
        source = getattr(exc, "__dict__", {})

    properties: Dict[str, Any] = {}
    for key, value in source.items():
        if key.startswith("_") or key in _RESERVED_KEYS:
            continue
        if isinstance(exc, StepServeError) and key in ("cause", "error_code"):
            continue
        properties[key] = _to_jsonable(value)
    return properties


def _serialize_exception(exc: BaseException, seen: Set[int]) -> SerializedError:
    seen.add(id(exc))
    if isinstance(exc, RemoteError):
        name, stack = exc.name, exc.stack or ""
    else:
        name = exc.__class__.__name__
        stack = ExceptionFormatter.format_traceback(exc)

    payload: SerializedError = dict(_own_properties(exc))
    payload["name"] = name
    payload["message"] = exc.message if isinstance(exc, StepServeError) else str(exc)
    payload["stack"] = stack

    cause = exc.__cause__
    if cause is None and isinstance(exc, StepServeError):
        cause = exc.cause
    if cause is not None and id(cause) not in seen:
        payload["cause"] = _serialize_exception(cause, seen)

    payload[SERIALIZED_KEY] = SERIALIZED_VALUE
    return payload


def serialize_error(subject: Any) -> SerializedError:
    """
    Convert any failure value into a JSON-safe envelope.

    Already-serialized envelopes are returned unchanged.
    """
    if is_serialized_error(subject):
        return subject

    if isinstance(subject, BaseException):
        return _serialize_exception(subject, set())

    if isinstance(subject, Mapping):
        payload = {str(k): _to_jsonable(v) for k, v in subject.items()}
        payload[SERIALIZED_KEY] = SERIALIZED_VALUE
        return payload

    try:
        message = json.dumps(subject)
    except (TypeError, ValueError):
        message = repr(subject)
    return {
        "name": NON_ERROR_NAME,
        "message": message,
        "stack": "",
        SERIALIZED_KEY: SERIALIZED_VALUE,
    }


def _placeholder_error() -> RemoteError:
    # No stack: this layer's frames must not pass for the original failure's.
    return RemoteError(name="Error", message=UNKNOWN_ERROR_MESSAGE, stack=None)


def deserialize_error(subject: Any) -> RemoteError:
    """
    Rebuild an error from an envelope.

    Envelopes without a string ``name`` and ``message`` yield a placeholder
    error instead of raising.
    """
    try:
        if not isinstance(subject, Mapping):
            return _placeholder_error()

        name = subject.get("name")
        message = subject.get("message")
        if not isinstance(name, str) or not isinstance(message, str):
            return _placeholder_error()

        stack = subject.get("stack")
        properties = {
            key: value for key, value in subject.items() if key not in _RESERVED_KEYS
        }
        error = RemoteError(
            name=name,
            message=message,
            stack=stack if isinstance(stack, str) and stack else None,
            properties=properties,
        )

        cause = subject.get("cause")
        if isinstance(cause, Mapping):
            error.__cause__ = deserialize_error(cause)
        return error
    except Exception:
        return _placeholder_error()


__all__ = [
    "SERIALIZED_KEY",
    "UNKNOWN_ERROR_MESSAGE",
    "SerializedError",
    "RemoteError",
    "OutgoingOpError",
    "is_serialized_error",
    "serialize_error",
    "deserialize_error",
]
