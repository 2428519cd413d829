#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Exception hierarchy and formatting helpers for stepserve.

Faults fall into a handful of families:

- configuration faults (``ConfigurationError``) are fatal and raised while the
  comm handler is being built, before any request is served;
- protocol faults (``ProtocolHandlingError`` and subclasses) describe a bad
  inbound request and are turned into ``500`` responses;
- transport faults (``TransportError``) describe failed outbound calls and are
  degraded by their callers;
- serialization faults (``SerializationError``) come from the JSON codec.

Author: stepserve contributors
"""

import traceback
from typing import Any, Dict, List, Optional


class StepServeError(Exception):
    """
    Base class for every error raised by stepserve itself.
    """

    default_error_code = "STEPSERVE_ERROR"

    def __init__(
        self,
        message: str,
        *,
        error_code: Optional[str] = None,
        cause: Optional[BaseException] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.cause = cause
        self.context: Dict[str, Any] = dict(context or {})

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
        }
        if self.context:
            payload["context"] = dict(self.context)
        if self.cause is not None:
            payload["cause"] = ExceptionFormatter.format_exception(self.cause)
        return payload


class ConfigurationError(StepServeError):
    """
    Invalid static configuration; the process must not start serving.
    """

    default_error_code = "CONFIGURATION_ERROR"


class DuplicateFunctionError(ConfigurationError):
    """
    Two served functions resolved to the same id.
    """

    default_error_code = "DUPLICATE_FUNCTION"

    def __init__(self, function_id: str) -> None:
        super().__init__(
            message=(
                'Duplicate function ID "{0}"; please change a function\'s name '
                "or provide an explicit ID to avoid conflicts.".format(function_id)
            ),
            context={"function_id": function_id},
        )
        self.function_id = function_id


class ProtocolHandlingError(StepServeError):
    """
    An inbound request could not be handled.
    """

    default_error_code = "PROTOCOL_ERROR"

    def __init__(
        self,
        message: str,
        *,
        action: Optional[str] = None,
        cause: Optional[BaseException] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        merged = dict(context or {})
        if action is not None:
            merged["action"] = action
        super().__init__(message=message, cause=cause, context=merged)
        self.action = action


class FunctionNotFoundError(ProtocolHandlingError):
    default_error_code = "FUNCTION_NOT_FOUND"

    def __init__(self, function_id: str) -> None:
        super().__init__(
            message='Could not find function with ID "{0}"'.format(function_id),
            action="run",
            context={"function_id": function_id},
        )
        self.function_id = function_id


class InvalidStepPayloadError(ProtocolHandlingError):
    default_error_code = "INVALID_STEP_PAYLOAD"

    def __init__(
        self, details: str, *, cause: Optional[BaseException] = None
    ) -> None:
        super().__init__(
            message="Invalid step payload: {0}".format(details),
            action="run",
            cause=cause,
        )
        self.details = details


class TransportError(StepServeError):
    """
    An outbound HTTP call failed before a response was received.
    """

    default_error_code = "TRANSPORT_ERROR"

    def __init__(
        self,
        message: str,
        *,
        url: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(
            message=message,
            cause=cause,
            context={"url": url} if url else None,
        )
        self.url = url


class SerializationError(StepServeError):
    default_error_code = "SERIALIZATION_ERROR"

    def __init__(
        self,
        operation: str,
        message: str,
        *,
        data_type: Optional[str] = None,
        serialization_format: str = "json",
        cause: Optional[BaseException] = None,
    ) -> None:
        context: Dict[str, Any] = {
            "operation": operation,
            "serialization_format": serialization_format,
        }
        if data_type:
            context["data_type"] = data_type
        super().__init__(message=message, cause=cause, context=context)
        self.operation = operation
        self.data_type = data_type
        self.serialization_format = serialization_format


class ExceptionFormatter:
    """
    Render exceptions as short summaries, cause chains or full tracebacks.
    """

    @staticmethod
    def format_exception(exc: BaseException) -> str:
        message = str(exc)
        if message:
            return "{0}: {1}".format(exc.__class__.__name__, message)
        return exc.__class__.__name__

    @classmethod
    def format_exception_chain(cls, exc: BaseException) -> str:
        parts: List[str] = []
        seen = set()
        current: Optional[BaseException] = exc
        while current is not None and id(current) not in seen:
            seen.add(id(current))
            parts.append(cls.format_exception(current))
            current = current.__cause__ or current.__context__
        return " <- ".join(parts)

    @staticmethod
    def format_exception_summary(exc: BaseException, max_length: int = 200) -> str:
        summary = ExceptionFormatter.format_exception(exc)
        if len(summary) > max_length:
            return summary[: max_length - 3] + "..."
        return summary

    @staticmethod
    def format_traceback(exc: BaseException) -> str:
        """
        Full traceback text including the final ``Name: message`` line.
        """
        return "".join(
            traceback.format_exception(type(exc), exc, exc.__traceback__)
        ).rstrip("\n")


class ExceptionTranslator:
    """
    Normalize arbitrary exceptions raised while handling a request.
    """

    @staticmethod
    def as_protocol_error(
        exc: BaseException, action: Optional[str] = None
    ) -> ProtocolHandlingError:
        if isinstance(exc, ProtocolHandlingError):
            return exc
        if isinstance(exc, StepServeError):
            message = exc.message
        else:
            message = ExceptionFormatter.format_exception(exc)
        return ProtocolHandlingError(message=message, action=action, cause=exc)


__all__ = [
    "StepServeError",
    "ConfigurationError",
    "DuplicateFunctionError",
    "ProtocolHandlingError",
    "FunctionNotFoundError",
    "InvalidStepPayloadError",
    "TransportError",
    "SerializationError",
    "ExceptionFormatter",
    "ExceptionTranslator",
]
