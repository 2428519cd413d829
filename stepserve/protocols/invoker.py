#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Single-step execution for stepserve.

Author: stepserve contributors
"""

import inspect
import json
from typing import Any, Mapping, Optional, Tuple

from pydantic import ValidationError

from ..core.data.backends import JSONBackend, default_backend
from ..core.data.errors import OutgoingOpError, serialize_error
from ..core.utils.exceptions import (
    ExceptionFormatter,
    FunctionNotFoundError,
    InvalidStepPayloadError,
    ProtocolHandlingError,
    SerializationError,
)
from ..core.utils.logger import ModernLogger
from .models import StepResult, StepRunPayload
from .runtime import ServedFunction


class StepInvoker(ModernLogger):
    """
    Validate a step request, call the function's engine and map the outcome.

    Never raises: every failure becomes a fault ``StepResult``.
    """

    def __init__(
        self,
        functions: Mapping[str, ServedFunction],
        backend: JSONBackend = default_backend,
    ) -> None:
        super().__init__(name="StepInvoker")
        self._functions = functions
        self._backend = backend

    def _parse_payload(self, raw_payload: Any) -> StepRunPayload:
        if isinstance(raw_payload, (bytes, bytearray, str)):
            try:
                raw_payload = self._backend.deserialize(raw_payload)
            except SerializationError as exc:
                raise InvalidStepPayloadError(exc.message, cause=exc) from exc

        if not isinstance(raw_payload, Mapping):
            raise InvalidStepPayloadError(
                "expected an object, got {0}".format(type(raw_payload).__name__)
            )

        try:
            return StepRunPayload.model_validate(dict(raw_payload))
        except ValidationError as exc:
            raise InvalidStepPayloadError(
                "; ".join(
                    "{0}: {1}".format(".".join(str(p) for p in err["loc"]) or "payload", err["msg"])
                    for err in exc.errors()
                ),
                cause=exc,
            ) from exc

    @staticmethod
    def _unpack(result: Any) -> Optional[Tuple[bool, Any]]:
        if isinstance(result, (list, tuple)) and len(result) == 2:
            return bool(result[0]), result[1]
        return None

    @staticmethod
    def _describe_raw(value: Any) -> str:
        try:
            return json.dumps(value)
        except (TypeError, ValueError):
            return repr(value)

    async def run_step(self, function_id: str, step_id: str, raw_payload: Any) -> StepResult:
        try:
            fn = self._functions.get(function_id)
            if fn is None:
                raise FunctionNotFoundError(function_id)

            payload = self._parse_payload(raw_payload)

            result = fn.run(payload.event, payload.steps or {})
            if inspect.isawaitable(result):
                result = await result
        except OutgoingOpError as exc:
            self.debug("Step %s of %s returned an errored operation", step_id, function_id)
            op_error = exc.op.get("error")
            return StepResult.pending(
                exc.op,
                error=serialize_error(op_error) if op_error is not None else None,
            )
        except ProtocolHandlingError as exc:
            self.warning("Rejected step %s of %s: %s", step_id, function_id, exc.message)
            return StepResult.fault(
                ExceptionFormatter.format_exception(exc), error=serialize_error(exc)
            )
        except Exception as exc:
            self.error(
                "Step %s of %s failed: %s",
                step_id,
                function_id,
                ExceptionFormatter.format_exception_summary(exc),
            )
            return StepResult.fault(
                ExceptionFormatter.format_traceback(exc) or str(exc),
                error=serialize_error(exc),
            )

        unpacked = self._unpack(result)
        if unpacked is None:
            self.error("Step %s of %s returned a malformed result", step_id, function_id)
            return StepResult.fault(
                "Unknown error: {0}".format(self._describe_raw(result)),
                error=serialize_error(result),
            )

        is_op, body = unpacked
        if is_op:
            return StepResult.pending(body)
        return StepResult.completed(body)


__all__ = ["StepInvoker"]
