#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Protocol domain models for stepserve.

Inbound requests are classified by framework adapters into one of a closed
set of action types. The comm handler answers each with an
``ActionResponse``. Wire-level payloads received from outside are validated
with pydantic schemas.

Author: stepserve contributors
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, ClassVar, Dict, List, Mapping, Optional, Tuple, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    ValidationError,
    ValidationInfo,
    ValidatorFunctionWrapHandler,
    field_validator,
)

DEPLOY_TYPE = "ping"
REGISTRATION_PROTOCOL_VERSION = "0.1"
DEFAULT_STEP_ID = "step"


def _freeze_env(env: Optional[Mapping[str, Optional[str]]]) -> Mapping[str, Optional[str]]:
    return MappingProxyType(dict(env or {}))


@dataclass(frozen=True)
class HandlerAction:
    """
    Fields shared by every classified request.

    Attributes:
        url: Full URL the request arrived on, including its query string.
        is_production: Production mode for this request only.
        env: Snapshot of the environment supplied by the hosting framework.
    """

    kind: ClassVar[str] = ""

    url: str
    is_production: bool
    env: Mapping[str, Optional[str]]

    def __post_init__(self) -> None:
        object.__setattr__(self, "env", _freeze_env(self.env))


@dataclass(frozen=True)
class ViewAction(HandlerAction):
    kind: ClassVar[str] = "view"

    is_introspection: bool = False


@dataclass(frozen=True)
class RegisterAction(HandlerAction):
    kind: ClassVar[str] = "register"


@dataclass(frozen=True)
class RunAction(HandlerAction):
    """
    Request to execute one step of one function.
    """

    kind: ClassVar[str] = "run"

    function_id: str = ""
    data: Any = None
    step_id: str = DEFAULT_STEP_ID


@dataclass(frozen=True)
class BadMethodAction(HandlerAction):
    kind: ClassVar[str] = "bad-method"


@dataclass(frozen=True)
class ErrorAction(HandlerAction):
    """
    The adapter failed to classify the request; ``data`` describes why.
    """

    kind: ClassVar[str] = "error"

    data: Mapping[str, Any] = field(default_factory=dict)


Action = Union[ViewAction, RegisterAction, RunAction, BadMethodAction, ErrorAction]

ACTION_TYPES: Tuple[type, ...] = (
    ViewAction,
    RegisterAction,
    RunAction,
    BadMethodAction,
    ErrorAction,
)


@dataclass(frozen=True)
class ActionResponse:
    """
    Framework-neutral HTTP response produced by the comm handler.
    """

    status: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    @property
    def text(self) -> str:
        return self.body.decode("utf-8")

    def json(self) -> Any:
        return json.loads(self.text)


@dataclass
class RegistrationBody:
    """
    Descriptor of every served function, as sent to the orchestrator.
    """

    url: str
    framework: str
    app_name: str
    functions: List[Dict[str, Any]]
    sdk: str
    deploy_type: str = DEPLOY_TYPE
    v: str = REGISTRATION_PROTOCOL_VERSION
    hash: Optional[str] = None

    def to_payload(self, include_hash: bool = True) -> Dict[str, Any]:
        """
        Wire form. Key order is fixed because the content hash depends on it.
        """
        payload: Dict[str, Any] = {
            "url": self.url,
            "deployType": self.deploy_type,
            "framework": self.framework,
            "appName": self.app_name,
            "functions": self.functions,
            "sdk": self.sdk,
            "v": self.v,
        }
        if include_hash and self.hash is not None:
            payload["hash"] = self.hash
        return payload


@dataclass(frozen=True)
class RegistrationOutcome:
    status: int
    message: str
    skipped: bool = False


class StepStatus(str, Enum):
    COMPLETED = "completed"
    PENDING_OPERATION = "pending-operation"
    FAULT = "fault"


_STEP_HTTP_STATUS = {
    StepStatus.COMPLETED: 200,
    StepStatus.PENDING_OPERATION: 206,
    StepStatus.FAULT: 500,
}


@dataclass(frozen=True)
class StepResult:
    """
    Outcome of invoking one step.

    For faults ``body`` is the error text (message or traceback) sent back to
    the orchestrator; ``error`` always holds the structured envelope when one
    is available.
    """

    status: StepStatus
    body: Any = None
    error: Optional[Dict[str, Any]] = None

    @property
    def http_status(self) -> int:
        return _STEP_HTTP_STATUS[self.status]

    @property
    def is_fault(self) -> bool:
        return self.status is StepStatus.FAULT

    @classmethod
    def completed(cls, body: Any) -> "StepResult":
        return cls(status=StepStatus.COMPLETED, body=body)

    @classmethod
    def pending(cls, body: Any, error: Optional[Dict[str, Any]] = None) -> "StepResult":
        return cls(status=StepStatus.PENDING_OPERATION, body=body, error=error)

    @classmethod
    def fault(cls, message: str, error: Optional[Dict[str, Any]] = None) -> "StepResult":
        return cls(status=StepStatus.FAULT, body=message, error=error)


class StepRunPayload(BaseModel):
    """
    Body of a step execution request.
    """

    model_config = ConfigDict(extra="allow")

    event: Dict[str, Any]
    steps: Optional[Dict[str, Any]] = None


class RegisterResponse(BaseModel):
    """
    Orchestrator answer to a registration request.

    Parsing is lenient: any field that is missing or has the wrong type falls
    back to its default instead of failing the whole response.
    """

    model_config = ConfigDict(extra="ignore")

    status: int = 200
    skipped: bool = False
    error: str = "Successfully registered"

    @field_validator("*", mode="wrap")
    @classmethod
    def _fallback_to_default(
        cls, value: Any, handler: ValidatorFunctionWrapHandler, info: ValidationInfo
    ) -> Any:
        try:
            return handler(value)
        except ValidationError:
            return cls.model_fields[info.field_name].default

    @classmethod
    def from_payload(cls, payload: Any) -> "RegisterResponse":
        if not isinstance(payload, Mapping):
            return cls()
        return cls.model_validate(dict(payload))


__all__ = [
    "DEPLOY_TYPE",
    "REGISTRATION_PROTOCOL_VERSION",
    "DEFAULT_STEP_ID",
    "HandlerAction",
    "ViewAction",
    "RegisterAction",
    "RunAction",
    "BadMethodAction",
    "ErrorAction",
    "Action",
    "ACTION_TYPES",
    "ActionResponse",
    "RegistrationBody",
    "RegistrationOutcome",
    "StepStatus",
    "StepResult",
    "StepRunPayload",
    "RegisterResponse",
]
