#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
stepserve comm handler protocol and framework adapters.

Author: stepserve contributors
"""

from .adapter import FrameworkAdapter, classify_request, detect_production
from .gateway import SDK_HEADER_NAME, CommHandler, index_functions
from .invoker import StepInvoker
from .models import (
    ACTION_TYPES,
    Action,
    ActionResponse,
    BadMethodAction,
    ErrorAction,
    HandlerAction,
    RegisterAction,
    RegisterResponse,
    RegistrationBody,
    RegistrationOutcome,
    RunAction,
    StepResult,
    StepRunPayload,
    StepStatus,
    ViewAction,
)
from .registration import (
    DevServerDiscovery,
    RegistrationBuilder,
    RegistrationClient,
    dev_server_url,
    resolve_serve_url,
)
from .runtime import ServedFunction, StepFunction
from .signing import SigningKeyManager, derive_credential
from .transport import HttpTransport, HttpxTransport, TransportResponse

__all__ = [
    "ACTION_TYPES",
    "Action",
    "ActionResponse",
    "BadMethodAction",
    "CommHandler",
    "DevServerDiscovery",
    "ErrorAction",
    "FrameworkAdapter",
    "HandlerAction",
    "HttpTransport",
    "HttpxTransport",
    "RegisterAction",
    "RegisterResponse",
    "RegistrationBody",
    "RegistrationBuilder",
    "RegistrationClient",
    "RegistrationOutcome",
    "RunAction",
    "SDK_HEADER_NAME",
    "ServedFunction",
    "SigningKeyManager",
    "StepFunction",
    "StepInvoker",
    "StepResult",
    "StepRunPayload",
    "StepStatus",
    "TransportResponse",
    "ViewAction",
    "classify_request",
    "derive_credential",
    "detect_production",
    "dev_server_url",
    "index_functions",
    "resolve_serve_url",
]
