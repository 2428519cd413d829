#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Framework adapter abstractions for stepserve.

An adapter translates one hosting framework's native request into a
``HandlerAction`` and a normalized ``ActionResponse`` back into the
framework's native response. The comm handler never sees framework types.

Author: stepserve contributors
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, ClassVar, Generic, Mapping, Optional, TypeVar
from urllib.parse import parse_qs, urlsplit

from ..core.config import QueryKeys
from ..core.data.backends import default_backend
from ..core.utils.exceptions import SerializationError
from .gateway import CommHandler
from .models import (
    ActionResponse,
    BadMethodAction,
    ErrorAction,
    HandlerAction,
    RegisterAction,
    RunAction,
    ViewAction,
)

RequestT = TypeVar("RequestT")
ResponseT = TypeVar("ResponseT")

PRODUCTION_ENV_KEYS = ("VERCEL_ENV", "CONTEXT", "ENVIRONMENT")


def detect_production(env: Mapping[str, Optional[str]]) -> bool:
    """
    Whether a request environment snapshot describes a production deployment.
    """
    return any(env.get(key) == "production" for key in PRODUCTION_ENV_KEYS)


def classify_request(
    method: str,
    url: str,
    env: Mapping[str, Optional[str]],
    body_loader: Callable[[], bytes],
    *,
    is_production: Optional[bool] = None,
) -> HandlerAction:
    """
    Map an HTTP method and URL onto the fixed action set.

    ``body_loader`` is only called for ``POST`` requests.
    """
    if is_production is None:
        is_production = detect_production(env)
    common = {"url": url, "is_production": is_production, "env": env}

    query = parse_qs(urlsplit(url).query, keep_blank_values=True)
    method = method.upper()

    if method == "GET":
        return ViewAction(is_introspection=QueryKeys.INTROSPECT in query, **common)

    if method == "PUT":
        return RegisterAction(**common)

    if method == "POST":
        function_id = (query.get(QueryKeys.FUNCTION_ID) or [""])[0].strip()
        step_id = (query.get(QueryKeys.STEP_ID) or [""])[0].strip()
        if not function_id:
            return ErrorAction(
                data={"error": "Missing required query parameter: {0}".format(QueryKeys.FUNCTION_ID)},
                **common,
            )

        try:
            data = default_backend.deserialize(body_loader())
        except SerializationError as exc:
            return ErrorAction(data={"error": exc.message}, **common)

        return RunAction(
            function_id=function_id,
            step_id=step_id or "step",
            data=data,
            **common,
        )

    return BadMethodAction(**common)


class FrameworkAdapter(ABC, Generic[RequestT, ResponseT]):
    """
    Base contract for hosting framework bindings.
    """

    framework_name: ClassVar[str] = ""

    def __init__(self, handler: CommHandler) -> None:
        self.handler = handler

    @abstractmethod
    def create_action(self, request: RequestT) -> HandlerAction:
        """
        Classify one native request.
        """

    @abstractmethod
    def transform_response(self, response: ActionResponse, request: RequestT) -> ResponseT:
        """
        Convert a normalized response into the framework's native response.
        """

    async def dispatch(self, request: RequestT) -> ResponseT:
        action = self.create_action(request)
        response = await self.handler.handle(action)
        return self.transform_response(response, request)

    @classmethod
    def create(cls, app_name: str, functions: Any, **options: Any) -> "FrameworkAdapter[RequestT, ResponseT]":
        """
        Build a comm handler for this framework and wrap it in an adapter.

        ``options`` are split between ``CommHandler`` keyword arguments and
        adapter keyword arguments by name.
        """
        adapter_options = {
            key: options.pop(key) for key in list(options) if key in cls.adapter_option_names()
        }
        handler = CommHandler(cls.framework_name, app_name, functions, **options)
        return cls(handler, **adapter_options)

    @classmethod
    def adapter_option_names(cls) -> frozenset:
        return frozenset()


__all__ = [
    "FrameworkAdapter",
    "PRODUCTION_ENV_KEYS",
    "classify_request",
    "detect_production",
]
