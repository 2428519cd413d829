#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Comm handler: the framework-neutral action dispatcher of stepserve.

Framework adapters classify each inbound request into an action and hand it
to ``CommHandler.handle``, which always returns exactly one
``ActionResponse``. Shared state across requests is limited to the signing key
(a set-once cell); production mode travels on each action.

Author: stepserve contributors
"""

from types import MappingProxyType
from typing import Any, Awaitable, Callable, Dict, Iterable, Mapping, Optional, Tuple

from .._version import __version__
from ..core.config import EnvKeys, StepServeConfig, get_config, str_boolean
from ..core.data.backends import JSONBackend, default_backend
from ..core.data.errors import deserialize_error, serialize_error
from ..core.utils.exceptions import (
    DuplicateFunctionError,
    ExceptionFormatter,
    ExceptionTranslator,
)
from ..core.utils.logger import ModernLogger
from .invoker import StepInvoker
from .landing import LANDING_PAGE_HTML
from .models import (
    ActionResponse,
    BadMethodAction,
    ErrorAction,
    HandlerAction,
    RegisterAction,
    RunAction,
    ViewAction,
)
from .registration import (
    DevServerDiscovery,
    RegistrationBuilder,
    RegistrationClient,
    RegistrationObserver,
    dev_server_url,
)
from .runtime import ServedFunction
from .signing import SigningKeyManager
from .transport import HttpTransport, HttpxTransport

SDK_HEADER_NAME = "x-stepserve-sdk"
SDK_NAME_PREFIX = "stepserve-"
SDK_LANGUAGE = "py"

JSON_CONTENT_TYPE = "application/json"
HTML_CONTENT_TYPE = "text/html; charset=utf-8"

# Every action type maps to exactly one handler method.
_ACTION_ROUTES: Dict[type, str] = {
    ViewAction: "_handle_view",
    RegisterAction: "_handle_register",
    RunAction: "_handle_run",
    BadMethodAction: "_handle_bad_method",
    ErrorAction: "_handle_error",
}


def index_functions(
    app_name: str, functions: Iterable[ServedFunction]
) -> Mapping[str, ServedFunction]:
    """
    Index served functions by id, rejecting duplicates.
    """
    indexed: Dict[str, ServedFunction] = {}
    for fn in functions:
        function_id = fn.id(app_name)
        if function_id in indexed:
            raise DuplicateFunctionError(function_id)
        indexed[function_id] = fn
    return MappingProxyType(indexed)


class CommHandler(ModernLogger):
    """
    Dispatch classified actions to view, register and run logic.

    Usage:
        >>> handler = CommHandler("wsgi", "My App", [StepFunction(...)])
        >>> response = await handler.handle(action)
    """

    def __init__(
        self,
        framework_name: str,
        app_name: str,
        functions: Iterable[ServedFunction],
        *,
        config: Optional[StepServeConfig] = None,
        transport: Optional[HttpTransport] = None,
        landing_page_html: str = LANDING_PAGE_HTML,
        on_register: Optional[RegistrationObserver] = None,
        backend: JSONBackend = default_backend,
    ) -> None:
        self.config = config or get_config()
        super().__init__(name="CommHandler", level=self.config.log_level)

        app_name = (app_name or "").strip()
        if not app_name:
            raise ValueError("App name cannot be empty")

        self.framework_name = framework_name
        self.app_name = app_name
        self.landing_page_html = landing_page_html
        self._backend = backend
        self._functions = index_functions(app_name, functions)

        self.signing = SigningKeyManager(self.config.signing_key)
        transport = transport or HttpxTransport()
        self.builder = RegistrationBuilder(
            app_name,
            self._functions,
            framework_name,
            self.sdk_header[1],
            serve_host=self.config.serve_host,
            serve_path=self.config.serve_path,
            backend=backend,
        )
        self.discovery = DevServerDiscovery(transport, timeout=self.config.probe_timeout)
        self.registration = RegistrationClient(
            self.builder,
            self.signing,
            transport,
            self.discovery,
            register_url=self.config.register_url,
            timeout=self.config.register_timeout,
            user_agent="".join(self.sdk_header),
            backend=backend,
            on_register=on_register,
        )
        self.invoker = StepInvoker(self._functions, backend=backend)

        self.info(
            "Serving %d function(s) for %s via %s",
            len(self._functions),
            self.app_name,
            self.framework_name,
        )

    @property
    def functions(self) -> Mapping[str, ServedFunction]:
        return self._functions

    @property
    def sdk_header(self) -> Tuple[str, str, str]:
        """
        SDK identification split into prefix, ``<lang>:v<version>`` and framework.

        ``"".join(handler.sdk_header)`` gives the full header value.
        """
        return (
            SDK_NAME_PREFIX,
            "{0}:v{1}".format(SDK_LANGUAGE, __version__),
            " ({0})".format(self.framework_name),
        )

    def _base_headers(self) -> Dict[str, str]:
        return {SDK_HEADER_NAME: "".join(self.sdk_header)}

    def _json_response(
        self, status: int, payload: Any, headers: Mapping[str, str]
    ) -> ActionResponse:
        merged = dict(headers)
        merged["Content-Type"] = JSON_CONTENT_TYPE
        return ActionResponse(status=status, headers=merged, body=self._backend.serialize(payload))

    def should_show_landing_page(self, env_value: Optional[str]) -> bool:
        if self.config.landing_page is not None:
            return self.config.landing_page
        from_env = str_boolean(env_value)
        return True if from_env is None else from_env

    async def handle(self, action: HandlerAction) -> ActionResponse:
        """
        Produce the response for one action. Never raises.
        """
        headers = self._base_headers()
        kind = getattr(action, "kind", "") or type(action).__name__
        try:
            route = _ACTION_ROUTES.get(type(action))
            if route is None:
                self.warning("No route for action type %s", type(action).__name__)
                return ActionResponse(status=405, headers=headers)

            handler: Callable[[Any, Dict[str, str]], Awaitable[ActionResponse]] = getattr(self, route)
            return await handler(action, headers)
        except Exception as exc:
            translated = ExceptionTranslator.as_protocol_error(exc, action=kind)
            self.error(
                "Failed to handle %s action: %s",
                kind,
                ExceptionFormatter.format_exception_chain(translated),
                exc_info=True,
            )
            return self._error_response(exc, headers)

    def _error_response(self, exc: BaseException, headers: Mapping[str, str]) -> ActionResponse:
        try:
            return self._json_response(500, serialize_error(exc), headers)
        except Exception:
            merged = dict(headers)
            merged["Content-Type"] = JSON_CONTENT_TYPE
            fallback = {"name": type(exc).__name__, "message": "Failed to serialize error"}
            return ActionResponse(status=500, headers=merged, body=default_backend.serialize(fallback))

    async def _handle_run(self, action: RunAction, headers: Dict[str, str]) -> ActionResponse:
        self.signing.adopt_from_environment(action.env)

        result = await self.invoker.run_step(action.function_id, action.step_id, action.data)
        if result.error is not None:
            reported = deserialize_error(result.error)
            self.warning(
                "Step %s of %s reported %s: %s",
                action.step_id,
                action.function_id,
                reported.name,
                reported.message,
            )
        if result.is_fault:
            return self._json_response(500, {"error": result.body}, headers)
        return self._json_response(result.http_status, result.body, headers)

    async def _handle_view(self, action: ViewAction, headers: Dict[str, str]) -> ActionResponse:
        self.signing.adopt_from_environment(action.env)

        show_landing_page = self.should_show_landing_page(action.env.get(EnvKeys.LANDING_PAGE))
        if action.is_production or not show_landing_page:
            return ActionResponse(status=405, headers=headers)

        if action.is_introspection:
            introspection = self.builder.build(action.url).to_payload()
            introspection["devServerURL"] = dev_server_url(action.env.get(EnvKeys.DEV_SERVER_URL))
            introspection["hasSigningKey"] = self.signing.has_signing_key
            return self._json_response(200, introspection, headers)

        merged = dict(headers)
        merged["Content-Type"] = HTML_CONTENT_TYPE
        return ActionResponse(
            status=200, headers=merged, body=self.landing_page_html.encode("utf-8")
        )

    async def _handle_register(
        self, action: RegisterAction, headers: Dict[str, str]
    ) -> ActionResponse:
        self.signing.adopt_from_environment(action.env)

        outcome = await self.registration.register(
            action.url,
            action.env.get(EnvKeys.DEV_SERVER_URL),
            is_production=action.is_production,
        )
        return self._json_response(outcome.status, {"message": outcome.message}, headers)

    async def _handle_bad_method(
        self, action: BadMethodAction, headers: Dict[str, str]
    ) -> ActionResponse:
        return ActionResponse(status=405, headers=headers)

    async def _handle_error(self, action: ErrorAction, headers: Dict[str, str]) -> ActionResponse:
        return self._json_response(500, dict(action.data), headers)


__all__ = [
    "SDK_HEADER_NAME",
    "CommHandler",
    "index_functions",
]
