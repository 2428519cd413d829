#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Function registration for stepserve.

Registration pushes a descriptor of every served function to the
orchestrator. Outside production a local dev server is probed first and, when
it answers, receives the registration instead.

Author: stepserve contributors
"""

import asyncio
import hashlib
import inspect
from typing import Any, Callable, Dict, List, Mapping, Optional
from urllib.parse import parse_qsl, urlencode, urljoin, urlsplit, urlunsplit

from ..core.config import DEFAULT_DEV_SERVER_HOST, QueryKeys
from ..core.data.backends import JSONBackend, default_backend
from ..core.utils.logger import ModernLogger
from .models import RegistrationBody, RegistrationOutcome, RegisterResponse
from .runtime import ServedFunction
from .signing import SigningKeyManager
from .transport import HttpTransport

DEV_SERVER_PROBE_PATH = "/dev"
DEV_SERVER_REGISTER_PATH = "/fn/register"

RegistrationObserver = Callable[[Dict[str, Any]], Any]


def dev_server_url(host_hint: Optional[str] = None, path: str = "") -> str:
    """
    Resolve ``path`` against the dev server origin.

    ``host_hint`` may omit its scheme, in which case ``http://`` is assumed.
    """
    base = (host_hint or "").strip() or DEFAULT_DEV_SERVER_HOST
    if "://" not in base:
        base = "http://" + base
    if not urlsplit(base).path:
        base += "/"
    return urljoin(base, path)


def resolve_serve_url(
    url: str,
    *,
    serve_host: Optional[str] = None,
    serve_path: Optional[str] = None,
) -> str:
    """
    Apply serve path/host overrides to ``url`` and drop the introspection marker.
    """
    parts = urlsplit(url)
    if serve_path:
        parts = parts._replace(path=serve_path)
    if serve_host:
        host = urlsplit(serve_host)
        parts = parts._replace(scheme=host.scheme, netloc=host.netloc, fragment="")

    query = [
        (key, value)
        for key, value in parse_qsl(parts.query, keep_blank_values=True)
        if key != QueryKeys.INTROSPECT
    ]
    parts = parts._replace(query=urlencode(query), path=parts.path or "/")
    return urlunsplit(parts)


class RegistrationBuilder:
    """
    Assemble registration bodies for a fixed set of served functions.
    """

    def __init__(
        self,
        app_name: str,
        functions: Mapping[str, ServedFunction],
        framework_name: str,
        sdk: str,
        *,
        serve_host: Optional[str] = None,
        serve_path: Optional[str] = None,
        backend: JSONBackend = default_backend,
    ) -> None:
        self.app_name = app_name
        self.framework_name = framework_name
        self.sdk = sdk
        self.serve_host = serve_host
        self.serve_path = serve_path
        self._functions = functions
        self._backend = backend

    def resolve_url(self, url: str) -> str:
        return resolve_serve_url(url, serve_host=self.serve_host, serve_path=self.serve_path)

    def function_configs(self, url: str) -> List[Dict[str, Any]]:
        return [fn.get_config(url, self.app_name) for fn in self._functions.values()]

    def compute_hash(self, body: RegistrationBody) -> str:
        """
        SHA-256 of the body's wire form without the hash field.
        """
        encoded = self._backend.serialize(body.to_payload(include_hash=False))
        return hashlib.sha256(encoded).hexdigest()

    def build(self, url: str) -> RegistrationBody:
        resolved = self.resolve_url(url)
        body = RegistrationBody(
            url=resolved,
            framework=self.framework_name,
            app_name=self.app_name,
            functions=self.function_configs(resolved),
            sdk=self.sdk,
        )
        body.hash = self.compute_hash(body)
        return body


class DevServerDiscovery(ModernLogger):
    """
    Best-effort reachability probe for a local dev server.
    """

    def __init__(self, transport: HttpTransport, timeout: float = 1.0) -> None:
        super().__init__(name="DevServerDiscovery")
        self._transport = transport
        self.timeout = timeout

    async def probe(self, host_hint: Optional[str] = None, *, is_production: bool) -> bool:
        if is_production:
            return False

        url = dev_server_url(host_hint, DEV_SERVER_PROBE_PATH)
        try:
            response = await self._transport.request("GET", url, timeout=self.timeout)
        except Exception as exc:
            self.debug("Dev server not available at %s: %s", url, exc)
            return False

        if not response.ok:
            self.debug("Dev server at %s answered %s", url, response.status)
        return response.ok


class RegistrationClient(ModernLogger):
    """
    Send registration requests and interpret the orchestrator's answer.
    """

    def __init__(
        self,
        builder: RegistrationBuilder,
        signing: SigningKeyManager,
        transport: HttpTransport,
        discovery: DevServerDiscovery,
        *,
        register_url: str,
        timeout: float,
        user_agent: str,
        backend: JSONBackend = default_backend,
        on_register: Optional[RegistrationObserver] = None,
    ) -> None:
        super().__init__(name="RegistrationClient")
        self._builder = builder
        self._signing = signing
        self._transport = transport
        self._discovery = discovery
        self._backend = backend
        self.register_url = register_url
        self.timeout = timeout
        self.user_agent = user_agent
        self.on_register = on_register

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "User-Agent": self.user_agent,
        }
        headers.update(self._signing.authorization_headers())
        return headers

    async def _notify(self, record: Dict[str, Any]) -> None:
        if self.on_register is None:
            return
        try:
            result = self.on_register(record)
            if inspect.isawaitable(result):
                await result
        except Exception as exc:
            self.warning("Registration observer failed: %s", exc)

    async def register(
        self,
        url: str,
        dev_server_host: Optional[str] = None,
        *,
        is_production: bool,
    ) -> RegistrationOutcome:
        register_url = self.register_url
        try:
            body = self._builder.build(url)
            payload = self._backend.serialize(body.to_payload())

            if await self._discovery.probe(dev_server_host, is_production=is_production):
                register_url = dev_server_url(dev_server_host, DEV_SERVER_REGISTER_PATH)

            response = await self._transport.request(
                "POST",
                register_url,
                body=payload,
                headers=self._headers(),
                timeout=self.timeout,
            )
        except asyncio.CancelledError:
            self.warning("Registration with %s was cancelled", register_url)
            return RegistrationOutcome(
                status=500, message="Failed to register; registration was cancelled"
            )
        except Exception as exc:
            self.error("Failed to register functions with %s: %s", register_url, exc)
            detail = str(exc)
            return RegistrationOutcome(
                status=500,
                message="Failed to register; {0}".format(detail) if detail else "Failed to register",
            )

        data: Any = {}
        try:
            data = response.json()
        except ValueError as exc:
            self.warning("Couldn't unpack register response: %s", exc)

        parsed = RegisterResponse.from_payload(data)

        # Dev servers poll registration; only report real changes.
        if not parsed.skipped:
            self.info(
                "Registered functions with %s: %s %s",
                register_url,
                response.status,
                response.reason,
            )
            await self._notify(
                {
                    "url": register_url,
                    "status": response.status,
                    "hash": body.hash,
                    "functions": len(body.functions),
                    "response": data,
                }
            )

        return RegistrationOutcome(
            status=parsed.status, message=parsed.error, skipped=parsed.skipped
        )


__all__ = [
    "DEV_SERVER_PROBE_PATH",
    "DEV_SERVER_REGISTER_PATH",
    "dev_server_url",
    "resolve_serve_url",
    "RegistrationBuilder",
    "DevServerDiscovery",
    "RegistrationClient",
]
