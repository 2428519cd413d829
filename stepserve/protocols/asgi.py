#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
ASGI binding for stepserve.

ASGI scopes carry no environment, so the snapshot comes from an injectable
provider (the process environment by default), read once per request.

Author: stepserve contributors
"""

import os
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, MutableMapping, Optional, Tuple

from .adapter import FrameworkAdapter, classify_request
from .gateway import CommHandler
from .models import ActionResponse, HandlerAction
from .runtime import ServedFunction

Scope = MutableMapping[str, Any]
Receive = Callable[[], Awaitable[MutableMapping[str, Any]]]
Send = Callable[[MutableMapping[str, Any]], Awaitable[None]]
ASGIRequest = Tuple[Scope, bytes]
ASGIMessages = List[Dict[str, Any]]


def process_env_snapshot() -> Dict[str, Optional[str]]:
    return dict(os.environ)


def scope_url(scope: Scope) -> str:
    headers = {
        key.decode("latin-1").lower(): value.decode("latin-1")
        for key, value in scope.get("headers", [])
    }
    scheme = scope.get("scheme", "http")
    host = headers.get("host")
    if not host:
        server = scope.get("server")
        if server:
            host_name, port = server
            default_port = 443 if scheme == "https" else 80
            host = host_name if port in (None, default_port) else "{0}:{1}".format(host_name, port)
        else:
            host = "localhost"

    path = scope.get("root_path", "") + scope.get("path", "/")
    query = scope.get("query_string", b"").decode("latin-1")
    return "{0}://{1}{2}{3}".format(scheme, host, path, "?" + query if query else "")


async def _read_body(receive: Receive) -> bytes:
    chunks: List[bytes] = []
    more_body = True
    while more_body:
        message = await receive()
        if message.get("type") == "http.disconnect":
            break
        chunks.append(message.get("body", b""))
        more_body = bool(message.get("more_body", False))
    return b"".join(chunks)


class ASGIAdapter(FrameworkAdapter[ASGIRequest, ASGIMessages]):
    """
    ASGI 3 application backed by a comm handler.
    """

    framework_name = "asgi"

    def __init__(
        self,
        handler: CommHandler,
        env_provider: Optional[Callable[[], Mapping[str, Optional[str]]]] = None,
    ) -> None:
        super().__init__(handler)
        self._env_provider = env_provider or process_env_snapshot

    @classmethod
    def adapter_option_names(cls) -> frozenset:
        return frozenset({"env_provider"})

    def create_action(self, request: ASGIRequest) -> HandlerAction:
        scope, body = request
        return classify_request(
            method=str(scope.get("method", "GET")),
            url=scope_url(scope),
            env=self._env_provider(),
            body_loader=lambda: body,
        )

    def transform_response(self, response: ActionResponse, request: ASGIRequest) -> ASGIMessages:
        headers = [
            (key.lower().encode("latin-1"), value.encode("latin-1"))
            for key, value in response.headers.items()
        ]
        headers.append((b"content-length", str(len(response.body)).encode("latin-1")))
        return [
            {"type": "http.response.start", "status": response.status, "headers": headers},
            {"type": "http.response.body", "body": response.body},
        ]

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope.get("type") != "http":
            raise ValueError("ASGIAdapter only handles http scopes, got {0!r}".format(scope.get("type")))

        body = await _read_body(receive)
        for message in await self.dispatch((scope, body)):
            await send(message)


def serve(app_name: str, functions: Iterable[ServedFunction], **options: Any) -> ASGIAdapter:
    """
    Serve ``functions`` as an ASGI application.
    """
    return ASGIAdapter.create(app_name, functions, **options)  # type: ignore[return-value]


__all__ = ["ASGIAdapter", "process_env_snapshot", "scope_url", "serve"]
