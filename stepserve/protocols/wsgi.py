#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
WSGI binding for stepserve.

Usage:
    >>> from stepserve.protocols.wsgi import serve
    >>> app = serve("My App", [StepFunction("hello", hello, event="demo/hello")])
    >>> # hand ``app`` to any WSGI server

Author: stepserve contributors
"""

import asyncio
from http import HTTPStatus
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple
from wsgiref.util import request_uri

from .adapter import FrameworkAdapter, classify_request
from .gateway import CommHandler
from .models import ActionResponse, HandlerAction
from .runtime import ServedFunction

WSGIEnviron = Dict[str, Any]
StartResponse = Callable[..., Any]
EnvProvider = Callable[[WSGIEnviron], Mapping[str, Optional[str]]]


def environ_snapshot(environ: WSGIEnviron) -> Dict[str, Optional[str]]:
    """
    String-valued entries of the WSGI environ; servers such as ``wsgiref``
    copy the process environment into it.
    """
    return {key: value for key, value in environ.items() if isinstance(value, str)}


def _read_body(environ: WSGIEnviron) -> bytes:
    try:
        length = int(environ.get("CONTENT_LENGTH") or 0)
    except ValueError:
        length = 0
    stream = environ.get("wsgi.input")
    if stream is None or length <= 0:
        return b""
    return stream.read(length)


def _status_line(status: int) -> str:
    try:
        phrase = HTTPStatus(status).phrase
    except ValueError:
        phrase = ""
    return "{0} {1}".format(status, phrase).strip()


class WSGIAdapter(FrameworkAdapter[WSGIEnviron, Tuple[str, List[Tuple[str, str]], List[bytes]]]):
    """
    Callable WSGI application backed by a comm handler.

    Each request runs the handler on a fresh event loop in the server's
    worker thread.
    """

    framework_name = "wsgi"

    def __init__(self, handler: CommHandler, env_provider: Optional[EnvProvider] = None) -> None:
        super().__init__(handler)
        self._env_provider = env_provider or environ_snapshot

    @classmethod
    def adapter_option_names(cls) -> frozenset:
        return frozenset({"env_provider"})

    def create_action(self, request: WSGIEnviron) -> HandlerAction:
        return classify_request(
            method=str(request.get("REQUEST_METHOD", "GET")),
            url=request_uri(request, include_query=True),
            env=self._env_provider(request),
            body_loader=lambda: _read_body(request),
        )

    def transform_response(
        self, response: ActionResponse, request: WSGIEnviron
    ) -> Tuple[str, List[Tuple[str, str]], List[bytes]]:
        headers = list(response.headers.items())
        headers.append(("Content-Length", str(len(response.body))))
        return _status_line(response.status), headers, [response.body]

    def __call__(self, environ: WSGIEnviron, start_response: StartResponse) -> Iterable[bytes]:
        status, headers, body = asyncio.run(self.dispatch(environ))
        start_response(status, headers)
        return body


def serve(app_name: str, functions: Iterable[ServedFunction], **options: Any) -> WSGIAdapter:
    """
    Serve ``functions`` as a WSGI application.
    """
    return WSGIAdapter.create(app_name, functions, **options)  # type: ignore[return-value]


__all__ = ["WSGIAdapter", "environ_snapshot", "serve"]
