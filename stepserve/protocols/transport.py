#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Outbound HTTP transport for registration and dev server discovery.

``HttpxTransport`` issues each call on a short-lived ``httpx.AsyncClient``
bound to the caller's event loop. The whole exchange runs under one deadline;
when it expires or the caller is cancelled, the client is closed and the
connection dropped with it.

Author: stepserve contributors
"""

import asyncio
import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

import httpx

from ..core.utils.exceptions import TransportError
from ..core.utils.logger import ModernLogger


@dataclass(frozen=True)
class TransportResponse:
    status: int
    reason: str = ""
    body: bytes = b""
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def json(self) -> Any:
        """
        Decode the body as JSON; raises ``ValueError`` when it is not JSON.
        """
        return json.loads(self.body.decode("utf-8"))


class HttpTransport(ABC):
    """
    Strategy interface for outbound HTTP calls.

    Implementations return any HTTP response (including 4xx/5xx) as a
    ``TransportResponse`` and raise ``TransportError`` only when no response
    was received.
    """

    @abstractmethod
    async def request(
        self,
        method: str,
        url: str,
        *,
        body: Optional[bytes] = None,
        headers: Optional[Mapping[str, str]] = None,
        timeout: float,
    ) -> TransportResponse:
        """Send one request and return its response."""


class HttpxTransport(HttpTransport, ModernLogger):
    """
    Transport built on ``httpx.AsyncClient``.

    Redirects are followed; 307/308 keep the method and body. ``transport``
    replaces httpx's network layer (e.g. ``httpx.MockTransport``).
    """

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        super().__init__(name="HttpxTransport")
        self._transport = transport

    async def _send(
        self,
        method: str,
        url: str,
        body: Optional[bytes],
        headers: Mapping[str, str],
        timeout: float,
    ) -> TransportResponse:
        async with httpx.AsyncClient(
            follow_redirects=True,
            timeout=timeout,
            transport=self._transport,
        ) as client:
            response = await client.request(method, url, content=body, headers=dict(headers))
            return TransportResponse(
                status=response.status_code,
                reason=response.reason_phrase or "",
                body=response.content,
                headers=dict(response.headers.items()),
            )

    async def request(
        self,
        method: str,
        url: str,
        *,
        body: Optional[bytes] = None,
        headers: Optional[Mapping[str, str]] = None,
        timeout: float,
    ) -> TransportResponse:
        self.debug("%s %s (timeout=%.2fs)", method, url, timeout)
        try:
            # httpx timeouts are per operation; this bounds the whole exchange.
            return await asyncio.wait_for(
                self._send(method, url, body, headers or {}, timeout),
                timeout=timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            raise TransportError(
                message="{0} {1} timed out after {2:.2f}s".format(method, url, timeout),
                url=url,
                cause=exc,
            ) from exc
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise TransportError(
                message="{0} {1} failed: {2}".format(method, url, exc),
                url=url,
                cause=exc,
            ) from exc


__all__ = ["HttpTransport", "HttpxTransport", "TransportResponse"]
