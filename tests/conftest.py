#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Pytest bootstrap for local package imports and shared test doubles.

Author: stepserve contributors
"""

import sys
from pathlib import Path
from types import SimpleNamespace
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union


PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import pytest  # noqa: E402

from stepserve.core.utils.exceptions import TransportError  # noqa: E402
from stepserve.protocols import HttpTransport, ServedFunction, TransportResponse  # noqa: E402

Outcome = Union[TransportResponse, BaseException]


class FakeTransport(HttpTransport):
    """
    Scripted transport keyed by ``(method, url)``; unknown routes are refused.
    """

    def __init__(self, routes: Optional[Dict[Tuple[str, str], Outcome]] = None):
        self.routes: Dict[Tuple[str, str], Outcome] = dict(routes or {})
        self.calls: List[SimpleNamespace] = []

    async def request(self, method, url, *, body=None, headers=None, timeout):
        self.calls.append(
            SimpleNamespace(
                method=method,
                url=url,
                body=body,
                headers=dict(headers or {}),
                timeout=timeout,
            )
        )
        outcome = self.routes.get((method, url))
        if outcome is None:
            raise TransportError("connection refused", url=url)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    def calls_for(self, method: str) -> List[SimpleNamespace]:
        return [call for call in self.calls if call.method == method]


class FakeFunction(ServedFunction):
    """
    Served function whose engine result (or failure) is fixed up front.
    """

    def __init__(
        self,
        name: str,
        result: Any = (False, {"ok": True}),
        error: Optional[BaseException] = None,
        config: Optional[Dict[str, Any]] = None,
    ):
        self.name = name
        self.result = result
        self.error = error
        self.config = config
        self.calls: List[Tuple[Mapping[str, Any], Mapping[str, Any]]] = []

    def id(self, app_name: str) -> str:
        return "{0}-{1}".format(app_name.lower().replace(" ", "-"), self.name)

    def get_config(self, url: str, app_name: str) -> Dict[str, Any]:
        if self.config is not None:
            return dict(self.config)
        return {
            "id": self.id(app_name),
            "name": self.name,
            "triggers": [{"event": "test/{0}".format(self.name)}],
        }

    def run(self, event, steps):
        self.calls.append((event, steps))
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
def fake_transport() -> FakeTransport:
    return FakeTransport()
