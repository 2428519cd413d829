#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Served function interfaces for stepserve.

This module defines the contract the comm handler consumes from each served
function: its identity, its registration config and its execution entry
point. How a function memoizes steps or decides to pause belongs to the
execution engine behind ``run``.

Author: stepserve contributors
"""

import inspect
import re
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from ..core.config import QueryKeys
from .models import DEFAULT_STEP_ID

EngineResult = Tuple[bool, Any]

_SLUG_PATTERN = re.compile(r"[^a-z0-9]+")


def slugify(value: str) -> str:
    """
    Lowercase ``value`` and collapse anything non-alphanumeric into dashes.
    """
    return _SLUG_PATTERN.sub("-", value.strip().lower()).strip("-")


class ServedFunction(ABC):
    """
    Base contract for functions served by a comm handler.
    """

    @abstractmethod
    def id(self, app_name: str) -> str:
        """
        Unique id of this function, scoped by the app name.
        """

    @abstractmethod
    def get_config(self, url: str, app_name: str) -> Dict[str, Any]:
        """
        Registration config for this function when served from ``url``.
        """

    @abstractmethod
    def run(
        self, event: Mapping[str, Any], steps: Mapping[str, Any]
    ) -> Union[EngineResult, Awaitable[EngineResult]]:
        """
        Execute one step given the triggering event and prior step state.

        Returns ``(is_intermediate_operation, body)``.
        """


def _normalize_triggers(
    event: Optional[str], cron: Optional[str], triggers: Optional[Iterable[Mapping[str, str]]]
) -> List[Dict[str, str]]:
    normalized: List[Dict[str, str]] = []
    if event:
        normalized.append({"event": event})
    if cron:
        normalized.append({"cron": cron})
    for trigger in triggers or ():
        item = {str(k): str(v) for k, v in trigger.items() if k in ("event", "cron", "expression")}
        if not item:
            raise ValueError("Trigger must declare an event or cron expression: {0!r}".format(trigger))
        normalized.append(item)
    if not normalized:
        raise ValueError("A function needs at least one event or cron trigger")
    return normalized


class StepFunction(ServedFunction):
    """
    Single-step function backed by a plain callable.

    The handler is called as ``handler(event=..., steps=...)`` and may be sync
    or async. Its return value is the completed step body.
    """

    def __init__(
        self,
        name: str,
        handler: Callable[..., Any],
        *,
        event: Optional[str] = None,
        cron: Optional[str] = None,
        triggers: Optional[Sequence[Mapping[str, str]]] = None,
        function_id: Optional[str] = None,
    ) -> None:
        name = (name or "").strip()
        if not name:
            raise ValueError("Function name cannot be empty")
        if not callable(handler):
            raise TypeError("handler must be callable")

        self.name = name
        self.handler = handler
        self.triggers = _normalize_triggers(event, cron, triggers)
        self._explicit_id = function_id

    def id(self, app_name: str) -> str:
        local_id = slugify(self._explicit_id or self.name)
        prefix = slugify(app_name)
        return "-".join(part for part in (prefix, local_id) if part)

    def step_url(self, url: str, app_name: str) -> str:
        parts = urlsplit(url)
        query = [
            (key, value)
            for key, value in parse_qsl(parts.query, keep_blank_values=True)
            if key not in (QueryKeys.FUNCTION_ID, QueryKeys.STEP_ID)
        ]
        query.append((QueryKeys.FUNCTION_ID, self.id(app_name)))
        query.append((QueryKeys.STEP_ID, DEFAULT_STEP_ID))
        return urlunsplit(parts._replace(query=urlencode(query)))

    def get_config(self, url: str, app_name: str) -> Dict[str, Any]:
        function_id = self.id(app_name)
        return {
            "id": function_id,
            "name": self.name,
            "triggers": [dict(trigger) for trigger in self.triggers],
            "steps": {
                DEFAULT_STEP_ID: {
                    "id": DEFAULT_STEP_ID,
                    "name": DEFAULT_STEP_ID,
                    "runtime": {
                        "type": "http",
                        "url": self.step_url(url, app_name),
                    },
                }
            },
        }

    async def run(self, event: Mapping[str, Any], steps: Mapping[str, Any]) -> EngineResult:
        result = self.handler(event=event, steps=steps)
        if inspect.isawaitable(result):
            result = await result
        return False, result

    def __repr__(self) -> str:
        return "StepFunction(name={0!r})".format(self.name)


__all__ = ["EngineResult", "ServedFunction", "StepFunction", "slugify"]
