#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
stepserve public API with lazy imports.

Serve a set of step functions to a remote orchestrator over HTTP: register
them, answer introspection requests and run one step per call.

Author: stepserve contributors
"""

from importlib import import_module
from typing import Any, Dict, Tuple

from ._version import __version__

_EXPORT_MAP: Dict[str, Tuple[str, str]] = {
    "CommHandler": ("stepserve.protocols", "CommHandler"),
    "ServedFunction": ("stepserve.protocols", "ServedFunction"),
    "StepFunction": ("stepserve.protocols", "StepFunction"),
    "FrameworkAdapter": ("stepserve.protocols", "FrameworkAdapter"),
    "WSGIAdapter": ("stepserve.protocols.wsgi", "WSGIAdapter"),
    "ASGIAdapter": ("stepserve.protocols.asgi", "ASGIAdapter"),
    "StepServeConfig": ("stepserve.core.config", "StepServeConfig"),
    "create_config": ("stepserve.core.config", "create_config"),
    "get_config": ("stepserve.core.config", "get_config"),
    "serialize_error": ("stepserve.core.data.errors", "serialize_error"),
    "deserialize_error": ("stepserve.core.data.errors", "deserialize_error"),
    "OutgoingOpError": ("stepserve.core.data.errors", "OutgoingOpError"),
    "StepServeError": ("stepserve.core.utils.exceptions", "StepServeError"),
}

__all__ = ["__version__", *sorted(_EXPORT_MAP.keys())]


def __getattr__(name: str) -> Any:
    """
    Resolve public API symbols lazily.
    """
    if name not in _EXPORT_MAP:
        raise AttributeError("module 'stepserve' has no attribute '{0}'".format(name))

    module_name, attr_name = _EXPORT_MAP[name]
    module = import_module(module_name)
    value = getattr(module, attr_name)
    globals()[name] = value
    return value
