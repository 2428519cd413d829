#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Configuration for stepserve comm handlers.

Configuration is static per comm handler. Values that vary per request
(signing key disclosure, landing page opt-in, production mode) are read from
the request's environment snapshot by the handler and adapters, never from
``os.environ`` here.

Author: stepserve contributors
"""

import threading
from dataclasses import dataclass, replace
from typing import Any, Mapping, Optional
from urllib.parse import urlsplit

from .utils.exceptions import ConfigurationError
from .utils.logger import resolve_level

DEFAULT_REGISTER_URL = "https://api.inngest.com/fn/register"
DEFAULT_DEV_SERVER_HOST = "http://127.0.0.1:8288/"
DEFAULT_REGISTER_TIMEOUT = 10.0
DEFAULT_PROBE_TIMEOUT = 1.0


class EnvKeys:
    """
    Environment variable names read from request environment snapshots.
    """

    SIGNING_KEY = "STEPSERVE_SIGNING_KEY"
    LANDING_PAGE = "STEPSERVE_LANDING_PAGE"
    DEV_SERVER_URL = "STEPSERVE_DEVSERVER_URL"


class QueryKeys:
    """
    Query parameter names of the inbound HTTP surface.
    """

    FUNCTION_ID = "fnId"
    STEP_ID = "stepId"
    INTROSPECT = "introspect"


_TRUE_STRINGS = {"true", "1", "yes", "on"}
_FALSE_STRINGS = {"false", "0", "no", "off"}


def str_boolean(value: Optional[str]) -> Optional[bool]:
    """
    Parse a boolean-ish environment string; None when it is not recognizable.
    """
    if value is None:
        return None
    normalized = str(value).strip().lower()
    if normalized in _TRUE_STRINGS:
        return True
    if normalized in _FALSE_STRINGS:
        return False
    return None


def _is_absolute_http_url(value: str) -> bool:
    parts = urlsplit(value)
    return parts.scheme in ("http", "https") and bool(parts.netloc)


@dataclass(frozen=True)
class StepServeConfig:
    """
    Static options of one comm handler.

    Attributes:
        register_url: Orchestrator registration endpoint used in production
            or when no dev server answers the probe.
        signing_key: Shared secret; may also be adopted lazily from the first
            request that discloses one.
        landing_page: Explicit landing page override. ``None`` defers to the
            request environment, then to showing it.
        serve_host: Host (scheme + netloc) advertised instead of the one the
            request arrived on.
        serve_path: Path advertised instead of the one the request arrived on.
        register_timeout: Seconds allowed for the registration POST.
        probe_timeout: Seconds allowed for the dev server reachability check.
        log_level: Level applied to the comm handler's loggers.
    """

    register_url: str = DEFAULT_REGISTER_URL
    signing_key: Optional[str] = None
    landing_page: Optional[bool] = None
    serve_host: Optional[str] = None
    serve_path: Optional[str] = None
    register_timeout: float = DEFAULT_REGISTER_TIMEOUT
    probe_timeout: float = DEFAULT_PROBE_TIMEOUT
    log_level: str = "info"

    def __post_init__(self) -> None:
        if not _is_absolute_http_url(self.register_url):
            raise ConfigurationError(
                "register_url must be an absolute http(s) URL: {0}".format(
                    self.register_url
                ),
                context={"register_url": self.register_url},
            )
        if self.serve_host is not None and not _is_absolute_http_url(self.serve_host):
            raise ConfigurationError(
                "serve_host must be an absolute http(s) URL: {0}".format(
                    self.serve_host
                ),
                context={"serve_host": self.serve_host},
            )
        if self.serve_path is not None and not self.serve_path.startswith("/"):
            raise ConfigurationError(
                "serve_path must start with '/': {0}".format(self.serve_path),
                context={"serve_path": self.serve_path},
            )
        if self.register_timeout <= 0:
            raise ConfigurationError("register_timeout must be positive")
        if self.probe_timeout <= 0:
            raise ConfigurationError("probe_timeout must be positive")
        try:
            resolve_level(self.log_level)
        except ValueError as exc:
            raise ConfigurationError(str(exc), cause=exc) from exc

    def with_overrides(self, **overrides: Any) -> "StepServeConfig":
        """
        Return a validated copy with the given fields replaced.
        """
        unknown = set(overrides) - set(self.__dataclass_fields__)
        if unknown:
            raise ConfigurationError(
                "Unknown configuration option(s): {0}".format(
                    ", ".join(sorted(unknown))
                )
            )
        return replace(self, **overrides)

    @classmethod
    def from_env(
        cls, env: Mapping[str, Optional[str]], **overrides: Any
    ) -> "StepServeConfig":
        """
        Build a config from an environment snapshot plus explicit overrides.
        """
        values = {
            "signing_key": (env.get(EnvKeys.SIGNING_KEY) or "").strip() or None,
            "landing_page": str_boolean(env.get(EnvKeys.LANDING_PAGE)),
        }
        values.update(overrides)
        return cls(**values)


_config_lock = threading.Lock()
_global_config: Optional[StepServeConfig] = None


def get_config() -> StepServeConfig:
    """
    Return the process-wide default configuration.
    """
    global _global_config

    if _global_config is None:
        with _config_lock:
            if _global_config is None:
                _global_config = StepServeConfig()
    return _global_config


def create_config(**overrides: Any) -> StepServeConfig:
    """
    Create a new configuration derived from the process default.
    """
    return get_config().with_overrides(**overrides)


__all__ = [
    "DEFAULT_REGISTER_URL",
    "DEFAULT_DEV_SERVER_HOST",
    "EnvKeys",
    "QueryKeys",
    "StepServeConfig",
    "get_config",
    "create_config",
    "str_boolean",
]
