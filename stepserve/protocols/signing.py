#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Signing key handling for stepserve.

The raw signing key never leaves the process. Outbound requests carry a
credential derived from it: the key's environment prefix followed by the
SHA-256 digest of its hex-decoded body.

Author: stepserve contributors
"""

import hashlib
import re
from typing import Dict, Mapping, Optional

from ..core.config import EnvKeys
from ..core.utils.concurrency import SetOnceCell
from ..core.utils.logger import ModernLogger

_PREFIX_PATTERN = re.compile(r"^signkey-(test|prod)-")


def normalize_signing_key(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    normalized = str(value).strip()
    return normalized or None


def _decode_key_body(body: str) -> bytes:
    try:
        return bytes.fromhex(body)
    except ValueError:
        # Not hex; digest the key text itself.
        return body.encode("utf-8")


def derive_credential(signing_key: Optional[str]) -> str:
    """
    Derive the bearer credential for ``signing_key``.

    Returns an empty string when there is no key; callers treat that as
    unauthenticated.
    """
    signing_key = normalize_signing_key(signing_key)
    if signing_key is None:
        return ""

    match = _PREFIX_PATTERN.match(signing_key)
    prefix = match.group(0) if match else ""
    body = signing_key[len(prefix):]

    digest = hashlib.sha256(_decode_key_body(body)).hexdigest()
    return "{0}{1}".format(prefix, digest)


class SigningKeyManager(ModernLogger):
    """
    Holds the optional signing key of one comm handler.

    The key is supplied at construction or adopted from the first request
    environment that discloses one. Once set it is never replaced.
    """

    def __init__(
        self,
        signing_key: Optional[str] = None,
        env_key: str = EnvKeys.SIGNING_KEY,
    ) -> None:
        super().__init__(name="SigningKeyManager")
        self.env_key = env_key
        self._key = SetOnceCell(
            normalize_signing_key(signing_key), name="signing-key"
        )

    @property
    def signing_key(self) -> Optional[str]:
        return self._key.get()

    @property
    def has_signing_key(self) -> bool:
        return self._key.is_set()

    def adopt_from_environment(self, env: Mapping[str, Optional[str]]) -> bool:
        """
        Adopt the environment's key if none is set yet.

        Returns True when this call stored the key.
        """
        if self._key.is_set():
            return False

        candidate = normalize_signing_key(env.get(self.env_key))
        if candidate is None:
            return False

        adopted = self._key.set_if_absent(candidate)
        if adopted:
            self.debug("Adopted signing key from request environment")
        return adopted

    def credential(self) -> str:
        return derive_credential(self.signing_key)

    def authorization_headers(self) -> Dict[str, str]:
        """
        ``Authorization`` header for outbound calls; empty without a key.
        """
        credential = self.credential()
        if not credential:
            return {}
        return {"Authorization": "Bearer {0}".format(credential)}


__all__ = ["SigningKeyManager", "derive_credential", "normalize_signing_key"]
