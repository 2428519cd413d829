#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Concurrency primitives for stepserve.

Author: stepserve contributors
"""

import threading
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class SetOnceCell(Generic[T]):
    """
    Value holder that can be filled once and never cleared.

    ``set_if_absent`` is an atomic check-and-set guarded by a thread lock, so
    overlapping requests (threads or event-loop tasks) agree on a single
    winner. The lock is only held for the check-and-set itself.
    """

    def __init__(self, value: Optional[T] = None, name: str = "set-once-cell") -> None:
        self._name = name
        self._value: Optional[T] = value
        self._guard = threading.Lock()

    @property
    def name(self) -> str:
        return self._name

    def get(self) -> Optional[T]:
        return self._value

    def is_set(self) -> bool:
        return self._value is not None

    def set_if_absent(self, value: T) -> bool:
        """
        Store ``value`` unless a value is already present.

        Returns True when this call stored the value.
        """
        if value is None:
            return False

        with self._guard:
            if self._value is not None:
                return False
            self._value = value
            return True


__all__ = ["SetOnceCell"]
