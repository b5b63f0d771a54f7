"""
Atomically swappable reference.

An Atom holds one immutable value. Writers read the current value, compute
a successor from it, and install the successor only if nobody else has
installed one in the meantime (compare-and-swap); otherwise they retry
from the fresh value.

Invariants:
    - The internal lock covers only the compare and the assignment; user
      computation never runs under it
    - Comparison is by identity, so values must be treated as immutable
    - Readers never block on writers' computation
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Generic, Optional, Tuple, TypeVar

from ..errors import SwapRetriesExceededError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Atom(Generic[T]):
    """Compare-and-swap reference to an immutable value.

    Attributes:
        max_retries: Conflicts tolerated per swap() before giving up
            (None = retry until success)

    Example:
        >>> counter = Atom(0)
        >>> counter.swap(lambda n: n + 1)
        (0, 1)
        >>> counter.deref()
        1
    """

    def __init__(self, value: T, max_retries: Optional[int] = None) -> None:
        self._value = value
        self._lock = threading.Lock()
        self.max_retries = max_retries

    def deref(self) -> T:
        """Current value."""
        return self._value

    def compare_and_set(self, expected: T, new: T) -> bool:
        """Install `new` only if the current value is `expected`.

        Returns:
            True if installed, False if another writer got there first
        """
        with self._lock:
            if self._value is not expected:
                return False
            self._value = new
            return True

    def reset(self, new: T) -> T:
        """Unconditionally install `new`."""
        with self._lock:
            self._value = new
        return new

    def swap(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> Tuple[T, T]:
        """Apply `fn` to the current value and install the result.

        `fn` may run more than once under contention and must not have
        side effects. Exceptions from `fn` propagate and leave the value
        untouched.

        Returns:
            Tuple of (value swapped out, value swapped in)

        Raises:
            SwapRetriesExceededError: If max_retries conflicts occur
        """
        conflicts = 0
        while True:
            old = self._value
            new = fn(old, *args, **kwargs)
            if self.compare_and_set(old, new):
                return old, new
            conflicts += 1
            logger.debug("Swap conflict, retrying", extra={"conflicts": conflicts})
            if self.max_retries is not None and conflicts > self.max_retries:
                raise SwapRetriesExceededError(conflicts)
