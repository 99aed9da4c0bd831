"""Shared state cell for backend client/configuration state.

Version: 0.1.0

A ``StateCell`` holds exactly one backend-defined value. Readers load the
current reference without locking; writers replace it atomically, either
unconditionally (``reset``) or conditionally (``compare_and_set`` /
``swap``), so a concurrent reader never sees a value under construction.

Usage:
    cell = StateCell(VaultState())

    current = cell.get()
    if cell.compare_and_set(current, VaultState(settings, client)):
        ...

    cell.swap(lambda s: dataclasses.replace(s, client=client))
"""

from __future__ import annotations

from threading import Lock
from typing import Any, Callable, Generic, TypeVar

T = TypeVar("T")


class StateCell(Generic[T]):
    """Atomic single-slot reference.

    Thread Safety:
        ``get`` is a single attribute load. ``reset``, ``compare_and_set``
        and ``swap`` serialize on an internal lock; values are compared by
        identity, never by equality.
    """

    __slots__ = ("_value", "_lock")

    def __init__(self, value: T) -> None:
        if value is None:
            raise ValueError("StateCell requires a fully constructed value, got None")
        self._value: T = value
        self._lock = Lock()

    def get(self) -> T:
        """Return the current value."""
        return self._value

    @property
    def value(self) -> T:
        return self._value

    def reset(self, new_value: T) -> T:
        """Replace the current value unconditionally.

        Returns:
            The value now held by the cell
        """
        if new_value is None:
            raise ValueError("StateCell cannot hold None")
        with self._lock:
            self._value = new_value
        return new_value

    def compare_and_set(self, expected: T, new_value: T) -> bool:
        """Replace the value only if it is still ``expected``.

        Returns:
            True if the swap happened, False if another writer got there first
        """
        if new_value is None:
            raise ValueError("StateCell cannot hold None")
        with self._lock:
            if self._value is not expected:
                return False
            self._value = new_value
            return True

    def swap(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Install ``fn(current, *args, **kwargs)``, retrying on contention.

        ``fn`` runs outside the lock and may be called more than once, so
        it should be free of side effects.

        Returns:
            The value installed by this call
        """
        while True:
            current = self._value
            new_value = fn(current, *args, **kwargs)
            if self.compare_and_set(current, new_value):
                return new_value

    def __repr__(self) -> str:
        return f"StateCell({type(self._value).__name__})"
