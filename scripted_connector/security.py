"""Guarded credential holder."""

import os
from typing import Optional


class GuardedString:
    """Holds a secret string obfuscated in memory.

    The plaintext is only produced by ``reveal()``; ``repr()`` and ``str()``
    never show it.  ``dispose()`` wipes the stored bytes, after which
    ``reveal()`` raises.
    """

    def __init__(self, clear: str = ""):
        data = clear.encode("utf-8")
        self._key: Optional[bytearray] = bytearray(os.urandom(len(data)))
        self._data: Optional[bytearray] = bytearray(b ^ k for b, k in zip(data, self._key))

    def reveal(self) -> str:
        """Return the plaintext value."""
        if self._data is None or self._key is None:
            raise ValueError("GuardedString has been disposed")
        clear = bytearray(b ^ k for b, k in zip(self._data, self._key))
        try:
            return clear.decode("utf-8")
        finally:
            for i in range(len(clear)):
                clear[i] = 0

    def dispose(self) -> None:
        """Zero the stored bytes and drop the key."""
        if self._data is not None:
            for i in range(len(self._data)):
                self._data[i] = 0
        self._data = None
        self._key = None

    @property
    def disposed(self) -> bool:
        return self._data is None

    def __eq__(self, other):
        if not isinstance(other, GuardedString):
            return NotImplemented
        if self.disposed or other.disposed:
            return self is other
        return self.reveal() == other.reveal()

    __hash__ = None

    def __repr__(self):
        return "GuardedString(***)"

    __str__ = __repr__
