"""Scoped holder for secret key material.

``SecretBuffer`` owns a ``bytearray`` and overwrites it with zeros when the
``with`` block exits, whether normally or through an exception. Code that
handles secret keys or shared secrets keeps them inside one of these and
never stores them as plain ``bytes``.
"""
from __future__ import annotations

import hmac
from typing import Union

BytesLike = Union[bytes, bytearray, memoryview]


class SecretBuffer:
    __slots__ = ("_buf", "_wiped")

    def __init__(self, data: BytesLike) -> None:
        # A bytearray is adopted in place so the caller's copy is wiped too.
        if isinstance(data, bytearray):
            self._buf = data
        else:
            self._buf = bytearray(data)
        self._wiped = False

    @classmethod
    def zeros(cls, length: int) -> "SecretBuffer":
        return cls(bytearray(length))

    def __enter__(self) -> "SecretBuffer":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.wipe()

    def wipe(self) -> None:
        if self._wiped:
            return
        self._buf[:] = bytes(len(self._buf))
        self._wiped = True
        try:
            del self._buf[:]
        except BufferError:
            # A view is still exported; the zeroed storage is freed with it.
            pass

    @property
    def wiped(self) -> bool:
        return self._wiped

    def _live(self) -> bytearray:
        if self._wiped:
            raise ValueError("secret buffer has been wiped")
        return self._buf

    def view(self) -> memoryview:
        """Read-only view, valid until the buffer is wiped."""
        return memoryview(self._live()).toreadonly()

    def hex(self) -> str:
        return self._live().hex()

    def equals(self, other: Union["SecretBuffer", BytesLike]) -> bool:
        """Constant-time comparison against another secret or raw bytes."""
        rhs = other._live() if isinstance(other, SecretBuffer) else other
        return hmac.compare_digest(self._live(), rhs)

    def __len__(self) -> int:
        return 0 if self._wiped else len(self._buf)

    def __repr__(self) -> str:
        state = "wiped" if self._wiped else f"{len(self._buf)} bytes"
        return f"<SecretBuffer {state}>"
