"""KEM context: one algorithm, four fixed lengths, three operations.

``KemContext`` wraps a registered backend and enforces the length contract on
every input and output. Secret outputs come back as ``SecretBuffer`` objects
so the caller can wipe them. Use it as a context manager so the backend is
released when the block exits.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, Optional, Tuple, Type, Union

from .errors import (
    AllocationFailure,
    ContextAcquisitionFailed,
    DecapsulationFailed,
    EncapsulationFailed,
    KexError,
    KeypairGenerationFailed,
    PrimitiveError,
)
from .interfaces import KEM, KemLengths
from .registry import registry
from .sensitive import BytesLike, SecretBuffer

log = logging.getLogger(__name__)


def _check_length(error: Type[PrimitiveError], label: str, value: BytesLike, expected: int) -> None:
    if len(value) != expected:
        raise error(f"{label} has {len(value)} bytes, expected {expected}")


@contextmanager
def _backend_call(error: Type[PrimitiveError], context: str) -> Iterator[None]:
    try:
        yield
    except KexError:
        raise
    except MemoryError as exc:
        raise AllocationFailure(f"{context}: out of memory") from exc
    except Exception as exc:
        raise error(f"{context}: {exc}") from exc


class KemContext:
    def __init__(self, backend: KEM) -> None:
        self._backend: Optional[KEM] = backend
        self.algorithm: str = backend.algorithm
        self.backend_name: str = getattr(backend, "name", type(backend).__name__)
        self.lengths: KemLengths = backend.lengths

    @classmethod
    def new(cls, algorithm: str, backend: Optional[str] = None) -> "KemContext":
        try:
            kem = registry.open(algorithm, backend)
        except KexError:
            raise
        except MemoryError as exc:
            raise AllocationFailure(f"acquire {algorithm} context: out of memory") from exc
        except Exception as exc:
            raise ContextAcquisitionFailed(f"acquire {algorithm} context: {exc}") from exc
        log.debug("acquired %s context via %s (%s)", algorithm, getattr(kem, "name", "?"), kem.lengths)
        return cls(kem)

    @property
    def length_public_key(self) -> int:
        return self.lengths.public_key

    @property
    def length_secret_key(self) -> int:
        return self.lengths.secret_key

    @property
    def length_ciphertext(self) -> int:
        return self.lengths.ciphertext

    @property
    def length_shared_secret(self) -> int:
        return self.lengths.shared_secret

    @property
    def closed(self) -> bool:
        return self._backend is None

    def _kem(self) -> KEM:
        if self._backend is None:
            raise RuntimeError(f"KEM context for {self.algorithm} has been released")
        return self._backend

    def keypair(self) -> Tuple[bytes, SecretBuffer]:
        kem = self._kem()
        with _backend_call(KeypairGenerationFailed, f"keypair ({self.algorithm})"):
            public_key, raw_secret = kem.keygen()
        secret_key = SecretBuffer(raw_secret)
        del raw_secret
        try:
            _check_length(KeypairGenerationFailed, "public key", public_key, self.length_public_key)
            _check_length(KeypairGenerationFailed, "secret key", secret_key, self.length_secret_key)
        except KexError:
            secret_key.wipe()
            raise
        return bytes(public_key), secret_key

    def encapsulate(self, public_key: BytesLike) -> Tuple[bytes, SecretBuffer]:
        kem = self._kem()
        _check_length(EncapsulationFailed, "public key", public_key, self.length_public_key)
        with _backend_call(EncapsulationFailed, f"encapsulate ({self.algorithm})"):
            ciphertext, raw_secret = kem.encapsulate(bytes(public_key))
        shared_secret = SecretBuffer(raw_secret)
        del raw_secret
        try:
            _check_length(EncapsulationFailed, "ciphertext", ciphertext, self.length_ciphertext)
            _check_length(EncapsulationFailed, "shared secret", shared_secret, self.length_shared_secret)
        except KexError:
            shared_secret.wipe()
            raise
        return bytes(ciphertext), shared_secret

    def decapsulate(self, secret_key: Union[SecretBuffer, BytesLike], ciphertext: BytesLike) -> SecretBuffer:
        kem = self._kem()
        _check_length(DecapsulationFailed, "secret key", secret_key, self.length_secret_key)
        _check_length(DecapsulationFailed, "ciphertext", ciphertext, self.length_ciphertext)
        if isinstance(secret_key, SecretBuffer):
            with secret_key.view() as sk_view:
                sk_bytes = bytes(sk_view)
        else:
            sk_bytes = bytes(secret_key)
        with _backend_call(DecapsulationFailed, f"decapsulate ({self.algorithm})"):
            raw_secret = kem.decapsulate(sk_bytes, bytes(ciphertext))
        del sk_bytes
        shared_secret = SecretBuffer(raw_secret)
        del raw_secret
        try:
            _check_length(DecapsulationFailed, "shared secret", shared_secret, self.length_shared_secret)
        except KexError:
            shared_secret.wipe()
            raise
        return shared_secret

    def close(self) -> None:
        backend, self._backend = self._backend, None
        if backend is not None:
            backend.close()

    def __enter__(self) -> "KemContext":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "released" if self.closed else self.backend_name
        return f"<KemContext {self.algorithm} {state}>"
