from __future__ import annotations

import hashlib
import secrets
import sys
from pathlib import Path
from typing import Dict, List

import pytest

ROOT = Path(__file__).resolve().parents[1]
CORE_SRC = ROOT / "libs" / "core" / "src"
LIBOQS_SRC = ROOT / "libs" / "adapters" / "liboqs" / "src"
CLI_SRC = ROOT / "apps" / "cli" / "src"

for candidate in (CORE_SRC, LIBOQS_SRC, CLI_SRC):
    candidate_str = str(candidate)
    if candidate_str not in sys.path:
        sys.path.insert(0, candidate_str)

from kemex import registry  # noqa: E402
from kemex.errors import UnsupportedAlgorithm  # noqa: E402
from kemex.interfaces import KemLengths  # noqa: E402


DUMMY_LENGTHS: Dict[str, KemLengths] = {
    "ML-KEM-512": KemLengths(public_key=800, secret_key=1632, ciphertext=768, shared_secret=32),
    "ML-KEM-1024": KemLengths(public_key=1568, secret_key=3168, ciphertext=1568, shared_secret=32),
}


class Recorder:
    def __init__(self) -> None:
        self.calls: List[str] = []
        self.opened = 0
        self.closed = 0


class DummyKEM:
    """Hash-based stand-in with real KEM lengths.

    The public key starts with a digest of the secret key; decapsulating with
    a different secret key therefore derives an unrelated shared secret.
    """

    name = "dummy"

    def __init__(self, algorithm: str, recorder: Recorder) -> None:
        if algorithm not in DUMMY_LENGTHS:
            raise UnsupportedAlgorithm(algorithm, "dummy backend")
        self.algorithm = algorithm
        self.lengths = DUMMY_LENGTHS[algorithm]
        self.recorder = recorder
        recorder.opened += 1

    def keygen(self) -> tuple[bytes, bytes]:
        self.recorder.calls.append("keygen")
        sk = secrets.token_bytes(self.lengths.secret_key)
        key_id = hashlib.sha256(sk).digest()
        pk = key_id + hashlib.shake_256(b"pk" + key_id).digest(self.lengths.public_key - 32)
        return pk, sk

    def encapsulate(self, public_key: bytes) -> tuple[bytes, bytes]:
        self.recorder.calls.append("encapsulate")
        key_id = public_key[:32]
        r = secrets.token_bytes(32)
        ct = r + hashlib.shake_256(b"ct" + key_id + r).digest(self.lengths.ciphertext - 32)
        ss = hashlib.shake_256(b"ss" + key_id + r).digest(self.lengths.shared_secret)
        return ct, ss

    def decapsulate(self, secret_key: bytes, ciphertext: bytes) -> bytes:
        self.recorder.calls.append("decapsulate")
        key_id = hashlib.sha256(secret_key).digest()
        r = ciphertext[:32]
        return hashlib.shake_256(b"ss" + key_id + r).digest(self.lengths.shared_secret)

    def close(self) -> None:
        self.recorder.closed += 1


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture
def dummy_registry(recorder: Recorder):
    original_items = dict(registry._items)  # type: ignore[attr-defined]
    registry._items.clear()  # type: ignore[attr-defined]
    registry._items["dummy"] = lambda algorithm: DummyKEM(algorithm, recorder)  # type: ignore[attr-defined]
    try:
        yield registry
    finally:
        registry._items.clear()  # type: ignore[attr-defined]
        registry._items.update(original_items)  # type: ignore[attr-defined]
