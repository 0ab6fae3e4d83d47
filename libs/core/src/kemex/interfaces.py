
from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Protocol, Tuple

"""Backend interfaces used by the key exchange roles.

Backends implement the ``KEM`` Protocol and register a factory in the global
registry. The roles and the CLI talk only to ``KemContext``, never to vendor
libraries directly.
"""


@dataclass(frozen=True)
class KemLengths:
    public_key: int
    secret_key: int
    ciphertext: int
    shared_secret: int

    def to_dict(self) -> Dict[str, int]:
        return {
            "public_key": self.public_key,
            "secret_key": self.secret_key,
            "ciphertext": self.ciphertext,
            "shared_secret": self.shared_secret,
        }


class KEM(Protocol):
    """Key Encapsulation Mechanism contract for one algorithm identifier."""
    name: str
    algorithm: str
    lengths: KemLengths
    def keygen(self) -> Tuple[bytes, bytes]: ...
    def encapsulate(self, public_key: bytes) -> Tuple[bytes, bytes]: ...
    def decapsulate(self, secret_key: bytes, ciphertext: bytes) -> bytes: ...
    def close(self) -> None: ...
