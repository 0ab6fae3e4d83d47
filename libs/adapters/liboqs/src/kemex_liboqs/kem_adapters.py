
from __future__ import annotations
import logging
from typing import Optional, Tuple

from kemex import registry
from kemex.errors import UnsupportedAlgorithm
from kemex.interfaces import KemLengths
from kemex.params import reference_lengths

from ._util import try_import_oqs, candidate_names, pick_kem_algorithm

log = logging.getLogger(__name__)

_oqs = try_import_oqs()

AVAILABLE = _oqs is not None


def _lengths_from_details(details: dict) -> KemLengths:
    return KemLengths(
        public_key=int(details["length_public_key"]),
        secret_key=int(details["length_secret_key"]),
        ciphertext=int(details["length_ciphertext"]),
        shared_secret=int(details["length_shared_secret"]),
    )


class OqsKEM:
    """liboqs-backed KEM for one mechanism.

    Holds an ``oqs.KeyEncapsulation`` handle until ``close()``; liboqs frees
    its secret buffers with ``OQS_MEM_secure_free`` when the handle goes.
    """

    name = "liboqs"

    def __init__(self, algorithm: str, oqs_mod=None) -> None:
        self._oqs = oqs_mod if oqs_mod is not None else _oqs
        if self._oqs is None:
            raise UnsupportedAlgorithm(algorithm, "liboqs-python is not installed")
        mechanism = pick_kem_algorithm(self._oqs, candidate_names(algorithm))
        if not mechanism:
            raise UnsupportedAlgorithm(algorithm, "not enabled in liboqs")
        self.algorithm = algorithm
        self.mechanism = mechanism
        self._kem = self._oqs.KeyEncapsulation(mechanism)
        self.lengths = _lengths_from_details(self._kem.details)
        expected = reference_lengths(mechanism)
        if expected is not None and expected != self.lengths:
            log.warning("liboqs reports %s sizes %s, reference table says %s", mechanism, self.lengths, expected)

    def _handle(self):
        if self._kem is None:
            raise RuntimeError(f"{self.mechanism} handle has been freed")
        return self._kem

    def keygen(self) -> Tuple[bytes, bytes]:
        kem = self._handle()
        pk = kem.generate_keypair()
        sk = kem.export_secret_key()
        return pk, sk

    def encapsulate(self, public_key: bytes) -> Tuple[bytes, bytes]:
        ct, ss = self._handle().encap_secret(bytes(public_key))
        return ct, ss

    def decapsulate(self, secret_key: bytes, ciphertext: bytes) -> bytes:
        self._handle()
        with self._oqs.KeyEncapsulation(self.mechanism, secret_key=bytes(secret_key)) as kem:
            ss = kem.decap_secret(bytes(ciphertext))
            return ss

    def close(self) -> None:
        kem, self._kem = self._kem, None
        if kem is not None:
            kem.free()


if AVAILABLE:
    registry.register("liboqs")(OqsKEM)


def probe(candidates) -> list:
    """Return the candidates this liboqs build can instantiate."""
    if _oqs is None:
        return []
    found: list = []
    for name in candidates:
        mechanism: Optional[str] = pick_kem_algorithm(_oqs, candidate_names(name))
        if mechanism:
            found.append(mechanism)
    return found
