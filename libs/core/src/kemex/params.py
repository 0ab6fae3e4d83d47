from __future__ import annotations
"""Reference byte sizes for common KEM mechanisms.

Maps mechanism identifiers (as used by liboqs and FIPS names) to the four
lengths a KEM context advertises. Backends cross-check what the library
reports against this table, and the CLI lists it.
"""
from dataclasses import dataclass
from typing import Dict, List, Optional

from .interfaces import KemLengths

DEFAULT_ALGORITHM = "ML-KEM-512"

# The two parameter sets exercised by the reference key exchange programs.
REFERENCE_ALGORITHMS = ("ML-KEM-512", "ML-KEM-1024")


@dataclass(frozen=True)
class KemParams:
    family: str            # e.g., ML-KEM, HQC, BIKE
    mechanism: str         # exact mechanism name as emitted by liboqs
    category_floor: int    # 128/192/256
    lengths: KemLengths


_PARAMS: Dict[str, KemParams] = {}


def _add(alias_list, family: str, category_floor: int, pk: int, sk: int, ct: int, ss: int) -> None:
    lengths = KemLengths(public_key=pk, secret_key=sk, ciphertext=ct, shared_secret=ss)
    for alias in alias_list:
        _PARAMS[alias.lower()] = KemParams(family=family, mechanism=alias, category_floor=category_floor, lengths=lengths)


# ML-KEM (Kyber)
_add(["ML-KEM-512", "Kyber512"], "ML-KEM", 128, 800, 1632, 768, 32)
_add(["ML-KEM-768", "Kyber768"], "ML-KEM", 192, 1184, 2400, 1088, 32)
_add(["ML-KEM-1024", "Kyber1024"], "ML-KEM", 256, 1568, 3168, 1568, 32)

# HQC
_add(["HQC-128"], "HQC", 128, 2249, 2305, 4433, 64)
_add(["HQC-192"], "HQC", 192, 4522, 4586, 8978, 64)
_add(["HQC-256"], "HQC", 256, 7245, 7317, 14421, 64)

# BIKE (Round-4)
_add(["BIKE-L1"], "BIKE", 128, 1541, 5223, 1573, 32)
_add(["BIKE-L3"], "BIKE", 192, 3083, 10105, 3115, 32)
_add(["BIKE-L5"], "BIKE", 256, 5122, 16494, 5154, 32)

# Classic McEliece
_add(["Classic-McEliece-348864f"], "Classic McEliece", 128, 261120, 6492, 96, 32)
_add(["Classic-McEliece-460896f"], "Classic McEliece", 192, 524160, 13608, 156, 32)
_add(["Classic-McEliece-6688128f"], "Classic McEliece", 256, 1044992, 13932, 208, 32)

# FrodoKEM
_add(["FrodoKEM-640-AES"], "FrodoKEM", 128, 9616, 19888, 9720, 16)
_add(["FrodoKEM-976-AES"], "FrodoKEM", 192, 15632, 31296, 15744, 24)
_add(["FrodoKEM-1344-AES"], "FrodoKEM", 256, 21520, 43088, 21632, 32)

# NTRU
_add(["NTRU-HPS-2048-509"], "NTRU", 128, 699, 935, 699, 32)
_add(["NTRU-HPS-2048-677"], "NTRU", 192, 930, 1234, 930, 32)
_add(["NTRU-HPS-4096-821"], "NTRU", 256, 1230, 1590, 1230, 32)
_add(["NTRU-HRSS-701"], "NTRU", 192, 1138, 1450, 1138, 32)

# NTRU Prime
_add(["sntrup761"], "NTRU Prime", 192, 1158, 1763, 1039, 32)


def get_params(algorithm: str) -> Optional[KemParams]:
    return _PARAMS.get((algorithm or "").lower())


def reference_lengths(algorithm: str) -> Optional[KemLengths]:
    hint = get_params(algorithm)
    return hint.lengths if hint else None


def list_params() -> List[KemParams]:
    return sorted(_PARAMS.values(), key=lambda p: (p.family, p.category_floor, p.mechanism))
