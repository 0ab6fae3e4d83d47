from __future__ import annotations
from typing import Dict, List, Optional, Sequence


# liboqs renamed the Kyber mechanisms to their FIPS 203 names; older builds
# only know the legacy ones, newer builds only the ML-KEM ones.
_ALIASES: Dict[str, List[str]] = {
    "ml-kem-512": ["ML-KEM-512", "Kyber512"],
    "ml-kem-768": ["ML-KEM-768", "Kyber768"],
    "ml-kem-1024": ["ML-KEM-1024", "Kyber1024"],
    "kyber512": ["Kyber512", "ML-KEM-512"],
    "kyber768": ["Kyber768", "ML-KEM-768"],
    "kyber1024": ["Kyber1024", "ML-KEM-1024"],
}


def try_import_oqs():
    try:
        import oqs  # type: ignore
        return oqs
    # liboqs-python calls sys.exit() when it cannot load or build the shared library.
    except (Exception, SystemExit):
        return None


def candidate_names(algorithm: str) -> List[str]:
    names = [algorithm]
    for alias in _ALIASES.get(algorithm.lower(), []):
        if alias not in names:
            names.append(alias)
    return names


def pick_kem_algorithm(oqs_mod, candidates: Sequence[str]) -> Optional[str]:
    """
    Choose a KEM mechanism without relying on oqs helper lists,
    by attempting to instantiate each candidate in order.
    """
    for name in candidates:
        try:
            with oqs_mod.KeyEncapsulation(name):
                return name
        except Exception:
            continue
    return None
