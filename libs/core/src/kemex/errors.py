from __future__ import annotations
from typing import Optional

"""Error taxonomy for the key exchange.

Every failure is terminal for the exchange attempt that raised it. The
``category`` attribute separates configuration problems (a bad algorithm
name) from broken artifacts and from failures inside the KEM primitive, so
callers can pick an exit code or decide to restart from key generation.
"""


class KexError(RuntimeError):
    category = "error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message
        self.role: Optional[str] = None
        self.stage: Optional[str] = None

    def describe(self) -> str:
        """One-line diagnostic naming the role, the stage and the reason.

        ``stage`` is the last stage the role reached before the failure.
        """
        if self.role and self.stage:
            return f"{self.role} failed at {self.stage}: {self.message}"
        if self.role:
            return f"{self.role} failed: {self.message}"
        return self.message


class ConfigurationError(KexError):
    category = "configuration"


class UnsupportedAlgorithm(ConfigurationError):
    def __init__(self, algorithm: str, reason: str = "") -> None:
        message = f"unsupported KEM algorithm {algorithm!r}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)
        self.algorithm = algorithm


class ResourceError(KexError):
    category = "resource"


class AllocationFailure(ResourceError):
    pass


class ContextAcquisitionFailed(ResourceError):
    """The backend accepted the algorithm but could not set up a context."""


class ArtifactError(KexError):
    category = "artifact"

    def __init__(self, name: str, message: str) -> None:
        super().__init__(message)
        self.name = name


class ArtifactNotFound(ArtifactError):
    def __init__(self, name: str, location: str = "") -> None:
        where = f" at {location}" if location else ""
        super().__init__(name, f"artifact {name!r} not found{where}")


class ArtifactIOError(ArtifactError):
    pass


class ArtifactLengthMismatch(ArtifactError):
    def __init__(self, name: str, expected: int, actual: int) -> None:
        super().__init__(
            name,
            f"artifact {name!r} has {actual} bytes, expected {expected}",
        )
        self.expected = expected
        self.actual = actual

    @classmethod
    def from_mismatch(cls, exc: "ArtifactLengthMismatch") -> "ArtifactLengthMismatch":
        return cls(exc.name, exc.expected, exc.actual)


class InvalidPublicKeyLength(ArtifactLengthMismatch):
    pass


class InvalidSecretKeyLength(ArtifactLengthMismatch):
    pass


class InvalidCiphertextLength(ArtifactLengthMismatch):
    pass


class PrimitiveError(KexError):
    category = "primitive"


class KeypairGenerationFailed(PrimitiveError):
    pass


class EncapsulationFailed(PrimitiveError):
    pass


class DecapsulationFailed(PrimitiveError):
    pass


EXIT_CODES = {
    "configuration": 2,
    "artifact": 3,
    "primitive": 4,
    "resource": 5,
}


def exit_code_for(exc: KexError) -> int:
    return EXIT_CODES.get(exc.category, 1)
