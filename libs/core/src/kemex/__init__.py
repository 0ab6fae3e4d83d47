
from .interfaces import KEM, KemLengths
from .registry import registry
from .context import KemContext
from .sensitive import SecretBuffer
from .params import DEFAULT_ALGORITHM, REFERENCE_ALGORITHMS, reference_lengths
from .transport import (
    ARTIFACTS,
    CIPHERTEXT,
    PUBLIC,
    SECRET,
    ArtifactStore,
    FileArtifactStore,
    MemoryArtifactStore,
)
from .roles import (
    Decapsulator,
    Encapsulator,
    ExchangeReport,
    KeyGenerator,
    KeyPairSummary,
    Stage,
    run_exchange,
)
from .errors import (
    AllocationFailure,
    ArtifactError,
    ArtifactIOError,
    ArtifactLengthMismatch,
    ArtifactNotFound,
    ConfigurationError,
    ContextAcquisitionFailed,
    DecapsulationFailed,
    EncapsulationFailed,
    InvalidCiphertextLength,
    InvalidPublicKeyLength,
    InvalidSecretKeyLength,
    KexError,
    KeypairGenerationFailed,
    PrimitiveError,
    ResourceError,
    UnsupportedAlgorithm,
)

__all__ = [
    "KEM",
    "KemLengths",
    "registry",
    "KemContext",
    "SecretBuffer",
    "DEFAULT_ALGORITHM",
    "REFERENCE_ALGORITHMS",
    "reference_lengths",
    "ARTIFACTS",
    "CIPHERTEXT",
    "PUBLIC",
    "SECRET",
    "ArtifactStore",
    "FileArtifactStore",
    "MemoryArtifactStore",
    "Decapsulator",
    "Encapsulator",
    "ExchangeReport",
    "KeyGenerator",
    "KeyPairSummary",
    "Stage",
    "run_exchange",
    "AllocationFailure",
    "ArtifactError",
    "ArtifactIOError",
    "ArtifactLengthMismatch",
    "ArtifactNotFound",
    "ConfigurationError",
    "ContextAcquisitionFailed",
    "DecapsulationFailed",
    "EncapsulationFailed",
    "InvalidCiphertextLength",
    "InvalidPublicKeyLength",
    "InvalidSecretKeyLength",
    "KexError",
    "KeypairGenerationFailed",
    "PrimitiveError",
    "ResourceError",
    "UnsupportedAlgorithm",
]
