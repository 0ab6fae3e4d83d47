"""The three roles of the key exchange.

Each role runs one linear pipeline exactly once:

    init -> context_acquired -> inputs_loaded -> primitive_invoked
         -> outputs_persisted -> done

and moves to ``failed`` from wherever an error interrupts it. Errors are
``kemex.errors.KexError`` subclasses tagged with the role and the last stage
reached before the failure: a missing ``public`` artifact is reported at
``context_acquired`` because loading inputs is the step after it. They
propagate to the caller untouched otherwise.

Only ``public`` and ``ciphertext`` are written to the channel store. The
secret key lives in the keyring store, which defaults to the channel store
to match the single-directory layout of the reference programs.
"""
from __future__ import annotations

import enum
import logging
from contextlib import ExitStack
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Type

from .context import KemContext
from .errors import (
    ArtifactLengthMismatch,
    InvalidCiphertextLength,
    InvalidPublicKeyLength,
    InvalidSecretKeyLength,
    KexError,
)
from .interfaces import KemLengths
from .params import DEFAULT_ALGORITHM
from .sensitive import SecretBuffer
from .transport import CIPHERTEXT, PUBLIC, SECRET, ArtifactStore, MemoryArtifactStore

log = logging.getLogger(__name__)


class Stage(str, enum.Enum):
    INIT = "init"
    CONTEXT_ACQUIRED = "context_acquired"
    INPUTS_LOADED = "inputs_loaded"
    PRIMITIVE_INVOKED = "primitive_invoked"
    OUTPUTS_PERSISTED = "outputs_persisted"
    DONE = "done"
    FAILED = "failed"


TERMINAL_STAGES = frozenset({Stage.DONE, Stage.FAILED})


@dataclass(frozen=True)
class KeyPairSummary:
    algorithm: str
    public_key_len: int
    secret_key_len: int


@dataclass(frozen=True)
class ExchangeReport:
    algorithm: str
    lengths: KemLengths
    matched: bool

    def to_dict(self) -> Dict[str, Any]:
        return {"algorithm": self.algorithm, "lengths": self.lengths.to_dict(), "matched": self.matched}


class _Role:
    role = "role"

    def __init__(
        self,
        algorithm: str = DEFAULT_ALGORITHM,
        channel: Optional[ArtifactStore] = None,
        keyring: Optional[ArtifactStore] = None,
        backend: Optional[str] = None,
    ) -> None:
        self.algorithm = algorithm
        self.channel: ArtifactStore = channel if channel is not None else MemoryArtifactStore()
        self.keyring: ArtifactStore = keyring if keyring is not None else self.channel
        self.backend = backend
        self.stage = Stage.INIT
        self.history: List[Stage] = [Stage.INIT]
        self.failure: Optional[Exception] = None
        self.lengths: Optional[KemLengths] = None

    @property
    def finished(self) -> bool:
        return self.stage in TERMINAL_STAGES

    def _advance(self, stage: Stage) -> None:
        log.debug("%s: %s -> %s", self.role, self.stage.value, stage.value)
        self.stage = stage
        self.history.append(stage)

    def run(self) -> Any:
        if self.stage is not Stage.INIT:
            raise RuntimeError(f"{self.role} already ran (stage {self.stage.value}); create a new instance")
        try:
            result = self._execute()
        except Exception as exc:
            if isinstance(exc, KexError):
                exc.role = exc.role or self.role
                exc.stage = exc.stage or self.stage.value
                log.debug("%s failed at %s: %s", self.role, exc.stage, exc.message)
            self.failure = exc
            self._advance(Stage.FAILED)
            raise
        self._advance(Stage.DONE)
        return result

    def _execute(self) -> Any:
        raise NotImplementedError

    def _acquire(self, stack: ExitStack) -> KemContext:
        ctx = stack.enter_context(KemContext.new(self.algorithm, self.backend))
        self.lengths = ctx.lengths
        self._advance(Stage.CONTEXT_ACQUIRED)
        return ctx

    @staticmethod
    def _load(
        store: ArtifactStore,
        name: str,
        expected: int,
        error: Type[ArtifactLengthMismatch],
    ) -> bytearray:
        try:
            return store.load(name, expected)
        except ArtifactLengthMismatch as exc:
            raise error.from_mismatch(exc) from exc


class KeyGenerator(_Role):
    """Alice, step one: create the key pair and publish the public half."""

    role = "keygen"

    def _execute(self) -> KeyPairSummary:
        with ExitStack() as stack:
            ctx = self._acquire(stack)
            self._advance(Stage.INPUTS_LOADED)
            public_key, secret_key = ctx.keypair()
            stack.enter_context(secret_key)
            self._advance(Stage.PRIMITIVE_INVOKED)
            # Secret first: a public key is never published without its secret half.
            with secret_key.view() as view:
                self.keyring.store(SECRET, view)
            try:
                self.channel.store(PUBLIC, public_key)
            except Exception:
                # Never leave the new secret beside a previous public key.
                self.keyring.remove(SECRET)
                raise
            self._advance(Stage.OUTPUTS_PERSISTED)
            log.info("generated %s key pair (public %d bytes, secret %d bytes)",
                     ctx.algorithm, len(public_key), len(secret_key))
            return KeyPairSummary(ctx.algorithm, len(public_key), len(secret_key))


class Encapsulator(_Role):
    """Bob: encapsulate a fresh shared secret under Alice's public key.

    ``run()`` returns the sender copy of the shared secret as a
    ``SecretBuffer``; the caller owns it and should use it in a ``with``
    block so it is wiped.
    """

    role = "encapsulate"

    def _execute(self) -> SecretBuffer:
        with ExitStack() as stack:
            ctx = self._acquire(stack)
            public_key = self._load(self.channel, PUBLIC, ctx.length_public_key, InvalidPublicKeyLength)
            self._advance(Stage.INPUTS_LOADED)
            ciphertext, shared_secret = ctx.encapsulate(public_key)
            self._advance(Stage.PRIMITIVE_INVOKED)
            try:
                self.channel.store(CIPHERTEXT, ciphertext)
            except Exception:
                shared_secret.wipe()
                raise
            self._advance(Stage.OUTPUTS_PERSISTED)
            log.info("encapsulated %s shared secret (ciphertext %d bytes)", ctx.algorithm, len(ciphertext))
            return shared_secret


class Decapsulator(_Role):
    """Alice, step two: recover the shared secret from Bob's ciphertext."""

    role = "decapsulate"

    def _execute(self) -> SecretBuffer:
        with ExitStack() as stack:
            ctx = self._acquire(stack)
            secret_key = stack.enter_context(SecretBuffer(
                self._load(self.keyring, SECRET, ctx.length_secret_key, InvalidSecretKeyLength)
            ))
            ciphertext = self._load(self.channel, CIPHERTEXT, ctx.length_ciphertext, InvalidCiphertextLength)
            self._advance(Stage.INPUTS_LOADED)
            shared_secret = ctx.decapsulate(secret_key, ciphertext)
            self._advance(Stage.PRIMITIVE_INVOKED)
            self._advance(Stage.OUTPUTS_PERSISTED)
            log.info("decapsulated %s shared secret", ctx.algorithm)
            return shared_secret


def run_exchange(
    algorithm: str = DEFAULT_ALGORITHM,
    channel: Optional[ArtifactStore] = None,
    keyring: Optional[ArtifactStore] = None,
    backend: Optional[str] = None,
) -> ExchangeReport:
    """Run keygen, encapsulate and decapsulate in order and compare the secrets.

    Stores created here are wiped before returning, on success or failure.
    """
    owned: List[MemoryArtifactStore] = []
    if channel is None:
        channel = MemoryArtifactStore()
        owned.append(channel)
    if keyring is None:
        keyring = channel
    try:
        summary = KeyGenerator(algorithm, channel, keyring, backend).run()
        with Encapsulator(algorithm, channel, keyring, backend).run() as sent:
            decapsulator = Decapsulator(algorithm, channel, keyring, backend)
            with decapsulator.run() as received:
                matched = sent.equals(received)
    finally:
        for store in owned:
            store.clear()
    log.info("%s exchange %s", summary.algorithm, "matched" if matched else "MISMATCHED")
    return ExchangeReport(summary.algorithm, decapsulator.lengths, matched)
