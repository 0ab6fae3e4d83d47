from __future__ import annotations

import pytest

from kemex import (
    Decapsulator,
    Encapsulator,
    FileArtifactStore,
    KeyGenerator,
    MemoryArtifactStore,
    SecretBuffer,
    Stage,
    run_exchange,
)
from kemex import roles
from kemex.errors import (
    ArtifactIOError,
    ArtifactLengthMismatch,
    ArtifactNotFound,
    DecapsulationFailed,
    EncapsulationFailed,
    InvalidCiphertextLength,
    InvalidPublicKeyLength,
    InvalidSecretKeyLength,
    KeypairGenerationFailed,
    UnsupportedAlgorithm,
)
from kemex.transport import CIPHERTEXT, PUBLIC, SECRET

FULL_PATH = [
    Stage.INIT,
    Stage.CONTEXT_ACQUIRED,
    Stage.INPUTS_LOADED,
    Stage.PRIMITIVE_INVOKED,
    Stage.OUTPUTS_PERSISTED,
    Stage.DONE,
]


@pytest.mark.parametrize("alg", ["ML-KEM-512", "ML-KEM-1024"])
def test_three_role_round_trip(dummy_registry, alg):
    channel = MemoryArtifactStore()
    summary = KeyGenerator(alg, channel).run()
    assert summary.algorithm == alg

    with Encapsulator(alg, channel).run() as sent, Decapsulator(alg, channel).run() as received:
        assert received.equals(sent)
        assert len(sent) == len(received) == 32


def test_artifact_lengths_match_context(dummy_registry):
    channel = MemoryArtifactStore()
    summary = KeyGenerator("ML-KEM-512", channel).run()
    assert (summary.public_key_len, summary.secret_key_len) == (800, 1632)
    assert len(channel.raw(PUBLIC)) == 800
    assert len(channel.raw(SECRET)) == 1632
    with Encapsulator("ML-KEM-512", channel).run():
        pass
    assert len(channel.raw(CIPHERTEXT)) == 768


def test_every_role_walks_the_full_pipeline(dummy_registry):
    channel = MemoryArtifactStore()
    pipeline = [KeyGenerator("ML-KEM-512", channel), Encapsulator("ML-KEM-512", channel), Decapsulator("ML-KEM-512", channel)]
    for role in pipeline:
        result = role.run()
        if isinstance(result, SecretBuffer):
            result.wipe()
        assert role.history == FULL_PATH
        assert role.finished
        assert role.failure is None


def test_role_runs_only_once(dummy_registry):
    role = KeyGenerator("ML-KEM-512", MemoryArtifactStore())
    role.run()
    with pytest.raises(RuntimeError, match="already ran"):
        role.run()


def test_secret_stays_in_keyring_store(dummy_registry):
    channel = MemoryArtifactStore()
    keyring = MemoryArtifactStore()
    KeyGenerator("ML-KEM-512", channel, keyring).run()
    assert channel.names() == [PUBLIC]
    assert keyring.names() == [SECRET]

    with Encapsulator("ML-KEM-512", channel, keyring).run() as sent:
        assert channel.names() == [CIPHERTEXT, PUBLIC]
        with Decapsulator("ML-KEM-512", channel, keyring).run() as received:
            assert received.equals(sent)


def test_encapsulator_never_emits_secret_key(dummy_registry):
    channel = MemoryArtifactStore()
    KeyGenerator("ML-KEM-512", channel).run()
    secret = channel.raw(SECRET)
    with Encapsulator("ML-KEM-512", channel).run() as sent:
        dump = sent.hex()
    ciphertext = channel.raw(CIPHERTEXT)
    assert secret not in ciphertext
    assert secret.hex() not in dump
    assert secret[:32] not in ciphertext


def test_mismatched_keypair_gives_different_secret(dummy_registry):
    for _ in range(5):
        alice = MemoryArtifactStore()
        mallory = MemoryArtifactStore()
        KeyGenerator("ML-KEM-512", alice).run()
        KeyGenerator("ML-KEM-512", mallory).run()
        with Encapsulator("ML-KEM-512", alice).run() as sent:
            with Decapsulator("ML-KEM-512", channel=alice, keyring=mallory).run() as received:
                assert not received.equals(sent)


def test_short_public_key_fails_before_encapsulation(dummy_registry, recorder):
    channel = MemoryArtifactStore()
    channel.store(PUBLIC, b"\x00" * 799)
    role = Encapsulator("ML-KEM-512", channel)
    with pytest.raises(InvalidPublicKeyLength) as excinfo:
        role.run()
    err = excinfo.value
    assert isinstance(err, ArtifactLengthMismatch)
    assert (err.expected, err.actual) == (800, 799)
    assert err.role == "encapsulate"
    assert err.stage == "context_acquired"
    assert "encapsulate failed at context_acquired" in err.describe()
    assert role.stage is Stage.FAILED
    assert role.failure is err
    assert recorder.calls == []
    assert CIPHERTEXT not in channel
    assert recorder.opened == recorder.closed


def test_missing_public_key_is_reported(dummy_registry):
    with pytest.raises(ArtifactNotFound) as excinfo:
        Encapsulator("ML-KEM-512", MemoryArtifactStore()).run()
    # The stage is the last one reached; loading inputs comes right after it.
    assert excinfo.value.stage == "context_acquired"


def test_truncated_secret_key_fails_without_decapsulating(dummy_registry, recorder):
    channel = MemoryArtifactStore()
    KeyGenerator("ML-KEM-512", channel).run()
    with Encapsulator("ML-KEM-512", channel).run():
        pass
    channel.store(SECRET, channel.raw(SECRET)[:-1])
    with pytest.raises(InvalidSecretKeyLength):
        Decapsulator("ML-KEM-512", channel).run()
    assert "decapsulate" not in recorder.calls


def test_truncated_ciphertext_fails_and_wipes_loaded_secret(dummy_registry, recorder, monkeypatch):
    channel = MemoryArtifactStore()
    KeyGenerator("ML-KEM-512", channel).run()
    channel.store(CIPHERTEXT, b"\x00" * 700)

    created = []
    original_init = SecretBuffer.__init__

    def tracking_init(self, data):
        original_init(self, data)
        created.append(self)

    monkeypatch.setattr(SecretBuffer, "__init__", tracking_init)
    with pytest.raises(InvalidCiphertextLength):
        Decapsulator("ML-KEM-512", channel).run()
    assert created and all(buf.wiped for buf in created)
    assert "decapsulate" not in recorder.calls


def test_failed_ciphertext_write_wipes_shared_secret(dummy_registry, monkeypatch):
    channel = MemoryArtifactStore()
    KeyGenerator("ML-KEM-512", channel).run()

    created = []
    original_init = SecretBuffer.__init__

    def tracking_init(self, data):
        original_init(self, data)
        created.append(self)

    def refuse(name, data):
        raise ArtifactNotFound(name, "read-only channel")

    monkeypatch.setattr(SecretBuffer, "__init__", tracking_init)
    monkeypatch.setattr(channel, "store", refuse)
    with pytest.raises(ArtifactNotFound):
        Encapsulator("ML-KEM-512", channel).run()
    assert created and all(buf.wiped for buf in created)


def test_failed_encapsulation_publishes_nothing(monkeypatch, dummy_registry):
    channel = MemoryArtifactStore()
    KeyGenerator("ML-KEM-512", channel).run()

    def boom(self, public_key):
        raise RuntimeError("rng failure")

    from conftest import DummyKEM

    monkeypatch.setattr(DummyKEM, "encapsulate", boom)
    role = Encapsulator("ML-KEM-512", channel)
    with pytest.raises(EncapsulationFailed) as excinfo:
        role.run()
    assert excinfo.value.stage == "inputs_loaded"
    assert CIPHERTEXT not in channel
    assert role.history[-1] is Stage.FAILED


def test_unsupported_algorithm_fails_at_init(dummy_registry):
    role = KeyGenerator("FOO-KEM", MemoryArtifactStore())
    with pytest.raises(UnsupportedAlgorithm) as excinfo:
        role.run()
    assert excinfo.value.stage == "init"
    assert role.history == [Stage.INIT, Stage.FAILED]


def test_file_backed_exchange(dummy_registry, tmp_path):
    channel = FileArtifactStore(tmp_path / "channel")
    keyring = FileArtifactStore(tmp_path / "keyring")
    KeyGenerator("ML-KEM-512", channel, keyring).run()
    assert not (tmp_path / "channel" / "secret_key.bin").exists()
    assert (tmp_path / "keyring" / "secret_key.bin").stat().st_size == 1632
    with Encapsulator("ML-KEM-512", channel).run() as sent:
        with Decapsulator("ML-KEM-512", channel, keyring).run() as received:
            assert received.equals(sent)


def test_run_exchange_reports_match(dummy_registry, recorder):
    report = run_exchange("ML-KEM-1024")
    assert report.matched
    assert report.lengths.to_dict() == {
        "public_key": 1568,
        "secret_key": 3168,
        "ciphertext": 1568,
        "shared_secret": 32,
    }
    assert recorder.calls == ["keygen", "encapsulate", "decapsulate"]
    assert recorder.opened == recorder.closed == 3


def _track_secret_buffers(monkeypatch):
    created = []
    original_init = SecretBuffer.__init__

    def tracking_init(self, data):
        original_init(self, data)
        created.append(self)

    monkeypatch.setattr(SecretBuffer, "__init__", tracking_init)
    return created


def test_keypair_failure_is_tagged_and_stores_nothing(dummy_registry, monkeypatch):
    from conftest import DummyKEM

    def boom(self):
        raise RuntimeError("entropy source unavailable")

    monkeypatch.setattr(DummyKEM, "keygen", boom)
    channel = MemoryArtifactStore()
    role = KeyGenerator("ML-KEM-512", channel)
    with pytest.raises(KeypairGenerationFailed) as excinfo:
        role.run()
    err = excinfo.value
    assert err.role == "keygen"
    assert err.stage == "inputs_loaded"
    assert "keygen failed at inputs_loaded" in err.describe()
    assert isinstance(err.__cause__, RuntimeError)
    assert channel.names() == []
    assert role.history[-1] is Stage.FAILED


def test_failed_keyring_write_wipes_secret_and_publishes_nothing(dummy_registry, monkeypatch):
    channel = MemoryArtifactStore()
    keyring = MemoryArtifactStore()
    created = _track_secret_buffers(monkeypatch)

    def refuse(name, data):
        raise ArtifactIOError(name, "keyring is read-only")

    monkeypatch.setattr(keyring, "store", refuse)
    with pytest.raises(ArtifactIOError) as excinfo:
        KeyGenerator("ML-KEM-512", channel, keyring).run()
    assert excinfo.value.stage == "primitive_invoked"
    assert created and all(buf.wiped for buf in created)
    assert channel.names() == []


def test_failed_public_write_rolls_back_new_secret(dummy_registry, monkeypatch):
    channel = MemoryArtifactStore()
    KeyGenerator("ML-KEM-512", channel).run()
    old_public = channel.raw(PUBLIC)
    stored_buffers = []
    original_store = channel.store

    def store_except_public(name, data):
        if name == PUBLIC:
            raise ArtifactIOError(name, "channel is full")
        original_store(name, data)
        stored_buffers.append(channel._items[name])

    created = _track_secret_buffers(monkeypatch)
    monkeypatch.setattr(channel, "store", store_except_public)
    with pytest.raises(ArtifactIOError):
        KeyGenerator("ML-KEM-512", channel).run()

    # The old public key is not left beside a secret it does not belong to.
    assert channel.raw(PUBLIC) == old_public
    assert SECRET not in channel
    assert stored_buffers and not any(any(buf) for buf in stored_buffers)
    assert created and all(buf.wiped for buf in created)


def test_failed_public_write_removes_secret_file(dummy_registry, monkeypatch, tmp_path):
    channel = FileArtifactStore(tmp_path / "channel")
    keyring = FileArtifactStore(tmp_path / "keyring")

    def refuse(name, data):
        raise ArtifactIOError(name, "channel is full")

    monkeypatch.setattr(channel, "store", refuse)
    with pytest.raises(ArtifactIOError):
        KeyGenerator("ML-KEM-512", channel, keyring).run()
    assert not keyring.exists(SECRET)
    assert not channel.exists(PUBLIC)


class _TrackingStore(MemoryArtifactStore):
    made = []

    def __init__(self) -> None:
        super().__init__()
        self.buffers = []
        self.made.append(self)

    def store(self, name, data):
        super().store(name, data)
        self.buffers.append(self._items[name])


@pytest.fixture
def tracking_store(monkeypatch):
    _TrackingStore.made = []
    monkeypatch.setattr(roles, "MemoryArtifactStore", _TrackingStore)
    return _TrackingStore


def test_run_exchange_wipes_its_own_store(dummy_registry, tracking_store):
    report = run_exchange("ML-KEM-512")
    assert report.matched
    (store,) = tracking_store.made
    assert store.names() == []
    assert len(store.buffers) == 3
    assert not any(any(buf) for buf in store.buffers)


def test_run_exchange_wipes_its_own_store_on_failure(dummy_registry, tracking_store, monkeypatch):
    from conftest import DummyKEM

    def boom(self, secret_key, ciphertext):
        raise RuntimeError("decoder fault")

    monkeypatch.setattr(DummyKEM, "decapsulate", boom)
    with pytest.raises(DecapsulationFailed):
        run_exchange("ML-KEM-512")
    (store,) = tracking_store.made
    assert store.names() == []
    assert store.buffers and not any(any(buf) for buf in store.buffers)


def test_run_exchange_leaves_caller_stores_alone(dummy_registry):
    channel = MemoryArtifactStore()
    assert run_exchange("ML-KEM-512", channel=channel).matched
    assert channel.names() == [CIPHERTEXT, PUBLIC, SECRET]
