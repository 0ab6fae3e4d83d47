"""Named-artifact stores used as the channel between the parties.

The exchange only needs ``store(name, data)`` and
``load(name, expected_length)``. ``FileArtifactStore`` keeps one binary file
per artifact, like the reference programs did. ``MemoryArtifactStore`` backs
tests and one-process exchanges.
"""
from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Protocol, Union

from .errors import ArtifactIOError, ArtifactLengthMismatch, ArtifactNotFound
from .sensitive import BytesLike

log = logging.getLogger(__name__)

PUBLIC = "public"
SECRET = "secret"
CIPHERTEXT = "ciphertext"

ARTIFACTS = (PUBLIC, SECRET, CIPHERTEXT)

DEFAULT_FILENAMES: Dict[str, str] = {
    PUBLIC: "public_key.bin",
    SECRET: "secret_key.bin",
    CIPHERTEXT: "ciphertext.bin",
}

# Artifacts that only the key owner may read.
PRIVATE_ARTIFACTS = frozenset({SECRET})


class ArtifactStore(Protocol):
    def store(self, name: str, data: BytesLike) -> None: ...
    def load(self, name: str, expected_length: int) -> bytearray: ...
    def remove(self, name: str) -> None: ...


def _wipe(buf: bytearray) -> None:
    buf[:] = bytes(len(buf))


def _write_atomic(target: Path, data: BytesLike, mode: int) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".tmp", dir=str(target.parent))
    try:
        with os.fdopen(fd, "wb") as fh:
            os.chmod(tmp_name, mode)
            fh.write(data)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp_name, target)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise


class FileArtifactStore:
    def __init__(
        self,
        directory: Union[str, Path],
        filenames: Optional[Mapping[str, str]] = None,
        private: Iterable[str] = PRIVATE_ARTIFACTS,
    ) -> None:
        self.directory = Path(directory)
        self.filenames = dict(DEFAULT_FILENAMES)
        if filenames:
            self.filenames.update(filenames)
        self.private = frozenset(private)

    def path_for(self, name: str) -> Path:
        return self.directory / self.filenames.get(name, f"{name}.bin")

    def store(self, name: str, data: BytesLike) -> None:
        """Write ``data`` atomically: readers see the old file or the whole new one."""
        target = self.path_for(name)
        try:
            _write_atomic(target, data, 0o600 if name in self.private else 0o644)
        except OSError as exc:
            raise ArtifactIOError(name, f"cannot write artifact {name!r} to {target}: {exc}") from exc
        log.debug("stored artifact %s (%d bytes) at %s", name, len(data), target)

    def load(self, name: str, expected_length: int) -> bytearray:
        path = self.path_for(name)
        try:
            fh = open(path, "rb")
        except FileNotFoundError as exc:
            raise ArtifactNotFound(name, str(path)) from exc
        except OSError as exc:
            raise ArtifactIOError(name, f"cannot read artifact {name!r} from {path}: {exc}") from exc
        with fh:
            size = os.fstat(fh.fileno()).st_size
            if size != expected_length:
                raise ArtifactLengthMismatch(name, expected_length, size)
            buf = bytearray(expected_length)
            n = fh.readinto(buf) or 0
        if n != expected_length:
            # File shrank between fstat and read.
            _wipe(buf)
            raise ArtifactLengthMismatch(name, expected_length, n)
        log.debug("loaded artifact %s (%d bytes) from %s", name, n, path)
        return buf

    def exists(self, name: str) -> bool:
        return self.path_for(name).is_file()

    def remove(self, name: str) -> None:
        path = self.path_for(name)
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as exc:
            raise ArtifactIOError(name, f"cannot remove artifact {name!r} at {path}: {exc}") from exc

    def __repr__(self) -> str:
        return f"FileArtifactStore({str(self.directory)!r})"


class MemoryArtifactStore:
    def __init__(self) -> None:
        self._items: Dict[str, bytearray] = {}

    def store(self, name: str, data: BytesLike) -> None:
        previous = self._items.get(name)
        self._items[name] = bytearray(data)
        if previous is not None:
            _wipe(previous)
        log.debug("stored artifact %s (%d bytes) in memory", name, len(data))

    def load(self, name: str, expected_length: int) -> bytearray:
        try:
            data = self._items[name]
        except KeyError:
            raise ArtifactNotFound(name, "memory store") from None
        if len(data) != expected_length:
            raise ArtifactLengthMismatch(name, expected_length, len(data))
        return bytearray(data)

    def exists(self, name: str) -> bool:
        return name in self._items

    def remove(self, name: str) -> None:
        buf = self._items.pop(name, None)
        if buf is not None:
            _wipe(buf)

    def names(self) -> List[str]:
        return sorted(self._items)

    def raw(self, name: str) -> bytes:
        """Snapshot of the stored bytes, for inspection."""
        return bytes(self._items[name])

    def clear(self) -> None:
        for buf in self._items.values():
            _wipe(buf)
        self._items.clear()

    def __contains__(self, name: object) -> bool:
        return name in self._items
