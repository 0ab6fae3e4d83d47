
from __future__ import annotations
import importlib
import importlib.util
import logging
import sys
from pathlib import Path
from typing import NoReturn, Optional, Tuple

import typer

from kemex import (
    DEFAULT_ALGORITHM,
    REFERENCE_ALGORITHMS,
    Decapsulator,
    Encapsulator,
    FileArtifactStore,
    KeyGenerator,
    registry,
    run_exchange,
)
from kemex.errors import KexError, exit_code_for
from kemex.params import list_params
from kemex.transport import CIPHERTEXT, PUBLIC, SECRET

app = typer.Typer(add_completion=False, help="Post-quantum KEM key exchange (Alice/Bob demo)")

log = logging.getLogger(__name__)

_HERE = Path(__file__).resolve()

try:
    _PROJECT_ROOT = next(p for p in _HERE.parents if (p / "libs").exists())
except StopIteration:
    _PROJECT_ROOT = _HERE.parents[0]

_ADAPTER_PATHS = {
    "kemex_liboqs": _PROJECT_ROOT / "libs" / "adapters" / "liboqs" / "src",
}


def _load_adapters() -> None:
    """Import optional backend packages so they register themselves."""
    for mod in _ADAPTER_PATHS:
        spec = importlib.util.find_spec(mod)
        if spec is None:
            candidate = _ADAPTER_PATHS.get(mod)
            if candidate and candidate.exists():
                if str(candidate) not in sys.path:
                    sys.path.append(str(candidate))
                spec = importlib.util.find_spec(mod)
        if spec is None:
            log.debug("adapter %s not installed", mod)
            continue
        try:
            importlib.import_module(mod)
        except Exception as e:
            log.warning("adapter import error %s: %s", mod, e)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _info(message: str) -> None:
    typer.echo(f"[INFO] {message}", err=True)


def _fail(exc: KexError) -> NoReturn:
    typer.echo(f"Error: {exc.describe()}", err=True)
    raise typer.Exit(code=exit_code_for(exc))


def _stores(directory: Path, keyring_dir: Optional[Path]) -> Tuple[FileArtifactStore, FileArtifactStore]:
    channel = FileArtifactStore(directory)
    keyring = FileArtifactStore(keyring_dir) if keyring_dir is not None else channel
    return channel, keyring


ALG_HELP = "KEM algorithm identifier, e.g. " + " or ".join(REFERENCE_ALGORITHMS) + "."


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging on stderr."),
) -> None:
    _configure_logging(verbose)


@app.command()
def keygen(
    alg: str = typer.Option(DEFAULT_ALGORITHM, "--alg", envvar="KEMEX_ALG", help=ALG_HELP),
    directory: Path = typer.Option(Path("."), "--dir", "-d", help="Directory holding the exchanged artifacts."),
    keyring_dir: Optional[Path] = typer.Option(None, "--keyring-dir", help="Where to keep the secret key (default: --dir)."),
    backend: Optional[str] = typer.Option(None, "--backend", help="Registered KEM backend to use."),
) -> None:
    """Alice: generate a key pair, write the secret and public key artifacts."""
    _load_adapters()
    channel, keyring = _stores(directory, keyring_dir)
    typer.echo("=== Alice: Key Generation ===", err=True)
    _info(f"Using algorithm: {alg}")
    try:
        summary = KeyGenerator(alg, channel, keyring, backend).run()
    except KexError as exc:
        _fail(exc)
    _info(f"Generated keys: public {summary.public_key_len} bytes, secret {summary.secret_key_len} bytes")
    _info("Generated files:")
    typer.echo(f"  - {channel.path_for(PUBLIC)}", err=True)
    typer.echo(f"  - {keyring.path_for(SECRET)}", err=True)


@app.command()
def encapsulate(
    alg: str = typer.Option(DEFAULT_ALGORITHM, "--alg", envvar="KEMEX_ALG", help=ALG_HELP),
    directory: Path = typer.Option(Path("."), "--dir", "-d", help="Directory holding the exchanged artifacts."),
    backend: Optional[str] = typer.Option(None, "--backend", help="Registered KEM backend to use."),
) -> None:
    """Bob: encapsulate a shared secret under Alice's public key.

    Writes the ciphertext artifact and prints the shared secret (hex) on stdout.
    """
    _load_adapters()
    channel = FileArtifactStore(directory)
    typer.echo("=== Bob: Key Encapsulation ===", err=True)
    _info(f"Using algorithm: {alg}")
    try:
        shared_secret = Encapsulator(alg, channel, backend=backend).run()
    except KexError as exc:
        _fail(exc)
    with shared_secret:
        _info(f"Encapsulated ciphertext saved to '{channel.path_for(CIPHERTEXT)}'.")
        _info("Shared secret:")
        typer.echo(shared_secret.hex())


@app.command()
def decapsulate(
    alg: str = typer.Option(DEFAULT_ALGORITHM, "--alg", envvar="KEMEX_ALG", help=ALG_HELP),
    directory: Path = typer.Option(Path("."), "--dir", "-d", help="Directory holding the exchanged artifacts."),
    keyring_dir: Optional[Path] = typer.Option(None, "--keyring-dir", help="Where the secret key is kept (default: --dir)."),
    backend: Optional[str] = typer.Option(None, "--backend", help="Registered KEM backend to use."),
) -> None:
    """Alice: recover the shared secret from Bob's ciphertext and print it (hex)."""
    _load_adapters()
    channel, keyring = _stores(directory, keyring_dir)
    typer.echo("=== Alice: Key Decapsulation ===", err=True)
    _info(f"Using algorithm: {alg}")
    try:
        shared_secret = Decapsulator(alg, channel, keyring, backend).run()
    except KexError as exc:
        _fail(exc)
    with shared_secret:
        _info("Recovered shared secret:")
        typer.echo(shared_secret.hex())


@app.command()
def demo(
    alg: str = typer.Option(DEFAULT_ALGORITHM, "--alg", envvar="KEMEX_ALG", help=ALG_HELP),
    backend: Optional[str] = typer.Option(None, "--backend", help="Registered KEM backend to use."),
) -> None:
    """Run keygen, encapsulate and decapsulate in memory and compare the secrets."""
    _load_adapters()
    try:
        report = run_exchange(alg, backend=backend)
    except KexError as exc:
        _fail(exc)
    lengths = report.lengths
    typer.echo(
        f"[KEM] {report.algorithm}: pk={lengths.public_key} sk={lengths.secret_key} "
        f"ct={lengths.ciphertext} ss={lengths.shared_secret}"
    )
    if not report.matched:
        typer.echo(f"[KEM] {report.algorithm}: shared secrets DIFFER", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"[KEM] {report.algorithm}: shared secrets match")


@app.command("list-algos")
def list_algos() -> None:
    """List registered backends and the reference KEM parameter table."""
    _load_adapters()
    typer.echo("Backends:")
    for name in registry.list().keys():
        typer.echo(f"- {name}")
    typer.echo("Reference parameters (pk/sk/ct/ss bytes):")
    for p in list_params():
        n = p.lengths
        typer.echo(f"- {p.mechanism} [{p.family}, cat {p.category_floor}]: "
                   f"{n.public_key}/{n.secret_key}/{n.ciphertext}/{n.shared_secret}")


@app.command(name="probe-oqs")
def probe_oqs() -> None:
    """Probe which KEM mechanisms your liboqs install accepts."""
    _load_adapters()
    try:
        from kemex_liboqs import kem_adapters
    except Exception as e:
        typer.echo(f"oqs import failed: {e}")
        raise typer.Exit(code=1)
    if not kem_adapters.AVAILABLE:
        typer.echo("oqs import failed: liboqs-python is not installed or liboqs could not be loaded")
        raise typer.Exit(code=1)
    found = kem_adapters.probe([p.mechanism for p in list_params()])
    typer.echo("KEM mechanisms:")
    for n in dict.fromkeys(found):
        typer.echo(f"- {n}")


def app_main():
    app()

if __name__ == "__main__":
    app_main()
