"""Signer bridge — Ed25519 detached signatures over artifact blobs via PyNaCl.

Keys and signatures are hex encoded so they fit in the YAML settings file
and the manifest:

- private key (seed): 32 bytes = 64 hex chars
- public key: 32 bytes = 64 hex chars
- signature: 64 bytes = 128 hex chars

Verification fails closed: malformed keys, malformed signatures and
unreadable blobs all report ``False`` rather than raising.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol, runtime_checkable

import nacl.signing
from nacl.exceptions import BadSignatureError, CryptoError

from pupistry.core.errors import ConfigurationError, SigningError

logger = logging.getLogger(__name__)


@runtime_checkable
class Signer(Protocol):
    """Produces and checks detached signatures for artifact blobs."""

    def sign(self, blob_path: Path, version: str) -> str:
        """Sign the blob for *version* and return a signature reference."""
        ...

    def verify(self, blob_path: Path, signature: str) -> bool:
        """Return ``True`` only if *signature* is valid for the blob."""
        ...


def generate_keypair() -> tuple[str, str]:
    """Generate a signing key-pair.

    Returns
    -------
    tuple[str, str]
        ``(private_key_hex, public_key_hex)``
    """
    sk = nacl.signing.SigningKey.generate()
    return sk.encode().hex(), sk.verify_key.encode().hex()


class Ed25519Signer:
    """Signs with a hex seed and verifies with a hex public key.

    Build machines hold both keys; agents only need ``public_key``.

    Parameters
    ----------
    private_key:
        Hex-encoded Ed25519 seed, or ``None`` on verify-only machines.
    public_key:
        Hex-encoded Ed25519 public key.  Derived from ``private_key`` when
        not given.
    """

    def __init__(self, private_key: str | None = None, public_key: str | None = None) -> None:
        self._signing_key: nacl.signing.SigningKey | None = None
        if private_key:
            try:
                self._signing_key = nacl.signing.SigningKey(bytes.fromhex(private_key))
            except (ValueError, TypeError, CryptoError) as exc:
                raise ConfigurationError(f"general.signing_key is not a valid Ed25519 seed: {exc}") from exc
            if not public_key:
                public_key = self._signing_key.verify_key.encode().hex()
        self._public_key = public_key or ""

    @property
    def public_key(self) -> str:
        return self._public_key

    def sign(self, blob_path: Path, version: str) -> str:
        if self._signing_key is None:
            raise SigningError(
                "No signing key configured (general.signing_key); unable to sign "
                f"artifact {version}",
                step="sign",
            )
        try:
            data = blob_path.read_bytes()
        except OSError as exc:
            raise SigningError(f"Unable to read {blob_path}: {exc}", step="sign") from exc
        logger.debug("Signing artifact %s", version)
        return self._signing_key.sign(data).signature.hex()

    def verify(self, blob_path: Path, signature: str) -> bool:
        if not signature or not self._public_key:
            return False
        try:
            verify_key = nacl.signing.VerifyKey(bytes.fromhex(self._public_key))
            verify_key.verify(blob_path.read_bytes(), bytes.fromhex(signature))
        except (BadSignatureError, CryptoError, ValueError, TypeError, OSError) as exc:
            logger.debug("Signature verification failed for %s: %s", blob_path, exc)
            return False
        return True
