"""Ed25519 key management and manifest signing.

The private key is the sole root of trust for an author identity. It is
generated once by explicit user action, stored in a mode-0600 key file, and
never logged, echoed, or written into an artifact or error message. Only the
public half leaves the device.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
import threading
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from inkproof.canonical import hash_bytes
from inkproof.determinism import stable_timestamp
from inkproof.provenance.artifact import (
    ALG_ED25519,
    KEY_SIZE,
    b64decode,
    b64encode,
    verify_signature,
)
from inkproof.provenance.manifest import ProvenanceManifest

logger = logging.getLogger(__name__)


class KeyGenerationError(Exception):
    """Key generation failed. No key was produced."""
    pass


class KeyNotFound(Exception):
    """No key file at the configured location."""
    pass


class SigningError(Exception):
    """Error during signing. The export must not proceed."""
    pass


def key_fingerprint(public_key: bytes) -> str:
    """Short identifier for a public key, safe to log."""
    return hash_bytes(public_key)[:16]


@dataclass(frozen=True)
class KeyPair:
    """Raw Ed25519 key halves. The private half is excluded from repr."""

    public_key: bytes
    private_key: bytes = field(repr=False)

    def __post_init__(self) -> None:
        if len(self.public_key) != KEY_SIZE or len(self.private_key) != KEY_SIZE:
            raise ValueError(f"Ed25519 keys must be {KEY_SIZE} bytes")

    @property
    def public_key_b64(self) -> str:
        return b64encode(self.public_key)

    @property
    def fingerprint(self) -> str:
        return key_fingerprint(self.public_key)


def generate_keypair() -> KeyPair:
    """Generate a new Ed25519 key pair from system randomness.

    Raises:
        KeyGenerationError: If the RNG or the backend fails
    """
    try:
        private = Ed25519PrivateKey.generate()
        private_bytes = private.private_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PrivateFormat.Raw,
            encryption_algorithm=serialization.NoEncryption(),
        )
        public_bytes = private.public_key().public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        )
    except Exception as e:
        raise KeyGenerationError(f"Key generation failed: {type(e).__name__}") from None

    keypair = KeyPair(public_key=public_bytes, private_key=private_bytes)
    logger.info("generated signing key %s", keypair.fingerprint)
    return keypair


class KeyStore:
    """Key file on local storage.

    Format: JSON with base64 raw keys. Written with mode 0600 and never
    overwritten unless asked.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()

    def exists(self) -> bool:
        return self.path.exists()

    def persist(self, keypair: KeyPair, overwrite: bool = False) -> Path:
        """Write the key pair.

        Raises:
            FileExistsError: If a key file exists and ``overwrite`` is False
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps({
            "algorithm": ALG_ED25519,
            "public_key": b64encode(keypair.public_key),
            "private_key": b64encode(keypair.private_key),
        }, indent=2, sort_keys=True)

        flags = os.O_WRONLY | os.O_CREAT | (os.O_TRUNC if overwrite else os.O_EXCL)
        fd = os.open(self.path, flags, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            # O_CREAT leaves the mode of an existing file alone
            os.chmod(self.path, 0o600)
            f.write(payload)

        logger.info("stored signing key %s at %s", keypair.fingerprint, self.path)
        return self.path

    def load(self) -> KeyPair:
        """Read the key pair.

        Raises:
            KeyNotFound: If the key file does not exist
            SigningError: If the key file is unreadable or corrupt
        """
        if not self.path.exists():
            raise KeyNotFound(f"No signing key at {self.path}")
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
            return KeyPair(
                public_key=b64decode(data["public_key"]),
                private_key=b64decode(data["private_key"]),
            )
        except (OSError, ValueError, KeyError, TypeError):
            # No key material in the message
            raise SigningError(f"Corrupt or unreadable key file: {self.path}") from None

    @contextlib.contextmanager
    def acquire(self) -> Iterator[KeyPair]:
        """Scoped, exclusive access to the key pair."""
        with self._lock:
            yield self.load()


@dataclass
class SignedManifest:
    """A manifest plus its detached signature, as embedded in an artifact."""

    manifest: dict[str, Any]
    signature: bytes
    public_key: bytes
    signed_at: str
    algorithm: str = ALG_ED25519

    def to_dict(self) -> dict[str, Any]:
        return {
            "manifest": self.manifest,
            "signature": b64encode(self.signature),
            "public_key": b64encode(self.public_key),
            "signed_at": self.signed_at,
            "algorithm": self.algorithm,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2, sort_keys=True, ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SignedManifest:
        return cls(
            manifest=data["manifest"],
            signature=b64decode(data["signature"]),
            public_key=b64decode(data["public_key"]),
            signed_at=data["signed_at"],
            algorithm=data.get("algorithm", ALG_ED25519),
        )


class Signer:
    """Signs canonical manifests with one author key.

    Only one signing operation runs at a time per signer.
    """

    def __init__(self, keypair: KeyPair) -> None:
        self._keypair = keypair
        self._lock = threading.Lock()

    @classmethod
    def from_store(cls, store: KeyStore) -> Signer:
        with store.acquire() as keypair:
            return cls(keypair)

    @property
    def public_key(self) -> bytes:
        return self._keypair.public_key

    def sign_bytes(self, message: bytes) -> bytes:
        """Raw Ed25519 signature over ``message``.

        Raises:
            SigningError: If the key is unusable or signing fails
        """
        with self._lock:
            try:
                key = Ed25519PrivateKey.from_private_bytes(self._keypair.private_key)
                signature = key.sign(message)
            except Exception as e:
                raise SigningError(f"Signing failed: {type(e).__name__}") from None

        if not verify_signature(message, signature, self._keypair.public_key):
            raise SigningError("Key pair mismatch: signature does not verify under the public key")
        return signature

    def sign(self, manifest: ProvenanceManifest) -> SignedManifest:
        """Sign the canonical serialization of ``manifest``."""
        try:
            payload = manifest.to_dict()
            message = manifest.canonical_bytes()
        except (TypeError, ValueError) as e:
            raise SigningError(f"Manifest cannot be canonicalized: {e}") from e

        signature = self.sign_bytes(message)
        logger.info(
            "signed manifest %s with key %s",
            hash_bytes(message)[:16], self._keypair.fingerprint,
        )
        return SignedManifest(
            manifest=payload,
            signature=signature,
            public_key=self._keypair.public_key,
            signed_at=stable_timestamp(),
        )
