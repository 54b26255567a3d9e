"""Tests for key management and signing."""

from __future__ import annotations

import json
import os
import stat
from pathlib import Path

import pytest

from inkproof.attribution import AttributionStats
from inkproof.provenance.artifact import SIGNATURE_SIZE, verify_signature
from inkproof.provenance.manifest import build_manifest
from inkproof.provenance.signing import (
    KeyNotFound,
    KeyPair,
    KeyStore,
    SignedManifest,
    Signer,
    SigningError,
    generate_keypair,
)


class TestKeyPair:
    """Test key generation."""

    def test_generate(self):
        """Keys are 32 raw bytes and distinct per call."""
        first = generate_keypair()
        second = generate_keypair()
        assert len(first.public_key) == 32
        assert len(first.private_key) == 32
        assert first.public_key != second.public_key

    def test_repr_hides_private_key(self):
        """The private key never appears in repr."""
        keypair = generate_keypair()
        assert keypair.private_key.hex() not in repr(keypair)
        assert "private_key" not in repr(keypair)

    def test_wrong_length(self):
        """Keys of the wrong size are rejected."""
        with pytest.raises(ValueError):
            KeyPair(public_key=b"short", private_key=b"\x00" * 32)

    def test_fingerprint(self):
        """The fingerprint is a short hex id."""
        assert len(generate_keypair().fingerprint) == 16


class TestKeyStore:
    """Test KeyStore."""

    def test_persist_and_load(self, tmp_path: Path):
        """A stored key loads back identically."""
        store = KeyStore(tmp_path / "keys" / "signing_key.json")
        keypair = generate_keypair()
        store.persist(keypair)

        assert store.exists()
        assert store.load() == keypair

    @pytest.mark.skipif(os.name != "posix", reason="POSIX permissions")
    def test_file_mode(self, tmp_path: Path):
        """The key file is readable by its owner only."""
        store = KeyStore(tmp_path / "signing_key.json")
        store.persist(generate_keypair())
        assert stat.S_IMODE(store.path.stat().st_mode) == 0o600

    @pytest.mark.skipif(os.name != "posix", reason="POSIX permissions")
    def test_overwrite_tightens_mode(self, tmp_path: Path):
        """Replacing a world-readable file leaves it owner-only."""
        path = tmp_path / "signing_key.json"
        path.write_text("{}")
        os.chmod(path, 0o644)

        store = KeyStore(path)
        keypair = generate_keypair()
        store.persist(keypair, overwrite=True)

        assert stat.S_IMODE(path.stat().st_mode) == 0o600
        assert store.load() == keypair

    def test_no_overwrite(self, tmp_path: Path):
        """An existing key is not replaced unless asked."""
        store = KeyStore(tmp_path / "signing_key.json")
        original = generate_keypair()
        store.persist(original)

        with pytest.raises(FileExistsError):
            store.persist(generate_keypair())
        assert store.load() == original

        replacement = generate_keypair()
        store.persist(replacement, overwrite=True)
        assert store.load() == replacement

    def test_missing_key(self, tmp_path: Path):
        """Loading a missing key raises KeyNotFound."""
        with pytest.raises(KeyNotFound):
            KeyStore(tmp_path / "missing.json").load()

    def test_corrupt_key(self, tmp_path: Path):
        """A corrupt key file raises SigningError without its contents."""
        path = tmp_path / "signing_key.json"
        path.write_text(json.dumps({"public_key": "AAAA", "private_key": "c2VjcmV0"}))
        with pytest.raises(SigningError) as excinfo:
            KeyStore(path).load()
        assert "c2VjcmV0" not in str(excinfo.value)

    def test_acquire(self, tmp_path: Path):
        """acquire yields the stored key pair."""
        store = KeyStore(tmp_path / "signing_key.json")
        keypair = generate_keypair()
        store.persist(keypair)
        with store.acquire() as loaded:
            assert loaded == keypair


class TestSigner:
    """Test Signer."""

    def test_sign_bytes(self):
        """Signatures are 64 bytes and verify under the public key."""
        signer = Signer(generate_keypair())
        signature = signer.sign_bytes(b"message")
        assert len(signature) == SIGNATURE_SIZE
        assert verify_signature(b"message", signature, signer.public_key)
        assert not verify_signature(b"messagE", signature, signer.public_key)

    def test_deterministic(self):
        """Ed25519 signs the same message identically."""
        signer = Signer(generate_keypair())
        assert signer.sign_bytes(b"m") == signer.sign_bytes(b"m")

    def test_sign_manifest(self):
        """The signature covers the canonical manifest bytes."""
        keypair = generate_keypair()
        manifest = build_manifest(AttributionStats(human_chars=5), [], "Hello")
        signed = Signer(keypair).sign(manifest)

        assert signed.public_key == keypair.public_key
        assert signed.manifest == manifest.to_dict()
        assert verify_signature(manifest.canonical_bytes(), signed.signature, keypair.public_key)

    def test_mismatched_keypair(self):
        """A pair whose halves do not match cannot sign."""
        keypair = KeyPair(
            public_key=generate_keypair().public_key,
            private_key=generate_keypair().private_key,
        )
        with pytest.raises(SigningError, match="mismatch"):
            Signer(keypair).sign_bytes(b"message")

    def test_from_store(self, tmp_path: Path):
        """A signer can be built from a key store."""
        store = KeyStore(tmp_path / "signing_key.json")
        keypair = generate_keypair()
        store.persist(keypair)
        assert Signer.from_store(store).public_key == keypair.public_key

    def test_from_store_missing(self, tmp_path: Path):
        """Without a key there is no signer."""
        with pytest.raises(KeyNotFound):
            Signer.from_store(KeyStore(tmp_path / "missing.json"))


class TestSignedManifest:
    """Test SignedManifest serialization."""

    def test_dict_round_trip(self):
        """to_dict encodes keys as base64 and from_dict decodes them."""
        keypair = generate_keypair()
        signed = Signer(keypair).sign(build_manifest(AttributionStats(), [], ""))
        data = signed.to_dict()

        assert data["algorithm"] == "Ed25519"
        assert isinstance(data["signature"], str)
        assert SignedManifest.from_dict(data) == signed
        assert json.loads(signed.to_json()) == data
