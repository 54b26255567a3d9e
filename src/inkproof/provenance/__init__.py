"""Provenance log, manifests, signing and verification.

Builds a deterministic manifest of who wrote what, signs it with an Ed25519
author key, and verifies exported artifacts independently of the authoring
session.
"""

from __future__ import annotations

from inkproof.provenance.artifact import ArtifactError, extract_signed_block, render_artifact
from inkproof.provenance.events import (
    Diagnostics,
    EventLog,
    JsonlEventStore,
    MemoryEventStore,
    PersistenceError,
    ProvenanceEvent,
)
from inkproof.provenance.manifest import ProvenanceManifest, build_manifest, document_hash
from inkproof.provenance.signing import (
    KeyGenerationError,
    KeyNotFound,
    KeyPair,
    KeyStore,
    SignedManifest,
    Signer,
    SigningError,
    generate_keypair,
)
from inkproof.provenance.verifier import ArtifactVerifier, VerificationResult, VerificationStatus

__all__ = [
    "ArtifactError",
    "ArtifactVerifier",
    "Diagnostics",
    "EventLog",
    "JsonlEventStore",
    "KeyGenerationError",
    "KeyNotFound",
    "KeyPair",
    "KeyStore",
    "MemoryEventStore",
    "PersistenceError",
    "ProvenanceEvent",
    "ProvenanceManifest",
    "SignedManifest",
    "Signer",
    "SigningError",
    "VerificationResult",
    "VerificationStatus",
    "build_manifest",
    "document_hash",
    "extract_signed_block",
    "generate_keypair",
    "render_artifact",
]
