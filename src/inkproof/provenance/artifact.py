"""Exported artifact format.

An artifact is a self-contained HTML document. The rendered content carries
per-span ``data-type``/``data-source`` attributes, and the signed manifest is
embedded as JSON in::

    <script type="application/json" id="inkproof-manifest">{...}</script>

with fields ``manifest``, ``signature`` (base64), ``public_key`` (base64),
``signed_at`` and ``algorithm``. A bare JSON file holding the same object is
also accepted by the verifier.

This module is everything a third-party verifier needs: the block layout, the
schema, base64 handling and Ed25519 verification. It does not depend on the
authoring side.
"""

from __future__ import annotations

import base64
import binascii
import html
import json
import re
from collections.abc import Iterable
from typing import Any

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey

ALG_ED25519 = "Ed25519"
KEY_SIZE = 32
SIGNATURE_SIZE = 64
MANIFEST_ELEMENT_ID = "inkproof-manifest"
CATEGORIES = ("human", "ai", "cited")

_block_pattern = re.compile(
    r"<script\b[^>]*\bid=[\"']" + re.escape(MANIFEST_ELEMENT_ID) + r"[\"'][^>]*>(.*?)</script\s*>",
    re.DOTALL | re.IGNORECASE,
)

EVENT_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": [
        "sequence_id", "timestamp", "category", "source", "span_length", "content_reference",
    ],
    "properties": {
        "sequence_id": {"type": "integer", "minimum": 0},
        "timestamp": {"type": "string"},
        "category": {"enum": list(CATEGORIES)},
        "source": {"type": "string"},
        "span_length": {"type": "integer", "minimum": 0},
        "content_reference": {"type": "string"},
    },
}

MANIFEST_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": [
        "human_pct", "ai_pct", "cited_pct", "total_chars", "events", "generated_at", "document_hash",
    ],
    "properties": {
        "human_pct": {"type": "number", "minimum": 0, "maximum": 100},
        "ai_pct": {"type": "number", "minimum": 0, "maximum": 100},
        "cited_pct": {"type": "number", "minimum": 0, "maximum": 100},
        "total_chars": {"type": "integer", "minimum": 0},
        "events": {"type": "array", "items": EVENT_SCHEMA},
        "generated_at": {"type": "string"},
        "document_hash": {"type": "string"},
    },
}

SIGNED_MANIFEST_SCHEMA: dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "required": ["manifest", "signature", "public_key", "signed_at"],
    "properties": {
        "manifest": MANIFEST_SCHEMA,
        "signature": {"type": "string"},
        "public_key": {"type": "string"},
        "signed_at": {"type": "string"},
        "algorithm": {"const": ALG_ED25519},
    },
}


class ArtifactError(Exception):
    """The artifact has no readable signed-manifest block."""
    pass


def b64encode(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def b64decode(text: str) -> bytes:
    """Strict standard base64 decode.

    Raises:
        ValueError: On invalid base64
    """
    try:
        return base64.b64decode(text.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError) as e:
        raise ValueError(f"Invalid base64: {e}") from None


def verify_signature(message: bytes, signature: bytes, public_key: bytes) -> bool:
    """Check an Ed25519 signature.

    Returns False for a bad signature or a key that is not a valid point;
    never raises on untrusted input.
    """
    if len(signature) != SIGNATURE_SIZE or len(public_key) != KEY_SIZE:
        return False
    try:
        Ed25519PublicKey.from_public_bytes(public_key).verify(signature, message)
        return True
    except (InvalidSignature, ValueError):
        return False


def _script_json(data: dict[str, Any]) -> str:
    # "<" escaped so the payload cannot close the script element
    text = json.dumps(data, indent=2, sort_keys=True, ensure_ascii=False)
    return text.replace("<", "\\u003c")


def render_artifact(
    spans: Iterable[tuple[str, str, str]],
    signed: dict[str, Any],
    title: str = "Untitled document",
) -> str:
    """Render the exported HTML document.

    Args:
        spans: Ordered ``(text, category, source)`` triples of the document
        signed: Signed manifest block (``SignedManifest.to_dict()``)
        title: Document title

    Returns:
        HTML text
    """
    body = []
    for text, category, source in spans:
        escaped = html.escape(text).replace("\n", "<br>\n")
        body.append(
            f'<span data-provenance data-type="{html.escape(category)}" '
            f'data-source="{html.escape(source)}" class="provenance-{html.escape(category)}">'
            f"{escaped}</span>"
        )

    return "\n".join([
        "<!DOCTYPE html>",
        '<html lang="en">',
        "<head>",
        '<meta charset="utf-8">',
        f"<title>{html.escape(title)}</title>",
        f'<script type="application/json" id="{MANIFEST_ELEMENT_ID}">',
        _script_json(signed),
        "</script>",
        "</head>",
        "<body>",
        '<article class="inkproof-document">',
        "".join(body),
        "</article>",
        "</body>",
        "</html>",
        "",
    ])


def _reject_constant(name: str) -> Any:
    raise ValueError(f"non-finite number {name} not allowed")


def extract_signed_block(data: str | bytes) -> dict[str, Any]:
    """Locate and decode the signed-manifest block.

    Args:
        data: HTML artifact, or a bare JSON signed-manifest document

    Returns:
        The decoded block (not yet schema-validated)

    Raises:
        ArtifactError: If no block is found or it is not a JSON object
    """
    if isinstance(data, bytes):
        try:
            data = data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ArtifactError(f"Artifact is not UTF-8: {e}") from None

    stripped = data.lstrip("\ufeff \t\r\n")
    if stripped.startswith("{"):
        payload = stripped
    else:
        match = _block_pattern.search(data)
        if match is None:
            raise ArtifactError(f"No {MANIFEST_ELEMENT_ID} block found in document")
        payload = match.group(1)

    try:
        block = json.loads(payload, parse_constant=_reject_constant)
    except ValueError as e:
        raise ArtifactError(f"Invalid manifest JSON: {e}") from None

    if not isinstance(block, dict):
        raise ArtifactError("Manifest block must be a JSON object")
    return block
