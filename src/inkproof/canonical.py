"""Canonical JSON serialization and stable hashing.

Produces byte-identical output for logically equal values so that a manifest
signed by one implementation can be re-derived by another.

Design decisions (RFC 8785 / JCS style):
- Object keys sorted by UTF-16 code units
- No whitespace, UTF-8 output, minimal JSON string escaping
- Integers in plain decimal
- Floats in ECMAScript shortest round-trip form (100.0 -> "100", 1e-07 -> "1e-7")
- NaN and Infinity are rejected, -0.0 is written as 0
- Arrays keep their order (caller must sort where ordering matters)
"""

from __future__ import annotations

import hashlib
import json
import math
from enum import Enum
from typing import Any


def format_number(value: int | float) -> str:
    """Format a number the way ECMAScript's Number::toString does.

    Raises:
        ValueError: If value is NaN or infinite
    """
    if isinstance(value, bool):
        raise TypeError("bool is not a number")
    if isinstance(value, int):
        return str(value)

    if math.isnan(value) or math.isinf(value):
        raise ValueError(f"Cannot canonicalize non-finite float: {value}")
    if value == 0.0:
        return "0"

    sign = "-" if value < 0 else ""
    text = repr(abs(value))

    # Split repr into significant digits and a decimal exponent n such that
    # value == 0.<digits> * 10**n
    if "e" in text:
        mantissa, exp_text = text.split("e")
        exponent = int(exp_text)
    else:
        mantissa, exponent = text, 0
    int_part, _, frac_part = mantissa.partition(".")
    digits = int_part + frac_part
    n = len(int_part) + exponent

    stripped = digits.lstrip("0")
    n -= len(digits) - len(stripped)
    digits = stripped.rstrip("0")
    k = len(digits)

    if k <= n <= 21:
        return sign + digits + "0" * (n - k)
    if 0 < n <= 21:
        return sign + digits[:n] + "." + digits[n:]
    if -6 < n <= 0:
        return sign + "0." + "0" * (-n) + digits

    e = n - 1
    exp_sign = "+" if e >= 0 else "-"
    if k == 1:
        return f"{sign}{digits}e{exp_sign}{abs(e)}"
    return f"{sign}{digits[0]}.{digits[1:]}e{exp_sign}{abs(e)}"


def _normalize(obj: Any) -> Any:
    """Reduce domain objects to plain JSON values."""
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    if isinstance(obj, Enum):
        return obj.value
    return obj


def _serialize(obj: Any, out: list[str]) -> None:
    obj = _normalize(obj)

    if obj is None:
        out.append("null")
    elif obj is True:
        out.append("true")
    elif obj is False:
        out.append("false")
    elif isinstance(obj, (int, float)):
        out.append(format_number(obj))
    elif isinstance(obj, str):
        out.append(json.dumps(obj, ensure_ascii=False))
    elif isinstance(obj, dict):
        for key in obj:
            if not isinstance(key, str):
                raise TypeError(f"Object keys must be strings, got {type(key).__name__}")
        out.append("{")
        for i, key in enumerate(sorted(obj, key=lambda k: k.encode("utf-16-be"))):
            if i:
                out.append(",")
            out.append(json.dumps(key, ensure_ascii=False))
            out.append(":")
            _serialize(obj[key], out)
        out.append("}")
    elif isinstance(obj, (list, tuple)):
        out.append("[")
        for i, item in enumerate(obj):
            if i:
                out.append(",")
            _serialize(item, out)
        out.append("]")
    else:
        raise TypeError(f"Object of type {type(obj).__name__} is not canonicalizable")


def canonical_json(data: Any) -> str:
    """Produce canonical JSON string from data.

    Args:
        data: JSON-compatible data (dicts, lists, str, int, float, bool, None)
            or objects exposing ``to_dict()``

    Returns:
        Canonical JSON string with sorted keys and no whitespace

    Raises:
        ValueError: If data contains NaN or Infinity floats
        TypeError: If data contains values JSON cannot represent
    """
    out: list[str] = []
    _serialize(data, out)
    return "".join(out)


def canonical_bytes(data: Any) -> bytes:
    """Canonical JSON encoded as UTF-8. These are the bytes that get signed."""
    return canonical_json(data).encode("utf-8")


def canonical_hash(data: Any, algorithm: str = "sha256") -> str:
    """Compute deterministic hash of any data via canonical JSON.

    Args:
        data: JSON-serializable data
        algorithm: Hash algorithm (sha256, sha3_256, blake2b)

    Returns:
        Hex digest string
    """
    return hash_bytes(canonical_bytes(data), algorithm)


def hash_bytes(data: bytes, algorithm: str = "sha256") -> str:
    """Hex digest of raw bytes."""
    if algorithm == "sha256":
        hasher = hashlib.sha256()
    elif algorithm == "sha3_256":
        hasher = hashlib.sha3_256()
    elif algorithm == "blake2b":
        hasher = hashlib.blake2b(digest_size=32)
    else:
        raise ValueError(f"Unsupported algorithm: {algorithm}")

    hasher.update(data)
    return hasher.hexdigest()


def hash_text(text: str) -> str:
    """SHA-256 hex digest of UTF-8 text."""
    return hash_bytes(text.encode("utf-8"))
