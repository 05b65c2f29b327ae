"""
Block Hashing

A block hash is SHA-256 over a canonical JSON rendering of the block's
content. Two renderings of the same content must be byte-identical, or
previously sealed blocks stop validating.

Canonical form:
- object keys sorted at every depth, and keys must be strings
- None values dropped, so a missing key and a null key hash alike
- compact separators, ASCII-only output
- enums rendered as their value
- floats, bytes and sets refused (no single stable rendering)
- the top level is always an object

Block bodies are not canonicalized: `encode` stores a payload verbatim
(nulls and floats kept) and the resulting string is what gets hashed.
"""

import hashlib
import json
from enum import Enum
from typing import Any


class CanonicalSerializationError(Exception):
    """Raised when a value has no single canonical JSON rendering."""
    pass


# type -> reason it cannot be hashed
_REFUSED = (
    (float, "Floats are banned in block content. Send numbers as strings"),
    (bytes, "bytes have no JSON form. Hex-encode them first"),
    ((set, frozenset), "a set has no stable order. Use a sorted list"),
)


class Hasher:
    """Canonical JSON and SHA-256 for ledger blocks."""

    @classmethod
    def _normalize(cls, value: Any, where: str) -> Any:
        if hasattr(value, "model_dump"):
            value = value.model_dump(mode="python")

        if isinstance(value, dict):
            normalized = {}
            for key, item in value.items():
                if not isinstance(key, str):
                    raise CanonicalSerializationError(
                        f"Key {key!r} under {where or 'root'} must be string"
                    )
                item = cls._normalize(item, f"{where}.{key}" if where else key)
                if item is not None:
                    normalized[key] = item
            return normalized

        if isinstance(value, (list, tuple)):
            return [cls._normalize(item, f"{where}[{i}]") for i, item in enumerate(value)]

        if isinstance(value, Enum):
            return value.value

        if value is None or isinstance(value, (str, int)):
            return value

        for refused_type, reason in _REFUSED:
            if isinstance(value, refused_type):
                raise CanonicalSerializationError(f"{where}: {reason}")

        raise CanonicalSerializationError(
            f"{where}: {type(value).__name__} is not a JSON type"
        )

    @classmethod
    def canonicalize(cls, data: Any) -> str:
        """
        Render a dict or pydantic model as canonical JSON.

        Raises:
            CanonicalSerializationError: If any value has no canonical form
        """
        normalized = cls._normalize(data, "")
        if not isinstance(normalized, dict):
            raise CanonicalSerializationError(
                f"Canonicalization requires a dict at the top level, "
                f"got {type(data).__name__}"
            )
        return json.dumps(
            normalized,
            sort_keys=True,
            separators=(",", ":"),
            ensure_ascii=True,
            allow_nan=False,
        )

    @classmethod
    def encode(cls, data: Any) -> str:
        """
        Render a payload as JSON for storage in a block body.

        Keys are sorted but values are kept exactly, nulls and floats included,
        so the payload decodes back to what was stored. The body is hashed as
        an opaque string, so it needs no further normalization.

        Raises:
            CanonicalSerializationError: If the payload has no JSON form
        """
        if hasattr(data, "model_dump"):
            data = data.model_dump(mode="python")
        try:
            return json.dumps(
                data,
                sort_keys=True,
                separators=(",", ":"),
                ensure_ascii=True,
                allow_nan=False,
            )
        except (TypeError, ValueError) as e:
            raise CanonicalSerializationError(f"Payload has no JSON form: {e}") from e

    @staticmethod
    def digest(data: bytes) -> str:
        return hashlib.sha256(data).hexdigest()

    @classmethod
    def hash_data(cls, data: Any) -> str:
        """64-character lowercase hex SHA-256 of the canonical form of `data`."""
        return cls.digest(cls.canonicalize(data).encode("utf-8"))
