"""
Deterministic hashing utilities.

All hashing in the signing kernel must be deterministic and reproducible.
This module provides the canonical hashing functions used throughout.
"""

import hashlib
import json
from datetime import date, datetime
from enum import Enum
from typing import Any
from uuid import UUID

# Separates document bytes from the contract number in document hashes.
# Changing it invalidates every stored integrity hash.
DOCUMENT_HASH_DELIMITER = b"\x1f"


def _json_serializer(obj: Any) -> Any:
    """
    Custom JSON serializer for types not natively supported.

    Raises:
        TypeError: If object type is not supported.
    """
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, date):
        return obj.isoformat()
    if isinstance(obj, UUID):
        return str(obj)
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, bytes):
        return obj.hex()

    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def canonicalize_json(data: dict | list | Any) -> str:
    """
    Convert data to canonical JSON string.

    Produces a deterministic JSON representation:
    - Keys are sorted alphabetically
    - No whitespace
    - Consistent handling of special types (datetime, UUID, Enum)

    Args:
        data: Data to canonicalize.

    Returns:
        Canonical JSON string.
    """
    return json.dumps(
        data,
        sort_keys=True,
        separators=(",", ":"),
        default=_json_serializer,
    )


def hash_payload(payload: dict) -> str:
    """
    Compute SHA-256 hash of a payload.

    Args:
        payload: Dictionary payload to hash.

    Returns:
        Hex-encoded SHA-256 hash (64 characters).
    """
    canonical = canonicalize_json(payload)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def hash_document(content: bytes, contract_number: str) -> str:
    """
    Hash document bytes bound to a contract number.

    The exact byte sequence is hashed: no normalization of whitespace,
    line endings or encoding happens here. Two contracts with identical
    boilerplate still get different hashes because the number is mixed in.

    Args:
        content: Rendered contract bytes.
        contract_number: Human-readable sequential number (e.g. "C-001").

    Returns:
        Hex-encoded SHA-256 hash.
    """
    digest = hashlib.sha256()
    digest.update(content)
    digest.update(DOCUMENT_HASH_DELIMITER)
    digest.update(contract_number.encode("utf-8"))
    return digest.hexdigest()


def hash_audit_event(
    contract_id: str,
    seq: int,
    kind: str,
    payload_hash: str,
    prev_hash: str | None,
) -> str:
    """
    Compute hash for an audit event.

    The hash includes all key fields plus the previous event's hash for the
    same contract, creating a tamper-evident chain per contract.

    Args:
        contract_id: Contract the event belongs to.
        seq: Per-contract sequence number.
        kind: Event kind value.
        payload_hash: Hash of the event payload.
        prev_hash: Hash of the previous event (None for the first one).

    Returns:
        Hex-encoded SHA-256 hash.
    """
    components = [
        str(contract_id),
        str(seq),
        kind,
        payload_hash,
        prev_hash or "GENESIS",
    ]
    data = "|".join(components)
    return hashlib.sha256(data.encode("utf-8")).hexdigest()
