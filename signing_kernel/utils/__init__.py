"""Utility functions for the signing kernel."""

from signing_kernel.utils.hashing import (
    canonicalize_json,
    hash_audit_event,
    hash_document,
    hash_payload,
)

__all__ = [
    "canonicalize_json",
    "hash_audit_event",
    "hash_document",
    "hash_payload",
]
