"""Pure domain types for the signing kernel (no I/O)."""

from signing_kernel.domain.audit import AuditEventKind, AuditPayload
from signing_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from signing_kernel.domain.evidence import (
    ExternalSignatureEvidence,
    Geolocation,
    InternalSignatureEvidence,
    QualifiedCredential,
    RequestContext,
    SignerIdentity,
)
from signing_kernel.domain.lifecycle import (
    ContractStatus,
    LifecycleAction,
    SignatureKind,
)
from signing_kernel.domain.tokens import ValidationOutcome, ValidationResult

__all__ = [
    "AuditEventKind",
    "AuditPayload",
    "Clock",
    "ContractStatus",
    "DeterministicClock",
    "ExternalSignatureEvidence",
    "Geolocation",
    "InternalSignatureEvidence",
    "LifecycleAction",
    "QualifiedCredential",
    "RequestContext",
    "SignatureKind",
    "SignerIdentity",
    "SystemClock",
    "ValidationOutcome",
    "ValidationResult",
]
