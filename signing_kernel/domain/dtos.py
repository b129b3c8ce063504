"""
Data transfer objects returned by kernel services and selectors.

Services and selectors hand these frozen snapshots to callers instead of
ORM instances, so nothing outside the kernel can mutate a row by accident.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID

from signing_kernel.domain.evidence import SignatureEvidence, evidence_from_payload
from signing_kernel.domain.lifecycle import ContractStatus, SignatureKind


@dataclass(frozen=True)
class ContractInfo:
    """Snapshot of a contract row."""

    id: UUID
    number: str
    title: str
    status: ContractStatus
    content: str
    external_signer_name: str
    external_signer_email: str
    created_at: datetime
    updated_at: datetime
    template_id: UUID | None = None
    variables: dict[str, Any] = field(default_factory=dict)
    external_signer_document: str | None = None
    internal_signer_id: UUID | None = None
    internal_signer_name: str | None = None
    internal_signer_email: str | None = None
    finalization_hash: str | None = None
    completion_hash: str | None = None
    finalized_at: datetime | None = None
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancellation_reason: str | None = None


@dataclass(frozen=True)
class SignatureInfo:
    """Snapshot of one signature record."""

    id: UUID
    contract_id: UUID
    kind: SignatureKind
    signer_name: str
    signer_email: str
    signed_at: datetime
    evidence: dict[str, Any]
    evidence_hash: str
    signer_id: UUID | None = None

    def typed_evidence(self) -> SignatureEvidence:
        return evidence_from_payload(self.evidence)


@dataclass(frozen=True)
class TemplateInfo:
    """Snapshot of a contract template."""

    id: UUID
    name: str
    body: str
    variables: tuple[str, ...]
    is_active: bool
    created_at: datetime
    description: str | None = None
