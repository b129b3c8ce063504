"""
Audit event kinds and payload schemas (``signing_kernel.domain.audit``).

Responsibility
--------------
The closed set of audit event kinds and one frozen payload class per kind.
``AuditLog.append`` stores ``payload.to_payload()`` and refuses a payload
whose ``kind`` differs from the event kind it is appended under.

Architecture position
---------------------
**Kernel domain layer** -- ZERO I/O.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar
from uuid import UUID

from signing_kernel.domain.tokens import ValidationOutcome
from signing_kernel.utils.hashing import canonicalize_json


class AuditEventKind(str, Enum):
    """Closed set of audit event kinds, persisted verbatim."""

    CONTRACT_CREATED = "contrato_criado"
    CONTRACT_FINALIZED = "contrato_finalizado"
    INTERNAL_SIGNATURE = "assinatura_interna_realizada"
    TOKEN_ISSUED = "token_emitido"
    ACCESS_ATTEMPT = "tentativa_acesso"
    CONTRACT_COMPLETED = "contrato_concluido"
    CONTRACT_CANCELLED = "contrato_cancelado"
    CONTRACT_DELETED = "contrato_excluido"
    PDF_GENERATED = "pdf_gerado"


@dataclass(frozen=True)
class AuditPayload:
    """Base class for per-kind payloads."""

    kind: ClassVar[AuditEventKind]

    def to_payload(self) -> dict[str, Any]:
        """JSON-safe dict (datetimes, UUIDs and enums as strings)."""
        return json.loads(canonicalize_json(asdict(self)))

    def describe(self) -> str:
        return self.kind.value.replace("_", " ")


@dataclass(frozen=True)
class ContractCreatedPayload(AuditPayload):
    kind: ClassVar[AuditEventKind] = AuditEventKind.CONTRACT_CREATED

    contract_number: str
    title: str
    external_signer_email: str
    template_id: UUID | None = None

    def describe(self) -> str:
        return f"Contract {self.contract_number} created"


@dataclass(frozen=True)
class ContractFinalizedPayload(AuditPayload):
    kind: ClassVar[AuditEventKind] = AuditEventKind.CONTRACT_FINALIZED

    contract_number: str
    finalization_hash: str
    content_length: int

    def describe(self) -> str:
        return f"Contract {self.contract_number} finalized with hash {self.finalization_hash[:12]}"


@dataclass(frozen=True)
class InternalSignaturePayload(AuditPayload):
    kind: ClassVar[AuditEventKind] = AuditEventKind.INTERNAL_SIGNATURE

    signature_id: UUID
    signer_name: str
    certificate_issuer: str
    certificate_serial: str
    signed_at: datetime

    def describe(self) -> str:
        return f"Internal qualified signature applied by {self.signer_name}"


@dataclass(frozen=True)
class TokenIssuedPayload(AuditPayload):
    kind: ClassVar[AuditEventKind] = AuditEventKind.TOKEN_ISSUED

    token_id: UUID
    recipient_email: str
    expires_at: datetime
    superseded_token_ids: tuple[UUID, ...] = ()

    def describe(self) -> str:
        return f"Verification code issued to {self.recipient_email}"


@dataclass(frozen=True)
class AccessAttemptPayload(AuditPayload):
    """One redemption attempt.  Carries a redacted code hint, never the code."""

    kind: ClassVar[AuditEventKind] = AuditEventKind.ACCESS_ATTEMPT

    outcome: ValidationOutcome
    code_hint: str | None
    code_length: int
    token_id: UUID | None = None
    attempt_count: int | None = None
    max_attempts: int | None = None

    @property
    def success(self) -> bool:
        return self.outcome is ValidationOutcome.SUCCESS

    def to_payload(self) -> dict[str, Any]:
        data = super().to_payload()
        data["success"] = self.success
        return data

    def describe(self) -> str:
        if self.success:
            return "External access granted with a valid verification code"
        return f"External access denied: {self.outcome.value}"


@dataclass(frozen=True)
class ContractCompletedPayload(AuditPayload):
    kind: ClassVar[AuditEventKind] = AuditEventKind.CONTRACT_COMPLETED

    signature_id: UUID
    external_signer_name: str
    finalization_hash: str
    completion_hash: str
    completed_at: datetime

    def describe(self) -> str:
        return f"Contract completed; signed by {self.external_signer_name}"


@dataclass(frozen=True)
class ContractCancelledPayload(AuditPayload):
    kind: ClassVar[AuditEventKind] = AuditEventKind.CONTRACT_CANCELLED

    reason: str
    previous_status: str

    def describe(self) -> str:
        return f"Contract cancelled: {self.reason}"


@dataclass(frozen=True)
class ContractDeletedPayload(AuditPayload):
    kind: ClassVar[AuditEventKind] = AuditEventKind.CONTRACT_DELETED

    reason: str
    previous_status: str

    def describe(self) -> str:
        return f"Draft discarded: {self.reason}"


@dataclass(frozen=True)
class PdfGeneratedPayload(AuditPayload):
    kind: ClassVar[AuditEventKind] = AuditEventKind.PDF_GENERATED

    document_hash: str
    page_count: int
    stamped_hash: str | None = None

    def describe(self) -> str:
        return f"Printable PDF generated ({self.page_count} pages)"
