"""ORM models for the signing kernel."""

from signing_kernel.models.audit_event import AuditEvent
from signing_kernel.models.contract import Contract, ContractTemplate
from signing_kernel.models.sequence_counter import SequenceCounter
from signing_kernel.models.signature_record import SignatureRecord
from signing_kernel.models.verification_token import VerificationToken

__all__ = [
    "AuditEvent",
    "Contract",
    "ContractTemplate",
    "SequenceCounter",
    "SignatureRecord",
    "VerificationToken",
]
