"""Services for the signing kernel (write side)."""

from signing_kernel.services.audit_log import AuditEntry, AuditLog
from signing_kernel.services.contract_lifecycle import (
    ContractLifecycleService,
    ExternalSignatureResult,
    InternalSignatureResult,
)
from signing_kernel.services.integrity_service import (
    DocumentIntegrityService,
    IntegrityReport,
    IntegrityStamp,
)
from signing_kernel.services.sequence_service import SequenceService
from signing_kernel.services.template_service import TemplateService
from signing_kernel.services.token_service import TokenService

__all__ = [
    "AuditEntry",
    "AuditLog",
    "ContractLifecycleService",
    "DocumentIntegrityService",
    "ExternalSignatureResult",
    "IntegrityReport",
    "IntegrityStamp",
    "InternalSignatureResult",
    "SequenceService",
    "TemplateService",
    "TokenService",
]
