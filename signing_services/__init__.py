"""
signing_services -- orchestration over the signing kernel.

Responsibility:
    Wires kernel services to settings and to the external collaborators
    the kernel never touches: the email gateway that delivers codes, the
    public signing endpoint, the PDF renderer and the audit report.

Architecture position:
    Services -- depends on signing_kernel and signing_config.

    Dependency direction:
        signing_services/ -> signing_kernel/  (allowed)
        signing_services/ -> signing_config/  (allowed)
        signing_kernel/   -> signing_services/ (FORBIDDEN)
"""

from signing_services.audit_report import AuditReport, AuditReportBuilder
from signing_services.delivery import (
    DispatchReceipt,
    EmailGateway,
    TokenDeliveryPayload,
    TokenDispatcher,
    build_delivery_payload,
)
from signing_services.external_signing import ExternalSigningEntryPoint, GeolocationProvider
from signing_services.printable import (
    PdfRenderer,
    PrintableContractService,
    PrintableDocument,
    PrintedContract,
    RenderedPdf,
)
from signing_services.signing_orchestrator import SigningOrchestrator

__all__ = [
    "AuditReport",
    "AuditReportBuilder",
    "DispatchReceipt",
    "EmailGateway",
    "ExternalSigningEntryPoint",
    "GeolocationProvider",
    "PdfRenderer",
    "PrintableContractService",
    "PrintableDocument",
    "PrintedContract",
    "RenderedPdf",
    "SigningOrchestrator",
    "TokenDeliveryPayload",
    "TokenDispatcher",
    "build_delivery_payload",
]
