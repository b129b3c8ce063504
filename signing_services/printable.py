"""
Printable contract -- PDF rendering with the integrity stamp.

Responsibility:
    Collects the stored contract text, signature records and integrity
    stamp, hands them to a ``PdfRenderer`` and records ``pdf_gerado``.

Invariants enforced:
    - The stamp shows STORED hashes and the stored completion timestamp,
      never recomputed ones, so a printed copy can be checked against the
      database independently.
    - Rendering never changes contract state.  A renderer failure raises
      RenderingError and leaves nothing behind; a successful render
      records its event in a separate transaction from any lifecycle step.
"""

from __future__ import annotations

import hashlib
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol
from uuid import UUID

from sqlalchemy.orm import Session

from signing_kernel.db.engine import session_scope
from signing_kernel.domain.clock import Clock
from signing_kernel.domain.dtos import ContractInfo, SignatureInfo
from signing_kernel.domain.evidence import InternalSignatureEvidence
from signing_kernel.exceptions import ContractNotFoundError, RenderingError
from signing_kernel.logging_config import get_logger
from signing_kernel.selectors.contract_selector import ContractSelector
from signing_kernel.services.contract_lifecycle import ContractLifecycleService
from signing_kernel.services.integrity_service import DocumentIntegrityService, IntegrityStamp

logger = get_logger("services.printable")


@dataclass(frozen=True)
class PrintableDocument:
    """Everything a renderer prints.

    ``stamp_lines`` and ``signature_lines`` are the exact text to print
    under the contract body.  The external party's code is never part of it.
    """

    contract: ContractInfo
    signatures: tuple[SignatureInfo, ...]
    stamp: IntegrityStamp
    stamp_lines: tuple[str, ...]
    signature_lines: tuple[str, ...]


def _signature_line(signature: SignatureInfo) -> str:
    evidence = signature.typed_evidence()
    who = f"{signature.signer_name} <{signature.signer_email}>"
    when = signature.signed_at.isoformat()
    if isinstance(evidence, InternalSignatureEvidence):
        return (
            f"Signed by {who} at {when} with qualified certificate "
            f"{evidence.serial_number} ({evidence.issuer})"
        )
    return f"Signed by {who} at {when} from {evidence.ip_address}, verification code confirmed"


@dataclass(frozen=True)
class RenderedPdf:
    content: bytes
    page_count: int


@dataclass(frozen=True)
class PrintedContract:
    contract_id: UUID
    pdf: RenderedPdf
    document_hash: str
    stamp: IntegrityStamp


class PdfRenderer(Protocol):
    """Turns a printable document into PDF bytes.  May raise."""

    def render(self, document: PrintableDocument) -> RenderedPdf: ...


class PrintableContractService:
    """Render a contract to PDF and record the event."""

    def __init__(
        self,
        session_factory: Callable[[], Session] | None = None,
        clock: Clock | None = None,
    ):
        self._session_factory = session_factory
        self._clock = clock

    def _collect(self, contract_id: UUID) -> PrintableDocument:
        with session_scope(self._session_factory) as session:
            selector = ContractSelector(session)
            contract = selector.get(contract_id)
            if contract is None:
                raise ContractNotFoundError(str(contract_id))
            signatures = tuple(
                sorted(selector.signatures_for(contract_id), key=lambda s: s.signed_at)
            )
            stamp = DocumentIntegrityService(session).stamp_for(contract_id)
            return PrintableDocument(
                contract=contract,
                signatures=signatures,
                stamp=stamp,
                stamp_lines=stamp.lines(),
                signature_lines=tuple(_signature_line(s) for s in signatures),
            )

    def render(
        self,
        contract_id: UUID,
        renderer: PdfRenderer,
        actor_id: UUID,
    ) -> PrintedContract:
        """
        Render and record ``pdf_gerado``.

        Raises:
            ContractNotFoundError: For unknown ids.
            RenderingError: If the renderer fails or returns nothing usable.
        """
        document = self._collect(contract_id)

        try:
            pdf = renderer.render(document)
        except RenderingError:
            raise
        except Exception as exc:
            logger.error(
                "pdf_rendering_failed",
                extra={"contract_id": str(contract_id), "error": str(exc)},
            )
            raise RenderingError(str(contract_id), str(exc)) from exc

        if not pdf.content or pdf.page_count < 1:
            raise RenderingError(str(contract_id), "renderer returned an empty document")

        document_hash = hashlib.sha256(pdf.content).hexdigest()
        stamped_hash = document.stamp.completion_hash or document.stamp.finalization_hash

        with session_scope(self._session_factory) as session:
            ContractLifecycleService(session, clock=self._clock).record_pdf_generated(
                contract_id,
                actor_id,
                document_hash=document_hash,
                page_count=pdf.page_count,
                stamped_hash=stamped_hash,
            )

        logger.info(
            "pdf_generated",
            extra={
                "contract_id": str(contract_id),
                "page_count": pdf.page_count,
                "document_hash": document_hash,
            },
        )
        return PrintedContract(
            contract_id=contract_id,
            pdf=pdf,
            document_hash=document_hash,
            stamp=document.stamp,
        )
