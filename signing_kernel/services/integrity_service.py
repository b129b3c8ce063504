"""
DocumentIntegrityService -- content hashes for finalization and completion.

Responsibility:
    Computes the SHA-256 integrity hashes stored on a contract and verifies
    content against them.  Two hashes exist and neither overwrites the other:

    * finalization hash -- the exact finalized text, bound to the contract
      number, so identical boilerplate in two contracts never shares a hash;
    * completion hash  -- the finalized text plus the finalization hash plus
      both signature records' metadata, bound to the contract number.

Architecture position:
    Kernel > Services.  ``hash``/``verify``/``completion_hash`` are pure;
    ``verify_contract`` and ``stamp_for`` read through the session.

Invariants enforced:
    - Strict bytes: no whitespace, newline or Unicode normalization.  A
      single changed byte changes the hash.
    - Stamps are built from STORED values, never recomputed ones.

Failure modes:
    - ContractNotFoundError from the session-backed helpers.
    - DocumentTamperedError from ``assert_intact``.
"""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from signing_kernel.domain.lifecycle import ContractStatus
from signing_kernel.exceptions import ContractNotFoundError, DocumentTamperedError
from signing_kernel.logging_config import get_logger
from signing_kernel.models.contract import Contract
from signing_kernel.models.signature_record import SignatureRecord
from signing_kernel.utils.hashing import canonicalize_json, hash_document

logger = get_logger("services.integrity")

# Separates the document text from the signature manifest in the completion artifact.
_MANIFEST_SEPARATOR = b"\x1e"


@dataclass(frozen=True)
class IntegrityReport:
    """Result of re-hashing a stored contract.

    ``None`` means the check does not apply (not a failure): the hash has
    not been stored yet, or the contract was cancelled and its text
    revised afterwards (``content_revised``).
    """

    contract_id: UUID
    contract_number: str
    finalization_hash: str | None
    finalization_ok: bool | None
    completion_hash: str | None
    completion_ok: bool | None
    content_revised: bool = False

    @property
    def intact(self) -> bool:
        return self.finalization_ok is not False and self.completion_ok is not False


@dataclass(frozen=True)
class IntegrityStamp:
    """What any printed or rendered copy of a contract must display verbatim."""

    contract_id: UUID
    contract_number: str
    finalization_hash: str | None
    completion_hash: str | None
    completed_at: datetime | None

    def lines(self) -> tuple[str, ...]:
        lines = [f"Contract {self.contract_number}"]
        if self.finalization_hash:
            lines.append(f"Document hash (SHA-256): {self.finalization_hash}")
        if self.completion_hash:
            lines.append(f"Signed artifact hash (SHA-256): {self.completion_hash}")
        if self.completed_at:
            lines.append(f"Completed at (UTC): {self.completed_at.isoformat()}")
        return tuple(lines)


class DocumentIntegrityService:
    """Hash and verify contract content."""

    def __init__(self, session: Session | None = None):
        self._session = session

    # -- pure ---------------------------------------------------------------

    def hash(self, content: bytes, contract_number: str) -> str:
        """SHA-256 over ``content`` + delimiter + ``contract_number``."""
        return hash_document(content, contract_number)

    def verify(self, content: bytes, expected_hash: str, contract_number: str) -> bool:
        """Recompute and compare.  Strict byte-for-byte."""
        return self.hash(content, contract_number) == expected_hash

    def completion_hash(
        self,
        content: bytes,
        contract_number: str,
        finalization_hash: str,
        signatures: list[SignatureRecord],
    ) -> str:
        """Hash of the fully signed artifact."""
        manifest = canonicalize_json({
            "finalization_hash": finalization_hash,
            "signatures": sorted(
                (record.metadata_for_hash() for record in signatures),
                key=lambda item: item["kind"],
            ),
        })
        artifact = content + _MANIFEST_SEPARATOR + manifest.encode("utf-8")
        return hash_document(artifact, contract_number)

    # -- session-backed -----------------------------------------------------

    def _load(self, contract_id: UUID) -> tuple[Contract, list[SignatureRecord]]:
        if self._session is None:
            raise RuntimeError("DocumentIntegrityService needs a session for stored contracts")
        contract = self._session.get(Contract, contract_id)
        if contract is None:
            raise ContractNotFoundError(str(contract_id))
        signatures = list(
            self._session.execute(
                select(SignatureRecord).where(SignatureRecord.contract_id == contract_id)
            ).scalars()
        )
        return contract, signatures

    def verify_contract(self, contract_id: UUID) -> IntegrityReport:
        """Re-hash stored content and signatures against the stored hashes."""
        contract, signatures = self._load(contract_id)

        finalization_ok = None
        content_revised = False
        if contract.finalization_hash is not None:
            finalization_ok = self.verify(
                contract.content_bytes, contract.finalization_hash, contract.number
            )
            # Cancelled text is editable; the stored hash still pins what was finalized.
            if not finalization_ok and contract.status is ContractStatus.CANCELLED:
                finalization_ok = None
                content_revised = True

        completion_ok = None
        if contract.completion_hash is not None:
            recomputed = self.completion_hash(
                contract.content_bytes,
                contract.number,
                contract.finalization_hash or "",
                signatures,
            )
            completion_ok = recomputed == contract.completion_hash

        report = IntegrityReport(
            contract_id=contract.id,
            contract_number=contract.number,
            finalization_hash=contract.finalization_hash,
            finalization_ok=finalization_ok,
            completion_hash=contract.completion_hash,
            completion_ok=completion_ok,
            content_revised=content_revised,
        )
        if not report.intact:
            logger.warning(
                "integrity_mismatch",
                extra={
                    "contract_id": str(contract.id),
                    "finalization_ok": finalization_ok,
                    "completion_ok": completion_ok,
                },
            )
        return report

    def assert_intact(self, contract_id: UUID) -> IntegrityReport:
        """Like verify_contract, but raise on the first mismatching hash."""
        report = self.verify_contract(contract_id)
        contract, signatures = self._load(contract_id)
        if report.finalization_ok is False:
            raise DocumentTamperedError(
                str(contract_id),
                "finalization",
                contract.finalization_hash,
                self.hash(contract.content_bytes, contract.number),
            )
        if report.completion_ok is False:
            raise DocumentTamperedError(
                str(contract_id),
                "completion",
                contract.completion_hash,
                self.completion_hash(
                    contract.content_bytes,
                    contract.number,
                    contract.finalization_hash or "",
                    signatures,
                ),
            )
        return report

    def stamp_for(self, contract_id: UUID) -> IntegrityStamp:
        """Integrity stamp built from stored values only."""
        contract, _ = self._load(contract_id)
        return IntegrityStamp(
            contract_id=contract.id,
            contract_number=contract.number,
            finalization_hash=contract.finalization_hash,
            completion_hash=contract.completion_hash,
            completed_at=contract.completed_at,
        )
