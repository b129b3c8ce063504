"""
Module: signing_kernel.models.signature_record
Responsibility: ORM persistence for applied signatures and their evidence.
Architecture position: Kernel > Models.  May import from db/ and domain/ only.

Invariants enforced:
    - At most one record per (contract, kind) (unique constraint).
    - Records are append-only: no UPDATE, no DELETE (ORM + DB trigger).
    - evidence_hash = SHA-256 of the canonical evidence JSON, so a printed
      evidence sheet can be checked against the stored row.
"""

from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import JSON, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from signing_kernel.db.base import Base, UUIDString
from signing_kernel.db.types import text_enum
from signing_kernel.domain.dtos import SignatureInfo
from signing_kernel.domain.lifecycle import SignatureKind


class SignatureRecord(Base):
    """One applied signature: who, when, and the evidence that authorized it."""

    __tablename__ = "signature_records"

    __table_args__ = (
        UniqueConstraint("contract_id", "kind", name="uq_signature_contract_kind"),
    )

    contract_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("contracts.id"),
        nullable=False,
    )
    kind: Mapped[SignatureKind] = mapped_column(
        text_enum(SignatureKind, length=30),
        nullable=False,
    )

    signer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    signer_email: Mapped[str] = mapped_column(String(255), nullable=False)
    # Internal signers have an identity reference; external ones do not
    signer_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    signed_at: Mapped[datetime] = mapped_column(nullable=False)

    evidence: Mapped[dict] = mapped_column(JSON, nullable=False)
    evidence_hash: Mapped[str] = mapped_column(String(64), nullable=False)

    def __repr__(self) -> str:
        return f"<SignatureRecord {self.kind.value} contract={self.contract_id}>"

    def metadata_for_hash(self) -> dict:
        """Fields bound into the contract's completion hash."""
        return {
            "kind": self.kind.value,
            "signer_name": self.signer_name,
            "signer_email": self.signer_email,
            "signed_at": self.signed_at.astimezone(timezone.utc).isoformat(),
            "evidence_hash": self.evidence_hash,
        }

    def to_info(self) -> SignatureInfo:
        return SignatureInfo(
            id=self.id,
            contract_id=self.contract_id,
            kind=self.kind,
            signer_name=self.signer_name,
            signer_email=self.signer_email,
            signed_at=self.signed_at,
            evidence=dict(self.evidence),
            evidence_hash=self.evidence_hash,
            signer_id=self.signer_id,
        )
