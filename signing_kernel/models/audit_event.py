"""
Module: signing_kernel.models.audit_event
Responsibility: ORM persistence for the per-contract audit trail.
Architecture position: Kernel > Models.  May import from db/ and domain/ only.

Invariants enforced:
    - Audit records are append-only; no UPDATE or DELETE (ORM + DB trigger).
    - (contract_id, seq) is unique; seq is allocated by SequenceService from
      a per-contract counter row.
    - hash = H(contract_id | seq | kind | payload_hash | prev_hash), validated
      by AuditLog.validate_chain().

Audit relevance:
    AuditEvent IS the audit trail.  contract_id deliberately has no foreign
    key: an access attempt against an unknown contract id is still recorded.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import JSON, BigInteger, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from signing_kernel.db.base import Base, UUIDString
from signing_kernel.db.types import text_enum
from signing_kernel.domain.audit import AuditEventKind


class AuditEvent(Base):
    """
    Audit event with per-contract hash chain for tamper evidence.

    Guarantees:
        - seq starts at 1 for each contract and increases by one.
        - prev_hash is None only for the first event of a contract.

    Non-goals:
        - This model does NOT enforce hash correctness at INSERT time;
          that is the responsibility of AuditLog.
    """

    __tablename__ = "audit_events"

    __table_args__ = (
        UniqueConstraint("contract_id", "seq", name="uq_audit_contract_seq"),
        Index("idx_audit_kind", "kind"),
        Index("idx_audit_occurred", "occurred_at"),
    )

    contract_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    seq: Mapped[int] = mapped_column(BigInteger, nullable=False)

    kind: Mapped[AuditEventKind] = mapped_column(
        text_enum(AuditEventKind, length=40),
        nullable=False,
    )
    description: Mapped[str] = mapped_column(String(1000), nullable=False)

    # Null for system-initiated events and anonymous external access
    actor_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    occurred_at: Mapped[datetime] = mapped_column(nullable=False)

    # Request context, when the event came from a request
    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(512), nullable=True)
    geolocation: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    payload: Mapped[dict] = mapped_column(JSON, nullable=False)
    payload_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    prev_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)
    hash: Mapped[str] = mapped_column(String(64), nullable=False)

    def __repr__(self) -> str:
        return f"<AuditEvent {self.kind.value} #{self.seq} contract={self.contract_id}>"

    @property
    def is_genesis(self) -> bool:
        return self.prev_hash is None
