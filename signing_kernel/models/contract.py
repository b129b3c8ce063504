"""
Module: signing_kernel.models.contract
Responsibility: ORM persistence for contracts and contract templates.
Architecture position: Kernel > Models.  May import from db/ and domain/ only.

Invariants enforced:
    - status is one of the closed ContractStatus vocabulary (CHECK constraint).
    - number is unique (human-readable sequential identity).
    - completed_at IS NOT NULL implies status = completed (CHECK constraint).
    - Content fields are immutable outside draft/cancelled, integrity hashes
      are write-once, and completed contracts are frozen (ORM listeners in
      db/immutability.py, PostgreSQL triggers in db/sql/).

Failure modes:
    - ImmutabilityViolationError when a locked field is flushed.
    - IntegrityError on duplicate number or a CHECK violation.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import JSON, Boolean, CheckConstraint, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from signing_kernel.db.base import Base, UUIDString
from signing_kernel.db.types import text_enum
from signing_kernel.domain.dtos import ContractInfo
from signing_kernel.domain.lifecycle import ContractStatus

# Fields frozen once the contract leaves draft (reopened only while cancelled).
CONTENT_FIELDS = frozenset({"title", "content", "template_id", "variables"})

# Write-once integrity fields.
INTEGRITY_FIELDS = frozenset({"finalization_hash", "completion_hash"})


class ContractTemplate(Base):
    """Reusable contract body with ``[VARIABLE]`` placeholders."""

    __tablename__ = "contract_templates"

    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    variables: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False)
    created_by_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    def __repr__(self) -> str:
        return f"<ContractTemplate {self.name}>"


class Contract(Base):
    """
    A commercial contract moving through the signing lifecycle.

    Contract:
        Status changes go through ContractLifecycleService, which applies
        them as a compare-and-set UPDATE on ``status``.  Nothing else
        writes ``status``.

    Guarantees:
        - finalization_hash binds the finalized content to ``number``.
        - completion_hash binds content plus both signature records.
    """

    __tablename__ = "contracts"

    __table_args__ = (
        Index("idx_contract_status", "status"),
        Index("idx_contract_external_email", "external_signer_email"),
        CheckConstraint(
            "completed_at IS NULL OR status = 'concluido'",
            name="ck_contract_completed_status",
        ),
    )

    # Identity
    number: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)

    # Content
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    template_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("contract_templates.id"),
        nullable=True,
    )
    variables: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    # Parties
    internal_signer_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    internal_signer_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    internal_signer_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    external_signer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    external_signer_email: Mapped[str] = mapped_column(String(255), nullable=False)
    external_signer_document: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # Lifecycle
    status: Mapped[ContractStatus] = mapped_column(
        text_enum(ContractStatus, length=40),
        nullable=False,
        default=ContractStatus.DRAFT,
    )
    cancellation_reason: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    # Integrity
    finalization_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)
    completion_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(nullable=False)
    updated_at: Mapped[datetime] = mapped_column(nullable=False)
    finalized_at: Mapped[datetime | None] = mapped_column(nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(nullable=True)

    created_by_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    def __repr__(self) -> str:
        return f"<Contract {self.number} [{self.status.value}]>"

    @property
    def content_bytes(self) -> bytes:
        """The exact bytes that integrity hashes cover."""
        return self.content.encode("utf-8")

    def to_info(self) -> ContractInfo:
        return ContractInfo(
            id=self.id,
            number=self.number,
            title=self.title,
            status=self.status,
            content=self.content,
            external_signer_name=self.external_signer_name,
            external_signer_email=self.external_signer_email,
            created_at=self.created_at,
            updated_at=self.updated_at,
            template_id=self.template_id,
            variables=dict(self.variables or {}),
            external_signer_document=self.external_signer_document,
            internal_signer_id=self.internal_signer_id,
            internal_signer_name=self.internal_signer_name,
            internal_signer_email=self.internal_signer_email,
            finalization_hash=self.finalization_hash,
            completion_hash=self.completion_hash,
            finalized_at=self.finalized_at,
            completed_at=self.completed_at,
            cancelled_at=self.cancelled_at,
            cancellation_reason=self.cancellation_reason,
        )
