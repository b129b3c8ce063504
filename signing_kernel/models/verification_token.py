"""
Module: signing_kernel.models.verification_token
Responsibility: ORM persistence for six-digit verification tokens.
Architecture position: Kernel > Models.  May import from db/ and domain/ only.

Invariants enforced:
    - At most one unconsumed token per (contract, recipient): partial unique
      index on consumed_at IS NULL (PostgreSQL and SQLite).
    - 0 <= attempt_count <= max_attempts (CHECK constraint).  The counter is
      only ever raised by a conditional UPDATE in TokenService.
    - code, contract, recipient and expiry never change after insert
      (ORM listener + PostgreSQL trigger).
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column

from signing_kernel.db.base import Base, UUIDString
from signing_kernel.db.types import text_enum
from signing_kernel.domain.tokens import ConsumptionReason, TokenInfo

TOKEN_IMMUTABLE_FIELDS = frozenset(
    {"contract_id", "recipient_email", "code", "created_at", "expires_at", "max_attempts"}
)


class VerificationToken(Base):
    """Short-lived code that authorizes one external signature."""

    __tablename__ = "verification_tokens"

    __table_args__ = (
        Index("idx_token_contract", "contract_id", "created_at"),
        Index(
            "uq_token_active_per_recipient",
            "contract_id",
            "recipient_email",
            unique=True,
            postgresql_where=text("consumed_at IS NULL"),
            sqlite_where=text("consumed_at IS NULL"),
        ),
        CheckConstraint(
            "attempt_count >= 0 AND attempt_count <= max_attempts",
            name="ck_token_attempt_ceiling",
        ),
    )

    contract_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("contracts.id"),
        nullable=False,
    )
    recipient_email: Mapped[str] = mapped_column(String(255), nullable=False)

    # Zero-padded string, never an integer
    code: Mapped[str] = mapped_column(String(6), nullable=False)

    created_at: Mapped[datetime] = mapped_column(nullable=False)
    expires_at: Mapped[datetime] = mapped_column(nullable=False)

    attempt_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_attempts: Mapped[int] = mapped_column(Integer, nullable=False)

    consumed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    consumption_reason: Mapped[ConsumptionReason | None] = mapped_column(
        text_enum(ConsumptionReason, length=20),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<VerificationToken {self.id} contract={self.contract_id}>"

    @property
    def is_consumed(self) -> bool:
        return self.consumed_at is not None

    def is_expired_at(self, instant: datetime) -> bool:
        return instant > self.expires_at

    def to_info(self) -> TokenInfo:
        return TokenInfo(
            token_id=self.id,
            contract_id=self.contract_id,
            recipient_email=self.recipient_email,
            created_at=self.created_at,
            expires_at=self.expires_at,
            attempt_count=self.attempt_count,
            max_attempts=self.max_attempts,
            consumed_at=self.consumed_at,
            consumption_reason=self.consumption_reason,
        )
