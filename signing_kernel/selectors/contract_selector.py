"""
ContractSelector -- read-side queries over contracts and signatures.

Backs the contract list screens and the statistics panel: counts by
status, listings by status or counter-party, and the signature records
of one contract.
"""

from uuid import UUID

from sqlalchemy import func, select

from signing_kernel.domain.dtos import ContractInfo, SignatureInfo
from signing_kernel.domain.lifecycle import ContractStatus
from signing_kernel.models.contract import Contract
from signing_kernel.models.signature_record import SignatureRecord
from signing_kernel.selectors.base import BaseSelector


class ContractSelector(BaseSelector[Contract]):
    """Read-only contract queries."""

    def get(self, contract_id: UUID) -> ContractInfo | None:
        contract = self.session.get(Contract, contract_id)
        return contract.to_info() if contract else None

    def get_by_number(self, number: str) -> ContractInfo | None:
        contract = self.session.execute(
            select(Contract).where(Contract.number == number)
        ).scalar_one_or_none()
        return contract.to_info() if contract else None

    def list_by_status(self, status: ContractStatus | str) -> list[ContractInfo]:
        """Contracts in one status, newest first.  Accepts "draft" as an alias."""
        status = ContractStatus(status)
        contracts = self.session.execute(
            select(Contract)
            .where(Contract.status == status)
            .order_by(Contract.created_at.desc(), Contract.number.desc())
        ).scalars().all()
        return [c.to_info() for c in contracts]

    def list_for_external_signer(self, email: str) -> list[ContractInfo]:
        contracts = self.session.execute(
            select(Contract)
            .where(Contract.external_signer_email == email)
            .order_by(Contract.created_at.desc(), Contract.number.desc())
        ).scalars().all()
        return [c.to_info() for c in contracts]

    def status_counts(self) -> dict[ContractStatus, int]:
        """Number of contracts per status.  Every status is present, zero included."""
        rows = self.session.execute(
            select(Contract.status, func.count(Contract.id)).group_by(Contract.status)
        ).all()
        counts = {status: 0 for status in ContractStatus}
        for status, count in rows:
            counts[ContractStatus(status)] = count
        return counts

    def signatures_for(self, contract_id: UUID) -> list[SignatureInfo]:
        records = self.session.execute(
            select(SignatureRecord)
            .where(SignatureRecord.contract_id == contract_id)
            .order_by(SignatureRecord.signed_at)
        ).scalars().all()
        return [r.to_info() for r in records]
