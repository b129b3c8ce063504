"""
Audit report -- the evidence summary of one contract.

Responsibility:
    Reads a contract's audit trail, signatures and stored hashes and
    summarizes them for an auditor: event counts by kind, the timeline,
    the critical evidence (signatures, access attempts) and a set of
    conformance flags.

Architecture position:
    Services -- read-only.  Never writes, never commits.

Conformance flags:
    chain_intact         -- AuditLog.validate_chain succeeded.
    ordering_monotonic   -- seq strictly increases and timestamps never
                            go backwards.
    signatures_complete  -- a completed contract has both signature
                            records; contracts still in progress pass.
    integrity_verified   -- stored hashes match recomputed ones.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from signing_kernel.domain.audit import AuditEventKind
from signing_kernel.domain.dtos import ContractInfo
from signing_kernel.domain.lifecycle import ContractStatus, SignatureKind
from signing_kernel.exceptions import AuditChainBrokenError, ContractNotFoundError
from signing_kernel.logging_config import get_logger
from signing_kernel.selectors.contract_selector import ContractSelector
from signing_kernel.services.audit_log import AuditEntry, AuditLog
from signing_kernel.services.integrity_service import DocumentIntegrityService, IntegrityReport

logger = get_logger("services.audit_report")


@dataclass(frozen=True)
class TimelineEntry:
    seq: int
    kind: AuditEventKind
    description: str
    occurred_at: datetime
    actor_id: UUID | None
    ip_address: str | None


@dataclass(frozen=True)
class CriticalEvidence:
    signature_count: int
    access_attempts: int
    failed_attempts: int
    successful_attempts: int


@dataclass(frozen=True)
class ConformanceFlags:
    chain_intact: bool
    ordering_monotonic: bool
    signatures_complete: bool
    integrity_verified: bool

    @property
    def conformant(self) -> bool:
        return (
            self.chain_intact
            and self.ordering_monotonic
            and self.signatures_complete
            and self.integrity_verified
        )


@dataclass(frozen=True)
class AuditReport:
    contract: ContractInfo
    events_by_kind: dict[AuditEventKind, int]
    timeline: tuple[TimelineEntry, ...]
    evidence: CriticalEvidence
    conformance: ConformanceFlags
    integrity: IntegrityReport

    @property
    def conformant(self) -> bool:
        return self.conformance.conformant

    def to_dict(self) -> dict[str, Any]:
        return {
            "contract": {
                "id": str(self.contract.id),
                "number": self.contract.number,
                "title": self.contract.title,
                "status": self.contract.status.value,
                "finalization_hash": self.contract.finalization_hash,
                "completion_hash": self.contract.completion_hash,
                "completed_at": (
                    self.contract.completed_at.isoformat()
                    if self.contract.completed_at else None
                ),
                "content_revised": self.integrity.content_revised,
            },
            "events_by_kind": {k.value: n for k, n in self.events_by_kind.items()},
            "timeline": [
                {
                    "seq": e.seq,
                    "kind": e.kind.value,
                    "description": e.description,
                    "occurred_at": e.occurred_at.isoformat(),
                    "actor_id": str(e.actor_id) if e.actor_id else None,
                    "ip_address": e.ip_address,
                }
                for e in self.timeline
            ],
            "evidence": {
                "signature_count": self.evidence.signature_count,
                "access_attempts": self.evidence.access_attempts,
                "failed_attempts": self.evidence.failed_attempts,
                "successful_attempts": self.evidence.successful_attempts,
            },
            "conformance": {
                "chain_intact": self.conformance.chain_intact,
                "ordering_monotonic": self.conformance.ordering_monotonic,
                "signatures_complete": self.conformance.signatures_complete,
                "integrity_verified": self.conformance.integrity_verified,
                "conformant": self.conformant,
            },
        }

    def render_text(self) -> str:
        c = self.contract
        lines = [
            f"Contract {c.number}: {c.title}",
            f"Status: {c.status.value}",
            f"Finalization hash: {c.finalization_hash or '-'}",
            f"Completion hash:   {c.completion_hash or '-'}",
            "",
            "Timeline:",
        ]
        for e in self.timeline:
            lines.append(f"  {e.seq:>3}  {e.occurred_at.isoformat()}  {e.kind.value:<30} {e.description}")
        lines += [
            "",
            f"Signatures: {self.evidence.signature_count}",
            f"Access attempts: {self.evidence.access_attempts} "
            f"({self.evidence.failed_attempts} failed)",
            "",
            "Conformance:",
        ]
        flags = self.to_dict()["conformance"]
        for name, value in flags.items():
            lines.append(f"  {name:<20} {'yes' if value else 'NO'}")
        return "\n".join(lines)


def _ordering_monotonic(entries: tuple[AuditEntry, ...]) -> bool:
    for previous, current in zip(entries, entries[1:]):
        if current.seq <= previous.seq or current.occurred_at < previous.occurred_at:
            return False
    return True


class AuditReportBuilder:
    """Builds AuditReport for one contract."""

    def __init__(self, session: Session):
        self._session = session
        self._audit = AuditLog(session)
        self._contracts = ContractSelector(session)
        self._integrity = DocumentIntegrityService(session)

    def build(self, contract_id: UUID) -> AuditReport:
        contract = self._contracts.get(contract_id)
        if contract is None:
            raise ContractNotFoundError(str(contract_id))

        entries = self._audit.stream_for(contract_id)
        signatures = self._contracts.signatures_for(contract_id)

        events_by_kind = {kind: 0 for kind in AuditEventKind}
        for entry in entries:
            events_by_kind[entry.kind] += 1

        attempts = [e for e in entries if e.kind is AuditEventKind.ACCESS_ATTEMPT]
        successes = sum(1 for e in attempts if e.payload.get("success"))

        try:
            chain_intact = self._audit.validate_chain(contract_id)
        except AuditChainBrokenError as exc:
            logger.warning(
                "audit_report_chain_broken",
                extra={"contract_id": str(contract_id), "audit_event_id": exc.audit_event_id},
            )
            chain_intact = False

        kinds_present = {s.kind for s in signatures}
        signatures_complete = (
            contract.status is not ContractStatus.COMPLETED
            or kinds_present == set(SignatureKind)
        )

        integrity = self._integrity.verify_contract(contract_id)

        report = AuditReport(
            contract=contract,
            events_by_kind=events_by_kind,
            timeline=tuple(
                TimelineEntry(
                    seq=e.seq,
                    kind=e.kind,
                    description=e.description,
                    occurred_at=e.occurred_at,
                    actor_id=e.actor_id,
                    ip_address=e.ip_address,
                )
                for e in entries
            ),
            evidence=CriticalEvidence(
                signature_count=len(signatures),
                access_attempts=len(attempts),
                failed_attempts=len(attempts) - successes,
                successful_attempts=successes,
            ),
            conformance=ConformanceFlags(
                chain_intact=chain_intact,
                ordering_monotonic=_ordering_monotonic(entries),
                signatures_complete=signatures_complete,
                integrity_verified=integrity.intact,
            ),
            integrity=integrity,
        )
        logger.info(
            "audit_report_built",
            extra={
                "contract_id": str(contract_id),
                "event_count": len(entries),
                "conformant": report.conformant,
            },
        )
        return report
