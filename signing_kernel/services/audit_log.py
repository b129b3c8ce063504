"""
AuditLog -- append-only, hash-chained audit trail per contract.

Responsibility:
    The system of record for "what happened" to a contract.  Lifecycle
    transitions and token outcomes are appended here and nowhere else.
    Provides the ordered stream for report builders and chain validation
    for tamper detection.

Architecture position:
    Kernel > Services -- called by ContractLifecycleService and TokenService.

Invariants enforced:
    - Append-only: AuditEvent rows are never modified or deleted (ORM
      listeners + PostgreSQL triggers).
    - Per-contract total order: seq is allocated from the contract's own
      counter row via SequenceService.
    - Chain integrity: ``hash = H(contract_id | seq | kind | payload_hash |
      prev_hash)``; ``validate_chain`` recomputes every link.
    - No business validation: append only checks that the payload type
      belongs to the event kind.

Failure modes:
    - AuditChainBrokenError from validate_chain on any mismatch.
    - AuditPayloadMismatchError when payload and kind disagree (a
      programming error, raised before anything is written).
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from signing_kernel.domain.audit import AuditEventKind, AuditPayload
from signing_kernel.domain.clock import Clock, SystemClock
from signing_kernel.domain.evidence import RequestContext
from signing_kernel.exceptions import AuditChainBrokenError, AuditPayloadMismatchError
from signing_kernel.logging_config import get_logger
from signing_kernel.models.audit_event import AuditEvent
from signing_kernel.services.sequence_service import SequenceService
from signing_kernel.utils.hashing import hash_audit_event, hash_payload

logger = get_logger("services.audit_log")


@dataclass(frozen=True)
class AuditEntry:
    """Read-only view of one audit event."""

    event_id: UUID
    seq: int
    kind: AuditEventKind
    description: str
    occurred_at: datetime
    actor_id: UUID | None
    payload: dict[str, Any]
    ip_address: str | None
    user_agent: str | None
    geolocation: dict[str, Any] | None
    hash: str

    @classmethod
    def from_model(cls, event: AuditEvent) -> "AuditEntry":
        return cls(
            event_id=event.id,
            seq=event.seq,
            kind=event.kind,
            description=event.description,
            occurred_at=event.occurred_at,
            actor_id=event.actor_id,
            payload=dict(event.payload or {}),
            ip_address=event.ip_address,
            user_agent=event.user_agent,
            geolocation=event.geolocation,
            hash=event.hash,
        )


class AuditLog:
    """
    Append-only audit trail.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
        - Does NOT decide whether something should have happened.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()
        self._sequences = SequenceService(session)

    def _last_hash(self, contract_id: UUID) -> str | None:
        return self._session.execute(
            select(AuditEvent.hash)
            .where(AuditEvent.contract_id == contract_id)
            .order_by(AuditEvent.seq.desc())
            .limit(1)
        ).scalar_one_or_none()

    def append(
        self,
        contract_id: UUID,
        kind: AuditEventKind,
        payload: AuditPayload,
        actor_id: UUID | None = None,
        description: str | None = None,
        context: RequestContext | None = None,
    ) -> AuditEvent:
        """
        Append one event to the contract's trail.

        Postconditions:
            - The event is flushed with the next per-contract ``seq`` and a
              hash linked to the previous event of the same contract.
        """
        if payload.kind is not kind:
            raise AuditPayloadMismatchError(kind.value, payload.kind.value)

        # Locking the contract's counter row also serializes prev_hash reads.
        seq = self._sequences.next_value(SequenceService.audit_sequence_name(contract_id))
        prev_hash = self._last_hash(contract_id)

        payload_data = payload.to_payload()
        computed_payload_hash = hash_payload(payload_data)
        event_hash = hash_audit_event(
            contract_id=str(contract_id),
            seq=seq,
            kind=kind.value,
            payload_hash=computed_payload_hash,
            prev_hash=prev_hash,
        )

        event = AuditEvent(
            contract_id=contract_id,
            seq=seq,
            kind=kind,
            description=description or payload.describe(),
            actor_id=actor_id,
            occurred_at=self._clock.now(),
            ip_address=context.ip_address if context else None,
            user_agent=context.user_agent if context else None,
            geolocation=(
                context.geolocation.to_payload()
                if context and context.geolocation
                else None
            ),
            payload=payload_data,
            payload_hash=computed_payload_hash,
            prev_hash=prev_hash,
            hash=event_hash,
        )
        self._session.add(event)
        self._session.flush()

        logger.info(
            "audit_event_appended",
            extra={
                "contract_id": str(contract_id),
                "kind": kind.value,
                "seq": seq,
            },
        )
        return event

    def stream_for(self, contract_id: UUID) -> tuple[AuditEntry, ...]:
        """Events of one contract in creation order.

        Gaps in the kinds are not meaningful: a step that failed early
        simply never emitted its event.
        """
        events = self._session.execute(
            select(AuditEvent)
            .where(AuditEvent.contract_id == contract_id)
            .order_by(AuditEvent.seq)
        ).scalars().all()
        return tuple(AuditEntry.from_model(event) for event in events)

    def kinds_for(self, contract_id: UUID) -> list[AuditEventKind]:
        return [entry.kind for entry in self.stream_for(contract_id)]

    def validate_chain(self, contract_id: UUID) -> bool:
        """
        Recompute every hash of the contract's trail.

        Raises:
            AuditChainBrokenError: on the first event whose stored hash,
                prev_hash link or seq does not match.
        """
        events = self._session.execute(
            select(AuditEvent)
            .where(AuditEvent.contract_id == contract_id)
            .order_by(AuditEvent.seq)
        ).scalars().all()

        previous_hash: str | None = None
        for expected_seq, event in enumerate(events, start=1):
            if event.seq != expected_seq:
                logger.critical(
                    "audit_chain_broken",
                    extra={"contract_id": str(contract_id), "seq": event.seq},
                )
                raise AuditChainBrokenError(str(event.id), f"seq {expected_seq}", f"seq {event.seq}")

            if event.prev_hash != previous_hash:
                logger.critical(
                    "audit_chain_broken",
                    extra={"contract_id": str(contract_id), "seq": event.seq},
                )
                raise AuditChainBrokenError(
                    str(event.id), previous_hash or "None", event.prev_hash or "None"
                )

            recomputed_payload_hash = hash_payload(event.payload or {})
            expected_hash = hash_audit_event(
                contract_id=str(event.contract_id),
                seq=event.seq,
                kind=event.kind.value,
                payload_hash=recomputed_payload_hash,
                prev_hash=event.prev_hash,
            )
            if event.hash != expected_hash:
                logger.critical(
                    "audit_chain_broken",
                    extra={"contract_id": str(contract_id), "seq": event.seq},
                )
                raise AuditChainBrokenError(str(event.id), expected_hash, event.hash)

            previous_hash = event.hash

        logger.info(
            "audit_chain_valid",
            extra={"contract_id": str(contract_id), "event_count": len(events)},
        )
        return True
