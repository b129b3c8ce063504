"""
SequenceService -- monotonic sequence allocation via locked counter rows.

Responsibility:
    Hands out the human-readable contract numbers (C-001, C-002, ...) and
    the per-contract audit sequence.  A dedicated counter row per sequence
    name is locked (``SELECT ... FOR UPDATE``) while it is incremented.

Architecture position:
    Kernel > Services -- infrastructure.  Called by ContractLifecycleService
    (contract numbers) and AuditLog (audit seq).

Invariants enforced:
    - Sequences are strictly monotonic.  The aggregate max()+1 anti-pattern
      is never used; the locked counter row is the only source of truth.
    - The increment is only visible after the caller's transaction commits;
      a rollback gives the value back.

Failure modes:
    - IntegrityError on concurrent first use of a name (handled via a
      savepoint and a re-read).
"""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from signing_kernel.logging_config import get_logger
from signing_kernel.models.sequence_counter import SequenceCounter

logger = get_logger("services.sequence")


class SequenceService:
    """
    Service for generating transactional sequence numbers.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
    """

    CONTRACT_NUMBER = "contract_number"

    def __init__(self, session: Session):
        self._session = session

    @staticmethod
    def audit_sequence_name(contract_id) -> str:
        return f"audit:{contract_id}"

    def next_value(self, sequence_name: str) -> int:
        """
        Get the next value for a named sequence.

        Postconditions:
            - Returns an integer > 0 strictly greater than any value
              previously committed for this name.
            - The counter row stays locked until the transaction ends.
        """
        counter = self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

        if counter is None:
            # First use.  Another transaction may create the row at the same
            # time; the savepoint keeps the caller's work if we lose.
            savepoint = self._session.begin_nested()
            try:
                counter = SequenceCounter(name=sequence_name, current_value=1)
                self._session.add(counter)
                self._session.flush()
                savepoint.commit()
                logger.debug(
                    "sequence_allocated",
                    extra={"sequence_name": sequence_name, "value": 1},
                )
                return 1
            except IntegrityError:
                logger.debug(
                    "sequence_counter_race_retry",
                    extra={"sequence_name": sequence_name},
                )
                savepoint.rollback()
                counter = self._session.execute(
                    select(SequenceCounter)
                    .where(SequenceCounter.name == sequence_name)
                    .with_for_update()
                    .execution_options(populate_existing=True)
                ).scalar_one()

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, sequence_name: str) -> int | None:
        """Current value of a sequence without incrementing, or None."""
        counter = self._session.execute(
            select(SequenceCounter).where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()
        return counter.current_value if counter else None
