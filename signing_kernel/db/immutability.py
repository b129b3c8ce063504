"""
ORM-Level Immutability Enforcement (Layer 1 of 2).

===============================================================================
WHY THIS EXISTS
===============================================================================

A signed contract is evidence.  Once the internal signer has applied a
qualified signature, the text they signed must not change, the signature
rows must not change, and the audit trail that proves who did what must not
change.

  Layer 1: THIS FILE (ORM event listeners)
    - Catches modifications made through SQLAlchemy ORM objects
    - Fires BEFORE the SQL is sent to the database

  Layer 2: db/sql/*.sql (PostgreSQL triggers)
    - Catches raw SQL, Core UPDATE statements, direct psql access
    - Fires AT the database level, independent of application code

Both layers enforce the SAME rules.

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity             | When Immutable                         | What
-------------------|----------------------------------------|------------------------------
AuditEvent         | ALWAYS (from creation)                 | every field, no delete
SignatureRecord    | ALWAYS (from creation)                 | every field, no delete
Contract           | content outside draft/cancelled        | title, content, template, variables
Contract           | once set                               | finalization_hash, completion_hash
Contract           | status = completed                     | every field
Contract           | status != draft                        | no delete
VerificationToken  | ALWAYS                                 | code, contract, recipient, expiry, ceiling; no delete

The contract status itself is written by ContractLifecycleService through a
compare-and-set UPDATE (Core), not through ORM flushes.

===============================================================================
USAGE
===============================================================================

    from signing_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
    # ... forbidden operation ...
    register_immutability_listeners()
"""

from sqlalchemy import event, inspect
from sqlalchemy.orm.attributes import get_history

from signing_kernel.domain.lifecycle import CONTENT_MUTABLE_STATUSES, ContractStatus
from signing_kernel.exceptions import ImmutabilityViolationError
from signing_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _block(entity_type: str, entity_id, operation: str, reason: str, field: str | None = None):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
            "field": field,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(entity_id),
        reason=reason,
    )


def _changed_fields(target) -> list[str]:
    return [attr.key for attr in inspect(target).attrs if attr.history.has_changes()]


# =============================================================================
# Append-only records
# =============================================================================


def _check_audit_event_update(mapper, connection, target):
    _block("AuditEvent", target.id, "UPDATE", "Audit events are immutable and cannot be modified")


def _check_audit_event_delete(mapper, connection, target):
    _block("AuditEvent", target.id, "DELETE", "Audit events cannot be deleted")


def _check_signature_update(mapper, connection, target):
    _block("SignatureRecord", target.id, "UPDATE", "Signature records cannot be modified")


def _check_signature_delete(mapper, connection, target):
    _block("SignatureRecord", target.id, "DELETE", "Signature records cannot be deleted")


# =============================================================================
# Contract
# =============================================================================


def _status_before_flush(target) -> ContractStatus:
    """Status as it was in the database before this flush."""
    history = get_history(target, "status")
    if history.deleted:
        return ContractStatus(history.deleted[0])
    return ContractStatus(target.status)


def _check_contract_update(mapper, connection, target):
    """
    Block content edits outside draft/cancelled, integrity-hash rewrites,
    and any change at all to a completed contract.
    """
    from signing_kernel.models.contract import CONTENT_FIELDS, INTEGRITY_FIELDS

    previous = _status_before_flush(target)
    changed = _changed_fields(target)

    if previous is ContractStatus.COMPLETED and changed:
        _block(
            "Contract", target.id, "UPDATE",
            f"Cannot modify field '{changed[0]}' on a completed contract",
            field=changed[0],
        )

    if previous not in CONTENT_MUTABLE_STATUSES:
        for name in changed:
            if name in CONTENT_FIELDS:
                _block(
                    "Contract", target.id, "UPDATE",
                    f"Cannot modify '{name}' while contract is {previous.value}",
                    field=name,
                )

    for name in INTEGRITY_FIELDS:
        history = get_history(target, name)
        if history.deleted and history.deleted[0] is not None and history.added:
            _block(
                "Contract", target.id, "UPDATE",
                f"Integrity hash '{name}' is write-once",
                field=name,
            )


def _check_contract_delete(mapper, connection, target):
    if _status_before_flush(target) is not ContractStatus.DRAFT:
        _block("Contract", target.id, "DELETE", "Only draft contracts can be deleted")


# =============================================================================
# Verification token
# =============================================================================


def _check_token_update(mapper, connection, target):
    from signing_kernel.models.verification_token import TOKEN_IMMUTABLE_FIELDS

    for name in _changed_fields(target):
        if name in TOKEN_IMMUTABLE_FIELDS:
            _block(
                "VerificationToken", target.id, "UPDATE",
                f"Cannot modify token field '{name}'",
                field=name,
            )


def _check_token_delete(mapper, connection, target):
    _block("VerificationToken", target.id, "DELETE", "Verification tokens cannot be deleted")


# =============================================================================
# Registration
# =============================================================================


def _listeners():
    from signing_kernel.models.audit_event import AuditEvent
    from signing_kernel.models.contract import Contract
    from signing_kernel.models.signature_record import SignatureRecord
    from signing_kernel.models.verification_token import VerificationToken

    return (
        (AuditEvent, "before_update", _check_audit_event_update),
        (AuditEvent, "before_delete", _check_audit_event_delete),
        (SignatureRecord, "before_update", _check_signature_update),
        (SignatureRecord, "before_delete", _check_signature_delete),
        (Contract, "before_update", _check_contract_update),
        (Contract, "before_delete", _check_contract_delete),
        (VerificationToken, "before_update", _check_token_update),
        (VerificationToken, "before_delete", _check_token_delete),
    )


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners (idempotent).

    Call after models are imported and before any database operation.
    """
    for target, event_name, listener in _listeners():
        if not event.contains(target, event_name, listener):
            event.listen(target, event_name, listener)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests that deliberately tamper with rows to
    verify detection.
    """
    for target, event_name, listener in _listeners():
        if event.contains(target, event_name, listener):
            event.remove(target, event_name, listener)
