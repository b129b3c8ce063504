"""
Tamper detection tests.

Rows are rewritten behind the application's back (Core statements with
the listeners and triggers switched off) and the detectors must notice:
- AuditLog.validate_chain for the audit trail;
- DocumentIntegrityService for contract content and signature records.
"""

from contextlib import contextmanager

import pytest
from sqlalchemy import delete, text, update

from signing_kernel.db.engine import is_postgres
from signing_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from signing_kernel.exceptions import AuditChainBrokenError, DocumentTamperedError
from signing_kernel.models.audit_event import AuditEvent
from signing_kernel.models.contract import Contract
from signing_kernel.models.signature_record import SignatureRecord
from signing_kernel.utils.hashing import hash_audit_event, hash_payload


@contextmanager
def disabled_immutability(session):
    """
    Switch off both enforcement layers for the duration of the block.

    Trigger DDL runs on the session's own connection, so it is undone with
    the test transaction and never waits on the session's row locks.
    """
    from signing_kernel.db.triggers import DROP_FILE, _load_all_trigger_sql, _load_sql_file

    unregister_immutability_listeners()
    if is_postgres():
        session.execute(text(_load_sql_file(DROP_FILE)))
    try:
        yield
    finally:
        register_immutability_listeners()
        if is_postgres():
            session.execute(text(_load_all_trigger_sql()))


@pytest.fixture
def completed(lifecycle, awaiting_external, request_context):
    contract_id = awaiting_external.contract.id
    lifecycle.sign_external(contract_id, "482913", request_context())
    return contract_id


def _event(session, contract_id, seq):
    return session.query(AuditEvent).filter_by(contract_id=contract_id, seq=seq).one()


# =========================================================================
# Audit chain
# =========================================================================


class TestAuditChainTampering:

    def test_untouched_chain_is_valid(self, audit_log, completed):
        assert audit_log.validate_chain(completed)

    def test_rewritten_payload_detected(self, session, audit_log, completed):
        target = _event(session, completed, 2)
        forged = dict(target.payload, content_length=1)

        with disabled_immutability(session):
            session.execute(
                update(AuditEvent)
                .where(AuditEvent.id == target.id)
                .values(payload=forged)
                .execution_options(synchronize_session=False)
            )
        session.expire_all()

        with pytest.raises(AuditChainBrokenError) as exc_info:
            audit_log.validate_chain(completed)
        assert exc_info.value.audit_event_id == str(target.id)

    def test_rehashed_event_breaks_the_next_link(self, session, audit_log, completed):
        # A forger who also recomputes the event's own hash still breaks
        # the prev_hash link of the following event.
        target = _event(session, completed, 2)
        forged = dict(target.payload, content_length=1)
        forged_hash = hash_audit_event(
            contract_id=str(completed),
            seq=target.seq,
            kind=target.kind.value,
            payload_hash=hash_payload(forged),
            prev_hash=target.prev_hash,
        )
        following = _event(session, completed, 3)

        with disabled_immutability(session):
            session.execute(
                update(AuditEvent)
                .where(AuditEvent.id == target.id)
                .values(payload=forged, payload_hash=hash_payload(forged), hash=forged_hash)
                .execution_options(synchronize_session=False)
            )
        session.expire_all()

        with pytest.raises(AuditChainBrokenError) as exc_info:
            audit_log.validate_chain(completed)
        assert exc_info.value.audit_event_id == str(following.id)

    def test_deleted_event_leaves_a_gap(self, session, audit_log, completed):
        target = _event(session, completed, 3)

        with disabled_immutability(session):
            session.execute(
                delete(AuditEvent)
                .where(AuditEvent.id == target.id)
                .execution_options(synchronize_session=False)
            )
        session.expire_all()

        with pytest.raises(AuditChainBrokenError):
            audit_log.validate_chain(completed)


# =========================================================================
# Document integrity
# =========================================================================


class TestDocumentTampering:

    def test_content_change_detected(self, session, integrity, completed):
        original = session.get(Contract, completed).content

        with disabled_immutability(session):
            session.execute(
                update(Contract)
                .where(Contract.id == completed)
                .values(content=original + "Clausula 9: multa de 50%.\n")
                .execution_options(synchronize_session=False)
            )
        session.expire_all()

        report = integrity.verify_contract(completed)
        assert report.finalization_ok is False
        assert report.completion_ok is False
        with pytest.raises(DocumentTamperedError) as exc_info:
            integrity.assert_intact(completed)
        assert exc_info.value.hash_kind == "finalization"

    def test_signature_record_change_detected(self, session, integrity, completed):
        record = session.query(SignatureRecord).filter_by(contract_id=completed).first()
        forged_email = "outra.pessoa@forjado.example"

        with disabled_immutability(session):
            session.execute(
                update(SignatureRecord)
                .where(SignatureRecord.id == record.id)
                .values(signer_email=forged_email)
                .execution_options(synchronize_session=False)
            )
        session.expire_all()

        report = integrity.verify_contract(completed)
        assert report.finalization_ok is True
        assert report.completion_ok is False
        with pytest.raises(DocumentTamperedError) as exc_info:
            integrity.assert_intact(completed)
        assert exc_info.value.hash_kind == "completion"
