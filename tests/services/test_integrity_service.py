"""
Tests for DocumentIntegrityService.

Properties:
- verify(content, hash(content)) is always true; one flipped byte makes it false.
- Completion hash binds content, finalization hash and both signature records.
- Stamps and reports are built from stored values.
"""

import pytest
from hypothesis import given
from hypothesis import strategies as st
from sqlalchemy import select, update

from signing_kernel.exceptions import DocumentTamperedError
from signing_kernel.models.contract import Contract
from signing_kernel.models.signature_record import SignatureRecord
from signing_kernel.services.integrity_service import DocumentIntegrityService


class TestPureHashing:

    @given(st.binary(min_size=1, max_size=1024), st.data())
    def test_verify_round_trip_and_byte_flip(self, content, data):
        service = DocumentIntegrityService()
        digest = service.hash(content, "C-001")
        assert service.verify(content, digest, "C-001")

        index = data.draw(st.integers(min_value=0, max_value=len(content) - 1))
        tampered = bytearray(content)
        tampered[index] = (tampered[index] + 1) % 256
        assert not service.verify(bytes(tampered), digest, "C-001")

    def test_verify_is_bound_to_number(self):
        service = DocumentIntegrityService()
        digest = service.hash(b"texto", "C-001")
        assert not service.verify(b"texto", digest, "C-002")

    def test_session_needed_for_stored_contracts(self):
        with pytest.raises(RuntimeError):
            DocumentIntegrityService().verify_contract(None)


class TestStoredContracts:

    @pytest.fixture
    def completed(self, lifecycle, awaiting_external, request_context):
        return lifecycle.sign_external(awaiting_external.contract.id, "482913", request_context()).contract

    def test_draft_has_nothing_to_verify(self, integrity, create_contract):
        report = integrity.verify_contract(create_contract().id)
        assert report.finalization_ok is None
        assert report.completion_ok is None
        assert report.intact

    def test_completed_contract_verifies(self, integrity, completed):
        report = integrity.assert_intact(completed.id)
        assert report.finalization_ok is True
        assert report.completion_ok is True

    def test_completion_hash_depends_on_signatures(self, integrity, completed, session):
        contract = session.get(Contract, completed.id)

        signatures = list(session.execute(
            select(SignatureRecord).where(SignatureRecord.contract_id == completed.id)
        ).scalars())
        full = integrity.completion_hash(
            contract.content_bytes, contract.number, contract.finalization_hash, signatures
        )
        partial = integrity.completion_hash(
            contract.content_bytes, contract.number, contract.finalization_hash, signatures[:1]
        )
        assert full == completed.completion_hash
        assert partial != full

    def test_tampered_content_detected(self, integrity, finalized_contract, session, db_engine):
        if db_engine.dialect.name == "postgresql":
            pytest.skip("content rewrite is blocked by triggers on PostgreSQL")
        # Core UPDATE bypasses the ORM listeners; simulates a direct database edit
        session.execute(
            update(Contract)
            .where(Contract.id == finalized_contract.id)
            .values(content=finalized_contract.content + " ")
            .execution_options(synchronize_session=False)
        )
        session.expire_all()

        report = integrity.verify_contract(finalized_contract.id)
        assert report.finalization_ok is False
        assert not report.intact
        with pytest.raises(DocumentTamperedError) as exc_info:
            integrity.assert_intact(finalized_contract.id)
        assert exc_info.value.hash_kind == "finalization"

    def test_cancelled_contract_revised_text(self, integrity, lifecycle, finalized_contract, test_actor_id):
        lifecycle.cancel(finalized_contract.id, test_actor_id, "renegociar clausulas")
        lifecycle.update_draft(finalized_contract.id, test_actor_id, content="versao 2")

        report = integrity.assert_intact(finalized_contract.id)
        assert report.finalization_ok is None
        assert report.content_revised
        assert report.intact
        assert report.finalization_hash == finalized_contract.finalization_hash

    def test_cancelled_contract_unrevised_still_verified(
        self, integrity, lifecycle, finalized_contract, test_actor_id
    ):
        lifecycle.cancel(finalized_contract.id, test_actor_id, "sem acordo")

        report = integrity.verify_contract(finalized_contract.id)
        assert report.finalization_ok is True
        assert not report.content_revised

    def test_stamp_uses_stored_values(self, integrity, completed):
        stamp = integrity.stamp_for(completed.id)

        assert stamp.finalization_hash == completed.finalization_hash
        assert stamp.completion_hash == completed.completion_hash
        assert stamp.completed_at == completed.completed_at
        lines = stamp.lines()
        assert lines[0] == f"Contract {completed.number}"
        assert any(completed.completion_hash in line for line in lines)
        assert lines[-1] == f"Completed at (UTC): {completed.completed_at.isoformat()}"
