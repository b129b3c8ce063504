"""
Tests for AuditLog.

Properties:
- seq is per contract, starts at 1 and has no gaps.
- Each event links to the previous event of the same contract.
- validate_chain recomputes every link.
- A payload that does not belong to the declared kind is refused before
  anything is written.
"""

from uuid import uuid4

import pytest

from signing_kernel.domain.audit import (
    AuditEventKind,
    ContractCancelledPayload,
    ContractCreatedPayload,
    PdfGeneratedPayload,
)
from signing_kernel.domain.evidence import Geolocation
from signing_kernel.exceptions import AuditPayloadMismatchError
from signing_kernel.services.sequence_service import SequenceService


def _created(number="C-900"):
    return ContractCreatedPayload(
        contract_number=number,
        title="Contrato de teste",
        external_signer_email="jane.roe@client.example",
    )


def _pdf(page_count=1):
    return PdfGeneratedPayload(document_hash="d" * 64, page_count=page_count)


class TestAppend:

    def test_first_event_is_genesis(self, audit_log, test_actor_id):
        contract_id = uuid4()
        event = audit_log.append(contract_id, AuditEventKind.CONTRACT_CREATED, _created(), actor_id=test_actor_id)

        assert event.seq == 1
        assert event.prev_hash is None
        assert event.actor_id == test_actor_id
        assert len(event.hash) == 64

    def test_seq_and_links_per_contract(self, audit_log):
        a, b = uuid4(), uuid4()
        a1 = audit_log.append(a, AuditEventKind.CONTRACT_CREATED, _created("C-901"))
        b1 = audit_log.append(b, AuditEventKind.CONTRACT_CREATED, _created("C-902"))
        a2 = audit_log.append(a, AuditEventKind.PDF_GENERATED, _pdf())

        assert (a1.seq, a2.seq, b1.seq) == (1, 2, 1)
        assert a2.prev_hash == a1.hash
        assert b1.prev_hash is None

    def test_seq_comes_from_contract_counter(self, audit_log, session):
        contract_id = uuid4()
        for pages in range(1, 4):
            audit_log.append(contract_id, AuditEventKind.PDF_GENERATED, _pdf(pages))

        name = SequenceService.audit_sequence_name(contract_id)
        assert SequenceService(session).current_value(name) == 3

    def test_description_defaults_to_payload_text(self, audit_log):
        contract_id = uuid4()
        event = audit_log.append(contract_id, AuditEventKind.CONTRACT_CREATED, _created())
        custom = audit_log.append(
            contract_id, AuditEventKind.PDF_GENERATED, _pdf(), description="PDF enviado"
        )

        assert event.description
        assert custom.description == "PDF enviado"

    def test_request_context_recorded(self, audit_log, request_context):
        contract_id = uuid4()
        ctx = request_context(geolocation=Geolocation(latitude=-23.55, longitude=-46.63))
        audit_log.append(contract_id, AuditEventKind.PDF_GENERATED, _pdf(), context=ctx)

        entry = audit_log.stream_for(contract_id)[0]
        assert entry.ip_address == "203.0.113.7"
        assert entry.geolocation["latitude"] == -23.55

    def test_payload_kind_mismatch_writes_nothing(self, audit_log):
        contract_id = uuid4()
        with pytest.raises(AuditPayloadMismatchError):
            audit_log.append(contract_id, AuditEventKind.CONTRACT_COMPLETED, _created())

        assert audit_log.stream_for(contract_id) == ()


class TestStream:

    def test_stream_in_seq_order(self, audit_log):
        contract_id = uuid4()
        audit_log.append(contract_id, AuditEventKind.CONTRACT_CREATED, _created())
        audit_log.append(contract_id, AuditEventKind.PDF_GENERATED, _pdf())
        audit_log.append(
            contract_id,
            AuditEventKind.CONTRACT_CANCELLED,
            ContractCancelledPayload(reason="desistencia", previous_status="rascunho"),
        )

        entries = audit_log.stream_for(contract_id)
        assert [e.seq for e in entries] == [1, 2, 3]
        assert audit_log.kinds_for(contract_id) == [
            AuditEventKind.CONTRACT_CREATED,
            AuditEventKind.PDF_GENERATED,
            AuditEventKind.CONTRACT_CANCELLED,
        ]
        assert entries[2].payload["reason"] == "desistencia"

    def test_unknown_contract_has_empty_stream(self, audit_log):
        assert audit_log.stream_for(uuid4()) == ()


class TestValidateChain:

    def test_valid_chain(self, audit_log):
        contract_id = uuid4()
        for pages in range(1, 6):
            audit_log.append(contract_id, AuditEventKind.PDF_GENERATED, _pdf(pages))

        assert audit_log.validate_chain(contract_id) is True

    def test_empty_chain_is_valid(self, audit_log):
        assert audit_log.validate_chain(uuid4()) is True
