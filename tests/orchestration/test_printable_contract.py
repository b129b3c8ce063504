"""
Tests for PDF rendering with the integrity stamp.

Rendering reads committed data through its own sessions, so the
contracts here are committed first.
"""

import hashlib
from uuid import uuid4

import pytest

from signing_kernel.db.engine import session_scope
from signing_kernel.domain.audit import AuditEventKind
from signing_kernel.exceptions import ContractNotFoundError, RenderingError
from signing_kernel.selectors.contract_selector import ContractSelector
from signing_kernel.services.audit_log import AuditLog
from signing_services.printable import PrintableContractService, RenderedPdf


class StubRenderer:
    """Emits the prepared stamp and signature lines as the 'PDF' body."""

    def __init__(self, page_count=2):
        self.page_count = page_count
        self.documents = []

    def render(self, document):
        self.documents.append(document)
        body = "\n".join(document.signature_lines + document.stamp_lines).encode("utf-8")
        return RenderedPdf(content=b"%PDF-1.7\n" + body, page_count=self.page_count)


class ExplodingRenderer:
    def render(self, document):
        raise OSError("font cache corrupted")


class EmptyRenderer:
    def render(self, document):
        return RenderedPdf(content=b"", page_count=0)


@pytest.fixture
def printer(session_factory, deterministic_clock):
    return PrintableContractService(session_factory, deterministic_clock)


def _trail(session_factory, contract_id):
    with session_scope(session_factory) as s:
        return AuditLog(s).stream_for(contract_id)


class TestRender:

    def test_completed_contract_stamp_and_event(
        self, printer, committed_contract, session_factory, test_actor_id
    ):
        contract = committed_contract("completed")
        renderer = StubRenderer()

        printed = printer.render(contract.id, renderer, test_actor_id)

        document = renderer.documents[0]
        assert document.stamp.completion_hash == contract.completion_hash
        assert document.stamp.finalization_hash == contract.finalization_hash
        assert len(document.signatures) == 2
        assert contract.completion_hash.encode() in printed.pdf.content
        assert printed.document_hash == hashlib.sha256(printed.pdf.content).hexdigest()

        event = _trail(session_factory, contract.id)[-1]
        assert event.kind is AuditEventKind.PDF_GENERATED
        assert event.actor_id == test_actor_id
        assert event.payload["document_hash"] == printed.document_hash
        assert event.payload["page_count"] == 2
        assert event.payload["stamped_hash"] == contract.completion_hash

    def test_signature_block_from_typed_evidence(self, printer, committed_contract, test_actor_id):
        contract = committed_contract("completed")
        renderer = StubRenderer()

        printed = printer.render(contract.id, renderer, test_actor_id)

        document = renderer.documents[0]
        assert document.stamp_lines == document.stamp.lines()
        internal, external = sorted(document.signature_lines, key=lambda line: "certificate" not in line)
        assert "Maria Souza <maria.souza@acme.example>" in internal
        assert "qualified certificate 4F2A9C001B (AC Certisign RFB G5)" in internal
        assert "Jane Roe <jane.roe@client.example>" in external
        assert "from 203.0.113.7" in external
        assert b"482913" not in printed.pdf.content

    def test_draft_can_be_printed_without_hashes(
        self, printer, committed_contract, session_factory, test_actor_id
    ):
        contract = committed_contract("draft")

        printed = printer.render(contract.id, StubRenderer(page_count=1), test_actor_id)

        assert printed.stamp.lines() == (f"Contract {contract.number}",)
        event = _trail(session_factory, contract.id)[-1]
        assert event.payload["stamped_hash"] is None

    def test_rendering_never_changes_status(
        self, printer, committed_contract, session_factory, test_actor_id
    ):
        contract = committed_contract("awaiting_external")
        printer.render(contract.id, StubRenderer(), test_actor_id)

        with session_scope(session_factory) as s:
            assert ContractSelector(s).get(contract.id).status is contract.status


class TestRenderFailures:

    def test_renderer_error_wrapped_and_nothing_recorded(
        self, printer, committed_contract, session_factory, test_actor_id
    ):
        contract = committed_contract("completed")
        before = len(_trail(session_factory, contract.id))

        with pytest.raises(RenderingError) as exc_info:
            printer.render(contract.id, ExplodingRenderer(), test_actor_id)

        assert "font cache" in exc_info.value.reason
        assert len(_trail(session_factory, contract.id)) == before

    def test_empty_document_rejected(self, printer, committed_contract, test_actor_id):
        contract = committed_contract("completed")
        with pytest.raises(RenderingError, match="empty"):
            printer.render(contract.id, EmptyRenderer(), test_actor_id)

    def test_unknown_contract(self, printer, session_factory, test_actor_id):
        with pytest.raises(ContractNotFoundError):
            printer.render(uuid4(), StubRenderer(), test_actor_id)
