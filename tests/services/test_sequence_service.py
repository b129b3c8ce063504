"""Tests for SequenceService (locked counter rows)."""

from signing_kernel.db.engine import session_scope
from signing_kernel.services.sequence_service import SequenceService


class TestSequenceService:

    def test_first_value_is_one(self, session):
        assert SequenceService(session).next_value("test_seq_first") == 1

    def test_monotonic(self, session):
        service = SequenceService(session)
        values = [service.next_value("test_seq_mono") for _ in range(5)]
        assert values == [1, 2, 3, 4, 5]

    def test_names_are_independent(self, session):
        service = SequenceService(session)
        service.next_value("test_seq_a")
        service.next_value("test_seq_a")

        assert service.next_value("test_seq_b") == 1
        assert service.current_value("test_seq_a") == 2

    def test_current_value_of_unknown_name(self, session):
        assert SequenceService(session).current_value("never_used") is None

    def test_audit_sequence_name_is_per_contract(self):
        assert SequenceService.audit_sequence_name("abc") == "audit:abc"


class TestSequenceTransactions:

    def test_rollback_gives_value_back(self, session_factory):
        name = SequenceService.CONTRACT_NUMBER
        with session_scope(session_factory) as s:
            assert SequenceService(s).next_value(name) == 1

        s = session_factory()
        SequenceService(s).next_value(name)
        s.rollback()
        s.close()

        with session_scope(session_factory) as s:
            assert SequenceService(s).next_value(name) == 2
