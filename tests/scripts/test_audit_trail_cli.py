"""
Tests for the audit trail command (scripts/audit_trail.py).

The command normally builds its own engine; here engine creation is
replaced so it reads the test database through the already initialized
engine.
"""

import json
from uuid import uuid4

import pytest

from scripts import audit_trail


@pytest.fixture
def engine_calls(monkeypatch, db_engine):
    calls = []

    def fake_init(url, echo=False):
        calls.append(url)
        return db_engine

    monkeypatch.setattr("signing_kernel.db.engine.init_engine_from_url", fake_init)
    return calls


class TestAuditTrailCommand:

    def test_json_report_for_completed_contract(
        self, engine_calls, committed_contract, capsys
    ):
        contract = committed_contract("completed")

        code = audit_trail.main([
            "--contract-id", str(contract.id), "--json", "--db-url", "sqlite:///ignored.db",
        ])

        assert code == 0
        assert engine_calls == ["sqlite:///ignored.db"]
        data = json.loads(capsys.readouterr().out)
        assert data["contract"]["number"] == contract.number
        assert data["conformance"]["conformant"] is True
        assert data["events_by_kind"]["contrato_concluido"] == 1

    def test_text_report(self, engine_calls, committed_contract, capsys):
        contract = committed_contract("awaiting_external")

        code = audit_trail.main(["--contract-id", str(contract.id), "--db-url", "sqlite:///x.db"])

        out = capsys.readouterr().out
        assert code == 0
        assert f"AUDIT TRAIL  {contract.number}" in out
        assert "token_emitido" in out

    def test_unknown_contract(self, engine_calls, session_factory, capsys):
        code = audit_trail.main(["--contract-id", str(uuid4()), "--db-url", "sqlite:///x.db"])

        assert code == 1
        assert "ERROR" in capsys.readouterr().err

    def test_invalid_uuid(self, capsys):
        assert audit_trail.main(["--contract-id", "not-a-uuid"]) == 1
        assert "Invalid UUID" in capsys.readouterr().err

    def test_database_unreachable(self, monkeypatch, capsys):
        def refuse(url, echo=False):
            raise OSError("connection refused")

        monkeypatch.setattr("signing_kernel.db.engine.init_engine_from_url", refuse)

        code = audit_trail.main(["--contract-id", str(uuid4()), "--db-url", "postgresql://nowhere/db"])

        assert code == 1
        assert "Cannot connect" in capsys.readouterr().err
