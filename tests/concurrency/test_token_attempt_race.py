"""
Concurrent wrong-code attempts against one token.

Every attempt runs in its own committed transaction on its own session.
However the attempts interleave, the counter must stop at the ceiling:
exactly ``max_attempts`` attempts are counted as INVALID_CODE and every
other one is refused with TOO_MANY_ATTEMPTS.  Each attempt still leaves
exactly one audit event and the trail stays a valid chain.
"""

from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from threading import Barrier

import pytest

from signing_kernel.db.engine import session_scope
from signing_kernel.domain.audit import AuditEventKind
from signing_kernel.domain.tokens import ValidationOutcome
from signing_kernel.services.audit_log import AuditLog
from signing_kernel.services.token_service import TokenService

pytestmark = pytest.mark.slow_locks

WORKERS = 12


def test_ceiling_holds_under_concurrency(session_factory, committed_contract, deterministic_clock):
    contract = committed_contract("awaiting_external")
    barrier = Barrier(WORKERS)

    def attempt(_):
        barrier.wait(timeout=30)
        with session_scope(session_factory) as s:
            audit = AuditLog(s, deterministic_clock)
            tokens = TokenService(s, audit, clock=deterministic_clock)
            return tokens.validate(contract.id, "111111").outcome

    with ThreadPoolExecutor(max_workers=WORKERS) as pool:
        outcomes = Counter(pool.map(attempt, range(WORKERS)))

    assert outcomes[ValidationOutcome.INVALID_CODE] == 5
    assert outcomes[ValidationOutcome.TOO_MANY_ATTEMPTS] == WORKERS - 5

    with session_scope(session_factory) as s:
        audit = AuditLog(s, deterministic_clock)
        tokens = TokenService(s, audit, clock=deterministic_clock)

        assert tokens.active_token(contract.id).attempt_count == 5
        attempts = [e for e in audit.stream_for(contract.id) if e.kind is AuditEventKind.ACCESS_ATTEMPT]
        assert len(attempts) == WORKERS
        assert audit.validate_chain(contract.id)
