"""
Concurrent redemptions of the same correct code.

Only one request may complete the contract.  The others must fail
cleanly (already consumed, wrong status, or a lost compare-and-set) and
leave neither a second external signature nor a second completion event.
"""

from concurrent.futures import ThreadPoolExecutor
from threading import Barrier

import pytest

from signing_kernel.db.engine import session_scope
from signing_kernel.domain.audit import AuditEventKind
from signing_kernel.domain.evidence import RequestContext
from signing_kernel.domain.lifecycle import ContractStatus
from signing_kernel.domain.tokens import ValidationOutcome
from signing_kernel.exceptions import ConcurrentTransitionError, InvalidTransitionError
from signing_kernel.selectors.contract_selector import ContractSelector
from signing_kernel.services.audit_log import AuditLog
from signing_kernel.services.contract_lifecycle import ContractLifecycleService
from signing_kernel.services.token_service import TokenService

pytestmark = pytest.mark.slow_locks

WORKERS = 8


def test_exactly_one_completion(session_factory, committed_contract, deterministic_clock):
    contract = committed_contract("awaiting_external")
    barrier = Barrier(WORKERS)

    def redeem(i):
        barrier.wait(timeout=30)
        try:
            with session_scope(session_factory) as s:
                audit = AuditLog(s, deterministic_clock)
                service = ContractLifecycleService(
                    s,
                    clock=deterministic_clock,
                    audit_log=audit,
                    token_service=TokenService(s, audit, clock=deterministic_clock),
                )
                result = service.sign_external(
                    contract.id,
                    "482913",
                    RequestContext(ip_address=f"198.51.100.{i + 1}", user_agent="pytest"),
                )
                return result.outcome.value
        except (InvalidTransitionError, ConcurrentTransitionError) as exc:
            return exc.code

    with ThreadPoolExecutor(max_workers=WORKERS) as pool:
        results = list(pool.map(redeem, range(WORKERS)))

    assert results.count(ValidationOutcome.SUCCESS.value) == 1
    allowed = {
        ValidationOutcome.ALREADY_CONSUMED.value,
        InvalidTransitionError.code,
        ConcurrentTransitionError.code,
    }
    assert set(results) - {ValidationOutcome.SUCCESS.value} <= allowed

    with session_scope(session_factory) as s:
        selector = ContractSelector(s)
        audit = AuditLog(s, deterministic_clock)

        assert selector.get(contract.id).status is ContractStatus.COMPLETED
        assert len(selector.signatures_for(contract.id)) == 2
        assert audit.kinds_for(contract.id).count(AuditEventKind.CONTRACT_COMPLETED) == 1
        assert audit.validate_chain(contract.id)
