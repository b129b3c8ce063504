"""
signing_services.signing_orchestrator -- wiring for kernel services.

Responsibility:
    Creates every kernel service exactly once per session and wires them
    together with the active settings.  This is where configuration
    (token lifetime, attempt ceiling, contract number prefix) crosses into
    the kernel as plain constructor arguments.

Invariants enforced:
    - Single-instance lifecycle: one AuditLog and one TokenService per
      orchestrator, shared by the lifecycle service, so every audit event
      of a request goes through the same chain head.

Non-goals:
    - Does NOT manage transaction boundaries (caller's responsibility).

Usage:
    with session_scope() as session:
        orchestrator = SigningOrchestrator(session, settings)
        orchestrator.lifecycle.finalize(contract_id, actor_id)
"""

from __future__ import annotations

from collections.abc import Callable

from sqlalchemy.orm import Session

from signing_config import SigningSettings
from signing_kernel.domain.clock import Clock, SystemClock
from signing_kernel.domain.tokens import generate_code
from signing_kernel.selectors.contract_selector import ContractSelector
from signing_kernel.services.audit_log import AuditLog
from signing_kernel.services.contract_lifecycle import ContractLifecycleService
from signing_kernel.services.integrity_service import DocumentIntegrityService
from signing_kernel.services.template_service import TemplateService
from signing_kernel.services.token_service import TokenService


class SigningOrchestrator:
    """Central factory for kernel services.

    All services share the same Session and Clock instances and are
    exposed as public attributes.
    """

    def __init__(
        self,
        session: Session,
        settings: SigningSettings,
        clock: Clock | None = None,
        code_generator: Callable[[], str] = generate_code,
    ) -> None:
        self._session = session
        self.settings = settings
        self.clock = clock or SystemClock()

        self.audit_log = AuditLog(session, self.clock)
        self.integrity = DocumentIntegrityService(session)
        self.token_service = TokenService(
            session,
            self.audit_log,
            self.clock,
            ttl=settings.token_ttl,
            max_attempts=settings.token_max_attempts,
            code_generator=code_generator,
        )
        self.templates = TemplateService(session, self.clock)
        self.lifecycle = ContractLifecycleService(
            session,
            clock=self.clock,
            audit_log=self.audit_log,
            token_service=self.token_service,
            integrity=self.integrity,
            number_prefix=settings.contract_number_prefix,
        )
        self.contracts = ContractSelector(session)
