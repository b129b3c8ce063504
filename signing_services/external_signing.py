"""
External signing entry point -- where the counter-party types the code.

Responsibility:
    Accepts a contract id and the raw text typed by the external signer,
    enriches the request context with a best-effort geolocation and runs
    ``sign_external`` in its own transaction.

Invariants enforced:
    - Input that is not exactly six ASCII digits is rejected with
      MalformedCodeError before any session is opened.
    - Geolocation never blocks or fails the signing path: provider errors
      are logged and the signature proceeds without a position.
    - Token failures commit: the ``tentativa_acesso`` event and the
      attempt count survive even though the contract does not move.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Callable
from typing import Protocol
from uuid import UUID

from sqlalchemy.orm import Session

from signing_config import SigningSettings
from signing_kernel.db.engine import session_scope
from signing_kernel.domain.clock import Clock
from signing_kernel.domain.evidence import Geolocation, RequestContext
from signing_kernel.domain.tokens import is_well_formed_code
from signing_kernel.exceptions import MalformedCodeError
from signing_kernel.logging_config import LogContext, get_logger
from signing_kernel.services.contract_lifecycle import ExternalSignatureResult
from signing_services.signing_orchestrator import SigningOrchestrator

logger = get_logger("services.external_signing")


class GeolocationProvider(Protocol):
    """Resolves an approximate position for a request.  May raise."""

    def locate(self, context: RequestContext) -> Geolocation | None: ...


class ExternalSigningEntryPoint:
    """Public signing endpoint logic, independent of any web framework."""

    def __init__(
        self,
        settings: SigningSettings,
        session_factory: Callable[[], Session] | None = None,
        clock: Clock | None = None,
        geolocation_provider: GeolocationProvider | None = None,
    ):
        self._settings = settings
        self._session_factory = session_factory
        self._clock = clock
        self._geolocation = geolocation_provider

    def _with_geolocation(self, context: RequestContext) -> RequestContext:
        if context.geolocation is not None or self._geolocation is None:
            return context
        try:
            position = self._geolocation.locate(context)
        except Exception as exc:
            logger.warning(
                "geolocation_unavailable",
                extra={"error": str(exc), "error_type": type(exc).__name__},
            )
            return context
        if position is None:
            return context
        return dataclasses.replace(context, geolocation=position)

    def submit(
        self,
        contract_id: UUID,
        raw_code: str,
        context: RequestContext,
    ) -> ExternalSignatureResult:
        """
        Validate the shape of the code, then attempt the external signature.

        Raises:
            MalformedCodeError: If ``raw_code`` is not six ASCII digits.
            InvalidTransitionError: If the contract is draft, awaiting the
                internal signature or cancelled.  A completed contract returns
                ``AlreadyConsumed`` instead.
        """
        with LogContext.bind(contract_id=contract_id):
            if not is_well_formed_code(raw_code):
                length = len(raw_code) if isinstance(raw_code, str) else 0
                logger.warning("external_code_malformed", extra={"code_length": length})
                raise MalformedCodeError(length)

            context = self._with_geolocation(context)

            with session_scope(self._session_factory) as session:
                orchestrator = SigningOrchestrator(session, self._settings, clock=self._clock)
                result = orchestrator.lifecycle.sign_external(contract_id, raw_code, context)

            logger.info(
                "external_submission_processed",
                extra={"outcome": result.outcome.value, "completed": result.completed},
            )
            return result
