"""
TokenService -- issue and redeem six-digit verification codes.

Responsibility:
    Mints the short-lived code that lets the external party sign, and
    decides every redemption attempt.  Delivery of the code (email) is an
    outer-layer concern; this service only guarantees the code and its
    lifetime.

Architecture position:
    Kernel > Services -- called by ContractLifecycleService.

Invariants enforced:
    - At most one unconsumed token per (contract, recipient): issuing
      retires every earlier unconsumed token for the pair first.
    - Attempts never exceed the ceiling, even under concurrent guesses:
      the counter is raised by a single conditional UPDATE
      (``attempt_count < max_attempts``) and the row count decides.
    - A token is consumed at most once: consumption is a conditional
      UPDATE on ``consumed_at IS NULL``.
    - Every validation outcome appends exactly one ``tentativa_acesso``
      event, carrying a redacted code hint only.

Validation order:
    malformed -> not found / retired -> expired -> attempts exhausted ->
    mismatch (counted) | match (consumed).  Expiry wins over an exhausted
    counter.

Failure modes:
    - Token outcomes are returned as ValidationResult, never raised.
    - TokenNotFoundError from describe_active when nothing is active.
"""

import hmac
from collections.abc import Callable
from datetime import timedelta
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from signing_kernel.domain.audit import (
    AccessAttemptPayload,
    AuditEventKind,
    TokenIssuedPayload,
)
from signing_kernel.domain.clock import Clock, SystemClock
from signing_kernel.domain.evidence import RequestContext
from signing_kernel.domain.tokens import (
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_TOKEN_TTL,
    ConsumptionReason,
    IssuedToken,
    TokenInfo,
    TokenTimeRemaining,
    ValidationOutcome,
    ValidationResult,
    generate_code,
    is_well_formed_code,
    redact_code,
)
from signing_kernel.exceptions import TokenNotFoundError
from signing_kernel.logging_config import get_logger
from signing_kernel.models.verification_token import VerificationToken
from signing_kernel.services.audit_log import AuditLog

logger = get_logger("services.token")


class TokenService:
    """
    Verification token issuance and redemption.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
        - Does NOT send email.
    """

    def __init__(
        self,
        session: Session,
        audit_log: AuditLog,
        clock: Clock | None = None,
        ttl: timedelta = DEFAULT_TOKEN_TTL,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        code_generator: Callable[[], str] = generate_code,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if ttl <= timedelta(0):
            raise ValueError("ttl must be positive")
        self._session = session
        self._audit = audit_log
        self._clock = clock or SystemClock()
        self._ttl = ttl
        self._max_attempts = max_attempts
        self._code_generator = code_generator

    # =========================================================================
    # Issue
    # =========================================================================

    def issue(
        self,
        contract_id: UUID,
        recipient_email: str,
        actor_id: UUID | None = None,
    ) -> IssuedToken:
        """
        Mint a code for (contract, recipient), retiring any earlier one.

        Postconditions:
            - Exactly one unconsumed token exists for the pair.
            - expires_at = now + ttl.
            - One ``token_emitido`` event is appended.
        """
        now = self._clock.now()

        retired = self._session.execute(
            select(VerificationToken)
            .where(
                VerificationToken.contract_id == contract_id,
                VerificationToken.recipient_email == recipient_email,
                VerificationToken.consumed_at.is_(None),
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalars().all()

        for old in retired:
            old.consumed_at = now
            old.consumption_reason = (
                ConsumptionReason.EXPIRED if old.is_expired_at(now)
                else ConsumptionReason.SUPERSEDED
            )
        # Retire before inserting: the partial unique index allows one live row.
        self._session.flush()

        code = self._code_generator()
        if not is_well_formed_code(code):
            raise ValueError("code generator must return exactly six ASCII digits")

        token = VerificationToken(
            contract_id=contract_id,
            recipient_email=recipient_email,
            code=code,
            created_at=now,
            expires_at=now + self._ttl,
            attempt_count=0,
            max_attempts=self._max_attempts,
        )
        self._session.add(token)
        self._session.flush()

        superseded_ids = tuple(old.id for old in retired)
        self._audit.append(
            contract_id,
            AuditEventKind.TOKEN_ISSUED,
            TokenIssuedPayload(
                token_id=token.id,
                recipient_email=recipient_email,
                expires_at=token.expires_at,
                superseded_token_ids=superseded_ids,
            ),
            actor_id=actor_id,
        )

        logger.info(
            "token_issued",
            extra={
                "contract_id": str(contract_id),
                "token_id": str(token.id),
                "expires_at": token.expires_at,
                "superseded": len(superseded_ids),
            },
        )
        return IssuedToken(info=token.to_info(), code=code, superseded_token_ids=superseded_ids)

    # =========================================================================
    # Validate
    # =========================================================================

    def validate(
        self,
        contract_id: UUID,
        code: str,
        context: RequestContext | None = None,
        actor_id: UUID | None = None,
    ) -> ValidationResult:
        """
        Decide one redemption attempt.  Always appends one audit event.
        """
        if not is_well_formed_code(code):
            length = len(code) if isinstance(code, str) else 0
            return self._conclude(
                contract_id, ValidationOutcome.MALFORMED_CODE, None,
                code_hint=None, code_length=length, context=context, actor_id=actor_id,
            )

        now = self._clock.now()
        hint = redact_code(code)
        token = self._latest_unconsumed(contract_id)

        if token is None:
            outcome, token = self._outcome_without_active_token(contract_id)
        elif token.is_expired_at(now):
            outcome = ValidationOutcome.EXPIRED
        elif token.attempt_count >= token.max_attempts:
            outcome = ValidationOutcome.TOO_MANY_ATTEMPTS
        elif not hmac.compare_digest(code, token.code):
            if self._matches_retired_token(contract_id, code):
                outcome = ValidationOutcome.ALREADY_CONSUMED
            elif self._count_failed_attempt(token):
                outcome = ValidationOutcome.INVALID_CODE
            else:
                outcome = ValidationOutcome.TOO_MANY_ATTEMPTS
        elif self._consume(token, now):
            outcome = ValidationOutcome.SUCCESS
        else:
            outcome = ValidationOutcome.ALREADY_CONSUMED

        return self._conclude(
            contract_id, outcome, token,
            code_hint=hint, code_length=len(code), context=context, actor_id=actor_id,
        )

    def _latest_unconsumed(self, contract_id: UUID) -> VerificationToken | None:
        return self._session.execute(
            select(VerificationToken)
            .where(
                VerificationToken.contract_id == contract_id,
                VerificationToken.consumed_at.is_(None),
            )
            .order_by(VerificationToken.created_at.desc())
            .limit(1)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _latest_any(self, contract_id: UUID) -> VerificationToken | None:
        return self._session.execute(
            select(VerificationToken)
            .where(VerificationToken.contract_id == contract_id)
            .order_by(VerificationToken.created_at.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _outcome_without_active_token(
        self, contract_id: UUID
    ) -> tuple[ValidationOutcome, VerificationToken | None]:
        latest = self._latest_any(contract_id)
        if latest is None:
            return ValidationOutcome.NOT_FOUND, None
        if latest.consumption_reason is ConsumptionReason.EXPIRED:
            # Swept by expire_stale_tokens; still reported as expired.
            return ValidationOutcome.EXPIRED, latest
        return ValidationOutcome.ALREADY_CONSUMED, latest

    def _matches_retired_token(self, contract_id: UUID, code: str) -> bool:
        retired_codes = self._session.execute(
            select(VerificationToken.code).where(
                VerificationToken.contract_id == contract_id,
                VerificationToken.consumed_at.is_not(None),
            )
        ).scalars().all()
        return any(hmac.compare_digest(code, old) for old in retired_codes)

    def _count_failed_attempt(self, token: VerificationToken) -> bool:
        """Atomically raise the counter if still below the ceiling."""
        result = self._session.execute(
            update(VerificationToken)
            .where(
                VerificationToken.id == token.id,
                VerificationToken.consumed_at.is_(None),
                VerificationToken.attempt_count < VerificationToken.max_attempts,
            )
            .values(attempt_count=VerificationToken.attempt_count + 1)
            .execution_options(synchronize_session=False)
        )
        self._session.refresh(token)
        return result.rowcount == 1

    def _consume(self, token: VerificationToken, now) -> bool:
        """Atomically mark the token redeemed.  False if someone beat us."""
        result = self._session.execute(
            update(VerificationToken)
            .where(
                VerificationToken.id == token.id,
                VerificationToken.consumed_at.is_(None),
                VerificationToken.attempt_count < VerificationToken.max_attempts,
            )
            .values(consumed_at=now, consumption_reason=ConsumptionReason.REDEEMED)
            .execution_options(synchronize_session=False)
        )
        self._session.refresh(token)
        return result.rowcount == 1

    def _conclude(
        self,
        contract_id: UUID,
        outcome: ValidationOutcome,
        token: VerificationToken | None,
        *,
        code_hint: str | None,
        code_length: int,
        context: RequestContext | None,
        actor_id: UUID | None,
    ) -> ValidationResult:
        info = token.to_info() if token is not None else None
        self._audit.append(
            contract_id,
            AuditEventKind.ACCESS_ATTEMPT,
            AccessAttemptPayload(
                outcome=outcome,
                code_hint=code_hint,
                code_length=code_length,
                token_id=info.token_id if info else None,
                attempt_count=info.attempt_count if info else None,
                max_attempts=info.max_attempts if info else None,
            ),
            actor_id=actor_id,
            context=context,
        )

        log_extra = {
            "contract_id": str(contract_id),
            "outcome": outcome.value,
            "code_hint": code_hint,
            "token_id": str(info.token_id) if info else None,
            "attempt_count": info.attempt_count if info else None,
        }
        if outcome is ValidationOutcome.SUCCESS:
            logger.info("token_validation_succeeded", extra=log_extra)
        else:
            logger.warning("token_validation_failed", extra=log_extra)

        return ValidationResult(outcome=outcome, contract_id=contract_id, token=info)

    # =========================================================================
    # Queries and hygiene
    # =========================================================================

    def active_token(self, contract_id: UUID) -> TokenInfo | None:
        """The current unconsumed token, if any (may be expired or exhausted)."""
        token = self._session.execute(
            select(VerificationToken)
            .where(
                VerificationToken.contract_id == contract_id,
                VerificationToken.consumed_at.is_(None),
            )
            .order_by(VerificationToken.created_at.desc())
            .limit(1)
        ).scalar_one_or_none()
        return token.to_info() if token else None

    def describe_active(self, contract_id: UUID) -> TokenTimeRemaining:
        """Countdown and remaining attempts for the active token.

        Raises:
            TokenNotFoundError: if the contract has no unconsumed token.
        """
        info = self.active_token(contract_id)
        if info is None:
            raise TokenNotFoundError(str(contract_id))
        return TokenTimeRemaining(
            token_id=info.token_id,
            expires_at=info.expires_at,
            remaining=info.expires_at - self._clock.now(),
            attempts_remaining=max(info.max_attempts - info.attempt_count, 0),
        )

    def revoke_for_contract(self, contract_id: UUID) -> int:
        """Retire every unconsumed token of a contract that is being closed.

        Later redemptions of a revoked code report ``already_consumed``.
        """
        now = self._clock.now()
        result = self._session.execute(
            update(VerificationToken)
            .where(
                VerificationToken.contract_id == contract_id,
                VerificationToken.consumed_at.is_(None),
            )
            .values(consumed_at=now, consumption_reason=ConsumptionReason.CANCELLED)
            .execution_options(synchronize_session=False)
        )
        revoked = result.rowcount
        if revoked:
            logger.info(
                "tokens_revoked",
                extra={"contract_id": str(contract_id), "count": revoked},
            )
        return revoked

    def expire_stale_tokens(self) -> int:
        """Mark expired, unconsumed tokens as consumed.  Storage hygiene only."""
        now = self._clock.now()
        result = self._session.execute(
            update(VerificationToken)
            .where(
                VerificationToken.consumed_at.is_(None),
                VerificationToken.expires_at < now,
            )
            .values(consumed_at=now, consumption_reason=ConsumptionReason.EXPIRED)
            .execution_options(synchronize_session=False)
        )
        swept = result.rowcount
        if swept:
            logger.info("stale_tokens_expired", extra={"count": swept})
        return swept
