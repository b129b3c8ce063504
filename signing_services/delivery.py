"""
Token delivery -- hand a fresh verification code to the email collaborator.

Responsibility:
    Builds the payload the external signer receives (contract, recipient,
    signing URL, plaintext code, valid-until timestamp) and passes it to
    an ``EmailGateway``.

Invariants enforced:
    - A failed dispatch never invalidates the token.  The token was
      committed before delivery; the caller may read the code to the
      counter-party through another channel or reissue it.
    - The plaintext code appears only in the payload handed to the
      gateway, never in logs or reprs.

Failure modes:
    - Gateway errors are reported as ``DispatchReceipt(delivered=False)``
      with the error text; they are not raised.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol
from uuid import UUID

from signing_config import SigningSettings
from signing_kernel.domain.clock import Clock, SystemClock
from signing_kernel.domain.dtos import ContractInfo
from signing_kernel.domain.tokens import IssuedToken, redact_code
from signing_kernel.logging_config import get_logger

logger = get_logger("services.delivery")


@dataclass(frozen=True)
class TokenDeliveryPayload:
    """Everything the email collaborator needs to notify the external signer."""

    contract_id: UUID
    contract_number: str
    contract_title: str
    recipient_name: str
    recipient_email: str
    signing_url: str
    code: str
    valid_until: datetime

    def __repr__(self) -> str:
        return (
            f"TokenDeliveryPayload(contract={self.contract_number}, "
            f"recipient={self.recipient_email}, code={redact_code(self.code)}, "
            f"valid_until={self.valid_until.isoformat()})"
        )


@dataclass(frozen=True)
class DispatchReceipt:
    delivered: bool
    attempted_at: datetime
    error: str | None = None


class EmailGateway(Protocol):
    """Outbound email collaborator.  Raises on delivery failure."""

    def send(self, payload: TokenDeliveryPayload) -> None: ...


def build_delivery_payload(
    contract: ContractInfo,
    token: IssuedToken,
    settings: SigningSettings,
) -> TokenDeliveryPayload:
    """Assemble the delivery payload for a just-issued token."""
    if token.info.contract_id != contract.id:
        raise ValueError("token was issued for a different contract")
    return TokenDeliveryPayload(
        contract_id=contract.id,
        contract_number=contract.number,
        contract_title=contract.title,
        recipient_name=contract.external_signer_name,
        recipient_email=token.info.recipient_email,
        signing_url=settings.signing_url(contract.id),
        code=token.code,
        valid_until=token.info.expires_at,
    )


class TokenDispatcher:
    """Sends delivery payloads through an EmailGateway."""

    def __init__(self, gateway: EmailGateway, clock: Clock | None = None):
        self._gateway = gateway
        self._clock = clock or SystemClock()

    def dispatch(self, payload: TokenDeliveryPayload) -> DispatchReceipt:
        attempted_at = self._clock.now()
        try:
            self._gateway.send(payload)
        except Exception as exc:
            logger.warning(
                "token_dispatch_failed",
                extra={
                    "contract_id": str(payload.contract_id),
                    "recipient_email": payload.recipient_email,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
            )
            return DispatchReceipt(delivered=False, attempted_at=attempted_at, error=str(exc))

        logger.info(
            "token_dispatched",
            extra={
                "contract_id": str(payload.contract_id),
                "recipient_email": payload.recipient_email,
                "code_hint": redact_code(payload.code),
            },
        )
        return DispatchReceipt(delivered=True, attempted_at=attempted_at)
