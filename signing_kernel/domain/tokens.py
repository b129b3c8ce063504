"""
Verification token value objects (``signing_kernel.domain.tokens``).

Responsibility
--------------
Code shape rules, code generation, redaction for logs and audit payloads,
and the result types returned by token validation.

Architecture position
---------------------
**Kernel domain layer** -- ZERO I/O.  ``generate_code`` draws from the
``secrets`` CSPRNG and is injectable in ``TokenService``.

Invariants enforced
-------------------
* A code is exactly six ASCII digits, kept as a zero-padded string.
* A redacted code exposes at most its first and last digit and its length.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from uuid import UUID

CODE_LENGTH = 6
DEFAULT_TOKEN_TTL = timedelta(hours=24)
DEFAULT_MAX_ATTEMPTS = 5

_ASCII_DIGITS = frozenset("0123456789")


def is_well_formed_code(code: object) -> bool:
    """True when ``code`` is exactly six ASCII digits.

    ``str.isdigit`` is not used: it accepts non-ASCII digits such as "٣".
    """
    return (
        isinstance(code, str)
        and len(code) == CODE_LENGTH
        and all(ch in _ASCII_DIGITS for ch in code)
    )


def generate_code() -> str:
    """Uniformly random six-digit code, leading zeros preserved."""
    return f"{secrets.randbelow(10 ** CODE_LENGTH):0{CODE_LENGTH}d}"


def redact_code(code: str) -> str:
    """Keep the first and last character, mask the rest.

    >>> redact_code("482913")
    '4****3'
    """
    if len(code) <= 2:
        return "*" * len(code)
    return f"{code[0]}{'*' * (len(code) - 2)}{code[-1]}"


class ValidationOutcome(str, Enum):
    """Every possible result of a redemption attempt."""

    SUCCESS = "success"
    MALFORMED_CODE = "malformed_code"
    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    TOO_MANY_ATTEMPTS = "too_many_attempts"
    INVALID_CODE = "invalid_code"
    ALREADY_CONSUMED = "already_consumed"


class ConsumptionReason(str, Enum):
    """Why a token stopped being active."""

    REDEEMED = "redeemed"
    SUPERSEDED = "superseded"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class TokenInfo:
    """Token metadata safe to hand around.  Never carries the code."""

    token_id: UUID
    contract_id: UUID
    recipient_email: str
    created_at: datetime
    expires_at: datetime
    attempt_count: int
    max_attempts: int
    consumed_at: datetime | None = None
    consumption_reason: ConsumptionReason | None = None


@dataclass(frozen=True)
class IssuedToken:
    """Result of ``TokenService.issue``: the only place the plaintext code leaves."""

    info: TokenInfo
    code: str
    superseded_token_ids: tuple[UUID, ...] = ()

    def __repr__(self) -> str:
        return f"IssuedToken(token_id={self.info.token_id}, code={redact_code(self.code)!r})"


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of one redemption attempt.

    ``token`` is set whenever a token row was involved, including
    failures, so callers can show attempts left or expiry.
    """

    outcome: ValidationOutcome
    contract_id: UUID
    token: TokenInfo | None = None

    @property
    def succeeded(self) -> bool:
        return self.outcome is ValidationOutcome.SUCCESS

    @property
    def attempts_remaining(self) -> int | None:
        if self.token is None:
            return None
        return max(self.token.max_attempts - self.token.attempt_count, 0)


@dataclass(frozen=True)
class TokenTimeRemaining:
    """Countdown for the active token, as shown to the internal signer."""

    token_id: UUID
    expires_at: datetime
    remaining: timedelta
    attempts_remaining: int

    @property
    def expired(self) -> bool:
        return self.remaining <= timedelta(0)

    @property
    def hours(self) -> int:
        return int(max(self.remaining, timedelta(0)).total_seconds() // 3600)

    @property
    def minutes(self) -> int:
        return int(max(self.remaining, timedelta(0)).total_seconds() % 3600 // 60)

    def describe(self) -> str:
        if self.expired:
            return "expired"
        if self.hours:
            return f"{self.hours}h {self.minutes}m"
        return f"{self.minutes}m"
