"""
SigningSettings schema.

The frozen runtime settings of the signing system.  YAML files are parsed
into this type by the loader; nothing else constructs it in production.

Token lifetime and the attempt ceiling are fixed policy.  They appear in
the settings so a deployment states them explicitly, but any other value
is rejected.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta

LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})

TOKEN_TTL_HOURS = 24
TOKEN_MAX_ATTEMPTS = 5


@dataclass(frozen=True)
class SigningSettings:
    """Validated settings.  ``checksum`` identifies the source document."""

    database_url: str
    signing_base_url: str
    token_ttl_hours: int = TOKEN_TTL_HOURS
    token_max_attempts: int = TOKEN_MAX_ATTEMPTS
    contract_number_prefix: str = "C"
    log_level: str = "INFO"
    checksum: str = ""

    def __post_init__(self) -> None:
        if self.token_ttl_hours != TOKEN_TTL_HOURS:
            raise ValueError(
                f"token_ttl_hours: fixed at {TOKEN_TTL_HOURS}, got {self.token_ttl_hours!r}"
            )
        if self.token_max_attempts != TOKEN_MAX_ATTEMPTS:
            raise ValueError(
                f"token_max_attempts: fixed at {TOKEN_MAX_ATTEMPTS}, got {self.token_max_attempts!r}"
            )

    @property
    def token_ttl(self) -> timedelta:
        return timedelta(hours=self.token_ttl_hours)

    @property
    def log_level_number(self) -> int:
        return getattr(logging, self.log_level)

    def signing_url(self, contract_id) -> str:
        """Public page where the external party types the code."""
        return f"{self.signing_base_url.rstrip('/')}/assinatura-externa/{contract_id}"
