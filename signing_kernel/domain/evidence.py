"""
Signature evidence types (``signing_kernel.domain.evidence``).

Responsibility
--------------
Typed, validated evidence bundles.  Each signature kind carries its own
evidence schema instead of a free-form JSON object:

* ``internal_qualified`` -> ``InternalSignatureEvidence`` (certificate
  subject, issuer, serial, validity window, algorithm, thumbprint).
* ``external_token_verified`` -> ``ExternalSignatureEvidence`` (IP address,
  user agent, optional geolocation, the redeemed token code).

Both serialize to plain dicts for JSON storage and rebuild from them with
``evidence_from_payload``.

Architecture position
---------------------
**Kernel domain layer** -- ZERO I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Union
from uuid import UUID

from signing_kernel.domain.lifecycle import SignatureKind

QUALIFIED_SIGNATURE_CAPABILITY = "qualified_signature"


def _require_text(value: str, name: str) -> None:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{name} must be a non-empty string")


def _parse_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


# =========================================================================
# Request context
# =========================================================================


@dataclass(frozen=True)
class Geolocation:
    """Best-effort position reported by the external signer's browser."""

    latitude: float
    longitude: float
    accuracy_meters: float | None = None

    def __post_init__(self) -> None:
        if not -90.0 <= self.latitude <= 90.0:
            raise ValueError(f"latitude out of range: {self.latitude}")
        if not -180.0 <= self.longitude <= 180.0:
            raise ValueError(f"longitude out of range: {self.longitude}")
        if self.accuracy_meters is not None and self.accuracy_meters < 0:
            raise ValueError(f"accuracy_meters must be >= 0: {self.accuracy_meters}")

    def to_payload(self) -> dict[str, Any]:
        return {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "accuracy_meters": self.accuracy_meters,
        }

    @classmethod
    def from_payload(cls, data: dict[str, Any] | None) -> Geolocation | None:
        if not data:
            return None
        return cls(
            latitude=float(data["latitude"]),
            longitude=float(data["longitude"]),
            accuracy_meters=(
                float(data["accuracy_meters"])
                if data.get("accuracy_meters") is not None
                else None
            ),
        )


@dataclass(frozen=True)
class RequestContext:
    """Where a request came from.  Captured on audit events and signatures."""

    ip_address: str
    user_agent: str
    geolocation: Geolocation | None = None

    def __post_init__(self) -> None:
        _require_text(self.ip_address, "ip_address")
        _require_text(self.user_agent, "user_agent")


# =========================================================================
# Signer identity (internal)
# =========================================================================


@dataclass(frozen=True)
class QualifiedCredential:
    """Certificate metadata supplied by the identity provider."""

    subject: str
    issuer: str
    serial_number: str
    valid_from: datetime
    valid_until: datetime
    algorithm: str = "SHA256withRSA"
    thumbprint: str | None = None

    def __post_init__(self) -> None:
        _require_text(self.subject, "subject")
        _require_text(self.issuer, "issuer")
        _require_text(self.serial_number, "serial_number")
        if self.valid_until <= self.valid_from:
            raise ValueError("credential valid_until must be after valid_from")

    def is_valid_at(self, instant: datetime) -> bool:
        return self.valid_from <= instant <= self.valid_until


@dataclass(frozen=True)
class SignerIdentity:
    """The internal signer, passed explicitly into every signing call."""

    actor_id: UUID
    display_name: str
    email: str
    capabilities: frozenset[str] = field(default_factory=frozenset)
    credential: QualifiedCredential | None = None

    def __post_init__(self) -> None:
        _require_text(self.display_name, "display_name")
        _require_text(self.email, "email")

    def qualification_problem(self, instant: datetime) -> str | None:
        """Return why this signer cannot sign at ``instant``, or None."""
        if QUALIFIED_SIGNATURE_CAPABILITY not in self.capabilities:
            return "signer lacks the qualified signature capability"
        if self.credential is None:
            return "signer has no qualified credential"
        if not self.credential.is_valid_at(instant):
            return "qualified credential is outside its validity window"
        return None


# =========================================================================
# Evidence bundles (tagged union)
# =========================================================================


@dataclass(frozen=True)
class InternalSignatureEvidence:
    """Evidence for a qualified internal signature."""

    subject: str
    issuer: str
    serial_number: str
    valid_from: datetime
    valid_until: datetime
    algorithm: str
    thumbprint: str | None = None

    kind = SignatureKind.INTERNAL_QUALIFIED

    @classmethod
    def from_credential(cls, credential: QualifiedCredential) -> InternalSignatureEvidence:
        return cls(
            subject=credential.subject,
            issuer=credential.issuer,
            serial_number=credential.serial_number,
            valid_from=credential.valid_from,
            valid_until=credential.valid_until,
            algorithm=credential.algorithm,
            thumbprint=credential.thumbprint,
        )

    def to_payload(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "subject": self.subject,
            "issuer": self.issuer,
            "serial_number": self.serial_number,
            "valid_from": self.valid_from.isoformat(),
            "valid_until": self.valid_until.isoformat(),
            "algorithm": self.algorithm,
            "thumbprint": self.thumbprint,
        }


@dataclass(frozen=True)
class ExternalSignatureEvidence:
    """Evidence for a token-verified external signature."""

    ip_address: str
    user_agent: str
    token_code: str
    token_id: UUID
    geolocation: Geolocation | None = None

    kind = SignatureKind.EXTERNAL_TOKEN_VERIFIED

    def __post_init__(self) -> None:
        _require_text(self.ip_address, "ip_address")
        _require_text(self.user_agent, "user_agent")
        if len(self.token_code) != 6 or not self.token_code.isdigit():
            raise ValueError("token_code must be six digits")

    def to_payload(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
            "token_code": self.token_code,
            "token_id": str(self.token_id),
            "geolocation": self.geolocation.to_payload() if self.geolocation else None,
        }


SignatureEvidence = Union[InternalSignatureEvidence, ExternalSignatureEvidence]


def evidence_from_payload(data: dict[str, Any]) -> SignatureEvidence:
    """Rebuild a typed evidence bundle from its stored JSON form."""
    kind = SignatureKind(data["kind"])
    if kind is SignatureKind.INTERNAL_QUALIFIED:
        return InternalSignatureEvidence(
            subject=data["subject"],
            issuer=data["issuer"],
            serial_number=data["serial_number"],
            valid_from=_parse_datetime(data["valid_from"]),
            valid_until=_parse_datetime(data["valid_until"]),
            algorithm=data["algorithm"],
            thumbprint=data.get("thumbprint"),
        )
    return ExternalSignatureEvidence(
        ip_address=data["ip_address"],
        user_agent=data["user_agent"],
        token_code=data["token_code"],
        token_id=UUID(data["token_id"]),
        geolocation=Geolocation.from_payload(data.get("geolocation")),
    )
