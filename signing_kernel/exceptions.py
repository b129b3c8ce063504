"""
Typed Exception Hierarchy for the Signing Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

A signing workflow has to tell its callers exactly what went wrong: a
contract in the wrong state, a signer without a qualified credential, a
concurrent transition that lost the race. Callers branch on the exception
TYPE and its machine-readable CODE, never on message text.

Every exception:
  1. Has a TYPED class (catch by type, not message)
  2. Has a class-level CODE attribute (machine-readable, API-safe)
  3. Carries structured DATA as attributes

Token validation outcomes (expired, invalid code, too many attempts...) are
NOT exceptions. They are returned as ValidationResult values so the failed
attempt and its audit event commit with the caller's transaction.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    SigningKernelError (base)
    |
    +-- ContractError
    |   +-- ContractNotFoundError
    |   +-- InvalidTransitionError
    |   |   +-- UnqualifiedSignerError
    |   +-- ContentLockedError
    |   +-- MissingSignatureError
    |   +-- TemplateNotFoundError
    |
    +-- TokenError
    |   +-- MalformedCodeError
    |   +-- TokenNotFoundError
    |
    +-- AuditError
    |   +-- AuditChainBrokenError
    |   +-- AuditPayloadMismatchError
    |
    +-- IntegrityError
    |   +-- DocumentTamperedError
    |
    +-- ConcurrencyError
    |   +-- ConcurrentTransitionError
    |
    +-- ImmutabilityError
    |   +-- ImmutabilityViolationError
    |
    +-- CollaboratorError
        +-- RenderingError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Contract        | CONTRACT_NOT_FOUND          | Contract ID doesn't exist
                | INVALID_TRANSITION          | Lifecycle guard violated
                | UNQUALIFIED_SIGNER          | Internal signer lacks credential
                | CONTENT_LOCKED              | Editing content outside draft/cancelled
                | MISSING_SIGNATURE           | Completion without both signatures
                | TEMPLATE_NOT_FOUND          | Template ID doesn't exist
----------------|-----------------------------|-----------------------------------------
Token           | MALFORMED_CODE              | Input is not exactly 6 ASCII digits
                | TOKEN_NOT_FOUND             | No active token to describe/reissue
----------------|-----------------------------|-----------------------------------------
Audit           | AUDIT_CHAIN_BROKEN          | Hash chain validation failed
                | AUDIT_PAYLOAD_MISMATCH      | Payload schema doesn't match kind
----------------|-----------------------------|-----------------------------------------
Integrity       | DOCUMENT_TAMPERED           | Stored hash doesn't match content
----------------|-----------------------------|-----------------------------------------
Concurrency     | CONCURRENT_TRANSITION       | Status changed under our feet
----------------|-----------------------------|-----------------------------------------
Immutability    | IMMUTABILITY_VIOLATION      | Modifying an immutable record
----------------|-----------------------------|-----------------------------------------
Collaborator    | RENDERING_FAILED            | PDF renderer raised

===============================================================================
HANDLING PATTERNS
===============================================================================

    try:
        lifecycle.sign_internal(contract_id, signer)
    except UnqualifiedSignerError as e:
        return {"error": e.code, "reason": e.reason}
    except InvalidTransitionError as e:
        return {"error": e.code, "status": e.current_status}

ConcurrencyError means someone else moved the contract first. Re-read the
contract before deciding anything; never retry blindly.
"""


class SigningKernelError(Exception):
    """
    Base exception for all signing kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "SIGNING_KERNEL_ERROR"


# Contract-related exceptions


class ContractError(SigningKernelError):
    """Base exception for contract-related errors."""

    code: str = "CONTRACT_ERROR"


class ContractNotFoundError(ContractError):
    """Contract with given ID was not found."""

    code: str = "CONTRACT_NOT_FOUND"

    def __init__(self, contract_id: str):
        self.contract_id = contract_id
        super().__init__(f"Contract not found: {contract_id}")


class InvalidTransitionError(ContractError):
    """A lifecycle guard rejected the requested transition."""

    code: str = "INVALID_TRANSITION"

    def __init__(
        self,
        contract_id: str,
        current_status: str,
        attempted_status: str,
        action: str,
        reason: str | None = None,
    ):
        self.contract_id = contract_id
        self.current_status = current_status
        self.attempted_status = attempted_status
        self.action = action
        self.reason = reason
        message = (
            f"Cannot {action} contract {contract_id}: "
            f"{current_status} -> {attempted_status} is not allowed"
        )
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class UnqualifiedSignerError(InvalidTransitionError):
    """Internal signer cannot apply a qualified signature."""

    code: str = "UNQUALIFIED_SIGNER"

    def __init__(
        self,
        contract_id: str,
        current_status: str,
        attempted_status: str,
        signer_id: str,
        reason: str,
    ):
        self.signer_id = signer_id
        super().__init__(
            contract_id,
            current_status,
            attempted_status,
            action="sign_internal",
            reason=reason,
        )


class ContentLockedError(ContractError):
    """Contract content can only change in draft or cancelled status."""

    code: str = "CONTENT_LOCKED"

    def __init__(self, contract_id: str, status: str):
        self.contract_id = contract_id
        self.status = status
        super().__init__(
            f"Content of contract {contract_id} is locked in status {status}"
        )


class MissingSignatureError(ContractError):
    """Completion requested without both signature records."""

    code: str = "MISSING_SIGNATURE"

    def __init__(self, contract_id: str, missing_kind: str):
        self.contract_id = contract_id
        self.missing_kind = missing_kind
        super().__init__(
            f"Contract {contract_id} is missing its {missing_kind} signature"
        )


class TemplateNotFoundError(ContractError):
    """Contract template with given ID was not found."""

    code: str = "TEMPLATE_NOT_FOUND"

    def __init__(self, template_id: str):
        self.template_id = template_id
        super().__init__(f"Contract template not found: {template_id}")


# Token-related exceptions


class TokenError(SigningKernelError):
    """Base exception for verification-token errors."""

    code: str = "TOKEN_ERROR"


class MalformedCodeError(TokenError):
    """Supplied code is not exactly six ASCII digits."""

    code: str = "MALFORMED_CODE"

    def __init__(self, length: int):
        # Only the length is kept; the raw input may be a near-miss of a real code.
        self.length = length
        super().__init__(
            f"Verification code must be exactly 6 ASCII digits (got {length} characters)"
        )


class TokenNotFoundError(TokenError):
    """No active verification token exists for the contract."""

    code: str = "TOKEN_NOT_FOUND"

    def __init__(self, contract_id: str):
        self.contract_id = contract_id
        super().__init__(f"No active verification token for contract {contract_id}")


# Audit-related exceptions


class AuditError(SigningKernelError):
    """Base exception for audit-related errors."""

    code: str = "AUDIT_ERROR"


class AuditChainBrokenError(AuditError):
    """Audit hash chain validation failed."""

    code: str = "AUDIT_CHAIN_BROKEN"

    def __init__(self, audit_event_id: str, expected_hash: str, actual_hash: str):
        self.audit_event_id = audit_event_id
        self.expected_hash = expected_hash
        self.actual_hash = actual_hash
        super().__init__(
            f"Audit chain broken at {audit_event_id}: "
            f"expected {expected_hash}, found {actual_hash}"
        )


class AuditPayloadMismatchError(AuditError):
    """Audit payload type does not belong to the declared event kind."""

    code: str = "AUDIT_PAYLOAD_MISMATCH"

    def __init__(self, kind: str, payload_kind: str):
        self.kind = kind
        self.payload_kind = payload_kind
        super().__init__(
            f"Audit payload for {payload_kind} cannot be recorded as {kind}"
        )


# Integrity-related exceptions


class IntegrityError(SigningKernelError):
    """Base exception for document-integrity errors."""

    code: str = "INTEGRITY_ERROR"


class DocumentTamperedError(IntegrityError):
    """Stored integrity hash does not match the stored content."""

    code: str = "DOCUMENT_TAMPERED"

    def __init__(self, contract_id: str, hash_kind: str, expected_hash: str, actual_hash: str):
        self.contract_id = contract_id
        self.hash_kind = hash_kind
        self.expected_hash = expected_hash
        self.actual_hash = actual_hash
        super().__init__(
            f"Contract {contract_id} {hash_kind} hash mismatch: "
            f"stored {expected_hash}, recomputed {actual_hash}"
        )


# Concurrency-related exceptions


class ConcurrencyError(SigningKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class ConcurrentTransitionError(ConcurrencyError):
    """Compare-and-set on contract status found a different status."""

    code: str = "CONCURRENT_TRANSITION"

    def __init__(self, contract_id: str, expected_status: str, attempted_status: str):
        self.contract_id = contract_id
        self.expected_status = expected_status
        self.attempted_status = attempted_status
        super().__init__(
            f"Contract {contract_id} left status {expected_status} before "
            f"transition to {attempted_status} could be applied"
        )


# Immutability-related exceptions


class ImmutabilityError(SigningKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    AuditEvent and SignatureRecord are immutable from creation; Contract
    content is immutable outside draft/cancelled.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


# External collaborator exceptions


class CollaboratorError(SigningKernelError):
    """Base exception for failures of external collaborators."""

    code: str = "COLLABORATOR_ERROR"


class RenderingError(CollaboratorError):
    """PDF rendering collaborator failed."""

    code: str = "RENDERING_FAILED"

    def __init__(self, contract_id: str, reason: str):
        self.contract_id = contract_id
        self.reason = reason
        super().__init__(f"Rendering contract {contract_id} failed: {reason}")
