"""
Contract lifecycle types (``signing_kernel.domain.lifecycle``).

Responsibility
--------------
Pure value objects for the contract state machine: the closed status
vocabulary, the named lifecycle actions, and the transition table the
lifecycle service consults before every compare-and-set on ``status``.

Architecture position
---------------------
**Kernel domain layer** -- ZERO I/O.  No imports from ``db/``,
``services/``, ``selectors/``, or outer layers.

Invariants enforced
-------------------
* ``CONTRACT_TRANSITIONS`` defines the only valid status transitions.
* Terminal states (``completed``, ``cancelled``) have no outgoing edges.
* Content may change only in ``CONTENT_MUTABLE_STATUSES``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ContractStatus(str, Enum):
    """Contract lifecycle states, persisted as text (case-sensitive)."""

    DRAFT = "rascunho"
    AWAITING_INTERNAL_SIGNATURE = "aguardando_assinatura_interna"
    AWAITING_EXTERNAL_SIGNATURE = "aguardando_assinatura_externa"
    COMPLETED = "concluido"
    CANCELLED = "cancelado"

    @classmethod
    def _missing_(cls, value: object) -> ContractStatus | None:
        # "draft" is accepted on input as a synonym of "rascunho"; it is never persisted.
        if value == "draft":
            return cls.DRAFT
        return None


class LifecycleAction(str, Enum):
    """Named actions that move a contract between states."""

    FINALIZE = "finalize"
    SIGN_INTERNAL = "sign_internal"
    SIGN_EXTERNAL = "sign_external"
    CANCEL = "cancel"
    DISCARD = "discard"


class SignatureKind(str, Enum):
    """Signature record tags; at most one of each per contract."""

    INTERNAL_QUALIFIED = "internal_qualified"
    EXTERNAL_TOKEN_VERIFIED = "external_token_verified"


@dataclass(frozen=True)
class Transition:
    """One edge of the contract state machine.

    Contract: frozen, descriptive only.  The lifecycle service evaluates
    guards (signer qualification, token redemption) before applying it.
    """

    from_state: ContractStatus
    to_state: ContractStatus
    action: LifecycleAction


_NON_TERMINAL: tuple[ContractStatus, ...] = (
    ContractStatus.DRAFT,
    ContractStatus.AWAITING_INTERNAL_SIGNATURE,
    ContractStatus.AWAITING_EXTERNAL_SIGNATURE,
)

CONTRACT_WORKFLOW: tuple[Transition, ...] = (
    Transition(
        ContractStatus.DRAFT,
        ContractStatus.AWAITING_INTERNAL_SIGNATURE,
        LifecycleAction.FINALIZE,
    ),
    Transition(
        ContractStatus.AWAITING_INTERNAL_SIGNATURE,
        ContractStatus.AWAITING_EXTERNAL_SIGNATURE,
        LifecycleAction.SIGN_INTERNAL,
    ),
    Transition(
        ContractStatus.AWAITING_EXTERNAL_SIGNATURE,
        ContractStatus.COMPLETED,
        LifecycleAction.SIGN_EXTERNAL,
    ),
    *(
        Transition(state, ContractStatus.CANCELLED, LifecycleAction.CANCEL)
        for state in _NON_TERMINAL
    ),
    Transition(
        ContractStatus.DRAFT,
        ContractStatus.CANCELLED,
        LifecycleAction.DISCARD,
    ),
)

CONTRACT_TRANSITIONS: dict[ContractStatus, frozenset[ContractStatus]] = {
    status: frozenset(t.to_state for t in CONTRACT_WORKFLOW if t.from_state == status)
    for status in ContractStatus
}

TERMINAL_CONTRACT_STATUSES: frozenset[ContractStatus] = frozenset({
    ContractStatus.COMPLETED,
    ContractStatus.CANCELLED,
})

CONTENT_MUTABLE_STATUSES: frozenset[ContractStatus] = frozenset({
    ContractStatus.DRAFT,
    ContractStatus.CANCELLED,
})

# Target state of each action, used to name the attempted state in errors
# raised from states where the action has no edge.
ACTION_TARGETS: dict[LifecycleAction, ContractStatus] = {
    t.action: t.to_state for t in CONTRACT_WORKFLOW
}


def find_transition(
    current: ContractStatus,
    action: LifecycleAction,
) -> Transition | None:
    """Return the transition for ``action`` out of ``current``, if any."""
    for transition in CONTRACT_WORKFLOW:
        if transition.from_state == current and transition.action == action:
            return transition
    return None


def is_terminal(status: ContractStatus) -> bool:
    return status in TERMINAL_CONTRACT_STATUSES
