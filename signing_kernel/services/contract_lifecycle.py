"""
ContractLifecycleService -- the contract signing state machine.

Responsibility:
    Drives a contract from draft to completed (or cancelled):

        draft --finalize--> awaiting_internal_signature
        awaiting_internal_signature --sign_internal--> awaiting_external_signature
        awaiting_external_signature --sign_external--> completed
        {non-terminal} --cancel--> cancelled
        draft --discard--> cancelled

    Each step writes its records, moves ``status`` and appends its audit
    event inside the caller's transaction.

Architecture position:
    Kernel > Services.  Composes AuditLog, TokenService,
    DocumentIntegrityService, TemplateService and SequenceService.
    Called by the orchestration layer (``signing_services``) and tests.

Invariants enforced:
    - Status only moves along CONTRACT_WORKFLOW.  Every move is a
      compare-and-set UPDATE guarded on the expected pre-state; a lost race
      raises ConcurrentTransitionError and the caller's rollback discards
      the whole step.
    - Completed implies both signature records exist and
      completed_at >= finalized_at.
    - The finalization hash is computed once, on the exact text being
      frozen; the completion hash is stored beside it, never over it.
    - Every transition appends exactly one lifecycle audit event; every
      token redemption appends exactly one ``tentativa_acesso`` event,
      including a code re-entered after completion.
    - Cancelling revokes every unconsumed token of the contract.

Failure modes:
    - ContractNotFoundError for unknown ids.
    - InvalidTransitionError when the action has no edge from the
      current status (nothing is written, nothing is audited).
    - UnqualifiedSignerError when the internal signer lacks the
      capability, a valid credential, or the designation.
    - ContentLockedError from update_draft outside draft/cancelled.
    - ConcurrentTransitionError when the status moved underneath us.
    - Token failures are NOT exceptions: sign_external returns an
      ExternalSignatureResult carrying the ValidationOutcome.

Audit relevance:
    contrato_criado, contrato_finalizado, assinatura_interna_realizada,
    token_emitido, tentativa_acesso, contrato_concluido,
    contrato_cancelado, contrato_excluido and pdf_gerado are all written
    from here or from TokenService on behalf of this service.
"""

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from signing_kernel.domain.audit import (
    AuditEventKind,
    ContractCancelledPayload,
    ContractCompletedPayload,
    ContractCreatedPayload,
    ContractDeletedPayload,
    ContractFinalizedPayload,
    InternalSignaturePayload,
    PdfGeneratedPayload,
)
from signing_kernel.domain.clock import Clock, SystemClock
from signing_kernel.domain.dtos import ContractInfo, SignatureInfo
from signing_kernel.domain.evidence import (
    ExternalSignatureEvidence,
    InternalSignatureEvidence,
    RequestContext,
    SignerIdentity,
)
from signing_kernel.domain.lifecycle import (
    ACTION_TARGETS,
    CONTENT_MUTABLE_STATUSES,
    ContractStatus,
    LifecycleAction,
    SignatureKind,
    Transition,
    find_transition,
)
from signing_kernel.domain.templates import render_template
from signing_kernel.domain.tokens import IssuedToken, ValidationOutcome, ValidationResult
from signing_kernel.exceptions import (
    ConcurrentTransitionError,
    ContentLockedError,
    ContractNotFoundError,
    InvalidTransitionError,
    MissingSignatureError,
    UnqualifiedSignerError,
)
from signing_kernel.logging_config import LogContext, get_logger
from signing_kernel.models.contract import Contract
from signing_kernel.models.signature_record import SignatureRecord
from signing_kernel.services.audit_log import AuditEntry, AuditLog
from signing_kernel.services.base import BaseService
from signing_kernel.services.integrity_service import DocumentIntegrityService
from signing_kernel.services.sequence_service import SequenceService
from signing_kernel.services.template_service import TemplateService
from signing_kernel.services.token_service import TokenService
from signing_kernel.utils.hashing import hash_payload

logger = get_logger("services.contract_lifecycle")

DEFAULT_NUMBER_PREFIX = "C"


@dataclass(frozen=True)
class InternalSignatureResult:
    """Outcome of a successful internal signature.

    ``token`` carries the plaintext code for out-of-band delivery.
    """

    contract: ContractInfo
    signature: SignatureInfo
    token: IssuedToken


@dataclass(frozen=True)
class ExternalSignatureResult:
    """Outcome of an external signing attempt.

    On any token failure ``contract`` is the unchanged contract and
    ``signature``/``completion_hash`` are None.
    """

    outcome: ValidationOutcome
    contract: ContractInfo
    validation: ValidationResult
    signature: SignatureInfo | None = None
    completion_hash: str | None = None

    @property
    def completed(self) -> bool:
        return self.outcome is ValidationOutcome.SUCCESS


class ContractLifecycleService(BaseService[Contract]):
    """
    Contract state machine.

    Contract:
        Every public mutator takes an explicit actor (an id, or the
        SignerIdentity for sign_internal).  No ambient "current user".

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
        - Does NOT deliver tokens or render PDFs (signing_services).
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        audit_log: AuditLog | None = None,
        token_service: TokenService | None = None,
        integrity: DocumentIntegrityService | None = None,
        number_prefix: str = DEFAULT_NUMBER_PREFIX,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._audit = audit_log or AuditLog(session, self._clock)
        self._tokens = token_service or TokenService(session, self._audit, self._clock)
        self._integrity = integrity or DocumentIntegrityService(session)
        self._templates = TemplateService(session, self._clock)
        self._sequences = SequenceService(session)
        self._number_prefix = number_prefix

    # =========================================================================
    # Helpers
    # =========================================================================

    def _load(self, contract_id: UUID, lock: bool = False) -> Contract:
        stmt = select(Contract).where(Contract.id == contract_id)
        if lock:
            stmt = stmt.with_for_update()
        contract = self.session.execute(
            stmt.execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if contract is None:
            raise ContractNotFoundError(str(contract_id))
        return contract

    def _require(
        self,
        contract: Contract,
        action: LifecycleAction,
        reason: str | None = None,
    ) -> Transition:
        transition = find_transition(contract.status, action)
        if transition is None:
            logger.warning(
                "contract_transition_rejected",
                extra={
                    "contract_id": str(contract.id),
                    "action": action.value,
                    "status": contract.status.value,
                },
            )
            raise InvalidTransitionError(
                str(contract.id),
                contract.status.value,
                ACTION_TARGETS[action].value,
                action.value,
                reason,
            )
        return transition

    def _transition(self, contract: Contract, transition: Transition, **values) -> None:
        """Compare-and-set ``status`` from the transition's pre-state."""
        result = self.session.execute(
            update(Contract)
            .where(
                Contract.id == contract.id,
                Contract.status == transition.from_state,
            )
            .values(status=transition.to_state, updated_at=self._clock.now(), **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.warning(
                "contract_transition_conflict",
                extra={
                    "contract_id": str(contract.id),
                    "expected_status": transition.from_state.value,
                    "attempted_status": transition.to_state.value,
                },
            )
            raise ConcurrentTransitionError(
                str(contract.id),
                transition.from_state.value,
                transition.to_state.value,
            )
        self.session.refresh(contract)
        logger.info(
            "contract_transitioned",
            extra={
                "contract_id": str(contract.id),
                "action": transition.action.value,
                "from_status": transition.from_state.value,
                "to_status": transition.to_state.value,
            },
        )

    def _signatures(self, contract_id: UUID) -> list[SignatureRecord]:
        return list(
            self.session.execute(
                select(SignatureRecord).where(SignatureRecord.contract_id == contract_id)
            ).scalars()
        )

    def _next_number(self) -> str:
        seq = self._sequences.next_value(SequenceService.CONTRACT_NUMBER)
        return f"{self._number_prefix}-{seq:03d}"

    # =========================================================================
    # Reads
    # =========================================================================

    def get_contract(self, contract_id: UUID) -> ContractInfo:
        return self._load(contract_id).to_info()

    # =========================================================================
    # Draft
    # =========================================================================

    def create_draft(
        self,
        title: str,
        external_signer_name: str,
        external_signer_email: str,
        actor_id: UUID,
        content: str | None = None,
        template_id: UUID | None = None,
        variables: dict[str, str] | None = None,
        external_signer_document: str | None = None,
    ) -> ContractInfo:
        """
        Create a draft with the next sequential number.

        Content comes either literally or from a template rendered with
        ``variables``; not both.

        Raises:
            ValueError: If both content and template_id are given, or the
                title or external signer details are blank.
            TemplateNotFoundError: If template_id is unknown.
        """
        if content is not None and template_id is not None:
            raise ValueError("pass either content or template_id, not both")
        for name, value in (
            ("title", title),
            ("external_signer_name", external_signer_name),
            ("external_signer_email", external_signer_email),
        ):
            if not value or not value.strip():
                raise ValueError(f"{name} must not be blank")

        variables = dict(variables or {})
        if template_id is not None:
            content = self._templates.render(template_id, variables)

        now = self._clock.now()
        contract = Contract(
            number=self._next_number(),
            title=title,
            content=content or "",
            template_id=template_id,
            variables=variables,
            external_signer_name=external_signer_name,
            external_signer_email=external_signer_email,
            external_signer_document=external_signer_document,
            status=ContractStatus.DRAFT,
            created_at=now,
            updated_at=now,
            created_by_id=actor_id,
        )
        self.session.add(contract)
        self.session.flush()

        self._audit.append(
            contract.id,
            AuditEventKind.CONTRACT_CREATED,
            ContractCreatedPayload(
                contract_number=contract.number,
                title=title,
                external_signer_email=external_signer_email,
                template_id=template_id,
            ),
            actor_id=actor_id,
        )

        logger.info(
            "contract_created",
            extra={
                "contract_id": str(contract.id),
                "contract_number": contract.number,
                "actor_id": str(actor_id),
            },
        )
        return contract.to_info()

    def update_draft(
        self,
        contract_id: UUID,
        actor_id: UUID,
        content: str | None = None,
        variables: dict[str, str] | None = None,
        title: str | None = None,
    ) -> ContractInfo:
        """
        Edit content while the contract is draft or cancelled.

        Passing ``variables`` for a templated contract re-renders the body
        unless ``content`` is given explicitly.
        """
        contract = self._load(contract_id, lock=True)
        if contract.status not in CONTENT_MUTABLE_STATUSES:
            raise ContentLockedError(str(contract_id), contract.status.value)

        if title is not None:
            contract.title = title
        if variables is not None:
            merged = {**(contract.variables or {}), **variables}
            contract.variables = merged
            if content is None and contract.template_id is not None:
                template = self._templates.get_template(contract.template_id)
                content = render_template(template.body, merged)
        if content is not None:
            contract.content = content
        contract.updated_at = self._clock.now()
        self.session.flush()

        logger.info(
            "contract_draft_updated",
            extra={"contract_id": str(contract_id), "actor_id": str(actor_id)},
        )
        return contract.to_info()

    # =========================================================================
    # Finalize
    # =========================================================================

    def finalize(
        self,
        contract_id: UUID,
        actor_id: UUID,
        content: str | None = None,
        internal_signer: SignerIdentity | None = None,
    ) -> ContractInfo:
        """
        Freeze the content and record its integrity hash.

        Postconditions:
            - status = awaiting_internal_signature.
            - finalization_hash = hash(content bytes, number).
            - One ``contrato_finalizado`` event.

        Raises:
            InvalidTransitionError: If status is not draft or the content
                is empty.  A second finalize never re-hashes.
        """
        with LogContext.bind(contract_id=contract_id, actor_id=actor_id):
            contract = self._load(contract_id, lock=True)
            transition = self._require(contract, LifecycleAction.FINALIZE)

            if content is not None:
                contract.content = content
            if not contract.content or not contract.content.strip():
                raise InvalidTransitionError(
                    str(contract.id),
                    contract.status.value,
                    transition.to_state.value,
                    LifecycleAction.FINALIZE.value,
                    "contract content is empty",
                )
            if internal_signer is not None:
                contract.internal_signer_id = internal_signer.actor_id
                contract.internal_signer_name = internal_signer.display_name
                contract.internal_signer_email = internal_signer.email

            now = self._clock.now()
            finalization_hash = self._integrity.hash(contract.content_bytes, contract.number)
            self._transition(
                contract,
                transition,
                finalization_hash=finalization_hash,
                finalized_at=now,
            )

            self._audit.append(
                contract.id,
                AuditEventKind.CONTRACT_FINALIZED,
                ContractFinalizedPayload(
                    contract_number=contract.number,
                    finalization_hash=finalization_hash,
                    content_length=len(contract.content_bytes),
                ),
                actor_id=actor_id,
            )
            logger.info(
                "contract_finalized",
                extra={"finalization_hash": finalization_hash},
            )
            return contract.to_info()

    # =========================================================================
    # Internal signature
    # =========================================================================

    def sign_internal(
        self,
        contract_id: UUID,
        signer: SignerIdentity,
    ) -> InternalSignatureResult:
        """
        Apply the qualified internal signature and issue the external code.

        Raises:
            InvalidTransitionError: If status is not
                awaiting_internal_signature.
            UnqualifiedSignerError: If the signer cannot sign now.
        """
        with LogContext.bind(contract_id=contract_id, actor_id=signer.actor_id):
            contract = self._load(contract_id, lock=True)
            transition = self._require(contract, LifecycleAction.SIGN_INTERNAL)

            now = self._clock.now()
            problem = signer.qualification_problem(now)
            if problem is None and (
                contract.internal_signer_id is not None
                and contract.internal_signer_id != signer.actor_id
            ):
                problem = "signer is not the designated internal signer"
            if problem is not None:
                logger.warning(
                    "internal_signer_rejected",
                    extra={"signer_id": str(signer.actor_id), "reason": problem},
                )
                raise UnqualifiedSignerError(
                    str(contract.id),
                    contract.status.value,
                    transition.to_state.value,
                    str(signer.actor_id),
                    problem,
                )

            evidence = InternalSignatureEvidence.from_credential(signer.credential).to_payload()
            record = SignatureRecord(
                contract_id=contract.id,
                kind=SignatureKind.INTERNAL_QUALIFIED,
                signer_name=signer.display_name,
                signer_email=signer.email,
                signer_id=signer.actor_id,
                signed_at=now,
                evidence=evidence,
                evidence_hash=hash_payload(evidence),
            )
            self.session.add(record)
            self.session.flush()

            values = {}
            if contract.internal_signer_id is None:
                values = {
                    "internal_signer_id": signer.actor_id,
                    "internal_signer_name": signer.display_name,
                    "internal_signer_email": signer.email,
                }
            self._transition(contract, transition, **values)

            self._audit.append(
                contract.id,
                AuditEventKind.INTERNAL_SIGNATURE,
                InternalSignaturePayload(
                    signature_id=record.id,
                    signer_name=signer.display_name,
                    certificate_issuer=signer.credential.issuer,
                    certificate_serial=signer.credential.serial_number,
                    signed_at=now,
                ),
                actor_id=signer.actor_id,
            )
            logger.info("internal_signature_applied", extra={"signature_id": str(record.id)})

            token = self._tokens.issue(
                contract.id,
                contract.external_signer_email,
                actor_id=signer.actor_id,
            )
            return InternalSignatureResult(
                contract=contract.to_info(),
                signature=record.to_info(),
                token=token,
            )

    def reissue_token(self, contract_id: UUID, actor_id: UUID) -> IssuedToken:
        """Supersede the external signer's code with a fresh one.

        Only while awaiting the external signature; this is how an expired
        or exhausted code is recovered.
        """
        contract = self._load(contract_id, lock=True)
        if contract.status is not ContractStatus.AWAITING_EXTERNAL_SIGNATURE:
            raise InvalidTransitionError(
                str(contract.id),
                contract.status.value,
                contract.status.value,
                "reissue_token",
                "tokens are only reissued while awaiting the external signature",
            )
        return self._tokens.issue(contract.id, contract.external_signer_email, actor_id=actor_id)

    # =========================================================================
    # External signature
    # =========================================================================

    def sign_external(
        self,
        contract_id: UUID,
        code: str,
        context: RequestContext,
        actor_id: UUID | None = None,
    ) -> ExternalSignatureResult:
        """
        Redeem the external code and complete the contract.

        Token failures leave the status unchanged and are returned, not
        raised, so the failure event and the attempt count are committed
        by the caller.  Re-entering a code once the contract is completed
        is a token outcome too (``already_consumed``).

        Raises:
            InvalidTransitionError: If status is draft, awaiting the
                internal signature, or cancelled.
            MissingSignatureError: If the internal record is absent.
            ConcurrentTransitionError: If another completion won the race.
        """
        with LogContext.bind(contract_id=contract_id):
            contract = self._load(contract_id, lock=True)
            if contract.status is ContractStatus.COMPLETED:
                validation = self._tokens.validate(contract.id, code, context, actor_id=actor_id)
                return ExternalSignatureResult(
                    outcome=validation.outcome,
                    contract=contract.to_info(),
                    validation=validation,
                )
            transition = self._require(contract, LifecycleAction.SIGN_EXTERNAL)

            validation = self._tokens.validate(contract.id, code, context, actor_id=actor_id)
            if not validation.succeeded:
                return ExternalSignatureResult(
                    outcome=validation.outcome,
                    contract=contract.to_info(),
                    validation=validation,
                )

            now = self._clock.now()
            evidence = ExternalSignatureEvidence(
                ip_address=context.ip_address,
                user_agent=context.user_agent,
                token_code=code,
                token_id=validation.token.token_id,
                geolocation=context.geolocation,
            ).to_payload()
            record = SignatureRecord(
                contract_id=contract.id,
                kind=SignatureKind.EXTERNAL_TOKEN_VERIFIED,
                signer_name=contract.external_signer_name,
                signer_email=contract.external_signer_email,
                signer_id=None,
                signed_at=now,
                evidence=evidence,
                evidence_hash=hash_payload(evidence),
            )
            self.session.add(record)
            self.session.flush()

            signatures = self._signatures(contract.id)
            present = {s.kind for s in signatures}
            for kind in SignatureKind:
                if kind not in present:
                    raise MissingSignatureError(str(contract.id), kind.value)

            completion_hash = self._integrity.completion_hash(
                contract.content_bytes,
                contract.number,
                contract.finalization_hash,
                signatures,
            )
            self._transition(
                contract,
                transition,
                completion_hash=completion_hash,
                completed_at=now,
            )

            self._audit.append(
                contract.id,
                AuditEventKind.CONTRACT_COMPLETED,
                ContractCompletedPayload(
                    signature_id=record.id,
                    external_signer_name=contract.external_signer_name,
                    finalization_hash=contract.finalization_hash,
                    completion_hash=completion_hash,
                    completed_at=now,
                ),
                actor_id=actor_id,
                context=context,
            )
            logger.info(
                "contract_completed",
                extra={"completion_hash": completion_hash, "signature_id": str(record.id)},
            )
            return ExternalSignatureResult(
                outcome=validation.outcome,
                contract=contract.to_info(),
                validation=validation,
                signature=record.to_info(),
                completion_hash=completion_hash,
            )

    # =========================================================================
    # Cancel / discard
    # =========================================================================

    def _close(
        self,
        contract_id: UUID,
        actor_id: UUID,
        reason: str,
        action: LifecycleAction,
    ) -> ContractInfo:
        if not reason or not reason.strip():
            raise ValueError("a cancellation reason is required")

        with LogContext.bind(contract_id=contract_id, actor_id=actor_id):
            contract = self._load(contract_id, lock=True)
            transition = self._require(contract, action)
            previous = contract.status.value

            self._transition(
                contract,
                transition,
                cancellation_reason=reason,
                cancelled_at=self._clock.now(),
            )
            revoked = self._tokens.revoke_for_contract(contract.id)

            if action is LifecycleAction.DISCARD:
                kind = AuditEventKind.CONTRACT_DELETED
                payload = ContractDeletedPayload(reason=reason, previous_status=previous)
            else:
                kind = AuditEventKind.CONTRACT_CANCELLED
                payload = ContractCancelledPayload(reason=reason, previous_status=previous)
            self._audit.append(contract.id, kind, payload, actor_id=actor_id)

            logger.info(
                "contract_cancelled",
                extra={
                    "action": action.value,
                    "previous_status": previous,
                    "tokens_revoked": revoked,
                },
            )
            return contract.to_info()

    def cancel(self, contract_id: UUID, actor_id: UUID, reason: str) -> ContractInfo:
        """Cancel from any non-terminal status."""
        return self._close(contract_id, actor_id, reason, LifecycleAction.CANCEL)

    def discard_draft(self, contract_id: UUID, actor_id: UUID, reason: str) -> ContractInfo:
        """Abandon a draft.  Rows are kept; the trail records the discard."""
        return self._close(contract_id, actor_id, reason, LifecycleAction.DISCARD)

    # =========================================================================
    # Rendering
    # =========================================================================

    def record_pdf_generated(
        self,
        contract_id: UUID,
        actor_id: UUID,
        document_hash: str,
        page_count: int,
        stamped_hash: str | None = None,
    ) -> AuditEntry:
        """Append ``pdf_gerado``.  Never changes status."""
        contract = self._load(contract_id)
        if page_count < 1:
            raise ValueError("page_count must be positive")
        event = self._audit.append(
            contract.id,
            AuditEventKind.PDF_GENERATED,
            PdfGeneratedPayload(
                document_hash=document_hash,
                page_count=page_count,
                stamped_hash=stamped_hash,
            ),
            actor_id=actor_id,
        )
        return AuditEntry.from_model(event)
