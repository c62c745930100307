from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Iterable, Mapping
from uuid import uuid4

import structlog

from .audit import AuditLogger, InMemoryAuditSink
from .collaborators import (
    ContentUploader,
    IdentityVerificationProvider,
    NotificationService,
    WalletProvisioningService,
)
from .documents import DocumentPolicyRegistry, DocumentUploadTracker, UploadBatchResult, build_default_registry
from .exceptions import (
    CodeIncompleteError,
    StepMismatchError,
    StepNotOnBranchError,
    SubmissionError,
    TerminalStepError,
    TransitionInFlightError,
)
from .models import (
    AccountType,
    CollaboratorEvent,
    DocumentType,
    FieldGroup,
    OnboardingSnapshot,
    OnboardingSubmission,
    SelectedFile,
    StepId,
    TransitionResult,
    ValidationResult,
)
from .record import AggregateFormRecord
from .router import INITIAL_STEP, StepGraph, TraversalStack, owner_group
from .settings import OnboardingSettings
from .validators import StepValidators
from .verification_code import CodeInputSignal, VerificationCodeEntry

# Groups written through dedicated operations rather than plain field merges.
MANAGED_GROUPS = frozenset(
    {
        FieldGroup.UBO_LIST,
        FieldGroup.DOCUMENTS,
        FieldGroup.VERIFICATION_CODE,
        FieldGroup.IDENTITY,
        FieldGroup.WALLET,
    }
)


@dataclass
class WorkflowContext:
    """Shared state and collaborators injected into every step of one session."""

    session_id: str
    record: AggregateFormRecord
    settings: OnboardingSettings
    registry: DocumentPolicyRegistry
    audit: AuditLogger
    uploader: ContentUploader | None = None
    identity_provider: IdentityVerificationProvider | None = None
    notifier: NotificationService | None = None
    wallet_service: WalletProvisioningService | None = None
    events: list[CollaboratorEvent] = field(default_factory=list)

    @classmethod
    def create(
        cls,
        *,
        session_id: str | None = None,
        record: AggregateFormRecord | None = None,
        settings: OnboardingSettings | None = None,
        registry: DocumentPolicyRegistry | None = None,
        audit: AuditLogger | None = None,
        **collaborators: Any,
    ) -> WorkflowContext:
        settings = settings or OnboardingSettings()
        return cls(
            session_id=session_id or str(uuid4()),
            record=record or AggregateFormRecord(),
            settings=settings,
            registry=registry or build_default_registry(settings),
            audit=audit or AuditLogger(sink=InMemoryAuditSink(records={}), logger=structlog.get_logger("onboarding_audit")),
            **collaborators,
        )


class NavigationController:
    """Drives one onboarding session.

    Sole writer of the traversal stack and sole caller of ``StepGraph.next``.
    Forward moves are gated by the step validators; ``back`` pops the stack
    without validating.
    """

    def __init__(
        self,
        context: WorkflowContext,
        *,
        graph: StepGraph | None = None,
        validators: StepValidators | None = None,
        current_step: StepId = INITIAL_STEP,
        stack: TraversalStack | None = None,
        submitted: bool = False,
    ) -> None:
        self.context = context
        self.graph = graph or StepGraph()
        self.validators = validators or StepValidators(context.settings, context.registry)
        self._current_step = StepId(current_step)
        self._stack = stack or TraversalStack()
        self._advancing = False
        self.submitted = submitted
        self.logger = structlog.get_logger("navigation_controller").bind(session_id=context.session_id)
        self.tracker = self._load_tracker()
        self.code_entry = self._load_code_entry()
        if context.identity_provider is not None:
            context.identity_provider.on_verification_complete(
                self._on_verification_complete, session_id=context.session_id
            )

    @property
    def session_id(self) -> str:
        return self.context.session_id

    @property
    def record(self) -> AggregateFormRecord:
        return self.context.record

    @property
    def current_step(self) -> StepId:
        return self._current_step

    @property
    def stack(self) -> tuple[StepId, ...]:
        return tuple(self._stack.steps)

    @property
    def is_advancing(self) -> bool:
        return self._advancing

    def check(self, step: StepId | None = None) -> ValidationResult:
        return self.validators.check(step or self._current_step, self.record)

    def can_advance(self, step: StepId | None = None) -> bool:
        step = StepId(step or self._current_step)
        if self._advancing or self.submitted:
            return False
        if step is StepId.DOCUMENT_VERIFICATION:
            return self.tracker.is_satisfied(
                self.context.settings.document_completion_rule,
                require_clean=self.context.settings.require_clean_category,
            )
        return self.validators.is_valid(step, self.record)

    def update_fields(self, partial: Mapping[str, Any]) -> None:
        group = owner_group(self._current_step)
        if group is None or group in MANAGED_GROUPS:
            raise StepMismatchError(f"Step '{self._current_step.value}' does not accept field updates")
        previous_type = self.record.account_type
        self.record.merge(group, partial)
        if group is FieldGroup.ACCOUNT and self.record.account_type is not previous_type:
            self._reset_branch(previous_type)

    async def advance(self) -> TransitionResult:
        if self._advancing:
            raise TransitionInFlightError("Another forward transition is still running")
        if self.submitted:
            raise SubmissionError("Session has already been submitted")
        current = self._current_step
        if current is StepId.COMPLETE:
            raise TerminalStepError("Complete has no further transitions")

        self._advancing = True
        try:
            if current is StepId.EMAIL_CODE:
                try:
                    self.code_entry.require_complete()
                except CodeIncompleteError as exc:
                    self.logger.info("advance_blocked", step=current.value, reason="code_incomplete", detail=str(exc))
                    return TransitionResult(advanced=False, step=current, validation=self.check(), reason="code_incomplete")

            validation = self.check()
            if not validation.is_valid:
                self.logger.info("advance_blocked", step=current.value, missing=validation.missing)
                return TransitionResult(advanced=False, step=current, validation=validation, reason="validation_failed")

            target = self.graph.next(current, self.record)
            self._stack.push(current)
            self._current_step = target
            self.logger.info("step_advanced", from_step=current.value, to_step=target.value, depth=len(self._stack))
            self.context.audit.record(
                session_id=self.session_id,
                action="advance",
                from_step=current,
                to_step=target,
                details={"account_type": self.record.account_type.value},
            )
            await self._on_enter(target)
            return TransitionResult(advanced=True, step=target, previous_step=current, validation=validation)
        finally:
            self._advancing = False

    def back(self) -> StepId | None:
        if self.submitted:
            raise SubmissionError("Session has already been submitted")
        current = self._current_step
        previous = self.graph.previous(self._stack)
        if previous is None:
            self.logger.info("step_back_ignored", step=current.value)
            return None
        self._current_step = previous
        self.logger.info("step_back", from_step=current.value, to_step=previous.value, depth=len(self._stack))
        self.context.audit.record(session_id=self.session_id, action="back", from_step=current, to_step=previous)
        return previous

    def submit(self) -> OnboardingSubmission:
        if self._current_step is not StepId.COMPLETE:
            raise SubmissionError(f"Cannot submit from step '{self._current_step.value}'")
        if self.submitted:
            raise SubmissionError("Session has already been submitted")
        submission = OnboardingSubmission(
            session_id=self.session_id,
            account_type=self.record.account_type,
            record=self.record.to_dict(),
            submitted_at=datetime.now(timezone.utc),
        )
        self.submitted = True
        self.context.audit.record(
            session_id=self.session_id,
            action="submit",
            from_step=StepId.COMPLETE,
            to_step=None,
            details={"account_type": submission.account_type.value},
        )
        self.logger.info("onboarding_submitted", account_type=submission.account_type.value)
        return submission

    # DocumentVerification

    def select_document_type(self, document_type: DocumentType) -> None:
        self._require_step(StepId.DOCUMENT_VERIFICATION)
        self.tracker.select(document_type)

    def add_files(self, document_type: DocumentType, files: Iterable[SelectedFile]) -> UploadBatchResult:
        self._require_step(StepId.DOCUMENT_VERIFICATION)
        return self.tracker.add_files(document_type, files)

    async def upload_files(self, document_type: DocumentType, files: Iterable[SelectedFile]) -> UploadBatchResult:
        self._require_step(StepId.DOCUMENT_VERIFICATION)
        if self.context.uploader is None:
            return self.tracker.add_files(document_type, files)
        return await self.tracker.upload_files(document_type, files, self.context.uploader)

    def remove_file(self, document_type: DocumentType, upload_id: str) -> bool:
        self._require_step(StepId.DOCUMENT_VERIFICATION)
        return self.tracker.remove_file(document_type, upload_id)

    # EmailCode

    def set_code_digit(self, index: int, value: str) -> CodeInputSignal:
        self._require_step(StepId.EMAIL_CODE)
        signal = self.code_entry.set_digit(index, value)
        self._sync_code()
        return signal

    def code_backspace(self, index: int) -> CodeInputSignal:
        self._require_step(StepId.EMAIL_CODE)
        signal = self.code_entry.on_backspace(index)
        self._sync_code()
        return signal

    def paste_code(self, text: str, start: int = 0) -> CodeInputSignal:
        self._require_step(StepId.EMAIL_CODE)
        signal = self.code_entry.paste(text, start)
        self._sync_code()
        return signal

    async def resend_code(self) -> bool:
        self._require_step(StepId.EMAIL_CODE)
        self.code_entry.email = self.record.email
        succeeded, _ = await self._call_collaborator("notification", "resend_verification_code", self.code_entry.resend)
        return succeeded

    # UBOList

    def add_ubo(self) -> int:
        self._require_step(StepId.UBO_LIST)
        return self.record.add_ubo()

    def remove_ubo(self, index: int) -> bool:
        self._require_step(StepId.UBO_LIST)
        return self.record.remove_ubo(index)

    def update_ubo(self, index: int, partial: Mapping[str, Any]) -> None:
        self._require_step(StepId.UBO_LIST)
        self.record.update_ubo(index, partial)

    # Collaborator hooks

    def report_verification_complete(self, status: str) -> None:
        self.record.merge(FieldGroup.IDENTITY, {"status": status})
        self.context.events.append(
            CollaboratorEvent(
                collaborator="identity",
                operation="verification_complete",
                succeeded=True,
                detail=status,
                timestamp=datetime.now(timezone.utc),
            )
        )
        self.logger.info("identity_verification_reported", status=status)

    async def provision_wallet(self) -> str | None:
        self._require_step(StepId.WALLET_SETUP)
        wallet_id = self.record.value(FieldGroup.WALLET, "wallet_id")
        if wallet_id or self.context.wallet_service is None:
            return wallet_id
        service = self.context.wallet_service
        succeeded, wallet_id = await self._call_collaborator(
            "wallet", "provision_wallet", lambda: service.provision_wallet(self.session_id)
        )
        if succeeded and wallet_id:
            self.report_wallet_provisioned(wallet_id)
        return wallet_id if succeeded else None

    def report_wallet_provisioned(self, wallet_id: str) -> None:
        self.record.merge(FieldGroup.WALLET, {"wallet_id": wallet_id})
        self.logger.info("wallet_provisioned")

    # Persistence

    def snapshot(self) -> OnboardingSnapshot:
        return OnboardingSnapshot(
            session_id=self.session_id,
            current_step=self._current_step,
            stack=list(self._stack.steps),
            record=self.record.to_dict(),
            submitted=self.submitted,
        )

    @classmethod
    def restore(cls, snapshot: OnboardingSnapshot, **context_kwargs: Any) -> NavigationController:
        context = WorkflowContext.create(
            session_id=snapshot.session_id,
            record=AggregateFormRecord.from_dict(snapshot.record),
            **context_kwargs,
        )
        graph = StepGraph()
        account_type = context.record.account_type
        for step in [*snapshot.stack, snapshot.current_step]:
            if not graph.is_on_path(step, account_type):
                raise StepNotOnBranchError(f"Snapshot step '{step.value}' is not on the {account_type.value} path")
        return cls(
            context,
            graph=graph,
            current_step=snapshot.current_step,
            stack=TraversalStack.from_list(snapshot.stack),
            submitted=snapshot.submitted,
        )

    # Internals

    async def _on_enter(self, step: StepId) -> None:
        if step is StepId.EMAIL_CODE and self.context.notifier is not None:
            notifier = self.context.notifier
            email = self.record.email
            self.code_entry.email = email
            await self._call_collaborator(
                "notification", "send_verification_code", lambda: notifier.send_verification_code(email)
            )
        elif step is StepId.IDENTITY_HANDOFF and self.context.identity_provider is not None:
            if self.record.value(FieldGroup.IDENTITY, "handoff_reference"):
                return
            provider = self.context.identity_provider
            succeeded, reference = await self._call_collaborator(
                "identity", "begin_verification", lambda: provider.begin_verification(self.session_id)
            )
            if succeeded and reference:
                self.record.merge(FieldGroup.IDENTITY, {"handoff_reference": reference, "status": "pending"})
        elif step is StepId.WALLET_SETUP:
            await self.provision_wallet()

    async def _call_collaborator(
        self,
        collaborator: str,
        operation: str,
        call: Callable[[], Awaitable[Any]],
    ) -> tuple[bool, Any]:
        try:
            result = await call()
        except Exception as exc:
            self.logger.warning("collaborator_failed", collaborator=collaborator, operation=operation, error=str(exc))
            self.context.events.append(
                CollaboratorEvent(
                    collaborator=collaborator,
                    operation=operation,
                    succeeded=False,
                    detail=str(exc),
                    timestamp=datetime.now(timezone.utc),
                )
            )
            return False, None
        self.context.events.append(
            CollaboratorEvent(
                collaborator=collaborator,
                operation=operation,
                succeeded=True,
                timestamp=datetime.now(timezone.utc),
            )
        )
        return True, result

    async def _on_verification_complete(self, session_id: str, status: str) -> None:
        if session_id == self.session_id:
            self.report_verification_complete(status)

    def _reset_branch(self, previous_type: AccountType) -> None:
        self.record.reset_branch()
        self.tracker = self._load_tracker()
        self.code_entry = self._load_code_entry()
        self.logger.info(
            "branch_reset",
            previous_account_type=previous_type.value,
            account_type=self.record.account_type.value,
        )

    def _require_step(self, step: StepId) -> None:
        if self._current_step is not step:
            raise StepMismatchError(
                f"Operation belongs to step '{step.value}', current step is '{self._current_step.value}'"
            )

    def _load_tracker(self) -> DocumentUploadTracker:
        return DocumentUploadTracker.from_group(
            self.context.registry.policies_for(self.record.account_type),
            self.record.get(FieldGroup.DOCUMENTS),
            on_change=self._sync_documents,
        )

    def _load_code_entry(self) -> VerificationCodeEntry:
        return VerificationCodeEntry.from_group(
            self.record.get(FieldGroup.VERIFICATION_CODE),
            self.context.settings.code_length,
            notifier=self.context.notifier,
            email=self.record.email,
        )

    def _sync_documents(self) -> None:
        self.record.merge(FieldGroup.DOCUMENTS, self.tracker.to_group())

    def _sync_code(self) -> None:
        self.record.merge(FieldGroup.VERIFICATION_CODE, self.code_entry.to_group())
