from .audit import AuditLogger, InMemoryAuditSink, TransitionAuditRecord
from .documents import DocumentPolicyRegistry, DocumentUploadTracker, UploadBatchResult, build_default_registry
from .exceptions import (
    CodeIncompleteError,
    StepMismatchError,
    StepNotOnBranchError,
    SubmissionError,
    TerminalStepError,
    TooLargeError,
    TooManyFilesError,
    TransferFailureError,
    TransitionInFlightError,
    UnknownDocumentTypeError,
    UnknownFieldError,
    UnsupportedTypeError,
    UploadError,
    WorkflowError,
)
from .models import (
    AccountType,
    DocumentType,
    DocumentTypeConfig,
    DocumentUpload,
    FieldGroup,
    OnboardingSnapshot,
    OnboardingSubmission,
    SelectedFile,
    StepId,
    TransitionResult,
    UBOEntry,
    UploadFailure,
    UploadReceipt,
    UploadStatus,
    ValidationResult,
)
from .navigation import NavigationController, WorkflowContext
from .record import AggregateFormRecord
from .router import StepGraph, TraversalStack
from .settings import OnboardingSettings
from .validators import StepValidators
from .verification_code import CodeInputSignal, VerificationCodeEntry

__all__ = [
    "AuditLogger",
    "InMemoryAuditSink",
    "TransitionAuditRecord",
    "DocumentPolicyRegistry",
    "DocumentUploadTracker",
    "UploadBatchResult",
    "build_default_registry",
    "CodeIncompleteError",
    "StepMismatchError",
    "StepNotOnBranchError",
    "SubmissionError",
    "TerminalStepError",
    "TooLargeError",
    "TooManyFilesError",
    "TransferFailureError",
    "TransitionInFlightError",
    "UnknownDocumentTypeError",
    "UnknownFieldError",
    "UnsupportedTypeError",
    "UploadError",
    "WorkflowError",
    "AccountType",
    "DocumentType",
    "DocumentTypeConfig",
    "DocumentUpload",
    "FieldGroup",
    "OnboardingSnapshot",
    "OnboardingSubmission",
    "SelectedFile",
    "StepId",
    "TransitionResult",
    "UBOEntry",
    "UploadFailure",
    "UploadReceipt",
    "UploadStatus",
    "ValidationResult",
    "NavigationController",
    "WorkflowContext",
    "AggregateFormRecord",
    "StepGraph",
    "TraversalStack",
    "OnboardingSettings",
    "StepValidators",
    "CodeInputSignal",
    "VerificationCodeEntry",
]
