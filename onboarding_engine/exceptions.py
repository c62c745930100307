from __future__ import annotations


class WorkflowError(Exception):
    """Base class for misuse of the onboarding workflow."""


class TerminalStepError(WorkflowError):
    """Raised when a forward transition is requested from the terminal step."""


class StepNotOnBranchError(WorkflowError):
    """Raised when a step does not belong to the path of the current account type."""


class StepMismatchError(WorkflowError):
    """Raised when an operation is not allowed at the current step."""


class TransitionInFlightError(WorkflowError):
    """Raised when a forward transition is requested while another is still running."""


class SubmissionError(WorkflowError):
    """Raised when the session cannot be submitted."""


class UnknownFieldError(WorkflowError, ValueError):
    """Raised when a merge carries keys that do not belong to the field group."""


class UnknownDocumentTypeError(WorkflowError, ValueError):
    """Raised when a document category is not offered for the account type."""


class EmptyUBOListError(WorkflowError, ValueError):
    """Raised when an update would leave the UBO list without entries."""


class CodeIncompleteError(Exception):
    """Raised when the verification code is read before every slot is filled."""


class UploadError(Exception):
    """Per-file upload rejection. Collected in batch results, never aborts a batch."""

    reason = "upload_error"

    def __init__(self, message: str, *, document_type: str, file_name: str, upload_id: str | None = None) -> None:
        super().__init__(message)
        self.document_type = document_type
        self.file_name = file_name
        self.upload_id = upload_id


class UnsupportedTypeError(UploadError):
    reason = "unsupported_type"


class TooLargeError(UploadError):
    reason = "too_large"


class TooManyFilesError(UploadError):
    reason = "too_many_files"


class TransferFailureError(UploadError):
    reason = "transfer_failure"
