from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


class OnboardingBaseModel(BaseModel):
    """Base model with forbidden unknown fields."""

    model_config = ConfigDict(extra="forbid")


class AccountType(str, Enum):
    INDIVIDUAL = "individual"
    LEGAL = "legal"


class StepId(str, Enum):
    WELCOME_KYC = "welcome-kyc"
    WELCOME_WALLET = "welcome-wallet"
    WELCOME_ACCESS = "welcome-access"
    ACCOUNT = "account"
    PERSONAL = "personal"
    EMPLOYMENT = "employment"
    INCOME = "income"
    COMPANY_REPRESENTATIVE = "company-representative"
    COMPANY_INFORMATION = "company-information"
    UBO_LIST = "ubo-list"
    CLIENT_TYPE = "client-type"
    REGULATORY_STATUS = "regulatory-status"
    TRANSACTION_DETAILS = "transaction-details"
    DOCUMENT_VERIFICATION = "document-verification"
    EMAIL_CODE = "email-code"
    IDENTITY_HANDOFF = "identity-handoff"
    WALLET_SETUP = "wallet-setup"
    COMPLETE = "complete"


WELCOME_STAGES = (StepId.WELCOME_KYC, StepId.WELCOME_WALLET, StepId.WELCOME_ACCESS)


class FieldGroup(str, Enum):
    ACCOUNT = "account"
    PERSONAL = "personal"
    COMPANY_REPRESENTATIVE = "company_representative"
    COMPANY_INFORMATION = "company_information"
    UBO_LIST = "ubo_list"
    CLIENT_TYPE = "client_type"
    EMPLOYMENT = "employment"
    INCOME = "income"
    REGULATORY_STATUS = "regulatory_status"
    TRANSACTION_DETAILS = "transaction_details"
    DOCUMENTS = "documents"
    VERIFICATION_CODE = "verification_code"
    IDENTITY = "identity"
    WALLET = "wallet"


class DocumentType(str, Enum):
    PASSPORT = "passport"
    NATIONAL_ID = "national-id"
    RESIDENCE_PERMIT = "residence-permit"
    EXTRACT = "extract"
    ARTICLES = "articles"
    STRUCTURE = "structure"
    FUNDS = "funds"
    WEALTH = "wealth"
    UBO_ID = "ubo-id"


class UploadStatus(str, Enum):
    UPLOADING = "uploading"
    SUCCESS = "success"
    ERROR = "error"


class UploadErrorReason(str, Enum):
    UNSUPPORTED_TYPE = "unsupported_type"
    TOO_LARGE = "too_large"
    TOO_MANY_FILES = "too_many_files"
    TRANSFER_FAILURE = "transfer_failure"


class DocumentTypeConfig(OnboardingBaseModel):
    document_type: DocumentType
    title: str
    description: str = ""
    max_files: int = Field(default=1, ge=1)
    allowed_mime_types: frozenset[str]
    max_size_bytes: int = Field(gt=0)


class SelectedFile(OnboardingBaseModel):
    """A file picked by the user, optionally with its bytes attached."""

    name: str = Field(min_length=1)
    mime_type: str
    size: int = Field(ge=0)
    content: bytes | None = None


class DocumentUpload(OnboardingBaseModel):
    id: str = Field(default_factory=lambda: str(uuid4()))
    document_type: DocumentType
    file_name: str
    mime_type: str
    size: int = Field(ge=0)
    file_ref: str | None = None
    content_hash: str | None = None
    status: UploadStatus
    error_reason: UploadErrorReason | None = None
    error_message: str | None = None


class UploadReceipt(OnboardingBaseModel):
    url: str
    hash: str


class UploadFailure(OnboardingBaseModel):
    message: str
    retryable: bool = True


class UBOEntry(OnboardingBaseModel):
    first_name: str = ""
    last_name: str = ""
    nationality: str = ""
    date_of_birth: str = ""
    address: str = ""


class ValidationResult(OnboardingBaseModel):
    step: StepId
    is_valid: bool
    missing: list[str] = Field(default_factory=list)


class CollaboratorEvent(OnboardingBaseModel):
    collaborator: str
    operation: str
    succeeded: bool
    detail: str | None = None
    timestamp: datetime


class OnboardingSubmission(OnboardingBaseModel):
    session_id: str
    account_type: AccountType
    record: dict[str, Any]
    submitted_at: datetime


class TransitionResult(OnboardingBaseModel):
    advanced: bool
    step: StepId
    previous_step: StepId | None = None
    validation: ValidationResult | None = None
    reason: str | None = None


class OnboardingSnapshot(OnboardingBaseModel):
    """Everything needed to resume a session: record, current step and traversal stack."""

    version: int = 1
    session_id: str
    current_step: StepId
    stack: list[StepId] = Field(default_factory=list)
    record: dict[str, dict[str, Any]]
    submitted: bool = False
