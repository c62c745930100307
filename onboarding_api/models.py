from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from onboarding_engine.models import (
    AccountType,
    CollaboratorEvent,
    DocumentType,
    DocumentUpload,
    StepId,
    TransitionResult,
    UBOEntry,
    UploadErrorReason,
    ValidationResult,
)


class DocumentCategoryState(BaseModel):
    document_type: DocumentType
    title: str
    description: str
    max_files: int
    uploaded: int
    complete: bool


class SessionResponse(BaseModel):
    session_id: str
    current_step: StepId
    account_type: AccountType
    stack: list[StepId]
    can_advance: bool
    validation: ValidationResult
    submitted: bool
    record: dict[str, dict[str, Any]]
    documents: list[DocumentCategoryState] = Field(default_factory=list)
    selected_document_type: DocumentType | None = None
    events: list[CollaboratorEvent] = Field(default_factory=list)


class FieldUpdateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    fields: dict[str, Any]


class TransitionResponse(BaseModel):
    transition: TransitionResult
    session: SessionResponse


class BackResponse(BaseModel):
    moved: bool
    session: SessionResponse


class DocumentFilePayload(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1)
    mime_type: str = Field(min_length=1)
    content_b64: str


class UploadDocumentsRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    document_type: DocumentType
    files: list[DocumentFilePayload] = Field(min_length=1)


class UploadErrorDetail(BaseModel):
    file_name: str
    reason: UploadErrorReason
    message: str
    upload_id: str | None = None


class UploadDocumentsResponse(BaseModel):
    document_type: DocumentType
    uploads: list[DocumentUpload]
    errors: list[UploadErrorDetail]


class DocumentSelectionRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    document_type: DocumentType


class CodeDigitRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    value: str = Field(max_length=1)


class CodePasteRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    text: str = Field(min_length=1)
    start: int = Field(default=0, ge=0)


class CodeSignalResponse(BaseModel):
    accepted: bool
    focus_index: int | None
    digits: list[str]
    complete: bool


class UBOListResponse(BaseModel):
    owners: list[UBOEntry]
    changed: bool = True
