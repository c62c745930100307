from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from hashlib import sha256
from typing import Any, Callable, Iterable, Literal, Mapping

import structlog

from .collaborators import ContentUploader
from .exceptions import (
    TooLargeError,
    TooManyFilesError,
    TransferFailureError,
    UnknownDocumentTypeError,
    UnsupportedTypeError,
    UploadError,
)
from .models import (
    AccountType,
    DocumentType,
    DocumentTypeConfig,
    DocumentUpload,
    SelectedFile,
    UploadErrorReason,
    UploadFailure,
    UploadStatus,
)
from .settings import OnboardingSettings

CompletionRule = Literal["any_category", "all_categories"]


@dataclass
class DocumentPolicyRegistry:
    """Per account type document categories and their upload limits."""

    _policies: dict[AccountType, dict[DocumentType, DocumentTypeConfig]] = field(default_factory=dict)

    def register(self, account_type: AccountType, config: DocumentTypeConfig) -> None:
        self._policies.setdefault(AccountType(account_type), {})[config.document_type] = config

    def policies_for(self, account_type: AccountType) -> dict[DocumentType, DocumentTypeConfig]:
        account_type = AccountType(account_type)
        if account_type not in self._policies:
            raise UnknownDocumentTypeError(f"No document categories registered for {account_type.value}")
        return dict(self._policies[account_type])


_DEFAULT_CATEGORIES: dict[AccountType, list[tuple[DocumentType, str, str, int]]] = {
    AccountType.INDIVIDUAL: [
        (DocumentType.PASSPORT, "Passport", "Upload your valid passport", 3),
        (DocumentType.NATIONAL_ID, "National ID Card", "Upload your national ID card (front and back)", 2),
        (DocumentType.RESIDENCE_PERMIT, "Residence Permit", "Upload your residence permit if applicable", 2),
    ],
    AccountType.LEGAL: [
        (DocumentType.EXTRACT, "Extract of Commercial Register", "Upload a recent extract from the commercial register", 2),
        (DocumentType.ARTICLES, "Articles of Association", "Upload your company's articles of association", 3),
        (DocumentType.STRUCTURE, "Company Structure Chart", "Upload your company's organizational structure", 2),
        (DocumentType.FUNDS, "Source of Funds", "Document proving the origin of investment funds", 5),
        (DocumentType.WEALTH, "Source of Wealth", "Document proving overall wealth origin", 5),
        (DocumentType.UBO_ID, "UBO Identification", "Upload ID documents for all listed UBOs", 10),
    ],
}


def build_default_registry(settings: OnboardingSettings | None = None) -> DocumentPolicyRegistry:
    settings = settings or OnboardingSettings()
    registry = DocumentPolicyRegistry()
    for account_type, categories in _DEFAULT_CATEGORIES.items():
        for document_type, title, description, max_files in categories:
            registry.register(
                account_type,
                DocumentTypeConfig(
                    document_type=document_type,
                    title=title,
                    description=description,
                    max_files=max_files,
                    allowed_mime_types=settings.allowed_mime_types,
                    max_size_bytes=settings.max_file_size_bytes,
                ),
            )
    return registry


@dataclass
class UploadBatchResult:
    document_type: DocumentType
    uploads: list[DocumentUpload] = field(default_factory=list)
    errors: list[UploadError] = field(default_factory=list)

    @property
    def accepted(self) -> list[DocumentUpload]:
        return [upload for upload in self.uploads if upload.status is not UploadStatus.ERROR]


def _format_size(size_bytes: int) -> str:
    if size_bytes % (1024 * 1024) == 0:
        return f"{size_bytes // (1024 * 1024)}MB"
    return f"{size_bytes} bytes"


class DocumentUploadTracker:
    """Upload list per document category for the DocumentVerification step.

    Every write after the initial screening is keyed by the upload id, so
    transfers that finish in any order never touch each other's entries. A
    result for an entry the user already removed is dropped.
    """

    def __init__(
        self,
        policies: Mapping[DocumentType, DocumentTypeConfig],
        uploads: Mapping[DocumentType, Iterable[DocumentUpload]] | None = None,
        *,
        selected_type: DocumentType | None = None,
        on_change: Callable[[], None] | None = None,
    ) -> None:
        self.policies = dict(policies)
        self._uploads: dict[DocumentType, list[DocumentUpload]] = {
            DocumentType(document_type): list(entries) for document_type, entries in (uploads or {}).items()
        }
        self.selected_type = DocumentType(selected_type) if selected_type else None
        self.on_change = on_change
        self.logger = structlog.get_logger("document_upload_tracker")

    def select(self, document_type: DocumentType) -> None:
        self.selected_type = self._config(document_type).document_type
        self._changed()

    def add_files(self, document_type: DocumentType, files: Iterable[SelectedFile]) -> UploadBatchResult:
        config = self._config(document_type)
        batch = UploadBatchResult(document_type=config.document_type)
        for file in files:
            upload = self._screen(config, file, batch)
            if upload is None:
                continue
            if upload.status is not UploadStatus.ERROR:
                upload = upload.model_copy(update={"status": UploadStatus.SUCCESS})
            self._record(upload)
            batch.uploads.append(upload)
        self._changed()
        return batch

    async def upload_files(
        self,
        document_type: DocumentType,
        files: Iterable[SelectedFile],
        uploader: ContentUploader,
    ) -> UploadBatchResult:
        config = self._config(document_type)
        batch = UploadBatchResult(document_type=config.document_type)
        pending: list[tuple[str, SelectedFile]] = []
        for file in files:
            upload = self._screen(config, file, batch)
            if upload is None:
                continue
            self._record(upload)
            batch.uploads.append(upload)
            if upload.status is UploadStatus.UPLOADING:
                pending.append((upload.id, file))
        self._changed()

        await asyncio.gather(
            *(self._transfer(config.document_type, upload_id, file, uploader, batch) for upload_id, file in pending)
        )
        batch.uploads = [self.find(config.document_type, upload.id) or upload for upload in batch.uploads]
        return batch

    def remove_file(self, document_type: DocumentType, upload_id: str) -> bool:
        entries = self._uploads.get(DocumentType(document_type), [])
        remaining = [entry for entry in entries if entry.id != upload_id]
        if len(remaining) == len(entries):
            return False
        self._uploads[DocumentType(document_type)] = remaining
        self.logger.info("upload_removed", document_type=DocumentType(document_type).value, upload_id=upload_id)
        self._changed()
        return True

    def apply_transfer_result(
        self,
        document_type: DocumentType,
        upload_id: str,
        *,
        file_ref: str | None = None,
        content_hash: str | None = None,
        failure: str | None = None,
    ) -> DocumentUpload | None:
        if failure is not None:
            changes: dict[str, Any] = {
                "status": UploadStatus.ERROR,
                "error_reason": UploadErrorReason.TRANSFER_FAILURE,
                "error_message": failure,
            }
        else:
            changes = {"status": UploadStatus.SUCCESS, "file_ref": file_ref, "content_hash": content_hash}
        return self._replace(DocumentType(document_type), upload_id, changes)

    def find(self, document_type: DocumentType, upload_id: str) -> DocumentUpload | None:
        for entry in self._uploads.get(DocumentType(document_type), []):
            if entry.id == upload_id:
                return entry
        return None

    def uploads_for(self, document_type: DocumentType) -> list[DocumentUpload]:
        return list(self._uploads.get(DocumentType(document_type), []))

    def count(self, document_type: DocumentType) -> int:
        return len(self._uploads.get(DocumentType(document_type), []))

    def is_category_complete(self, document_type: DocumentType, *, require_clean: bool = False) -> bool:
        entries = self.uploads_for(document_type)
        if not entries:
            return False
        if require_clean:
            return all(entry.status is UploadStatus.SUCCESS for entry in entries)
        return any(entry.status is UploadStatus.SUCCESS for entry in entries)

    def completed_categories(self, *, require_clean: bool = False) -> list[DocumentType]:
        return [
            document_type
            for document_type in self.policies
            if self.is_category_complete(document_type, require_clean=require_clean)
        ]

    def is_satisfied(self, rule: CompletionRule = "any_category", *, require_clean: bool = False) -> bool:
        completed = self.completed_categories(require_clean=require_clean)
        if rule == "all_categories":
            return len(completed) == len(self.policies)
        return bool(completed)

    def to_group(self) -> dict[str, Any]:
        return {
            "selected_type": self.selected_type.value if self.selected_type else None,
            "uploads": {
                document_type.value: [entry.model_dump(mode="json") for entry in entries]
                for document_type, entries in self._uploads.items()
            },
        }

    @classmethod
    def from_group(
        cls,
        policies: Mapping[DocumentType, DocumentTypeConfig],
        group: Mapping[str, Any],
        *,
        on_change: Callable[[], None] | None = None,
    ) -> DocumentUploadTracker:
        uploads = {
            DocumentType(document_type): [DocumentUpload.model_validate(entry) for entry in entries]
            for document_type, entries in (group.get("uploads") or {}).items()
        }
        return cls(policies, uploads, selected_type=group.get("selected_type"), on_change=on_change)

    def _config(self, document_type: DocumentType) -> DocumentTypeConfig:
        try:
            return self.policies[DocumentType(document_type)]
        except (KeyError, ValueError) as exc:
            raise UnknownDocumentTypeError(f"Document type '{document_type}' is not offered") from exc

    def _screen(self, config: DocumentTypeConfig, file: SelectedFile, batch: UploadBatchResult) -> DocumentUpload | None:
        document_type = config.document_type
        if self.count(document_type) >= config.max_files:
            plural = "s" if config.max_files > 1 else ""
            error = TooManyFilesError(
                f"You can only upload up to {config.max_files} file{plural} for this document type",
                document_type=document_type.value,
                file_name=file.name,
            )
            batch.errors.append(error)
            self.logger.info("upload_rejected", document_type=document_type.value, reason=error.reason)
            return None

        upload = DocumentUpload(
            document_type=document_type,
            file_name=file.name,
            mime_type=file.mime_type,
            size=file.size,
            content_hash=sha256(file.content).hexdigest() if file.content is not None else None,
            status=UploadStatus.UPLOADING,
        )
        error: UploadError | None = None
        if file.mime_type not in config.allowed_mime_types:
            error = UnsupportedTypeError(
                f"Unsupported file type {file.mime_type}; allowed: {', '.join(sorted(config.allowed_mime_types))}",
                document_type=document_type.value,
                file_name=file.name,
                upload_id=upload.id,
            )
        elif file.size > config.max_size_bytes:
            error = TooLargeError(
                f"File size must be less than {_format_size(config.max_size_bytes)}",
                document_type=document_type.value,
                file_name=file.name,
                upload_id=upload.id,
            )
        if error is None:
            return upload

        batch.errors.append(error)
        self.logger.info("upload_rejected", document_type=document_type.value, reason=error.reason, upload_id=upload.id)
        return upload.model_copy(
            update={
                "status": UploadStatus.ERROR,
                "error_reason": UploadErrorReason(error.reason),
                "error_message": str(error),
            }
        )

    async def _transfer(
        self,
        document_type: DocumentType,
        upload_id: str,
        file: SelectedFile,
        uploader: ContentUploader,
        batch: UploadBatchResult,
    ) -> None:
        try:
            result = await uploader.upload(file)
        except Exception as exc:
            self.logger.warning(
                "upload_transfer_crashed", document_type=document_type.value, upload_id=upload_id, error=str(exc)
            )
            result = UploadFailure(message=str(exc) or exc.__class__.__name__)
        if isinstance(result, UploadFailure):
            batch.errors.append(
                TransferFailureError(
                    result.message,
                    document_type=document_type.value,
                    file_name=file.name,
                    upload_id=upload_id,
                )
            )
            self.apply_transfer_result(document_type, upload_id, failure=result.message)
            return
        self.apply_transfer_result(document_type, upload_id, file_ref=result.url, content_hash=result.hash)

    def _record(self, upload: DocumentUpload) -> None:
        self._uploads.setdefault(upload.document_type, []).append(upload)

    def _replace(self, document_type: DocumentType, upload_id: str, changes: dict[str, Any]) -> DocumentUpload | None:
        entries = self._uploads.get(document_type, [])
        for index, entry in enumerate(entries):
            if entry.id == upload_id:
                entries[index] = entry.model_copy(update=changes)
                self.logger.info(
                    "upload_result_applied",
                    document_type=document_type.value,
                    upload_id=upload_id,
                    status=entries[index].status.value,
                )
                self._changed()
                return entries[index]
        self.logger.info("upload_result_discarded", document_type=document_type.value, upload_id=upload_id)
        return None

    def _changed(self) -> None:
        if self.on_change is not None:
            self.on_change()
