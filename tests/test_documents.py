import asyncio

import pytest

from onboarding_engine.documents import DocumentUploadTracker, build_default_registry
from onboarding_engine.exceptions import (
    TooLargeError,
    TooManyFilesError,
    TransferFailureError,
    UnknownDocumentTypeError,
    UnsupportedTypeError,
)
from onboarding_engine.models import (
    AccountType,
    DocumentType,
    SelectedFile,
    UploadErrorReason,
    UploadFailure,
    UploadReceipt,
    UploadStatus,
)
from onboarding_engine.settings import OnboardingSettings

MB = 1024 * 1024


def _tracker(account_type: AccountType = AccountType.INDIVIDUAL, **settings) -> DocumentUploadTracker:
    registry = build_default_registry(OnboardingSettings(**settings))
    return DocumentUploadTracker(registry.policies_for(account_type))


def _pdf(name: str = "doc.pdf", size: int = 1024) -> SelectedFile:
    return SelectedFile(name=name, mime_type="application/pdf", size=size, content=b"%PDF" + name.encode())


class StubUploader:
    def __init__(self, fail: set[str] | None = None, gate: asyncio.Event | None = None) -> None:
        self.fail = fail or set()
        self.gate = gate
        self.calls: list[str] = []

    async def upload(self, file: SelectedFile) -> UploadReceipt | UploadFailure:
        self.calls.append(file.name)
        if self.gate is not None:
            await self.gate.wait()
        if file.name in self.fail:
            return UploadFailure(message="connection reset")
        return UploadReceipt(url=f"https://files.example/{file.name}", hash=f"h-{file.name}")


def test_default_categories_per_account_type():
    registry = build_default_registry()

    assert list(registry.policies_for(AccountType.INDIVIDUAL)) == [
        DocumentType.PASSPORT,
        DocumentType.NATIONAL_ID,
        DocumentType.RESIDENCE_PERMIT,
    ]
    legal = registry.policies_for(AccountType.LEGAL)
    assert legal[DocumentType.UBO_ID].max_files == 10
    assert DocumentType.PASSPORT not in legal


def test_accepted_file_is_recorded_as_success():
    tracker = _tracker()

    batch = tracker.add_files(DocumentType.PASSPORT, [_pdf()])

    assert batch.errors == []
    assert [upload.status for upload in batch.uploads] == [UploadStatus.SUCCESS]
    assert tracker.is_category_complete(DocumentType.PASSPORT)
    assert tracker.is_satisfied()


def test_too_large_file_is_recorded_with_error():
    tracker = _tracker()

    batch = tracker.add_files(DocumentType.PASSPORT, [_pdf(size=6 * MB)])

    assert isinstance(batch.errors[0], TooLargeError)
    assert str(batch.errors[0]) == "File size must be less than 5MB"
    entry = tracker.uploads_for(DocumentType.PASSPORT)[0]
    assert entry.status is UploadStatus.ERROR
    assert entry.error_reason is UploadErrorReason.TOO_LARGE
    assert batch.errors[0].upload_id == entry.id
    assert not tracker.is_category_complete(DocumentType.PASSPORT)


def test_unsupported_type_is_recorded_with_error():
    tracker = _tracker()

    batch = tracker.add_files(
        DocumentType.NATIONAL_ID,
        [SelectedFile(name="id.gif", mime_type="image/gif", size=100, content=b"GIF89a")],
    )

    assert isinstance(batch.errors[0], UnsupportedTypeError)
    assert batch.errors[0].reason == "unsupported_type"
    assert tracker.count(DocumentType.NATIONAL_ID) == 1
    assert batch.accepted == []


def test_too_many_files_rejects_extra_files_without_recording_them():
    tracker = _tracker()
    tracker.add_files(DocumentType.NATIONAL_ID, [_pdf("front.pdf")])

    batch = tracker.add_files(DocumentType.NATIONAL_ID, [_pdf("back.pdf"), _pdf("extra.pdf")])

    assert [upload.file_name for upload in batch.uploads] == ["back.pdf"]
    assert len(batch.errors) == 1
    assert isinstance(batch.errors[0], TooManyFilesError)
    assert batch.errors[0].file_name == "extra.pdf"
    assert "up to 2 files" in str(batch.errors[0])
    assert tracker.count(DocumentType.NATIONAL_ID) == 2


def test_error_entries_count_towards_limit():
    tracker = _tracker()
    tracker.add_files(DocumentType.NATIONAL_ID, [_pdf(size=6 * MB), _pdf(size=6 * MB)])

    batch = tracker.add_files(DocumentType.NATIONAL_ID, [_pdf()])

    assert isinstance(batch.errors[0], TooManyFilesError)


def test_unknown_category_for_account_type():
    tracker = _tracker(AccountType.INDIVIDUAL)

    with pytest.raises(UnknownDocumentTypeError):
        tracker.add_files(DocumentType.ARTICLES, [_pdf()])


def test_remove_file_only_touches_that_entry():
    tracker = _tracker()
    batch = tracker.add_files(DocumentType.PASSPORT, [_pdf("a.pdf"), _pdf("b.pdf")])

    assert tracker.remove_file(DocumentType.PASSPORT, batch.uploads[0].id) is True
    assert [entry.file_name for entry in tracker.uploads_for(DocumentType.PASSPORT)] == ["b.pdf"]
    assert tracker.remove_file(DocumentType.PASSPORT, "missing") is False


def test_async_upload_applies_results_by_id():
    tracker = _tracker(AccountType.LEGAL)
    uploader = StubUploader(fail={"bad.pdf"})

    batch = asyncio.run(tracker.upload_files(DocumentType.FUNDS, [_pdf("good.pdf"), _pdf("bad.pdf")], uploader))

    by_name = {entry.file_name: entry for entry in tracker.uploads_for(DocumentType.FUNDS)}
    assert by_name["good.pdf"].status is UploadStatus.SUCCESS
    assert by_name["good.pdf"].file_ref == "https://files.example/good.pdf"
    assert by_name["bad.pdf"].status is UploadStatus.ERROR
    assert by_name["bad.pdf"].error_reason is UploadErrorReason.TRANSFER_FAILURE
    assert [type(error) for error in batch.errors] == [TransferFailureError]
    assert [upload.status for upload in batch.uploads] == [UploadStatus.SUCCESS, UploadStatus.ERROR]


def test_rejected_files_are_not_transferred():
    tracker = _tracker()
    uploader = StubUploader()

    asyncio.run(tracker.upload_files(DocumentType.PASSPORT, [_pdf("big.pdf", size=6 * MB), _pdf("ok.pdf")], uploader))

    assert uploader.calls == ["ok.pdf"]

class CrashingUploader:
    async def upload(self, file: SelectedFile) -> UploadReceipt | UploadFailure:
        if file.name == "crash.pdf":
            raise ValueError("receipt without hash")
        return UploadReceipt(url=f"https://files.example/{file.name}", hash="h")


def test_uploader_exception_becomes_transfer_failure():
    tracker = _tracker()

    batch = asyncio.run(
        tracker.upload_files(DocumentType.PASSPORT, [_pdf("crash.pdf"), _pdf("fine.pdf")], CrashingUploader())
    )

    by_name = {entry.file_name: entry for entry in tracker.uploads_for(DocumentType.PASSPORT)}
    assert by_name["crash.pdf"].status is UploadStatus.ERROR
    assert by_name["crash.pdf"].error_message == "receipt without hash"
    assert by_name["fine.pdf"].status is UploadStatus.SUCCESS
    assert [(type(error), error.file_name) for error in batch.errors] == [(TransferFailureError, "crash.pdf")]



def test_result_for_removed_entry_is_discarded():
    async def scenario():
        gate = asyncio.Event()
        tracker = _tracker()
        task = asyncio.create_task(
            tracker.upload_files(DocumentType.PASSPORT, [_pdf("slow.pdf")], StubUploader(gate=gate))
        )
        await asyncio.sleep(0)
        pending = tracker.uploads_for(DocumentType.PASSPORT)
        assert [entry.status for entry in pending] == [UploadStatus.UPLOADING]
        tracker.remove_file(DocumentType.PASSPORT, pending[0].id)
        gate.set()
        await task
        return tracker

    tracker = asyncio.run(scenario())

    assert tracker.uploads_for(DocumentType.PASSPORT) == []


def test_completion_rules():
    tracker = _tracker()
    tracker.add_files(DocumentType.PASSPORT, [_pdf(), _pdf(size=6 * MB)])

    assert tracker.is_satisfied("any_category")
    assert not tracker.is_satisfied("any_category", require_clean=True)
    assert not tracker.is_satisfied("all_categories")


def test_on_change_fires_and_group_round_trip():
    changes = []
    tracker = _tracker()
    tracker.on_change = lambda: changes.append(tracker.to_group())
    tracker.select(DocumentType.PASSPORT)
    tracker.add_files(DocumentType.PASSPORT, [_pdf()])

    assert len(changes) == 2
    restored = DocumentUploadTracker.from_group(tracker.policies, changes[-1])
    assert restored.selected_type is DocumentType.PASSPORT
    assert restored.uploads_for(DocumentType.PASSPORT) == tracker.uploads_for(DocumentType.PASSPORT)
