from __future__ import annotations

import base64
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog
from fastapi import FastAPI, HTTPException

import config
from connectors.onboarding_services import (
    HttpContentUploader,
    HttpIdentityProvider,
    HttpNotificationService,
    HttpWalletService,
    OnboardingServicesConnector,
)
from onboarding_engine.catalog import catalog_payload
from onboarding_engine.exceptions import WorkflowError
from onboarding_engine.models import OnboardingSubmission, SelectedFile
from onboarding_engine.navigation import NavigationController, WorkflowContext
from onboarding_engine.settings import OnboardingSettings
from schemas.service_models import IdentityResultWebhook, ServiceCredentials

from .logging import configure_logging, mask_sensitive
from .models import (
    BackResponse,
    CodeDigitRequest,
    CodePasteRequest,
    CodeSignalResponse,
    DocumentCategoryState,
    DocumentSelectionRequest,
    FieldUpdateRequest,
    SessionResponse,
    TransitionResponse,
    UBOListResponse,
    UploadDocumentsRequest,
    UploadDocumentsResponse,
    UploadErrorDetail,
)
from .repository import SessionRepository

configure_logging(config.LOG_LEVEL, json_output=config.ONBOARDING_LOG_JSON)
logger = structlog.get_logger("onboarding_api")

app = FastAPI(title="Onboarding Workflow", version="1.0.0")

settings = OnboardingSettings()
repo = SessionRepository()
identity_provider: HttpIdentityProvider | None = None
collaborators: dict[str, Any] = {}

if config.ONBOARDING_SERVICES_URL:
    connector = OnboardingServicesConnector(
        ServiceCredentials(base_url=config.ONBOARDING_SERVICES_URL, api_key=config.ONBOARDING_SERVICES_API_KEY),
        timeout_seconds=config.ONBOARDING_SERVICES_TIMEOUT_SECONDS,
        max_retries=config.ONBOARDING_SERVICES_MAX_RETRIES,
        backoff_base_seconds=config.ONBOARDING_SERVICES_BACKOFF_SECONDS,
    )
    identity_provider = HttpIdentityProvider(connector)
    collaborators = {
        "notifier": HttpNotificationService(connector),
        "identity_provider": identity_provider,
        "wallet_service": HttpWalletService(connector),
    }
    if config.ONBOARDING_UPLOADS_ENABLED:
        collaborators["uploader"] = HttpContentUploader(connector)
else:
    logger.warning("onboarding_services_disabled")


def _session(session_id: str) -> NavigationController:
    controller = repo.get(session_id)
    if controller is None:
        raise HTTPException(status_code=404, detail="session not found")
    return controller


@contextmanager
def _workflow_errors() -> Iterator[None]:
    # UnknownFieldError and UnknownDocumentTypeError are ValueErrors too and map to 422.
    try:
        yield
    except (ValueError, IndexError) as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except WorkflowError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc


def _session_response(controller: NavigationController) -> SessionResponse:
    tracker = controller.tracker
    require_clean = controller.context.settings.require_clean_category
    documents = [
        DocumentCategoryState(
            document_type=policy.document_type,
            title=policy.title,
            description=policy.description,
            max_files=policy.max_files,
            uploaded=tracker.count(policy.document_type),
            complete=tracker.is_category_complete(policy.document_type, require_clean=require_clean),
        )
        for policy in tracker.policies.values()
    ]
    return SessionResponse(
        session_id=controller.session_id,
        current_step=controller.current_step,
        account_type=controller.record.account_type,
        stack=list(controller.stack),
        can_advance=controller.can_advance(),
        validation=controller.check(),
        submitted=controller.submitted,
        record=controller.record.to_dict(),
        documents=documents,
        selected_document_type=tracker.selected_type,
        events=list(controller.context.events),
    )


def _code_response(controller: NavigationController, accepted: bool, focus_index: int | None) -> CodeSignalResponse:
    return CodeSignalResponse(
        accepted=accepted,
        focus_index=focus_index,
        digits=list(controller.code_entry.digits),
        complete=controller.code_entry.is_complete(),
    )


@app.post("/v1/onboarding/sessions", response_model=SessionResponse)
async def create_session() -> SessionResponse:
    controller = NavigationController(WorkflowContext.create(settings=settings, **collaborators))
    repo.add(controller)
    logger.info("onboarding_session_created", session_id=controller.session_id)
    return _session_response(controller)


@app.get("/v1/onboarding/sessions/{session_id}", response_model=SessionResponse)
async def get_session(session_id: str) -> SessionResponse:
    return _session_response(_session(session_id))


@app.patch("/v1/onboarding/sessions/{session_id}/fields", response_model=SessionResponse)
async def update_fields(session_id: str, payload: FieldUpdateRequest) -> SessionResponse:
    controller = _session(session_id)
    with _workflow_errors():
        controller.update_fields(payload.fields)
    return _session_response(controller)


@app.post("/v1/onboarding/sessions/{session_id}/advance", response_model=TransitionResponse)
async def advance(session_id: str) -> TransitionResponse:
    controller = _session(session_id)
    with _workflow_errors():
        result = await controller.advance()
    return TransitionResponse(transition=result, session=_session_response(controller))


@app.post("/v1/onboarding/sessions/{session_id}/back", response_model=BackResponse)
async def back(session_id: str) -> BackResponse:
    controller = _session(session_id)
    with _workflow_errors():
        previous = controller.back()
    return BackResponse(moved=previous is not None, session=_session_response(controller))


@app.post("/v1/onboarding/sessions/{session_id}/submit", response_model=OnboardingSubmission)
async def submit(session_id: str) -> OnboardingSubmission:
    controller = _session(session_id)
    with _workflow_errors():
        submission = controller.submit()
    logger.info(
        "onboarding_submission_accepted",
        session_id=session_id,
        email=mask_sensitive(controller.record.email),
    )
    return submission


@app.post("/v1/onboarding/sessions/{session_id}/documents", response_model=UploadDocumentsResponse)
async def upload_documents(session_id: str, payload: UploadDocumentsRequest) -> UploadDocumentsResponse:
    controller = _session(session_id)
    with _workflow_errors():
        files = []
        for item in payload.files:
            content = base64.b64decode(item.content_b64, validate=True)
            files.append(SelectedFile(name=item.name, mime_type=item.mime_type, size=len(content), content=content))
        batch = await controller.upload_files(payload.document_type, files)
    return UploadDocumentsResponse(
        document_type=batch.document_type,
        uploads=batch.uploads,
        errors=[
            UploadErrorDetail(
                file_name=error.file_name,
                reason=error.reason,
                message=str(error),
                upload_id=error.upload_id,
            )
            for error in batch.errors
        ],
    )


@app.delete("/v1/onboarding/sessions/{session_id}/documents/{document_type}/{upload_id}", response_model=SessionResponse)
async def remove_document(session_id: str, document_type: str, upload_id: str) -> SessionResponse:
    controller = _session(session_id)
    with _workflow_errors():
        removed = controller.remove_file(document_type, upload_id)
    if not removed:
        raise HTTPException(status_code=404, detail="upload not found")
    return _session_response(controller)


@app.put("/v1/onboarding/sessions/{session_id}/documents/selection", response_model=SessionResponse)
async def select_document_type(session_id: str, payload: DocumentSelectionRequest) -> SessionResponse:
    controller = _session(session_id)
    with _workflow_errors():
        controller.select_document_type(payload.document_type)
    return _session_response(controller)


@app.put("/v1/onboarding/sessions/{session_id}/code/{index}", response_model=CodeSignalResponse)
async def set_code_digit(session_id: str, index: int, payload: CodeDigitRequest) -> CodeSignalResponse:
    controller = _session(session_id)
    with _workflow_errors():
        signal = controller.set_code_digit(index, payload.value)
    return _code_response(controller, signal.accepted, signal.focus_index)


@app.post("/v1/onboarding/sessions/{session_id}/code/{index}/backspace", response_model=CodeSignalResponse)
async def code_backspace(session_id: str, index: int) -> CodeSignalResponse:
    controller = _session(session_id)
    with _workflow_errors():
        signal = controller.code_backspace(index)
    return _code_response(controller, signal.accepted, signal.focus_index)


@app.post("/v1/onboarding/sessions/{session_id}/code/paste", response_model=CodeSignalResponse)
async def paste_code(session_id: str, payload: CodePasteRequest) -> CodeSignalResponse:
    controller = _session(session_id)
    with _workflow_errors():
        signal = controller.paste_code(payload.text, payload.start)
    return _code_response(controller, signal.accepted, signal.focus_index)


@app.post("/v1/onboarding/sessions/{session_id}/code/resend")
async def resend_code(session_id: str) -> dict[str, bool]:
    controller = _session(session_id)
    with _workflow_errors():
        sent = await controller.resend_code()
    return {"sent": sent}


@app.post("/v1/onboarding/sessions/{session_id}/ubo", response_model=UBOListResponse)
async def add_ubo(session_id: str) -> UBOListResponse:
    controller = _session(session_id)
    with _workflow_errors():
        controller.add_ubo()
    return UBOListResponse(owners=controller.record.ubo_entries)


@app.patch("/v1/onboarding/sessions/{session_id}/ubo/{index}", response_model=UBOListResponse)
async def update_ubo(session_id: str, index: int, payload: FieldUpdateRequest) -> UBOListResponse:
    controller = _session(session_id)
    with _workflow_errors():
        controller.update_ubo(index, payload.fields)
    return UBOListResponse(owners=controller.record.ubo_entries)


@app.delete("/v1/onboarding/sessions/{session_id}/ubo/{index}", response_model=UBOListResponse)
async def remove_ubo(session_id: str, index: int) -> UBOListResponse:
    controller = _session(session_id)
    with _workflow_errors():
        removed = controller.remove_ubo(index)
    return UBOListResponse(owners=controller.record.ubo_entries, changed=removed)


@app.get("/v1/onboarding/options")
async def get_options() -> dict[str, dict[str, dict[str, str]]]:
    return catalog_payload()


@app.post("/internal/webhooks/identity-result")
async def identity_webhook(payload: IdentityResultWebhook) -> dict[str, str]:
    controller = _session(payload.session_id)
    if identity_provider is not None:
        await identity_provider.handle_result(payload)
    else:
        controller.report_verification_complete(payload.status)
    return {"status": "accepted", "session_id": payload.session_id}
