import asyncio
import base64

import pytest
from fastapi import HTTPException

from onboarding_api.app import (
    add_ubo,
    advance,
    back,
    code_backspace,
    create_session,
    get_options,
    get_session,
    identity_webhook,
    paste_code,
    remove_document,
    remove_ubo,
    repo,
    select_document_type,
    set_code_digit,
    submit,
    update_fields,
    update_ubo,
    upload_documents,
)
from onboarding_api.models import (
    CodeDigitRequest,
    CodePasteRequest,
    DocumentFilePayload,
    DocumentSelectionRequest,
    FieldUpdateRequest,
    UploadDocumentsRequest,
)
from onboarding_engine.models import DocumentType, StepId, UploadStatus
from schemas.service_models import IdentityResultWebhook


def _pdf_payload(name: str = "passport.pdf", content: bytes = b"%PDF-1.4") -> DocumentFilePayload:
    return DocumentFilePayload(name=name, mime_type="application/pdf", content_b64=base64.b64encode(content).decode())


async def _session_at(step: StepId, account_type: str = "individual") -> str:
    session = await create_session()
    session_id = session.session_id
    fills = {
        StepId.ACCOUNT: {"account_type": account_type, "email": "anna@example.com", "terms_accepted": True},
        StepId.PERSONAL: {"first_name": "Anna", "last_name": "E", "nationality": "SE", "address": "Main 1"},
        StepId.EMPLOYMENT: {"occupation": "employed", "profession": "engineer"},
        StepId.INCOME: {
            "source_of_wealth": "savings",
            "annual_income": "0-25000",
            "net_worth": "0-50000",
            "annual_transactions": "0-10",
        },
        StepId.COMPANY_REPRESENTATIVE: {"first_name": "Rep", "last_name": "R", "nationality": "DE", "address": "X"},
    }
    current = session.current_step
    while current is not step:
        if current in fills:
            await update_fields(session_id, FieldUpdateRequest(fields=fills[current]))
        elif current is StepId.DOCUMENT_VERIFICATION:
            await upload_documents(
                session_id, UploadDocumentsRequest(document_type=DocumentType.PASSPORT, files=[_pdf_payload()])
            )
        elif current is StepId.EMAIL_CODE:
            await paste_code(session_id, CodePasteRequest(text="123456"))
        elif current is StepId.WALLET_SETUP:
            repo.get(session_id).report_wallet_provisioned("wallet-1")
        response = await advance(session_id)
        assert response.transition.advanced, response.transition
        current = response.session.current_step
    return session_id


def test_create_and_get_session():
    created = asyncio.run(create_session())
    fetched = asyncio.run(get_session(created.session_id))

    assert fetched.current_step is StepId.WELCOME_KYC
    assert fetched.stack == []
    assert fetched.can_advance is True
    assert [category.document_type for category in fetched.documents] == [
        DocumentType.PASSPORT,
        DocumentType.NATIONAL_ID,
        DocumentType.RESIDENCE_PERMIT,
    ]


def test_unknown_session_is_404():
    with pytest.raises(HTTPException) as exc:
        asyncio.run(get_session("missing"))

    assert exc.value.status_code == 404


def test_field_update_for_wrong_step_is_409():
    created = asyncio.run(create_session())

    with pytest.raises(HTTPException) as exc:
        asyncio.run(update_fields(created.session_id, FieldUpdateRequest(fields={"email": "a@b.co"})))

    assert exc.value.status_code == 409


def test_unknown_field_is_422():
    session_id = asyncio.run(_session_at(StepId.ACCOUNT))

    with pytest.raises(HTTPException) as exc:
        asyncio.run(update_fields(session_id, FieldUpdateRequest(fields={"company_name": "Acme"})))

    assert exc.value.status_code == 422


def test_blocked_advance_reports_missing_fields():
    session_id = asyncio.run(_session_at(StepId.ACCOUNT))

    response = asyncio.run(advance(session_id))

    assert response.transition.advanced is False
    assert response.transition.validation.missing == ["terms_accepted"]
    assert response.session.current_step is StepId.ACCOUNT


def test_back_route():
    session_id = asyncio.run(_session_at(StepId.PERSONAL))

    response = asyncio.run(back(session_id))

    assert response.moved is True
    assert response.session.current_step is StepId.ACCOUNT
    assert response.session.record["account"]["email"] == "anna@example.com"


def test_document_routes():
    session_id = asyncio.run(_session_at(StepId.DOCUMENT_VERIFICATION))

    selected = asyncio.run(
        select_document_type(session_id, DocumentSelectionRequest(document_type=DocumentType.NATIONAL_ID))
    )
    uploaded = asyncio.run(
        upload_documents(
            session_id,
            UploadDocumentsRequest(
                document_type=DocumentType.NATIONAL_ID,
                files=[
                    _pdf_payload("front.pdf"),
                    DocumentFilePayload(name="x.gif", mime_type="image/gif", content_b64=base64.b64encode(b"GIF").decode()),
                    _pdf_payload("back.pdf"),
                ],
            ),
        )
    )

    assert selected.selected_document_type is DocumentType.NATIONAL_ID
    assert [upload.status for upload in uploaded.uploads] == [UploadStatus.SUCCESS, UploadStatus.ERROR]
    assert [error.reason.value for error in uploaded.errors] == ["unsupported_type", "too_many_files"]

    after = asyncio.run(remove_document(session_id, "national-id", uploaded.uploads[1].id))
    state = {category.document_type: category for category in after.documents}
    assert state[DocumentType.NATIONAL_ID].uploaded == 1
    assert state[DocumentType.NATIONAL_ID].complete is True

    with pytest.raises(HTTPException) as exc:
        asyncio.run(remove_document(session_id, "national-id", "missing"))
    assert exc.value.status_code == 404


def test_invalid_base64_is_422():
    session_id = asyncio.run(_session_at(StepId.DOCUMENT_VERIFICATION))

    with pytest.raises(HTTPException) as exc:
        asyncio.run(
            upload_documents(
                session_id,
                UploadDocumentsRequest(
                    document_type=DocumentType.PASSPORT,
                    files=[DocumentFilePayload(name="p.pdf", mime_type="application/pdf", content_b64="***")],
                ),
            )
        )

    assert exc.value.status_code == 422


def test_code_routes():
    session_id = asyncio.run(_session_at(StepId.EMAIL_CODE))

    digit = asyncio.run(set_code_digit(session_id, 2, CodeDigitRequest(value="7")))
    backspace = asyncio.run(code_backspace(session_id, 2))
    moved = asyncio.run(code_backspace(session_id, 2))

    assert (digit.accepted, digit.focus_index) == (True, 3)
    assert backspace.focus_index is None
    assert moved.focus_index == 1
    assert moved.complete is False

    with pytest.raises(HTTPException) as exc:
        asyncio.run(set_code_digit(session_id, 9, CodeDigitRequest(value="1")))
    assert exc.value.status_code == 422


def test_ubo_routes():
    session_id = asyncio.run(_session_at(StepId.COMPANY_INFORMATION, account_type="legal"))
    asyncio.run(
        update_fields(
            session_id,
            FieldUpdateRequest(
                fields={
                    "company_name": "Acme",
                    "place_of_incorporation": "Zug",
                    "date_of_establishment": "2010-01-01",
                    "registration_number": "CHE-1",
                }
            ),
        )
    )
    asyncio.run(advance(session_id))

    with pytest.raises(HTTPException) as exc:
        asyncio.run(update_fields(session_id, FieldUpdateRequest(fields={"owners": []})))
    assert exc.value.status_code == 409

    added = asyncio.run(add_ubo(session_id))
    updated = asyncio.run(update_ubo(session_id, 1, FieldUpdateRequest(fields={"first_name": "Jane"})))
    removed = asyncio.run(remove_ubo(session_id, 0))
    kept = asyncio.run(remove_ubo(session_id, 0))

    assert len(added.owners) == 2
    assert updated.owners[1].first_name == "Jane"
    assert [owner.first_name for owner in removed.owners] == ["Jane"]
    assert kept.changed is False


def test_submit_route_and_double_submit():
    session_id = asyncio.run(_session_at(StepId.COMPLETE))

    submission = asyncio.run(submit(session_id))

    assert submission.session_id == session_id
    assert submission.record["wallet"]["wallet_id"] == "wallet-1"
    with pytest.raises(HTTPException) as exc:
        asyncio.run(submit(session_id))
    assert exc.value.status_code == 409


def test_identity_webhook_updates_session():
    session_id = asyncio.run(_session_at(StepId.IDENTITY_HANDOFF))

    accepted = asyncio.run(identity_webhook(IdentityResultWebhook(session_id=session_id, status="approved")))
    state = asyncio.run(get_session(session_id))

    assert accepted == {"status": "accepted", "session_id": session_id}
    assert state.record["identity"]["status"] == "approved"


def test_options_catalog():
    options = asyncio.run(get_options())

    assert options["employment"]["occupation"]["employed"] == "Employed"
    assert options["regulatory_status"]["is_listed_on_exchange"] == {"yes": "Yes", "no": "No"}
