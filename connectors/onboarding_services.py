from __future__ import annotations

import asyncio
import base64
import inspect
import random
from hashlib import sha256
from typing import Any
from uuid import uuid4

import httpx
import structlog

from onboarding_engine.collaborators import VerificationCallback
from onboarding_engine.models import SelectedFile, UploadFailure, UploadReceipt
from schemas.service_models import (
    IdentityResultWebhook,
    IdentitySessionRequest,
    IdentitySessionResponse,
    ServiceCredentials,
    UploadRequest,
    UploadResponse,
    VerificationCodeRequest,
    WalletRequest,
    WalletResponse,
)

MASKED_KEYS = frozenset({"email", "content_b64"})


class ServiceResponseError(RuntimeError):
    """Raised when a collaborator service answers with an error payload."""


class OnboardingServicesConnector:
    def __init__(
        self,
        credentials: ServiceCredentials,
        *,
        timeout_seconds: float = 10.0,
        max_retries: int = 3,
        backoff_base_seconds: float = 0.2,
        backoff_max_seconds: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._credentials = credentials
        self._max_retries = max_retries
        self._backoff_base_seconds = backoff_base_seconds
        self._backoff_max_seconds = backoff_max_seconds
        self._logger = structlog.get_logger("onboarding_services_connector")
        headers = {"Content-Type": "application/json"}
        if credentials.api_key:
            headers["Authorization"] = f"Bearer {credentials.api_key}"
        self._client = httpx.AsyncClient(timeout=timeout_seconds, transport=transport, headers=headers)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def post(
        self,
        path: str,
        payload: dict[str, Any],
        *,
        correlation_id: str,
        operation: str,
        idempotency_key: str | None = None,
    ) -> dict[str, Any]:
        """POST with retries. Requests that create remote state carry an
        ``Idempotency-Key`` so the service can collapse repeated attempts."""
        url = self._credentials.base_url.rstrip("/") + "/" + path.lstrip("/")
        headers = {"X-Correlation-ID": correlation_id}
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key

        for attempt in range(self._max_retries + 1):
            try:
                resp = await self._client.post(url, json=payload, headers=headers)
            except httpx.HTTPError as exc:
                if attempt >= self._max_retries:
                    raise
                await self._sleep_before_retry(attempt, retry_after=None)
                self._logger.warning(
                    "onboarding_service_retry_network_error",
                    error=str(exc),
                    attempt=attempt + 1,
                    operation=operation,
                    correlation_id=correlation_id,
                    idempotency_key=idempotency_key,
                )
                continue

            if resp.status_code == 429:
                if attempt >= self._max_retries:
                    resp.raise_for_status()
                retry_after = self._parse_retry_after(resp.headers.get("Retry-After"))
                await self._sleep_before_retry(attempt, retry_after=retry_after)
                self._logger.warning(
                    "onboarding_service_retry_rate_limited",
                    attempt=attempt + 1,
                    operation=operation,
                    correlation_id=correlation_id,
                    idempotency_key=idempotency_key,
                    retry_after_seconds=retry_after,
                )
                continue

            # an earlier attempt with the same key is still being processed
            if resp.status_code == 409 and idempotency_key:
                if attempt >= self._max_retries:
                    resp.raise_for_status()
                await self._sleep_before_retry(attempt, retry_after=None)
                self._logger.warning(
                    "onboarding_service_retry_idempotency_conflict",
                    attempt=attempt + 1,
                    operation=operation,
                    correlation_id=correlation_id,
                    idempotency_key=idempotency_key,
                )
                continue

            if 500 <= resp.status_code <= 599:
                if attempt >= self._max_retries:
                    resp.raise_for_status()
                await self._sleep_before_retry(attempt, retry_after=None)
                self._logger.warning(
                    "onboarding_service_retry_server_error",
                    attempt=attempt + 1,
                    operation=operation,
                    correlation_id=correlation_id,
                    idempotency_key=idempotency_key,
                    status_code=resp.status_code,
                )
                continue

            resp.raise_for_status()
            body = resp.json()
            if not isinstance(body, dict):
                raise ServiceResponseError(f"Unexpected {operation} response: {type(body).__name__}")
            if "error" in body:
                raise ServiceResponseError(f"Onboarding service error: {body['error']}")

            self._logger.info(
                "onboarding_service_request_success",
                operation=operation,
                correlation_id=correlation_id,
                payload=self._mask_payload(payload),
            )
            return body

        raise RuntimeError("Unreachable retry loop end")

    async def _sleep_before_retry(self, attempt: int, *, retry_after: float | None) -> None:
        if retry_after is not None:
            await asyncio.sleep(max(0.0, retry_after))
            return
        base = min(self._backoff_max_seconds, self._backoff_base_seconds * (2**attempt))
        jitter = random.uniform(0.0, base / 4 if base > 0 else 0.001)
        await asyncio.sleep(min(self._backoff_max_seconds, base + jitter))

    @staticmethod
    def _parse_retry_after(value: str | None) -> float | None:
        if value is None:
            return None
        try:
            return float(value)
        except ValueError:
            return None

    @staticmethod
    def _mask_payload(payload: dict[str, Any]) -> dict[str, Any]:
        masked = dict(payload)
        for key in MASKED_KEYS & masked.keys():
            value = str(masked[key])
            masked[key] = f"{value[:2]}***{value[-2:]}" if len(value) > 8 else "***"
        return masked


class HttpContentUploader:
    """Transfers document bytes. Transport and payload problems come back as ``UploadFailure``.

    Uploads are keyed by content hash so a retried request never stores the
    same bytes twice.
    """

    def __init__(self, connector: OnboardingServicesConnector) -> None:
        self.connector = connector

    async def upload(self, file: SelectedFile) -> UploadReceipt | UploadFailure:
        if file.content is None:
            return UploadFailure(message=f"No content attached to {file.name}", retryable=False)
        request = UploadRequest(
            file_name=file.name,
            mime_type=file.mime_type,
            size=file.size,
            content_b64=base64.b64encode(file.content).decode(),
        )
        try:
            payload = await self.connector.post(
                "/uploads",
                request.model_dump(),
                correlation_id=str(uuid4()),
                operation="upload",
                idempotency_key=f"upload-{sha256(file.content).hexdigest()}",
            )
            response = UploadResponse.model_validate(payload)
        except (httpx.HTTPError, ServiceResponseError) as exc:
            return UploadFailure(message=str(exc) or exc.__class__.__name__)
        except ValueError as exc:
            # undecodable body or a receipt missing url/hash
            return UploadFailure(message=f"Malformed upload response: {exc}", retryable=False)
        return UploadReceipt(url=response.url, hash=response.hash)


class HttpNotificationService:
    def __init__(self, connector: OnboardingServicesConnector) -> None:
        self.connector = connector

    async def send_verification_code(self, email: str) -> None:
        await self.connector.post(
            "/notifications/verification-code",
            VerificationCodeRequest(email=email).model_dump(),
            correlation_id=str(uuid4()),
            operation="send_verification_code",
        )


class HttpIdentityProvider:
    """Starts identity checks and fans webhook results out to registered callbacks.

    A callback registered for a session replaces any earlier one for that
    session, so restoring a session does not add another listener.
    """

    def __init__(self, connector: OnboardingServicesConnector) -> None:
        self.connector = connector
        self._callbacks: list[VerificationCallback] = []
        self._session_callbacks: dict[str, VerificationCallback] = {}

    async def begin_verification(self, session_id: str) -> str:
        payload = await self.connector.post(
            "/identity/sessions",
            IdentitySessionRequest(session_id=session_id).model_dump(),
            correlation_id=session_id,
            operation="begin_verification",
        )
        return IdentitySessionResponse.model_validate(payload).handoff_reference

    def on_verification_complete(self, callback: VerificationCallback, *, session_id: str | None = None) -> None:
        if session_id is None:
            self._callbacks.append(callback)
        else:
            self._session_callbacks[session_id] = callback

    @property
    def listener_count(self) -> int:
        return len(self._callbacks) + len(self._session_callbacks)

    async def handle_result(self, result: IdentityResultWebhook) -> None:
        callbacks = list(self._callbacks)
        if result.session_id in self._session_callbacks:
            callbacks.append(self._session_callbacks[result.session_id])
        for callback in callbacks:
            outcome = callback(result.session_id, result.status)
            if inspect.isawaitable(outcome):
                await outcome


class HttpWalletService:
    def __init__(self, connector: OnboardingServicesConnector) -> None:
        self.connector = connector

    async def provision_wallet(self, session_id: str) -> str:
        payload = await self.connector.post(
            "/wallets",
            WalletRequest(session_id=session_id).model_dump(),
            correlation_id=session_id,
            operation="provision_wallet",
            idempotency_key=f"wallet-{session_id}",
        )
        return WalletResponse.model_validate(payload).wallet_id
