from __future__ import annotations

from typing import Awaitable, Callable, Protocol

from .models import SelectedFile, UploadFailure, UploadReceipt

VerificationCallback = Callable[[str, str], Awaitable[None] | None]


class ContentUploader(Protocol):
    """Transfers file bytes to content-addressed storage."""

    async def upload(self, file: SelectedFile) -> UploadReceipt | UploadFailure:
        ...


class IdentityVerificationProvider(Protocol):
    """Hands the user over to an external identity check (QR / mobile)."""

    async def begin_verification(self, session_id: str) -> str:
        ...

    def on_verification_complete(self, callback: VerificationCallback, *, session_id: str | None = None) -> None:
        """Register a result listener, scoped to one session when ``session_id`` is given."""


class NotificationService(Protocol):
    async def send_verification_code(self, email: str) -> None:
        ...


class WalletProvisioningService(Protocol):
    async def provision_wallet(self, session_id: str) -> str:
        ...
