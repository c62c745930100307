from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class ServiceCredentials(BaseModel):
    """Endpoint and key of the onboarding collaborator services."""

    base_url: str = Field(min_length=1)
    api_key: str | None = None


class UploadRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    file_name: str = Field(min_length=1)
    mime_type: str
    size: int = Field(ge=0)
    content_b64: str


class UploadResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    url: str
    hash: str


class VerificationCodeRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    email: str = Field(min_length=3)


class IdentitySessionRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    session_id: str = Field(min_length=1)


class IdentitySessionResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    handoff_reference: str = Field(min_length=1)


class IdentityResultWebhook(BaseModel):
    model_config = ConfigDict(extra="ignore")

    session_id: str = Field(min_length=1)
    status: str = Field(min_length=1)
    handoff_reference: str | None = None


class WalletRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    session_id: str = Field(min_length=1)


class WalletResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    wallet_id: str = Field(min_length=1)
