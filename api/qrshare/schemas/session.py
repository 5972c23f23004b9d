from datetime import datetime
from typing import Optional

from pydantic import ConfigDict, Field

from qrshare.schemas import AppBaseModel


class SessionCreateRequest(AppBaseModel):
    """POST /api/session request body (optional).

    base_url overrides the origin the session URL is built on, e.g. when the
    desktop is reached through a tunnel the phone cannot resolve.
    """

    base_url: Optional[str] = Field(None, max_length=2083)


class SessionCreateResponse(AppBaseModel):
    """POST /api/session response.

    qr_code_data_url is a PNG data URL encoding session_url.
    """

    session_id: str
    session_url: str
    qr_code_data_url: str


class SessionStatusResponse(AppBaseModel):
    """GET /api/session/{id} response."""

    exists: bool
    created_at: Optional[datetime] = None
    has_text: bool = False


class PublishRequest(AppBaseModel):
    """POST /api/session/{id} request body (sent from the phone).

    Whitespace is kept as sent so blank text can be told apart from an
    empty string; the registry strips it when storing.
    """

    model_config = ConfigDict(str_strip_whitespace=False)

    text: Optional[str] = None


class PublishResponse(AppBaseModel):
    success: bool
    message: str


class ServiceInfoResponse(AppBaseModel):
    """GET /api/session response."""

    service: str
    version: str
    endpoints: dict[str, str]
