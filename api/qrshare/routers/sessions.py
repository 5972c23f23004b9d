import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse, Response
from starlette.concurrency import run_in_threadpool
from starlette.requests import Request

from qrshare.config import settings
from qrshare.dependencies import get_registry
from qrshare.rate_limit import limiter
from qrshare.schemas.session import (
    PublishRequest,
    PublishResponse,
    ServiceInfoResponse,
    SessionCreateRequest,
    SessionCreateResponse,
    SessionStatusResponse,
)
from qrshare.services.qr_code import QRCodeError, build_session_url, generate_qr_data_url
from qrshare.services.session_id import is_valid_session_id
from qrshare.services.session_registry import (
    BlankTextError,
    Session,
    SessionCreateError,
    SessionNotFoundError,
    SessionRegistry,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/session", tags=["session"])

SERVICE_NAME = "QR Text Share"
SERVICE_VERSION = "1.0.0"


@router.get("", response_model=ServiceInfoResponse)
async def service_info():
    return ServiceInfoResponse(
        service=SERVICE_NAME,
        version=SERVICE_VERSION,
        endpoints={
            "createSession": "POST /api/session",
            "getSession": "GET /api/session/{id}",
            "updateSession": "POST /api/session/{id}",
            "deleteSession": "DELETE /api/session/{id}",
            "streamSession": "GET /api/session/{id}/stream",
        },
    )


@router.post("", response_model=SessionCreateResponse)
@limiter.limit("10/minute")
async def create_session_endpoint(
    request: Request,
    data: Optional[SessionCreateRequest] = None,
    registry: SessionRegistry = Depends(get_registry),
):
    """Create a session and the QR code the phone scans to join it.

    QR rendering is CPU-bound and runs in the thread pool.
    """
    base_url = _resolve_base_url(request, data)
    try:
        session_id = registry.create_session()
    except SessionCreateError:
        logger.exception("Session id generation failed")
        raise HTTPException(status_code=500, detail="Failed to create session")

    session_url = build_session_url(base_url, session_id)
    try:
        qr_code_data_url = await run_in_threadpool(
            generate_qr_data_url, session_url, settings.qr_code_size
        )
    except QRCodeError:
        registry.delete_session(session_id)
        raise HTTPException(status_code=500, detail="Failed to create session")

    return SessionCreateResponse(
        session_id=session_id,
        session_url=session_url,
        qr_code_data_url=qr_code_data_url,
    )


@router.get(
    "/{session_id}",
    response_model=SessionStatusResponse,
    responses={404: {"model": SessionStatusResponse}},
)
@limiter.limit("60/minute")
async def get_session_status(
    request: Request,
    session_id: str,
    registry: SessionRegistry = Depends(get_registry),
):
    session = _lookup(registry, session_id)
    if session is None:
        return JSONResponse(status_code=404, content={"exists": False})
    return SessionStatusResponse(
        exists=True,
        created_at=session.created_at,
        has_text=session.has_value,
    )


@router.post("/{session_id}", response_model=PublishResponse)
@limiter.limit("30/minute")
async def publish_text(
    request: Request,
    session_id: str,
    data: PublishRequest,
    registry: SessionRegistry = Depends(get_registry),
):
    """Share text from the phone with every desktop watching the session."""
    if not data.text:
        raise HTTPException(status_code=400, detail="Text is required")
    if not is_valid_session_id(session_id):
        raise HTTPException(status_code=404, detail="Session not found")

    try:
        delivered = registry.publish(session_id, data.text)
    except BlankTextError:
        raise HTTPException(status_code=400, detail="Text cannot be empty")
    except SessionNotFoundError:
        raise HTTPException(status_code=404, detail="Session not found")

    logger.debug("Published to session %s (%d subscribers)", session_id, delivered)
    return PublishResponse(success=True, message="Text shared successfully")


@router.delete("/{session_id}", status_code=204)
async def delete_session(
    session_id: str,
    registry: SessionRegistry = Depends(get_registry),
):
    if not is_valid_session_id(session_id) or not registry.delete_session(session_id):
        raise HTTPException(status_code=404, detail="Session not found")
    return Response(status_code=204)


def _lookup(registry: SessionRegistry, session_id: str) -> Session | None:
    if not is_valid_session_id(session_id):
        return None
    return registry.get_session(session_id)


def _resolve_base_url(request: Request, data: Optional[SessionCreateRequest]) -> str:
    if data is not None and data.base_url:
        return data.base_url
    if settings.public_base_url:
        return settings.public_base_url
    proto = request.headers.get("x-forwarded-proto", request.url.scheme)
    host = request.headers.get("host", request.url.netloc)
    return f"{proto}://{host}"
