from fastapi import APIRouter, Depends

from qrshare.dependencies import get_registry
from qrshare.schemas.health import HealthResponse
from qrshare.services.session_registry import SessionRegistry

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(registry: SessionRegistry = Depends(get_registry)):
    return HealthResponse(
        status="healthy",
        sessions=registry.session_count,
        subscribers=registry.subscriber_count,
    )
