from qrshare.schemas import AppBaseModel


class HealthResponse(AppBaseModel):
    """GET /health response."""

    status: str
    sessions: int
    subscribers: int
