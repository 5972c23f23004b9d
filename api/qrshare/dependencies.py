from starlette.requests import Request

from qrshare.services.session_registry import SessionRegistry


def get_registry(request: Request) -> SessionRegistry:
    """The process-wide registry, created in the app lifespan."""
    return request.app.state.registry
