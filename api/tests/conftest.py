import pytest
from httpx import ASGITransport, AsyncClient

from qrshare.dependencies import get_registry
from qrshare.main import app
from qrshare.services.session_registry import SessionRegistry

TEST_SESSION_ID = "abc1234567"


@pytest.fixture(scope="function")
def registry():
    """Fresh registry per test; evicts everything left over afterwards."""
    registry = SessionRegistry()
    yield registry
    registry.close()


@pytest.fixture(scope="function")
def fixed_id_registry():
    """Registry whose generator always returns TEST_SESSION_ID."""
    registry = SessionRegistry(id_generator=lambda: TEST_SESSION_ID)
    yield registry
    registry.close()


@pytest.fixture(scope="function")
async def client(registry):
    app.dependency_overrides[get_registry] = lambda: registry
    # Disable rate limiting in tests
    app.state.limiter.enabled = False
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
    app.state.limiter.enabled = True
    app.dependency_overrides.clear()
