import pytest
from fastapi.testclient import TestClient

from src.api.main import app
from src.streaming.providers import EchoTokenGenerator


@pytest.fixture
def client():
    """Test client with the application lifespan running (in-memory store, domain research)."""
    with TestClient(app) as client:
        app.state.token_generator = EchoTokenGenerator(delay=0)
        yield client
