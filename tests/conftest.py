import os
import tempfile

# Settings are read at import time; point everything at throwaway storage first
os.environ["GATEWAY_BACKEND"] = "local"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("LOCAL_MEDIA_PATH", tempfile.mkdtemp(prefix="connecthub-media-"))
os.environ.pop("OPENAI_API_KEY", None)

import pytest
from fastapi.testclient import TestClient

from app.core.session_cache import session_cache
from app.database import make_engine
from app.gateway.factory import get_gateway
from app.gateway.sql_gateway import SqlGateway
from app.main import app
from app.services import embedding_service
from tests.helpers import FlakyGateway


@pytest.fixture
def gateway(tmp_path):
    gw = SqlGateway(
        make_engine("sqlite://"),
        media_path=str(tmp_path / "media"),
        base_url="http://testserver",
    )
    gw.create_schema()
    yield gw
    gw.engine.dispose()


@pytest.fixture
def flaky(gateway):
    return FlakyGateway(gateway)


@pytest.fixture(autouse=True)
def clean_process_state():
    session_cache.clear()
    embedding_service.set_embedder(None)
    yield
    session_cache.clear()
    embedding_service.set_embedder(None)


@pytest.fixture
def client(gateway):
    async def override_gateway():
        yield gateway

    app.dependency_overrides[get_gateway] = override_gateway
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
