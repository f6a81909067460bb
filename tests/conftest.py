"""
Shared pytest fixtures: an app wired to a fake vision client and an in-memory user store.
"""
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool

from database import UserStore, make_engine
from main import create_app
from settings import ResponseMode, Settings
from vision import ModelReply


class FakeVisionClient:
    """Stands in for GeminiVisionClient; replays a canned reply or raises."""

    def __init__(self, text=None, raw=None, error=None, response_mode=ResponseMode.SCHEMA_CONSTRAINED):
        self.text = text
        self.raw = raw
        self.error = error
        self.response_mode = response_mode
        self.calls = []

    async def generate(self, prompt, image):
        self.calls.append((prompt, image))
        if self.error is not None:
            raise self.error
        return ModelReply(text=self.text, raw=self.raw)


@pytest.fixture
def settings():
    return Settings(environ={"GEMINI_API_KEY": "test-key", "DATABASE_URL": "sqlite://"})


@pytest.fixture
def user_store():
    engine = make_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    store = UserStore(engine)
    store.create_schema()
    yield store
    store.dispose()


@pytest.fixture
def vision_client():
    return FakeVisionClient(text='{"nama_makanan": "Nasi Goreng", "jumlah_kalori": 450, '
                                 '"bahan_utama": ["nasi", "telur", "kecap"]}')


@pytest.fixture
def client(settings, vision_client, user_store):
    app = create_app(settings=settings, vision_client=vision_client, user_store=user_store)
    return TestClient(app)
