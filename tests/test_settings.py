import pytest
from fastapi.testclient import TestClient

from main import create_app
from settings import ResponseMode, Settings, normalize_database_url


def test_defaults():
    s = Settings(environ={"GEMINI_API_KEY": "k"})
    assert s.GEMINI_MODEL == "gemini-2.0-flash"
    assert s.response_mode is ResponseMode.SCHEMA_CONSTRAINED
    assert s.DATABASE_URL == "sqlite:///./users.db"
    assert s.CREATE_TABLES is True
    assert s.PORT == 8000


def test_missing_api_key_fails_fast():
    with pytest.raises(RuntimeError, match="GEMINI_API_KEY"):
        Settings(environ={}).require_keys()


def test_unknown_response_mode_fails_fast():
    with pytest.raises(RuntimeError, match="RESPONSE_MODE"):
        Settings(environ={"GEMINI_API_KEY": "k", "RESPONSE_MODE": "freeform"}).require_keys()


@pytest.mark.parametrize("url, expected", [
    ("postgres://u:p@db.example.com:5432/app", "postgresql+psycopg://u:p@db.example.com:5432/app"),
    ("postgresql://u:p@db/app?sslmode=require", "postgresql+psycopg://u:p@db/app?sslmode=require"),
    ("sqlite:///./users.db", "sqlite:///./users.db"),
])
def test_database_url_driver(url, expected):
    assert normalize_database_url(url) == expected


def test_startup_aborts_without_api_key():
    app = create_app(settings=Settings(environ={"DATABASE_URL": "sqlite://"}))
    with pytest.raises(Exception):
        with TestClient(app):
            pass


def test_startup_builds_store_and_creates_table(tmp_path):
    db_url = f"sqlite:///{tmp_path / 'users.db'}"
    settings = Settings(environ={"GEMINI_API_KEY": "k", "DATABASE_URL": db_url})
    app = create_app(settings=settings, vision_client=object())
    with TestClient(app) as client:
        resp = client.post("/register", json={"name": "Ana", "email": "a@x.com", "password": "pw1"})
        assert resp.status_code == 200
