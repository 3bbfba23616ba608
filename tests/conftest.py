import os
import sys
import tempfile

import pytest

# make sure the repository root is on sys.path for test collection
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

# Settings are read at import time, so the environment has to be in place first
_test_db_dir = tempfile.mkdtemp(prefix="blog-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_test_db_dir, 'test.db')}"
os.environ["SECRET_KEY"] = "test-session-secret"
os.environ["PREVIEW_TOKEN_SECRET"] = "test-preview-secret"
os.environ["SITE_BASE_URL"] = "http://localhost:8000"
os.environ["POST_ROUTE_PREFIX"] = "/posts"

from fastapi.testclient import TestClient
from sqlalchemy import delete

from app.core import preview_token
from app.core.config import settings
from app.db.base import Base
from app.db.init_db import seed_admin
from app.db.session import SessionLocal, engine
from app.main import app
from app.models import Post, PostRevision, Setting, Tag, User, post_tags


@pytest.fixture(scope="session", autouse=True)
def prepare_db():
    # Create tables for tests and drop them at the end
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        seed_admin(db)
    finally:
        db.close()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def clean_tables():
    yield
    db = SessionLocal()
    try:
        db.execute(delete(post_tags))
        db.execute(delete(PostRevision))
        db.execute(delete(Post))
        db.execute(delete(Tag))
        db.execute(delete(Setting))
        db.execute(delete(User).where(User.username != settings.ADMIN_USERNAME))
        db.commit()
    finally:
        db.close()


@pytest.fixture(autouse=True)
def fresh_preview_secret():
    preview_token.reset_secret_cache()
    yield
    preview_token.reset_secret_cache()


@pytest.fixture(scope="session")
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="session")
def admin_headers(client):
    r = client.post(
        f"{settings.API_V1_STR}/auth/login",
        data={"username": settings.ADMIN_USERNAME, "password": settings.ADMIN_PASSWORD},
    )
    assert r.status_code == 200, r.text
    return {"Authorization": f"Bearer {r.json()['access_token']}"}


@pytest.fixture
def make_post(db):
    """Insert a post directly, bypassing the admin API."""

    def _make_post(title="Hello World", slug="hello-world", status="published", **fields):
        fields.setdefault("content_html", "<p>Some body text.</p>")
        post = Post(title=title, slug=slug, status=status, **fields)
        db.add(post)
        db.commit()
        db.refresh(post)
        return post

    return _make_post
