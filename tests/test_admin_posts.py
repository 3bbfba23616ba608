from datetime import datetime, timedelta, timezone
from urllib.parse import unquote

import pytest

from app.api.v1.admin import posts as admin_posts
from app.core import preview_token
from app.core.config import settings
from app.core.exceptions import SlugGenerationExhausted
from app.schemas.post import PreviewTokenResponse

API = "/api/posts"


@pytest.fixture
def create(client, admin_headers):
    def _create(**payload):
        payload.setdefault("title", "Hello World")
        r = client.post(f"{API}/", json=payload, headers=admin_headers)
        assert r.status_code == 201, r.text
        return r.json()

    return _create


def test_create_generates_slug_from_title(create):
    post = create(title="你好世界")
    assert post["slug"] == "ni-hao-shi-jie"
    assert post["status"] == "draft"
    assert post["published_at"] is None
    assert post["author"]["username"] == "admin"


def test_create_same_title_gets_suffix(create):
    assert create(title="Hello World")["slug"] == "hello-world"
    assert create(title="Hello World")["slug"] == "hello-world-2"
    assert create(title="hello world!")["slug"] == "hello-world-3"


def test_create_with_explicit_slug_is_normalised(create):
    assert create(title="Anything", slug="My Custom Slug")["slug"] == "my-custom-slug"


def test_create_explicit_slug_conflict(client, admin_headers, make_post):
    make_post(title="Taken", slug="taken")
    r = client.post(f"{API}/", json={"title": "Other", "slug": "Taken"}, headers=admin_headers)
    assert r.status_code == 409
    assert r.json()["detail"]["error"] == "SLUG_CONFLICT"


def test_create_retries_when_insert_collides(client, admin_headers, make_post, monkeypatch):
    make_post(title="Raced", slug="raced")
    candidates = iter(["raced", "raced-2"])
    monkeypatch.setattr(admin_posts, "make_unique_slug", lambda db, text: next(candidates))

    r = client.post(f"{API}/", json={"title": "Raced"}, headers=admin_headers)
    assert r.status_code == 201
    assert r.json()["slug"] == "raced-2"


def test_create_slug_exhaustion(client, admin_headers, monkeypatch):
    def _exhausted(db, text):
        raise SlugGenerationExhausted("hello-world")

    monkeypatch.setattr(admin_posts, "make_unique_slug", _exhausted)
    r = client.post(f"{API}/", json={"title": "Hello World"}, headers=admin_headers)
    assert r.status_code == 409
    assert r.json()["detail"]["error"] == "SLUG_EXHAUSTED"


def test_publish_requires_content(client, admin_headers):
    r = client.post(f"{API}/", json={"title": "Empty", "status": "published"}, headers=admin_headers)
    assert r.status_code == 422


def test_create_published_sets_published_at(create):
    post = create(title="Live", status="published", content_md="# Hi")
    assert post["status"] == "published"
    assert post["published_at"] is not None


def test_create_with_tags(client, admin_headers, create):
    post = create(title="Tagged", tags=["Python", "Web Dev", "Python"])
    assert sorted(t["slug"] for t in post["tags"]) == ["python", "web-dev"]

    tag_id = post["tags"][0]["id"]
    again = create(title="Tagged again", tag_ids=[tag_id, tag_id, -1])
    assert [t["id"] for t in again["tags"]] == [tag_id]


def test_create_with_unknown_tag_ids(client, admin_headers):
    r = client.post(f"{API}/", json={"title": "T", "tag_ids": [9999]}, headers=admin_headers)
    assert r.status_code == 400
    detail = r.json()["detail"]
    assert detail["error"] == "TAG_NOT_FOUND"
    assert detail["missing_tag_ids"] == [9999]


def test_get_post(client, admin_headers, create):
    post = create(title="Readable", content_md="body")
    r = client.get(f"{API}/{post['id']}", headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["content_md"] == "body"


def test_get_invalid_and_missing_ids(client, admin_headers):
    r = client.get(f"{API}/0", headers=admin_headers)
    assert r.status_code == 400
    assert r.json()["detail"]["error"] == "INVALID_IDENTIFIER"

    r = client.get(f"{API}/9999", headers=admin_headers)
    assert r.status_code == 404
    assert r.json()["detail"]["error"] == "POST_NOT_FOUND"


def test_list_and_filter(client, admin_headers, create):
    create(title="First draft")
    create(title="Published one", status="published", content_md="x")

    r = client.get(f"{API}/", headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["total"] == 2

    r = client.get(f"{API}/", params={"status": "published"}, headers=admin_headers)
    assert [p["title"] for p in r.json()["data"]] == ["Published one"]

    r = client.get(f"{API}/", params={"search": "first"}, headers=admin_headers)
    assert r.json()["total"] == 1

    r = client.get(f"{API}/", params={"limit": 1, "page": 2}, headers=admin_headers)
    body = r.json()
    assert body["total_pages"] == 2
    assert len(body["data"]) == 1


def test_stats(client, admin_headers, create):
    create(title="A")
    create(title="B", status="published", content_md="x")
    create(title="C", status="published", content_md="x")

    r = client.get(f"{API}/stats", headers=admin_headers)
    assert r.json() == {"total": 3, "published": 2, "draft": 1, "archived": 0}


def test_update_title_keeps_slug(client, admin_headers, create):
    post = create(title="Original")
    r = client.put(f"{API}/{post['id']}", json={"title": "Renamed"}, headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["title"] == "Renamed"
    assert r.json()["slug"] == "original"


def test_update_slug_normalised_and_checked(client, admin_headers, create, make_post):
    make_post(title="Taken", slug="taken")
    post = create(title="Mine")

    r = client.patch(f"{API}/{post['id']}", json={"slug": "Café Special"}, headers=admin_headers)
    assert r.json()["slug"] == "cafe-special"

    r = client.patch(f"{API}/{post['id']}", json={"slug": "taken"}, headers=admin_headers)
    assert r.status_code == 409
    assert r.json()["detail"]["error"] == "SLUG_CONFLICT"


def test_update_published_at_rules(client, admin_headers, create):
    post = create(title="Lifecycle", content_md="x")
    url = f"{API}/{post['id']}"

    published = client.put(url, json={"status": "published"}, headers=admin_headers).json()
    assert published["published_at"] is not None

    archived = client.put(url, json={"status": "archived"}, headers=admin_headers).json()
    assert archived["published_at"] == published["published_at"]

    draft = client.put(url, json={"status": "draft"}, headers=admin_headers).json()
    assert draft["published_at"] is None

    explicit = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    republished = client.put(
        url, json={"status": "published", "published_at": explicit.isoformat()}, headers=admin_headers
    ).json()
    assert republished["published_at"].startswith("2024-01-02T03:04:05")


def test_update_publish_without_content(client, admin_headers, create):
    post = create(title="No body")
    r = client.put(f"{API}/{post['id']}", json={"status": "published"}, headers=admin_headers)
    assert r.status_code == 400
    assert r.json()["detail"]["error"] == "VALIDATION_ERROR"


def test_delete(client, admin_headers, create):
    post = create(title="Doomed")
    r = client.delete(f"{API}/{post['id']}", headers=admin_headers)
    assert r.json() == {"success": True, "id": post["id"]}
    assert client.get(f"{API}/{post['id']}", headers=admin_headers).status_code == 404


def test_bulk_publish(client, admin_headers, create):
    ready = create(title="Ready", content_md="x")
    empty = create(title="Empty")

    r = client.post(
        f"{API}/bulk",
        json={"action": "publish", "ids": [ready["id"], empty["id"], 9999, -1, ready["id"]]},
        headers=admin_headers,
    )
    body = r.json()
    assert body["success"] is True
    assert body["success_count"] == 1
    assert sorted(e["id"] for e in body["errors"]) == sorted([empty["id"], 9999])

    assert client.get(f"{API}/{ready['id']}", headers=admin_headers).json()["status"] == "published"


def test_bulk_delete_and_archive(client, admin_headers, create):
    a = create(title="A")
    b = create(title="B")

    r = client.post(f"{API}/bulk", json={"action": "archive", "ids": [a["id"]]}, headers=admin_headers)
    assert r.json()["success_count"] == 1

    r = client.post(f"{API}/bulk", json={"action": "delete", "ids": [a["id"], b["id"]]}, headers=admin_headers)
    assert r.json()["success_count"] == 2
    assert client.get(f"{API}/", headers=admin_headers).json()["total"] == 0


def test_bulk_requires_ids(client, admin_headers):
    r = client.post(f"{API}/bulk", json={"action": "draft", "ids": [0, -2]}, headers=admin_headers)
    assert r.status_code == 400


def test_preview_token(client, admin_headers, create):
    post = create(title="Secret draft", content_md="x")

    r = client.post(f"{API}/{post['id']}/preview-token", headers=admin_headers)
    assert r.status_code == 200
    assert r.headers["cache-control"] == "no-store"

    body = r.json()
    assert set(body) == {"token", "previewUrl", "expiresAt", "expiresInMs", "ttlMs"}
    assert body["ttlMs"] == preview_token.PREVIEW_TOKEN_TTL_MS
    assert 0 < body["expiresInMs"] <= body["ttlMs"]
    assert body["expiresAt"].endswith("Z")
    assert body["previewUrl"].startswith("http://localhost:8000/preview/")

    token = unquote(body["previewUrl"].rsplit("/", 1)[1])
    assert token == body["token"]
    assert preview_token.verify_token(token).post_id == post["id"]


def test_preview_token_response_accepts_both_key_styles():
    fields = {"token": "a.b", "expires_at": "2024-01-01T00:00:00.000Z", "expires_in_ms": 5, "ttl_ms": 5}
    by_name = PreviewTokenResponse(preview_url="http://x/preview/a.b", **fields)
    by_alias = PreviewTokenResponse.model_validate(by_name.model_dump(by_alias=True))

    assert by_alias == by_name
    assert set(by_name.model_dump(by_alias=True)) == {"token", "previewUrl", "expiresAt", "expiresInMs", "ttlMs"}


def test_preview_token_rejects_archived(client, admin_headers, create):
    post = create(title="Old", status="published", content_md="x")
    client.put(f"{API}/{post['id']}", json={"status": "archived"}, headers=admin_headers)

    r = client.post(f"{API}/{post['id']}/preview-token", headers=admin_headers)
    assert r.status_code == 400
    assert r.json()["detail"]["error"] == "POST_ARCHIVED"


def test_preview_token_missing_post(client, admin_headers):
    r = client.post(f"{API}/9999/preview-token", headers=admin_headers)
    assert r.status_code == 404


def test_preview_token_without_secret(client, admin_headers, create, monkeypatch):
    post = create(title="Unsigned")
    monkeypatch.setattr(settings, "PREVIEW_TOKEN_SECRET", None)
    monkeypatch.setattr(settings, "SECRET_KEY", "")
    preview_token.reset_secret_cache()

    r = client.post(f"{API}/{post['id']}/preview-token", headers=admin_headers)
    assert r.status_code == 500
    assert r.json()["detail"]["error"] == "PREVIEW_TOKEN_FAILED"


def test_revisions_and_restore(client, admin_headers, create):
    post = create(title="Version one", content_md="first")
    url = f"{API}/{post['id']}"

    client.put(url, json={"title": "Version two"}, headers=admin_headers)

    listing = client.get(f"{url}/revisions", headers=admin_headers).json()
    assert listing["count"] == 2
    newest, oldest = listing["revisions"]
    assert newest["revision_number"] == 2
    assert newest["diff_summary"] == "Changed: title"
    assert oldest["diff_summary"] == "Created"

    detail = client.get(f"{url}/revisions/{oldest['id']}", headers=admin_headers).json()
    assert detail["title"] == "Version one"
    assert detail["content_md"] == "first"

    r = client.post(f"{url}/revisions/{oldest['id']}/restore", headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["title"] == "Version one"

    listing = client.get(f"{url}/revisions", headers=admin_headers).json()
    assert listing["count"] == 3
    assert listing["revisions"][0]["diff_summary"] == "Restored revision 1"


def test_missing_revision(client, admin_headers, create):
    post = create(title="Lonely")
    r = client.get(f"{API}/{post['id']}/revisions/9999", headers=admin_headers)
    assert r.status_code == 404
    assert r.json()["detail"]["error"] == "REVISION_NOT_FOUND"


def test_future_publication_is_scheduled(client, admin_headers, create):
    later = datetime.now(timezone.utc) + timedelta(days=3)
    post = create(title="Scheduled", status="published", content_md="x", published_at=later.isoformat())
    assert post["published_at"] is not None

    assert client.get(f"/posts/{post['slug']}").status_code == 404
