import pytest

from conftest import AUTH
from lms.application.use_cases.uploads import object_key
from lms.config import settings


def test_presign_image(client, admin_override, storage):
    r = client.post(
        "/api/s3/upload",
        json={"fileName": "cover photo.png", "contentType": "image/png", "size": 1024, "isImage": True},
        headers=AUTH,
    )
    assert r.status_code == 200
    data = r.json()
    assert data["key"].endswith("-cover-photo.png")
    assert data["presignedUrl"] == f"https://storage.test/{data['key']}?X-Amz-Signature=test"
    assert storage.presigned == [
        {"key": data["key"], "content_type": "image/png", "expires_in": settings.UPLOAD_URL_TTL}
    ]


def test_presign_video(client, admin_override, storage):
    r = client.post(
        "/api/s3/upload",
        json={"fileName": "lesson.mp4", "contentType": "video/mp4", "size": 50 * 1024 * 1024, "isImage": False},
        headers=AUTH,
    )
    assert r.status_code == 200


@pytest.mark.parametrize(
    "body",
    [
        {"fileName": "huge.png", "contentType": "image/png", "size": 6 * 1024 * 1024, "isImage": True},
        {"fileName": "clip.mp4", "contentType": "video/mp4", "size": 1024, "isImage": True},
        {"fileName": "photo.png", "contentType": "image/png", "size": 1024, "isImage": False},
    ],
)
def test_presign_rejects(client, admin_override, storage, body):
    r = client.post("/api/s3/upload", json=body, headers=AUTH)
    assert r.status_code == 400
    assert r.json()["status"] == "error"
    assert storage.presigned == []


def test_presign_size_message(client, admin_override):
    r = client.post(
        "/api/s3/upload",
        json={"fileName": "huge.png", "contentType": "image/png", "size": settings.MAX_IMAGE_BYTES + 1},
        headers=AUTH,
    )
    assert r.json() == {"status": "error", "message": "File size exceeds the limit"}


def test_delete_upload(client, admin_override, storage):
    r = client.request("DELETE", "/api/s3/delete", json={"key": "abc-cover.png"}, headers=AUTH)
    assert r.status_code == 200
    assert r.json()["message"] == "File deleted successfully"
    assert storage.deleted == ["abc-cover.png"]


def test_uploads_require_admin(client):
    r = client.post("/api/s3/upload", json={"fileName": "a.png", "contentType": "image/png", "size": 1})
    assert r.status_code in (401, 403)


def test_object_key_is_unique_and_safe():
    first = object_key("../etc/passwd")
    second = object_key("../etc/passwd")
    assert first != second
    assert "/" not in first
    assert first.endswith("-etc-passwd")
