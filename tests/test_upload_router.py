from __future__ import annotations

import pytest

from hetu.routers import uploads as uploads_router
from hetu.uploads import UploadResult
from tests.factories import auth_headers, fetch_csrf, make_client, make_token

JPEG = b"\xff\xd8\xff\xe0" + b"\x00" * 64
PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


@pytest.fixture()
def client(monkeypatch):
    return make_client(monkeypatch)


@pytest.fixture()
def uploads_seen(monkeypatch):
    seen = []

    def fake_upload(buffer, identifier, config, client=None):
        seen.append((identifier, config.kind, len(buffer)))
        name = f"{identifier}.{config.extension}"
        return UploadResult(True, object_name=name, url=f"https://storage.example.com/{config.kind}/{name}")

    monkeypatch.setattr(uploads_router, "upload_file", fake_upload)
    return seen


def _headers(client):
    return auth_headers(make_token(), csrf=fetch_csrf(client))


def test_upload_cover(client, uploads_seen):
    response = client.post(
        "/api/admin/upload-cover",
        headers=_headers(client),
        data={"songId": "12"},
        files={"file": ("cover.jpg", JPEG, "image/jpeg")},
    )
    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "message": "Cover uploaded",
        "fileName": "12.jpg",
        "url": "https://storage.example.com/cover/12.jpg",
    }
    assert uploads_seen == [("12", "cover", len(JPEG))]


def test_upload_score(client, uploads_seen):
    response = client.post(
        "/api/admin/upload-score",
        headers=_headers(client),
        data={"songId": "12"},
        files={"file": ("score.png", PNG, "image/png")},
    )
    assert response.status_code == 200
    assert response.json()["fileName"] == "12.png"


def test_cover_rejects_png_type(client, uploads_seen):
    response = client.post(
        "/api/admin/upload-cover",
        headers=_headers(client),
        data={"songId": "12"},
        files={"file": ("cover.png", PNG, "image/png")},
    )
    assert response.status_code == 400
    assert uploads_seen == []


def test_cover_rejects_disguised_content(client, uploads_seen):
    response = client.post(
        "/api/admin/upload-cover",
        headers=_headers(client),
        data={"songId": "12"},
        files={"file": ("cover.jpg", PNG, "image/jpeg")},
    )
    assert response.status_code == 400
    assert uploads_seen == []


def test_upload_requires_csrf(client, uploads_seen):
    fetch_csrf(client)
    response = client.post(
        "/api/admin/upload-cover",
        headers=auth_headers(make_token()),
        data={"songId": "12"},
        files={"file": ("cover.jpg", JPEG, "image/jpeg")},
    )
    assert response.status_code == 403
    assert uploads_seen == []


def test_upload_requires_session(client, uploads_seen):
    response = client.post(
        "/api/admin/upload-cover",
        headers=auth_headers(csrf=fetch_csrf(client)),
        data={"songId": "12"},
        files={"file": ("cover.jpg", JPEG, "image/jpeg")},
    )
    assert response.status_code == 401


def test_missing_song_id_is_400(client, uploads_seen):
    response = client.post(
        "/api/admin/upload-cover",
        headers=_headers(client),
        files={"file": ("cover.jpg", JPEG, "image/jpeg")},
    )
    assert response.status_code == 400


def test_storage_failure_is_500(client, monkeypatch):
    monkeypatch.setattr(
        uploads_router,
        "upload_file",
        lambda buffer, identifier, config, client=None: UploadResult(False, error="denied"),
    )
    response = client.post(
        "/api/admin/upload-cover",
        headers=_headers(client),
        data={"songId": "12"},
        files={"file": ("cover.jpg", JPEG, "image/jpeg")},
    )
    assert response.status_code == 500
    assert response.json()["message"] == "denied"


def test_check_file(client, monkeypatch):
    seen = []

    def fake_check(identifier, config, client=None):
        seen.append((identifier, config.kind))
        return True, f"https://storage/{config.kind}/{identifier}"

    monkeypatch.setattr(uploads_router, "check_file_exists", fake_check)
    response = client.get("/api/admin/check-file", params={"songId": "3", "type": "score"}, headers=_headers(client))
    assert response.status_code == 200
    assert response.json() == {"exists": True, "songId": "3", "fileType": "score", "url": "https://storage/score/3"}
    assert seen == [("3", "score")]


def test_check_file_rejects_unknown_type(client):
    response = client.get("/api/admin/check-file", params={"songId": "3", "type": "video"}, headers=_headers(client))
    assert response.status_code == 400
