from __future__ import annotations

import pytest

from tests.factories import auth_headers, create_song, fetch_csrf, make_client, make_token


@pytest.fixture()
def client(monkeypatch):
    return make_client(monkeypatch)


@pytest.fixture()
def editor(client):
    return auth_headers(make_token(sub="editor-1"), csrf=fetch_csrf(client))


def test_list_requires_session(client):
    assert client.get("/api/admin/songs").status_code == 401


def test_list_and_get(client, editor):
    song = create_song(title="Listed", date="2020-01-01")
    listing = client.get("/api/admin/songs", headers=editor)
    assert listing.status_code == 200
    assert [item["title"] for item in listing.json()] == ["Listed"]
    assert listing.json()[0]["year"] == 2020

    detail = client.get(f"/api/admin/songs/{song.id}", headers=editor)
    assert detail.status_code == 200
    assert detail.json()["id"] == song.id
    assert client.get("/api/admin/songs/999", headers=editor).status_code == 404


def test_create_song(client, editor):
    response = client.post(
        "/api/admin/songs",
        headers=editor,
        json={"title": "Fresh", "lyricist": ["Someone"], "track": 1, "nelink": "https://music.example.com/1"},
    )
    assert response.status_code == 201
    body = response.json()
    assert body["title"] == "Fresh"
    assert body["lyricist"] == ["Someone"]
    assert body["updated_at"]


def test_create_requires_csrf(client):
    fetch_csrf(client)
    response = client.post("/api/admin/songs", headers=auth_headers(make_token()), json={"title": "x"})
    assert response.status_code == 403


def test_create_without_session_is_unauthorized_even_with_csrf(client):
    csrf = fetch_csrf(client)
    response = client.post("/api/admin/songs", headers=auth_headers(csrf=csrf), json={"title": "x"})
    assert response.status_code == 401


@pytest.mark.parametrize(
    "payload",
    [
        {"title": ""},
        {"title": "x" * 101},
        {"title": "ok", "track": 0},
        {"title": "ok", "length": -3},
        {"title": "ok", "lyricist": ["y" * 31]},
        {"title": "ok", "qmlink": "not a url"},
        {"title": "ok", "kugolink": "https://example.com/" + "a" * 200},
        {"album": "missing title"},
    ],
)
def test_create_validation_errors_are_400(client, editor, payload):
    response = client.post("/api/admin/songs", headers=editor, json=payload)
    assert response.status_code == 400
    assert response.json()["code"] == "validation_error"


def test_update_then_stale_update_conflicts(client, editor):
    created = client.post("/api/admin/songs", headers=editor, json={"title": "Original"}).json()

    first = client.put(
        f"/api/admin/songs/{created['id']}",
        headers=editor,
        json={"title": "Edited", "updated_at": created["updated_at"]},
    )
    assert first.status_code == 200
    assert first.json()["title"] == "Edited"
    assert first.json()["updated_at"] != created["updated_at"]

    stale = client.put(
        f"/api/admin/songs/{created['id']}",
        headers=editor,
        json={"title": "Lost", "updated_at": created["updated_at"]},
    )
    assert stale.status_code == 409
    assert "refresh" in stale.json()["message"]

    fresh = client.put(
        f"/api/admin/songs/{created['id']}",
        headers=editor,
        json={"title": "Again", "updated_at": first.json()["updated_at"]},
    )
    assert fresh.status_code == 200


def test_update_requires_timestamp(client, editor):
    song = create_song(title="No stamp")
    response = client.put(f"/api/admin/songs/{song.id}", headers=editor, json={"title": "x"})
    assert response.status_code == 400


def test_update_missing_song(client, editor):
    response = client.put(
        "/api/admin/songs/4242",
        headers=editor,
        json={"title": "x", "updated_at": "2024-01-01T00:00:00Z"},
    )
    assert response.status_code == 404
