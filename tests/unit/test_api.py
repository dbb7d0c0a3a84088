"""
API tests for the message endpoints.

The app runs with both backends in mock mode, so requests go through the
real dependency wiring, workflows and repository.
"""

import io
import zipfile

import pytest
from fastapi.testclient import TestClient

from saywith.api.dependencies import reset_mock_backends
from saywith.config.settings import Settings, get_settings
from saywith.main import create_app

PIN = "2468"


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        access_pin=PIN,
        snowflake_mock_mode=True,
        r2_mock_mode=True,
        storage_provider="managed",
        qr_codes_enabled=False,
        base_url="https://saywith.test/",
    )


@pytest.fixture
def client(settings):
    reset_mock_backends()
    app = create_app()
    app.dependency_overrides[get_settings] = lambda: settings
    yield TestClient(app)
    reset_mock_backends()


@pytest.fixture
def headers() -> dict:
    return {"X-Access-Pin": PIN}


def create(client, headers, **fields):
    data = {"name": "Promo", "template": "template1", **fields}
    return client.post("/api/v1/messages", data=data, headers=headers)


class TestAccess:
    """Tests for the PIN gate."""

    def test_unlock_with_correct_pin(self, client):
        response = client.post("/api/v1/access/unlock", json={"pin": PIN})

        assert response.status_code == 200
        assert response.json()["unlocked"] is True

    def test_unlock_with_wrong_pin(self, client):
        response = client.post("/api/v1/access/unlock", json={"pin": "0000"})

        assert response.status_code == 403
        assert response.json()["detail"] == "Incorrect PIN. Please try again."

    def test_message_routes_require_pin(self, client):
        assert client.get("/api/v1/messages/abc").status_code == 403
        assert client.get("/api/v1/templates").status_code == 403

    def test_wrong_pin_header_is_rejected(self, client):
        response = client.get("/api/v1/templates", headers={"X-Access-Pin": "1111"})

        assert response.status_code == 403
        assert response.json()["detail"] == "Incorrect PIN"


class TestTemplates:
    def test_lists_bundled_catalog(self, client, headers):
        response = client.get("/api/v1/templates", headers=headers)

        assert response.status_code == 200
        assert response.json()[0] == {"value": "template1", "label": "Classic"}


class TestCreateMessage:
    """Tests for POST /api/v1/messages."""

    def test_create_without_files(self, client, headers):
        response = create(client, headers)

        assert response.status_code == 201
        body = response.json()
        assert body["share_url"] == f"https://saywith.test/{body['id']}"
        assert body["message"] == {
            "id": body["id"],
            "name": "Promo",
            "template": "template1",
            "enabled": False,
            "mute": False,
            "media_url": "",
            "audio_url": "",
            "srt_content": "",
        }
        assert body["qr_codes"] == []

    def test_create_with_files(self, client, headers):
        response = client.post(
            "/api/v1/messages",
            data={"name": "Promo", "template": "template2", "enabled": "true"},
            files={
                "media_file": ("clip.final.mp4", b"video", "video/mp4"),
                "srt_file": ("captions.srt", b"1\nHi there", "application/x-subrip"),
            },
            headers=headers,
        )

        assert response.status_code == 201
        message = response.json()["message"]
        assert message["media_url"] == f"mock://storage/messages/{message['id']}/media.mp4"
        assert message["audio_url"] == ""
        assert message["srt_content"] == "1\nHi there"
        assert message["enabled"] is True

    def test_validation_errors(self, client, headers):
        response = create(client, headers, name="P", template="")

        assert response.status_code == 422
        assert set(response.json()["detail"]["field_errors"]) == {"name", "template"}

    def test_qr_codes_returned_when_enabled(self, client, headers, settings):
        settings.qr_codes_enabled = True

        response = create(client, headers)

        qr_codes = response.json()["qr_codes"]
        assert len(qr_codes) == 4
        assert all(code.startswith("data:image/png;base64,") for code in qr_codes)


class TestEditMessage:
    """Tests for GET and PATCH /api/v1/messages/{id}."""

    def test_get_unknown_id(self, client, headers):
        response = client.get("/api/v1/messages/zzz", headers=headers)

        assert response.status_code == 404
        assert response.json()["detail"]["description"] == "No data found for this ID."

    def test_get_created_message(self, client, headers):
        message_id = create(client, headers).json()["id"]

        response = client.get(f"/api/v1/messages/{message_id}", headers=headers)

        assert response.status_code == 200
        assert response.json()["name"] == "Promo"

    def test_patch_writes_only_changed_fields(self, client, headers):
        message_id = create(client, headers).json()["id"]

        response = client.patch(
            f"/api/v1/messages/{message_id}",
            data={"name": "Promo", "enabled": "true"},
            headers=headers,
        )

        assert response.status_code == 200
        body = response.json()
        assert body["updated_fields"] == ["enabled"]
        assert body["no_changes"] is False
        assert body["message"]["enabled"] is True
        assert body["notification"]["title"] == "Update Successful!"

    def test_patch_without_changes(self, client, headers):
        message_id = create(client, headers).json()["id"]

        response = client.patch(
            f"/api/v1/messages/{message_id}",
            data={"name": "Promo", "template": "template1"},
            headers=headers,
        )

        assert response.status_code == 200
        assert response.json()["no_changes"] is True
        assert response.json()["updated_fields"] == []

    def test_patch_replaces_audio(self, client, headers):
        message_id = create(client, headers).json()["id"]

        response = client.patch(
            f"/api/v1/messages/{message_id}",
            data={"name": "Promo"},
            files={"audio_file": ("voice.m4a", b"audio", "audio/mp4")},
            headers=headers,
        )

        assert response.json()["updated_fields"] == ["audioUrl"]
        assert response.json()["message"]["audio_url"].endswith(f"/{message_id}/audio.m4a")

    def test_patch_unknown_id(self, client, headers):
        response = client.patch("/api/v1/messages/zzz", data={"enabled": "true"}, headers=headers)

        assert response.status_code == 404


class TestQRDownload:
    def test_zip_download(self, client, headers):
        message_id = create(client, headers).json()["id"]

        response = client.get(f"/api/v1/messages/{message_id}/qrcodes.zip", headers=headers)

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/zip"
        assert 'filename="Promo-qrcodes.zip"' in response.headers["content-disposition"]
        assert len(zipfile.ZipFile(io.BytesIO(response.content)).namelist()) == 4

    def test_zip_download_for_non_latin1_name(self, client, headers):
        """Names outside latin-1 still produce a valid download header."""
        message_id = create(client, headers, name="Feliz cumpleaños 🎉 日本").json()["id"]

        response = client.get(f"/api/v1/messages/{message_id}/qrcodes.zip", headers=headers)

        assert response.status_code == 200
        disposition = response.headers["content-disposition"]
        assert 'filename="Feliz cumpleaos-qrcodes.zip"' in disposition
        assert "filename*=UTF-8''Feliz%20cumplea%C3%B1os" in disposition

    def test_zip_for_unknown_id(self, client, headers):
        response = client.get("/api/v1/messages/zzz/qrcodes.zip", headers=headers)
        assert response.status_code == 404


class TestHealth:
    def test_liveness(self, client):
        assert client.get("/health").status_code == 200

    def test_readiness_in_mock_mode(self, client):
        assert client.get("/health/ready").status_code == 200
