"""
Tests for the dashboard API, run in-process with FastAPI's TestClient.
Run with: python -m pytest tests/test_dashboard.py -v
"""

import json
import os

import pytest
from conftest import make_raw
from fastapi.testclient import TestClient

from senan.config import LOG_FILE
from senan.dashboard import create_app
from senan.patchnotes import build_draft

AUTH = ("admin", "secret")


class FakeCMS:

    configured = True

    def __init__(self):
        self.published = []

    def publish(self, version, html, release_date=None, display_date=None):
        self.published.append((version, html))
        return {"action": "inserted", "itemId": "item-1", "version": version}


@pytest.fixture
def client(context):
    return TestClient(create_app(context))


@pytest.fixture
def draft(context):
    raws = [make_raw("Warrior: Fixed a bug with shield block")]
    return context.drafts.save(build_draft("0.10.43", raws, {"Class": ["Warrior: Fixed a Bug with Shield Block"]}))


# ─────────────────────────────────────────────────────────────
# Auth and open routes
# ─────────────────────────────────────────────────────────────

class TestAuth:

    def test_health_is_open(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_api_index_is_open(self, client):
        endpoints = client.get("/api").json()["endpoints"]
        assert "/drafts" in endpoints and "/bot/profiles" in endpoints

    def test_missing_credentials(self, client):
        response = client.get("/status")
        assert response.status_code == 401
        assert response.headers["www-authenticate"].startswith("Basic")

    def test_wrong_password(self, client):
        assert client.get("/status", auth=("admin", "nope")).status_code == 401

    def test_correct_credentials(self, client):
        assert client.get("/status", auth=AUTH).status_code == 200


# ─────────────────────────────────────────────────────────────
# Monitoring routes
# ─────────────────────────────────────────────────────────────

class TestMonitoring:

    def test_bot_status(self, client):
        body = client.get("/bot/status", auth=AUTH).json()
        assert body["connected"] is True
        assert body["active_profile"] == "locked-down"
        assert body["mode"] == "context"

    def test_metrics_and_costs(self, client):
        assert "memory" in client.get("/metrics", auth=AUTH).json()
        assert "rate_limiter" in client.get("/costs", auth=AUTH).json()

    def test_logs(self, client, settings):
        os.makedirs(settings.logs_dir, exist_ok=True)
        with open(os.path.join(settings.logs_dir, LOG_FILE), "w", encoding="utf-8") as f:
            f.write(json.dumps({"level": "INFO", "message": "hello"}) + "\n")
        assert client.get("/bot/logs", auth=AUTH).json()["logs"][0]["message"] == "hello"
        assert client.get("/bot/logs/errors", auth=AUTH).json()["logs"] == []

    def test_files(self, client, completion):
        completion.uploaded["file_1"] = ("faq.txt", b"x")
        body = client.get("/bot/files", auth=AUTH).json()
        assert body["files"] == [{"id": "file_1", "filename": "faq.txt"}]


# ─────────────────────────────────────────────────────────────
# Profiles
# ─────────────────────────────────────────────────────────────

class TestProfiles:

    def test_list(self, client):
        body = client.get("/bot/profiles", auth=AUTH).json()
        assert body["active"] == "locked-down"
        assert {p["key"] for p in body["profiles"]} == {"casual", "creative", "locked-down", "technical"}

    def test_create(self, client):
        response = client.post("/bot/profiles", json={"key": "guide", "display_name": "Guide", "max_tokens": 8000}, auth=AUTH)
        assert response.status_code == 201
        assert response.json()["name"] == "Guide"
        assert response.json()["maxTokens"] == 8000

    def test_create_duplicate(self, client):
        response = client.post("/bot/profiles", json={"key": "casual"}, auth=AUTH)
        assert response.status_code == 400
        assert response.json()["error"] == "Profile `casual` already exists."

    def test_update(self, client, context):
        response = client.put("/bot/profiles/locked-down", json={"max_tokens": 999}, auth=AUTH)
        assert response.status_code == 200
        assert context.active_profile.max_tokens == 999

    def test_empty_update(self, client):
        assert client.put("/bot/profiles/casual", json={}, auth=AUTH).status_code == 400

    def test_switch(self, client, context):
        assert client.post("/bot/profiles/creative/switch", auth=AUTH).json() == {"active": "creative"}
        assert context.active_profile.key == "creative"

    def test_delete_default_refused(self, client):
        assert client.delete("/bot/profiles/locked-down", auth=AUTH).status_code == 400

    def test_delete_missing(self, client):
        assert client.delete("/bot/profiles/nope", auth=AUTH).status_code == 404


# ─────────────────────────────────────────────────────────────
# Drafts
# ─────────────────────────────────────────────────────────────

class TestDrafts:

    def test_list(self, client, draft):
        drafts = client.get("/drafts", auth=AUTH).json()["drafts"]
        assert drafts[0]["version"] == "0.10.43"
        assert drafts[0]["noteCount"] == 1

    def test_get(self, client, draft):
        body = client.get("/drafts/0.10.43", auth=AUTH).json()
        assert body["categories"] == {"Class": ["Warrior: Fixed a Bug with Shield Block"]}
        assert "rawNotes" in body

    def test_get_missing(self, client):
        assert client.get("/drafts/9.9.9", auth=AUTH).status_code == 404

    def test_bad_version(self, client):
        assert client.get("/drafts/latest", auth=AUTH).status_code == 400

    def test_update(self, client, draft):
        response = client.put("/drafts/0.10.43", json={"categories": {"Content": ["New Boss"]}}, auth=AUTH)
        assert response.status_code == 200
        assert response.json()["discord"] == "**Content**\n- New Boss"

    def test_update_invalid_body(self, client, draft):
        assert client.put("/drafts/0.10.43", json={"categories": ["New Boss"]}, auth=AUTH).status_code == 422

    def test_publish(self, client, context, draft):
        response = client.post("/drafts/0.10.43/publish", auth=AUTH)
        assert response.status_code == 200
        assert response.json()["messages"] == 2
        assert context.client.channels[300].sent[0] == "**0.10.43**"
        assert context.drafts.get("0.10.43").status == "published"

    def test_publish_without_discord(self, client, context, draft):
        context.client = None
        assert client.post("/drafts/0.10.43/publish", auth=AUTH).status_code == 503

    def test_publish_web_needs_credentials(self, client, draft):
        response = client.post("/drafts/0.10.43/publish-web", auth=AUTH)
        assert response.status_code == 503
        assert "WIX_API_KEY" in response.json()["error"]

    def test_publish_web(self, client, context, draft):
        context.cms = FakeCMS()
        response = client.post("/drafts/0.10.43/publish-web", auth=AUTH)
        assert response.status_code == 200
        assert response.json() == {"action": "inserted", "itemId": "item-1", "version": "0.10.43"}
        version, html = context.cms.published[0]
        assert version == "0.10.43"
        assert '<div class="patch-note">- Warrior: Fixed a Bug with Shield Block</div>' in html
        saved = context.drafts.get("0.10.43")
        assert saved.published_to_wix and saved.wix_item_id == "item-1"
        assert saved.status == "published"
        assert client.get("/drafts", auth=AUTH).json()["drafts"][0]["publishedToWix"] is True

    def test_delete(self, client, draft):
        assert client.delete("/drafts/0.10.43", auth=AUTH).status_code == 200
        assert client.delete("/drafts/0.10.43", auth=AUTH).status_code == 404

    def test_image(self, client, settings, draft):
        folder = os.path.join(settings.images_dir, "0.10.43")
        os.makedirs(folder)
        with open(os.path.join(folder, "shot.png"), "wb") as f:
            f.write(b"\x89PNG")
        response = client.get("/drafts/0.10.43/images/shot.png", auth=AUTH)
        assert response.status_code == 200
        assert response.content == b"\x89PNG"
        assert client.get("/drafts/0.10.43/images/other.png", auth=AUTH).status_code == 404
