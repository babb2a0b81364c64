"""Tests for timepilot.api.server."""

import json
from unittest.mock import MagicMock, patch

import pytest

# Check if FastAPI is available
try:
    from fastapi.testclient import TestClient

    from timepilot.api.server import create_app

    HAS_FASTAPI = True
except ImportError:
    HAS_FASTAPI = False

pytestmark = pytest.mark.skipif(not HAS_FASTAPI, reason="FastAPI not installed")

CONFIG = {"api_key": "sk-test", "base_url": "https://llm.example.com/v1"}
URL = "/api/assistant"


def _upstream(content: str) -> MagicMock:
    mock_resp = MagicMock()
    mock_resp.status_code = 200
    mock_resp.raise_for_status = MagicMock()
    mock_resp.json.return_value = {"choices": [{"message": {"content": content}}]}
    return mock_resp


class TestPreflight:
    def test_options_ok_with_cors(self):
        client = TestClient(create_app(gateway_config=CONFIG))
        resp = client.options(URL)
        assert resp.status_code == 200
        assert resp.text == "ok"
        assert resp.headers["access-control-allow-origin"] == "*"
        allowed = resp.headers["access-control-allow-headers"]
        for header in ("authorization", "apikey", "content-type"):
            assert header in allowed


class TestAssistantEndpoint:
    def test_empty_instruction_400(self):
        client = TestClient(create_app(gateway_config=CONFIG))
        resp = client.post(URL, json={"instruction": ""})
        assert resp.status_code == 400
        assert resp.json() == {"mode": "readonly", "message": "指令不能为空。"}
        assert resp.headers["access-control-allow-origin"] == "*"

    def test_missing_configuration_500(self):
        client = TestClient(create_app(gateway_config={}))
        resp = client.post(URL, json={"instruction": "hello"})
        assert resp.status_code == 500
        data = resp.json()
        assert data["mode"] == "readonly"
        assert "未配置" in data["message"]

    def test_invalid_model_json_500(self):
        client = TestClient(create_app(gateway_config=CONFIG))
        with patch("httpx.post", return_value=_upstream("not json")):
            resp = client.post(URL, json={"instruction": "hello"})
        assert resp.status_code == 500
        assert resp.json()["mode"] == "readonly"
        assert "JSON" in resp.json()["message"]

    def test_success_filters_patch(self):
        client = TestClient(create_app(gateway_config=CONFIG))
        content = json.dumps({
            "mode": "preview_patch",
            "message": "ok",
            "patch": {"todos": [], "hacked": "x"},
        })
        with patch("httpx.post", return_value=_upstream(content)):
            resp = client.post(URL, json={
                "instruction": "clear todos",
                "context": {"todos": [{"id": "t1"}]},
                "history": [],
                "requirePatchFormat": True,
            })
        assert resp.status_code == 200
        assert resp.json() == {"mode": "preview_patch", "message": "ok", "patch": {"todos": []}}

    def test_readonly_has_no_patch(self):
        client = TestClient(create_app(gateway_config=CONFIG))
        content = json.dumps({"mode": "readonly", "message": "You logged 3h."})
        with patch("httpx.post", return_value=_upstream(content)):
            resp = client.post(URL, json={"instruction": "how long today?"})
        assert resp.status_code == 200
        assert "patch" not in resp.json()

    def test_non_json_body_500(self):
        client = TestClient(create_app(gateway_config=CONFIG))
        resp = client.post(URL, content="garbage", headers={"content-type": "application/json"})
        assert resp.status_code == 500
        assert resp.json()["mode"] == "readonly"
        assert resp.json()["message"].startswith("函数错误：")
        assert resp.headers["access-control-allow-origin"] == "*"

    def test_non_object_body_400(self):
        client = TestClient(create_app(gateway_config=CONFIG))
        resp = client.post(URL, json=["instruction"])
        assert resp.status_code == 400
        assert resp.json()["message"] == "指令不能为空。"


class TestHealthEndpoint:
    def test_health(self):
        client = TestClient(create_app(gateway_config=CONFIG))
        resp = client.get("/api/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "ok"
        assert data["configured"] is True
        assert data["model"] == "gemini-3-pro-preview"
