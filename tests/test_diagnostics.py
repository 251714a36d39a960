"""자가진단(/api/test) 테스트."""
from __future__ import annotations

import json

import httpx

from hf_relay.routers.diagnostics import PROBES, describe_shape


def test_describe_shape():
    assert describe_shape([0.1, 0.2, 0.3]) == [3]
    assert describe_shape([[0.1, 0.2], [0.3, 0.4], [0.5, 0.6]]) == [3, 2]
    assert describe_shape([]) == [0]
    assert describe_shape({"error": "loading"}) is None


def test_self_test_all_pass(client, fake_upstream):
    fake_upstream.responder = lambda request: httpx.Response(200, json=[0.0] * 384)

    resp = client.post("/api/test")

    assert resp.status_code == 200
    body = resp.json()
    assert body["allPassed"] is True
    assert body["apiKeyLoaded"] is True
    assert [probe["model"] for probe in body["tests"]] == [model for model, _ in PROBES]
    assert all(probe["dimensions"] == [384] for probe in body["tests"])
    assert len(fake_upstream.calls) == len(PROBES)


def test_self_test_reports_failures(make_client, fake_upstream):
    first_text = PROBES[0][1]

    def responder(request):
        if json.loads(request.content)["inputs"] == first_text:
            return httpx.Response(401, json={"error": "Authorization header is invalid"})
        return httpx.Response(200, json={"error": "Model is overloaded"})

    fake_upstream.responder = responder
    client = make_client(hf_api_key=None)

    resp = client.post("/api/test")

    assert resp.status_code == 200
    body = resp.json()
    assert body["allPassed"] is False
    assert body["apiKeyLoaded"] is False
    first, second = body["tests"]
    assert first["success"] is False and first["status"] == 401
    assert second["success"] is False and "overloaded" in second["error"]
