"""공용 테스트 픽스처.

실제 Hugging Face 대신 호출을 기록하는 가짜 업스트림(httpx.MockTransport)을 주입합니다.
"""
from __future__ import annotations

import inspect
from typing import Callable

import httpx
import pytest
from fastapi.testclient import TestClient

from hf_relay.app import create_app
from hf_relay.deps.settings import Settings

BASE = "https://hf.test/pipeline/feature-extraction"
VECTOR = [0.1, 0.2, 0.3]


class FakeUpstream:
    """요청을 기록하고 responder 결과를 돌려주는 가짜 업스트림."""

    def __init__(self):
        self.calls: list[httpx.Request] = []
        self.responder: Callable = lambda request: httpx.Response(200, json=VECTOR)

    async def handle(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        result = self.responder(request)
        if inspect.isawaitable(result):
            result = await result
        return result

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)


@pytest.fixture
def fake_upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def make_client(fake_upstream):
    """설정 일부를 바꿔 TestClient 를 만드는 팩토리."""

    opened: list[TestClient] = []

    def factory(**overrides) -> TestClient:
        data = {"hf_api_key": "hf_test_key", "hf_api_base": BASE, **overrides}
        app = create_app(Settings(**data), transport=fake_upstream.transport())
        test_client = TestClient(app)
        test_client.__enter__()
        opened.append(test_client)
        return test_client

    yield factory

    for test_client in opened:
        test_client.__exit__(None, None, None)


@pytest.fixture
def client(make_client) -> TestClient:
    return make_client()
