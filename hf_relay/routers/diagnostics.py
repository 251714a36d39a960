"""운영자용 자가진단 API.

비전공자 팁: 직접 요청을 만들지 않고도 API 키와 업스트림 연결 상태를 확인할 수 있습니다.
"""
from __future__ import annotations

import datetime as dt
from typing import Any

from fastapi import APIRouter, Depends

from hf_relay.deps.settings import Settings, get_app_settings
from hf_relay.deps.upstream import UpstreamClient, UpstreamError, get_upstream
from hf_relay.models.schema import ProbeResult, SelfTestResponse

router = APIRouter(tags=["diagnostics"])

PROBES: list[tuple[str, str]] = [
    ("sentence-transformers/all-MiniLM-L6-v2", "What is the capital of France?"),
    ("BAAI/bge-small-en-v1.5", "Embeddings map text to vectors."),
]


def describe_shape(value: Any) -> list[int] | None:
    """중첩 리스트의 차원을 구합니다. 리스트가 아니면 None."""

    if not isinstance(value, list):
        return None
    shape: list[int] = []
    while isinstance(value, list):
        shape.append(len(value))
        if not value:
            break
        value = value[0]
    return shape


async def run_probe(upstream: UpstreamClient, model: str, text: str) -> ProbeResult:
    try:
        embedding = await upstream.extract_embedding(model, text)
    except UpstreamError as exc:
        return ProbeResult(model=model, text=text, success=False, status=exc.status_code, error=str(exc))

    shape = describe_shape(embedding)
    if shape is None:
        # 200 이지만 {"error": ...} 객체가 온 경우
        return ProbeResult(model=model, text=text, success=False, status=200, error=str(embedding))
    return ProbeResult(model=model, text=text, success=True, dimensions=shape)


@router.post("/test", response_model=SelfTestResponse)
async def self_test(
    upstream: UpstreamClient = Depends(get_upstream),
    settings: Settings = Depends(get_app_settings),
):
    """고정된 (모델, 문장) 조합으로 업스트림을 점검합니다."""

    tests = [await run_probe(upstream, model, text) for model, text in PROBES]
    return SelfTestResponse(
        timestamp=dt.datetime.now(dt.timezone.utc).isoformat(),
        apiKeyLoaded=settings.api_key_loaded,
        allPassed=all(probe.success for probe in tests),
        tests=tests,
    )
