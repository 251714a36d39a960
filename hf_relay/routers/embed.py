"""임베딩 중계 API."""
from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from hf_relay.deps.settings import Settings, get_app_settings
from hf_relay.deps.upstream import UpstreamClient, get_upstream
from hf_relay.models.schema import BatchEmbedRequest, EmbedRequest
from hf_relay.services.fanout import embed_many

LOGGER = logging.getLogger(__name__)

router = APIRouter(tags=["embed"])


class AsciiJSONResponse(JSONResponse):
    """비 ASCII 문자를 \\uXXXX 로 이스케이프합니다. 짝 없는 서로게이트가 섞인 입력 텍스트도 그대로 되돌려줄 수 있습니다."""

    def render(self, content: Any) -> bytes:
        return json.dumps(content, ensure_ascii=True, allow_nan=False, separators=(",", ":")).encode("ascii")


@router.post("/hf-embed")
async def embed(payload: EmbedRequest, upstream: UpstreamClient = Depends(get_upstream)):
    """단건 임베딩.

    업스트림 응답을 감싸지 않고 그대로 돌려줍니다. 벡터를 바로 기대하는 브라우저 클라이언트와의 호환을 위해서입니다.
    실패 시 UpstreamError 는 앱 공통 예외 핸들러가 상태 코드로 변환합니다.
    """

    LOGGER.info("embedding request", extra={"model": payload.model, "text_length": len(payload.inputs)})
    return await upstream.extract_embedding(payload.model, payload.inputs)


@router.post("/hf-embed-batch", response_class=AsciiJSONResponse)
async def embed_batch(
    payload: BatchEmbedRequest,
    upstream: UpstreamClient = Depends(get_upstream),
    settings: Settings = Depends(get_app_settings),
):
    """다건 임베딩. 일부 항목이 실패해도 항상 200 으로 응답하고, 실패는 항목별 success 로 표시합니다."""

    results = await embed_many(upstream, payload.model, payload.texts, settings.batch_concurrency)
    return {
        "model": payload.model,
        "count": len(results),
        "results": [item.model_dump(exclude_unset=True) for item in results],
    }
