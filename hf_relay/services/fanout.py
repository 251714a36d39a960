"""배치 임베딩 팬아웃 서비스.

텍스트마다 업스트림 호출을 하나씩 동시에 보내되, 세마포어로 동시 연결 수를 제한합니다.
결과는 완료 순서와 무관하게 입력 순서대로 돌려줍니다.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Sequence

from hf_relay.deps.upstream import UpstreamClient, UpstreamError
from hf_relay.models.schema import BatchItemResult

LOGGER = logging.getLogger(__name__)


async def embed_many(
    upstream: UpstreamClient,
    model: str,
    texts: Sequence[str],
    concurrency: int,
) -> list[BatchItemResult]:
    """각 텍스트를 독립적으로 임베딩합니다. 한 항목의 실패는 나머지에 영향을 주지 않습니다."""

    semaphore = asyncio.Semaphore(concurrency)

    async def embed_one(text: str) -> BatchItemResult:
        async with semaphore:
            try:
                embedding = await upstream.extract_embedding(model, text)
            except UpstreamError as exc:
                return BatchItemResult(text=text, error=str(exc), success=False)
            except Exception as exc:  # pylint: disable=broad-except
                LOGGER.exception("batch item failed", extra={"model": model})
                return BatchItemResult(text=text, error=str(exc) or exc.__class__.__name__, success=False)
        return BatchItemResult(text=text, embedding=embedding, success=True)

    results: list[BatchItemResult] = await asyncio.gather(*(embed_one(text) for text in texts))
    failed = sum(1 for item in results if not item.success)
    LOGGER.info(
        "batch embedding finished",
        extra={"model": model, "count": len(results), "failed": failed},
    )
    return results


__all__ = ["embed_many"]
