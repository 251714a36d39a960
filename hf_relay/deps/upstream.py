"""Hugging Face 추론 API 호출 헬퍼.

비전공자 팁: feature-extraction 은 문장을 숫자 벡터(임베딩)로 바꿔주는 추론 작업입니다.
응답 본문은 해석하지 않고 그대로 돌려줍니다. 1차원 벡터일 수도, 토큰별 2차원
벡터일 수도, 200 상태의 오류 객체일 수도 있습니다.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any
from urllib.parse import quote

import httpx
from fastapi import Request
from prometheus_client import Counter

from hf_relay.deps.settings import Settings

LOGGER = logging.getLogger(__name__)

UPSTREAM_CALLS = Counter("hf_upstream_calls_total", "업스트림 호출 결과", ["outcome"])


class UpstreamError(Exception):
    """업스트림 호출 실패의 공통 부모. status_code 는 호출자에게 돌려줄 상태 코드입니다."""

    status_code = 500
    outcome = "error"

    def to_payload(self) -> dict[str, Any]:
        return {"error": str(self)}


class UpstreamRejected(UpstreamError):
    """업스트림이 2xx 가 아닌 응답을 준 경우. 같은 상태 코드로 전달합니다."""

    outcome = "rejected"

    def __init__(self, status_code: int, body: Any, upstream_status: int | None = None):
        # upstream_status: 업스트림이 실제로 보낸 상태. 릴레이 상태(status_code)와 다를 수 있습니다.
        self.upstream_status = status_code if upstream_status is None else upstream_status
        super().__init__(f"Upstream responded with status {self.upstream_status}")
        self.status_code = status_code
        self.body = body

    def to_payload(self) -> dict[str, Any]:
        return {"error": str(self), "hfStatus": self.upstream_status, "hfData": self.body}


class UpstreamTimeout(UpstreamError):
    status_code = 504
    outcome = "timeout"

    def __init__(self, timeout: float):
        super().__init__(f"Upstream request timed out after {timeout:g}s")
        self.timeout = timeout

    def to_payload(self) -> dict[str, Any]:
        return {
            "error": str(self),
            "hint": "The model may still be loading on the inference service; retry in a moment.",
        }


class TransportFailure(UpstreamError):
    """DNS/연결 오류 등 응답 자체가 없는 경우."""

    outcome = "transport"

    def to_payload(self) -> dict[str, Any]:
        return {"error": str(self), "type": "Network or server error"}


def _body_of(resp: httpx.Response) -> Any:
    try:
        return resp.json()
    except ValueError:
        return resp.text


class UpstreamClient:
    """feature-extraction 엔드포인트 호출기.

    httpx.AsyncClient 하나를 앱 수명 동안 공유합니다. 테스트에서는 transport 를
    주입해 실제 네트워크 없이 동작을 검증합니다.
    """

    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None):
        self.settings = settings
        self._client = httpx.AsyncClient(
            timeout=settings.upstream_timeout, transport=transport, follow_redirects=True
        )

    def url_for(self, model: str) -> str:
        return f"{self.settings.hf_api_base}/{quote(model, safe='')}"

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.settings.hf_api_key:
            headers["Authorization"] = f"Bearer {self.settings.hf_api_key}"
        return headers

    async def extract_embedding(self, model: str, text: str) -> Any:
        """모델 하나에 텍스트 하나를 보내고 응답 JSON 을 그대로 반환합니다.

        재시도는 하지 않습니다. wait_for_model 옵션으로 모델 로딩 대기는 업스트림에 맡깁니다.
        """

        timeout = self.settings.upstream_timeout
        payload = {"inputs": text, "options": {"wait_for_model": True}}
        try:
            resp = await asyncio.wait_for(
                self._client.post(self.url_for(model), json=payload, headers=self._headers()),
                timeout=timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            self._record(UpstreamTimeout.outcome, model)
            raise UpstreamTimeout(timeout) from exc
        except httpx.HTTPError as exc:
            self._record(TransportFailure.outcome, model)
            raise TransportFailure(str(exc) or exc.__class__.__name__) from exc
        except UnicodeEncodeError as exc:
            # 짝이 없는 서로게이트 등 UTF-8 로 보낼 수 없는 텍스트
            self._record(TransportFailure.outcome, model)
            raise TransportFailure(f"Request body could not be encoded: {exc.reason}") from exc

        if resp.is_success:
            try:
                data = resp.json()
            except ValueError as exc:
                self._record(UpstreamRejected.outcome, model)
                raise UpstreamRejected(502, resp.text, upstream_status=resp.status_code) from exc
            self._record("success", model)
            return data

        LOGGER.warning(
            "upstream rejected request",
            extra={"model": model, "hf_status": resp.status_code, "hf_body": resp.text[:200]},
        )
        self._record(UpstreamRejected.outcome, model)
        if resp.status_code < 400:
            # 리다이렉트를 따라간 뒤에도 남은 1xx/3xx 는 그대로 전달할 수 없으므로 502
            raise UpstreamRejected(502, _body_of(resp), upstream_status=resp.status_code)
        raise UpstreamRejected(resp.status_code, _body_of(resp))

    def _record(self, outcome: str, model: str) -> None:
        UPSTREAM_CALLS.labels(outcome).inc()
        LOGGER.info("upstream call finished", extra={"model": model, "outcome": outcome})

    async def aclose(self) -> None:
        await self._client.aclose()


def get_upstream(request: Request) -> UpstreamClient:
    """라우트 핸들러용 의존성: lifespan 에서 만든 클라이언트를 꺼냅니다."""

    return request.app.state.upstream


__all__ = [
    "UpstreamClient",
    "UpstreamError",
    "UpstreamRejected",
    "UpstreamTimeout",
    "TransportFailure",
    "get_upstream",
]
