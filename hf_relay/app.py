"""임베딩 릴레이 FastAPI 진입점.

비전공자 용어설명:
- 임베딩: 문장을 숫자 벡터로 바꿔서 의미를 비교하는 기술입니다.
- 릴레이: 브라우저가 직접 호출할 수 없는(CORS 미허용) Hugging Face API 를 대신 호출해 주는 중계 서버입니다.
- CORS: 다른 도메인의 웹페이지가 이 서버를 호출해도 되는지 알려주는 응답 헤더입니다.
- 콜드스타트: 메모리에 없는 모델을 처음 부를 때 로딩 시간이 걸리는 현상입니다.
"""
from __future__ import annotations

import datetime as dt
import logging
import time
import uuid
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.routing import APIRouter
from prometheus_client import Counter, Histogram, generate_latest
from starlette.exceptions import HTTPException as StarletteHTTPException

from hf_relay import __version__
from hf_relay.deps.settings import Settings, get_app_settings, get_settings
from hf_relay.deps.upstream import UpstreamClient, UpstreamError
from hf_relay.models.schema import HealthResponse
from hf_relay.routers import diagnostics, embed

# 한국어 주석: 서비스 관측을 위한 기본 메트릭 정의
REQUEST_COUNTER = Counter("relay_requests_total", "총 요청 수", ["method", "path", "status"])
REQUEST_LATENCY = Histogram("relay_request_seconds", "요청 처리 시간", ["method", "path"])

# 브라우저 클라이언트가 다른 origin 에서 호출하므로 모든 응답에 붙입니다. 좁히지 말 것.
CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}

AVAILABLE_ENDPOINTS = [
    "GET /",
    "GET /health",
    "GET /metrics",
    "POST /api/hf-embed",
    "POST /api/hf-embed-batch",
    "POST /api/test",
]

EXAMPLE_PAYLOADS = {
    "/api/hf-embed": {
        "model": "sentence-transformers/all-MiniLM-L6-v2",
        "inputs": "What is the capital of France?",
    },
    "/api/hf-embed-batch": {
        "model": "sentence-transformers/all-MiniLM-L6-v2",
        "texts": ["First sentence", "Second sentence"],
    },
}


def build_catalog() -> dict:
    return {
        "message": "Hugging Face Embedding Proxy API",
        "version": __version__,
        "endpoints": {
            "health": "GET /health",
            "metrics": "GET /metrics",
            "embed": "POST /api/hf-embed",
            "embedBatch": "POST /api/hf-embed-batch",
            "test": "POST /api/test",
        },
        "examples": {f"POST {path}": body for path, body in EXAMPLE_PAYLOADS.items()},
    }


@asynccontextmanager
async def lifespan(app: FastAPI):
    """애플리케이션 기동/종료 훅.

    업스트림 httpx 클라이언트를 열고 닫습니다. API 키가 없어도 기동은 계속합니다.
    """

    settings: Settings = app.state.settings
    app.state.upstream = UpstreamClient(settings, transport=app.state.upstream_transport)
    if settings.api_key_loaded:
        logging.info("릴레이 시작", extra={"upstream": settings.hf_api_base})
    else:
        logging.warning("HF_API_KEY 미설정: 인증 없이 업스트림을 호출합니다", extra={"upstream": settings.hf_api_base})
    yield
    await app.state.upstream.aclose()
    logging.info("릴레이 종료")


def _validation_field(exc: RequestValidationError) -> tuple[str, str]:
    errors = exc.errors()
    if not errors:
        return "body", "invalid request body"
    first = errors[0]
    if first.get("type") == "json_invalid":
        return "body", "request body is not valid JSON"
    loc = [part for part in first.get("loc", ()) if part != "body"]
    field = str(loc[0]) if loc else "body"
    return field, first.get("msg", "invalid value")


async def on_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    """모델 검증 실패는 422 대신 400 으로, 문제 필드와 예시 페이로드를 함께 돌려줍니다."""

    field, detail = _validation_field(exc)
    body = {"error": f"Missing or invalid field: {field}", "field": field, "detail": detail}
    example = EXAMPLE_PAYLOADS.get(request.url.path)
    if example is not None:
        body["example"] = example
    return JSONResponse(body, status_code=400)


async def on_upstream_error(request: Request, exc: UpstreamError) -> JSONResponse:
    logging.error(
        "upstream error",
        extra={"path": request.url.path, "status": exc.status_code, "error": str(exc)},
    )
    return JSONResponse(exc.to_payload(), status_code=exc.status_code)


async def on_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == 404:
        message = "Not found"
    elif exc.status_code == 405:
        message = "Method not allowed"
    else:
        message = str(exc.detail)
    body = {"error": message, "path": request.url.path, "availableEndpoints": AVAILABLE_ENDPOINTS}
    return JSONResponse(body, status_code=exc.status_code, headers=getattr(exc, "headers", None))


# 한국어 주석: 공통 요청 ID 생성, 미처리 예외 변환, CORS 헤더 보장
async def add_request_id(request: Request, call_next):
    request_id = request.headers.get("x-request-id", str(uuid.uuid4()))
    request.state.request_id = request_id

    start = time.perf_counter()
    response: Response | None = None
    try:
        response = await call_next(request)
    except Exception:  # pylint: disable=broad-except
        logging.exception("Unhandled error", extra={"request_id": request_id})
        response = JSONResponse({"error": "Internal server error"}, status_code=500)
    finally:
        elapsed = time.perf_counter() - start
        route = request.scope.get("route")
        path = getattr(route, "path", "unmatched")
        # 클라이언트 연결 끊김(CancelledError) 등으로 응답이 없으면 499 로 기록
        status = response.status_code if response is not None else 499
        REQUEST_COUNTER.labels(request.method, path, status).inc()
        REQUEST_LATENCY.labels(request.method, path).observe(elapsed)
        logging.info(
            "request completed",
            extra={
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "status": status,
                "elapsed": elapsed,
            },
        )
        if response is not None:
            response.headers["x-request-id"] = request_id
            for name, value in CORS_HEADERS.items():
                response.headers.setdefault(name, value)
    return response


def create_app(settings: Settings | None = None, transport: httpx.AsyncBaseTransport | None = None) -> FastAPI:
    """설정을 주입받아 앱을 조립합니다. 테스트에서는 transport 로 업스트림을 대체합니다."""

    app = FastAPI(title="HF Embedding Relay", version=__version__, lifespan=lifespan)
    app.state.settings = settings or get_settings()
    app.state.upstream_transport = transport
    app.state.started_at = time.monotonic()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )
    app.middleware("http")(add_request_id)

    app.add_exception_handler(RequestValidationError, on_validation_error)
    app.add_exception_handler(UpstreamError, on_upstream_error)
    app.add_exception_handler(StarletteHTTPException, on_http_error)

    @app.get("/health", response_model=HealthResponse)
    async def health(request: Request):
        """헬스체크. 업스트림은 호출하지 않습니다."""

        settings = get_app_settings(request)
        return HealthResponse(
            status="OK",
            timestamp=dt.datetime.now(dt.timezone.utc).isoformat(),
            apiKeyLoaded=settings.api_key_loaded,
            uptime=round(time.monotonic() - request.app.state.started_at, 3),
        )

    @app.get("/")
    async def catalog():
        return build_catalog()

    @app.get("/metrics")
    async def metrics():
        """Prometheus가 스크랩할 수 있는 메트릭 엔드포인트."""

        return Response(generate_latest(), media_type="text/plain; version=0.0.4")

    # 한국어 주석: API 라우터를 모듈별로 등록
    routers: list[tuple[APIRouter, str]] = [
        (embed.router, "/api"),
        (diagnostics.router, "/api"),
    ]
    for router, prefix in routers:
        app.include_router(router, prefix=prefix)

    return app


app = create_app()

__all__ = ["app", "create_app", "CORS_HEADERS", "AVAILABLE_ENDPOINTS"]
