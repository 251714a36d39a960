"""환경설정 로더.

비전공자 팁: 환경변수는 서비스 동작에 필요한 주소/비밀값을 담는 설정값입니다.
HF_API_KEY 가 없어도 서버는 기동되며, /health 에서 apiKeyLoaded=false 로 보고합니다.
"""
from __future__ import annotations

import os
from functools import lru_cache

from fastapi import Request
from pydantic import BaseModel, Field, field_validator

DEFAULT_HF_API_BASE = "https://api-inference.huggingface.co/pipeline/feature-extraction"


class Settings(BaseModel):
    """릴레이 설정. 프로세스 시작 시 한 번 만들어 app.state 에 보관합니다."""

    hf_api_key: str | None = Field(alias="HF_API_KEY", default=None)
    hf_api_base: str = Field(alias="HF_API_BASE", default=DEFAULT_HF_API_BASE)
    # 콜드스타트 모델 로딩이 느리므로 넉넉하게 잡습니다.
    upstream_timeout: float = Field(alias="HF_TIMEOUT_SECONDS", default=60.0, gt=0)
    batch_concurrency: int = Field(alias="BATCH_CONCURRENCY", default=8, ge=1)
    host: str = Field(alias="HOST", default="0.0.0.0")
    port: int = Field(alias="PORT", default=3000)
    log_level: str = Field(alias="LOG_LEVEL", default="INFO")

    model_config = {"populate_by_name": True}

    @field_validator("hf_api_key")
    @classmethod
    def _blank_key_is_missing(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        return value.strip()

    @field_validator("hf_api_base")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @property
    def api_key_loaded(self) -> bool:
        return self.hf_api_key is not None


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Settings 인스턴스를 싱글톤처럼 재사용합니다."""

    data = {}
    for name, field in Settings.model_fields.items():
        alias = field.alias or name
        if alias in os.environ:
            data[name] = os.environ[alias]
    return Settings.model_validate(data)


def get_app_settings(request: Request) -> Settings:
    """라우트 핸들러용 의존성: create_app 에 주입된 설정을 돌려줍니다."""

    return request.app.state.settings


__all__ = ["DEFAULT_HF_API_BASE", "Settings", "get_settings", "get_app_settings"]
