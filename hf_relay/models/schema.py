"""Pydantic 데이터 스키마 모음.

비전공자 팁: 스키마는 API 입출력 형태를 정의해 자동 검증을 도와줍니다.
임베딩 값 자체는 Any 로 두어 업스트림 응답을 해석하지 않습니다.
"""
from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field, StrictStr


class EmbedRequest(BaseModel):
    model: StrictStr = Field(min_length=1)
    inputs: StrictStr = Field(min_length=1)


class BatchEmbedRequest(BaseModel):
    model: StrictStr = Field(min_length=1)
    texts: list[StrictStr] = Field(min_length=1)


class BatchItemResult(BaseModel):
    text: str
    success: bool
    embedding: Any = None
    error: Optional[str] = None


class HealthResponse(BaseModel):
    status: str
    timestamp: str
    apiKeyLoaded: bool
    uptime: float


class ProbeResult(BaseModel):
    model: str
    text: str
    success: bool
    dimensions: Optional[list[int]] = None
    status: Optional[int] = None
    error: Optional[str] = None


class SelfTestResponse(BaseModel):
    timestamp: str
    apiKeyLoaded: bool
    allPassed: bool
    tests: list[ProbeResult]


__all__ = [name for name in globals().keys() if name.endswith(("Request", "Response", "Result"))]
