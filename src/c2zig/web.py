from __future__ import annotations

import json
import logging
from typing import Any, AsyncIterator, Dict

from fastapi import FastAPI, Request, Response, status
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, field_validator

from .client import ChatStreamClient
from .config import PRESET_ENDPOINTS, ChatConfig, RootConfig, default_config_path, load_config_or_default
from .errors import RequestFailed, StreamReadError
from .logsetup import configure_logging
from .prompts import SAMPLE_C_CODE
from .request import build_request
from .stream import StreamDecoder, iter_snapshots

configure_logging()

logger = logging.getLogger(__name__)

app = FastAPI(title="C to Zig Converter", version="1.0.0")

_config: RootConfig | None = None
_client: ChatStreamClient | None = None


class AnalyzeBody(BaseModel):
    code: str

    @field_validator("code")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("code must not be empty")
        return v


class GenerateBody(AnalyzeBody):
    analysis: str


@app.on_event("startup")
async def _startup() -> None:
    global _config, _client  # noqa: PLW0603

    _config = load_config_or_default(default_config_path())
    _client = ChatStreamClient()
    logger.info("Using endpoint %s with model %s", _config.endpoint_url, _config.model)


@app.on_event("shutdown")
async def _shutdown() -> None:
    if _client:
        await _client.aclose()


def _ndjson(obj: Dict[str, Any]) -> bytes:
    return (json.dumps(obj, ensure_ascii=False) + "\n").encode("utf-8")


async def _stream_stage(chat_cfg: ChatConfig) -> Response:
    assert _client is not None
    upstream = await _client.open(build_request(chat_cfg))

    async def _events() -> AsyncIterator[bytes]:
        decoder = StreamDecoder()
        try:
            async for snapshot in iter_snapshots(upstream.aiter_bytes(), decoder):
                yield _ndjson({"text": snapshot})
        except StreamReadError as exc:
            logger.error("Upstream stream broke off: %s", exc)
            yield _ndjson({"error": str(exc)})
            return
        finally:
            await upstream.aclose()
        yield _ndjson({"result": decoder.text})

    return StreamingResponse(_events(), media_type="application/x-ndjson")


@app.get("/api/presets")
async def presets() -> list[Dict[str, Any]]:
    return [p.model_dump() for p in PRESET_ENDPOINTS.values()]


@app.get("/api/sample")
async def sample() -> Dict[str, str]:
    return {"code": SAMPLE_C_CODE}


@app.post("/api/analyze")
async def analyze(body: AnalyzeBody) -> Response:
    assert _config is not None
    return await _stream_stage(_config.analysis_config(body.code, _config.credential()))


@app.post("/api/generate")
async def generate(body: GenerateBody) -> Response:
    assert _config is not None
    return await _stream_stage(_config.generation_config(body.code, body.analysis, _config.credential()))


@app.exception_handler(RequestFailed)
async def _request_failed(_: Request, exc: RequestFailed) -> Response:
    """Report upstream rejections as 502 with the upstream status and body."""
    logger.error("Upstream request failed: %s", exc)
    return JSONResponse(
        {"error": str(exc), "status": exc.status},
        status_code=status.HTTP_502_BAD_GATEWAY,
    )
