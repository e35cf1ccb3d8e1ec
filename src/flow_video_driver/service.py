"""HTTP entry point exposing video generation."""

from __future__ import annotations

import logging
import secrets
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Optional

from fastapi import Body, Depends, FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import AppConfig, load_config
from .factory import build_orchestrator
from .models import VideoGenerationRequest
from .orchestrator.runner import VideoGenerationOrchestrator

LOGGER = logging.getLogger(__name__)

DEFAULT_API_KEY = "default-api-key-change-me"


def _validation_message(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ()))
        parts.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return "Invalid request: " + "; ".join(parts)


def create_app(
    config: Optional[AppConfig] = None,
    orchestrator: Optional[VideoGenerationOrchestrator] = None,
) -> FastAPI:
    config = config or load_config()
    orchestrator = orchestrator or build_orchestrator(config)
    api_key = config.service.api_key or DEFAULT_API_KEY
    if not config.service.api_key:
        LOGGER.warning("No API key configured, using the default key")

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        yield
        await orchestrator.close()

    app = FastAPI(title="Flow Video Driver", lifespan=lifespan)

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(_: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})

    def require_api_key(
        x_api_key: Optional[str] = Header(default=None),
        authorization: Optional[str] = Header(default=None),
    ) -> None:
        provided = x_api_key
        if not provided and authorization:
            provided = authorization.removeprefix("Bearer ").strip()
        if not provided:
            raise HTTPException(
                status_code=401,
                detail="API key required. Use header: x-api-key or Authorization: Bearer <key>",
            )
        if not secrets.compare_digest(provided, api_key):
            raise HTTPException(status_code=403, detail="Invalid API key")

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}

    @app.get("/health/browser", dependencies=[Depends(require_api_key)])
    async def browser_health() -> dict[str, bool]:
        return {"attachable": await orchestrator.can_attach_to_browser()}

    @app.post("/api/veo", dependencies=[Depends(require_api_key)])
    async def generate(payload: dict[str, Any] = Body(...)) -> Any:
        if not str(payload.get("prompt") or "").strip():
            raise HTTPException(status_code=400, detail="Missing required parameter: prompt")
        try:
            request = VideoGenerationRequest.model_validate(payload)
        except ValidationError as exc:
            raise HTTPException(status_code=400, detail=_validation_message(exc)) from exc

        LOGGER.info(
            "Starting generation: mode=%s aspect=%s outputs=%s frames=%s prompt=%.50s",
            request.mode.value,
            request.aspect_ratio.value,
            request.outputs_count,
            request.has_frames,
            request.prompt,
        )
        result = await orchestrator.generate(
            request,
            lambda message: LOGGER.info("Progress: %s", message),
        )
        if not result.success:
            LOGGER.error("Video generation failed: %s", result.error)
            return JSONResponse(
                status_code=500,
                content={"error": result.error or "Video generation failed"},
            )
        LOGGER.info("Generated %d video(s)", len(result.video_urls))
        return {"success": True, "videoUrls": list(result.video_urls)}

    return app
