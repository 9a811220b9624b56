"""
api.py

Responsibility: expose the preview operation over HTTP.

`create_app` builds the ASGI app once; configuration is read from the
environment at that point and injected into the service. Serve it through the
factory, e.g.:

    uvicorn --factory cardpress.api:create_app
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from starlette.concurrency import run_in_threadpool

from cardpress import __version__
from cardpress.config import ConfigurationError, RepoConfig, load_config
from cardpress.publisher import UpstreamFatalError
from cardpress.renderer import TemplateLoadError
from cardpress.service import PreviewService, ValidationError

logger = logging.getLogger(__name__)


_HANDLED = (ConfigurationError, ValidationError, TemplateLoadError, UpstreamFatalError)


def _error_response(exc: Exception) -> PlainTextResponse:
    if isinstance(exc, ValidationError):
        return PlainTextResponse(str(exc), status_code=400)
    if isinstance(exc, ConfigurationError):
        logger.error("GitHub repository configuration is incomplete: %s", exc)
        return PlainTextResponse("GitHub repository not configured.", status_code=500)
    if isinstance(exc, TemplateLoadError):
        logger.error("Failed to read preview template: %s", exc)
        return PlainTextResponse("Unable to load template file.", status_code=500)
    # Upstream detail stays in the log.
    logger.error("Failed to publish preview: %s", exc)
    return PlainTextResponse("Failed to publish preview.", status_code=502)


def create_app(config: RepoConfig | None = None, *, service: PreviewService | None = None) -> FastAPI:
    if service is None:
        service = PreviewService(config or load_config())

    app = FastAPI(title="cardpress", version=__version__)
    app.state.preview_service = service

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/github/preview")
    async def github_preview(request: Request) -> Response:
        body = await request.body()
        try:
            result = await run_in_threadpool(app.state.preview_service.publish, body)
        except _HANDLED as e:
            return _error_response(e)
        return JSONResponse(result.to_dict())

    return app
