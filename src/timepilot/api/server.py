"""FastAPI HTTP API server for the assistant gateway."""

import logging

from timepilot import __version__
from timepilot.gateway.service import AssistantGateway

log = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
}


def create_app(gateway_config: dict | None = None, gateway: AssistantGateway | None = None):
    """Create and configure the FastAPI application.

    Args:
        gateway_config: The ``gateway`` config section (api_key, base_url, model...).
        gateway: A ready gateway instance; takes precedence over gateway_config.
    """
    try:
        from fastapi import FastAPI, Request
        from fastapi.concurrency import run_in_threadpool
        from fastapi.responses import JSONResponse, PlainTextResponse
    except ImportError as e:
        raise ImportError(
            "FastAPI is required for the HTTP API. "
            "Install with: pip install timepilot[api]"
        ) from e

    assistant = gateway or AssistantGateway(gateway_config)

    app = FastAPI(
        title="timepilot API",
        description="AI assistant gateway for time tracking state",
        version=__version__,
    )

    @app.get("/api/health")
    def health():
        return {
            "status": "ok",
            "version": __version__,
            "model": assistant.model,
            "configured": assistant.is_configured,
        }

    @app.options("/api/assistant")
    def assistant_preflight():
        return PlainTextResponse("ok", headers=CORS_HEADERS)

    @app.post("/api/assistant")
    async def assistant_endpoint(request: Request):
        try:
            body = await request.json()
        except ValueError as e:
            log.warning("Assistant request body is not valid JSON: %s", e)
            return JSONResponse(
                status_code=500,
                content={"mode": "readonly", "message": f"函数错误：{e}"},
                headers=CORS_HEADERS,
            )

        # The upstream call blocks; keep it off the event loop
        result = await run_in_threadpool(assistant.handle, body)
        return JSONResponse(
            status_code=result.status_code,
            content=result.response.to_dict(),
            headers=CORS_HEADERS,
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        log.error("Unhandled error: %s", exc, exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"mode": "readonly", "message": f"函数错误：{exc}"},
            headers=CORS_HEADERS,
        )

    return app
