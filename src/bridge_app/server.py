import asyncio
import json
import logging
from contextlib import asynccontextmanager
from typing import Awaitable, Callable, Optional

import httpx
from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import ValidationError

from rank_bridge import BridgeContext, BridgeSettings, PromotionPipeline, PromotionRequest
from rank_bridge.outcome import ErrorKind, Failed
from bridge_app.request_logger import log_request_to_console


def _failure_response(outcome: Failed) -> JSONResponse:
    return JSONResponse(status_code=outcome.status_code, content=outcome.to_response())


def get_pipeline(request: Request) -> PromotionPipeline:
    """Dependency to get the promotion pipeline instance from the app state."""
    return request.app.state.pipeline


def create_app(
    settings: BridgeSettings,
    http_client: Optional[httpx.AsyncClient] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    enable_request_logging: bool = False,
    preload: bool = True,
) -> FastAPI:
    """
    Builds the FastAPI app. When `http_client` is given it is used as-is and
    left open on shutdown; otherwise the lifespan owns its own client.
    """

    # --- Lifespan Management ---
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage the shared HTTP client and bridge context with the app's lifespan."""
        owns_client = http_client is None
        client = http_client or httpx.AsyncClient(timeout=settings.http_timeout)

        context = BridgeContext.from_settings(settings, client, sleep=sleep)
        app.state.context = context
        app.state.pipeline = PromotionPipeline(context, settings.shared_secret)

        if preload:
            await context.preload()

        yield

        if owns_client:
            await client.aclose()
            logging.info("HTTP client closed.")

    app = FastAPI(lifespan=lifespan)

    @app.post("/update-xp")
    @app.post("/promote")
    async def submit_progression(
        request: Request,
        pipeline: PromotionPipeline = Depends(get_pipeline),
    ):
        """Resolves the caller's XP to a group rank and syncs the membership."""
        # An empty body is read as {} so it is rejected by the secret check
        body = await request.body()
        try:
            request_data = json.loads(body) if body.strip() else {}
        except (json.JSONDecodeError, UnicodeDecodeError):
            return _failure_response(Failed(ErrorKind.BAD_INPUT, "Invalid JSON in request body."))
        if not isinstance(request_data, dict):
            return _failure_response(
                Failed(ErrorKind.BAD_INPUT, "Request body must be a JSON object.")
            )

        if enable_request_logging:
            log_request_to_console(
                url=str(request.url.path),
                client_info=(request.client.host, request.client.port)
                if request.client
                else None,
                request_data=request_data,
            )

        try:
            promotion_request = PromotionRequest(**request_data)
        except (ValidationError, TypeError) as e:
            return _failure_response(Failed(ErrorKind.BAD_INPUT, f"Invalid Request: {e}"))

        outcome = await pipeline.submit(promotion_request)
        if outcome.status_code >= 500:
            logging.error(f"[{request.url.path}] failed: {outcome.detail}")
        return JSONResponse(status_code=outcome.status_code, content=outcome.to_response())

    @app.get("/")
    def read_root():
        return PlainTextResponse("Rank bot running")

    @app.get("/health")
    def health():
        return {"ok": True}

    return app
