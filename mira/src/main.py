"""
Mira - Application Entry Point
===============================
FastAPI application factory.  ``create_app()`` registers the agent
routes and error handlers; its lifespan builds every component once
(embedder → store → indexer → retriever → plugins → router → LLM →
orchestrator), indexes the documents directory and parks the
orchestrator on ``app.state``.

Passing an ``orchestrator`` skips the build step (tests inject fakes).

Run:
    python -m mira.src.main
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from mira.config.prompt_templates import SERVICE_NAME
from mira.config.settings import Settings, settings
from mira.src.api.routes import FIELD_ERRORS, router
from mira.src.core.embeddings import build_embedder
from mira.src.core.ingestor import IngestionPipeline
from mira.src.core.llm import GeminiLanguageModel
from mira.src.core.plugin_router import PluginRouter, build_classifier
from mira.src.core.rag_engine import AgentOrchestrator
from mira.src.core.retriever import Retriever
from mira.src.database.session_store import SessionStore
from mira.src.database.vector_store import InMemoryVectorStore
from mira.src.plugins.math_plugin import MathPlugin
from mira.src.plugins.weather_plugin import WeatherPlugin, build_weather_source
from mira.src.utils.logger import get_logger

logger = get_logger(__name__)

APP_VERSION = "1.0.0"


def build_orchestrator(config: Settings) -> tuple[AgentOrchestrator, IngestionPipeline]:
    """Wire every component from *config*; the pipeline is returned un-run."""
    embedder = build_embedder(config)
    store = InMemoryVectorStore()
    pipeline = IngestionPipeline(embedder, store, source_dir=config.DOCUMENTS_DIR, chunk_size=config.CHUNK_SIZE, max_workers=config.MAX_WORKERS)

    llm = GeminiLanguageModel.from_settings(config)
    plugins = [
        WeatherPlugin(build_weather_source(config), units=config.WEATHER_UNITS, default_location=config.DEFAULT_WEATHER_LOCATION),
        MathPlugin(),
    ]
    plugin_router = PluginRouter(plugins, build_classifier(config, llm), timeout=config.PLUGIN_TIMEOUT_SECONDS)

    orchestrator = AgentOrchestrator(
        session_store=SessionStore(config.MAX_HISTORY, config.SESSION_TTL_SECONDS, config.SESSION_SWEEP_INTERVAL_SECONDS),
        retriever=Retriever(embedder, store),
        router=plugin_router,
        llm=llm,
        history_window=config.HISTORY_WINDOW,
        top_k=config.SEARCH_RESULTS_LIMIT,
    )
    return orchestrator, pipeline


def create_app(orchestrator: AgentOrchestrator | None = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        FastAPI: Configured application instance with the agent routes
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if app.state.orchestrator is None:
            logger.info("Building agent components (env=%s) …", settings.ENV)
            built, pipeline = build_orchestrator(settings)
            summary = await asyncio.to_thread(pipeline.run)
            logger.info("[INDEX] Startup indexing: %s", summary)
            app.state.orchestrator = built
        logger.info("%s ready.", SERVICE_NAME)
        yield
        logger.info("%s shutting down.", SERVICE_NAME)

    app = FastAPI(title=SERVICE_NAME, description="Conversational agent with RAG context and tool plugins", version=APP_VERSION, lifespan=lifespan)
    app.state.orchestrator = orchestrator

    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, _http_error_handler)

    @app.get("/")
    async def root() -> dict[str, Any]:
        return {
            "name": SERVICE_NAME,
            "version": APP_VERSION,
            "description": "AI agent with RAG over a markdown knowledge base and weather / math plugins",
            "endpoints": {
                "message": "POST /agent/message",
                "health": "GET /agent/health",
                "stats": "GET /agent/stats",
                "tools": "GET /agent/tools",
                "history": "GET /agent/sessions/{session_id}/history",
                "clear": "DELETE /agent/sessions/{session_id}",
            },
        }

    app.include_router(router)
    return app


# ── Error handlers ─────────────────────────────────────────────────────

async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    message = FIELD_ERRORS["message"]
    for error in exc.errors():
        field_name = next((part for part in reversed(error.get("loc", ())) if part in FIELD_ERRORS), None)
        if field_name is not None:
            message = FIELD_ERRORS[field_name]
            break
    logger.warning("Rejected request to %s: %s", request.url.path, message)
    return JSONResponse(status_code=400, content={"error": message})


async def _http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == 404:
        return JSONResponse(status_code=404, content={"error": "Endpoint not found", "path": request.url.path})
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})


app = create_app()


if __name__ == "__main__":
    uvicorn.run("mira.src.main:app", host=settings.HOST, port=settings.PORT)
