from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from contextlib import asynccontextmanager
from typing import Optional
import os
import uvicorn

from dotenv import load_dotenv
from pathlib import Path

from llm_service import LLMService
from pipeline import CommentPipeline
from routes import comments_router, sessions_router
from schemas import COMMENT_RESPONSE_SCHEMA_VERSION
from session_store import SessionStore
from telemetry import read_pipeline_telemetry_summary

# Load .env file (for LLM / database settings)
env_path = Path(__file__).resolve().parent / ".env"
load_dotenv(dotenv_path=env_path, override=False)


def _env_int(name: str, default: int, min_value: int, max_value: int) -> int:
    raw = os.getenv(name)
    try:
        value = int(raw) if raw not in (None, "") else default
    except ValueError:
        value = default
    return max(min_value, min(max_value, value))


def _cors_origins() -> list[str]:
    raw = os.getenv("CORS_ORIGINS", "")
    if raw.strip():
        return [o.strip() for o in raw.split(",") if o.strip()]
    return [
        "http://localhost:3000",
        "http://localhost:8000",
        "http://127.0.0.1:8000",
    ]


def create_app(store: Optional[SessionStore] = None, llm: Optional[LLMService] = None) -> FastAPI:
    """Build the app around one store handle and one text-generation service."""
    store = store or SessionStore()
    llm = llm or LLMService()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        store.initialize()
        yield
        store.close()

    app = FastAPI(
        title="AITuber Comment API",
        description="Viewer comment to persona reply pipeline",
        version="2.0.0",
        lifespan=lifespan,
    )
    app.state.store = store
    app.state.llm = llm
    app.state.pipeline = CommentPipeline(store, llm)

    # CORS settings
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(comments_router)
    app.include_router(sessions_router)

    @app.middleware("http")
    async def utf8_charset_middleware(request: Request, call_next):
        response = await call_next(request)
        ct = response.headers.get("content-type", "")
        if "application/json" in ct and "charset" not in ct:
            response.headers["content-type"] = ct + "; charset=utf-8"
        return response

    @app.get("/")
    async def root():
        return {
            "message": "AITuber Comment API",
            "version": "2.0.0",
            "schema_version": COMMENT_RESPONSE_SCHEMA_VERSION,
        }

    @app.get("/health")
    async def health_check():
        return {"status": "healthy"}

    @app.get("/api/telemetry/summary")
    async def telemetry_summary(hours: int = 24, limit: int = 6):
        return read_pipeline_telemetry_summary(hours=hours, limit=limit)

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        app,
        host=os.getenv("APP_HOST", "0.0.0.0"),
        port=_env_int("APP_PORT", 8000, 1, 65535),
    )
