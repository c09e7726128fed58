"""Sonic backend: FastAPI application entry point."""

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Module-level settings in sonic.* read the environment at import time
load_dotenv()

from sonic.errors import register_exception_handlers  # noqa: E402
from sonic.middleware.rate_limit import RateLimitMiddleware  # noqa: E402
from sonic.routes import ai, auth, payments, projects, users  # noqa: E402

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    from sonic.database import init_db
    init_db()
    from sonic.conversation.project_store import SQLProjectStore
    app.state.project_store = SQLProjectStore()
    yield


def create_app() -> FastAPI:
    app = FastAPI(
        title="Sonic API",
        description="Describe a web app, get a React project",
        version="0.1.0",
        lifespan=lifespan,
    )

    # CORS: allow frontend origins
    _frontend_url = os.getenv("FRONTEND_URL")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[_frontend_url] if _frontend_url else [],
        allow_origin_regex=r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$",
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # 60 req/min general, 10 req/min for AI, 5 req/min for auth
    app.add_middleware(RateLimitMiddleware, requests_per_minute=60, ai_requests_per_minute=10)

    register_exception_handlers(app)

    app.include_router(ai.router, prefix="/api", tags=["AI"])
    app.include_router(projects.router, prefix="/api", tags=["Projects"])
    app.include_router(auth.router, prefix="/api", tags=["Auth"])
    app.include_router(users.router, prefix="/api", tags=["Users"])
    app.include_router(payments.router, prefix="/api", tags=["Payments"])

    @app.get("/api/health")
    async def health_check():
        return {"status": "healthy", "service": "sonic-backend"}

    return app


app = create_app()
