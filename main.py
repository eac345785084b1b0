"""
Finance Analytics API — application entry point.
"""

from __future__ import annotations

import logging
import sys

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.middleware import register_exception_handlers, register_middleware
from api.transactions import router as transactions_router
from auth.routes import router as auth_router
from config.settings import config
from database.models import Base
from database.session import engine

logging.basicConfig(
    level=logging.DEBUG if config.debug else logging.INFO,
    format="%(asctime)s  %(levelname)-8s  %(name)s — %(message)s",
    stream=sys.stdout,
)
for _noisy in ("httpcore", "httpx", "asyncio", "sqlalchemy.engine", "aiosqlite"):
    logging.getLogger(_noisy).setLevel(logging.WARNING)
logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    app = FastAPI(
        title="Finance Analytics API",
        version="1.0.0",
        description="Personal finance tracking: accounts, sessions and transactions.",
    )

    # CORS (credentials allowed for the session cookie)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    register_middleware(app)
    register_exception_handlers(app)

    # Routes
    app.include_router(auth_router, prefix="/auth")
    app.include_router(transactions_router, prefix="/api/transactions")

    @app.get("/health", tags=["health"])
    async def health():
        return {"status": "ok"}

    @app.on_event("startup")
    async def on_startup():
        logger.info("Ensuring database tables exist…")
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        logger.info(
            "Session cookie %s (secure=%s, samesite=%s, domain=%s), token lifetime %ss",
            config.auth_cookie_name,
            config.cookie_secure,
            config.cookie_samesite,
            config.cookie_domain or "<host-only>",
            config.jwt_expiry_seconds,
        )
        logger.info("Application ready to accept requests.")

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=config.host,
        port=config.port,
        reload=config.debug,
        log_level="debug" if config.debug else "info",
    )
