# src/hauntscore/api/app.py
"""
FastAPI application wiring.

This file creates the `FastAPI` instance and ties the refresh manager's lifetime
to the app's. Business logic lives in `hauntscore.api.routes` and `hauntscore.rating`.
"""

from __future__ import annotations

import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware

from hauntscore.core.logging import configure_logging

from .routes import router, shutdown_runtime

configure_logging()


@asynccontextmanager
async def lifespan(_app: FastAPI):
    yield
    # Cancel every refresh timer before the process exits.
    shutdown_runtime()


app = FastAPI(title="HauntScore API", version="0.1.0", lifespan=lifespan)

# CORS (dev-friendly): allow a local map frontend to call this API.
# Configure via env:
# - HAUNTSCORE_CORS_ORIGINS="http://localhost:5173,http://127.0.0.1:5173"
# - HAUNTSCORE_CORS_ALLOW_LOCAL=0 to disable the default localhost allowance
cors_origins = [s.strip() for s in os.getenv("HAUNTSCORE_CORS_ORIGINS", "").split(",") if s.strip()]
cors_allow_local = os.getenv("HAUNTSCORE_CORS_ALLOW_LOCAL", "1").strip().lower() in {"1", "true", "yes", "y"}
cors_origin_regex = r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$" if cors_allow_local and not cors_origins else ""
if cors_origins or cors_origin_regex:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_origin_regex=cors_origin_regex or None,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.include_router(router)
