# backend/farmflow/main.py
import logging
import os
from typing import List

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import models  # noqa: F401  registers all tables

from .apps.accounts.router_public import router as accounts_public_router
from .apps.accounts.router_modules import router as tenant_modules_router
from .apps.accounts.router_modules import user_modules_router
from .apps.audit.router import router as audit_router
from .apps.inventory.router import inventory_router, transactions_router

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


def _allowed_origins() -> List[str]:
    """Comma-separated CORS_ALLOWED_ORIGINS, or the local dashboard dev servers."""
    origins = [origin.strip() for origin in os.getenv("CORS_ALLOWED_ORIGINS", "").split(",")]
    origins = [origin for origin in origins if origin]
    return origins or [
        "http://127.0.0.1:5173",
        "http://localhost:5173",
        "http://localhost:3000",
    ]


app = FastAPI(title="FarmFlow API", version="1.0.0")
cors_origins = _allowed_origins()
allow_credentials = "*" not in cors_origins

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/", tags=["health"])
def read_root():
    return {"status": "ok", "message": "FarmFlow backend is running"}


@app.get("/health", tags=["health"])
def health():
    return {"status": "ok"}


app.include_router(accounts_public_router)
app.include_router(tenant_modules_router)
app.include_router(user_modules_router)
app.include_router(audit_router)
app.include_router(inventory_router)
app.include_router(transactions_router)
