import os

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.orm import Session

from inboxpilot.config import settings
from inboxpilot.database import get_db
from inboxpilot.logging_config import setup_logging
from inboxpilot.routers import admin, threads, usage, webhook
from inboxpilot.services.business_context import BusinessContextCache

setup_logging(settings.log_level)

app = FastAPI(
    title="InboxPilot API",
    description="WhatsApp and Instagram ingestion, lead capture and auto-replies",
    version="0.1.0",
)

cors_env = os.environ.get("CORS_ALLOW_ORIGINS", "*")
cors_origins = [origin.strip() for origin in cors_env.split(",") if origin.strip()] or ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.state.context_cache = BusinessContextCache(ttl_seconds=settings.context_cache_ttl_seconds)

app.include_router(webhook.router)
app.include_router(usage.router)
app.include_router(admin.router)
app.include_router(threads.router)


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/db-check")
def db_check(db: Session = Depends(get_db)):
    db.execute(text("SELECT 1"))
    return {"status": "ok"}
