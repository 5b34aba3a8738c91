import os

from fastapi import Depends, FastAPI
from sqlalchemy.orm import Session

from whatsapp_agent.config import settings
from whatsapp_agent.database import get_db, init_db
from whatsapp_agent.logging_config import get_logger, setup_logging
from whatsapp_agent.models import Message, User
from whatsapp_agent.routers import admin, webhook

setup_logging(settings.log_level)

logger = get_logger("main")

app = FastAPI(
    title="WhatsApp Agent API",
    description="Moderated, context-aware AI replies for WhatsApp messages",
    version="0.1.0",
)

app.include_router(webhook.router)
app.include_router(admin.router)


def _is_env_enabled(value: str | None, default: bool = True) -> bool:
    if value is None:
        return default
    return value.strip().lower() not in {"0", "false", "no", "off"}


@app.on_event("startup")
def create_tables() -> None:
    if not _is_env_enabled(os.environ.get("DB_INIT_ON_STARTUP"), default=True):
        return
    init_db()
    logger.info("Startup complete")


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/db-check")
def db_check(db: Session = Depends(get_db)):
    return {
        "status": "ok",
        "users": db.query(User).count(),
        "messages": db.query(Message).count(),
    }
