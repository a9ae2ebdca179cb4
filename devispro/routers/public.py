# devispro/routers/public.py
import logging
from datetime import datetime, timezone

from fastapi import APIRouter
from sqlalchemy import text

from devispro.config import settings
from devispro.db import engine

router = APIRouter(tags=["public"])
logger = logging.getLogger(__name__)


def _database_ok() -> bool:
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error("[health] base de données injoignable: %s", e)
        return False


@router.get("/health")
def health():
    db_ok = _database_ok()
    return {
        "status": "ok" if db_ok else "degraded",
        "database": "ok" if db_ok else "error",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/test")
def api_test():
    return {
        "success": True,
        "message": "API DevisPro opérationnelle",
        "database": settings.DATABASE_URL.split(":", 1)[0],
        "stripe_configured": bool(settings.STRIPE_SECRET_KEY),
        "webhook_configured": bool(settings.STRIPE_WEBHOOK_SECRET),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
