# devispro/main.py
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from devispro.config import DEFAULT_JWT_SECRET, settings
from devispro.db import init_db
from devispro.errors import register_exception_handlers
from devispro.routers import auth, account, billing, public, quotes, stripe_webhook

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

logger = logging.getLogger(__name__)


def warn_insecure_defaults() -> None:
    if settings.JWT_SECRET_KEY == DEFAULT_JWT_SECRET:
        logger.warning("JWT_SECRET_KEY non défini : clé par défaut, les jetons sont falsifiables")


warn_insecure_defaults()

app = FastAPI(title="DevisPro API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Création des tables si elles n'existent pas
init_db()


app.include_router(auth.router, prefix="/api")
app.include_router(account.router, prefix="/api")
app.include_router(quotes.router, prefix="/api")
app.include_router(billing.router, prefix="/api")
app.include_router(stripe_webhook.router, prefix="/api")  # => /api/stripe-webhook
app.include_router(public.router, prefix="/api")
