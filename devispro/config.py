# devispro/config.py
import os
from dotenv import load_dotenv

load_dotenv()  # utile en local; en prod les variables viennent de l'hébergeur

DEFAULT_JWT_SECRET = "change-me"


def _csv(value: str) -> list[str]:
    return [v.strip() for v in value.split(",") if v.strip()]


class Settings:
    # Base de données (SQLite par défaut, MySQL/PostgreSQL via l'URL)
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./devispro.db")
    DATABASE_ECHO: bool = os.getenv("DATABASE_ECHO", "0") == "1"

    # Auth/JWT
    JWT_SECRET_KEY: str = os.getenv("JWT_SECRET_KEY", DEFAULT_JWT_SECRET)
    JWT_ALGORITHM: str = os.getenv("JWT_ALGORITHM", "HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 60 * 24 * 30))

    # Crédits
    FREE_CREDITS: int = int(os.getenv("FREE_CREDITS", 3))
    BASIC_PLAN_CREDITS: int = int(os.getenv("BASIC_PLAN_CREDITS", 30))

    # Stripe
    STRIPE_SECRET_KEY: str = os.getenv("STRIPE_SECRET_KEY", "")
    STRIPE_WEBHOOK_SECRET: str = os.getenv("STRIPE_WEBHOOK_SECRET", "")
    STRIPE_PRICE_BASIC: str = os.getenv("STRIPE_PRICE_BASIC", "")
    STRIPE_PRICE_PRO: str = os.getenv("STRIPE_PRICE_PRO", "")
    STRIPE_PRICE_CREDITS_25: str = os.getenv("STRIPE_PRICE_CREDITS_25", "")

    # Frontend
    FRONTEND_BASE_URL: str = os.getenv("FRONTEND_BASE_URL", "http://localhost:3000")
    STRIPE_SUCCESS_URL: str = os.getenv(
        "STRIPE_SUCCESS_URL",
        FRONTEND_BASE_URL + "/success.html?session_id={CHECKOUT_SESSION_ID}"
    )
    STRIPE_CANCEL_URL: str = os.getenv(
        "STRIPE_CANCEL_URL",
        FRONTEND_BASE_URL + "/pricing.html?cancelled=true"
    )
    ALLOWED_ORIGINS: list[str] = _csv(
        os.getenv("ALLOWED_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000")
    )

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    def plan_quota(self, tier: str):
        """Crédits accordés par un abonnement ; None = illimité."""
        if tier == "pro":
            return None
        if tier == "basic":
            return self.BASIC_PLAN_CREDITS
        return self.FREE_CREDITS

    def price_catalog(self) -> dict[str, dict]:
        catalog = {}
        if self.STRIPE_PRICE_BASIC:
            catalog[self.STRIPE_PRICE_BASIC] = {"plan": "basic"}
        if self.STRIPE_PRICE_PRO:
            catalog[self.STRIPE_PRICE_PRO] = {"plan": "pro"}
        if self.STRIPE_PRICE_CREDITS_25:
            catalog[self.STRIPE_PRICE_CREDITS_25] = {"credits": 25}
        return catalog


settings = Settings()
