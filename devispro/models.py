# devispro/models.py
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any

from sqlmodel import Field, SQLModel
from sqlalchemy import Column, DateTime, String, Text, JSON

SUBSCRIPTION_TIERS = ("free", "basic", "pro")
QUOTE_STATUSES = ("draft", "sent", "paid", "cancelled")


def utcnow() -> datetime:
    """Horodatage UTC avec fuseau (les colonnes sont en timezone=True)."""
    return datetime.now(timezone.utc)


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(
        sa_column=Column(String(255), unique=True, index=True, nullable=False)
    )
    hashed_password: str = Field(nullable=False)
    first_name: str = ""
    last_name: str = ""
    company_name: str = ""
    phone: str = ""
    address: str = ""
    siret: str = ""
    credits: int = Field(default=3, nullable=False)
    subscription_tier: str = Field(default="free", nullable=False)  # "free" | "basic" | "pro"
    unlimited_credits: bool = Field(default=False, nullable=False)
    stripe_customer_id: Optional[str] = Field(default=None, index=True)
    stripe_subscription_id: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))


class StoredQuote(SQLModel, table=True):
    __tablename__ = "quotes"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    quote_number: str = Field(
        sa_column=Column(String(64), unique=True, index=True, nullable=False)
    )
    client_name: str
    client_email: str = ""
    client_address: str = ""
    # snapshot de l'émetteur au moment de l'envoi
    company: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    quote_date: Optional[str] = None
    validity_date: Optional[str] = None
    notes: Optional[str] = Field(default=None, sa_column=Column(Text))
    services: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    total_ht: float = 0.0
    total_tva: float = 0.0
    total_ttc: float = 0.0
    status: str = Field(default="draft", nullable=False)  # draft | sent | paid | cancelled
    created_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))


class PaymentEvent(SQLModel, table=True):
    """Journal append-only des notifications Stripe déjà traitées."""
    __tablename__ = "payment_events"

    id: Optional[int] = Field(default=None, primary_key=True)
    # id de session Checkout ou id d'évènement Stripe
    provider_ref: str = Field(
        sa_column=Column(String(255), unique=True, index=True, nullable=False)
    )
    event_type: str
    user_id: Optional[int] = Field(default=None, foreign_key="users.id", index=True)
    plan: Optional[str] = None
    credits_added: int = 0
    created_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
