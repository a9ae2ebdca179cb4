# devispro/schemas.py
import math
import time
import datetime
from typing import Optional, List, Any, Dict

from pydantic import BaseModel, ConfigDict, Field, AliasChoices, field_validator

TVA_RATES = (0.0, 5.5, 10.0, 20.0)


def _as_number(value: Any) -> float:
    """Lit un nombre saisi dans un formulaire ; tout ce qui n'est pas numérique vaut 0."""
    if isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(number) or math.isinf(number):
        return 0.0
    return number


def now_ms() -> int:
    return int(time.time() * 1000)


# ---------- Document devis ----------
class Company(BaseModel):
    name: str = ""
    address: str = ""
    siret: str = ""
    email: str = ""
    phone: str = ""


class ClientInfo(BaseModel):
    name: str = ""
    address: str = ""
    email: str = ""


class QuoteDetails(BaseModel):
    number: str = ""
    date: str = ""
    validity: str = ""
    notes: str = ""


class LineItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int = Field(default_factory=now_ms)
    description: str = ""
    quantity: float = 1.0
    price: float = 0.0
    # l'ancien front stockait le taux sous la clé "tva"
    tva_rate: float = Field(
        default=20.0,
        validation_alias=AliasChoices("tvaRate", "tva_rate", "tva"),
        serialization_alias="tvaRate",
    )
    ht: float = 0.0
    total: float = 0.0

    @field_validator("description", mode="before")
    @classmethod
    def _description(cls, v):
        return "" if v is None else str(v)

    @field_validator("quantity", "price", mode="before")
    @classmethod
    def _non_negative(cls, v):
        number = _as_number(v)
        if number < 0:
            raise ValueError("doit être positif ou nul")
        return number

    @field_validator("tva_rate", mode="before")
    @classmethod
    def _tva_rate(cls, v):
        number = _as_number(v)
        if number not in TVA_RATES:
            raise ValueError(f"taux de TVA non supporté: {v}")
        return number


class Totals(BaseModel):
    ht: float = 0.0
    tva: float = 0.0
    ttc: float = 0.0


class Quote(BaseModel):
    id: str
    date: datetime.date = Field(default_factory=datetime.date.today)
    company: Company = Field(default_factory=Company)
    client: ClientInfo = Field(default_factory=ClientInfo)
    details: QuoteDetails = Field(default_factory=QuoteDetails)
    services: List[LineItem] = Field(default_factory=list)
    totals: Totals = Field(default_factory=Totals)

    @property
    def number(self) -> str:
        return self.details.number or self.id

    def to_storage(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


# ---------- API ----------
class RegisterIn(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None
    firstName: Optional[str] = None
    lastName: Optional[str] = None
    companyName: Optional[str] = ""
    phone: Optional[str] = ""
    address: Optional[str] = ""
    siret: Optional[str] = ""


class LoginIn(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class CheckoutIn(BaseModel):
    priceId: Optional[str] = None
    successUrl: Optional[str] = Field(default=None, validation_alias=AliasChoices("successUrl", "success_url"))
    cancelUrl: Optional[str] = Field(default=None, validation_alias=AliasChoices("cancelUrl", "cancel_url"))
    metadata: Dict[str, Any] = Field(default_factory=dict)


class QuoteIn(BaseModel):
    client_name: Optional[str] = None
    client_email: str = ""
    client_address: str = ""
    quote_number: Optional[str] = None
    quote_date: Optional[str] = None
    validity_date: Optional[str] = None
    notes: Optional[str] = None
    company: Optional[Company] = None
    services: List[LineItem] = Field(default_factory=list)
    # ignoré : les totaux sont recalculés côté serveur
    totals: Optional[Dict[str, Any]] = None
    status: str = "draft"


class QuoteStatusIn(BaseModel):
    status: str
