# devispro/services/quote_persistence.py
import logging
from datetime import date
from typing import List, Optional, Tuple

from sqlalchemy.exc import IntegrityError

from devispro.db import get_session
from devispro.errors import ConflictError, NotFoundError, QuotaExceededError, ValidationError
from devispro.models import QUOTE_STATUSES, StoredQuote, User, utcnow
from devispro.repositories import QuoteRepository, UserRepository
from devispro.schemas import ClientInfo, Company, Quote, QuoteDetails, QuoteIn
from devispro.services.quote_service import ensure_line_ids, generate_quote_number, recompute

logger = logging.getLogger(__name__)

QUOTA_MESSAGE = "Crédits épuisés : passez à un abonnement pour créer de nouveaux devis."


def _company_from_profile(user: User) -> Company:
    return Company(
        name=user.company_name,
        address=user.address,
        siret=user.siret,
        email=user.email,
        phone=user.phone,
    )


def serialize_quote(q: StoredQuote) -> dict:
    return {
        "id": q.id,
        "quote_number": q.quote_number,
        "client_name": q.client_name,
        "client_email": q.client_email,
        "client_address": q.client_address,
        "company": q.company,
        "quote_date": q.quote_date,
        "validity_date": q.validity_date,
        "notes": q.notes,
        "services": q.services,
        "totals": {"ht": q.total_ht, "tva": q.total_tva, "ttc": q.total_ttc},
        "status": q.status,
        "created_at": q.created_at.isoformat() if q.created_at else None,
        "updated_at": q.updated_at.isoformat() if q.updated_at else None,
    }


def _remaining(user: Optional[User]) -> Optional[int]:
    if user is None or user.unlimited_credits:
        return None
    return user.credits


def submit_quote(user: User, payload: QuoteIn) -> Tuple[StoredQuote, Optional[int]]:
    client_name = (payload.client_name or "").strip()
    if not client_name:
        raise ValidationError("client_name manquant")
    if payload.status not in QUOTE_STATUSES:
        raise ValidationError(f"Statut invalide : {payload.status}")

    # les totaux envoyés par le client ne sont jamais repris
    document = Quote(
        id=(payload.quote_number or "").strip() or generate_quote_number(),
        client=ClientInfo(name=client_name, address=payload.client_address, email=payload.client_email),
        services=payload.services,
    )
    ensure_line_ids(document)
    totals = recompute(document)

    with get_session() as s:
        users = UserRepository(s)
        quotes = QuoteRepository(s)
        me = users.get(user.id)
        if not me:
            raise NotFoundError("Utilisateur introuvable")

        if me.subscription_tier == "free":
            # lecture + décrément en une seule requête conditionnelle
            if not users.consume_credit(me.id):
                logger.info("Quota atteint pour %s", me.email)
                raise QuotaExceededError(QUOTA_MESSAGE)

        if payload.quote_number and quotes.number_taken(document.id):
            s.rollback()
            raise ConflictError(f"Numéro de devis déjà utilisé : {document.id}")

        stored = StoredQuote(
            user_id=me.id,
            quote_number=document.id,
            client_name=client_name,
            client_email=payload.client_email,
            client_address=payload.client_address,
            company=(payload.company or _company_from_profile(me)).model_dump(),
            quote_date=payload.quote_date or date.today().isoformat(),
            validity_date=payload.validity_date,
            notes=payload.notes,
            services=[item.model_dump(mode="json", by_alias=True) for item in document.services],
            total_ht=totals.ht,
            total_tva=totals.tva,
            total_ttc=totals.ttc,
            status=payload.status,
        )
        quotes.add(stored)
        try:
            s.commit()
        except IntegrityError:
            s.rollback()
            raise ConflictError(f"Numéro de devis déjà utilisé : {document.id}")
        s.refresh(stored)
        s.refresh(me)
        remaining = _remaining(me)

    logger.info("Devis %s enregistré pour %s (crédits restants: %s)", stored.quote_number, user.email, remaining)
    return stored, remaining


def list_quotes(user: User) -> List[StoredQuote]:
    with get_session() as s:
        return QuoteRepository(s).list_for_user(user.id)


def get_quote(user: User, quote_id: int) -> StoredQuote:
    with get_session() as s:
        stored = QuoteRepository(s).get_for_user(quote_id, user.id)
    if not stored:
        raise NotFoundError("Devis introuvable")
    return stored


def update_status(user: User, quote_id: int, status: str) -> StoredQuote:
    if status not in QUOTE_STATUSES:
        raise ValidationError(f"Statut invalide : {status}")
    with get_session() as s:
        quotes = QuoteRepository(s)
        stored = quotes.get_for_user(quote_id, user.id)
        if not stored:
            raise NotFoundError("Devis introuvable")
        stored.status = status
        stored.updated_at = utcnow()
        quotes.add(stored)
        s.commit()
        s.refresh(stored)
    return stored


def to_document(stored: StoredQuote) -> Quote:
    """Reconstruit le document devis (pour l'export PDF)."""
    quote = Quote.model_validate({
        "id": stored.quote_number,
        "company": Company.model_validate(stored.company or {}),
        "client": ClientInfo(name=stored.client_name, address=stored.client_address, email=stored.client_email),
        "details": QuoteDetails(
            number=stored.quote_number,
            date=stored.quote_date or "",
            validity=stored.validity_date or "",
            notes=stored.notes or "",
        ),
        "services": stored.services or [],
    })
    ensure_line_ids(quote)
    recompute(quote)
    return quote
