# devispro/services/billing_service.py
import logging
from typing import Any, Dict, Optional

import stripe

from devispro.config import settings
from devispro.db import get_session
from devispro.errors import NotFoundError, PaymentProviderError, ValidationError
from devispro.models import User
from devispro.repositories import UserRepository

logger = logging.getLogger(__name__)

# clés de metadata posées par le serveur, jamais surchargées par le client
RESERVED_METADATA = ("user_id", "price_id", "plan", "credits")


def _stripe():
    if not settings.STRIPE_SECRET_KEY:
        raise PaymentProviderError("STRIPE_SECRET_KEY manquant", status_code=500)
    stripe.api_key = settings.STRIPE_SECRET_KEY
    return stripe


def ensure_customer(user_id: int) -> str:
    """Récupère/assure le customer_id Stripe de l'utilisateur (créé une seule fois)."""
    client = _stripe()
    with get_session() as s:
        users = UserRepository(s)
        me = users.get(user_id)
        if not me:
            raise NotFoundError("Utilisateur introuvable")
        if me.stripe_customer_id:
            return me.stripe_customer_id

        try:
            # essaie de retrouver par email
            existing = client.Customer.list(email=me.email, limit=1).data
            if existing:
                cid = existing[0].id
            else:
                cid = client.Customer.create(
                    email=me.email,
                    name=f"{me.first_name} {me.last_name}".strip(),
                    metadata={"user_id": str(me.id)},
                ).id
        except stripe.StripeError as e:
            logger.error("[Stripe] client introuvable/non créé pour %s: %s", me.email, e)
            raise PaymentProviderError("Impossible de créer le client de paiement")

        me.stripe_customer_id = cid
        users.add(me)
        s.commit()
    return cid


def _resolve_product(price) -> Dict[str, str]:
    """Ce que le prix achète : {"plan": ...} ou {"credits": ...}."""
    known = settings.price_catalog().get(price.id)
    if known:
        return {k: str(v) for k, v in known.items()}

    meta = getattr(price, "metadata", None) or {}
    if hasattr(meta, "to_dict"):
        meta = meta.to_dict()
    plan = (meta.get("plan") or "").lower()
    if plan in ("basic", "pro"):
        return {"plan": plan}
    try:
        credits = int(meta.get("credits") or 0)
    except (TypeError, ValueError):
        credits = 0
    if credits > 0:
        return {"credits": str(credits)}
    raise ValidationError("Prix inconnu : aucun plan ni pack de crédits associé")


def create_checkout_session(
    user: User,
    price_id: Optional[str],
    success_url: Optional[str] = None,
    cancel_url: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> Dict[str, str]:
    price_id = (price_id or "").strip()
    if not price_id:
        raise ValidationError("priceId manquant")
    if not price_id.startswith("price_"):
        raise ValidationError("priceId invalide")

    client = _stripe()
    try:
        price = client.Price.retrieve(price_id)
    except stripe.InvalidRequestError as e:
        logger.info("[Stripe] prix %s refusé: %s", price_id, e)
        raise ValidationError("priceId invalide")
    except stripe.StripeError as e:
        logger.error("[Stripe] lecture du prix %s impossible: %s", price_id, e)
        raise PaymentProviderError("Erreur du prestataire de paiement")

    mode = "subscription" if getattr(price, "type", None) == "recurring" else "payment"
    product = _resolve_product(price)
    if mode == "subscription" and "plan" not in product:
        raise ValidationError("Ce prix récurrent ne correspond à aucun abonnement")
    if mode == "payment" and "credits" not in product:
        raise ValidationError("Ce prix ponctuel ne correspond à aucun pack de crédits")

    customer_id = ensure_customer(user.id)

    session_metadata = {
        str(k): str(v) for k, v in (metadata or {}).items() if k not in RESERVED_METADATA
    }
    session_metadata.update({"user_id": str(user.id), "price_id": price_id, **product})

    params: Dict[str, Any] = dict(
        mode=mode,
        customer=customer_id,
        line_items=[{"price": price_id, "quantity": 1}],
        client_reference_id=str(user.id),
        metadata=session_metadata,
        success_url=success_url or settings.STRIPE_SUCCESS_URL,
        cancel_url=cancel_url or settings.STRIPE_CANCEL_URL,
        allow_promotion_codes=True,
    )
    if mode == "subscription":
        # pour retrouver l'utilisateur lors de la résiliation
        params["subscription_data"] = {"metadata": session_metadata}

    try:
        session = client.checkout.Session.create(**params)
    except stripe.StripeError as e:
        logger.error("[Stripe] création de session impossible pour user %s: %s", user.id, e)
        raise PaymentProviderError("Erreur lors de la création du paiement")

    logger.info("[Stripe] session %s créée (mode=%s, user=%s)", session.id, mode, user.id)
    return {"url": session.url, "sessionId": session.id, "mode": mode}


def create_portal_session(user: User) -> str:
    customer_id = ensure_customer(user.id)
    try:
        session = _stripe().billing_portal.Session.create(
            customer=customer_id,
            return_url=f"{settings.FRONTEND_BASE_URL}/account.html",
        )
    except stripe.StripeError as e:
        logger.error("[Stripe] portail indisponible pour user %s: %s", user.id, e)
        raise PaymentProviderError("Portail de facturation indisponible")
    return session.url
