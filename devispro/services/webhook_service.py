# devispro/services/webhook_service.py
"""
Réconciliation des notifications Stripe avec les crédits / abonnements.

Stripe livre « au moins une fois » : chaque notification traitée est inscrite
dans payment_events, dans la même transaction que la mise à jour du compte.
Une référence déjà inscrite ne produit plus aucun effet.
"""
import json
import logging
from typing import Any, Dict, Optional

import stripe
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from devispro.config import settings
from devispro.db import get_session
from devispro.errors import PaymentProviderError
from devispro.models import PaymentEvent, User
from devispro.repositories import PaymentEventRepository, UserRepository

logger = logging.getLogger(__name__)

CHECKOUT_EVENTS = ("checkout.session.completed", "checkout.session.async_payment_succeeded")
PAID_STATUSES = ("paid", "no_payment_required")


def construct_event(payload: bytes, sig_header: str) -> Dict[str, Any]:
    """Vérifie la signature (NE PAS convertir le payload avant) puis décode l'évènement."""
    if not settings.STRIPE_WEBHOOK_SECRET:
        raise PaymentProviderError("Webhook non configuré", status_code=400)
    try:
        stripe.WebhookSignature.verify_header(
            payload.decode("utf-8"), sig_header or "", settings.STRIPE_WEBHOOK_SECRET,
            stripe.Webhook.DEFAULT_TOLERANCE,
        )
        event = json.loads(payload)
    except (stripe.SignatureVerificationError, ValueError) as e:
        logger.warning("[WEBHOOK] signature refusée: %s", e)
        raise PaymentProviderError(f"Webhook invalide: {e}", status_code=400)
    if not isinstance(event, dict) or "type" not in event:
        raise PaymentProviderError("Webhook invalide: évènement mal formé", status_code=400)
    return event


def _find_user(users: UserRepository, user_id: Optional[str], client_ref: Optional[str],
               customer_id: Optional[str], email: Optional[str]) -> Optional[User]:
    """Essaie (metadata user_id) puis (client_reference_id) puis (customer) puis (email)."""
    for ref in (user_id, client_ref):
        if ref and str(ref).isdigit():
            user = users.get(int(ref))
            if user:
                return user
    if customer_id:
        user = users.by_customer(customer_id)
        if user:
            return user
    if email:
        return users.by_email(email.lower())
    return None


def _apply_checkout(users: UserRepository, user: User, session: Dict[str, Any], event: PaymentEvent) -> None:
    metadata = session.get("metadata") or {}
    if session.get("customer"):
        user.stripe_customer_id = session["customer"]

    if session.get("mode") == "subscription":
        plan = (metadata.get("plan") or "").lower()
        if plan not in ("basic", "pro"):
            logger.warning("[WEBHOOK] plan inconnu '%s' pour la session %s", plan, session.get("id"))
            return
        quota = settings.plan_quota(plan)
        user.subscription_tier = plan
        user.unlimited_credits = quota is None
        if quota is not None:
            user.credits = quota
        if session.get("subscription"):
            user.stripe_subscription_id = session["subscription"]
        event.plan = plan
        logger.info("[WEBHOOK] User %s -> %s", user.email, plan)
    else:
        try:
            credits = int(metadata.get("credits") or 0)
        except (TypeError, ValueError):
            credits = 0
        if credits <= 0:
            logger.warning("[WEBHOOK] aucun crédit associé à la session %s", session.get("id"))
            return
        # un devis peut consommer un crédit pendant ce traitement
        users.add_credits(user.id, credits)
        event.credits_added = credits
        logger.info("[WEBHOOK] User %s +%s crédits", user.email, credits)


def _apply_cancellation(user: User, subscription: Dict[str, Any]) -> None:
    current = user.stripe_subscription_id
    if current and subscription.get("id") and subscription["id"] != current:
        # ancien abonnement remplacé : l'abonnement en cours reste actif
        logger.info("[WEBHOOK] %s résilié mais %s a l'abonnement %s, ignoré",
                    subscription["id"], user.email, current)
        return
    user.subscription_tier = "free"
    user.unlimited_credits = False
    user.stripe_subscription_id = None
    logger.info("[WEBHOOK] Abonnement résilié -> %s repasse en free", user.email)


def _commit_once(s: Session, event: PaymentEvent) -> bool:
    PaymentEventRepository(s).record(event)
    try:
        s.commit()
    except IntegrityError:
        # livraison concurrente du même évènement
        s.rollback()
        logger.info("[WEBHOOK] %s déjà traité (course)", event.provider_ref)
        return False
    return True


def handle_payment_event(event: Dict[str, Any]) -> Dict[str, Any]:
    etype = event.get("type")
    obj = (event.get("data") or {}).get("object") or {}
    logger.info("[Stripe] event: %s (%s)", etype, event.get("id"))

    if etype in CHECKOUT_EVENTS:
        # idempotence sur l'id de session : completed et async_payment_succeeded
        # peuvent arriver pour la même session
        ref = obj.get("id") or event.get("id")
        if etype == "checkout.session.completed" and obj.get("payment_status") not in PAID_STATUSES:
            logger.info("[WEBHOOK] session %s en attente de paiement", ref)
            return {"received": True}
        metadata = obj.get("metadata") or {}
        email = obj.get("customer_email") or (obj.get("customer_details") or {}).get("email")
        lookup = (metadata.get("user_id"), obj.get("client_reference_id"), obj.get("customer"), email)
    elif etype == "customer.subscription.deleted":
        ref = event.get("id") or obj.get("id")
        lookup = ((obj.get("metadata") or {}).get("user_id"), None, obj.get("customer"), None)
    else:
        return {"received": True}

    if not ref:
        logger.warning("[WEBHOOK] évènement %s sans identifiant, ignoré", etype)
        return {"received": True}

    with get_session() as s:
        events = PaymentEventRepository(s)
        if events.exists(ref):
            logger.info("[WEBHOOK] %s déjà traité, ignoré", ref)
            return {"received": True, "duplicate": True}

        users = UserRepository(s)
        user = _find_user(users, *lookup)
        if not user:
            logger.warning("[WEBHOOK] Aucun user trouvé pour %s", ref)
            return {"received": True}

        record = PaymentEvent(provider_ref=ref, event_type=etype, user_id=user.id)
        if etype in CHECKOUT_EVENTS:
            _apply_checkout(users, user, obj, record)
        else:
            _apply_cancellation(user, obj)
        users.add(user)

        if not _commit_once(s, record):
            return {"received": True, "duplicate": True}

    return {"received": True}
