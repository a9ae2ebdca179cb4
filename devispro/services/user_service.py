# devispro/services/user_service.py
import logging
from typing import Optional, Tuple

import stripe
from sqlalchemy.exc import IntegrityError

from devispro.config import settings
from devispro.db import get_session
from devispro.errors import AuthError, ConflictError, NotFoundError, ValidationError
from devispro.models import User
from devispro.repositories import UserRepository
from devispro.schemas import RegisterIn
from devispro.services.auth_service import (
    hash_password, verify_password, create_access_token, verify_token
)

logger = logging.getLogger(__name__)

BAD_CREDENTIALS = "Email ou mot de passe incorrect"


def serialize_user(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "firstName": user.first_name,
        "lastName": user.last_name,
        "companyName": user.company_name,
        "phone": user.phone,
        "address": user.address,
        "siret": user.siret,
        "credits": user.credits,
        "subscriptionTier": user.subscription_tier,
        "unlimitedCredits": user.unlimited_credits,
        "createdAt": user.created_at.isoformat() if user.created_at else None,
    }


def _clean(value: Optional[str]) -> str:
    return (value or "").strip()


def _provision_customer(user: User) -> Optional[str]:
    """Crée le client Stripe ; un échec n'empêche jamais l'inscription."""
    if not settings.STRIPE_SECRET_KEY:
        return None
    try:
        stripe.api_key = settings.STRIPE_SECRET_KEY
        customer = stripe.Customer.create(
            email=user.email,
            name=f"{user.first_name} {user.last_name}".strip(),
            metadata={"user_id": str(user.id)},
        )
        return customer.id
    except Exception as e:
        logger.warning("[Stripe] création du client impossible pour %s: %s", user.email, e)
        return None


def register_user(payload: RegisterIn) -> Tuple[str, User]:
    email = _clean(payload.email).lower()
    password = payload.password or ""
    first_name = _clean(payload.firstName)
    last_name = _clean(payload.lastName)

    if not email or not password or not first_name or not last_name:
        raise ValidationError("Champs obligatoires manquants : email, password, firstName, lastName")
    if "@" not in email:
        raise ValidationError("Adresse email invalide")

    with get_session() as s:
        users = UserRepository(s)
        if users.by_email(email):
            raise ConflictError("Email déjà utilisé")
        user = User(
            email=email,
            hashed_password=hash_password(password),
            first_name=first_name,
            last_name=last_name,
            company_name=_clean(payload.companyName),
            phone=_clean(payload.phone),
            address=_clean(payload.address),
            siret=_clean(payload.siret),
            credits=settings.FREE_CREDITS,
            subscription_tier="free",
        )
        users.add(user)
        try:
            s.commit()
        except IntegrityError:
            s.rollback()
            raise ConflictError("Email déjà utilisé")
        s.refresh(user)

        customer_id = _provision_customer(user)
        if customer_id:
            user.stripe_customer_id = customer_id
            users.add(user)
            s.commit()
            s.refresh(user)

    logger.info("Nouvel utilisateur %s (id=%s)", user.email, user.id)
    return create_access_token(user.id, user.email), user


def authenticate(email: Optional[str], password: Optional[str]) -> Tuple[str, User]:
    email = _clean(email).lower()
    if not email or not password:
        raise ValidationError("Email et mot de passe requis")

    with get_session() as s:
        user = UserRepository(s).by_email(email)
    if not user or not verify_password(password, user.hashed_password):
        raise AuthError(BAD_CREDENTIALS)
    return create_access_token(user.id, user.email), user


def get_user_from_token(token: str) -> User:
    """
    Vérifie le jeton puis charge l'utilisateur correspondant.
    AuthError si le jeton est invalide ou expiré, NotFoundError si le compte n'existe plus.
    """
    claims = verify_token(token)
    if claims is None:
        raise AuthError("Jeton invalide ou expiré")
    with get_session() as s:
        user = UserRepository(s).get(claims["id"])
    if not user:
        raise NotFoundError("Utilisateur introuvable")
    return user
