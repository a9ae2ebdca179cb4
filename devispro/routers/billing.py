# devispro/routers/billing.py
from fastapi import APIRouter, Depends

from devispro.dependencies import get_current_user
from devispro.models import User
from devispro.schemas import CheckoutIn
from devispro.services import billing_service

router = APIRouter(tags=["billing"])


@router.post("/create-checkout-session")
def create_checkout_session(payload: CheckoutIn, user: User = Depends(get_current_user)):
    session = billing_service.create_checkout_session(
        user,
        payload.priceId,
        success_url=payload.successUrl,
        cancel_url=payload.cancelUrl,
        metadata=payload.metadata,
    )
    return {"success": True, **session}


@router.post("/billing-portal")
def create_billing_portal_session(user: User = Depends(get_current_user)):
    return {"success": True, "url": billing_service.create_portal_session(user)}
