# devispro/routers/stripe_webhook.py
from fastapi import APIRouter, Request

from devispro.services.webhook_service import construct_event, handle_payment_event

router = APIRouter(tags=["stripe"])


@router.post("/stripe-webhook")
async def stripe_webhook(request: Request):
    # 1) Vérification de signature sur le corps brut
    payload = await request.body()
    event = construct_event(payload, request.headers.get("Stripe-Signature", ""))
    # 2) Mise à jour des crédits / abonnements
    return handle_payment_event(event)
