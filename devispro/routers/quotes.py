# devispro/routers/quotes.py
from fastapi import APIRouter, Depends, Response

from devispro.dependencies import get_current_user
from devispro.models import User
from devispro.schemas import QuoteIn, QuoteStatusIn
from devispro.services import quote_persistence
from devispro.services.pdf_service import export_quote_pdf

router = APIRouter(prefix="/quotes", tags=["quotes"])


@router.post("")
def submit_quote(payload: QuoteIn, user: User = Depends(get_current_user)):
    stored, remaining = quote_persistence.submit_quote(user, payload)
    return {
        "success": True,
        "quote": quote_persistence.serialize_quote(stored),
        "credits_remaining": remaining,
    }


@router.get("")
def list_quotes(user: User = Depends(get_current_user)):
    items = quote_persistence.list_quotes(user)
    return {"success": True, "quotes": [quote_persistence.serialize_quote(q) for q in items]}


@router.get("/{quote_id}")
def get_quote(quote_id: int, user: User = Depends(get_current_user)):
    stored = quote_persistence.get_quote(user, quote_id)
    return {"success": True, "quote": quote_persistence.serialize_quote(stored)}


@router.patch("/{quote_id}/status")
def update_status(quote_id: int, payload: QuoteStatusIn, user: User = Depends(get_current_user)):
    stored = quote_persistence.update_status(user, quote_id, payload.status)
    return {"success": True, "quote": quote_persistence.serialize_quote(stored)}


@router.get("/{quote_id}/pdf")
def download_pdf(quote_id: int, user: User = Depends(get_current_user)):
    stored = quote_persistence.get_quote(user, quote_id)
    export = export_quote_pdf(quote_persistence.to_document(stored))
    return Response(
        content=export.content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{export.filename}"'},
    )
