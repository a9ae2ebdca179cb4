# devispro/services/quote_service.py
"""
Opérations sur le document devis : lignes de prestation et calcul des totaux.

Le devis est toujours passé explicitement ; chaque mutation recalcule les
totaux avant de rendre la main.
"""
import uuid
from datetime import date, timedelta
from typing import Any, Dict, Optional

from devispro.schemas import Quote, LineItem, Totals, Company, QuoteDetails, now_ms


def generate_quote_number(today: Optional[date] = None) -> str:
    year = (today or date.today()).year
    return f"DEV-{year}-{uuid.uuid4().hex[:8].upper()}"


def new_quote(company: Optional[Company] = None, today: Optional[date] = None) -> Quote:
    today = today or date.today()
    number = generate_quote_number(today)
    quote = Quote(
        id=number,
        date=today,
        company=company or Company(),
        details=QuoteDetails(
            number=number,
            date=today.isoformat(),
            validity=(today + timedelta(days=7)).isoformat(),
        ),
    )
    recompute(quote)
    return quote


_FIELD_ALIASES = {"tva_rate": "tvaRate", "tva": "tvaRate"}


def _line_values(item: LineItem) -> tuple[float, float, float]:
    ht = item.quantity * item.price
    tax = ht * (item.tva_rate / 100)
    return ht, tax, ht + tax


def recompute(quote: Quote) -> Totals:
    total_ht = 0.0
    total_tva = 0.0
    for item in quote.services:
        ht, tax, total = _line_values(item)
        item.ht = ht
        item.total = total
        total_ht += ht
        total_tva += tax
    quote.totals = Totals(ht=total_ht, tva=total_tva, ttc=total_ht + total_tva)
    return quote.totals


def _next_id(quote: Quote) -> int:
    candidate = now_ms()
    taken = [s.id for s in quote.services]
    if taken and candidate <= max(taken):
        candidate = max(taken) + 1
    return candidate


def ensure_line_ids(quote: Quote) -> None:
    """Rend les identifiants de ligne uniques ; les lignes validées en lot partagent la même milliseconde."""
    seen = set()
    spare = max((s.id for s in quote.services), default=0) + 1
    for item in quote.services:
        if item.id in seen:
            item.id = spare
            spare += 1
        seen.add(item.id)


def add_line_item(quote: Quote, **fields: Any) -> LineItem:
    fields.pop("id", None)
    item = LineItem.model_validate({"id": _next_id(quote), **fields})
    quote.services.append(item)
    recompute(quote)
    return item


def update_line_item(quote: Quote, item_id: int, fields: Dict[str, Any]) -> Optional[LineItem]:
    for index, item in enumerate(quote.services):
        if item.id != item_id:
            continue
        data = item.model_dump(by_alias=True)
        for key, value in fields.items():
            if key in ("id", "ht", "total"):
                continue
            data[_FIELD_ALIASES.get(key, key)] = value
        # la revalidation lève si le nouveau taux / montant est refusé
        updated = LineItem.model_validate(data)
        quote.services[index] = updated
        recompute(quote)
        return updated
    return None


def remove_line_item(quote: Quote, item_id: int) -> bool:
    before = len(quote.services)
    quote.services = [s for s in quote.services if s.id != item_id]
    recompute(quote)
    return len(quote.services) != before
