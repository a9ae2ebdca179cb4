# devispro/services/quote_editor.py
import logging
from typing import Any, Dict, MutableMapping, Optional

from devispro.schemas import Quote, Company, LineItem, Totals
from devispro.services import quote_service
from devispro.services.pdf_service import PdfExport, export_quote_pdf
from devispro.services.quote_storage import QuoteStorage

logger = logging.getLogger(__name__)


class QuoteEditor:
    """
    Contrôleur du formulaire de devis.

    Détient le devis en cours ; le calcul et l'export le reçoivent en paramètre.
    """

    def __init__(self, store: MutableMapping, company: Optional[Company] = None):
        self.storage = QuoteStorage(store)
        self.quote = self.storage.load() or quote_service.new_quote(company)

    # ---------- champs ----------
    def set_company(self, **fields: Any) -> None:
        self.quote.company = self.quote.company.model_copy(update=fields)

    def set_client(self, **fields: Any) -> None:
        self.quote.client = self.quote.client.model_copy(update=fields)

    def set_details(self, **fields: Any) -> None:
        self.quote.details = self.quote.details.model_copy(update=fields)

    # ---------- prestations ----------
    def add_line_item(self, **fields: Any) -> LineItem:
        return quote_service.add_line_item(self.quote, **fields)

    def update_line_item(self, item_id: int, fields: Dict[str, Any]) -> Optional[LineItem]:
        return quote_service.update_line_item(self.quote, item_id, fields)

    def remove_line_item(self, item_id: int) -> bool:
        return quote_service.remove_line_item(self.quote, item_id)

    @property
    def totals(self) -> Totals:
        return self.quote.totals

    # ---------- actions ----------
    def save(self) -> bool:
        return self.storage.save(self.quote)

    def export_pdf(self) -> PdfExport:
        export = export_quote_pdf(self.quote)
        if export.degraded:
            logger.warning("Export PDF dégradé pour %s, devis non sauvegardé", self.quote.number)
        else:
            self.save()
        return export

    def reset(self) -> Quote:
        """Nouveau devis vierge ; l'émetteur est conservé."""
        self.quote = quote_service.new_quote(self.quote.company)
        self.add_line_item()
        return self.quote
