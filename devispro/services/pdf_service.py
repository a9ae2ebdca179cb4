# devispro/services/pdf_service.py
import logging
from dataclasses import dataclass
from datetime import datetime, date
from io import BytesIO
from typing import Optional

from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib import colors
from reportlab.lib.utils import simpleSplit
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont
from reportlab.pdfgen import canvas

from devispro.schemas import Quote
from devispro.services.quote_service import recompute

logger = logging.getLogger(__name__)


# Police UTF-8 si dispo
def _try_register_fonts():
    try:
        pdfmetrics.registerFont(TTFont("DejaVuSans", "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf"))
        pdfmetrics.registerFont(TTFont("DejaVuSans-Bold", "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf"))
        return "DejaVuSans", "DejaVuSans-Bold"
    except Exception:
        return "Helvetica", "Helvetica-Bold"


FONT_REGULAR, FONT_BOLD = _try_register_fonts()

GREEN = colors.HexColor("#10b981")
GREEN_DARK = colors.HexColor("#055e46")
GREEN_LIGHT = colors.HexColor("#f0fdf4")
ROW_SHADE = colors.HexColor("#f8fafc")
GREY = colors.HexColor("#969696")
LINE_GREY = colors.HexColor("#c8c8c8")

PAGE_W, PAGE_H = A4
MARGIN = 15  # mm
CONTENT_W = PAGE_W / mm - 2 * MARGIN
# positions en mm depuis le haut de la page
HEADER_H = 40
PAGE_BOTTOM = 250
FOOTER_Y = 280
CONTINUATION_TOP = 20
ROW_H = 8
COL_WIDTHS = (80, 20, 30, 25, 30)
COL_TITLES = ("DESCRIPTION", "QTÉ", "PRIX UNIT.", "TVA", "TOTAL")


@dataclass
class PdfExport:
    content: bytes
    filename: str
    pages: int
    degraded: bool = False


def pdf_filename(quote: Quote) -> str:
    return f"devis-{quote.number}.pdf"


def _money(value: float) -> str:
    return f"{value:.2f} €"


def _number(value: float) -> str:
    return f"{value:g}"


def _display_date(value: str) -> str:
    if not value:
        return date.today().strftime("%d/%m/%Y")
    try:
        return date.fromisoformat(value).strftime("%d/%m/%Y")
    except ValueError:
        return value


def _fit(text: str, font: str, size: float, width_mm: float) -> str:
    """Tronque le texte pour qu'il tienne dans la colonne."""
    max_w = width_mm * mm
    if pdfmetrics.stringWidth(text, font, size) <= max_w:
        return text
    while text and pdfmetrics.stringWidth(text + "…", font, size) > max_w:
        text = text[:-1]
    return text + "…"


class _QuoteCanvas:
    """Curseur vertical en mm depuis le haut, comme sur un formulaire papier."""

    def __init__(self, buf: BytesIO, quote: Quote, generated_at: datetime):
        self.c = canvas.Canvas(buf, pagesize=A4)
        self.c.setTitle(f"Devis {quote.number}")
        self.quote = quote
        self.generated_at = generated_at
        self.y = 0.0

    def _y(self, top_mm: float) -> float:
        return PAGE_H - top_mm * mm

    def text(self, x_mm: float, top_mm: float, value: str, right: bool = False):
        if right:
            self.c.drawRightString(x_mm * mm, self._y(top_mm), value)
        else:
            self.c.drawString(x_mm * mm, self._y(top_mm), value)

    def font(self, name: str, size: float, color=colors.black):
        self.c.setFont(name, size)
        self.c.setFillColor(color)

    # ---------- sections ----------
    def header(self):
        q = self.quote
        self.c.setFillColor(GREEN)
        self.c.rect(0, self._y(HEADER_H), PAGE_W, HEADER_H * mm, fill=True, stroke=False)
        self.font(FONT_BOLD, 28, colors.white)
        self.text(MARGIN, 25, "DEVIS")
        self.font(FONT_BOLD, 12, colors.white)
        self.text(MARGIN + CONTENT_W, 25, f"N° : {q.number}", right=True)
        self.font(FONT_BOLD, 10, colors.white)
        self.text(MARGIN + CONTENT_W, 32, f"Date : {_display_date(q.details.date)}", right=True)

    def parties(self):
        company = self.quote.company
        client = self.quote.client
        right = MARGIN + CONTENT_W

        y = 50.0
        self.font(FONT_BOLD, 14)
        self.text(MARGIN, y, "FACTURÉ PAR")
        self.font(FONT_REGULAR, 11)
        y += 8
        self.text(MARGIN, y, company.name or "Votre Entreprise")
        y += 6
        self.text(MARGIN, y, company.address or "Adresse non renseignée")
        y += 6
        for label, value in (("SIRET", company.siret), ("Tél", company.phone), ("Email", company.email)):
            if value:
                self.text(MARGIN, y, f"{label} : {value}")
                y += 6

        client_y = 50.0
        self.font(FONT_BOLD, 14)
        self.text(right, client_y, "CLIENT", right=True)
        self.font(FONT_REGULAR, 11)
        client_y += 8
        for value in (client.name, client.address, f"Email : {client.email}" if client.email else ""):
            if value:
                self.text(right, client_y, value, right=True)
                client_y += 6

        self.y = max(y, client_y) + 15

    def table_header(self):
        self.c.setFillColor(GREEN_LIGHT)
        self.c.rect(MARGIN * mm, self._y(self.y + 3), CONTENT_W * mm, 10 * mm, fill=True, stroke=False)
        self.c.setStrokeColor(GREEN)
        self.c.setLineWidth(0.5)
        self.c.line(MARGIN * mm, self._y(self.y + 3), (MARGIN + CONTENT_W) * mm, self._y(self.y + 3))
        self.font(FONT_BOLD, 11, GREEN_DARK)
        x = MARGIN
        for title, width in zip(COL_TITLES, COL_WIDTHS):
            self.text(x + 2, self.y, title)
            x += width
        self.y += 10

    def rows(self):
        for index, item in enumerate(self.quote.services):
            if index % 2 == 0:
                self.c.setFillColor(ROW_SHADE)
                self.c.rect(MARGIN * mm, self._y(self.y + 4), CONTENT_W * mm, ROW_H * mm, fill=True, stroke=False)
            self.font(FONT_REGULAR, 10)
            cells = (
                _fit(item.description or "Prestation", FONT_REGULAR, 10, COL_WIDTHS[0] - 4),
                _number(item.quantity),
                _money(item.price),
                f"{_number(item.tva_rate)} %",
                _money(item.total),
            )
            x = MARGIN
            for cell, width in zip(cells, COL_WIDTHS):
                self.text(x + 2, self.y, cell)
                x += width
            self.y += ROW_H

            if self.y > PAGE_BOTTOM and index < len(self.quote.services) - 1:
                self.new_page()
                self.table_header()

    def totals(self):
        totals = self.quote.totals
        if self.y + 35 > PAGE_BOTTOM + 20:
            self.new_page()
        right = MARGIN + CONTENT_W
        label_x = right - 80

        self.y += 10
        self.c.setStrokeColor(LINE_GREY)
        self.c.line((right - 120) * mm, self._y(self.y), right * mm, self._y(self.y))
        self.y += 5

        self.font(FONT_BOLD, 11)
        self.text(label_x, self.y, "Total HT :")
        self.text(right, self.y, _money(totals.ht), right=True)
        self.y += 7
        self.text(label_x, self.y, "TVA :")
        self.text(right, self.y, _money(totals.tva), right=True)
        self.y += 10

        self.font(FONT_BOLD, 14, GREEN)
        self.text(label_x, self.y, "Total TTC :")
        self.text(right, self.y, _money(totals.ttc), right=True)
        self.y += 20

    def notes(self):
        notes = (self.quote.details.notes or "").strip()
        if not notes:
            return
        lines = []
        for paragraph in notes.splitlines() or [""]:
            lines.extend(simpleSplit(paragraph, FONT_REGULAR, 10, CONTENT_W * mm) or [""])

        if self.y + 12 > FOOTER_Y - 5:
            self.new_page()
        self.font(FONT_BOLD, 10, GREEN_DARK)
        self.text(MARGIN, self.y, "Conditions & Notes :")
        self.y += 6
        for line in lines:
            if self.y > FOOTER_Y - 8:
                self.new_page()
            self.font(FONT_REGULAR, 10)
            self.text(MARGIN, self.y, line)
            self.y += 5

    def footer(self):
        self.c.setStrokeColor(GREEN)
        self.c.setLineWidth(0.5)
        self.c.line(MARGIN * mm, self._y(FOOTER_Y), (MARGIN + CONTENT_W) * mm, self._y(FOOTER_Y))
        self.font(FONT_REGULAR, 8, GREY)
        self.text(MARGIN, FOOTER_Y + 5, "Devis généré avec DevisPro")
        stamp = self.generated_at.strftime("Document généré le %d/%m/%Y à %H:%M:%S")
        self.text(MARGIN + CONTENT_W, FOOTER_Y + 5, stamp, right=True)

    def new_page(self):
        self.footer()
        self.c.showPage()
        self.y = CONTINUATION_TOP

    def finish(self) -> int:
        self.footer()
        pages = self.c.getPageNumber()
        self.c.save()
        return pages


def _render_full(quote: Quote, generated_at: datetime) -> tuple[bytes, int]:
    buf = BytesIO()
    doc = _QuoteCanvas(buf, quote, generated_at)
    doc.header()
    doc.parties()
    doc.table_header()
    doc.rows()
    doc.totals()
    doc.notes()
    pages = doc.finish()
    return buf.getvalue(), pages


MINIMAL_ROWS = 30


def _minimal_listing(quote: Quote) -> list[str]:
    """Prestations à plat ; au-delà d'une page, la dernière ligne indique ce qui manque."""
    lines = [
        f"{item.description or 'Prestation'} - {_number(item.quantity)} x "
        f"{_money(item.price)} = {_money(item.total)}"[:110]
        for item in quote.services
    ]
    if len(lines) > MINIMAL_ROWS:
        shown = MINIMAL_ROWS - 1
        lines = lines[:shown] + [f"… (+{len(lines) - shown} prestations)"]
    return lines


def _render_minimal(quote: Quote) -> bytes:
    """Version simplifiée : numéro, prestations à plat, total TTC."""
    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)
    c.setFont("Helvetica-Bold", 20)
    c.drawString(20 * mm, PAGE_H - 20 * mm, "DEVIS")
    c.setFont("Helvetica", 12)
    c.drawString(20 * mm, PAGE_H - 30 * mm, f"N° : {quote.number}")

    y = 50
    c.drawString(20 * mm, PAGE_H - y * mm, "Prestations :")
    y += 10
    for line in _minimal_listing(quote):
        c.drawString(20 * mm, PAGE_H - y * mm, line)
        y += 7
    y += 10
    c.drawString(20 * mm, PAGE_H - min(y, 285) * mm, f"Total TTC : {_money(quote.totals.ttc)}")
    c.save()
    return buf.getvalue()


def export_quote_pdf(quote: Quote, generated_at: Optional[datetime] = None) -> PdfExport:
    """
    Rend le devis en PDF.
    En cas d'échec du rendu complet, renvoie un PDF minimal (degraded=True)
    au lieu de propager l'erreur.
    """
    recompute(quote)
    filename = pdf_filename(quote)
    try:
        content, pages = _render_full(quote, generated_at or datetime.now())
        return PdfExport(content=content, filename=filename, pages=pages)
    except Exception:
        logger.exception("Erreur génération PDF du devis %s, bascule sur la version simple", quote.number)
    return PdfExport(content=_render_minimal(quote), filename=filename, pages=1, degraded=True)
