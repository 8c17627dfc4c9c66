"""
Service per la generazione di PDF con WeasyPrint + Jinja2.
Progetto: Agency Manager (Gestionale Agenzia)
"""

import logging
import os
from datetime import date
from decimal import Decimal

from jinja2 import Environment, FileSystemLoader, select_autoescape

from app.core.config import settings
from app.models.payment import Receipt
from app.models.performer import Performer

logger = logging.getLogger(__name__)

# Path alle cartelle templates
BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
TEMPLATES_DIR = os.path.join(BASE_DIR, "templates")


def format_euro(value) -> str:
    """Formatta un importo all'italiana: 1.234,56"""
    amount = Decimal(value or 0).quantize(Decimal("0.01"))
    text = f"{amount:,.2f}"
    return text.replace(",", "X").replace(".", ",").replace("X", ".")


def format_date(value) -> str:
    """Formatta una data come gg/mm/aaaa."""
    if value is None:
        return ""
    return value.strftime("%d/%m/%Y")


def build_template_env() -> Environment:
    """Ambiente Jinja2 condiviso da PDF ed email, con i filtri di formattazione."""
    env = Environment(
        loader=FileSystemLoader(TEMPLATES_DIR),
        autoescape=select_autoescape(["html"]),
    )
    env.filters["euro"] = format_euro
    env.filters["data"] = format_date
    return env


# Lazy import of weasyprint to avoid startup errors if GTK libraries aren't available
def _get_weasyprint():
    """Lazy import of weasyprint to handle missing GTK libraries gracefully."""
    try:
        from weasyprint import HTML, CSS
        return HTML, CSS
    except OSError as e:
        raise RuntimeError(
            "WeasyPrint dependencies not found. Please install GTK libraries: "
            "brew install gtk+3"
        ) from e


class PdfService:
    """
    Genera il PDF della ricevuta di prestazione occasionale.
    Il chiamante passa la ricevuta e l'artista già caricati; il rendering
    è sincrono (da eseguire in un thread dai service async).
    """

    def __init__(self):
        self.env = build_template_env()

    def build_receipt_context(self, receipt: Receipt, performer: Performer) -> dict:
        """Dati passati al template della ricevuta."""
        return {
            # Committente (da settings)
            "company_name": settings.company_name,
            "company_address": settings.company_address,
            "company_vat": settings.company_vat_number,

            # Ricevuta e prestatore
            "receipt": receipt,
            "performer": performer,
            "bookings": list(receipt.bookings),
            "issued_on": receipt.issued_at.date() if receipt.issued_at else date.today(),
            "withholding_rate_percent": int(settings.withholding_rate * 100),
            "oggi": date.today().strftime("%d/%m/%Y"),

            # Flag utili per il template
            "has_reimbursement": bool(receipt.reimbursement),
            "has_advance_fee": bool(receipt.advance_fee),
        }

    def render_receipt_html(self, receipt: Receipt, performer: Performer) -> str:
        template = self.env.get_template("receipt_template.html")
        return template.render(self.build_receipt_context(receipt, performer))

    def generate_receipt_pdf(self, receipt: Receipt, performer: Performer) -> bytes:
        """
        Genera il PDF di una ricevuta.

        Args:
            receipt: Ricevuta (con snapshot agibilità e importi correnti)
            performer: Artista prestatore

        Returns:
            bytes: PDF binario
        """
        # Lazy import weasyprint
        HTML, CSS = _get_weasyprint()

        html_out = self.render_receipt_html(receipt, performer)
        css = CSS(filename=os.path.join(TEMPLATES_DIR, "receipt_style.css"))

        pdf_bytes = HTML(string=html_out, base_url=TEMPLATES_DIR).write_pdf(stylesheets=[css])
        logger.debug("PDF ricevuta %s generato (%d bytes)", receipt.code, len(pdf_bytes))
        return pdf_bytes
