"""
Service per l'invio email agli artisti
Progetto: Agency Manager (Gestionale Agenzia)

Invia:
- Link di firma della ricevuta (con PDF allegato)
- Solleciti di firma

Il servizio è abilitato solo se SMTP_HOST, SMTP_USER e SMTP_PASSWORD
sono configurati; altrimenti ogni invio restituisce False.
"""

import asyncio
import logging
import smtplib
from datetime import datetime
from email.mime.application import MIMEApplication
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
from typing import Optional

from app.core.config import settings
from app.models.payment import Receipt
from app.models.performer import Performer
from app.services.pdf_service import build_template_env

logger = logging.getLogger(__name__)

_WEEKDAYS = ["lunedì", "martedì", "mercoledì", "giovedì", "venerdì", "sabato", "domenica"]
_MONTHS = [
    "gennaio", "febbraio", "marzo", "aprile", "maggio", "giugno",
    "luglio", "agosto", "settembre", "ottobre", "novembre", "dicembre",
]


def signature_link(token: str) -> str:
    """Link pubblico di firma per un token."""
    return f"{settings.public_base_url}/firma/{token}"


def format_long_date(value: datetime) -> str:
    """Data estesa in italiano, es. 'lunedì 3 marzo 2025'."""
    return f"{_WEEKDAYS[value.weekday()]} {value.day} {_MONTHS[value.month - 1]} {value.year}"


class EmailService:
    """
    Invio email via SMTP.

    L'invio smtplib è bloccante: viene eseguito in un thread per non
    bloccare l'event loop.
    """

    def __init__(self):
        self.smtp_host = settings.smtp_host
        self.smtp_port = settings.smtp_port
        self.smtp_user = settings.smtp_user
        self.smtp_password = settings.smtp_password
        self.from_email = settings.smtp_from_email or self.smtp_user
        self.from_name = settings.smtp_from_name
        self.env = build_template_env()

        self.enabled = all([
            self.smtp_host,
            self.smtp_user,
            self.smtp_password,
        ])

        if not self.enabled:
            logger.warning(
                "Email service not configured. "
                "Set SMTP_HOST, SMTP_USER, SMTP_PASSWORD in .env"
            )

    def _render(self, name: str, context: dict) -> tuple[str, str]:
        html = self.env.get_template(f"{name}.html").render(context)
        text = self.env.get_template(f"{name}.txt").render(context)
        return html, text

    def _context(self, receipt: Receipt, performer: Performer) -> dict:
        return {
            "performer": performer,
            "receipt": receipt,
            "bookings": list(receipt.bookings),
            "link": signature_link(receipt.signature_token),
            "expires_on": format_long_date(receipt.token_expires_at),
            "company_name": settings.company_name,
            "company_email": settings.company_email,
        }

    async def send_signature_link(
        self,
        receipt: Receipt,
        performer: Performer,
        pdf_bytes: Optional[bytes] = None,
        pdf_filename: Optional[str] = None,
    ) -> bool:
        """
        Invia all'artista il link di firma con la ricevuta allegata.

        Returns:
            True se inviata correttamente
        """
        if not performer.email:
            return False

        subject = f"Ricevuta prestazione occasionale {receipt.code} - firma richiesta"
        html, text = self._render("email_signature", self._context(receipt, performer))

        attachments = []
        if pdf_bytes:
            attachments.append((pdf_filename or f"Ricevuta_{receipt.code}.pdf", pdf_bytes))

        return await self.send(performer.email, subject, html, text, attachments)

    async def send_reminder(self, receipt: Receipt, performer: Performer) -> bool:
        """Invia il sollecito di firma."""
        if not performer.email:
            return False

        subject = f"Promemoria: firma la ricevuta {receipt.code}"
        html, text = self._render("email_reminder", self._context(receipt, performer))
        return await self.send(performer.email, subject, html, text)

    async def send(
        self,
        to_email: str,
        subject: str,
        html_body: str,
        text_body: Optional[str] = None,
        attachments: Optional[list[tuple[str, bytes]]] = None,
    ) -> bool:
        """
        Invia una email HTML (con alternativa testo e allegati PDF).

        Returns:
            True se inviata correttamente
        """
        if not self.enabled:
            logger.warning("Email not sent: service not configured")
            return False

        msg = self._build_message(to_email, subject, html_body, text_body, attachments or [])
        try:
            await asyncio.to_thread(self._deliver, msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("Invio email a %s fallito: %s", to_email, e)
            return False

        logger.info("Email inviata a %s: %s", to_email, subject)
        return True

    def _build_message(
        self,
        to_email: str,
        subject: str,
        html_body: str,
        text_body: Optional[str],
        attachments: list[tuple[str, bytes]],
    ) -> MIMEMultipart:
        msg = MIMEMultipart("mixed")
        msg["Subject"] = subject
        msg["From"] = formataddr((self.from_name, self.from_email))
        msg["To"] = to_email

        body = MIMEMultipart("alternative")
        if text_body:
            body.attach(MIMEText(text_body, "plain", "utf-8"))
        body.attach(MIMEText(html_body, "html", "utf-8"))
        msg.attach(body)

        for filename, content in attachments:
            part = MIMEApplication(content, _subtype="pdf")
            part.add_header("Content-Disposition", "attachment", filename=filename)
            msg.attach(part)

        return msg

    def _deliver(self, msg: MIMEMultipart) -> None:
        with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=30) as server:
            if settings.smtp_use_tls:
                server.starttls()
            server.login(self.smtp_user, self.smtp_password)
            server.send_message(msg)
