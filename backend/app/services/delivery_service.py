"""
Consegna delle ricevute: PDF, archivio ed email con il link di firma
Progetto: Agency Manager (Gestionale Agenzia)

Eseguita sempre dopo il commit della ricevuta. Gli errori non vengono
propagati: ogni consegna restituisce un DeliveryOutcomeRead con l'esito.
"""

import asyncio
import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import utcnow
from app.models import Receipt
from app.schemas.payment import DeliveryOutcomeRead
from app.services.email_service import EmailService
from app.services.pdf_service import PdfService
from app.services.storage_service import ReceiptStorage

logger = logging.getLogger(__name__)


class ReceiptDeliveryService:
    """
    Collaboratori iniettabili:
    - renderer.generate_receipt_pdf(receipt, performer) -> bytes
    - mailer.send_signature_link(receipt, performer, pdf_bytes, pdf_filename) -> bool
    - mailer.send_reminder(receipt, performer) -> bool
    - storage: ReceiptStorage
    """

    def __init__(self, renderer=None, mailer=None, storage: Optional[ReceiptStorage] = None) -> None:
        self.renderer = renderer or PdfService()
        self.mailer = mailer or EmailService()
        self.storage = storage or ReceiptStorage()

    async def deliver_all(self, db: AsyncSession, receipts: list[Receipt]) -> list[DeliveryOutcomeRead]:
        """Consegne in sequenza, un esito per ricevuta."""
        outcomes = []
        for receipt in receipts:
            outcomes.append(await self.deliver(db, receipt))
        return outcomes

    async def deliver(self, db: AsyncSession, receipt: Receipt) -> DeliveryOutcomeRead:
        """
        Genera e archivia il PDF (se non già presente), poi invia il link
        di firma con il PDF allegato. Aggiorna pdf_path e link_sent_at.
        """
        performer = receipt.performer
        outcome = DeliveryOutcomeRead(
            performer_id=performer.id,
            performer_name=performer.full_name,
            receipt_id=receipt.id,
            receipt_code=receipt.code,
            email=performer.email,
            success=False,
        )

        try:
            pdf_bytes = await self.receipt_pdf(db, receipt)
        except Exception as e:
            outcome.error = f"Generazione PDF fallita: {e}"
            logger.warning("Ricevuta %s: %s", receipt.code, outcome.error, exc_info=True)
            return outcome

        if not performer.email:
            outcome.error = "Email mancante"
            logger.warning("Ricevuta %s: email artista mancante", receipt.code)
            return outcome

        try:
            sent = await self.mailer.send_signature_link(
                receipt,
                performer,
                pdf_bytes,
                f"Ricevuta_{receipt.code}.pdf",
            )
        except Exception as e:
            outcome.error = f"Invio email fallito: {e}"
            logger.warning("Ricevuta %s: %s", receipt.code, outcome.error, exc_info=True)
            return outcome

        if not sent:
            outcome.error = "Invio email fallito"
            logger.warning("Ricevuta %s: invio email a %s fallito", receipt.code, performer.email)
            return outcome

        receipt.link_sent_at = utcnow()
        await db.commit()
        outcome.success = True
        return outcome

    async def receipt_pdf(self, db: AsyncSession, receipt: Receipt) -> bytes:
        """PDF della ricevuta: dall'archivio se presente, altrimenti generato e salvato."""
        if self.storage.exists(receipt.pdf_path):
            return await asyncio.to_thread(self.storage.read, receipt.pdf_path)

        pdf_bytes = await asyncio.to_thread(
            self.renderer.generate_receipt_pdf, receipt, receipt.performer
        )
        receipt.pdf_path = await asyncio.to_thread(
            self.storage.save_receipt_pdf, receipt, receipt.performer, pdf_bytes
        )
        await db.commit()
        return pdf_bytes

    async def remind(self, receipt: Receipt) -> bool:
        """Invia il sollecito di firma; False se non inviato."""
        if not receipt.performer.email:
            return False
        try:
            return await self.mailer.send_reminder(receipt, receipt.performer)
        except Exception:
            logger.warning("Sollecito ricevuta %s non inviato", receipt.code, exc_info=True)
            return False
