"""
Service Layer per le Ricevute di Prestazione Occasionale
Progetto: Agency Manager (Gestionale Agenzia)

Consultazione ricevute, PDF, reinvio del link di firma e approvazione
delle ricevute firmate (quando è richiesta l'approvazione dell'operatore).
"""

import logging
import uuid
from typing import Optional

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import is_expired, utcnow
from app.core.exceptions import BusinessValidationError, ConflictError, NotFoundError
from app.models import Receipt
from app.schemas.payment import DeliveryOutcomeRead, ReceiptStatus, can_transition
from app.services.batch_service import new_signature_token, token_expiry
from app.services.delivery_service import ReceiptDeliveryService

logger = logging.getLogger(__name__)

# Stati per cui ha senso reinviare il link di firma
RESENDABLE_STATUSES = (
    ReceiptStatus.GENERATA,
    ReceiptStatus.SOLLECITATA,
    ReceiptStatus.SCADUTA,
)


class ReceiptService:
    """Service per la gestione delle ricevute lato agenzia."""

    def __init__(self, delivery: Optional[ReceiptDeliveryService] = None) -> None:
        self.delivery = delivery or ReceiptDeliveryService()

    async def get_all(
        self,
        db: AsyncSession,
        status_filter: Optional[ReceiptStatus] = None,
        batch_id: Optional[uuid.UUID] = None,
        page: int = 1,
        per_page: int = 50,
    ) -> tuple[list[Receipt], int]:
        """
        Recupera la lista paginata delle ricevute.

        Returns:
            Tuple di (lista ricevute, totale count)
        """
        conditions = []
        if status_filter:
            conditions.append(Receipt.status == status_filter.value)
        if batch_id:
            conditions.append(Receipt.batch_id == batch_id)

        query = select(Receipt)
        if conditions:
            query = query.where(and_(*conditions))
        query = (
            query.order_by(Receipt.issued_at.desc(), Receipt.code)
            .offset((page - 1) * per_page)
            .limit(per_page)
        )
        result = await db.execute(query)
        receipts = list(result.unique().scalars().all())

        count_query = select(func.count()).select_from(Receipt)
        if conditions:
            count_query = count_query.where(and_(*conditions))
        count_result = await db.execute(count_query)
        total = count_result.scalar() or 0

        return receipts, total

    async def summary(self, db: AsyncSession) -> dict[str, int]:
        """Numero di ricevute per stato."""
        result = await db.execute(
            select(Receipt.status, func.count()).group_by(Receipt.status)
        )
        counts = {status.value: 0 for status in ReceiptStatus}
        for status, count in result.all():
            counts[status] = count
        return counts

    async def get_by_id(self, db: AsyncSession, receipt_id: uuid.UUID) -> Receipt:
        """
        Recupera una ricevuta tramite ID.

        Raises:
            NotFoundError: Se la ricevuta non esiste
        """
        result = await db.execute(select(Receipt).where(Receipt.id == receipt_id))
        receipt = result.unique().scalar_one_or_none()
        if not receipt:
            logger.warning("Ricevuta non trovata: %s", receipt_id)
            raise NotFoundError(f"Ricevuta con ID {receipt_id} non trovata")
        return receipt

    async def get_pdf(self, db: AsyncSession, receipt_id: uuid.UUID) -> tuple[str, bytes]:
        """
        PDF della ricevuta (rigenerato e archiviato se mancante).

        Returns:
            Tuple di (nome file, contenuto)
        """
        receipt = await self.get_by_id(db, receipt_id)
        pdf_bytes = await self.delivery.receipt_pdf(db, receipt)
        return f"Ricevuta_{receipt.code}.pdf", pdf_bytes

    async def resend_link(self, db: AsyncSession, receipt_id: uuid.UUID) -> DeliveryOutcomeRead:
        """
        Reinvia il link di firma con il PDF allegato.

        Operazione idempotente: se il token è ancora valido viene
        riutilizzato; se è scaduto (o la ricevuta è SCADUTA) viene
        generato un nuovo token e la ricevuta torna GENERATA.

        Raises:
            NotFoundError: Se la ricevuta non esiste
            ConflictError: Se la ricevuta è già stata firmata
        """
        receipt = await self.get_by_id(db, receipt_id)
        status = ReceiptStatus(receipt.status)

        if status not in RESENDABLE_STATUSES:
            raise ConflictError(
                f"Impossibile reinviare il link: ricevuta in stato '{status.value}'"
            )

        if status == ReceiptStatus.SCADUTA or is_expired(receipt.token_expires_at):
            now = utcnow()
            receipt.signature_token = new_signature_token()
            receipt.token_expires_at = token_expiry(now)
            receipt.status = ReceiptStatus.GENERATA.value
            receipt.reminded_at = None
            await db.commit()
            logger.info("Ricevuta %s: nuovo link di firma generato", receipt.code)

        outcome = await self.delivery.deliver(db, receipt)
        logger.info(
            "Reinvio link ricevuta %s: %s",
            receipt.code,
            "inviato" if outcome.success else outcome.error,
        )
        return outcome

    async def approve(self, db: AsyncSession, receipt_id: uuid.UUID) -> Receipt:
        """
        Approva una ricevuta firmata: FIRMATA -> PAGABILE.

        Raises:
            NotFoundError: Se la ricevuta non esiste
            ConflictError: Se la ricevuta non è in stato FIRMATA
        """
        receipt = await self.get_by_id(db, receipt_id)

        try:
            current_status = ReceiptStatus(receipt.status)
        except ValueError:
            logger.error("Stato invalido nel database: %s", receipt.status)
            raise BusinessValidationError(f"Stato invalido: {receipt.status}")

        if current_status != ReceiptStatus.FIRMATA or not can_transition(
            current_status, ReceiptStatus.PAGABILE
        ):
            raise ConflictError(
                f"Solo le ricevute FIRMATA possono essere approvate (stato attuale: '{current_status.value}')"
            )

        receipt.status = ReceiptStatus.PAGABILE.value
        await db.commit()
        logger.info("Ricevuta %s approvata", receipt.code)
        return receipt
