"""
Service Layer per i Batch di Pagamento
Progetto: Agency Manager (Gestionale Agenzia)

Orchestrazione della generazione ricevute:
1. Risolve la finestra (quindicina o recupero forzato)
2. Seleziona le agibilità pagabili e le raggruppa per artista
3. Crea il batch
4. Per ogni artista pronto, in una transazione dedicata: progressivo,
   token di firma, causale e ricevuta in stato GENERATA
5. Aggiorna i totali del batch insieme a ogni ricevuta, così restano
   coerenti con le ricevute salvate anche se la generazione si interrompe
6. Dopo il commit esegue le consegne (PDF, archivio, email) registrando
   l'esito per artista: un errore non annulla il batch né le ricevute

Una consegna fallita si recupera con il reinvio del link dalla ricevuta
(ReceiptService.resend_link).
"""

import logging
import secrets
import uuid
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import utcnow
from app.core.config import settings
from app.core.exceptions import ConflictError, NoEligiblePerformersError, NotFoundError
from app.models import PaymentBatch, Receipt
from app.models.types import BookingSnapshot
from app.schemas.payment import (
    BatchPreviewResponse,
    BatchStatus,
    DeliveryOutcomeRead,
    ExcludedPerformerRead,
    PreviewPerformer,
    ReceiptStatus,
)
from app.services.delivery_service import ReceiptDeliveryService
from app.services.eligibility_service import EligibilityService, PerformerAggregate
from app.services.numbering_service import ReceiptNumberingService, format_receipt_code
from app.services.period_service import PaymentPeriod, resolve_period

logger = logging.getLogger(__name__)


def build_payment_reason(bookings: list[BookingSnapshot]) -> str:
    """Causale bonifico: 'Prestazione <locale> <gg/mm/aaaa>, ...'."""
    parts = [f"{b.venue} {b.event_date.strftime('%d/%m/%Y')}" for b in bookings]
    return f"Prestazione {', '.join(parts)}"


def new_signature_token() -> str:
    """Token casuale ad alta entropia (esadecimale)."""
    return secrets.token_hex(settings.signature_token_bytes)


def token_expiry(issued_at: datetime) -> datetime:
    """Scadenza del link di firma emesso in issued_at."""
    return issued_at + timedelta(days=settings.signature_link_days)


class BatchRunResult(BaseModel):
    """Riepilogo di una generazione."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    batch: PaymentBatch
    receipts: list[Receipt] = Field(default_factory=list)
    deliveries: list[DeliveryOutcomeRead] = Field(default_factory=list)
    incomplete: list[PerformerAggregate] = Field(default_factory=list)
    excluded: list[PerformerAggregate] = Field(default_factory=list)

    @property
    def emails_sent(self) -> int:
        return sum(1 for d in self.deliveries if d.success)

    @property
    def emails_failed(self) -> int:
        return sum(1 for d in self.deliveries if not d.success)


def to_excluded(group: PerformerAggregate, reason: str) -> ExcludedPerformerRead:
    return ExcludedPerformerRead(
        performer_id=group.performer.id,
        performer_name=group.performer.full_name,
        reason=reason,
        missing_fields=group.missing_fields,
    )


def _to_preview(group: PerformerAggregate) -> PreviewPerformer:
    return PreviewPerformer(
        performer_id=group.performer.id,
        performer_name=group.performer.full_name,
        tax_code=group.performer.tax_code,
        bookings_count=len(group.bookings),
        bookings=group.bookings,
        gross_amount=group.gross_amount,
        net_amount=group.net_amount,
        withholding=group.withholding,
        missing_fields=group.missing_fields,
    )


class PaymentBatchService:
    """
    Service per la generazione e consultazione dei batch.

    La consegna (PDF, archivio, email) è delegata a ReceiptDeliveryService,
    iniettabile per sostituire renderer e invio email.
    """

    def __init__(
        self,
        delivery: Optional[ReceiptDeliveryService] = None,
        numbering: Optional[ReceiptNumberingService] = None,
        eligibility: Optional[EligibilityService] = None,
    ) -> None:
        self.delivery = delivery or ReceiptDeliveryService()
        self.numbering = numbering or ReceiptNumberingService()
        self.eligibility = eligibility or EligibilityService()

    # ------------------------------------------------------------
    # Consultazione
    # ------------------------------------------------------------

    async def get_all(
        self,
        db: AsyncSession,
        limit: int = 20,
    ) -> tuple[list[PaymentBatch], int]:
        """Ultimi batch generati (più recenti prima) e totale."""
        result = await db.execute(
            select(PaymentBatch)
            .order_by(PaymentBatch.generated_at.desc(), PaymentBatch.code.desc())
            .limit(limit)
        )
        batches = list(result.scalars().all())

        count_result = await db.execute(select(func.count()).select_from(PaymentBatch))
        total = count_result.scalar() or 0
        return batches, total

    async def get_by_id(self, db: AsyncSession, batch_id: uuid.UUID) -> PaymentBatch:
        """
        Recupera un batch tramite ID.

        Raises:
            NotFoundError: Se il batch non esiste
        """
        batch = await db.get(PaymentBatch, batch_id)
        if not batch:
            logger.warning("Batch non trovato: %s", batch_id)
            raise NotFoundError(f"Batch con ID {batch_id} non trovato")
        return batch

    async def preview(
        self,
        db: AsyncSession,
        force: bool = False,
        reference_date: Optional[date] = None,
    ) -> BatchPreviewResponse:
        """
        Anteprima della generazione: artisti pronti e incompleti per la
        finestra corrente, senza scrivere nulla.
        """
        period = resolve_period(reference_date or date.today(), force)
        aggregation = await self.eligibility.aggregate(db, period)

        return BatchPreviewResponse(
            period=period.period,
            start_date=period.start_date,
            end_date=period.end_date,
            ready=[_to_preview(g) for g in aggregation.ready],
            incomplete=[_to_preview(g) for g in aggregation.incomplete],
            excluded=[to_excluded(g, "Contratto non occasionale") for g in aggregation.excluded],
            total_net=sum((g.net_amount for g in aggregation.ready), Decimal("0.00")),
            can_generate=bool(aggregation.ready),
        )

    # ------------------------------------------------------------
    # Generazione
    # ------------------------------------------------------------

    async def generate(
        self,
        db: AsyncSession,
        performer_ids: Optional[list[uuid.UUID]] = None,
        force: bool = False,
        reference_date: Optional[date] = None,
    ) -> BatchRunResult:
        """
        Genera un batch di ricevute.

        Args:
            db: Sessione database
            performer_ids: Allowlist opzionale di artisti
            force: Finestra di recupero invece della quindicina
            reference_date: Data di riferimento (default: oggi)

        Returns:
            BatchRunResult: batch, ricevute, esiti consegna, esclusi

        Raises:
            NoEligiblePerformersError: Nessun artista idoneo nella finestra
            ConflictError: Errore di integrità in fase di scrittura
        """
        period = resolve_period(reference_date or date.today(), force)
        logger.info(
            "Generazione batch: periodo %d (%s - %s)%s",
            period.period,
            period.start_date,
            period.end_date,
            " forzata" if force else "",
        )

        aggregation = await self.eligibility.aggregate(db, period, performer_ids)
        if not aggregation.ready:
            raise NoEligiblePerformersError(
                "Nessuna prestazione pronta per la generazione",
                extra={
                    "incomplete": [
                        to_excluded(g, "Dati mancanti").model_dump(mode="json")
                        for g in aggregation.incomplete
                    ],
                },
            )

        batch = await self._create_batch(db, period)

        batch_code = batch.code
        receipts: list[Receipt] = []
        for group in aggregation.ready:
            try:
                receipts.append(await self._create_receipt(db, batch, group))
            except ConflictError:
                logger.error(
                    "Batch %s interrotto dopo %d ricevute: consegna da completare con il reinvio del link",
                    batch_code,
                    len(receipts),
                )
                raise

        logger.info(
            "Batch %s: %d ricevute generate, totale %s",
            batch.code,
            batch.receipts_count,
            batch.total_amount,
        )

        deliveries = await self.delivery.deliver_all(db, receipts)

        return BatchRunResult(
            batch=batch,
            receipts=receipts,
            deliveries=deliveries,
            incomplete=aggregation.incomplete,
            excluded=aggregation.excluded,
        )

    async def _create_batch(self, db: AsyncSession, period: PaymentPeriod) -> PaymentBatch:
        code = await self.numbering.next_batch_code(db, period.year)
        batch = PaymentBatch(
            code=code,
            year=period.year,
            month=period.month,
            period=period.period,
            start_date=period.start_date,
            end_date=period.end_date,
            generated_at=utcnow(),
            status=BatchStatus.GENERATO.value,
            receipts_count=0,
            total_amount=Decimal("0.00"),
        )
        db.add(batch)
        try:
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            logger.error("Errore di integrità durante creazione batch %s: %s", code, e)
            raise ConflictError(f"Batch {code} già esistente, riprovare la generazione")
        return batch

    async def _create_receipt(
        self,
        db: AsyncSession,
        batch: PaymentBatch,
        group: PerformerAggregate,
    ) -> Receipt:
        """Progressivo + ricevuta in una transazione dedicata all'artista."""
        performer = group.performer
        performer_name = performer.full_name
        number = await self.numbering.next_number(db, performer.id, batch.year)

        issued_at = utcnow()
        receipt = Receipt(
            number=number,
            year=batch.year,
            code=format_receipt_code(batch.year, performer.tax_code, number, performer.id),
            performer_id=performer.id,
            performer=performer,
            batch_id=batch.id,
            bookings=tuple(group.bookings),
            original_gross_amount=group.gross_amount,
            original_net_amount=group.net_amount,
            original_withholding=group.withholding,
            gross_amount=group.gross_amount,
            net_amount=group.net_amount,
            withholding=group.withholding,
            reimbursement=Decimal("0.00"),
            advance_fee=Decimal("0.00"),
            total_paid=group.net_amount,
            status=ReceiptStatus.GENERATA.value,
            issued_at=issued_at,
            signature_token=new_signature_token(),
            token_expires_at=token_expiry(issued_at),
            payment_reason=build_payment_reason(group.bookings),
            supporting_documents=[],
        )
        db.add(receipt)
        # Totali del batch nella stessa transazione della ricevuta
        batch.receipts_count += 1
        batch.total_amount += receipt.total_paid
        try:
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            logger.error("Errore di integrità durante creazione ricevuta per %s: %s", performer_name, e)
            raise ConflictError(f"Errore durante la creazione della ricevuta per {performer_name}")

        logger.debug("Ricevuta %s creata per %s", receipt.code, performer_name)
        return receipt

