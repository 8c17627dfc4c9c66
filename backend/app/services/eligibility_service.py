"""
Service per la selezione delle agibilità pagabili e l'aggregazione per artista
Progetto: Agency Manager (Gestionale Agenzia)

Contiene:
- is_booking_payable: regola di rischio incasso sul committente
- aggregate_performers: raggruppamento per artista con verifica profilo
- EligibilityService: lettura delle agibilità completate nella finestra
"""

import logging
import uuid
from collections.abc import Iterable
from datetime import datetime, time, timezone
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import Booking, Receipt
from app.models.performer import Performer
from app.models.types import BookingSnapshot
from app.schemas.payment import BookingStatus, ContractType, InvoiceCollectionStatus
from app.services.period_service import PaymentPeriod

logger = logging.getLogger(__name__)


# Campi obbligatori del profilo fiscale, con l'etichetta mostrata all'operatore
REQUIRED_PROFILE_FIELDS: tuple[tuple[str, str], ...] = (
    ("tax_code", "Codice Fiscale"),
    ("address", "Indirizzo"),
    ("postal_code", "CAP"),
    ("city", "Città"),
    ("province", "Provincia"),
    ("iban", "IBAN"),
    ("email", "Email"),
)


class PerformerAggregate(BaseModel):
    """Agibilità di un artista nella finestra, con i totali."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    performer: Performer
    bookings: list[BookingSnapshot] = Field(default_factory=list)
    gross_amount: Decimal = Decimal("0.00")
    net_amount: Decimal = Decimal("0.00")
    withholding: Decimal = Decimal("0.00")
    missing_fields: list[str] = Field(default_factory=list)

    @property
    def performer_id(self) -> uuid.UUID:
        return self.performer.id


class AggregationResult(BaseModel):
    """
    Esito dell'aggregazione.

    - ready: artisti con profilo completo, pronti per la ricevuta
    - incomplete: artisti con campi obbligatori mancanti
    - excluded: artisti con contratto diverso da prestazione occasionale
    """

    ready: list[PerformerAggregate] = Field(default_factory=list)
    incomplete: list[PerformerAggregate] = Field(default_factory=list)
    excluded: list[PerformerAggregate] = Field(default_factory=list)


def is_booking_payable(booking: Booking) -> bool:
    """
    Regola di rischio incasso.

    Un'agibilità di un committente a rischio è pagabile solo dopo che
    la fattura dell'agenzia risulta incassata.
    """
    if not booking.client.at_risk:
        return True
    return booking.invoice_status == InvoiceCollectionStatus.PAGATA.value


def missing_profile_fields(performer: Performer) -> list[str]:
    """Restituisce le etichette dei campi obbligatori vuoti."""
    missing = []
    for attr, label in REQUIRED_PROFILE_FIELDS:
        value = getattr(performer, attr)
        if value is None or not str(value).strip():
            missing.append(label)
    return missing


def aggregate_performers(
    bookings: Iterable[Booking],
    performer_ids: Optional[Iterable[uuid.UUID]] = None,
    already_receipted: Optional[set[tuple[uuid.UUID, uuid.UUID]]] = None,
) -> AggregationResult:
    """
    Raggruppa le agibilità per artista e verifica il profilo fiscale.

    Le agibilità devono essere già filtrate per finestra e rischio incasso.
    L'ordine degli artisti segue la prima agibilità in cui compaiono.

    Args:
        bookings: Agibilità pagabili (con performers, venue caricati)
        performer_ids: Allowlist opzionale di artisti
        already_receipted: Coppie (artista, agibilità) già incluse in una ricevuta

    Returns:
        AggregationResult
    """
    allowlist = set(performer_ids) if performer_ids else None
    already_receipted = already_receipted or set()
    groups: dict[uuid.UUID, PerformerAggregate] = {}

    for booking in bookings:
        for line in booking.performers:
            if allowlist is not None and line.performer_id not in allowlist:
                continue
            if (line.performer_id, booking.id) in already_receipted:
                continue

            group = groups.get(line.performer_id)
            if group is None:
                group = PerformerAggregate(performer=line.performer)
                groups[line.performer_id] = group

            group.bookings.append(
                BookingSnapshot(
                    booking_id=booking.id,
                    code=booking.code,
                    venue=booking.venue.name,
                    event_date=booking.event_date,
                    gross_amount=line.gross_amount,
                    net_amount=line.net_amount,
                    withholding=line.withholding,
                )
            )
            group.gross_amount += line.gross_amount
            group.net_amount += line.net_amount
            group.withholding += line.withholding

    result = AggregationResult()
    for group in groups.values():
        group.bookings.sort(key=lambda b: (b.event_date, b.code))

        if group.performer.contract_type != ContractType.PRESTAZIONE_OCCASIONALE.value:
            result.excluded.append(group)
            continue

        group.missing_fields = missing_profile_fields(group.performer)
        if group.missing_fields:
            result.incomplete.append(group)
        else:
            result.ready.append(group)

    return result


class EligibilityService:
    """Lettura delle agibilità completate e pagabili per una finestra."""

    async def get_payable_bookings(
        self,
        db: AsyncSession,
        period: PaymentPeriod,
    ) -> list[Booking]:
        """
        Recupera le agibilità COMPLETATA con data nella finestra,
        scartando quelle di committenti a rischio non ancora incassate.
        """
        query = (
            select(Booking)
            .where(
                and_(
                    Booking.status == BookingStatus.COMPLETATA.value,
                    Booking.event_date >= period.start_date,
                    Booking.event_date <= period.end_date,
                )
            )
            .order_by(Booking.event_date, Booking.code)
        )
        result = await db.execute(query)
        bookings = list(result.unique().scalars().all())

        payable = [b for b in bookings if is_booking_payable(b)]
        skipped = len(bookings) - len(payable)
        if skipped:
            logger.info(
                "Escluse %d agibilità di committenti a rischio non ancora incassate",
                skipped,
            )

        logger.debug(
            "Agibilità pagabili nel periodo %s - %s: %d",
            period.start_date,
            period.end_date,
            len(payable),
        )
        return payable

    async def get_already_receipted(
        self,
        db: AsyncSession,
        period: PaymentPeriod,
    ) -> set[tuple[uuid.UUID, uuid.UUID]]:
        """
        Coppie (artista, agibilità) già presenti in una ricevuta.

        Una ricevuta per un'agibilità della finestra non può essere stata
        emessa prima dell'inizio della finestra stessa.
        """
        since = datetime.combine(period.start_date, time.min, tzinfo=timezone.utc)
        result = await db.execute(
            select(Receipt.performer_id, Receipt.bookings).where(Receipt.issued_at >= since)
        )
        return {
            (performer_id, snapshot.booking_id)
            for performer_id, snapshots in result.all()
            for snapshot in snapshots
        }

    async def aggregate(
        self,
        db: AsyncSession,
        period: PaymentPeriod,
        performer_ids: Optional[list[uuid.UUID]] = None,
    ) -> AggregationResult:
        """
        Agibilità pagabili della finestra raggruppate per artista, escluse
        quelle già pagate all'artista con una ricevuta precedente.
        """
        bookings = await self.get_payable_bookings(db, period)
        already_receipted = await self.get_already_receipted(db, period)
        result = aggregate_performers(bookings, performer_ids, already_receipted)

        for group in result.incomplete:
            logger.info(
                "Artista %s escluso: dati mancanti (%s)",
                group.performer.full_name,
                ", ".join(group.missing_fields),
            )
        return result
