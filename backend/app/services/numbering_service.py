"""
Service per la numerazione progressiva
Progetto: Agency Manager (Gestionale Agenzia)

Contiene:
- ReceiptNumberingService: progressivo ricevute per artista e anno
- Formattazione dei codici ricevuta (PO-YYYY-XXXXXX-NNN) e batch (BP-YYYY-NN)
"""

import logging
import uuid
from typing import Optional

from sqlalchemy import and_, func, select, text, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import BusinessValidationError
from app.models import PaymentBatch, ReceiptCounter

logger = logging.getLogger(__name__)


def format_receipt_code(
    year: int,
    tax_code: Optional[str],
    number: int,
    performer_id: Optional[uuid.UUID] = None,
) -> str:
    """
    Codice ricevuta: PO-<anno>-<prime 6 lettere CF>-<progressivo a 3 cifre>.

    Senza codice fiscale si usano i primi 6 caratteri dell'ID artista.
    """
    prefix = (tax_code or "").strip().upper()[:6]
    if not prefix and performer_id is not None:
        prefix = str(performer_id)[:6].upper()
    return f"PO-{year}-{prefix}-{number:03d}"


def format_batch_code(year: int, sequence: int) -> str:
    """Codice batch: BP-<anno>-<progressivo a 2 cifre>."""
    return f"BP-{year}-{sequence:02d}"


class ReceiptNumberingService:
    """
    Progressivo ricevute per (artista, anno).

    L'incremento è un singolo UPDATE ... RETURNING sulla riga contatore:
    il lock di riga serializza le generazioni concorrenti, per cui due
    transazioni non ottengono mai lo stesso numero. La riga viene creata
    a zero al primo utilizzo con un INSERT che ignora i conflitti.
    """

    def _insert(self, db: AsyncSession):
        dialect = db.get_bind().dialect.name
        if dialect == "postgresql":
            return postgresql.insert(ReceiptCounter)
        if dialect == "sqlite":
            return sqlite.insert(ReceiptCounter)
        raise NotImplementedError(f"Dialetto non supportato per i progressivi: {dialect}")

    async def _ensure_counter(
        self,
        db: AsyncSession,
        performer_id: uuid.UUID,
        year: int,
    ) -> None:
        stmt = (
            self._insert(db)
            .values(id=uuid.uuid4(), performer_id=performer_id, year=year, last_number=0)
            .on_conflict_do_nothing(index_elements=["performer_id", "year"])
        )
        await db.execute(stmt)

    async def next_number(
        self,
        db: AsyncSession,
        performer_id: uuid.UUID,
        year: int,
    ) -> int:
        """
        Assegna il prossimo numero per l'artista nell'anno.

        Deve essere la prima scrittura della transazione chiamante; il
        numero diventa definitivo solo con il commit.

        Returns:
            int: Nuovo numero (1 al primo utilizzo)
        """
        await self._ensure_counter(db, performer_id, year)

        stmt = (
            update(ReceiptCounter)
            .where(
                and_(
                    ReceiptCounter.performer_id == performer_id,
                    ReceiptCounter.year == year,
                )
            )
            .values(last_number=ReceiptCounter.last_number + 1)
            .returning(ReceiptCounter.last_number)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        number = result.scalar_one()

        logger.debug("Progressivo artista %s anno %d: %d", performer_id, year, number)
        return number

    async def raise_to(
        self,
        db: AsyncSession,
        performer_id: uuid.UUID,
        year: int,
        number: int,
    ) -> None:
        """
        Porta il contatore almeno a number. Non lo abbassa mai.
        """
        if number < 1:
            raise BusinessValidationError("Il numero ricevuta deve essere maggiore di zero")

        await self._ensure_counter(db, performer_id, year)
        stmt = (
            update(ReceiptCounter)
            .where(
                and_(
                    ReceiptCounter.performer_id == performer_id,
                    ReceiptCounter.year == year,
                    ReceiptCounter.last_number < number,
                )
            )
            .values(last_number=number)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        if result.rowcount:
            logger.info("Progressivo artista %s anno %d portato a %d", performer_id, year, number)

    async def current(
        self,
        db: AsyncSession,
        performer_id: uuid.UUID,
        year: int,
    ) -> int:
        """Ultimo numero assegnato (0 se il contatore non esiste)."""
        result = await db.execute(
            select(ReceiptCounter.last_number).where(
                and_(
                    ReceiptCounter.performer_id == performer_id,
                    ReceiptCounter.year == year,
                )
            )
        )
        return result.scalar_one_or_none() or 0

    async def next_batch_code(self, db: AsyncSession, year: int) -> str:
        """
        Genera il codice del prossimo batch dell'anno.

        Su PostgreSQL acquisisce un advisory lock di transazione per
        serializzare le generazioni concorrenti; l'unicità del codice
        resta comunque garantita dal vincolo sul database.
        """
        if db.get_bind().dialect.name == "postgresql":
            await db.execute(text("SELECT pg_advisory_xact_lock(:lock_key)"), {"lock_key": year})

        result = await db.execute(
            select(func.count()).select_from(PaymentBatch).where(PaymentBatch.year == year)
        )
        sequence = (result.scalar() or 0) + 1
        return format_batch_code(year, sequence)
