"""
Service Layer per le Distinte Bonifici
Progetto: Agency Manager (Gestionale Agenzia)

La distinta include solo ricevute PAGABILE. Selezione, verifica,
esportazione e passaggio a PAGATA avvengono in un'unica transazione:
se anche una sola ricevuta non è pagabile non viene esportato né
modificato nulla.
"""

import csv
import io
import logging
import secrets
import uuid
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import and_, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import utcnow
from app.core.config import settings
from app.core.exceptions import BusinessValidationError, ConflictError, NotFoundError
from app.models import Receipt, Remittance
from app.schemas.payment import ReceiptStatus

logger = logging.getLogger(__name__)

CSV_HEADER = ["Beneficiario", "IBAN", "Importo", "Causale"]


def format_amount(value: Decimal) -> str:
    """Importo con virgola decimale: 1234,50"""
    return f"{Decimal(value):.2f}".replace(".", ",")


def generate_remittance_code(today: Optional[date] = None) -> str:
    """Codice distinta: DST-<AAAAMMGG>-<6 cifre>."""
    today = today or date.today()
    return f"DST-{today.strftime('%Y%m%d')}-{secrets.randbelow(1_000_000):06d}"


def build_remittance_csv(receipts: list[Receipt]) -> tuple[str, Decimal]:
    """
    Genera il CSV per la banca: una riga per ricevuta e riga finale TOTALE.

    Returns:
        Tuple di (contenuto CSV, totale)
    """
    max_length = settings.remittance_reason_max_length
    buf = io.StringIO()
    w = csv.writer(buf, delimiter=";", lineterminator="\n")
    w.writerow(CSV_HEADER)

    total = Decimal("0.00")
    for receipt in receipts:
        performer = receipt.performer
        w.writerow([
            performer.full_name,
            (performer.iban or "").replace(" ", "").upper(),
            format_amount(receipt.total_paid),
            (receipt.payment_reason or "")[:max_length],
        ])
        total += receipt.total_paid

    w.writerow([])
    w.writerow(["TOTALE", "", format_amount(total), ""])
    return buf.getvalue(), total


class RemittanceService:
    """Service per generazione e consultazione delle distinte."""

    async def create(
        self,
        db: AsyncSession,
        receipt_ids: list[uuid.UUID],
    ) -> Remittance:
        """
        Genera la distinta e segna le ricevute come PAGATA.

        Args:
            db: Sessione database
            receipt_ids: Ricevute da includere (tutte PAGABILE)

        Returns:
            Remittance: distinta con il CSV

        Raises:
            NotFoundError: Ricevute inesistenti
            ConflictError: Ricevute non PAGABILE o già in un'altra distinta
            BusinessValidationError: IBAN mancante
        """
        ids = list(dict.fromkeys(receipt_ids))
        if not ids:
            raise BusinessValidationError("Nessuna ricevuta selezionata")

        result = await db.execute(
            select(Receipt)
            .where(Receipt.id.in_(ids))
            .order_by(Receipt.code)
            .with_for_update(of=Receipt)
        )
        receipts = list(result.unique().scalars().all())

        missing = set(ids) - {r.id for r in receipts}
        if missing:
            raise NotFoundError(
                f"Ricevute non trovate: {len(missing)}",
                extra={"receipt_ids": sorted(str(i) for i in missing)},
            )

        not_payable = [r for r in receipts if r.status != ReceiptStatus.PAGABILE.value]
        if not_payable:
            logger.warning(
                "Distinta rifiutata: %d ricevute non pagabili", len(not_payable)
            )
            raise ConflictError(
                "Alcune ricevute non sono in stato PAGABILE",
                extra={"receipts": {r.code: r.status for r in not_payable}},
            )

        without_iban = [r for r in receipts if not r.performer.iban]
        if without_iban:
            raise BusinessValidationError(
                "IBAN mancante per alcuni artisti",
                extra={"performers": [r.performer.full_name for r in without_iban]},
            )

        csv_content, total = build_remittance_csv(receipts)
        now = utcnow()
        remittance = Remittance(
            code=generate_remittance_code(now.date()),
            receipts_count=len(receipts),
            total_amount=total,
            csv_content=csv_content,
        )

        try:
            db.add(remittance)
            await db.flush()

            stmt = (
                update(Receipt)
                .where(
                    and_(
                        Receipt.id.in_(ids),
                        Receipt.status == ReceiptStatus.PAGABILE.value,
                    )
                )
                .values(
                    status=ReceiptStatus.PAGATA.value,
                    paid_at=now,
                    remittance_id=remittance.id,
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            update_result = await db.execute(stmt)
            if update_result.rowcount != len(ids):
                await db.rollback()
                logger.warning("Distinta rifiutata: ricevute già incluse in un'altra distinta")
                raise ConflictError("Alcune ricevute sono già state incluse in un'altra distinta")

            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            logger.error("Errore di integrità durante la creazione della distinta: %s", e)
            raise ConflictError("Errore durante la creazione della distinta")

        await db.refresh(remittance)
        for receipt in receipts:
            await db.refresh(receipt)

        logger.info(
            "Distinta %s generata: %d ricevute, totale %s",
            remittance.code,
            remittance.receipts_count,
            remittance.total_amount,
        )
        return remittance

    async def get_all(self, db: AsyncSession) -> tuple[list[Remittance], int]:
        """Distinte generate, più recenti prima."""
        result = await db.execute(select(Remittance).order_by(Remittance.created_at.desc()))
        remittances = list(result.scalars().all())

        count_result = await db.execute(select(func.count()).select_from(Remittance))
        return remittances, count_result.scalar() or 0

    async def get_by_id(self, db: AsyncSession, remittance_id: uuid.UUID) -> Remittance:
        """
        Raises:
            NotFoundError: Se la distinta non esiste
        """
        remittance = await db.get(Remittance, remittance_id)
        if not remittance:
            raise NotFoundError(f"Distinta con ID {remittance_id} non trovata")
        return remittance
