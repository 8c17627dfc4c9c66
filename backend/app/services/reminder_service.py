"""
Service Layer per i Solleciti
Progetto: Agency Manager (Gestionale Agenzia)

Riepilogo di ciò che richiede attenzione:
- ricevute da sollecitare (link inviato da almeno N giorni, mai sollecitate)
- link scaduti non ancora marcati SCADUTA
- ricevute PAGABILE in scadenza di pagamento e già scadute

Azioni:
- remind: invia il sollecito e porta la ricevuta a SOLLECITATA
- expire: porta a SCADUTA le ricevute con link scaduto
"""

import logging
from datetime import timedelta
from typing import Optional

from sqlalchemy import and_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import utcnow
from app.core.config import settings
from app.models import Receipt
from app.schemas.payment import (
    SIGNABLE_STATUSES,
    ReceiptStatus,
    ReminderAction,
    ReminderActionResult,
    ReminderItem,
    ReminderOverview,
)
from app.services.delivery_service import ReceiptDeliveryService

logger = logging.getLogger(__name__)


def to_reminder_item(receipt: Receipt) -> ReminderItem:
    return ReminderItem(
        id=receipt.id,
        code=receipt.code,
        performer_name=receipt.performer.full_name,
        email=receipt.performer.email,
        status=receipt.status,
        link_sent_at=receipt.link_sent_at,
        token_expires_at=receipt.token_expires_at,
        payment_due_date=receipt.payment_due_date,
        total_paid=receipt.total_paid,
    )


class ReminderService:
    """Service per solleciti di firma e scadenze."""

    def __init__(self, delivery: Optional[ReceiptDeliveryService] = None) -> None:
        self.delivery = delivery or ReceiptDeliveryService()

    async def _query(self, db: AsyncSession, *conditions) -> list[Receipt]:
        result = await db.execute(
            select(Receipt).where(and_(*conditions)).order_by(Receipt.code)
        )
        return list(result.unique().scalars().all())

    async def to_remind(self, db: AsyncSession) -> list[Receipt]:
        """Ricevute GENERATA con link inviato da almeno reminder_after_days e mai sollecitate."""
        now = utcnow()
        return await self._query(
            db,
            Receipt.status == ReceiptStatus.GENERATA.value,
            Receipt.link_sent_at.is_not(None),
            Receipt.link_sent_at <= now - timedelta(days=settings.reminder_after_days),
            Receipt.reminded_at.is_(None),
            Receipt.token_expires_at >= now,
        )

    async def expired(self, db: AsyncSession) -> list[Receipt]:
        """Ricevute ancora firmabili con link scaduto."""
        return await self._query(
            db,
            Receipt.status.in_([s.value for s in SIGNABLE_STATUSES]),
            Receipt.token_expires_at < utcnow(),
        )

    async def overview(self, db: AsyncSession) -> ReminderOverview:
        """Riepilogo solleciti e scadenze di pagamento."""
        today = utcnow().date()
        warning_limit = today + timedelta(days=settings.payment_due_warning_days)

        due_soon = await self._query(
            db,
            Receipt.status == ReceiptStatus.PAGABILE.value,
            Receipt.payment_due_date >= today,
            Receipt.payment_due_date <= warning_limit,
        )
        overdue = await self._query(
            db,
            Receipt.status == ReceiptStatus.PAGABILE.value,
            Receipt.payment_due_date < today,
        )

        return ReminderOverview(
            to_remind=[to_reminder_item(r) for r in await self.to_remind(db)],
            expired=[to_reminder_item(r) for r in await self.expired(db)],
            due_soon=[to_reminder_item(r) for r in due_soon],
            overdue=[to_reminder_item(r) for r in overdue],
        )

    async def run(self, db: AsyncSession, action: ReminderAction) -> ReminderActionResult:
        """Esegue un'azione sui solleciti."""
        if action == ReminderAction.REMIND:
            return await self.send_reminders(db)
        return await self.mark_expired(db)

    async def send_reminders(self, db: AsyncSession) -> ReminderActionResult:
        """
        Invia i solleciti. Solo le ricevute sollecitate con successo
        passano a SOLLECITATA.
        """
        result = ReminderActionResult(action=ReminderAction.REMIND, processed=0)

        for receipt in await self.to_remind(db):
            sent = await self.delivery.remind(receipt)
            result.processed += 1
            if not sent:
                result.emails_failed += 1
                continue

            stmt = (
                update(Receipt)
                .where(
                    and_(
                        Receipt.id == receipt.id,
                        Receipt.status == ReceiptStatus.GENERATA.value,
                    )
                )
                .values(
                    status=ReceiptStatus.SOLLECITATA.value,
                    reminded_at=utcnow(),
                    updated_at=utcnow(),
                )
                .execution_options(synchronize_session=False)
            )
            await db.execute(stmt)
            await db.commit()
            await db.refresh(receipt)

            result.emails_sent += 1
            result.receipt_codes.append(receipt.code)

        logger.info(
            "Solleciti: %d inviati, %d falliti",
            result.emails_sent,
            result.emails_failed,
        )
        return result

    async def mark_expired(self, db: AsyncSession) -> ReminderActionResult:
        """Porta a SCADUTA le ricevute firmabili con link scaduto."""
        receipts = await self.expired(db)
        if not receipts:
            return ReminderActionResult(action=ReminderAction.EXPIRE, processed=0)

        now = utcnow()
        stmt = (
            update(Receipt)
            .where(
                and_(
                    Receipt.id.in_([r.id for r in receipts]),
                    Receipt.status.in_([s.value for s in SIGNABLE_STATUSES]),
                    Receipt.token_expires_at < now,
                )
            )
            .values(status=ReceiptStatus.SCADUTA.value, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        update_result = await db.execute(stmt)
        await db.commit()

        codes = []
        for receipt in receipts:
            await db.refresh(receipt)
            if receipt.status == ReceiptStatus.SCADUTA.value:
                codes.append(receipt.code)

        logger.info("Ricevute scadute: %d", update_result.rowcount)
        return ReminderActionResult(
            action=ReminderAction.EXPIRE,
            processed=len(codes),
            receipt_codes=codes,
        )
