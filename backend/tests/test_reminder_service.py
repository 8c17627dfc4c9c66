"""
Tests per solleciti e scadenze.
"""

from datetime import timedelta

from conftest import FakeMailer, FakeRenderer, days_ago
from app.core.clock import utcnow
from app.schemas.payment import ReminderAction, SignatureRequest
from app.services.delivery_service import ReceiptDeliveryService
from app.services.reminder_service import ReminderService


class TestReminders:
    """Tests per l'invio dei solleciti."""

    async def test_reminder_after_three_days(self, db, delivery, mailer, generated_receipt):
        generated_receipt.link_sent_at = days_ago(4)
        await db.commit()
        service = ReminderService(delivery=delivery)

        result = await service.run(db, ReminderAction.REMIND)

        assert result.emails_sent == 1
        assert result.receipt_codes == [generated_receipt.code]
        assert mailer.reminders == [(generated_receipt.performer.email, generated_receipt.code)]
        assert generated_receipt.status == "SOLLECITATA"
        assert generated_receipt.reminded_at is not None

    async def test_recent_link_not_reminded(self, db, delivery, generated_receipt):
        service = ReminderService(delivery=delivery)

        assert await service.to_remind(db) == []

    async def test_reminder_only_once(self, db, delivery, generated_receipt):
        generated_receipt.link_sent_at = days_ago(4)
        await db.commit()
        service = ReminderService(delivery=delivery)

        await service.send_reminders(db)
        second = await service.send_reminders(db)

        assert second.processed == 0

    async def test_failed_reminder_keeps_status(self, db, storage, generated_receipt):
        generated_receipt.link_sent_at = days_ago(4)
        await db.commit()
        mailer = FakeMailer(fail_for={generated_receipt.performer.email})
        service = ReminderService(
            delivery=ReceiptDeliveryService(renderer=FakeRenderer(), mailer=mailer, storage=storage)
        )

        result = await service.send_reminders(db)

        assert result.emails_failed == 1
        await db.refresh(generated_receipt)
        assert generated_receipt.status == "GENERATA"
        assert generated_receipt.reminded_at is None


class TestExpiry:
    """Tests per la scadenza dei link."""

    async def test_expired_links_marked(self, db, delivery, generated_receipt):
        generated_receipt.token_expires_at = days_ago(1)
        await db.commit()
        service = ReminderService(delivery=delivery)

        overview = await service.overview(db)
        assert [item.code for item in overview.expired] == [generated_receipt.code]

        result = await service.run(db, ReminderAction.EXPIRE)

        assert result.processed == 1
        await db.refresh(generated_receipt)
        assert generated_receipt.status == "SCADUTA"

    async def test_nothing_to_expire(self, db, delivery, generated_receipt):
        result = await ReminderService(delivery=delivery).mark_expired(db)

        assert result.processed == 0


class TestPaymentDeadlines:
    """Tests per le scadenze di pagamento delle ricevute PAGABILE."""

    async def test_due_soon_and_overdue(self, db, delivery, signature_service, generated_receipt):
        await signature_service.sign(
            db,
            generated_receipt.signature_token,
            SignatureRequest(first_name="Mario", last_name="Rossi", accepted=True),
        )
        service = ReminderService(delivery=delivery)
        today = utcnow().date()

        generated_receipt.payment_due_date = today + timedelta(days=2)
        await db.commit()
        overview = await service.overview(db)
        assert [item.code for item in overview.due_soon] == [generated_receipt.code]
        assert overview.overdue == []

        generated_receipt.payment_due_date = today - timedelta(days=1)
        await db.commit()
        overview = await service.overview(db)
        assert overview.due_soon == []
        assert [item.code for item in overview.overdue] == [generated_receipt.code]
