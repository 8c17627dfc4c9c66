"""
Tests per la generazione dei batch di pagamento.
"""

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from conftest import REFERENCE_DATE, FakeMailer, FakeRenderer, add_booking, make_performer
from app.core.exceptions import ConflictError, NoEligiblePerformersError
from app.models import PaymentBatch, Receipt
from app.models.types import BookingSnapshot
from app.services.batch_service import (
    PaymentBatchService,
    build_payment_reason,
    new_signature_token,
    token_expiry,
)
from app.services.delivery_service import ReceiptDeliveryService
from app.services.numbering_service import ReceiptNumberingService


NAMES = [
    ("Mario", "Rossi"), ("Luca", "Bianchi"), ("Anna", "Verdi"), ("Sara", "Neri"),
    ("Paolo", "Gallo"), ("Elena", "Conti"), ("Marco", "Costa"), ("Giulia", "Fontana"),
    ("Davide", "Greco"), ("Chiara", "Marino"),
]


class FailingNumbering(ReceiptNumberingService):
    """Progressivo che fallisce alla n-esima richiesta."""

    def __init__(self, fail_on_call: int):
        self.fail_on_call = fail_on_call
        self.calls = 0

    async def next_number(self, db, performer_id, year):
        self.calls += 1
        if self.calls == self.fail_on_call:
            raise ConflictError("Progressivo non disponibile")
        return await super().next_number(db, performer_id, year)


async def seed_performers(db, count, **overrides_by_index):
    performers = []
    for i in range(count):
        first_name, last_name = NAMES[i % len(NAMES)]
        overrides = overrides_by_index.get(f"p{i}", {})
        performer = make_performer(first_name=first_name, last_name=last_name, **overrides)
        db.add(performer)
        performers.append(performer)
    await db.commit()
    return performers


class TestBatchGeneration:
    """Tests per PaymentBatchService.generate."""

    async def test_incomplete_profiles_excluded(self, db, batch_service, mailer):
        """Test 10 artisti, 2 senza IBAN: 8 ricevute e 2 incompleti."""
        performers = await seed_performers(db, 10, p3={"iban": None}, p7={"iban": ""})
        await add_booking(db, [(p, Decimal("120.00")) for p in performers])

        run = await batch_service.generate(db, reference_date=REFERENCE_DATE)

        assert len(run.receipts) == 8
        assert len(run.incomplete) == 2
        assert all(g.missing_fields == ["IBAN"] for g in run.incomplete)
        assert run.batch.receipts_count == 8
        assert run.batch.total_amount == Decimal("960.00")
        assert run.batch.code == "BP-2025-01"
        assert run.batch.period == 1
        assert run.emails_sent == 8
        assert len(mailer.sent) == 8

        count = await db.execute(select(func.count()).select_from(Receipt))
        assert count.scalar() == 8

    async def test_receipt_fields(self, db, batch_service, performer):
        await add_booking(db, [(performer, Decimal("100.00"))], event_date=date(2025, 3, 3), venue_name="Blue Note")
        await add_booking(db, [(performer, Decimal("50.00"))], event_date=date(2025, 3, 1), venue_name="Jazz Club")

        run = await batch_service.generate(db, reference_date=REFERENCE_DATE)
        receipt = run.receipts[0]

        assert receipt.number == 1
        assert receipt.year == 2025
        assert receipt.code == f"PO-2025-{performer.tax_code[:6]}-001"
        assert receipt.status == "GENERATA"
        assert receipt.original_net_amount == Decimal("150.00")
        assert receipt.total_paid == Decimal("150.00")
        assert len(receipt.signature_token) == 64
        assert receipt.payment_reason == "Prestazione Jazz Club 01/03/2025, Blue Note 03/03/2025"
        assert receipt.pdf_path.endswith(f"Ricevuta_{receipt.code}.pdf")
        assert receipt.link_sent_at is not None

    async def test_numbers_continue_across_batches(self, db, batch_service, performer):
        await add_booking(db, [(performer, Decimal("100.00"))], event_date=date(2025, 3, 3))
        first = await batch_service.generate(db, reference_date=REFERENCE_DATE)

        await add_booking(db, [(performer, Decimal("100.00"))], event_date=date(2025, 3, 20))
        second = await batch_service.generate(db, reference_date=date(2025, 4, 2))

        assert first.receipts[0].number == 1
        assert second.receipts[0].number == 2
        assert second.batch.code == "BP-2025-02"

    async def test_delivery_failure_does_not_abort(self, db, storage):
        """Test errore email per un artista: ricevute e batch restano, esito registrato."""
        performers = await seed_performers(db, 3)
        failing = performers[1].email
        service = PaymentBatchService(
            delivery=ReceiptDeliveryService(
                renderer=FakeRenderer(),
                mailer=FakeMailer(fail_for={failing}),
                storage=storage,
            )
        )
        await add_booking(db, [(p, Decimal("100.00")) for p in performers])

        run = await service.generate(db, reference_date=REFERENCE_DATE)

        assert len(run.receipts) == 3
        assert run.emails_sent == 2
        assert run.emails_failed == 1
        failed = [d for d in run.deliveries if not d.success][0]
        assert failed.email == failing
        assert failed.error.startswith("Invio email fallito")

        failed_receipt = await db.get(Receipt, failed.receipt_id)
        assert failed_receipt.status == "GENERATA"
        assert failed_receipt.link_sent_at is None

    async def test_pdf_failure_recorded(self, db, storage, performer):
        service = PaymentBatchService(
            delivery=ReceiptDeliveryService(
                renderer=FakeRenderer(fail=True),
                mailer=FakeMailer(),
                storage=storage,
            )
        )
        await add_booking(db, [(performer, Decimal("100.00"))])

        run = await service.generate(db, reference_date=REFERENCE_DATE)

        assert run.receipts[0].pdf_path is None
        assert run.deliveries[0].error.startswith("Generazione PDF fallita")

    async def test_no_eligible_performers(self, db, batch_service):
        """Test nessun artista pronto: errore e nessun batch creato."""
        performers = await seed_performers(db, 1, p0={"tax_code": None})
        await add_booking(db, [(performers[0], Decimal("100.00"))])

        with pytest.raises(NoEligiblePerformersError) as exc_info:
            await batch_service.generate(db, reference_date=REFERENCE_DATE)

        assert exc_info.value.extra["incomplete"][0]["missing_fields"] == ["Codice Fiscale"]
        count = await db.execute(select(func.count()).select_from(PaymentBatch))
        assert count.scalar() == 0

    async def test_snapshot_not_affected_by_later_changes(self, db, batch_service, performer):
        """Test le agibilità nella ricevuta non cambiano se cambia l'agibilità di origine."""
        booking = await add_booking(db, [(performer, Decimal("100.00"))])
        run = await batch_service.generate(db, reference_date=REFERENCE_DATE)
        receipt_id = run.receipts[0].id

        booking.performers[0].net_amount = Decimal("999.00")
        booking.venue.name = "Locale rinominato"
        await db.commit()
        db.expire_all()

        receipt = await db.get(Receipt, receipt_id)
        assert receipt.bookings[0].net_amount == Decimal("100.00")
        assert receipt.bookings[0].venue == "Teatro Centrale"
        assert receipt.original_net_amount == Decimal("100.00")

    async def test_booking_not_paid_twice(self, db, batch_service, performer):
        """Test un'agibilità già in una ricevuta non viene riproposta."""
        await add_booking(db, [(performer, Decimal("100.00"))])
        await batch_service.generate(db, reference_date=REFERENCE_DATE)

        with pytest.raises(NoEligiblePerformersError):
            await batch_service.generate(db, reference_date=REFERENCE_DATE)

        forced = await batch_service.preview(db, force=True, reference_date=REFERENCE_DATE)
        assert forced.ready == []

    async def test_allowlist(self, db, batch_service):
        performers = await seed_performers(db, 3)
        await add_booking(db, [(p, Decimal("100.00")) for p in performers])

        run = await batch_service.generate(
            db,
            performer_ids=[performers[2].id],
            reference_date=REFERENCE_DATE,
        )

        assert [r.performer_id for r in run.receipts] == [performers[2].id]

    async def test_interrupted_batch_totals_match_receipts(self, db, session_factory, delivery):
        """Test errore sul secondo artista: totali del batch allineati alle ricevute salvate."""
        performers = await seed_performers(db, 3)
        await add_booking(db, [(p, Decimal("100.00")) for p in performers])
        service = PaymentBatchService(delivery=delivery, numbering=FailingNumbering(fail_on_call=2))

        with pytest.raises(ConflictError):
            await service.generate(db, reference_date=REFERENCE_DATE)

        async with session_factory() as session:
            batch = (await session.execute(select(PaymentBatch))).scalar_one()
            receipts = (
                await session.execute(select(Receipt).where(Receipt.batch_id == batch.id))
            ).unique().scalars().all()
            assert len(receipts) == 1
            assert batch.receipts_count == 1
            assert batch.total_amount == sum(r.total_paid for r in receipts)


class TestBatchPreview:
    """Tests per l'anteprima."""

    async def test_preview_writes_nothing(self, db, batch_service):
        performers = await seed_performers(db, 2, p1={"email": None})
        await add_booking(db, [(p, Decimal("100.00")) for p in performers])

        preview = await batch_service.preview(db, reference_date=REFERENCE_DATE)

        assert preview.can_generate is True
        assert len(preview.ready) == 1
        assert preview.incomplete[0].missing_fields == ["Email"]
        assert preview.total_net == Decimal("100.00")
        count = await db.execute(select(func.count()).select_from(Receipt))
        assert count.scalar() == 0


class TestPaymentReason:
    def test_reason_lists_venues_and_dates(self):
        snapshot = BookingSnapshot(
            booking_id=uuid.uuid4(),
            code="AG-1",
            venue="Teatro Centrale",
            event_date=date(2025, 3, 8),
            gross_amount=Decimal("125.00"),
            net_amount=Decimal("100.00"),
            withholding=Decimal("25.00"),
        )
        assert build_payment_reason([snapshot]) == "Prestazione Teatro Centrale 08/03/2025"


class TestSignatureToken:
    def test_token_expiry_after_link_days(self):
        issued_at = datetime(2025, 3, 20, 10, 30, tzinfo=timezone.utc)

        assert token_expiry(issued_at) == datetime(2025, 3, 27, 10, 30, tzinfo=timezone.utc)

    def test_token_is_hex(self):
        token = new_signature_token()

        assert len(token) == 64
        int(token, 16)
