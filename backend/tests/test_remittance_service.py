"""
Tests per le distinte bonifici.
"""

import asyncio
import uuid
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from conftest import REFERENCE_DATE, add_booking, make_performer
from app.core.exceptions import BusinessValidationError, ConflictError, NotFoundError
from app.models import Receipt, Remittance
from app.schemas.payment import SignatureRequest
from app.services.remittance_service import (
    RemittanceService,
    build_remittance_csv,
    format_amount,
    generate_remittance_code,
)


async def payable_receipts(db, batch_service, signature_service, count=2):
    """Genera count ricevute e le firma (PAGABILE)."""
    performers = []
    for i in range(count):
        performer = make_performer(first_name=f"Nome{i}", last_name=f"Cognome{i}")
        db.add(performer)
        performers.append(performer)
    await db.commit()

    await add_booking(db, [(p, Decimal("100.00") + i) for i, p in enumerate(performers)])
    run = await batch_service.generate(db, reference_date=REFERENCE_DATE)

    for receipt in run.receipts:
        await signature_service.sign(
            db,
            receipt.signature_token,
            SignatureRequest(
                first_name=receipt.performer.first_name,
                last_name=receipt.performer.last_name,
                accepted=True,
            ),
        )
    return run.receipts


class TestRemittanceCsv:
    """Tests per il formato CSV della banca."""

    def test_csv_layout(self):
        performer = make_performer(first_name="Mario", last_name="Rossi", iban="it60 x054 2811 1010 0000 0123 456")
        receipt = Receipt(
            total_paid=Decimal("145.00"),
            payment_reason="Prestazione Teatro Centrale 08/03/2025",
            performer=performer,
        )

        content, total = build_remittance_csv([receipt])

        assert total == Decimal("145.00")
        assert content.split("\n") == [
            "Beneficiario;IBAN;Importo;Causale",
            "Rossi Mario;IT60X0542811101000000123456;145,00;Prestazione Teatro Centrale 08/03/2025",
            "",
            "TOTALE;;145,00;",
            "",
        ]

    def test_reason_truncated(self):
        receipt = Receipt(
            total_paid=Decimal("10.00"),
            payment_reason="x" * 300,
            performer=make_performer(),
        )

        content, _ = build_remittance_csv([receipt])

        row = content.split("\n")[1]
        assert row.split(";")[3] == "x" * 140

    def test_format_amount(self):
        assert format_amount(Decimal("1234.5")) == "1234,50"

    def test_remittance_code(self):
        code = generate_remittance_code(date(2025, 3, 20))
        assert code.startswith("DST-20250320-")
        assert len(code) == len("DST-20250320-") + 6


class TestRemittanceService:
    """Tests per RemittanceService.create."""

    async def test_create_marks_paid(self, db, batch_service, signature_service):
        receipts = await payable_receipts(db, batch_service, signature_service)

        remittance = await RemittanceService().create(db, [r.id for r in receipts])

        assert remittance.receipts_count == 2
        assert remittance.total_amount == Decimal("201.00")
        assert remittance.code.startswith("DST-")
        assert remittance.created_at is not None
        assert "TOTALE;;201,00;" in remittance.csv_content
        for receipt in receipts:
            assert receipt.status == "PAGATA"
            assert receipt.remittance_id == remittance.id
            assert receipt.paid_at is not None

    async def test_non_payable_receipt_rejects_all(self, db, batch_service, signature_service, performer):
        """Test una ricevuta non PAGABILE: nessuna distinta, nessuna ricevuta modificata."""
        receipts = await payable_receipts(db, batch_service, signature_service)
        await add_booking(db, [(performer, Decimal("80.00"))])
        run = await batch_service.generate(db, reference_date=REFERENCE_DATE)
        unsigned = [r for r in run.receipts if r.performer_id == performer.id][0]

        with pytest.raises(ConflictError) as exc_info:
            await RemittanceService().create(db, [r.id for r in receipts] + [unsigned.id])

        assert exc_info.value.extra["receipts"] == {unsigned.code: "GENERATA"}
        count = await db.execute(select(func.count()).select_from(Remittance))
        assert count.scalar() == 0
        for receipt in receipts:
            await db.refresh(receipt)
            assert receipt.status == "PAGABILE"
            assert receipt.remittance_id is None

    async def test_paid_receipt_not_exported_twice(self, db, batch_service, signature_service):
        receipts = await payable_receipts(db, batch_service, signature_service, count=1)
        await RemittanceService().create(db, [receipts[0].id])

        with pytest.raises(ConflictError):
            await RemittanceService().create(db, [receipts[0].id])

    async def test_concurrent_remittances_one_wins(self, db, session_factory, batch_service, signature_service):
        """Test due distinte concorrenti sulla stessa ricevuta: ne riesce una sola."""
        receipts = await payable_receipts(db, batch_service, signature_service, count=1)
        receipt_id = receipts[0].id

        async def attempt():
            async with session_factory() as session:
                try:
                    await RemittanceService().create(session, [receipt_id])
                    return "ok"
                except ConflictError:
                    return "conflict"

        results = await asyncio.gather(attempt(), attempt())

        assert sorted(results) == ["conflict", "ok"]
        count = await db.execute(select(func.count()).select_from(Remittance))
        assert count.scalar() == 1
        await db.refresh(receipts[0])
        assert receipts[0].status == "PAGATA"

    async def test_unknown_receipt(self, db):
        with pytest.raises(NotFoundError):
            await RemittanceService().create(db, [uuid.uuid4()])

    async def test_missing_iban(self, db, batch_service, signature_service):
        receipts = await payable_receipts(db, batch_service, signature_service, count=1)
        receipts[0].performer.iban = None
        await db.commit()

        with pytest.raises(BusinessValidationError):
            await RemittanceService().create(db, [receipts[0].id])

        await db.refresh(receipts[0])
        assert receipts[0].status == "PAGABILE"
