"""
Tests per la gestione delle ricevute lato agenzia.
"""

import pytest

from conftest import days_ago
from app.core.exceptions import ConflictError
from app.schemas.payment import ReceiptStatus, SignatureRequest
from app.services.receipt_service import ReceiptService


def mario() -> SignatureRequest:
    return SignatureRequest(first_name="Mario", last_name="Rossi", accepted=True)


class TestResendLink:
    """Tests per il reinvio del link di firma."""

    async def test_resend_keeps_valid_token(self, db, delivery, mailer, generated_receipt):
        token = generated_receipt.signature_token

        outcome = await ReceiptService(delivery=delivery).resend_link(db, generated_receipt.id)

        assert outcome.success is True
        assert generated_receipt.signature_token == token
        assert len(mailer.sent) == 2

    async def test_resend_expired_issues_new_token(self, db, delivery, generated_receipt):
        """Test link scaduto: nuovo token e ricevuta di nuovo GENERATA."""
        old_token = generated_receipt.signature_token
        generated_receipt.status = ReceiptStatus.SCADUTA.value
        generated_receipt.token_expires_at = days_ago(2)
        await db.commit()

        outcome = await ReceiptService(delivery=delivery).resend_link(db, generated_receipt.id)

        assert outcome.success is True
        assert generated_receipt.signature_token != old_token
        assert generated_receipt.status == "GENERATA"
        assert generated_receipt.token_expires_at > days_ago(0)

    async def test_resend_signed_rejected(self, db, delivery, signature_service, generated_receipt):
        await signature_service.sign(db, generated_receipt.signature_token, mario())

        with pytest.raises(ConflictError):
            await ReceiptService(delivery=delivery).resend_link(db, generated_receipt.id)


class TestApprove:
    """Tests per l'approvazione delle ricevute firmate."""

    async def test_approve_signed(self, db, delivery, generated_receipt):
        generated_receipt.status = ReceiptStatus.FIRMATA.value
        await db.commit()

        receipt = await ReceiptService(delivery=delivery).approve(db, generated_receipt.id)

        assert receipt.status == "PAGABILE"

    async def test_approve_unsigned_rejected(self, db, delivery, generated_receipt):
        with pytest.raises(ConflictError):
            await ReceiptService(delivery=delivery).approve(db, generated_receipt.id)


class TestQueries:
    async def test_summary_and_filters(self, db, delivery, generated_receipt):
        service = ReceiptService(delivery=delivery)

        summary = await service.summary(db)
        generated, total = await service.get_all(db, status_filter=ReceiptStatus.GENERATA)
        paid, paid_total = await service.get_all(db, status_filter=ReceiptStatus.PAGATA)

        assert summary["GENERATA"] == 1
        assert summary["PAGATA"] == 0
        assert total == 1 and generated[0].id == generated_receipt.id
        assert paid == [] and paid_total == 0

    async def test_pdf_from_archive(self, db, delivery, renderer, generated_receipt):
        filename, content = await ReceiptService(delivery=delivery).get_pdf(db, generated_receipt.id)

        assert filename == f"Ricevuta_{generated_receipt.code}.pdf"
        assert content == f"%PDF-1.4 {generated_receipt.code}".encode()
        # Rigenerato una sola volta: alla generazione del batch
        assert renderer.rendered == [generated_receipt.code]
