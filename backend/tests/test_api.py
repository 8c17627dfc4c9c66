"""
Tests per gli endpoint HTTP (httpx + ASGITransport).

Sessione database e servizi sono sostituiti tramite
app.dependency_overrides con le fixture di test.
"""

import uuid
from datetime import date, timedelta
from decimal import Decimal

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select

from conftest import add_booking
from app.api.v1.payment_batches import get_payment_batch_service
from app.api.v1.receipts import get_receipt_service
from app.api.v1.remittances import get_remittance_service
from app.api.v1.reminders import get_reminder_service
from app.api.v1.signatures import get_signature_service
from app.core.database import get_db
from app.main import app
from app.models import Receipt
from app.services.receipt_service import ReceiptService
from app.services.reminder_service import ReminderService
from app.services.remittance_service import RemittanceService


@pytest.fixture
async def client(session_factory, batch_service, signature_service, delivery):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_batch_service] = lambda: batch_service
    app.dependency_overrides[get_signature_service] = lambda: signature_service
    app.dependency_overrides[get_receipt_service] = lambda: ReceiptService(delivery=delivery)
    app.dependency_overrides[get_reminder_service] = lambda: ReminderService(delivery=delivery)
    app.dependency_overrides[get_remittance_service] = lambda: RemittanceService()

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


class TestSystem:
    async def test_health(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    async def test_unknown_token(self, client):
        response = await client.get(f"/api/v1/firma/{'0' * 64}")

        assert response.status_code == 404
        assert response.json()["error_code"] == "RESOURCE_NOT_FOUND"

    async def test_short_token_rejected(self, client):
        response = await client.get("/api/v1/firma/abc")

        assert response.status_code == 422

    async def test_no_eligible_performers(self, client):
        response = await client.post("/api/v1/payment-batches/", json={"force": True})

        assert response.status_code == 422
        assert response.json()["error_code"] == "NO_ELIGIBLE_PERFORMERS"


class TestPaymentFlow:
    """Generazione, firma ed esportazione della distinta via API."""

    async def test_full_flow(self, client, db, performer):
        await add_booking(
            db,
            [(performer, Decimal("150.00"))],
            event_date=date.today() - timedelta(days=1),
        )

        # Anteprima
        response = await client.get("/api/v1/payment-batches/preview", params={"force": True})
        assert response.status_code == 200
        preview = response.json()
        assert preview["can_generate"] is True
        assert len(preview["ready"]) == 1

        # Generazione
        response = await client.post("/api/v1/payment-batches/", json={"force": True})
        assert response.status_code == 201
        generation = response.json()
        assert generation["receipts_generated"] == 1
        assert generation["emails_sent"] == 1
        assert generation["deliveries"][0]["success"] is True
        receipt_id = generation["deliveries"][0]["receipt_id"]

        response = await client.get(f"/api/v1/receipts/{receipt_id}")
        assert response.status_code == 200
        receipt = response.json()
        assert receipt["status"] == "GENERATA"

        token = await _token(db, receipt_id)

        # Firma pubblica
        response = await client.get(f"/api/v1/firma/{token}")
        assert response.status_code == 200
        form = response.json()
        assert form["already_signed"] is False
        assert form["performer_last_name"] == "Rossi"

        response = await client.post(
            f"/api/v1/firma/{token}",
            json={
                "first_name": "Mario",
                "last_name": "Rossi",
                "accepted": True,
                "payment_timing": "ANTICIPATO",
            },
            headers={"X-Forwarded-For": "203.0.113.7, 10.0.0.1", "User-Agent": "pytest"},
        )
        assert response.status_code == 200
        confirmation = response.json()
        assert confirmation["status"] == "PAGABILE"
        assert Decimal(confirmation["total_paid"]) == Decimal("145.00")

        response = await client.post(
            f"/api/v1/firma/{token}",
            json={"first_name": "Mario", "last_name": "Rossi", "accepted": True},
        )
        assert response.status_code == 409
        assert response.json()["error_code"] == "ALREADY_SIGNED"

        # PDF
        response = await client.get(f"/api/v1/receipts/{receipt_id}/pdf")
        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert response.content.startswith(b"%PDF")

        # Distinta
        response = await client.post("/api/v1/remittances/", json={"receipt_ids": [receipt_id]})
        assert response.status_code == 201
        assert response.headers["content-type"].startswith("text/csv")
        assert response.headers["x-remittance-code"].startswith("DST-")
        assert "145,00" in response.text

        response = await client.get("/api/v1/receipts/", params={"status": "PAGATA"})
        assert response.status_code == 200
        listing = response.json()
        assert listing["total"] == 1
        assert listing["summary"]["PAGATA"] == 1

        response = await client.post("/api/v1/remittances/", json={"receipt_ids": [receipt_id]})
        assert response.status_code == 409


async def _token(db, receipt_id: str) -> str:
    """Token di firma letto dal database (non esposto dalle API agenzia)."""
    result = await db.execute(
        select(Receipt.signature_token).where(Receipt.id == uuid.UUID(receipt_id))
    )
    return result.scalar_one()
