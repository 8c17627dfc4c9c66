"""
Pytest configuration and fixtures per il motore pagamenti.

I test di integrazione usano un database SQLite (aiosqlite) su file
temporaneo: lo schema viene creato da Base.metadata per ogni test.
Renderer PDF e invio email sono sostituiti da classi fake.
"""

import os
import tempfile

# Variabili d'ambiente impostate prima di importare l'app (settings è un singleton)
_TEST_DIR = tempfile.mkdtemp(prefix="agency-manager-tests-")
os.environ["APP_ENV"] = "testing"
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_TEST_DIR, 'app.db')}"
os.environ["RECEIPTS_DIR"] = os.path.join(_TEST_DIR, "ricevute")
os.environ["SMTP_HOST"] = ""

from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import AsyncGenerator, Optional

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine

from app.core.clock import utcnow
from app.core.database import create_session_factory, engine_options
from app.models import Base, Booking, BookingPerformer, Client, Performer, Venue
from app.services.batch_service import PaymentBatchService
from app.services.delivery_service import ReceiptDeliveryService
from app.services.signature_service import SignatureService
from app.services.storage_service import ReceiptStorage

# Data di riferimento dei test: 20/03/2025 -> prima quindicina di marzo
REFERENCE_DATE = date(2025, 3, 20)
EVENT_DATE = date(2025, 3, 8)


# ============================================================
# Fake per PDF ed email
# ============================================================


class FakeRenderer:
    """Renderer PDF fittizio: non richiede WeasyPrint."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.rendered = []

    def generate_receipt_pdf(self, receipt, performer) -> bytes:
        if self.fail:
            raise RuntimeError("renderer non disponibile")
        self.rendered.append(receipt.code)
        return f"%PDF-1.4 {receipt.code}".encode()


class FakeMailer:
    """Mailer fittizio che registra gli invii."""

    def __init__(self, fail_for: Optional[set] = None, result: bool = True):
        self.fail_for = fail_for or set()
        self.result = result
        self.sent = []
        self.reminders = []

    async def send_signature_link(self, receipt, performer, pdf_bytes=None, pdf_filename=None) -> bool:
        if performer.email in self.fail_for:
            raise ConnectionError("SMTP non raggiungibile")
        self.sent.append((performer.email, receipt.code, pdf_filename))
        return self.result

    async def send_reminder(self, receipt, performer) -> bool:
        if performer.email in self.fail_for:
            return False
        self.reminders.append((performer.email, receipt.code))
        return self.result


# ============================================================
# Database
# ============================================================


@pytest.fixture
async def engine(tmp_path):
    """Engine SQLite su file con schema creato da zero."""
    url = f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"
    engine = create_async_engine(url, **engine_options(url))
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    """Session factory con le stesse opzioni di AsyncSessionLocal."""
    return create_session_factory(engine)


@pytest.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


# ============================================================
# Servizi con collaboratori fake
# ============================================================


@pytest.fixture
def storage(tmp_path) -> ReceiptStorage:
    return ReceiptStorage(base_dir=str(tmp_path / "ricevute"))


@pytest.fixture
def renderer() -> FakeRenderer:
    return FakeRenderer()


@pytest.fixture
def mailer() -> FakeMailer:
    return FakeMailer()


@pytest.fixture
def delivery(renderer, mailer, storage) -> ReceiptDeliveryService:
    return ReceiptDeliveryService(renderer=renderer, mailer=mailer, storage=storage)


@pytest.fixture
def batch_service(delivery) -> PaymentBatchService:
    return PaymentBatchService(delivery=delivery)


@pytest.fixture
def signature_service(storage) -> SignatureService:
    return SignatureService(storage=storage)


# ============================================================
# Dati di test
# ============================================================

_counter = {"tax_code": 0, "booking": 0}


def make_performer(**kwargs) -> Performer:
    """Artista con profilo fiscale completo (sovrascrivibile)."""
    _counter["tax_code"] += 1
    n = _counter["tax_code"]
    data = {
        "first_name": "Mario",
        "last_name": "Rossi",
        "tax_code": f"RSSMRA{n:02d}C10H501Z"[:16],
        "address": "Via Roma 1",
        "postal_code": "00100",
        "city": "Roma",
        "province": "RM",
        "iban": "IT60 X054 2811 1010 0000 0123 456",
        "email": f"artista{n}@example.com",
        "contract_type": "PRESTAZIONE_OCCASIONALE",
    }
    data.update(kwargs)
    return Performer(**data)


def split_net(net: Decimal) -> tuple[Decimal, Decimal, Decimal]:
    """Lordo, netto e ritenuta al 20% a partire dal netto."""
    gross = (net / Decimal("0.80")).quantize(Decimal("0.01"))
    return gross, net, gross - net


async def add_booking(
    db: AsyncSession,
    lines: list[tuple[Performer, Decimal]],
    event_date: date = EVENT_DATE,
    status: str = "COMPLETATA",
    client: Optional[Client] = None,
    venue_name: str = "Teatro Centrale",
    invoice_status: str = "DA_FATTURARE",
) -> Booking:
    """Crea un'agibilità con i compensi indicati e la salva."""
    _counter["booking"] += 1
    client = client or Client(name="Eventi S.r.l.", at_risk=False)
    venue = Venue(name=venue_name, city="Roma")
    booking = Booking(
        code=f"AG-{_counter['booking']:05d}",
        event_date=event_date,
        status=status,
        invoice_status=invoice_status,
        client=client,
        venue=venue,
    )
    for performer, net in lines:
        gross, net_amount, withholding = split_net(Decimal(net))
        booking.performers.append(
            BookingPerformer(
                performer=performer,
                gross_amount=gross,
                net_amount=net_amount,
                withholding=withholding,
            )
        )
    db.add(booking)
    await db.commit()
    return booking


@pytest.fixture
async def performer(db) -> Performer:
    performer = make_performer()
    db.add(performer)
    await db.commit()
    return performer


@pytest.fixture
async def generated_receipt(db, batch_service, performer):
    """Ricevuta GENERATA da 150,00 netti per l'artista di default."""
    await add_booking(db, [(performer, Decimal("150.00"))])
    run = await batch_service.generate(db, reference_date=REFERENCE_DATE)
    return run.receipts[0]


def days_ago(days: int) -> datetime:
    return utcnow() - timedelta(days=days)
