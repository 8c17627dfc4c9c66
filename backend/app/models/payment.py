"""
Modelli SQLAlchemy per i Pagamenti delle Prestazioni Occasionali
Progetto: Agency Manager (Gestionale Agenzia)

Contiene:
- PaymentBatch: Batch di generazione ricevute per un periodo
- Receipt: Ricevuta di prestazione occasionale (una per artista per batch)
- ReceiptCounter: Progressivo ricevute per artista e anno
- Remittance: Distinta bonifici
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models import Base
from app.models.mixins import TimestampMixin, UUIDMixin
from app.models.types import BookingSnapshot, BookingSnapshotList

if TYPE_CHECKING:
    from app.models.performer import Performer


# Gli stati sono definiti in app.schemas.payment (ReceiptStatus, BatchStatus)


class PaymentBatch(Base, UUIDMixin, TimestampMixin):
    """
    Batch di generazione ricevute.

    Uno per esecuzione della generazione. Immutabile dopo la creazione
    tranne i contatori aggregati, aggiornati a fine generazione.

    Attributes:
        code: Codice batch (formato: BP-YYYY-NN)
        year: Anno di generazione
        month: Mese di generazione
        period: 1 = prima quindicina, 2 = seconda quindicina, 0 = forzato
        start_date: Inizio finestra agibilità
        end_date: Fine finestra agibilità (inclusa)
        generated_at: Data/ora di generazione
        status: Stato del batch (GENERATO)
        receipts_count: Ricevute generate
        total_amount: Totale importi delle ricevute generate
    """

    __tablename__ = "payment_batches"

    code: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        unique=True,
        doc="Codice batch (formato: BP-YYYY-NN)",
    )

    year: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    period: Mapped[int] = mapped_column(Integer, nullable=False)

    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)

    generated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        doc="Data/ora di generazione",
    )

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="GENERATO",
    )

    receipts_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("0.00"),
    )

    receipts: Mapped[List["Receipt"]] = relationship(
        "Receipt",
        back_populates="batch",
        lazy="noload",
    )

    __table_args__ = (
        CheckConstraint("period IN (0, 1, 2)", name="ck_payment_batches_period"),
        CheckConstraint("status IN ('GENERATO')", name="ck_payment_batches_status"),
    )

    def __repr__(self) -> str:
        return f"<PaymentBatch(code={self.code}, period={self.period}, receipts={self.receipts_count})>"


class Receipt(Base, UUIDMixin, TimestampMixin):
    """
    Ricevuta di prestazione occasionale.

    Creata dal batch in stato GENERATA, modificata solo dalla firma
    (tramite token) e dalla distinta (pagamento). Non viene mai eliminata.

    Attributes:
        number: Progressivo per artista e anno
        year: Anno della ricevuta
        code: Codice (formato: PO-YYYY-<6 car. CF>-NNN)
        bookings: Agibilità incluse, congelate alla generazione
        original_*: Importi alla generazione (audit)
        gross_amount/net_amount/withholding: Importi correnti (ricalcolati alla firma)
        reimbursement: Rimborso spese riconosciuto
        advance_fee: Costo del pagamento anticipato
        total_paid: Importo da bonificare
        signature_token: Token del link pubblico di firma
        token_expires_at: Scadenza del token
        payment_reason: Causale del bonifico
        pdf_path: Path relativo del PDF archiviato

    States (State Machine):
        GENERATA → SOLLECITATA → FIRMATA → PAGABILE → IN_DISTINTA → PAGATA
            ↓           ↓
          SCADUTA ←─────┘
    """

    __tablename__ = "receipts"

    # ------------------------------------------------------------
    # Identificazione
    # ------------------------------------------------------------
    number: Mapped[int] = mapped_column(Integer, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)

    code: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        index=True,
        doc="Codice ricevuta (formato: PO-YYYY-XXXXXX-NNN)",
    )

    performer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("performers.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    batch_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("payment_batches.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    bookings: Mapped[tuple[BookingSnapshot, ...]] = mapped_column(
        BookingSnapshotList,
        nullable=False,
        default=tuple,
        doc="Agibilità incluse (snapshot alla generazione)",
    )

    # ------------------------------------------------------------
    # Importi
    # ------------------------------------------------------------
    original_gross_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    original_net_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    original_withholding: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    gross_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    net_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    withholding: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    reimbursement: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, default=Decimal("0.00")
    )
    advance_fee: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, default=Decimal("0.00")
    )
    total_paid: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    # ------------------------------------------------------------
    # Stato e link di firma
    # ------------------------------------------------------------
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="GENERATA",
    )

    issued_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    signature_token: Mapped[str] = mapped_column(
        String(128),
        nullable=False,
        unique=True,
        doc="Token del link pubblico di firma",
    )

    token_expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    link_sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    reminded_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # ------------------------------------------------------------
    # Firma
    # ------------------------------------------------------------
    payment_timing: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    signed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    signer_first_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    signer_last_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    signer_ip: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    signer_user_agent: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    supporting_documents: Mapped[list[str]] = mapped_column(
        JSON,
        nullable=False,
        default=list,
        doc="Path relativi dei giustificativi del rimborso spese",
    )

    # ------------------------------------------------------------
    # Pagamento
    # ------------------------------------------------------------
    payment_due_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    payment_reason: Mapped[str] = mapped_column(Text, nullable=False, doc="Causale bonifico")
    pdf_path: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    remittance_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("remittances.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # ------------------------------------------------------------
    # Relationships
    # ------------------------------------------------------------
    performer: Mapped["Performer"] = relationship(
        "Performer",
        lazy="joined",
    )

    batch: Mapped["PaymentBatch"] = relationship(
        "PaymentBatch",
        back_populates="receipts",
        lazy="noload",
    )

    remittance: Mapped[Optional["Remittance"]] = relationship(
        "Remittance",
        back_populates="receipts",
        lazy="noload",
    )

    __table_args__ = (
        UniqueConstraint("performer_id", "year", "number", name="uq_receipts_performer_year_number"),
        Index("ix_receipts_status", "status"),
        CheckConstraint(
            "status IN ('GENERATA', 'SOLLECITATA', 'FIRMATA', 'SCADUTA', "
            "'PAGABILE', 'IN_DISTINTA', 'PAGATA')",
            name="ck_receipts_status",
        ),
        CheckConstraint(
            "payment_timing IS NULL OR payment_timing IN ('STANDARD', 'ANTICIPATO')",
            name="ck_receipts_payment_timing",
        ),
    )

    def __repr__(self) -> str:
        return f"<Receipt(code={self.code}, status={self.status}, total={self.total_paid})>"


class ReceiptCounter(Base, UUIDMixin, TimestampMixin):
    """
    Progressivo ricevute per artista e anno.

    Contiene l'ultimo numero assegnato; strettamente crescente,
    mai riutilizzato.
    """

    __tablename__ = "receipt_counters"

    performer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("performers.id", ondelete="RESTRICT"),
        nullable=False,
    )

    year: Mapped[int] = mapped_column(Integer, nullable=False)

    last_number: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("performer_id", "year", name="uq_receipt_counters_performer_year"),
        CheckConstraint("last_number >= 0", name="ck_receipt_counters_last_number"),
    )

    def __repr__(self) -> str:
        return f"<ReceiptCounter(performer_id={self.performer_id}, year={self.year}, last={self.last_number})>"


class Remittance(Base, UUIDMixin, TimestampMixin):
    """
    Distinta bonifici.

    Generata insieme al passaggio a PAGATA delle ricevute incluse.

    Attributes:
        code: Codice distinta (formato: DST-YYYYMMDD-NNNNNN)
        receipts_count: Numero ricevute incluse
        total_amount: Totale bonifici
        csv_content: File esportato per la banca
    """

    __tablename__ = "remittances"

    code: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        unique=True,
        doc="Codice distinta",
    )

    receipts_count: Mapped[int] = mapped_column(Integer, nullable=False)

    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    csv_content: Mapped[str] = mapped_column(Text, nullable=False)

    receipts: Mapped[List["Receipt"]] = relationship(
        "Receipt",
        back_populates="remittance",
        lazy="noload",
    )

    def __repr__(self) -> str:
        return f"<Remittance(code={self.code}, receipts={self.receipts_count}, total={self.total_amount})>"
