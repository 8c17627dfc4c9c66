"""
Schemas Pydantic per i Pagamenti delle Prestazioni Occasionali
Progetto: Agency Manager (Gestionale Agenzia)

Contiene:
- Enums: ReceiptStatus, PaymentTiming, BatchStatus, ContractType,
  BookingStatus, InvoiceCollectionStatus, ReminderAction
- Matrice VALID_TRANSITIONS delle ricevute
- Schemas per batch, ricevute, firma, distinte e solleciti
"""

import datetime
import uuid
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.models.types import BookingSnapshot


# -------------------------------------------------------------------
# Enum
# -------------------------------------------------------------------

class ReceiptStatus(str, Enum):
    """Stati di una ricevuta di prestazione occasionale."""
    GENERATA = "GENERATA"
    SOLLECITATA = "SOLLECITATA"
    FIRMATA = "FIRMATA"
    SCADUTA = "SCADUTA"
    PAGABILE = "PAGABILE"
    IN_DISTINTA = "IN_DISTINTA"
    PAGATA = "PAGATA"


class PaymentTiming(str, Enum):
    """Tempistica di pagamento scelta dall'artista alla firma."""
    STANDARD = "STANDARD"
    ANTICIPATO = "ANTICIPATO"


class BatchStatus(str, Enum):
    """Stati del batch di pagamento."""
    GENERATO = "GENERATO"


class ContractType(str, Enum):
    """Tipi di contratto artista."""
    PRESTAZIONE_OCCASIONALE = "PRESTAZIONE_OCCASIONALE"
    PARTITA_IVA = "PARTITA_IVA"
    FULL_TIME = "FULL_TIME"
    CHIAMATA = "CHIAMATA"


class BookingStatus(str, Enum):
    """Stati dell'agibilità."""
    BOZZA = "BOZZA"
    DA_COMPLETARE = "DA_COMPLETARE"
    PRONTA = "PRONTA"
    INVIATA_INPS = "INVIATA_INPS"
    COMPLETATA = "COMPLETATA"
    ANNULLATA = "ANNULLATA"


class InvoiceCollectionStatus(str, Enum):
    """Stato della fattura al committente."""
    DA_FATTURARE = "DA_FATTURARE"
    FATTURATA = "FATTURATA"
    PAGATA = "PAGATA"


class ReminderAction(str, Enum):
    """Azioni disponibili sui solleciti."""
    REMIND = "remind"
    EXPIRE = "expire"


# -------------------------------------------------------------------
# Matrice delle transizioni di stato valide
# -------------------------------------------------------------------

# Unica source of truth per le transizioni delle ricevute, importata dai service.
VALID_TRANSITIONS: dict[ReceiptStatus, list[ReceiptStatus]] = {
    ReceiptStatus.GENERATA: [
        ReceiptStatus.SOLLECITATA,
        ReceiptStatus.FIRMATA,
        ReceiptStatus.PAGABILE,
        ReceiptStatus.SCADUTA,
    ],
    ReceiptStatus.SOLLECITATA: [
        ReceiptStatus.FIRMATA,
        ReceiptStatus.PAGABILE,
        ReceiptStatus.SCADUTA,
    ],
    ReceiptStatus.SCADUTA: [ReceiptStatus.GENERATA],  # Solo tramite reinvio link
    ReceiptStatus.FIRMATA: [ReceiptStatus.PAGABILE],
    ReceiptStatus.PAGABILE: [ReceiptStatus.IN_DISTINTA, ReceiptStatus.PAGATA],
    ReceiptStatus.IN_DISTINTA: [ReceiptStatus.PAGATA],
    ReceiptStatus.PAGATA: [],  # Stato finale
}

# Stati in cui la ricevuta può ancora essere firmata
SIGNABLE_STATUSES: tuple[ReceiptStatus, ...] = (
    ReceiptStatus.GENERATA,
    ReceiptStatus.SOLLECITATA,
)

# Stati raggiunti solo dopo la firma
SIGNED_STATUSES: tuple[ReceiptStatus, ...] = (
    ReceiptStatus.FIRMATA,
    ReceiptStatus.PAGABILE,
    ReceiptStatus.IN_DISTINTA,
    ReceiptStatus.PAGATA,
)


def can_transition(current: ReceiptStatus, target: ReceiptStatus) -> bool:
    """Indica se la transizione current -> target è ammessa."""
    return target in VALID_TRANSITIONS.get(current, [])


# -------------------------------------------------------------------
# Schemas per Artista (sola lettura)
# -------------------------------------------------------------------

class PerformerSummary(BaseModel):
    """Dati essenziali dell'artista riportati su ricevute e report."""

    id: uuid.UUID
    first_name: str
    last_name: str
    stage_name: Optional[str] = None
    tax_code: Optional[str] = None
    iban: Optional[str] = None
    email: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


# -------------------------------------------------------------------
# Schemas per PaymentBatch
# -------------------------------------------------------------------

class PaymentBatchCreate(BaseModel):
    """
    Richiesta di generazione batch.

    Se performer_ids è valorizzato, vengono generate ricevute solo per
    gli artisti indicati; force usa la finestra di recupero (ultimi due mesi).
    """

    performer_ids: Optional[list[uuid.UUID]] = Field(
        None,
        description="Artisti da includere (default: tutti gli idonei)",
    )
    force: bool = Field(False, description="Usa la finestra di recupero invece della quindicina")


class PaymentBatchRead(BaseModel):
    """Schema per la lettura di un batch."""

    id: uuid.UUID
    code: str
    year: int
    month: int
    period: int
    start_date: datetime.date
    end_date: datetime.date
    generated_at: datetime.datetime
    status: BatchStatus
    receipts_count: int
    total_amount: Decimal

    model_config = ConfigDict(from_attributes=True)


class PaymentBatchList(BaseModel):
    """Lista dei batch (più recenti prima)."""

    items: list[PaymentBatchRead]
    total: int


class DeliveryOutcomeRead(BaseModel):
    """Esito della consegna (PDF + email) per un artista."""

    performer_id: uuid.UUID
    performer_name: str
    receipt_id: uuid.UUID
    receipt_code: str
    email: Optional[str] = None
    success: bool
    error: Optional[str] = None


class ExcludedPerformerRead(BaseModel):
    """Artista escluso dalla generazione, con il motivo."""

    performer_id: uuid.UUID
    performer_name: str
    reason: str
    missing_fields: list[str] = Field(default_factory=list)


class BatchGenerationResponse(BaseModel):
    """Riepilogo di una generazione batch."""

    batch: PaymentBatchRead
    receipts_generated: int
    emails_sent: int
    emails_failed: int
    deliveries: list[DeliveryOutcomeRead]
    incomplete: list[ExcludedPerformerRead]
    excluded: list[ExcludedPerformerRead]


class PreviewPerformer(BaseModel):
    """Artista nell'anteprima del batch."""

    performer_id: uuid.UUID
    performer_name: str
    tax_code: Optional[str] = None
    bookings_count: int
    bookings: list[BookingSnapshot]
    gross_amount: Decimal
    net_amount: Decimal
    withholding: Decimal
    missing_fields: list[str] = Field(default_factory=list)


class BatchPreviewResponse(BaseModel):
    """Anteprima della generazione per la finestra risolta."""

    period: int
    start_date: datetime.date
    end_date: datetime.date
    ready: list[PreviewPerformer]
    incomplete: list[PreviewPerformer]
    excluded: list[ExcludedPerformerRead]
    total_net: Decimal
    can_generate: bool


# -------------------------------------------------------------------
# Schemas per Receipt
# -------------------------------------------------------------------

class ReceiptRead(BaseModel):
    """Schema completo per la lettura di una ricevuta (uso interno agenzia)."""

    id: uuid.UUID
    number: int
    year: int
    code: str
    batch_id: uuid.UUID
    performer: PerformerSummary
    bookings: list[BookingSnapshot]

    original_gross_amount: Decimal
    original_net_amount: Decimal
    original_withholding: Decimal
    gross_amount: Decimal
    net_amount: Decimal
    withholding: Decimal
    reimbursement: Decimal
    advance_fee: Decimal
    total_paid: Decimal

    status: ReceiptStatus
    issued_at: datetime.datetime
    token_expires_at: datetime.datetime
    link_sent_at: Optional[datetime.datetime] = None
    reminded_at: Optional[datetime.datetime] = None

    payment_timing: Optional[PaymentTiming] = None
    signed_at: Optional[datetime.datetime] = None
    signer_first_name: Optional[str] = None
    signer_last_name: Optional[str] = None
    supporting_documents: list[str] = Field(default_factory=list)

    payment_due_date: Optional[datetime.date] = None
    payment_reason: str
    pdf_path: Optional[str] = None
    remittance_id: Optional[uuid.UUID] = None
    paid_at: Optional[datetime.datetime] = None
    notes: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class ReceiptList(BaseModel):
    """Lista ricevute con riepilogo per stato."""

    items: list[ReceiptRead]
    total: int
    summary: dict[str, int] = Field(
        default_factory=dict,
        description="Numero di ricevute per stato",
    )


# -------------------------------------------------------------------
# Schemas per la Firma (endpoint pubblico)
# -------------------------------------------------------------------

class SignatureOptions(BaseModel):
    """Opzioni offerte all'artista in fase di firma."""

    advance_allowed: bool = Field(..., description="Pagamento anticipato disponibile")
    advance_fee: Decimal = Field(..., description="Costo del pagamento anticipato")
    advance_ceiling: Decimal = Field(..., description="Netto massimo per l'anticipo")
    max_reimbursement: Decimal = Field(..., description="Rimborso spese massimo")
    withholding_rate: Decimal = Field(..., description="Aliquota ritenuta d'acconto")
    standard_payment_days: int


class SignatureForm(BaseModel):
    """
    Risposta del GET pubblico.

    Se already_signed è True contiene solo codice e data firma;
    altrimenti il riepilogo della ricevuta con le opzioni.
    """

    already_signed: bool
    code: str
    signed_at: Optional[datetime.datetime] = None
    status: Optional[ReceiptStatus] = None

    number: Optional[int] = None
    year: Optional[int] = None
    performer_first_name: Optional[str] = None
    performer_last_name: Optional[str] = None
    tax_code: Optional[str] = None
    iban: Optional[str] = None
    bookings: list[BookingSnapshot] = Field(default_factory=list)
    gross_amount: Optional[Decimal] = None
    net_amount: Optional[Decimal] = None
    withholding: Optional[Decimal] = None
    token_expires_at: Optional[datetime.datetime] = None
    company_name: Optional[str] = None
    options: Optional[SignatureOptions] = None


class SupportingDocument(BaseModel):
    """Giustificativo di spesa caricato in fase di firma (base64)."""

    filename: str = Field(..., min_length=1, max_length=200)
    content_base64: str = Field(..., min_length=1)


class SignatureRequest(BaseModel):
    """Dati inviati dall'artista per firmare la ricevuta."""

    receipt_number: Optional[int] = Field(
        None,
        ge=1,
        description="Numero ricevuta scelto dall'artista per la propria contabilità",
    )
    payment_timing: PaymentTiming = Field(PaymentTiming.STANDARD)
    reimbursement: Decimal = Field(
        Decimal("0.00"),
        ge=0,
        description="Rimborso spese richiesto",
    )
    first_name: str = Field(..., description="Nome del firmatario")
    last_name: str = Field(..., description="Cognome del firmatario")
    accepted: bool = Field(False, description="Accettazione esplicita della ricevuta")
    documents: list[SupportingDocument] = Field(default_factory=list)

    @field_validator("first_name", "last_name")
    @classmethod
    def strip_names(cls, v: str) -> str:
        """Rimuove gli spazi esterni dai nomi dichiarati."""
        return v.strip()


class SignatureConfirmation(BaseModel):
    """Conferma restituita dopo la firma."""

    code: str
    number: int
    status: ReceiptStatus
    payment_timing: PaymentTiming
    gross_amount: Decimal
    net_amount: Decimal
    withholding: Decimal
    reimbursement: Decimal
    advance_fee: Decimal
    total_paid: Decimal
    payment_due_date: datetime.date
    signed_at: datetime.datetime


# -------------------------------------------------------------------
# Schemas per Remittance (distinta)
# -------------------------------------------------------------------

class RemittanceCreate(BaseModel):
    """Ricevute da includere nella distinta."""

    receipt_ids: list[uuid.UUID] = Field(..., min_length=1)

    @field_validator("receipt_ids")
    @classmethod
    def unique_ids(cls, v: list[uuid.UUID]) -> list[uuid.UUID]:
        """Rimuove i duplicati mantenendo l'ordine."""
        return list(dict.fromkeys(v))


class RemittanceRead(BaseModel):
    """Schema per la lettura di una distinta."""

    id: uuid.UUID
    code: str
    created_at: datetime.datetime
    receipts_count: int
    total_amount: Decimal

    model_config = ConfigDict(from_attributes=True)


class RemittanceList(BaseModel):
    """Lista distinte."""

    items: list[RemittanceRead]
    total: int


# -------------------------------------------------------------------
# Schemas per i Solleciti
# -------------------------------------------------------------------

class ReminderItem(BaseModel):
    """Ricevuta nel riepilogo solleciti."""

    id: uuid.UUID
    code: str
    performer_name: str
    email: Optional[str] = None
    status: ReceiptStatus
    link_sent_at: Optional[datetime.datetime] = None
    token_expires_at: datetime.datetime
    payment_due_date: Optional[datetime.date] = None
    total_paid: Decimal


class ReminderOverview(BaseModel):
    """Riepilogo di ciò che richiede attenzione."""

    to_remind: list[ReminderItem]
    expired: list[ReminderItem]
    due_soon: list[ReminderItem]
    overdue: list[ReminderItem]


class ReminderActionRequest(BaseModel):
    """Azione sui solleciti."""

    action: ReminderAction


class ReminderActionResult(BaseModel):
    """Esito di un'azione sui solleciti."""

    action: ReminderAction
    processed: int
    emails_sent: int = 0
    emails_failed: int = 0
    receipt_codes: list[str] = Field(default_factory=list)
