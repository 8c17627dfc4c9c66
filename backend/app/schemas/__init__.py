"""
Schemas Pydantic per il progetto Agency Manager

Questo modulo contiene tutti gli schemi Pydantic utilizzati per la validazione
e serializzazione delle risposte API.
"""

# Import degli schemi per renderli disponibili tramite import diretto
# es: from app.schemas import ReceiptRead, ReceiptStatus, etc.

from app.schemas.payment import (
    SIGNABLE_STATUSES,
    SIGNED_STATUSES,
    VALID_TRANSITIONS,
    BatchGenerationResponse,
    BatchPreviewResponse,
    BatchStatus,
    BookingStatus,
    ContractType,
    DeliveryOutcomeRead,
    ExcludedPerformerRead,
    InvoiceCollectionStatus,
    PaymentBatchCreate,
    PaymentBatchList,
    PaymentBatchRead,
    PaymentTiming,
    PerformerSummary,
    PreviewPerformer,
    ReceiptList,
    ReceiptRead,
    ReceiptStatus,
    ReminderAction,
    ReminderActionRequest,
    ReminderActionResult,
    ReminderItem,
    ReminderOverview,
    RemittanceCreate,
    RemittanceList,
    RemittanceRead,
    SignatureConfirmation,
    SignatureForm,
    SignatureOptions,
    SignatureRequest,
    SupportingDocument,
    can_transition,
)

__all__ = [
    # Enum e transizioni
    "ReceiptStatus",
    "PaymentTiming",
    "BatchStatus",
    "ContractType",
    "BookingStatus",
    "InvoiceCollectionStatus",
    "ReminderAction",
    "VALID_TRANSITIONS",
    "SIGNABLE_STATUSES",
    "SIGNED_STATUSES",
    "can_transition",
    # Batch
    "PerformerSummary",
    "PaymentBatchCreate",
    "PaymentBatchRead",
    "PaymentBatchList",
    "DeliveryOutcomeRead",
    "ExcludedPerformerRead",
    "BatchGenerationResponse",
    "PreviewPerformer",
    "BatchPreviewResponse",
    # Ricevute e firma
    "ReceiptRead",
    "ReceiptList",
    "SignatureOptions",
    "SignatureForm",
    "SupportingDocument",
    "SignatureRequest",
    "SignatureConfirmation",
    # Distinte
    "RemittanceCreate",
    "RemittanceRead",
    "RemittanceList",
    # Solleciti
    "ReminderItem",
    "ReminderOverview",
    "ReminderActionRequest",
    "ReminderActionResult",
]
