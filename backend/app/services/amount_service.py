"""
Ricalcolo importi della ricevuta alla firma
Progetto: Agency Manager (Gestionale Agenzia)

Dato il netto originale N0 e le scelte dell'artista:
- rimborso = min(richiesto, massimo consentito)
- costo anticipo = 5.00 solo se ANTICIPATO e N0 <= 200.00
- netto = N0 - rimborso
- lordo = netto / (1 - aliquota ritenuta)
- ritenuta = lordo * aliquota
- totale da pagare = netto + rimborso - costo anticipo

Funzioni pure: stessi input, stessi output.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict

from app.core.config import settings
from app.schemas.payment import PaymentTiming

CENT = Decimal("0.01")


def quantize(value: Decimal) -> Decimal:
    """Arrotonda al centesimo (half up)."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


class ReceiptAmounts(BaseModel):
    """Importi ricalcolati da salvare sulla ricevuta."""

    model_config = ConfigDict(frozen=True)

    payment_timing: PaymentTiming
    reimbursement: Decimal
    advance_fee: Decimal
    net_amount: Decimal
    gross_amount: Decimal
    withholding: Decimal
    total_paid: Decimal


def max_reimbursement(original_net: Decimal, ratio: Optional[Decimal] = None) -> Decimal:
    """Rimborso spese massimo: una quota del netto originale."""
    ratio = settings.max_reimbursement_ratio if ratio is None else ratio
    return quantize(original_net * ratio)


def advance_allowed(original_net: Decimal, ceiling: Optional[Decimal] = None) -> bool:
    """Il pagamento anticipato è offerto solo fino al tetto di netto."""
    ceiling = settings.advance_ceiling if ceiling is None else ceiling
    return original_net <= ceiling


def compute_receipt_amounts(
    original_net: Decimal,
    requested_reimbursement: Decimal = Decimal("0"),
    timing: PaymentTiming = PaymentTiming.STANDARD,
    *,
    withholding_rate: Optional[Decimal] = None,
    advance_fee: Optional[Decimal] = None,
    advance_ceiling: Optional[Decimal] = None,
    reimbursement_ratio: Optional[Decimal] = None,
) -> ReceiptAmounts:
    """
    Ricalcola gli importi della ricevuta.

    Un ANTICIPATO richiesto sopra il tetto viene trattato come STANDARD;
    un rimborso oltre il massimo viene ridotto al massimo.

    Args:
        original_net: Netto originale N0
        requested_reimbursement: Rimborso richiesto dall'artista
        timing: Tempistica di pagamento richiesta
        withholding_rate, advance_fee, advance_ceiling, reimbursement_ratio:
            override delle regole configurate

    Returns:
        ReceiptAmounts
    """
    rate = settings.withholding_rate if withholding_rate is None else withholding_rate
    fee = settings.advance_fee if advance_fee is None else advance_fee

    original_net = quantize(original_net)
    requested = max(quantize(requested_reimbursement or Decimal("0")), Decimal("0.00"))

    reimbursement = min(requested, max_reimbursement(original_net, reimbursement_ratio))

    effective_timing = timing
    if timing == PaymentTiming.ANTICIPATO and not advance_allowed(original_net, advance_ceiling):
        effective_timing = PaymentTiming.STANDARD

    applied_fee = quantize(fee) if effective_timing == PaymentTiming.ANTICIPATO else Decimal("0.00")

    net = quantize(original_net - reimbursement)
    gross = quantize(net / (Decimal("1") - rate))
    withholding = quantize(gross * rate)
    total = quantize(net + reimbursement - applied_fee)

    return ReceiptAmounts(
        payment_timing=effective_timing,
        reimbursement=reimbursement,
        advance_fee=applied_fee,
        net_amount=net,
        gross_amount=gross,
        withholding=withholding,
        total_paid=total,
    )
