"""
Service per la determinazione del periodo di pagamento
Progetto: Agency Manager (Gestionale Agenzia)

I pagamenti agli artisti seguono una cadenza quindicinale:
- dal 1 al 15 del mese si pagano le agibilità dal 16 a fine del mese precedente
- dal 16 a fine mese si pagano le agibilità dal 1 al 15 del mese corrente

La generazione forzata usa invece una finestra di recupero che parte dal
primo giorno di due mesi prima e arriva alla data di riferimento.
"""

import calendar
from datetime import date

from pydantic import BaseModel, ConfigDict


class PaymentPeriod(BaseModel):
    """Finestra di agibilità risolta per una generazione."""

    model_config = ConfigDict(frozen=True)

    period: int  # 1 = prima quindicina, 2 = seconda quindicina, 0 = forzato
    start_date: date
    end_date: date
    year: int
    month: int


def _shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    """Sposta (anno, mese) di delta mesi."""
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def resolve_period(reference_date: date, force: bool = False) -> PaymentPeriod:
    """
    Calcola la finestra di agibilità da pagare.

    Args:
        reference_date: Data di riferimento (di norma la data odierna)
        force: Se True usa la finestra di recupero (periodo 0)

    Returns:
        PaymentPeriod: periodo, date di inizio/fine (incluse), anno e mese
        di generazione
    """
    year, month = reference_date.year, reference_date.month

    if force:
        start_year, start_month = _shift_month(year, month, -2)
        return PaymentPeriod(
            period=0,
            start_date=date(start_year, start_month, 1),
            end_date=reference_date,
            year=year,
            month=month,
        )

    if reference_date.day <= 15:
        prev_year, prev_month = _shift_month(year, month, -1)
        last_day = calendar.monthrange(prev_year, prev_month)[1]
        return PaymentPeriod(
            period=2,
            start_date=date(prev_year, prev_month, 16),
            end_date=date(prev_year, prev_month, last_day),
            year=year,
            month=month,
        )

    return PaymentPeriod(
        period=1,
        start_date=date(year, month, 1),
        end_date=date(year, month, 15),
        year=year,
        month=month,
    )
