"""
Unit tests per la risoluzione del periodo di pagamento.
"""

from datetime import date

import pytest

from app.services.period_service import resolve_period


class TestFortnightWindows:
    """Tests per le finestre quindicinali."""

    def test_first_half_pays_previous_month_second_half(self):
        """Test dal 1 al 15: si paga dal 16 a fine mese precedente."""
        period = resolve_period(date(2025, 3, 10))

        assert period.period == 2
        assert period.start_date == date(2025, 2, 16)
        assert period.end_date == date(2025, 2, 28)
        assert (period.year, period.month) == (2025, 3)

    def test_day_fifteen_still_previous_month(self):
        """Test il giorno 15 appartiene ancora alla prima metà."""
        period = resolve_period(date(2025, 4, 15))

        assert period.period == 2
        assert period.start_date == date(2025, 3, 16)
        assert period.end_date == date(2025, 3, 31)

    def test_second_half_pays_current_month_first_half(self):
        """Test dal 16: si paga dal 1 al 15 del mese corrente."""
        period = resolve_period(date(2025, 3, 16))

        assert period.period == 1
        assert period.start_date == date(2025, 3, 1)
        assert period.end_date == date(2025, 3, 15)

    def test_january_crosses_year(self):
        """Test a gennaio la finestra è la seconda metà di dicembre."""
        period = resolve_period(date(2025, 1, 3))

        assert period.start_date == date(2024, 12, 16)
        assert period.end_date == date(2024, 12, 31)
        assert period.year == 2025

    def test_leap_year_february(self):
        """Test fine febbraio in anno bisestile."""
        period = resolve_period(date(2024, 3, 1))

        assert period.end_date == date(2024, 2, 29)


class TestForcedWindow:
    """Tests per la finestra di recupero."""

    @pytest.mark.parametrize(
        "reference, expected_start",
        [
            (date(2025, 3, 20), date(2025, 1, 1)),
            (date(2025, 2, 5), date(2024, 12, 1)),
            (date(2025, 1, 31), date(2024, 11, 1)),
        ],
    )
    def test_forced_starts_two_months_back(self, reference, expected_start):
        """Test forzato: dal primo giorno di due mesi prima alla data di riferimento."""
        period = resolve_period(reference, force=True)

        assert period.period == 0
        assert period.start_date == expected_start
        assert period.end_date == reference
