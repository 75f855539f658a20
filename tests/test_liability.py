"""Tests for total tax liability aggregation and TaxEngine."""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
from pydantic import ValidationError

from sltax.calculators.errors import TaxInputError
from sltax.calculators.liability import (
    TaxEngine,
    TaxLiabilityResult,
    calculate_total_tax_liability,
    to_money,
)
from sltax.calculators.rate_table import RateTable
from sltax.calculators.tax_data import TaxpayerCategory, TaxType, WithholdingTaxType

LARGE = TaxpayerCategory.LARGE


def _liability(
    taxable: str,
    tax_type: TaxType,
    due_date: date,
    as_of: date,
    turnover: str = "0",
    is_individual: bool = False,
    **kwargs: object,
) -> TaxLiabilityResult:
    return calculate_total_tax_liability(
        Decimal(taxable),
        tax_type,
        LARGE,
        due_date,
        Decimal(turnover),
        is_individual,
        as_of=as_of,
        **kwargs,
    )


class TestCorporateIncomeTax:
    def test_late_45_days(self, as_of: date) -> None:
        """Corporate 1M, 45 days late: 10% tier on the taxable amount plus interest."""
        result = _liability("1000000", TaxType.INCOME_TAX, as_of - timedelta(days=45), as_of)

        assert result.base_tax == Decimal("250000")
        assert result.penalty == Decimal("100000")
        # 250,000 x 15% x 45 / 365 = 4,623.287...
        assert result.interest == Decimal("4623.29")
        assert result.days_late == 45
        assert result.total_tax_liability == result.base_tax + result.penalty + result.interest
        assert result.total_tax_liability == Decimal("354623.29")

    def test_on_time(self, as_of: date) -> None:
        result = _liability("1000000", TaxType.INCOME_TAX, as_of + timedelta(days=30), as_of)

        assert result.base_tax == Decimal("250000")
        assert result.penalty == 0
        assert result.interest == 0
        assert result.days_late == 0
        assert result.total_tax_liability == result.base_tax

    def test_due_today_is_not_late(self, as_of: date) -> None:
        result = _liability("1000000", TaxType.INCOME_TAX, as_of, as_of)
        assert result.penalty == 0
        assert result.interest == 0

    def test_minimum_tax_applies(self, as_of: date) -> None:
        """Low profit, high turnover: 0.5% of 100M beats 25% of 1M."""
        result = _liability(
            "1000000", TaxType.INCOME_TAX, as_of + timedelta(days=30), as_of, turnover="100000000"
        )

        assert result.base_tax == Decimal("250000")
        assert result.minimum_tax == Decimal("500000")
        assert result.applicable_tax == Decimal("500000")
        assert result.total_tax_liability == Decimal("500000")

    def test_calculated_tax_above_minimum(self, as_of: date) -> None:
        result = _liability(
            "10000000", TaxType.INCOME_TAX, as_of + timedelta(days=1), as_of, turnover="100000000"
        )
        assert result.minimum_tax == Decimal("500000")
        assert result.applicable_tax == Decimal("2500000")

    def test_minimum_alternate_tax(self, as_of: date) -> None:
        result = _liability(
            "1000000",
            TaxType.INCOME_TAX,
            as_of + timedelta(days=1),
            as_of,
            turnover="100000000",
            apply_mat=True,
        )
        assert result.minimum_alternate_tax == Decimal("3000000")
        assert result.applicable_tax == Decimal("3000000")
        assert result.total_tax_liability == Decimal("3000000")

    def test_interest_accrues_on_minimum_tax(self, as_of: date) -> None:
        result = _liability(
            "1000000", TaxType.INCOME_TAX, as_of - timedelta(days=73), as_of, turnover="100000000"
        )
        # 500,000 x 15% x 73 / 365 = 15,000
        assert result.interest == Decimal("15000")
        # 73 days: top tier, 15% of the 1M taxable amount
        assert result.penalty == Decimal("150000")
        assert result.total_tax_liability == Decimal("665000")


class TestOtherTaxTypes:
    def test_individual_income_tax_skips_minimum_tax(self, as_of: date) -> None:
        result = _liability(
            "1800000",
            TaxType.INCOME_TAX,
            as_of + timedelta(days=1),
            as_of,
            turnover="100000000",
            is_individual=True,
        )
        assert result.base_tax == Decimal("210000")
        assert result.minimum_tax is None
        assert result.total_tax_liability == Decimal("210000")

    def test_gst_late(self, as_of: date) -> None:
        result = _liability("1000000", TaxType.GST, as_of - timedelta(days=10), as_of)

        assert result.base_tax == Decimal("150000")
        assert result.minimum_tax is None
        assert result.penalty == Decimal("7500")  # 5% of the GST due
        assert result.interest == Decimal("616.44")
        assert result.total_tax_liability == Decimal("158116.44")

    def test_paye(self, as_of: date) -> None:
        result = _liability("1200000", TaxType.PAYROLL_TAX, as_of, as_of)
        assert result.base_tax == Decimal("90000")

    def test_withholding_by_type(self, as_of: date) -> None:
        result = _liability(
            "1000000",
            TaxType.WITHHOLDING_TAX,
            as_of,
            as_of,
            withholding_type=WithholdingTaxType.RENT,
        )
        assert result.base_tax == Decimal("100000")

    def test_withholding_untyped_uses_default(self, as_of: date) -> None:
        result = _liability("1000000", TaxType.WITHHOLDING_TAX, as_of, as_of)
        assert result.base_tax == Decimal("150000")

    def test_excise_duty_is_passed_through(self, as_of: date) -> None:
        result = _liability("35000", TaxType.EXCISE_DUTY, as_of, as_of)
        assert result.base_tax == Decimal("35000")
        assert result.total_tax_liability == Decimal("35000")


class TestPreconditions:
    def test_negative_taxable_amount(self, as_of: date) -> None:
        with pytest.raises(TaxInputError):
            _liability("-1", TaxType.INCOME_TAX, as_of, as_of)

    def test_negative_turnover(self, as_of: date) -> None:
        with pytest.raises(TaxInputError):
            _liability("1000000", TaxType.INCOME_TAX, as_of, as_of, turnover="-5")


class TestResult:
    def test_defaults_to_today(self) -> None:
        """No as_of: lateness is measured against today (UTC)."""
        today = datetime.now(timezone.utc).date()
        late = calculate_total_tax_liability(
            Decimal("1000000"), TaxType.INCOME_TAX, LARGE, today - timedelta(days=45)
        )
        assert late.penalty == Decimal("100000")
        assert late.interest > 0

        early = calculate_total_tax_liability(
            Decimal("1000000"), TaxType.INCOME_TAX, LARGE, today + timedelta(days=30)
        )
        assert early.penalty == 0
        assert early.total_tax_liability == early.base_tax

    def test_accepts_datetime_due_date(self, as_of: date) -> None:
        due = datetime.combine(as_of - timedelta(days=20), datetime.min.time())
        result = calculate_total_tax_liability(
            Decimal("1000000"), TaxType.INCOME_TAX, LARGE, due, as_of=as_of
        )
        assert result.days_late == 20
        assert result.due_date == as_of - timedelta(days=20)

    def test_is_frozen(self, as_of: date) -> None:
        result = _liability("1000000", TaxType.INCOME_TAX, as_of, as_of)
        with pytest.raises(ValidationError):
            result.penalty = Decimal("1")  # type: ignore[misc]

    def test_rejects_inconsistent_total(self, as_of: date) -> None:
        with pytest.raises(ValidationError):
            TaxLiabilityResult(
                tax_type=TaxType.GST,
                base_tax=Decimal("100"),
                applicable_tax=Decimal("100"),
                penalty=Decimal("5"),
                total_tax_liability=Decimal("100"),
                due_date=as_of,
                evaluation_date=as_of,
                calculation_date=datetime.now(timezone.utc),
            )

    def test_to_money_rounds_half_even(self) -> None:
        assert to_money(Decimal("1.005")) == Decimal("1.00")
        assert to_money(Decimal("1.015")) == Decimal("1.02")


class TestTaxEngine:
    def test_uses_bound_rates(self, flat_rates: RateTable, as_of: date) -> None:
        engine = TaxEngine(flat_rates)
        assert engine.calculate_income_tax(Decimal("1000000"), LARGE) == Decimal("300000")
        assert engine.calculate_gst(Decimal("1000")) == Decimal("100")
        result = engine.calculate_total_tax_liability(
            Decimal("1000000"), TaxType.INCOME_TAX, LARGE, as_of, as_of=as_of
        )
        assert result.base_tax == Decimal("300000")

    def test_interest_defaults_to_configured_rate(self) -> None:
        engine = TaxEngine(RateTable(annual_interest_rate=Decimal("0.365")))
        assert engine.calculate_interest(Decimal("1000"), 10) == Decimal("10")
        assert engine.calculate_interest(Decimal("1000"), 10, Decimal("0.73")) == Decimal("20")

    @pytest.mark.asyncio
    async def test_from_provider(self) -> None:
        provider = AsyncMock()
        provider.get_settings.return_value = {"Tax.Income.CorporateRatePercent": "30"}
        engine = await TaxEngine.from_provider(provider)
        assert engine.calculate_income_tax(Decimal("1000000"), LARGE) == Decimal("300000")
