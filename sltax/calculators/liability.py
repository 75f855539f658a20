"""Total tax liability: base tax, minimum tax, penalty and interest combined.

This is the entry point application code calls. ``TaxEngine`` binds one
RateTable snapshot so every figure in a calculation comes from the same
settings, even if the settings store changes mid-request.
"""

import logging
from datetime import date, datetime, timezone
from decimal import ROUND_HALF_EVEN, Decimal

from pydantic import BaseModel, model_validator

from sltax.calculators.errors import TaxInputError
from sltax.calculators.flat_taxes import (
    calculate_excise_duty,
    calculate_gst,
    calculate_minimum_alternate_tax,
    calculate_minimum_tax,
    calculate_paye,
    calculate_withholding_tax,
    get_applicable_tax,
    get_applicable_tax_with_mat,
)
from sltax.calculators.income_tax import (
    calculate_income_tax,
    income_tax_breakdown,
    require_non_negative,
)
from sltax.calculators.penalty import calculate_interest, calculate_penalty, days_between
from sltax.calculators.rate_table import DEFAULT_RATES, RateTable, SettingsProvider, load_rate_table
from sltax.calculators.tax_data import (
    PenaltyType,
    TaxpayerCategory,
    TaxType,
    WithholdingTaxType,
)

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def to_money(value: Decimal) -> Decimal:
    """Round to cents using banker's rounding."""
    return value.quantize(CENT, rounding=ROUND_HALF_EVEN)


class TaxLiabilityResult(BaseModel):
    """Immutable outcome of a total liability calculation.

    ``applicable_tax`` is the higher of ``base_tax`` and any minimum tax;
    ``total_tax_liability`` is ``applicable_tax + penalty + interest``.
    """

    model_config = {"frozen": True}

    tax_type: TaxType
    base_tax: Decimal
    minimum_tax: Decimal | None = None
    minimum_alternate_tax: Decimal | None = None
    applicable_tax: Decimal
    penalty: Decimal = Decimal("0")
    interest: Decimal = Decimal("0")
    total_tax_liability: Decimal
    days_late: int = 0
    due_date: date
    evaluation_date: date
    calculation_date: datetime

    @model_validator(mode="after")
    def _check_totals(self) -> "TaxLiabilityResult":
        money = [self.base_tax, self.applicable_tax, self.penalty, self.interest, self.total_tax_liability]
        money += [m for m in (self.minimum_tax, self.minimum_alternate_tax) if m is not None]
        if any(m < 0 for m in money):
            raise ValueError("Monetary fields must be non-negative")

        floors = [m for m in (self.minimum_tax, self.minimum_alternate_tax) if m is not None]
        if self.applicable_tax != max([self.base_tax, *floors]):
            raise ValueError("applicable_tax must be the higher of base tax and minimum taxes")
        if self.total_tax_liability != self.applicable_tax + self.penalty + self.interest:
            raise ValueError("total_tax_liability must equal applicable tax + penalty + interest")
        return self


def _base_tax(
    taxable_amount: Decimal,
    tax_type: TaxType,
    category: TaxpayerCategory,
    is_individual: bool,
    withholding_type: WithholdingTaxType | None,
    rates: RateTable,
) -> Decimal:
    match tax_type:
        case TaxType.INCOME_TAX:
            return calculate_income_tax(taxable_amount, category, is_individual, rates)
        case TaxType.GST:
            return calculate_gst(taxable_amount, rates=rates)
        case TaxType.PAYROLL_TAX:
            return calculate_paye(taxable_amount, rates=rates)
        case TaxType.WITHHOLDING_TAX:
            return calculate_withholding_tax(taxable_amount, withholding_type, rates)
        case TaxType.EXCISE_DUTY:
            # Specific duty depends on quantities; callers pass the assessed duty.
            return taxable_amount
        case _:
            raise TaxInputError(f"Unknown tax type: {tax_type}")


def calculate_total_tax_liability(
    taxable_amount: Decimal,
    tax_type: TaxType,
    category: TaxpayerCategory,
    due_date: date | datetime,
    annual_turnover: Decimal = Decimal("0"),
    is_individual: bool = False,
    *,
    rates: RateTable = DEFAULT_RATES,
    as_of: date | datetime | None = None,
    withholding_type: WithholdingTaxType | None = None,
    apply_mat: bool = False,
) -> TaxLiabilityResult:
    """Calculate total liability including minimum tax, penalty and interest.

    Args:
        taxable_amount: Amount the tax is levied on (must be >= 0).
        tax_type: Which tax to calculate.
        category: Taxpayer size category.
        due_date: Statutory due date.
        annual_turnover: Turnover for the minimum tax test (must be >= 0).
        is_individual: Personal rather than corporate income tax.
        rates: Rate table snapshot to calculate with.
        as_of: Evaluation date, today (UTC) when omitted.
        withholding_type: Payment category for withholding tax.
        apply_mat: Also apply the Minimum Alternate Tax floor.

    Raises:
        TaxInputError: for negative amounts or an unknown tax type.
    """
    require_non_negative("taxable_amount", taxable_amount)
    require_non_negative("annual_turnover", annual_turnover)

    now = datetime.now(timezone.utc)
    evaluation_date = as_of or now.date()
    if isinstance(evaluation_date, datetime):
        evaluation_date = evaluation_date.date()
    if isinstance(due_date, datetime):
        due_date = due_date.date()

    base_tax = to_money(
        _base_tax(taxable_amount, tax_type, category, is_individual, withholding_type, rates)
    )

    minimum_tax: Decimal | None = None
    minimum_alternate_tax: Decimal | None = None
    applicable_tax = base_tax
    if tax_type is TaxType.INCOME_TAX and not is_individual and annual_turnover > 0:
        minimum_tax = to_money(calculate_minimum_tax(annual_turnover, category, rates))
        applicable_tax = get_applicable_tax(base_tax, minimum_tax)
        if apply_mat:
            minimum_alternate_tax = to_money(calculate_minimum_alternate_tax(annual_turnover, rates))
            applicable_tax = get_applicable_tax_with_mat(base_tax, minimum_tax, minimum_alternate_tax)

    penalty = Decimal("0")
    interest = Decimal("0")
    days_late = days_between(due_date, evaluation_date)
    if days_late > 0:
        # Income tax penalties are levied on the taxable amount itself.
        penalty_base = taxable_amount if tax_type is TaxType.INCOME_TAX else applicable_tax
        penalty = to_money(calculate_penalty(penalty_base, days_late, PenaltyType.LATE_PAYMENT, rates))
        interest = to_money(calculate_interest(applicable_tax, days_late, rates.annual_interest_rate))

    total = applicable_tax + penalty + interest
    logger.info(
        "Liability %s: base=%s applicable=%s penalty=%s interest=%s days_late=%d total=%s",
        tax_type.value,
        base_tax,
        applicable_tax,
        penalty,
        interest,
        days_late,
        total,
    )

    return TaxLiabilityResult(
        tax_type=tax_type,
        base_tax=base_tax,
        minimum_tax=minimum_tax,
        minimum_alternate_tax=minimum_alternate_tax,
        applicable_tax=applicable_tax,
        penalty=penalty,
        interest=interest,
        total_tax_liability=total,
        days_late=days_late,
        due_date=due_date,
        evaluation_date=evaluation_date,
        calculation_date=now,
    )


class TaxEngine:
    """Every calculator bound to one RateTable snapshot."""

    def __init__(self, rates: RateTable = DEFAULT_RATES) -> None:
        self.rates = rates

    @classmethod
    async def from_provider(cls, provider: SettingsProvider) -> "TaxEngine":
        """Read the settings store once and bind the resulting snapshot."""
        return cls(await load_rate_table(provider))

    def calculate_income_tax(
        self, taxable_income: Decimal, category: TaxpayerCategory, is_individual: bool = False
    ) -> Decimal:
        return calculate_income_tax(taxable_income, category, is_individual, self.rates)

    def income_tax_breakdown(
        self, taxable_income: Decimal, category: TaxpayerCategory, is_individual: bool = False
    ) -> dict:  # type: ignore[type-arg]
        return income_tax_breakdown(taxable_income, category, is_individual, self.rates)

    def calculate_gst(self, amount: Decimal, exemption_code: str | None = None) -> Decimal:
        return calculate_gst(amount, exemption_code, self.rates)

    def calculate_withholding_tax(
        self, amount: Decimal, withholding_type: WithholdingTaxType | None
    ) -> Decimal:
        return calculate_withholding_tax(amount, withholding_type, self.rates)

    def calculate_paye(self, gross_salary: Decimal, allowances: Decimal = Decimal("0")) -> Decimal:
        return calculate_paye(gross_salary, allowances, self.rates)

    def calculate_minimum_tax(
        self, annual_turnover: Decimal, category: TaxpayerCategory | None = None
    ) -> Decimal:
        return calculate_minimum_tax(annual_turnover, category, self.rates)

    def calculate_minimum_alternate_tax(self, annual_turnover: Decimal) -> Decimal:
        return calculate_minimum_alternate_tax(annual_turnover, self.rates)

    def get_applicable_tax(self, calculated_tax: Decimal, minimum_tax: Decimal) -> Decimal:
        return get_applicable_tax(calculated_tax, minimum_tax)

    def get_applicable_tax_with_mat(
        self, calculated_tax: Decimal, minimum_tax: Decimal, minimum_alternate_tax: Decimal
    ) -> Decimal:
        return get_applicable_tax_with_mat(calculated_tax, minimum_tax, minimum_alternate_tax)

    def calculate_excise_duty(self, quantity: Decimal, product_code: str) -> Decimal:
        return calculate_excise_duty(quantity, product_code, self.rates)

    def calculate_penalty(self, tax_amount: Decimal, days_late: int, penalty_type: PenaltyType) -> Decimal:
        return calculate_penalty(tax_amount, days_late, penalty_type, self.rates)

    def calculate_interest(
        self, principal: Decimal, days_late: int, annual_rate: Decimal | None = None
    ) -> Decimal:
        rate = annual_rate if annual_rate is not None else self.rates.annual_interest_rate
        return calculate_interest(principal, days_late, rate)

    def calculate_total_tax_liability(
        self,
        taxable_amount: Decimal,
        tax_type: TaxType,
        category: TaxpayerCategory,
        due_date: date | datetime,
        annual_turnover: Decimal = Decimal("0"),
        is_individual: bool = False,
        *,
        as_of: date | datetime | None = None,
        withholding_type: WithholdingTaxType | None = None,
        apply_mat: bool = False,
    ) -> TaxLiabilityResult:
        return calculate_total_tax_liability(
            taxable_amount,
            tax_type,
            category,
            due_date,
            annual_turnover,
            is_individual,
            rates=self.rates,
            as_of=as_of,
            withholding_type=withholding_type,
            apply_mat=apply_mat,
        )
