"""Flat-rate calculators: GST, withholding, PAYE, minimum tax, excise."""

import logging
from decimal import Decimal

from sltax.calculators.errors import TaxInputError
from sltax.calculators.income_tax import calculate_progressive_tax, require_non_negative
from sltax.calculators.rate_table import DEFAULT_RATES, RateTable
from sltax.calculators.tax_data import TaxpayerCategory, WithholdingTaxType

logger = logging.getLogger(__name__)


def calculate_gst(
    amount: Decimal,
    exemption_code: str | None = None,
    rates: RateTable = DEFAULT_RATES,
) -> Decimal:
    """GST on ``amount``; zero when ``exemption_code`` names an exempt category.

    Exempt codes match case-insensitively ("exempt", "zero-rated" by default).
    Any other code, or none, is charged at the standard rate.
    """
    require_non_negative("amount", amount)
    if exemption_code is not None and exemption_code.strip().lower() in rates.gst_exempt_codes:
        return Decimal("0")
    return amount * rates.gst_rate


def calculate_withholding_tax(
    amount: Decimal,
    withholding_type: WithholdingTaxType | None,
    rates: RateTable = DEFAULT_RATES,
) -> Decimal:
    """Withholding tax deducted at source for one payment category."""
    require_non_negative("amount", amount)
    match withholding_type:
        case (
            WithholdingTaxType.DIVIDENDS
            | WithholdingTaxType.MANAGEMENT_FEES
            | WithholdingTaxType.PROFESSIONAL_FEES
            | WithholdingTaxType.LOTTERY_WINNINGS
            | WithholdingTaxType.ROYALTIES
            | WithholdingTaxType.INTEREST
            | WithholdingTaxType.RENT
            | WithholdingTaxType.COMMISSIONS
        ):
            rate = rates.withholding_rate_for(withholding_type)
        case None:
            rate = rates.default_withholding_rate
        case _:
            raise TaxInputError(f"Unknown withholding tax type: {withholding_type}")
    return amount * rate


def calculate_paye(
    gross_salary: Decimal,
    allowances: Decimal = Decimal("0"),
    rates: RateTable = DEFAULT_RATES,
) -> Decimal:
    """PAYE shares the individual income tax bracket table."""
    require_non_negative("gross_salary", gross_salary)
    require_non_negative("allowances", allowances)
    return calculate_progressive_tax(gross_salary + allowances, rates)


def calculate_minimum_tax(
    annual_turnover: Decimal,
    category: TaxpayerCategory | None = None,
    rates: RateTable = DEFAULT_RATES,
) -> Decimal:
    """Turnover-based minimum tax (0.5% unless overridden for ``category``)."""
    require_non_negative("annual_turnover", annual_turnover)
    return annual_turnover * rates.minimum_tax_rate_for(category)


def calculate_minimum_alternate_tax(
    annual_turnover: Decimal,
    rates: RateTable = DEFAULT_RATES,
) -> Decimal:
    """Minimum Alternate Tax (Finance Act 2023), 3% of turnover by default."""
    require_non_negative("annual_turnover", annual_turnover)
    return annual_turnover * rates.mat_rate


def get_applicable_tax(calculated_tax: Decimal, minimum_tax: Decimal) -> Decimal:
    """The higher of calculated tax and minimum tax."""
    return max(calculated_tax, minimum_tax)


def get_applicable_tax_with_mat(
    calculated_tax: Decimal,
    minimum_tax: Decimal,
    minimum_alternate_tax: Decimal,
) -> Decimal:
    return max(calculated_tax, minimum_tax, minimum_alternate_tax)


def calculate_excise_duty(
    quantity: Decimal,
    product_code: str,
    rates: RateTable = DEFAULT_RATES,
) -> Decimal:
    """Specific excise duty: ``quantity`` units at the product's per-unit rate."""
    require_non_negative("quantity", quantity)
    excise = rates.excise_rates.get(product_code.strip().upper())
    if excise is None:
        valid = ", ".join(sorted(rates.excise_rates))
        raise TaxInputError(f"Unknown excise product code: {product_code}. Available: {valid}")
    logger.debug("Excise %s (%s) at %s %s", product_code, excise.product_name, excise.rate, excise.unit)
    return quantity * excise.rate
