"""Income tax calculator: corporate flat rate or individual progressive brackets."""

from decimal import Decimal
from typing import Any

from sltax.calculators.errors import TaxInputError
from sltax.calculators.rate_table import DEFAULT_RATES, RateTable
from sltax.calculators.tax_data import TaxBracket, TaxpayerCategory


def require_non_negative(name: str, value: Decimal) -> None:
    """Reject negative monetary inputs instead of clamping them."""
    if value < 0:
        raise TaxInputError(f"{name} must be non-negative, got {value}")


def _bracket_portions(
    income: Decimal,
    brackets: tuple[TaxBracket, ...],
) -> list[tuple[TaxBracket, Decimal, Decimal]]:
    """Return (bracket, taxable portion, tax) for every bracket the income reaches."""
    portions = []
    for bracket in brackets:
        if income <= bracket.lower:
            break

        upper = bracket.upper if bracket.upper is not None else income
        taxable = min(income, upper) - bracket.lower
        portions.append((bracket, taxable, taxable * bracket.rate))
    return portions


def calculate_progressive_tax(income: Decimal, rates: RateTable = DEFAULT_RATES) -> Decimal:
    """Tax ``income`` against the individual bracket table.

    Income exactly on a boundary is taxed at the rate of the bracket the
    boundary closes.
    """
    require_non_negative("taxable_income", income)
    return sum(
        (tax for _, _, tax in _bracket_portions(income, rates.individual_brackets)),
        Decimal("0"),
    )


def calculate_income_tax(
    taxable_income: Decimal,
    category: TaxpayerCategory,
    is_individual: bool = False,
    rates: RateTable = DEFAULT_RATES,
) -> Decimal:
    """Calculate Sierra Leone income tax.

    Companies pay the flat corporate rate whatever their category; the
    category is accepted so callers need not branch, but does not change
    the corporate rate. Individuals are taxed on the progressive brackets.

    Args:
        taxable_income: Taxable income in SLE (must be >= 0).
        category: Taxpayer size category.
        is_individual: True for personal income tax, False for corporate.
        rates: Rate table snapshot to calculate with.

    Returns:
        Income tax due, unrounded.
    """
    require_non_negative("taxable_income", taxable_income)
    if is_individual:
        return calculate_progressive_tax(taxable_income, rates)
    return taxable_income * rates.corporate_rate


def income_tax_breakdown(
    taxable_income: Decimal,
    category: TaxpayerCategory,
    is_individual: bool = False,
    rates: RateTable = DEFAULT_RATES,
) -> dict[str, Any]:
    """Income tax with a bracket-by-bracket breakdown.

    Returns:
        Dict with taxable_income, total_tax, effective_rate, breakdown,
        category, is_individual.
    """
    require_non_negative("taxable_income", taxable_income)

    breakdown: list[dict[str, Any]] = []
    total_tax = Decimal("0")
    if is_individual:
        for bracket, taxable, tax in _bracket_portions(taxable_income, rates.individual_brackets):
            breakdown.append({
                "lower": float(bracket.lower),
                "upper": float(bracket.upper) if bracket.upper is not None else None,
                "rate": float(bracket.rate),
                "taxable_amount": float(taxable),
                "tax": float(tax),
            })
            total_tax += tax
    else:
        total_tax = taxable_income * rates.corporate_rate

    effective_rate = (total_tax / taxable_income * 100) if taxable_income > 0 else Decimal("0")

    return {
        "taxable_income": float(taxable_income),
        "total_tax": float(total_tax),
        "effective_rate": float(round(effective_rate, 2)),
        "breakdown": breakdown,
        "category": category.value,
        "is_individual": is_individual,
    }
