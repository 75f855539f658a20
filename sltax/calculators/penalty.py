"""Late filing / late payment penalties and interest on overdue tax."""

from datetime import date, datetime
from decimal import Decimal

from sltax.calculators.errors import TaxInputError
from sltax.calculators.income_tax import require_non_negative
from sltax.calculators.rate_table import DEFAULT_RATES, RateTable
from sltax.calculators.tax_data import DAYS_PER_YEAR, PenaltyType


def _require_days(days_late: int) -> None:
    if days_late < 0:
        raise TaxInputError(f"days_late must be non-negative, got {days_late}")


def days_between(due_date: date | datetime, as_of: date | datetime) -> int:
    """Whole days from ``due_date`` to ``as_of``, floored at zero."""
    if isinstance(due_date, datetime):
        due_date = due_date.date()
    if isinstance(as_of, datetime):
        as_of = as_of.date()
    return max(0, (as_of - due_date).days)


def late_payment_rate(days_late: int, rates: RateTable = DEFAULT_RATES) -> Decimal:
    """Rate of the tier covering ``days_late`` (each tier includes its day limit)."""
    for tier in rates.late_payment_tiers:
        if tier.max_days is None or days_late <= tier.max_days:
            return tier.rate
    # Unreachable for a validated table: the last tier is unbounded.
    raise TaxInputError(f"No late payment tier covers {days_late} days")


def calculate_penalty(
    tax_amount: Decimal,
    days_late: int,
    penalty_type: PenaltyType,
    rates: RateTable = DEFAULT_RATES,
) -> Decimal:
    """Penalty for ``penalty_type`` on ``tax_amount``.

    - Late filing: 5% of tax, at least 50,000 SLE, once any lateness exists.
    - Late payment: 5% up to 30 days, 10% for 31-60 days, 15% beyond.
    - Under-declaration: 20% of tax, regardless of lateness.
    """
    require_non_negative("tax_amount", tax_amount)
    _require_days(days_late)

    match penalty_type:
        case PenaltyType.LATE_FILING:
            if days_late == 0:
                return Decimal("0")
            return max(tax_amount * rates.late_filing_rate, rates.late_filing_minimum)
        case PenaltyType.LATE_PAYMENT:
            return tax_amount * late_payment_rate(days_late, rates)
        case PenaltyType.UNDER_DECLARATION:
            return tax_amount * rates.under_declaration_rate
        case _:
            raise TaxInputError(f"Unknown penalty type: {penalty_type}")


def calculate_interest(
    principal: Decimal,
    days_late: int,
    annual_rate: Decimal,
) -> Decimal:
    """Simple daily interest: principal x annual_rate x days / 365.

    Interest does not compound; 365 days at 15% is exactly 15% of principal.
    """
    require_non_negative("principal", principal)
    require_non_negative("annual_rate", annual_rate)
    _require_days(days_late)
    if days_late == 0:
        return Decimal("0")
    return principal * annual_rate * days_late / DAYS_PER_YEAR
