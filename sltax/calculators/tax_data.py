"""Sierra Leone tax constants: enums, brackets, statutory default rates.

Compiled-in Finance Act defaults. Every figure here can be overridden from
the settings store (see rate_table.py); these are used whenever no override
is configured or the store cannot be read.
"""

from collections.abc import Mapping
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import NamedTuple


class TaxpayerCategory(str, Enum):
    """Firm-assigned size classification."""

    LARGE = "Large"
    MEDIUM = "Medium"
    SMALL = "Small"
    MICRO = "Micro"


class TaxType(str, Enum):
    INCOME_TAX = "IncomeTax"
    GST = "GST"
    PAYROLL_TAX = "PayrollTax"
    WITHHOLDING_TAX = "WithholdingTax"
    EXCISE_DUTY = "ExciseDuty"


class WithholdingTaxType(str, Enum):
    DIVIDENDS = "Dividends"
    MANAGEMENT_FEES = "ManagementFees"
    PROFESSIONAL_FEES = "ProfessionalFees"
    LOTTERY_WINNINGS = "LotteryWinnings"
    ROYALTIES = "Royalties"
    INTEREST = "Interest"
    RENT = "Rent"
    COMMISSIONS = "Commissions"


class PenaltyType(str, Enum):
    LATE_FILING = "LateFilingPenalty"
    LATE_PAYMENT = "LatePaymentPenalty"
    UNDER_DECLARATION = "UnderDeclarationPenalty"


class TaxBracket(NamedTuple):
    """A single income tax bracket."""

    lower: Decimal  # start of band
    upper: Decimal | None  # None = no cap
    rate: Decimal


class PenaltyTier(NamedTuple):
    """Late-payment penalty tier, applying up to and including max_days."""

    max_days: int | None  # None = no cap
    rate: Decimal


class ExciseRate(NamedTuple):
    """Specific (per-unit) excise duty for one product code."""

    product_name: str
    rate: Decimal
    unit: str


# Individual / PAYE brackets in SLE (Finance Act 2024, unchanged for 2025)
INDIVIDUAL_BRACKETS: tuple[TaxBracket, ...] = (
    TaxBracket(Decimal("0"), Decimal("600000"), Decimal("0")),
    TaxBracket(Decimal("600000"), Decimal("1200000"), Decimal("0.15")),
    TaxBracket(Decimal("1200000"), Decimal("1800000"), Decimal("0.20")),
    TaxBracket(Decimal("1800000"), Decimal("2400000"), Decimal("0.25")),
    TaxBracket(Decimal("2400000"), None, Decimal("0.30")),
)

CORPORATE_RATE = Decimal("0.25")
GST_RATE = Decimal("0.15")
GST_EXEMPT_CODES: frozenset[str] = frozenset({"exempt", "zero-rated"})

# Finance Act 2024 raised most withholding rates from 10% to 15%
WITHHOLDING_RATES: Mapping[WithholdingTaxType, Decimal] = MappingProxyType({
    WithholdingTaxType.DIVIDENDS: Decimal("0.15"),
    WithholdingTaxType.MANAGEMENT_FEES: Decimal("0.15"),
    WithholdingTaxType.PROFESSIONAL_FEES: Decimal("0.15"),
    WithholdingTaxType.LOTTERY_WINNINGS: Decimal("0.15"),
    WithholdingTaxType.ROYALTIES: Decimal("0.15"),
    WithholdingTaxType.INTEREST: Decimal("0.15"),
    WithholdingTaxType.RENT: Decimal("0.10"),
    WithholdingTaxType.COMMISSIONS: Decimal("0.05"),
})
DEFAULT_WITHHOLDING_RATE = Decimal("0.15")

MINIMUM_TAX_RATE = Decimal("0.005")  # 0.5% of turnover
MAT_RATE = Decimal("0.03")  # Minimum Alternate Tax, Finance Act 2023
ANNUAL_INTEREST_RATE = Decimal("0.15")

LATE_FILING_RATE = Decimal("0.05")
LATE_FILING_MINIMUM = Decimal("50000")
LATE_PAYMENT_TIERS: tuple[PenaltyTier, ...] = (
    PenaltyTier(30, Decimal("0.05")),
    PenaltyTier(60, Decimal("0.10")),
    PenaltyTier(None, Decimal("0.15")),
)
UNDER_DECLARATION_RATE = Decimal("0.20")

EXCISE_RATES: Mapping[str, ExciseRate] = MappingProxyType({
    "TOB001": ExciseRate("Cigarettes", Decimal("150"), "Per pack"),
    "TOB002": ExciseRate("Cigars", Decimal("200"), "Per piece"),
    "ALC001": ExciseRate("Beer", Decimal("500"), "Per liter"),
    "ALC002": ExciseRate("Wine", Decimal("800"), "Per liter"),
    "ALC003": ExciseRate("Spirits", Decimal("2000"), "Per liter"),
    "FUEL001": ExciseRate("Petrol", Decimal("3500"), "Per liter"),
    "FUEL002": ExciseRate("Diesel", Decimal("3000"), "Per liter"),
})

DAYS_PER_YEAR = 365
