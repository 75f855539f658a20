"""Rate table: statutory rates resolved from the settings store.

A RateTable is an immutable snapshot of every rate and threshold the
calculators need. ``load_rate_table`` takes one snapshot of the settings
store and resolves every key from it, falling back to the compiled-in
defaults in tax_data.py whenever a setting is missing, unparseable, or the
store itself fails. Lookup failures are logged and never raised; an
internally inconsistent table (gapped brackets, unordered tiers, rates
above 100%) raises RateTableError when it is built.

Percent settings are stored as percent values, e.g. "15" means 15%.
"""

import json
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from types import MappingProxyType
from typing import Any, Protocol, TypeVar

from sltax.calculators import tax_data
from sltax.calculators.errors import RateTableError
from sltax.calculators.tax_data import (
    ExciseRate,
    PenaltyTier,
    TaxBracket,
    TaxpayerCategory,
    WithholdingTaxType,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Setting keys
GST_RATE_KEY = "Tax.GST.RatePercent"
GST_EXEMPT_CODES_KEY = "Tax.GST.ExemptCodes"
ANNUAL_INTEREST_RATE_KEY = "Tax.AnnualInterestRatePercent"
CORPORATE_RATE_KEY = "Tax.Income.CorporateRatePercent"
INDIVIDUAL_BRACKETS_KEY = "Tax.Income.IndividualBrackets"
MINIMUM_TAX_RATE_KEY = "Tax.Income.MinimumTaxRatePercent"
MAT_RATE_KEY = "Tax.Income.MATRatePercent"
DEFAULT_WHT_RATE_KEY = "Tax.WHT.DefaultRatePercent"
LATE_FILING_RATE_KEY = "Tax.Penalty.LateFilingRatePercent"
LATE_FILING_MINIMUM_KEY = "Tax.Penalty.LateFilingMinimum"
LATE_PAYMENT_TIERS_KEY = "Tax.Penalty.LatePaymentTiers"
UNDER_DECLARATION_RATE_KEY = "Tax.Penalty.UnderDeclarationRatePercent"


def withholding_rate_key(wht_type: WithholdingTaxType) -> str:
    return f"Tax.WHT.{wht_type.value}.RatePercent"


def minimum_tax_rate_key(category: TaxpayerCategory) -> str:
    return f"{MINIMUM_TAX_RATE_KEY}.{category.value}"


def excise_rate_key(product_code: str) -> str:
    return f"Tax.Excise.{product_code}.Rate"


class SettingsProvider(Protocol):
    """Source of overridable settings (database, YAML file, in-memory)."""

    async def get_setting(self, key: str) -> Any | None:
        """One override, or None when the key is not configured."""
        ...

    async def get_settings(self) -> Mapping[str, Any]:
        """Every configured override, read in a single pass."""
        ...


@dataclass(frozen=True)
class RateTable:
    """Immutable set of rates used by one calculation.

    Mapping fields are stored as read-only views over private copies, so a
    table (including the shared ``DEFAULT_RATES``) cannot be altered after
    it is built.
    """

    corporate_rate: Decimal = tax_data.CORPORATE_RATE
    individual_brackets: tuple[TaxBracket, ...] = tax_data.INDIVIDUAL_BRACKETS
    gst_rate: Decimal = tax_data.GST_RATE
    gst_exempt_codes: frozenset[str] = tax_data.GST_EXEMPT_CODES
    withholding_rates: Mapping[WithholdingTaxType, Decimal] = field(
        default_factory=lambda: tax_data.WITHHOLDING_RATES
    )
    default_withholding_rate: Decimal = tax_data.DEFAULT_WITHHOLDING_RATE
    minimum_tax_rate: Decimal = tax_data.MINIMUM_TAX_RATE
    minimum_tax_rates_by_category: Mapping[TaxpayerCategory, Decimal] = field(
        default_factory=lambda: MappingProxyType({})
    )
    mat_rate: Decimal = tax_data.MAT_RATE
    annual_interest_rate: Decimal = tax_data.ANNUAL_INTEREST_RATE
    late_filing_rate: Decimal = tax_data.LATE_FILING_RATE
    late_filing_minimum: Decimal = tax_data.LATE_FILING_MINIMUM
    late_payment_tiers: tuple[PenaltyTier, ...] = tax_data.LATE_PAYMENT_TIERS
    under_declaration_rate: Decimal = tax_data.UNDER_DECLARATION_RATE
    excise_rates: Mapping[str, ExciseRate] = field(default_factory=lambda: tax_data.EXCISE_RATES)

    def __post_init__(self) -> None:
        for name in ("withholding_rates", "minimum_tax_rates_by_category", "excise_rates"):
            object.__setattr__(self, name, MappingProxyType(dict(getattr(self, name))))
        object.__setattr__(self, "individual_brackets", tuple(self.individual_brackets))
        object.__setattr__(self, "late_payment_tiers", tuple(self.late_payment_tiers))
        object.__setattr__(self, "gst_exempt_codes", frozenset(self.gst_exempt_codes))

        _validate_brackets(self.individual_brackets)
        _validate_tiers(self.late_payment_tiers)

        rates = {
            "corporate_rate": self.corporate_rate,
            "gst_rate": self.gst_rate,
            "default_withholding_rate": self.default_withholding_rate,
            "minimum_tax_rate": self.minimum_tax_rate,
            "mat_rate": self.mat_rate,
            "annual_interest_rate": self.annual_interest_rate,
            "late_filing_rate": self.late_filing_rate,
            "under_declaration_rate": self.under_declaration_rate,
        }
        rates.update({f"withholding_rates[{k.value}]": v for k, v in self.withholding_rates.items()})
        rates.update(
            {f"minimum_tax_rates_by_category[{k.value}]": v for k, v in self.minimum_tax_rates_by_category.items()}
        )
        for name, value in rates.items():
            if not 0 <= value <= 1:
                raise RateTableError(f"{name} must be between 0 and 1, got {value}")

        amounts = {"late_filing_minimum": self.late_filing_minimum}
        amounts.update({f"excise_rates[{k}]": v.rate for k, v in self.excise_rates.items()})
        for name, value in amounts.items():
            if value < 0:
                raise RateTableError(f"{name} must be non-negative, got {value}")

    def withholding_rate_for(self, wht_type: WithholdingTaxType | None) -> Decimal:
        if wht_type is None:
            return self.default_withholding_rate
        return self.withholding_rates.get(wht_type, self.default_withholding_rate)

    def minimum_tax_rate_for(self, category: TaxpayerCategory | None) -> Decimal:
        if category is None:
            return self.minimum_tax_rate
        return self.minimum_tax_rates_by_category.get(category, self.minimum_tax_rate)


def _validate_brackets(brackets: tuple[TaxBracket, ...]) -> None:
    """Brackets must start at 0, be contiguous, end unbounded and be progressive."""
    if not brackets:
        raise RateTableError("Bracket table is empty.")
    if brackets[0].lower != 0:
        raise RateTableError(f"First bracket must start at 0, got {brackets[0].lower}")

    previous: TaxBracket | None = None
    for index, bracket in enumerate(brackets):
        is_last = index == len(brackets) - 1
        if bracket.rate < 0 or bracket.rate > 1:
            raise RateTableError(f"Bracket rate {bracket.rate} is outside 0..1")
        if bracket.upper is None and not is_last:
            raise RateTableError("Only the final bracket may be unbounded.")
        if is_last and bracket.upper is not None:
            raise RateTableError("Final bracket must be unbounded.")
        if bracket.upper is not None and bracket.upper <= bracket.lower:
            raise RateTableError(f"Bracket {bracket.lower}..{bracket.upper} is empty or inverted.")
        if previous is not None:
            if bracket.lower != previous.upper:
                raise RateTableError(
                    f"Brackets are not contiguous: {previous.upper} followed by {bracket.lower}"
                )
            if bracket.rate < previous.rate:
                raise RateTableError("Bracket rates must be non-decreasing.")
        previous = bracket


def _validate_tiers(tiers: tuple[PenaltyTier, ...]) -> None:
    if not tiers:
        raise RateTableError("Penalty tier table is empty.")
    if tiers[-1].max_days is not None:
        raise RateTableError("Final penalty tier must be unbounded.")
    limits = [t.max_days for t in tiers[:-1]]
    if any(limit is None for limit in limits):
        raise RateTableError("Only the final penalty tier may be unbounded.")
    for limit in limits:
        if isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0:
            raise RateTableError(f"Penalty tier day limit must be a positive integer, got {limit!r}")
    if limits != sorted(limits) or len(set(limits)) != len(limits):
        raise RateTableError("Penalty tier day limits must be strictly ascending.")
    if any(not 0 <= t.rate <= 1 for t in tiers):
        raise RateTableError("Penalty tier rates must be between 0 and 1.")


DEFAULT_RATES = RateTable()


# --- Parsers: return None for anything unusable ---


def parse_amount(raw: Any) -> Decimal | None:
    if isinstance(raw, bool):
        return None
    try:
        value = Decimal(str(raw).strip())
    except (InvalidOperation, ValueError):
        return None
    if not value.is_finite() or value < 0:
        return None
    return value


def parse_percent(raw: Any) -> Decimal | None:
    value = parse_amount(raw)
    return value / 100 if value is not None else None


def parse_codes(raw: Any) -> frozenset[str] | None:
    if isinstance(raw, str):
        items = raw.split(",")
    elif isinstance(raw, list | tuple | set | frozenset):
        items = [str(item) for item in raw]
    else:
        return None
    codes = frozenset(item.strip().lower() for item in items if item.strip())
    return codes or None


def _load_json_list(raw: Any) -> list[Any] | None:
    if isinstance(raw, list):
        return raw
    try:
        data = json.loads(raw)
    except (TypeError, ValueError):
        return None
    return data if isinstance(data, list) else None


def parse_brackets(raw: Any) -> tuple[TaxBracket, ...] | None:
    """Parse a JSON list of {"lower", "upper", "rate_percent"} objects."""
    items = _load_json_list(raw)
    if not items:
        return None
    brackets = []
    for item in items:
        if not isinstance(item, dict):
            return None
        lower = parse_amount(item.get("lower"))
        rate = parse_percent(item.get("rate_percent"))
        upper_raw = item.get("upper")
        upper = parse_amount(upper_raw) if upper_raw is not None else None
        if lower is None or rate is None or (upper_raw is not None and upper is None):
            return None
        brackets.append(TaxBracket(lower, upper, rate))
    return tuple(brackets)


def parse_tiers(raw: Any) -> tuple[PenaltyTier, ...] | None:
    """Parse a JSON list of {"max_days", "rate_percent"} objects."""
    items = _load_json_list(raw)
    if not items:
        return None
    tiers = []
    for item in items:
        if not isinstance(item, dict):
            return None
        rate = parse_percent(item.get("rate_percent"))
        max_days = item.get("max_days")
        if rate is None:
            return None
        if max_days is not None and (isinstance(max_days, bool) or not isinstance(max_days, int)):
            return None
        tiers.append(PenaltyTier(max_days, rate))
    return tuple(tiers)


# --- Resolution ---


async def read_settings(provider: SettingsProvider) -> Mapping[str, Any]:
    """Take one snapshot of every override ``provider`` holds.

    A failing store yields an empty snapshot, so every setting resolves to
    its compiled-in default.
    """
    try:
        settings = await provider.get_settings()
    except Exception:
        logger.warning("Settings lookup failed, using statutory defaults", exc_info=True)
        return MappingProxyType({})
    return MappingProxyType(dict(settings))


def resolve_setting(
    settings: Mapping[str, Any],
    key: str,
    default: T,
    parse: Callable[[Any], T | None] = parse_percent,  # type: ignore[assignment]
) -> T:
    """Resolve one setting from a snapshot, preferring the override over ``default``.

    Never raises: missing and invalid values are logged and the compiled-in
    default is returned.
    """
    raw = settings.get(key)
    if raw is None:
        logger.debug("No override for %s, using default %s", key, default)
        return default

    value = parse(raw)
    if value is None:
        logger.warning("Ignoring invalid value %r for %s, using default %s", raw, key, default)
        return default
    return value


def build_rate_table(settings: Mapping[str, Any]) -> RateTable:
    """Build a validated RateTable from one settings snapshot.

    Raises:
        RateTableError: if the resolved rates are internally inconsistent.
    """
    d = DEFAULT_RATES

    def percent(key: str, default: Decimal) -> Decimal:
        return resolve_setting(settings, key, default, parse_percent)

    withholding_rates = {
        wht_type: percent(withholding_rate_key(wht_type), rate)
        for wht_type, rate in d.withholding_rates.items()
    }

    by_category: dict[TaxpayerCategory, Decimal] = {}
    for category in TaxpayerCategory:
        override = resolve_setting(settings, minimum_tax_rate_key(category), None, parse_percent)
        if override is not None:
            by_category[category] = override

    excise_rates = {}
    for code, excise in d.excise_rates.items():
        rate = resolve_setting(settings, excise_rate_key(code), excise.rate, parse_amount)
        excise_rates[code] = excise._replace(rate=rate)

    return RateTable(
        corporate_rate=percent(CORPORATE_RATE_KEY, d.corporate_rate),
        individual_brackets=resolve_setting(
            settings, INDIVIDUAL_BRACKETS_KEY, d.individual_brackets, parse_brackets
        ),
        gst_rate=percent(GST_RATE_KEY, d.gst_rate),
        gst_exempt_codes=resolve_setting(settings, GST_EXEMPT_CODES_KEY, d.gst_exempt_codes, parse_codes),
        withholding_rates=withholding_rates,
        default_withholding_rate=percent(DEFAULT_WHT_RATE_KEY, d.default_withholding_rate),
        minimum_tax_rate=percent(MINIMUM_TAX_RATE_KEY, d.minimum_tax_rate),
        minimum_tax_rates_by_category=by_category,
        mat_rate=percent(MAT_RATE_KEY, d.mat_rate),
        annual_interest_rate=percent(ANNUAL_INTEREST_RATE_KEY, d.annual_interest_rate),
        late_filing_rate=percent(LATE_FILING_RATE_KEY, d.late_filing_rate),
        late_filing_minimum=resolve_setting(
            settings, LATE_FILING_MINIMUM_KEY, d.late_filing_minimum, parse_amount
        ),
        late_payment_tiers=resolve_setting(
            settings, LATE_PAYMENT_TIERS_KEY, d.late_payment_tiers, parse_tiers
        ),
        under_declaration_rate=percent(UNDER_DECLARATION_RATE_KEY, d.under_declaration_rate),
        excise_rates=excise_rates,
    )


async def load_rate_table(provider: SettingsProvider) -> RateTable:
    """Snapshot ``provider`` once and build a validated RateTable from it.

    Raises:
        RateTableError: if the resolved rates are internally inconsistent.
    """
    table = build_rate_table(await read_settings(provider))
    logger.info(
        "Loaded rate table: corporate=%s gst=%s min_tax=%s interest=%s brackets=%d",
        table.corporate_rate,
        table.gst_rate,
        table.minimum_tax_rate,
        table.annual_interest_rate,
        len(table.individual_brackets),
    )
    return table
