"""API routes for the Sierra Leone tax calculation engine."""

import logging
from datetime import date
from decimal import Decimal
from typing import Any

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from sltax.calculators.errors import TaxInputError
from sltax.calculators.liability import TaxEngine, TaxLiabilityResult, to_money
from sltax.calculators.tax_data import (
    PenaltyType,
    TaxpayerCategory,
    TaxType,
    WithholdingTaxType,
)

logger = logging.getLogger(__name__)

router = APIRouter()


class IncomeTaxRequest(BaseModel):
    taxable_income: Decimal
    category: TaxpayerCategory = TaxpayerCategory.LARGE
    is_individual: bool = False


class GstRequest(BaseModel):
    amount: Decimal
    exemption_code: str | None = None


class WithholdingTaxRequest(BaseModel):
    amount: Decimal
    withholding_type: WithholdingTaxType | None = None


class PayeRequest(BaseModel):
    gross_salary: Decimal
    allowances: Decimal = Decimal("0")


class MinimumTaxRequest(BaseModel):
    annual_turnover: Decimal
    category: TaxpayerCategory | None = None
    calculated_tax: Decimal | None = None


class PenaltyRequest(BaseModel):
    tax_amount: Decimal
    days_late: int
    penalty_type: PenaltyType


class InterestRequest(BaseModel):
    principal: Decimal
    days_late: int
    annual_rate: Decimal | None = None


class ExciseDutyRequest(BaseModel):
    quantity: Decimal
    product_code: str


class LiabilityRequest(BaseModel):
    """Request body for the /calculate/liability endpoint."""

    taxable_amount: Decimal
    tax_type: TaxType
    category: TaxpayerCategory = TaxpayerCategory.LARGE
    due_date: date
    annual_turnover: Decimal = Decimal("0")
    is_individual: bool = False
    as_of: date | None = None
    withholding_type: WithholdingTaxType | None = None
    apply_mat: bool = False


async def _engine(request: Request) -> TaxEngine:
    """TaxEngine bound to the current rate snapshot."""
    return await request.app.state.rate_cache.engine()


def _invalid(exc: TaxInputError) -> HTTPException:
    logger.info("Rejected calculation input: %s", exc)
    return HTTPException(status_code=422, detail=str(exc))


@router.get("/health")
async def health() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok"}


@router.get("/rates")
async def rates(request: Request) -> dict[str, Any]:
    """The rate table currently used for calculations."""
    table = (await _engine(request)).rates
    return {
        "corporate_rate": float(table.corporate_rate),
        "individual_brackets": [
            {
                "lower": float(b.lower),
                "upper": float(b.upper) if b.upper is not None else None,
                "rate": float(b.rate),
            }
            for b in table.individual_brackets
        ],
        "gst_rate": float(table.gst_rate),
        "gst_exempt_codes": sorted(table.gst_exempt_codes),
        "withholding_rates": {k.value: float(v) for k, v in table.withholding_rates.items()},
        "minimum_tax_rate": float(table.minimum_tax_rate),
        "minimum_tax_rates_by_category": {
            k.value: float(v) for k, v in table.minimum_tax_rates_by_category.items()
        },
        "mat_rate": float(table.mat_rate),
        "annual_interest_rate": float(table.annual_interest_rate),
        "late_filing_rate": float(table.late_filing_rate),
        "late_filing_minimum": float(table.late_filing_minimum),
        "late_payment_tiers": [
            {"max_days": t.max_days, "rate": float(t.rate)} for t in table.late_payment_tiers
        ],
        "under_declaration_rate": float(table.under_declaration_rate),
        "excise_rates": {
            code: {"product_name": e.product_name, "rate": float(e.rate), "unit": e.unit}
            for code, e in table.excise_rates.items()
        },
    }


@router.post("/calculate/income-tax")
async def income_tax(body: IncomeTaxRequest, request: Request) -> dict[str, Any]:
    """Income tax with a per-bracket breakdown."""
    engine = await _engine(request)
    try:
        return engine.income_tax_breakdown(body.taxable_income, body.category, body.is_individual)
    except TaxInputError as exc:
        raise _invalid(exc) from exc


@router.post("/calculate/gst")
async def gst(body: GstRequest, request: Request) -> dict[str, Any]:
    engine = await _engine(request)
    try:
        tax = engine.calculate_gst(body.amount, body.exemption_code)
    except TaxInputError as exc:
        raise _invalid(exc) from exc
    return {"amount": float(body.amount), "exemption_code": body.exemption_code, "gst": float(to_money(tax))}


@router.post("/calculate/withholding-tax")
async def withholding_tax(body: WithholdingTaxRequest, request: Request) -> dict[str, Any]:
    engine = await _engine(request)
    try:
        tax = engine.calculate_withholding_tax(body.amount, body.withholding_type)
    except TaxInputError as exc:
        raise _invalid(exc) from exc
    return {
        "amount": float(body.amount),
        "withholding_type": body.withholding_type.value if body.withholding_type else None,
        "rate": float(engine.rates.withholding_rate_for(body.withholding_type)),
        "withholding_tax": float(to_money(tax)),
    }


@router.post("/calculate/paye")
async def paye(body: PayeRequest, request: Request) -> dict[str, Any]:
    engine = await _engine(request)
    try:
        tax = engine.calculate_paye(body.gross_salary, body.allowances)
    except TaxInputError as exc:
        raise _invalid(exc) from exc
    return {
        "gross_salary": float(body.gross_salary),
        "allowances": float(body.allowances),
        "paye": float(to_money(tax)),
    }


@router.post("/calculate/minimum-tax")
async def minimum_tax(body: MinimumTaxRequest, request: Request) -> dict[str, Any]:
    """Minimum tax and MAT on turnover, and the applicable tax if one is given."""
    engine = await _engine(request)
    try:
        minimum = to_money(engine.calculate_minimum_tax(body.annual_turnover, body.category))
        mat = to_money(engine.calculate_minimum_alternate_tax(body.annual_turnover))
    except TaxInputError as exc:
        raise _invalid(exc) from exc

    result: dict[str, Any] = {
        "annual_turnover": float(body.annual_turnover),
        "minimum_tax": float(minimum),
        "minimum_alternate_tax": float(mat),
    }
    if body.calculated_tax is not None:
        result["applicable_tax"] = float(engine.get_applicable_tax(body.calculated_tax, minimum))
        result["applicable_tax_with_mat"] = float(
            engine.get_applicable_tax_with_mat(body.calculated_tax, minimum, mat)
        )
    return result


@router.post("/calculate/penalty")
async def penalty(body: PenaltyRequest, request: Request) -> dict[str, Any]:
    engine = await _engine(request)
    try:
        amount = engine.calculate_penalty(body.tax_amount, body.days_late, body.penalty_type)
    except TaxInputError as exc:
        raise _invalid(exc) from exc
    return {
        "tax_amount": float(body.tax_amount),
        "days_late": body.days_late,
        "penalty_type": body.penalty_type.value,
        "penalty": float(to_money(amount)),
    }


@router.post("/calculate/interest")
async def interest(body: InterestRequest, request: Request) -> dict[str, Any]:
    """Simple interest; the configured annual rate applies when none is given."""
    engine = await _engine(request)
    try:
        amount = engine.calculate_interest(body.principal, body.days_late, body.annual_rate)
    except TaxInputError as exc:
        raise _invalid(exc) from exc
    rate = body.annual_rate if body.annual_rate is not None else engine.rates.annual_interest_rate
    return {
        "principal": float(body.principal),
        "days_late": body.days_late,
        "annual_rate": float(rate),
        "interest": float(to_money(amount)),
    }


@router.post("/calculate/excise-duty")
async def excise_duty(body: ExciseDutyRequest, request: Request) -> dict[str, Any]:
    engine = await _engine(request)
    try:
        duty = engine.calculate_excise_duty(body.quantity, body.product_code)
    except TaxInputError as exc:
        raise _invalid(exc) from exc
    return {
        "quantity": float(body.quantity),
        "product_code": body.product_code,
        "excise_duty": float(to_money(duty)),
    }


@router.post("/calculate/liability", response_model=TaxLiabilityResult)
async def liability(body: LiabilityRequest, request: Request) -> TaxLiabilityResult:
    """Total liability: applicable tax plus late payment penalty and interest."""
    engine = await _engine(request)
    try:
        return engine.calculate_total_tax_liability(
            body.taxable_amount,
            body.tax_type,
            body.category,
            body.due_date,
            body.annual_turnover,
            body.is_individual,
            as_of=body.as_of,
            withholding_type=body.withholding_type,
            apply_mat=body.apply_mat,
        )
    except TaxInputError as exc:
        raise _invalid(exc) from exc
