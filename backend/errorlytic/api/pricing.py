# errorlytic/api/pricing.py
from fastapi import APIRouter, Depends, Query
from ..schemas.pricing import CurrencyConversion, PartPriceResponse
from ..services.pipeline import DiagnosticPipeline
from .deps import get_pipeline, unwrap_or_raise

router = APIRouter()

@router.get("/convert", response_model=CurrencyConversion)
def convert(
    amount: float = Query(..., ge=0),
    from_currency: str = Query(..., alias="from"),
    to_currency: str = Query(..., alias="to"),
    pipeline: DiagnosticPipeline = Depends(get_pipeline)
):
    """Convert an amount between supported currencies (KES, USD, UGX, TZS)"""
    converted = unwrap_or_raise(pipeline.convert_currency(amount, from_currency, to_currency))
    return CurrencyConversion(
        amount=amount,
        from_currency=from_currency.upper(),
        to_currency=to_currency.upper(),
        converted=converted
    )

@router.get("/parts/{part_name}", response_model=PartPriceResponse)
def part_pricing(
    part_name: str,
    currency: str = Query("KES"),
    is_oem: bool = Query(True),
    pipeline: DiagnosticPipeline = Depends(get_pipeline)
):
    """
    Catalog price of a part
    Unknown parts get the default OEM/aftermarket price
    """
    price = unwrap_or_raise(pipeline.get_part_pricing(part_name, currency, is_oem))
    return PartPriceResponse(part_name=part_name, is_oem=is_oem, **price)
