# errorlytic/schemas/pricing.py
from pydantic import BaseModel

class CurrencyConversion(BaseModel):
    amount: float
    from_currency: str
    to_currency: str
    converted: float

class PartPriceResponse(BaseModel):
    part_name: str
    is_oem: bool
    price: float
    currency: str
