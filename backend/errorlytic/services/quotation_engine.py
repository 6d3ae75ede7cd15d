# errorlytic/services/quotation_engine.py
import logging
import math
import secrets
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from ..config import settings
from ..errors import InvalidStateError, ValidationError

logger = logging.getLogger(__name__)

BASE_CURRENCY = "KES"

# Units of each currency per 1 KES
EXCHANGE_RATES: Dict[str, float] = {
    "KES": 1.0,
    "USD": 0.0067,
    "UGX": 28.5,
    "TZS": 19.5,
}
SUPPORTED_CURRENCIES = tuple(EXCHANGE_RATES.keys())

# Part name -> {oem, aftermarket} price in KES
PART_CATALOG: Dict[str, Dict[str, float]] = {
    "Spark Plugs": {"oem": 2500, "aftermarket": 1500},
    "Ignition Coil": {"oem": 8500, "aftermarket": 4500},
    "Air Filter": {"oem": 1200, "aftermarket": 800},
    "MAF Sensor": {"oem": 15000, "aftermarket": 8000},
    "Transmission Fluid": {"oem": 800, "aftermarket": 500},
    "Shift Solenoid": {"oem": 12000, "aftermarket": 6000},
    "ABS Wheel Speed Sensor": {"oem": 8500, "aftermarket": 4000},
    "ABS Sensor Cable": {"oem": 3500, "aftermarket": 2000},
    "Airbag Control Module": {"oem": 25000, "aftermarket": 12000},
    "Airbag Wiring Harness": {"oem": 4500, "aftermarket": 2500},
    "Wiring Repair Kit": {"oem": 3000, "aftermarket": 1500},
    "Steering Angle Sensor": {"oem": 18000, "aftermarket": 9000},
    "Oxygen Sensor": {"oem": 9500, "aftermarket": 5500},
}

QUOTATION_STATUSES = ("draft", "sent", "approved", "rejected")

# (current status, action) -> next status; anything else is rejected
STATUS_TRANSITIONS: Dict[tuple, str] = {
    ("draft", "update"): "draft",
    ("draft", "send"): "sent",
    ("sent", "approve"): "approved",
    ("sent", "reject"): "rejected",
}
STATUS_ACTIONS = {"sent": "send", "approved": "approve", "rejected": "reject"}


def _round(amount: float) -> float:
    return round(float(amount), 2)


def normalize_currency(currency: str) -> str:
    code = (currency or "").strip().upper()
    if code not in EXCHANGE_RATES:
        raise ValidationError(
            f"Unsupported currency: {currency}. Supported: {', '.join(SUPPORTED_CURRENCIES)}"
        )
    return code


def convert_currency(amount: float, from_currency: str, to_currency: str) -> float:
    """
    Convert an amount between supported currencies through KES

    Args:
        amount: Amount in from_currency
        from_currency: Source currency code
        to_currency: Target currency code

    Returns:
        Converted amount rounded to 2 decimals

    Raises:
        ValidationError: If either currency is unsupported
    """
    source = normalize_currency(from_currency)
    target = normalize_currency(to_currency)
    if source == target:
        return amount
    amount_kes = amount if source == BASE_CURRENCY else amount / EXCHANGE_RATES[source]
    if target == BASE_CURRENCY:
        return _round(amount_kes)
    return _round(amount_kes * EXCHANGE_RATES[target])


@dataclass
class PartPrice:
    price: float
    currency: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def get_part_pricing(part_name: str, currency: str = BASE_CURRENCY, is_oem: bool = True) -> PartPrice:
    """Catalog price of a part in the requested currency (defaults for unknown parts)"""
    entry = PART_CATALOG.get(part_name)
    if entry is None:
        base_price = settings.DEFAULT_OEM_PART_PRICE if is_oem else settings.DEFAULT_AFTERMARKET_PART_PRICE
    else:
        base_price = entry["oem"] if is_oem else entry["aftermarket"]
    target = normalize_currency(currency)
    return PartPrice(price=_round(convert_currency(base_price, BASE_CURRENCY, target)), currency=target)


@dataclass
class QuotationOptions:
    """Pricing options; omitted values fall back to configured defaults"""
    currency: Optional[str] = None
    labor_rate: Optional[float] = None
    markup_pct: Optional[float] = None
    tax_pct: Optional[float] = None
    use_oem_parts: bool = False
    notes: Optional[str] = None

    def __post_init__(self):
        self.currency = normalize_currency(self.currency or settings.DEFAULT_CURRENCY)
        if self.labor_rate is None:
            self.labor_rate = convert_currency(settings.DEFAULT_LABOR_RATE, BASE_CURRENCY, self.currency)
        if self.markup_pct is None:
            self.markup_pct = settings.DEFAULT_MARKUP_PCT
        if self.tax_pct is None:
            self.tax_pct = settings.DEFAULT_TAX_PCT
        validate_rates(self.labor_rate, self.markup_pct, self.tax_pct)


def validate_rates(labor_rate: Optional[float], markup_pct: Optional[float], tax_pct: Optional[float]):
    if labor_rate is not None and labor_rate < 0:
        raise ValidationError("Labor rate cannot be negative")
    for name, value in (("Markup", markup_pct), ("Tax", tax_pct)):
        if value is not None and not 0 <= value <= 100:
            raise ValidationError(f"{name} percentage must be between 0 and 100")


@dataclass
class QuotationLine:
    name: str
    unit_price: float
    qty: int
    subtotal: float
    part_number: Optional[str] = None
    is_oem: bool = False

    def __post_init__(self):
        if not self.name:
            raise ValidationError("Part name is required")
        if self.qty < 1:
            raise ValidationError("Part quantity must be >= 1")
        if self.unit_price < 0:
            raise ValidationError("Unit price cannot be negative")

    @classmethod
    def priced(cls, name: str, unit_price: float, qty: int, part_number: Optional[str], is_oem: bool) -> "QuotationLine":
        return cls(name=name, unit_price=_round(unit_price), qty=qty,
                   subtotal=_round(unit_price * qty), part_number=part_number, is_oem=is_oem)


@dataclass
class QuotationTotals:
    parts: float
    labor: float
    markup: float
    tax: float
    grand: float


@dataclass
class QuotationDraft:
    """Priced quotation ready to be persisted"""
    currency: str
    labor_hours: float
    labor_rate: float
    labor_subtotal: float
    lines: List[QuotationLine]
    tax_pct: float
    markup_pct: float
    totals: QuotationTotals
    notes: Optional[str] = None
    status: str = "draft"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def labor_hours_for(total_minutes: int) -> int:
    """Labor hours are whole hours rounded up"""
    return math.ceil((total_minutes or 0) / 60)


def compute_totals(lines: Iterable[QuotationLine], labor_hours: float, labor_rate: float,
                   markup_pct: float, tax_pct: float) -> QuotationTotals:
    """
    labor = hours x rate; parts = sum(unit x qty); markup = parts x markup%;
    tax = (parts + labor) x tax%; grand = parts + labor + tax + markup
    """
    parts_total = sum(line.unit_price * line.qty for line in lines)
    labor_total = labor_hours * labor_rate
    markup = parts_total * markup_pct / 100
    tax = (parts_total + labor_total) * tax_pct / 100
    return QuotationTotals(
        parts=_round(parts_total),
        labor=_round(labor_total),
        markup=_round(markup),
        tax=_round(tax),
        grand=_round(parts_total + labor_total + tax + markup),
    )


def next_status(current: str, action: str) -> str:
    """
    Apply a lifecycle action to a quotation status

    Raises:
        InvalidStateError: If the action is not allowed from the current status
    """
    target = STATUS_TRANSITIONS.get((current, action))
    if target is None:
        raise InvalidStateError(f"Cannot {action} a quotation in '{current}' status")
    return target


def generate_share_token() -> str:
    """16 random bytes as 32 hex characters"""
    return secrets.token_hex(16)


def share_url(token: str) -> str:
    return f"{settings.FRONTEND_URL.rstrip('/')}/quotation/{token}"


class QuotationEngine:
    """
    Quotation Engine Service

    Prices a walkthrough's parts and labor in the requested currency.
    """

    def price(self, parts: Iterable[Dict[str, Any]], total_minutes: int, options: QuotationOptions) -> QuotationDraft:
        """
        Args:
            parts: Walkthrough parts (name, oem, alt, qty)
            total_minutes: Walkthrough total estimated minutes
            options: Resolved pricing options

        Returns:
            QuotationDraft in draft status
        """
        lines = []
        for part in parts:
            price = get_part_pricing(part["name"], options.currency, options.use_oem_parts)
            alternates = part.get("alt") or []
            if options.use_oem_parts:
                part_number = part.get("oem")
            else:
                part_number = alternates[0] if alternates else part.get("oem")
            lines.append(QuotationLine.priced(part["name"], price.price, int(part.get("qty") or 1),
                                              part_number, options.use_oem_parts))

        hours = labor_hours_for(total_minutes)
        totals = compute_totals(lines, hours, options.labor_rate, options.markup_pct, options.tax_pct)

        logger.info(f"[Quotation] Priced {len(lines)} parts + {hours}h labor in {options.currency}: "
                    f"grand={totals.grand}")

        return QuotationDraft(
            currency=options.currency,
            labor_hours=hours,
            labor_rate=_round(options.labor_rate),
            labor_subtotal=totals.labor,
            lines=lines,
            tax_pct=options.tax_pct,
            markup_pct=options.markup_pct,
            totals=totals,
            notes=options.notes,
        )

    def reprice(self, lines: Iterable[Dict[str, Any]], labor_hours: float, labor_rate: float,
                markup_pct: float, tax_pct: float) -> tuple:
        """Rebuild persisted lines and recompute totals after a draft update"""
        validate_rates(labor_rate, markup_pct, tax_pct)
        if labor_hours < 0:
            raise ValidationError("Labor hours cannot be negative")
        rebuilt = [
            QuotationLine.priced(line["name"], float(line["unit_price"]), int(line["qty"]),
                                 line.get("part_number"), bool(line.get("is_oem", False)))
            for line in lines
        ]
        return rebuilt, compute_totals(rebuilt, labor_hours, labor_rate, markup_pct, tax_pct)


# Singleton instance
quotation_engine = QuotationEngine()
