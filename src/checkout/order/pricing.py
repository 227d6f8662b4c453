"""Order totals: line totals at sale price, sales tax and per-gram excise tax."""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

_CENT = Decimal("0.01")


def _to_cents(value: Decimal) -> float:
    return float(value.quantize(_CENT, rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class PricedLine:
    product_id: str
    sku: str
    name: str
    quantity: int
    unit_price: float
    net_weight_grams: float

    @property
    def line_total(self) -> float:
        return _to_cents(Decimal(str(self.unit_price)) * self.quantity)


@dataclass(frozen=True)
class OrderTotals:
    subtotal: float
    sales_tax: float
    excise_tax: float
    grand_total: float


def calculate_totals(lines: list[PricedLine], sales_tax_rate: float, excise_tax_per_gram: float) -> OrderTotals:
    subtotal = sum((Decimal(str(line.unit_price)) * line.quantity for line in lines), Decimal("0"))
    weight = sum((Decimal(str(line.net_weight_grams or 0)) * line.quantity for line in lines), Decimal("0"))

    sales_tax = subtotal * Decimal(str(sales_tax_rate))
    excise_tax = weight * Decimal(str(excise_tax_per_gram))

    subtotal_c = _to_cents(subtotal)
    sales_tax_c = _to_cents(sales_tax)
    excise_tax_c = _to_cents(excise_tax)
    return OrderTotals(
        subtotal=subtotal_c,
        sales_tax=sales_tax_c,
        excise_tax=excise_tax_c,
        grand_total=_to_cents(Decimal(str(subtotal_c)) + Decimal(str(sales_tax_c)) + Decimal(str(excise_tax_c))),
    )
