"""Amount calculation for closed executions."""

from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional

from components.execution.schemas import ExecutionDetails, MaterialLine

CENT = Decimal("0.01")


def round_money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def materials_total(materials: Iterable[MaterialLine]) -> Decimal:
    """Sum of quantity * unit cost, before markup."""
    return sum((line.quantity * line.unit_cost for line in materials), Decimal("0"))


def final_amount(labor: Optional[Decimal], materials: Decimal, markup_pct: Optional[Decimal]) -> Decimal:
    """Labor plus materials with markup, rounded to cents."""
    markup = Decimal(markup_pct or 0) / Decimal(100)
    with_markup = round_money(Decimal(materials) * (1 + markup))
    return round_money(Decimal(labor or 0) + with_markup)


def final_amount_for(details: ExecutionDetails) -> Decimal:
    return final_amount(details.labor, materials_total(details.materials), details.markup_pct)
