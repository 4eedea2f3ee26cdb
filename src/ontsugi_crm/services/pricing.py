"""Consumption tax and totals for quote and invoice items."""

from dataclasses import dataclass, replace
from decimal import ROUND_FLOOR, Decimal, InvalidOperation
from typing import Generic, TypeVar

from ontsugi_crm.errors import InvalidInputError
from ontsugi_crm.models import DocumentTotals, QuoteItem

ItemT = TypeVar("ItemT", bound=QuoteItem)


@dataclass(frozen=True)
class PricedItems(Generic[ItemT]):
    """Items with recomputed amounts and the resulting totals."""

    items: list[ItemT]
    totals: DocumentTotals


def to_rate(value: Decimal | float | str) -> Decimal:
    """Normalise a tax rate, going through ``str`` so floats keep their decimal form."""
    return value if isinstance(value, Decimal) else Decimal(str(value))


def parse_tax_rate(value: Decimal | float | str | None) -> Decimal:
    """Validate a caller-supplied tax rate.

    Raises:
        InvalidInputError: If the rate is missing, not a number or negative.
    """
    try:
        rate = None if value is None else to_rate(value)
    except InvalidOperation:
        rate = None
    if rate is None or not rate.is_finite() or rate < 0:
        raise InvalidInputError(
            "Tax rate must be a non-negative number", details={"tax_rate": str(value)}
        )
    return rate


def validate_items(items: list[QuoteItem]) -> None:
    """Reject items with a negative quantity or unit price."""
    for item in items:
        if item.quantity < 0 or item.unit_price < 0:
            raise InvalidInputError(
                "Item quantity and unit price must not be negative",
                details={"description": item.description},
            )


def compute_tax(taxable_subtotal: int, tax_rate: Decimal | float | str) -> int:
    """Consumption tax on a taxable subtotal, truncated to whole yen."""
    tax = Decimal(taxable_subtotal) * to_rate(tax_rate)
    return int(tax.to_integral_value(rounding=ROUND_FLOOR))


def price_items(
    items: list[ItemT], tax_rate: Decimal | float | str
) -> PricedItems[ItemT]:
    """Recompute every item amount and the document totals.

    Amounts on the input are ignored; the inputs are not mutated, so pricing
    an already priced list gives the same result.
    """
    priced = [replace(item, amount=item.quantity * item.unit_price) for item in items]
    taxable = sum(item.amount for item in priced if item.taxable)
    non_taxable = sum(item.amount for item in priced if not item.taxable)
    subtotal = taxable + non_taxable
    tax_amount = compute_tax(taxable, tax_rate)
    return PricedItems(
        items=priced,
        totals=DocumentTotals(
            taxable_subtotal=taxable,
            non_taxable_subtotal=non_taxable,
            subtotal=subtotal,
            tax_amount=tax_amount,
            total_amount=subtotal + tax_amount,
        ),
    )
