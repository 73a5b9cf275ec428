"""
Pricing Engine

Computes authoritative unit prices and line totals from a catalog snapshot.
Deterministic and side-effect free: the same snapshot and selections always
yield the same price, which is what server-side re-validation relies on.

Rules:
    - Base price: the selected size's price when the item declares sized
      prices, otherwise the flat price.
    - Half-and-half: both flavors are resolved in the item's category and
      the unit base is the MAX of their prices at the selected size. The
      order always prices at the costlier flavor.
    - Border: one flat surcharge per line when a real border is picked and
      the item offers borders. Large tier for the largest declared size,
      small tier otherwise. The chosen border's own price is not used.
    - Extras: sum of the declared extra prices. Unknown extras add zero
      (lenient on purpose, a stale client menu must not block the order).
"""

from dataclasses import dataclass, field
from typing import Optional

from orderflow.schemas import CatalogItem, CatalogSnapshot

NO_BORDER_LABELS = frozenset({"", "none", "sem borda"})


class PricingError(ValueError):
    """Selections cannot be priced against the snapshot."""


@dataclass(frozen=True)
class BorderSurcharges:
    large: float = 8.00
    small: float = 4.00


@dataclass(frozen=True)
class ItemSelection:
    size: Optional[str] = None
    border: Optional[str] = None
    extras: tuple[str, ...] = ()
    flavors: Optional[tuple[str, ...]] = None


@dataclass(frozen=True)
class PricedLine:
    """Result of pricing one line item."""
    item: CatalogItem
    unit_price: float
    quantity: int
    line_total: float
    breakdown: dict = field(default_factory=dict)


def has_border(border: Optional[str]) -> bool:
    return border is not None and border.strip().lower() not in NO_BORDER_LABELS


def _price_at_size(item: CatalogItem, size: Optional[str]) -> float:
    if size and item.sizes:
        if size not in item.sizes:
            raise PricingError(f"Size '{size}' is not offered for {item.name}")
        return item.sizes[size]
    return item.price


def _flavor_price_at_size(flavor: CatalogItem, size: Optional[str]) -> float:
    if size and size in flavor.sizes:
        return flavor.sizes[size]
    return flavor.price


def _base_price(item: CatalogItem, selection: ItemSelection, snapshot: CatalogSnapshot) -> float:
    if not selection.flavors:
        return _price_at_size(item, selection.size)

    if len(selection.flavors) != 2:
        raise PricingError("Half-and-half requires exactly two flavors")

    category = snapshot.category(item.category)
    if not snapshot.allow_half_and_half or category is None or not category.allow_half_and_half:
        raise PricingError(f"Half-and-half is not available for {item.name}")

    # Validates the size against the item the customer picked.
    _price_at_size(item, selection.size)

    prices = []
    for name in selection.flavors:
        flavor = snapshot.find_in_category(item.category, name)
        if flavor is None:
            raise PricingError(f"Unknown flavor '{name}' in category {item.category}")
        prices.append(_flavor_price_at_size(flavor, selection.size))
    return max(prices)


def border_surcharge(
    item: CatalogItem,
    selection: ItemSelection,
    surcharges: BorderSurcharges = BorderSurcharges(),
) -> float:
    if not has_border(selection.border) or not item.border_options:
        return 0.0
    if selection.size and selection.size == item.largest_size:
        return surcharges.large
    return surcharges.small


def extras_total(item: CatalogItem, selection: ItemSelection) -> float:
    return sum(item.extra_options.get(extra, 0.0) for extra in selection.extras)


def unit_price(
    item: CatalogItem,
    selection: ItemSelection,
    snapshot: CatalogSnapshot,
    surcharges: BorderSurcharges = BorderSurcharges(),
) -> float:
    """
    Compute the unit price for one selection of `item`.

    Raises:
        PricingError: Undeclared size, ineligible or unknown half-and-half
            flavors
    """
    base = _base_price(item, selection, snapshot)
    total = base + border_surcharge(item, selection, surcharges) + extras_total(item, selection)
    return round(total, 2)


def price_line(
    item: CatalogItem,
    selection: ItemSelection,
    quantity: int,
    snapshot: CatalogSnapshot,
    surcharges: BorderSurcharges = BorderSurcharges(),
) -> PricedLine:
    """
    Price a full line: unit price times quantity.

    Raises:
        PricingError: Unavailable item, non-positive quantity, or any
            unit price failure
    """
    if quantity < 1:
        raise PricingError("Quantity must be at least 1")
    if not item.is_available:
        raise PricingError(f"{item.name} is currently unavailable")

    price = unit_price(item, selection, snapshot, surcharges)
    return PricedLine(
        item=item,
        unit_price=price,
        quantity=quantity,
        line_total=round(price * quantity, 2),
        breakdown={
            "base": _base_price(item, selection, snapshot),
            "border": border_surcharge(item, selection, surcharges),
            "extras": round(extras_total(item, selection), 2),
        },
    )
