"""Ozon domain entities shared by the order source and the item store."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime

ORDER_NUMBER_WIDTH = 4


def format_order_number(order_number: int) -> str:
    """Zero-pad an order number to the width used in Ozon order ids."""
    return str(order_number).zfill(ORDER_NUMBER_WIDTH)


def make_order_id(owner_id: int | str, order_number: int) -> str:
    """Compose the external order id, e.g. ``1234567-0007``."""
    return f"{owner_id}-{format_order_number(order_number)}"


@dataclass
class LineItem:
    """One product line within one order.

    Identity is ``(owner_id, order_number, product_sku)``. ``order_number``
    keeps the zero-padded form of the external order id and
    ``product_price`` keeps the currency string exactly as shown by Ozon.
    """

    owner_id: str
    order_number: str
    product_sku: str
    seller_name: str = "Unknown"
    product_name: str = "Unknown"
    product_link: str = ""
    product_image: str = ""
    product_price: str = "0 ₽"
    quantity: int = 1
    added_date: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.owner_id, self.order_number, self.product_sku)
