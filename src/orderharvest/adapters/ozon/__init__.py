"""Ozon adapters for authenticated page fetch and order detail parsing."""

from orderharvest.adapters.ozon.client import (
    CredentialsMissingError,
    OrderFetchError,
    OrderNotFoundError,
    OrderSourceError,
    OzonClient,
)
from orderharvest.adapters.ozon.credentials import (
    CookieHeaderProvider,
    CredentialProvider,
    StaticCookieProvider,
)
from orderharvest.adapters.ozon.entities import LineItem, make_order_id
from orderharvest.adapters.ozon.extraction import extract_embedded_state

__all__ = [
    "CookieHeaderProvider",
    "CredentialProvider",
    "CredentialsMissingError",
    "LineItem",
    "OrderFetchError",
    "OrderNotFoundError",
    "OrderSourceError",
    "OzonClient",
    "StaticCookieProvider",
    "extract_embedded_state",
    "make_order_id",
]
