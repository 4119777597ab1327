"""Ozon order source: authenticated page fetch and order detail flattening."""

from __future__ import annotations

import re
from typing import Any, Literal, Self, TypeVar, overload
from urllib.parse import urlparse

import httpx
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidatorFunctionWrapHandler,
    field_validator,
)

from orderharvest.adapters.ozon.credentials import (
    CredentialProvider,
    format_cookie_header,
)
from orderharvest.adapters.ozon.entities import (
    LineItem,
    format_order_number,
    make_order_id,
)
from orderharvest.adapters.ozon.extraction import (
    DEFAULT_SELECTOR,
    StateFilter,
    StatePayload,
    extract_embedded_state,
)
from orderharvest.adapters.ozon.logger import OrderSourceLogger

DEFAULT_BASE_URL = "https://www.ozon.ru"
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
)
ORDER_DETAILS_PATH = "/my/orderdetails/?order={order_id}"
ORDER_ARCHIVE_PATH = "/my/orderlist?selectedTab=archive"

_OWNER_PREFIX = re.compile(r"\s*(\d+)")

M = TypeVar("M", bound="OzonBaseModel")


class OrderSourceError(Exception):
    """Base error for Ozon order source failures."""


class CredentialsMissingError(OrderSourceError):
    """No Ozon session cookies are available."""


class OrderFetchError(OrderSourceError):
    """A page could not be downloaded."""

    def __init__(self, message: str, *, url: str | None = None) -> None:
        super().__init__(message)
        self.url = url


class OrderNotFoundError(OrderSourceError):
    """The order detail page carried no shipments."""


# ---------------------------------------------------------------------------
# Payload models
# ---------------------------------------------------------------------------


class OzonBaseModel(BaseModel):
    """Lenient base for Ozon widget state fragments.

    Every field is optional. A field whose value has an unexpected shape is
    read as ``None`` instead of failing the whole fragment, so one odd
    display field never hides its siblings.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    @field_validator("*", mode="wrap")
    @classmethod
    def _none_on_mismatch(
        cls, value: Any, handler: ValidatorFunctionWrapHandler
    ) -> Any:
        try:
            return handler(value)
        except ValidationError:
            return None

    @classmethod
    def parse(cls, data: Any) -> Self:
        return cls.model_validate(data)


class TextNode(OzonBaseModel):
    text: str | None = None


class ActionNode(OzonBaseModel):
    id: str | int | None = None
    link: str | None = None


class TitleCommon(OzonBaseModel):
    action: ActionNode | None = None


class ProductTitle(OzonBaseModel):
    common: TitleCommon | None = None
    name: TextNode | None = None


class ImageNode(OzonBaseModel):
    image: str | None = None


class PictureNode(OzonBaseModel):
    image: ImageNode | None = None


class PriceNode(OzonBaseModel):
    price: list[TextNode] | None = None


class ProductPayload(OzonBaseModel):
    title: ProductTitle | None = None
    picture: PictureNode | None = None
    price: PriceNode | None = None

    @property
    def action(self) -> ActionNode | None:
        if self.title is None or self.title.common is None:
            return None
        return self.title.common.action

    @property
    def sku(self) -> str | None:
        action = self.action
        if action is None or not action.id:
            return None
        return str(action.id)

    @property
    def name(self) -> str | None:
        if self.title is None or self.title.name is None:
            return None
        return self.title.name.text or None

    @property
    def link(self) -> str | None:
        action = self.action
        return action.link if action is not None else None

    @property
    def image(self) -> str | None:
        if self.picture is None or self.picture.image is None:
            return None
        return self.picture.image.image

    @property
    def price_text(self) -> str | None:
        if self.price is None or not self.price.price:
            return None
        return self.price.price[0].text


class SellerPayload(OzonBaseModel):
    name: TextNode | None = None
    products: list[Any] | None = None


class OrderLinePayload(OzonBaseModel):
    sellers: list[Any] | None = None


class ShipmentPayload(OzonBaseModel):
    shipment_id: Any = Field(default=None, alias="shipmentId")
    items: list[Any] | None = None


class OrderListHeader(OzonBaseModel):
    number: str | None = None


class OrderListEntry(OzonBaseModel):
    header: OrderListHeader | None = None


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class OzonClient:
    """Fetches Ozon pages with the user's session and reads order details.

    The client owns an ``httpx.AsyncClient`` unless one is injected; use it as
    an async context manager or call :meth:`aclose` when done.
    """

    def __init__(
        self,
        credentials: CredentialProvider,
        *,
        base_url: str = DEFAULT_BASE_URL,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._credentials = credentials
        self._base_url = base_url.rstrip("/")
        self._user_agent = user_agent
        self._owns_http_client = http_client is None
        self._http = http_client or httpx.AsyncClient(
            timeout=timeout, follow_redirects=True
        )
        self._logger = OrderSourceLogger()

        host = urlparse(self._base_url).hostname or ""
        self._allowed_domain = host.removeprefix("www.")

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_http_client:
            await self._http.aclose()

    def order_details_url(self, owner_id: int | str, order_number: int) -> str:
        order_id = make_order_id(owner_id, order_number)
        return self._base_url + ORDER_DETAILS_PATH.format(order_id=order_id)

    def ensure_credentials(self) -> dict[str, str]:
        """Return the session cookies or raise if the user is logged out."""
        cookies = self._credentials.get_cookies()
        if not cookies:
            raise CredentialsMissingError(
                "No Ozon session cookies found. Log in to ozon.ru in your "
                "browser and export its cookies to OZON_COOKIES."
            )
        return cookies

    def _is_ozon_url(self, url: str) -> bool:
        host = urlparse(url).hostname or ""
        return host == self._allowed_domain or host.endswith(
            "." + self._allowed_domain
        )

    async def fetch_page(self, url: str) -> str:
        """Download ``url`` with the session cookies attached.

        Raises:
            OrderFetchError: URL is not an Ozon page, or the request failed
            CredentialsMissingError: No session cookies are available
        """
        if not self._is_ozon_url(url):
            raise OrderFetchError(f"Refusing to fetch non-Ozon URL: {url}", url=url)

        cookies = self.ensure_credentials()
        headers = {
            "Cookie": format_cookie_header(cookies),
            "User-Agent": self._user_agent,
        }

        try:
            response = await self._http.get(url, headers=headers)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            self._logger.page_fetch_failed(url, e)
            raise OrderFetchError(
                f"HTTP {e.response.status_code} for {url}", url=url
            ) from e
        except httpx.HTTPError as e:
            self._logger.page_fetch_failed(url, e)
            raise OrderFetchError(f"Request to {url} failed: {e}", url=url) from e

        return response.text

    @overload
    async def fetch_data(
        self,
        url: str,
        *,
        selector: str = ...,
        filter: StateFilter | None = ...,
        merge: Literal[False] = ...,
    ) -> list[StatePayload]: ...

    @overload
    async def fetch_data(
        self,
        url: str,
        *,
        selector: str = ...,
        filter: StateFilter | None = ...,
        merge: Literal[True],
    ) -> StatePayload: ...

    async def fetch_data(
        self,
        url: str,
        *,
        selector: str = DEFAULT_SELECTOR,
        filter: StateFilter | None = None,  # noqa: A002
        merge: bool = False,
    ) -> list[StatePayload] | StatePayload:
        """Fetch ``url`` and return its embedded widget states."""
        markup = await self.fetch_page(url)
        if merge:
            return extract_embedded_state(
                markup, selector=selector, filter=filter, merge=True
            )
        return extract_embedded_state(markup, selector=selector, filter=filter)

    async def get_order(
        self,
        owner_id: int | str,
        order_number: int,
        *,
        strict: bool = False,
    ) -> list[LineItem]:
        """Fetch one order and flatten it into line items.

        Args:
            owner_id: Ozon user id
            order_number: Sequential order number (padded to 4 digits)
            strict: Raise OrderNotFoundError instead of returning [] when the
                page has no shipments

        Returns:
            Line items with repeated SKUs merged into ``quantity``

        Raises:
            OrderFetchError: Page download failed
            CredentialsMissingError: No session cookies are available
        """
        order_id = make_order_id(owner_id, order_number)
        url = self.order_details_url(owner_id, order_number)

        try:
            states = await self.fetch_data(url)
        except CredentialsMissingError:
            raise
        except OrderSourceError as e:
            self._logger.order_failed(order_id, e)
            raise OrderFetchError(
                f"Could not fetch order {order_id}: {e}", url=url
            ) from e

        items = self.flatten_order(str(owner_id), order_number, states)
        self._logger.order_fetched(order_id, len(items))

        if strict and not items and not any(_is_shipment(s) for s in states):
            raise OrderNotFoundError(f"Order {order_id} does not exist")
        return items

    def flatten_order(
        self,
        owner_id: str,
        order_number: int,
        states: list[StatePayload],
    ) -> list[LineItem]:
        """Walk shipment -> line -> seller -> product and build line items."""
        order_ref = make_order_id(owner_id, order_number)
        padded = format_order_number(order_number)
        products: dict[str, LineItem] = {}

        for state in states:
            shipment = _parse_or_none(ShipmentPayload, state)
            if shipment is None or not shipment.shipment_id or shipment.items is None:
                continue

            for raw_line in shipment.items:
                line = _parse_or_none(OrderLinePayload, raw_line)
                if line is None or not line.sellers:
                    self._logger.malformed_payload(order_ref, "line")
                    continue

                for raw_seller in line.sellers:
                    seller = _parse_or_none(SellerPayload, raw_seller)
                    if seller is None or not seller.products:
                        self._logger.malformed_payload(order_ref, "seller")
                        continue
                    seller_name = "Unknown"
                    if seller.name is not None and seller.name.text:
                        seller_name = seller.name.text

                    for raw_product in seller.products:
                        product = _parse_or_none(ProductPayload, raw_product)
                        sku = product.sku if product is not None else None
                        if product is None or sku is None:
                            self._logger.malformed_payload(order_ref, "product")
                            continue

                        existing = products.get(sku)
                        if existing is not None:
                            existing.quantity += 1
                            continue

                        products[sku] = LineItem(
                            owner_id=owner_id,
                            order_number=padded,
                            product_sku=sku,
                            seller_name=seller_name,
                            product_name=product.name or "Unknown",
                            product_link=product.link or "",
                            product_image=product.image or "",
                            product_price=product.price_text or "0 ₽",
                        )

        return list(products.values())

    async def get_current_owner_id(self) -> int:
        """Resolve the logged-in user's id from the archived order list.

        Order numbers look like ``1234567-0012-1``; the leading digits are the
        owner id.

        Returns:
            Owner id, or 0 when it cannot be determined
        """
        url = self._base_url + ORDER_ARCHIVE_PATH
        try:
            states = await self.fetch_data(
                url,
                filter=lambda state: bool(
                    isinstance(state.get("orderList"), list) and state["orderList"]
                ),
            )
        except OrderSourceError as e:
            self._logger.owner_not_found(str(e))
            return 0

        for state in states:
            for raw_order in state["orderList"]:
                entry = _parse_or_none(OrderListEntry, raw_order)
                if entry is None or entry.header is None or not entry.header.number:
                    continue
                match = _OWNER_PREFIX.match(entry.header.number)
                owner_id = int(match.group(1)) if match else 0
                if owner_id <= 0:
                    self._logger.owner_not_found(
                        f"unparseable order number {entry.header.number!r}"
                    )
                return owner_id

        self._logger.owner_not_found("no orders with a number")
        return 0


def _parse_or_none(model: type[M], data: Any) -> M | None:
    if not isinstance(data, dict):
        return None
    try:
        return model.parse(data)
    except ValidationError:
        return None


def _is_shipment(state: StatePayload) -> bool:
    return bool(state.get("shipmentId"))
