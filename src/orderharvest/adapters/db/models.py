from __future__ import annotations

from datetime import datetime

from sqlalchemy import TIMESTAMP, Integer, String, Text, text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from orderharvest.adapters.ozon.entities import LineItem


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""

    pass


class LineItemDB(Base):
    """Ozon order line item keyed by (owner, order, sku)."""

    __tablename__ = "line_items"

    owner_id: Mapped[str] = mapped_column(String(32), primary_key=True, index=True)
    order_number: Mapped[str] = mapped_column(String(16), primary_key=True)
    product_sku: Mapped[str] = mapped_column(String(64), primary_key=True)
    seller_name: Mapped[str] = mapped_column(Text, nullable=False)
    product_name: Mapped[str] = mapped_column(Text, nullable=False)
    product_link: Mapped[str] = mapped_column(
        Text, nullable=False, server_default=text("''")
    )
    product_image: Mapped[str] = mapped_column(
        Text, nullable=False, server_default=text("''")
    )
    product_price: Mapped[str] = mapped_column(String(64), nullable=False)
    quantity: Mapped[int] = mapped_column(
        Integer, nullable=False, server_default=text("1")
    )
    added_date: Mapped[datetime] = mapped_column(TIMESTAMP, nullable=False)

    @classmethod
    def from_entity(cls, item: LineItem) -> LineItemDB:
        return cls(
            owner_id=item.owner_id,
            order_number=item.order_number,
            product_sku=item.product_sku,
            seller_name=item.seller_name,
            product_name=item.product_name,
            product_link=item.product_link,
            product_image=item.product_image,
            product_price=item.product_price,
            quantity=item.quantity,
            added_date=item.added_date,
        )

    def to_entity(self) -> LineItem:
        return LineItem(
            owner_id=self.owner_id,
            order_number=self.order_number,
            product_sku=self.product_sku,
            seller_name=self.seller_name,
            product_name=self.product_name,
            product_link=self.product_link,
            product_image=self.product_image,
            product_price=self.product_price,
            quantity=self.quantity,
            added_date=self.added_date,
        )
