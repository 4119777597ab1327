"""Tests for the SQLAlchemy-backed item store."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
import sqlite3
from unittest.mock import patch

import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError

from orderharvest.adapters.db.facade import ItemStore, StoreResetError
from orderharvest.adapters.ozon.entities import LineItem


def create_item(
    *,
    owner_id: str = "1234567",
    order_number: str = "0001",
    product_sku: str = "111",
    product_name: str = "Кофе в зёрнах",
    product_price: str = "1 299 ₽",
    quantity: int = 1,
) -> LineItem:
    """Create a test line item."""
    return LineItem(
        owner_id=owner_id,
        order_number=order_number,
        product_sku=product_sku,
        seller_name="Ozon",
        product_name=product_name,
        product_link=f"/product/{product_sku}/",
        product_image=f"https://cdn.ozon.ru/{product_sku}.jpg",
        product_price=product_price,
        quantity=quantity,
    )


class TestPut:
    def test_put_stores_item(self, store: ItemStore) -> None:
        # input
        item = create_item()

        # act
        store.put(item)
        stored = store.list_by_owner("1234567")

        # assert
        assert len(stored) == 1
        assert stored[0].key == ("1234567", "0001", "111")
        assert stored[0].product_name == "Кофе в зёрнах"
        assert stored[0].product_price == "1 299 ₽"
        assert stored[0].product_image == "https://cdn.ozon.ru/111.jpg"

    def test_put_same_key_twice_keeps_one_record(self, store: ItemStore) -> None:
        item = create_item(quantity=2)

        store.put(item)
        store.put(item)

        stored = store.list_by_owner("1234567")
        assert len(stored) == 1
        assert stored[0].quantity == 2

    def test_put_overwrites_existing_record(self, store: ItemStore) -> None:
        store.put(create_item(product_name="Old", quantity=1))

        store.put(create_item(product_name="New", quantity=3))

        stored = store.list_by_owner("1234567")
        assert len(stored) == 1
        assert stored[0].product_name == "New"
        assert stored[0].quantity == 3

    def test_same_sku_in_different_orders_is_two_records(
        self, store: ItemStore
    ) -> None:
        store.put(create_item(order_number="0001"))
        store.put(create_item(order_number="0002"))

        assert len(store.list_by_owner("1234567")) == 2


class TestMaxOrderNumber:
    def test_returns_zero_for_unknown_owner(self, store: ItemStore) -> None:
        assert store.max_order_number("9999999") == 0

    def test_returns_highest_order_for_owner(self, store: ItemStore) -> None:
        # setup
        store.put(create_item(order_number="0003"))
        store.put(create_item(order_number="0012", product_sku="222"))
        store.put(create_item(order_number="0007", product_sku="333"))
        store.put(create_item(owner_id="7654321", order_number="0099"))

        # act
        result = store.max_order_number("1234567")

        # assert
        assert result == 12

    def test_accepts_integer_owner_id(self, store: ItemStore) -> None:
        store.put(create_item(order_number="0004"))

        assert store.max_order_number(1234567) == 4

    def test_skips_non_numeric_order_numbers(self, store: ItemStore) -> None:
        store.put(create_item(order_number="0002"))
        store.put(create_item(order_number="legacy", product_sku="222"))

        assert store.max_order_number("1234567") == 2

    def test_only_non_numeric_order_numbers_returns_zero(
        self, store: ItemStore
    ) -> None:
        store.put(create_item(order_number="abc"))

        assert store.max_order_number("1234567") == 0


class TestListByOwner:
    def test_returns_only_items_of_owner(self, store: ItemStore) -> None:
        store.put(create_item(owner_id="1", product_sku="a"))
        store.put(create_item(owner_id="1", product_sku="b"))
        store.put(create_item(owner_id="2", product_sku="c"))

        skus = {item.product_sku for item in store.list_by_owner("1")}

        assert skus == {"a", "b"}

    def test_returns_empty_list_for_unknown_owner(self, store: ItemStore) -> None:
        assert store.list_by_owner("nobody") == []


class TestReset:
    def test_reset_removes_all_owners(self, store: ItemStore) -> None:
        store.put(create_item(owner_id="1", order_number="0005"))
        store.put(create_item(owner_id="2", order_number="0009"))

        store.reset()

        assert store.max_order_number("1") == 0
        assert store.max_order_number("2") == 0
        assert store.list_by_owner("1") == []
        assert store.count() == 0

    def test_store_is_usable_after_reset(self, store: ItemStore) -> None:
        store.put(create_item(order_number="0005"))
        store.reset()

        store.put(create_item(order_number="0001"))

        assert store.max_order_number("1234567") == 1

    def test_reset_on_fresh_store_succeeds(self, store: ItemStore) -> None:
        store.reset()

        assert store.count() == 0

    def test_reset_raises_when_drop_fails(self, store: ItemStore) -> None:
        store.put(create_item())

        with patch(
            "orderharvest.adapters.db.facade.Base.metadata.drop_all",
            side_effect=OperationalError("DROP TABLE", {}, Exception("locked")),
        ):
            with pytest.raises(StoreResetError, match="Could not reset"):
                store.reset()

    def test_reset_raises_while_another_connection_holds_the_database(
        self, tmp_path: Path
    ) -> None:
        # setup
        path = tmp_path / "items.db"
        store = ItemStore(f"sqlite:///{path}?timeout=0.1")
        store.put(create_item())
        other = sqlite3.connect(path, isolation_level=None)

        # act
        try:
            other.execute("BEGIN EXCLUSIVE")
            with pytest.raises(StoreResetError, match="Could not reset"):
                store.reset()
        finally:
            other.execute("ROLLBACK")
            other.close()

        # assert
        assert store.max_order_number("1234567") == 1
        store.reset()
        assert store.count() == 0


class TestLazyInit:
    def test_concurrent_first_use_creates_one_engine(self, store: ItemStore) -> None:
        with patch(
            "orderharvest.adapters.db.facade.create_engine",
            wraps=create_engine,
        ) as spy:
            with ThreadPoolExecutor(max_workers=8) as pool:
                results = list(
                    pool.map(lambda _: store.max_order_number("1"), range(16))
                )

        assert results == [0] * 16
        assert spy.call_count == 1
