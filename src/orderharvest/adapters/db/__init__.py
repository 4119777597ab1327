"""Item store persistence."""

from orderharvest.adapters.db.facade import ItemStore, ItemStoreError, StoreResetError

__all__ = ["ItemStore", "ItemStoreError", "StoreResetError"]
