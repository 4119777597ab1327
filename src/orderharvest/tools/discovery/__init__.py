"""Order discovery: scan sequential order numbers and persist new items."""

from orderharvest.tools.discovery.discovery_tool import (
    DEFAULT_BATCH_SIZE,
    DiscoveryResult,
    OrderDiscovery,
    OwnerLocks,
)

__all__ = [
    "DEFAULT_BATCH_SIZE",
    "DiscoveryResult",
    "OrderDiscovery",
    "OwnerLocks",
]
