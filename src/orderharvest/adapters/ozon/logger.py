"""Logging for Ozon order source operations."""

from __future__ import annotations

import loguru
from loguru import logger


class OrderSourceLogger:
    """Handles all logging for the Ozon client with business logic separated."""

    def __init__(self, logger_instance: loguru.Logger = logger) -> None:
        """Initialize logger.

        Args:
            logger_instance: Logger instance to use (defaults to loguru.logger)
        """
        self._logger = logger_instance

    def page_fetch_failed(self, url: str, error: Exception) -> None:
        """Log a failed page download."""
        self._logger.bind(url=url).error("Failed to load {}: {}", url, error)

    def order_fetched(self, order_id: str, item_count: int) -> None:
        """Log a fetched order detail page."""
        self._logger.bind(order_id=order_id, items=item_count).info(
            "Fetched order {} ({} items)", order_id, item_count
        )

    def order_failed(self, order_id: str, error: Exception) -> None:
        """Log an order that could not be fetched."""
        self._logger.bind(order_id=order_id).error(
            "Failed to fetch order {}: {}", order_id, error
        )

    def malformed_payload(self, order_id: str, level: str) -> None:
        """Log a skipped payload fragment."""
        self._logger.bind(order_id=order_id, level=level).debug(
            "Skipping malformed {} in order {}", level, order_id
        )

    def owner_not_found(self, reason: str) -> None:
        """Log failure to resolve the current owner id."""
        self._logger.bind(reason=reason).warning(
            "Could not determine Ozon owner id: {}", reason
        )
