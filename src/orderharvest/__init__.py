"""Ozon purchase history discovery and persistence."""
