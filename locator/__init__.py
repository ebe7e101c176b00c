"""Pantry Locator - store identity resolution and geo-proximity."""
