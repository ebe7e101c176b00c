"""Pantry Locator - Services Package."""
