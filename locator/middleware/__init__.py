"""Pantry Locator API middleware."""
