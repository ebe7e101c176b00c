"""Pantry Locator API - Routes Package."""

from locator.routes import (
    stores,
    chains,
    location,
    availability,
)

__all__ = [
    "stores",
    "chains",
    "location",
    "availability",
]
