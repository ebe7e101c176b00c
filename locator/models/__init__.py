"""
Pantry Locator - MongoDB Models Package.

Export all Beanie ODM models for MongoDB operations.
"""

from locator.models.mongodb import (
    StoreDocument,
    StoreChainDocument,
)

__all__ = [
    "StoreDocument",
    "StoreChainDocument",
]
