# database.py
"""
Pantry Locator MongoDB Database Connection.

Uses Motor async driver with Beanie ODM. Initialization also creates the
unique indexes on the store place id and match key, which back the
at-most-one-store-per-identity guarantee.
"""

import asyncio
import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient
from beanie import init_beanie

from settings import settings

logger = logging.getLogger(__name__)


class Database:
    """MongoDB connection shared by the process."""

    client: Optional[AsyncIOMotorClient] = None
    _initialized: bool = False
    _lock: Optional[asyncio.Lock] = None

    @classmethod
    async def connect_db(cls, database_url: str, database_name: str):
        """
        Connect to MongoDB and register the store documents.

        Safe to call from concurrent requests; only the first caller connects.
        """
        if cls._initialized:
            return
        if cls._lock is None:
            cls._lock = asyncio.Lock()

        async with cls._lock:
            if cls._initialized:
                return
            client = AsyncIOMotorClient(
                database_url,
                serverSelectionTimeoutMS=5000,
                maxPoolSize=settings.MONGO_MAX_POOL_SIZE,
                minPoolSize=settings.MONGO_MIN_POOL_SIZE
            )
            try:
                await client.admin.command('ping')
                from locator.models.mongodb import StoreDocument, StoreChainDocument

                await init_beanie(
                    database=client[database_name],
                    document_models=[StoreDocument, StoreChainDocument]
                )
            except Exception as e:
                logger.error(f"Error connecting to MongoDB: {e}")
                client.close()
                raise

            cls.client = client
            cls._initialized = True
            logger.info(f"Connected to MongoDB: {database_name} (store indexes ensured)")

    @classmethod
    async def close_db(cls):
        if cls.client:
            cls.client.close()
            cls.client = None
            cls._initialized = False
            logger.info("MongoDB connection closed")

    @classmethod
    async def ping(cls) -> bool:
        if not cls.client:
            return False
        try:
            await cls.client.admin.command('ping')
            return True
        except Exception as e:
            logger.warning(f"MongoDB ping failed: {e}")
            return False
