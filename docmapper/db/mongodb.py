"""
MongoDB database initialization and connection management.

Version: 1.0
"""

import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase  # motor v3.3+
from pymongo import MongoClient  # pymongo v4.3+
from pymongo.database import Database
from pymongo.errors import ConnectionFailure

from docmapper.config.settings import get_settings

# Configure module logger
logger = logging.getLogger(__name__)

# Global database connection objects
_mongodb_client: Optional[MongoClient] = None
_mongodb_db: Optional[Database] = None
_motor_client: Optional[AsyncIOMotorClient] = None
_motor_db: Optional[AsyncIOMotorDatabase] = None


def _client_options() -> dict:
    config = get_settings().get_mongodb_settings()
    return {
        "connectTimeoutMS": config["connect_timeout_ms"],
        "serverSelectionTimeoutMS": config["server_selection_timeout_ms"],
        "tz_aware": config["tz_aware"],
    }


def init_mongodb() -> Database:
    """
    Initialize the synchronous MongoDB connection.

    Returns:
        Database: pymongo database instance

    Raises:
        ConnectionFailure: If the server cannot be reached
    """
    global _mongodb_client, _mongodb_db

    settings = get_settings()
    client = MongoClient(settings.MONGODB_URL.get_secret_value(), **_client_options())

    try:
        # Verify connection is alive
        client.admin.command('ping')
    except ConnectionFailure as e:
        logger.error(f"Failed to connect to MongoDB: {str(e)}")
        client.close()
        raise

    _mongodb_client = client
    _mongodb_db = client[settings.MONGODB_DB_NAME]
    logger.info(f"Successfully connected to MongoDB database {settings.MONGODB_DB_NAME}")
    return _mongodb_db


def get_database() -> Database:
    """
    Get the synchronous MongoDB database, connecting on first use.

    Returns:
        Database: pymongo database instance
    """
    if _mongodb_db is None:
        return init_mongodb()
    return _mongodb_db


async def init_async_mongodb() -> AsyncIOMotorDatabase:
    """
    Initialize the asyncio MongoDB connection.

    Returns:
        AsyncIOMotorDatabase: motor database instance

    Raises:
        ConnectionFailure: If the server cannot be reached
    """
    global _motor_client, _motor_db

    settings = get_settings()
    client = AsyncIOMotorClient(settings.MONGODB_URL.get_secret_value(), **_client_options())

    try:
        await client.admin.command('ping')
    except ConnectionFailure as e:
        logger.error(f"Failed to connect to MongoDB: {str(e)}")
        client.close()
        raise

    _motor_client = client
    _motor_db = client[settings.MONGODB_DB_NAME]
    logger.info(f"Successfully connected to MongoDB database {settings.MONGODB_DB_NAME} (async)")
    return _motor_db


def get_motor_database() -> AsyncIOMotorDatabase:
    """
    Get the asyncio MongoDB database without awaiting a ping.

    Motor connects lazily, so this is safe to call outside a running loop;
    connection errors surface on the first awaited operation.
    """
    global _motor_client, _motor_db

    if _motor_db is None:
        settings = get_settings()
        _motor_client = AsyncIOMotorClient(settings.MONGODB_URL.get_secret_value(), **_client_options())
        _motor_db = _motor_client[settings.MONGODB_DB_NAME]
    return _motor_db


async def get_async_database() -> AsyncIOMotorDatabase:
    """
    Get the asyncio MongoDB database, connecting on first use.

    Returns:
        AsyncIOMotorDatabase: motor database instance
    """
    if _motor_db is None:
        return await init_async_mongodb()
    return _motor_db


def close_mongodb_connection() -> None:
    """Close MongoDB connections gracefully."""
    global _mongodb_client, _mongodb_db, _motor_client, _motor_db

    if _mongodb_client is not None:
        _mongodb_client.close()
        _mongodb_client = None
        _mongodb_db = None
        logger.info("MongoDB connection closed")

    if _motor_client is not None:
        _motor_client.close()
        _motor_client = None
        _motor_db = None
        logger.info("MongoDB async connection closed")
