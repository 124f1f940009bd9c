from fastapi import HTTPException, status
from motor.motor_asyncio import AsyncIOMotorClient
from config import (
    DATABASE_URL,
    DATABASE_NAME,
    DB_MAX_POOL_SIZE,
    DB_MAX_RECONNECT_ATTEMPTS,
    DB_RECONNECT_DELAY,
    DB_SERVER_SELECTION_TIMEOUT_MS,
    DB_CONNECT_TIMEOUT_MS
)
from logger.logger import logger

import asyncio
from typing import Optional

from minio import Minio
from config import MINIO_USERNAME, MINIO_PASSWORD, MINIO_SERVER, MINIO_BUCKET

# Global client with connection pool
client: Optional[AsyncIOMotorClient] = None
db = None
minio_client: Optional[Minio] = None

async def init_db():
    """Initialize database connection with retries"""
    global client, db

    for attempt in range(DB_MAX_RECONNECT_ATTEMPTS):
        try:
            if client is None:
                # Create client with connection pool
                client = AsyncIOMotorClient(
                    DATABASE_URL,
                    maxPoolSize=DB_MAX_POOL_SIZE,
                    serverSelectionTimeoutMS=DB_SERVER_SELECTION_TIMEOUT_MS,
                    connectTimeoutMS=DB_CONNECT_TIMEOUT_MS,
                    retryWrites=True,
                    retryReads=True
                )
                db = client[DATABASE_NAME]

            # Test connection
            await client.admin.command('ping')
            logger.info("Successfully connected to MongoDB")
            return
        except Exception as e:
            logger.error(f"Failed to connect to MongoDB (attempt {attempt+1}/{DB_MAX_RECONNECT_ATTEMPTS}): {e}")
            if attempt < DB_MAX_RECONNECT_ATTEMPTS - 1:
                await asyncio.sleep(DB_RECONNECT_DELAY)
            else:
                logger.error("Max reconnection attempts reached. Running with degraded database functionality.")

async def get_db():
    """
    Dependency function to get database connection.
    For use with FastAPI Depends().
    """
    if client is None:
        # Try to initialize if not already connected
        await init_db()

    if db is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database service unavailable"
        )

    return db

async def close_db_connection():
    """Close database connection"""
    global client, db
    if client:
        client.close()
        client = None
        db = None
        logger.info("DB connection closed")

def _split_server_address(server: str):
    """Strip the scheme from MINIO_SERVER; the scheme decides TLS"""
    if server.startswith("https://"):
        return server[len("https://"):], True
    if server.startswith("http://"):
        return server[len("http://"):], False
    return server, False

async def init_object_storage():
    """Initialize object storage connection"""
    global minio_client

    endpoint, secure = _split_server_address(MINIO_SERVER)
    minio_client = Minio(
        endpoint,
        access_key=MINIO_USERNAME,
        secret_key=MINIO_PASSWORD,
        secure=secure
    )

    # Create the bucket if it doesn't exist
    try:
        found = await asyncio.to_thread(minio_client.bucket_exists, MINIO_BUCKET)
        if not found:
            await asyncio.to_thread(minio_client.make_bucket, MINIO_BUCKET)
            logger.info(f"Bucket '{MINIO_BUCKET}' created")
        else:
            logger.info(f"Bucket '{MINIO_BUCKET}' already exists")
    except Exception as e:
        # Chat keeps working without attachments; uploads will fail individually
        logger.error(f"Object storage unavailable at start-up: {e}")

