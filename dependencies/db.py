# dependencies/db.py
async def get_db():
    """
    Dependency for database access.
    Returns MongoDB database connection from the connection pool.
    """
    from db.db import get_db as db_connection
    db = await db_connection()
    return db

async def get_object_storage():
    """
    Dependency for object storage access.
    Returns MinIO client connection, or None when storage is down so that
    text messages still go through.
    """
    from db.db import minio_client
    return minio_client

async def get_gateway():
    from services.delivery_gateway import get_gateway as current_gateway
    return current_gateway()

