# main.py
import asyncio
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
import socketio
import uvicorn

from db.db import init_db, close_db_connection, init_object_storage, get_db
from db.init_db import init_db_indexes
from routes.routes import setup_routes
from routes.sockets import ChatNamespace
from logger.logger import logger
from repos.notification_repo import NotificationRepository
from repos.user_repo import UserRepository
from services.delivery_gateway import init_gateway
from services.exceptions import ChatError
from services.notification_service import NotificationService

# Try to import config - if any required configs are missing,
# the app will exit before starting
try:
    from config import settings
except Exception as e:
    logger.critical(f"Failed to load configuration: {e}")
    import sys
    sys.exit(1)


# Initialize FastAPI app
app = FastAPI(title="Campus Chat API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.client_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Setup routes
setup_routes(app)

# Real-time transport shares the origin list with the REST API
sio = socketio.AsyncServer(async_mode="asgi", cors_allowed_origins=settings.client_origins)
init_gateway(sio)
sio.register_namespace(ChatNamespace())

socket_app = socketio.ASGIApp(sio, other_asgi_app=app)

_sweep_task: Optional[asyncio.Task] = None


async def sweep_expired_notifications(interval: int):
    """Delete expired notifications every interval seconds until cancelled"""
    while True:
        await asyncio.sleep(interval)
        try:
            service = NotificationService(NotificationRepository(await get_db()), UserRepository(await get_db()))
            await service.purge_expired()
        except ChatError as e:
            logger.error(f"Notification sweep failed: {e.detail}")
        except Exception as e:
            logger.error(f"Notification sweep failed: {e}")


# Startup and shutdown events
@app.on_event("startup")
async def startup_db_client():
    global _sweep_task
    logger.info("Starting up application")
    await init_db()
    try:
        await init_db_indexes(await get_db())
    except HTTPException as e:
        logger.error(f"Skipping index creation: {e.detail}")
    await init_object_storage()
    _sweep_task = asyncio.create_task(
        sweep_expired_notifications(settings.NOTIFICATION_SWEEP_INTERVAL_SECONDS)
    )

@app.on_event("shutdown")
async def shutdown_db_client():
    logger.info("Shutting down application")
    if _sweep_task is not None:
        _sweep_task.cancel()
    await close_db_connection()

if __name__ == "__main__":
    uvicorn.run("main:socket_app", host="0.0.0.0", port=8000, reload=True)
