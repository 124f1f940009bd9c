from fastapi import FastAPI
from .chat import router as chat_router
from .notifications import router as notifications_router

def setup_routes(app: FastAPI):
    # You can add other routes directly to app here if needed
    @app.get("/")
    async def root():
        return {"message": "API is alive!"}

    # Include the router with a prefix
    app.include_router(
        chat_router,
        prefix="/chat",
        tags=["chat"],
    )

    app.include_router(
        notifications_router,
        prefix="/notifications",
        tags=["notifications"],
    )
