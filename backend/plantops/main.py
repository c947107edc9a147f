# backend/plantops/main.py
import logging
import os
from contextlib import asynccontextmanager
from typing import List

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .apps.inventory.errors import InventoryError
from .apps.inventory.router import router as inventory_router
from .apps.notifications.dispatcher import get_dispatcher

logger = logging.getLogger(__name__)

DEFAULT_CORS_ORIGINS = ["http://localhost:3000", "http://127.0.0.1:3000"]


def _allowed_origins() -> List[str]:
    """Comma-separated `CORS_ALLOWED_ORIGINS`, or the dashboard dev server."""
    origins = [o.strip() for o in os.getenv("CORS_ALLOWED_ORIGINS", "").split(",") if o.strip()]
    return origins or DEFAULT_CORS_ORIGINS


@asynccontextmanager
async def lifespan(app: FastAPI):
    dispatcher = get_dispatcher()
    dispatcher.start()
    try:
        yield
    finally:
        dispatcher.stop()


app = FastAPI(title="Plantops Inventory API", version="1.0.0", lifespan=lifespan)

cors_origins = _allowed_origins()
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    # Browsers refuse credentials together with a wildcard origin.
    allow_credentials="*" not in cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(InventoryError)
async def inventory_error_handler(request: Request, exc: InventoryError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("Inventory request failed", extra={"path": request.url.path, "error": exc.message})
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.get("/", tags=["health"])
def read_root():
    return {"status": "ok", "message": "Plantops backend is running"}


@app.get("/health", tags=["health"])
def health():
    return {"status": "ok"}


app.include_router(inventory_router)
