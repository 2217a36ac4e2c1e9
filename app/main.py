# app/main.py
from contextlib import asynccontextmanager
import logging

from fastapi.middleware.cors import CORSMiddleware
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.core.config import get_settings
from app.core.errors import CartError
from app.database import create_db_and_tables

# Import models so SQLModel metadata is populated before create_all()
from app.models import cart as _cart_models  # noqa: F401

# Routers
from app.routers.cart import router as cart_router
from app.routers.cart_rpc import router as cart_rpc_router

settings = get_settings()

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger("uvicorn")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
      - Verify DB connectivity and create tables.

    Shutdown:
      - No special cleanup needed for sync engine.
    """
    logger.info("🔄 Startup: Connecting to cart database...")
    try:
        create_db_and_tables()
        logger.info("✅ Startup: DB connection OK, tables verified.")
    except Exception as e:
        logger.error(f"❌ Startup: DB connection FAILED: {e}")
        raise
    yield


app = FastAPI(
    title=settings.PROJECT_NAME or "Cart Service API",
    version="0.1.0",
    lifespan=lifespan,
)


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(CartError)
async def cart_error_handler(request: Request, exc: CartError):
    """
    Render service-level cart errors for REST callers.

    Body keeps FastAPI's usual "detail" key and adds the error kind so
    clients can tell e.g. OutOfStock from InsufficientStock.
    """
    body = exc.to_dict()
    body["detail"] = body.pop("message")
    return JSONResponse(status_code=exc.http_status, content=body)


# Versioned API prefix, e.g. /api/v1
app.include_router(cart_router, prefix=settings.API_V1_STR)
# Internal RPC surface, e.g. /rpc/CartService/GetCart
app.include_router(cart_rpc_router, prefix=settings.RPC_PREFIX)


@app.get("/")
def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "cart-service"}
