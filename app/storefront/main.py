from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
import uvicorn
import logging

from storefront.config import settings

# Настраиваем логгер
logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

from storefront.routers import auth as auth_routes, users, products, orders, cart
from storefront.database import engine, Base
from storefront import auth, models
from storefront.errors import StorefrontError
from storefront.utils import storage

# Create FastAPI app
app = FastAPI(
    title="Storefront API",
    description="Catalog, cart and order API for the storefront client",
    version="1.0.0"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Настройка rate limiting
limiter = auth.setup_limiter(app)

# Create database tables
try:
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created successfully")
except SQLAlchemyError as e:
    logger.error(f"Failed to create database tables: {str(e)}")
    logger.warning("API will continue to run, but database operations may fail")

# Error handlers
@app.exception_handler(StorefrontError)
async def storefront_error_handler(request: Request, exc: StorefrontError) -> JSONResponse:
    """Map StorefrontError subclasses to their HTTP responses."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error_type": type(exc).__name__},
    )

@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    messages = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error.get("loc", ())[1:])
        messages.append(f"{field}: {error.get('msg')}" if field else error.get("msg"))
    return JSONResponse(
        status_code=400,
        content={"detail": "; ".join(messages), "error_type": "InvalidRequestError"},
    )

@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception(f"Database error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "error_type": "InternalError"},
    )

@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "error_type": "InternalError"},
    )

# Include routers
app.include_router(auth_routes.router, prefix=settings.API_PREFIX, tags=["auth"])
app.include_router(users.router, prefix=settings.API_PREFIX, tags=["users"])
app.include_router(products.router, prefix=settings.API_PREFIX, tags=["products"])
app.include_router(orders.router, prefix=settings.API_PREFIX, tags=["orders"])
app.include_router(cart.router, prefix=settings.API_PREFIX, tags=["cart"])

# Uploaded product images
try:
    storage.ensure_upload_dir()
except OSError as e:
    logger.error(f"Failed to create upload directory {settings.UPLOAD_DIR}: {str(e)}")
app.mount(
    settings.UPLOAD_URL_PREFIX,
    StaticFiles(directory=settings.UPLOAD_DIR, check_dir=False),
    name="uploads",
)

@app.get("/")
def read_root():
    return {
        "status": "ok",
        "message": "Storefront API is running",
        "version": "1.0.0"
    }

@app.get("/health")
def health_check():
    db_status = "connected"

    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {str(e)}")
        db_status = "disconnected"

    return {
        "status": "healthy" if db_status == "connected" else "degraded",
        "database": db_status,
    }

if __name__ == "__main__":
    uvicorn.run(
        "storefront.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True
    )
