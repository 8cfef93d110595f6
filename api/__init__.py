"""REST API module for the NFT marketplace.

This module provides HTTP endpoints for:
- Pinning listing images and metadata to IPFS
- Browsing, searching, creating, editing and deleting listings
- Purchasing listings on-chain
- Profiles, carts, likes and the "my page" overview
- The faucet token
- System health monitoring
- Authentication and session management
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from auth import AuthUser, get_auth_manager
from database import get_store
from users import ProfileManager

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

async def upsert_profile(user: AuthUser) -> None:
    """Auth subscriber keeping the user's profile in sync with the identity provider."""
    await ProfileManager(await get_store()).upsert_on_auth(user)

# Lifecycle management
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle startup and shutdown events."""
    # Startup
    logger.info("Initializing API...")
    # Don't initialize DB here since it's handled in __main__.py
    unsubscribe = get_auth_manager().subscribe(upsert_profile)

    yield

    # Shutdown
    logger.info("Shutting down API...")
    unsubscribe()

# Create FastAPI app
app = FastAPI(
    title="NFT Marketplace API",
    description="REST API for the NFT marketplace",
    version="1.0.0",
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, replace with specific origins
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Errors are returned as {"error": message}
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
        headers=getattr(exc, 'headers', None)
    )

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request, exc: RequestValidationError):
    messages = []
    for error in exc.errors():
        location = '.'.join(str(part) for part in error.get('loc', ()) if part != 'body')
        messages.append(f"{location}: {error.get('msg')}" if location else str(error.get('msg')))
    return JSONResponse(
        status_code=422,
        content={"error": '; '.join(messages) or "Invalid request"}
    )

@app.exception_handler(Exception)
async def unhandled_exception_handler(request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"error": str(exc) or exc.__class__.__name__}
    )

# Import and include all routers
from .ipfs import router as ipfs_router
from .listings import router as listings_router
from .auth import router as auth_router
from .profile import router as profile_router
from .cart import router as cart_router
from .likes import router as likes_router
from .mypage import router as mypage_router
from .token import router as token_router
from .system import router as system_router

# Include all routers
app.include_router(ipfs_router)
app.include_router(listings_router)
app.include_router(auth_router)
app.include_router(profile_router)
app.include_router(cart_router)
app.include_router(likes_router)
app.include_router(mypage_router)
app.include_router(token_router)
app.include_router(system_router)
