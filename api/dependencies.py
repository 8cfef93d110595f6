"""Shared FastAPI dependencies for the API routers."""

import logging

from fastapi import HTTPException, status

from chain import (
    CapabilityUnsupportedError, ChainConnectionError, ChainError, TransactionFailedError,
    WalletUnavailableError, get_bridge, get_marketplace, get_token
)
from database import get_store
from ipfs import get_pinning_client

logger = logging.getLogger(__name__)

async def get_document_store():
    """Document store used by request handlers."""
    return await get_store()

def get_wallet():
    return get_bridge()

def get_marketplace_client():
    try:
        return get_marketplace()
    except ChainError as e:
        raise chain_http_error(e)

def get_token_client():
    try:
        return get_token()
    except ChainError as e:
        raise chain_http_error(e)

def get_pinning():
    return get_pinning_client()

def chain_http_error(e: ChainError) -> HTTPException:
    """Map a chain error to the HTTP error returned to the client."""
    if isinstance(e, (ChainConnectionError, WalletUnavailableError)):
        code = status.HTTP_503_SERVICE_UNAVAILABLE
    elif isinstance(e, CapabilityUnsupportedError):
        code = status.HTTP_501_NOT_IMPLEMENTED
    elif isinstance(e, TransactionFailedError):
        code = status.HTTP_400_BAD_REQUEST
    else:
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    return HTTPException(status_code=code, detail=str(e))

def get_optional_marketplace():
    """Marketplace client, or None when it cannot be configured."""
    try:
        return get_marketplace()
    except ChainError as e:
        logger.warning(f"Marketplace contract unavailable: {e}")
        return None

def get_optional_token():
    """Token client, or None when it cannot be configured."""
    try:
        return get_token()
    except ChainError as e:
        logger.warning(f"Token contract unavailable: {e}")
        return None
