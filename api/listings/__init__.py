"""Listings API endpoints."""

import logging
from typing import Any, Dict, List, Optional, Union

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Security, UploadFile, status
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel

from auth import AuthUser, get_current_user
from chain import ChainError, WalletBridge
from ipfs import PinningClient, PinningError
from listings import (
    ListingError, ListingManager, ListingNotFoundError, ListingPermissionError,
    ListingSoldError, ListingValidationError
)
from listings.search import filter_items
from settlement import (
    SettlementIncompleteError, SettlementManager, SettlementNotFoundError,
    SettlementPendingError, SettlementPreconditionError
)
from ..dependencies import (
    chain_http_error, get_document_store, get_marketplace_client, get_pinning, get_wallet
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/listings",
    tags=["Listings"]
)

class UpdateListingRequest(BaseModel):
    """Request model for editing a listing."""
    title: Optional[str] = None
    description: Optional[str] = None
    price: Optional[Union[str, float]] = None

def listing_http_error(e: ListingError) -> HTTPException:
    if isinstance(e, ListingNotFoundError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(e, ListingValidationError):
        code = status.HTTP_400_BAD_REQUEST
    elif isinstance(e, ListingPermissionError):
        code = status.HTTP_403_FORBIDDEN
    elif isinstance(e, ListingSoldError):
        code = status.HTTP_409_CONFLICT
    else:
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    return HTTPException(status_code=code, detail=str(e))

""" Public Endpoints - No Authentication Required """
@router.get("")
async def list_listings(store=Depends(get_document_store)) -> List[Dict[str, Any]]:
    """Unsold listings, newest first."""
    try:
        return await ListingManager(store).list_visible()
    except Exception as e:
        logger.error(f"GET /api/listings failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e)
        )

@router.get("/search")
async def search_listings(
    q: str = Query(''),
    store=Depends(get_document_store)
) -> List[Dict[str, Any]]:
    """Unsold listings whose name matches the query."""
    try:
        items = await ListingManager(store).list_visible()
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e)
        )
    return filter_items(items, q)

@router.get("/{listing_id}")
async def get_listing(listing_id: str, store=Depends(get_document_store)) -> Dict[str, Any]:
    """Listing details with the owner's nickname."""
    try:
        return await ListingManager(store).get_listing(listing_id)
    except ListingError as e:
        raise listing_http_error(e)

""" Protected Endpoints - Authentication Required """
@router.post("", status_code=status.HTTP_201_CREATED)
async def create_listing(
    image: Optional[UploadFile] = File(None),
    title: str = Form(''),
    description: str = Form(''),
    price: str = Form(''),
    owner_address: Optional[str] = Form(None),
    user: AuthUser = Security(get_current_user),
    store=Depends(get_document_store),
    pinning: PinningClient = Depends(get_pinning),
    wallet: WalletBridge = Depends(get_wallet)
) -> Dict[str, Any]:
    """Upload an image and create a listing for it.

    The payment address defaults to the service wallet.
    """
    if not owner_address:
        try:
            owner_address = await run_in_threadpool(lambda: wallet.address)
        except ChainError as e:
            logger.warning(f"No wallet address for new listing: {e}")

    content = await image.read() if image is not None else None
    try:
        return await ListingManager(store).create_listing(
            user,
            owner_address,
            title,
            description,
            price,
            content,
            (image.filename if image is not None else None) or 'image',
            (image.content_type if image is not None else None) or 'application/octet-stream',
            pinning
        )
    except ListingError as e:
        raise listing_http_error(e)
    except PinningError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e)
        )

@router.patch("/{listing_id}")
async def update_listing(
    listing_id: str,
    update: UpdateListingRequest,
    user: AuthUser = Security(get_current_user),
    store=Depends(get_document_store)
) -> Dict[str, Any]:
    """Edit title, description or price of an unsold listing you own."""
    try:
        return await ListingManager(store).update_listing(
            user,
            listing_id,
            title=update.title,
            description=update.description,
            price=update.price
        )
    except ListingError as e:
        raise listing_http_error(e)

@router.delete("/{listing_id}")
async def delete_listing(
    listing_id: str,
    user: AuthUser = Security(get_current_user),
    store=Depends(get_document_store)
):
    """Delete a listing you own."""
    try:
        await ListingManager(store).delete_listing(user, listing_id)
        return {"success": True}
    except ListingError as e:
        raise listing_http_error(e)

def settlement_http_error(e: Exception) -> HTTPException:
    if isinstance(e, ListingError):
        return listing_http_error(e)
    if isinstance(e, ChainError):
        return chain_http_error(e)
    if isinstance(e, SettlementPendingError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    if isinstance(e, SettlementPreconditionError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if isinstance(e, SettlementNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

@router.post("/{listing_id}/purchase")
async def purchase_listing(
    listing_id: str,
    user: AuthUser = Security(get_current_user),
    store=Depends(get_document_store),
    marketplace=Depends(get_marketplace_client)
) -> Dict[str, Any]:
    """Buy a listing and mint its NFT to the buyer."""
    try:
        return await SettlementManager(store, marketplace).purchase(user, listing_id)
    except SettlementIncompleteError as e:
        logger.error(f"Purchase of {listing_id} needs resume: {e}")
        raise settlement_http_error(e)
    except (ListingError, ChainError, SettlementPreconditionError) as e:
        raise settlement_http_error(e)

@router.post("/{listing_id}/purchase/resume")
async def resume_purchase(
    listing_id: str,
    user: AuthUser = Security(get_current_user),
    store=Depends(get_document_store)
) -> Dict[str, Any]:
    """Finish recording a purchase whose transaction was already mined."""
    try:
        return await SettlementManager(store).resume(user, listing_id)
    except (SettlementNotFoundError, SettlementIncompleteError) as e:
        raise settlement_http_error(e)

__all__ = ['router']
