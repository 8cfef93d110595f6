"""Shopping cart endpoints."""

from fastapi import APIRouter, Depends, HTTPException, Security, status
from pydantic import BaseModel, Field

from auth import AuthUser, get_current_user
from listings import ListingError, ListingManager
from users import CartManager
from ..dependencies import get_document_store
from ..listings import listing_http_error

router = APIRouter(
    prefix="/cart",
    tags=["Cart"]
)

class CartAddRequest(BaseModel):
    """Request model for adding a listing to the cart."""
    listing_id: str = Field(..., alias='listingId')

@router.get("")
async def get_cart(
    user: AuthUser = Security(get_current_user),
    store=Depends(get_document_store)
):
    """Cart entries with their total price."""
    return await CartManager(store).list(user.uid)

@router.post("", status_code=status.HTTP_201_CREATED)
async def add_to_cart(
    request: CartAddRequest,
    user: AuthUser = Security(get_current_user),
    store=Depends(get_document_store)
):
    """Add a listing to the cart."""
    try:
        listing = await ListingManager(store).get_listing(request.listing_id)
    except ListingError as e:
        raise listing_http_error(e)
    if listing.get('sold'):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Listing has already been sold"
        )
    return await CartManager(store).add(user.uid, listing)

@router.delete("/{cart_id}")
async def remove_from_cart(
    cart_id: str,
    user: AuthUser = Security(get_current_user),
    store=Depends(get_document_store)
):
    """Remove a cart entry."""
    await CartManager(store).remove(user.uid, cart_id)
    return {"success": True}
