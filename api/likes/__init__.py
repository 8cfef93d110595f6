"""Like endpoints."""

from fastapi import APIRouter, Depends, Security

from auth import AuthUser, get_current_user
from listings import ListingError, ListingManager
from users import LikeManager
from ..dependencies import get_document_store
from ..listings import listing_http_error

router = APIRouter(
    prefix="/likes",
    tags=["Likes"]
)

@router.get("")
async def get_liked_listings(
    user: AuthUser = Security(get_current_user),
    store=Depends(get_document_store)
):
    """Listings the user likes. Deleted listings are left out."""
    return await LikeManager(store).list_liked_listings(user.uid)

@router.get("/ids")
async def get_liked_ids(
    user: AuthUser = Security(get_current_user),
    store=Depends(get_document_store)
):
    """Ids of liked listings, for marking cards in the feed."""
    return sorted(await LikeManager(store).liked_ids(user.uid))

@router.post("/{listing_id}/toggle")
async def toggle_like(
    listing_id: str,
    user: AuthUser = Security(get_current_user),
    store=Depends(get_document_store)
):
    """Like or unlike a listing."""
    try:
        listing = await ListingManager(store).get_raw(listing_id)
    except ListingError as e:
        raise listing_http_error(e)

    liked = await LikeManager(store).toggle(user.uid, listing_id, listing.get('title') or '')
    return {"listingId": listing_id, "liked": liked}

@router.get("/{listing_id}")
async def get_like_state(
    listing_id: str,
    user: AuthUser = Security(get_current_user),
    store=Depends(get_document_store)
):
    """Whether the user likes a listing."""
    try:
        listing = await ListingManager(store).get_raw(listing_id)
    except ListingError as e:
        raise listing_http_error(e)

    liked = await LikeManager(store).is_liked(user.uid, listing_id, listing.get('title') or '')
    return {"listingId": listing_id, "liked": liked}
