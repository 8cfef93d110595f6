"""Listings module for managing marketplace listings.

This module provides functionality for:
- Creating listings from an uploaded image (pinned to IPFS with its NFT metadata)
- Reading the public feed and listing details
- Owner-only editing and deletion
"""

import logging
import math
import re
from typing import Any, Dict, List, Optional, Union

from fastapi.concurrency import run_in_threadpool

from database import DocumentNotFoundError, get_store, now_iso
from database.paths import LISTINGS, listing_path, profile_path
from ipfs import PinningError, resolve_gateway_url

logger = logging.getLogger(__name__)

# Leading decimal number, the part of "0.1 ETH" that counts as the price
_LEADING_NUMBER = re.compile(r'[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?')

UNKNOWN_OWNER = 'Unknown'
DEFAULT_OWNER_NAME = 'User'

class ListingError(Exception):
    """Base exception for listing operations."""
    pass

class ListingNotFoundError(ListingError):
    """Raised when a listing is not found."""
    pass

class ListingValidationError(ListingError):
    """Raised when a listing is missing required input."""
    pass

class ListingPermissionError(ListingError):
    """Raised when someone other than the owner modifies a listing."""
    pass

class ListingSoldError(ListingError):
    """Raised when modifying a listing that has been sold."""
    pass

def parse_price(value: Union[str, int, float, None]) -> float:
    """Parse a price the way it is entered: the leading number counts.

    "0.1 ETH" -> 0.1, "abc" -> 0. Invalid, infinite and negative values are 0.
    """
    if isinstance(value, bool) or value is None:
        return 0.0
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        match = _LEADING_NUMBER.match(str(value).lstrip())
        if not match:
            return 0.0
        try:
            number = float(match.group())
        except (ValueError, OverflowError):
            return 0.0
    if not math.isfinite(number) or number < 0:
        return 0.0
    return number

def price_text(value: Union[str, int, float, None]) -> str:
    """Decimal text of a price, "0" where parse_price would give 0.

    "0.123456789012345678 ETH" -> "0.123456789012345678", digits unchanged.
    """
    if parse_price(value) == 0:
        return '0'
    if isinstance(value, (int, float)):
        return str(value)
    return _LEADING_NUMBER.match(str(value).lstrip()).group().lstrip('+')

def to_listing_view(listing_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
    """Feed representation of a listing document."""
    return {
        'id': listing_id,
        'name': data.get('title') or '',
        'price': parse_price(data.get('price')),
        'imageUrl': resolve_gateway_url(data.get('imageURI')),
        'description': data.get('description') or ''
    }

class ListingManager:
    """Manager class for handling listing operations."""

    def __init__(self, store=None):
        """Initialize the listing manager.

        Args:
            store: Optional document store. If not provided, will get from database module.
        """
        self.store = store

    async def ensure_store(self):
        """Ensure we have a document store."""
        if not self.store:
            self.store = await get_store()

    async def _load(self, listing_id: str) -> Dict[str, Any]:
        data = await self.store.get(listing_path(listing_id))
        if data is None:
            raise ListingNotFoundError(f"Listing {listing_id} not found")
        return data

    async def list_visible(self) -> List[Dict[str, Any]]:
        """Feed of unsold listings, newest first."""
        await self.ensure_store()
        docs = await self.store.list(LISTINGS, order_by='createdAt', descending=True)
        return [
            to_listing_view(doc.id, doc.data)
            for doc in docs
            if doc.data.get('sold') is not True
        ]

    async def list_by_owner(self, uid: str) -> List[Dict[str, Any]]:
        """Listings created by a user, sold ones included."""
        await self.ensure_store()
        docs = await self.store.list(
            LISTINGS,
            where={'ownerUid': uid},
            order_by='createdAt',
            descending=True
        )
        return [
            {**to_listing_view(doc.id, doc.data), 'sold': doc.data.get('sold', False)}
            for doc in docs
        ]

    async def get_raw(self, listing_id: str) -> Dict[str, Any]:
        """Stored listing fields.

        Raises:
            ListingNotFoundError: If listing doesn't exist
        """
        await self.ensure_store()
        return await self._load(listing_id)

    async def get_owner_name(self, owner_uid: Optional[str]) -> str:
        """Nickname of a listing owner for display."""
        if not owner_uid:
            return UNKNOWN_OWNER
        await self.ensure_store()
        profile = await self.store.get(profile_path(owner_uid))
        if profile and profile.get('nickname'):
            return profile['nickname']
        return DEFAULT_OWNER_NAME

    async def get_listing(self, listing_id: str) -> Dict[str, Any]:
        """Get listing details with the owner's display name.

        Args:
            listing_id: Listing id

        Returns:
            Dict with id, name, description, price, imageUrl, tokenURI,
            ownerUid, ownerAddress, sold and ownerName

        Raises:
            ListingNotFoundError: If listing doesn't exist
        """
        data = await self.get_raw(listing_id)
        owner_uid = data.get('ownerUid')
        return {
            **to_listing_view(listing_id, data),
            'tokenURI': data.get('tokenURI') or '',
            'ownerUid': owner_uid,
            'ownerAddress': data.get('ownerAddress'),
            'sold': data.get('sold', False),
            'ownerName': await self.get_owner_name(owner_uid)
        }

    async def create_listing(
        self,
        user,
        owner_address: Optional[str],
        title: str,
        description: Optional[str],
        price: Optional[str],
        image: Optional[bytes],
        filename: str,
        content_type: str,
        pinning
    ) -> Dict[str, Any]:
        """Create a new listing.

        The image and its NFT metadata are pinned first; nothing is written to
        the database unless both uploads succeed.

        Args:
            user: Authenticated user
            owner_address: Seller's wallet address that receives the payment
            title: Listing title
            description: Optional description
            price: Price in ETH as entered
            image: Image bytes
            filename: Image file name
            content_type: Image MIME type
            pinning: Pinning client

        Returns:
            Dict containing the created listing id and stored fields

        Raises:
            ListingValidationError: If a precondition is not met
            PinningError: If an upload fails
            ListingError: If saving fails
        """
        if user is None:
            raise ListingValidationError("Login required")
        if not owner_address:
            raise ListingValidationError("Wallet address required")
        if not image:
            raise ListingValidationError("Image required")
        title = (title or '').strip()
        if not title:
            raise ListingValidationError("Title required")

        await self.ensure_store()
        description = (description or '').strip()
        price = (price or '').strip()

        logger.info(f"Listing state uploading: {title!r} for {user.uid}")
        try:
            assets = await run_in_threadpool(
                pinning.pin_listing_assets,
                image, filename, content_type, title, description, price
            )
        except PinningError as e:
            logger.error(f"Listing state error: upload failed: {e}")
            raise

        logger.info(f"Listing state saving: {title!r}")
        data = {
            'title': title,
            'description': description,
            'price': price,
            'imageURI': assets['imageURI'],
            'tokenURI': assets['tokenURI'],
            'ownerUid': user.uid,
            'ownerName': user.display_name,
            'ownerAddress': owner_address,
            'sold': False,
            'createdAt': now_iso()
        }
        try:
            listing_id = await self.store.add(LISTINGS, data)
        except Exception as e:
            # Uploads are already pinned at this point
            logger.error(f"Listing state error: save failed after upload of {assets['tokenURI']}: {e}")
            raise ListingError(f"Failed to save listing: {str(e)}") from e

        logger.info(f"Listing state done: {listing_id}")
        return {'id': listing_id, **data}

    async def _load_owned(self, user, listing_id: str) -> Dict[str, Any]:
        if user is None:
            raise ListingPermissionError("Login required")
        data = await self.get_raw(listing_id)
        if data.get('ownerUid') != user.uid:
            raise ListingPermissionError("Only the owner can modify this listing")
        return data

    async def update_listing(
        self,
        user,
        listing_id: str,
        title: Optional[str] = None,
        description: Optional[str] = None,
        price: Optional[Union[str, float]] = None
    ) -> Dict[str, Any]:
        """Update listing fields.

        Args:
            user: Authenticated user, must own the listing
            listing_id: Listing id
            title: New title
            description: New description
            price: New price as entered, re-parsed with invalid input as 0

        Returns:
            Updated listing details

        Raises:
            ListingNotFoundError: If listing doesn't exist
            ListingPermissionError: If the user does not own the listing
            ListingSoldError: If the listing has been sold
        """
        data = await self._load_owned(user, listing_id)
        if data.get('sold') is True:
            raise ListingSoldError("Sold listings cannot be edited")

        updates = {
            'title': (title if title is not None else data.get('title') or '').strip(),
            'description': (description if description is not None else data.get('description') or '').strip(),
            'price': parse_price(price if price is not None else data.get('price')),
            'updatedAt': now_iso()
        }
        try:
            await self.store.update(listing_path(listing_id), updates)
        except DocumentNotFoundError:
            raise ListingNotFoundError(f"Listing {listing_id} not found")

        logger.info(f"Updated listing {listing_id}")
        return await self.get_listing(listing_id)

    async def delete_listing(self, user, listing_id: str) -> None:
        """Delete a listing. Sold listings can be deleted too.

        Raises:
            ListingNotFoundError: If listing doesn't exist
            ListingPermissionError: If the user does not own the listing
        """
        await self._load_owned(user, listing_id)
        await self.store.delete(listing_path(listing_id))
        logger.info(f"Deleted listing {listing_id}")

__all__ = [
    'ListingManager', 'parse_price', 'to_listing_view',
    'ListingError', 'ListingNotFoundError', 'ListingValidationError',
    'ListingPermissionError', 'ListingSoldError'
]
