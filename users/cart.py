"""Shopping cart stored under users/{uid}/cart, one entry per listing."""
import logging
from typing import Any, Dict

from database import get_store, now_iso
from database.paths import cart_collection
from listings import parse_price

logger = logging.getLogger(__name__)

class CartManager:
    """Manages cart entries keyed by listing id."""

    def __init__(self, store=None):
        self.store = store

    async def ensure_store(self):
        if not self.store:
            self.store = await get_store()

    async def add(self, uid: str, listing: Dict[str, Any]) -> Dict[str, Any]:
        """Add a listing to the cart. Adding it again refreshes the entry.

        Args:
            uid: Cart owner
            listing: Listing details with id, name, price, imageUrl, ownerUid, ownerAddress
        """
        await self.ensure_store()
        entry = {
            'listingId': listing['id'],
            'title': listing.get('name') or '',
            'price': listing.get('price') or 0,
            'imageUrl': listing.get('imageUrl') or '',
            'ownerUid': listing.get('ownerUid'),
            'ownerAddress': listing.get('ownerAddress'),
            'addedAt': now_iso()
        }
        await self.store.set(f"{cart_collection(uid)}/{listing['id']}", entry, merge=True)
        logger.info(f"Added {listing['id']} to cart of {uid}")
        return {'id': listing['id'], **entry}

    async def remove(self, uid: str, cart_id: str) -> None:
        """Remove an entry. Removing an absent entry does nothing."""
        await self.ensure_store()
        await self.store.delete(f"{cart_collection(uid)}/{cart_id}")

    async def list(self, uid: str) -> Dict[str, Any]:
        """Cart entries, newest first, with their total price."""
        await self.ensure_store()
        docs = await self.store.list(cart_collection(uid), order_by='addedAt', descending=True)
        items = []
        for doc in docs:
            data = doc.data
            items.append({
                'id': doc.id,
                'listingId': data.get('listingId') or doc.id,
                'title': data.get('title') or '',
                'price': parse_price(data.get('price')),
                'imageUrl': data.get('imageUrl') or '',
                'ownerUid': data.get('ownerUid'),
                'ownerAddress': data.get('ownerAddress'),
                'addedAt': data.get('addedAt')
            })
        return {
            'items': items,
            'total': sum(item['price'] for item in items)
        }
