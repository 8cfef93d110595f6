"""Liked listings stored under users/{uid}/likes.

A like exists exactly when its document exists. Like documents are keyed by a
sanitized form of the listing title, falling back to the listing id.
"""
import logging
import re
from typing import Any, Dict, List, Set

from database import get_store, now_iso
from database.paths import likes_collection, listing_path
from ipfs import resolve_gateway_url
from listings import parse_price

logger = logging.getLogger(__name__)

MAX_LIKE_ID_LENGTH = 40

_WHITESPACE_RUN = re.compile(r'\s+')
_UNSAFE_CHARS = re.compile(r'[^A-Za-z0-9가-힣_-]')

def like_doc_id(title: str, listing_id: str) -> str:
    """Document id of a like.

    Whitespace runs become "-", characters outside letters, digits, Hangul,
    "_" and "-" are dropped and the result is cut to 40 characters.
    """
    safe = _WHITESPACE_RUN.sub('-', (title or '').strip())
    safe = _UNSAFE_CHARS.sub('', safe)[:MAX_LIKE_ID_LENGTH]
    return safe or listing_id

class LikeManager:
    """Toggles likes and resolves them to listings."""

    def __init__(self, store=None):
        self.store = store

    async def ensure_store(self):
        if not self.store:
            self.store = await get_store()

    def _path(self, uid: str, listing_id: str, title: str) -> str:
        return f"{likes_collection(uid)}/{like_doc_id(title, listing_id)}"

    async def is_liked(self, uid: str, listing_id: str, title: str) -> bool:
        await self.ensure_store()
        return await self.store.get(self._path(uid, listing_id, title)) is not None

    async def toggle(self, uid: str, listing_id: str, title: str) -> bool:
        """Flip the like state.

        Returns:
            True if the listing is liked afterwards
        """
        await self.ensure_store()
        path = self._path(uid, listing_id, title)
        if await self.store.get(path) is not None:
            await self.store.delete(path)
            logger.info(f"{uid} unliked {listing_id}")
            return False

        await self.store.set(path, {
            'listingId': listing_id,
            'title': title,
            'createdAt': now_iso()
        })
        logger.info(f"{uid} liked {listing_id}")
        return True

    async def liked_ids(self, uid: str) -> Set[str]:
        """Ids of the listings a user likes."""
        await self.ensure_store()
        docs = await self.store.list(likes_collection(uid))
        return {doc.data.get('listingId') or doc.id for doc in docs}

    async def list_liked_listings(self, uid: str) -> List[Dict[str, Any]]:
        """Liked listings that still exist."""
        await self.ensure_store()
        results = []
        for doc in await self.store.list(likes_collection(uid)):
            listing_id = doc.data.get('listingId') or doc.id
            listing = await self.store.get(listing_path(listing_id))
            if listing is None:
                continue
            results.append({
                'id': listing_id,
                'title': listing.get('title') or '',
                'price': parse_price(listing.get('price')),
                'imageUrl': resolve_gateway_url(listing.get('imageURI'))
            })
        return results
