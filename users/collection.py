"""Purchase history and owned NFTs of a user."""
import logging
from typing import Any, Dict, List

from database import get_store
from database.paths import nfts_collection, purchases_collection

logger = logging.getLogger(__name__)

def _as_int(value) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0

class CollectionManager:
    """Read side of the purchase and owned-NFT records."""

    def __init__(self, store=None):
        self.store = store

    async def ensure_store(self):
        if not self.store:
            self.store = await get_store()

    async def list_purchases(self, uid: str) -> List[Dict[str, Any]]:
        """Purchase records, newest first."""
        await self.ensure_store()
        docs = await self.store.list(purchases_collection(uid), order_by='purchasedAt', descending=True)
        return [
            {
                'id': doc.id,
                'listingId': doc.data.get('listingId') or '',
                'tokenId': _as_int(doc.data.get('tokenId')),
                'price': float(doc.data.get('price') or 0),
                'seller': doc.data.get('seller') or '',
                'txHash': doc.data.get('txHash') or '',
                'purchasedAt': doc.data.get('purchasedAt')
            }
            for doc in docs
        ]

    async def list_owned_records(self, uid: str) -> List[Dict[str, Any]]:
        """Locally recorded NFTs. The chain is authoritative, see owned_on_chain."""
        await self.ensure_store()
        docs = await self.store.list(nfts_collection(uid), order_by='purchasedAt', descending=True)
        return [
            {
                'id': doc.id,
                'tokenId': _as_int(doc.data.get('tokenId')),
                'tokenURI': doc.data.get('tokenURI') or '',
                'imageUrl': doc.data.get('imageUrl') or '',
                'purchasedAt': doc.data.get('purchasedAt')
            }
            for doc in docs
        ]

    def owned_on_chain(self, address: str, marketplace) -> List[Dict[str, Any]]:
        """NFTs the marketplace contract reports for an address."""
        tokens = marketplace.owned_tokens(address)
        logger.info(f"{address} owns {len(tokens)} marketplace tokens")
        return tokens
