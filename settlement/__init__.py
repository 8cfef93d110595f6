"""Settlement module for purchasing listings.

A purchase pays the seller and mints the listing's NFT in one contract call,
then records the result in the document store:

1. purchase record   users/{uid}/purchases/{listingId}
2. owned NFT record  users/{uid}/nfts/{tokenId}
3. listing           sold: true

The database writes cannot be made atomic with the on-chain transaction. Once
the transaction is mined a journal entry at users/{uid}/settlements/{listingId}
tracks progress through the stages below. Every bookkeeping write is a merge
keyed by a stable id, so `resume` can re-run whatever is left after a failure
without duplicating records. Nothing is rolled back.
"""

import logging
import uuid
from enum import Enum
from typing import Any, Dict, Optional

from fastapi.concurrency import run_in_threadpool

from database import get_store, now_iso
from database.paths import listing_path, nfts_collection, purchases_collection, settlements_collection
from ipfs import resolve_gateway_url
from listings import ListingManager, parse_price, price_text
from chain import tx_hash_hex

logger = logging.getLogger(__name__)

class SettlementStage(str, Enum):
    """Progress of a purchase."""
    PENDING = 'pending'
    ONCHAIN_CONFIRMED = 'onchain_confirmed'
    RECORDS_WRITTEN = 'records_written'
    FINALIZED = 'finalized'

class SettlementError(Exception):
    """Base exception for settlement errors."""
    pass

class SettlementPreconditionError(SettlementError):
    """Raised when a listing cannot be purchased."""
    pass

class SettlementPendingError(SettlementPreconditionError):
    """Raised when buying a listing whose earlier purchase still awaits resume."""
    pass

class SettlementNotFoundError(SettlementError):
    """Raised when resuming a settlement that was never confirmed on-chain."""
    pass

class SettlementIncompleteError(SettlementError):
    """Raised when bookkeeping fails after the purchase was mined.

    The journal keeps the reached stage; call resume to finish.
    """
    def __init__(self, message: str, stage: SettlementStage, listing_id: str, tx_hash: Optional[str] = None):
        self.stage = stage
        self.listing_id = listing_id
        self.tx_hash = tx_hash
        super().__init__(f"{message} (stage: {stage.value})")

class SettlementManager:
    """Runs purchases against the marketplace contract and records them."""

    def __init__(self, store=None, marketplace=None):
        """Initialize the settlement manager.

        Args:
            store: Optional document store. If not provided, will get from database module.
            marketplace: Marketplace contract client
        """
        self.store = store
        self.marketplace = marketplace

    async def ensure_store(self):
        if not self.store:
            self.store = await get_store()

    def _journal_path(self, uid: str, listing_id: str) -> str:
        return f"{settlements_collection(uid)}/{listing_id}"

    async def get_settlement(self, uid: str, listing_id: str) -> Optional[Dict[str, Any]]:
        await self.ensure_store()
        return await self.store.get(self._journal_path(uid, listing_id))

    async def purchase(self, user, listing_id: str) -> Dict[str, Any]:
        """Buy a listing.

        Args:
            user: Authenticated buyer
            listing_id: Listing to buy

        Returns:
            The finalized settlement journal entry

        Raises:
            SettlementPreconditionError: Not signed in, listing sold, or seller address/tokenURI missing
            SettlementPendingError: An earlier purchase of this listing awaits resume
            ListingNotFoundError: Listing doesn't exist
            ChainError: The purchase transaction failed; nothing was written
            SettlementIncompleteError: The purchase was mined but bookkeeping failed
        """
        if user is None:
            raise SettlementPreconditionError("Login required")

        await self.ensure_store()
        listing = await ListingManager(self.store).get_raw(listing_id)

        if listing.get('sold') is True:
            raise SettlementPreconditionError("Listing has already been sold")
        seller = listing.get('ownerAddress')
        if not seller:
            raise SettlementPreconditionError("Listing has no seller wallet address")
        token_uri = listing.get('tokenURI')
        if not token_uri:
            raise SettlementPreconditionError("Listing has no tokenURI")

        # A mined purchase whose bookkeeping is unfinished must not be paid again
        existing = await self.get_settlement(user.uid, listing_id)
        if existing is not None and existing.get('stage') != SettlementStage.FINALIZED.value:
            raise SettlementPendingError(
                f"Purchase of {listing_id} is already mined (tx {existing.get('txHash')}); "
                f"resume it with POST /api/listings/{listing_id}/purchase/resume"
            )

        price = parse_price(listing.get('price'))
        operation_id = uuid.uuid4().hex
        logger.info(f"Settlement {operation_id} {SettlementStage.PENDING.value}: {user.uid} buying {listing_id}")

        # A failure here leaves no trace in the database
        receipt = await run_in_threadpool(
            self.marketplace.purchase, seller, token_uri, price_text(listing.get('price'))
        )

        tx_hash = tx_hash_hex(receipt)
        journal = {
            'operationId': operation_id,
            'listingId': listing_id,
            'stage': SettlementStage.ONCHAIN_CONFIRMED.value,
            'txHash': tx_hash,
            'tokenId': await run_in_threadpool(self.marketplace.extract_token_id, receipt),
            'price': price,
            'seller': seller,
            'tokenURI': token_uri,
            'imageUrl': resolve_gateway_url(listing.get('imageURI')),
            'confirmedAt': now_iso()
        }
        logger.info(f"Settlement {operation_id} {journal['stage']}: tx {tx_hash}, token {journal['tokenId']}")

        try:
            await self.store.set(self._journal_path(user.uid, listing_id), journal)
        except Exception as e:
            logger.error(f"Settlement {operation_id} journal write failed after tx {tx_hash}: {e}")
            raise SettlementIncompleteError(
                f"Purchase mined but not recorded: {str(e)}",
                SettlementStage.ONCHAIN_CONFIRMED,
                listing_id,
                tx_hash
            ) from e

        return await self._complete(user.uid, journal)

    async def resume(self, user, listing_id: str) -> Dict[str, Any]:
        """Finish the bookkeeping of a purchase that was mined earlier.

        Raises:
            SettlementNotFoundError: No confirmed purchase of this listing by the user
            SettlementIncompleteError: A step failed again
        """
        if user is None:
            raise SettlementPreconditionError("Login required")

        journal = await self.get_settlement(user.uid, listing_id)
        if journal is None:
            raise SettlementNotFoundError(f"No settlement for listing {listing_id}")
        if journal.get('stage') == SettlementStage.FINALIZED.value:
            return journal

        logger.info(f"Resuming settlement {journal.get('operationId')} at stage {journal.get('stage')}")
        return await self._complete(user.uid, journal)

    async def _advance(self, uid: str, journal: Dict[str, Any], stage: SettlementStage) -> None:
        journal['stage'] = stage.value
        await self.store.update(
            self._journal_path(uid, journal['listingId']),
            {'stage': stage.value, f"{stage.value}At": now_iso()}
        )
        logger.info(f"Settlement {journal.get('operationId')} {stage.value}")

    async def _complete(self, uid: str, journal: Dict[str, Any]) -> Dict[str, Any]:
        listing_id = journal['listingId']
        stage = SettlementStage(journal['stage'])
        token_id = journal['tokenId']
        purchased_at = journal['confirmedAt']

        try:
            if stage == SettlementStage.ONCHAIN_CONFIRMED:
                await self.store.set(
                    f"{purchases_collection(uid)}/{listing_id}",
                    {
                        'listingId': listing_id,
                        'tokenId': token_id,
                        'price': journal['price'],
                        'seller': journal['seller'],
                        'txHash': journal['txHash'],
                        'purchasedAt': purchased_at
                    },
                    merge=True
                )
                await self.store.set(
                    f"{nfts_collection(uid)}/{token_id}",
                    {
                        'tokenId': token_id,
                        'tokenURI': journal['tokenURI'],
                        'imageUrl': journal['imageUrl'],
                        'purchasedAt': purchased_at
                    },
                    merge=True
                )
                await self._advance(uid, journal, SettlementStage.RECORDS_WRITTEN)
                stage = SettlementStage.RECORDS_WRITTEN

            if stage == SettlementStage.RECORDS_WRITTEN:
                await self.store.update(
                    listing_path(listing_id),
                    {'sold': True, 'soldAt': now_iso()}
                )
                await self._advance(uid, journal, SettlementStage.FINALIZED)

        except Exception as e:
            logger.error(f"Settlement of {listing_id} stopped at {stage.value}: {e}")
            raise SettlementIncompleteError(
                f"Bookkeeping failed: {str(e)}", stage, listing_id, journal.get('txHash')
            ) from e

        return journal

__all__ = [
    'SettlementManager', 'SettlementStage', 'SettlementError', 'SettlementPreconditionError',
    'SettlementNotFoundError', 'SettlementIncompleteError'
]
