"""My page endpoint: everything about the signed-in user on one page."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Security
from fastapi.concurrency import run_in_threadpool

from auth import AuthUser, get_current_user
from chain import ChainError
from listings import ListingManager
from users import CollectionManager, LikeManager, ProfileManager
from ..dependencies import (
    get_document_store, get_optional_marketplace, get_optional_token, get_wallet
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/mypage",
    tags=["My Page"]
)

@router.get("")
async def get_my_page(
    address: Optional[str] = Query(None),
    user: AuthUser = Security(get_current_user),
    store=Depends(get_document_store),
    wallet=Depends(get_wallet),
    marketplace=Depends(get_optional_marketplace),
    token=Depends(get_optional_token)
):
    """Profile, purchases, owned NFTs, likes, own listings and token state.

    The chain sections stay empty when the wallet, the RPC endpoint or a
    contract is unavailable; the database sections are still returned.
    """
    collection = CollectionManager(store)
    result = {
        'profile': await ProfileManager(store).get_profile(user),
        'purchases': await collection.list_purchases(user.uid),
        'ownedRecords': await collection.list_owned_records(user.uid),
        'likes': await LikeManager(store).list_liked_listings(user.uid),
        'myListings': await ListingManager(store).list_by_owner(user.uid),
        'walletAddress': None,
        'ownedNfts': [],
        'token': None
    }

    try:
        wallet_address = address or await run_in_threadpool(lambda: wallet.address)
        result['walletAddress'] = wallet_address
        if marketplace is not None:
            result['ownedNfts'] = await run_in_threadpool(
                collection.owned_on_chain, wallet_address, marketplace
            )
        if token is not None:
            result['token'] = await run_in_threadpool(token.overview, wallet_address)
    except ChainError as e:
        logger.error(f"Wallet/on-chain lookup failed for {user.uid}: {e}")

    return result
