"""Faucet token endpoints."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Security, status
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, Field

from auth import AuthUser, get_current_user
from chain import ChainError, tx_hash_hex
from chain.token import TokenClient
from ..dependencies import chain_http_error, get_token_client

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/token",
    tags=["Token"]
)

class TransferRequest(BaseModel):
    """Request model for sending tokens."""
    to: str
    amount: str

class ApproveRequest(BaseModel):
    """Request model for an allowance, in raw token units."""
    spender: str
    amount_raw: int = Field(..., alias='amountRaw', ge=0)

def _tx_result(token: TokenClient, receipt) -> dict:
    tx_hash = tx_hash_hex(receipt)
    return {
        "txHash": tx_hash,
        "explorerUrl": token.explorer_tx_url(tx_hash),
        "blockNumber": receipt.get('blockNumber')
    }

@router.get("")
async def get_token_overview(
    address: Optional[str] = Query(None),
    token: TokenClient = Depends(get_token_client)
):
    """Symbol, balance, claim state, drop amount and faucet supply."""
    try:
        overview = await run_in_threadpool(token.overview, address)
    except ChainError as e:
        raise chain_http_error(e)
    overview['explorerUrl'] = token.explorer_token_url(overview['holder'])
    return overview

@router.post("/claim")
async def claim_tokens(
    user: AuthUser = Security(get_current_user),
    token: TokenClient = Depends(get_token_client)
):
    """Claim the one-time faucet drop."""
    try:
        if await run_in_threadpool(token.has_claimed) is True:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Tokens have already been claimed"
            )
        receipt = await run_in_threadpool(token.claim)
    except ChainError as e:
        raise chain_http_error(e)

    logger.info(f"{user.uid} claimed faucet tokens")
    return _tx_result(token, receipt)

@router.post("/transfer")
async def transfer_tokens(
    request: TransferRequest,
    user: AuthUser = Security(get_current_user),
    token: TokenClient = Depends(get_token_client)
):
    """Send tokens to an address."""
    try:
        receipt = await run_in_threadpool(token.transfer, request.to, request.amount)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    except ChainError as e:
        raise chain_http_error(e)

    logger.info(f"{user.uid} sent {request.amount} tokens to {request.to}")
    return _tx_result(token, receipt)

@router.post("/approve")
async def approve_tokens(
    request: ApproveRequest,
    user: AuthUser = Security(get_current_user),
    token: TokenClient = Depends(get_token_client)
):
    """Allow a spender to move tokens."""
    try:
        receipt = await run_in_threadpool(token.approve, request.spender, request.amount_raw)
    except ChainError as e:
        raise chain_http_error(e)
    return _tx_result(token, receipt)

@router.get("/watch-asset")
async def get_watch_asset_params(token: TokenClient = Depends(get_token_client)):
    """Parameters for a wallet_watchAsset request."""
    try:
        return await run_in_threadpool(token.watch_asset_params)
    except ChainError as e:
        raise chain_http_error(e)
