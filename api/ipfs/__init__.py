"""IPFS upload endpoint."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from fastapi.concurrency import run_in_threadpool

from ipfs import PinningClient, PinningError
from ..dependencies import get_pinning

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api",
    tags=["IPFS"]
)

@router.post("/ipfs")
async def upload_to_ipfs(
    image: Optional[UploadFile] = File(None),
    title: str = Form(''),
    description: str = Form(''),
    price: str = Form(''),
    pinning: PinningClient = Depends(get_pinning)
):
    """Pin an image and its NFT metadata.

    Returns the gateway URLs and CIDs of both uploads.
    """
    if not pinning.jwt:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="PINATA_JWT missing"
        )
    if image is None or not title:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="image and title are required"
        )

    try:
        content = await image.read()
        return await run_in_threadpool(
            pinning.pin_listing_assets,
            content,
            image.filename or 'image',
            image.content_type or 'application/octet-stream',
            title,
            description,
            price
        )
    except PinningError as e:
        logger.error(f"IPFS upload failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e)
        )
