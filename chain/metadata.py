"""Token metadata resolution.

Resolves a tokenURI to a displayable image URL. Metadata that is not JSON, or
that cannot be fetched, is treated as the image itself.
"""
import json
import logging
from typing import Any, Dict, Optional, Tuple

import requests

from ipfs import DEFAULT_GATEWAY, resolve_gateway_url

logger = logging.getLogger(__name__)

def resolve_token_image(
    metadata_uri: str,
    session: Optional[requests.Session] = None,
    gateway: str = DEFAULT_GATEWAY,
    timeout: int = 30,
    token_id: Optional[int] = None
) -> Tuple[str, Optional[Any]]:
    """Fetch token metadata and pick the image URL.

    Args:
        metadata_uri: tokenURI value (ipfs:// or http(s))
        session: Optional requests session
        gateway: IPFS gateway prefix
        timeout: Request timeout in seconds
        token_id: Token id, used for log messages

    Returns:
        Tuple of (image URL, parsed metadata or None)
    """
    meta_url = resolve_gateway_url(metadata_uri, gateway)
    http = session or requests

    try:
        response = http.get(meta_url, timeout=timeout)
    except requests.exceptions.RequestException as e:
        logger.warning(f"Failed to load metadata for token {token_id}: {e}")
        return meta_url, None

    if not response.ok:
        return meta_url, None

    body = response.text.strip()
    if not body.startswith(('{', '[')):
        return meta_url, None

    try:
        metadata = json.loads(body)
    except ValueError as e:
        logger.warning(f"Metadata for token {token_id} is not valid JSON, using tokenURI as image: {e}")
        return meta_url, None

    image = None
    if isinstance(metadata, dict):
        image = metadata.get('image') or metadata.get('image_url')
    if isinstance(image, str):
        return resolve_gateway_url(image, gateway), metadata
    return meta_url, metadata

def owned_token_entry(
    token_id: int,
    metadata_uri: str,
    session: Optional[requests.Session] = None,
    gateway: str = DEFAULT_GATEWAY,
    timeout: int = 30
) -> Dict[str, Any]:
    image_url, raw = resolve_token_image(metadata_uri, session, gateway, timeout, token_id)
    return {
        'tokenId': token_id,
        'metadataURI': metadata_uri,
        'imageUrl': image_url,
        'rawMetadata': raw
    }
