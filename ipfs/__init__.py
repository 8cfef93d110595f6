"""IPFS module: gateway URL resolution and the pinning service client.

Listing images and NFT metadata are pinned through the Pinata HTTP API. The
marketplace stores gateway URLs, so every reference is displayable without an
IPFS-aware client.
"""
import json
import logging
from typing import Any, Dict, Optional

import requests

logger = logging.getLogger(__name__)

IPFS_SCHEME = 'ipfs://'
DEFAULT_GATEWAY = 'https://gateway.pinata.cloud/ipfs/'
DEFAULT_API_URL = 'https://api.pinata.cloud'

def resolve_gateway_url(uri: Optional[str], gateway: str = DEFAULT_GATEWAY) -> str:
    """Convert an ipfs://CID reference into an HTTPS gateway URL.

    Empty input gives "", and anything that is not an ipfs:// reference is
    returned unchanged.
    """
    if not uri:
        return ''
    if uri.startswith(IPFS_SCHEME):
        return f"{gateway}{uri[len(IPFS_SCHEME):]}"
    return uri

class PinningError(Exception):
    """Raised when an upload to the pinning service fails."""
    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)

class PinningCredentialsError(PinningError):
    """Raised when the pinning service credential is not configured."""
    pass

class PinningClient:
    """Pinata pinning client"""

    def __init__(
        self,
        jwt: Optional[str],
        api_url: str = DEFAULT_API_URL,
        gateway: str = DEFAULT_GATEWAY,
        timeout: int = 30,
        session: Optional[requests.Session] = None
    ):
        self.jwt = jwt
        self.api_url = api_url.rstrip('/')
        self.gateway = gateway
        self.timeout = timeout
        self.session = session or requests.Session()

    def gateway_url(self, cid: str) -> str:
        return f"{self.gateway}{cid}"

    def _post(self, endpoint: str, what: str, **kwargs) -> str:
        """POST to the pinning API and return the pinned CID.

        Raises:
            PinningCredentialsError: No JWT configured
            PinningError: Transport failure, non-2xx status or malformed response
        """
        if not self.jwt:
            raise PinningCredentialsError('PINATA_JWT missing')

        url = f"{self.api_url}{endpoint}"
        headers = {'Authorization': f'Bearer {self.jwt}'}
        headers.update(kwargs.pop('headers', {}))

        try:
            response = self.session.post(url, headers=headers, timeout=self.timeout, **kwargs)
        except requests.exceptions.Timeout as e:
            raise PinningError(f"{what} upload timed out after {self.timeout} seconds") from e
        except requests.exceptions.RequestException as e:
            raise PinningError(f"{what} upload failed: {str(e)}") from e

        if not response.ok:
            logger.error(f"{what} upload failed with HTTP {response.status_code}: {response.text[:200]}")
            raise PinningError(f"{what} upload failed", response.status_code)

        try:
            cid = response.json()['IpfsHash']
        except (KeyError, TypeError, ValueError) as e:
            raise PinningError(f"{what} upload returned an invalid response") from e

        logger.info(f"Pinned {what.lower()} as {cid}")
        return cid

    def pin_file(self, content: bytes, filename: str, content_type: str = 'application/octet-stream') -> str:
        """Pin raw file bytes and return the CID."""
        return self._post(
            '/pinning/pinFileToIPFS',
            'Image',
            files={'file': (filename, content, content_type)}
        )

    def pin_json(self, document: Dict[str, Any]) -> str:
        """Pin a JSON document and return the CID."""
        return self._post(
            '/pinning/pinJSONToIPFS',
            'Metadata',
            data=json.dumps(document),
            headers={'Content-Type': 'application/json'}
        )

    def pin_listing_assets(
        self,
        image: bytes,
        filename: str,
        content_type: str,
        title: str,
        description: str = '',
        price: str = ''
    ) -> Dict[str, Any]:
        """Pin a listing image and its NFT metadata.

        The metadata points at the image's gateway URL rather than an ipfs://
        reference so wallets can render it directly.

        Returns:
            Dict with title, description, price, imageURI, tokenURI, imageCID, tokenCID
        """
        image_cid = self.pin_file(image, filename, content_type)
        image_url = self.gateway_url(image_cid)

        metadata = {
            'name': title,
            'description': description,
            'image': image_url,
            'properties': {'price': price}
        }
        token_cid = self.pin_json(metadata)

        return {
            'title': title,
            'description': description,
            'price': price,
            'imageURI': image_url,
            'tokenURI': self.gateway_url(token_cid),
            'imageCID': image_cid,
            'tokenCID': token_cid
        }

_client: Optional[PinningClient] = None

def get_pinning_client() -> PinningClient:
    """Get the shared pinning client configured from settings."""
    global _client
    if _client is None:
        from config import settings_conf
        _client = PinningClient(
            jwt=settings_conf['pinata_jwt'],
            api_url=settings_conf['pinata_api_url'],
            gateway=settings_conf['gateway_url'],
            timeout=settings_conf['http_timeout']
        )
    return _client

__all__ = [
    'resolve_gateway_url', 'PinningClient', 'PinningError', 'PinningCredentialsError',
    'get_pinning_client', 'DEFAULT_GATEWAY', 'IPFS_SCHEME'
]
