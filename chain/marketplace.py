"""Marketplace NFT contract client."""
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Union

import requests
from web3 import Web3
from web3.logs import DISCARD

from ipfs import DEFAULT_GATEWAY

from . import ChainError, WalletBridge
from .abi import MARKETPLACE_ABI
from .metadata import owned_token_entry

logger = logging.getLogger(__name__)

ZERO_ADDRESS = '0x' + '00' * 20
TRANSFER_TOPIC_COUNT = 4

def _topic_to_int(topic) -> int:
    if isinstance(topic, (bytes, bytearray)):
        return int.from_bytes(topic, 'big')
    return int(str(topic), 16)

def token_id_from_topics(receipt: Dict[str, Any]) -> Optional[int]:
    """Read the token id from the first log carrying four topics.

    Matches any ERC-721 style Transfer(from, to, tokenId) log without checking
    the event signature or the emitting contract.
    """
    for log in receipt.get('logs') or []:
        topics = log.get('topics') or []
        if len(topics) == TRANSFER_TOPIC_COUNT:
            try:
                return _topic_to_int(topics[3])
            except (TypeError, ValueError):
                continue
    return None

class MarketplaceClient:
    """Client for the marketplace NFT contract"""

    def __init__(
        self,
        bridge: WalletBridge,
        address: str,
        abi: Optional[List[Dict[str, Any]]] = None,
        gateway: str = DEFAULT_GATEWAY,
        http_timeout: int = 30,
        contract=None
    ):
        self.bridge = bridge
        self.address = address
        self.gateway = gateway
        self.http_timeout = http_timeout
        self.contract = contract if contract is not None else bridge.contract(address, abi or MARKETPLACE_ABI)
        self.session = requests.Session()

    def purchase(self, seller: str, metadata_uri: str, price_eth: Union[str, float]) -> Dict[str, Any]:
        """Buy a listing: pay price_eth to the seller and mint metadata_uri to the buyer.

        Returns:
            The mined transaction receipt

        Raises:
            ChainError: Invalid price or seller address
            TransactionFailedError: Transaction rejected or reverted
        """
        try:
            price = Decimal(str(price_eth))
        except InvalidOperation:
            raise ChainError(f"Invalid price: {price_eth!r}", 'purchase')
        if not price.is_finite() or price < 0:
            raise ChainError(f"Invalid price: {price_eth!r}", 'purchase')

        value = Web3.to_wei(price, 'ether')
        logger.info(f"Purchasing {metadata_uri} from {seller} for {price} ETH")
        return self.bridge.send(
            self.contract.functions.purchase(self.bridge.to_checksum(seller), metadata_uri),
            value=value
        )

    def mint(self, to: str, metadata_uri: str) -> Dict[str, Any]:
        return self.bridge.send(
            self.contract.functions.mint(self.bridge.to_checksum(to), metadata_uri)
        )

    def transfer_nft(self, to: str, token_id: int) -> Dict[str, Any]:
        return self.bridge.send(
            self.contract.functions.transferNFT(self.bridge.to_checksum(to), int(token_id))
        )

    def update_token_uri(self, token_id: int, metadata_uri: str) -> Dict[str, Any]:
        return self.bridge.send(
            self.contract.functions.updateTokenURI(int(token_id), metadata_uri)
        )

    def tokens_of_owner(self, owner: str) -> List[int]:
        ids = self.bridge.call(self.contract.functions.tokensOfOwner(self.bridge.to_checksum(owner)))
        return [int(token_id) for token_id in ids]

    def token_uri(self, token_id: int) -> str:
        return self.bridge.call(self.contract.functions.tokenURI(int(token_id)))

    def decode_minted_token_ids(self, receipt: Dict[str, Any]) -> List[int]:
        """Token ids from Transfer events this contract emitted in the receipt.

        Mints (transfers from the zero address) come first.
        """
        try:
            events = self.contract.events.Transfer().process_receipt(receipt, errors=DISCARD)
        except Exception as e:
            logger.warning(f"Failed to decode Transfer events: {e}")
            return []

        minted, other = [], []
        for event in events:
            args = event['args']
            target = minted if str(args.get('from', '')).lower() == ZERO_ADDRESS else other
            target.append(int(args['tokenId']))
        return minted + other

    def extract_token_id(self, receipt: Dict[str, Any]) -> int:
        """Best-effort token id of a purchase receipt, 0 when none is found."""
        decoded = self.decode_minted_token_ids(receipt)
        if decoded:
            return decoded[0]

        token_id = token_id_from_topics(receipt)
        if token_id is None:
            logger.warning("No Transfer log in receipt, recording token id 0")
            return 0
        return token_id

    def owned_tokens(self, owner: str) -> List[Dict[str, Any]]:
        """NFTs held by owner with their resolved images.

        Tokens whose tokenURI cannot be read are skipped.
        """
        results = []
        for token_id in self.tokens_of_owner(owner):
            try:
                metadata_uri = self.token_uri(token_id)
            except ChainError as e:
                logger.error(f"tokenURI({token_id}) failed: {e}")
                continue

            results.append(owned_token_entry(
                token_id,
                metadata_uri,
                session=self.session,
                gateway=self.gateway,
                timeout=self.http_timeout
            ))
        return results
