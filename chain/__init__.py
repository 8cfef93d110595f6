"""Chain module for interacting with the marketplace and faucet token contracts.

The wallet bridge holds the signing account (a configured private key, or the
provider's first unlocked account) and turns contract calls into mined
receipts. Contract clients in chain.marketplace and chain.token build on it.
"""
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional, Union

import requests
from web3 import Web3
from web3.exceptions import ContractLogicError, TimeExhausted, Web3Exception

logger = logging.getLogger(__name__)

class ChainError(Exception):
    """Base exception for chain errors"""
    def __init__(self, message: str, method: Optional[str] = None):
        self.method = method
        super().__init__(f"Chain error in {method}: {message}" if method else message)

class ChainConnectionError(ChainError):
    """Raised when the RPC endpoint cannot be reached"""
    pass

class WalletUnavailableError(ChainError):
    """Raised when there is no account to sign with"""
    pass

class TransactionFailedError(ChainError):
    """Raised when a transaction is rejected, reverted or never mined"""
    def __init__(self, message: str, method: Optional[str] = None, tx_hash: Optional[str] = None):
        self.tx_hash = tx_hash
        super().__init__(message, method)

class CapabilityUnsupportedError(ChainError):
    """Raised when a write method is absent from the contract ABI"""
    pass

class Unsupported:
    """Result of a read whose method the contract ABI does not declare."""
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return 'UNSUPPORTED'

UNSUPPORTED = Unsupported()

def format_units(raw: int, decimals: int) -> str:
    """Format a raw integer amount as a decimal string.

    Keeps at least one fraction digit: (1500000000000000000, 18) -> "1.5",
    (10**18, 18) -> "1.0".
    """
    text = format(Decimal(int(raw)).scaleb(-int(decimals)), 'f')
    whole, _, fraction = text.partition('.')
    return f"{whole}.{fraction.rstrip('0') or '0'}"

def parse_units(amount: Union[str, int, float, Decimal], decimals: int) -> int:
    """Parse a human amount into raw units ("1.5", 18 -> 1500000000000000000).

    Raises:
        ValueError: If the amount is not a number or has more fraction digits than decimals
    """
    try:
        value = Decimal(str(amount).strip())
    except InvalidOperation:
        raise ValueError(f"Invalid amount: {amount!r}")
    if not value.is_finite():
        raise ValueError(f"Invalid amount: {amount!r}")

    scaled = value.scaleb(int(decimals))
    if scaled != scaled.to_integral_value():
        raise ValueError(f"Amount {amount} has more than {decimals} decimal places")
    return int(scaled)

def tx_hash_hex(receipt: Dict[str, Any]) -> str:
    tx_hash = receipt.get('transactionHash', '')
    if isinstance(tx_hash, (bytes, bytearray)):
        tx_hash = tx_hash.hex()
    tx_hash = str(tx_hash)
    if tx_hash and not tx_hash.startswith('0x'):
        tx_hash = f"0x{tx_hash}"
    return tx_hash

class WalletBridge:
    """Signing bridge between the service and the chain"""

    def __init__(
        self,
        rpc_url: str,
        private_key: Optional[str] = None,
        tx_timeout: int = 120,
        web3: Optional[Web3] = None
    ):
        self.rpc_url = rpc_url
        self.tx_timeout = tx_timeout
        self.w3 = web3 or Web3(Web3.HTTPProvider(rpc_url, request_kwargs={'timeout': 30}))
        self._account = self.w3.eth.account.from_key(private_key) if private_key else None

    @property
    def address(self) -> str:
        """Address of the signing account.

        Raises:
            WalletUnavailableError: No key configured and the provider exposes no account
        """
        if self._account is not None:
            return self._account.address
        try:
            accounts = self.w3.eth.accounts
        except requests.exceptions.RequestException as e:
            raise ChainConnectionError(f"Failed to reach {self.rpc_url}", 'eth_accounts') from e
        if not accounts:
            raise WalletUnavailableError("No wallet account available", 'eth_accounts')
        return accounts[0]

    def is_connected(self) -> bool:
        try:
            return self.w3.is_connected()
        except Exception as e:
            logger.warning(f"Connection check failed: {e}")
            return False

    def to_checksum(self, address: str) -> str:
        try:
            return Web3.to_checksum_address(address)
        except ValueError as e:
            raise ChainError(f"Invalid address: {address}") from e

    def contract(self, address: str, abi):
        if not address:
            raise ChainError("Contract address not configured")
        return self.w3.eth.contract(address=self.to_checksum(address), abi=abi)

    def call(self, fn) -> Any:
        """Run a read-only contract call.

        Raises:
            ChainConnectionError: RPC endpoint unreachable
            ChainError: Call reverted or failed
        """
        method = getattr(fn, 'fn_name', None)
        try:
            return fn.call()
        except requests.exceptions.RequestException as e:
            raise ChainConnectionError(f"Failed to reach {self.rpc_url}", method) from e
        except ContractLogicError as e:
            raise ChainError(f"Call reverted: {str(e)}", method) from e
        except Web3Exception as e:
            raise ChainError(str(e), method) from e

    def send(self, fn, value: int = 0) -> Dict[str, Any]:
        """Sign and submit a contract transaction and wait until it is mined.

        Args:
            fn: Bound contract function
            value: Wei to attach

        Returns:
            The transaction receipt

        Raises:
            WalletUnavailableError: No signing account
            ChainConnectionError: RPC endpoint unreachable
            TransactionFailedError: Rejected, reverted or not mined in time
        """
        method = getattr(fn, 'fn_name', None)
        sender = self.address

        try:
            if self._account is not None:
                tx = fn.build_transaction({
                    'from': sender,
                    'value': value,
                    'nonce': self.w3.eth.get_transaction_count(sender, 'pending')
                })
                signed = self._account.sign_transaction(tx)
                tx_hash = self.w3.eth.send_raw_transaction(signed.raw_transaction)
            else:
                tx_hash = fn.transact({'from': sender, 'value': value})

            logger.info(f"Submitted {method} transaction {tx_hash.hex()}")
            receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.tx_timeout)

        except requests.exceptions.RequestException as e:
            raise ChainConnectionError(f"Failed to reach {self.rpc_url}", method) from e
        except TimeExhausted as e:
            raise TransactionFailedError(
                f"Transaction not mined within {self.tx_timeout} seconds", method
            ) from e
        except ContractLogicError as e:
            raise TransactionFailedError(f"Transaction reverted: {str(e)}", method) from e
        except (Web3Exception, ValueError) as e:
            # Providers report rejected transactions as ValueError
            raise TransactionFailedError(str(e), method) from e

        receipt = dict(receipt)
        if receipt.get('status') == 0:
            raise TransactionFailedError("Transaction reverted", method, tx_hash_hex(receipt))

        logger.info(f"{method} mined in block {receipt.get('blockNumber')}")
        return receipt

_bridge: Optional[WalletBridge] = None
_marketplace = None
_token = None

def get_bridge() -> WalletBridge:
    """Get the shared wallet bridge configured from settings."""
    global _bridge
    if _bridge is None:
        from config import settings_conf
        _bridge = WalletBridge(
            settings_conf['rpc_url'],
            private_key=settings_conf['private_key'] or None,
            tx_timeout=settings_conf['tx_timeout']
        )
    return _bridge

def get_marketplace():
    """Get the shared marketplace contract client."""
    global _marketplace
    if _marketplace is None:
        from config import settings_conf
        from .abi import MARKETPLACE_ABI, load_abi
        from .marketplace import MarketplaceClient
        _marketplace = MarketplaceClient(
            get_bridge(),
            settings_conf['marketplace_address'],
            abi=load_abi(settings_conf['marketplace_abi_path'], MARKETPLACE_ABI),
            gateway=settings_conf['gateway_url'],
            http_timeout=settings_conf['http_timeout']
        )
    return _marketplace

def get_token():
    """Get the shared faucet token client."""
    global _token
    if _token is None:
        from config import settings_conf
        from .abi import ERC20_ABI, load_abi
        from .token import TokenClient
        _token = TokenClient(
            get_bridge(),
            settings_conf['token_address'],
            abi=load_abi(settings_conf['token_abi_path'], ERC20_ABI),
            explorer_url=settings_conf['explorer_url']
        )
    return _token

__all__ = [
    'ChainError', 'ChainConnectionError', 'WalletUnavailableError', 'TransactionFailedError',
    'CapabilityUnsupportedError', 'Unsupported', 'UNSUPPORTED', 'WalletBridge',
    'format_units', 'parse_units', 'tx_hash_hex', 'get_bridge', 'get_marketplace', 'get_token'
]
