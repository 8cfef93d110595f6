"""Faucet token (ERC-20) client.

The faucet extension methods `claim`, `claimed` and `dropAmount`, and also
`transfer`, are only used when the configured ABI declares them. Reads of an
undeclared method return UNSUPPORTED; writes raise CapabilityUnsupportedError.
"""
import logging
from typing import Any, Dict, FrozenSet, List, Optional, Union

from . import (
    UNSUPPORTED, CapabilityUnsupportedError, ChainError, Unsupported, WalletBridge,
    format_units, parse_units
)
from .abi import ERC20_ABI, function_names

logger = logging.getLogger(__name__)

OPTIONAL_METHODS = frozenset({'claim', 'claimed', 'dropAmount', 'transfer'})

DEFAULT_SYMBOL = 'TB'

class TokenClient:
    """Client for the faucet ERC-20 token"""

    def __init__(
        self,
        bridge: WalletBridge,
        address: str,
        abi: Optional[List[Dict[str, Any]]] = None,
        explorer_url: str = 'https://sepolia.etherscan.io',
        contract=None
    ):
        self.bridge = bridge
        self.address = address
        self.explorer_url = explorer_url.rstrip('/')
        abi = abi or ERC20_ABI
        self.capabilities: FrozenSet[str] = frozenset(function_names(abi) & OPTIONAL_METHODS)
        self.contract = contract if contract is not None else bridge.contract(address, abi)

    def supports(self, method: str) -> bool:
        return method in self.capabilities

    def _require(self, method: str) -> None:
        if not self.supports(method):
            raise CapabilityUnsupportedError(f"Token ABI does not declare {method}()", method)

    def _holder(self, address: Optional[str]) -> str:
        return self.bridge.to_checksum(address) if address else self.bridge.address

    # Reads

    def decimals(self) -> int:
        return int(self.bridge.call(self.contract.functions.decimals()))

    def symbol(self) -> str:
        return self.bridge.call(self.contract.functions.symbol())

    def balance_raw(self, address: Optional[str] = None) -> int:
        return int(self.bridge.call(self.contract.functions.balanceOf(self._holder(address))))

    def balance(self, address: Optional[str] = None) -> str:
        """Balance formatted with the token's decimals."""
        return format_units(self.balance_raw(address), self.decimals())

    def has_claimed(self, address: Optional[str] = None) -> Union[bool, Unsupported]:
        if not self.supports('claimed'):
            return UNSUPPORTED
        return bool(self.bridge.call(self.contract.functions.claimed(self._holder(address))))

    def drop_amount(self) -> Union[str, Unsupported]:
        """Amount paid out per claim, formatted."""
        if not self.supports('dropAmount'):
            return UNSUPPORTED
        raw = self.bridge.call(self.contract.functions.dropAmount())
        return format_units(raw, self.decimals())

    def faucet_remaining(self) -> str:
        """Tokens left to hand out, i.e. the token contract's own balance."""
        return format_units(self.balance_raw(self.address), self.decimals())

    # Writes

    def claim(self) -> Dict[str, Any]:
        """Claim the faucet drop. The contract allows one claim per address."""
        self._require('claim')
        return self.bridge.send(self.contract.functions.claim())

    def approve(self, spender: str, amount_raw: int) -> Dict[str, Any]:
        return self.bridge.send(
            self.contract.functions.approve(self.bridge.to_checksum(spender), int(amount_raw))
        )

    def transfer(self, to: str, amount: str) -> Dict[str, Any]:
        """Send a human-readable amount. There is no balance pre-check.

        Raises:
            CapabilityUnsupportedError: ABI lacks transfer()
            ValueError: Amount does not parse with the token's decimals
        """
        self._require('transfer')
        value = parse_units(amount, self.decimals())
        if value <= 0:
            raise ValueError("Amount must be greater than zero")
        return self.bridge.send(
            self.contract.functions.transfer(self.bridge.to_checksum(to), value)
        )

    # Composites

    def overview(self, address: Optional[str] = None) -> Dict[str, Any]:
        """Faucet panel state. Each field falls back on its own when its read fails."""
        def read(name: str, fn, fallback):
            try:
                value = fn()
            except ChainError as e:
                logger.warning(f"Token {name} read failed: {e}")
                return fallback
            return fallback if isinstance(value, Unsupported) else value

        holder = address or self.bridge.address
        return {
            'address': self.address,
            'holder': holder,
            'symbol': read('symbol', self.symbol, DEFAULT_SYMBOL),
            'balance': read('balance', lambda: self.balance(holder), '0'),
            'claimed': read('claimed', lambda: self.has_claimed(holder), False),
            'dropAmount': read('dropAmount', self.drop_amount, None),
            'faucetRemaining': read('faucetRemaining', self.faucet_remaining, '0'),
            'capabilities': sorted(self.capabilities)
        }

    def watch_asset_params(self) -> Dict[str, Any]:
        """Payload for a wallet's wallet_watchAsset request."""
        return {
            'type': 'ERC20',
            'options': {
                'address': self.address,
                'symbol': self.symbol(),
                'decimals': self.decimals()
            }
        }

    def explorer_token_url(self, holder: Optional[str] = None) -> str:
        url = f"{self.explorer_url}/token/{self.address}"
        return f"{url}?a={holder}" if holder else url

    def explorer_tx_url(self, tx_hash: str) -> str:
        return f"{self.explorer_url}/tx/{tx_hash}"
