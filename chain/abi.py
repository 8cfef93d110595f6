"""Contract ABIs.

The built-in ABIs cover only the functions and events the marketplace calls.
Deployments can point `marketplace_abi_path` / `token_abi_path` at the full
compiler output instead, in which case the optional token methods are detected
from that file.
"""
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Set

from . import ChainError

logger = logging.getLogger(__name__)

def _fn(name: str, inputs: List[tuple], outputs: List[str], mutability: str = 'view') -> Dict[str, Any]:
    return {
        'type': 'function',
        'name': name,
        'stateMutability': mutability,
        'inputs': [{'name': n, 'type': t} for n, t in inputs],
        'outputs': [{'name': '', 'type': t} for t in outputs]
    }

TRANSFER_EVENT = {
    'type': 'event',
    'name': 'Transfer',
    'anonymous': False,
    'inputs': [
        {'name': 'from', 'type': 'address', 'indexed': True},
        {'name': 'to', 'type': 'address', 'indexed': True},
        {'name': 'tokenId', 'type': 'uint256', 'indexed': True}
    ]
}

MARKETPLACE_ABI: List[Dict[str, Any]] = [
    _fn('purchase', [('seller', 'address'), ('metadataURI', 'string')], [], 'payable'),
    _fn('mint', [('to', 'address'), ('metadataURI', 'string')], [], 'nonpayable'),
    _fn('transferNFT', [('to', 'address'), ('tokenId', 'uint256')], [], 'nonpayable'),
    _fn('updateTokenURI', [('tokenId', 'uint256'), ('metadataURI', 'string')], [], 'nonpayable'),
    _fn('tokensOfOwner', [('owner', 'address')], ['uint256[]']),
    _fn('tokenURI', [('tokenId', 'uint256')], ['string']),
    TRANSFER_EVENT
]

# ERC-20 plus the faucet extension (claim/claimed/dropAmount)
ERC20_ABI: List[Dict[str, Any]] = [
    _fn('name', [], ['string']),
    _fn('symbol', [], ['string']),
    _fn('decimals', [], ['uint8']),
    _fn('totalSupply', [], ['uint256']),
    _fn('balanceOf', [('account', 'address')], ['uint256']),
    _fn('allowance', [('owner', 'address'), ('spender', 'address')], ['uint256']),
    _fn('transfer', [('to', 'address'), ('value', 'uint256')], ['bool'], 'nonpayable'),
    _fn('approve', [('spender', 'address'), ('value', 'uint256')], ['bool'], 'nonpayable'),
    _fn('transferFrom', [('from', 'address'), ('to', 'address'), ('value', 'uint256')], ['bool'], 'nonpayable'),
    _fn('claim', [], [], 'nonpayable'),
    _fn('claimed', [('account', 'address')], ['bool']),
    _fn('dropAmount', [], ['uint256'])
]

class ABIError(ChainError):
    """Raised when an ABI file cannot be read."""
    pass

def normalize_abi(data: Any) -> List[Dict[str, Any]]:
    """Accept either a bare ABI list or a compiler artifact with an "abi" key."""
    if isinstance(data, dict) and 'abi' in data:
        data = data['abi']
    if not isinstance(data, list):
        raise ABIError("ABI must be a list or an object with an 'abi' list")
    return data

def load_abi(path: Optional[str], default: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Load an ABI file, falling back to the built-in ABI when no path is set.

    Raises:
        ABIError: If the file is missing or malformed
    """
    if not path:
        return default

    try:
        with open(Path(path), 'r') as f:
            abi = normalize_abi(json.load(f))
    except (OSError, ValueError) as e:
        raise ABIError(f"Failed to load ABI from {path}: {str(e)}") from e

    logger.info(f"Loaded ABI from {path} ({len(abi)} entries)")
    return abi

def function_names(abi: List[Dict[str, Any]]) -> Set[str]:
    """Names of the functions an ABI declares."""
    return {entry['name'] for entry in abi if entry.get('type') == 'function' and 'name' in entry}
