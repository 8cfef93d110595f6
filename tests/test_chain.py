"""Tests for the wallet bridge and the contract clients."""

import json
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
import requests
from web3.exceptions import ContractLogicError, TimeExhausted

from chain import (
    UNSUPPORTED,
    CapabilityUnsupportedError,
    ChainConnectionError,
    ChainError,
    TransactionFailedError,
    WalletBridge,
    WalletUnavailableError,
    format_units,
    parse_units,
    tx_hash_hex
)
from chain.abi import ABIError, ERC20_ABI, MARKETPLACE_ABI, function_names, load_abi
from chain.marketplace import ZERO_ADDRESS, MarketplaceClient, token_id_from_topics
from chain.token import TokenClient
from conftest import BUYER_ADDRESS, SELLER_ADDRESS, TOKEN_ADDRESS

class FakeBridge:
    """Bridge that runs calls directly and records sends."""

    def __init__(self, address=BUYER_ADDRESS):
        self.address = address
        self.sent = []

    def to_checksum(self, address):
        return address

    def call(self, fn):
        return fn.call()

    def send(self, fn, value=0):
        self.sent.append((fn, value))
        return {'transactionHash': '0x' + '12' * 32, 'blockNumber': 1, 'status': 1, 'logs': []}

class Call:
    """Bound contract function stand-in."""

    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error

    def call(self):
        if self.error:
            raise self.error
        return self.result

# Units

@pytest.mark.parametrize('raw, decimals, expected', [
    (1500000000000000000, 18, '1.5'),
    (10**18, 18, '1.0'),
    (0, 18, '0.0'),
    (1, 18, '0.000000000000000001'),
    (123, 0, '123.0'),
    (1234567, 6, '1.234567'),
])
def test_format_units(raw, decimals, expected):
    assert format_units(raw, decimals) == expected

def test_parse_units():
    assert parse_units('1.5', 18) == 1500000000000000000
    assert parse_units(1, 6) == 1000000
    assert parse_units(' 2 ', 0) == 2
    assert parse_units(Decimal('0.25'), 2) == 25

@pytest.mark.parametrize('amount', ['abc', '', 'nan', '0.0000001'])
def test_parse_units_rejects(amount):
    with pytest.raises(ValueError):
        parse_units(amount, 6)

def test_tx_hash_hex():
    assert tx_hash_hex({'transactionHash': bytes.fromhex('ab' * 32)}) == '0x' + 'ab' * 32
    assert tx_hash_hex({'transactionHash': 'cd' * 32}) == '0x' + 'cd' * 32
    assert tx_hash_hex({'transactionHash': '0x01'}) == '0x01'
    assert tx_hash_hex({}) == ''

# Wallet bridge

def _bridge(accounts=None):
    w3 = MagicMock()
    w3.eth.accounts = accounts if accounts is not None else [BUYER_ADDRESS]
    return WalletBridge('http://localhost:8545', web3=w3, tx_timeout=5), w3

def test_bridge_address_from_provider():
    bridge, _ = _bridge()
    assert bridge.address == BUYER_ADDRESS

def test_bridge_without_accounts():
    bridge, _ = _bridge(accounts=[])
    with pytest.raises(WalletUnavailableError):
        bridge.address

def test_bridge_send_unlocked_account():
    bridge, w3 = _bridge()
    fn = MagicMock(fn_name='claim')
    w3.eth.wait_for_transaction_receipt.return_value = {
        'status': 1, 'blockNumber': 9, 'transactionHash': bytes.fromhex('ab' * 32)
    }

    receipt = bridge.send(fn, value=5)

    fn.transact.assert_called_once_with({'from': BUYER_ADDRESS, 'value': 5})
    assert receipt['blockNumber'] == 9

def test_bridge_send_reverted_receipt():
    bridge, w3 = _bridge()
    w3.eth.wait_for_transaction_receipt.return_value = {
        'status': 0, 'blockNumber': 9, 'transactionHash': bytes.fromhex('ab' * 32)
    }

    with pytest.raises(TransactionFailedError) as exc_info:
        bridge.send(MagicMock(fn_name='purchase'))

    assert exc_info.value.tx_hash == '0x' + 'ab' * 32
    assert exc_info.value.method == 'purchase'

def test_bridge_send_timeout():
    bridge, w3 = _bridge()
    w3.eth.wait_for_transaction_receipt.side_effect = TimeExhausted('too slow')
    with pytest.raises(TransactionFailedError, match='not mined'):
        bridge.send(MagicMock(fn_name='purchase'))

def test_bridge_send_rejected():
    bridge, _ = _bridge()
    fn = MagicMock(fn_name='purchase')
    fn.transact.side_effect = ValueError({'message': 'insufficient funds'})
    with pytest.raises(TransactionFailedError):
        bridge.send(fn)

def test_bridge_call_errors():
    bridge, _ = _bridge()
    fn = MagicMock(fn_name='tokenURI')

    fn.call.side_effect = ContractLogicError('execution reverted')
    with pytest.raises(ChainError, match='reverted'):
        bridge.call(fn)

    fn.call.side_effect = requests.exceptions.ConnectionError('refused')
    with pytest.raises(ChainConnectionError):
        bridge.call(fn)

def test_bridge_is_connected_swallows_errors():
    bridge, w3 = _bridge()
    w3.is_connected.side_effect = RuntimeError('boom')
    assert bridge.is_connected() is False

def test_bridge_contract_requires_address():
    bridge, _ = _bridge()
    with pytest.raises(ChainError):
        bridge.contract('', MARKETPLACE_ABI)

# ABI loading

def test_load_abi_default():
    assert load_abi(None, MARKETPLACE_ABI) is MARKETPLACE_ABI

def test_load_abi_list_and_artifact(tmp_path):
    plain = tmp_path / 'plain.json'
    plain.write_text(json.dumps(ERC20_ABI))
    artifact = tmp_path / 'artifact.json'
    artifact.write_text(json.dumps({'contractName': 'Token', 'abi': ERC20_ABI}))

    assert load_abi(str(plain), []) == ERC20_ABI
    assert load_abi(str(artifact), []) == ERC20_ABI

def test_load_abi_errors(tmp_path):
    bad = tmp_path / 'bad.json'
    bad.write_text(json.dumps({'bytecode': '0x'}))
    with pytest.raises(ABIError):
        load_abi(str(bad), [])
    with pytest.raises(ABIError):
        load_abi(str(tmp_path / 'missing.json'), [])

def test_function_names():
    names = function_names(ERC20_ABI)
    assert {'claim', 'claimed', 'dropAmount', 'transfer', 'balanceOf'} <= names

# Marketplace

def test_purchase_sends_price_in_wei():
    bridge = FakeBridge()
    contract = MagicMock()
    client = MarketplaceClient(bridge, '0xMarket', contract=contract)

    client.purchase(SELLER_ADDRESS, 'ipfs://QmMeta', '0.1')

    contract.functions.purchase.assert_called_once_with(SELLER_ADDRESS, 'ipfs://QmMeta')
    assert bridge.sent[0][1] == 10**17

@pytest.mark.parametrize('price', ['abc', '-1', 'inf'])
def test_purchase_rejects_bad_price(price):
    bridge = FakeBridge()
    client = MarketplaceClient(bridge, '0xMarket', contract=MagicMock())
    with pytest.raises(ChainError):
        client.purchase(SELLER_ADDRESS, 'ipfs://QmMeta', price)
    assert bridge.sent == []

def test_extract_token_id_prefers_decoded_mint():
    contract = MagicMock()
    contract.events.Transfer.return_value.process_receipt.return_value = [
        {'args': {'from': SELLER_ADDRESS, 'to': BUYER_ADDRESS, 'tokenId': 2}},
        {'args': {'from': ZERO_ADDRESS, 'to': BUYER_ADDRESS, 'tokenId': 5}},
    ]
    client = MarketplaceClient(FakeBridge(), '0xMarket', contract=contract)
    assert client.extract_token_id({'logs': []}) == 5

def test_extract_token_id_falls_back_to_topics():
    contract = MagicMock()
    contract.events.Transfer.return_value.process_receipt.return_value = []
    client = MarketplaceClient(FakeBridge(), '0xMarket', contract=contract)
    receipt = {'logs': [
        {'topics': ['0xaa', '0xbb']},
        {'topics': ['0x01', '0x02', '0x03', (9).to_bytes(32, 'big')]},
    ]}
    assert client.extract_token_id(receipt) == 9

def test_extract_token_id_defaults_to_zero():
    contract = MagicMock()
    contract.events.Transfer.return_value.process_receipt.side_effect = ValueError('bad log')
    client = MarketplaceClient(FakeBridge(), '0xMarket', contract=contract)
    assert client.extract_token_id({'logs': []}) == 0

def test_token_id_from_hex_topic():
    receipt = {'logs': [{'topics': ['0x0', '0x0', '0x0', '0x' + '0' * 62 + '1f']}]}
    assert token_id_from_topics(receipt) == 31

def test_owned_tokens_skips_unreadable_uri():
    contract = MagicMock()
    contract.functions.tokensOfOwner.return_value = Call([1, 2])
    contract.functions.tokenURI.side_effect = lambda token_id: (
        Call('ipfs://QmMeta1') if token_id == 1 else Call(error=ChainError('reverted', 'tokenURI'))
    )
    client = MarketplaceClient(FakeBridge(), '0xMarket', contract=contract)
    response = MagicMock(ok=True, text=json.dumps({'image': 'ipfs://QmImg1'}))
    client.session = MagicMock()
    client.session.get.return_value = response

    owned = client.owned_tokens(BUYER_ADDRESS)

    assert owned == [{
        'tokenId': 1,
        'metadataURI': 'ipfs://QmMeta1',
        'imageUrl': 'https://gateway.pinata.cloud/ipfs/QmImg1',
        'rawMetadata': {'image': 'ipfs://QmImg1'}
    }]

# Faucet token

def _token_contract(decimals=18):
    contract = MagicMock()
    contract.functions.decimals.return_value = Call(decimals)
    contract.functions.symbol.return_value = Call('TB')
    contract.functions.balanceOf.side_effect = lambda holder: Call(
        10**21 if holder == TOKEN_ADDRESS else 15 * 10**17
    )
    contract.functions.claimed.return_value = Call(True)
    contract.functions.dropAmount.return_value = Call(10 * 10**18)
    return contract

def _minimal_abi():
    return [e for e in ERC20_ABI if e['name'] not in ('claim', 'claimed', 'dropAmount', 'transfer')]

def test_token_capabilities():
    full = TokenClient(FakeBridge(), TOKEN_ADDRESS, contract=_token_contract())
    minimal = TokenClient(FakeBridge(), TOKEN_ADDRESS, abi=_minimal_abi(), contract=_token_contract())

    assert full.capabilities == {'claim', 'claimed', 'dropAmount', 'transfer'}
    assert minimal.capabilities == frozenset()

def test_token_reads():
    client = TokenClient(FakeBridge(), TOKEN_ADDRESS, contract=_token_contract())
    assert client.balance() == '1.5'
    assert client.has_claimed() is True
    assert client.drop_amount() == '10.0'
    assert client.faucet_remaining() == '1000.0'

def test_unsupported_methods():
    bridge = FakeBridge()
    client = TokenClient(bridge, TOKEN_ADDRESS, abi=_minimal_abi(), contract=_token_contract())

    assert client.has_claimed() is UNSUPPORTED
    assert not client.has_claimed()
    assert client.drop_amount() is UNSUPPORTED
    with pytest.raises(CapabilityUnsupportedError):
        client.claim()
    with pytest.raises(CapabilityUnsupportedError):
        client.transfer(SELLER_ADDRESS, '1')
    assert bridge.sent == []

def test_overview_fallbacks():
    contract = _token_contract()
    contract.functions.symbol.return_value = Call(error=ChainError('no symbol', 'symbol'))
    client = TokenClient(FakeBridge(), TOKEN_ADDRESS, abi=_minimal_abi(), contract=contract)

    overview = client.overview()

    assert overview == {
        'address': TOKEN_ADDRESS,
        'holder': BUYER_ADDRESS,
        'symbol': 'TB',
        'balance': '1.5',
        'claimed': False,
        'dropAmount': None,
        'faucetRemaining': '1000.0',
        'capabilities': []
    }

def test_transfer_parses_amount():
    bridge = FakeBridge()
    contract = _token_contract(decimals=6)
    client = TokenClient(bridge, TOKEN_ADDRESS, contract=contract)

    client.transfer(SELLER_ADDRESS, '1.5')

    contract.functions.transfer.assert_called_once_with(SELLER_ADDRESS, 1500000)
    with pytest.raises(ValueError):
        client.transfer(SELLER_ADDRESS, '0')
    with pytest.raises(ValueError):
        client.transfer(SELLER_ADDRESS, 'abc')
    assert len(bridge.sent) == 1

def test_claim_and_approve():
    bridge = FakeBridge()
    contract = _token_contract()
    client = TokenClient(bridge, TOKEN_ADDRESS, contract=contract)

    client.claim()
    client.approve(SELLER_ADDRESS, 42)

    contract.functions.claim.assert_called_once_with()
    contract.functions.approve.assert_called_once_with(SELLER_ADDRESS, 42)
    assert len(bridge.sent) == 2

def test_watch_asset_and_explorer_links():
    client = TokenClient(
        FakeBridge(), TOKEN_ADDRESS, explorer_url='https://sepolia.etherscan.io/', contract=_token_contract()
    )
    assert client.watch_asset_params() == {
        'type': 'ERC20',
        'options': {'address': TOKEN_ADDRESS, 'symbol': 'TB', 'decimals': 18}
    }
    assert client.explorer_token_url() == f"https://sepolia.etherscan.io/token/{TOKEN_ADDRESS}"
    assert client.explorer_token_url(BUYER_ADDRESS).endswith(f"?a={BUYER_ADDRESS}")
    assert client.explorer_tx_url('0xabc') == 'https://sepolia.etherscan.io/tx/0xabc'

def test_admin_writes():
    bridge = FakeBridge()
    contract = MagicMock()
    client = MarketplaceClient(bridge, '0xMarket', contract=contract)

    client.mint(BUYER_ADDRESS, 'ipfs://QmMeta')
    client.transfer_nft(SELLER_ADDRESS, '3')
    client.update_token_uri(3, 'ipfs://QmNew')

    contract.functions.mint.assert_called_once_with(BUYER_ADDRESS, 'ipfs://QmMeta')
    contract.functions.transferNFT.assert_called_once_with(SELLER_ADDRESS, 3)
    contract.functions.updateTokenURI.assert_called_once_with(3, 'ipfs://QmNew')
    assert [value for _, value in bridge.sent] == [0, 0, 0]
