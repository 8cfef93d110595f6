"""Shared fixtures: an in-memory document store and fake chain/pinning collaborators."""

import copy
import uuid
from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

import auth
import database
from auth import AuthManager, AuthUser
from chain import ChainError, TransactionFailedError, WalletUnavailableError
from database import Document, DocumentNotFoundError
from database.documents import check_collection, split_path

SELLER_ADDRESS = "0x" + "11" * 20
BUYER_ADDRESS = "0x" + "22" * 20
TOKEN_ADDRESS = "0x" + "33" * 20
GATEWAY = "https://gateway.pinata.cloud/ipfs/"

class MemoryDocumentStore:
    """DocumentStore with the same semantics, kept in a dict."""

    def __init__(self):
        self.docs: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self.writes: List[str] = []

    def _collection(self, collection: str) -> Dict[str, Dict[str, Any]]:
        return self.docs.setdefault(collection, {})

    async def get(self, path: str) -> Optional[Dict[str, Any]]:
        collection, doc_id = split_path(path)
        data = self.docs.get(collection, {}).get(doc_id)
        return copy.deepcopy(data) if data is not None else None

    async def set(self, path: str, data: Dict[str, Any], merge: bool = False) -> None:
        collection, doc_id = split_path(path)
        docs = self._collection(collection)
        if merge and doc_id in docs:
            docs[doc_id].update(copy.deepcopy(data))
        else:
            docs[doc_id] = copy.deepcopy(data)
        self.writes.append(path)

    async def update(self, path: str, data: Dict[str, Any]) -> None:
        collection, doc_id = split_path(path)
        docs = self.docs.get(collection, {})
        if doc_id not in docs:
            raise DocumentNotFoundError(path)
        docs[doc_id].update(copy.deepcopy(data))
        self.writes.append(path)

    async def add(self, collection: str, data: Dict[str, Any]) -> str:
        doc_id = uuid.uuid4().hex
        await self.set(f"{check_collection(collection)}/{doc_id}", data)
        return doc_id

    async def delete(self, path: str) -> None:
        collection, doc_id = split_path(path)
        self.docs.get(collection, {}).pop(doc_id, None)

    async def list(
        self,
        collection: str,
        where: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False
    ) -> List[Document]:
        collection = check_collection(collection)
        items = sorted(self.docs.get(collection, {}).items())
        if where:
            items = [
                (doc_id, data) for doc_id, data in items
                if all(data.get(k) == v for k, v in where.items())
            ]
        if order_by:
            present = [item for item in items if item[1].get(order_by) is not None]
            missing = [item for item in items if item[1].get(order_by) is None]
            present.sort(key=lambda item: str(item[1][order_by]), reverse=descending)
            items = present + missing
        return [Document(doc_id, copy.deepcopy(data)) for doc_id, data in items]

    async def ping(self) -> bool:
        return True

class FakePinning:
    """Pinning client returning fixed CIDs."""

    def __init__(self, jwt: Optional[str] = 'test-jwt', error: Optional[Exception] = None):
        self.jwt = jwt
        self.error = error
        self.calls: List[Dict[str, Any]] = []

    def pin_listing_assets(self, image, filename, content_type, title, description='', price=''):
        self.calls.append({
            'image': image, 'filename': filename, 'content_type': content_type,
            'title': title, 'description': description, 'price': price
        })
        if self.error:
            raise self.error
        return {
            'title': title,
            'description': description,
            'price': price,
            'imageURI': f"{GATEWAY}QmImage",
            'tokenURI': f"{GATEWAY}QmMeta",
            'imageCID': 'QmImage',
            'tokenCID': 'QmMeta'
        }

class FakeMarketplace:
    """Marketplace client that mines every purchase instantly."""

    def __init__(self, token_id: int = 7, error: Optional[ChainError] = None):
        self.token_id = token_id
        self.error = error
        self.purchases: List[tuple] = []
        self.owned: List[Dict[str, Any]] = []

    def purchase(self, seller, metadata_uri, price_eth):
        self.purchases.append((seller, metadata_uri, price_eth))
        if self.error:
            raise self.error
        return {'transactionHash': bytes.fromhex('ab' * 32), 'blockNumber': 100, 'status': 1, 'logs': []}

    def extract_token_id(self, receipt):
        return self.token_id

    def owned_tokens(self, owner):
        return list(self.owned)

class FakeWallet:
    """Wallet bridge stand-in with a fixed address."""

    def __init__(self, address: Optional[str] = BUYER_ADDRESS, connected: bool = True):
        self._address = address
        self.connected = connected

    @property
    def address(self) -> str:
        if not self._address:
            raise WalletUnavailableError("No wallet account available", 'eth_accounts')
        return self._address

    def is_connected(self) -> bool:
        return self.connected

class FakeTokenClient:
    """Token client with canned reads."""

    def __init__(self, claimed=False):
        self.claimed = claimed
        self.claims = 0
        self.transfers: List[tuple] = []

    def has_claimed(self, address=None):
        return self.claimed

    def claim(self):
        self.claims += 1
        return {'transactionHash': '0x' + 'cd' * 32, 'blockNumber': 5}

    def transfer(self, to, amount):
        if amount == 'abc':
            raise ValueError("Invalid amount: 'abc'")
        self.transfers.append((to, amount))
        return {'transactionHash': '0x' + 'ef' * 32, 'blockNumber': 6}

    def approve(self, spender, amount_raw):
        raise TransactionFailedError("Transaction reverted", 'approve')

    def overview(self, address=None):
        return {
            'address': TOKEN_ADDRESS,
            'holder': address or BUYER_ADDRESS,
            'symbol': 'TB',
            'balance': '1.5',
            'claimed': self.claimed,
            'dropAmount': '10.0',
            'faucetRemaining': '990.0',
            'capabilities': ['claim', 'claimed', 'dropAmount', 'transfer']
        }

    def watch_asset_params(self):
        return {'type': 'ERC20', 'options': {'address': TOKEN_ADDRESS, 'symbol': 'TB', 'decimals': 18}}

    def explorer_token_url(self, holder=None):
        return f"https://sepolia.etherscan.io/token/{TOKEN_ADDRESS}?a={holder}"

    def explorer_tx_url(self, tx_hash):
        return f"https://sepolia.etherscan.io/tx/{tx_hash}"

@pytest.fixture
def store():
    return MemoryDocumentStore()

@pytest.fixture
def seller():
    return AuthUser(uid='seller-1', email='seller@example.com', display_name='Seller')

@pytest.fixture
def buyer():
    return AuthUser(uid='buyer-1', email='buyer@example.com', display_name=None)

@pytest.fixture
def auth_manager():
    return AuthManager(secret='test-secret', session_expiry_days=1)

@pytest.fixture
def fake_pinning():
    return FakePinning()

@pytest.fixture
def fake_marketplace():
    return FakeMarketplace()

@pytest.fixture
def fake_wallet():
    return FakeWallet()

@pytest.fixture
def fake_token():
    return FakeTokenClient()

async def add_listing(store, listing_id: str, **fields) -> Dict[str, Any]:
    """Store a listing document with sensible defaults."""
    data = {
        'title': 'Blue Cat',
        'description': 'A cat',
        'price': '0.1',
        'imageURI': 'ipfs://QmImage',
        'tokenURI': f"{GATEWAY}QmMeta",
        'ownerUid': 'seller-1',
        'ownerName': 'Seller',
        'ownerAddress': SELLER_ADDRESS,
        'sold': False,
        'createdAt': '2024-01-01T00:00:00+00:00'
    }
    data.update(fields)
    await store.set(f"listings/{listing_id}", data)
    return data

@pytest.fixture
def client(store, auth_manager, fake_pinning, fake_marketplace, fake_wallet, fake_token, monkeypatch):
    """API test client wired to the in-memory store and fakes."""
    from api import app
    from api import dependencies

    monkeypatch.setattr(database, '_store', store)
    monkeypatch.setattr(auth, '_manager', auth_manager)

    app.dependency_overrides[dependencies.get_document_store] = lambda: store
    app.dependency_overrides[dependencies.get_pinning] = lambda: fake_pinning
    app.dependency_overrides[dependencies.get_marketplace_client] = lambda: fake_marketplace
    app.dependency_overrides[dependencies.get_optional_marketplace] = lambda: fake_marketplace
    app.dependency_overrides[dependencies.get_token_client] = lambda: fake_token
    app.dependency_overrides[dependencies.get_optional_token] = lambda: fake_token
    app.dependency_overrides[dependencies.get_wallet] = lambda: fake_wallet

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()

def bearer(auth_manager: AuthManager, user: AuthUser) -> Dict[str, str]:
    return {'Authorization': f"Bearer {auth_manager.issue_token(user)['token']}"}
